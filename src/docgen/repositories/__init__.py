# src/docgen/repositories/__init__.py
from .generation_job_repository import GenerationJobRepository
from .document_artifact_repository import DocumentArtifactRepository
from .document_template_repository import DocumentTemplateRepository

__all__ = [
    "GenerationJobRepository",
    "DocumentArtifactRepository",
    "DocumentTemplateRepository",
]
