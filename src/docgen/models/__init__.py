from docgen.db.database import Base

# Import all models so Alembic and metadata.create_all can discover them
from .generation_job import GenerationJob
from .document_artifact import DocumentArtifact
from .document_template import DocumentTemplate
from .enums import JobStatus, DocumentFormat, DocumentType

__all__ = [
    "Base",
    "GenerationJob",
    "DocumentArtifact",
    "DocumentTemplate",
    "JobStatus",
    "DocumentFormat",
    "DocumentType",
]
