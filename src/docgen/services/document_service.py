# src/docgen/services/document_service.py

import logging
from dataclasses import dataclass
from uuid import UUID

from opentelemetry import trace
from sqlalchemy.orm import sessionmaker

from docgen.db.tenant import tenant_session
from docgen.errors import JobNotFoundError
from docgen.metrics import safe_counter
from docgen.models.document_artifact import DocumentArtifact
from docgen.models.generation_job import GenerationJob
from docgen.repositories.document_artifact_repository import DocumentArtifactRepository
from docgen.repositories.generation_job_repository import GenerationJobRepository
from docgen.services.storage import ArtifactStorage

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

documents_deleted_total = safe_counter(
    "docgen_documents_deleted_total",
    "Number of generated documents deleted by an administrator",
)


@dataclass
class DocumentPage:
    items: list[GenerationJob]
    total: int
    limit: int
    offset: int


@dataclass
class DownloadLink:
    url: str
    file_name: str
    expires_in: int


class DocumentService:
    """Read-side and administrative operations on generated documents."""

    def __init__(self, session_factory: sessionmaker, storage: ArtifactStorage):
        self.session_factory = session_factory
        self.storage = storage

    def get_document(self, tenant_id: UUID, document_id: int) -> tuple[GenerationJob, list[DocumentArtifact]]:
        with tenant_session(self.session_factory, tenant_id) as db:
            job = GenerationJobRepository.get_by_id(db, document_id, tenant_id)
            if job is None:
                raise JobNotFoundError(f"Document {document_id} not found")
            artifacts = DocumentArtifactRepository.list_for_job(db, document_id, tenant_id)
        return job, artifacts

    def list_documents(
        self,
        tenant_id: UUID,
        *,
        project_id: int | None = None,
        document_type: str | None = None,
        status: str | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> DocumentPage:
        with tenant_session(self.session_factory, tenant_id) as db:
            items, total = GenerationJobRepository.list_for_tenant(
                db,
                tenant_id,
                project_id=project_id,
                document_type=document_type,
                status=status,
                limit=limit,
                offset=offset,
            )
        return DocumentPage(items=items, total=total, limit=limit, offset=offset)

    def create_download_link(self, tenant_id: UUID, document_id: int, artifact_id: int) -> DownloadLink:
        with tenant_session(self.session_factory, tenant_id) as db:
            artifact = DocumentArtifactRepository.get_by_id(
                db, artifact_id, tenant_id, job_id=document_id
            )
            if artifact is None:
                raise JobNotFoundError(
                    f"Artifact {artifact_id} not found for document {document_id}"
                )

        url = self.storage.generate_retrieval_link(artifact.storage_path, artifact.file_name)
        return DownloadLink(
            url=url,
            file_name=artifact.file_name,
            expires_in=self.storage.link_expiry_seconds,
        )

    def delete_document(self, tenant_id: UUID, document_id: int) -> list[str]:
        """
        HARD delete a document, its artifact rows and its stored objects.

        Rows are removed in one transaction first; object deletion afterwards
        is best-effort and never blocks the database delete. Returns the
        object paths that could not be removed.
        """
        with tracer.start_as_current_span("documents.delete") as span:
            span.set_attribute("tenant_id", str(tenant_id))
            span.set_attribute("document_id", document_id)

            with tenant_session(self.session_factory, tenant_id) as db:
                if GenerationJobRepository.get_by_id(db, document_id, tenant_id) is None:
                    raise JobNotFoundError(f"Document {document_id} not found")

                logger.warning("Deleting document %s and ALL related data", document_id)
                paths = DocumentArtifactRepository.delete_for_job(db, document_id, tenant_id)
                GenerationJobRepository.delete(db, document_id, tenant_id)
                db.commit()

            failed = self.storage.delete_all(paths)
            if failed:
                logger.warning(
                    "Document %s deleted with %d orphaned object(s): %s",
                    document_id,
                    len(failed),
                    failed,
                )

        documents_deleted_total.inc()
        logger.warning("Document %s deleted successfully", document_id)
        return failed
