# src/docgen/repositories/document_artifact_repository.py

import logging
from typing import Iterable
from uuid import UUID

from opentelemetry import trace
from sqlalchemy.orm import Session

from docgen.models.document_artifact import DocumentArtifact

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


class DocumentArtifactRepository:

    @staticmethod
    def create_many(
        db: Session,
        *,
        tenant_id: UUID,
        job_id: int,
        uploads: Iterable,
    ) -> list[DocumentArtifact]:
        """
        Insert one artifact row per upload result in a single transaction,
        so a job never ends up with a partial artifact set.
        """
        artifacts = [
            DocumentArtifact(
                tenant_id=tenant_id,
                job_id=job_id,
                format=upload.format,
                file_name=upload.file_name,
                storage_path=upload.storage_path,
                file_size=upload.file_size,
                content_type=upload.content_type,
                sha256_checksum=upload.sha256_checksum,
                page_count=upload.page_count,
                rendering_duration_ms=upload.rendering_duration_ms,
            )
            for upload in uploads
        ]

        with tracer.start_as_current_span("db.create_document_artifacts") as span:
            span.set_attribute("job.id", job_id)
            span.set_attribute("artifact.count", len(artifacts))

            db.add_all(artifacts)
            db.commit()
            for artifact in artifacts:
                db.refresh(artifact)

        logger.info(
            "Created %d document artifact(s) for job=%s tenant=%s",
            len(artifacts),
            job_id,
            tenant_id,
        )
        return artifacts

    @staticmethod
    def list_for_job(db: Session, job_id: int, tenant_id: UUID) -> list[DocumentArtifact]:
        return (
            db.query(DocumentArtifact)
            .filter(
                DocumentArtifact.job_id == job_id,
                DocumentArtifact.tenant_id == tenant_id,
            )
            .order_by(DocumentArtifact.format)
            .all()
        )

    @staticmethod
    def get_by_id(
        db: Session,
        artifact_id: int,
        tenant_id: UUID,
        *,
        job_id: int | None = None,
    ) -> DocumentArtifact | None:
        query = db.query(DocumentArtifact).filter(
            DocumentArtifact.id == artifact_id,
            DocumentArtifact.tenant_id == tenant_id,
        )
        if job_id is not None:
            query = query.filter(DocumentArtifact.job_id == job_id)
        return query.first()

    @staticmethod
    def delete_for_job(db: Session, job_id: int, tenant_id: UUID) -> list[str]:
        """
        Delete every artifact row of a job and return their storage paths.
        The caller owns the commit.
        """
        with tracer.start_as_current_span("db.delete_document_artifacts") as span:
            span.set_attribute("job.id", job_id)

            paths = [
                path
                for (path,) in db.query(DocumentArtifact.storage_path)
                .filter(
                    DocumentArtifact.job_id == job_id,
                    DocumentArtifact.tenant_id == tenant_id,
                )
                .all()
            ]
            db.query(DocumentArtifact).filter(
                DocumentArtifact.job_id == job_id,
                DocumentArtifact.tenant_id == tenant_id,
            ).delete(synchronize_session=False)

        logger.info("Deleted %d artifact row(s) for job=%s tenant=%s", len(paths), job_id, tenant_id)
        return paths
