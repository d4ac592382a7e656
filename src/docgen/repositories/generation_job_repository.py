# src/docgen/repositories/generation_job_repository.py

import logging
from datetime import datetime, timezone
from typing import Any
from uuid import UUID

from opentelemetry import trace
from sqlalchemy import func, update
from sqlalchemy.orm import Session

from docgen.errors import InvalidStatusTransitionError, JobNotFoundError
from docgen.models.enums import JobStatus
from docgen.models.generation_job import GenerationJob

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


class GenerationJobRepository:

    @staticmethod
    def create(
        db: Session,
        *,
        tenant_id: UUID,
        project_id: int,
        title: str,
        document_type: str,
        requested_formats: list[str],
        input_params: Any,
        requested_by: int,
        template_id: int | None = None,
        correlation_id: UUID | None = None,
    ) -> GenerationJob:

        job = GenerationJob(
            tenant_id=tenant_id,
            project_id=project_id,
            template_id=template_id,
            correlation_id=correlation_id,
            title=title,
            document_type=document_type,
            status=JobStatus.QUEUED.value,
            requested_formats=list(requested_formats),
            input_params=input_params,
            requested_by=requested_by,
        )

        with tracer.start_as_current_span("db.create_generation_job") as span:
            span.set_attribute("tenant_id", str(tenant_id))
            span.set_attribute("project_id", project_id)
            span.set_attribute("job.document_type", document_type)

            db.add(job)
            db.commit()
            db.refresh(job)

        logger.info(
            "Created generation job id=%s project=%s tenant=%s",
            job.id,
            project_id,
            tenant_id,
        )
        return job

    @staticmethod
    def get_by_id(db: Session, job_id: int, tenant_id: UUID) -> GenerationJob | None:
        with tracer.start_as_current_span("db.get_generation_job") as span:
            span.set_attribute("job.id", job_id)
            span.set_attribute("tenant_id", str(tenant_id))

            result = (
                db.query(GenerationJob)
                .filter(
                    GenerationJob.id == job_id,
                    GenerationJob.tenant_id == tenant_id,
                )
                .first()
            )

        logger.debug(
            "Fetched generation job id=%s tenant=%s -> %s",
            job_id,
            tenant_id,
            getattr(result, "id", None),
        )
        return result

    @staticmethod
    def list_for_tenant(
        db: Session,
        tenant_id: UUID,
        *,
        project_id: int | None = None,
        document_type: str | None = None,
        status: str | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> tuple[list[GenerationJob], int]:
        """
        Return one page of jobs (newest first) and the total number of jobs
        matching the same filters.
        """
        with tracer.start_as_current_span("db.list_generation_jobs") as span:
            span.set_attribute("tenant_id", str(tenant_id))
            span.set_attribute("page.limit", limit)
            span.set_attribute("page.offset", offset)

            filters = [GenerationJob.tenant_id == tenant_id]
            if project_id is not None:
                filters.append(GenerationJob.project_id == project_id)
            if document_type is not None:
                filters.append(GenerationJob.document_type == document_type)
            if status is not None:
                filters.append(GenerationJob.status == status)

            total = (
                db.query(func.count(GenerationJob.id))
                .filter(*filters)
                .scalar()
            )
            items = (
                db.query(GenerationJob)
                .filter(*filters)
                .order_by(GenerationJob.created_at.desc(), GenerationJob.id.desc())
                .limit(limit)
                .offset(offset)
                .all()
            )

        logger.debug(
            "Listed %d of %d generation jobs tenant=%s",
            len(items),
            total,
            tenant_id,
        )
        return items, total

    @staticmethod
    def update_status(
        db: Session,
        job_id: int,
        tenant_id: UUID,
        new_status: JobStatus,
        *,
        error_message: str | None = None,
        generation_metadata: dict | None = None,
    ) -> GenerationJob:
        """
        Move a job to `new_status` with a single conditional UPDATE.

        The write only matches when the job is currently in a legal
        predecessor state. started_at/completed_at are only written when the
        new status implies them; error_message/generation_metadata are only
        written when a value is supplied, so earlier values survive
        intermediate transitions.
        """
        new_status = JobStatus(new_status)
        if new_status is JobStatus.FAILED and not error_message:
            raise ValueError("A failed job requires an error message")
        if error_message is not None and new_status is not JobStatus.FAILED:
            raise ValueError("error_message is only recorded for failed jobs")

        now = datetime.now(timezone.utc)
        values: dict[str, Any] = {"status": new_status.value}
        if new_status is JobStatus.PROCESSING:
            values["started_at"] = now
        if new_status.is_terminal:
            values["completed_at"] = now
        if error_message is not None:
            values["error_message"] = error_message
        if generation_metadata is not None:
            values["generation_metadata"] = generation_metadata

        allowed_from = [s.value for s in JobStatus.predecessors(new_status)]

        with tracer.start_as_current_span("db.update_generation_job_status") as span:
            span.set_attribute("job.id", job_id)
            span.set_attribute("tenant_id", str(tenant_id))
            span.set_attribute("job.new_status", new_status.value)

            result = db.execute(
                update(GenerationJob)
                .where(
                    GenerationJob.id == job_id,
                    GenerationJob.tenant_id == tenant_id,
                    GenerationJob.status.in_(allowed_from),
                )
                .values(**values)
                .execution_options(synchronize_session=False)
            )

            if result.rowcount == 0:
                db.rollback()
                current = GenerationJobRepository.get_by_id(db, job_id, tenant_id)
                if current is None:
                    raise JobNotFoundError(f"Generation job {job_id} not found")
                raise InvalidStatusTransitionError(job_id, current.status, new_status.value)

            db.commit()

            job = GenerationJobRepository.get_by_id(db, job_id, tenant_id)
            db.refresh(job)

        logger.info(
            "Updated job %s status -> %s tenant=%s",
            job_id,
            new_status.value,
            tenant_id,
        )
        return job

    @staticmethod
    def delete(db: Session, job_id: int, tenant_id: UUID) -> bool:
        """Delete the job row. The caller owns the commit."""
        with tracer.start_as_current_span("db.delete_generation_job") as span:
            span.set_attribute("job.id", job_id)
            span.set_attribute("tenant_id", str(tenant_id))

            deleted = (
                db.query(GenerationJob)
                .filter(
                    GenerationJob.id == job_id,
                    GenerationJob.tenant_id == tenant_id,
                )
                .delete(synchronize_session=False)
            )

        logger.info("Deleted %d generation job row(s) id=%s tenant=%s", deleted, job_id, tenant_id)
        return deleted > 0
