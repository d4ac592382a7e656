# src/docgen/services/pipeline.py

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from uuid import UUID

from opentelemetry import trace
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from docgen.db.tenant import tenant_session
from docgen.errors import (
    DocumentGenerationError,
    RenderError,
    TemplateNotFoundError,
    UnsupportedFormatError,
    UploadError,
)
from docgen.metrics import job_failures_total, jobs_finished_total
from docgen.models.document_artifact import DocumentArtifact
from docgen.models.enums import JobStatus
from docgen.models.generation_job import GenerationJob
from docgen.repositories.document_artifact_repository import DocumentArtifactRepository
from docgen.repositories.generation_job_repository import GenerationJobRepository
from docgen.services.renderer import DocumentMetadata, DocumentRenderer, parse_formats
from docgen.services.storage import ArtifactStorage, UploadResult
from docgen.services.template_resolver import ResolvedTemplate, TemplateResolver

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

TEMPLATE_ENGINE = "jinja2"
RENDERING_ENGINE = "pandoc"


@dataclass
class JobResult:
    """Final state of one processed request."""

    job: GenerationJob
    artifacts: list[DocumentArtifact] = field(default_factory=list)
    error_type: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.job.status == JobStatus.COMPLETED.value


class DocumentPipeline:
    """
    Runs one generation request through its whole lifecycle:

        queued -> processing -> rendering -> uploading -> completed
                  (failed from processing, rendering or uploading)

    Template, render and upload problems end the job as `failed` and are
    returned normally; the request itself was handled. Errors writing the
    job's own records propagate, because the job cannot be safely continued
    and the message should be redelivered.
    """

    def __init__(
        self,
        session_factory: sessionmaker,
        storage: ArtifactStorage,
        renderer: DocumentRenderer,
        resolver: TemplateResolver | None = None,
        *,
        pdf_engine: str = "xelatex",
    ):
        self.session_factory = session_factory
        self.storage = storage
        self.renderer = renderer
        self.resolver = resolver or TemplateResolver()
        self.pdf_engine = pdf_engine

    def process(self, request) -> JobResult:
        tenant_id = request.tenant_id

        with tracer.start_as_current_span("pipeline.process") as span:
            span.set_attribute("tenant_id", str(tenant_id))
            span.set_attribute("project_id", request.project_id)
            span.set_attribute("document_type", request.document_type.value)

            # 1. Job record. Failure here propagates: there is no job to fail.
            job = self._create_job(request)
            span.set_attribute("document_id", job.id)

            try:
                return self._run(request, job.id)
            except SQLAlchemyError as exc:
                self._abandon(tenant_id, job.id, exc)
                raise

    # ------------------------------------------------------------------
    # Stages
    # ------------------------------------------------------------------
    def _run(self, request, job_id: int) -> JobResult:
        tenant_id = request.tenant_id
        formats = list(request.requested_formats)

        # 2. processing
        self._transition(tenant_id, job_id, JobStatus.PROCESSING)

        # Every format is validated before the template lookup uses the first one
        try:
            primary_format = parse_formats(formats)[0]
        except UnsupportedFormatError as exc:
            return self._fail(request, job_id, f"Rendering failed: {exc}", exc.error_type)

        # 3. template
        try:
            template = self._resolve_template(request, primary_format=primary_format.value)
        except TemplateNotFoundError as exc:
            return self._fail(request, job_id, str(exc), exc.error_type)

        # 4. rendering
        self._transition(tenant_id, job_id, JobStatus.RENDERING)
        metadata = DocumentMetadata.from_request(request)
        try:
            files = self.renderer.render_all(template, request.input_params, formats, metadata)
        except Exception as exc:
            logger.error("Render failure document_id=%s: %s", job_id, exc)
            error_type = exc.error_type if isinstance(exc, RenderError) else "render_error"
            return self._fail(request, job_id, f"Rendering failed: {exc}", error_type)

        # 5. uploading
        self._transition(tenant_id, job_id, JobStatus.UPLOADING)
        try:
            uploads = self.storage.upload_all(tenant_id, request.project_id, job_id, files)
        except Exception as exc:
            logger.error("Upload failure document_id=%s: %s", job_id, exc)
            error_type = exc.error_type if isinstance(exc, UploadError) else "upload_error"
            return self._fail(request, job_id, f"Upload failed: {exc}", error_type)

        # 6. artifact rows
        artifacts = self._persist_artifacts(tenant_id, job_id, uploads)

        # 7. completed
        generation_metadata = self._generation_metadata(template, metadata, uploads)
        completed = self._transition(
            tenant_id,
            job_id,
            JobStatus.COMPLETED,
            generation_metadata=generation_metadata,
        )
        jobs_finished_total.labels(
            status=JobStatus.COMPLETED.value,
            document_type=request.document_type.value,
        ).inc()

        logger.info(
            "Document generation completed document_id=%s artifacts=%d tenant=%s",
            job_id,
            len(artifacts),
            tenant_id,
        )
        return JobResult(job=completed, artifacts=artifacts)

    def _create_job(self, request) -> GenerationJob:
        with tenant_session(self.session_factory, request.tenant_id) as db:
            return GenerationJobRepository.create(
                db,
                tenant_id=request.tenant_id,
                project_id=request.project_id,
                template_id=request.template_id,
                correlation_id=request.correlation_id,
                title=request.title,
                document_type=request.document_type.value,
                requested_formats=request.requested_formats,
                input_params=request.input_params,
                requested_by=request.requested_by,
            )

    def _transition(
        self,
        tenant_id: UUID,
        job_id: int,
        status: JobStatus,
        *,
        error_message: str | None = None,
        generation_metadata: dict | None = None,
    ) -> GenerationJob:
        with tenant_session(self.session_factory, tenant_id) as db:
            return GenerationJobRepository.update_status(
                db,
                job_id,
                tenant_id,
                status,
                error_message=error_message,
                generation_metadata=generation_metadata,
            )

    def _resolve_template(self, request, *, primary_format: str) -> ResolvedTemplate:
        with tenant_session(self.session_factory, request.tenant_id) as db:
            return self.resolver.resolve(
                db,
                request.tenant_id,
                template_id=request.template_id,
                document_type=request.document_type.value,
                format=primary_format,
            )

    def _persist_artifacts(
        self,
        tenant_id: UUID,
        job_id: int,
        uploads: list[UploadResult],
    ) -> list[DocumentArtifact]:
        try:
            with tenant_session(self.session_factory, tenant_id) as db:
                return DocumentArtifactRepository.create_many(
                    db,
                    tenant_id=tenant_id,
                    job_id=job_id,
                    uploads=uploads,
                )
        except SQLAlchemyError:
            logger.error(
                "Failed to persist artifact metadata document_id=%s; removing uploaded objects",
                job_id,
            )
            self.storage.delete_all(u.storage_path for u in uploads)
            raise

    def _fail(self, request, job_id: int, message: str, error_type: str) -> JobResult:
        failed = self._transition(
            request.tenant_id,
            job_id,
            JobStatus.FAILED,
            error_message=message,
        )
        jobs_finished_total.labels(
            status=JobStatus.FAILED.value,
            document_type=request.document_type.value,
        ).inc()
        job_failures_total.labels(error_type=error_type).inc()

        logger.warning(
            "Document generation failed document_id=%s error_type=%s: %s",
            job_id,
            error_type,
            message,
        )
        return JobResult(job=failed, error_type=error_type)

    def _abandon(self, tenant_id: UUID, job_id: int, exc: Exception) -> None:
        """
        Best-effort: a persistence error interrupted the job, so try to
        leave it `failed` rather than stuck mid-pipeline. The original error
        is re-raised by the caller either way.
        """
        try:
            self._transition(
                tenant_id,
                job_id,
                JobStatus.FAILED,
                error_message=f"Persistence failure: {exc.__class__.__name__}",
            )
        except (SQLAlchemyError, DocumentGenerationError):
            logger.exception("Could not mark document_id=%s as failed", job_id)
        else:
            job_failures_total.labels(error_type="persistence_error").inc()

    def _generation_metadata(
        self,
        template: ResolvedTemplate,
        metadata: DocumentMetadata,
        uploads: list[UploadResult],
    ) -> dict:
        return {
            "template_engine": TEMPLATE_ENGINE,
            "rendering_engine": RENDERING_ENGINE,
            "pdf_engine": self.pdf_engine,
            "template_id": template.id,
            "template_version": template.schema_version,
            "document_standard": metadata.standard,
            "formats_generated": [u.format for u in uploads],
            "total_size_bytes": sum(u.file_size for u in uploads),
            "files": [
                {
                    "format": u.format,
                    "file_name": u.file_name,
                    "size_bytes": u.file_size,
                    "rendering_duration_ms": u.rendering_duration_ms,
                    "page_count": u.page_count,
                }
                for u in uploads
            ],
            "completed_at": datetime.now(timezone.utc).isoformat(),
        }
