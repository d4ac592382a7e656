# src/docgen/messaging/schemas.py

from datetime import datetime, timezone
from typing import Any, Literal
from uuid import UUID, uuid4

from pydantic import BaseModel, Field, ValidationError, field_validator

from docgen.errors import MessageDecodeError
from docgen.models.enums import DocumentType


class DocumentGenerationRequest(BaseModel):
    """Inbound broker payload."""

    tenant_id: UUID
    project_id: int
    template_id: int | None = None
    correlation_id: UUID | None = None
    title: str = Field(min_length=1)
    document_type: DocumentType
    # Kept as raw strings: an unknown format fails the job, not the message
    requested_formats: list[str] = Field(min_length=1)
    input_params: Any = Field(default_factory=dict)
    requested_by: int

    @field_validator("document_type", mode="before")
    @classmethod
    def _decode_document_type(cls, value):
        if isinstance(value, str):
            return DocumentType(value)
        return value

    @classmethod
    def decode(cls, body: bytes | str) -> "DocumentGenerationRequest":
        try:
            return cls.model_validate_json(body)
        except ValidationError as exc:
            raise MessageDecodeError(_summarize(exc)) from exc
        except ValueError as exc:
            raise MessageDecodeError(f"Invalid request format: {exc}") from exc


def _summarize(exc: ValidationError) -> str:
    problems = []
    for err in exc.errors():
        location = ".".join(str(part) for part in err["loc"]) or "payload"
        problems.append(f"{location}: {err['msg']}")
    return "Invalid request format: " + "; ".join(problems)


class DocumentReference(BaseModel):
    format: str
    file_name: str
    reference: str
    content_type: str
    size_bytes: int
    sha256_checksum: str


class DocumentGenerationResponse(BaseModel):
    """Outbound completion / failure event."""

    request_id: str
    status: Literal["success", "error"]
    document_id: int | None = None
    documents: list[DocumentReference] = Field(default_factory=list)
    error: str | None = None
    error_type: str | None = None
    generated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @classmethod
    def error_response(
        cls,
        message: str,
        *,
        error_type: str,
        request_id: str | None = None,
        document_id: int | None = None,
    ) -> "DocumentGenerationResponse":
        return cls(
            request_id=request_id or str(uuid4()),
            status="error",
            document_id=document_id,
            error=message,
            error_type=error_type,
        )

    @classmethod
    def from_job_result(cls, result) -> "DocumentGenerationResponse":
        job = result.job
        request_id = str(job.correlation_id) if job.correlation_id else str(uuid4())

        if not result.succeeded:
            return cls.error_response(
                job.error_message or "Document generation failed",
                error_type=result.error_type or "generation_failed",
                request_id=request_id,
                document_id=job.id,
            )

        return cls(
            request_id=request_id,
            status="success",
            document_id=job.id,
            documents=[
                DocumentReference(
                    format=a.format,
                    file_name=a.file_name,
                    reference=a.storage_path,
                    content_type=a.content_type,
                    size_bytes=a.file_size,
                    sha256_checksum=a.sha256_checksum,
                )
                for a in result.artifacts
            ],
        )

    def to_bytes(self) -> bytes:
        return self.model_dump_json(exclude_none=True).encode("utf-8")
