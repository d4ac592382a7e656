"""Failure modes of the document generation worker.

Job-lifecycle errors (template lookup, rendering, upload) terminate a single
job as ``failed``; everything else either aborts bootstrap or propagates to
the message loop as a request-level failure.
"""


class DocumentGenerationError(RuntimeError):
    """Base exception for the worker."""

    error_type = "generation_failed"


class ConfigurationError(DocumentGenerationError):
    """Raised when process configuration is missing or invalid."""

    error_type = "configuration_error"


class MessageDecodeError(DocumentGenerationError):
    """Raised when an inbound payload is not a valid generation request."""

    error_type = "invalid_request"


class TemplateNotFoundError(DocumentGenerationError):
    """Raised when neither an explicit nor a default template can be found."""

    error_type = "template_not_found"


class RenderError(DocumentGenerationError):
    """Raised when a template cannot be expanded or compiled."""

    error_type = "render_error"


class UnsupportedFormatError(RenderError):
    """Raised for a format tag outside the supported set."""

    error_type = "unsupported_format"


class CompilerError(RenderError):
    """Raised when the external format compiler fails."""

    error_type = "compiler_error"

    def __init__(self, message: str, *, stderr: str = "", returncode: int | None = None):
        super().__init__(message)
        self.stderr = stderr
        self.returncode = returncode


class UploadError(DocumentGenerationError):
    """Raised when a rendered artifact cannot be written to object storage."""

    error_type = "upload_error"


class JobNotFoundError(DocumentGenerationError):
    """Raised when a job does not exist for the current tenant."""

    error_type = "job_not_found"


class InvalidStatusTransitionError(DocumentGenerationError):
    """Raised when a status write would violate the job state machine."""

    error_type = "invalid_status_transition"

    def __init__(self, job_id: int, current: str, requested: str):
        super().__init__(
            f"Job {job_id} cannot move from '{current}' to '{requested}'"
        )
        self.job_id = job_id
        self.current = current
        self.requested = requested
