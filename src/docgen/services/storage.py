# src/docgen/services/storage.py

import hashlib
import logging
from dataclasses import dataclass
from typing import Iterable, Sequence
from uuid import UUID

import boto3
from botocore.exceptions import BotoCoreError, ClientError
from opentelemetry import trace

from docgen.errors import UploadError
from docgen.metrics import uploaded_bytes_total
from docgen.utils.storage_paths import build_artifact_path

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

DEFAULT_LINK_EXPIRY_SECONDS = 15 * 60


@dataclass(frozen=True)
class RenderedFile:
    """One format's output, ready for upload."""

    format: str
    content_type: str
    file_name: str
    data: bytes
    rendering_duration_ms: int
    page_count: int | None = None


@dataclass(frozen=True)
class UploadResult:
    storage_path: str
    file_size: int
    sha256_checksum: str
    format: str
    content_type: str
    file_name: str
    rendering_duration_ms: int
    page_count: int | None = None


def sha256_hex(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


class ArtifactStorage:
    """
    Object-store client for rendered documents.

    Holds one long-lived boto3 client; the instance carries no per-call
    state and is shared by all concurrent jobs.
    """

    def __init__(
        self,
        bucket: str,
        *,
        client=None,
        region_name: str | None = None,
        endpoint_url: str | None = None,
        link_expiry_seconds: int = DEFAULT_LINK_EXPIRY_SECONDS,
    ):
        if not bucket:
            raise ValueError("An object-store bucket name is required")
        self.bucket = bucket
        self.link_expiry_seconds = link_expiry_seconds
        # boto3 will pick credentials from env, ~/.aws, or IAM role
        self._client = client or boto3.client(
            "s3",
            region_name=region_name,
            endpoint_url=endpoint_url,
        )

    # ------------------------------------------------------------------
    # Upload
    # ------------------------------------------------------------------
    def upload(self, tenant_id: UUID, project_id: int, job_id: int, file: RenderedFile) -> UploadResult:
        """
        Upload one rendered file under its deterministic path.
        The checksum is computed over exactly the bytes handed to storage.
        """
        key = build_artifact_path(tenant_id, project_id, job_id, file.file_name)
        checksum = sha256_hex(file.data)
        size = len(file.data)

        with tracer.start_as_current_span("storage.upload") as span:
            span.set_attribute("storage.key", key)
            span.set_attribute("file.size", size)
            span.set_attribute("file.format", file.format)
            logger.info("Uploading artifact: %s", key)

            try:
                self._client.put_object(
                    Bucket=self.bucket,
                    Key=key,
                    Body=file.data,
                    ContentType=file.content_type,
                    Metadata={"sha256": checksum, "format": file.format},
                )
            except (ClientError, BotoCoreError) as exc:
                logger.error("Upload failed for key=%s", key)
                raise UploadError(f"Failed to upload {file.file_name} to {key}: {exc}") from exc

        uploaded_bytes_total.labels(format=file.format).inc(size)
        logger.info("Uploaded artifact %s size=%d sha256=%s", key, size, checksum)

        return UploadResult(
            storage_path=key,
            file_size=size,
            sha256_checksum=checksum,
            format=file.format,
            content_type=file.content_type,
            file_name=file.file_name,
            rendering_duration_ms=file.rendering_duration_ms,
            page_count=file.page_count,
        )

    def upload_all(
        self,
        tenant_id: UUID,
        project_id: int,
        job_id: int,
        files: Sequence[RenderedFile],
    ) -> list[UploadResult]:
        """
        Upload every file in order. Stops at the first failure; objects that
        were already written are removed best-effort before the error is
        re-raised.
        """
        results: list[UploadResult] = []
        try:
            for file in files:
                results.append(self.upload(tenant_id, project_id, job_id, file))
        except UploadError:
            self.delete_all(r.storage_path for r in results)
            raise
        return results

    # ------------------------------------------------------------------
    # Retrieval links
    # ------------------------------------------------------------------
    def generate_retrieval_link(self, path: str, file_name: str) -> str:
        """Time-limited GET URL that forces a download named `file_name`."""
        with tracer.start_as_current_span("storage.presign") as span:
            span.set_attribute("storage.key", path)
            return self._client.generate_presigned_url(
                "get_object",
                Params={
                    "Bucket": self.bucket,
                    "Key": path,
                    "ResponseContentDisposition": f'attachment; filename="{file_name}"',
                },
                ExpiresIn=self.link_expiry_seconds,
            )

    # ------------------------------------------------------------------
    # Delete
    # ------------------------------------------------------------------
    def delete(self, path: str) -> None:
        with tracer.start_as_current_span("storage.delete") as span:
            span.set_attribute("storage.key", path)
            self._client.delete_object(Bucket=self.bucket, Key=path)
        logger.info("Deleted object %s", path)

    def delete_all(self, paths: Iterable[str]) -> list[str]:
        """
        Best-effort bulk delete. A failing object is logged and skipped;
        returns the paths that could not be deleted.
        """
        failed: list[str] = []
        for path in paths:
            try:
                self.delete(path)
            except (ClientError, BotoCoreError):
                logger.warning("Failed to delete object %s, continuing", path, exc_info=True)
                failed.append(path)
        return failed
