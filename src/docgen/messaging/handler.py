# src/docgen/messaging/handler.py

import asyncio
import logging

from docgen.errors import MessageDecodeError
from docgen.messaging.schemas import DocumentGenerationRequest, DocumentGenerationResponse

logger = logging.getLogger(__name__)


class MessageHandler:
    """Decodes one inbound payload and runs it through the pipeline."""

    def __init__(self, pipeline):
        self.pipeline = pipeline

    async def handle(self, body: bytes) -> DocumentGenerationResponse:
        """
        Undecodable payloads yield an error event (the message is still
        acknowledged by the caller). Request-level failures raised by the
        pipeline propagate so the message is not acknowledged.
        """
        try:
            request = DocumentGenerationRequest.decode(body)
        except MessageDecodeError as exc:
            logger.error("Failed to parse request: %s", exc)
            return DocumentGenerationResponse.error_response(str(exc), error_type=exc.error_type)

        logger.info(
            "Processing document generation request tenant=%s project=%s type=%s formats=%s",
            request.tenant_id,
            request.project_id,
            request.document_type.value,
            request.requested_formats,
        )

        # The pipeline is blocking (DB, object store, compiler processes)
        result = await asyncio.to_thread(self.pipeline.process, request)
        return DocumentGenerationResponse.from_job_result(result)
