import json
from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest

from docgen.messaging.handler import MessageHandler
from docgen.services.pipeline import DocumentPipeline, JobResult
from docgen.services.renderer import DocumentRenderer
from docgen.services.template_engine import TemplateEngine

pytestmark = pytest.mark.anyio


def _body(**overrides):
    payload = {
        "tenant_id": "11111111-1111-1111-1111-111111111111",
        "project_id": 7,
        "title": "Alpha Spec",
        "document_type": "srs",
        "requested_formats": ["markdown"],
        "requested_by": 99,
    }
    payload.update(overrides)
    return json.dumps(payload).encode("utf-8")


async def test_invalid_payload_returns_error_without_running_pipeline():
    pipeline = MagicMock()

    response = await MessageHandler(pipeline).handle(b"{broken")

    assert response.status == "error"
    assert response.error_type == "invalid_request"
    assert response.request_id
    pipeline.process.assert_not_called()


async def test_valid_payload_runs_pipeline():
    job = SimpleNamespace(id=1, status="failed", correlation_id=None, error_message="Template 42 not found or inactive")
    pipeline = MagicMock()
    pipeline.process.return_value = JobResult(job=job, error_type="template_not_found")

    response = await MessageHandler(pipeline).handle(_body(template_id=42))

    request = pipeline.process.call_args.args[0]
    assert request.template_id == 42
    assert response.status == "error"
    assert response.error == "Template 42 not found or inactive"


async def test_pipeline_errors_propagate():
    pipeline = MagicMock()
    pipeline.process.side_effect = RuntimeError("database down")

    with pytest.raises(RuntimeError):
        await MessageHandler(pipeline).handle(_body())


async def test_end_to_end_with_real_pipeline(session_factory, storage, fake_compiler, make_template, s3_client):
    make_template(is_system=True)
    pipeline = DocumentPipeline(session_factory, storage, DocumentRenderer(TemplateEngine(), fake_compiler))

    response = await MessageHandler(pipeline).handle(
        _body(correlation_id="44444444-4444-4444-4444-444444444444")
    )

    assert response.status == "success"
    assert response.request_id == "44444444-4444-4444-4444-444444444444"
    assert len(response.documents) == 1
    assert response.documents[0].reference in s3_client.objects
