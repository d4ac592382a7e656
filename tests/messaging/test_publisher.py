import json
from unittest.mock import AsyncMock, MagicMock

import pytest
from aio_pika import DeliveryMode

from docgen.messaging.publisher import ResponsePublisher
from docgen.messaging.schemas import DocumentGenerationResponse

pytestmark = pytest.mark.anyio


def _response():
    return DocumentGenerationResponse(request_id="req-1", status="success", document_id=5)


async def test_publish_sends_persistent_json_message():
    exchange = MagicMock()
    exchange.publish = AsyncMock()
    publisher = ResponsePublisher(exchange, "document-generation-results")

    assert await publisher.publish(_response()) is True

    message = exchange.publish.call_args.args[0]
    assert exchange.publish.call_args.kwargs["routing_key"] == "document-generation-results"
    assert json.loads(message.body)["document_id"] == 5
    assert message.content_type == "application/json"
    assert message.delivery_mode == DeliveryMode.PERSISTENT
    assert message.headers["request_id"] == "req-1"
    assert message.headers["status"] == "success"


async def test_publish_failure_is_logged_not_raised():
    exchange = MagicMock()
    exchange.publish = AsyncMock(side_effect=ConnectionError("broker gone"))
    publisher = ResponsePublisher(exchange, "results")

    assert await publisher.publish(_response()) is False


async def test_create_declares_result_queue_on_default_exchange():
    channel = MagicMock()
    channel.declare_queue = AsyncMock()
    connection = MagicMock()
    connection.channel = AsyncMock(return_value=channel)

    publisher = await ResponsePublisher.create(connection, exchange_name="", routing_key="results")

    channel.declare_queue.assert_awaited_once_with("results", durable=True)
    assert publisher.routing_key == "results"


async def test_create_declares_named_exchange():
    channel = MagicMock()
    channel.declare_exchange = AsyncMock(return_value=MagicMock())
    connection = MagicMock()
    connection.channel = AsyncMock(return_value=channel)

    await ResponsePublisher.create(connection, exchange_name="docgen", routing_key="results")

    assert channel.declare_exchange.await_args.args[0] == "docgen"
    assert channel.declare_exchange.await_args.kwargs["durable"] is True
