import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from docgen.messaging.consumer import MessageConsumer
from docgen.messaging.schemas import DocumentGenerationResponse

pytestmark = pytest.mark.anyio


class FakeMessage:
    def __init__(self, body, message_id):
        self.body = body
        self.message_id = message_id
        self.acked = False
        self.requeued = None

    async def ack(self):
        self.acked = True

    async def nack(self, requeue=True):
        self.requeued = requeue


class FakeQueueIterator:
    """Yields the queued messages, then requests shutdown and idles."""

    def __init__(self, messages, shutdown):
        self._messages = list(messages)
        self._shutdown = shutdown

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        return False

    async def __anext__(self):
        if self._messages:
            return self._messages.pop(0)
        self._shutdown.set()
        await asyncio.sleep(3600)


class FakeConnection:
    def __init__(self, messages, shutdown):
        self.queue = MagicMock()
        self.queue.iterator = MagicMock(return_value=FakeQueueIterator(messages, shutdown))
        self.channel_obj = MagicMock()
        self.channel_obj.set_qos = AsyncMock()
        self.channel_obj.declare_queue = AsyncMock(return_value=self.queue)
        self.closed = False

    async def channel(self):
        return self.channel_obj

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        self.closed = True
        return False


def _response(request_id):
    return DocumentGenerationResponse(request_id=request_id, status="success", document_id=1)


def _consumer(connect, handler, publisher, **kwargs):
    kwargs.setdefault("queue_name", "document-generation-requests")
    kwargs.setdefault("retry_delay_seconds", 0)
    return MessageConsumer(connect, handler, publisher, **kwargs)


async def test_messages_are_handled_published_and_acked():
    shutdown = asyncio.Event()
    messages = [FakeMessage(b"a", "m1"), FakeMessage(b"b", "m2")]
    connection = FakeConnection(messages, shutdown)

    handler = MagicMock()
    handler.handle = AsyncMock(side_effect=lambda body: _response(body.decode()))
    publisher = MagicMock()
    publisher.publish = AsyncMock(return_value=True)

    consumer = _consumer(AsyncMock(return_value=connection), handler, publisher, max_concurrent=3)
    await consumer.run(shutdown)

    assert all(m.acked for m in messages)
    assert [c.args[0].request_id for c in publisher.publish.await_args_list] == ["a", "b"]
    connection.channel_obj.set_qos.assert_awaited_once_with(prefetch_count=3)
    connection.channel_obj.declare_queue.assert_awaited_once_with(
        "document-generation-requests", durable=True
    )
    assert connection.closed
    assert consumer.in_flight == 0


async def test_request_level_failure_returns_message_to_broker():
    shutdown = asyncio.Event()
    message = FakeMessage(b"a", "m1")
    handler = MagicMock()
    handler.handle = AsyncMock(side_effect=RuntimeError("database down"))
    publisher = MagicMock()
    publisher.publish = AsyncMock()

    consumer = _consumer(AsyncMock(return_value=FakeConnection([message], shutdown)), handler, publisher)
    await consumer.run(shutdown)

    assert message.acked is False
    assert message.requeued is True
    publisher.publish.assert_not_awaited()


async def test_publish_failure_still_acks():
    shutdown = asyncio.Event()
    message = FakeMessage(b"a", "m1")
    handler = MagicMock()
    handler.handle = AsyncMock(return_value=_response("a"))
    publisher = MagicMock()
    publisher.publish = AsyncMock(return_value=False)

    consumer = _consumer(AsyncMock(return_value=FakeConnection([message], shutdown)), handler, publisher)
    await consumer.run(shutdown)

    assert message.acked is True


async def test_in_flight_jobs_never_exceed_limit():
    shutdown = asyncio.Event()
    messages = [FakeMessage(str(i).encode(), f"m{i}") for i in range(6)]
    active = 0
    peak = 0

    async def handle(body):
        nonlocal active, peak
        active += 1
        peak = max(peak, active)
        await asyncio.sleep(0.01)
        active -= 1
        return _response(body.decode())

    handler = MagicMock()
    handler.handle = handle
    publisher = MagicMock()
    publisher.publish = AsyncMock(return_value=True)

    consumer = _consumer(
        AsyncMock(return_value=FakeConnection(messages, shutdown)),
        handler,
        publisher,
        max_concurrent=2,
    )
    await consumer.run(shutdown)

    assert peak == 2
    assert all(m.acked for m in messages)


async def test_broker_errors_back_off_and_reconnect():
    shutdown = asyncio.Event()
    message = FakeMessage(b"a", "m1")
    connect = AsyncMock(
        side_effect=[ConnectionError("refused"), FakeConnection([message], shutdown)]
    )
    handler = MagicMock()
    handler.handle = AsyncMock(return_value=_response("a"))
    publisher = MagicMock()
    publisher.publish = AsyncMock(return_value=True)

    consumer = _consumer(connect, handler, publisher)
    await consumer.run(shutdown)

    assert connect.await_count == 2
    assert message.acked is True



async def test_clean_end_of_deliveries_backs_off_before_reconnecting():
    shutdown = asyncio.Event()
    connection = FakeConnection([], shutdown)
    ended = MagicMock()
    ended.__aenter__ = AsyncMock(return_value=ended)
    ended.__aexit__ = AsyncMock(return_value=False)
    ended.__anext__ = AsyncMock(side_effect=StopAsyncIteration)
    connection.queue.iterator = MagicMock(return_value=ended)
    connect = AsyncMock(return_value=connection)

    async def stop_soon():
        await asyncio.sleep(0.05)
        shutdown.set()

    consumer = _consumer(connect, MagicMock(), MagicMock(), retry_delay_seconds=60)
    await asyncio.wait_for(asyncio.gather(consumer.run(shutdown), stop_soon()), timeout=5)

    assert connect.await_count == 1
    assert connection.closed is True

async def test_shutdown_before_start_does_not_connect():
    shutdown = asyncio.Event()
    shutdown.set()
    connect = AsyncMock()

    await _consumer(connect, MagicMock(), MagicMock()).run(shutdown)

    connect.assert_not_awaited()


async def test_shutdown_interrupts_backoff():
    shutdown = asyncio.Event()
    connect = AsyncMock(side_effect=ConnectionError("refused"))

    async def stop_soon():
        await asyncio.sleep(0.05)
        shutdown.set()

    consumer = _consumer(connect, MagicMock(), MagicMock(), retry_delay_seconds=60)
    await asyncio.wait_for(asyncio.gather(consumer.run(shutdown), stop_soon()), timeout=5)

    assert connect.await_count == 1


def test_max_concurrent_must_be_positive():
    with pytest.raises(ValueError):
        MessageConsumer(AsyncMock(), MagicMock(), MagicMock(), queue_name="q", max_concurrent=0)
