# src/docgen/messaging/consumer.py

"""
Message consumption loop.

One logical consumer pulls generation requests from a single queue until
the shutdown event is set. Each delivery runs as its own task; an admission
semaphore caps the number of jobs in flight at ``max_concurrent``. Broker
receive errors close the cycle, wait a fixed delay and reconnect.
"""

import asyncio
import logging
from typing import Awaitable, Callable

from aio_pika.abc import AbstractConnection, AbstractIncomingMessage, AbstractQueueIterator
from aio_pika.exceptions import CONNECTION_EXCEPTIONS

from docgen.metrics import (
    broker_receive_errors_total,
    messages_acked_total,
    messages_nacked_total,
    messages_received_total,
)

logger = logging.getLogger(__name__)


class MessageConsumer:

    def __init__(
        self,
        connect: Callable[[], Awaitable[AbstractConnection]],
        handler,
        publisher,
        *,
        queue_name: str,
        max_concurrent: int = 10,
        retry_delay_seconds: float = 5.0,
    ):
        if max_concurrent < 1:
            raise ValueError("max_concurrent must be >= 1")
        self._connect = connect
        self.handler = handler
        self.publisher = publisher
        self.queue_name = queue_name
        self.max_concurrent = max_concurrent
        self.retry_delay_seconds = retry_delay_seconds
        self._admission = asyncio.Semaphore(max_concurrent)
        self._in_flight: set[asyncio.Task] = set()

    @property
    def in_flight(self) -> int:
        return len(self._in_flight)

    async def run(self, shutdown: asyncio.Event) -> None:
        logger.info("Starting message processing loop queue=%s", self.queue_name)

        while not shutdown.is_set():
            try:
                await self._receive_cycle(shutdown)
            except CONNECTION_EXCEPTIONS as exc:
                broker_receive_errors_total.inc()
                logger.error("Error receiving messages: %s", exc)
                logger.error("Retrying in %s seconds...", self.retry_delay_seconds)
                await self._wait(shutdown, self.retry_delay_seconds)
            else:
                if not shutdown.is_set():
                    logger.info(
                        "Receive cycle ended, reconnecting in %s seconds", self.retry_delay_seconds
                    )
                    await self._wait(shutdown, self.retry_delay_seconds)

        await self._drain()
        logger.info("Message processing loop exited")

    async def _receive_cycle(self, shutdown: asyncio.Event) -> None:
        connection = await self._connect()
        async with connection:
            channel = await connection.channel()
            await channel.set_qos(prefetch_count=self.max_concurrent)
            queue = await channel.declare_queue(self.queue_name, durable=True)

            async with queue.iterator() as messages:
                try:
                    while not shutdown.is_set():
                        message = await self._next_delivery(messages, shutdown)
                        if message is None:
                            break
                        await self._dispatch(message)
                finally:
                    # In-flight jobs finish (and ack) before the channel goes away
                    await self._drain()

    async def _next_delivery(
        self,
        messages: AbstractQueueIterator,
        shutdown: asyncio.Event,
    ) -> AbstractIncomingMessage | None:
        """Wait for the next delivery or for shutdown, whichever comes first."""
        delivery = asyncio.ensure_future(messages.__anext__())
        stop = asyncio.ensure_future(shutdown.wait())
        try:
            done, _ = await asyncio.wait({delivery, stop}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            stop.cancel()

        if delivery in done:
            try:
                return delivery.result()
            except StopAsyncIteration:
                return None

        delivery.cancel()
        logger.info("Shutdown requested, no longer waiting for deliveries")
        return None

    async def _dispatch(self, message: AbstractIncomingMessage) -> None:
        # Blocks admission (not processing) while max_concurrent jobs run
        await self._admission.acquire()
        task = asyncio.create_task(self._process(message))
        self._in_flight.add(task)
        task.add_done_callback(self._in_flight.discard)

    async def _process(self, message: AbstractIncomingMessage) -> None:
        try:
            messages_received_total.inc()
            logger.info("Processing message message_id=%s", message.message_id)

            try:
                response = await self.handler.handle(message.body)
            except Exception:
                logger.exception(
                    "Request-level failure, returning message_id=%s for redelivery",
                    message.message_id,
                )
                await self._settle(message, ack=False)
                return

            await self.publisher.publish(response)
            await self._settle(message, ack=True)
        finally:
            self._admission.release()

    async def _settle(self, message: AbstractIncomingMessage, *, ack: bool) -> None:
        try:
            if ack:
                await message.ack()
            else:
                await message.nack(requeue=True)
        except CONNECTION_EXCEPTIONS as exc:
            logger.error(
                "Failed to %s message_id=%s: %s",
                "acknowledge" if ack else "reject",
                message.message_id,
                exc,
            )
            return

        if ack:
            messages_acked_total.inc()
            logger.info("Message processed and acknowledged message_id=%s", message.message_id)
        else:
            messages_nacked_total.inc()

    async def _drain(self) -> None:
        if self._in_flight:
            logger.info("Waiting for %d in-flight message(s)", len(self._in_flight))
            await asyncio.gather(*list(self._in_flight), return_exceptions=True)

    @staticmethod
    async def _wait(shutdown: asyncio.Event, seconds: float) -> None:
        try:
            await asyncio.wait_for(shutdown.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            pass
