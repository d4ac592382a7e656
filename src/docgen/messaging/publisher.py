# src/docgen/messaging/publisher.py

import asyncio
import logging

from aio_pika import DeliveryMode, ExchangeType, Message
from aio_pika.abc import AbstractConnection, AbstractExchange
from aio_pika.exceptions import AMQPError
from opentelemetry import trace

from docgen.messaging.schemas import DocumentGenerationResponse
from docgen.metrics import publish_failures_total

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


class ResponsePublisher:
    """Emits completion / failure events to the outbound channel."""

    def __init__(self, exchange: AbstractExchange, routing_key: str):
        self._exchange = exchange
        self.routing_key = routing_key

    @classmethod
    async def create(
        cls,
        connection: AbstractConnection,
        *,
        exchange_name: str,
        routing_key: str,
    ) -> "ResponsePublisher":
        channel = await connection.channel()
        if exchange_name:
            exchange = await channel.declare_exchange(
                exchange_name, ExchangeType.TOPIC, durable=True
            )
        else:
            # Default exchange routes straight to the queue named by the routing key
            exchange = channel.default_exchange
            await channel.declare_queue(routing_key, durable=True)

        logger.info(
            "Publisher initialized exchange=%r routing_key=%s",
            exchange_name,
            routing_key,
        )
        return cls(exchange, routing_key)

    @staticmethod
    def build_message(response: DocumentGenerationResponse) -> Message:
        return Message(
            body=response.to_bytes(),
            content_type="application/json",
            delivery_mode=DeliveryMode.PERSISTENT,
            message_id=response.request_id,
            headers={
                "request_id": response.request_id,
                "status": response.status,
            },
        )

    async def publish(self, response: DocumentGenerationResponse) -> bool:
        """
        Publish one event. Failures are logged and counted but not raised,
        so the inbound message is still acknowledged.
        """
        with tracer.start_as_current_span("broker.publish_response") as span:
            span.set_attribute("request_id", response.request_id)
            span.set_attribute("status", response.status)

            try:
                await self._exchange.publish(
                    self.build_message(response),
                    routing_key=self.routing_key,
                )
            except (AMQPError, ConnectionError, asyncio.TimeoutError) as exc:
                publish_failures_total.inc()
                logger.error(
                    "Failed to publish response request_id=%s: %s",
                    response.request_id,
                    exc,
                )
                return False

        logger.info(
            "Response published request_id=%s status=%s routing_key=%s",
            response.request_id,
            response.status,
            self.routing_key,
        )
        return True
