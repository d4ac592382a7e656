# src/docgen/worker.py

"""
Worker process bootstrap.

Reads settings, configures logging, tracing and metrics, wires the shared
components (connection pool, object-store client, compiler, template cache)
and runs the consumption loop until SIGINT/SIGTERM.
"""

import asyncio
import logging
import signal
import sys
from concurrent.futures import ThreadPoolExecutor

import aio_pika
from dotenv import load_dotenv
from prometheus_client import start_http_server

from docgen.config import Settings
from docgen.db.database import create_db_engine, create_session_factory
from docgen.errors import ConfigurationError
from docgen.logging_config import configure_logging
from docgen.messaging.consumer import MessageConsumer
from docgen.messaging.handler import MessageHandler
from docgen.messaging.publisher import ResponsePublisher
from docgen.services.document_compiler import PandocCompiler
from docgen.services.pipeline import DocumentPipeline
from docgen.services.renderer import DocumentRenderer
from docgen.services.storage import ArtifactStorage
from docgen.services.template_engine import TemplateEngine
from docgen.tracing import configure_tracing

logger = logging.getLogger(__name__)


def build_pipeline(settings: Settings, session_factory) -> DocumentPipeline:
    storage = ArtifactStorage(
        settings.aws_s3_bucket,
        region_name=settings.aws_region,
        endpoint_url=settings.aws_s3_endpoint_url,
        link_expiry_seconds=settings.retrieval_link_expiry_seconds,
    )
    compiler = PandocCompiler(
        settings.pandoc_path,
        pdf_engine=settings.pdf_engine,
        timeout_seconds=settings.compiler_timeout_seconds,
    )
    renderer = DocumentRenderer(TemplateEngine(), compiler)
    return DocumentPipeline(
        session_factory,
        storage,
        renderer,
        pdf_engine=settings.pdf_engine,
    )


def install_signal_handlers(shutdown: asyncio.Event) -> None:
    loop = asyncio.get_running_loop()

    def _request_shutdown(signame: str) -> None:
        logger.info("Received %s, shutting down gracefully", signame)
        shutdown.set()

    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, _request_shutdown, sig.name)


async def run_worker(settings: Settings, shutdown: asyncio.Event | None = None) -> None:
    loop = asyncio.get_running_loop()
    # Blocking pipeline work runs here; one thread per admitted message
    loop.set_default_executor(
        ThreadPoolExecutor(
            max_workers=settings.max_concurrent_messages,
            thread_name_prefix="docgen-job",
        )
    )

    engine = create_db_engine(
        settings.database_url,
        pool_size=settings.db_pool_size,
        max_overflow=settings.db_max_overflow,
    )
    pipeline = build_pipeline(settings, create_session_factory(engine))
    logger.info("Database pool and object-store client initialized")

    publisher_connection = await aio_pika.connect_robust(settings.amqp_url)
    try:
        publisher = await ResponsePublisher.create(
            publisher_connection,
            exchange_name=settings.response_exchange,
            routing_key=settings.response_routing_key,
        )

        consumer = MessageConsumer(
            lambda: aio_pika.connect_robust(settings.amqp_url),
            MessageHandler(pipeline),
            publisher,
            queue_name=settings.request_queue,
            max_concurrent=settings.max_concurrent_messages,
            retry_delay_seconds=settings.receive_retry_delay_seconds,
        )

        if shutdown is None:
            shutdown = asyncio.Event()
            install_signal_handlers(shutdown)

        await consumer.run(shutdown)
    finally:
        await publisher_connection.close()
        engine.dispose()
        logger.info("Document generation worker stopped")


def main() -> None:
    load_dotenv()

    try:
        settings = Settings.from_env()
    except ConfigurationError as exc:
        print(f"Configuration error: {exc}", file=sys.stderr)
        sys.exit(1)

    configure_logging(settings.log_level)
    configure_tracing(settings.service_name)

    if settings.metrics_port:
        start_http_server(settings.metrics_port)
        logger.info("Metrics exposed on port %s", settings.metrics_port)

    logger.info(
        "Starting %s queue=%s max_concurrent=%s",
        settings.service_name,
        settings.request_queue,
        settings.max_concurrent_messages,
    )
    asyncio.run(run_worker(settings))
