import os

import uvicorn

from docgen import worker as worker_process
from docgen.logging_config import configure_logging
from docgen.tracing import configure_tracing


def main():
    configure_logging(os.getenv("LOG_LEVEL", "INFO"))
    configure_tracing(os.getenv("SERVICE_NAME", "document-generation-service"))
    uvicorn.run(
        "docgen.api.main:app",
        host=os.getenv("API_HOST", "127.0.0.1"),
        port=int(os.getenv("API_PORT", "8000")),
    )


def worker():
    worker_process.main()
