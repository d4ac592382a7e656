# src/docgen/api/dependencies/services.py

from functools import lru_cache

from docgen.config import Settings
from docgen.db.database import create_db_engine, create_session_factory
from docgen.services.document_service import DocumentService
from docgen.services.storage import ArtifactStorage


@lru_cache(maxsize=1)
def get_document_service() -> DocumentService:
    """Process-wide DocumentService built from environment settings."""
    settings = Settings.from_env()
    engine = create_db_engine(
        settings.database_url,
        pool_size=settings.db_pool_size,
        max_overflow=settings.db_max_overflow,
    )
    storage = ArtifactStorage(
        settings.aws_s3_bucket,
        region_name=settings.aws_region,
        endpoint_url=settings.aws_s3_endpoint_url,
        link_expiry_seconds=settings.retrieval_link_expiry_seconds,
    )
    return DocumentService(create_session_factory(engine), storage)
