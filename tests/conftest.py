# tests/conftest.py
import uuid

import pytest
from botocore.exceptions import ClientError
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

from docgen.db.database import Base, create_session_factory
from docgen.messaging.schemas import DocumentGenerationRequest
from docgen.services.storage import ArtifactStorage

# Import models so metadata knows about all tables
import docgen.models  # noqa: F401
from docgen.models.document_template import DocumentTemplate


@pytest.fixture(scope="session")
def anyio_backend():
    """The service is built on asyncio (aio-pika, asyncio.to_thread)."""
    return "asyncio"


@pytest.fixture(scope="session")
def engine():
    """
    In-memory SQLite database shared across tests. StaticPool keeps a single
    connection so worker threads (asyncio.to_thread) see the same data.
    """
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)


@pytest.fixture(autouse=True)
def clean_db(engine):
    """Reset all tables before each test."""
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)


@pytest.fixture()
def session_factory(engine):
    return create_session_factory(engine)


@pytest.fixture()
def db(session_factory):
    """Return a new SQLAlchemy session for each test."""
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def tenant_id():
    return uuid.UUID("11111111-1111-1111-1111-111111111111")


@pytest.fixture
def other_tenant_id():
    return uuid.UUID("22222222-2222-2222-2222-222222222222")


# --- Object store ------------------------------------------------------------

class FakeS3Client:
    """Records put/delete calls; keys ending with a suffix in `fail_on` fail."""

    def __init__(self):
        self.objects = {}
        self.deleted = []
        self.fail_on = set()
        self.fail_delete_on = set()

    def put_object(self, *, Bucket, Key, Body, ContentType, Metadata):
        if any(Key.endswith(suffix) for suffix in self.fail_on):
            raise ClientError(
                {"Error": {"Code": "InternalError", "Message": "simulated outage"}},
                "PutObject",
            )
        self.objects[Key] = {
            "Bucket": Bucket,
            "Body": Body,
            "ContentType": ContentType,
            "Metadata": Metadata,
        }
        return {}

    def delete_object(self, *, Bucket, Key):
        if any(Key.endswith(suffix) for suffix in self.fail_delete_on):
            raise ClientError(
                {"Error": {"Code": "AccessDenied", "Message": "nope"}},
                "DeleteObject",
            )
        self.deleted.append(Key)
        self.objects.pop(Key, None)
        return {}

    def generate_presigned_url(self, operation, Params, ExpiresIn):
        return f"https://{Params['Bucket']}.s3.test/{Params['Key']}?op={operation}&expires={ExpiresIn}"


@pytest.fixture
def s3_client():
    return FakeS3Client()


@pytest.fixture
def storage(s3_client):
    return ArtifactStorage("test-bucket", client=s3_client)


# --- Rendering ---------------------------------------------------------------

class FakeCompiler:
    """Stands in for pandoc: html wraps the markup, pdf has two pages."""

    def __init__(self):
        self.calls = []

    def to_html(self, markdown, variables):
        self.calls.append(("html", markdown, variables))
        return f"<html><body>{markdown}</body></html>".encode("utf-8")

    def to_pdf(self, markdown, variables):
        self.calls.append(("pdf", markdown, variables))
        return b"%PDF-1.7\n1 0 obj << /Type /Pages >>\n2 0 obj << /Type /Page >>\n3 0 obj << /Type /Page >>\n%%EOF"


@pytest.fixture
def fake_compiler():
    return FakeCompiler()


SRS_TEMPLATE = (
    "# {{ metadata.title }}\n\n"
    "{{ summary }}\n\n"
    "{% for req in requirements %}- {{ req.id }}: {{ req.text }}\n{% endfor %}"
)


@pytest.fixture
def make_template(db, tenant_id):
    def _make(
        template_type="srs",
        format="markdown",
        content=SRS_TEMPLATE,
        tenant=None,
        is_system=False,
        is_active=True,
        name="SRS Template",
        schema_version="1.0",
    ):
        template = DocumentTemplate(
            tenant_id=tenant or tenant_id,
            name=name,
            template_type=template_type,
            format=format,
            template_content=content,
            schema_version=schema_version,
            is_system=is_system,
            is_active=is_active,
        )
        db.add(template)
        db.commit()
        db.refresh(template)
        return template

    return _make


@pytest.fixture
def make_request(tenant_id):
    def _make(**overrides):
        payload = {
            "tenant_id": str(tenant_id),
            "project_id": 7,
            "title": "Alpha Spec",
            "document_type": "srs",
            "requested_formats": ["markdown", "html"],
            "input_params": {
                "summary": "Alpha system overview",
                "requirements": [
                    {"id": "REQ-1", "text": "The system shall log in users"},
                    {"id": "REQ-2", "text": "The system shall export reports"},
                ],
            },
            "requested_by": 99,
        }
        payload.update(overrides)
        return DocumentGenerationRequest.model_validate(payload)

    return _make
