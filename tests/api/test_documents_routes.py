import pytest
from fastapi.testclient import TestClient

from docgen.api.dependencies.services import get_document_service
from docgen.api.main import app
from docgen.repositories.document_artifact_repository import DocumentArtifactRepository
from docgen.repositories.generation_job_repository import GenerationJobRepository
from docgen.services.document_service import DocumentService
from docgen.services.storage import UploadResult


@pytest.fixture
def client(session_factory, storage):
    """FastAPI test client wired to the in-memory database and fake object store."""
    app.dependency_overrides[get_document_service] = lambda: DocumentService(session_factory, storage)

    test_client = TestClient(app)
    try:
        yield test_client
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def seeded(db, tenant_id, s3_client):
    job = GenerationJobRepository.create(
        db,
        tenant_id=tenant_id,
        project_id=7,
        title="Alpha Spec",
        document_type="srs",
        requested_formats=["markdown"],
        input_params={"summary": "x"},
        requested_by=99,
    )
    path = f"{tenant_id}/documents/7/{job.id}/Alpha_Spec.md"
    s3_client.objects[path] = {"Body": b"# Alpha"}
    (artifact,) = DocumentArtifactRepository.create_many(
        db,
        tenant_id=tenant_id,
        job_id=job.id,
        uploads=[
            UploadResult(
                storage_path=path,
                file_size=7,
                sha256_checksum="d" * 64,
                format="markdown",
                content_type="text/markdown; charset=utf-8",
                file_name="Alpha_Spec.md",
                rendering_duration_ms=4,
            )
        ],
    )
    return job, artifact


def _headers(tenant_id):
    return {"X-Tenant-ID": str(tenant_id)}


def test_health(client):
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.json() == {"status": "ok"}


def test_metrics_endpoint_exposed(client):
    assert client.get("/metrics").status_code == 200


def test_missing_tenant_header_is_rejected(client):
    resp = client.get("/documents")
    assert resp.status_code == 400
    assert resp.json()["detail"] == "X-Tenant-ID header is required"


def test_invalid_tenant_header_is_rejected(client):
    resp = client.get("/documents", headers={"X-Tenant-ID": "tenant_123"})
    assert resp.status_code == 400


def test_list_documents(client, seeded, tenant_id, other_tenant_id):
    resp = client.get("/documents", headers=_headers(tenant_id))
    assert resp.status_code == 200
    body = resp.json()
    assert body["total"] == 1
    assert body["limit"] == 50
    assert body["items"][0]["title"] == "Alpha Spec"
    assert body["items"][0]["status"] == "queued"

    other = client.get("/documents", headers=_headers(other_tenant_id)).json()
    assert other["total"] == 0
    assert other["items"] == []


def test_list_documents_filters(client, seeded, tenant_id):
    resp = client.get(
        "/documents",
        params={"project_id": 8, "status": "queued"},
        headers=_headers(tenant_id),
    )
    assert resp.json()["total"] == 0


def test_get_document_with_artifacts(client, seeded, tenant_id):
    job, artifact = seeded

    resp = client.get(f"/documents/{job.id}", headers=_headers(tenant_id))

    assert resp.status_code == 200
    body = resp.json()
    assert body["id"] == job.id
    assert body["artifacts"][0]["id"] == artifact.id
    assert body["artifacts"][0]["sha256_checksum"] == "d" * 64


def test_get_document_other_tenant_404(client, seeded, other_tenant_id):
    job, _ = seeded
    resp = client.get(f"/documents/{job.id}", headers=_headers(other_tenant_id))
    assert resp.status_code == 404


def test_download_link(client, seeded, tenant_id):
    job, artifact = seeded

    resp = client.get(
        f"/documents/{job.id}/artifacts/{artifact.id}/download",
        headers=_headers(tenant_id),
    )

    assert resp.status_code == 200
    body = resp.json()
    assert artifact.storage_path in body["url"]
    assert body["expires_in"] == 900
    assert body["file_name"] == "Alpha_Spec.md"


def test_download_link_unknown_artifact(client, seeded, tenant_id):
    job, _ = seeded
    resp = client.get(f"/documents/{job.id}/artifacts/999/download", headers=_headers(tenant_id))
    assert resp.status_code == 404


def test_delete_document(client, seeded, tenant_id, s3_client):
    job, _ = seeded

    resp = client.delete(f"/documents/{job.id}", headers=_headers(tenant_id))
    assert resp.status_code == 204
    assert s3_client.objects == {}

    assert client.get(f"/documents/{job.id}", headers=_headers(tenant_id)).status_code == 404
    assert client.delete(f"/documents/{job.id}", headers=_headers(tenant_id)).status_code == 404
