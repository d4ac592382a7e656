import hashlib

import pytest

from docgen.errors import UploadError
from docgen.services.storage import ArtifactStorage, RenderedFile


def _file(fmt="markdown", name="Alpha_Spec_20261017_093005.md", data=b"# Alpha"):
    return RenderedFile(
        format=fmt,
        content_type="text/markdown; charset=utf-8",
        file_name=name,
        data=data,
        rendering_duration_ms=12,
    )


def test_storage_requires_bucket(s3_client):
    with pytest.raises(ValueError):
        ArtifactStorage("", client=s3_client)


def test_upload_writes_object_with_checksum(storage, s3_client, tenant_id):
    result = storage.upload(tenant_id, 7, 3, _file())

    expected_key = f"{tenant_id}/documents/7/3/Alpha_Spec_20261017_093005.md"
    assert result.storage_path == expected_key
    assert result.file_size == len(b"# Alpha")
    assert result.sha256_checksum == hashlib.sha256(b"# Alpha").hexdigest()

    stored = s3_client.objects[expected_key]
    assert stored["Bucket"] == "test-bucket"
    assert stored["Body"] == b"# Alpha"
    assert stored["ContentType"] == "text/markdown; charset=utf-8"
    assert stored["Metadata"]["sha256"] == result.sha256_checksum


def test_upload_failure_raises_upload_error(storage, s3_client, tenant_id):
    s3_client.fail_on.add(".md")

    with pytest.raises(UploadError) as exc_info:
        storage.upload(tenant_id, 7, 3, _file())

    assert "simulated outage" in str(exc_info.value)


def test_upload_all_removes_earlier_objects_on_failure(storage, s3_client, tenant_id):
    s3_client.fail_on.add(".html")
    files = [_file(), _file("html", "Alpha_Spec.html", b"<html></html>")]

    with pytest.raises(UploadError):
        storage.upload_all(tenant_id, 7, 3, files)

    assert s3_client.objects == {}
    assert s3_client.deleted == [f"{tenant_id}/documents/7/3/Alpha_Spec_20261017_093005.md"]


def test_generate_retrieval_link_uses_expiry_and_filename(s3_client):
    storage = ArtifactStorage("test-bucket", client=s3_client, link_expiry_seconds=60)
    captured = {}

    def fake_presign(operation, Params, ExpiresIn):
        captured.update(operation=operation, params=Params, expires=ExpiresIn)
        return "https://signed"

    s3_client.generate_presigned_url = fake_presign

    assert storage.generate_retrieval_link("t/documents/7/3/a.md", "a.md") == "https://signed"
    assert captured["operation"] == "get_object"
    assert captured["expires"] == 60
    assert captured["params"]["Key"] == "t/documents/7/3/a.md"
    assert captured["params"]["ResponseContentDisposition"] == 'attachment; filename="a.md"'


def test_delete_all_is_best_effort(storage, s3_client):
    s3_client.fail_delete_on.add("b.md")

    failed = storage.delete_all(["a.md", "b.md", "c.md"])

    assert failed == ["b.md"]
    assert s3_client.deleted == ["a.md", "c.md"]
