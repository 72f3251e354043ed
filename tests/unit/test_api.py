"""
Unit tests for the HTTP layer.

Storage and settings are injected through FastAPI dependency overrides,
so routes run against MemoryStorage or moto-backed S3.
"""

from io import BytesIO
from urllib.parse import urlsplit

import pytest
from fastapi.testclient import TestClient

from attachment_storage.api.dependencies import get_storage
from attachment_storage.config.settings import Settings, get_settings
from attachment_storage.core.errors import AccessDenied, ObjectNotFound
from attachment_storage.infrastructure.storage import MemoryStorage
from attachment_storage.main import create_app
from tests.helpers import BUCKET


def make_client(storage, **settings_overrides) -> TestClient:
    settings = Settings(_env_file=None, **{"storage_mock_mode": True, **settings_overrides})

    app = create_app()
    app.dependency_overrides[get_settings] = lambda: settings
    app.dependency_overrides[get_storage] = lambda: storage
    return TestClient(app)


class FailingStorage(MemoryStorage):
    """Raises a given storage error from url()."""

    def __init__(self, error):
        super().__init__()
        self.error = error

    def url(self, key, **options):
        raise self.error


class ReadOnlyStorage:
    """Storage without presign support."""

    def url(self, key, **options):
        return f"memory://{key}"


class TestHealth:

    def test_liveness(self, memory):
        response = make_client(memory).get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "ok"
        assert response.json()["details"]["mock_mode"] is True

    def test_ready(self, memory):
        response = make_client(memory).get("/health/ready")

        assert response.status_code == 200
        assert response.json()["status"] == "ready"

    def test_not_ready_when_storage_fails(self):
        class Unreachable(MemoryStorage):
            def exists(self, key):
                raise AccessDenied("exists failed: Access Denied", key=key, code="AccessDenied")

        response = make_client(Unreachable()).get("/health/ready")

        assert response.status_code == 503
        checks = {check["name"]: check for check in response.json()["checks"]}
        assert checks["storage"]["status"] == "error"


class TestPresign:

    def test_presigns_upload_to_s3(self, s3):
        response = make_client(s3).get(
            "/uploads/presign",
            params={"filename": "Photo.JPG", "content_type": "image/jpeg"},
        )

        assert response.status_code == 200
        body = response.json()
        assert body["key"].endswith(".jpg")
        assert body["fields"]["key"] == body["key"]
        assert body["fields"]["Content-Type"] == "image/jpeg"
        assert body["fields"]["Content-Disposition"] == 'inline; filename="Photo.JPG"'
        assert urlsplit(body["url"]).hostname.startswith(BUCKET)

    def test_keys_are_unique(self, memory):
        client = make_client(memory)

        keys = {client.get("/uploads/presign").json()["key"] for _ in range(3)}

        assert len(keys) == 3

    def test_storage_without_presign(self):
        response = make_client(ReadOnlyStorage()).get("/uploads/presign")

        assert response.status_code == 501


class TestFileRedirect:

    def test_redirects_to_file_url(self, s3):
        s3.upload(BytesIO(b"file"), "foo/bar.txt")

        response = make_client(s3).get("/uploads/foo/bar.txt", follow_redirects=False)

        assert response.status_code == 307
        assert urlsplit(response.headers["location"]).path == "/foo/bar.txt"

    def test_forced_download(self, s3):
        response = make_client(s3).get(
            "/uploads/foo",
            params={"download": "true"},
            follow_redirects=False,
        )

        assert "response-content-disposition=attachment" in response.headers["location"]

    @pytest.mark.parametrize("error, status_code", [
        (ObjectNotFound("missing", key="foo"), 404),
        (AccessDenied("denied", key="foo", code="AccessDenied"), 403),
    ])
    def test_storage_errors_map_to_http(self, error, status_code):
        response = make_client(FailingStorage(error)).get("/uploads/foo", follow_redirects=False)

        assert response.status_code == status_code
        assert response.json()["detail"] == error.message
