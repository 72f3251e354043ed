"""
Unit tests for settings and the storage factory.

Settings are built with ``_env_file=None`` so a developer's .env never
leaks into the results.
"""

import pytest

from attachment_storage.config.settings import Settings
from attachment_storage.infrastructure.storage import MemoryStorage, S3Storage, create_storage
from attachment_storage.infrastructure.storage.factory import s3_config_from_settings


def make_settings(**overrides) -> Settings:
    options = {"storage_mock_mode": False}
    options.update(overrides)
    return Settings(_env_file=None, **options)


class TestSettings:

    def test_mock_mode_needs_nothing(self):
        assert make_settings(storage_mock_mode=True).validate_required_fields() == []

    def test_bucket_is_required(self):
        assert make_settings().validate_required_fields() == ["S3_BUCKET"]

    def test_credentials_come_in_pairs(self):
        settings = make_settings(s3_bucket="files", s3_access_key_id="key")

        assert settings.validate_required_fields() == ["S3_SECRET_ACCESS_KEY"]

    def test_credentials_may_be_left_to_boto3(self):
        assert make_settings(s3_bucket="files").validate_required_fields() == []

    def test_reads_environment(self, monkeypatch):
        monkeypatch.setenv("S3_BUCKET", "files")
        monkeypatch.setenv("S3_PREFIX", "store")
        monkeypatch.setenv("S3_FORCE_PATH_STYLE", "true")
        monkeypatch.setenv("S3_UPLOAD_OPTIONS", '{"cache_control": "max-age=60"}')

        settings = make_settings()

        assert settings.s3_bucket == "files"
        assert settings.s3_prefix == "store"
        assert settings.s3_force_path_style is True
        assert settings.s3_upload_options == {"cache_control": "max-age=60"}

    def test_cors_origins_list(self):
        settings = make_settings(cors_origins="http://a.test, http://b.test")

        assert settings.cors_origins_list == ["http://a.test", "http://b.test"]


class TestCreateStorage:

    def test_mock_mode_gives_memory_storage(self):
        storage = create_storage(make_settings(storage_mock_mode=True, s3_prefix="cache"))

        assert isinstance(storage, MemoryStorage)
        assert storage.prefix == "cache"

    def test_builds_s3_storage(self):
        storage = create_storage(make_settings(
            s3_bucket="files",
            s3_region="eu-west-1",
            s3_access_key_id="key",
            s3_secret_access_key="secret",
            s3_prefix="store",
            s3_upload_options={"cache_control": "max-age=60"},
        ))

        assert isinstance(storage, S3Storage)
        assert storage.bucket.name == "files"
        assert storage.prefix == "store"
        assert storage.client.meta.region_name == "eu-west-1"
        assert storage.upload_options == {"cache_control": "max-age=60"}

    def test_missing_configuration_raises(self):
        with pytest.raises(ValueError, match="S3_BUCKET"):
            create_storage(make_settings())

    def test_multipart_thresholds(self):
        config = s3_config_from_settings(make_settings(
            s3_bucket="files",
            s3_multipart_upload_threshold=5 * 1024 * 1024,
        ))

        assert config.multipart_threshold == {
            "upload": 5 * 1024 * 1024,
            "copy": 100 * 1024 * 1024,
        }
