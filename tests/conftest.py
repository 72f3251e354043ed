"""
Shared fixtures.

S3 is mocked with moto, so no test touches the network or needs real
credentials. Backends are always built with explicit fake credentials;
nothing relies on AWS_* environment variables.
"""

import boto3
import pytest
from moto import mock_aws

from attachment_storage.api import dependencies
from attachment_storage.config.settings import get_settings
from attachment_storage.infrastructure.storage import MemoryStorage, S3Storage
from tests.helpers import ACCESS_KEY_ID, BUCKET, REGION, SECRET_ACCESS_KEY, build_s3


@pytest.fixture
def mocked_aws():
    """Start moto and create the test bucket."""
    with mock_aws():
        client = boto3.client(
            "s3",
            region_name=REGION,
            aws_access_key_id=ACCESS_KEY_ID,
            aws_secret_access_key=SECRET_ACCESS_KEY,
        )
        client.create_bucket(Bucket=BUCKET)
        yield client


@pytest.fixture
def s3_client(mocked_aws):
    """Plain boto3 client for inspecting what the backend wrote."""
    return mocked_aws


@pytest.fixture
def make_s3(mocked_aws):
    """Factory for S3Storage instances talking to the mocked bucket."""
    return build_s3


@pytest.fixture
def s3(make_s3) -> S3Storage:
    return make_s3()


@pytest.fixture
def memory() -> MemoryStorage:
    return MemoryStorage()


@pytest.fixture(autouse=True)
def isolated_settings(monkeypatch):
    """Keep a developer's .env and shared state out of the tests."""
    monkeypatch.setenv("STORAGE_MOCK_MODE", "true")
    get_settings.cache_clear()
    dependencies.reset_storage()
    yield
    get_settings.cache_clear()
    dependencies.reset_storage()
