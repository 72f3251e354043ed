"""Build the configured storage backend from application settings."""

import logging

from ...config.settings import Settings
from ...core.storage import Storage
from .memory import MemoryStorage
from .s3 import S3Config, S3Storage

logger = logging.getLogger(__name__)


def s3_config_from_settings(settings: Settings) -> S3Config:
    return S3Config(
        bucket=settings.s3_bucket,
        region=settings.s3_region,
        access_key_id=settings.s3_access_key_id,
        secret_access_key=settings.s3_secret_access_key,
        session_token=settings.s3_session_token,
        prefix=settings.s3_prefix,
        endpoint_url=settings.s3_endpoint_url,
        force_path_style=settings.s3_force_path_style,
        public=settings.s3_public,
        host=settings.s3_host,
        upload_options=settings.s3_upload_options,
        multipart_threshold={
            "upload": settings.s3_multipart_upload_threshold,
            "copy": settings.s3_multipart_copy_threshold,
        },
    )


def create_storage(settings: Settings) -> Storage:
    """
    Create storage backend based on configuration.

    Args:
        settings: Application settings

    Returns:
        Storage implementation (S3 or memory)
    """
    if settings.storage_mock_mode:
        return MemoryStorage(prefix=settings.s3_prefix)

    missing = settings.validate_required_fields()
    if missing:
        raise ValueError(f"Missing storage configuration: {', '.join(missing)}")

    storage = S3Storage(s3_config_from_settings(settings))
    logger.debug("Created S3 storage", extra={"bucket": settings.s3_bucket})
    return storage
