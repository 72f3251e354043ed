"""
Application configuration using Pydantic settings.

Configuration is loaded from environment variables (or a .env file) with
sensible defaults. Only this module reads the environment; the storage
backends receive an explicit S3Config built from these settings.

Mock mode enables local development without a bucket.
"""

from functools import lru_cache
from typing import Any, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    All settings can be overridden via environment variables.
    ``S3_UPLOAD_OPTIONS`` is parsed as JSON, e.g.
    ``{"cache_control": "max-age=31536000"}``.
    """

    # API Configuration
    api_title: str = "Attachment Storage API"
    api_version: str = "v1"

    # S3 Storage Configuration
    s3_bucket: str = Field(
        default="",
        description="Bucket that holds uploaded files"
    )
    s3_region: Optional[str] = Field(
        default=None,
        description="Bucket region, e.g. eu-west-1"
    )
    s3_access_key_id: Optional[str] = Field(
        default=None,
        description="Access key ID. Falls back to boto3's credential chain if unset."
    )
    s3_secret_access_key: Optional[str] = Field(
        default=None,
        description="Secret access key"
    )
    s3_session_token: Optional[str] = Field(
        default=None,
        description="Session token for temporary credentials"
    )
    s3_prefix: Optional[str] = Field(
        default=None,
        description="Key prefix, lets several apps or environments share a bucket"
    )
    s3_endpoint_url: Optional[str] = Field(
        default=None,
        description="Custom endpoint for S3-compatible services (MinIO, R2, Ceph)"
    )
    s3_force_path_style: bool = Field(
        default=False,
        description="Use path-style URLs (endpoint/bucket/key) instead of bucket subdomains"
    )
    s3_public: bool = Field(
        default=False,
        description="Upload with public-read ACL and hand out unsigned URLs"
    )
    s3_host: Optional[str] = Field(
        default=None,
        description="Scheme and host to put in file URLs, typically a CDN"
    )
    s3_upload_options: dict[str, Any] = Field(
        default_factory=dict,
        description="Default upload options applied to every upload and presign"
    )
    s3_multipart_upload_threshold: int = Field(
        default=15 * 1024 * 1024,
        description="Streams above this size are uploaded in parts"
    )
    s3_multipart_copy_threshold: int = Field(
        default=100 * 1024 * 1024,
        description="Objects above this size are copied in parts"
    )
    storage_mock_mode: bool = Field(
        default=False,
        description="Use in-memory storage instead of S3. Enables local dev without a bucket."
    )

    # Direct uploads
    presign_expires_in: int = Field(
        default=3600,
        description="Lifetime of presigned upload forms, in seconds"
    )
    presign_max_size_mb: Optional[int] = Field(
        default=None,
        description="Maximum size accepted by presigned upload forms"
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)"
    )

    # CORS
    cors_origins: str = Field(
        default="http://localhost:3000",
        description="Comma-separated list of allowed CORS origins. Use * for development only."
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @property
    def cors_origins_list(self) -> list[str]:
        """Parse comma-separated CORS origins into a list."""
        if self.cors_origins == "*":
            return ["*"]
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    def validate_required_fields(self) -> list[str]:
        """
        Validate that required fields are set.

        Returns list of missing required fields. Credentials are only
        required as a pair: setting one without the other is an error,
        setting neither defers to boto3's credential chain.
        """
        missing = []

        if self.storage_mock_mode:
            return missing

        if not self.s3_bucket:
            missing.append("S3_BUCKET")
        if self.s3_access_key_id and not self.s3_secret_access_key:
            missing.append("S3_SECRET_ACCESS_KEY")
        if self.s3_secret_access_key and not self.s3_access_key_id:
            missing.append("S3_ACCESS_KEY_ID")

        return missing


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Settings are loaded once per process. For tests, call
    get_settings.cache_clear() to reset.
    """
    return Settings()
