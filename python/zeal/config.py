"""Application settings loaded from environment variables.

Environment Configuration:
    ZEAL_ENV: Deployment environment (local | test | staging | prod)
    DATABASE_URL: Database connection string (required)
    ZEAL_JWT_SECRET: Shared secret for bearer token verification (required in staging/prod)

Redis / Celery Configuration:
    REDIS_URL: Redis connection string (worker broker, shared rate limiter)
    CELERY_BROKER_URL: Celery broker URL (defaults to REDIS_URL)
    CELERY_RESULT_BACKEND: Celery result backend URL (defaults to REDIS_URL)

Storage Gateway Configuration:
    STORAGE_URL / STORAGE_SERVICE_KEY: Gateway base URL and service key. When either
    is missing the in-memory FakeStorageClient is used.
"""

from enum import Enum
from functools import lru_cache
from typing import Annotated

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings

MIB = 1024 * 1024


class Environment(str, Enum):
    """Valid deployment environments."""

    LOCAL = "local"
    TEST = "test"
    STAGING = "staging"
    PROD = "prod"


class Settings(BaseSettings):
    """Application configuration.

    Validation rules:
    - DATABASE_URL is always required
    - ZEAL_JWT_SECRET is required in staging and prod only
    - multipart chunk size must not exceed the multipart threshold
    """

    zeal_env: Environment = Field(default=Environment.LOCAL, alias="ZEAL_ENV")
    database_url: Annotated[str, Field(alias="DATABASE_URL")]

    # Redis / Celery settings
    redis_url: str | None = Field(default=None, alias="REDIS_URL")
    celery_broker_url: str | None = Field(default=None, alias="CELERY_BROKER_URL")
    celery_result_backend: str | None = Field(default=None, alias="CELERY_RESULT_BACKEND")

    # Bearer token settings
    jwt_secret: str | None = Field(default=None, alias="ZEAL_JWT_SECRET")
    jwt_audience: str = Field(default="zeal", alias="ZEAL_JWT_AUDIENCE")
    jwt_issuer: str = Field(default="zeal-auth", alias="ZEAL_JWT_ISSUER")

    # Storage gateway settings
    storage_url: str | None = Field(default=None, alias="STORAGE_URL")
    storage_service_key: str | None = Field(default=None, alias="STORAGE_SERVICE_KEY")
    storage_bucket: str = Field(default="media", alias="STORAGE_BUCKET")
    storage_dirname: str = Field(default="zeals", alias="STORAGE_DIRNAME")
    storage_public_base_url: str | None = Field(default=None, alias="STORAGE_PUBLIC_BASE_URL")
    upload_tmp_dir: str = Field(default="/tmp/zeal-uploads", alias="UPLOAD_TMP_DIR")

    # Upload limits
    max_video_bytes: int = Field(default=100 * MIB, alias="MAX_VIDEO_BYTES")
    max_image_bytes: int = Field(default=10 * MIB, alias="MAX_IMAGE_BYTES")
    multipart_threshold_bytes: int = Field(default=10 * MIB, alias="MULTIPART_THRESHOLD_BYTES")
    multipart_chunk_bytes: int = Field(default=5 * MIB, alias="MULTIPART_CHUNK_BYTES")
    max_pending_uploads: int = Field(default=5, alias="MAX_PENDING_UPLOADS")
    simple_upload_expiry_s: int = Field(default=300, alias="SIMPLE_UPLOAD_EXPIRY_S")  # 5 minutes
    multipart_upload_expiry_s: int = Field(default=3600, alias="MULTIPART_UPLOAD_EXPIRY_S")
    draft_retention_s: int = Field(default=86400, alias="DRAFT_RETENTION_S")

    # Part transfer policy
    part_upload_timeout_s: float = Field(default=60.0, alias="PART_UPLOAD_TIMEOUT_S")
    part_upload_max_attempts: int = Field(default=3, alias="PART_UPLOAD_MAX_ATTEMPTS")
    part_upload_base_delay_s: float = Field(default=1.0, alias="PART_UPLOAD_BASE_DELAY_S")
    part_upload_concurrency: int = Field(default=4, alias="PART_UPLOAD_CONCURRENCY")

    # Rate limits (per user, per minute)
    rate_limit_uploads_per_minute: int = Field(default=10, alias="RATE_LIMIT_UPLOADS_PER_MINUTE")
    rate_limit_comments_per_minute: int = Field(
        default=10, alias="RATE_LIMIT_COMMENTS_PER_MINUTE"
    )
    rate_limit_sweep_interval_s: int = Field(default=300, alias="RATE_LIMIT_SWEEP_INTERVAL_S")

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }

    @model_validator(mode="after")
    def validate_required_settings(self) -> "Settings":
        """Ensure environment-specific settings are present and consistent."""
        if self.zeal_env in (Environment.STAGING, Environment.PROD):
            if not self.jwt_secret:
                raise ValueError(f"ZEAL_JWT_SECRET is required for ZEAL_ENV={self.zeal_env.value}")

        if self.multipart_chunk_bytes > self.multipart_threshold_bytes:
            raise ValueError("MULTIPART_CHUNK_BYTES must not exceed MULTIPART_THRESHOLD_BYTES")

        return self

    @property
    def storage_configured(self) -> bool:
        """Whether a real storage gateway is configured."""
        return bool(self.storage_url and self.storage_service_key)

    @property
    def effective_jwt_secret(self) -> str:
        """Return the token secret, falling back to a fixed dev secret locally."""
        return self.jwt_secret or "zeal-local-dev-secret"

    @property
    def effective_celery_broker_url(self) -> str | None:
        """Return Celery broker URL, falling back to REDIS_URL if not set."""
        return self.celery_broker_url or self.redis_url

    @property
    def effective_celery_result_backend(self) -> str | None:
        """Return Celery result backend URL, falling back to REDIS_URL if not set."""
        return self.celery_result_backend or self.redis_url


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings.

    Raises:
        ValidationError: If required settings are missing or invalid.
    """
    return Settings()


def clear_settings_cache() -> None:
    """Clear the settings cache. Useful for testing."""
    get_settings.cache_clear()
