"""Tests for application configuration."""

import pytest
from pydantic import ValidationError

from zeal.config import Environment, Settings


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    """Drop the per-test overrides conftest sets so defaults are visible."""
    for name in (
        "MULTIPART_THRESHOLD_BYTES",
        "MULTIPART_CHUNK_BYTES",
        "ZEAL_JWT_SECRET",
        "CELERY_BROKER_URL",
        "CELERY_RESULT_BACKEND",
    ):
        monkeypatch.delenv(name, raising=False)


def _make_settings(**overrides) -> Settings:
    """Build a Settings instance with test defaults + overrides."""
    defaults = {
        "DATABASE_URL": "postgresql+psycopg://localhost/test",
        "ZEAL_ENV": "test",
    }
    defaults.update(overrides)
    return Settings(**defaults)


class TestEnvironmentRules:
    def test_local_runs_without_jwt_secret(self):
        s = _make_settings(ZEAL_ENV="local")
        assert s.zeal_env == Environment.LOCAL
        assert s.effective_jwt_secret == "zeal-local-dev-secret"

    @pytest.mark.parametrize("env", ["staging", "prod"])
    def test_deployed_envs_require_jwt_secret(self, env):
        with pytest.raises(ValidationError, match="ZEAL_JWT_SECRET is required"):
            _make_settings(ZEAL_ENV=env)

    def test_prod_with_secret(self):
        s = _make_settings(ZEAL_ENV="prod", ZEAL_JWT_SECRET="s3cret")
        assert s.effective_jwt_secret == "s3cret"


class TestUploadLimits:
    def test_defaults(self):
        s = _make_settings()
        assert s.max_video_bytes == 100 * 1024 * 1024
        assert s.max_image_bytes == 10 * 1024 * 1024
        assert s.multipart_threshold_bytes == 10 * 1024 * 1024
        assert s.multipart_chunk_bytes == 5 * 1024 * 1024
        assert s.max_pending_uploads == 5

    def test_chunk_larger_than_threshold_rejected(self):
        with pytest.raises(ValidationError, match="MULTIPART_CHUNK_BYTES"):
            _make_settings(MULTIPART_THRESHOLD_BYTES=1000, MULTIPART_CHUNK_BYTES=2000)


class TestDerivedUrls:
    def test_celery_falls_back_to_redis_url(self):
        s = _make_settings(REDIS_URL="redis://cache:6379/0")
        assert s.effective_celery_broker_url == "redis://cache:6379/0"
        assert s.effective_celery_result_backend == "redis://cache:6379/0"

    def test_explicit_broker_wins(self):
        s = _make_settings(REDIS_URL="redis://cache:6379/0", CELERY_BROKER_URL="redis://broker/1")
        assert s.effective_celery_broker_url == "redis://broker/1"

    def test_storage_configured_needs_url_and_key(self):
        assert not _make_settings(STORAGE_URL="https://storage.test").storage_configured
        assert _make_settings(
            STORAGE_URL="https://storage.test", STORAGE_SERVICE_KEY="key"
        ).storage_configured
