"""Pytest configuration and fixtures for Zeal tests.

Test isolation strategy:
- Every test gets its own SQLite database file under tmp_path, created from
  the ORM metadata and installed as the process-wide session factory
- Storage is an in-memory FakeStorageClient; presigned URLs are served by
  its httpx transport
- Auth tests use HS256 tokens minted with the test secret (tests.helpers)
"""

import itertools
import os
import sys
from collections.abc import Generator
from pathlib import Path

# Add repo root to sys.path for importing top-level packages (e.g., apps)
_repo_root = Path(__file__).parent.parent.parent
if str(_repo_root) not in sys.path:
    sys.path.insert(0, str(_repo_root))

# zeal.celery reads settings at import time
os.environ.setdefault("DATABASE_URL", "sqlite://")

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy import Engine
from sqlalchemy.orm import Session, sessionmaker

from zeal.app import add_request_id_middleware, create_app
from zeal.config import clear_settings_cache
from zeal.db.engine import create_db_engine
from zeal.db.models import Base, User
from zeal.db.session import create_session_factory, set_session_factory
from zeal.services.rate_limit import InMemoryRateLimiter, set_rate_limiter
from zeal.services.users import create_user
from zeal.storage.client import FakeStorageClient
from tests.helpers import make_test_verifier

# Small multipart layout so chunked transfers stay fast: 1000-byte videos
# split into 400 + 400 + 200 byte parts.
TEST_MULTIPART_THRESHOLD = 1000
TEST_MULTIPART_CHUNK = 400


@pytest.fixture(autouse=True)
def test_settings(monkeypatch, tmp_path) -> Generator[None, None, None]:
    """Point settings at a per-test database and deterministic limits."""
    monkeypatch.setenv("ZEAL_ENV", "test")
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path / 'zeal.db'}")
    monkeypatch.setenv("UPLOAD_TMP_DIR", str(tmp_path / "uploads"))
    monkeypatch.setenv("MULTIPART_THRESHOLD_BYTES", str(TEST_MULTIPART_THRESHOLD))
    monkeypatch.setenv("MULTIPART_CHUNK_BYTES", str(TEST_MULTIPART_CHUNK))
    monkeypatch.setenv("PART_UPLOAD_BASE_DELAY_S", "0")
    for name in ("REDIS_URL", "STORAGE_URL", "STORAGE_SERVICE_KEY", "STORAGE_TEST_PREFIX"):
        monkeypatch.delenv(name, raising=False)

    clear_settings_cache()
    set_rate_limiter(None)
    yield
    set_rate_limiter(None)
    clear_settings_cache()


@pytest.fixture
def engine(test_settings) -> Generator[Engine, None, None]:
    engine = create_db_engine()
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine: Engine) -> Generator[sessionmaker[Session], None, None]:
    """Session factory bound to the test database, installed for get_db()."""
    factory = create_session_factory(engine)
    set_session_factory(factory)
    yield factory
    set_session_factory(None)


@pytest.fixture
def db_session(session_factory) -> Generator[Session, None, None]:
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def storage() -> FakeStorageClient:
    return FakeStorageClient()


@pytest.fixture
def rate_limiter() -> InMemoryRateLimiter:
    return InMemoryRateLimiter()


@pytest.fixture
def make_user(db_session: Session):
    """Factory creating committed users with unique usernames."""
    counter = itertools.count(1)

    def _make(username: str | None = None, **fields) -> User:
        return create_user(db_session, username or f"user{next(counter)}", **fields)

    return _make


@pytest.fixture
def app(session_factory, storage, rate_limiter) -> FastAPI:
    """App with auth middleware using the test verifier and fake storage."""
    app = create_app(
        token_verifier=make_test_verifier(),
        storage=storage,
        rate_limiter=rate_limiter,
    )
    add_request_id_middleware(app, log_requests=False)
    return app


@pytest.fixture
def client(app: FastAPI) -> Generator[TestClient, None, None]:
    with TestClient(app) as client:
        yield client
