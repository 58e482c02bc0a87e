# backend/tests/conftest.py
"""
Pytest configuration with production database protection.

Tests run against a SQLite file (``TEST_DATABASE_URL``, default: a fresh
temporary directory). Tables are created before and dropped after every
test, so each test starts from an empty schema.
"""

import os
from pathlib import Path
import tempfile

# Testing mode and database must be set BEFORE any app imports
os.environ["IS_TESTING"] = "true"
if not os.getenv("TEST_DATABASE_URL"):
    _tmp_dir = Path(tempfile.mkdtemp(prefix="quinielas-tests-"))
    os.environ["TEST_DATABASE_URL"] = f"sqlite:///{_tmp_dir / 'quinielas_test.db'}"

from typing import Callable, Dict, Iterator, Optional

from fastapi.testclient import TestClient
import pytest
from sqlalchemy.orm import Session, sessionmaker

from app.core.config import settings

settings.is_testing = True

from app.api.dependencies import get_db as api_get_db
from app.database import Base, create_db_engine, get_db
from app.main import app

from tests.factories.pools import PoolWorld, build_pool_world

TEST_DATABASE_URL = settings.test_database_url or os.environ["TEST_DATABASE_URL"]

if settings.is_production_database(TEST_DATABASE_URL):
    raise RuntimeError(
        "CRITICAL: TEST_DATABASE_URL looks like a production database; refusing to run tests."
    )

test_engine = create_db_engine(TEST_DATABASE_URL)
TestSessionLocal = sessionmaker(
    autocommit=False, autoflush=False, bind=test_engine, expire_on_commit=False
)


@pytest.fixture(scope="function")
def db() -> Iterator[Session]:
    """Fresh schema and session for each test."""
    import app.models  # noqa: F401

    Base.metadata.create_all(bind=test_engine)
    session = TestSessionLocal()

    yield session

    session.rollback()
    session.close()
    Base.metadata.drop_all(bind=test_engine)


@pytest.fixture
def session_factory(db: Session) -> Iterator[Callable[[], Session]]:
    """Extra independent sessions on the same database (concurrency tests)."""
    opened = []

    def _open() -> Session:
        session = TestSessionLocal()
        opened.append(session)
        return session

    yield _open

    for session in opened:
        session.rollback()
        session.close()


@pytest.fixture
def client(db: Session) -> Iterator[TestClient]:
    """Create a test client bound to the test session."""

    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[api_get_db] = override_get_db

    test_client = TestClient(app)

    yield test_client

    app.dependency_overrides.clear()
    test_client.close()


@pytest.fixture
def world(db: Session) -> PoolWorld:
    """One tenant with a pool per access type (no credentials yet)."""
    return build_pool_world(db)


@pytest.fixture
def headers() -> Callable[..., Dict[str, str]]:
    """Build upstream principal headers."""

    def _headers(
        user_id: str = "user-1", tenant_id: Optional[str] = None, role: str = "player"
    ) -> Dict[str, str]:
        values = {"X-User-Id": user_id, "X-User-Role": role}
        if tenant_id:
            values["X-Tenant-Id"] = tenant_id
        return values

    return _headers
