"""
Test configuration and fixtures for pytest.

This module provides shared fixtures used across all tests:
- Test database (SQLite in-memory for speed) and a session factory
- Stores built on that factory
- A fake hub (entity source + action executor) and a scripted NL backend
- Test client (FastAPI TestClient) wired to all of the above
"""

from typing import Generator

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from homepilot.ai.monitoring import ai_metrics
from homepilot.core.config import Settings
from homepilot.db.base import Base, import_models
from homepilot.db.session import get_db
from homepilot.deps import build_services
from homepilot.main import create_app
from homepilot.services.entity_mirror import EntityMirror, HistoryStore, SyncStatusStore
from homepilot.services.pattern_store import PatternStore

from tests.fakes import FakeHub, ScriptedProvider, home_entities

import_models()


# ---------------------------------------------------------------------------
# TEST DATABASE SETUP
# ---------------------------------------------------------------------------
# Use SQLite in-memory for fast tests (no PostgreSQL dependency)
# StaticPool keeps the same connection across all operations

SQLALCHEMY_DATABASE_URL = "sqlite:///:memory:"

engine = create_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args={"check_same_thread": False},  # Required for SQLite
    poolclass=StaticPool,  # Keep connection alive across operations
)

TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


# ---------------------------------------------------------------------------
# DATABASE FIXTURES
# ---------------------------------------------------------------------------

@pytest.fixture(scope="function")
def session_factory() -> Generator[sessionmaker, None, None]:
    """
    Create a fresh database for each test function.

    - Creates all tables
    - Yields the session factory the stores use
    - Drops all tables after test (clean slate)
    """
    Base.metadata.create_all(bind=engine)
    try:
        yield TestingSessionLocal
    finally:
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db(session_factory) -> Generator[Session, None, None]:
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def mirror(session_factory) -> EntityMirror:
    return EntityMirror(session_factory)


@pytest.fixture
def history(session_factory) -> HistoryStore:
    return HistoryStore(session_factory)


@pytest.fixture
def status_store(session_factory) -> SyncStatusStore:
    return SyncStatusStore(session_factory)


@pytest.fixture
def pattern_store(session_factory) -> PatternStore:
    return PatternStore(session_factory)


# ---------------------------------------------------------------------------
# FAKE FIXTURES
# ---------------------------------------------------------------------------

@pytest.fixture
def hub() -> FakeHub:
    return FakeHub(home_entities())


@pytest.fixture
def provider() -> ScriptedProvider:
    return ScriptedProvider()


@pytest.fixture(autouse=True)
def reset_metrics():
    """The metrics singleton is process-wide; start every test from zero."""
    ai_metrics.reset()
    yield
    ai_metrics.reset()


# ---------------------------------------------------------------------------
# APP FIXTURES
# ---------------------------------------------------------------------------

@pytest.fixture
def services(session_factory, hub, provider):
    return build_services(
        Settings(AI_PROVIDER="lmstudio", SYNC_AUTOSTART=False),
        session_factory,
        hub=hub,
        provider=provider,
    )


@pytest.fixture(scope="function")
def client(services, db: Session) -> Generator[TestClient, None, None]:
    """
    Create a test client with the test database and fake hub/backend.

    Overrides the get_db dependency to use our test database.
    """
    app = create_app(services=services)

    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()
