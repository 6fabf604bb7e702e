"""Pytest configuration and fixtures."""

import os

# Must be set before kiosk.core.config is imported
os.environ.setdefault("DATABASE_URL_OVERRIDE", "sqlite://")
os.environ.setdefault("INTEGRATOR_TOKEN", "integrator-token")
os.environ.setdefault("VENUES", '{"tacoma": "Craft Cannabis Tacoma", "leavenworth": "Craft Cannabis Leavenworth", "wenatchee": "Craft Cannabis Wenatchee"}')
os.environ.setdefault("VENUE_TOKENS", '{"tacoma": "tacoma-token", "leavenworth": "leavenworth-token"}')
os.environ.setdefault("SYNC_PAGE_DELAY_SECONDS", "0")

import pytest
from typing import Generator

from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from kiosk.core.database import Base, get_db
# Import all models to ensure they're registered with Base.metadata
from kiosk.models import *  # noqa: F401,F403
from kiosk.api.router import api_router
from kiosk.api.deps import get_sync_scheduler
from kiosk.jobs import CustomerSyncScheduler
from kiosk.services.sync_events import SyncEventBroker

from tests.fakes import FakeDirectoryClient

# Use in-memory SQLite for tests
TEST_DATABASE_URL = "sqlite:///:memory:"


@pytest.fixture(scope="function")
def db_engine():
    """Create a test database engine."""
    engine = create_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def session_factory(db_engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=db_engine)


@pytest.fixture(scope="function")
def db_session(session_factory) -> Generator[Session, None, None]:
    """Create a test database session."""
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def fake_client() -> FakeDirectoryClient:
    return FakeDirectoryClient()


@pytest.fixture
def broker() -> SyncEventBroker:
    return SyncEventBroker()


@pytest.fixture
def sync_scheduler(session_factory, broker, fake_client) -> CustomerSyncScheduler:
    """Scheduler wired to the fake directory; never started."""
    return CustomerSyncScheduler(
        session_factory=session_factory,
        events=broker,
        client_factory=lambda venue: fake_client if venue.is_configured else None,
    )


@pytest.fixture(scope="function")
def client(session_factory, sync_scheduler) -> Generator[TestClient, None, None]:
    """Create a test client with database and scheduler overrides."""
    app = FastAPI()
    app.include_router(api_router, prefix="/api")

    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_sync_scheduler] = lambda: sync_scheduler

    yield TestClient(app)
    app.dependency_overrides.clear()
