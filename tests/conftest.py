"""
tests/conftest.py -- Shared fixtures for the SSO test suite.

This module provides:
  - store:       isolated SqlStore on a named shared-memory SQLite DB
  - client_app:  a registered App with a known secret
  - service:     AuthService wired to `store`, low bcrypt cost
  - api_client:  TestClient over create_app() with `store` injected

Design: Named shared-memory SQLite URIs (not plain :memory:) are required
because TestClient runs sync route handlers in a thread pool. Plain :memory:
DBs are per-connection and would present a blank schema to each worker
thread. Each fixture instance gets a unique name, so tests never share rows.

bcrypt cost 4 is the library minimum; it keeps the suite fast while still
exercising real hashing.
"""

from __future__ import annotations

import uuid
from collections.abc import Generator
from datetime import timedelta

import pytest
from fastapi.testclient import TestClient

from api.main import create_app
from auth.models import App
from auth.service import AuthService
from auth.store import SqlStore
from core.config import Settings

TEST_COST = 4
TEST_TTL = timedelta(hours=1)
APP_ID = 1
APP_SECRET = "test-app-secret-0123456789abcdef"


def _memory_url() -> str:
    return f"sqlite:///file:test_sso_{uuid.uuid4().hex}?mode=memory&cache=shared&uri=true"


@pytest.fixture
def store() -> Generator[SqlStore, None, None]:
    s = SqlStore(_memory_url())
    yield s
    s.close()


@pytest.fixture
def client_app(store: SqlStore) -> App:
    """The client app most tests log in against (id=APP_ID)."""
    app = App(id=APP_ID, name="test-app", secret=APP_SECRET)
    store.save_app(app)
    return app


@pytest.fixture
def service(store: SqlStore) -> AuthService:
    return AuthService(
        user_saver=store,
        user_provider=store,
        app_provider=store,
        token_ttl=TEST_TTL,
        bcrypt_cost=TEST_COST,
    )


@pytest.fixture
def settings() -> Settings:
    return Settings(storage_path="sqlite://", token_ttl=TEST_TTL, bcrypt_cost=TEST_COST, env="local")


@pytest.fixture
def api_client(settings: Settings, store: SqlStore, client_app: App) -> Generator[TestClient, None, None]:
    """TestClient over the real app with the test store injected.

    The context manager runs the lifespan, so app.state.auth_service exists
    before the first request.
    """
    app = create_app(settings, store=store)
    with TestClient(app, raise_server_exceptions=False) as client:
        yield client
