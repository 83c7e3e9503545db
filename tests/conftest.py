"""
tests/conftest.py -- Shared test fixtures for meetai integration tests.

This module provides:
  - _make_test_store(): creates an isolated in-memory auth DB
  - _patch_lifespan(): wires the test store into app.state, bypassing real startup
  - api_client: TestClient for /api/auth and /api/health integration tests
  - web_client: TestClient with follow_redirects=False for web route tests
  - mock_auth_client: MagicMock (AsyncMock calls) standing in for web.routes.auth_client
  - social_configured: GitHub and Google credentials set on the cached Settings
  - tight_sign_in_limit: SIGN_IN_RATE_LIMIT lowered to 2/minute with fresh counters

Design: Named shared-memory SQLite URIs (not plain :memory:) are required
because TestClient runs route handlers in a thread pool. Plain :memory: DBs
are per-connection and would present a blank schema to each worker thread.
The named URI format (file:name?mode=memory&cache=shared&uri=true) shares
one in-memory instance across all connections in the same process.

Environment variables must be set before any core/auth import because
get_settings() is cached at first call.
"""

from __future__ import annotations

import asyncio
import os
import uuid
from collections.abc import Generator
from contextlib import asynccontextmanager
from unittest.mock import AsyncMock, MagicMock

# CRITICAL: set before any core/auth import.
#   DEBUG              -- get_settings() auto-generates SECRET_KEY instead of raising
#   ALLOWED_HOSTS      -- TrustedHostMiddleware must accept TestClient's "testserver"
#   SIGN_IN_RATE_LIMIT -- many sign-ins per module must not trip the limiter
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("ALLOWED_HOSTS", '["testserver", "localhost"]')
os.environ.setdefault("SIGN_IN_RATE_LIMIT", "1000/minute")

import pytest
from fastapi.testclient import TestClient

from api.limiter import limiter
from asgi import app
from auth.store import AuthStore
from core.config import Settings, get_settings

# ---------------------------------------------------------------------------
# Store helpers
# ---------------------------------------------------------------------------


def _make_test_store(db_suffix: str) -> AuthStore:
    """Create an isolated named shared-memory SQLite store.

    Args:
        db_suffix: Unique string appended to the DB name so test modules
                   don't share state (e.g. 'api', 'web', 'store').
    """
    return AuthStore(db_url=f"sqlite:///file:test_auth_{db_suffix}?mode=memory&cache=shared&uri=true")


def _patch_lifespan(auth_store: AuthStore):
    """Return an async context manager that replaces the real lifespan.

    Wires the test store into app.state so TestClient routes never open the
    production database, and mocks the OAuth registry to prevent real network
    calls.

    The purge_task is a long-sleeping coroutine (a real asyncio.Task is
    required; MagicMock would fail on .cancel()).
    """

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.auth_store = auth_store
        app.state.oauth = MagicMock()
        app.state.purge_task = asyncio.create_task(asyncio.sleep(99999))
        yield
        app.state.purge_task.cancel()

    return test_lifespan


# ---------------------------------------------------------------------------
# Store fixture -- one fresh DB per test for unit tests
# ---------------------------------------------------------------------------


@pytest.fixture
def store() -> Generator[AuthStore, None, None]:
    """Yield an empty AuthStore unique to the requesting test."""
    auth_store = _make_test_store(f"unit_{uuid.uuid4().hex}")
    yield auth_store
    auth_store.close()


# ---------------------------------------------------------------------------
# Module-scoped fixtures -- one TestClient per test module for speed
# ---------------------------------------------------------------------------


@pytest.fixture(scope="module")
def api_client(request) -> Generator[tuple[TestClient, AuthStore], None, None]:
    """Yield (client, store) for API integration tests.

    The TestClient uses the real FastAPI app with a patched lifespan so tests
    hit real route handlers against an isolated in-memory store. Tests that
    care about the session cookie clear client.cookies first: the client
    keeps cookies between requests like a browser would.
    """
    auth_store = _make_test_store(f"api_{request.module.__name__}")
    app.router.lifespan_context = _patch_lifespan(auth_store)

    with TestClient(app, raise_server_exceptions=True) as client:
        yield client, auth_store

    auth_store.close()


@pytest.fixture(scope="module")
def web_client(request) -> Generator[TestClient, None, None]:
    """Yield a TestClient for web route tests.

    follow_redirects=False is essential: the tests assert on redirect
    *locations* (e.g. 303 to /), which are invisible once the client follows
    the redirect and returns the final 200 response.
    """
    auth_store = _make_test_store(f"web_{request.module.__name__}")
    app.router.lifespan_context = _patch_lifespan(auth_store)

    with TestClient(app, follow_redirects=False, raise_server_exceptions=True) as client:
        yield client

    auth_store.close()


@pytest.fixture
def mock_auth_client(monkeypatch) -> MagicMock:
    """Replace the web layer's auth client so no request leaves the page routes.

    Tests drive the outcome by giving sign_in.email / sign_up.email a
    side_effect that calls on_success or on_error. The request methods are
    AsyncMocks because the page handlers await them; sign_in.social only
    builds a URL and stays a plain MagicMock.
    """
    mock = MagicMock()
    mock.get_session = AsyncMock(return_value=None)
    mock.sign_out = AsyncMock(return_value={"success": True})
    mock.sign_in.email = AsyncMock(return_value=None)
    mock.sign_up.email = AsyncMock(return_value=None)
    monkeypatch.setattr("web.routes.auth_client", mock)
    return mock


@pytest.fixture
def social_configured(monkeypatch) -> Settings:
    """Give both social providers credentials for the duration of one test."""
    settings = get_settings()
    monkeypatch.setattr(settings, "github_client_id", "gh-id")
    monkeypatch.setattr(settings, "github_client_secret", "gh-secret")
    monkeypatch.setattr(settings, "google_client_id", "google-id")
    monkeypatch.setattr(settings, "google_client_secret", "google-secret")
    return settings


@pytest.fixture
def tight_sign_in_limit(monkeypatch) -> Generator[str, None, None]:
    """Lower the sign-in limit for one test; counters are cleared before and after."""
    monkeypatch.setattr(get_settings(), "sign_in_rate_limit", "2/minute")
    limiter.reset()
    yield "2/minute"
    limiter.reset()
