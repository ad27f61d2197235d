"""Shared test fixtures for the QuarkfinAI platform test suite."""

from __future__ import annotations

import httpx
import pytest
from fastapi.testclient import TestClient

from quarkfin.app import create_app
from quarkfin.client import QuarkfinClient
from quarkfin.config import Settings
from quarkfin.session import DEV_TOKEN, static_token_supplier
from quarkfin.store import data_store

TEST_API_URL = "http://testserver"


def _test_settings(**overrides) -> Settings:
    """Return settings suitable for testing."""
    values = {
        "environment": "development",
        "debug": True,
        "log_format": "console",
        "api_url": TEST_API_URL,
        "rate_limit_default": "1000/minute",
        "allowed_origins": "http://localhost:3000,http://localhost:5173",
        "stub_processing_polls": 2,
        "stub_initial_credits": 10,
    }
    values.update(overrides)
    return Settings(**values)


class RecordingSleep:
    """Stand-in for ``asyncio.sleep`` that records delays instead of waiting."""

    def __init__(self) -> None:
        self.calls: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.calls.append(delay)


@pytest.fixture
def settings():
    """Test settings."""
    return _test_settings()


@pytest.fixture
def app(settings):
    """Create a fresh FastAPI app for testing."""
    return create_app(settings)


@pytest.fixture
def client(app):
    """HTTP test client for the development backend."""
    return TestClient(app)


@pytest.fixture
def auth_headers():
    """Authorization header carrying the development token."""
    return {"Authorization": f"Bearer {DEV_TOKEN}"}


@pytest.fixture(autouse=True)
def reset_store():
    """Reset the global data store before each test."""
    data_store.reset()
    yield
    data_store.reset()


@pytest.fixture
def sleeps():
    """Recorded backoff and polling delays."""
    return RecordingSleep()


@pytest.fixture
def make_client(app, settings, sleeps):
    """Build an API client wired to the in-process backend, or to a custom handler.

    ``make_client()`` talks to the FastAPI app over ASGI;
    ``make_client(handler=fn)`` routes every request through ``fn``.
    """

    def _make(handler=None, token=DEV_TOKEN, **overrides) -> QuarkfinClient:
        client_settings = settings.model_copy(update=overrides) if overrides else settings
        if handler is not None:
            transport = httpx.MockTransport(handler)
        else:
            transport = httpx.ASGITransport(app=app)
        return QuarkfinClient(
            settings=client_settings,
            token_supplier=static_token_supplier(token),
            transport=transport,
            sleep=sleeps,
        )

    return _make
