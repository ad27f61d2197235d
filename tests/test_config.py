"""Tests for settings and session handling."""

from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone

import pytest
from pydantic import ValidationError

from quarkfin.config import DEV_API_URL, Settings
from quarkfin.session import (
    DEV_TOKEN,
    Session,
    SessionStore,
    development_token_supplier,
    static_token_supplier,
)


# ─── Test 1: Settings ──────────────────────────────────────────────────────

class TestSettings:
    """Defaults, environment overrides and derived values."""

    def test_defaults(self):
        """Defaults should match the client timing constants."""
        settings = Settings()
        assert settings.request_timeout_seconds == 30.0
        assert settings.max_retries == 3
        assert settings.retry_base_delay_seconds == 1.0
        assert settings.poll_max_attempts == 60
        assert settings.poll_interval_seconds == 2.0

    def test_env_override(self, monkeypatch):
        """Environment variables should override defaults."""
        monkeypatch.setenv("QUARKFIN_API_URL", "https://api.example.com/")
        monkeypatch.setenv("QUARKFIN_MAX_RETRIES", "5")
        settings = Settings()
        assert settings.resolved_api_url == "https://api.example.com"
        assert settings.max_retries == 5

    def test_environment_validated(self):
        """Unknown environment should be rejected."""
        with pytest.raises(ValidationError):
            Settings(environment="qa")

    def test_retry_budget_must_be_positive(self):
        """Zero retry budget should be rejected."""
        with pytest.raises(ValidationError):
            Settings(max_retries=0)

    def test_api_url_fallbacks(self):
        """Missing API URL should fall back per environment."""
        assert Settings(environment="development", api_url="").resolved_api_url == DEV_API_URL
        staging = Settings(environment="staging", api_url="", platform_url="https://staging.quarkfin.ai")
        assert staging.resolved_api_url == "https://staging.quarkfin.ai/api"

    def test_origins_list(self):
        """Allowed origins should be split and trimmed."""
        settings = Settings(allowed_origins="http://a.test, http://b.test")
        assert settings.allowed_origins_list == ["http://a.test", "http://b.test"]

    def test_identity_provider_configured(self):
        """Identity provider needs both pool and client ids."""
        assert not Settings(cognito_user_pool_id="", cognito_client_id="").has_identity_provider
        assert Settings(cognito_user_pool_id="pool", cognito_client_id="client").has_identity_provider


# ─── Test 2: Sessions and tokens ───────────────────────────────────────────

class TestSessions:
    """Token suppliers hand the client the current bearer token."""

    def test_store_lifecycle(self):
        """Supplier should follow sign in and sign out."""
        store = SessionStore()
        supplier = store.token_supplier()
        assert asyncio.run(supplier()) is None

        store.sign_in(Session(user_id="u1", access_token="tok"))
        assert store.is_authenticated
        assert asyncio.run(supplier()) == "tok"

        store.sign_out()
        assert asyncio.run(supplier()) is None

    def test_expired_session_has_no_token(self):
        """Expired session should yield no token."""
        expired = Session(user_id="u1", access_token="tok", expires_at=datetime.now(timezone.utc) - timedelta(minutes=1))
        store = SessionStore(expired)
        assert expired.is_expired
        assert not store.is_authenticated
        assert asyncio.run(store.token()) is None

    def test_static_supplier(self):
        """Static supplier should return its token."""
        assert asyncio.run(static_token_supplier("abc")()) == "abc"

    def test_development_supplier(self):
        """Development token should only be supplied in development."""
        dev = development_token_supplier(Settings(environment="development"))
        prod = development_token_supplier(Settings(environment="production"))
        assert asyncio.run(dev()) == DEV_TOKEN
        assert asyncio.run(prod()) is None
