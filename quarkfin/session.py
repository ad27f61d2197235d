"""Session and bearer-token supply for the API client.

The client never reads authentication state from globals. Whoever owns the
session (a UI shell, a CLI, a test) hands the client an async callable
returning the current token.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Awaitable, Callable

import structlog

from quarkfin.config import Settings

logger = structlog.get_logger()

TokenSupplier = Callable[[], Awaitable[str | None]]

DEV_TOKEN = "mock-dev-token"


@dataclass(frozen=True)
class Session:
    """Result of a sign-in with the external identity provider."""

    user_id: str
    access_token: str
    email: str | None = None
    expires_at: datetime | None = None

    @property
    def is_expired(self) -> bool:
        if self.expires_at is None:
            return False
        return datetime.now(timezone.utc) >= self.expires_at


class SessionStore:
    """Holds the current session and hands out its token."""

    def __init__(self, session: Session | None = None) -> None:
        self._session = session

    @property
    def session(self) -> Session | None:
        return self._session

    @property
    def is_authenticated(self) -> bool:
        return self._session is not None and not self._session.is_expired

    def sign_in(self, session: Session) -> None:
        self._session = session
        logger.info("session_started", user_id=session.user_id)

    def sign_out(self) -> None:
        if self._session is not None:
            logger.info("session_ended", user_id=self._session.user_id)
        self._session = None

    async def token(self) -> str | None:
        if not self.is_authenticated:
            return None
        return self._session.access_token

    def token_supplier(self) -> TokenSupplier:
        return self.token


def static_token_supplier(token: str | None) -> TokenSupplier:
    async def _supply() -> str | None:
        return token

    return _supply


def development_token_supplier(settings: Settings) -> TokenSupplier:
    """Fixed mock token in development; no token anywhere else."""
    return static_token_supplier(DEV_TOKEN if settings.is_development else None)
