"""Response envelope convention shared by the backend and the client."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel


class ErrorBody(BaseModel):
    """Error body returned by the backend for any non-2xx response."""

    error: str
    code: str | None = None
    details: Any = None


def unwrap_envelope(body: Any) -> Any:
    """Return the payload of a ``{data, status, message?}`` wrapper, or the body itself."""
    if isinstance(body, dict) and "data" in body and body.get("status") == "success":
        return body["data"]
    return body


def is_error_envelope(body: Any) -> bool:
    """A 2xx body that still reports ``status: "error"``."""
    return isinstance(body, dict) and body.get("status") == "error" and (
        "data" in body or "error" in body or "message" in body
    )
