"""Normalised API errors.

Every failure coming out of the API layer is converted to one shape,
``APIError``, regardless of whether it started as a transport problem, a
client-side timeout or a non-2xx response from the backend.
"""

from __future__ import annotations

from typing import Any

import httpx

NETWORK_ERROR = "NETWORK_ERROR"
TIMEOUT_ERROR = "TIMEOUT_ERROR"
UNKNOWN_ERROR = "UNKNOWN_ERROR"


class APIError(Exception):
    """Uniform error raised by the API client."""

    def __init__(
        self,
        message: str,
        code: str,
        status: int | None = None,
        details: Any = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code
        self.status = status
        self.details = details

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"message": self.message, "code": self.code}
        if self.status is not None:
            data["status"] = self.status
        if self.details is not None:
            data["details"] = self.details
        return data

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, APIError):
            return NotImplemented
        return self.to_dict() == other.to_dict()

    __hash__ = Exception.__hash__

    def __repr__(self) -> str:
        return f"APIError(code={self.code!r}, status={self.status!r}, message={self.message!r})"


def _response_body(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return response.text or None


def from_response(response: httpx.Response) -> APIError:
    """Build an error from a non-2xx response, preferring the backend's own fields."""
    status = response.status_code
    body = _response_body(response)

    message = f"HTTP {status} Error"
    code = f"HTTP_{status}"
    if isinstance(body, dict):
        message = body.get("error") or body.get("message") or message
        code = body.get("code") or code

    return APIError(message=str(message), code=str(code), status=status, details=body)


def normalize_error(exc: BaseException) -> APIError:
    """Convert any exception raised while talking to the backend into an ``APIError``."""
    if isinstance(exc, APIError):
        return exc

    if isinstance(exc, httpx.TimeoutException):
        return APIError(
            message="Request timed out - please try again",
            code=TIMEOUT_ERROR,
            status=0,
            details={"error": str(exc) or "Request exceeded the client timeout"},
        )

    if isinstance(exc, httpx.HTTPStatusError):
        return from_response(exc.response)

    if isinstance(exc, httpx.RequestError):
        return APIError(
            message="Network error - please check your internet connection",
            code=NETWORK_ERROR,
            status=0,
            details={"error": str(exc)},
        )

    return APIError(
        message=str(exc) or "An unexpected error occurred",
        code=UNKNOWN_ERROR,
        details={"error": str(exc)},
    )
