"""Shared dependencies and error handling for the development backend."""

from __future__ import annotations

from typing import Any

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from quarkfin.schemas.envelope import ErrorBody
from quarkfin.store import data_store, user_id_for_token

logger = structlog.get_logger()


class BackendError(Exception):
    """An error answered with the backend's ``{error, code}`` body."""

    def __init__(self, status_code: int, message: str, code: str, details: Any = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.message = message
        self.code = code
        self.details = details


def not_found(what: str = "Assessment") -> BackendError:
    return BackendError(404, f"{what} not found", "NOT_FOUND")


async def current_user(request: Request) -> str:
    """Resolve the bearer token to a user id, provisioning the account if new."""
    header = request.headers.get("Authorization", "")
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise BackendError(401, "User authentication required", "AUTHENTICATION_REQUIRED")

    user_id = user_id_for_token(token.strip())
    data_store.ensure_user(user_id)
    return user_id


def _error_response(status_code: int, body: ErrorBody) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=body.model_dump(mode="json", exclude_none=True))


async def _backend_error_handler(request: Request, exc: BackendError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("backend_error", path=request.url.path, code=exc.code)
    return _error_response(exc.status_code, ErrorBody(error=exc.message, code=exc.code, details=exc.details))


async def _validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return _error_response(
        400,
        ErrorBody(
            error="Invalid request format",
            code="INVALID_REQUEST_FORMAT",
            details=[{"loc": list(e["loc"]), "msg": e["msg"]} for e in exc.errors()],
        ),
    )


async def _http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return _error_response(exc.status_code, ErrorBody(error=str(exc.detail), code=f"HTTP_{exc.status_code}"))


def configure_error_handlers(app: FastAPI) -> None:
    """Answer every error with the ``{error, code}`` body clients expect."""
    app.add_exception_handler(BackendError, _backend_error_handler)
    app.add_exception_handler(RequestValidationError, _validation_error_handler)
    app.add_exception_handler(StarletteHTTPException, _http_error_handler)
