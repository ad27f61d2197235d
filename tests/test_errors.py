"""Tests for error normalisation."""

from __future__ import annotations

import httpx
import pytest
from pydantic import BaseModel, ValidationError

from quarkfin.errors import (
    NETWORK_ERROR,
    TIMEOUT_ERROR,
    UNKNOWN_ERROR,
    APIError,
    from_response,
    normalize_error,
)


def _response(status: int, **kwargs) -> httpx.Response:
    return httpx.Response(status, request=httpx.Request("GET", "http://testserver/x"), **kwargs)


# ─── Test 1: Backend error responses ───────────────────────────────────────

class TestFromResponse:
    """Non-2xx responses keep the backend's own message and code."""

    def test_backend_fields_preferred(self):
        """Backend error and code should be used as given."""
        error = from_response(_response(402, json={"error": "Insufficient credits", "code": "INSUFFICIENT_CREDITS"}))
        assert error.message == "Insufficient credits"
        assert error.code == "INSUFFICIENT_CREDITS"
        assert error.status == 402
        assert error.details == {"error": "Insufficient credits", "code": "INSUFFICIENT_CREDITS"}

    def test_message_field_used_when_no_error_field(self):
        """Message field should be used when error is absent."""
        error = from_response(_response(500, json={"message": "boom"}))
        assert error.message == "boom"
        assert error.code == "HTTP_500"

    def test_synthesised_message_and_code(self):
        """Empty body should produce HTTP status message and code."""
        error = from_response(_response(503, json={}))
        assert error.message == "HTTP 503 Error"
        assert error.code == "HTTP_503"
        assert error.status == 503

    def test_text_body_kept_as_details(self):
        """Non-JSON body should be kept as details."""
        error = from_response(_response(502, text="Bad Gateway"))
        assert error.code == "HTTP_502"
        assert error.details == "Bad Gateway"

    def test_empty_body_has_no_details(self):
        """Empty body should leave details unset."""
        error = from_response(_response(404))
        assert error.details is None
        assert error.message == "HTTP 404 Error"


# ─── Test 2: Transport failures ────────────────────────────────────────────

class TestTransportFailures:
    """Failures without a response map to status 0."""

    def test_timeout(self):
        """Timeout should map to TIMEOUT_ERROR with status 0."""
        error = normalize_error(httpx.ReadTimeout("timed out"))
        assert error.code == TIMEOUT_ERROR
        assert error.status == 0

    def test_connect_timeout_is_timeout_not_network(self):
        """Connect timeout should count as a timeout."""
        error = normalize_error(httpx.ConnectTimeout("connect timed out"))
        assert error.code == TIMEOUT_ERROR

    def test_network_error(self):
        """Connection failure should map to NETWORK_ERROR."""
        error = normalize_error(httpx.ConnectError("connection refused"))
        assert error.code == NETWORK_ERROR
        assert error.status == 0
        assert error.details == {"error": "connection refused"}

    def test_http_status_error_uses_response(self):
        """HTTPStatusError should be read from its response."""
        response = _response(401, json={"error": "User authentication required", "code": "AUTHENTICATION_REQUIRED"})
        exc = httpx.HTTPStatusError("unauthorised", request=response.request, response=response)
        error = normalize_error(exc)
        assert error.status == 401
        assert error.code == "AUTHENTICATION_REQUIRED"


# ─── Test 3: Everything else ───────────────────────────────────────────────

class TestUnknownFailures:
    """Anything unrecognised becomes UNKNOWN_ERROR without a status."""

    def test_plain_exception(self):
        """Plain exception should map to UNKNOWN_ERROR."""
        error = normalize_error(RuntimeError("kaboom"))
        assert error.code == UNKNOWN_ERROR
        assert error.status is None
        assert error.message == "kaboom"

    def test_empty_message_gets_default(self):
        """Exception without text should get a default message."""
        error = normalize_error(ValueError())
        assert error.message == "An unexpected error occurred"

    def test_validation_error(self):
        """Validation error should map to UNKNOWN_ERROR."""
        class Model(BaseModel):
            count: int

        with pytest.raises(ValidationError) as info:
            Model.model_validate({"count": "many"})
        assert normalize_error(info.value).code == UNKNOWN_ERROR


# ─── Test 4: Idempotence and value semantics ───────────────────────────────

class TestAPIErrorValue:
    """Normalising an APIError is a no-op; errors compare by content."""

    def test_normalize_is_idempotent(self):
        """Normalising an APIError should return it unchanged."""
        original = normalize_error(httpx.ConnectError("down"))
        assert normalize_error(original) is original
        assert normalize_error(normalize_error(original)) == original

    def test_equality_by_fields(self):
        """Errors with the same fields should compare equal."""
        a = APIError("nope", "HTTP_404", status=404)
        b = APIError("nope", "HTTP_404", status=404)
        assert a == b
        assert a != APIError("nope", "HTTP_404", status=400)

    def test_to_dict_omits_missing_fields(self):
        """to_dict should leave out unset fields."""
        assert APIError("x", UNKNOWN_ERROR).to_dict() == {"message": "x", "code": UNKNOWN_ERROR}

    def test_is_raisable(self):
        """APIError should raise and render like an exception."""
        with pytest.raises(APIError) as info:
            raise APIError("bad", "HTTP_400", status=400)
        assert str(info.value) == "bad"
        assert "HTTP_400" in repr(info.value)
