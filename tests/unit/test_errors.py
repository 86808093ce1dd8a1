"""Unit tests for the error hierarchy and its JSON-RPC mapping."""

import pytest

from blueprints_mcp.core.errors import BackendError, BlueprintsError, redact_token
from blueprints_mcp.rpc.errors import (
    AuthFormatError,
    DispatchError,
    GatewayError,
    MalformedRequestError,
    ScopeDeniedError,
    SessionInvalidError,
    SessionRequiredError,
)
from blueprints_mcp.rpc.protocol import INTERNAL_ERROR, INVALID_REQUEST, PARSE_ERROR


@pytest.mark.parametrize(
    "error, status, code",
    [
        (AuthFormatError("Invalid API key format"), 401, INVALID_REQUEST),
        (SessionRequiredError(), 401, INVALID_REQUEST),
        (SessionInvalidError(), 401, INVALID_REQUEST),
        (ScopeDeniedError("terminal", "send_terminal"), 403, INVALID_REQUEST),
        (DispatchError("Internal error"), 500, INTERNAL_ERROR),
        (MalformedRequestError("Invalid JSON"), 500, PARSE_ERROR),
    ],
)
def test_status_and_code(error, status, code) -> None:
    assert isinstance(error, GatewayError)
    assert isinstance(error, BlueprintsError)
    assert error.http_status == status
    assert error.to_response(7).error["code"] == code
    assert error.to_response(7).id == 7


def test_default_messages() -> None:
    assert SessionRequiredError().message == "Session required for this request"
    assert SessionInvalidError().message == "Invalid or expired session"


def test_scope_denied_names_scope() -> None:
    error = ScopeDeniedError("terminal", "tools/send_terminal")
    response = error.to_response(1)

    assert response.error["message"] == "Insufficient permissions. Required scope: terminal"
    assert response.error["data"] == {"required_scope": "terminal", "method": "tools/send_terminal"}


def test_error_without_data_has_no_data_key() -> None:
    assert "data" not in SessionInvalidError().to_response(None).error


class TestBackendError:
    def test_http_status(self) -> None:
        error = BackendError(503, "Service Unavailable")
        assert error.message == "HTTP 503: Service Unavailable"
        assert error.status_code == 503

    def test_transport_failure(self) -> None:
        assert BackendError(0, "Connection failed: refused").message == "Connection failed: refused"


class TestRedactToken:
    def test_keeps_prefix_only(self) -> None:
        assert redact_token("bp_sk_supersecretvalue") == "bp_sk_..."

    def test_none(self) -> None:
        assert redact_token(None) == "<none>"

    def test_short_token_fully_hidden(self) -> None:
        assert redact_token("abc") == "***"
