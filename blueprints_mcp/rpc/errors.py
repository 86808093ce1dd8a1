"""Per-request gateway failures and their HTTP/JSON-RPC mapping.

Each error is a terminal outcome for one request. The HTTP layer turns it
into a status code plus a JSON-RPC error envelope (or an empty body for
notifications); none of them stop the server.
"""

from __future__ import annotations

from typing import Any

from blueprints_mcp.core.errors import BlueprintsError
from blueprints_mcp.rpc.protocol import (
    INTERNAL_ERROR,
    INVALID_REQUEST,
    PARSE_ERROR,
    make_error_response,
)
from blueprints_mcp.rpc.types import Response


class GatewayError(BlueprintsError):
    """Base class for request-level gateway failures.

    Attributes:
        http_status: HTTP status code to answer with.
        code: JSON-RPC error code for the error envelope.
        data: Optional structured diagnostic data.
    """

    http_status = 500
    code = INTERNAL_ERROR

    def __init__(self, message: str, data: Any = None) -> None:
        super().__init__(message)
        self.data = data

    def to_response(self, request_id: str | int | None = None) -> Response:
        return make_error_response(request_id, self.code, self.message, self.data)


class AuthFormatError(GatewayError):
    """Missing Authorization header or a token with the wrong shape."""

    http_status = 401
    code = INVALID_REQUEST


class SessionRequiredError(GatewayError):
    """A non-handshake method arrived without a session id."""

    http_status = 401
    code = INVALID_REQUEST

    def __init__(self, message: str = "Session required for this request") -> None:
        super().__init__(message)


class SessionInvalidError(GatewayError):
    """The supplied session id is unknown or has expired."""

    http_status = 401
    code = INVALID_REQUEST

    def __init__(self, message: str = "Invalid or expired session") -> None:
        super().__init__(message)


class ScopeDeniedError(GatewayError):
    """The session lacks the scope an operation requires."""

    http_status = 403
    code = INVALID_REQUEST

    def __init__(self, required_scope: str, method: str) -> None:
        self.required_scope = required_scope
        self.method = method
        super().__init__(
            f"Insufficient permissions. Required scope: {required_scope}",
            data={"required_scope": required_scope, "method": method},
        )


class DispatchError(GatewayError):
    """The backend call failed or timed out."""

    http_status = 500
    code = INTERNAL_ERROR


class MalformedRequestError(GatewayError):
    """The request body is not a valid JSON-RPC request."""

    http_status = 500
    code = PARSE_ERROR
