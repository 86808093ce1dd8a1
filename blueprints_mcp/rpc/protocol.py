"""JSON-RPC 2.0 protocol parsing and serialization."""

import json
from typing import Any

from blueprints_mcp.core.errors import BlueprintsError
from blueprints_mcp.rpc.types import Request, Response


class ParseError(BlueprintsError):
    """Raised when JSON-RPC request parsing fails."""


# JSON-RPC 2.0 error codes
PARSE_ERROR = -32700
INVALID_REQUEST = -32600
METHOD_NOT_FOUND = -32601
INVALID_PARAMS = -32602
INTERNAL_ERROR = -32603

JSONRPC_VERSION = "2.0"


def parse_request(body: str) -> Request:
    """Parse an HTTP body into a JSON-RPC 2.0 Request.

    The ``jsonrpc`` marker may be omitted; when present it must be "2.0".

    Args:
        body: The raw request body.

    Returns:
        A parsed Request object.

    Raises:
        ParseError: If the JSON is invalid or required fields are missing.
    """
    try:
        data = json.loads(body)
    except json.JSONDecodeError as e:
        raise ParseError(f"Invalid JSON: {e}") from e

    if not isinstance(data, dict):
        raise ParseError("Request must be a JSON object")

    jsonrpc = data.get("jsonrpc", JSONRPC_VERSION)
    if jsonrpc != JSONRPC_VERSION:
        raise ParseError(f"jsonrpc must be '2.0', got: {jsonrpc!r}")

    method = data.get("method")
    if not isinstance(method, str) or not method:
        raise ParseError(f"method must be a non-empty string, got: {type(method).__name__}")

    params = data.get("params")
    if params is not None and not isinstance(params, dict):
        raise ParseError(f"params must be an object, got: {type(params).__name__}")

    request_id = data.get("id")
    # Fractional ids are refused; bool is an int subclass and is refused too
    if request_id is not None and (
        isinstance(request_id, bool) or not isinstance(request_id, (str, int))
    ):
        raise ParseError(f"id must be string, integer, or null, got: {type(request_id).__name__}")

    return Request(
        jsonrpc=jsonrpc,
        method=method,
        params=params,
        id=request_id,
    )


def serialize_response(response: Response) -> str:
    """Serialize a Response to a JSON string (no trailing newline)."""
    data: dict[str, Any] = {
        "jsonrpc": response.jsonrpc,
        "id": response.id,
    }

    if response.error is not None:
        data["error"] = response.error
    else:
        data["result"] = response.result

    return json.dumps(data, separators=(",", ":"))


def make_error_response(
    request_id: str | int | None,
    code: int,
    message: str,
    data: Any = None,
) -> Response:
    """Create an error response.

    Args:
        request_id: The id from the original request.
        code: JSON-RPC error code.
        message: Human-readable error message.
        data: Optional additional error data.

    Returns:
        A Response with the error field populated.
    """
    error: dict[str, Any] = {
        "code": code,
        "message": message,
    }
    if data is not None:
        error["data"] = data

    return Response(
        jsonrpc=JSONRPC_VERSION,
        id=request_id,
        error=error,
    )


def make_success_response(request_id: str | int | None, result: Any) -> Response:
    """Create a success response."""
    return Response(
        jsonrpc=JSONRPC_VERSION,
        id=request_id,
        result=result,
    )
