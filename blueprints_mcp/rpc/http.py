"""Pure asyncio HTTP server for the gateway's JSON-RPC endpoint.

This module provides a minimal HTTP/1.1 server that accepts JSON-RPC 2.0
requests over POST on a single path and hands them to the SessionHandshake
state machine. Each connection carries exactly one request.

Security:
    - Binds to loopback by default; other hosts must be allowed in config.
    - Request line, headers and body are size limited (DoS protection).
    - Authorization: Bearer <token> is checked by the handshake before any
      session logic runs.

Session correlation:
    - ``mcp-session-id`` request header, or
    - ``sessionId`` query parameter.
    Replies that belong to a session carry the ``mcp-session-id`` header.

Example usage:
    gateway = build_gateway(config)
    await run_http_server(gateway.handshake, gateway.store, port=3000)
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import timedelta
from urllib.parse import parse_qs, urlsplit

from blueprints_mcp.core.errors import BlueprintsError
from blueprints_mcp.rpc.auth import extract_bearer_token
from blueprints_mcp.rpc.handshake import GatewayReply, SessionHandshake
from blueprints_mcp.rpc.protocol import (
    INTERNAL_ERROR,
    INVALID_REQUEST,
    PARSE_ERROR,
    make_error_response,
    serialize_response,
)
from blueprints_mcp.rpc.sessions import SessionStore

logger = logging.getLogger(__name__)

# Constants
DEFAULT_PORT = 3000
DEFAULT_PATH = "/mcp/messages"
MAX_BODY_SIZE = 1_048_576  # 1MB
LOOPBACK_HOSTS = ("127.0.0.1", "localhost", "::1")
SESSION_HEADER = "mcp-session-id"
SESSION_QUERY_PARAM = "sessionId"
READ_TIMEOUT = 30.0

# HTTP header limits (DoS protection)
MAX_HEADERS_COUNT = 128
MAX_HEADER_NAME_LEN = 1024
MAX_HEADER_VALUE_LEN = 8192
MAX_TOTAL_HEADERS_SIZE = 32 * 1024
MAX_REQUEST_LINE_LEN = 8192

STATUS_MESSAGES = {
    200: "OK",
    400: "Bad Request",
    401: "Unauthorized",
    403: "Forbidden",
    404: "Not Found",
    500: "Internal Server Error",
}


@dataclass
class HttpRequest:
    """Parsed HTTP request.

    Attributes:
        method: HTTP method (GET, POST, etc.)
        path: Request path without the query string (e.g., "/mcp/messages")
        headers: Dict of lowercase header names to values
        body: Request body as string
        query: Query parameters; the first value wins for repeated names
    """

    method: str
    path: str
    headers: dict[str, str]
    body: str
    query: dict[str, str] = field(default_factory=dict)


class HttpParseError(BlueprintsError):
    """Raised when HTTP request parsing fails."""


def split_target(target: str) -> tuple[str, dict[str, str]]:
    """Split a request target into path and query parameters."""
    parts = urlsplit(target)
    query = {name: values[0] for name, values in parse_qs(parts.query).items() if values}
    return parts.path or "/", query


async def _readline(reader: asyncio.StreamReader, what: str) -> bytes:
    try:
        return await asyncio.wait_for(reader.readline(), timeout=READ_TIMEOUT)
    except TimeoutError:
        raise HttpParseError(f"{what} timeout") from None
    except ValueError as e:
        # StreamReader raises ValueError when a line exceeds its buffer limit
        raise HttpParseError(f"{what} too long") from e


async def read_http_request(reader: asyncio.StreamReader) -> HttpRequest:
    """Read and parse an HTTP request from the stream.

    Args:
        reader: The asyncio StreamReader to read from.

    Returns:
        Parsed HttpRequest object.

    Raises:
        HttpParseError: If the request is malformed or too large.
    """
    request_line = await _readline(reader, "Request")
    if not request_line:
        raise HttpParseError("Empty request")

    if len(request_line) > MAX_REQUEST_LINE_LEN:
        raise HttpParseError(f"Request line too long: {len(request_line)} > {MAX_REQUEST_LINE_LEN}")

    # "POST /mcp/messages?sessionId=abc HTTP/1.1\r\n"
    try:
        request_line_str = request_line.decode("utf-8").strip()
    except UnicodeDecodeError as e:
        raise HttpParseError(f"Invalid request encoding: {e}") from e
    parts = request_line_str.split(" ")
    if len(parts) != 3:
        raise HttpParseError(f"Invalid request line: {request_line_str}")
    method, target, _version = parts
    path, query = split_target(target)

    headers: dict[str, str] = {}
    total_headers_size = 0

    while True:
        header_line = await _readline(reader, "Header read")
        if not header_line or header_line in (b"\r\n", b"\n"):
            break

        total_headers_size += len(header_line)
        if total_headers_size > MAX_TOTAL_HEADERS_SIZE:
            raise HttpParseError(
                f"Total headers size exceeds limit: {total_headers_size} > {MAX_TOTAL_HEADERS_SIZE}"
            )

        try:
            header_str = header_line.decode("utf-8").strip()
        except UnicodeDecodeError as e:
            raise HttpParseError(f"Invalid header encoding: {e}") from e

        if ":" not in header_str:
            continue  # Skip malformed headers

        name, value = header_str.split(":", 1)
        name = name.strip()
        value = value.strip()

        if len(name) > MAX_HEADER_NAME_LEN:
            raise HttpParseError(f"Header name too long: {len(name)} > {MAX_HEADER_NAME_LEN}")
        if len(value) > MAX_HEADER_VALUE_LEN:
            raise HttpParseError(f"Header value too long: {len(value)} > {MAX_HEADER_VALUE_LEN}")
        if len(headers) >= MAX_HEADERS_COUNT:
            raise HttpParseError(f"Too many headers: exceeds limit of {MAX_HEADERS_COUNT}")

        headers[name.lower()] = value

    content_length_str = headers.get("content-length", "0")
    try:
        content_length = int(content_length_str)
    except ValueError as e:
        raise HttpParseError(f"Invalid Content-Length: {content_length_str}") from e

    if content_length < 0:
        raise HttpParseError(f"Invalid Content-Length: {content_length_str}")
    if content_length > MAX_BODY_SIZE:
        raise HttpParseError(f"Request body too large: {content_length} > {MAX_BODY_SIZE}")

    body = ""
    if content_length > 0:
        try:
            body_bytes = await asyncio.wait_for(
                reader.readexactly(content_length),
                timeout=READ_TIMEOUT,
            )
            # Undecodable bytes are left for the JSON-RPC parser to reject after
            # the token check
            body = body_bytes.decode("utf-8", errors="surrogateescape")
        except TimeoutError:
            raise HttpParseError("Body read timeout") from None
        except asyncio.IncompleteReadError as e:
            raise HttpParseError(
                f"Incomplete body: expected {content_length}, got {len(e.partial)}"
            ) from e

    return HttpRequest(method=method, path=path, headers=headers, body=body, query=query)


async def send_http_response(
    writer: asyncio.StreamWriter,
    status: int,
    body: str,
    content_type: str = "application/json",
    extra_headers: dict[str, str] | None = None,
) -> None:
    """Send an HTTP response.

    Args:
        writer: The asyncio StreamWriter to write to.
        status: HTTP status code (e.g., 200, 401, 500).
        body: Response body as string; may be empty.
        content_type: Content-Type header value.
        extra_headers: Additional headers, e.g. mcp-session-id.
    """
    status_message = STATUS_MESSAGES.get(status, "Unknown")

    body_bytes = body.encode("utf-8")
    lines = [f"HTTP/1.1 {status} {status_message}"]
    if body_bytes:
        lines.append(f"Content-Type: {content_type}; charset=utf-8")
    lines.append(f"Content-Length: {len(body_bytes)}")
    for name, value in (extra_headers or {}).items():
        lines.append(f"{name}: {value}")
    lines.extend(["Connection: close", "", ""])
    response = "\r\n".join(lines).encode("utf-8") + body_bytes

    writer.write(response)
    await writer.drain()


def _route_request(
    http_request: HttpRequest,
    endpoint_path: str,
) -> tuple[str | None, int]:
    """Check that the request targets the JSON-RPC endpoint.

    Returns:
        (error message, 404) for anything but POST on the endpoint,
        (None, 200) otherwise.
    """
    if http_request.method != "POST" or http_request.path != endpoint_path:
        return f"Not found: {http_request.method} {http_request.path}", 404
    return None, 200


async def _write_reply(writer: asyncio.StreamWriter, reply: GatewayReply) -> None:
    body = serialize_response(reply.response) if reply.response is not None else ""
    extra = {SESSION_HEADER: reply.session_id} if reply.session_id else None
    await send_http_response(writer, reply.status, body, extra_headers=extra)


async def handle_parsed_request(
    http_request: HttpRequest,
    writer: asyncio.StreamWriter,
    handshake: SessionHandshake,
    endpoint_path: str = DEFAULT_PATH,
) -> None:
    """Answer one already-parsed HTTP request.

    Args:
        http_request: The parsed request.
        writer: Stream to write the response to.
        handshake: State machine that authenticates and dispatches.
        endpoint_path: The only path that accepts JSON-RPC messages.
    """
    route_error, route_status = _route_request(http_request, endpoint_path)
    if route_error is not None:
        error_response = make_error_response(None, INVALID_REQUEST, route_error)
        await send_http_response(writer, route_status, serialize_response(error_response))
        return

    reply = await handshake.handle(
        token=extract_bearer_token(http_request.headers),
        body=http_request.body,
        header_session_id=http_request.headers.get(SESSION_HEADER),
        query_session_id=http_request.query.get(SESSION_QUERY_PARAM),
    )
    logger.debug(
        "%s %s -> %d (%s)",
        http_request.method,
        http_request.path,
        reply.status,
        reply.state.value,
    )
    await _write_reply(writer, reply)


async def handle_connection(
    reader: asyncio.StreamReader,
    writer: asyncio.StreamWriter,
    handshake: SessionHandshake,
    endpoint_path: str = DEFAULT_PATH,
) -> None:
    """Handle a single HTTP connection: read, answer, close.

    Framing errors get a 400 with a PARSE_ERROR envelope. Anything
    unexpected is logged and answered with a 500.
    """
    try:
        try:
            http_request = await read_http_request(reader)
        except HttpParseError as e:
            logger.debug("Rejected unparsable HTTP request: %s", e.message)
            error_response = make_error_response(None, PARSE_ERROR, e.message)
            await send_http_response(writer, 400, serialize_response(error_response))
            return

        await handle_parsed_request(http_request, writer, handshake, endpoint_path)

    except (ConnectionResetError, BrokenPipeError):
        logger.debug("Client disconnected before the response was written")
    except Exception as e:
        logger.error("Unhandled error while serving request: %s", e, exc_info=True)
        try:
            error_response = make_error_response(None, INTERNAL_ERROR, "Internal error")
            await send_http_response(writer, 500, serialize_response(error_response))
        except (ConnectionError, RuntimeError):
            pass
    finally:
        try:
            writer.close()
            await writer.wait_closed()
        except (ConnectionError, RuntimeError):
            pass


def check_bind_host(host: str, allow_remote_bind: bool = False) -> None:
    """Refuse non-loopback hosts unless explicitly allowed.

    Raises:
        ValueError: If host is not a loopback address and remote binding is off.
    """
    if host not in LOOPBACK_HOSTS and not allow_remote_bind:
        raise ValueError(f"Security: HTTP server must bind to localhost only, not {host!r}")


async def start_http_server(
    handshake: SessionHandshake,
    host: str = "127.0.0.1",
    port: int = DEFAULT_PORT,
    path: str = DEFAULT_PATH,
    max_concurrent: int = 32,
    allow_remote_bind: bool = False,
) -> asyncio.Server:
    """Bind the gateway's HTTP server and start accepting connections.

    Args:
        handshake: State machine every request goes through.
        host: Host to bind to. Loopback unless allow_remote_bind is set.
        port: Port to listen on; 0 picks a free port.
        path: The only path that accepts JSON-RPC messages.
        max_concurrent: Maximum connections handled at the same time.
        allow_remote_bind: Permit non-loopback hosts.

    Returns:
        The listening asyncio.Server. The caller owns closing it.
    """
    check_bind_host(host, allow_remote_bind)

    # Rate limiting: limit concurrent connections
    semaphore = asyncio.Semaphore(max_concurrent)

    async def client_handler(
        reader: asyncio.StreamReader,
        writer: asyncio.StreamWriter,
    ) -> None:
        async with semaphore:
            await handle_connection(reader, writer, handshake, path)

    return await asyncio.start_server(client_handler, host=host, port=port)


async def sweep_sessions_periodically(store: SessionStore, interval: float) -> None:
    """Remove expired sessions every ``interval`` seconds until cancelled."""
    while True:
        await asyncio.sleep(interval)
        removed = store.sweep()
        if removed:
            logger.info("Removed %d expired session(s); %d active", removed, len(store))


async def run_http_server(
    handshake: SessionHandshake,
    store: SessionStore,
    host: str = "127.0.0.1",
    port: int = DEFAULT_PORT,
    path: str = DEFAULT_PATH,
    max_concurrent: int = 32,
    allow_remote_bind: bool = False,
    sweep_interval: float | timedelta = 60.0,
    started_event: asyncio.Event | None = None,
    stop_event: asyncio.Event | None = None,
) -> None:
    """Run the gateway HTTP server until cancelled or ``stop_event`` is set.

    Args:
        handshake: State machine every request goes through.
        store: Session store swept in the background.
        host: Host to bind to.
        port: Port to listen on.
        path: The only path that accepts JSON-RPC messages.
        max_concurrent: Maximum concurrent connections. Defaults to 32.
        allow_remote_bind: Permit non-loopback hosts.
        sweep_interval: Seconds between sweeps of expired sessions.
        started_event: Set once the server is bound and listening.
        stop_event: When set, the server shuts down gracefully.
    """
    if isinstance(sweep_interval, timedelta):
        sweep_interval = sweep_interval.total_seconds()

    server = await start_http_server(
        handshake,
        host=host,
        port=port,
        path=path,
        max_concurrent=max_concurrent,
        allow_remote_bind=allow_remote_bind,
    )

    if started_event:
        started_event.set()

    addr = server.sockets[0].getsockname() if server.sockets else (host, port)
    logger.info("JSON-RPC HTTP server running at http://%s:%s%s", addr[0], addr[1], path)

    sweeper = asyncio.create_task(sweep_sessions_periodically(store, sweep_interval))
    try:
        async with server:
            if stop_event is None:
                await server.serve_forever()
            else:
                await stop_event.wait()
    finally:
        sweeper.cancel()
        try:
            await sweeper
        except asyncio.CancelledError:
            pass
        server.close()
        await server.wait_closed()
        logger.info("HTTP server stopped")
