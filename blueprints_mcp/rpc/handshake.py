"""Per-request session handshake and authorization state machine.

Every request walks the same path, independent of transport:

    NO_SESSION --token ok--> AWAITING_INITIALIZE --session ok--> ACTIVE
         |                          |                              |
         +------> REJECTED <--------+------------------------------+
                  ERROR (malformed body, backend failure)

Rules, in order:
    1. Token missing or malformed                 -> 401
    2. No session id and method == initialize     -> new session, 200
    3. No session id, any other method            -> 401 session required
    4. Session id unknown or expired              -> 401 invalid session
    5. ACTIVE: notifications/initialized          -> 200, empty ack
       ACTIVE: scope denied                       -> 403 naming the scope
       ACTIVE: otherwise                          -> dispatcher

An ``initialize`` that arrives on a live session replaces that session: the
old record is destroyed and a fresh one is issued.

The machine produces a GatewayReply; writing it to the wire is the
transport's job (see blueprints_mcp.rpc.http).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any

from blueprints_mcp.core.errors import redact_token
from blueprints_mcp.rpc.auth import Authenticator, IdentityResolver
from blueprints_mcp.rpc.dispatcher import DispatcherAdapter
from blueprints_mcp.rpc.errors import (
    AuthFormatError,
    DispatchError,
    GatewayError,
    MalformedRequestError,
    ScopeDeniedError,
    SessionInvalidError,
    SessionRequiredError,
)
from blueprints_mcp.rpc.protocol import (
    INTERNAL_ERROR,
    ParseError,
    make_success_response,
    parse_request,
)
from blueprints_mcp.rpc.scopes import ScopePolicy
from blueprints_mcp.rpc.sessions import SessionRecord, is_well_formed_session_id
from blueprints_mcp.rpc.types import Request, Response

logger = logging.getLogger(__name__)

INITIALIZE_METHOD = "initialize"
INITIALIZED_NOTIFICATION = "notifications/initialized"
DEFAULT_PROTOCOL_VERSION = "2024-11-05"


class HandshakeState(Enum):
    """Where a request ended up in the handshake state machine."""

    NO_SESSION = "no_session"
    AWAITING_INITIALIZE = "awaiting_initialize"
    ACTIVE = "active"
    REJECTED = "rejected"
    ERROR = "error"


@dataclass
class GatewayReply:
    """Transport-neutral result of handling one request.

    Attributes:
        status: HTTP-style status code.
        response: JSON-RPC envelope to send, or None for an empty body.
        session_id: Session id to surface to the caller (mcp-session-id).
        state: Final state of the handshake state machine.
    """

    status: int
    response: Response | None
    state: HandshakeState
    session_id: str | None = None


def resolve_session_id(
    header_session_id: str | None,
    query_session_id: str | None,
) -> str | None:
    """Pick the session id a request carries.

    Either channel alone is enough. When both are present they must match
    exactly; a mismatch counts as no session id at all.
    """
    header = header_session_id or None
    query = query_session_id or None
    if header is not None and query is not None:
        if header != query:
            logger.warning("Ignoring mismatched session ids in header and query string")
            return None
        return header
    return header if header is not None else query


class SessionHandshake:
    """Runs the handshake/authorization state machine for single requests."""

    def __init__(
        self,
        authenticator: Authenticator,
        identity_resolver: IdentityResolver,
        policy: ScopePolicy,
        dispatcher: DispatcherAdapter,
        server_info: dict[str, Any] | None = None,
        protocol_version: str = DEFAULT_PROTOCOL_VERSION,
    ) -> None:
        """Initialize the state machine.

        Args:
            authenticator: Token format check and session creation.
            identity_resolver: Maps accepted tokens to user id and scopes.
            policy: Operation -> scope policy.
            dispatcher: Forwards authorized requests to the backend.
            server_info: ``serverInfo`` block for the initialize result.
            protocol_version: ``protocolVersion`` for the initialize result.
        """
        self._authenticator = authenticator
        self._identity_resolver = identity_resolver
        self._policy = policy
        self._dispatcher = dispatcher
        self._server_info = server_info or {
            "name": "blueprints-mcp-server",
            "version": "1.0.0",
        }
        self._protocol_version = protocol_version

    async def handle(
        self,
        token: str | None,
        body: str,
        header_session_id: str | None = None,
        query_session_id: str | None = None,
    ) -> GatewayReply:
        """Handle one request.

        Args:
            token: Bearer token from the Authorization header (None if absent).
            body: Raw request body.
            header_session_id: Value of the mcp-session-id header.
            query_session_id: Value of the sessionId query parameter.

        Returns:
            The GatewayReply to send. Never raises for request-level failures.
        """
        state = HandshakeState.NO_SESSION
        request: Request | None = None
        try:
            # Rule 1: token shape, before any session logic
            if not self._authenticator.check_token_format(token):
                logger.warning("Rejected request with bad token %s", redact_token(token))
                if token is None:
                    raise AuthFormatError("Missing or invalid authorization header")
                raise AuthFormatError("Invalid API key format")
            assert token is not None
            state = HandshakeState.AWAITING_INITIALIZE

            session_id = resolve_session_id(header_session_id, query_session_id)
            if session_id is None:
                # Rules 2 and 3: only initialize may open a session
                request = self._parse(body)
                if request.method != INITIALIZE_METHOD:
                    raise SessionRequiredError()
                return self._initialize(request, token)

            # Rule 4: the session must exist and be unexpired
            session = None
            if is_well_formed_session_id(session_id):
                session = self._authenticator.store.validate(session_id)
            if session is None:
                raise SessionInvalidError()
            state = HandshakeState.ACTIVE

            request = self._parse(body)
            return await self._handle_active(request, session, token)

        except GatewayError as e:
            final_state = (
                HandshakeState.ERROR
                if isinstance(e, (DispatchError, MalformedRequestError))
                else HandshakeState.REJECTED
            )
            logger.debug("Request ended in %s after %s: %s", final_state.value, state.value, e)
            if request is None:
                request = self._peek(body)
            if request is not None and request.is_notification:
                return GatewayReply(status=e.http_status, response=None, state=final_state)
            request_id = request.id if request is not None else None
            return GatewayReply(
                status=e.http_status,
                response=e.to_response(request_id),
                state=final_state,
            )

    def _initialize(self, request: Request, token: str) -> GatewayReply:
        identity = self._identity_resolver.resolve_identity(token)
        session = self._authenticator.authorize(token, identity.user_id, identity.scopes)
        result = {
            "protocolVersion": self._protocol_version,
            "capabilities": {"tools": {}},
            "serverInfo": dict(self._server_info),
        }
        return GatewayReply(
            status=200,
            response=None if request.is_notification else make_success_response(request.id, result),
            state=HandshakeState.ACTIVE,
            session_id=session.id,
        )

    async def _handle_active(
        self,
        request: Request,
        session: SessionRecord,
        token: str,
    ) -> GatewayReply:
        if request.method == INITIALIZED_NOTIFICATION:
            return GatewayReply(
                status=200, response=None, state=HandshakeState.ACTIVE, session_id=session.id
            )

        if request.method == INITIALIZE_METHOD:
            # Re-handshake: the old session is replaced, not extended
            self._authenticator.store.destroy(session.id)
            return self._initialize(request, token)

        decision = self._policy.authorize(session, request.method)
        if not decision.allowed:
            assert decision.required_scope is not None
            logger.warning(
                "User '%s' denied %s (needs scope '%s')",
                session.user_id,
                request.method,
                decision.required_scope,
            )
            raise ScopeDeniedError(decision.required_scope, request.method)

        response = await self._dispatcher.dispatch(request, token)
        failed = response.error is not None and response.error.get("code") == INTERNAL_ERROR
        return GatewayReply(
            status=500 if failed else 200,
            response=None if request.is_notification else response,
            state=HandshakeState.ERROR if failed else HandshakeState.ACTIVE,
            session_id=session.id,
        )

    @staticmethod
    def _parse(body: str) -> Request:
        try:
            return parse_request(body)
        except ParseError as e:
            raise MalformedRequestError(e.message) from e

    @staticmethod
    def _peek(body: str) -> Request | None:
        """Best-effort parse used only to shape error replies."""
        try:
            return parse_request(body)
        except ParseError:
            return None
