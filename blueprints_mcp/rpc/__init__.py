"""JSON-RPC gateway: sessions, authentication, scopes and the HTTP transport."""

from blueprints_mcp.rpc.auth import (
    Authenticator,
    Identity,
    IdentityResolver,
    StaticIdentityResolver,
    extract_bearer_token,
)
from blueprints_mcp.rpc.dispatcher import (
    DispatcherAdapter,
    InvalidParamsError,
    OperationBackend,
    UnknownOperationError,
)
from blueprints_mcp.rpc.errors import (
    AuthFormatError,
    DispatchError,
    GatewayError,
    MalformedRequestError,
    ScopeDeniedError,
    SessionInvalidError,
    SessionRequiredError,
)
from blueprints_mcp.rpc.handshake import GatewayReply, HandshakeState, SessionHandshake
from blueprints_mcp.rpc.scopes import DEFAULT_SCOPE_MAP, ScopeDecision, ScopePolicy
from blueprints_mcp.rpc.sessions import SessionRecord, SessionStore
from blueprints_mcp.rpc.types import Request, Response

__all__ = [
    "AuthFormatError",
    "Authenticator",
    "DEFAULT_SCOPE_MAP",
    "DispatchError",
    "DispatcherAdapter",
    "GatewayError",
    "GatewayReply",
    "HandshakeState",
    "Identity",
    "IdentityResolver",
    "InvalidParamsError",
    "MalformedRequestError",
    "OperationBackend",
    "Request",
    "Response",
    "ScopeDecision",
    "ScopeDeniedError",
    "ScopePolicy",
    "SessionHandshake",
    "SessionInvalidError",
    "SessionRecord",
    "SessionRequiredError",
    "SessionStore",
    "StaticIdentityResolver",
    "UnknownOperationError",
    "extract_bearer_token",
]
