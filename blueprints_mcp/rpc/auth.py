"""Bearer token checks and session authorization for the gateway.

Token Format: bp_sk_ + opaque characters, longer than a minimum length.

The gateway only checks the *shape* of a token. Whether the key is registered
or revoked is decided by the Blueprints API, which sees the token again on
every forwarded operation call.

Example usage:
    authenticator = Authenticator(store)
    token = extract_bearer_token(headers)
    if token and authenticator.check_token_format(token):
        identity = StaticIdentityResolver("demo-user", ["read"]).resolve_identity(token)
        session = authenticator.authorize(token, identity.user_id, identity.scopes)
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Protocol

from blueprints_mcp.core.errors import redact_token
from blueprints_mcp.rpc.errors import AuthFormatError
from blueprints_mcp.rpc.sessions import SessionRecord, SessionStore

logger = logging.getLogger(__name__)

# API key prefix for identification
API_KEY_PREFIX = "bp_sk_"

# Tokens must be strictly longer than this
MIN_TOKEN_LENGTH = 8


def extract_bearer_token(headers: Mapping[str, str]) -> str | None:
    """Extract Bearer token from Authorization header.

    Args:
        headers: Dict of lowercase header names to values.

    Returns:
        The token if the header uses the Bearer scheme, None otherwise.
    """
    auth_header = headers.get("authorization", "")
    if auth_header.lower().startswith("bearer "):
        token = auth_header[7:].strip()
        return token or None
    return None


@dataclass(frozen=True)
class Identity:
    """Who a token acts for and what it may do."""

    user_id: str
    scopes: frozenset[str]


class IdentityResolver(Protocol):
    """Maps an accepted bearer token to the identity its session gets."""

    def resolve_identity(self, token: str) -> Identity: ...


class StaticIdentityResolver:
    """Binds every accepted token to the same configured identity.

    Suitable while the Blueprints API offers no token introspection; swap in a
    resolver that asks the backend once per-token identities exist.
    """

    def __init__(self, user_id: str, scopes: Iterable[str]) -> None:
        scope_set = frozenset(scopes)
        if not scope_set:
            raise ValueError("StaticIdentityResolver needs at least one scope")
        self._identity = Identity(user_id=user_id, scopes=scope_set)

    def resolve_identity(self, token: str) -> Identity:
        return self._identity


class Authenticator:
    """Validates token shape and opens sessions for accepted tokens."""

    def __init__(
        self,
        store: SessionStore,
        prefix: str = API_KEY_PREFIX,
        min_length: int = MIN_TOKEN_LENGTH,
    ) -> None:
        self._store = store
        self._prefix = prefix
        self._min_length = min_length

    @property
    def store(self) -> SessionStore:
        return self._store

    def check_token_format(self, token: str | None) -> bool:
        """True iff token has the required prefix and is longer than the minimum."""
        if not token:
            return False
        return token.startswith(self._prefix) and len(token) > self._min_length

    def authorize(
        self,
        token: str,
        user_id: str,
        scopes: Iterable[str],
    ) -> SessionRecord:
        """Create a session for a well-formed token.

        Args:
            token: Caller's bearer token.
            user_id: Identity to bind the session to.
            scopes: Scopes to grant.

        Returns:
            The new SessionRecord.

        Raises:
            AuthFormatError: If the token fails the format check.
        """
        if not self.check_token_format(token):
            logger.warning("Rejected session request for malformed token %s", redact_token(token))
            raise AuthFormatError("Invalid API key format")
        return self._store.create(user_id, scopes)
