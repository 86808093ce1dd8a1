"""Operation -> scope policy.

Callers may name an operation either bare (``list_agents``) or namespaced
(``tools/list_agents``); both spellings always resolve to the same scope
because the namespace is stripped before lookup.

A session holding the superuser scope passes every check.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Literal

from blueprints_mcp.rpc.sessions import SessionRecord

logger = logging.getLogger(__name__)

SCOPE_READ = "read"
SCOPE_WRITE = "write"
SCOPE_EXECUTE = "execute"
SCOPE_TERMINAL = "terminal"
SUPERUSER_SCOPE = "admin"

TOOL_NAMESPACE = "tools/"

# None means no scope is required
DEFAULT_SCOPE_MAP: dict[str, str | None] = {
    "list_agents": SCOPE_READ,
    "create_agent": SCOPE_WRITE,
    "start_agent": SCOPE_EXECUTE,
    "stop_agent": SCOPE_EXECUTE,
    "edit_agent_config": SCOPE_WRITE,
    "remove_agent": SCOPE_WRITE,
    "send_message": SCOPE_WRITE,
    "send_terminal": SCOPE_TERMINAL,
    "agent_status": SCOPE_READ,
    "account_register": SCOPE_READ,
    "pay_upgrade": SCOPE_READ,
    "list": None,
    "ping": None,
}

UnmappedPolicy = Literal["allow", "deny"]


def normalize_operation(operation: str) -> str:
    """Strip the tools/ namespace from an operation name."""
    if operation.startswith(TOOL_NAMESPACE):
        return operation[len(TOOL_NAMESPACE):]
    return operation


@dataclass(frozen=True)
class ScopeDecision:
    """Outcome of a scope check.

    Attributes:
        allowed: Whether the operation may proceed.
        required_scope: The scope that was (or would have been) needed.
    """

    allowed: bool
    required_scope: str | None = None


class ScopePolicy:
    """Static operation -> scope mapping plus the superuser rule."""

    def __init__(
        self,
        scope_map: Mapping[str, str | None] | None = None,
        superuser_scope: str = SUPERUSER_SCOPE,
        unmapped: UnmappedPolicy = "allow",
    ) -> None:
        """Initialize the policy.

        Args:
            scope_map: Bare operation name -> required scope (None = public).
                Namespaced keys are accepted and normalized.
                Defaults to DEFAULT_SCOPE_MAP.
            superuser_scope: Scope that satisfies every requirement.
            unmapped: "allow" lets unknown operations through without a scope;
                "deny" reserves them for the superuser scope.
        """
        source = DEFAULT_SCOPE_MAP if scope_map is None else scope_map
        self._scope_map = {normalize_operation(op): scope for op, scope in source.items()}
        self._superuser_scope = superuser_scope
        self._unmapped = unmapped

    @property
    def superuser_scope(self) -> str:
        return self._superuser_scope

    def is_mapped(self, operation: str) -> bool:
        return normalize_operation(operation) in self._scope_map

    def required_scope(self, operation: str) -> str | None:
        """Scope needed to invoke ``operation``, or None if none is needed."""
        name = normalize_operation(operation)
        if name in self._scope_map:
            return self._scope_map[name]
        if self._unmapped == "deny":
            return self._superuser_scope
        return None

    def has_scope(self, session: SessionRecord, scope: str) -> bool:
        """True if the session holds ``scope`` or the superuser scope."""
        if self._superuser_scope in session.scopes:
            return True
        return scope in session.scopes

    def authorize(self, session: SessionRecord, operation: str) -> ScopeDecision:
        """Decide whether ``session`` may invoke ``operation``."""
        if self._superuser_scope in session.scopes:
            return ScopeDecision(allowed=True, required_scope=self.required_scope(operation))

        required = self.required_scope(operation)
        if required is None:
            return ScopeDecision(allowed=True)

        if required in session.scopes:
            return ScopeDecision(allowed=True, required_scope=required)

        logger.debug(
            "Scope check failed for user '%s': %s requires '%s'",
            session.user_id,
            operation,
            required,
        )
        return ScopeDecision(allowed=False, required_scope=required)
