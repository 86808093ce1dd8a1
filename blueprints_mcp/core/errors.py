"""Typed exception hierarchy for blueprints_mcp."""

from __future__ import annotations


class BlueprintsError(Exception):
    """Base class for all blueprints_mcp errors."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class ConfigError(BlueprintsError):
    """Raised for configuration issues (missing file, invalid JSON, validation failure)."""


class BackendError(BlueprintsError):
    """Raised when the Blueprints API answers with a non-2xx status.

    Attributes:
        status_code: HTTP status returned by the backend (0 for transport failures).
        reason: HTTP reason phrase or transport error text.
    """

    def __init__(self, status_code: int, reason: str) -> None:
        self.status_code = status_code
        self.reason = reason
        if status_code:
            super().__init__(f"HTTP {status_code}: {reason}")
        else:
            super().__init__(reason)


def redact_token(token: str | None, visible: int = 6) -> str:
    """Shorten a bearer token for log output.

    Only the first ``visible`` characters (normally the key prefix) survive.

    Args:
        token: The raw token, or None.
        visible: Number of leading characters to keep.

    Returns:
        A string safe to write to logs.
    """
    if not token:
        return "<none>"
    return f"{token[:visible]}..." if len(token) > visible else "***"
