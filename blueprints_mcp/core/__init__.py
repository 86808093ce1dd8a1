"""Core types, errors and helpers shared across blueprints_mcp."""

from blueprints_mcp.core.errors import BackendError, BlueprintsError, ConfigError

__all__ = [
    "BackendError",
    "BlueprintsError",
    "ConfigError",
]
