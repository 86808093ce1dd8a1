"""Blueprints REST API client and the operations the gateway exposes."""

from blueprints_mcp.backend.client import BlueprintsAPIClient
from blueprints_mcp.backend.operations import TOOLS, BlueprintsBackend, ToolSpec

__all__ = [
    "BlueprintsAPIClient",
    "BlueprintsBackend",
    "TOOLS",
    "ToolSpec",
]
