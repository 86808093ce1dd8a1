"""Blueprints MCP gateway: session-scoped JSON-RPC access to Blueprints agents."""

__version__ = "1.0.0"
