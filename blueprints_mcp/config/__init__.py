"""Configuration loading and validation."""

from blueprints_mcp.config.loader import load_config
from blueprints_mcp.config.schema import (
    AuthConfig,
    BackendConfig,
    Config,
    ScopePolicyConfig,
    ServerConfig,
    ServerInfoConfig,
)

__all__ = [
    "AuthConfig",
    "BackendConfig",
    "Config",
    "ScopePolicyConfig",
    "ServerConfig",
    "ServerInfoConfig",
    "load_config",
]
