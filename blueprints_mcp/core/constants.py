"""Core constants and paths for blueprints_mcp.

Single source of truth for global paths. Modules import from here instead of
hardcoding ``Path.home() / ".blueprints"``.
"""

from pathlib import Path

CONFIG_DIR_NAME = ".blueprints"


def get_config_dir() -> Path:
    """Get ~/.blueprints (global config directory)."""
    return Path.home() / CONFIG_DIR_NAME


def get_default_log_dir() -> Path:
    """Get the default directory for server.log (relative to the working directory)."""
    return Path(CONFIG_DIR_NAME) / "logs"
