"""Configuration loading with fail-fast behavior and layered merging.

Layers, later ones win:
1. Global user config (~/.blueprints/config.json)
2. Project local config (cwd/.blueprints/config.json)
3. Environment overrides (BLUEPRINTS_BASE_URL)

When no layer provides anything, the Pydantic defaults are used.
"""

import json
import logging
import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from blueprints_mcp.config.schema import Config
from blueprints_mcp.core.constants import CONFIG_DIR_NAME, get_config_dir
from blueprints_mcp.core.errors import ConfigError
from blueprints_mcp.core.utils import deep_merge

logger = logging.getLogger(__name__)

# Environment variable -> (section, key)
ENV_OVERRIDES: dict[str, tuple[str, str]] = {
    "BLUEPRINTS_BASE_URL": ("backend", "base_url"),
}


def read_config_layer(path: Path, required: bool = False) -> dict[str, Any] | None:
    """Read one JSON config file.

    Args:
        path: The config file.
        required: Raise if the file is missing instead of returning None.

    Returns:
        The parsed object ({} for an empty file), or None for a missing
        optional layer.

    Raises:
        ConfigError: If the file is unreadable, is not valid JSON, is not a
            JSON object, or is missing while required.
    """
    if not path.is_file():
        if required:
            raise ConfigError(f"File not found: {path}")
        logger.debug("No config layer at %s", path)
        return None

    try:
        # utf-8-sig tolerates a BOM left by Windows editors
        content = path.read_text(encoding="utf-8-sig").strip()
    except OSError as e:
        raise ConfigError(f"Failed to read config {path}: {e}") from e

    if not content:
        return {}

    try:
        data = json.loads(content)
    except json.JSONDecodeError as e:
        raise ConfigError(f"Invalid JSON in config {path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigError(f"Config {path} must hold a JSON object, got {type(data).__name__}")
    return data


def load_config(
    path: Path | None = None,
    cwd: Path | None = None,
    environ: Mapping[str, str] | None = None,
) -> Config:
    """Load configuration from file(s) with layered merging.

    Args:
        path: Explicit config file path. If provided, skips the global and
            local layers (environment overrides still apply).
        cwd: Working directory for the local layer. Defaults to Path.cwd().
        environ: Environment mapping for overrides. Defaults to os.environ.

    Returns:
        Validated Config object.

    Raises:
        ConfigError: If any config file is unreadable or invalid, or the merged
            config fails validation.
    """
    env = os.environ if environ is None else environ
    merged: dict[str, Any] = {}
    loaded_from: list[str] = []

    if path is not None:
        merged = read_config_layer(path, required=True) or {}
        loaded_from.append(str(path))
    else:
        effective_cwd = cwd or Path.cwd()
        layers = [
            get_config_dir() / "config.json",
            effective_cwd / CONFIG_DIR_NAME / "config.json",
        ]
        for layer in layers:
            data = read_config_layer(layer)
            if data:
                merged = deep_merge(merged, data)
                loaded_from.append(str(layer))

    for env_name, (section, key) in ENV_OVERRIDES.items():
        value = env.get(env_name)
        if value:
            merged = deep_merge(merged, {section: {key: value}})
            loaded_from.append(f"${env_name}")

    if loaded_from:
        logger.info("Config loaded from: %s", loaded_from)
    else:
        logger.debug("No config files found, using Pydantic defaults")
        return Config()

    try:
        return Config.model_validate(merged)
    except ValidationError as e:
        sources = ", ".join(loaded_from)
        raise ConfigError(f"Config validation failed (merged from {sources}): {e}") from e
