"""Object graph bootstrap for the gateway.

Creates and wires the gateway components from a Config in one place:

    SessionStore -> Authenticator ─┐
    StaticIdentityResolver ────────┤
    ScopePolicy ───────────────────┼-> SessionHandshake
    BlueprintsAPIClient -> BlueprintsBackend -> DispatcherAdapter ─┘

Usage:
    gateway = build_gateway(config)
    try:
        await run_http_server(gateway.handshake, gateway.store, ...)
    finally:
        await gateway.aclose()
"""

from __future__ import annotations

import logging
import sys
from dataclasses import dataclass
from datetime import timedelta
from logging.handlers import RotatingFileHandler
from pathlib import Path

import httpx

from blueprints_mcp.backend.client import BlueprintsAPIClient
from blueprints_mcp.backend.operations import BlueprintsBackend
from blueprints_mcp.config.schema import Config
from blueprints_mcp.core.secure_io import secure_mkdir
from blueprints_mcp.rpc.auth import Authenticator, IdentityResolver, StaticIdentityResolver
from blueprints_mcp.rpc.dispatcher import DispatcherAdapter
from blueprints_mcp.rpc.handshake import SessionHandshake
from blueprints_mcp.rpc.scopes import DEFAULT_SCOPE_MAP, ScopePolicy
from blueprints_mcp.rpc.sessions import Clock, SessionStore, utc_now

logger = logging.getLogger(__name__)

PACKAGE_LOGGER_NAME = "blueprints_mcp"


def configure_server_logging(
    log_dir: Path,
    level: int = logging.INFO,
    console_level: int = logging.WARNING,
) -> Path:
    """Configure file-based logging for the gateway.

    Logs from the blueprints_mcp namespace go to ``{log_dir}/server.log``
    with rotation (max 5MB per file, 3 backup files) and to stderr.

    Args:
        log_dir: Directory for server.log. Created if it doesn't exist.
        level: Logging level for file output (default INFO).
        console_level: Logging level for console output (default WARNING).

    Returns:
        Path to the server.log file.
    """
    secure_mkdir(log_dir)

    log_file = log_dir / "server.log"

    file_handler = RotatingFileHandler(
        log_file,
        maxBytes=5 * 1024 * 1024,  # 5MB
        backupCount=3,
        encoding="utf-8",
    )
    file_handler.setLevel(level)
    file_handler.setFormatter(logging.Formatter(
        "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    ))

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(console_level)
    console_handler.setFormatter(logging.Formatter(
        "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    ))

    package_logger = logging.getLogger(PACKAGE_LOGGER_NAME)
    package_logger.setLevel(min(level, console_level))

    # Remove any existing handlers to avoid duplicates on reconfigure
    for handler in list(package_logger.handlers):
        package_logger.removeHandler(handler)
        handler.close()

    package_logger.addHandler(file_handler)
    package_logger.addHandler(console_handler)
    package_logger.propagate = False

    logger.info("Server logging configured: %s", log_file)
    return log_file


@dataclass
class Gateway:
    """The wired gateway. Owns the session store and the backend client."""

    config: Config
    store: SessionStore
    authenticator: Authenticator
    policy: ScopePolicy
    backend: BlueprintsBackend
    handshake: SessionHandshake

    async def aclose(self) -> None:
        """Close the backend HTTP client."""
        await self.backend.aclose()


def build_scope_policy(config: Config) -> ScopePolicy:
    """ScopePolicy from the built-in table plus ``scopes.extra`` overrides."""
    scope_map: dict[str, str | None] = dict(DEFAULT_SCOPE_MAP)
    scope_map.update(config.scopes.extra)
    return ScopePolicy(
        scope_map,
        superuser_scope=config.auth.superuser_scope,
        unmapped=config.scopes.unmapped,
    )


def build_gateway(
    config: Config,
    clock: Clock = utc_now,
    transport: httpx.AsyncBaseTransport | None = None,
    identity_resolver: IdentityResolver | None = None,
) -> Gateway:
    """Create all gateway components from configuration.

    Args:
        config: Loaded configuration.
        clock: Time source for the session store. Injected by tests.
        transport: Optional httpx transport for the backend client.
        identity_resolver: Overrides the static resolver built from
            ``auth.default_user_id`` and ``auth.default_scopes``.

    Returns:
        The wired Gateway.
    """
    store = SessionStore(ttl=timedelta(seconds=config.auth.session_ttl), clock=clock)
    authenticator = Authenticator(
        store,
        prefix=config.auth.token_prefix,
        min_length=config.auth.min_token_length,
    )
    resolver = identity_resolver or StaticIdentityResolver(
        config.auth.default_user_id, config.auth.default_scopes
    )
    policy = build_scope_policy(config)

    api = BlueprintsAPIClient(
        config.backend.base_url,
        timeout=config.backend.request_timeout,
        verify_ssl=config.backend.verify_ssl,
        transport=transport,
    )
    backend = BlueprintsBackend(
        api,
        forward_caller_token=config.backend.forward_caller_token,
        api_key_env=config.backend.api_key_env,
    )
    dispatcher = DispatcherAdapter(backend, timeout=config.backend.request_timeout)

    handshake = SessionHandshake(
        authenticator,
        resolver,
        policy,
        dispatcher,
        server_info={"name": config.server_info.name, "version": config.server_info.version},
        protocol_version=config.server_info.protocol_version,
    )
    logger.debug("Gateway wired for backend %s", api.base_url)
    return Gateway(
        config=config,
        store=store,
        authenticator=authenticator,
        policy=policy,
        backend=backend,
        handshake=handshake,
    )
