"""HTTP server mode for the gateway.

Runs the session-authenticated JSON-RPC gateway in front of the Blueprints
API until SIGINT or SIGTERM.

Protocol:
    - POST /mcp/messages with a JSON-RPC 2.0 body and Authorization: Bearer
    - First call must be ``initialize``; the reply carries mcp-session-id
    - Later calls send mcp-session-id (header) or ?sessionId= (query)

Example:
    python -m blueprints_mcp --port 3000

    curl -i -X POST http://localhost:3000/mcp/messages \\
        -H "Content-Type: application/json" \\
        -H "Authorization: Bearer bp_sk_..." \\
        -d '{"jsonrpc":"2.0","method":"initialize","params":{},"id":1}'
"""

import asyncio
import logging
import signal
from pathlib import Path

from dotenv import load_dotenv
from pydantic import ValidationError

from blueprints_mcp.config.loader import load_config
from blueprints_mcp.config.schema import Config
from blueprints_mcp.core.constants import get_default_log_dir
from blueprints_mcp.core.errors import BlueprintsError
from blueprints_mcp.rpc.bootstrap import build_gateway, configure_server_logging
from blueprints_mcp.rpc.http import run_http_server

# Load .env file if present
load_dotenv()

logger = logging.getLogger(__name__)


def apply_cli_overrides(config: Config, host: str | None, port: int | None) -> Config:
    """Return config with --host/--port applied and re-validated.

    Raises:
        ValueError: If the overridden config is invalid (e.g. remote host).
    """
    server_overrides: dict[str, object] = {}
    if host is not None:
        server_overrides["host"] = host
    if port is not None:
        server_overrides["port"] = port
    if not server_overrides:
        return config

    data = config.model_dump()
    data["server"].update(server_overrides)
    return Config.model_validate(data)


def _install_signal_handlers(stop_event: asyncio.Event) -> None:
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop_event.set)
        except (NotImplementedError, RuntimeError):
            # Windows event loops: Ctrl+C arrives as KeyboardInterrupt instead
            pass


async def run_serve(
    config_path: Path | None = None,
    host: str | None = None,
    port: int | None = None,
    log_dir: Path | None = None,
    verbose: bool = False,
) -> int:
    """Run the gateway HTTP server.

    Args:
        config_path: Explicit config file; None uses the layered defaults.
        host: Overrides server.host.
        port: Overrides server.port.
        log_dir: Directory for server.log.
        verbose: Enable DEBUG output to console.

    Returns:
        Process exit code.
    """
    try:
        config = apply_cli_overrides(load_config(config_path), host, port)
    except BlueprintsError as e:
        print(f"Configuration error: {e.message}")
        return 1
    except ValidationError as e:
        print(f"Configuration error: {e}")
        return 1

    base_log_dir = log_dir or get_default_log_dir()
    console_level = logging.DEBUG if verbose else logging.WARNING
    server_log_file = configure_server_logging(
        base_log_dir,
        level=getattr(logging, config.server.log_level),
        console_level=console_level,
    )

    gateway = build_gateway(config)
    started_event = asyncio.Event()
    stop_event = asyncio.Event()
    _install_signal_handlers(stop_event)

    server_task = asyncio.create_task(
        run_http_server(
            gateway.handshake,
            gateway.store,
            host=config.server.host,
            port=config.server.port,
            path=config.server.path,
            max_concurrent=config.server.max_concurrent,
            allow_remote_bind=config.server.allow_remote_bind,
            sweep_interval=config.auth.sweep_interval,
            started_event=started_event,
            stop_event=stop_event,
        )
    )

    try:
        # Wait for bind success or an early failure (port in use)
        started = asyncio.create_task(started_event.wait())
        done, _ = await asyncio.wait(
            {started, server_task}, timeout=5.0, return_when=asyncio.FIRST_COMPLETED
        )
        if started not in done:
            started.cancel()
            if server_task in done:
                exc = server_task.exception()
                print(f"Server failed to start: {exc}")
            else:
                server_task.cancel()
                print("Server failed to start (bind timeout)")
            return 1

        print("Blueprints MCP Gateway")
        print(f"Endpoint: http://{config.server.host}:{config.server.port}{config.server.path}")
        print(f"Backend: {config.backend.base_url}")
        print(f"Server log: {server_log_file}")
        print("Press Ctrl+C to stop")
        print("")

        await server_task
        return 0

    except asyncio.CancelledError:
        server_task.cancel()
        try:
            await server_task
        except asyncio.CancelledError:
            pass
        raise

    finally:
        if not server_task.done():
            server_task.cancel()
            try:
                await server_task
            except asyncio.CancelledError:
                pass
        await gateway.aclose()
        logger.info("Gateway shut down")
