"""Argument parsing for the blueprints-mcp CLI."""

import argparse
from pathlib import Path


def add_port_arg(parser: argparse.ArgumentParser) -> None:
    """Add --port argument to a parser."""
    parser.add_argument(
        "--port", "-p",
        type=int,
        default=None,
        help="Server port (default: server.port from config, 3000)",
    )


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        prog="blueprints-mcp",
        description="Session-authenticated JSON-RPC gateway for the Blueprints agent API",
    )
    parser.add_argument(
        "--config", "-c",
        type=Path,
        default=None,
        help="Config file (default: ~/.blueprints/config.json merged with ./.blueprints/config.json)",
    )
    parser.add_argument(
        "--host",
        default=None,
        help="Host to bind to (default: server.host from config, 127.0.0.1)",
    )
    add_port_arg(parser)
    parser.add_argument(
        "--log-dir",
        dest="log_dir",
        type=Path,
        default=None,
        help="Directory for server.log (default: .blueprints/logs)",
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Show debug output on the console",
    )
    return parser.parse_args(argv)
