"""Command-line entry point for the gateway."""

import asyncio

from blueprints_mcp.cli.arg_parser import parse_args


def main(argv: list[str] | None = None) -> None:
    """Entry point for the blueprints-mcp CLI."""
    from blueprints_mcp.cli.serve import run_serve

    args = parse_args(argv)
    try:
        exit_code = asyncio.run(
            run_serve(
                config_path=args.config,
                host=args.host,
                port=args.port,
                log_dir=args.log_dir,
                verbose=args.verbose,
            )
        )
    except KeyboardInterrupt:
        exit_code = 0
    raise SystemExit(exit_code)


__all__ = ["main", "parse_args"]
