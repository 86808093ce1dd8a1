"""Unit tests for CLI argument parsing and config overrides."""

from pathlib import Path

import pytest
from pydantic import ValidationError

from blueprints_mcp.cli.arg_parser import parse_args
from blueprints_mcp.config.schema import Config


class TestParseArgs:
    def test_defaults(self) -> None:
        args = parse_args([])
        assert args.config is None
        assert args.host is None
        assert args.port is None
        assert args.log_dir is None
        assert args.verbose is False

    def test_all_options(self) -> None:
        args = parse_args(
            ["--config", "gw.json", "--host", "::1", "-p", "4000", "--log-dir", "logs", "-v"]
        )
        assert args.config == Path("gw.json")
        assert args.host == "::1"
        assert args.port == 4000
        assert args.log_dir == Path("logs")
        assert args.verbose is True


class TestApplyCliOverrides:
    def test_no_overrides_returns_same_config(self) -> None:
        from blueprints_mcp.cli.serve import apply_cli_overrides

        config = Config()
        assert apply_cli_overrides(config, None, None) is config

    def test_port_and_host(self) -> None:
        from blueprints_mcp.cli.serve import apply_cli_overrides

        config = apply_cli_overrides(Config(), "localhost", 4000)
        assert config.server.host == "localhost"
        assert config.server.port == 4000

    def test_remote_host_still_validated(self) -> None:
        from blueprints_mcp.cli.serve import apply_cli_overrides

        with pytest.raises(ValidationError):
            apply_cli_overrides(Config(), "0.0.0.0", None)


class TestRunServe:
    async def test_config_error_exits_nonzero(self, tmp_path, capsys) -> None:
        from blueprints_mcp.cli.serve import run_serve

        code = await run_serve(config_path=tmp_path / "missing.json", log_dir=tmp_path / "logs")

        assert code == 1
        assert "Configuration error" in capsys.readouterr().out
