"""Unit tests for gateway wiring and logging setup."""

import logging

import httpx

from blueprints_mcp.config.schema import Config
from blueprints_mcp.rpc.bootstrap import (
    PACKAGE_LOGGER_NAME,
    build_gateway,
    build_scope_policy,
    configure_server_logging,
)


class TestBuildScopePolicy:
    def test_extra_entries_extend_table(self) -> None:
        config = Config.model_validate(
            {"scopes": {"extra": {"restart_agent": "execute", "tools/health": None}}}
        )
        policy = build_scope_policy(config)

        assert policy.required_scope("restart_agent") == "execute"
        assert policy.is_mapped("health")
        assert policy.required_scope("health") is None
        assert policy.required_scope("send_terminal") == "terminal"

    def test_extra_can_override_builtin(self) -> None:
        config = Config.model_validate({"scopes": {"extra": {"pay_upgrade": "admin"}}})
        assert build_scope_policy(config).required_scope("pay_upgrade") == "admin"

    def test_unmapped_and_superuser_from_config(self) -> None:
        config = Config.model_validate(
            {"scopes": {"unmapped": "deny"}, "auth": {"superuser_scope": "root"}}
        )
        policy = build_scope_policy(config)
        assert policy.superuser_scope == "root"
        assert policy.required_scope("unknown") == "root"


class TestBuildGateway:
    async def test_components_share_store(self, clock) -> None:
        gateway = build_gateway(Config(), clock=clock, transport=httpx.MockTransport(
            lambda request: httpx.Response(200, json=[])
        ))
        try:
            assert gateway.authenticator.store is gateway.store
            assert gateway.store.ttl.total_seconds() == 1800
        finally:
            await gateway.aclose()

    async def test_token_rules_from_config(self, clock) -> None:
        config = Config.model_validate({"auth": {"token_prefix": "tk_", "min_token_length": 4}})
        gateway = build_gateway(config, clock=clock)
        try:
            assert gateway.authenticator.check_token_format("tk_abcd")
            assert not gateway.authenticator.check_token_format("bp_sk_0123456789")
        finally:
            await gateway.aclose()


class TestConfigureServerLogging:
    def test_writes_server_log(self, tmp_path) -> None:
        log_dir = tmp_path / "logs"
        package_logger = logging.getLogger(PACKAGE_LOGGER_NAME)
        try:
            log_file = configure_server_logging(log_dir, level=logging.INFO)
            logging.getLogger("blueprints_mcp.rpc.sessions").info("hello from test")
            for handler in package_logger.handlers:
                handler.flush()

            assert log_file == log_dir / "server.log"
            assert "hello from test" in log_file.read_text(encoding="utf-8")
            assert package_logger.propagate is False
        finally:
            for handler in list(package_logger.handlers):
                package_logger.removeHandler(handler)
                handler.close()
            package_logger.propagate = True

    def test_reconfigure_does_not_duplicate_handlers(self, tmp_path) -> None:
        package_logger = logging.getLogger(PACKAGE_LOGGER_NAME)
        try:
            configure_server_logging(tmp_path / "a")
            configure_server_logging(tmp_path / "b")
            assert len(package_logger.handlers) == 2
        finally:
            for handler in list(package_logger.handlers):
                package_logger.removeHandler(handler)
                handler.close()
            package_logger.propagate = True
