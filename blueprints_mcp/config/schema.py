"""Pydantic models for blueprints_mcp configuration validation."""

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class ServerConfig(BaseModel):
    """Configuration for the gateway HTTP server.

    Example in config.json:
        "server": {
            "host": "127.0.0.1",
            "port": 3000,
            "path": "/mcp/messages"
        }
    """

    model_config = ConfigDict(extra="forbid")

    host: str = "127.0.0.1"
    """Host address to bind to."""

    port: int = Field(default=3000, ge=0, le=65535)
    """Port number for the HTTP server (0 picks a free port)."""

    path: str = "/mcp/messages"
    """The only path that accepts JSON-RPC messages."""

    max_concurrent: int = Field(default=32, ge=1)
    """Maximum number of requests handled at the same time."""

    allow_remote_bind: bool = False
    """Allow binding to non-loopback addresses. Leave off unless the gateway
    sits behind a TLS-terminating proxy."""

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    """Logging level for server.log."""

    @field_validator("path")
    @classmethod
    def path_must_be_absolute(cls, v: str) -> str:
        if not v.startswith("/"):
            raise ValueError(f"server.path must start with '/', got: {v!r}")
        return v


class AuthConfig(BaseModel):
    """Bearer token format and session lifetime settings."""

    model_config = ConfigDict(extra="forbid")

    token_prefix: str = "bp_sk_"
    """Literal prefix every bearer token must carry."""

    min_token_length: int = Field(default=8, ge=0)
    """Tokens must be strictly longer than this."""

    session_ttl: float = Field(default=1800.0, gt=0)
    """Absolute session lifetime in seconds (not extended by activity)."""

    sweep_interval: float = Field(default=60.0, gt=0)
    """Seconds between background sweeps of expired sessions."""

    superuser_scope: str = "admin"
    """Scope that satisfies every scope requirement."""

    default_user_id: str = "demo-user"
    """User id bound to sessions created by the static identity resolver."""

    default_scopes: list[str] = ["read", "write"]
    """Scopes granted to sessions created by the static identity resolver."""

    @field_validator("default_scopes")
    @classmethod
    def scopes_not_empty(cls, v: list[str]) -> list[str]:
        if not v:
            raise ValueError("auth.default_scopes must contain at least one scope")
        return v


class ScopePolicyConfig(BaseModel):
    """Scope policy overrides.

    Example in config.json:
        "scopes": {
            "unmapped": "deny",
            "extra": {"restart_agent": "execute", "health": null}
        }
    """

    model_config = ConfigDict(extra="forbid")

    unmapped: Literal["allow", "deny"] = "allow"
    """What to do with operations missing from the scope table."""

    extra: dict[str, str | None] = {}
    """Additional operation -> scope entries (null means public)."""


class BackendConfig(BaseModel):
    """Connection settings for the Blueprints REST API."""

    model_config = ConfigDict(extra="forbid")

    base_url: str = "https://api.blueprints.example.com"
    """Base URL of the Blueprints API."""

    api_key_env: str = "BLUEPRINTS_API_KEY"
    """Environment variable holding the gateway's own API key."""

    forward_caller_token: bool = True
    """Send the caller's bearer token to the backend. When False the key from
    api_key_env is used for every call."""

    request_timeout: float = Field(default=30.0, gt=0)
    """Seconds before a backend call is abandoned and reported as failed."""

    verify_ssl: bool = True
    """Verify TLS certificates of the backend."""


class ServerInfoConfig(BaseModel):
    """Values returned in the initialize handshake."""

    model_config = ConfigDict(extra="forbid")

    name: str = "blueprints-mcp-server"
    version: str = "1.0.0"
    protocol_version: str = "2024-11-05"


class Config(BaseModel):
    """Root configuration model."""

    model_config = ConfigDict(extra="forbid")

    server: ServerConfig = ServerConfig()
    auth: AuthConfig = AuthConfig()
    scopes: ScopePolicyConfig = ScopePolicyConfig()
    backend: BackendConfig = BackendConfig()
    server_info: ServerInfoConfig = ServerInfoConfig()

    @model_validator(mode="after")
    def validate_bind_host(self) -> "Config":
        """Refuse non-loopback hosts unless explicitly allowed."""
        if (
            self.server.host not in ("127.0.0.1", "localhost", "::1")
            and not self.server.allow_remote_bind
        ):
            raise ValueError(
                f"server.host {self.server.host!r} is not a loopback address; "
                "set server.allow_remote_bind to true to allow it"
            )
        return self
