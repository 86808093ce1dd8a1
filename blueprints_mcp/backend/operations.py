"""Agent operations exposed by the gateway and their Blueprints API calls.

Each operation has a JSON schema for its params (returned by ``tools/list``
and enforced before any API call) and a coroutine that performs it through
BlueprintsAPIClient.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

import jsonschema

from blueprints_mcp.backend.client import BlueprintsAPIClient
from blueprints_mcp.core.errors import BackendError
from blueprints_mcp.rpc.dispatcher import InvalidParamsError, UnknownOperationError
from blueprints_mcp.rpc.scopes import normalize_operation

logger = logging.getLogger(__name__)

Operation = Callable[[BlueprintsAPIClient, str, dict[str, Any]], Awaitable[Any]]

_AGENT_ID = {"type": "string", "minLength": 1, "description": "ID of the agent"}


@dataclass(frozen=True)
class ToolSpec:
    """One gateway operation."""

    name: str
    description: str
    input_schema: dict[str, Any]
    run: Operation

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "inputSchema": self.input_schema,
        }


def _object(properties: dict[str, Any], required: list[str] | None = None) -> dict[str, Any]:
    schema: dict[str, Any] = {"type": "object", "properties": properties}
    if required:
        schema["required"] = required
    return schema


TOOLS: list[ToolSpec] = [
    ToolSpec(
        "list_agents",
        "Returns a list of all agents owned by the user.",
        _object({}),
        lambda api, token, p: api.list_agents(token),
    ),
    ToolSpec(
        "create_agent",
        "Creates a new agent.",
        _object(
            {
                "project_id": {"type": "string"},
                "name": {"type": "string", "minLength": 1},
                "framework": {"type": "string", "minLength": 1},
                "config": {"type": "object"},
            },
            ["name", "framework"],
        ),
        lambda api, token, p: api.create_agent(
            token,
            name=p["name"],
            framework=p["framework"],
            project_id=p.get("project_id"),
            config=p.get("config"),
        ),
    ),
    ToolSpec(
        "start_agent",
        "Triggers an agent to start.",
        _object({"agent_id": _AGENT_ID}, ["agent_id"]),
        lambda api, token, p: api.start_agent(token, p["agent_id"]),
    ),
    ToolSpec(
        "stop_agent",
        "Triggers an agent to stop.",
        _object({"agent_id": _AGENT_ID}, ["agent_id"]),
        lambda api, token, p: api.stop_agent(token, p["agent_id"]),
    ),
    ToolSpec(
        "edit_agent_config",
        "Updates agent parameters.",
        _object({"agent_id": _AGENT_ID, "config": {"type": "object"}}, ["agent_id", "config"]),
        lambda api, token, p: api.edit_agent_config(token, p["agent_id"], p["config"]),
    ),
    ToolSpec(
        "remove_agent",
        "Deletes an agent.",
        _object({"agent_id": _AGENT_ID}, ["agent_id"]),
        lambda api, token, p: api.remove_agent(token, p["agent_id"]),
    ),
    ToolSpec(
        "send_message",
        "Posts a message to the agent's interaction log.",
        _object({"agent_id": _AGENT_ID, "content": {"type": "string"}}, ["agent_id", "content"]),
        lambda api, token, p: api.send_message(token, p["agent_id"], p["content"]),
    ),
    ToolSpec(
        "send_terminal",
        "Executes a command directly in the agent's shell terminal.",
        _object({"agent_id": _AGENT_ID, "command": {"type": "string"}}, ["agent_id", "command"]),
        lambda api, token, p: api.send_terminal(token, p["agent_id"], p["command"]),
    ),
    ToolSpec(
        "agent_status",
        "Get detailed health/stats for an agent.",
        _object({"agent_id": _AGENT_ID}, ["agent_id"]),
        lambda api, token, p: api.agent_status(token, p["agent_id"]),
    ),
    ToolSpec(
        "account_register",
        "Information on signing up.",
        _object({"email": {"type": "string", "format": "email"}}, ["email"]),
        lambda api, token, p: api.account_register(token, p["email"]),
    ),
    ToolSpec(
        "pay_upgrade",
        "Information on upgrading.",
        _object({"tier": {"type": "string", "minLength": 1}}, ["tier"]),
        lambda api, token, p: api.pay_upgrade(token, p["tier"]),
    ),
]


def validate_params(params: dict[str, Any], spec: ToolSpec) -> dict[str, Any]:
    """Validate params against the operation's schema.

    Unknown params are dropped with a warning rather than rejected.

    Returns:
        Only the params the schema knows about.

    Raises:
        InvalidParamsError: If required params are missing or have the wrong type.
    """
    try:
        jsonschema.validate(params, spec.input_schema, format_checker=jsonschema.FormatChecker())
    except jsonschema.ValidationError as e:
        path = ".".join(str(p) for p in e.absolute_path)
        if path:
            raise InvalidParamsError(f"{spec.name}: Parameter '{path}' - {e.message}") from e
        raise InvalidParamsError(f"{spec.name}: {e.message}") from e

    known = set(spec.input_schema.get("properties", {}))
    extras = set(params) - known
    if extras:
        logger.warning("Unknown params for %s (ignored): %s", spec.name, sorted(extras))
    return {k: v for k, v in params.items() if k in known}


class BlueprintsBackend:
    """OperationBackend that performs operations against the Blueprints API."""

    def __init__(
        self,
        api: BlueprintsAPIClient,
        forward_caller_token: bool = True,
        api_key_env: str = "BLUEPRINTS_API_KEY",
    ) -> None:
        """Initialize the backend.

        Args:
            api: Client for the Blueprints REST API.
            forward_caller_token: Use the caller's token for API calls. When
                False, the key from ``api_key_env`` is used instead.
            api_key_env: Environment variable holding the gateway's API key.
        """
        self._api = api
        self._forward_caller_token = forward_caller_token
        self._api_key_env = api_key_env
        self._tools = {tool.name: tool for tool in TOOLS}

    @property
    def tools(self) -> list[ToolSpec]:
        return list(self._tools.values())

    def _token_for(self, caller_token: str) -> str:
        if self._forward_caller_token:
            return caller_token
        api_key = os.environ.get(self._api_key_env, "").strip()
        if not api_key:
            raise BackendError(0, f"{self._api_key_env} is not set")
        return api_key

    async def dispatch(
        self,
        method: str,
        params: dict[str, Any],
        bearer_token: str,
    ) -> Any:
        """Perform ``method`` and return the API result verbatim.

        Raises:
            UnknownOperationError: If the method is not a gateway operation.
            InvalidParamsError: If params fail schema validation.
            BackendError: If the API call fails.
        """
        if method == "ping":
            return {}
        if method == "tools/list":
            return {"tools": [tool.to_dict() for tool in self._tools.values()]}

        spec = self._tools.get(normalize_operation(method))
        if spec is None:
            raise UnknownOperationError(f"Method not found: {method}")

        valid = validate_params(params, spec)
        return await spec.run(self._api, self._token_for(bearer_token), valid)

    async def aclose(self) -> None:
        await self._api.aclose()
