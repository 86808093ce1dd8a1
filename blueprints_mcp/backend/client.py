"""Async HTTP client for the Blueprints REST API."""

from __future__ import annotations

import logging
from typing import Any
from urllib.parse import quote

import httpx

from blueprints_mcp.core.errors import BackendError

logger = logging.getLogger(__name__)


class BlueprintsAPIClient:
    """
    Async HTTP client for the Blueprints agent API.

    Features:
    - Async-native with httpx
    - Per-call bearer token (the gateway forwards its caller's key)
    - Connection pooling
    - Non-2xx answers raised as BackendError
    """

    DEFAULT_TIMEOUT = 30.0
    USER_AGENT = "blueprints-mcp-gateway/1.0"

    def __init__(
        self,
        base_url: str,
        timeout: float = DEFAULT_TIMEOUT,
        verify_ssl: bool = True,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            base_url: Root URL of the API; a trailing slash is ignored.
            timeout: Per-request timeout in seconds.
            verify_ssl: Verify TLS certificates.
            transport: Optional httpx transport (tests use httpx.MockTransport).
        """
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._verify_ssl = verify_ssl
        self._transport = transport
        self._http: httpx.AsyncClient | None = None

    @property
    def base_url(self) -> str:
        return self._base_url

    def _ensure_client(self) -> httpx.AsyncClient:
        """Lazily create HTTP client."""
        if self._http is None or self._http.is_closed:
            self._http = httpx.AsyncClient(
                base_url=self._base_url,
                timeout=httpx.Timeout(self._timeout),
                verify=self._verify_ssl,
                headers={"User-Agent": self.USER_AGENT},
                follow_redirects=False,
                transport=self._transport,
            )
        return self._http

    async def aclose(self) -> None:
        """Close HTTP client."""
        if self._http and not self._http.is_closed:
            await self._http.aclose()
            self._http = None

    async def __aenter__(self) -> "BlueprintsAPIClient":
        self._ensure_client()
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.aclose()

    async def _request(
        self,
        method: str,
        path: str,
        token: str,
        json: dict[str, Any] | None = None,
    ) -> Any:
        """
        Make an authenticated request and return the parsed JSON body.

        Raises BackendError on transport failure or non-2xx status.
        """
        client = self._ensure_client()
        headers = {"Authorization": f"Bearer {token}"}

        logger.debug("Backend request: %s %s", method, path)
        try:
            response = await client.request(method, path, json=json, headers=headers)
        except httpx.TimeoutException as e:
            raise BackendError(0, f"Request timed out: {method} {path}") from e
        except httpx.HTTPError as e:
            raise BackendError(0, f"Connection failed: {e}") from e

        if not response.is_success:
            logger.debug("Backend answered %d for %s %s", response.status_code, method, path)
            raise BackendError(response.status_code, response.reason_phrase)

        if not response.content:
            return {}
        try:
            return response.json()
        except ValueError as e:
            raise BackendError(response.status_code, f"Invalid JSON from backend: {e}") from e

    @staticmethod
    def _agent_path(agent_id: str, suffix: str = "") -> str:
        return f"/agents/{quote(agent_id, safe='')}{suffix}"

    # === Agents ===

    async def list_agents(self, token: str) -> list[dict[str, Any]]:
        return await self._request("GET", "/agents", token)

    async def create_agent(
        self,
        token: str,
        name: str,
        framework: str,
        project_id: str | None = None,
        config: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        body: dict[str, Any] = {"name": name, "framework": framework}
        if project_id is not None:
            body["project_id"] = project_id
        if config is not None:
            body["config"] = config
        return await self._request("POST", "/agents", token, json=body)

    async def start_agent(self, token: str, agent_id: str) -> dict[str, Any]:
        return await self._request("POST", self._agent_path(agent_id, "/start"), token)

    async def stop_agent(self, token: str, agent_id: str) -> dict[str, Any]:
        return await self._request("POST", self._agent_path(agent_id, "/stop"), token)

    async def edit_agent_config(
        self, token: str, agent_id: str, config: dict[str, Any]
    ) -> dict[str, Any]:
        return await self._request(
            "PATCH", self._agent_path(agent_id, "/config"), token, json={"config": config}
        )

    async def remove_agent(self, token: str, agent_id: str) -> dict[str, Any]:
        return await self._request("DELETE", self._agent_path(agent_id), token)

    async def send_message(self, token: str, agent_id: str, content: str) -> dict[str, Any]:
        return await self._request(
            "POST", self._agent_path(agent_id, "/messages"), token, json={"content": content}
        )

    async def send_terminal(self, token: str, agent_id: str, command: str) -> dict[str, Any]:
        return await self._request(
            "POST", self._agent_path(agent_id, "/terminal"), token, json={"command": command}
        )

    async def agent_status(self, token: str, agent_id: str) -> dict[str, Any]:
        return await self._request("GET", self._agent_path(agent_id, "/status"), token)

    # === Account ===

    async def account_register(self, token: str, email: str) -> dict[str, Any]:
        return await self._request("POST", "/account/register", token, json={"email": email})

    async def pay_upgrade(self, token: str, tier: str) -> dict[str, Any]:
        return await self._request("POST", "/account/upgrade", token, json={"tier": tier})
