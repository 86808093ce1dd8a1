"""Unit tests for DispatcherAdapter outcome shaping."""

import asyncio
from unittest.mock import AsyncMock

from blueprints_mcp.core.errors import BackendError
from blueprints_mcp.rpc.dispatcher import (
    DispatcherAdapter,
    InvalidParamsError,
    UnknownOperationError,
)
from blueprints_mcp.rpc.protocol import INTERNAL_ERROR, INVALID_PARAMS, METHOD_NOT_FOUND
from blueprints_mcp.rpc.types import Request


def make_request(method: str = "list_agents", params=None, request_id=1) -> Request:
    return Request(jsonrpc="2.0", method=method, params=params, id=request_id)


class TestDispatcherAdapter:
    async def test_success_passes_result_verbatim(self) -> None:
        backend = AsyncMock()
        backend.dispatch.return_value = {"agents": [{"id": "a1", "status": "running"}]}
        adapter = DispatcherAdapter(backend)

        response = await adapter.dispatch(make_request(params={"x": 1}), "bp_sk_token123")

        assert response.error is None
        assert response.result == {"agents": [{"id": "a1", "status": "running"}]}
        assert response.id == 1
        backend.dispatch.assert_awaited_once_with("list_agents", {"x": 1}, "bp_sk_token123")

    async def test_missing_params_become_empty_dict(self) -> None:
        backend = AsyncMock()
        backend.dispatch.return_value = []
        await DispatcherAdapter(backend).dispatch(make_request(), "tok")
        backend.dispatch.assert_awaited_once_with("list_agents", {}, "tok")

    async def test_invalid_params(self) -> None:
        backend = AsyncMock()
        backend.dispatch.side_effect = InvalidParamsError("agent_id is required")

        response = await DispatcherAdapter(backend).dispatch(make_request(), "tok")

        assert response.error["code"] == INVALID_PARAMS
        assert response.error["message"] == "agent_id is required"

    async def test_unknown_operation(self) -> None:
        backend = AsyncMock()
        backend.dispatch.side_effect = UnknownOperationError("Method not found: nope")

        response = await DispatcherAdapter(backend).dispatch(make_request("nope"), "tok")

        assert response.error["code"] == METHOD_NOT_FOUND

    async def test_backend_error(self) -> None:
        backend = AsyncMock()
        backend.dispatch.side_effect = BackendError(404, "Not Found")

        response = await DispatcherAdapter(backend).dispatch(make_request(), "tok")

        assert response.error["code"] == INTERNAL_ERROR
        assert response.error["message"] == "Internal error"
        assert response.error["data"] == "HTTP 404: Not Found"

    async def test_unexpected_exception(self) -> None:
        backend = AsyncMock()
        backend.dispatch.side_effect = KeyError("boom")

        response = await DispatcherAdapter(backend).dispatch(make_request(), "tok")

        assert response.error["code"] == INTERNAL_ERROR
        assert "boom" in response.error["data"]

    async def test_timeout(self) -> None:
        async def slow(*args):
            await asyncio.sleep(10)

        backend = AsyncMock()
        backend.dispatch.side_effect = slow

        response = await DispatcherAdapter(backend, timeout=0.05).dispatch(make_request(), "tok")

        assert response.error["code"] == INTERNAL_ERROR
        assert "timed out" in response.error["data"]

    async def test_notification_still_gets_response_object(self) -> None:
        backend = AsyncMock()
        backend.dispatch.return_value = {}

        response = await DispatcherAdapter(backend).dispatch(make_request(request_id=None), "tok")

        assert response.id is None
        assert response.result == {}
