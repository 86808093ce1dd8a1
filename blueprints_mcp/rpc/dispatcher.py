"""Adapter between authorized requests and the operation backend.

The backend performs the actual agent operation. This module only calls it,
bounds the call with a timeout and shapes the outcome into a JSON-RPC
response:

- success                -> result payload, unchanged
- InvalidParamsError     -> INVALID_PARAMS
- UnknownOperationError  -> METHOD_NOT_FOUND
- anything else/timeout  -> INTERNAL_ERROR "Internal error", message in data

Only the failure's message is exposed; tracebacks stay in the server log.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Protocol

from blueprints_mcp.core.errors import BlueprintsError
from blueprints_mcp.rpc.errors import DispatchError
from blueprints_mcp.rpc.protocol import (
    INVALID_PARAMS,
    METHOD_NOT_FOUND,
    make_error_response,
    make_success_response,
)
from blueprints_mcp.rpc.types import Request, Response

logger = logging.getLogger(__name__)

DEFAULT_DISPATCH_TIMEOUT = 30.0


class InvalidParamsError(BlueprintsError):
    """Raised by a backend when method parameters are invalid."""


class UnknownOperationError(BlueprintsError):
    """Raised by a backend for a method it does not implement."""


class OperationBackend(Protocol):
    """The service that performs agent operations."""

    async def dispatch(
        self,
        method: str,
        params: dict[str, Any],
        bearer_token: str,
    ) -> Any: ...


class DispatcherAdapter:
    """Forwards authorized requests to an OperationBackend."""

    def __init__(
        self,
        backend: OperationBackend,
        timeout: float = DEFAULT_DISPATCH_TIMEOUT,
    ) -> None:
        """Initialize the adapter.

        Args:
            backend: Performs the operation.
            timeout: Seconds before a backend call counts as failed.
        """
        self._backend = backend
        self._timeout = timeout

    async def dispatch(self, request: Request, bearer_token: str) -> Response:
        """Run ``request`` against the backend.

        Args:
            request: The authorized JSON-RPC request.
            bearer_token: The caller's token, passed through to the backend.

        Returns:
            A Response echoing request.id. Notifications get one too; the
            transport decides whether a body is written.
        """
        params = request.params or {}
        try:
            result = await asyncio.wait_for(
                self._backend.dispatch(request.method, params, bearer_token),
                timeout=self._timeout,
            )
        except InvalidParamsError as e:
            return make_error_response(request.id, INVALID_PARAMS, e.message)
        except UnknownOperationError as e:
            return make_error_response(request.id, METHOD_NOT_FOUND, e.message)
        except TimeoutError:
            logger.warning(
                "Backend call '%s' timed out after %.1fs", request.method, self._timeout
            )
            return DispatchError(
                "Internal error", data=f"Backend timed out after {self._timeout:g}s"
            ).to_response(request.id)
        except BlueprintsError as e:
            logger.warning("Backend call '%s' failed: %s", request.method, e.message)
            return DispatchError("Internal error", data=e.message).to_response(request.id)
        except Exception as e:
            logger.error(
                "Unexpected error dispatching '%s': %s", request.method, e, exc_info=True
            )
            return DispatchError("Internal error", data=str(e)).to_response(request.id)

        return make_success_response(request.id, result)
