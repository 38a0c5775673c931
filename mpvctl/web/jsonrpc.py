"""
JSON-RPC Facade for mpvctl.

Maps JSON-RPC requests of the form

    {"id": 1, "method": "set_property", "params": ["volume", 50]}

onto the MpvPlayer command façade. The handler stays thin; every method is a
small adapter that unpacks positional params.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Callable, Coroutine

from mpvctl.core.errors import MpvError

if TYPE_CHECKING:
    from mpvctl.player.controller import MpvPlayer

logger = logging.getLogger(__name__)

# JSON-RPC error codes
ERROR_INVALID_REQUEST = -32600
ERROR_METHOD_NOT_FOUND = -32601
ERROR_INVALID_PARAMS = -32602
ERROR_INTERNAL_ERROR = -32603
ERROR_PLAYER_ERROR = -32000

# Type alias for method handlers
RpcHandler = Callable[["MpvPlayer", list[Any]], Coroutine[Any, Any, Any]]


def build_error_response(code: int, message: str, data: Any = None) -> dict[str, Any]:
    """Build a JSON-RPC error object."""
    error: dict[str, Any] = {"code": code, "message": message}
    if data is not None:
        error["data"] = data
    return error


async def rpc_command(player: MpvPlayer, params: list[Any]) -> Any:
    return await player.command(str(params[0]), params[1:])


async def rpc_set_property(player: MpvPlayer, params: list[Any]) -> Any:
    return await player.set_property(params[0], params[1])


async def rpc_get_property(player: MpvPlayer, params: list[Any]) -> Any:
    return await player.get_property(params[0])


async def rpc_add_property(player: MpvPlayer, params: list[Any]) -> Any:
    return await player.add_property(params[0], params[1])


async def rpc_multiply_property(player: MpvPlayer, params: list[Any]) -> Any:
    return await player.multiply_property(params[0], params[1])


async def rpc_cycle_property(player: MpvPlayer, params: list[Any]) -> Any:
    return await player.cycle_property(params[0])


async def rpc_load(player: MpvPlayer, params: list[Any]) -> Any:
    mode = params[1] if len(params) > 1 else "replace"
    options = list(params[2:]) or None
    outcome = await player.load(params[0], mode, options)
    return outcome.value


async def rpc_append(player: MpvPlayer, params: list[Any]) -> Any:
    mode = params[1] if len(params) > 1 else "append"
    options = list(params[2:]) or None
    outcome = await player.append(params[0], mode, options)
    return outcome.value


async def rpc_free_command(player: MpvPlayer, params: list[Any]) -> Any:
    await player.free_command(str(params[0]))
    return None


# Method dispatch table: name -> (handler, minimum number of params)
RPC_METHODS: dict[str, tuple[RpcHandler, int]] = {
    "command": (rpc_command, 1),
    "set_property": (rpc_set_property, 2),
    "get_property": (rpc_get_property, 1),
    "add_property": (rpc_add_property, 2),
    "multiply_property": (rpc_multiply_property, 2),
    "cycle_property": (rpc_cycle_property, 1),
    "load": (rpc_load, 1),
    "append": (rpc_append, 1),
    "free_command": (rpc_free_command, 1),
}


class JsonRpcHandler:
    """
    JSON-RPC request handler.

    Dispatches requests to the player and turns MpvError failures into
    structured JSON-RPC errors.
    """

    def __init__(self, player: MpvPlayer) -> None:
        self.player = player

    async def handle_request(self, request: dict[str, Any]) -> dict[str, Any]:
        """
        Handle a JSON-RPC request.

        Args:
            request: The JSON-RPC request object with id, method, and params.

        Returns:
            JSON-RPC response object.
        """
        request_id = request.get("id")
        method = request.get("method", "")
        params = request.get("params", [])

        # Build base response
        response: dict[str, Any] = {
            "id": request_id,
            "method": method,
            "params": params,
        }

        if not isinstance(params, list):
            response["error"] = build_error_response(
                ERROR_INVALID_REQUEST,
                "params must be an array",
            )
            return response

        entry = RPC_METHODS.get(method)
        if entry is None:
            response["error"] = build_error_response(
                ERROR_METHOD_NOT_FOUND,
                f"Unknown method: {method}",
            )
            return response

        handler, min_params = entry
        if len(params) < min_params:
            response["error"] = build_error_response(
                ERROR_INVALID_PARAMS,
                f"{method} requires at least {min_params} params",
            )
            return response

        try:
            response["result"] = await handler(self.player, params)
        except MpvError as e:
            logger.debug("Method %s failed: %s", method, e)
            response["error"] = build_error_response(ERROR_PLAYER_ERROR, str(e), e.to_dict())
        except Exception as e:
            logger.exception("Error executing %s: %s", method, e)
            response["error"] = build_error_response(ERROR_INTERNAL_ERROR, str(e))

        return response
