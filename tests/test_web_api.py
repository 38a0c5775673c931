"""
Tests for the HTTP bridge.

The player is mocked; these tests cover routing, JSON-RPC dispatch and the
mapping of player errors onto JSON-RPC error objects.
"""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from httpx import ASGITransport, AsyncClient

from mpvctl import __version__
from mpvctl.config import WebConfig
from mpvctl.core.errors import NotRunningError, RemoteCommandError
from mpvctl.player.loader import LoadOutcome
from mpvctl.web.jsonrpc import (
    ERROR_INTERNAL_ERROR,
    ERROR_INVALID_PARAMS,
    ERROR_INVALID_REQUEST,
    ERROR_METHOD_NOT_FOUND,
    ERROR_PLAYER_ERROR,
)
from mpvctl.web.server import WebServer

# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def player() -> MagicMock:
    """Create a mock MpvPlayer."""
    player = MagicMock()
    player.is_running = True
    player.socket_path = "/tmp/mpvctl.sock"
    player.pending_requests = 0
    player.observed = {"volume": 80, "pause": False}
    player.command = AsyncMock(return_value=None)
    player.set_property = AsyncMock(return_value=None)
    player.get_property = AsyncMock(return_value=80)
    player.add_property = AsyncMock(return_value=None)
    player.multiply_property = AsyncMock(return_value=None)
    player.cycle_property = AsyncMock(return_value=None)
    player.load = AsyncMock(return_value=LoadOutcome.SUCCESS)
    player.append = AsyncMock(return_value=LoadOutcome.SILENT_SUCCESS)
    player.free_command = AsyncMock(return_value=None)
    return player


@pytest.fixture
def web_server(player: MagicMock) -> WebServer:
    """Create a WebServer instance for testing."""
    return WebServer(player)


@pytest.fixture
async def client(web_server: WebServer) -> AsyncClient:
    """Create an async HTTP client for testing."""
    transport = ASGITransport(app=web_server.app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


async def rpc(client: AsyncClient, method: str, params: list | None = None) -> dict:
    response = await client.post(
        "/jsonrpc", json={"id": 1, "method": method, "params": params if params is not None else []}
    )
    assert response.status_code == 200
    return response.json()


# =============================================================================
# Routes
# =============================================================================


class TestRoutes:
    """Tests for plain HTTP routes."""

    async def test_health(self, client: AsyncClient) -> None:
        response = await client.get("/health")

        assert response.status_code == 200
        assert response.json() == {"status": "ok", "server": "mpvctl"}

    async def test_status(self, client: AsyncClient) -> None:
        response = await client.get("/api/status")

        assert response.status_code == 200
        assert response.json() == {
            "running": True,
            "socket": "/tmp/mpvctl.sock",
            "pending_requests": 0,
            "observed": {"volume": 80, "pause": False},
        }

    def test_app_version(self, web_server: WebServer) -> None:
        assert web_server.app.version == __version__

    def test_bind_address_from_config(self, player: MagicMock) -> None:
        server = WebServer(player, WebConfig(host="0.0.0.0", port=9123))

        assert server.host == "0.0.0.0"
        assert server.port == 9123

    def test_default_bind_address(self, web_server: WebServer) -> None:
        assert web_server.host == WebConfig().host
        assert web_server.port == WebConfig().port

    async def test_start_overrides_config(self, player: MagicMock) -> None:
        server = WebServer(player, WebConfig(host="127.0.0.1", port=9123))

        with patch("mpvctl.web.server.uvicorn.Server") as server_class:
            server_class.return_value.serve = AsyncMock()
            await server.start(port=9555)
            await server.stop()

        config = server_class.call_args.args[0]
        assert config.host == "127.0.0.1"
        assert config.port == 9555


# =============================================================================
# JSON-RPC
# =============================================================================


class TestJsonRpc:
    """Tests for JSON-RPC dispatch."""

    async def test_get_property(self, client: AsyncClient, player: MagicMock) -> None:
        data = await rpc(client, "get_property", ["volume"])

        assert data["result"] == 80
        assert data["id"] == 1
        player.get_property.assert_awaited_once_with("volume")

    async def test_set_property(self, client: AsyncClient, player: MagicMock) -> None:
        data = await rpc(client, "set_property", ["pause", True])

        assert "error" not in data
        player.set_property.assert_awaited_once_with("pause", True)

    async def test_command(self, client: AsyncClient, player: MagicMock) -> None:
        await rpc(client, "command", ["seek", 10, "relative"])

        player.command.assert_awaited_once_with("seek", [10, "relative"])

    async def test_load(self, client: AsyncClient, player: MagicMock) -> None:
        data = await rpc(client, "load", ["song.mp3", "replace", "start=5"])

        assert data["result"] == "success"
        player.load.assert_awaited_once_with("song.mp3", "replace", ["start=5"])

    async def test_append_defaults(self, client: AsyncClient, player: MagicMock) -> None:
        data = await rpc(client, "append", ["song.mp3"])

        assert data["result"] == "silent_success"
        player.append.assert_awaited_once_with("song.mp3", "append", None)

    async def test_free_command(self, client: AsyncClient, player: MagicMock) -> None:
        data = await rpc(client, "free_command", ["cycle pause"])

        assert data["result"] is None
        player.free_command.assert_awaited_once_with("cycle pause")

    async def test_unknown_method(self, client: AsyncClient) -> None:
        data = await rpc(client, "explode")

        assert data["error"]["code"] == ERROR_METHOD_NOT_FOUND

    async def test_missing_params(self, client: AsyncClient, player: MagicMock) -> None:
        data = await rpc(client, "set_property", ["volume"])

        assert data["error"]["code"] == ERROR_INVALID_PARAMS
        player.set_property.assert_not_awaited()

    async def test_params_must_be_list(self, client: AsyncClient) -> None:
        response = await client.post(
            "/jsonrpc", json={"id": 1, "method": "get_property", "params": {"name": "volume"}}
        )

        assert response.json()["error"]["code"] == ERROR_INVALID_REQUEST

    async def test_player_error(self, client: AsyncClient, player: MagicMock) -> None:
        player.load.side_effect = NotRunningError(method="load", arguments=["song.mp3", "replace"])

        data = await rpc(client, "load", ["song.mp3"])

        assert data["error"]["code"] == ERROR_PLAYER_ERROR
        assert data["error"]["data"]["errcode"] == 8
        assert data["error"]["data"]["verbose"] == "MPV is not running"
        assert data["error"]["data"]["method"] == "load"

    async def test_remote_error(self, client: AsyncClient, player: MagicMock) -> None:
        player.get_property.side_effect = RemoteCommandError(
            "property unavailable", method="get_property", arguments=["duration"]
        )

        data = await rpc(client, "get_property", ["duration"])

        assert data["error"]["data"]["errmessage"] == "property unavailable"
        assert data["error"]["data"]["arguments"] == ["duration"]

    async def test_unexpected_error(self, client: AsyncClient, player: MagicMock) -> None:
        player.cycle_property.side_effect = RuntimeError("bug")

        data = await rpc(client, "cycle_property", ["mute"])

        assert data["error"]["code"] == ERROR_INTERNAL_ERROR
