"""
Shared fixtures for the mpvctl test suite.

FakeMpvServer speaks enough of mpv's JSON IPC protocol to exercise the
connection, correlator and load orchestration against a real Unix socket.
"""

import asyncio
import json
import shutil
import sys
import tempfile
from collections.abc import Callable, Iterable
from pathlib import Path
from typing import Any

import pytest

from mpvctl.config import MpvConfig, parse_config


class FakeMpvServer:
    """
    Minimal stand-in for an mpv process listening on --input-ipc-server.

    Requests are answered immediately unless hold_responses is set. Events
    scripted in after_command are broadcast to every client once the named
    command has been answered.
    """

    def __init__(self, path: str) -> None:
        self.path = path
        self.requests: list[dict[str, Any]] = []
        self.raw_lines: list[str] = []
        self.properties: dict[str, Any] = {
            "playlist-count": 1,
            "volume": 100,
            "pause": False,
        }
        self.errors: dict[str, str] = {}
        self.after_command: dict[str, list[list[dict[str, Any]]]] = {}
        self.hold_responses = False
        self.held: list[tuple[asyncio.StreamWriter, dict[str, Any]]] = []

        self._server: asyncio.AbstractServer | None = None
        self._writers: list[asyncio.StreamWriter] = []

    @property
    def client_count(self) -> int:
        return len(self._writers)

    async def start(self) -> None:
        self._server = await asyncio.start_unix_server(self._handle_client, path=self.path)

    async def stop(self) -> None:
        await self._close_writers()
        if self._server is not None:
            self._server.close()
            await self._server.wait_closed()
            self._server = None

    async def disconnect_clients(self, expected: int = 1) -> None:
        """
        Close every client connection from the server side.

        Waits until at least `expected` clients have been accepted, since
        the accept callback may still be pending right after a connect.
        """
        await self.wait_for_clients(expected)
        await self._close_writers()

    async def _close_writers(self) -> None:
        for writer in list(self._writers):
            writer.close()
        self._writers.clear()
        await asyncio.sleep(0)

    async def _handle_client(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        self._writers.append(writer)
        try:
            while True:
                line = await reader.readline()
                if not line:
                    break
                try:
                    message = json.loads(line)
                except ValueError:
                    self.raw_lines.append(line.decode("utf-8").strip())
                    continue

                self.requests.append(message)
                if self.hold_responses:
                    self.held.append((writer, message))
                    continue
                await self._respond(writer, message)
        except (ConnectionError, OSError):
            pass
        finally:
            if writer in self._writers:
                self._writers.remove(writer)
            writer.close()

    def reply_for(self, message: dict[str, Any]) -> dict[str, Any]:
        """Build the response mpv would send for a request."""
        command = message["command"]
        name = command[0]
        request_id = message.get("request_id", 0)

        if name in self.errors:
            return {"request_id": request_id, "error": self.errors[name]}

        data: Any = None
        if name == "get_property":
            if command[1] not in self.properties:
                return {"request_id": request_id, "error": "property unavailable"}
            data = self.properties[command[1]]
        elif name == "set_property":
            self.properties[command[1]] = command[2]

        return {"request_id": request_id, "error": "success", "data": data}

    async def _respond(self, writer: asyncio.StreamWriter, message: dict[str, Any]) -> None:
        await self.send(writer, self.reply_for(message))

        scripted = self.after_command.get(message["command"][0], [])
        if scripted:
            # The load watch connects before loadfile is sent.
            await self.wait_for_clients(2)
        for chunk in scripted:
            await self.broadcast(*chunk)

    async def send(self, writer: asyncio.StreamWriter, *messages: dict[str, Any]) -> None:
        """Write messages to one client as a single chunk."""
        writer.write(b"".join(json.dumps(m).encode("utf-8") + b"\n" for m in messages))
        await writer.drain()

    async def send_bytes(self, data: bytes) -> None:
        """Write raw bytes to every client."""
        for writer in list(self._writers):
            writer.write(data)
            await writer.drain()

    async def broadcast(self, *messages: dict[str, Any]) -> None:
        """Write messages to every client as one chunk each."""
        for writer in list(self._writers):
            await self.send(writer, *messages)

    async def release_held(self, order: Callable[[list], Iterable] = reversed) -> None:
        """Answer held requests, in the order given by `order`."""
        held, self.held = self.held, []
        for writer, message in order(held):
            await self.send(writer, self.reply_for(message))

    async def wait_for_requests(self, count: int, timeout: float = 2.0) -> None:
        await wait_until(lambda: len(self.requests) + len(self.raw_lines) >= count, timeout)

    async def wait_for_clients(self, count: int, timeout: float = 2.0) -> None:
        await wait_until(lambda: self.client_count >= count, timeout)

    def commands(self, name: str) -> list[list[Any]]:
        """All received commands with the given name."""
        return [r["command"] for r in self.requests if r["command"][0] == name]


async def wait_until(predicate: Callable[[], bool], timeout: float = 2.0) -> None:
    """Poll until predicate() is true."""
    async with asyncio.timeout(timeout):
        while not predicate():
            await asyncio.sleep(0.01)


# -----------------------------------------------------------------------------
# Fixtures
# -----------------------------------------------------------------------------


@pytest.fixture
def socket_path() -> str:
    """A Unix socket path short enough for sun_path."""
    directory = tempfile.mkdtemp(prefix="mpv")
    yield str(Path(directory) / "mpv.sock")
    shutil.rmtree(directory, ignore_errors=True)


@pytest.fixture
async def mpv_server(socket_path: str) -> FakeMpvServer:
    """A running fake mpv IPC server."""
    if sys.platform == "win32":
        pytest.skip("Unix domain sockets required")
    server = FakeMpvServer(socket_path)
    await server.start()
    yield server
    await server.stop()


@pytest.fixture
def eventually() -> Callable[..., Any]:
    """The wait_until helper, for tests that poll for asynchronous effects."""
    return wait_until


@pytest.fixture
def config() -> MpvConfig:
    """Packaged defaults with nothing observed."""
    return parse_config({"observe": {"properties": [], "video_properties": []}})
