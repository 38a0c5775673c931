"""
IPC connection to a running mpv player.

mpv exposes its JSON IPC protocol on the endpoint given by --input-ipc-server:
a Unix domain socket on POSIX systems, a named pipe on Windows.

An IpcConnection owns one such socket. It writes requests, runs a read loop
that frames the incoming byte stream, resolves responses through the
RequestCorrelator and hands event messages to its delivery callback, one call
per chunk read from the socket.

    conn = IpcConnection("/tmp/mpvctl.sock", on_delivery=print)
    await conn.connect()
    volume = await conn.send(["get_property", "volume"])
    await conn.close()
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import sys
from collections.abc import Callable
from typing import Any

from mpvctl.config import DEFAULT_READ_CHUNK_SIZE
from mpvctl.core.errors import (
    ConnectionLostError,
    MpvConnectionError,
    NotRunningError,
    ProtocolError,
)
from mpvctl.protocol.commands import encode_raw, encode_request
from mpvctl.protocol.correlator import RequestCorrelator, get_request_id
from mpvctl.protocol.framing import MessageFramer

logger = logging.getLogger(__name__)

# Called once per chunk read, with the event messages found in it (may be empty).
DeliveryHandler = Callable[[list[dict[str, Any]]], None]
# Called once when the connection is torn down, with the reason.
CloseHandler = Callable[[str], None]


async def open_ipc_stream(address: str) -> tuple[asyncio.StreamReader, asyncio.StreamWriter]:
    """
    Open a stream pair to the player's control endpoint.

    Raises:
        OSError: If the endpoint does not exist or nobody is listening.
    """
    if sys.platform == "win32":
        loop = asyncio.get_running_loop()
        reader = asyncio.StreamReader()
        protocol = asyncio.StreamReaderProtocol(reader)
        transport, _ = await loop.create_pipe_connection(lambda: protocol, address)  # type: ignore[attr-defined]
        writer = asyncio.StreamWriter(transport, protocol, reader, loop)
        return reader, writer
    return await asyncio.open_unix_connection(address)


class IpcConnection:
    """
    A single duplex connection to the player.

    Any number of send() calls may be outstanding at once; each is matched to
    its response by request id, independent of the order responses arrive in.

    Attributes:
        socket_path: The control endpoint address.
        name: Label used in log messages (e.g. "main", "watch").
    """

    def __init__(
        self,
        socket_path: str,
        *,
        name: str = "ipc",
        read_chunk_size: int = DEFAULT_READ_CHUNK_SIZE,
        on_delivery: DeliveryHandler | None = None,
        on_close: CloseHandler | None = None,
    ) -> None:
        self.socket_path = socket_path
        self.name = name
        self._read_chunk_size = read_chunk_size
        self._on_delivery = on_delivery
        self._on_close = on_close

        self._correlator = RequestCorrelator()
        self._framer = MessageFramer()
        self._writer: asyncio.StreamWriter | None = None
        self._read_task: asyncio.Task[None] | None = None
        self._write_lock = asyncio.Lock()
        self._closed = True
        self._closed_event = asyncio.Event()
        self._closed_event.set()

    @property
    def is_connected(self) -> bool:
        """Check if the connection is open."""
        return not self._closed and self._writer is not None

    @property
    def pending_count(self) -> int:
        """Number of requests waiting for a response."""
        return len(self._correlator)

    @property
    def correlator(self) -> RequestCorrelator:
        """The request table of this connection."""
        return self._correlator

    async def connect(self) -> None:
        """
        Connect to the control endpoint and start the read loop.

        Raises:
            MpvConnectionError: If the endpoint is unreachable.
        """
        if self.is_connected:
            logger.warning("[%s] Already connected to %s", self.name, self.socket_path)
            return

        try:
            reader, writer = await open_ipc_stream(self.socket_path)
        except OSError as e:
            raise MpvConnectionError(
                f"Could not connect to socket '{self.socket_path}': {e}",
                method="connect",
                arguments=[self.socket_path],
            ) from e

        self._writer = writer
        self._closed = False
        self._closed_event.clear()
        self._framer.reset()
        self._read_task = asyncio.create_task(self._read_loop(reader))

        logger.debug("[%s] Connected to socket '%s'", self.name, self.socket_path)

    async def close(self) -> None:
        """
        Close the connection.

        Pending requests fail with ConnectionLostError. Safe to call more than
        once and while writes are in flight.
        """
        task, self._read_task = self._read_task, None
        writer = self._writer

        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass

        self._teardown("Connection closed")

        if writer is not None:
            with contextlib.suppress(ConnectionError, OSError):
                await writer.wait_closed()

    async def wait_closed(self) -> None:
        """Wait until the connection has been torn down."""
        await self._closed_event.wait()

    async def send(self, command: list[Any]) -> Any:
        """
        Send a command and wait for its response.

        Args:
            command: Command list, e.g. ["set_property", "pause", True].

        Returns:
            The response's data field (None if absent).

        Raises:
            NotRunningError: If the connection is not open. Nothing is
                registered in that case.
            ConnectionLostError: If the write fails or the connection goes away
                before the response arrives.
            RemoteCommandError: If the player reports an error.
        """
        method = str(command[0]) if command else ""
        if not self.is_connected:
            raise NotRunningError(
                f"Tried to send {command!r} over socket '{self.socket_path}'",
                method=method,
                arguments=list(command[1:]),
            )

        pending = self._correlator.register(command)
        try:
            await self._write(
                encode_request(pending.command, pending.request_id),
                method=method,
                arguments=pending.arguments,
            )
            return await pending.future
        finally:
            self._correlator.discard(pending.request_id)
            # Mark the outcome as consumed when the write itself failed.
            if not pending.future.done():
                pending.future.cancel()
            elif not pending.future.cancelled():
                pending.future.exception()

    async def write_raw(self, command: str) -> None:
        """
        Write a raw input command. No request id, no response.

        Raises:
            NotRunningError: If the connection is not open.
            ConnectionLostError: If the write fails.
        """
        await self._write(encode_raw(command), method="free_command", arguments=[command])

    async def _write(self, data: bytes, *, method: str, arguments: list[Any]) -> None:
        async with self._write_lock:
            writer = self._writer
            if self._closed or writer is None or writer.is_closing():
                raise NotRunningError(
                    f"Socket '{self.socket_path}' is closed",
                    method=method,
                    arguments=arguments,
                )
            try:
                writer.write(data)
                await writer.drain()
            except (ConnectionError, OSError) as e:
                raise ConnectionLostError(
                    f"Could not send IPC message: {e}",
                    method=method,
                    arguments=arguments,
                ) from e

    async def _read_loop(self, reader: asyncio.StreamReader) -> None:
        """Read chunks until the peer closes or the loop is cancelled."""
        reason = "Socket closed on the other side"
        try:
            while True:
                chunk = await reader.read(self._read_chunk_size)
                if not chunk:
                    # Usually means mpv has quit or crashed.
                    logger.debug("[%s] Socket closed on the other side", self.name)
                    break
                self._handle_chunk(chunk)
        except asyncio.CancelledError:
            reason = "Connection closed"
            raise
        except (ConnectionError, OSError) as e:
            reason = f"Socket error: {e}"
            logger.debug("[%s] Socket error: %s", self.name, e)
        finally:
            self._teardown(reason)

    def _handle_chunk(self, chunk: bytes) -> None:
        """Dispatch every message in a chunk, then report the delivery."""
        events: list[dict[str, Any]] = []

        for message in self._framer.feed(chunk):
            if isinstance(message, ProtocolError):
                logger.warning("[%s] Protocol error: %s", self.name, message)
                continue
            if get_request_id(message):
                self._correlator.resolve(message)
            else:
                events.append(message)

        if self._on_delivery is not None:
            try:
                self._on_delivery(events)
            except Exception as e:
                logger.exception("[%s] Error in delivery handler: %s", self.name, e)

    def _teardown(self, reason: str) -> None:
        """Release the socket and fail everything still waiting on it."""
        if self._closed:
            return

        self._closed = True
        writer, self._writer = self._writer, None
        if writer is not None:
            writer.close()

        self._correlator.fail_all(reason)
        self._framer.reset()
        self._closed_event.set()

        logger.debug("[%s] Connection to '%s' torn down: %s", self.name, self.socket_path, reason)

        if self._on_close is not None:
            try:
                self._on_close(reason)
            except Exception as e:
                logger.exception("[%s] Error in close handler: %s", self.name, e)

    def __repr__(self) -> str:
        state = "connected" if self.is_connected else "closed"
        return f"IpcConnection(name={self.name!r}, socket={self.socket_path!r}, {state})"
