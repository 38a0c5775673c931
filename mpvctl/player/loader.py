"""
Load orchestration.

Sending loadfile only tells us the player accepted the command. Whether the
file actually plays is reported later through events, which the player
broadcasts to every connected client:

    start-file   -> the entry is being opened
    file-loaded  -> it opened and playback begins      (success)
    end-file     -> it ended before it finished loading (unplayable)

Each load opens a dedicated watch connection (EventWatch) before issuing the
command, so the events it needs are never missed and the watch never competes
with other commands on the main connection.

The wait is bounded by traffic rather than wall-clock time: every chunk read
on the watch connection counts as one delivery, and the load gives up once
more than `poll_limit` deliveries arrived without a terminal event. A player
that sends nothing at all therefore keeps the load waiting.

State machine (LoadWatcher):

    NOT_STARTED -> AWAITING_START -> AWAITING_LOADED -> CONCLUDED
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Iterable, Mapping
from enum import Enum
from typing import TYPE_CHECKING, Any

from mpvctl.config import DEFAULT_POLL_LIMIT, DEFAULT_READ_CHUNK_SIZE
from mpvctl.core.errors import (
    ConnectionLostError,
    InvalidArgumentError,
    LoadTimeoutError,
    NotRunningError,
    PlaybackFailedError,
)
from mpvctl.protocol.commands import (
    EVENT_END_FILE,
    EVENT_FILE_LOADED,
    EVENT_START_FILE,
    LOAD_MODE_DESCRIPTIONS,
    LoadMode,
    build_loadfile,
)
from mpvctl.protocol.ipc import IpcConnection

if TYPE_CHECKING:
    from mpvctl.player.controller import MpvPlayer

logger = logging.getLogger(__name__)


class LoadState(Enum):
    """Progress of a single load."""

    NOT_STARTED = "not_started"
    AWAITING_START = "awaiting_start"
    AWAITING_LOADED = "awaiting_loaded"
    CONCLUDED = "concluded"


class LoadOutcome(Enum):
    """How a load concluded."""

    SUCCESS = "success"
    SILENT_SUCCESS = "silent_success"
    FAILED = "failed"
    TIMED_OUT = "timed_out"


def is_silent_load(mode: LoadMode, playlist_size: int) -> bool:
    """
    Whether a load produces no lifecycle events.

    Appending never changes what is playing. append-play only starts playback
    when the new entry is the only one, i.e. playlist_size (read after the
    loadfile command) is exactly 1.
    """
    if mode is LoadMode.APPEND:
        return True
    return mode is LoadMode.APPEND_PLAY and playlist_size > 1


class LoadWatcher:
    """
    Decides when a load has concluded, from batches of event messages.

    Each call to feed() is one data delivery. The watcher is pure state; it
    does no I/O and can be driven with synthetic event streams.
    """

    def __init__(self, poll_limit: int = DEFAULT_POLL_LIMIT) -> None:
        self.poll_limit = poll_limit
        self.state = LoadState.NOT_STARTED
        self.deliveries = 0
        self.started = False
        self.outcome: LoadOutcome | None = None

    def begin(self) -> None:
        """Start waiting for start-file."""
        if self.state is LoadState.NOT_STARTED:
            self.state = LoadState.AWAITING_START

    def conclude(self, outcome: LoadOutcome) -> LoadOutcome:
        """Conclude the load. The first conclusion wins."""
        if self.outcome is None:
            self.outcome = outcome
            self.state = LoadState.CONCLUDED
            logger.debug("Load concluded: %s after %d deliveries", outcome.value, self.deliveries)
        return self.outcome

    def feed(self, messages: Iterable[Mapping[str, Any]]) -> LoadOutcome | None:
        """
        Process one delivery.

        Returns:
            The outcome once the load has concluded, otherwise None.
        """
        if self.outcome is not None:
            return self.outcome

        self.begin()
        self.deliveries += 1

        for message in messages:
            event = message.get("event")
            if event == EVENT_START_FILE:
                self.started = True
                self.state = LoadState.AWAITING_LOADED
            elif self.state is LoadState.AWAITING_LOADED:
                if event == EVENT_FILE_LOADED:
                    return self.conclude(LoadOutcome.SUCCESS)
                if event == EVENT_END_FILE:
                    return self.conclude(LoadOutcome.FAILED)

        if self.deliveries > self.poll_limit:
            return self.conclude(LoadOutcome.TIMED_OUT)
        return None


class EventWatch:
    """
    Secondary connection used only to observe the event stream.

    Iterating yields one list of event messages per data delivery and stops
    when the connection goes away.
    """

    def __init__(self, socket_path: str, *, read_chunk_size: int = DEFAULT_READ_CHUNK_SIZE) -> None:
        self._deliveries: asyncio.Queue[list[dict[str, Any]] | None] = asyncio.Queue()
        self._connection = IpcConnection(
            socket_path,
            name="watch",
            read_chunk_size=read_chunk_size,
            on_delivery=self._deliveries.put_nowait,
            on_close=self._on_close,
        )

    @property
    def is_open(self) -> bool:
        return self._connection.is_connected

    async def open(self) -> None:
        await self._connection.connect()

    async def close(self) -> None:
        await self._connection.close()

    def _on_close(self, reason: str) -> None:
        self._deliveries.put_nowait(None)

    def __aiter__(self) -> "EventWatch":
        return self

    async def __anext__(self) -> list[dict[str, Any]]:
        delivery = await self._deliveries.get()
        if delivery is None:
            # Keep the end marker for any later iteration.
            self._deliveries.put_nowait(None)
            raise StopAsyncIteration
        return delivery


WatchFactory = Callable[[str], EventWatch]


class LoadOrchestrator:
    """
    Runs loads for a player.

    Every call to load() is an independent session with its own watch
    connection and LoadWatcher.
    """

    def __init__(
        self,
        player: MpvPlayer,
        *,
        poll_limit: int = DEFAULT_POLL_LIMIT,
        watch_factory: WatchFactory | None = None,
    ) -> None:
        self._player = player
        self.poll_limit = poll_limit
        self._watch_factory = watch_factory or self._default_watch

    def _default_watch(self, socket_path: str) -> EventWatch:
        return EventWatch(socket_path, read_chunk_size=self._player.config.socket.read_chunk_size)

    async def load(
        self,
        file: str,
        mode: LoadMode | str = LoadMode.REPLACE,
        options: list[str] | None = None,
        *,
        method: str = "load",
    ) -> LoadOutcome:
        """
        Load a file and wait until it plays, fails, or the wait runs out.

        Args:
            file: Path or URL understood by the player.
            mode: "replace", "append" or "append-play".
            options: Per-file options as "key=value" strings.
            method: Name reported in errors (load or append).

        Returns:
            LoadOutcome.SUCCESS or LoadOutcome.SILENT_SUCCESS.

        Raises:
            NotRunningError: The player is not connected.
            InvalidArgumentError: Unknown mode.
            RemoteCommandError: The player rejected the loadfile command.
            PlaybackFailedError: The file ended before it finished loading.
            LoadTimeoutError: No terminal event within the poll limit.
            ConnectionLostError: The watch connection closed mid-load.
        """
        mode_value = mode.value if isinstance(mode, LoadMode) else mode
        arguments: list[Any] = [file, mode_value, *(options or [])]

        if not self._player.is_running:
            raise NotRunningError(
                method=method,
                arguments=arguments,
                options=dict(LOAD_MODE_DESCRIPTIONS),
            )

        try:
            load_mode = LoadMode(mode_value)
        except ValueError:
            raise InvalidArgumentError(
                f"'{mode_value}' is not a valid load mode",
                method=method,
                arguments=arguments,
                options=dict(LOAD_MODE_DESCRIPTIONS),
            ) from None

        watch = self._watch_factory(self._player.socket_path)
        await watch.open()
        try:
            return await self._run(watch, file, load_mode, options, method=method)
        finally:
            await watch.close()

    async def _run(
        self,
        watch: EventWatch,
        file: str,
        mode: LoadMode,
        options: list[str] | None,
        *,
        method: str,
    ) -> LoadOutcome:
        watcher = LoadWatcher(self.poll_limit)
        logger.info("Loading %s (mode=%s)", file, mode.value)

        command = build_loadfile(file, mode, options)
        await self._player.command(command[0], command[1:])

        playlist_size = await self._player.get_playlist_size()
        if is_silent_load(mode, playlist_size or 0):
            logger.debug("No playback change expected for %s (playlist size %s)", file, playlist_size)
            return watcher.conclude(LoadOutcome.SILENT_SUCCESS)

        watcher.begin()
        async for delivery in watch:
            outcome = watcher.feed(delivery)
            if outcome is not None:
                break
        else:
            raise ConnectionLostError(
                "Event connection closed before the file finished loading",
                method=method,
                arguments=[file],
            )

        if outcome is LoadOutcome.FAILED:
            raise PlaybackFailedError(method=method, arguments=[file])
        if outcome is LoadOutcome.TIMED_OUT:
            raise LoadTimeoutError(
                f"No file-loaded event after {watcher.deliveries} deliveries",
                method=method,
                arguments=[file],
            )

        logger.info("Loaded %s", file)
        return outcome
