"""
Player controller for mpvctl.

MpvPlayer is the entry point for controlling a running mpv instance. It owns
the main IPC connection, republishes the player's events on an EventBus,
keeps the values of observed properties up to date, and exposes the command
façade (commands, property access, loading files).
"""

from __future__ import annotations

import itertools
import logging
from typing import Any

from mpvctl.config import MpvConfig, get_config
from mpvctl.core.events import (
    ConnectionClosedEvent,
    Event,
    EventBus,
    MpvEvent,
    PropertyChangeEvent,
)
from mpvctl.player.loader import LoadOrchestrator, LoadOutcome
from mpvctl.protocol.commands import (
    LoadMode,
    build_add_property,
    build_command,
    build_cycle_property,
    build_get_property,
    build_multiply_property,
    build_observe_property,
    build_set_property,
    build_unobserve_property,
)
from mpvctl.protocol.ipc import IpcConnection

logger = logging.getLogger(__name__)


class MpvPlayer:
    """
    Controls a running mpv player over its JSON IPC socket.

    Attributes:
        config: Loaded configuration.
        socket_path: The control endpoint in use.
        event_bus: Bus the player's events are republished on.
        observed: Last known value of every observed property.
    """

    def __init__(
        self,
        config: MpvConfig | None = None,
        *,
        socket_path: str | None = None,
        event_bus: EventBus | None = None,
    ) -> None:
        """
        Initialize the player controller.

        Args:
            config: Configuration (packaged defaults if not provided).
            socket_path: Overrides the configured control endpoint.
            event_bus: Bus to publish events on (created if not provided).
        """
        self.config = config if config is not None else get_config()
        self.socket_path = socket_path or self.config.socket_path
        self.event_bus = event_bus if event_bus is not None else EventBus()

        # Serves as a status object before the first property-change arrives.
        self.observed: dict[str, Any] = self.config.observe.initial_values()
        self._observed_ids: dict[int, str] = {}
        self._observe_ids = itertools.count(1)
        self._subscribed = False

        self._connection = IpcConnection(
            self.socket_path,
            name="main",
            read_chunk_size=self.config.socket.read_chunk_size,
            on_delivery=self._on_delivery,
            on_close=self._on_close,
        )
        self._loader = LoadOrchestrator(self, poll_limit=self.config.load.poll_limit)

    @property
    def is_running(self) -> bool:
        """Check if the player connection is open."""
        return self._connection.is_connected

    @property
    def pending_requests(self) -> int:
        """Number of commands waiting for a response."""
        return self._connection.pending_count

    @property
    def loader(self) -> LoadOrchestrator:
        return self._loader

    # =========================================================================
    # Lifecycle
    # =========================================================================

    async def connect(self, *, observe: bool = True) -> None:
        """
        Connect to the player.

        Args:
            observe: Register the configured default observed properties.

        Raises:
            MpvConnectionError: If the socket is unreachable.
        """
        await self.event_bus.start()
        if not self._subscribed:
            await self.event_bus.subscribe(PropertyChangeEvent.EVENT_NAME, self._on_property_change)
            self._subscribed = True

        await self._connection.connect()
        logger.info("Connected to mpv at %s", self.socket_path)

        if observe:
            for prop in self.config.observe.effective_properties:
                await self.observe_property(prop)

    async def quit(self) -> None:
        """Close the connection and stop event delivery. Safe to call twice."""
        await self._connection.close()
        await self.event_bus.stop()

    async def wait_closed(self) -> None:
        """Wait until the player connection goes away."""
        await self._connection.wait_closed()

    def _on_delivery(self, messages: list[dict[str, Any]]) -> None:
        for message in messages:
            self.event_bus.publish_nowait(MpvEvent.from_message(message))

    def _on_close(self, reason: str) -> None:
        logger.info("Connection to mpv closed: %s", reason)
        self.event_bus.publish_nowait(
            ConnectionClosedEvent(socket_path=self.socket_path, reason=reason)
        )

    async def _on_property_change(self, event: Event) -> None:
        if not isinstance(event, PropertyChangeEvent):
            return
        name = self._observed_ids.get(event.observe_id)
        if name is None:
            return
        self.observed[name] = event.value

    # =========================================================================
    # Command Façade
    # =========================================================================

    async def command(self, command: str, args: list[Any] | tuple[Any, ...] | None = None) -> Any:
        """
        Send a generic command.

        Args:
            command: Command name, e.g. "seek".
            args: Command arguments.

        Returns:
            The response data (None for most commands).
        """
        return await self._connection.send(build_command(command, args))

    async def set_property(self, prop: str, value: Any) -> Any:
        """Set a property."""
        return await self._connection.send(build_set_property(prop, value))

    async def add_property(self, prop: str, value: float) -> Any:
        """Add to a numeric property, e.g. volume."""
        return await self._connection.send(build_add_property(prop, value))

    async def multiply_property(self, prop: str, value: float) -> Any:
        """Multiply a numeric property."""
        return await self._connection.send(build_multiply_property(prop, value))

    async def cycle_property(self, prop: str) -> Any:
        """Cycle a property (toggles flags such as mute or fullscreen)."""
        return await self._connection.send(build_cycle_property(prop))

    async def get_property(self, prop: str) -> Any:
        """Read a property value."""
        return await self._connection.send(build_get_property(prop))

    async def free_command(self, command: str) -> None:
        """
        Write an arbitrary input command, e.g. "cycle pause".

        Fire-and-forget: no request id and no response. Failures surface only
        as NotRunningError / ConnectionLostError from the write.
        """
        await self._connection.write_raw(command)

    async def observe_property(self, prop: str) -> int:
        """
        Start tracking a property in `observed`.

        Returns:
            The observe id used with the player.
        """
        observe_id = next(self._observe_ids)
        is_new = prop not in self.observed
        self._observed_ids[observe_id] = prop
        self.observed.setdefault(prop, self.config.observe.initial.get(prop))
        try:
            await self._connection.send(build_observe_property(observe_id, prop))
        except Exception:
            self._observed_ids.pop(observe_id, None)
            if is_new:
                self.observed.pop(prop, None)
            raise
        return observe_id

    async def unobserve_property(self, prop: str) -> bool:
        """
        Stop tracking a property.

        Returns:
            True if the property was being observed.
        """
        ids = [oid for oid, name in self._observed_ids.items() if name == prop]
        if not ids:
            return False
        for observe_id in ids:
            self._observed_ids.pop(observe_id, None)
            await self._connection.send(build_unobserve_property(observe_id))
        self.observed.pop(prop, None)
        return True

    async def get_playlist_size(self) -> int:
        """Number of entries in the playlist."""
        return await self.get_property("playlist-count")

    # =========================================================================
    # Loading
    # =========================================================================

    async def load(
        self,
        file: str,
        mode: LoadMode | str = LoadMode.REPLACE,
        options: list[str] | None = None,
    ) -> LoadOutcome:
        """
        Load a file or stream and wait until playback starts.

        Args:
            file: Path or URL.
            mode: "replace" (default), "append" or "append-play".
            options: Per-file options as "key=value" strings.
        """
        return await self._loader.load(file, mode, options, method="load")

    async def append(
        self,
        file: str,
        mode: LoadMode | str = LoadMode.APPEND,
        options: list[str] | None = None,
    ) -> LoadOutcome:
        """Append a file to the playlist ("append" or "append-play")."""
        return await self._loader.load(file, mode, options, method="append")

    def __repr__(self) -> str:
        state = "running" if self.is_running else "stopped"
        return f"MpvPlayer(socket={self.socket_path!r}, {state})"
