"""
Configuration management for mpvctl.

This module loads the socket, load-watch, observation and web settings from
TOML files. The packaged defaults live next to this module in defaults.toml.
"""

from __future__ import annotations

import logging
import sys
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

# Path to the config directory
CONFIG_DIR = Path(__file__).parent

DEFAULT_SOCKET_PATH = "/tmp/mpvctl.sock"
DEFAULT_WINDOWS_SOCKET_PATH = "\\\\.\\pipe\\mpvctl"
DEFAULT_POLL_LIMIT = 10
DEFAULT_READ_CHUNK_SIZE = 65536


@dataclass
class SocketConfig:
    """Where and how to reach the player's control endpoint."""

    path: str = DEFAULT_SOCKET_PATH
    windows_path: str = DEFAULT_WINDOWS_SOCKET_PATH
    read_chunk_size: int = DEFAULT_READ_CHUNK_SIZE


@dataclass
class LoadConfig:
    """Settings for the load orchestrator."""

    poll_limit: int = DEFAULT_POLL_LIMIT


@dataclass
class ObserveConfig:
    """Properties observed after connecting."""

    properties: list[str] = field(default_factory=list)
    video_properties: list[str] = field(default_factory=list)
    audio_only: bool = False
    initial: dict[str, Any] = field(default_factory=dict)

    @property
    def effective_properties(self) -> list[str]:
        """Observed properties, including video ones unless audio-only."""
        if self.audio_only:
            return list(self.properties)
        return [*self.properties, *(p for p in self.video_properties if p not in self.properties)]

    def initial_values(self) -> dict[str, Any]:
        """Starting value of every effective property (None when not configured)."""
        return {prop: self.initial.get(prop) for prop in self.effective_properties}


@dataclass
class WebConfig:
    """HTTP bridge settings."""

    host: str = "127.0.0.1"
    port: int = 9070


@dataclass
class MpvConfig:
    """Loaded mpvctl configuration."""

    socket: SocketConfig = field(default_factory=SocketConfig)
    load: LoadConfig = field(default_factory=LoadConfig)
    observe: ObserveConfig = field(default_factory=ObserveConfig)
    web: WebConfig = field(default_factory=WebConfig)
    debug: bool = False

    @property
    def socket_path(self) -> str:
        """The control endpoint for the current platform."""
        if sys.platform == "win32":
            return self.socket.windows_path
        return self.socket.path


def _section(data: dict[str, Any], name: str) -> dict[str, Any]:
    value = data.get(name, {})
    return value if isinstance(value, dict) else {}


def parse_config(data: dict[str, Any]) -> MpvConfig:
    """
    Build an MpvConfig from already-parsed TOML data.

    Missing keys fall back to the dataclass defaults.
    """
    socket_data = _section(data, "socket")
    load_data = _section(data, "load")
    observe_data = _section(data, "observe")
    web_data = _section(data, "web")

    return MpvConfig(
        socket=SocketConfig(
            path=str(socket_data.get("path", DEFAULT_SOCKET_PATH)),
            windows_path=str(socket_data.get("windows_path", DEFAULT_WINDOWS_SOCKET_PATH)),
            read_chunk_size=int(socket_data.get("read_chunk_size", DEFAULT_READ_CHUNK_SIZE)),
        ),
        load=LoadConfig(
            poll_limit=int(load_data.get("poll_limit", DEFAULT_POLL_LIMIT)),
        ),
        observe=ObserveConfig(
            properties=list(observe_data.get("properties", [])),
            video_properties=list(observe_data.get("video_properties", [])),
            audio_only=bool(observe_data.get("audio_only", False)),
            initial=dict(_section(observe_data, "initial")),
        ),
        web=WebConfig(
            host=str(web_data.get("host", "127.0.0.1")),
            port=int(web_data.get("port", 9070)),
        ),
        debug=bool(data.get("debug", False)),
    )


def load_config(config_path: Path | None = None) -> MpvConfig:
    """
    Load configuration from a TOML file.

    Args:
        config_path: Path to a TOML file. If None, uses the packaged defaults.

    Returns:
        Loaded MpvConfig instance.
    """
    if config_path is None:
        config_path = CONFIG_DIR / "defaults.toml"

    logger.debug("Loading config from %s", config_path)

    with config_path.open("rb") as f:
        data = tomllib.load(f)

    return parse_config(data)


# Global singleton instance (lazy loaded)
_config: MpvConfig | None = None


def get_config() -> MpvConfig:
    """
    Get the global configuration (lazy loaded singleton).

    Returns:
        The MpvConfig instance.
    """
    global _config

    if _config is None:
        _config = load_config()

    return _config


def reload_config(config_path: Path | None = None) -> MpvConfig:
    """
    Force reload of the global configuration.

    Returns:
        The newly loaded MpvConfig instance.
    """
    global _config
    _config = load_config(config_path)
    return _config
