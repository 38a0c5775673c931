"""
mpv IPC command builders.

Each builder returns the ordered command list that goes into the "command"
field of a request:

    {"command": ["set_property", "volume", 50], "request_id": 7}

Builders do not validate or coerce property names or values; the player
reports bad input through the response's error field.

Reference: https://mpv.io/manual/master/#json-ipc
"""

from __future__ import annotations

import json
from enum import Enum
from typing import Any

# The only value of a response's "error" field that means success.
SUCCESS = "success"

# Playlist/lifecycle event names used by the load orchestrator.
EVENT_START_FILE = "start-file"
EVENT_FILE_LOADED = "file-loaded"
EVENT_END_FILE = "end-file"


class LoadMode(str, Enum):
    """How loadfile treats the current playlist."""

    REPLACE = "replace"
    APPEND = "append"
    APPEND_PLAY = "append-play"


LOAD_MODE_DESCRIPTIONS: dict[str, str] = {
    LoadMode.REPLACE.value: "Replace the currently playing title",
    LoadMode.APPEND.value: "Append the title to the playlist",
    LoadMode.APPEND_PLAY.value: (
        "Append the title and when it is the only title in the list start playback"
    ),
}


def build_command(command: str, args: list[Any] | tuple[Any, ...] | None = None) -> list[Any]:
    """Build a generic command list: [command, *args]."""
    return [command, *(args or ())]


def build_set_property(prop: str, value: Any) -> list[Any]:
    """Set a property to a value."""
    return ["set_property", prop, value]


def build_add_property(prop: str, value: float) -> list[Any]:
    """Add a value to a numeric property (e.g. volume)."""
    return ["add", prop, value]


def build_multiply_property(prop: str, value: float) -> list[Any]:
    """Multiply a numeric property by a value."""
    return ["multiply", prop, value]


def build_cycle_property(prop: str) -> list[Any]:
    """Cycle a property; for flags such as mute or fullscreen this toggles."""
    return ["cycle", prop]


def build_get_property(prop: str) -> list[Any]:
    """Read the current value of a property."""
    return ["get_property", prop]


def build_observe_property(observe_id: int, prop: str) -> list[Any]:
    """Ask the player to send property-change events for a property."""
    return ["observe_property", observe_id, prop]


def build_unobserve_property(observe_id: int) -> list[Any]:
    """Stop property-change events registered under observe_id."""
    return ["unobserve_property", observe_id]


def format_options(options: list[str]) -> dict[str, str]:
    """
    Turn ["option1=value1", "option2=value2"] into {"option1": "value1", ...}.

    Splits on the first "=" only, so values may contain "=". An entry without
    "=" maps to an empty string.
    """
    formatted: dict[str, str] = {}
    for option in options:
        key, _, value = option.partition("=")
        formatted[key] = value
    return formatted


def build_loadfile(file: str, mode: LoadMode | str, options: list[str] | None = None) -> list[Any]:
    """Build the loadfile command, with per-file options as an object."""
    mode_value = mode.value if isinstance(mode, LoadMode) else mode
    command: list[Any] = ["loadfile", file, mode_value]
    if options:
        command.append(format_options(options))
    return command


def encode_request(command: list[Any], request_id: int) -> bytes:
    """Serialize a request line."""
    payload = {"command": command, "request_id": request_id}
    return (json.dumps(payload) + "\n").encode("utf-8")


def encode_raw(command: str) -> bytes:
    """Serialize a raw input command (no request id, no response)."""
    return (command + "\n").encode("utf-8")
