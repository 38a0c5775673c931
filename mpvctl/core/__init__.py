"""
Core package.

Holds the pieces with no socket handling of their own: the error taxonomy
and the event bus. Consumers usually import from the specific module they
need (e.g. `mpvctl.core.events`).
"""

from __future__ import annotations

from mpvctl.core.errors import (
    ConnectionLostError,
    ErrorCode,
    InvalidArgumentError,
    LoadTimeoutError,
    MpvConnectionError,
    MpvError,
    NotRunningError,
    PlaybackFailedError,
    ProtocolError,
    RemoteCommandError,
)

__all__: list[str] = [
    "ConnectionLostError",
    "ErrorCode",
    "InvalidArgumentError",
    "LoadTimeoutError",
    "MpvConnectionError",
    "MpvError",
    "NotRunningError",
    "PlaybackFailedError",
    "ProtocolError",
    "RemoteCommandError",
]
