"""
Error taxonomy for mpvctl.

Every failure raised by the control layer is an MpvError subclass. Each class
carries a fixed ErrorCode and the context needed to build a structured error
object:

    {
        "errcode": 8,
        "verbose": "MPV is not running",
        "method": "load",
        "arguments": ["song.mp3", "replace"],
        "errmessage": None,
        "options": {...},
    }

`options` holds the valid alternatives when the caller supplied something
outside the recognized set (e.g. an unknown load mode).
"""

from __future__ import annotations

from enum import IntEnum
from typing import Any


class ErrorCode(IntEnum):
    """Numeric error codes and their descriptions."""

    LOAD_FAILED = 0
    INVALID_ARGUMENT = 1
    COMMAND_FAILED = 3
    CONNECTION_FAILED = 4
    TIMEOUT = 5
    CONNECTION_LOST = 7
    NOT_RUNNING = 8
    PROTOCOL_ERROR = 9

    @property
    def verbose(self) -> str:
        return _VERBOSE[self]


_VERBOSE: dict[ErrorCode, str] = {
    ErrorCode.LOAD_FAILED: "Unable to load file or stream",
    ErrorCode.INVALID_ARGUMENT: "Invalid argument",
    ErrorCode.COMMAND_FAILED: "ipcCommand invalid",
    ErrorCode.CONNECTION_FAILED: "Unable to connect to IPC socket",
    ErrorCode.TIMEOUT: "Timeout",
    ErrorCode.CONNECTION_LOST: "Could not send IPC message",
    ErrorCode.NOT_RUNNING: "MPV is not running",
    ErrorCode.PROTOCOL_ERROR: "Malformed IPC message",
}


class MpvError(Exception):
    """Base class for all mpvctl errors."""

    code: ErrorCode = ErrorCode.COMMAND_FAILED

    def __init__(
        self,
        errmessage: str | None = None,
        *,
        method: str = "",
        arguments: list[Any] | None = None,
        options: dict[str, str] | None = None,
    ) -> None:
        self.errmessage = errmessage
        self.method = method
        self.arguments = arguments
        self.options = options
        super().__init__(errmessage or self.code.verbose)

    @property
    def verbose(self) -> str:
        return self.code.verbose

    def to_dict(self) -> dict[str, Any]:
        """Convert the error to its structured JSON form."""
        return {
            "errcode": int(self.code),
            "verbose": self.verbose,
            "method": self.method,
            "arguments": self.arguments,
            "errmessage": self.errmessage,
            "options": self.options,
        }

    def __str__(self) -> str:
        parts = [self.verbose]
        if self.method:
            parts.append(f"in {self.method}()")
        if self.errmessage:
            parts.append(f"- {self.errmessage}")
        if self.arguments:
            parts.append(f"(arguments: {self.arguments!r})")
        return " ".join(parts)


class NotRunningError(MpvError):
    """The player connection is absent or already closed."""

    code = ErrorCode.NOT_RUNNING


class MpvConnectionError(MpvError):
    """The control socket could not be reached."""

    code = ErrorCode.CONNECTION_FAILED


class ConnectionLostError(MpvConnectionError):
    """The connection went away while an operation depended on it."""

    code = ErrorCode.CONNECTION_LOST


class ProtocolError(MpvError):
    """A message from the player could not be parsed."""

    code = ErrorCode.PROTOCOL_ERROR


class InvalidArgumentError(MpvError):
    """A caller-supplied argument is outside the recognized set."""

    code = ErrorCode.INVALID_ARGUMENT


class RemoteCommandError(MpvError):
    """The player answered a request with a non-success error string."""

    code = ErrorCode.COMMAND_FAILED


class LoadTimeoutError(MpvError):
    """A load did not reach a terminal event within the poll bound."""

    code = ErrorCode.TIMEOUT


class PlaybackFailedError(MpvError):
    """The file ended before it finished loading."""

    code = ErrorCode.LOAD_FAILED
