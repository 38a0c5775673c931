"""
Message framing for the mpv JSON IPC protocol.

The player writes UTF-8 JSON objects terminated by a newline:

    {"request_id": 3, "error": "success", "data": 100}\n
    {"event": "start-file", "playlist_entry_id": 1}\n

A single read from the socket may contain zero, one or many messages, and a
message may be split across reads. The framer buffers the unterminated tail
and yields complete messages in arrival order.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Iterator
from typing import Any

from mpvctl.core.errors import ProtocolError

logger = logging.getLogger(__name__)

LINE_TERMINATOR = b"\n"

# Largest unterminated fragment kept between reads.
MAX_PENDING_BYTES = 1024 * 1024


def parse_message(line: bytes | str) -> dict[str, Any]:
    """
    Parse a single framed message.

    Raises:
        ProtocolError: If the line is not a JSON object.
    """
    try:
        message = json.loads(line)
    except (UnicodeDecodeError, ValueError) as e:
        raise ProtocolError(f"Invalid JSON message: {e}", arguments=[_preview(line)]) from e

    if not isinstance(message, dict):
        raise ProtocolError(
            f"Expected a JSON object, got {type(message).__name__}",
            arguments=[_preview(line)],
        )
    return message


def _preview(line: bytes | str, limit: int = 200) -> str:
    if isinstance(line, bytes):
        line = line.decode("utf-8", errors="replace")
    return line[:limit]


class MessageFramer:
    """
    Splits a byte stream into parsed protocol messages.

    A malformed message is yielded as a ProtocolError instance instead of
    being raised, so the remaining messages of the same chunk are still
    processed.
    """

    def __init__(self, max_pending: int = MAX_PENDING_BYTES) -> None:
        self._buffer = b""
        self._max_pending = max_pending

    @property
    def pending_bytes(self) -> int:
        """Number of buffered bytes waiting for a terminator."""
        return len(self._buffer)

    def feed(self, chunk: bytes) -> Iterator[dict[str, Any] | ProtocolError]:
        """
        Add a chunk of bytes and yield every message it completes.

        The chunk is split immediately; parsing happens lazily as the result
        is iterated.
        """
        data = self._buffer + chunk
        *lines, self._buffer = data.split(LINE_TERMINATOR)

        overflow = len(self._buffer) if len(self._buffer) > self._max_pending else 0
        if overflow:
            self._buffer = b""

        return self._parse_lines(lines, overflow)

    @staticmethod
    def _parse_lines(
        lines: list[bytes], overflow: int
    ) -> Iterator[dict[str, Any] | ProtocolError]:
        for line in lines:
            line = line.strip()
            if not line:
                continue
            try:
                yield parse_message(line)
            except ProtocolError as e:
                yield e

        if overflow:
            yield ProtocolError(f"Unterminated message too large: {overflow} bytes")

    def reset(self) -> None:
        """Discard any buffered partial message."""
        if self._buffer:
            logger.debug("Discarding %d buffered bytes", len(self._buffer))
        self._buffer = b""
