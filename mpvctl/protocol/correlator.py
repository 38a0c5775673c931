"""
Request/response correlation.

Every request written to the player carries a request_id. The player echoes
it in the matching response, in whatever order responses become ready. The
correlator keeps one PendingRequest per in-flight id and completes its future
when the response arrives.

Concurrency: all methods are synchronous and run on the event loop thread,
so each table operation is atomic with respect to other coroutines. The only
removal point is dict.pop(), which guarantees an entry is completed at most
once.
"""

from __future__ import annotations

import asyncio
import itertools
import logging
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from mpvctl.core.errors import ConnectionLostError, RemoteCommandError
from mpvctl.protocol.commands import SUCCESS

logger = logging.getLogger(__name__)


@dataclass
class PendingRequest:
    """A request waiting for its response."""

    request_id: int
    command: list[Any]
    future: asyncio.Future[Any]

    @property
    def arguments(self) -> list[Any]:
        """Command arguments without the command name (for error messages)."""
        return list(self.command[1:])


def get_request_id(message: Mapping[str, Any]) -> int:
    """
    Return the message's request id, or 0 when it has none.

    Events carry no request_id (or 0); anything that is not a positive
    integer is treated as "no id".
    """
    request_id = message.get("request_id")
    if isinstance(request_id, bool) or not isinstance(request_id, int):
        return 0
    return request_id if request_id > 0 else 0


class RequestCorrelator:
    """
    Table of in-flight requests keyed by request id.

    Request ids come from a monotonically increasing counter starting at 1,
    so an id is never reused while its request is pending.
    """

    def __init__(self) -> None:
        self._pending: dict[int, PendingRequest] = {}
        self._ids = itertools.count(1)

    def register(self, command: list[Any]) -> PendingRequest:
        """Allocate an id and a future for a new request."""
        loop = asyncio.get_running_loop()
        request_id = next(self._ids)
        pending = PendingRequest(
            request_id=request_id,
            command=list(command),
            future=loop.create_future(),
        )
        self._pending[request_id] = pending
        return pending

    def resolve(self, message: Mapping[str, Any]) -> bool:
        """
        Complete the request matching a response message.

        Returns:
            True if a pending request was completed, False if the message had
            no id or the id is unknown (already completed or spurious).
        """
        request_id = get_request_id(message)
        if not request_id:
            return False

        pending = self._pending.pop(request_id, None)
        if pending is None:
            logger.debug("Dropping response for unknown request_id %d", request_id)
            return False

        if pending.future.done():
            # Caller gave up (cancelled) before the response arrived.
            return True

        error = message.get("error")
        if error == SUCCESS:
            pending.future.set_result(message.get("data"))
        else:
            pending.future.set_exception(
                RemoteCommandError(
                    str(error),
                    method=str(pending.command[0]) if pending.command else "",
                    arguments=pending.arguments,
                )
            )
        return True

    def discard(self, request_id: int) -> PendingRequest | None:
        """Remove a request without completing it. No-op if absent."""
        return self._pending.pop(request_id, None)

    def fail_all(self, reason: str) -> int:
        """
        Fail every pending request with ConnectionLostError.

        Args:
            reason: Error message attached to each failure.

        Returns:
            Number of requests that were failed.
        """
        pending, self._pending = self._pending, {}
        failed = 0
        for request in pending.values():
            if not request.future.done():
                request.future.set_exception(
                    ConnectionLostError(
                        reason,
                        method=str(request.command[0]) if request.command else "",
                        arguments=request.arguments,
                    )
                )
                failed += 1
        if failed:
            logger.debug("Failed %d pending requests: %s", failed, reason)
        return failed

    def __len__(self) -> int:
        """Return the number of pending requests."""
        return len(self._pending)

    def __contains__(self, request_id: int) -> bool:
        """Check if a request id is pending."""
        return request_id in self._pending
