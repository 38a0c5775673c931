"""
Protocol implementation for mpvctl.

This package contains the mpv JSON IPC client side:
- framing: newline framing and JSON parsing of the byte stream
- commands: command list builders and request encoding
- correlator: request id allocation and response matching
- ipc: the socket connection tying the above together
"""

from mpvctl.protocol.correlator import PendingRequest, RequestCorrelator
from mpvctl.protocol.framing import MessageFramer
from mpvctl.protocol.ipc import IpcConnection

__all__ = [
    "IpcConnection",
    "MessageFramer",
    "PendingRequest",
    "RequestCorrelator",
]
