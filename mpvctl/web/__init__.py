"""
mpvctl Web Layer.

HTTP/JSON-RPC bridge that lets other processes drive the player through the
same command façade.
"""

from mpvctl.web.jsonrpc import JsonRpcHandler
from mpvctl.web.server import WebServer

__all__ = [
    "JsonRpcHandler",
    "WebServer",
]
