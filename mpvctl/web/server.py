"""
Web Server Module for mpvctl.

This module provides the WebServer class that creates and manages the
FastAPI application for remote control of the player:
- /health: liveness check
- /api/status: connection state and observed properties
- /jsonrpc: JSON-RPC access to the command façade
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any

import uvicorn
from fastapi import FastAPI

from mpvctl import __version__
from mpvctl.config import WebConfig
from mpvctl.web.jsonrpc import JsonRpcHandler

if TYPE_CHECKING:
    from mpvctl.player.controller import MpvPlayer

logger = logging.getLogger(__name__)


class WebServer:
    """FastAPI-based HTTP bridge to an MpvPlayer."""

    def __init__(self, player: MpvPlayer, config: WebConfig | None = None) -> None:
        """
        Initialize the WebServer.

        Args:
            player: The player controller to expose.
            config: Bind address (packaged defaults if not provided).
        """
        self.player = player
        self.config = config if config is not None else WebConfig()

        # Create FastAPI app
        self.app = FastAPI(
            title="mpvctl",
            description="HTTP control bridge for mpv",
            version=__version__,
        )

        self.jsonrpc_handler = JsonRpcHandler(player)

        # Server state
        self._server: uvicorn.Server | None = None
        self._serve_task: asyncio.Task[None] | None = None
        self._host = self.config.host
        self._port = self.config.port

        self._register_routes()

    def _register_routes(self) -> None:
        """Register all routes with the FastAPI app."""

        @self.app.get("/health")
        async def health_check() -> dict[str, str]:
            """Health check endpoint."""
            return {"status": "ok", "server": "mpvctl"}

        @self.app.get("/api/status", tags=["api"])
        async def status() -> dict[str, Any]:
            """Connection state and last known property values."""
            return {
                "running": self.player.is_running,
                "socket": self.player.socket_path,
                "pending_requests": self.player.pending_requests,
                "observed": dict(self.player.observed),
            }

        @self.app.post("/jsonrpc", tags=["jsonrpc"])
        async def jsonrpc_endpoint(request: dict[str, Any]) -> dict[str, Any]:
            """JSON-RPC endpoint for the command façade."""
            return await self.jsonrpc_handler.handle_request(request)

    async def start(self, host: str | None = None, port: int | None = None) -> None:
        """
        Start the web server in the background.

        Args:
            host: Host address to bind to (default: from config)
            port: Port to listen on (default: from config)
        """
        self._host = host or self.config.host
        self._port = port or self.config.port

        config = uvicorn.Config(
            self.app,
            host=self._host,
            port=self._port,
            log_level="warning",
            access_log=False,
        )
        self._server = uvicorn.Server(config)
        self._serve_task = asyncio.create_task(self._server.serve())

        logger.info("Web server started on http://%s:%d", self._host, self._port)

    async def stop(self) -> None:
        """Stop the web server."""
        if self._server is not None:
            self._server.should_exit = True
            self._server = None

        if self._serve_task is not None:
            task, self._serve_task = self._serve_task, None
            await task

        logger.info("Web server stopped")

    @property
    def port(self) -> int:
        """Get the server port."""
        return self._port

    @property
    def host(self) -> str:
        """Get the server host."""
        return self._host
