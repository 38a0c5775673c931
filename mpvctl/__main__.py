"""
mpvctl - Entry Point

Connects to a running mpv instance (started with --input-ipc-server) and
optionally serves the HTTP bridge until the player goes away.

Run with: python -m mpvctl
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from mpvctl import __version__
from mpvctl.config import MpvConfig, get_config, load_config
from mpvctl.core.errors import MpvError
from mpvctl.player.controller import MpvPlayer
from mpvctl.web.server import WebServer


def setup_logging(verbose: bool = False) -> None:
    """Configure logging for the application."""
    level = logging.DEBUG if verbose else logging.INFO

    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    # Reduce noise from third-party libraries
    logging.getLogger("asyncio").setLevel(logging.WARNING)
    logging.getLogger("uvicorn").setLevel(logging.WARNING)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        prog="mpvctl",
        description="Control a running mpv player over its JSON IPC socket",
    )

    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable verbose (debug) logging",
    )

    parser.add_argument(
        "-s",
        "--socket",
        type=str,
        default=None,
        help="mpv IPC socket or named pipe (default: from config)",
    )

    parser.add_argument(
        "-c",
        "--config",
        type=Path,
        default=None,
        help="Path to a TOML config file (default: packaged defaults)",
    )

    parser.add_argument(
        "--web",
        action="store_true",
        help="Serve the HTTP/JSON-RPC bridge",
    )

    parser.add_argument(
        "--web-host",
        type=str,
        default=None,
        help="Web bridge host (default: from config)",
    )

    parser.add_argument(
        "--web-port",
        type=int,
        default=None,
        help="Web bridge port (default: from config)",
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )

    return parser.parse_args(argv)


async def run(config: MpvConfig, args: argparse.Namespace) -> None:
    """Connect to the player and stay attached until it goes away."""
    player = MpvPlayer(config, socket_path=args.socket)
    web_server: WebServer | None = None

    try:
        await player.connect()

        if args.web:
            web_server = WebServer(player, config.web)
            await web_server.start(host=args.web_host, port=args.web_port)

        await player.wait_closed()
    finally:
        if web_server is not None:
            await web_server.stop()
        await player.quit()


def main(argv: list[str] | None = None) -> int:
    """Main entry point for the application."""
    args = parse_args(argv)
    config = load_config(args.config) if args.config else get_config()
    setup_logging(verbose=args.verbose)
    if config.debug:
        logging.getLogger("mpvctl").setLevel(logging.DEBUG)

    logger = logging.getLogger(__name__)
    logger.info("Starting mpvctl %s...", __version__)

    try:
        asyncio.run(run(config, args))
    except KeyboardInterrupt:
        logger.info("Shutdown requested by user")
    except MpvError as e:
        logger.error("%s", e)
        return 1
    except Exception as e:
        logger.exception("Fatal error: %s", e)
        return 1

    logger.info("mpvctl stopped")
    return 0


if __name__ == "__main__":
    sys.exit(main())
