"""
mpvctl - asyncio control layer for the mpv media player.

mpvctl talks to a running mpv instance over its JSON IPC socket: it correlates
concurrent commands with their responses, republishes player events, and
loads files while watching for the events that confirm playback started.
"""

__version__ = "0.1.0"
__author__ = "mpvctl Contributors"
__license__ = "MIT"

from mpvctl.player.controller import MpvPlayer

__all__ = ["MpvPlayer", "__version__"]
