"""
Player control for mpvctl.

This package holds the command façade for a running player and the load
orchestration built on top of it.
"""

from mpvctl.player.controller import MpvPlayer
from mpvctl.player.loader import LoadOrchestrator, LoadOutcome, LoadWatcher

__all__ = [
    "LoadOrchestrator",
    "LoadOutcome",
    "LoadWatcher",
    "MpvPlayer",
]
