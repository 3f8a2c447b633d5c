"""
Playback core.

Player contract, logical playlist, track resolution, device queue
reconciliation and the playback controller.
"""

from .controller import PlaybackController
from .player import Player
from .prefetcher import PlaylistPrefetcher
from .queue import PlaylistQueue
from .reconciler import DeviceQueueReconciler
from .resolver import MusicResolver
from .timer import PlaybackTimer, TimerState
from .types import PlaybackSession, PlayerState, Volume

__all__ = [
    "DeviceQueueReconciler",
    "MusicResolver",
    "PlaybackController",
    "PlaybackSession",
    "PlaybackTimer",
    "Player",
    "PlayerState",
    "PlaylistPrefetcher",
    "PlaylistQueue",
    "TimerState",
    "Volume",
]
