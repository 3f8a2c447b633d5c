"""
Playback types.
"""

import asyncio
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from .timer import PlaybackTimer


class PlayerState(Enum):
    """Player state as seen by the session layer."""

    STOPPED = "stopped"
    LOADING = "loading"
    PLAYING = "playing"
    PAUSED = "paused"


@dataclass
class Volume:
    """Renderer volume."""

    level: int = 0  # 0-100
    muted: bool = False


@dataclass
class PlaybackSession:
    """
    Mutable state of the track being played.

    Owned by the playback controller. ``temp_position`` overrides the
    reported position between issuing play and the device confirming
    it. At most one end-of-track handle is pending at a time.
    """

    track_id: Optional[str] = None
    seek_offset: float = 0.0  # seconds into the track at last seek/resume
    duration: float = 0.0  # seconds, from the resolved record
    temp_position: Optional[float] = None
    timer: PlaybackTimer = field(default_factory=PlaybackTimer)
    end_of_track: Optional[asyncio.TimerHandle] = None

    @property
    def remaining(self) -> float:
        """Seconds left in the track counted from the last seek offset."""
        return self.duration - self.seek_offset
