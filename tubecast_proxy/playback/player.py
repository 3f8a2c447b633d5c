"""
Player contract used by the session layer.

The session layer drives playback only through the public methods
here. Implementations provide the ``do_*`` hooks; the public wrappers
track the player state and turn unexpected hook exceptions into
failure results.
"""

import logging
from abc import ABC, abstractmethod
from typing import Awaitable, Optional, TypeVar

from .queue import PlaylistQueue
from .types import PlayerState, Volume

logger = logging.getLogger(__name__)

T = TypeVar("T")


class Player(ABC):
    """
    Abstract player driving a renderer from a logical playlist.

    State machine:
        STOPPED -> LOADING (on play)
        LOADING -> PLAYING (device accepted the track)
        LOADING -> STOPPED (track could not be played)
        PLAYING -> PAUSED (on pause)
        PAUSED -> PLAYING (on resume)
        PLAYING/PAUSED -> STOPPED (on stop or end of playlist)
    """

    def __init__(self, queue: PlaylistQueue):
        self.queue = queue
        self._state: PlayerState = PlayerState.STOPPED

    @property
    def state(self) -> PlayerState:
        return self._state

    # =========================================================================
    # Transport
    # =========================================================================

    async def play(self, track_id: str, position: float = 0) -> bool:
        """
        Play a track from ``position`` seconds.

        Moves the playlist pointer to the track when it is part of the
        playlist.
        """
        if track_id in self.queue:
            self.queue.set_current(track_id)

        logger.info(f"Play {track_id} from {position}s")
        self._state = PlayerState.LOADING
        ok = await self._call("play", self.do_play(track_id, position), False)
        if self._state == PlayerState.LOADING:
            self._state = PlayerState.PLAYING if ok else PlayerState.STOPPED
        return ok

    async def pause(self) -> bool:
        ok = await self._call("pause", self.do_pause(), False)
        if ok:
            self._state = PlayerState.PAUSED
        return ok

    async def resume(self) -> bool:
        ok = await self._call("resume", self.do_resume(), False)
        if ok:
            self._state = PlayerState.PLAYING
        return ok

    async def stop(self) -> bool:
        ok = await self._call("stop", self.do_stop(), False)
        if ok:
            self._state = PlayerState.STOPPED
        return ok

    async def seek(self, position: float) -> bool:
        return await self._call("seek", self.do_seek(position), False)

    async def next(self) -> bool:
        """
        Advance to the next playlist track.

        Stops playback when the end of the playlist is reached.
        """
        track_id = self.queue.next()
        if track_id is None:
            logger.info("End of playlist - stopping")
            await self.stop()
            return False
        return await self.play(track_id)

    async def previous(self) -> bool:
        """Go back to the previous playlist track."""
        track_id = self.queue.previous()
        if track_id is None:
            logger.debug("Already at start of playlist")
            return False
        return await self.play(track_id)

    # =========================================================================
    # Volume / Status
    # =========================================================================

    async def set_volume(self, volume: Volume) -> bool:
        return await self._call("set_volume", self.do_set_volume(volume), False)

    async def get_volume(self) -> Volume:
        return await self._call("get_volume", self.do_get_volume(), Volume())

    async def get_position(self) -> float:
        return await self._call("get_position", self.do_get_position(), 0.0)

    async def get_duration(self) -> float:
        return await self._call("get_duration", self.do_get_duration(), 0.0)

    async def _call(self, name: str, hook: Awaitable[T], default: T) -> T:
        try:
            return await hook
        except Exception as e:
            logger.error(f"{name} failed: {e}", exc_info=True)
            return default

    # =========================================================================
    # Hooks
    # =========================================================================

    @abstractmethod
    async def do_play(self, track_id: str, position: float) -> bool:
        pass

    @abstractmethod
    async def do_pause(self) -> bool:
        pass

    @abstractmethod
    async def do_resume(self) -> bool:
        pass

    @abstractmethod
    async def do_stop(self) -> bool:
        pass

    @abstractmethod
    async def do_seek(self, position: float) -> bool:
        pass

    @abstractmethod
    async def do_set_volume(self, volume: Volume) -> bool:
        pass

    @abstractmethod
    async def do_get_volume(self) -> Volume:
        pass

    @abstractmethod
    async def do_get_position(self) -> float:
        pass

    @abstractmethod
    async def do_get_duration(self) -> float:
        pass

    @property
    def current_track_id(self) -> Optional[str]:
        return self.queue.current_id
