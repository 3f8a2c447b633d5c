"""
Logical playlist owned by the session layer.

Holds the sender's track order and the current pointer. The playback
core only reads it; changes to the playlist are announced to
subscribers.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Optional, Union

from .tasks import BackgroundTasks

logger = logging.getLogger(__name__)

# Listeners may be plain functions or coroutine functions
QueueListener = Callable[[], Union[None, Awaitable[None]]]


class PlaylistQueue:
    """
    Ordered track ids plus a current pointer.

    Order is sender-authoritative. ``set_playlist`` notifies
    subscribers; moving the pointer does not.
    """

    def __init__(self) -> None:
        self._track_ids: list[str] = []
        self._current_id: Optional[str] = None
        self._listeners: list[QueueListener] = []
        self._tasks = BackgroundTasks("PlaylistQueue")

    @property
    def track_ids(self) -> list[str]:
        return list(self._track_ids)

    @property
    def current_id(self) -> Optional[str]:
        return self._current_id

    def __len__(self) -> int:
        return len(self._track_ids)

    def __contains__(self, track_id: object) -> bool:
        return track_id in self._track_ids

    # =========================================================================
    # Subscription
    # =========================================================================

    def subscribe(self, listener: QueueListener) -> Callable[[], None]:
        """
        Register a playlist-change listener.

        Returns:
            Function that removes the listener again
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self) -> None:
        for listener in list(self._listeners):
            try:
                result = listener()
            except Exception as e:
                logger.error(f"Playlist listener failed: {e}", exc_info=True)
                continue
            if asyncio.iscoroutine(result):
                self._tasks.spawn(result, name="playlist-updated")

    # =========================================================================
    # Mutation
    # =========================================================================

    def set_playlist(self, track_ids: list[str], current_id: Optional[str] = None) -> None:
        """
        Replace the playlist.

        Args:
            track_ids: New order
            current_id: New current pointer. When omitted the old pointer
                is kept if it is still part of the playlist.
        """
        self._track_ids = list(track_ids)
        if current_id is not None and current_id in self._track_ids:
            self._current_id = current_id
        elif self._current_id not in self._track_ids:
            self._current_id = None

        logger.info(
            f"Playlist updated: {len(self._track_ids)} tracks, current={self._current_id}"
        )
        self._notify()

    def set_current(self, track_id: str) -> bool:
        """Move the pointer to ``track_id``. Returns False if not in the playlist."""
        if track_id not in self._track_ids:
            return False
        self._current_id = track_id
        return True

    def clear(self) -> None:
        """Empty the playlist."""
        self.set_playlist([])

    def next(self) -> Optional[str]:
        """
        Advance the pointer.

        Returns:
            New current id, or None at the end of the playlist
        """
        index = self.current_index
        if index is None:
            target = 0
        else:
            target = index + 1
        if target >= len(self._track_ids):
            return None
        self._current_id = self._track_ids[target]
        return self._current_id

    def previous(self) -> Optional[str]:
        """
        Step the pointer back.

        Returns:
            New current id, or None at the start of the playlist
        """
        index = self.current_index
        if not index:
            return None
        self._current_id = self._track_ids[index - 1]
        return self._current_id

    # =========================================================================
    # Lookup
    # =========================================================================

    @property
    def current_index(self) -> Optional[int]:
        """0-based index of the current pointer."""
        if self._current_id is None:
            return None
        try:
            return self._track_ids.index(self._current_id)
        except ValueError:
            return None

    def from_current(self) -> list[str]:
        """Ids from the current pointer onwards, or all ids without a pointer."""
        index = self.current_index
        return self._track_ids[index:] if index is not None else list(self._track_ids)

    def upcoming(self, count: int) -> list[str]:
        """The next ``count`` ids after the current pointer."""
        index = self.current_index
        if index is None:
            return []
        return self._track_ids[index + 1 : index + 1 + count]

    def position_from_current(self, track_id: str) -> int:
        """
        1-based position of ``track_id`` counted from the current pointer.

        The current track is position 1. Tracks before the pointer are
        counted from the start of the playlist; unknown tracks are 1.
        """
        window = self.from_current()
        if track_id in window:
            return window.index(track_id) + 1
        if track_id in self._track_ids:
            return self._track_ids.index(track_id) + 1
        return 1

    async def close(self) -> None:
        """Drop listeners and cancel pending listener tasks."""
        self._listeners.clear()
        await self._tasks.cancel_all()
