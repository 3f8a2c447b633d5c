"""
Playlist prefetching.

Keeps downloads running ahead of the current track and periodically
re-aligns the device queue.
"""

import asyncio
import logging
from typing import Optional

from .queue import PlaylistQueue
from .reconciler import DeviceQueueReconciler
from .resolver import MusicResolver
from .tasks import BackgroundTasks

logger = logging.getLogger(__name__)

DEFAULT_PREFETCH_INTERVAL = 20.0  # seconds
DEFAULT_MAX_AHEAD = 10


class PlaylistPrefetcher:
    """
    Requests upcoming downloads one at a time.

    Each pass starts at most one new download so the backend is not
    flooded when a long playlist arrives.
    """

    def __init__(
        self,
        resolver: MusicResolver,
        reconciler: DeviceQueueReconciler,
        queue: PlaylistQueue,
        interval: float = DEFAULT_PREFETCH_INTERVAL,
        max_ahead: int = DEFAULT_MAX_AHEAD,
    ):
        self._resolver = resolver
        self._reconciler = reconciler
        self._queue = queue
        self._interval = interval
        self._max_ahead = max_ahead

        self._loop_task: Optional[asyncio.Task[None]] = None
        self._downloads = BackgroundTasks("PlaylistPrefetcher")

    @property
    def is_running(self) -> bool:
        return self._loop_task is not None and not self._loop_task.done()

    # =========================================================================
    # Passes
    # =========================================================================

    async def run_pass(self) -> Optional[str]:
        """
        Scan the tracks after the current pointer.

        The first one missing from the backend, or in error, gets a
        download started in the background.

        Returns:
            Id of the track whose download was started, if any
        """
        upcoming = self._queue.upcoming(self._max_ahead)
        if not upcoming:
            return None

        history = await self._resolver.fetch_history()
        if history is None:
            return None

        for track_id in upcoming:
            record = history.find(track_id)
            if record is None or record.is_error:
                logger.info(f"Prefetching {track_id}")
                self._downloads.spawn(
                    self._resolver.ensure_downloaded(track_id),
                    name=f"prefetch-{track_id}",
                )
                return track_id
        return None

    async def align(self) -> int:
        """Align the device queue with the current playlist."""
        return await self._reconciler.align(self._queue.track_ids, self._queue.current_id)

    async def on_playlist_updated(self) -> None:
        """Playlist-change listener: prefetch, then re-align right away."""
        await self.run_pass()
        await self.align()

    # =========================================================================
    # Periodic loop
    # =========================================================================

    def start(self) -> None:
        """Start the periodic loop. No-op if already running."""
        if self.is_running:
            return
        self._loop_task = asyncio.create_task(self._run_loop(), name="playlist-prefetch")
        logger.info(f"Playlist prefetch started (every {self._interval}s)")

    async def stop(self) -> None:
        """Stop the periodic loop. Downloads already requested keep going."""
        task = self._loop_task
        self._loop_task = None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        logger.info("Playlist prefetch stopped")

    async def close(self) -> None:
        """Stop the loop and cancel in-flight download waits."""
        await self.stop()
        await self._downloads.cancel_all()

    async def _run_loop(self) -> None:
        while True:
            await asyncio.sleep(self._interval)
            try:
                await self.run_pass()
                await self.align()
            except Exception as e:
                logger.error(f"Playlist prefetch pass failed: {e}", exc_info=True)
