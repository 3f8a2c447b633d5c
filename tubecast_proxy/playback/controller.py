"""
Playback controller.

Drives a queue-based renderer from the logical playlist, sourcing
audio files from the download backend.
"""

import asyncio
import logging
from typing import Optional

from tubecast_proxy.backends import DeviceError, RendererDevice
from .player import Player
from .prefetcher import PlaylistPrefetcher
from .queue import PlaylistQueue
from .reconciler import DeviceQueueReconciler
from .resolver import MusicResolver
from .tasks import BackgroundTasks
from .types import PlaybackSession, Volume

logger = logging.getLogger(__name__)

# Extra wait after the expected end of a track before advancing (seconds)
END_OF_TRACK_GRACE = 1.0


class PlaybackController(Player):
    """
    Player implementation for renderers with their own play queue.

    The renderer sends no track-ended events, so the end of a track is
    predicted from the known duration and the last seek offset. Every
    device command that changes the position replaces the pending
    end-of-track timeout.
    """

    def __init__(
        self,
        device: RendererDevice,
        resolver: MusicResolver,
        reconciler: DeviceQueueReconciler,
        prefetcher: PlaylistPrefetcher,
        queue: PlaylistQueue,
    ):
        """Initialize controller and subscribe to playlist changes."""
        super().__init__(queue)
        self.device = device
        self.resolver = resolver
        self.reconciler = reconciler
        self.prefetcher = prefetcher

        self.session = PlaybackSession()
        self._tasks = BackgroundTasks("PlaybackController")
        self._unsubscribe = queue.subscribe(self._on_playlist_updated)

        logger.info("PlaybackController initialized")

    # =========================================================================
    # Transport hooks
    # =========================================================================

    async def do_play(self, track_id: str, position: float) -> bool:
        session = self.session
        session.temp_position = position
        session.timer.stop()
        session.timer.clear()
        self._cancel_end_of_track()

        record = await self.resolver.ensure_downloaded(track_id)
        if record is None or not record.is_finished or not record.filename:
            logger.error(f"No playable file for {track_id}, skipping")
            session.temp_position = None
            self._tasks.spawn(self.next(), name="skip-unplayable")
            return False

        uri = self.resolver.playable_uri(record)
        found = await self.reconciler.find_device_index(uri)
        target = self.queue.position_from_current(track_id)

        logger.info(f'Playing "{record.title or track_id}" from {uri}')
        try:
            if found is None:
                ok = await self.device.play(uri)
            else:
                if found != target:
                    logger.info(f"Moving track in device queue from {found} to {target}")
                    await self.device.move_queue_entries(found, 1, target)
                else:
                    logger.debug(f"Track already at device position {target}")
                ok = await self.device.select_queue_entry(target) and await self.device.play()
        except DeviceError as e:
            logger.error(f"Error playing {track_id} on device: {e}")
            ok = False
        finally:
            session.temp_position = None

        if not ok:
            logger.error(f"Device refused to play {track_id}")
            return False

        session.track_id = track_id
        session.duration = record.duration
        await self.do_seek(position)

        self.prefetcher.start()
        self._tasks.spawn(self.prefetcher.align(), name="align-after-play")
        return True

    async def do_pause(self) -> bool:
        deadline = self._suspend_end_of_track()
        try:
            await self.device.pause()
        except DeviceError as e:
            logger.error(f"Pause failed: {e}")
            self._restore_end_of_track(deadline)
            return False

        self.session.timer.pause()
        return True

    async def do_resume(self) -> bool:
        try:
            if not await self.device.play():
                return False
        except DeviceError as e:
            logger.error(f"Resume failed: {e}")
            return False

        timer = self.session.timer
        if timer.is_paused:
            timer.resume()
        elif not timer.is_running:
            timer.start()
        self._schedule_end_of_track(self.session.remaining)
        return True

    async def do_stop(self) -> bool:
        try:
            await self.device.stop()
        except DeviceError as e:
            logger.error(f"Stop failed: {e}")
            return False

        self.session.seek_offset = 0.0
        self.session.timer.stop()
        self.session.timer.clear()
        self._cancel_end_of_track()
        await self.prefetcher.stop()
        return True

    async def do_seek(self, position: float) -> bool:
        deadline = self._suspend_end_of_track()
        try:
            await self.device.seek(position)
        except DeviceError as e:
            logger.error(f"Seek to {position}s failed: {e}")
            self._restore_end_of_track(deadline)
            return False

        self.session.timer.stop()
        self.session.timer.clear()
        self.session.seek_offset = position
        self._schedule_end_of_track(self.session.remaining)
        return True

    # =========================================================================
    # Volume / Status hooks
    # =========================================================================

    async def do_set_volume(self, volume: Volume) -> bool:
        try:
            await self.device.set_volume(volume.level)
            return True
        except DeviceError as e:
            logger.error(f"Set volume failed: {e}")
            return False

    async def do_get_volume(self) -> Volume:
        try:
            return Volume(level=await self.device.get_volume(), muted=False)
        except DeviceError as e:
            logger.error(f"Get volume failed: {e}")
            return Volume(level=0, muted=False)

    async def do_get_position(self) -> float:
        if self.session.temp_position is not None:
            return self.session.temp_position
        try:
            track = await self.device.get_current_track()
            return track.position
        except DeviceError as e:
            logger.error(f"Get position failed: {e}")
            return 0.0

    async def do_get_duration(self) -> float:
        try:
            track = await self.device.get_current_track()
            return track.duration
        except DeviceError as e:
            logger.error(f"Get duration failed: {e}")
            return 0.0

    # =========================================================================
    # End of track
    # =========================================================================

    def _schedule_end_of_track(self, remaining: float) -> None:
        """Replace the pending end-of-track timeout."""
        self._cancel_end_of_track()
        if self.session.duration <= 0:
            logger.debug("Track duration unknown, not scheduling end of track")
            return

        delay = max(0.0, remaining) + END_OF_TRACK_GRACE
        loop = asyncio.get_running_loop()
        self.session.end_of_track = loop.call_later(delay, self._end_of_track_fired)
        logger.debug(f"End of track in {delay:.1f}s")

    def _cancel_end_of_track(self) -> None:
        if self.session.end_of_track is not None:
            self.session.end_of_track.cancel()
            self.session.end_of_track = None

    def _suspend_end_of_track(self) -> Optional[float]:
        """Cancel the pending timeout and return its loop deadline."""
        handle = self.session.end_of_track
        if handle is None:
            return None
        deadline = handle.when()
        self._cancel_end_of_track()
        return deadline

    def _restore_end_of_track(self, deadline: Optional[float]) -> None:
        """Re-arm a timeout cancelled by a device command that failed."""
        if deadline is None or self.session.end_of_track is not None:
            return
        loop = asyncio.get_running_loop()
        self.session.end_of_track = loop.call_at(deadline, self._end_of_track_fired)

    def _end_of_track_fired(self) -> None:
        self.session.end_of_track = None
        self._tasks.spawn(self._on_track_ended(), name="track-ended")

    async def _on_track_ended(self) -> None:
        try:
            await self.device.pause()
        except DeviceError as e:
            logger.warning(f"Pause at end of track failed: {e}")

        self.session.seek_offset = 0.0
        self.session.timer.stop()
        self.session.timer.clear()
        logger.info("Track ended, moving to next")
        await self.next()

    # =========================================================================
    # Playlist / device queue
    # =========================================================================

    async def _on_playlist_updated(self) -> None:
        logger.info("Playlist updated, pulling new items")
        await self.prefetcher.on_playlist_updated()

    async def clear_device_queue(self) -> Optional[int]:
        """
        Remove every entry from the device queue.

        Returns:
            Number of entries removed, or None on failure
        """
        try:
            snapshot = await self.device.get_queue()
            logger.info(f"Device queue has {snapshot.total} tracks, clearing")
            if snapshot.total:
                await self.device.remove_queue_entries(1, snapshot.total)
            return snapshot.total
        except DeviceError as e:
            logger.error(f"Error clearing device queue: {e}")
            return None

    async def stop_prefetch(self) -> None:
        """Stop the periodic prefetch loop."""
        await self.prefetcher.stop()

    async def shutdown(self) -> None:
        """Cancel timers and background work and drop the playlist subscription."""
        self._cancel_end_of_track()
        self.session.timer.stop()
        self.session.timer.clear()
        self._unsubscribe()
        await self.prefetcher.close()
        await self._tasks.cancel_all()
        logger.info("PlaybackController shut down")
