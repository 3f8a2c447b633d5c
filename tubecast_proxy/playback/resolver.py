"""
Track resolution against the download backend.

Maps a track id to a finished download, requesting the download when
needed and waiting a bounded time for it to land in the done list.
"""

import asyncio
import logging
from typing import Optional
from urllib.parse import quote

import aiohttp

from tubecast_proxy.downloads import (
    History,
    MeTubeAPIError,
    MeTubeClient,
    MusicRecord,
    RecordLocation,
)

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL = 0.25  # seconds
DEFAULT_POLL_ATTEMPTS = 240  # 60 seconds at the default interval


class MusicResolver:
    """
    Resolves track ids to playable backend records.

    Backend failures are logged and reported as "not found"; nothing
    raises out of this class.
    """

    def __init__(
        self,
        client: MeTubeClient,
        audio_url: str,
        quality: str = "best",
        format: str = "mp3",
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        poll_attempts: int = DEFAULT_POLL_ATTEMPTS,
    ):
        """
        Initialize resolver.

        Args:
            client: Backend API client
            audio_url: Base URL the backend serves finished files from
            quality: Requested download quality
            format: Requested download format
            poll_interval: Seconds between listing requests while waiting
            poll_attempts: Retries after the first lookup while waiting
        """
        self._client = client
        self._audio_url = audio_url.rstrip("/")
        self._quality = quality
        self._format = format
        self._poll_interval = poll_interval
        self._poll_attempts = poll_attempts

    def playable_uri(self, record: MusicRecord) -> str:
        """URI the renderer fetches the record's file from."""
        return f"{self._audio_url}/{quote(record.filename)}"

    async def fetch_history(self) -> Optional[History]:
        """Fetch the backend listing, or None on failure."""
        try:
            return await self._client.get_history()
        except (MeTubeAPIError, aiohttp.ClientError, ValueError) as e:
            logger.error(f"Error retrieving download history: {e}")
            return None

    async def resolve(
        self,
        track_id: str,
        location: Optional[RecordLocation] = None,
        wait: bool = False,
    ) -> Optional[MusicRecord]:
        """
        Look up the record for ``track_id``.

        Args:
            track_id: Track id
            location: Only search this backend list
            wait: Keep polling while the record is absent

        Returns:
            The first match tagged with its list, or None
        """
        attempt = 0
        while True:
            logger.debug(f"Resolving {track_id} (attempt {attempt})")
            history = await self.fetch_history()
            if history is None:
                return None

            record = history.find(track_id, location)
            if record is not None or not wait or attempt >= self._poll_attempts:
                return record

            attempt += 1
            await asyncio.sleep(self._poll_interval)

    async def ensure_downloaded(self, track_id: str) -> Optional[MusicRecord]:
        """
        Make sure a finished download exists for ``track_id``.

        Errored downloads are deleted and requested again. Ids already
        queued or in progress are not requested twice.

        Returns:
            The record found in the done list, or None when it never
            showed up
        """
        existing = await self.resolve(track_id)

        if existing is not None and existing.is_finished:
            return existing

        if existing is not None and existing.is_error:
            logger.info(f"Download of {track_id} errored earlier, deleting it")
            try:
                await self._client.delete([track_id], RecordLocation.DONE)
            except (MeTubeAPIError, aiohttp.ClientError) as e:
                logger.error(f"Error deleting errored download {track_id}: {e}")

        if existing is None or not existing.in_flight:
            logger.info(f"Requesting download of {track_id}")
            try:
                await self._client.add(
                    track_id,
                    quality=self._quality,
                    format=self._format,
                    auto_start=True,
                )
            except (MeTubeAPIError, aiohttp.ClientError) as e:
                logger.error(f"Error requesting download of {track_id}: {e}")
                return None

        return await self.resolve(track_id, RecordLocation.DONE, wait=True)
