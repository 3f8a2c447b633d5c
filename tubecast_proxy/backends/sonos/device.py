"""
Sonos renderer device.

Implements RendererDevice for Sonos zone players, whose play queue is
reordered in place through positional SOAP actions.
"""

import logging
from typing import Optional

from tubecast_proxy.backends.base import DeviceCommandError, RendererDevice
from tubecast_proxy.backends.types import DeviceInfo, DeviceQueueSnapshot, DeviceTrackInfo
from .client import BROWSE_PAGE_SIZE, SonosClient, SonosClientError

logger = logging.getLogger(__name__)


class SonosDevice(RendererDevice):
    """
    Sonos zone player.

    Queue positions are 1-based. Playing from the queue requires the
    transport to point at the queue URI first, so selecting an entry
    always re-targets the transport.
    """

    def __init__(self, ip: str, port: int = 1400, name: Optional[str] = None):
        """
        Initialize Sonos device.

        Args:
            ip: Device IP address
            port: Device port (default 1400)
            name: Display name (auto-detected if not provided)
        """
        super().__init__(name or f"Sonos ({ip})")
        self._ip = ip
        self._port = port
        self._client: Optional[SonosClient] = None

    # =========================================================================
    # Lifecycle
    # =========================================================================

    async def connect(self) -> bool:
        """Connect to the Sonos device."""
        try:
            self._client = SonosClient(self._ip, self._port)
            device_info = await self._client.connect()

            if device_info.friendly_name:
                self.name = device_info.friendly_name

            self._is_connected = True
            logger.info(f"Connected to Sonos device: {self.name}")
            return True

        except SonosClientError as e:
            logger.error(f"Failed to connect to Sonos device: {e}")
            await self._client.disconnect()
            return False
        except Exception as e:
            logger.error(f"Unexpected error connecting to Sonos: {e}", exc_info=True)
            return False

    async def disconnect(self) -> None:
        """Disconnect from the Sonos device."""
        self._is_connected = False
        if self._client:
            await self._client.disconnect()
        logger.info(f"Disconnected from Sonos device: {self.name}")

    # =========================================================================
    # Transport
    # =========================================================================

    async def play(self, uri: Optional[str] = None) -> bool:
        """
        Start playback.

        Without a URI the transport resumes whatever is selected. With a
        URI the track is appended to the queue, selected and played.
        """
        client = self._require_client()

        if uri is None:
            return await client.play()

        position = await client.add_uri_to_queue(uri)
        if not position:
            logger.error(f"Failed to enqueue {uri}")
            return False

        logger.debug(f"Enqueued {uri} at position {position}")
        return await self.select_queue_entry(position) and await client.play()

    async def pause(self) -> None:
        """Pause playback."""
        if not await self._require_client().pause():
            raise DeviceCommandError("Pause failed")

    async def stop(self) -> None:
        """Stop playback."""
        if not await self._require_client().stop():
            raise DeviceCommandError("Stop failed")

    async def seek(self, seconds: float) -> None:
        """Seek within the current track."""
        if not await self._require_client().seek(seconds):
            raise DeviceCommandError(f"Seek to {seconds}s failed")

    # =========================================================================
    # Queue
    # =========================================================================

    async def select_queue_entry(self, position: int) -> bool:
        """Point the transport at the queue and jump to ``position``."""
        client = self._require_client()
        if not await client.set_av_transport_uri(client.queue_uri):
            return False
        return await client.seek_track(position)

    async def move_queue_entries(self, from_position: int, count: int, to_position: int) -> None:
        """
        Move a block so that it starts at ``to_position`` afterwards.

        ReorderTracksInQueue inserts before an index computed on the
        queue as it was before the move, so moving down needs the
        block length added.
        """
        if from_position == to_position:
            return

        insert_before = to_position if to_position < from_position else to_position + count
        ok = await self._require_client().reorder_tracks_in_queue(
            from_position, count, insert_before
        )
        if not ok:
            raise DeviceCommandError(
                f"Moving {count} entries from {from_position} to {to_position} failed"
            )

    async def insert_queue_entry(self, uri: str, position: int) -> None:
        """Insert a URI at a 1-based position."""
        enqueued = await self._require_client().add_uri_to_queue(uri, position=position)
        if enqueued is None:
            raise DeviceCommandError(f"Inserting {uri} at {position} failed")

    async def remove_queue_entries(self, from_position: int, count: int) -> None:
        """Remove a block of entries."""
        if count <= 0:
            return
        if not await self._require_client().remove_track_range_from_queue(from_position, count):
            raise DeviceCommandError(f"Removing {count} entries from {from_position} failed")

    async def get_queue(self) -> DeviceQueueSnapshot:
        """Fetch every queue entry, page by page."""
        client = self._require_client()
        snapshot = DeviceQueueSnapshot()

        start = 0
        while True:
            page = await client.browse_queue(start, BROWSE_PAGE_SIZE)
            if page is None:
                raise DeviceCommandError("Browsing the queue failed")

            snapshot.entries.extend(page.entries)
            snapshot.total = page.total
            start += page.number_returned

            if page.number_returned == 0 or start >= page.total:
                break

        return snapshot

    # =========================================================================
    # Volume / Status
    # =========================================================================

    async def get_volume(self) -> int:
        """Get current volume (0-100)."""
        volume = await self._require_client().get_volume()
        if volume is None:
            raise DeviceCommandError("GetVolume failed")
        return volume

    async def set_volume(self, level: int) -> None:
        """Set volume (0-100)."""
        clamped = max(0, min(100, level))
        if not await self._require_client().set_volume(clamped):
            raise DeviceCommandError(f"SetVolume({clamped}) failed")

    async def get_current_track(self) -> DeviceTrackInfo:
        """Get live position and duration of the current track."""
        info = await self._require_client().get_position_info()
        if info is None:
            raise DeviceCommandError("GetPositionInfo failed")
        return info

    # =========================================================================
    # Info
    # =========================================================================

    def get_info(self) -> DeviceInfo:
        """Get device information."""
        device_info = self._client.device_info if self._client else None
        info = DeviceInfo(
            name=self.name,
            device_id=device_info.udn if device_info else "",
            ip=self._ip,
            port=self._port,
        )
        if device_info:
            info.model = device_info.model_name
            info.manufacturer = device_info.manufacturer
        return info

    def _require_client(self) -> SonosClient:
        if not self._client:
            raise DeviceCommandError("Not connected")
        return self._client
