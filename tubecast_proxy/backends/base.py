"""
Abstract renderer device interface.

Defines the capability set the playback core needs from a renderer.
"""

import logging
from abc import ABC, abstractmethod
from typing import Optional

from .types import DeviceInfo, DeviceQueueSnapshot, DeviceTrackInfo

logger = logging.getLogger(__name__)


class DeviceError(Exception):
    """Base class for renderer errors."""

    pass


class DeviceCommandError(DeviceError):
    """A command was rejected by the renderer or could not be delivered."""

    pass


class RendererDevice(ABC):
    """
    Abstract base class for renderers with a positional play queue.

    Queue positions are 1-based. Operations documented as returning
    nothing raise DeviceCommandError on failure; operations returning
    bool report failure through the return value.
    """

    def __init__(self, name: str = "Renderer"):
        """Initialize device."""
        self.name = name
        self._is_connected: bool = False

    # =========================================================================
    # Transport
    # =========================================================================

    @abstractmethod
    async def play(self, uri: Optional[str] = None) -> bool:
        """Play ``uri`` directly, or resume the current queue entry when None."""
        pass

    @abstractmethod
    async def pause(self) -> None:
        """Pause playback."""
        pass

    @abstractmethod
    async def stop(self) -> None:
        """Stop playback."""
        pass

    @abstractmethod
    async def seek(self, seconds: float) -> None:
        """Seek within the current track."""
        pass

    # =========================================================================
    # Queue
    # =========================================================================

    @abstractmethod
    async def select_queue_entry(self, position: int) -> bool:
        """Make the entry at ``position`` the current track."""
        pass

    @abstractmethod
    async def move_queue_entries(self, from_position: int, count: int, to_position: int) -> None:
        """Move ``count`` entries so the block starts at ``to_position``."""
        pass

    @abstractmethod
    async def insert_queue_entry(self, uri: str, position: int) -> None:
        """Insert ``uri`` so that it ends up at ``position``."""
        pass

    @abstractmethod
    async def remove_queue_entries(self, from_position: int, count: int) -> None:
        """Remove ``count`` entries starting at ``from_position``."""
        pass

    @abstractmethod
    async def get_queue(self) -> DeviceQueueSnapshot:
        """Fetch the full device queue."""
        pass

    # =========================================================================
    # Volume / Status
    # =========================================================================

    @abstractmethod
    async def get_volume(self) -> int:
        """Get current volume level (0-100)."""
        pass

    @abstractmethod
    async def set_volume(self, level: int) -> None:
        """Set volume level (0-100)."""
        pass

    @abstractmethod
    async def get_current_track(self) -> DeviceTrackInfo:
        """Get live position and duration of the current track."""
        pass

    # =========================================================================
    # Lifecycle
    # =========================================================================

    @abstractmethod
    async def connect(self) -> bool:
        """Initialize connection to device. Returns True if successful."""
        pass

    @abstractmethod
    async def disconnect(self) -> None:
        """Disconnect and clean up device resources."""
        pass

    def is_connected(self) -> bool:
        """Check if device is connected."""
        return self._is_connected

    def get_info(self) -> DeviceInfo:
        """Get information about this device."""
        return DeviceInfo(name=self.name, device_id="")
