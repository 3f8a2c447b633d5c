"""
Renderer device types.
"""

from dataclasses import dataclass, field
from typing import Optional


@dataclass
class DeviceQueueEntry:
    """
    One entry of the renderer's own play queue.

    The composite id encodes the entry's 1-based position, e.g. ``Q:0/3``
    with parent ``Q:0`` is position 3.
    """

    composite_id: str
    uri: str
    parent_id: str = "Q:0"
    title: str = ""

    @property
    def position(self) -> int:
        """1-based position parsed from the composite id."""
        suffix = self.composite_id
        prefix = self.parent_id + "/"
        if suffix.startswith(prefix):
            suffix = suffix[len(prefix) :]
        else:
            suffix = suffix.rsplit("/", 1)[-1]
        return int(suffix)


@dataclass
class DeviceQueueSnapshot:
    """
    Ordered view of the device queue at one point in time.

    Never cached: the device may be reordered by other controllers.
    """

    entries: list[DeviceQueueEntry] = field(default_factory=list)
    total: int = 0

    def find(self, uri: str) -> Optional[DeviceQueueEntry]:
        """Return the entry holding ``uri``, if any."""
        for entry in self.entries:
            if entry.uri == uri:
                return entry
        return None


@dataclass
class DeviceTrackInfo:
    """Live position of the track the device is playing (seconds)."""

    position: float = 0.0
    duration: float = 0.0
    queue_position: int = 0
    uri: str = ""


@dataclass
class DeviceInfo:
    """
    Information about a renderer.

    Used for logging and status reporting.
    """

    name: str
    device_id: str
    ip: Optional[str] = None
    port: Optional[int] = None
    model: Optional[str] = None
    manufacturer: Optional[str] = None

    def __str__(self) -> str:
        if self.ip:
            return f"{self.name} @ {self.ip}:{self.port}"
        return self.name
