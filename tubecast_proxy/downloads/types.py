"""
Download backend record types.
"""

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Optional


class RecordStatus(str, Enum):
    """Download status of a record."""

    PENDING = "pending"
    FINISHED = "finished"
    ERROR = "error"


class RecordLocation(str, Enum):
    """Backend list currently holding a record."""

    QUEUE = "queue"
    PENDING = "pending"
    DONE = "done"


# Search order when no location is requested
LOCATION_ORDER = (RecordLocation.QUEUE, RecordLocation.PENDING, RecordLocation.DONE)


@dataclass
class MusicRecord:
    """
    A download known to the backend.

    Location and status are independent: a record in ``done`` may be
    finished or errored.
    """

    id: str
    title: str = ""
    size: int = 0
    filename: str = ""
    status: Optional[RecordStatus] = None
    location: Optional[RecordLocation] = None
    duration: float = 0.0  # seconds
    artist: str = ""
    album: str = ""
    thumbnail: str = ""
    raw: dict[str, Any] = field(default_factory=dict, repr=False)

    @property
    def is_finished(self) -> bool:
        return self.status == RecordStatus.FINISHED

    @property
    def is_error(self) -> bool:
        return self.status == RecordStatus.ERROR

    @property
    def in_flight(self) -> bool:
        """True while the backend still works on the download."""
        return self.location in (RecordLocation.QUEUE, RecordLocation.PENDING)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "MusicRecord":
        """Build a record from a backend history item."""
        entry = data.get("entry") or {}
        status = data.get("status")
        try:
            parsed_status: Optional[RecordStatus] = RecordStatus(status) if status else None
        except ValueError:
            parsed_status = None

        return cls(
            id=str(data.get("id", "")),
            title=data.get("title") or entry.get("title") or "",
            size=int(data.get("size") or 0),
            filename=data.get("filename") or "",
            status=parsed_status,
            duration=float(entry.get("duration") or 0),
            artist=entry.get("artist") or entry.get("creator") or "",
            album=entry.get("album") or "",
            thumbnail=entry.get("thumbnail") or "",
            raw=data,
        )


@dataclass
class History:
    """The backend's three record lists."""

    queue: list[MusicRecord] = field(default_factory=list)
    pending: list[MusicRecord] = field(default_factory=list)
    done: list[MusicRecord] = field(default_factory=list)

    def records(self, location: RecordLocation) -> list[MusicRecord]:
        return getattr(self, location.value)

    def find(
        self, track_id: str, location: Optional[RecordLocation] = None
    ) -> Optional[MusicRecord]:
        """
        Find a record by id.

        Searches only ``location`` when given, otherwise queue, pending
        and done in that order. The result is tagged with the list it
        was found in.
        """
        locations = (location,) if location else LOCATION_ORDER
        for loc in locations:
            for record in self.records(loc):
                if record.id == track_id:
                    return replace(record, location=loc)
        return None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "History":
        """Build from the backend's history response."""
        return cls(
            queue=[MusicRecord.from_dict(item) for item in data.get("queue") or []],
            pending=[MusicRecord.from_dict(item) for item in data.get("pending") or []],
            done=[MusicRecord.from_dict(item) for item in data.get("done") or []],
        )
