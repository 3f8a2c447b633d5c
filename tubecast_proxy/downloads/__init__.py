"""Download backend client and record types."""

from .api_client import MeTubeAPIError, MeTubeClient
from .types import History, MusicRecord, RecordLocation, RecordStatus

__all__ = [
    "History",
    "MeTubeAPIError",
    "MeTubeClient",
    "MusicRecord",
    "RecordLocation",
    "RecordStatus",
]
