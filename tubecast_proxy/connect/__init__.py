"""
Sender session adapter.

HTTP endpoints senders use to drive playback, plus mDNS announcement.
"""

from .session import SessionServer
from .types import Sender

__all__ = ["SessionServer", "Sender"]
