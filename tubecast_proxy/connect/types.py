"""
Shared types for the session adapter.
"""

import time
from dataclasses import dataclass, field
from typing import Any


@dataclass
class Sender:
    """A connected sender application."""

    name: str
    client: str = ""  # Free-form client description, e.g. app and platform
    connected_at: float = field(default_factory=time.time)

    def to_dict(self) -> dict[str, Any]:
        return {"name": self.name, "client": self.client, "connected_at": self.connected_at}
