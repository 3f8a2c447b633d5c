"""Shared fixtures: an in-memory renderer and backend record builders."""

from typing import Any, Callable, Optional
from unittest.mock import AsyncMock

import pytest

from tubecast_proxy.backends import (
    DeviceCommandError,
    DeviceQueueEntry,
    DeviceQueueSnapshot,
    DeviceTrackInfo,
    RendererDevice,
)
from tubecast_proxy.downloads import History, MeTubeClient
from tubecast_proxy.playback import MusicResolver

AUDIO_URL = "http://metube.local:8081/audio_download"


class FakeDevice(RendererDevice):
    """
    Renderer keeping its queue in a list.

    Every call is recorded in ``calls``. Method names listed in
    ``failing`` raise DeviceCommandError (or return False for the
    bool-returning ones).
    """

    def __init__(self, uris: Optional[list[str]] = None):
        super().__init__("Fake Speaker")
        self.uris: list[str] = list(uris or [])
        self.calls: list[tuple[Any, ...]] = []
        self.failing: set[str] = set()
        self.current: int = 0
        self.playing: bool = False
        self.volume: int = 30
        self.track = DeviceTrackInfo(position=12.0, duration=200.0)

    def _check(self, name: str) -> None:
        if name in self.failing:
            raise DeviceCommandError(f"{name} failed")

    @property
    def mutations(self) -> list[tuple[Any, ...]]:
        """Calls that change the queue."""
        names = {"insert_queue_entry", "move_queue_entries", "remove_queue_entries"}
        return [call for call in self.calls if call[0] in names]

    async def play(self, uri: Optional[str] = None) -> bool:
        self.calls.append(("play", uri))
        if "play" in self.failing:
            return False
        if uri is not None:
            self.uris.append(uri)
            self.current = len(self.uris)
        self.playing = True
        return True

    async def pause(self) -> None:
        self.calls.append(("pause",))
        self._check("pause")
        self.playing = False

    async def stop(self) -> None:
        self.calls.append(("stop",))
        self._check("stop")
        self.playing = False

    async def seek(self, seconds: float) -> None:
        self.calls.append(("seek", seconds))
        self._check("seek")

    async def select_queue_entry(self, position: int) -> bool:
        self.calls.append(("select_queue_entry", position))
        if "select_queue_entry" in self.failing or not 1 <= position <= len(self.uris):
            return False
        self.current = position
        return True

    async def move_queue_entries(self, from_position: int, count: int, to_position: int) -> None:
        self.calls.append(("move_queue_entries", from_position, count, to_position))
        self._check("move_queue_entries")
        start = from_position - 1
        block = self.uris[start : start + count]
        del self.uris[start : start + count]
        self.uris[to_position - 1 : to_position - 1] = block

    async def insert_queue_entry(self, uri: str, position: int) -> None:
        self.calls.append(("insert_queue_entry", uri, position))
        self._check("insert_queue_entry")
        self.uris.insert(position - 1, uri)

    async def remove_queue_entries(self, from_position: int, count: int) -> None:
        self.calls.append(("remove_queue_entries", from_position, count))
        self._check("remove_queue_entries")
        del self.uris[from_position - 1 : from_position - 1 + count]

    async def get_queue(self) -> DeviceQueueSnapshot:
        self.calls.append(("get_queue",))
        self._check("get_queue")
        entries = [
            DeviceQueueEntry(composite_id=f"Q:0/{i + 1}", uri=uri)
            for i, uri in enumerate(self.uris)
        ]
        return DeviceQueueSnapshot(entries=entries, total=len(entries))

    async def get_volume(self) -> int:
        self.calls.append(("get_volume",))
        self._check("get_volume")
        return self.volume

    async def set_volume(self, level: int) -> None:
        self.calls.append(("set_volume", level))
        self._check("set_volume")
        self.volume = level

    async def get_current_track(self) -> DeviceTrackInfo:
        self.calls.append(("get_current_track",))
        self._check("get_current_track")
        return self.track

    async def connect(self) -> bool:
        self._is_connected = True
        return True

    async def disconnect(self) -> None:
        self._is_connected = False


def record_dict(
    track_id: str,
    status: str = "finished",
    filename: Optional[str] = None,
    duration: float = 200.0,
    title: str = "",
) -> dict[str, Any]:
    """A history item as the backend returns it."""
    return {
        "id": track_id,
        "title": title or f"Track {track_id}",
        "filename": f"{track_id}.mp3" if filename is None else filename,
        "status": status,
        "size": 1024,
        "entry": {"duration": duration},
    }


@pytest.fixture
def fake_device() -> FakeDevice:
    """Empty in-memory renderer."""
    return FakeDevice()


@pytest.fixture
def make_record() -> Callable[..., dict[str, Any]]:
    """Factory for backend history items."""
    return record_dict


@pytest.fixture
def make_history() -> Callable[..., History]:
    """Factory building a History from lists of history items."""

    def build(
        done: Optional[list[dict[str, Any]]] = None,
        queue: Optional[list[dict[str, Any]]] = None,
        pending: Optional[list[dict[str, Any]]] = None,
    ) -> History:
        return History.from_dict({"done": done or [], "queue": queue or [], "pending": pending or []})

    return build


@pytest.fixture
def metube_client() -> AsyncMock:
    """Backend client double; tests set ``get_history.return_value``."""
    client = AsyncMock(spec=MeTubeClient)
    client.get_history.return_value = History()
    return client


@pytest.fixture
def resolver(metube_client: AsyncMock) -> MusicResolver:
    """Resolver over the client double, polling without delay."""
    return MusicResolver(metube_client, AUDIO_URL, poll_interval=0, poll_attempts=3)


@pytest.fixture
def uri_for() -> Callable[[str], str]:
    """Playable URI the resolver derives for ``<id>.mp3``."""
    return lambda track_id: f"{AUDIO_URL}/{track_id}.mp3"
