"""Tests for the session HTTP server."""

from unittest.mock import AsyncMock, MagicMock

import pytest
from aiohttp import test_utils

from tubecast_proxy.config import Config
from tubecast_proxy.connect import Sender, SessionServer
from tubecast_proxy.connect.session import _sanitize_service_name
from tubecast_proxy.playback import PlaybackController, PlayerState, PlaylistQueue, Volume


@pytest.fixture
def controller() -> MagicMock:
    """Controller double over a real playlist."""
    mock = MagicMock(spec=PlaybackController)
    mock.queue = PlaylistQueue()
    mock.state = PlayerState.STOPPED
    for name in ("play", "pause", "resume", "stop", "next", "previous", "seek", "set_volume"):
        setattr(mock, name, AsyncMock(return_value=True))
    mock.get_volume = AsyncMock(return_value=Volume(level=35))
    mock.get_position = AsyncMock(return_value=12.5)
    mock.get_duration = AsyncMock(return_value=200.0)
    mock.clear_device_queue = AsyncMock(return_value=0)
    mock.stop_prefetch = AsyncMock()
    return mock


@pytest.fixture
def config() -> Config:
    cfg = Config()
    cfg.device.name = "Living Room"
    cfg.sonos.ip = "192.168.1.20"
    cfg.server.advertise = False
    return cfg


@pytest.fixture
async def client(config, controller):
    """HTTP client bound to the server's application."""
    server = SessionServer(config, controller)
    async with test_utils.TestClient(test_utils.TestServer(server.app)) as c:
        c.session_server = server
        yield c


class TestInfo:
    """Tests for health and status endpoints."""

    @pytest.mark.asyncio
    async def test_root(self, client) -> None:
        resp = await client.get("/")
        assert resp.status == 200
        assert await resp.text() == "TubeCast Proxy - Living Room"

    @pytest.mark.asyncio
    async def test_status(self, client, controller) -> None:
        controller.queue.set_playlist(["A", "B"], "B")
        controller.state = PlayerState.PLAYING

        resp = await client.get("/status")
        body = await resp.json()

        assert body["name"] == "Living Room"
        assert body["state"] == "playing"
        assert body["current_id"] == "B"
        assert body["track_ids"] == ["A", "B"]
        assert body["position"] == 12.5
        assert body["duration"] == 200.0
        assert body["volume"] == {"level": 35, "muted": False}
        assert body["senders"] == []


class TestSenders:
    """Tests for sender registration."""

    @pytest.mark.asyncio
    async def test_first_sender_clears_device_queue(self, client, controller) -> None:
        resp = await client.post("/senders", json={"name": "phone", "client": "android"})

        assert resp.status == 200
        assert await resp.json() == {"ok": True, "senders": 1}
        controller.clear_device_queue.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_second_sender_keeps_queue(self, client, controller) -> None:
        await client.post("/senders", json={"name": "phone"})
        await client.post("/senders", json={"name": "laptop"})

        assert controller.clear_device_queue.await_count == 1
        assert set(client.session_server.senders) == {"phone", "laptop"}

    @pytest.mark.asyncio
    async def test_missing_name_rejected(self, client, controller) -> None:
        resp = await client.post("/senders", json={"client": "x"})

        assert resp.status == 400
        assert (await resp.json())["ok"] is False
        controller.clear_device_queue.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_last_sender_leaving_clears_queue(self, client, controller) -> None:
        await client.post("/senders", json={"name": "phone"})
        await client.post("/senders", json={"name": "laptop"})
        controller.clear_device_queue.reset_mock()

        await client.delete("/senders/phone")
        controller.clear_device_queue.assert_not_awaited()
        controller.stop_prefetch.assert_awaited_once()

        resp = await client.delete("/senders/laptop")
        assert await resp.json() == {"ok": True, "senders": 0}
        controller.clear_device_queue.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_unknown_sender_disconnect(self, client, controller) -> None:
        resp = await client.delete("/senders/ghost")
        assert resp.status == 404
        controller.stop_prefetch.assert_not_awaited()

    def test_sender_to_dict(self) -> None:
        sender = Sender(name="phone", client="ios", connected_at=10.0)
        assert sender.to_dict() == {"name": "phone", "client": "ios", "connected_at": 10.0}


class TestQueue:
    """Tests for playlist updates."""

    @pytest.mark.asyncio
    async def test_put_queue_sets_playlist(self, client, controller) -> None:
        resp = await client.put("/queue", json={"track_ids": ["A", "B", "C"], "current_id": "B"})

        assert await resp.json() == {"ok": True}
        assert controller.queue.track_ids == ["A", "B", "C"]
        assert controller.queue.current_id == "B"

    @pytest.mark.parametrize(
        "payload",
        [
            {"track_ids": "A,B"},
            {"track_ids": ["A", 2]},
            {"track_ids": ["A"], "current_id": 1},
            {},
        ],
    )
    @pytest.mark.asyncio
    async def test_invalid_queue_rejected(self, client, controller, payload) -> None:
        resp = await client.put("/queue", json=payload)
        assert resp.status == 400
        assert len(controller.queue) == 0

    @pytest.mark.asyncio
    async def test_invalid_json_rejected(self, client) -> None:
        resp = await client.put(
            "/queue", data="{not json", headers={"Content-Type": "application/json"}
        )
        assert resp.status == 400
        assert (await resp.json())["error"] == "Invalid JSON"


class TestTransport:
    """Tests for transport endpoints."""

    @pytest.mark.asyncio
    async def test_play_track(self, client, controller) -> None:
        resp = await client.post("/transport/play", json={"track_id": "B", "position": 30})

        assert await resp.json() == {"ok": True}
        controller.play.assert_awaited_once_with("B", 30.0)

    @pytest.mark.asyncio
    async def test_play_defaults_to_current(self, client, controller) -> None:
        controller.queue.set_playlist(["A", "B"], "A")

        await client.post("/transport/play")

        controller.play.assert_awaited_once_with("A", 0.0)

    @pytest.mark.asyncio
    async def test_play_without_track_rejected(self, client, controller) -> None:
        resp = await client.post("/transport/play", json={})
        assert resp.status == 400
        controller.play.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_play_negative_position_rejected(self, client) -> None:
        resp = await client.post("/transport/play", json={"track_id": "A", "position": -1})
        assert resp.status == 400

    @pytest.mark.asyncio
    async def test_play_failure_reported(self, client, controller) -> None:
        controller.play.return_value = False
        resp = await client.post("/transport/play", json={"track_id": "A"})
        assert await resp.json() == {"ok": False}

    @pytest.mark.parametrize("command", ["pause", "resume", "stop", "next", "previous"])
    @pytest.mark.asyncio
    async def test_simple_commands(self, client, controller, command) -> None:
        resp = await client.post(f"/transport/{command}")

        assert await resp.json() == {"ok": True}
        getattr(controller, command).assert_awaited_once_with()

    @pytest.mark.asyncio
    async def test_seek(self, client, controller) -> None:
        await client.post("/transport/seek", json={"position": 95.5})
        controller.seek.assert_awaited_once_with(95.5)

    @pytest.mark.parametrize("payload", [{}, {"position": "10"}, {"position": True}])
    @pytest.mark.asyncio
    async def test_seek_invalid_position(self, client, controller, payload) -> None:
        resp = await client.post("/transport/seek", json=payload)
        assert resp.status == 400
        controller.seek.assert_not_awaited()


class TestVolume:
    """Tests for volume endpoints."""

    @pytest.mark.asyncio
    async def test_get_volume(self, client) -> None:
        resp = await client.get("/volume")
        assert await resp.json() == {"level": 35, "muted": False}

    @pytest.mark.asyncio
    async def test_set_volume(self, client, controller) -> None:
        resp = await client.put("/volume", json={"level": 60})

        assert await resp.json() == {"ok": True}
        controller.set_volume.assert_awaited_once_with(Volume(level=60, muted=False))

    @pytest.mark.parametrize("level", [101, -1, "50", True, 50.5])
    @pytest.mark.asyncio
    async def test_set_volume_out_of_range(self, client, controller, level) -> None:
        resp = await client.put("/volume", json={"level": level})
        assert resp.status == 400
        controller.set_volume.assert_not_awaited()


class TestServiceName:
    """Tests for mDNS instance name sanitizing."""

    @pytest.mark.parametrize(
        "name,expected",
        [
            ("Living Room", "Living-Room"),
            ("Kid's  Room!", "Kid-s-Room"),
            ("Sonos_1", "Sonos_1"),
        ],
    )
    def test_sanitize(self, name, expected) -> None:
        assert _sanitize_service_name(name) == expected
