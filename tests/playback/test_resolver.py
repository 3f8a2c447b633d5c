"""Tests for track resolution."""

import json
from unittest.mock import AsyncMock, patch

import aiohttp
import pytest

from tubecast_proxy.downloads import History, MeTubeAPIError, MusicRecord, RecordLocation
from tubecast_proxy.playback import MusicResolver


class TestPlayableUri:
    """Tests for URI derivation."""

    def test_joins_audio_url_and_filename(self, metube_client) -> None:
        """The filename is appended to the audio base URL."""
        resolver = MusicResolver(metube_client, "http://metube:8081/audio_download/")
        record = MusicRecord(id="A", filename="Song.mp3")
        assert resolver.playable_uri(record) == "http://metube:8081/audio_download/Song.mp3"

    def test_encodes_filename(self, metube_client) -> None:
        """Spaces in filenames are percent-encoded."""
        resolver = MusicResolver(metube_client, "http://metube:8081/audio_download")
        record = MusicRecord(id="A", filename="My Song.mp3")
        assert resolver.playable_uri(record) == (
            "http://metube:8081/audio_download/My%20Song.mp3"
        )


class TestResolve:
    """Tests for MusicResolver.resolve."""

    @pytest.mark.asyncio
    async def test_finds_record_in_any_list(
        self, resolver, metube_client, make_history, make_record
    ) -> None:
        """Without a location all lists are searched."""
        metube_client.get_history.return_value = make_history(
            pending=[make_record("A", status="pending")]
        )

        record = await resolver.resolve("A")

        assert record is not None
        assert record.location == RecordLocation.PENDING

    @pytest.mark.asyncio
    async def test_location_restricts_search(
        self, resolver, metube_client, make_history, make_record
    ) -> None:
        """A requested location hides matches in other lists."""
        metube_client.get_history.return_value = make_history(
            queue=[make_record("A", status="pending")]
        )

        assert await resolver.resolve("A", RecordLocation.DONE) is None

    @pytest.mark.asyncio
    async def test_absent_without_wait_returns_none(self, resolver, metube_client) -> None:
        """A single listing request is made when not waiting."""
        assert await resolver.resolve("A") is None
        assert metube_client.get_history.await_count == 1

    @pytest.mark.asyncio
    async def test_wait_polls_until_found(
        self, resolver, metube_client, make_history, make_record
    ) -> None:
        """Polling stops as soon as the record shows up."""
        found = make_history(done=[make_record("A")])
        metube_client.get_history.side_effect = [History(), History(), found]

        record = await resolver.resolve("A", RecordLocation.DONE, wait=True)

        assert record is not None
        assert record.id == "A"
        assert metube_client.get_history.await_count == 3

    @pytest.mark.asyncio
    async def test_wait_is_bounded(self, metube_client) -> None:
        """The wait gives up after the configured number of retries."""
        resolver = MusicResolver(metube_client, "http://m/audio", poll_interval=0.25)

        with patch(
            "tubecast_proxy.playback.resolver.asyncio.sleep", new_callable=AsyncMock
        ) as sleep:
            record = await resolver.resolve("A", RecordLocation.DONE, wait=True)

        assert record is None
        assert metube_client.get_history.await_count == 241
        assert sleep.await_count == 240
        sleep.assert_awaited_with(0.25)

    @pytest.mark.asyncio
    async def test_backend_error_returns_none_immediately(
        self, resolver, metube_client
    ) -> None:
        """Backend failures end the wait at once."""
        metube_client.get_history.side_effect = MeTubeAPIError("boom", status=500)

        assert await resolver.resolve("A", wait=True) is None
        assert metube_client.get_history.await_count == 1

    @pytest.mark.asyncio
    async def test_transport_error_returns_none(self, resolver, metube_client) -> None:
        """Raw aiohttp errors are also treated as not found."""
        metube_client.get_history.side_effect = aiohttp.ClientConnectionError("refused")
        assert await resolver.resolve("A") is None

    @pytest.mark.asyncio
    async def test_undecodable_listing_returns_none(self, resolver, metube_client) -> None:
        """A listing that fails to decode is treated as not found."""
        metube_client.get_history.side_effect = json.JSONDecodeError(
            "Expecting value", "<html>proxy error</html>", 0
        )
        assert await resolver.resolve("A") is None
        assert await resolver.ensure_downloaded("A") is None


class TestEnsureDownloaded:
    """Tests for MusicResolver.ensure_downloaded."""

    @pytest.mark.asyncio
    async def test_finished_record_returned_without_requests(
        self, resolver, metube_client, make_history, make_record
    ) -> None:
        """A finished download needs no add or delete."""
        metube_client.get_history.return_value = make_history(done=[make_record("A")])

        record = await resolver.ensure_downloaded("A")

        assert record is not None and record.is_finished
        metube_client.add.assert_not_awaited()
        metube_client.delete.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_absent_record_is_added_and_awaited(
        self, resolver, metube_client, make_history, make_record
    ) -> None:
        """Unknown ids are requested, then the done list is polled."""
        metube_client.get_history.side_effect = [
            History(),
            History(),
            make_history(done=[make_record("A")]),
        ]

        record = await resolver.ensure_downloaded("A")

        assert record is not None and record.id == "A"
        metube_client.add.assert_awaited_once_with(
            "A", quality="best", format="mp3", auto_start=True
        )

    @pytest.mark.asyncio
    async def test_error_record_deleted_then_added(
        self, resolver, metube_client, make_history, make_record
    ) -> None:
        """An errored download is deleted from done, re-added and polled."""
        calls: list[str] = []
        metube_client.delete.side_effect = lambda *a, **kw: calls.append("delete")
        metube_client.add.side_effect = lambda *a, **kw: calls.append("add")
        metube_client.get_history.side_effect = [
            make_history(done=[make_record("X", status="error")]),
            make_history(done=[make_record("X")]),
        ]

        record = await resolver.ensure_downloaded("X")

        assert calls == ["delete", "add"]
        metube_client.delete.assert_awaited_once_with(["X"], RecordLocation.DONE)
        assert record is not None and record.is_finished

    @pytest.mark.asyncio
    async def test_delete_failure_still_adds(
        self, resolver, metube_client, make_history, make_record
    ) -> None:
        """A failed delete is logged and the download requested anyway."""
        metube_client.delete.side_effect = MeTubeAPIError("nope")
        metube_client.get_history.side_effect = [
            make_history(done=[make_record("X", status="error")]),
            make_history(done=[make_record("X")]),
        ]

        record = await resolver.ensure_downloaded("X")

        metube_client.add.assert_awaited_once()
        assert record is not None

    @pytest.mark.parametrize("location", ["queue", "pending"])
    @pytest.mark.asyncio
    async def test_in_flight_record_not_added_again(
        self, location, resolver, metube_client, make_history, make_record
    ) -> None:
        """Ids already queued or pending get no duplicate add request."""
        in_flight = make_history(**{location: [make_record("A", status="pending")]})
        metube_client.get_history.side_effect = [
            in_flight,
            in_flight,
            make_history(done=[make_record("A")]),
        ]

        record = await resolver.ensure_downloaded("A")

        metube_client.add.assert_not_awaited()
        assert record is not None

    @pytest.mark.asyncio
    async def test_add_failure_returns_none(self, resolver, metube_client) -> None:
        """A rejected add request ends resolution."""
        metube_client.add.side_effect = MeTubeAPIError("bad request", status=400)

        assert await resolver.ensure_downloaded("A") is None
        assert metube_client.get_history.await_count == 1

    @pytest.mark.asyncio
    async def test_never_appearing_returns_none(self, resolver, metube_client) -> None:
        """When the done list never shows the id, resolution fails."""
        assert await resolver.ensure_downloaded("A") is None
        # one initial lookup, then 1 + 3 polls in done
        assert metube_client.get_history.await_count == 5
