"""Tests for backend record parsing."""

from tubecast_proxy.downloads import History, MusicRecord, RecordLocation, RecordStatus


class TestMusicRecord:
    """Tests for MusicRecord.from_dict."""

    def test_parses_history_item(self, make_record) -> None:
        record = MusicRecord.from_dict(make_record("abc", duration=185.5, title="Song"))

        assert record.id == "abc"
        assert record.title == "Song"
        assert record.filename == "abc.mp3"
        assert record.status == RecordStatus.FINISHED
        assert record.duration == 185.5
        assert record.size == 1024
        assert record.location is None

    def test_missing_fields_default(self) -> None:
        record = MusicRecord.from_dict({"id": "x"})

        assert record.status is None
        assert record.duration == 0
        assert record.filename == ""

    def test_unknown_status_is_none(self) -> None:
        record = MusicRecord.from_dict({"id": "x", "status": "downloading"})
        assert record.status is None
        assert not record.is_finished

    def test_title_falls_back_to_entry(self) -> None:
        record = MusicRecord.from_dict({"id": "x", "entry": {"title": "From entry"}})
        assert record.title == "From entry"

    def test_status_flags(self) -> None:
        assert MusicRecord(id="a", status=RecordStatus.FINISHED).is_finished
        assert MusicRecord(id="a", status=RecordStatus.ERROR).is_error
        assert MusicRecord(id="a", location=RecordLocation.QUEUE).in_flight
        assert MusicRecord(id="a", location=RecordLocation.PENDING).in_flight
        assert not MusicRecord(id="a", location=RecordLocation.DONE).in_flight


class TestHistory:
    """Tests for History lookups."""

    def test_from_dict_tolerates_missing_lists(self) -> None:
        history = History.from_dict({"done": None})
        assert history.queue == []
        assert history.done == []

    def test_find_tags_location(self, make_history, make_record) -> None:
        history = make_history(
            done=[make_record("A")],
            pending=[make_record("B", status="pending")],
        )

        assert history.find("A").location == RecordLocation.DONE
        assert history.find("B").location == RecordLocation.PENDING
        assert history.find("Z") is None

    def test_find_in_location(self, make_history, make_record) -> None:
        history = make_history(queue=[make_record("A", status="pending")])

        assert history.find("A", RecordLocation.DONE) is None
        assert history.find("A", RecordLocation.QUEUE) is not None

    def test_queue_searched_before_done(self, make_history, make_record) -> None:
        """An id present in several lists resolves to the earliest list."""
        history = make_history(
            done=[make_record("A", status="error")],
            queue=[make_record("A", status="pending")],
        )
        assert history.find("A").location == RecordLocation.QUEUE

    def test_find_does_not_mutate_stored_record(self, make_history, make_record) -> None:
        history = make_history(done=[make_record("A")])
        history.find("A")
        assert history.done[0].location is None
