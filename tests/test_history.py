"""Tests for linkanime.history."""

import sqlite3

import pytest

from linkanime.history import HistoryError, LinkHistory


def _record(ledger, name="Frieren", season=1, files=None):
    files = files if files is not None else [("/lib/a.mkv", "/dl/a.mkv")]
    return ledger.record_operation(
        media_type="series",
        show_name=name,
        season=season,
        total_bytes=100,
        dest_dir="/lib",
        source_label="release",
        files=files,
    )


class TestLinkHistory:
    """Tests for the ledger contract."""

    def test_empty_ledger(self, history):
        assert history.get_last_history_entry() is None
        assert history.list_history() == []
        assert not history.has_history()

    def test_record_operation_round_trip(self, history):
        files = [("/lib/S1/01.mkv", "/dl/01.mkv"), ("/lib/S1/02.mkv", "/dl/02.mkv")]
        entry_id = _record(history, files=files)

        entry = history.get_last_history_entry()
        assert entry.id == entry_id
        assert entry.show_name == "Frieren"
        assert entry.season == 1
        assert entry.file_count == 2
        assert entry.total_bytes == 100
        assert entry.source_label == "release"
        assert entry.timestamp.endswith("+00:00")

        records = history.get_linked_files(entry_id)
        assert [(r.dest_path, r.source_path) for r in records] == files
        assert all(r.history_id == entry_id for r in records)

    def test_movie_has_no_season(self, history):
        history.record_operation("movie", "Akira (1988)", None, 5, "/movies/Akira", "akira.mkv",
                                 [("/movies/Akira/akira.mkv", "/dl/akira.mkv")])
        assert history.get_last_history_entry().season is None

    def test_newest_first(self, history):
        ids = [_record(history, name=f"Show {i}") for i in range(3)]

        assert history.get_last_history_entry().id == ids[-1]
        assert [e.id for e in history.list_history()] == list(reversed(ids))
        assert [e.id for e in history.list_history(limit=2)] == [ids[2], ids[1]]

    def test_non_positive_limit_uses_default(self, history):
        _record(history)
        assert len(history.list_history(limit=0)) == 1

    def test_delete_cascades_linked_files(self, history):
        first = _record(history, name="First")
        second = _record(history, name="Second")

        history.delete_history(second)

        assert history.get_linked_files(second) == []
        assert history.get_last_history_entry().id == first
        assert len(history.get_linked_files(first)) == 1

    def test_insert_primitives(self, history):
        entry_id = history.insert_history("series", "Show", 2, 1, 10, "/lib", "src")
        history.insert_linked_file(entry_id, "/lib/x.mkv", "/dl/x.mkv")

        assert history.get_linked_files(entry_id)[0].dest_path == "/lib/x.mkv"

    def test_record_is_atomic(self, history):
        """A failing file insert leaves no half-written entry behind."""
        bad_files = [("/lib/a.mkv", "/dl/a.mkv"), (None, "/dl/b.mkv")]  # NOT NULL violation

        with pytest.raises(HistoryError):
            _record(history, files=bad_files)

        assert history.get_last_history_entry() is None

    def test_persists_across_instances(self, tmp_path):
        db = tmp_path / "data" / "linkanime.db"
        ledger = LinkHistory(db)
        entry_id = _record(ledger)
        ledger.close()

        reopened = LinkHistory(db)
        try:
            assert reopened.get_last_history_entry().id == entry_id
            assert len(reopened.get_linked_files(entry_id)) == 1
        finally:
            reopened.close()

    def test_foreign_keys_enabled(self, history):
        conn = history._get_conn()
        assert conn.execute("PRAGMA foreign_keys").fetchone()[0] == 1
        with pytest.raises(sqlite3.IntegrityError):
            conn.execute(
                "INSERT INTO linked_files (history_id, file_path) VALUES (999, '/x')"
            )
