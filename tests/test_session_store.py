"""Tests for noticeboard/session_store.py — single-slot token persistence."""

from __future__ import annotations

import threading

import pytest

from noticeboard.errors import SessionStoreError
from noticeboard.session_store import FileSessionStore, MemorySessionStore


@pytest.mark.unit
class TestFileSessionStore:

    def test_load_missing_file_returns_none(self, tmp_path):
        store = FileSessionStore(tmp_path / "session.txt")
        assert store.load() is None

    def test_save_then_load(self, tmp_path):
        store = FileSessionStore(tmp_path / "session.txt")
        store.save("tok-1")
        assert store.load() == "tok-1"
        assert (tmp_path / "session.txt").read_text(encoding="utf-8") == "tok-1"

    def test_save_overwrites(self, tmp_path):
        store = FileSessionStore(tmp_path / "session.txt")
        store.save("tok-1")
        store.save("tok-2")
        assert store.load() == "tok-2"
        assert list(tmp_path.glob("*.tmp")) == []

    def test_concurrent_writers_never_fail(self, tmp_path):
        path = tmp_path / "session.txt"
        tokens = {f"tok-{w}-{i}" for w in range(4) for i in range(100)}
        errors: list[Exception] = []

        def writer(worker: int) -> None:
            store = FileSessionStore(path)
            for i in range(100):
                try:
                    store.save(f"tok-{worker}-{i}")
                except Exception as e:
                    errors.append(e)

        threads = [threading.Thread(target=writer, args=(w,)) for w in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert errors == []
        assert FileSessionStore(path).load() in tokens
        assert list(tmp_path.glob("*.tmp")) == []

    def test_blank_file_counts_as_empty(self, tmp_path):
        path = tmp_path / "session.txt"
        path.write_text("  \n", encoding="utf-8")
        assert FileSessionStore(path).load() is None

    def test_surrounding_whitespace_trimmed(self, tmp_path):
        path = tmp_path / "session.txt"
        path.write_text("tok-1\n", encoding="utf-8")
        assert FileSessionStore(path).load() == "tok-1"

    def test_creates_parent_directory(self, tmp_path):
        store = FileSessionStore(tmp_path / "state" / "session.txt")
        store.save("tok-1")
        assert store.load() == "tok-1"

    def test_unreadable_slot_raises(self, tmp_path):
        # A directory where the file should be cannot be read as text.
        (tmp_path / "session.txt").mkdir()
        with pytest.raises(SessionStoreError, match="Failed to read"):
            FileSessionStore(tmp_path / "session.txt").load()


@pytest.mark.unit
class TestMemorySessionStore:

    def test_round_trip_and_save_count(self):
        store = MemorySessionStore()
        assert store.load() is None
        store.save("a")
        store.save("b")
        assert store.load() == "b"
        assert store.saves == 2
