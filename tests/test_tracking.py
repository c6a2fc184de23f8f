"""Tests for the history-tracking file store wrapper."""

from __future__ import annotations

import pytest
from pathlib import Path

from membank.storage.files import FsFileStore
from membank.storage.ledger import HistoryLedger
from membank.storage.tracking import HistoryTrackingFileStore


class FailingDeleteStore(FsFileStore):
    def delete_file(self, project: str, file: str) -> bool:
        return False


@pytest.fixture
def ledger(tmp_path: Path) -> HistoryLedger:
    return HistoryLedger(tmp_path / ".history" / "ledger.db")


@pytest.fixture
def plain(tmp_path: Path) -> FsFileStore:
    return FsFileStore(tmp_path / "projects")


@pytest.fixture
def tracked(plain: FsFileStore, ledger: HistoryLedger) -> HistoryTrackingFileStore:
    return HistoryTrackingFileStore(plain, ledger, actor="tester")


def _actions(ledger: HistoryLedger, file: str = "a.md") -> list[str]:
    return [e.action for e in ledger.get_file_history("p", file)]


class TestMutations:
    def test_write_records_created(self, tracked: HistoryTrackingFileStore, ledger: HistoryLedger):
        tracked.write_file("p", "a.md", "hello")
        [entry] = ledger.get_file_history("p", "a.md")
        assert entry.action == "created"
        assert entry.content == "hello"
        assert entry.actor == "tester"

    def test_update_records_modified(self, tracked: HistoryTrackingFileStore, ledger: HistoryLedger):
        tracked.write_file("p", "a.md", "v1")
        tracked.update_file("p", "a.md", "v2")
        assert _actions(ledger) == ["created", "modified"]
        assert ledger.get_file_by_version("p", "a.md", 2) == "v2"

    def test_failed_write_not_recorded(self, tracked: HistoryTrackingFileStore, ledger: HistoryLedger):
        tracked.write_file("p", "a.md", "v1")
        assert tracked.write_file("p", "a.md", "again") is None
        assert _actions(ledger) == ["created"]

    def test_failed_update_not_recorded(self, tracked: HistoryTrackingFileStore, ledger: HistoryLedger):
        assert tracked.update_file("p", "missing.md", "x") is None
        assert ledger.get_file_history("p", "missing.md") == []


class TestDelete:
    def test_records_deleted(self, tracked: HistoryTrackingFileStore, ledger: HistoryLedger):
        tracked.write_file("p", "a.md", "content")
        assert tracked.delete_file("p", "a.md") is True

        history = ledger.get_file_history("p", "a.md")
        assert [e.action for e in history] == ["created", "deleted"]
        assert history[-1].content is None
        # The last live content stays retrievable
        assert history[-2].content == "content"

    def test_untracked_content_snapshotted(
        self, tracked: HistoryTrackingFileStore, plain: FsFileStore, ledger: HistoryLedger
    ):
        tracked.write_file("p", "a.md", "tracked")
        plain.update_file("p", "a.md", "edited behind our back")

        tracked.delete_file("p", "a.md")
        history = ledger.get_file_history("p", "a.md")
        assert [e.action for e in history] == ["created", "modified", "deleted"]
        assert history[1].content == "edited behind our back"

    def test_never_tracked_file(
        self, tracked: HistoryTrackingFileStore, plain: FsFileStore, ledger: HistoryLedger
    ):
        plain.write_file("p", "legacy.md", "old")
        tracked.delete_file("p", "legacy.md")
        assert _actions(ledger, "legacy.md") == ["modified", "deleted"]

    def test_missing_file_not_recorded(self, tracked: HistoryTrackingFileStore, ledger: HistoryLedger):
        assert tracked.delete_file("p", "missing.md") is False
        assert ledger.get_file_history("p", "missing.md") == []

    def test_failed_delete_not_recorded(self, tmp_path: Path, ledger: HistoryLedger):
        store = FailingDeleteStore(tmp_path / "projects")
        tracked = HistoryTrackingFileStore(store, ledger)
        tracked.write_file("p", "a.md", "x")

        assert tracked.delete_file("p", "a.md") is False
        assert _actions(ledger) == ["created"]


class TestPassThrough:
    def test_reads(self, tracked: HistoryTrackingFileStore, ledger: HistoryLedger):
        tracked.write_file("p", "a.md", "one\ntwo")
        assert tracked.list_files("p") == ["a.md"]
        assert tracked.load_file("p", "a.md") == "one\ntwo"
        assert tracked.load_file_lines("p", "a.md") == ["one", "two"]
        assert len(ledger.get_file_history("p", "a.md")) == 1
