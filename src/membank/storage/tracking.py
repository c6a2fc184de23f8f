"""History-recording wrapper around a `FileStore`."""

from __future__ import annotations

import logging

from membank.storage.files import FileStore
from membank.storage.ledger import HistoryLedger

logger = logging.getLogger(__name__)

DEFAULT_ACTOR = "membank"


class HistoryTrackingFileStore:
    """Proxy every call to ``wrapped``; record successful mutations in ``ledger``.

    Reads pass straight through. A mutation that the wrapped store reports
    as failed (``None`` / ``False``) leaves no trace in the ledger.
    """

    def __init__(
        self,
        wrapped: FileStore,
        ledger: HistoryLedger,
        actor: str = DEFAULT_ACTOR,
    ) -> None:
        self.wrapped = wrapped
        self.ledger = ledger
        self.actor = actor

    def list_files(self, project: str) -> list[str]:
        return self.wrapped.list_files(project)

    def load_file(self, project: str, file: str) -> str | None:
        return self.wrapped.load_file(project, file)

    def load_file_lines(self, project: str, file: str) -> list[str] | None:
        return self.wrapped.load_file_lines(project, file)

    def write_file(self, project: str, file: str, content: str) -> str | None:
        result = self.wrapped.write_file(project, file, content)
        if result is not None:
            self.ledger.record_history("created", self.actor, project, file, content)
        return result

    def update_file(self, project: str, file: str, content: str) -> str | None:
        result = self.wrapped.update_file(project, file, content)
        if result is not None:
            self.ledger.record_history("modified", self.actor, project, file, content)
        return result

    def delete_file(self, project: str, file: str) -> bool:
        """Delete ``file`` and record a ``deleted`` entry.

        If the live content is not the latest recorded version (never
        tracked, or edited outside the store), a ``modified`` entry holding
        it is recorded first, so that delete adds two ledger entries.
        """
        # Once deleted the content is gone from the store, so read it first.
        content = self.wrapped.load_file(project, file)
        if content is None:
            return False
        if not self.wrapped.delete_file(project, file):
            return False

        latest = self.ledger.get_latest_entry(project, file)
        if latest is None or latest.content != content:
            # Changed outside the ledger: keep the last live content by version.
            logger.info("Snapshotting untracked content of %s/%s before deletion", project, file)
            self.ledger.record_history("modified", self.actor, project, file, content)
        self.ledger.record_history("deleted", self.actor, project, file, None)
        return True
