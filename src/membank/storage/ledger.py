"""Append-only version ledger.

One sqlite table holds every recorded mutation. ``(project, file, version)``
is the primary key, so exact-version lookups and per-file iteration are
index scans, and ``(project, timestamp, version)`` serves project-wide and
point-in-time queries. Rows are only ever inserted.

Timestamps are stored as fixed-width UTC strings (``%Y-%m-%dT%H:%M:%S.%fZ``)
so lexical order equals chronological order. Within a file they never
decrease, even if the wall clock steps backwards.
"""

from __future__ import annotations

import logging
import sqlite3
import threading
from collections.abc import Callable
from contextlib import closing
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Literal

logger = logging.getLogger(__name__)

HistoryAction = Literal["created", "modified", "deleted"]
ACTIONS = ("created", "modified", "deleted")

_TS_FORMAT = "%Y-%m-%dT%H:%M:%S.%fZ"

_SCHEMA = """
CREATE TABLE IF NOT EXISTS history (
    project   TEXT    NOT NULL,
    file      TEXT    NOT NULL,
    version   INTEGER NOT NULL,
    timestamp TEXT    NOT NULL,
    action    TEXT    NOT NULL CHECK (action IN ('created', 'modified', 'deleted')),
    actor     TEXT    NOT NULL,
    content   TEXT,
    PRIMARY KEY (project, file, version),
    CHECK ((action = 'deleted') = (content IS NULL))
);
CREATE INDEX IF NOT EXISTS history_project_time
    ON history (project, timestamp, version);
"""


@dataclass(frozen=True)
class HistoryEntryMetadata:
    version: int
    timestamp: str
    action: HistoryAction
    actor: str
    project: str
    file: str


@dataclass(frozen=True)
class HistoryEntry(HistoryEntryMetadata):
    content: str | None = None

    def metadata(self) -> HistoryEntryMetadata:
        return HistoryEntryMetadata(
            version=self.version,
            timestamp=self.timestamp,
            action=self.action,
            actor=self.actor,
            project=self.project,
            file=self.file,
        )


@dataclass
class ProjectState:
    """Files of a project as they existed at ``timestamp``."""

    timestamp: str
    files: dict[str, str]


def format_timestamp(moment: datetime) -> str:
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc).strftime(_TS_FORMAT)


def parse_timestamp(value: str | datetime) -> datetime:
    """Parse an ISO-8601 string (``Z`` suffix allowed). Naive values are UTC."""
    if isinstance(value, datetime):
        moment = value
    else:
        text = value.strip()
        if text.endswith(("Z", "z")):
            text = text[:-1] + "+00:00"
        moment = datetime.fromisoformat(text)
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


class HistoryLedger:
    """Per-file version log backed by ``<root>/.history/ledger.db``."""

    def __init__(self, db_path: Path, clock: Callable[[], datetime] | None = None) -> None:
        self.db_path = db_path
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._initialized = False
        self._init_lock = threading.Lock()

    # ── Connection handling ───────────────────────────────────

    def _open(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self.db_path), timeout=30.0, isolation_level=None)
        conn.row_factory = sqlite3.Row
        return conn

    def _initialize(self) -> None:
        with self._init_lock:
            if self._initialized:
                return
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            with closing(self._open()) as conn:
                conn.execute("PRAGMA journal_mode=WAL")
                conn.executescript(_SCHEMA)
            self._initialized = True

    def _connect(self) -> sqlite3.Connection:
        if not self._initialized:
            self._initialize()
        return self._open()

    # ── Writes ────────────────────────────────────────────────

    def record_history(
        self,
        action: HistoryAction,
        actor: str,
        project: str,
        file: str,
        content: str | None,
    ) -> HistoryEntry:
        """Append an entry as version ``max + 1`` for ``(project, file)``.

        ``BEGIN IMMEDIATE`` takes the database write lock before the max is
        read, so concurrent writers in other processes get distinct,
        gapless versions.
        """
        if action not in ACTIONS:
            raise ValueError(f"Unknown history action: {action!r}")
        if action == "deleted":
            content = None
        elif content is None:
            raise ValueError(f"{action} entries require content")

        with closing(self._connect()) as conn:
            conn.execute("BEGIN IMMEDIATE")
            try:
                row = conn.execute(
                    "SELECT version, timestamp FROM history"
                    " WHERE project = ? AND file = ? ORDER BY version DESC LIMIT 1",
                    (project, file),
                ).fetchone()
                version = row["version"] + 1 if row else 1
                timestamp = format_timestamp(self._clock())
                if row and row["timestamp"] > timestamp:
                    timestamp = row["timestamp"]
                conn.execute(
                    "INSERT INTO history"
                    " (project, file, version, timestamp, action, actor, content)"
                    " VALUES (?, ?, ?, ?, ?, ?, ?)",
                    (project, file, version, timestamp, action, actor, content),
                )
                conn.execute("COMMIT")
            except BaseException:
                conn.execute("ROLLBACK")
                raise

        logger.debug("Recorded %s v%d of %s/%s by %s", action, version, project, file, actor)
        return HistoryEntry(
            version=version,
            timestamp=timestamp,
            action=action,
            actor=actor,
            project=project,
            file=file,
            content=content,
        )

    # ── Queries ───────────────────────────────────────────────

    def _entries(self, where: str, params: tuple) -> list[HistoryEntry]:
        with closing(self._connect()) as conn:
            rows = conn.execute(
                "SELECT version, timestamp, action, actor, project, file, content"
                f" FROM history WHERE {where} ORDER BY timestamp, version, file",
                params,
            ).fetchall()
        return [HistoryEntry(**dict(row)) for row in rows]

    def get_file_history(self, project: str, file: str) -> list[HistoryEntry]:
        return self._entries("project = ? AND file = ?", (project, file))

    def get_project_history(self, project: str) -> list[HistoryEntry]:
        return self._entries("project = ?", (project,))

    def get_project_history_metadata(self, project: str) -> list[HistoryEntryMetadata]:
        with closing(self._connect()) as conn:
            rows = conn.execute(
                "SELECT version, timestamp, action, actor, project, file"
                " FROM history WHERE project = ? ORDER BY timestamp, version, file",
                (project,),
            ).fetchall()
        return [HistoryEntryMetadata(**dict(row)) for row in rows]

    def get_file_by_version(self, project: str, file: str, version: int) -> str | None:
        """Content of exactly ``version``; ``None`` if absent or a deletion."""
        with closing(self._connect()) as conn:
            row = conn.execute(
                "SELECT content FROM history WHERE project = ? AND file = ? AND version = ?",
                (project, file, version),
            ).fetchone()
        return row["content"] if row else None

    def get_entry(self, project: str, file: str, version: int) -> HistoryEntry | None:
        with closing(self._connect()) as conn:
            row = conn.execute(
                "SELECT version, timestamp, action, actor, project, file, content"
                " FROM history WHERE project = ? AND file = ? AND version = ?",
                (project, file, version),
            ).fetchone()
        return HistoryEntry(**dict(row)) if row else None

    def get_latest_version(self, project: str, file: str) -> int | None:
        with closing(self._connect()) as conn:
            row = conn.execute(
                "SELECT MAX(version) AS version FROM history WHERE project = ? AND file = ?",
                (project, file),
            ).fetchone()
        return row["version"] if row else None

    def get_latest_entry(self, project: str, file: str) -> HistoryEntry | None:
        with closing(self._connect()) as conn:
            row = conn.execute(
                "SELECT version, timestamp, action, actor, project, file, content"
                " FROM history WHERE project = ? AND file = ?"
                " ORDER BY version DESC LIMIT 1",
                (project, file),
            ).fetchone()
        return HistoryEntry(**dict(row)) if row else None

    def get_state_at_time(self, project: str, timestamp: str | datetime) -> ProjectState:
        """Reconstruct every file of ``project`` as of ``timestamp`` (inclusive).

        Each file takes its highest version recorded at or before the moment;
        files whose applicable entry is a deletion, or that had no entry yet,
        are left out.
        """
        cutoff = format_timestamp(parse_timestamp(timestamp))
        with closing(self._connect()) as conn:
            rows = conn.execute(
                """
                SELECT h.file, h.action, h.content
                FROM history AS h
                JOIN (
                    SELECT file, MAX(version) AS version
                    FROM history
                    WHERE project = ? AND timestamp <= ?
                    GROUP BY file
                ) AS latest ON h.file = latest.file AND h.version = latest.version
                WHERE h.project = ?
                ORDER BY h.file
                """,
                (project, cutoff, project),
            ).fetchall()
        files = {row["file"]: row["content"] for row in rows if row["action"] != "deleted"}
        label = timestamp if isinstance(timestamp, str) else timestamp.isoformat()
        return ProjectState(timestamp=label, files=files)

    def get_file_at_time(self, project: str, file: str, timestamp: str | datetime) -> str | None:
        cutoff = format_timestamp(parse_timestamp(timestamp))
        with closing(self._connect()) as conn:
            row = conn.execute(
                "SELECT action, content FROM history"
                " WHERE project = ? AND file = ? AND timestamp <= ?"
                " ORDER BY version DESC LIMIT 1",
                (project, file, cutoff),
            ).fetchone()
        if row is None or row["action"] == "deleted":
            return None
        return row["content"]
