"""Durable friendly-name → directory-name index (``<root>/.index``).

Mutations take the ``project-index`` lock for the whole read-modify-write
cycle. Reads are unguarded; the file is replaced atomically so a reader sees
either the old or the new mapping, never a torn one.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from collections.abc import Iterable
from pathlib import Path

from membank.storage.locks import LockManager

logger = logging.getLogger(__name__)

INDEX_FILENAME = ".index"
INDEX_VERSION = 1
LOCK_KEY = "project-index"


class ProjectIndex:
    def __init__(self, root: Path, locks: LockManager) -> None:
        self.root = root
        self.locks = locks
        self.path = root / INDEX_FILENAME

    def _read(self) -> dict[str, str]:
        """Current mappings; a missing or corrupt index reads as empty."""
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return {}
        except (OSError, ValueError) as e:
            logger.warning("Index %s unreadable, treating as empty: %s", self.path, e)
            return {}

        mappings = data.get("mappings") if isinstance(data, dict) else None
        if not isinstance(mappings, dict):
            logger.warning("Index %s malformed, treating as empty", self.path)
            return {}
        return {k: v for k, v in mappings.items() if isinstance(k, str) and isinstance(v, str)}

    def _write(self, mappings: dict[str, str]) -> None:
        self.root.mkdir(parents=True, exist_ok=True)
        payload = json.dumps(
            {"version": INDEX_VERSION, "mappings": mappings}, indent=2, ensure_ascii=False
        )
        fd, tmp = tempfile.mkstemp(dir=self.root, prefix=".index.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(payload + "\n")
            os.replace(tmp, self.path)
        except BaseException:
            Path(tmp).unlink(missing_ok=True)
            raise

    # ── Reads ─────────────────────────────────────────────────

    def get_directory_name(self, friendly_name: str) -> str | None:
        return self._read().get(friendly_name)

    def get_all_mappings(self) -> dict[str, str]:
        return dict(self._read())

    # ── Locked mutations ──────────────────────────────────────

    def set_mapping(self, friendly_name: str, directory_name: str) -> None:
        with self.locks.hold(LOCK_KEY):
            mappings = self._read()
            mappings[friendly_name] = directory_name
            self._write(mappings)

    def remove_mapping(self, friendly_name: str) -> None:
        with self.locks.hold(LOCK_KEY):
            mappings = self._read()
            if mappings.pop(friendly_name, None) is not None:
                self._write(mappings)

    def rebuild_index(self, entries: Iterable[tuple[str, str]]) -> None:
        """Replace the whole index with ``(friendly_name, directory_name)`` pairs."""
        with self.locks.hold(LOCK_KEY):
            self._write({friendly: directory for friendly, directory in entries})
        logger.info("Rebuilt project index at %s", self.path)
