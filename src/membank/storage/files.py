"""File store protocol and the plain filesystem implementation."""

from __future__ import annotations

import logging
import shutil
from datetime import datetime, timezone
from pathlib import Path
from typing import Protocol, runtime_checkable

from membank.errors import InvalidName

logger = logging.getLogger(__name__)

ARCHIVE_DIR = ".archive"


@runtime_checkable
class FileStore(Protocol):
    """Per-project text file access. ``None``/``False`` signal absence."""

    def list_files(self, project: str) -> list[str]: ...

    def load_file(self, project: str, file: str) -> str | None: ...

    def load_file_lines(self, project: str, file: str) -> list[str] | None: ...

    def write_file(self, project: str, file: str, content: str) -> str | None:
        """Create a new file. Returns ``None`` if it already exists."""
        ...

    def update_file(self, project: str, file: str, content: str) -> str | None:
        """Overwrite an existing file. Returns ``None`` if it does not exist."""
        ...

    def delete_file(self, project: str, file: str) -> bool: ...


def check_name(name: str) -> str:
    """Reject names that are empty, hidden, or not a single path component."""
    if (
        not name
        or name.startswith(".")
        or "/" in name
        or "\\" in name
        or "\x00" in name
    ):
        raise InvalidName(name)
    return name


class FsFileStore:
    """Projects are directories under ``root``; files are plain UTF-8 text."""

    def __init__(self, root: Path) -> None:
        self.root = root

    def _project_dir(self, project: str) -> Path:
        return self.root / check_name(project)

    def _file_path(self, project: str, file: str) -> Path:
        return self._project_dir(project) / check_name(file)

    # ── Projects ──────────────────────────────────────────────

    def project_exists(self, project: str) -> bool:
        return self._project_dir(project).is_dir()

    def list_projects(self) -> list[str]:
        if not self.root.is_dir():
            return []
        return sorted(
            p.name for p in self.root.iterdir() if p.is_dir() and not p.name.startswith(".")
        )

    # ── Files ─────────────────────────────────────────────────

    def list_files(self, project: str) -> list[str]:
        project_dir = self._project_dir(project)
        if not project_dir.is_dir():
            return []
        return sorted(
            p.name for p in project_dir.iterdir() if p.is_file() and not p.name.startswith(".")
        )

    def load_file(self, project: str, file: str) -> str | None:
        path = self._file_path(project, file)
        if not path.is_file():
            return None
        # newline="" keeps CRLF intact; callers normalize where it matters
        with path.open(encoding="utf-8", newline="") as f:
            return f.read()

    def load_file_lines(self, project: str, file: str) -> list[str] | None:
        content = self.load_file(project, file)
        if content is None:
            return None
        return content.split("\n")

    def write_file(self, project: str, file: str, content: str) -> str | None:
        path = self._file_path(project, file)
        path.parent.mkdir(parents=True, exist_ok=True)
        try:
            with path.open("x", encoding="utf-8", newline="") as f:
                f.write(content)
        except FileExistsError:
            return None
        return self.load_file(project, file)

    def update_file(self, project: str, file: str, content: str) -> str | None:
        path = self._file_path(project, file)
        if not path.is_file():
            return None
        path.write_text(content, encoding="utf-8", newline="")
        return self.load_file(project, file)

    def delete_file(self, project: str, file: str) -> bool:
        """Move the file to ``.archive/<project>/`` under a timestamped name."""
        path = self._file_path(project, file)
        if not path.is_file():
            return False

        archive_dir = self.root / ARCHIVE_DIR / project
        archive_dir.mkdir(parents=True, exist_ok=True)
        ts = datetime.now(timezone.utc).strftime("%Y-%m-%dT%H_%M_%S_%fZ")
        target = archive_dir / f"{path.stem}-DELETED-{ts}{path.suffix}"
        shutil.move(str(path), str(target))
        logger.info("Archived %s/%s to %s", project, file, target.name)
        return True
