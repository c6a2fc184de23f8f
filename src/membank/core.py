"""MemoryBank facade: the entry point for callers of the memory bank.

Responsibilities:
1. Compose the storage stack (file store + ledger + index + locks)
2. Project name resolution: read mode resolves, write mode may create
3. Bookkeeping for new projects (metadata + index), never failing the write
4. Lazy metadata backfill for legacy projects, as detached background tasks
5. Expose reads, edits, search and history as async operations

Blocking filesystem and sqlite work runs in worker threads via
``asyncio.to_thread``; the components themselves hold no per-call state.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime

from membank.config import MembankConfig
from membank.errors import FileExists, FileNotFound, ProjectNotFound
from membank.services.diff import DiffResult, file_history_diff
from membank.services.patch import PatchResult, patch_file
from membank.services.resolver import (
    IndexRebuildReport,
    ProjectNameResolver,
    Resolution,
    rebuild_project_index,
)
from membank.services.search import GrepFileResult, GrepProjectResult, grep_project, search_lines
from membank.storage.content import (
    add_line_numbers,
    has_line_numbers,
    parse_front_matter,
    strip_line_numbers,
)
from membank.storage.files import FsFileStore
from membank.storage.index import ProjectIndex
from membank.storage.ledger import HistoryEntry, HistoryEntryMetadata, HistoryLedger, ProjectState
from membank.storage.locks import LockManager
from membank.storage.metadata import MetadataStore, ProjectMetadata
from membank.storage.tracking import HistoryTrackingFileStore

logger = logging.getLogger(__name__)

DEFAULT_PREVIEW_LINES = 10


@dataclass
class ProjectInfo:
    name: str
    friendly_name: str


@dataclass
class WriteResult:
    project: str
    file: str
    content: str
    new_project: bool = False


@dataclass
class ReadResult:
    content: str
    total_lines: int
    start_line: int = 1


@dataclass
class FilePreview:
    file: str
    total_lines: int
    preview_line_count: int
    preview: str
    front_matter: dict = field(default_factory=dict)


class MemoryBank:
    """Versioned, project-organized text store."""

    def __init__(
        self,
        config: MembankConfig,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.config = config
        root = config.root
        self.locks = LockManager.from_config(root / ".locks", config.lock)
        self.ledger = HistoryLedger(root / ".history" / "ledger.db", clock=clock)
        self.store = FsFileStore(root)
        self.files = HistoryTrackingFileStore(self.store, self.ledger, actor=config.actor)
        self.metadata = MetadataStore(root)
        self.index = ProjectIndex(root, self.locks)
        self.resolver = ProjectNameResolver(self.store, self.index)
        self._background: set[asyncio.Task] = set()

    # ── Project resolution ────────────────────────────────────

    async def _resolve(self, project: str) -> str:
        """Read mode: existing directory for ``project`` or ``ProjectNotFound``."""
        directory = await asyncio.to_thread(self.resolver.resolve, project)
        if directory is None:
            raise ProjectNotFound(project)
        self._spawn(self._backfill_metadata(directory))
        return directory

    def _spawn(self, coro) -> None:
        """Start ``coro`` detached; the caller never awaits or sees its outcome."""
        task = asyncio.create_task(coro)
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    async def _backfill_metadata(self, directory: str) -> None:
        try:
            await asyncio.to_thread(self._backfill_sync, directory)
        except Exception as e:
            logger.warning("Metadata backfill for %s failed: %s", directory, e)

    def _backfill_sync(self, directory: str) -> None:
        if self.metadata.read_metadata(directory) is not None:
            return
        self.metadata.write_metadata(directory, ProjectMetadata.new(directory, directory))
        self.index.set_mapping(directory, directory)
        logger.info("Backfilled metadata for legacy project %s", directory)

    async def _register_project(self, resolution: Resolution) -> None:
        """Record metadata and index mapping of a just-created project.

        The write already succeeded; failures here are logged only.
        """
        metadata = ProjectMetadata.new(resolution.friendly_name, resolution.directory_name)
        try:
            await asyncio.to_thread(
                self.metadata.write_metadata, resolution.directory_name, metadata
            )
            await asyncio.to_thread(
                self.index.set_mapping, resolution.friendly_name, resolution.directory_name
            )
        except Exception as e:
            logger.warning(
                "Bookkeeping for new project %s failed: %s", resolution.directory_name, e
            )

    @staticmethod
    def _clean(content: str) -> str:
        if has_line_numbers(content):
            logger.info("Stripping line-number annotations from written content")
            return strip_line_numbers(content)
        return content

    # ── Projects & files ──────────────────────────────────────

    async def list_projects(self) -> list[ProjectInfo]:
        projects = await asyncio.to_thread(self.store.list_projects)
        mappings = await asyncio.to_thread(self.index.get_all_mappings)
        friendly_by_dir: dict[str, str] = {}
        for friendly, directory in mappings.items():
            if friendly != directory:
                friendly_by_dir.setdefault(directory, friendly)

        infos = []
        for directory in projects:
            friendly = friendly_by_dir.get(directory)
            if friendly is None:
                record = await asyncio.to_thread(self.metadata.read_metadata, directory)
                friendly = record.friendly_name if record else directory
            infos.append(ProjectInfo(name=directory, friendly_name=friendly))
        return infos

    async def list_files(self, project: str) -> list[str]:
        directory = await self._resolve(project)
        return await asyncio.to_thread(self.files.list_files, directory)

    async def _load(self, directory: str, file: str) -> str:
        content = await asyncio.to_thread(self.files.load_file, directory, file)
        if content is None:
            raise FileNotFound(directory, file)
        return content

    async def read_file(
        self,
        project: str,
        file: str,
        start_line: int | None = None,
        end_line: int | None = None,
        max_lines: int | None = None,
        line_numbers: bool = False,
    ) -> ReadResult:
        """Read a whole file or a 1-based inclusive line range of it.

        ``end_line`` past the end is clamped; ``start_line`` past the end
        raises ``ValueError``.
        """
        directory = await self._resolve(project)
        content = await self._load(directory, file)
        lines = content.split("\n")
        total = len(lines)

        start = start_line or 1
        end = end_line or total
        if max_lines is not None:
            end = min(end, start + max_lines - 1)
        if start < 1 or start > total:
            raise ValueError(f"start_line ({start}) outside file of {total} lines")
        end = min(end, total)

        text = "\n".join(lines[start - 1 : end])
        if line_numbers:
            text = add_line_numbers(text, start=start, total=total)
        return ReadResult(content=text, total_lines=total, start_line=start)

    async def peek_file(
        self, project: str, file: str, preview_lines: int = DEFAULT_PREVIEW_LINES
    ) -> FilePreview:
        if preview_lines < 1:
            raise ValueError("preview_lines must be a positive integer")
        directory = await self._resolve(project)
        content = await self._load(directory, file)
        lines = content.split("\n")
        count = min(preview_lines, len(lines))
        return FilePreview(
            file=file,
            total_lines=len(lines),
            preview_line_count=count,
            preview=add_line_numbers("\n".join(lines[:count]), start=1, total=len(lines)),
            front_matter=parse_front_matter(content),
        )

    async def write_file(self, project: str, file: str, content: str) -> WriteResult:
        """Create ``file``; creates the project too if the name is new."""
        resolution = await asyncio.to_thread(self.resolver.resolve_for_creation, project)
        directory = resolution.directory_name
        result = await asyncio.to_thread(
            self.files.write_file, directory, file, self._clean(content)
        )
        if result is None:
            raise FileExists(directory, file)

        if resolution.is_new:
            logger.info("Created project %s (%r)", directory, resolution.friendly_name)
            await self._register_project(resolution)
        return WriteResult(directory, file, result, new_project=resolution.is_new)

    async def update_file(self, project: str, file: str, content: str) -> str:
        directory = await self._resolve(project)
        result = await asyncio.to_thread(
            self.files.update_file, directory, file, self._clean(content)
        )
        if result is None:
            raise FileNotFound(directory, file)
        return result

    async def delete_file(self, project: str, file: str) -> None:
        directory = await self._resolve(project)
        if not await asyncio.to_thread(self.files.delete_file, directory, file):
            raise FileNotFound(directory, file)

    async def patch_file(
        self,
        project: str,
        file: str,
        start_line: int,
        end_line: int,
        old_content: str,
        new_content: str,
    ) -> PatchResult:
        directory = await self._resolve(project)
        return await asyncio.to_thread(
            patch_file,
            self.files,
            self.store,
            directory,
            file,
            start_line,
            end_line,
            old_content,
            new_content,
        )

    # ── Search ────────────────────────────────────────────────

    async def grep_file(
        self,
        project: str,
        file: str,
        pattern: str,
        context_lines: int = 2,
        case_sensitive: bool = True,
    ) -> GrepFileResult:
        directory = await self._resolve(project)
        lines = await asyncio.to_thread(self.files.load_file_lines, directory, file)
        if lines is None:
            raise FileNotFound(directory, file)
        return GrepFileResult(file, search_lines(lines, pattern, context_lines, case_sensitive))

    async def grep_project(
        self,
        project: str,
        pattern: str,
        context_lines: int = 2,
        case_sensitive: bool = True,
        max_results: int = 100,
    ) -> GrepProjectResult:
        directory = await self._resolve(project)
        return await asyncio.to_thread(
            grep_project, self.files, directory, pattern, context_lines, case_sensitive, max_results
        )

    # ── History ───────────────────────────────────────────────

    async def file_history(self, project: str, file: str) -> list[HistoryEntry]:
        directory = await self._resolve(project)
        return await asyncio.to_thread(self.ledger.get_file_history, directory, file)

    async def project_history(self, project: str) -> list[HistoryEntryMetadata]:
        directory = await self._resolve(project)
        return await asyncio.to_thread(self.ledger.get_project_history_metadata, directory)

    async def state_at_time(self, project: str, timestamp: str | datetime) -> ProjectState:
        directory = await self._resolve(project)
        return await asyncio.to_thread(self.ledger.get_state_at_time, directory, timestamp)

    async def file_at_time(
        self, project: str, file: str, timestamp: str | datetime
    ) -> str | None:
        directory = await self._resolve(project)
        return await asyncio.to_thread(self.ledger.get_file_at_time, directory, file, timestamp)

    async def file_history_diff(
        self,
        project: str,
        file: str,
        version_from: int,
        version_to: int | None = None,
    ) -> DiffResult:
        directory = await self._resolve(project)
        return await asyncio.to_thread(
            file_history_diff, self.ledger, self.files, directory, file, version_from, version_to
        )

    # ── Maintenance & lifecycle ───────────────────────────────

    async def rebuild_index(self) -> IndexRebuildReport:
        return await asyncio.to_thread(
            rebuild_project_index, self.store, self.metadata, self.index
        )

    async def aclose(self) -> None:
        """Wait for outstanding background tasks."""
        if self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)
