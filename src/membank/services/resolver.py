"""Resolve user-facing project names to directory names."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Protocol

from membank.errors import NormalizationFailure
from membank.storage.index import ProjectIndex
from membank.storage.metadata import MetadataStore
from membank.storage.naming import normalize_project_name

logger = logging.getLogger(__name__)


class ProjectDirectory(Protocol):
    def project_exists(self, project: str) -> bool: ...

    def list_projects(self) -> list[str]: ...


@dataclass
class Resolution:
    directory_name: str
    friendly_name: str
    is_new: bool


@dataclass
class IndexRebuildReport:
    total: int
    with_metadata: int
    without_metadata: int


class ProjectNameResolver:
    """Friendly name → directory name, with collision-free creation."""

    def __init__(self, projects: ProjectDirectory, index: ProjectIndex) -> None:
        self.projects = projects
        self.index = index

    def _exists(self, name: str) -> bool:
        try:
            return self.projects.project_exists(name)
        except (OSError, ValueError):
            return False

    def _lookup(self, name: str) -> tuple[str | None, bool]:
        """Return ``(directory, matched_by_normalizing)``."""
        if self._exists(name):
            return name, False

        mapped = self.index.get_directory_name(name)
        if mapped is not None and self._exists(mapped):
            return mapped, False

        try:
            normalized = normalize_project_name(name)
        except NormalizationFailure:
            return None, False
        if normalized != name and self._exists(normalized):
            return normalized, True
        return None, False

    def _claimed_by_other(self, directory: str, name: str) -> bool:
        """Whether the index maps another real friendly name onto ``directory``.

        Identity mappings (directory → itself, from backfill or rebuild) do
        not claim anything.
        """
        return any(
            mapped == directory and friendly not in (directory, name)
            for friendly, mapped in self.index.get_all_mappings().items()
        )

    def resolve(self, name: str) -> str | None:
        """Existing directory for ``name``, or ``None``. Never creates anything.

        Tried in order: ``name`` as a directory, the index mapping, the
        normalized form of ``name``.
        """
        return self._lookup(name)[0]

    def resolve_for_creation(self, name: str) -> Resolution:
        """Resolve ``name``, or pick a free directory name for a new project.

        A normalized match that the index already assigns to a different
        friendly name is a collision, not the same project: ``"My Project"``
        and ``"my project!"`` end up in ``my-project`` and ``my-project-1``.
        Taken names get ``-1``, ``-2``, ... appended. Raises
        ``NormalizationFailure``.
        """
        existing, by_normalizing = self._lookup(name)
        if existing is not None and not (
            by_normalizing and self._claimed_by_other(existing, name)
        ):
            return Resolution(existing, name, is_new=False)

        candidate = normalize_project_name(name)
        directory = candidate
        suffix = 1
        while self._exists(directory):
            directory = f"{candidate}-{suffix}"
            suffix += 1
        return Resolution(directory, name, is_new=True)


def rebuild_project_index(
    projects: ProjectDirectory,
    metadata: MetadataStore,
    index: ProjectIndex,
) -> IndexRebuildReport:
    """Recreate the index from the projects on disk.

    Projects without readable metadata map their directory name to itself.
    Per-project failures are counted, never raised.
    """
    entries: list[tuple[str, str]] = []
    with_metadata = 0
    without_metadata = 0

    for directory in projects.list_projects():
        try:
            record = metadata.read_metadata(directory)
        except Exception as e:
            logger.warning("Failed to read metadata for %s: %s", directory, e)
            record = None

        if record is not None and record.friendly_name.strip():
            entries.append((record.friendly_name, directory))
            with_metadata += 1
        else:
            entries.append((directory, directory))
            without_metadata += 1

    index.rebuild_index(entries)
    report = IndexRebuildReport(len(entries), with_metadata, without_metadata)
    logger.info(
        "Index rebuilt: %d projects (%d with metadata, %d without)",
        report.total,
        report.with_metadata,
        report.without_metadata,
    )
    return report
