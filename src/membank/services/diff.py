"""Unified diffs between ledger versions of a file."""

from __future__ import annotations

import difflib
import logging
from dataclasses import dataclass

from membank.errors import FileNotFound, VersionNotFound
from membank.storage.files import FileStore
from membank.storage.ledger import HistoryLedger

logger = logging.getLogger(__name__)

CONTEXT_LINES = 3
_NO_NEWLINE = "\\ No newline at end of file\n"


@dataclass
class DiffResult:
    diff: str
    version_from: int
    version_to: int
    file: str
    # True when version_to is latest+1: a label for an untracked working
    # copy, not an entry that exists in the ledger.
    synthetic_target: bool = False


def unified_diff(old: str, new: str, from_label: str, to_label: str) -> str:
    """``diff -u`` style text, with the usual marker for a missing final newline."""
    out: list[str] = []
    for line in difflib.unified_diff(
        old.splitlines(keepends=True),
        new.splitlines(keepends=True),
        fromfile=from_label,
        tofile=to_label,
        n=CONTEXT_LINES,
    ):
        if line.endswith("\n"):
            out.append(line)
        else:
            out.append(line + "\n")
            out.append(_NO_NEWLINE)
    return "".join(out)


def _version_content(ledger: HistoryLedger, project: str, file: str, version: int) -> str:
    entry = ledger.get_entry(project, file, version)
    if entry is None:
        raise VersionNotFound(project, file, version)
    # A deletion is an empty file for diffing purposes.
    return entry.content or ""


def file_history_diff(
    ledger: HistoryLedger,
    files: FileStore,
    project: str,
    file: str,
    version_from: int,
    version_to: int | None = None,
) -> DiffResult:
    """Diff ``version_from`` against ``version_to``, or against the live file.

    Without ``version_to`` the live content is compared with the latest
    ledger version. If they differ, the target is labelled latest+1 and
    flagged ``synthetic_target``.
    """
    old = _version_content(ledger, project, file, version_from)

    synthetic = False
    if version_to is not None:
        new = _version_content(ledger, project, file, version_to)
        target = version_to
    else:
        latest = ledger.get_latest_entry(project, file)
        if latest is None:
            raise VersionNotFound(project, file, None)
        live = files.load_file(project, file)
        if live is None:
            if latest.action != "deleted":
                raise FileNotFound(project, file)
            live = ""
        target = latest.version
        if live != (latest.content or ""):
            target += 1
            synthetic = True
            logger.debug("%s/%s differs from ledger v%d", project, file, latest.version)
        new = live

    to_label = f"{file} (version {target}, working copy)" if synthetic else f"{file} (version {target})"
    diff = unified_diff(old, new, f"{file} (version {version_from})", to_label)
    return DiffResult(
        diff=diff,
        version_from=version_from,
        version_to=target,
        file=file,
        synthetic_target=synthetic,
    )
