"""Line-range replacement guarded by content verification.

The caller states which lines it expects to replace. If the file no longer
holds that text (someone else edited it since the caller read it), the
patch is refused with ``ContentMismatch`` carrying the current text, and
the file is left untouched. This is the only guard against lost updates;
plain writes are not locked.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Protocol

from membank.errors import ContentMismatch, FileNotFound, InvalidRange, ProjectNotFound
from membank.storage.content import (
    has_line_numbers,
    line_number_prefix,
    normalize_for_comparison,
    normalize_line_endings,
    strip_line_numbers,
)
from membank.storage.files import FileStore

logger = logging.getLogger(__name__)


class ProjectLookup(Protocol):
    def project_exists(self, project: str) -> bool: ...


@dataclass
class PatchResult:
    content: str
    start_line: int
    end_line: int
    lines_written: int


def _as_line_number(value: object) -> int | None:
    """Truncate a numeric line number; ``None`` for anything unusable."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return math.floor(value) if math.isfinite(value) else None
    if isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            return None
        return math.floor(number) if math.isfinite(number) else None
    return None


def _strip_annotation(text: str, first_line: int) -> str:
    """Remove ``N|`` prefixes pasted from an annotated read.

    Multi-line text is stripped when its numbering is consecutive. A single
    line is stripped only when its number is the line it claims to be.
    """
    if has_line_numbers(text):
        return strip_line_numbers(text)
    if "\n" not in text.rstrip("\n") and line_number_prefix(text) == first_line:
        return strip_line_numbers(text)
    return text


def patch_file(
    files: FileStore,
    projects: ProjectLookup,
    project: str,
    file: str,
    start_line: object,
    end_line: object,
    old_content: str,
    new_content: str,
) -> PatchResult:
    """Replace lines ``start_line..end_line`` (1-based, inclusive) of ``file``.

    ``old_content`` must equal the current text of that range, ignoring line
    endings and one trailing newline. Raises ``ProjectNotFound``,
    ``FileNotFound``, ``InvalidRange`` or ``ContentMismatch``.
    """
    if not projects.project_exists(project):
        raise ProjectNotFound(project)
    current = files.load_file(project, file)
    if current is None:
        raise FileNotFound(project, file)

    newline = "\r\n" if "\r\n" in current else "\n"
    lines = normalize_line_endings(current).split("\n")
    total = len(lines)

    start = _as_line_number(start_line)
    end = _as_line_number(end_line)
    if start is None or end is None or not 1 <= start <= end <= total:
        raise InvalidRange(start_line, end_line, total)

    actual = "\n".join(lines[start - 1 : end])
    expected = normalize_for_comparison(old_content)
    if expected != normalize_for_comparison(actual):
        # Accept text pasted from an annotated read ("12|...") as well.
        stripped = normalize_for_comparison(_strip_annotation(old_content, start))
        if stripped != normalize_for_comparison(actual):
            logger.info("Patch rejected for %s/%s lines %d-%d: content mismatch", project, file, start, end)
            raise ContentMismatch(old_content, actual)
    new_content = _strip_annotation(new_content, start)

    replacement = normalize_for_comparison(new_content)
    replacement_lines = replacement.split("\n") if replacement else []
    patched = newline.join(lines[: start - 1] + replacement_lines + lines[end:])

    result = files.update_file(project, file, patched)
    if result is None:
        raise FileNotFound(project, file)

    logger.info(
        "Patched %s/%s lines %d-%d with %d lines", project, file, start, end, len(replacement_lines)
    )
    return PatchResult(
        content=result, start_line=start, end_line=end, lines_written=len(replacement_lines)
    )
