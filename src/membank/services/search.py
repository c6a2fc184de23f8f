"""Substring search over project files, with context lines."""

from __future__ import annotations

from dataclasses import dataclass, field

from membank.storage.files import FileStore


@dataclass
class GrepMatch:
    match_line: int
    line_start: int
    line_end: int
    content: str


@dataclass
class GrepFileResult:
    file: str
    matches: list[GrepMatch] = field(default_factory=list)


@dataclass
class GrepProjectResult:
    results: list[GrepFileResult]
    total_matches: int
    truncated: bool


def search_lines(
    lines: list[str],
    pattern: str,
    context_lines: int = 2,
    case_sensitive: bool = True,
) -> list[GrepMatch]:
    """Every line containing ``pattern``, with surrounding context. Line numbers are 1-based."""
    if not lines or not pattern:
        return []
    needle = pattern if case_sensitive else pattern.lower()
    context_lines = max(context_lines, 0)

    matches = []
    for i, line in enumerate(lines):
        haystack = line if case_sensitive else line.lower()
        if needle not in haystack:
            continue
        lo = max(0, i - context_lines)
        hi = min(len(lines) - 1, i + context_lines)
        matches.append(
            GrepMatch(
                match_line=i + 1,
                line_start=lo + 1,
                line_end=hi + 1,
                content="\n".join(lines[lo : hi + 1]),
            )
        )
    return matches


def grep_project(
    files: FileStore,
    project: str,
    pattern: str,
    context_lines: int = 2,
    case_sensitive: bool = True,
    max_results: int = 100,
) -> GrepProjectResult:
    results: list[GrepFileResult] = []
    total = 0
    truncated = False

    for name in files.list_files(project):
        if total >= max_results:
            truncated = True
            break
        lines = files.load_file_lines(project, name)
        if lines is None:
            continue
        matches = search_lines(lines, pattern, context_lines, case_sensitive)
        if not matches:
            continue
        remaining = max_results - total
        if len(matches) > remaining:
            results.append(GrepFileResult(name, matches[:remaining]))
            total += remaining
            truncated = True
            break
        results.append(GrepFileResult(name, matches))
        total += len(matches)

    return GrepProjectResult(results=results, total_matches=total, truncated=truncated)
