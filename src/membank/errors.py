"""Error taxonomy for the memory bank.

Domain outcomes (``NotFound``, ``InvalidRange``, ``ContentMismatch``,
``NormalizationFailure``) are kept apart from infrastructure failures
(``LockTimeout``) so callers can react to each one programmatically.
Plain ``OSError`` from disk IO is never wrapped.
"""

from __future__ import annotations


class MembankError(Exception):
    """Base class for all memory bank errors."""


# ── Domain errors ─────────────────────────────────────────────


class NotFound(MembankError):
    """A project, file or version does not exist."""


class ProjectNotFound(NotFound):
    def __init__(self, project: str) -> None:
        self.project = project
        super().__init__(f"Project not found: {project}")


class FileNotFound(NotFound):
    def __init__(self, project: str, file: str) -> None:
        self.project = project
        self.file = file
        super().__init__(f"File not found: {file} (project {project})")


class VersionNotFound(NotFound):
    def __init__(self, project: str, file: str, version: int | None) -> None:
        self.project = project
        self.file = file
        self.version = version
        if version is None:
            msg = f"No history recorded for {file} (project {project})"
        else:
            msg = f"Version {version} of {file} not found (project {project})"
        super().__init__(msg)


class FileExists(MembankError):
    def __init__(self, project: str, file: str) -> None:
        self.project = project
        self.file = file
        super().__init__(f"File already exists: {file} (project {project})")


class InvalidRange(MembankError):
    """Patch line bounds fall outside ``1 <= start <= end <= total_lines``."""

    def __init__(self, start_line: object, end_line: object, total_lines: int) -> None:
        self.start_line = start_line
        self.end_line = end_line
        self.total_lines = total_lines
        super().__init__(
            f"Invalid line range {start_line}-{end_line} (file has {total_lines} lines)"
        )


class ContentMismatch(MembankError):
    """The caller's expected content does not match the file.

    ``actual`` carries the text currently at the requested range so the
    caller can re-read and retry.
    """

    def __init__(self, expected: str, actual: str) -> None:
        self.expected = expected
        self.actual = actual
        super().__init__("Content at the given line range does not match old_content")


class NormalizationFailure(MembankError, ValueError):
    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"Project name {name!r} cannot be normalized to a directory name")


class InvalidName(MembankError, ValueError):
    """A project or file name would escape its directory."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"Invalid name: {name!r}")


# ── Infrastructure errors ─────────────────────────────────────


class InfrastructureError(MembankError):
    """Failures of the storage machinery rather than of the request."""


class LockTimeout(InfrastructureError):
    def __init__(self, key: str, attempts: int) -> None:
        self.key = key
        self.attempts = attempts
        super().__init__(f"Timed out acquiring lock {key!r} after {attempts} attempts")
