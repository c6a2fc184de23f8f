"""Line-ending normalization and line-number annotation helpers.

Patch verification compares text that may come from different platforms or
from an earlier annotated read, so both sides go through the same
normalization. Only line endings and a single trailing newline are
insignificant; whitespace inside lines and blank lines never are.
"""

from __future__ import annotations

import logging
import re

import frontmatter

logger = logging.getLogger(__name__)

_LINE_NUMBER_PREFIX = re.compile(r"^\s*(\d+)\|")


def normalize_line_endings(content: str) -> str:
    """Convert CRLF and bare CR to LF."""
    if not content:
        return content
    return content.replace("\r\n", "\n").replace("\r", "\n")


def normalize_for_comparison(content: str, trim_trailing_newline: bool = True) -> str:
    """Unify line endings and drop at most one trailing newline."""
    if not content:
        return content
    normalized = normalize_line_endings(content)
    if trim_trailing_newline and normalized.endswith("\n"):
        normalized = normalized[:-1]
    return normalized


def add_line_numbers(content: str, start: int = 1, total: int | None = None) -> str:
    """Prefix each line with ``N|``, right-aligned to the widest number.

    ``total`` widens the padding when ``content`` is a slice of a longer file.
    """
    if not content:
        return content
    lines = content.split("\n")
    width = len(str(max(total or 0, start + len(lines) - 1)))
    return "\n".join(f"{str(start + i).rjust(width)}|{line}" for i, line in enumerate(lines))


def strip_line_numbers(content: str) -> str:
    if not content:
        return content
    return "\n".join(_LINE_NUMBER_PREFIX.sub("", line, count=1) for line in content.split("\n"))


def has_line_numbers(content: str) -> bool:
    """Whether ``content`` looks like output of ``add_line_numbers``.

    Requires two or more lines, all prefixed, numbered consecutively. A
    single ``1|x`` line or a markdown table is not enough.
    """
    if not content:
        return False
    lines = content.split("\n")
    if lines and lines[-1] == "":
        lines = lines[:-1]
    if len(lines) < 2:
        return False

    previous = None
    for line in lines:
        match = _LINE_NUMBER_PREFIX.match(line)
        if not match:
            return False
        number = int(match.group(1))
        if previous is not None and number != previous + 1:
            return False
        previous = number
    return True


def line_number_prefix(line: str) -> int | None:
    """Return the annotated line number of a single line, if any."""
    match = _LINE_NUMBER_PREFIX.match(line)
    return int(match.group(1)) if match else None


def parse_front_matter(content: str) -> dict:
    """YAML front matter of a markdown file as a dict; ``{}`` if absent or malformed."""
    try:
        post = frontmatter.loads(normalize_line_endings(content or ""))
    except Exception as e:
        logger.debug("Ignoring malformed front matter: %s", e)
        return {}
    return dict(post.metadata)
