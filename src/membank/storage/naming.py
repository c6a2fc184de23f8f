"""Friendly project name → filesystem-safe directory name."""

from __future__ import annotations

import re

from membank.errors import NormalizationFailure

MAX_NAME_LENGTH = 200

TRANSLITERATIONS = {
    "ä": "ae",
    "ö": "oe",
    "ü": "ue",
    "ß": "ss",
    "à": "a",
    "á": "a",
    "â": "a",
    "ã": "a",
    "å": "a",
    "æ": "ae",
    "ç": "c",
    "è": "e",
    "é": "e",
    "ê": "e",
    "ë": "e",
    "ì": "i",
    "í": "i",
    "î": "i",
    "ï": "i",
    "ñ": "n",
    "ò": "o",
    "ó": "o",
    "ô": "o",
    "õ": "o",
    "ø": "o",
    "ù": "u",
    "ú": "u",
    "û": "u",
    "ý": "y",
    "ÿ": "y",
    "đ": "d",
    "ð": "d",
    "þ": "th",
    "ł": "l",
    "ž": "z",
    "š": "s",
    "č": "c",
    "ř": "r",
    "ů": "u",
    "ě": "e",
    "ť": "t",
    "ď": "d",
    "ň": "n",
}


def normalize_project_name(name: str) -> str:
    """Reduce ``name`` to ``[a-z0-9.-]``, e.g. ``"My Project!"`` → ``"my-project"``.

    Raises ``NormalizationFailure`` when nothing usable is left.
    """
    if not name or not name.strip():
        raise NormalizationFailure(name)

    slug = name.strip().lower()
    slug = "".join(TRANSLITERATIONS.get(ch, ch) for ch in slug)
    slug = re.sub(r"[\s_]+", "-", slug)
    slug = re.sub(r"[^a-z0-9.\-]", "", slug)
    slug = re.sub(r"-{2,}", "-", slug)
    slug = re.sub(r"\.{2,}", ".", slug)
    slug = slug.strip("-.")

    if len(slug) > MAX_NAME_LENGTH:
        slug = slug[:MAX_NAME_LENGTH].rstrip("-.")

    if not slug:
        raise NormalizationFailure(name)
    return slug
