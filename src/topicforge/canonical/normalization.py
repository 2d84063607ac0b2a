"""Text normalization helpers used for titles, identifiers and heuristics."""

from __future__ import annotations

import re
import unicodedata

_WHITESPACE_RE = re.compile(r"\s+")
_SLUG_SEPARATOR_RE = re.compile(r"[^\w]+|_+", re.UNICODE)


def normalize_whitespace(text: str) -> str:
    """Collapse repeated whitespace and trim boundaries."""

    return _WHITESPACE_RE.sub(" ", text).strip()


def normalize_text(text: str) -> str:
    """Produce stable text for comparisons and lexicon lookups."""

    normalized = unicodedata.normalize("NFKC", text)
    return normalize_whitespace(normalized).casefold()


def slugify(text: str, *, fallback: str = "topic") -> str:
    """Turn free text into an XML-safe identifier.

    Identifiers must not start with a digit, so those get the *fallback*
    prefix, as do inputs that normalize to nothing.
    """

    slug = _SLUG_SEPARATOR_RE.sub("-", normalize_text(text)).strip("-")
    if not slug:
        return fallback
    if slug[0].isdigit():
        return f"{fallback}-{slug}"
    return slug


def collapse_whitespace(text: str) -> str:
    """Collapse whitespace runs but keep a boundary space, for inline text."""

    return _WHITESPACE_RE.sub(" ", text)
