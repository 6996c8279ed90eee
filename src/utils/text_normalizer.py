"""Text normalization utilities for artist names, genres and ids.

Three small concerns live here:

1. **Artist name normalization** -- lower-cases and collapses whitespace so
   "The  Weeknd" and "the weeknd" compare equal, and splits names into word
   tokens for overlap scoring.

2. **Genre normalization** -- turns a raw genre list (mixed case, blanks,
   duplicates) into a clean set for Jaccard comparison.

3. **Artist id validation** -- the single place that decides what a
   well-formed artist id looks like (UUIDs and slugs both pass).
"""

import re

from rapidfuzz.distance import Levenshtein

from src.utils.errors import ValidationError

_WHITESPACE_RE = re.compile(r"\s+")
_ARTIST_ID_RE = re.compile(r"^[A-Za-z0-9_-]+$")
_MAX_ARTIST_ID_LENGTH = 128


def normalize_artist_name(name: str | None) -> str:
    """Lower-case *name* and collapse runs of whitespace.

    >>> normalize_artist_name("  The   Weeknd ")
    'the weeknd'
    """
    if not name:
        return ""
    return _WHITESPACE_RE.sub(" ", name).strip().lower()


def name_tokens(name: str | None) -> set[str]:
    """Return the set of word tokens in the normalized *name*."""
    normalized = normalize_artist_name(name)
    return set(normalized.split(" ")) if normalized else set()


def normalize_genres(genres: list[str] | None) -> set[str]:
    """Return a lower-cased, de-duplicated set of non-blank genres."""
    if not genres:
        return set()
    return {g.strip().lower() for g in genres if g and g.strip()}


def edit_similarity(a: str, b: str) -> float:
    """Levenshtein similarity of two strings on a 0-1 scale.

    ``1 - distance / max(len(a), len(b))``; two empty strings score 1.0.
    """
    return Levenshtein.normalized_similarity(a, b)


def validate_artist_id(artist_id: str | None) -> str:
    """Return the stripped *artist_id* or raise :class:`ValidationError`.

    Accepts 1-128 characters from ``[A-Za-z0-9_-]``, which covers UUIDs
    and slug-style ids.
    """
    if artist_id is None or not artist_id.strip():
        raise ValidationError(message="Artist ID is required")

    cleaned = artist_id.strip()
    if len(cleaned) > _MAX_ARTIST_ID_LENGTH or not _ARTIST_ID_RE.match(cleaned):
        raise ValidationError(message=f"Malformed artist ID: {cleaned[:40]!r}")
    return cleaned
