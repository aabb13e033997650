"""
Cache key derivation.

Keys are relative, slash-separated paths under the cache root:

    courses.json
    skills/<course_id>.json
    words/<skill_id>.json
    translate/<course_id>/<fingerprint>.json

The translation fingerprint is the SHA-1 hex digest of the compact JSON
encoding of the ordered batch. It is order-sensitive: the same words in a
different order are a different request.
"""

from __future__ import annotations

import hashlib
import json
from typing import Sequence

from .exceptions import InvariantViolation


COURSES_KEY = "courses.json"


def _segment(value: str, kind: str) -> str:
    """Check that an identifier can be used as a single path segment."""
    if not value or value in (".", "..") or any(c in value for c in ("/", "\\", "\x00")):
        raise InvariantViolation(
            f"Invalid {kind} id for a cache key: {value!r}",
            details={"kind": kind, "id": value},
        )
    return value


def courses_key() -> str:
    return COURSES_KEY


def skills_key(course_id: str) -> str:
    return f"skills/{_segment(course_id, 'course')}.json"


def words_key(skill_id: str) -> str:
    return f"words/{_segment(skill_id, 'skill')}.json"


def batch_fingerprint(words: Sequence[str]) -> str:
    """Fingerprint an ordered word batch.

    The encoding has no whitespace and keeps non-ASCII characters as is,
    so the digest matches caches written by earlier loader versions.

    Args:
        words: Ordered batch exactly as it is sent to the provider

    Returns:
        40-character hex digest
    """
    encoded = json.dumps(list(words), ensure_ascii=False, separators=(",", ":"))
    return hashlib.sha1(encoded.encode("utf-8")).hexdigest()


def translate_key(course_id: str, words: Sequence[str]) -> str:
    return f"translate/{_segment(course_id, 'course')}/{batch_fingerprint(words)}.json"


__all__ = [
    "COURSES_KEY",
    "courses_key",
    "skills_key",
    "words_key",
    "batch_fingerprint",
    "translate_key",
]
