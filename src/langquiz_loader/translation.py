"""
Batched, cached translation of a course's vocabulary.
"""

from __future__ import annotations

import logging
import unicodedata
from typing import Any, Iterable, Iterator, Mapping, Sequence

from .cache import ContentCache
from .exceptions import InvariantViolation
from .keys import translate_key
from .models import Course, TranslationRecord
from .provider import CourseProvider, fetch_remote

logger = logging.getLogger("langquiz-loader")


DEFAULT_BATCH_SIZE = 50


def collation_key(word: str) -> tuple[str, str, str, str]:
    """Sort key approximating locale-aware (root collation) word order.

    Compares base letters first, ignoring case and diacritics, then
    diacritics, then case with lowercase first. Unlike ``locale.strxfrm``
    it does not depend on the process locale.

    Example:
        >>> sorted(["banana", "Apple", "cherry", "apple", "ăn"], key=collation_key)
        ['ăn', 'apple', 'Apple', 'banana', 'cherry']
    """
    decomposed = unicodedata.normalize("NFD", word)
    base = "".join(c for c in decomposed if not unicodedata.combining(c))
    return (base.casefold(), decomposed.casefold(), decomposed.swapcase(), word)


def distinct(words: Iterable[str]) -> list[str]:
    """Drop repeated words, keeping first-seen order."""
    return list(dict.fromkeys(words))


def chunked(items: Sequence[str], size: int) -> Iterator[Sequence[str]]:
    for start in range(0, len(items), size):
        yield items[start:start + size]


class TranslationBatcher:
    """Translates a course's words in fixed-size, individually cached batches.

    Each batch is one remote ``translate`` call whose response is cached
    under a fingerprint of the exact batch. Responses are positional: the
    i-th payload belongs to the i-th word of the batch.
    """

    def __init__(
        self,
        provider: CourseProvider,
        cache: ContentCache,
        batch_size: int = DEFAULT_BATCH_SIZE,
    ):
        if batch_size < 1:
            raise ValueError(f"batch_size must be at least 1, got {batch_size}")
        self.provider = provider
        self.cache = cache
        self.batch_size = batch_size

    async def translate(
        self,
        course: Course,
        words: Iterable[str],
        words_to_skills: Mapping[str, Sequence[str]],
    ) -> list[TranslationRecord]:
        """Translate every distinct word of a course.

        Args:
            course: Course the words belong to
            words: Words to translate, duplicates allowed
            words_to_skills: Skill ids referencing each word

        Returns:
            One record per distinct word, sorted by ``collation_key``

        Raises:
            InvariantViolation: If a word has no skill or a response is misaligned
            RemoteFetchError: If a translate call fails
        """
        from_id = course.learning_language.id
        to_id = course.from_language.id
        unique_words = distinct(words)

        records: list[TranslationRecord] = []
        for batch in chunked(unique_words, self.batch_size):
            payloads = await self._translate_batch(course.id, batch)
            for word, payload in zip(batch, payloads):
                skills = list(words_to_skills.get(word) or [])
                if not skills:
                    raise InvariantViolation(
                        f"Word {word!r} of course {course.id} is not referenced by any skill",
                        details={"course_id": course.id, "word": word},
                    )
                records.append(TranslationRecord(
                    from_=from_id,
                    to=to_id,
                    word=word,
                    translations=payload,
                    skills=skills,
                ))

        records.sort(key=lambda record: collation_key(record.word))
        logger.info(f"Translated {len(records)} words for course {course.id}")
        return records

    async def _translate_batch(self, course_id: str, batch: Sequence[str]) -> list[Any]:
        key = translate_key(course_id, batch)
        logger.debug(f"translate: {course_id} [{','.join(batch)}]")

        payloads = await self.cache.get(
            key,
            lambda: fetch_remote(
                "translate", course_id, self.provider.translate, course_id, list(batch)
            ),
        )
        if not isinstance(payloads, list) or len(payloads) != len(batch):
            got = len(payloads) if isinstance(payloads, list) else type(payloads).__name__
            raise InvariantViolation(
                f"Translation response for {key} does not match its batch "
                f"({len(batch)} words, got {got})",
                details={"course_id": course_id, "key": key},
            )
        return payloads


__all__ = [
    "TranslationBatcher",
    "DEFAULT_BATCH_SIZE",
    "collation_key",
    "distinct",
    "chunked",
]
