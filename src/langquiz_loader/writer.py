"""
Idempotent persistence of languages, skills and translation records.

Each record becomes one replace-or-insert operation filtered on its natural
key, and each call submits its records as a single bulk request. Running the
same writes twice leaves the store unchanged.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Sequence

from .exceptions import InvariantViolation
from .models import Language, Skill, TranslationRecord
from .store import BulkWriteSummary, DocumentStore, Upsert

logger = logging.getLogger("langquiz-loader")


LANGUAGE_KEY = ("id",)
SKILL_KEY = ("id",)
WORD_KEY = ("from", "to", "word")


@dataclass
class CollectionNames:
    """Collection names inside the loader's database."""
    languages: str = "languages"
    skills: str = "skills"
    words: str = "words"


class PersistenceWriter:
    """Writes pipeline records to a DocumentStore keyed by natural keys."""

    def __init__(self, store: DocumentStore, collections: CollectionNames | None = None):
        self.store = store
        self.collections = collections or CollectionNames()

    async def upsert_languages(self, languages: Sequence[Language]) -> BulkWriteSummary:
        return await self._write(
            self.collections.languages, [lang.to_document() for lang in languages], LANGUAGE_KEY
        )

    async def upsert_skills(self, skills: Sequence[Skill]) -> BulkWriteSummary:
        return await self._write(
            self.collections.skills, [skill.to_document() for skill in skills], SKILL_KEY
        )

    async def upsert_words(self, records: Sequence[TranslationRecord]) -> BulkWriteSummary:
        return await self._write(
            self.collections.words, [record.to_document() for record in records], WORD_KEY
        )

    async def _write(
        self,
        collection: str,
        documents: list[dict[str, Any]],
        key_fields: tuple[str, ...],
    ) -> BulkWriteSummary:
        ops = [
            Upsert(filter=self._natural_key(collection, doc, key_fields), replacement=doc)
            for doc in documents
        ]
        summary = await self.store.bulk_upsert(collection, ops)
        logger.info(
            f"Collection {collection}: {summary.inserted} inserted, "
            f"{summary.matched} matched, {summary.modified} updated"
        )
        return summary

    @staticmethod
    def _natural_key(
        collection: str, document: dict[str, Any], key_fields: tuple[str, ...]
    ) -> dict[str, Any]:
        # this tuple uniquely identifies the document
        missing = [field for field in key_fields if document.get(field) is None]
        if missing:
            raise InvariantViolation(
                f"Record for {collection} is missing key field(s): {', '.join(missing)}",
                details={"collection": collection, "missing": missing},
            )
        return {field: document[field] for field in key_fields}


__all__ = [
    "PersistenceWriter",
    "CollectionNames",
    "LANGUAGE_KEY",
    "SKILL_KEY",
    "WORD_KEY",
]
