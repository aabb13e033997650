"""
Document store adapters.

The writer only needs one capability from a store: apply a batch of
replace-or-insert operations to a collection in a single request and report
how many documents were inserted, matched and modified.
"""

from __future__ import annotations

import copy
import logging
from dataclasses import dataclass
from typing import Any, Protocol, Sequence

from pymongo import AsyncMongoClient, ReplaceOne
from pymongo.errors import BulkWriteError, PyMongoError

from .exceptions import PersistenceError

logger = logging.getLogger("langquiz-loader")


DEFAULT_DATABASE = "langquiz"


@dataclass(frozen=True)
class Upsert:
    """Replace the document matching ``filter``, or insert ``replacement``."""
    filter: dict[str, Any]
    replacement: dict[str, Any]


@dataclass
class BulkWriteSummary:
    """Counts reported by a bulk upsert.

    Attributes:
        collection: Collection the batch was written to.
        inserted: Documents created because nothing matched their filter.
        matched: Existing documents matched by a filter.
        modified: Matched documents whose content actually changed.
    """
    collection: str
    inserted: int = 0
    matched: int = 0
    modified: int = 0


class DocumentStore(Protocol):
    async def bulk_upsert(self, collection: str, ops: Sequence[Upsert]) -> BulkWriteSummary: ...

    async def close(self) -> None: ...


class MongoDocumentStore:
    """DocumentStore on a MongoDB database through pymongo's async client."""

    def __init__(self, client: AsyncMongoClient, database: str = DEFAULT_DATABASE):
        self._client = client
        self._db = client[database]
        self.database = database

    @classmethod
    def connect(
        cls,
        url: str,
        user: str | None = None,
        password: str | None = None,
        database: str = DEFAULT_DATABASE,
    ) -> "MongoDocumentStore":
        """Create a store from a connection URL and optional credentials."""
        kwargs: dict[str, Any] = {}
        if user:
            kwargs["username"] = user
            kwargs["password"] = password
        return cls(AsyncMongoClient(url, **kwargs), database=database)

    async def bulk_upsert(self, collection: str, ops: Sequence[Upsert]) -> BulkWriteSummary:
        """Submit all operations as one ordered ``bulk_write``.

        Any per-operation error fails the whole call, even when the server
        applied part of the batch.

        Raises:
            PersistenceError: On a bulk write error or any driver error
        """
        if not ops:
            return BulkWriteSummary(collection=collection)

        requests = [ReplaceOne(op.filter, op.replacement, upsert=True) for op in ops]
        try:
            result = await self._db[collection].bulk_write(requests, ordered=True)
        except BulkWriteError as e:
            details = e.details or {}
            raise PersistenceError(
                f"Bulk write to {collection} partially failed: "
                f"{len(details.get('writeErrors', []))} operation error(s)",
                collection=collection,
                details={
                    "write_errors": details.get("writeErrors", []),
                    "inserted": details.get("nUpserted", 0),
                    "matched": details.get("nMatched", 0),
                    "modified": details.get("nModified", 0),
                },
            ) from e
        except PyMongoError as e:
            raise PersistenceError(
                f"Bulk write to {collection} failed: {e}", collection=collection
            ) from e

        return BulkWriteSummary(
            collection=collection,
            inserted=result.upserted_count,
            matched=result.matched_count,
            modified=result.modified_count,
        )

    async def close(self) -> None:
        await self._client.close()


class InMemoryDocumentStore:
    """DocumentStore holding collections as lists of dicts.

    Follows MongoDB's replace-with-upsert counting: a matched document counts
    as matched, and as modified only when its content changes. Used for dry
    runs and in tests.
    """

    def __init__(self) -> None:
        self.collections: dict[str, list[dict[str, Any]]] = {}
        self.request_count = 0

    async def bulk_upsert(self, collection: str, ops: Sequence[Upsert]) -> BulkWriteSummary:
        summary = BulkWriteSummary(collection=collection)
        if not ops:
            return summary

        self.request_count += 1
        documents = self.collections.setdefault(collection, [])
        for op in ops:
            index = self._find(documents, op.filter)
            replacement = copy.deepcopy(op.replacement)
            if index is None:
                documents.append(replacement)
                summary.inserted += 1
                continue
            summary.matched += 1
            if documents[index] != replacement:
                documents[index] = replacement
                summary.modified += 1
        return summary

    def find(self, collection: str, filter: dict[str, Any] | None = None) -> list[dict[str, Any]]:
        """Return copies of the documents matching ``filter`` (all when None)."""
        filter = filter or {}
        return [
            copy.deepcopy(doc)
            for doc in self.collections.get(collection, [])
            if all(doc.get(k) == v for k, v in filter.items())
        ]

    async def close(self) -> None:
        return None

    @staticmethod
    def _find(documents: list[dict[str, Any]], filter: dict[str, Any]) -> int | None:
        for i, doc in enumerate(documents):
            if all(doc.get(k) == v for k, v in filter.items()):
                return i
        return None


__all__ = [
    "Upsert",
    "BulkWriteSummary",
    "DocumentStore",
    "MongoDocumentStore",
    "InMemoryDocumentStore",
    "DEFAULT_DATABASE",
]
