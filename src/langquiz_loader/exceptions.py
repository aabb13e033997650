"""
Exception hierarchy for the langquiz loader.

Every failure the pipeline can hit is fatal for the current run. The
exceptions carry enough context (stage, entity id, cache path, collection)
for an operator to find the cause and re-run the whole pipeline.
"""

from __future__ import annotations

from typing import Any


class LoaderError(Exception):
    """Base exception for all loader errors.

    Attributes:
        message: Human-readable error message
        details: Dictionary of additional error context
    """

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        """Initialize the error.

        Args:
            message: Human-readable error message
            details: Optional dictionary of additional error context
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}


class RemoteFetchError(LoaderError):
    """A call to the course provider failed.

    Covers network errors, authentication failures, rate limiting that
    outlasted the retries and malformed responses.

    Attributes:
        stage: Pipeline stage that issued the call (courses, skills, words, translate)
        entity_id: Identifier of the entity being fetched, if any
    """

    def __init__(
        self,
        message: str,
        stage: str,
        entity_id: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        details = dict(details or {})
        details.setdefault("stage", stage)
        if entity_id is not None:
            details.setdefault("entity_id", entity_id)
        super().__init__(message, details)
        self.stage = stage
        self.entity_id = entity_id


class CacheIOError(LoaderError):
    """Reading, parsing or writing a cache file failed.

    Distinct from a cache miss: a missing file is a miss, an unreadable or
    malformed one is this error.

    Attributes:
        path: Cache file involved, if known
    """

    def __init__(
        self,
        message: str,
        path: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        details = dict(details or {})
        if path is not None:
            details.setdefault("path", path)
        super().__init__(message, details)
        self.path = path


class PersistenceError(LoaderError):
    """A bulk write to the document store failed or was only partly applied.

    Attributes:
        collection: Target collection name
    """

    def __init__(
        self,
        message: str,
        collection: str,
        details: dict[str, Any] | None = None,
    ):
        details = dict(details or {})
        details.setdefault("collection", collection)
        super().__init__(message, details)
        self.collection = collection


class InvariantViolation(LoaderError):
    """Data does not satisfy a pipeline invariant.

    Raised for example when an allow-listed course is missing from the
    catalog, or when a translation response is not aligned with its batch.
    """
    pass


class ConfigurationError(LoaderError):
    """Settings or credentials are missing or invalid."""
    pass


__all__ = [
    "LoaderError",
    "RemoteFetchError",
    "CacheIOError",
    "PersistenceError",
    "InvariantViolation",
    "ConfigurationError",
]
