"""
langquiz-loader - incremental loader for language-course vocabularies.

Fetches courses, skills and skill vocabularies from a course provider through
an on-disk response cache, translates each course's words in cached batches,
and upserts languages, skills and translations into MongoDB.
"""

from .cache import ContentCache
from .config import LoaderConfig
from .exceptions import (
    CacheIOError,
    ConfigurationError,
    InvariantViolation,
    LoaderError,
    PersistenceError,
    RemoteFetchError,
)
from .models import Course, Language, Skill, TranslationRecord
from .store import InMemoryDocumentStore, MongoDocumentStore
from .translation import TranslationBatcher
from .traversal import CourseTraverser, RunReport, WordSkillIndex
from .writer import PersistenceWriter

try:
    from importlib.metadata import version as _get_version
    __version__ = _get_version("langquiz-loader")
except Exception:
    __version__ = "0.1.0"  # Fallback if metadata unavailable

__all__ = [
    "ContentCache",
    "LoaderConfig",
    "CourseTraverser",
    "RunReport",
    "WordSkillIndex",
    "TranslationBatcher",
    "PersistenceWriter",
    "InMemoryDocumentStore",
    "MongoDocumentStore",
    "Course",
    "Language",
    "Skill",
    "TranslationRecord",
    "LoaderError",
    "RemoteFetchError",
    "CacheIOError",
    "PersistenceError",
    "InvariantViolation",
    "ConfigurationError",
]
