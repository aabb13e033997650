"""
Pytest configuration and fixtures for langquiz-loader tests.
"""

import sys
from pathlib import Path
from typing import Any, Sequence

import pytest

# Add src directory to Python path to allow importing langquiz_loader
src_path = Path(__file__).parent.parent / "src"
if str(src_path) not in sys.path:
    sys.path.insert(0, str(src_path))

from langquiz_loader.cache import ContentCache
from langquiz_loader.store import InMemoryDocumentStore
from langquiz_loader.translation import TranslationBatcher
from langquiz_loader.traversal import CourseTraverser
from langquiz_loader.writer import PersistenceWriter


# Configure anyio to only use asyncio (not trio)
@pytest.fixture
def anyio_backend():
    return "asyncio"


VI = {"id": "vi", "name": "Vietnamese"}
EN = {"id": "en", "name": "English"}
ES = {"id": "es", "name": "Spanish"}

CATALOG = [
    {"id": "DUOLINGO_VI_EN", "learningLanguage": VI, "fromLanguage": EN, "title": "Vietnamese"},
    {"id": "DUOLINGO_ES_EN", "learningLanguage": ES, "fromLanguage": EN, "title": "Spanish"},
    {"id": "DUOLINGO_EN_VI", "learningLanguage": EN, "fromLanguage": VI, "title": "Tiếng Anh"},
]


class FakeCourseProvider:
    """In-memory CourseProvider that records every call."""

    def __init__(
        self,
        courses: list[dict[str, Any]] | None = None,
        skills: dict[str, list[dict[str, Any]]] | None = None,
        words: dict[str, list[str]] | None = None,
    ):
        self.courses = courses if courses is not None else CATALOG
        self.skills = skills or {}
        self.words = words or {}
        self.calls: list[tuple] = []
        self.fail_on: set[str] = set()

    def _record(self, name: str, *args: Any) -> None:
        self.calls.append((name, *args))
        if name in self.fail_on:
            raise RuntimeError(f"{name} unavailable")

    def calls_to(self, name: str) -> list[tuple]:
        return [call for call in self.calls if call[0] == name]

    async def login(self, user: str, password: str) -> None:
        self._record("login", user)

    async def get_courses(self) -> list[dict[str, Any]]:
        self._record("get_courses")
        return self.courses

    async def set_current_course(self, course_id: str) -> None:
        self._record("set_current_course", course_id)

    async def get_course_skills(self, course_id: str) -> list[dict[str, Any]]:
        self._record("get_course_skills", course_id)
        return self.skills.get(course_id, [])

    async def get_skill_words(self, skill_id: str) -> list[str]:
        self._record("get_skill_words", skill_id)
        return self.words.get(skill_id, [])

    async def translate(self, course_id: str, words: Sequence[str]) -> list[Any]:
        self._record("translate", course_id, tuple(words))
        return [[f"{word}-t"] for word in words]


@pytest.fixture
def provider():
    return FakeCourseProvider(
        skills={
            "DUOLINGO_VI_EN": [
                {"id": "s1", "name": "Basics 1"},
                {"id": "s2", "name": "Basics 2"},
            ],
            "DUOLINGO_EN_VI": [
                {"id": "e1", "name": "Greetings"},
            ],
            "DUOLINGO_ES_EN": [
                {"id": "x1", "name": "Unused"},
            ],
        },
        words={
            "s1": ["xin chào", "cảm ơn"],
            "s2": ["cảm ơn", "bánh mì"],
            "e1": ["hello", "Goodbye", "hello"],
            "x1": ["hola"],
        },
    )


@pytest.fixture
def cache(tmp_path):
    return ContentCache(tmp_path / "cache")


@pytest.fixture
def store():
    return InMemoryDocumentStore()


@pytest.fixture
def traverser(provider, cache, store):
    writer = PersistenceWriter(store)
    batcher = TranslationBatcher(provider, cache)
    return CourseTraverser(provider, cache, writer, batcher)


@pytest.fixture
def provider_factory():
    return FakeCourseProvider
