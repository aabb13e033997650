"""
Course traversal: the driver of the loader pipeline.

For the configured courses the traverser fetches the catalog, skills and
skill vocabularies (each through the content cache), translates every
distinct word once, and persists languages, skills and translations with
idempotent upserts. Any error aborts the run; re-running is always safe.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Iterable, Iterator, Sequence, TypeVar

from pydantic import ValidationError

from .cache import ContentCache
from .exceptions import InvariantViolation, RemoteFetchError
from .keys import courses_key, skills_key, words_key
from .models import Course, Language, ProviderRecord, Skill
from .provider import CourseProvider, fetch_remote
from .store import BulkWriteSummary
from .translation import TranslationBatcher
from .writer import PersistenceWriter

logger = logging.getLogger("langquiz-loader")

RecordT = TypeVar("RecordT", bound=ProviderRecord)


class WordSkillIndex(Mapping):
    """Multimap from word to the ids of the skills that use it.

    Words keep first-seen order, and so do the skill ids of each word; adding
    the same (word, skill) pair twice is a no-op.
    """

    def __init__(self) -> None:
        self._skills: dict[str, dict[str, None]] = {}

    def add(self, word: str, skill_id: str) -> None:
        self._skills.setdefault(word, {})[skill_id] = None

    def add_skill(self, skill_id: str, words: Iterable[str]) -> None:
        for word in words:
            self.add(word, skill_id)

    def words(self) -> list[str]:
        return list(self._skills)

    def __getitem__(self, word: str) -> list[str]:
        return list(self._skills[word])

    def __iter__(self) -> Iterator[str]:
        return iter(self._skills)

    def __len__(self) -> int:
        return len(self._skills)


@dataclass
class CourseReport:
    """What one course contributed to a run."""
    course_id: str
    skill_count: int = 0
    word_count: int = 0
    skills_written: BulkWriteSummary | None = None
    words_written: BulkWriteSummary | None = None


@dataclass
class RunReport:
    """Summary of a loader run."""
    course_ids: list[str] = field(default_factory=list)
    languages_written: BulkWriteSummary | None = None
    courses: list[CourseReport] = field(default_factory=list)

    def summary(self) -> str:
        lines = [f"Loaded {len(self.courses)} course(s): {', '.join(self.course_ids)}"]
        for course in self.courses:
            lines.append(
                f"  {course.course_id}: {course.skill_count} skills, {course.word_count} words"
            )
        return "\n".join(lines)


class CourseTraverser:
    """Runs the fetch, translate and persist sequence for a set of courses.

    Everything happens sequentially: each remote call, cache access and bulk
    write is awaited before the next one starts.

    Usage:
        traverser = CourseTraverser(provider, cache, writer, batcher)
        report = await traverser.run(["DUOLINGO_VI_EN", "DUOLINGO_EN_VI"])
    """

    def __init__(
        self,
        provider: CourseProvider,
        cache: ContentCache,
        writer: PersistenceWriter,
        batcher: TranslationBatcher,
    ):
        self.provider = provider
        self.cache = cache
        self.writer = writer
        self.batcher = batcher
        self._current_course: str | None = None

    async def run(self, course_ids: Sequence[str]) -> RunReport:
        """Load the given courses.

        Args:
            course_ids: Allow-list of course ids, processed in this order

        Returns:
            RunReport with per-course counts and write summaries

        Raises:
            InvariantViolation: If a course id is not in the catalog or none is selected
            RemoteFetchError, CacheIOError, PersistenceError: On any stage failure
        """
        self._current_course = None
        all_courses = await self.get_courses()
        courses = self.select_courses(all_courses, course_ids)
        report = RunReport(course_ids=[course.id for course in courses])

        # assumes every known language is also learned in some selected course
        report.languages_written = await self.writer.upsert_languages(
            unique_languages(course.learning_language for course in courses)
        )

        for course in courses:
            report.courses.append(await self.update_course(course))

        logger.info(report.summary())
        return report

    async def update_course(self, course: Course) -> CourseReport:
        """Fetch, translate and persist one course."""
        logger.info(f"Updating course {course.id}")
        report = CourseReport(course_id=course.id)

        skills = await self.get_course_skills(course)
        report.skill_count = len(skills)
        report.skills_written = await self.writer.upsert_skills(skills)

        index = await self.build_word_index(course, skills)
        report.word_count = len(index)

        records = await self.batcher.translate(course, index.words(), index)
        report.words_written = await self.writer.upsert_words(records)
        return report

    async def get_courses(self) -> list[Course]:
        logger.info("getCourses")
        data = await self.cache.get(
            courses_key(), lambda: fetch_remote("courses", None, self.provider.get_courses)
        )
        return [
            self._parse(Course, item, stage="courses", entity_id=None)
            for item in self._expect_list(data, stage="courses", entity_id=None)
        ]

    @staticmethod
    def select_courses(all_courses: Sequence[Course], course_ids: Sequence[str]) -> list[Course]:
        """Pick the allow-listed courses from the catalog, in allow-list order.

        Raises:
            InvariantViolation: If the allow-list is empty or names an unknown course
        """
        by_id = {course.id: course for course in all_courses}
        wanted = list(dict.fromkeys(course_ids))
        if not wanted:
            raise InvariantViolation("No course ids configured; nothing to load")

        missing = [course_id for course_id in wanted if course_id not in by_id]
        if missing:
            raise InvariantViolation(
                f"Course(s) not found in catalog: {', '.join(missing)}",
                details={"missing": missing, "catalog_size": len(by_id)},
            )
        return [by_id[course_id] for course_id in wanted]

    async def get_course_skills(self, course: Course) -> list[Skill]:
        """Fetch a course's skills and stamp ``from``, ``to`` and ``order``."""
        logger.info(f"getCourseSkills: {course.id}")
        data = await self.cache.get(
            skills_key(course.id),
            lambda: self._fetch_for_course(
                course.id, "skills", course.id, self.provider.get_course_skills, course.id
            ),
        )

        skills = []
        for order, item in enumerate(self._expect_list(data, stage="skills", entity_id=course.id)):
            skill = self._parse(Skill, item, stage="skills", entity_id=course.id)
            skill.from_ = course.learning_language.id
            skill.to = course.from_language.id
            skill.order = order
            skills.append(skill)
        return skills

    async def get_skill_words(self, course: Course, skill: Skill) -> list[str]:
        logger.debug(f"getSkillWords: {skill.id}")
        data = await self.cache.get(
            words_key(skill.id),
            lambda: self._fetch_for_course(
                course.id, "words", skill.id, self.provider.get_skill_words, skill.id
            ),
        )
        words = self._expect_list(data, stage="words", entity_id=skill.id)
        if not all(isinstance(word, str) for word in words):
            raise InvariantViolation(
                f"Word list of skill {skill.id} contains non-string entries",
                details={"stage": "words", "entity_id": skill.id},
            )
        return words

    async def build_word_index(self, course: Course, skills: Sequence[Skill]) -> WordSkillIndex:
        """Collect the words of every skill, in skill order."""
        index = WordSkillIndex()
        for skill in skills:
            index.add_skill(skill.id, await self.get_skill_words(course, skill))
        return index

    async def _fetch_for_course(
        self, course_id: str, stage: str, entity_id: str, call: Any, *args: Any
    ) -> Any:
        # skill and word endpoints answer for the provider's current course
        if self._current_course != course_id:
            await fetch_remote("course", course_id, self.provider.set_current_course, course_id)
            self._current_course = course_id
        return await fetch_remote(stage, entity_id, call, *args)

    @staticmethod
    def _expect_list(data: Any, stage: str, entity_id: str | None) -> list[Any]:
        if not isinstance(data, list):
            raise RemoteFetchError(
                f"Expected a list for {stage}, got {type(data).__name__}",
                stage=stage, entity_id=entity_id,
            )
        return data

    @staticmethod
    def _parse(
        model: type[RecordT], item: Any, stage: str, entity_id: str | None
    ) -> RecordT:
        try:
            return model.model_validate(item)
        except ValidationError as e:
            raise RemoteFetchError(
                f"Malformed {model.__name__} record during {stage}: {e}",
                stage=stage, entity_id=entity_id,
            ) from e


def unique_languages(languages: Iterable[Language]) -> list[Language]:
    """Deduplicate languages by id, keeping the first occurrence."""
    seen: dict[str, Language] = {}
    for language in languages:
        seen.setdefault(language.id, language)
    return list(seen.values())


__all__ = [
    "CourseTraverser",
    "WordSkillIndex",
    "CourseReport",
    "RunReport",
    "unique_languages",
]
