"""
Data models for the langquiz loader.

Provider records carry many fields the pipeline never looks at (titles,
icons, URL names, ...). The models keep those verbatim so the persisted
documents are the full provider records plus the derived fields.
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class ProviderRecord(BaseModel):
    """Base for records that round-trip provider JSON unchanged."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    def to_document(self) -> dict[str, Any]:
        """Return the record as a storage document, using wire field names."""
        return self.model_dump(mode="json", by_alias=True)


class Language(ProviderRecord):
    """A language offered by the provider. Natural key: ``id``."""
    id: str = Field(description="Provider language code, e.g. 'vi'")


class Course(ProviderRecord):
    """A learning-language / known-language pair from the course catalog."""
    id: str = Field(description="Course code, e.g. 'DUOLINGO_VI_EN'")
    learning_language: Language = Field(
        alias="learningLanguage",
        description="Language being learned",
    )
    from_language: Language = Field(
        alias="fromLanguage",
        description="Language the learner already speaks",
    )


class Skill(ProviderRecord):
    """A lesson unit of a course. Natural key: ``id``.

    ``from``, ``to`` and ``order`` are stamped by the loader; ``order`` is the
    position in the course's skill list at fetch time and restarts at zero
    for every course.
    """
    id: str = Field(description="Provider skill id")
    from_: str | None = Field(default=None, alias="from", description="Learning language id")
    to: str | None = Field(default=None, description="Known language id")
    order: int | None = Field(default=None, ge=0, description="Zero-based position in the course")


class TranslationRecord(BaseModel):
    """Translations of one word. Natural key: ``(from, to, word)``."""

    model_config = ConfigDict(populate_by_name=True)

    from_: str = Field(alias="from", description="Learning language id")
    to: str = Field(description="Known language id")
    word: str = Field(description="Word in the learning language")
    translations: Any = Field(description="Provider translation payload for the word")
    skills: list[str] = Field(min_length=1, description="Ids of the skills using this word")

    def to_document(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


__all__ = [
    "ProviderRecord",
    "Language",
    "Course",
    "Skill",
    "TranslationRecord",
]
