"""
Tests for TranslationBatcher and word collation.
"""

import unicodedata

import pytest

from langquiz_loader.exceptions import InvariantViolation, RemoteFetchError
from langquiz_loader.keys import translate_key
from langquiz_loader.models import Course
from langquiz_loader.translation import TranslationBatcher, chunked, collation_key, distinct


COURSE = Course.model_validate({
    "id": "DUOLINGO_VI_EN",
    "learningLanguage": {"id": "vi"},
    "fromLanguage": {"id": "en"},
})


def skills_for(words, skill_id="s1"):
    return {word: [skill_id] for word in words}


class TestHelpers:
    """Test ordering and partitioning helpers."""

    def test_distinct_keeps_first_seen_order(self):
        assert distinct(["b", "a", "b", "c", "a"]) == ["b", "a", "c"]

    def test_chunked(self):
        assert [list(c) for c in chunked(["a", "b", "c", "d", "e"], 2)] == [
            ["a", "b"], ["c", "d"], ["e"],
        ]

    def test_chunked_empty(self):
        assert list(chunked([], 50)) == []

    def test_collation_case_insensitive_primary(self):
        assert sorted(["banana", "Apple", "cherry"], key=collation_key) == [
            "Apple", "banana", "cherry",
        ]

    def test_collation_lowercase_before_uppercase(self):
        assert sorted(["Apple", "apple"], key=collation_key) == ["apple", "Apple"]

    def test_collation_accents_after_base_letter(self):
        assert sorted(["ơn", "on", "ốm", "om"], key=collation_key) == ["om", "ốm", "on", "ơn"]

    def test_collation_is_total(self):
        # NFC and NFD spellings of the same word still sort deterministically
        nfc = unicodedata.normalize("NFC", "cảm")
        nfd = unicodedata.normalize("NFD", nfc)
        assert nfc != nfd
        assert sorted([nfc, nfd], key=collation_key) == sorted([nfd, nfc], key=collation_key)


class TestTranslationBatcher:
    """Test batching, caching and record assembly."""

    def test_batch_size_must_be_positive(self, provider, cache):
        with pytest.raises(ValueError):
            TranslationBatcher(provider, cache, batch_size=0)

    @pytest.mark.asyncio
    async def test_records_sorted_by_word(self, provider, cache):
        batcher = TranslationBatcher(provider, cache)
        words = ["banana", "Apple", "cherry"]

        records = await batcher.translate(COURSE, words, skills_for(words))

        assert [r.word for r in records] == ["Apple", "banana", "cherry"]
        assert provider.calls_to("translate") == [
            ("translate", "DUOLINGO_VI_EN", ("banana", "Apple", "cherry")),
        ]

    @pytest.mark.asyncio
    async def test_record_fields(self, provider, cache):
        batcher = TranslationBatcher(provider, cache)

        records = await batcher.translate(COURSE, ["cảm ơn"], {"cảm ơn": ["s1", "s2"]})

        record = records[0]
        assert record.from_ == "vi"
        assert record.to == "en"
        assert record.word == "cảm ơn"
        assert record.translations == ["cảm ơn-t"]
        assert record.skills == ["s1", "s2"]
        assert record.to_document() == {
            "from": "vi",
            "to": "en",
            "word": "cảm ơn",
            "translations": ["cảm ơn-t"],
            "skills": ["s1", "s2"],
        }

    @pytest.mark.asyncio
    async def test_duplicates_translated_once(self, provider, cache):
        batcher = TranslationBatcher(provider, cache)
        words = ["a", "b", "a", "c", "b"]

        records = await batcher.translate(COURSE, words, skills_for(words))

        assert [r.word for r in records] == ["a", "b", "c"]
        assert provider.calls_to("translate") == [("translate", "DUOLINGO_VI_EN", ("a", "b", "c"))]

    @pytest.mark.asyncio
    async def test_partitions_into_batches(self, provider, cache):
        batcher = TranslationBatcher(provider, cache, batch_size=2)
        words = ["w1", "w2", "w3", "w4", "w5"]

        records = await batcher.translate(COURSE, words, skills_for(words))

        assert len(records) == 5
        assert [call[2] for call in provider.calls_to("translate")] == [
            ("w1", "w2"), ("w3", "w4"), ("w5",),
        ]

    @pytest.mark.asyncio
    async def test_default_batch_size_is_50(self, provider, cache):
        batcher = TranslationBatcher(provider, cache)
        words = [f"w{i:03d}" for i in range(120)]

        await batcher.translate(COURSE, words, skills_for(words))

        assert [len(call[2]) for call in provider.calls_to("translate")] == [50, 50, 20]

    @pytest.mark.asyncio
    async def test_cached_batches_not_refetched(self, provider, cache):
        words = ["x", "y", "z"]
        await TranslationBatcher(provider, cache, batch_size=2).translate(
            COURSE, words, skills_for(words)
        )
        provider.calls.clear()

        records = await TranslationBatcher(provider, cache, batch_size=2).translate(
            COURSE, words, skills_for(words)
        )

        assert provider.calls_to("translate") == []
        assert [r.translations for r in records] == [["x-t"], ["y-t"], ["z-t"]]

    @pytest.mark.asyncio
    async def test_positional_alignment_from_cache(self, provider, cache):
        """Cached payloads are matched to words by position."""
        cache.store(translate_key(COURSE.id, ["b", "a"]), ["payload-b", "payload-a"])
        batcher = TranslationBatcher(provider, cache)

        records = await batcher.translate(COURSE, ["b", "a"], skills_for(["a", "b"]))

        assert {r.word: r.translations for r in records} == {"a": "payload-a", "b": "payload-b"}
        assert provider.calls_to("translate") == []

    @pytest.mark.asyncio
    async def test_misaligned_response_raises(self, provider, cache):
        cache.store(translate_key(COURSE.id, ["a", "b"]), ["only-one"])
        batcher = TranslationBatcher(provider, cache)

        with pytest.raises(InvariantViolation, match="does not match its batch"):
            await batcher.translate(COURSE, ["a", "b"], skills_for(["a", "b"]))

    @pytest.mark.asyncio
    async def test_word_without_skill_raises(self, provider, cache):
        batcher = TranslationBatcher(provider, cache)

        with pytest.raises(InvariantViolation, match="not referenced by any skill"):
            await batcher.translate(COURSE, ["orphan"], {})

    @pytest.mark.asyncio
    async def test_provider_failure_wrapped_and_not_cached(self, provider, cache):
        provider.fail_on.add("translate")
        batcher = TranslationBatcher(provider, cache)

        with pytest.raises(RemoteFetchError) as exc_info:
            await batcher.translate(COURSE, ["a"], skills_for(["a"]))

        assert exc_info.value.stage == "translate"
        assert exc_info.value.entity_id == "DUOLINGO_VI_EN"
        assert cache.get_stats().write_count == 0

    @pytest.mark.asyncio
    async def test_empty_word_list(self, provider, cache):
        records = await TranslationBatcher(provider, cache).translate(COURSE, [], {})
        assert records == []
        assert provider.calls_to("translate") == []
