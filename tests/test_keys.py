"""Tests for cache key derivation."""

import hashlib

import pytest

from langquiz_loader.exceptions import InvariantViolation
from langquiz_loader.keys import (
    batch_fingerprint,
    courses_key,
    skills_key,
    translate_key,
    words_key,
)


class TestScalarKeys:
    """Test keys composed directly from identifiers."""

    def test_courses_key(self):
        assert courses_key() == "courses.json"

    def test_skills_key(self):
        assert skills_key("DUOLINGO_VI_EN") == "skills/DUOLINGO_VI_EN.json"

    def test_words_key(self):
        assert words_key("7a1b2c") == "words/7a1b2c.json"

    @pytest.mark.parametrize("bad_id", ["", ".", "..", "a/b", "a\\b", "a\x00b"])
    def test_unsafe_ids_rejected(self, bad_id):
        with pytest.raises(InvariantViolation):
            skills_key(bad_id)
        with pytest.raises(InvariantViolation):
            words_key(bad_id)


class TestBatchFingerprint:
    """Test the translation batch fingerprint."""

    def test_order_sensitive(self):
        assert translate_key("C", ["a", "b"]) != translate_key("C", ["b", "a"])

    def test_repeatable(self):
        assert translate_key("C", ["a", "b"]) == translate_key("C", ["a", "b"])
        assert batch_fingerprint(("a", "b")) == batch_fingerprint(["a", "b"])

    def test_namespaced_by_course(self):
        assert translate_key("C1", ["a"]) != translate_key("C2", ["a"])
        assert translate_key("C1", ["a"]).startswith("translate/C1/")

    def test_compact_unescaped_json_sha1(self):
        """Digest of the compact JSON text, matching existing cache directories."""
        expected = hashlib.sha1('["xin chào","cảm ơn"]'.encode("utf-8")).hexdigest()
        assert batch_fingerprint(["xin chào", "cảm ơn"]) == expected

    def test_digest_is_160_bit_hex(self):
        digest = batch_fingerprint(["a"])
        assert len(digest) == 40
        int(digest, 16)

    def test_key_layout(self):
        key = translate_key("DUOLINGO_VI_EN", ["a"])
        assert key == f"translate/DUOLINGO_VI_EN/{batch_fingerprint(['a'])}.json"
