# tests/compression/test_importance.py
"""
Tests for important-word extraction and the quality heuristic.
"""

import pytest

from contextforge.compression.importance import (DEFAULT_QUALITY,
                                                 MAX_IMPORTANT_WORDS,
                                                 estimate_quality,
                                                 extract_important_words)


class TestExtractImportantWords:

    def test_extracts_numbers_names_and_acronyms(self):
        text = "Alice deployed version 2.5 of the API to 3 servers in Berlin."
        words = extract_important_words(text)
        assert {"2.5", "3", "Alice", "Berlin", "API"} <= words

    def test_stop_words_are_dropped(self):
        words = extract_important_words("The report was written. This is final.")
        assert "The" not in words
        assert "This" not in words

    def test_lowercase_prose_has_no_important_words(self):
        assert extract_important_words("just some lowercase prose without anything notable") == set()

    def test_proper_nouns_limited_to_ten(self):
        names = ["Alpha", "Bravo", "Charlie", "Delta", "Echo", "Foxtrot",
                 "Golf", "Hotel", "India", "Juliet", "Kilo", "Lima"]
        words = extract_important_words(" and ".join(names))
        assert set(names[:10]) <= words
        assert "Kilo" not in words
        assert "Lima" not in words

    def test_acronyms_limited_to_five(self):
        words = extract_important_words("AB CD EF GH IJ KL MN")
        assert words == {"AB", "CD", "EF", "GH", "IJ"}

    def test_capped_at_fifty(self):
        text = " ".join(str(n) for n in range(100, 200))
        assert len(extract_important_words(text)) == MAX_IMPORTANT_WORDS

    def test_deduplicated(self):
        words = extract_important_words("42 and 42 and Paris and Paris")
        assert words == {"42", "Paris"}


class TestEstimateQuality:

    def test_default_when_no_important_words(self):
        assert estimate_quality("nothing notable here at all", "anything") == DEFAULT_QUALITY == 0.8

    def test_all_preserved(self):
        original = "Alice paid 300 dollars to Bob."
        assert estimate_quality(original, "Alice paid Bob 300.") == 1.0

    def test_case_insensitive_match(self):
        assert estimate_quality("we met Alice today", "MET ALICE") == 1.0

    def test_partial_preservation(self):
        original = "Alice met Bob in Paris and Rome."
        quality = estimate_quality(original, "alice and bob met")
        assert quality == pytest.approx(2 / 4)

    def test_never_above_one(self):
        assert estimate_quality("Alice 42", "Alice 42 Alice 42") <= 1.0
