"""
Tests for word similarity: edit distance, phonetic keys and the combined
match decision used by alignment and progress scoring.
"""

import pytest

from speekly.similarity import (
    are_phonetically_similar,
    edit_similarity,
    is_word_similar,
    levenshtein_distance,
    phonetic_form,
    word_similarity_score,
)


class TestLevenshteinDistance:
    """Test the raw edit distance."""

    def test_kitten_sitting(self):
        assert levenshtein_distance("kitten", "sitting") == 3

    def test_empty_string(self):
        assert levenshtein_distance("", "abc") == 3
        assert levenshtein_distance("abc", "") == 3

    def test_identical(self):
        assert levenshtein_distance("abc", "abc") == 0

    def test_case_insensitive(self):
        """Case differences are not edits."""
        assert levenshtein_distance("ABC", "abc") == 0

    def test_edit_similarity_percentage(self):
        """Similarity is measured against the longer word."""
        assert edit_similarity("kitten", "sitting") == pytest.approx(4 / 7 * 100)
        assert edit_similarity("", "") == 100.0


class TestPhoneticForm:
    """Test the coarse sound-alike key."""

    def test_vowel_runs_collapse(self):
        assert phonetic_form("speech") == "spach"
        assert phonetic_form("colour") == "calar"

    def test_repeated_letters_collapse(self):
        assert phonetic_form("hello") == "hala"

    def test_non_letters_removed(self):
        assert phonetic_form("don't") == "dant"
        assert phonetic_form("123") == ""

    def test_words_without_letters_never_sound_alike(self):
        assert not are_phonetically_similar("123", "456")

    def test_spelling_variants_sound_alike(self):
        assert are_phonetically_similar("colour", "color")
        assert are_phonetically_similar("recognise", "recognize")


class TestIsWordSimilar:
    """Test the match decision."""

    def test_exact_match(self):
        assert is_word_similar("hello", "hello")

    def test_match_ignores_case_and_punctuation(self):
        assert is_word_similar("Hello,", "hello")
        assert is_word_similar("world", "World!")

    def test_empty_or_missing_candidate(self):
        """Nothing heard is never a match, and never an error."""
        assert not is_word_similar(None, "hello")
        assert not is_word_similar("", "hello")
        assert not is_word_similar("hello", "")

    def test_punctuation_only_word(self):
        assert not is_word_similar("--", "hello")

    def test_short_words_need_exact_match(self):
        assert not is_word_similar("a", "an")
        assert not is_word_similar("is", "it")
        assert is_word_similar("is", "Is")

    def test_short_word_rule_is_symmetric(self):
        """A short recognized word cannot fuzzily match a longer reference word."""
        assert not is_word_similar("an", "and")
        assert not is_word_similar("and", "an")

    def test_spelling_variants(self):
        assert is_word_similar("color", "colour")
        assert is_word_similar("recognize", "recognise")

    def test_unrelated_words(self):
        assert not is_word_similar("quick", "table")
        assert not is_word_similar("brown", "quick")

    @pytest.mark.parametrize("first,second", [
        ("colour", "color"),
        ("quick", "table"),
        ("an", "and"),
        ("hello", "Hello!"),
        ("speech", "speach"),
        ("fox", "box"),
    ])
    def test_symmetric(self, first, second):
        """similar(a, b) == similar(b, a)."""
        assert is_word_similar(first, second) == is_word_similar(second, first)

    def test_threshold_is_configurable(self):
        """The threshold only gates the edit-distance path."""
        assert not is_word_similar("quick", "table")
        assert is_word_similar("quick", "table", threshold=0)

    def test_phonetic_match_ignores_threshold(self):
        # Both reduce to "wratan"
        assert is_word_similar("written", "writen", threshold=100)


class TestWordSimilarityScore:
    """Test the graded score used by alignment."""

    def test_exact_match_scores_one(self):
        assert word_similarity_score("Hello", "hello.") == 1.0

    def test_rejected_pairs_score_zero(self):
        assert word_similarity_score(None, "hello") == 0.0
        assert word_similarity_score("a", "b") == 0.0
        assert word_similarity_score("quick", "table") == 0.0

    def test_near_miss_scores_edit_similarity(self):
        assert word_similarity_score("colour", "color") == pytest.approx(5 / 6)

    def test_phonetic_match_scores_at_least_threshold(self):
        score = word_similarity_score("speech", "speach")
        assert score >= 0.7
        assert is_word_similar("speech", "speach")

    @pytest.mark.parametrize("candidate,reference", [
        ("colour", "color"),
        ("speech", "speach"),
        ("jumps", "jumped"),
        ("quick", "quack"),
        ("brown", "quick"),
        ("lazy", "hazy"),
    ])
    def test_score_agrees_with_match_decision(self, candidate, reference):
        """A score of 0.7 or more always means the words are similar."""
        if word_similarity_score(candidate, reference) >= 0.7:
            assert is_word_similar(candidate, reference)
