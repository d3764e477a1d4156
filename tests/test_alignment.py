"""
Tests for locating fragments in a reference paragraph and for the
word-by-word alignment used for display.
"""

from speekly.alignment import WordMatch, align_words, find_phrase_position

REFERENCE = "the quick brown fox jumps over the lazy dog"


class TestFindPhrasePosition:
    """Test phrase-window location of a fragment."""

    def test_phrase_in_middle(self):
        assert find_phrase_position("brown fox", REFERENCE) == 2

    def test_phrase_at_start(self):
        assert find_phrase_position("the quick brown", REFERENCE) == 0

    def test_case_insensitive(self):
        assert find_phrase_position("Brown Fox", REFERENCE) == 2

    def test_longest_window_wins(self):
        """A longer phrase match beats a shorter earlier one."""
        # "the lazy dog" only occurs at word 6; "the" alone would be word 0
        assert find_phrase_position("the lazy dog", REFERENCE) == 6

    def test_earliest_position_wins_among_equal_windows(self):
        assert find_phrase_position("one two", "one two three one two") == 0

    def test_window_found_inside_noisy_fragment(self):
        """Recognizer noise around a real phrase does not prevent a match."""
        assert find_phrase_position("uh jumps over", REFERENCE) == 4

    def test_end_of_short_paragraph(self):
        assert find_phrase_position("four five", "one two three four five") == 3

    def test_no_phrase_found(self):
        assert find_phrase_position("for five", "one two three four five") == -1

    def test_single_word_fragment_is_not_located(self):
        """One word is below the minimum phrase window."""
        assert find_phrase_position("fox", REFERENCE) == -1

    def test_empty_inputs(self):
        assert find_phrase_position("", REFERENCE) == -1
        assert find_phrase_position("brown fox", "") == -1

    def test_minimum_window_is_configurable(self):
        assert find_phrase_position("fox", REFERENCE, min_window=1) == 3

    def test_expected_position_does_not_change_result(self):
        assert find_phrase_position("brown fox", REFERENCE, expected_position=7) == 2


class TestAlignWords:
    """Test greedy windowed alignment."""

    def test_exact_transcript(self):
        matches = align_words("the quick brown fox", "the quick brown fox")
        assert [m.matched for m in matches] == [True, True, True, True]
        assert [m.recognized_index for m in matches] == [0, 1, 2, 3]

    def test_one_result_per_reference_word(self):
        matches = align_words(REFERENCE, "the quick")
        assert len(matches) == 9
        assert [m.reference_index for m in matches] == list(range(9))

    def test_skipped_word_is_unmatched(self):
        matches = align_words("the quick brown fox", "the brown fox")
        assert [m.matched for m in matches] == [True, False, True, True]
        assert matches[1].recognized_word is None
        assert matches[2].recognized_index == 1

    def test_misrecognized_word_matches_fuzzily(self):
        matches = align_words("what a lovely colour", "what a lovely color")
        assert matches[3].matched
        assert matches[3].recognized_word == "color"

    def test_recognized_word_used_at_most_once(self):
        matches = align_words("go go go", "go")
        assert [m.matched for m in matches] == [True, False, False]

    def test_empty_transcript(self):
        matches = align_words("the quick brown fox", "")
        assert len(matches) == 4
        assert not any(m.matched for m in matches)

    def test_empty_reference(self):
        assert align_words("", "the quick") == []

    def test_words_outside_window_are_not_matched(self):
        matches = align_words("jazz band", "a b c d e jazz band", window=3)
        assert [m.matched for m in matches] == [False, False]

    def test_to_dict(self):
        match = WordMatch(reference_index=2, reference_word="brown",
                          recognized_index=1, recognized_word="brown")
        assert match.to_dict() == {
            "referenceIndex": 2,
            "referenceWord": "brown",
            "recognizedIndex": 1,
            "recognizedWord": "brown",
            "matched": True,
        }
