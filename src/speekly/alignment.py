"""
Alignment of recognized text against a reference paragraph.

Two searches live here:

- find_phrase_position() locates where a newly recognized fragment begins in
  the reference paragraph by looking for runs of its words verbatim. It is
  used to snap the running transcript back onto the script when recognition
  drifts.
- align_words() pairs every reference word with at most one recognized word,
  searching a small window around where the next word is expected. Its
  output drives the matched/unmatched display.
"""

import logging
from dataclasses import dataclass

from .script import split_words
from .similarity import word_similarity_score

logger = logging.getLogger(__name__)

MAX_PHRASE_WINDOW: int = 5
MIN_PHRASE_WINDOW: int = 2
ALIGNMENT_WINDOW: int = 3
MIN_ALIGNMENT_SCORE: float = 0.7


@dataclass(frozen=True)
class WordMatch:
    """Alignment result for one reference word."""
    reference_index: int
    reference_word: str
    recognized_index: int | None  # None when nothing matched in the window
    recognized_word: str | None = None

    @property
    def matched(self) -> bool:
        """Whether a recognized word was confidently paired with this word."""
        return self.recognized_index is not None

    def to_dict(self) -> dict[str, object]:
        """Serialize for JSON transport."""
        return {
            "referenceIndex": self.reference_index,
            "referenceWord": self.reference_word,
            "recognizedIndex": self.recognized_index,
            "recognizedWord": self.recognized_word,
            "matched": self.matched,
        }


def find_phrase_position(
    fragment: str,
    reference_paragraph: str,
    expected_position: int | None = None,
    max_window: int = MAX_PHRASE_WINDOW,
    min_window: int = MIN_PHRASE_WINDOW
) -> int:
    """
    Find the reference word offset where a recognized fragment begins.

    Slides windows of fragment words (longest first) over the fragment and
    looks for each joined phrase inside the lowercased reference text. A hit
    scores window_size * 10 + (words remaining after the offset), so longer
    phrases win and, among equal lengths, earlier positions win. The search
    stops at the first window size that produces any hit.

    Args:
        fragment: The newly recognized text
        reference_paragraph: The reference paragraph text
        expected_position: Where the caller expects the fragment to start
            (only used for logging drift)
        max_window: Longest phrase to try
        min_window: Shortest phrase to try

    Returns:
        0-based word offset into the reference paragraph, or -1 if no phrase
        of at least min_window words was found
    """
    words: list[str] = split_words(fragment.lower())
    reference_words: list[str] = split_words(reference_paragraph.lower())
    if not words or not reference_words:
        return -1

    reference_text: str = ' '.join(reference_words)
    total_words: int = len(reference_words)

    best_position: int = -1
    best_score: int = -1

    for window_size in range(min(max_window, len(words)), min_window - 1, -1):
        for start in range(len(words) - window_size + 1):
            phrase: str = ' '.join(words[start:start + window_size])
            char_pos: int = reference_text.find(phrase)
            if char_pos < 0:
                continue

            # Words before the match = spaces before the match
            word_offset: int = reference_text.count(' ', 0, char_pos)
            score: int = window_size * 10 + (total_words - word_offset)

            if score > best_score:
                best_score = score
                best_position = word_offset

        if best_score > 0:
            break

    if best_position >= 0 and expected_position is not None:
        logger.debug(
            "Phrase match at word %d (expected %d, drift %+d)",
            best_position, expected_position, best_position - expected_position)

    return best_position


def align_words(
    reference_paragraph: str,
    recognized_text: str,
    window: int = ALIGNMENT_WINDOW,
    min_score: float = MIN_ALIGNMENT_SCORE
) -> list[WordMatch]:
    """
    Greedily align each reference word with a recognized word.

    For reference word i, recognized words within +/- window of the expected
    index are scored; already-paired recognized words are skipped. The
    highest-scoring candidate at or above min_score wins (the earliest one on
    a tie) and the expectation moves to just after it. When nothing
    qualifies the expectation still moves forward by one, treating the
    reference word as misrecognized rather than unspoken.

    Returns:
        One WordMatch per reference word, in reference order
    """
    reference_words: list[str] = split_words(reference_paragraph)
    recognized_words: list[str] = split_words(recognized_text)

    matches: list[WordMatch] = []
    consumed: set[int] = set()
    expected: int = 0

    for i, reference_word in enumerate(reference_words):
        best_index: int = -1
        best_score: float = 0.0

        if recognized_words:
            low: int = max(0, expected - window)
            high: int = min(len(recognized_words) - 1, expected + window)
            for j in range(low, high + 1):
                if j in consumed:
                    continue
                score = word_similarity_score(recognized_words[j], reference_word)
                if score >= min_score and score > best_score:
                    best_score = score
                    best_index = j

        if best_index != -1:
            consumed.add(best_index)
            expected = best_index + 1
            matches.append(WordMatch(
                reference_index=i,
                reference_word=reference_word,
                recognized_index=best_index,
                recognized_word=recognized_words[best_index],
            ))
        else:
            expected += 1
            matches.append(WordMatch(
                reference_index=i,
                reference_word=reference_word,
                recognized_index=None,
            ))

    return matches
