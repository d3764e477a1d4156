"""Reading progress through a reference paragraph."""

import math

from .script import split_words
from .similarity import DEFAULT_THRESHOLD, is_word_similar


def last_matched_position(
    reference_paragraph: str,
    transcript: str,
    threshold: float = DEFAULT_THRESHOLD
) -> int:
    """
    Find the furthest reference word confirmed by the transcript.

    Recognized words are walked in order; each one is searched for in the
    reference starting just after the previous confirmed match, so the
    position never moves backwards.

    Returns:
        0-based index of the last matched reference word, or -1
    """
    reference_words: list[str] = split_words(reference_paragraph)
    last_matched: int = -1

    for recognized in split_words(transcript):
        for j in range(last_matched + 1, len(reference_words)):
            if is_word_similar(recognized, reference_words[j], threshold):
                last_matched = j
                break

    return last_matched


def percent_complete(
    reference_paragraph: str,
    transcript: str,
    threshold: float = DEFAULT_THRESHOLD
) -> int:
    """Percentage (0-100) of the paragraph read, based on the last matched word."""
    total: int = len(split_words(reference_paragraph))
    if total == 0:
        return 0

    position: int = last_matched_position(reference_paragraph, transcript, threshold)
    percent: float = min(100.0, (position + 1) / total * 100)
    # Round half up
    return int(math.floor(percent + 0.5))
