"""
Word similarity for matching recognized speech against reference text.

Combines two independent signals so that common recognizer mistakes
("colour"/"color", "there"/"their", dropped vowels) still count as the
reference word:

1. Edit distance: Levenshtein distance turned into a percentage of the
   longer word's length.
2. Phonetic shape: vowel runs collapsed to a single marker, non-letters
   removed and doubled letters collapsed, then compared loosely.

Every part of the engine that needs to decide "is this the same word"
(alignment, progress, comparison display) goes through is_word_similar or
word_similarity_score so they always agree.
"""

import re

from rapidfuzz.distance import Levenshtein

from .script import normalize_word

DEFAULT_THRESHOLD: float = 70.0

# Reference words this short carry too little signal for fuzzy matching
SHORT_WORD_LENGTH: int = 2

# Phonetic forms within this edit distance are considered sound-alikes
PHONETIC_MAX_DISTANCE: int = 2
PHONETIC_MAX_LENGTH_DIFF: int = 2

# Score assigned to a phonetic-only match, so that a score at or above the
# default threshold agrees with is_word_similar()
PHONETIC_MATCH_SCORE: float = DEFAULT_THRESHOLD / 100

_VOWEL_RUN = re.compile(r'[aeiou]+')
_NON_LETTER = re.compile(r'[^a-z]')
_REPEATED_LETTER = re.compile(r'(.)\1+')


def levenshtein_distance(first: str, second: str) -> int:
    """Case-insensitive Levenshtein distance with unit edit costs.

    Examples:
        levenshtein_distance("kitten", "sitting") -> 3
        levenshtein_distance("", "abc") -> 3
    """
    return Levenshtein.distance(first.lower(), second.lower())


def phonetic_form(word: str) -> str:
    """Reduce a word to a coarse sound-alike key.

    Examples:
        "speech" -> "spach"
        "colour" -> "calar"
    """
    key = _VOWEL_RUN.sub('a', word.lower())
    key = _NON_LETTER.sub('', key)
    return _REPEATED_LETTER.sub(r'\1', key)


def are_phonetically_similar(first: str, second: str) -> bool:
    """Check whether two words sound alike under the phonetic key.

    Similar when the keys share a first or last letter and differ in length
    by at most two, or when the keys are within edit distance two.
    Words with no letters at all (numbers, symbols) are never phonetically
    similar to anything.
    """
    key1 = phonetic_form(first)
    key2 = phonetic_form(second)
    if not key1 or not key2:
        return False

    shares_edge = key1[0] == key2[0] or key1[-1] == key2[-1]
    if shares_edge and abs(len(key1) - len(key2)) <= PHONETIC_MAX_LENGTH_DIFF:
        return True
    return levenshtein_distance(key1, key2) <= PHONETIC_MAX_DISTANCE


def edit_similarity(first: str, second: str) -> float:
    """Levenshtein similarity as a percentage of the longer word (0-100)."""
    max_len = max(len(first), len(second))
    if max_len == 0:
        return 100.0
    return (max_len - levenshtein_distance(first, second)) / max_len * 100


def is_word_similar(
    candidate: str | None,
    reference: str | None,
    threshold: float = DEFAULT_THRESHOLD
) -> bool:
    """
    Decide whether a recognized word should count as a reference word.

    Args:
        candidate: The recognized word (may be None when nothing was heard)
        reference: The reference word
        threshold: Minimum edit-distance similarity percentage (0-100)

    Returns:
        True if the words match exactly after normalization, or (for words
        longer than two characters) are phonetically similar or within the
        edit-distance threshold.
    """
    if not candidate or not reference:
        return False

    candidate_norm = normalize_word(candidate)
    reference_norm = normalize_word(reference)

    if candidate_norm == reference_norm:
        return True

    if not candidate_norm or not reference_norm:
        return False

    # Short words need an exact match. Checking both sides keeps the
    # relation symmetric.
    if min(len(candidate_norm), len(reference_norm)) <= SHORT_WORD_LENGTH:
        return False

    if are_phonetically_similar(candidate_norm, reference_norm):
        return True

    return edit_similarity(candidate_norm, reference_norm) >= threshold


def word_similarity_score(candidate: str | None, reference: str | None) -> float:
    """Similarity of two words as a 0-1 score.

    1.0 for an exact normalized match, 0.0 where is_word_similar() would
    reject the pair outright, otherwise the edit similarity raised to
    PHONETIC_MATCH_SCORE when the words sound alike. A score of at least
    0.7 means is_word_similar() accepts the pair at the default threshold.
    """
    if not candidate or not reference:
        return 0.0

    candidate_norm = normalize_word(candidate)
    reference_norm = normalize_word(reference)

    if candidate_norm == reference_norm:
        return 1.0
    if not candidate_norm or not reference_norm:
        return 0.0
    if min(len(candidate_norm), len(reference_norm)) <= SHORT_WORD_LENGTH:
        return 0.0

    score = edit_similarity(candidate_norm, reference_norm) / 100
    if are_phonetically_similar(candidate_norm, reference_norm):
        score = max(score, PHONETIC_MATCH_SCORE)
    return score
