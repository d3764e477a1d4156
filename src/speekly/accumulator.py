"""
Running transcript for the active paragraph.

Recognizers deliver text in overlapping, self-correcting chunks. The
accumulator folds each new fragment into a best-effort transcript of what
has been said so far, preferring to re-anchor on the reference paragraph
whenever the fragment can be located in it.
"""

import logging
from collections import deque
from dataclasses import dataclass, field
from typing import Literal

from .alignment import MAX_PHRASE_WINDOW, MIN_PHRASE_WINDOW, find_phrase_position
from .script import split_words

logger = logging.getLogger(__name__)

FRAGMENT_HISTORY_SIZE: int = 5

MergeRule = Literal["resync", "continuation", "append", "ignored"]


@dataclass
class AlignmentState:
    """Per-paragraph tracking state, reset whenever the paragraph changes."""
    paragraph_index: int = 0
    merged_transcript: str = ""
    last_fragment: str = ""  # Most recent fragment received
    recent_fragments: deque[str] = field(
        default_factory=lambda: deque(maxlen=FRAGMENT_HISTORY_SIZE))

    def clear(self) -> None:
        """Forget everything heard for the current paragraph."""
        self.merged_transcript = ""
        self.last_fragment = ""
        self.recent_fragments.clear()

    @property
    def is_empty(self) -> bool:
        return not (self.merged_transcript or self.last_fragment or self.recent_fragments)


def _first_word(text: str) -> str:
    words = split_words(text)
    return words[0].lower() if words else ""


class TranscriptAccumulator:
    """
    Merges recognition fragments into the running transcript.

    Rules, first applicable wins:
    1. resync: the fragment can be located in the reference paragraph, so the
       transcript becomes the reference words before that point followed by
       the fragment. Literal recognition of earlier words is discarded in
       favour of staying on script.
    2. continuation: the fragment starts with the same word as the previous
       fragment, so it is a corrected version of it; the last occurrence of
       the previous fragment in the transcript is replaced.
    3. append: the fragment is added to the end.
    """

    def __init__(
        self,
        history_size: int = FRAGMENT_HISTORY_SIZE,
        max_phrase_window: int = MAX_PHRASE_WINDOW,
        min_phrase_window: int = MIN_PHRASE_WINDOW
    ) -> None:
        self.history_size = history_size
        self.max_phrase_window = max_phrase_window
        self.min_phrase_window = min_phrase_window

    def new_state(self, paragraph_index: int = 0) -> AlignmentState:
        """Create an empty state with this accumulator's history size."""
        return AlignmentState(
            paragraph_index=paragraph_index,
            recent_fragments=deque(maxlen=self.history_size)
        )

    def merge_with_rule(
        self,
        existing_merged: str,
        last_fragment: str,
        new_fragment: str,
        reference_paragraph: str
    ) -> tuple[str, MergeRule]:
        """Merge a fragment and report which rule produced the result."""
        fragment_words: list[str] = split_words(new_fragment)
        if not fragment_words:
            return existing_merged, "ignored"

        expected: int = len(split_words(existing_merged))
        offset: int = find_phrase_position(
            new_fragment,
            reference_paragraph,
            expected_position=expected,
            max_window=self.max_phrase_window,
            min_window=self.min_phrase_window
        )
        if offset >= 0:
            preceding: list[str] = split_words(reference_paragraph)[:offset]
            return ' '.join(preceding + fragment_words), "resync"

        fragment_text: str = ' '.join(fragment_words)
        if last_fragment and _first_word(new_fragment) == _first_word(last_fragment):
            position: int = existing_merged.rfind(last_fragment)
            if position >= 0:
                merged = (existing_merged[:position] + fragment_text
                          + existing_merged[position + len(last_fragment):])
                return merged, "continuation"
            logger.debug(
                "Continuation of '%s' not found in transcript, appending", last_fragment)

        if existing_merged:
            return existing_merged + ' ' + fragment_text, "append"
        return fragment_text, "append"

    def merge(
        self,
        existing_merged: str,
        last_fragment: str,
        new_fragment: str,
        reference_paragraph: str
    ) -> str:
        """
        Merge a new fragment into the running transcript.

        Args:
            existing_merged: Transcript accumulated so far for this paragraph
            last_fragment: The previously received fragment ("" if none)
            new_fragment: The fragment just received
            reference_paragraph: The paragraph being read

        Returns:
            The new merged transcript
        """
        merged, _rule = self.merge_with_rule(
            existing_merged, last_fragment, new_fragment, reference_paragraph)
        return merged

    def accept(
        self,
        state: AlignmentState,
        new_fragment: str,
        reference_paragraph: str
    ) -> MergeRule:
        """Merge a fragment into state, recording it as the latest fragment."""
        merged, rule = self.merge_with_rule(
            state.merged_transcript,
            state.last_fragment,
            new_fragment,
            reference_paragraph
        )
        if rule == "ignored":
            return rule

        fragment_text: str = ' '.join(split_words(new_fragment))
        state.merged_transcript = merged
        state.last_fragment = fragment_text
        state.recent_fragments.append(fragment_text)

        logger.debug("Merged fragment '%s' (%s): '%s'", fragment_text, rule, merged)
        return rule
