"""
Paragraph tracking for practice reading sessions.

Follows a speaker through a script one paragraph at a time. Each recognized
fragment is merged into a running transcript for the active paragraph; when
the transcript contains the paragraph's closing words the tracker schedules
a move to the next paragraph. Navigation can also be driven explicitly.
"""

import logging
import string
import threading
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Literal

from . import debug_log
from .accumulator import FRAGMENT_HISTORY_SIZE, MergeRule, TranscriptAccumulator
from .alignment import ALIGNMENT_WINDOW, MAX_PHRASE_WINDOW, MIN_PHRASE_WINDOW, WordMatch, align_words
from .config import TrackingSettings
from .progress import last_matched_position, percent_complete
from .scheduler import Scheduler, ThreadingScheduler, TimerHandle
from .script import load_reference_script, split_words
from .similarity import DEFAULT_THRESHOLD

logger = logging.getLogger(__name__)

EventKind = Literal["next", "previous", "navigate", "reset", "complete"]


@dataclass(frozen=True)
class TrackerEvent:
    """A notification for the host (e.g. shown as a toast)."""
    kind: EventKind
    title: str
    description: str
    paragraph_index: int

    def to_dict(self) -> dict[str, object]:
        """Serialize for JSON transport."""
        return {
            "kind": self.kind,
            "title": self.title,
            "description": self.description,
            "paragraphIndex": self.paragraph_index,
        }


@dataclass(frozen=True)
class TrackerSnapshot:
    """Read-only view of the tracker for display."""
    paragraph_index: int
    paragraph_count: int
    reference_paragraph: str
    merged_transcript: str
    last_fragment: str
    recent_fragments: tuple[str, ...]
    word_matches: tuple[WordMatch, ...]
    percent_complete: int
    current_word_index: int  # Last reference word confirmed, -1 if none
    advance_pending: bool
    practice_complete: bool
    last_rule: MergeRule | None = None

    def to_dict(self) -> dict[str, object]:
        """Serialize for JSON transport."""
        return {
            "paragraphIndex": self.paragraph_index,
            "paragraphCount": self.paragraph_count,
            "referenceParagraph": self.reference_paragraph,
            "mergedTranscript": self.merged_transcript,
            "lastFragment": self.last_fragment,
            "recentFragments": list(self.recent_fragments),
            "wordMatches": [m.to_dict() for m in self.word_matches],
            "percentComplete": self.percent_complete,
            "currentWordIndex": self.current_word_index,
            "advancePending": self.advance_pending,
            "practiceComplete": self.practice_complete,
            "lastRule": self.last_rule,
        }


@dataclass
class CompletionCheck:
    """Outcome of checking a transcript for a paragraph's closing words."""
    checked_words: list[str] = field(default_factory=list)
    matched_words: list[str] = field(default_factory=list)

    @property
    def is_complete(self) -> bool:
        matched: int = len(self.matched_words)
        return matched >= 2 or (len(self.checked_words) <= 2 and matched >= 1)


class ParagraphTracker:
    """
    Tracks reading progress through an ordered list of reference paragraphs.

    The host feeds recognized fragments to on_fragment() and navigation
    commands to next_paragraph(), previous_paragraph(), navigate() and
    reset(). All per-paragraph state is cleared whenever the active paragraph
    changes, and any pending debounced advance is cancelled.

    Usage:
        tracker = ParagraphTracker(["first paragraph", "second paragraph"])
        tracker.add_listener(lambda event: print(event.title))
        snapshot = tracker.on_fragment("first paragraph")
        print(snapshot.percent_complete)
    """

    def __init__(
        self,
        paragraphs: list[str],
        match_threshold: float = DEFAULT_THRESHOLD,
        completion_delay_ms: int = 1000,
        fragment_history: int = FRAGMENT_HISTORY_SIZE,
        max_phrase_window: int = MAX_PHRASE_WINDOW,
        min_phrase_window: int = MIN_PHRASE_WINDOW,
        alignment_window: int = ALIGNMENT_WINDOW,
        completion_tail_words: int = 3,
        completion_min_word_length: int = 4,
        scheduler: Scheduler | None = None
    ) -> None:
        """
        Initialize the tracker.

        Args:
            paragraphs: Reference paragraphs, in reading order
            match_threshold: Minimum edit-distance similarity (0-100) for progress
            completion_delay_ms: Debounce before advancing after completion
            fragment_history: Number of recent fragments kept
            max_phrase_window: Longest phrase used to relocate a fragment
            min_phrase_window: Shortest phrase used to relocate a fragment
            alignment_window: +/- recognized words searched per reference word
            completion_tail_words: Closing words checked for completion
            completion_min_word_length: Closing words shorter than this are ignored
            scheduler: Runs debounced advances (default: timer threads)
        """
        if not paragraphs:
            raise ValueError("A reference script needs at least one paragraph")

        self.paragraphs: tuple[str, ...] = tuple(paragraphs)
        self.match_threshold = match_threshold
        self.completion_delay_ms = completion_delay_ms
        self.alignment_window = alignment_window
        self.completion_tail_words = completion_tail_words
        self.completion_min_word_length = completion_min_word_length
        self.scheduler: Scheduler = scheduler or ThreadingScheduler()

        self.accumulator = TranscriptAccumulator(
            history_size=fragment_history,
            max_phrase_window=max_phrase_window,
            min_phrase_window=min_phrase_window
        )
        self.state = self.accumulator.new_state(0)

        self._lock = threading.RLock()
        self._listeners: list[Callable[[TrackerEvent], None]] = []
        self._pending_advance: TimerHandle | None = None
        # Bumped on every schedule/cancel so a late timer can tell it is stale
        self._advance_token: int = 0
        self._practice_complete: bool = False
        self._last_rule: MergeRule | None = None

    @classmethod
    def from_script(
        cls,
        script_text: str,
        render_markdown: bool = False,
        skip_blank_lines: bool = True,
        **kwargs
    ) -> 'ParagraphTracker':
        """Create a tracker from free-form script text (one paragraph per line)."""
        paragraphs = load_reference_script(
            script_text,
            render_markdown=render_markdown,
            skip_blank_lines=skip_blank_lines
        )
        return cls(paragraphs, **kwargs)

    @classmethod
    def from_settings(
        cls,
        paragraphs: list[str],
        settings: TrackingSettings,
        scheduler: Scheduler | None = None
    ) -> 'ParagraphTracker':
        """Create a tracker using the tracking section of the config."""
        return cls(
            paragraphs,
            match_threshold=settings.get("match_threshold", DEFAULT_THRESHOLD),
            completion_delay_ms=settings.get("completion_delay_ms", 1000),
            fragment_history=settings.get("fragment_history", FRAGMENT_HISTORY_SIZE),
            max_phrase_window=settings.get("max_phrase_window", MAX_PHRASE_WINDOW),
            min_phrase_window=settings.get("min_phrase_window", MIN_PHRASE_WINDOW),
            alignment_window=settings.get("alignment_window", ALIGNMENT_WINDOW),
            completion_tail_words=settings.get("completion_tail_words", 3),
            completion_min_word_length=settings.get("completion_min_word_length", 4),
            scheduler=scheduler
        )

    # Listeners

    def add_listener(self, callback: Callable[[TrackerEvent], None]) -> None:
        """Register a callback for navigation and completion notifications."""
        self._listeners.append(callback)

    def remove_listener(self, callback: Callable[[TrackerEvent], None]) -> None:
        """Unregister a previously added callback."""
        if callback in self._listeners:
            self._listeners.remove(callback)

    def _emit(self, kind: EventKind, title: str, description: str) -> None:
        event = TrackerEvent(kind, title, description, self.state.paragraph_index)
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception as e:
                logger.error("Error in tracker listener: %s", e, exc_info=True)

    # Read-only state

    @property
    def paragraph_count(self) -> int:
        return len(self.paragraphs)

    @property
    def current_paragraph_index(self) -> int:
        return self.state.paragraph_index

    @property
    def current_paragraph(self) -> str:
        return self.paragraphs[self.state.paragraph_index]

    @property
    def merged_transcript(self) -> str:
        return self.state.merged_transcript

    @property
    def last_fragment(self) -> str:
        return self.state.last_fragment

    @property
    def recent_fragments(self) -> tuple[str, ...]:
        return tuple(self.state.recent_fragments)

    @property
    def advance_pending(self) -> bool:
        return self._pending_advance is not None

    @property
    def is_practice_complete(self) -> bool:
        return self._practice_complete

    @property
    def is_last_paragraph(self) -> bool:
        return self.state.paragraph_index == len(self.paragraphs) - 1

    def percent_complete(self) -> int:
        """Percent of the active paragraph read so far (0-100)."""
        with self._lock:
            return percent_complete(
                self.current_paragraph, self.state.merged_transcript, self.match_threshold)

    def word_matches(self) -> list[WordMatch]:
        """Matched/unmatched classification for each word of the active paragraph."""
        with self._lock:
            return align_words(
                self.current_paragraph,
                self.state.merged_transcript,
                window=self.alignment_window
            )

    def snapshot(self) -> TrackerSnapshot:
        """Capture the current state for display."""
        with self._lock:
            paragraph = self.current_paragraph
            transcript = self.state.merged_transcript
            return TrackerSnapshot(
                paragraph_index=self.state.paragraph_index,
                paragraph_count=len(self.paragraphs),
                reference_paragraph=paragraph,
                merged_transcript=transcript,
                last_fragment=self.state.last_fragment,
                recent_fragments=tuple(self.state.recent_fragments),
                word_matches=tuple(self.word_matches()),
                percent_complete=self.percent_complete(),
                current_word_index=last_matched_position(
                    paragraph, transcript, self.match_threshold),
                advance_pending=self.advance_pending,
                practice_complete=self._practice_complete,
                last_rule=self._last_rule,
            )

    # Fragments

    def on_fragment(self, fragment: str) -> TrackerSnapshot:
        """
        Handle a newly recognized fragment.

        Args:
            fragment: Recognized text; whitespace-only fragments are ignored

        Returns:
            Snapshot after merging the fragment
        """
        with self._lock:
            if not fragment.strip():
                return self.snapshot()

            rule = self.accumulator.accept(self.state, fragment, self.current_paragraph)
            self._last_rule = rule
            debug_log.log_fragment(
                self.state.paragraph_index, fragment, rule, self.state.merged_transcript)

            if self.check_completion(self.state.merged_transcript).is_complete:
                self._schedule_advance()

            return self.snapshot()

    def check_completion(self, transcript: str, paragraph: str | None = None) -> CompletionCheck:
        """
        Check whether a transcript contains the closing words of a paragraph.

        Looks at the last completion_tail_words words of the paragraph,
        ignoring those shorter than completion_min_word_length once
        punctuation is stripped. Complete when at least two of them appear
        in the transcript, or when at most two qualify and one appears.
        """
        if paragraph is None:
            paragraph = self.current_paragraph

        check = CompletionCheck()
        transcript_lower: str = transcript.lower()
        words: list[str] = split_words(paragraph)
        count: int = max(0, self.completion_tail_words)
        tail: list[str] = words[max(0, len(words) - count):] if count else []

        for word in tail:
            normalized: str = word.lower().strip(string.punctuation)
            if len(normalized) < self.completion_min_word_length:
                continue
            check.checked_words.append(normalized)
            if normalized in transcript_lower:
                check.matched_words.append(normalized)

        return check

    def _schedule_advance(self) -> None:
        if self._pending_advance is not None:
            # Already waiting; more fragments are still arriving
            return
        if self._practice_complete:
            return

        self._advance_token += 1
        token: int = self._advance_token
        logger.debug(
            "Paragraph %d looks complete, advancing in %dms",
            self.state.paragraph_index, self.completion_delay_ms)
        self._pending_advance = self.scheduler.schedule(
            self.completion_delay_ms / 1000,
            lambda: self._on_advance_timer(token)
        )

    def _cancel_pending_advance(self) -> None:
        if self._pending_advance is not None:
            self._pending_advance.cancel()
            self._pending_advance = None
            logger.debug("Cancelled pending advance")
        self._advance_token += 1

    def _on_advance_timer(self, token: int) -> None:
        with self._lock:
            if token != self._advance_token:
                return
            self._pending_advance = None

            # Re-check against the transcript as it is now
            if not self.check_completion(self.state.merged_transcript).is_complete:
                logger.debug("Completion no longer holds, not advancing")
                return

            if self.is_last_paragraph:
                self._mark_practice_complete()
            else:
                self._go_to(self.state.paragraph_index + 1, "next")

    def _mark_practice_complete(self) -> None:
        if self._practice_complete:
            return
        self._practice_complete = True
        logger.info("All %d paragraphs have been read", len(self.paragraphs))
        self._emit(
            "complete", "Practice Complete", "All paragraphs have been read successfully.")

    # Navigation

    def _go_to(self, index: int, kind: EventKind) -> None:
        old_index: int = self.state.paragraph_index
        self._cancel_pending_advance()
        self.state.clear()
        self.state.paragraph_index = index
        self._practice_complete = False
        self._last_rule = None

        debug_log.log_navigation(old_index, index, kind)
        logger.info("Paragraph %d -> %d (%s)", old_index, index, kind)

        if kind == "next":
            self._emit("next", "Next Paragraph", f"Moving to paragraph {index + 1}")
        elif kind == "previous":
            self._emit("previous", "Previous Paragraph", f"Moving to paragraph {index + 1}")
        elif kind == "reset":
            self._emit("reset", "Reset Complete", "Practice session has been reset.")
        else:
            self._emit(kind, "Paragraph Selected", f"Moving to paragraph {index + 1}")

    def next_paragraph(self) -> bool:
        """Move to the next paragraph.

        At the last paragraph this only signals that practice is complete.

        Returns:
            True if the paragraph changed
        """
        with self._lock:
            if self.is_last_paragraph:
                # An explicit request supersedes any scheduled completion
                self._cancel_pending_advance()
                self._practice_complete = True
                debug_log.log_navigation(
                    self.state.paragraph_index, self.state.paragraph_index, "complete")
                self._emit(
                    "complete", "Practice Complete",
                    "All paragraphs have been read successfully.")
                return False
            self._go_to(self.state.paragraph_index + 1, "next")
            return True

    def previous_paragraph(self) -> bool:
        """Move to the previous paragraph (no-op on the first).

        Returns:
            True if the paragraph changed
        """
        with self._lock:
            if self.state.paragraph_index == 0:
                return False
            self._go_to(self.state.paragraph_index - 1, "previous")
            return True

    def navigate(self, index: int) -> bool:
        """Jump to a specific paragraph.

        Returns:
            True if the paragraph changed; out-of-range indices are ignored
        """
        with self._lock:
            if not 0 <= index < len(self.paragraphs):
                logger.warning(
                    "Ignoring navigation to paragraph %d (have %d)", index, len(self.paragraphs))
                return False
            self._go_to(index, "navigate")
            return True

    def reset(self) -> None:
        """Return to the first paragraph with a clean state."""
        with self._lock:
            self._go_to(0, "reset")

    def close(self) -> None:
        """Cancel any pending timer; call when the session ends."""
        with self._lock:
            self._cancel_pending_advance()
