"""
Speekly - Follow a speaker through a practice script.

Merges noisy, overlapping speech-recognition fragments into a running
transcript for the active paragraph, scores reading progress and advances
to the next paragraph once the closing words have been spoken.
"""

__version__ = "0.1.0"

from .accumulator import AlignmentState, TranscriptAccumulator
from .alignment import WordMatch, align_words, find_phrase_position
from .progress import percent_complete
from .scheduler import AsyncioScheduler, ManualScheduler, Scheduler, ThreadingScheduler
from .server import WebServer
from .similarity import is_word_similar, levenshtein_distance, word_similarity_score
from .tracker import ParagraphTracker, TrackerEvent, TrackerSnapshot

__all__ = [
    "AlignmentState",
    "TranscriptAccumulator",
    "WordMatch",
    "align_words",
    "find_phrase_position",
    "percent_complete",
    "Scheduler",
    "ThreadingScheduler",
    "AsyncioScheduler",
    "ManualScheduler",
    "is_word_similar",
    "levenshtein_distance",
    "word_similarity_score",
    "ParagraphTracker",
    "TrackerEvent",
    "TrackerSnapshot",
    "WebServer",
]
