"""
Tests for ParagraphTracker navigation: next/previous/navigate/reset, the
per-paragraph reset guarantee and the notifications each transition emits.
"""

import pytest

from speekly.config import DEFAULT_CONFIG
from speekly.scheduler import ManualScheduler
from speekly.tracker import ParagraphTracker, TrackerEvent

PARAGRAPHS = [
    "the quick brown fox jumps over the lazy dog",
    "pack my box with five dozen liquor jugs",
    "how vexingly quick daft zebras jump",
]


@pytest.fixture
def scheduler():
    return ManualScheduler()


@pytest.fixture
def tracker(scheduler):
    tracker = ParagraphTracker(PARAGRAPHS, scheduler=scheduler)
    yield tracker
    tracker.close()


@pytest.fixture
def events(tracker):
    received: list[TrackerEvent] = []
    tracker.add_listener(received.append)
    return received


def assert_state_cleared(tracker):
    assert tracker.merged_transcript == ""
    assert tracker.last_fragment == ""
    assert tracker.recent_fragments == ()


class TestConstruction:
    """Test creating trackers."""

    def test_starts_at_first_paragraph(self, tracker):
        assert tracker.current_paragraph_index == 0
        assert tracker.paragraph_count == 3
        assert tracker.current_paragraph == PARAGRAPHS[0]
        assert_state_cleared(tracker)

    def test_empty_paragraph_list_rejected(self):
        with pytest.raises(ValueError):
            ParagraphTracker([])

    def test_from_script(self, scheduler):
        tracker = ParagraphTracker.from_script(
            "# Intro\n\nFirst **line**\n", render_markdown=True, scheduler=scheduler)
        assert tracker.paragraphs == ("Intro", "First line")

    def test_from_script_without_paragraphs(self):
        with pytest.raises(ValueError):
            ParagraphTracker.from_script("\n\n  \n")

    def test_from_settings(self, scheduler):
        settings = dict(DEFAULT_CONFIG["tracking"])
        settings["completion_delay_ms"] = 250
        settings["fragment_history"] = 2
        tracker = ParagraphTracker.from_settings(PARAGRAPHS, settings, scheduler=scheduler)
        assert tracker.completion_delay_ms == 250
        assert tracker.state.recent_fragments.maxlen == 2
        assert tracker.scheduler is scheduler


class TestNextPrevious:
    """Test stepping through paragraphs."""

    def test_next(self, tracker, events):
        assert tracker.next_paragraph()
        assert tracker.current_paragraph_index == 1
        assert events[-1].kind == "next"
        assert events[-1].title == "Next Paragraph"
        assert events[-1].description == "Moving to paragraph 2"
        assert events[-1].paragraph_index == 1

    def test_previous(self, tracker, events):
        tracker.next_paragraph()
        assert tracker.previous_paragraph()
        assert tracker.current_paragraph_index == 0
        assert events[-1].kind == "previous"
        assert events[-1].title == "Previous Paragraph"

    def test_previous_at_first_is_noop(self, tracker, events):
        assert not tracker.previous_paragraph()
        assert tracker.current_paragraph_index == 0
        assert events == []

    def test_next_at_last_signals_complete(self, tracker, events):
        """Next at the last paragraph never moves out of range."""
        tracker.navigate(2)
        assert not tracker.next_paragraph()
        assert tracker.current_paragraph_index == 2
        assert events[-1].kind == "complete"
        assert events[-1].title == "Practice Complete"
        assert events[-1].description == "All paragraphs have been read successfully."

    def test_next_clears_state(self, tracker):
        tracker.on_fragment("the quick brown")
        assert tracker.merged_transcript == "the quick brown"
        tracker.next_paragraph()
        assert_state_cleared(tracker)

    def test_previous_clears_state(self, tracker):
        tracker.next_paragraph()
        tracker.on_fragment("pack my box")
        tracker.previous_paragraph()
        assert_state_cleared(tracker)


class TestNavigateAndReset:
    """Test jumping to paragraphs and resetting."""

    def test_navigate(self, tracker, events):
        assert tracker.navigate(2)
        assert tracker.current_paragraph_index == 2
        assert tracker.is_last_paragraph
        assert events[-1].kind == "navigate"
        assert events[-1].description == "Moving to paragraph 3"

    @pytest.mark.parametrize("index", [-1, 3, 100])
    def test_navigate_out_of_range_ignored(self, tracker, events, index):
        assert not tracker.navigate(index)
        assert tracker.current_paragraph_index == 0
        assert events == []

    def test_navigate_clears_state(self, tracker):
        tracker.on_fragment("the quick brown")
        tracker.navigate(1)
        assert_state_cleared(tracker)

    def test_reset(self, tracker, events):
        tracker.navigate(2)
        tracker.on_fragment("how vexingly quick")
        tracker.reset()
        assert tracker.current_paragraph_index == 0
        assert_state_cleared(tracker)
        assert events[-1].kind == "reset"
        assert events[-1].title == "Reset Complete"
        assert events[-1].description == "Practice session has been reset."

    def test_reset_is_idempotent(self, tracker, events):
        tracker.reset()
        tracker.reset()
        assert tracker.current_paragraph_index == 0
        assert [e.kind for e in events] == ["reset", "reset"]


class TestListeners:
    """Test notification delivery."""

    def test_remove_listener(self, tracker):
        received = []
        tracker.add_listener(received.append)
        tracker.remove_listener(received.append)
        tracker.next_paragraph()
        assert received == []

    def test_failing_listener_does_not_break_navigation(self, tracker, caplog):
        def explode(_event):
            raise RuntimeError("listener failed")

        received = []
        tracker.add_listener(explode)
        tracker.add_listener(received.append)

        assert tracker.next_paragraph()
        assert tracker.current_paragraph_index == 1
        assert len(received) == 1
        assert "listener failed" in caplog.text

    def test_event_to_dict(self):
        event = TrackerEvent("next", "Next Paragraph", "Moving to paragraph 2", 1)
        assert event.to_dict() == {
            "kind": "next",
            "title": "Next Paragraph",
            "description": "Moving to paragraph 2",
            "paragraphIndex": 1,
        }


class TestSnapshot:
    """Test the read-only state view."""

    def test_snapshot_after_fragment(self, tracker):
        snapshot = tracker.on_fragment("the quick brown")
        assert snapshot.paragraph_index == 0
        assert snapshot.paragraph_count == 3
        assert snapshot.reference_paragraph == PARAGRAPHS[0]
        assert snapshot.merged_transcript == "the quick brown"
        assert snapshot.last_fragment == "the quick brown"
        assert snapshot.recent_fragments == ("the quick brown",)
        assert snapshot.percent_complete == 33
        assert snapshot.current_word_index == 2
        assert snapshot.last_rule == "resync"
        assert [m.matched for m in snapshot.word_matches][:3] == [True, True, True]
        assert not snapshot.advance_pending
        assert not snapshot.practice_complete

    def test_whitespace_fragment_is_ignored(self, tracker):
        tracker.on_fragment("the quick")
        snapshot = tracker.on_fragment("   ")
        assert snapshot.merged_transcript == "the quick"
        assert snapshot.recent_fragments == ("the quick",)

    def test_to_dict_uses_camel_case(self, tracker):
        data = tracker.on_fragment("the quick").to_dict()
        assert data["paragraphIndex"] == 0
        assert data["paragraphCount"] == 3
        assert data["mergedTranscript"] == "the quick"
        assert data["recentFragments"] == ["the quick"]
        assert data["percentComplete"] == 22
        assert data["advancePending"] is False
        assert data["practiceComplete"] is False
        assert data["lastRule"] == "resync"
        assert len(data["wordMatches"]) == 9
        assert data["wordMatches"][0]["matched"] is True
