# Copyright © 2025 Ed Nutting
# SPDX-License-Identifier: MIT
# See LICENSE file for details

"""
Debug tool for replaying a transcript through the paragraph tracker.

This CLI tool takes a script file and a transcript file (one recognized
fragment per line), feeds the fragments through a tracker on a virtual
clock, and writes how each fragment was merged, the progress it produced,
and every paragraph change.
"""

import argparse
import sys
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Literal, TextIO

from .scheduler import ManualScheduler
from .tracker import ParagraphTracker, TrackerEvent

EventType = Literal["resync", "continuation", "append", "ignored",
                    "next", "previous", "navigate", "reset", "complete"]


@dataclass
class ReplayEvent:
    """A single event during transcript replay."""
    transcript_line: int
    fragment: str
    paragraph_index: int
    event_type: EventType
    percent_complete: int
    details: str = ""


def load_transcript(path: Path) -> list[str]:
    """Load transcript file and extract fragment lines.

    Filters out metadata lines (starting with '===').
    Returns list of fragment text lines.
    """
    lines: list[str] = []
    with open(path, encoding='utf-8') as f:
        for line in f:
            stripped_line: str = line.strip()
            # Skip metadata lines and empty lines
            if stripped_line.startswith('===') or not stripped_line:
                continue
            lines.append(stripped_line)
    return lines


def load_script(path: Path) -> str:
    """Load script file content."""
    with open(path, encoding='utf-8') as f:
        return f.read()


def _partials(line: str) -> list[str]:
    """Growing prefixes of a line, as a streaming recognizer would emit them."""
    words: list[str] = line.split()
    return [' '.join(words[:i + 1]) for i in range(len(words))]


def replay_transcript(
    transcript_lines: list[str],
    script_text: str,
    output: TextIO,
    verbose: bool = False,
    word_by_word: bool = False,
    fragment_gap_ms: int = 1500,
    render_markdown: bool = False
) -> list[ReplayEvent]:
    """Replay transcript fragments through a tracker and log events.

    Args:
        transcript_lines: Fragment lines
        script_text: The script content
        output: File handle to write log output
        verbose: If True, also log the per-word match list after each fragment
        word_by_word: Feed each line as growing partial fragments
        fragment_gap_ms: Virtual time between fragments; debounced advances
            fire when this exceeds the completion delay
        render_markdown: Strip Markdown formatting from the script

    Returns:
        List of all replay events
    """
    scheduler = ManualScheduler()
    tracker: ParagraphTracker = ParagraphTracker.from_script(
        script_text, render_markdown=render_markdown, scheduler=scheduler)
    events: list[ReplayEvent] = []

    current_line: int = 0
    current_fragment: str = ""

    def on_event(event: TrackerEvent) -> None:
        output.write(f"  *** {event.title.upper()}: {event.description} ***\n")
        events.append(ReplayEvent(
            transcript_line=current_line,
            fragment=current_fragment,
            paragraph_index=event.paragraph_index,
            event_type=event.kind,
            percent_complete=tracker.percent_complete(),
            details=event.description
        ))

    tracker.add_listener(on_event)

    # Write header
    output.write("=" * 80 + "\n")
    output.write("TRANSCRIPT REPLAY LOG\n")
    output.write(f"Generated: {datetime.now().isoformat()}\n")
    output.write(f"Paragraphs: {tracker.paragraph_count}\n")
    output.write(f"Transcript lines: {len(transcript_lines)}\n")
    output.write("=" * 80 + "\n\n")

    output.write("PARAGRAPHS:\n")
    output.write("-" * 40 + "\n")
    for i, paragraph in enumerate(tracker.paragraphs):
        output.write(f"  [{i:3d}] {paragraph}\n")
    output.write("\n" + "=" * 80 + "\n\n")

    output.write("TRACKING LOG:\n")
    output.write("-" * 40 + "\n")

    for line_num, line in enumerate(transcript_lines, start=1):
        line_display: str = f"--- Line {line_num}: \"{line[:60]}"
        line_display += '...' if len(line) > 60 else ''
        line_display += "\" ---"
        output.write(f"\n{line_display}\n")

        fragments: list[str] = _partials(line) if word_by_word else [line]
        for fragment in fragments:
            current_line = line_num
            current_fragment = fragment

            snapshot = tracker.on_fragment(fragment)
            rule: EventType = snapshot.last_rule or "ignored"
            output.write(
                f"  [para {snapshot.paragraph_index:3d}] {rule:12} "
                f"{snapshot.percent_complete:3d}% \"{snapshot.merged_transcript[-60:]}\"\n"
            )
            if verbose:
                marks: str = ' '.join(
                    m.reference_word if m.matched else f"[{m.reference_word}]"
                    for m in snapshot.word_matches
                )
                output.write(f"      words: {marks}\n")

            events.append(ReplayEvent(
                transcript_line=line_num,
                fragment=fragment,
                paragraph_index=snapshot.paragraph_index,
                event_type=rule,
                percent_complete=snapshot.percent_complete,
                details=snapshot.merged_transcript
            ))

            scheduler.advance(fragment_gap_ms / 1000)

    # Write summary
    output.write("\n" + "=" * 80 + "\n")
    output.write("SUMMARY:\n")
    output.write("-" * 40 + "\n")

    resyncs: list[ReplayEvent] = [e for e in events if e.event_type == "resync"]
    advances: list[ReplayEvent] = [e for e in events if e.event_type == "next"]
    completed: bool = any(e.event_type == "complete" for e in events)

    output.write(f"Total lines processed: {len(transcript_lines)}\n")
    output.write(
        f"Final paragraph: {tracker.current_paragraph_index + 1} / {tracker.paragraph_count}\n")
    output.write(f"Final progress: {tracker.percent_complete()}%\n")
    output.write(f"Resyncs: {len(resyncs)}\n")
    output.write(f"Paragraph advances: {len(advances)}\n")
    output.write(f"Practice complete: {'yes' if completed else 'no'}\n")

    if advances:
        output.write("\nAdvance events:\n")
        for e in advances:
            output.write(
                f"  Line {e.transcript_line}: -> paragraph {e.paragraph_index + 1}\n")

    tracker.close()
    return events


def main() -> None:
    """CLI entry point for the replay tool."""
    parser: argparse.ArgumentParser = argparse.ArgumentParser(
        description="Replay recognized fragments through the paragraph tracker"
    )

    parser.add_argument(
        "script",
        type=Path,
        help="Path to script file (one paragraph per line)"
    )

    parser.add_argument(
        "transcript",
        type=Path,
        help="Path to transcript file (one fragment per line)"
    )

    parser.add_argument(
        "-o", "--output",
        type=Path,
        default=None,
        help="Output log file path (default: stdout)"
    )

    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Log the matched/unmatched word list after every fragment"
    )

    parser.add_argument(
        "-w", "--word-by-word",
        action="store_true",
        help="Feed each line as growing partial fragments"
    )

    parser.add_argument(
        "--gap-ms",
        type=int,
        default=1500,
        help="Virtual time between fragments in milliseconds (default: 1500)"
    )

    parser.add_argument(
        "--markdown",
        action="store_true",
        help="Strip Markdown formatting from the script"
    )

    args: argparse.Namespace = parser.parse_args()

    # Validate inputs
    if not args.transcript.exists():
        print(
            f"Error: Transcript file not found: {args.transcript}", file=sys.stderr)
        sys.exit(1)

    if not args.script.exists():
        print(f"Error: Script file not found: {args.script}", file=sys.stderr)
        sys.exit(1)

    # Load files
    try:
        transcript_lines: list[str] = load_transcript(args.transcript)
        script_text: str = load_script(args.script)
    except OSError as e:
        print(f"Error loading files: {e}", file=sys.stderr)
        sys.exit(1)

    if not transcript_lines:
        print("Error: No transcript lines found", file=sys.stderr)
        sys.exit(1)

    try:
        if args.output:
            with open(args.output, 'w', encoding='utf-8') as f:
                replay_transcript(
                    transcript_lines, script_text, f, args.verbose,
                    args.word_by_word, args.gap_ms, args.markdown
                )
            print(f"Replay log written to: {args.output}")
        else:
            replay_transcript(
                transcript_lines, script_text, sys.stdout, args.verbose,
                args.word_by_word, args.gap_ms, args.markdown
            )
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
