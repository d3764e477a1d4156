"""
Debug logging of everything the tracker hears and does.

Writes a single log file, logs/fragments.log, with one line per received
fragment (which merge rule handled it and the resulting transcript) and one
per paragraph change. Useful for reconstructing a reading session after the
fact and replaying it with speekly-replay.

Logging is disabled by default. Call enable() to turn it on.
"""

from datetime import datetime
from pathlib import Path

# Log files location (in project root)
LOG_DIR: Path = Path(__file__).parent.parent.parent / "logs"
FRAGMENT_LOG_NAME: str = "fragments.log"

# Global flag to control whether debug logging is enabled
_ENABLED: bool = False  # pylint: disable=invalid-name
_log_dir: Path = LOG_DIR  # pylint: disable=invalid-name


def enable() -> None:
    """Enable debug logging."""
    global _ENABLED  # pylint: disable=global-statement
    _ENABLED = True


def disable() -> None:
    """Disable debug logging."""
    global _ENABLED  # pylint: disable=global-statement
    _ENABLED = False


def is_enabled() -> bool:
    """Check if debug logging is enabled."""
    return _ENABLED


def set_log_dir(path: Path | None) -> None:
    """Write logs to path instead of the default directory (None restores it)."""
    global _log_dir  # pylint: disable=global-statement
    _log_dir = path if path is not None else LOG_DIR


def get_log_file() -> Path:
    """Path of the fragment log."""
    return _log_dir / FRAGMENT_LOG_NAME


def _ensure_log_dir() -> None:
    """Create log directory if it doesn't exist."""
    _log_dir.mkdir(parents=True, exist_ok=True)


def _timestamp() -> str:
    """Get current timestamp."""
    return datetime.now().strftime("%H:%M:%S.%f")[:-3]


def _write(line: str) -> None:
    _ensure_log_dir()
    with open(get_log_file(), 'a', encoding='utf-8') as f:
        f.write(f"[{_timestamp()}] {line}\n")


def clear_logs() -> None:
    """Clear the log file for a fresh session."""
    if not _ENABLED:
        return
    _ensure_log_dir()
    with open(get_log_file(), 'w', encoding='utf-8') as f:
        f.write(
            f"=== New session started at {datetime.now().isoformat()} ===\n\n")


def log_fragment(paragraph_index: int, fragment: str, rule: str, merged: str) -> None:
    """
    Log a received fragment.

    Args:
        paragraph_index: The active paragraph
        fragment: The recognized text as received
        rule: How it was merged (resync, continuation, append)
        merged: The transcript after merging
    """
    if not _ENABLED:
        return
    _write(f"fragment para={paragraph_index:3d} {rule:12} \"{fragment}\"")
    _write(f"         merged: \"{merged[-80:]}\"")


def log_navigation(old_index: int, new_index: int, reason: str) -> None:
    """Log a paragraph change (or a no-op navigation attempt)."""
    if not _ENABLED:
        return
    _write(f"PARAGRAPH CHANGE: {old_index} -> {new_index} ({reason})")
