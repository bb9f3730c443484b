"""
Read the shell's append-only history log and slice out the current session.

History capture is best-effort: a missing or unreadable log yields nothing
rather than an error, so the shell never dies because of it.

Copyright (c) 2026 Andrew Hundt
Licensed under the Apache License, Version 2.0
"""

import logging
from pathlib import Path
from typing import List, Optional

from .filters import CommandFilter
from .tracker import SessionTracker

logger = logging.getLogger(__name__)


class HistoryReader:
    """Line-oriented reader over one history file."""

    def __init__(self, history_path: Path, command_filter: Optional[CommandFilter] = None):
        """Initialize with the history log path.

        Args:
            history_path: Path to the history log. Need not exist yet.
            command_filter: Filter for shell-internal lines (default: CommandFilter()).
        """
        self.history_path = Path(history_path)
        self.filter = command_filter or CommandFilter()

    def _read_lines(self) -> List[str]:
        try:
            with open(self.history_path, encoding="utf-8", errors="replace") as f:
                lines = f.read().split("\n")
            if lines[-1] == "":
                lines.pop()
            return lines
        except FileNotFoundError:
            return []
        except OSError as exc:
            logger.debug("Could not read history file %s: %s", self.history_path, exc)
            return []

    def line_count(self) -> int:
        """Current number of lines in the log (0 when missing or unreadable)."""
        return len(self._read_lines())

    def capture_since(self, start_line: int, command_filter: Optional[CommandFilter] = None) -> List[str]:
        """Return trimmed, filtered lines at index >= start_line, in order."""
        active = command_filter or self.filter
        lines = [line.strip() for line in self._read_lines()[max(start_line, 0):]]
        return active.filter_commands(lines)

    def mark_start(self, tracker: SessionTracker) -> int:
        """Set the tracker's watermark to the current end of the log.

        Must run before the user's first command reaches the log, otherwise
        that command is counted as pre-existing history.
        """
        tracker.session_start_line = self.line_count()
        logger.debug("Session starts at history line %d", tracker.session_start_line)
        return tracker.session_start_line

    def capture_into(self, tracker: SessionTracker) -> int:
        """Rebuild the tracker's commands: replay baseline, then new history lines.

        Returns:
            Number of history lines captured (excluding the baseline).
        """
        lines = self.capture_since(tracker.session_start_line)
        tracker.reset_to_baseline()
        for line in lines:
            tracker.add_command(line)
        return len(lines)
