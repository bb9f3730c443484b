"""
Filters that decide which history lines belong in a session.

Copyright (c) 2026 Andrew Hundt
Licensed under the Apache License, Version 2.0
"""

import re
from typing import Iterable, List, Optional

#: Shell-internal commands never captured into a session.
#: Each pattern matches a whole leading token, not a substring.
DEFAULT_SKIP_PATTERNS: List[str] = [
    r"^session:",
    r"^help\b",
    r"^exit\b",
    r"^quit\b",
    r"^history\b",
    r"^clear\b",
]

#: The update command, filtered separately so it never echoes itself into a session.
UPDATE_COMMAND_PATTERN = r"^session:update\b"


class CommandFilter:
    """Stateless predicate over raw history lines."""

    def __init__(self, extra_patterns: Optional[Iterable[str]] = None):
        """Initialize with the default patterns plus any extras."""
        self._patterns = list(DEFAULT_SKIP_PATTERNS) + list(extra_patterns or [])
        self._compiled = [re.compile(p) for p in self._patterns]

    @property
    def patterns(self) -> List[str]:
        return list(self._patterns)

    def should_skip(self, line: str) -> bool:
        """True for blank lines and shell-internal commands."""
        stripped = line.strip()
        if not stripped:
            return True
        return any(p.search(stripped) for p in self._compiled)

    def filter_commands(self, lines: Iterable[str]) -> List[str]:
        """Return the lines that should be captured, in their original order."""
        return [line for line in lines if not self.should_skip(line)]

    def __call__(self, lines: Iterable[str]) -> List[str]:
        """Support callable interface."""
        return self.filter_commands(lines)
