"""
Live, in-memory recorder of the session currently in progress.

Copyright (c) 2026 Andrew Hundt
Licensed under the Apache License, Version 2.0
"""

import datetime
import json
from typing import Any, Callable, Dict, Iterable, List, Optional

from .models import TIMESTAMP_FORMAT, CommandEntry

#: Rendered variable values longer than this are truncated with "...".
MAX_RENDERED_VALUE = 80


def _utcnow() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)


def serialize_output(output: Any) -> Optional[str]:
    """Turn a command's return value into something JSON can store."""
    if output is None:
        return None
    if isinstance(output, str):
        return output
    try:
        return json.dumps(output, indent=4)
    except (TypeError, ValueError):
        pass
    try:
        return repr(output)
    except Exception:
        return "Unable to serialize output"


def render_value(value: Any) -> Optional[str]:
    """Printable-ASCII rendering of a value, truncated to MAX_RENDERED_VALUE chars."""
    if value is None:
        return None
    try:
        text = value if isinstance(value, str) else repr(value)
    except Exception:
        return "Unable to serialize value"
    escaped = text.encode("unicode_escape").decode("ascii")
    if len(escaped) > MAX_RENDERED_VALUE:
        escaped = escaped[: MAX_RENDERED_VALUE - 3] + "..."
    return escaped


class SessionTracker:
    """Mutable recorder owned by exactly one shell.

    Attributes:
        session_start_line: Watermark into the history log; only lines at or
            after it belong to this session. Set once at startup via
            HistoryReader.mark_start().
        loaded_session_name: Name of the session replayed into this shell,
            if any. Enables ``session:update``.
    """

    def __init__(self, clock: Callable[[], datetime.datetime] = _utcnow):
        self._clock = clock
        self._commands: List[CommandEntry] = []
        self._baseline: List[CommandEntry] = []
        self._variables: Dict[str, Dict[str, Any]] = {}
        self.started_at = clock()
        self.session_start_line = 0
        self.loaded_session_name: Optional[str] = None

    def add_command(self, code: str, output: Any = None) -> CommandEntry:
        """Append a command with order = current count + 1."""
        entry = CommandEntry(
            code=code,
            output=serialize_output(output),
            timestamp=self._clock().strftime(TIMESTAMP_FORMAT),
            order=len(self._commands) + 1,
        )
        self._commands.append(entry)
        return entry

    def load_commands(self, entries: Iterable[CommandEntry]) -> None:
        """Replace the command list verbatim and remember it as the replay baseline.

        History captured later is appended after this baseline, so a follow-on
        save or update sees the replayed commands first.
        """
        self._commands = list(entries)
        self._baseline = list(self._commands)

    def reset_to_baseline(self) -> None:
        """Drop captured commands, keeping only what load_commands() seeded."""
        self._commands = list(self._baseline)

    def clear(self) -> None:
        """Empty commands and variables and restart the timer.

        The watermark and the loaded-session back-reference survive.
        """
        self._commands = []
        self._baseline = []
        self._variables = {}
        self.started_at = self._clock()

    def track_variable(self, name: str, value: Any) -> None:
        """Store a type-tagged snapshot of a variable."""
        value_type = type(value)
        class_name = None
        if value_type.__module__ != "builtins":
            class_name = f"{value_type.__module__}.{value_type.__qualname__}"
        self._variables[name] = {
            "type": value_type.__name__,
            "class": class_name,
            "value": render_value(value),
        }

    def set_loaded_session_name(self, name: Optional[str]) -> None:
        self.loaded_session_name = name

    @property
    def has_loaded_session(self) -> bool:
        return self.loaded_session_name is not None

    @property
    def commands(self) -> List[CommandEntry]:
        return list(self._commands)

    @property
    def baseline(self) -> List[CommandEntry]:
        return list(self._baseline)

    @property
    def variables(self) -> Dict[str, Dict[str, Any]]:
        return dict(self._variables)

    @property
    def command_count(self) -> int:
        return len(self._commands)

    @property
    def has_commands(self) -> bool:
        return bool(self._commands)

    @property
    def last_command(self) -> Optional[CommandEntry]:
        return self._commands[-1] if self._commands else None

    @property
    def duration(self) -> int:
        """Whole seconds since started_at."""
        return int((self._clock() - self.started_at).total_seconds())
