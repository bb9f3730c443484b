"""
REPL Sessions - durable, named sessions for an interactive Python shell.

Captures the commands typed in a shell so they can be saved, listed, filtered
by tag, viewed, edited, replayed and incrementally updated.

Copyright (c) 2026 Andrew Hundt
Licensed under the Apache License, Version 2.0

Example usage as library:
    from repl_sessions import SessionStore, SessionTracker, SessionMetadata, SessionName

    store = SessionStore(sessions_dir)
    tracker = SessionTracker()
    tracker.add_command("x = 1")
    store.save(SessionMetadata(name=SessionName("demo")), tracker)
"""

try:
    from importlib.metadata import version
    __version__ = version("repl-sessions")
except Exception:
    __version__ = "1.0.0"

__author__ = "Andrew Hundt"

from .autosave import AutoSaveController
from .decoder import decode, encode_history_line
from .errors import (
    NoSessionLoadedError,
    SessionCorruptError,
    SessionError,
    SessionNotFoundError,
    SessionStorageError,
    ValidationError,
)
from .filters import CommandFilter
from .history import HistoryReader
from .interpreter import PythonInterpreter
from .models import (
    CommandEntry,
    ExecutionResult,
    SessionData,
    SessionDescription,
    SessionMetadata,
    SessionName,
    SessionSummary,
    SessionTag,
    SessionTags,
    UpdateResult,
)
from .runner import SessionCommandRunner
from .store import SessionStore
from .tracker import SessionTracker
from .types import Interpreter, LoopHookHost
from .updater import SessionUpdater, merge_commands

__all__ = [
    "AutoSaveController",
    "CommandEntry",
    "CommandFilter",
    "ExecutionResult",
    "HistoryReader",
    "Interpreter",
    "LoopHookHost",
    "NoSessionLoadedError",
    "PythonInterpreter",
    "SessionCommandRunner",
    "SessionCorruptError",
    "SessionData",
    "SessionDescription",
    "SessionError",
    "SessionMetadata",
    "SessionName",
    "SessionNotFoundError",
    "SessionStorageError",
    "SessionStore",
    "SessionSummary",
    "SessionTag",
    "SessionTags",
    "SessionTracker",
    "SessionUpdater",
    "UpdateResult",
    "ValidationError",
    "decode",
    "encode_history_line",
    "merge_commands",
]
