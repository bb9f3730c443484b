"""
Composition root: build every session service once and hand them out together.

Copyright (c) 2026 Andrew Hundt
Licensed under the Apache License, Version 2.0
"""

import logging
from dataclasses import dataclass
from typing import Optional

from rich.console import Console

from .autosave import AutoSaveController
from .config import SessionConfig
from .formatters import SessionFormatter
from .history import HistoryReader
from .interpreter import PythonInterpreter
from .runner import SessionCommandRunner
from .store import SessionStore
from .tracker import SessionTracker
from .types import Interpreter
from .updater import SessionUpdater

logger = logging.getLogger(__name__)


@dataclass
class SessionContext:
    """Services shared by the CLI commands and the shell.

    Passed to commands as click's context object, so a command run inside
    the shell sees the shell's tracker and interpreter.
    """

    config: SessionConfig
    store: SessionStore
    tracker: SessionTracker
    history: HistoryReader
    runner: SessionCommandRunner
    updater: SessionUpdater
    autosave: AutoSaveController
    interpreter: Interpreter
    formatter: SessionFormatter
    in_shell: bool = False

    @property
    def console(self) -> Console:
        return self.formatter.console


def build_context(
    config: SessionConfig,
    interpreter: Optional[Interpreter] = None,
    console: Optional[Console] = None,
) -> SessionContext:
    """Wire up the services and mark where this session starts in the history log.

    Raises:
        SessionStorageError: The sessions directory cannot be created.
    """
    console = console or Console()
    store = SessionStore(config.sessions_dir)
    tracker = SessionTracker()
    history = HistoryReader(config.history_file)
    history.mark_start(tracker)

    context = SessionContext(
        config=config,
        store=store,
        tracker=tracker,
        history=history,
        runner=SessionCommandRunner(),
        updater=SessionUpdater(store, history),
        autosave=AutoSaveController(
            store,
            tracker,
            history,
            enabled=config.auto_save,
            min_commands=config.auto_save_min_commands,
            interval_seconds=config.auto_save_interval,
        ),
        interpreter=interpreter or PythonInterpreter(console=console),
        formatter=SessionFormatter(console),
    )
    logger.debug("Session context ready (sessions=%s, history=%s)", config.sessions_dir, config.history_file)
    return context
