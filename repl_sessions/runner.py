"""
Replay a stored session's commands against a live interpreter.

Copyright (c) 2026 Andrew Hundt
Licensed under the Apache License, Version 2.0
"""

import logging
from typing import Optional

from rich.console import Console
from rich.markup import escape

from .decoder import HISTORY_SENTINEL, decode
from .models import ExecutionResult, SessionData
from .tracker import SessionTracker
from .types import Interpreter

logger = logging.getLogger(__name__)


class SessionCommandRunner:
    """Runs commands one at a time; a failing command never stops the replay."""

    def __init__(self):
        self.last_result: Optional[ExecutionResult] = None

    def execute(
        self,
        interpreter: Interpreter,
        session_data: SessionData,
        tracker: SessionTracker,
        out: Optional[Console] = None,
        display_output: bool = True,
    ) -> ExecutionResult:
        """Replay every command in stored order.

        Afterwards the tracker holds the session's commands as its baseline and
        remembers the session name, whatever the individual outcomes were.

        Args:
            interpreter: Target interpreter.
            session_data: Session to replay.
            tracker: Tracker of the shell being replayed into.
            out: Console for the ``>>>`` echo and failures (None = silent).
            display_output: Pass non-None results to write_return_value().
        """
        result = ExecutionResult()
        name = session_data.metadata.name.value
        logger.debug("Replaying session %s (%d commands)", name, session_data.command_count)

        for command in session_data.commands:
            code = decode(command.code)
            if code == HISTORY_SENTINEL:
                continue
            if out is not None:
                out.print(f"[bright_black]>>>[/bright_black] {escape(code)}", highlight=False)
            try:
                value = interpreter.execute(code)
                if display_output and value is not None:
                    interpreter.write_return_value(value)
                result.executed += 1
            except (Exception, SystemExit) as exc:
                result.failed += 1
                logger.debug("Command %d of %s failed: %r", command.order, name, exc)
                if out is not None:
                    out.print(f"[red]Failed to execute: {escape(str(exc))}[/red]")

        tracker.load_commands(session_data.commands)
        tracker.set_loaded_session_name(name)
        self.last_result = result
        return result

    def execute_with_summary(
        self,
        interpreter: Interpreter,
        session_data: SessionData,
        tracker: SessionTracker,
        out: Console,
    ) -> ExecutionResult:
        """execute() followed by the summary line."""
        result = self.execute(interpreter, session_data, tracker, out)
        self.display_execution_summary(out, result)
        return result

    @staticmethod
    def display_execution_summary(out: Console, result: ExecutionResult) -> None:
        failed = f" ({result.failed} failed)" if result.failed else ""
        out.print()
        out.print(f"[green]Executed {result.executed} command(s){failed}[/green]")
        out.print("[yellow]You can continue working and use 'session:update' to save new commands.[/yellow]")
        out.print()
