"""
Interactive Python shell that records its input and understands ``session:*`` commands.

Copyright (c) 2026 Andrew Hundt
Licensed under the Apache License, Version 2.0
"""

import code
import logging
import platform
import shlex
from typing import Callable, List, Optional

from .context import SessionContext
from .decoder import encode_history_line
from .interpreter import PythonInterpreter

logger = logging.getLogger(__name__)

SESSION_PREFIX = "session:"

BANNER = (
    "Python {version} session shell\n"
    "Session commands: session:list, session:save [NAME], session:view NAME, "
    "session:execute NAME, session:update, session:edit NAME, session:delete NAME\n"
    "Add --help to any of them for options. Ctrl-D exits."
)


class SessionShell(code.InteractiveConsole):
    """InteractiveConsole that appends every completed entry to the history log.

    Lines starting with ``session:`` are not Python: they are split with
    shlex and handed to ``dispatch`` (the CLI command group). Loop hooks
    run after every completed entry.
    """

    def __init__(
        self,
        context: SessionContext,
        dispatch: Optional[Callable[[List[str]], None]] = None,
    ):
        interpreter = context.interpreter
        namespace = interpreter.namespace if isinstance(interpreter, PythonInterpreter) else None
        super().__init__(locals=namespace, filename="<session>")
        self.context = context
        self.dispatch = dispatch
        self._loop_hooks: List[Callable[[], None]] = []

    def add_loop_hook(self, hook: Callable[[], None]) -> None:
        self._loop_hooks.append(hook)

    def run_loop_hooks(self) -> None:
        for hook in self._loop_hooks:
            hook()

    def append_history(self, source: str) -> None:
        """Append one entry to the history log; failures are logged, never raised."""
        history_file = self.context.config.history_file
        try:
            history_file.parent.mkdir(parents=True, exist_ok=True)
            with open(history_file, "a", encoding="utf-8") as f:
                f.write(encode_history_line(source) + "\n")
        except OSError as exc:
            logger.warning("Could not write history file %s: %s", history_file, exc)

    def push(self, line):
        stripped = line.strip()
        if not self.buffer and stripped.startswith(SESSION_PREFIX):
            self.append_history(stripped)
            self.run_session_command(stripped)
            self.run_loop_hooks()
            return False

        source = "\n".join(self.buffer + [line])
        more = super().push(line)
        if not more:
            if source.strip():
                self.append_history(source.rstrip())
            self.run_loop_hooks()
        return more

    def run_session_command(self, line: str) -> None:
        """Turn ``session:save demo -t api`` into ``["save", "demo", "-t", "api"]`` and dispatch it."""
        try:
            args = shlex.split(line[len(SESSION_PREFIX):])
        except ValueError as exc:
            self.context.console.print(f"[red]Invalid session command: {exc}[/red]")
            return
        if not args:
            args = ["--help"]
        if self.dispatch is None:
            self.context.console.print("[red]Session commands are not available in this shell.[/red]")
            return
        self.dispatch(args)

    def run(self) -> None:
        """Read-eval-print until EOF or exit()."""
        self.context.in_shell = True
        self.context.autosave.attach(self)
        try:
            self.interact(banner=BANNER.format(version=platform.python_version()), exitmsg="")
        except SystemExit:
            pass
        finally:
            self.context.in_shell = False
