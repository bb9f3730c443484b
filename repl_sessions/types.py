"""
Type protocols for the collaborators the session engine calls into.

Protocols allow dependency injection and multiple implementations.

Copyright (c) 2026 Andrew Hundt
Licensed under the Apache License, Version 2.0
"""

from typing import Any, Callable, Protocol, runtime_checkable


@runtime_checkable
class Interpreter(Protocol):
    """A live interpreter that session replay submits code to."""

    def execute(self, code: str) -> Any:
        """Run code and return its value; raise on evaluation errors."""
        ...

    def write_return_value(self, value: Any) -> None:
        """Display a non-None result."""
        ...


@runtime_checkable
class LoopHookHost(Protocol):
    """A shell that runs callbacks after each read-eval-print cycle."""

    def add_loop_hook(self, hook: Callable[[], None]) -> None:
        """Register a callback fired after every completed cycle."""
        ...
