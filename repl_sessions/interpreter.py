"""
Namespace-backed Python interpreter used for session replay.

Copyright (c) 2026 Andrew Hundt
Licensed under the Apache License, Version 2.0
"""

import builtins
import types
from typing import Any, Dict, Iterator, Optional, Tuple

from rich.console import Console


class PythonInterpreter:
    """Evaluate source strings in one shared namespace.

    The interactive shell runs on the same namespace dict, so names defined
    by a replayed session are visible at the prompt afterwards.
    """

    def __init__(self, namespace: Optional[Dict[str, Any]] = None, console: Optional[Console] = None):
        self.namespace: Dict[str, Any] = namespace if namespace is not None else {}
        self.namespace.setdefault("__name__", "__console__")
        self.namespace.setdefault("__builtins__", builtins)
        self.console = console or Console()

    def execute(self, code: str) -> Any:
        """Evaluate an expression (returning its value) or execute statements (returning None).

        Raises whatever the code raises, including SyntaxError.
        """
        try:
            compiled = compile(code, "<session>", "eval")
        except SyntaxError:
            exec(compile(code, "<session>", "exec"), self.namespace)
            return None
        return eval(compiled, self.namespace)

    def write_return_value(self, value: Any) -> None:
        self.console.print(f"=> {value!r}", markup=False, highlight=False)

    def user_variables(self) -> Iterator[Tuple[str, Any]]:
        """Yield (name, value) for names a user defined: no dunders, modules or underscored names."""
        for name, value in list(self.namespace.items()):
            if name.startswith("_") or isinstance(value, types.ModuleType):
                continue
            yield name, value
