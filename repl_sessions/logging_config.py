"""
Logging setup for the CLI and the interactive shell.

Call configure_logging() once at startup. Modules log through
``logging.getLogger(__name__)``:

- DEBUG: history reads, saves, replays
- WARNING: swallowed auto-save failures, skipped session files

Copyright (c) 2026 Andrew Hundt
Licensed under the Apache License, Version 2.0
"""

import logging
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler

LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")


def configure_logging(level: Optional[str] = None) -> None:
    """Install a rich handler on stderr at the given level (default WARNING)."""
    level = (level or "WARNING").upper()
    if level not in LEVELS:
        level = "WARNING"

    handler = RichHandler(
        console=Console(stderr=True),
        rich_tracebacks=False,
        show_path=False,
        show_time=True,
        markup=False,
    )
    handler.setFormatter(logging.Formatter("%(name)s | %(message)s"))

    logging.basicConfig(
        level=getattr(logging, level),
        handlers=[handler],
        force=True,
    )
