"""
Periodic auto-save of the live session, driven by the shell's loop hook.

Copyright (c) 2026 Andrew Hundt
Licensed under the Apache License, Version 2.0
"""

import datetime
import logging
from typing import Callable, Optional

from .errors import SessionError
from .history import HistoryReader
from .models import SessionDescription, SessionMetadata, SessionName, SessionTags
from .store import SessionStore
from .tracker import SessionTracker
from .types import LoopHookHost

logger = logging.getLogger(__name__)

AUTO_SAVE_PREFIX = "session-auto-saved-"
AUTO_SAVE_DESCRIPTION = "Auto-saved session"
AUTO_SAVE_TAG = "auto-saved"


class AutoSaveController:
    """Save the live session once it is big enough or old enough.

    The first auto-save picks a timestamped name; every later auto-save in
    the same process overwrites that one file.
    """

    def __init__(
        self,
        store: SessionStore,
        tracker: SessionTracker,
        history: HistoryReader,
        enabled: bool = False,
        min_commands: int = 5,
        interval_seconds: int = 300,
        clock: Callable[[], datetime.datetime] = datetime.datetime.now,
    ):
        self.store = store
        self.tracker = tracker
        self.history = history
        self.enabled = enabled
        self.min_commands = min_commands
        self.interval_seconds = interval_seconds
        self._clock = clock
        self.auto_saved_name: Optional[str] = None

    @property
    def has_auto_saved(self) -> bool:
        return self.auto_saved_name is not None

    def should_auto_save(self) -> bool:
        if not self.enabled:
            return False
        return (
            self.tracker.command_count >= self.min_commands
            or self.tracker.duration >= self.interval_seconds
        )

    def perform_auto_save(self) -> Optional[str]:
        """Save under the auto-save name; return it, or None when there is nothing to save."""
        if not self.tracker.has_commands:
            return None
        if self.auto_saved_name is None:
            self.auto_saved_name = AUTO_SAVE_PREFIX + self._clock().strftime("%Y-%m-%d-%H%M%S")

        metadata = SessionMetadata(
            name=SessionName(self.auto_saved_name),
            description=SessionDescription(AUTO_SAVE_DESCRIPTION),
            tags=SessionTags([AUTO_SAVE_TAG]),
        )
        self.store.save(metadata, self.tracker)
        logger.debug("Auto-saved %d commands to %s", self.tracker.command_count, self.auto_saved_name)
        return self.auto_saved_name

    def attach(self, host: LoopHookHost) -> None:
        """Run tick after every read-eval-print cycle of host."""
        host.add_loop_hook(self.tick)

    def tick(self) -> None:
        """Loop hook: capture history, then auto-save if due. Never raises."""
        if not self.enabled:
            return
        try:
            self.history.capture_into(self.tracker)
            if self.should_auto_save():
                self.perform_auto_save()
        except (SessionError, OSError) as exc:
            logger.warning("Auto-save failed: %s", exc)
