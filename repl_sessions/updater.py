"""
Incremental update of a loaded session with commands typed since it was replayed.

Copyright (c) 2026 Andrew Hundt
Licensed under the Apache License, Version 2.0
"""

import logging
from typing import Iterable, List, Optional

from .errors import NoSessionLoadedError
from .filters import UPDATE_COMMAND_PATTERN, CommandFilter
from .history import HistoryReader
from .models import (
    CommandEntry,
    SessionData,
    SessionDescription,
    SessionMetadata,
    SessionTags,
    UpdateResult,
    utc_now_iso,
)
from .store import SessionStore
from .tracker import SessionTracker

logger = logging.getLogger(__name__)


def merge_commands(existing: List[CommandEntry], new_codes: Iterable[str]) -> List[CommandEntry]:
    """Append new codes after existing entries, numbering from max(order) + 1.

    Existing entries are kept as-is, including their order values.
    """
    next_order = max((c.order for c in existing), default=0) + 1
    merged = list(existing)
    for code in new_codes:
        merged.append(CommandEntry(code=code, output=None, timestamp=utc_now_iso(), order=next_order))
        next_order += 1
    return merged


class SessionUpdater:
    """Merge new history lines into the session replayed into this shell."""

    def __init__(self, store: SessionStore, history: HistoryReader):
        self.store = store
        self.history = history
        self.filter = CommandFilter(extra_patterns=[UPDATE_COMMAND_PATTERN])

    def update(
        self,
        tracker: SessionTracker,
        description: Optional[SessionDescription] = None,
        tags: Optional[SessionTags] = None,
    ) -> UpdateResult:
        """Append commands captured since the watermark to the loaded session.

        Nothing is written when no new commands were captured.

        Raises:
            NoSessionLoadedError: No session was replayed into this shell.
            SessionNotFoundError: The loaded session was deleted meanwhile.
            SessionCorruptError, SessionStorageError: Reading or writing failed.
        """
        if not tracker.has_loaded_session:
            raise NoSessionLoadedError()

        existing = self.store.load(tracker.loaded_session_name)
        new_codes = self.history.capture_since(tracker.session_start_line, self.filter)
        if not new_codes:
            return UpdateResult(name=existing.metadata.name.value, added=0, total=existing.command_count)

        merged = merge_commands(existing.commands, new_codes)
        metadata = existing.metadata
        updated = SessionData(
            metadata=SessionMetadata(
                name=metadata.name,
                description=description if description is not None else metadata.description,
                tags=tags if tags is not None else metadata.tags,
                created_at=metadata.created_at,
                interpreter_version=metadata.interpreter_version,
                runtime_version=metadata.runtime_version,
            ).with_updated_timestamp(),
            commands=merged,
            variables=existing.variables,
            session_metadata={**existing.session_metadata, "total_commands": len(merged)},
        )
        self.store.update(updated)

        tracker.load_commands(merged)
        tracker.session_start_line = self.history.line_count()
        logger.debug("Updated session %s with %d new commands", metadata.name, len(new_codes))
        return UpdateResult(name=metadata.name.value, added=len(new_codes), total=len(merged))
