"""
File-backed session store - one pretty-printed JSON document per session.

Copyright (c) 2026 Andrew Hundt
Licensed under the Apache License, Version 2.0
"""

import json
import logging
import os
import platform
import tempfile
from pathlib import Path
from typing import Iterable, List, Optional, Union

from .errors import (
    SessionCorruptError,
    SessionNotFoundError,
    SessionStorageError,
    ValidationError,
)
from .models import SessionData, SessionMetadata, SessionName, SessionSummary
from .tracker import SessionTracker

logger = logging.getLogger(__name__)

NameLike = Union[SessionName, str]


def _runtime_version() -> str:
    from . import __version__

    return __version__


def _optional_str(data: dict, key: str) -> Optional[str]:
    value = data.get(key)
    if value is not None and not isinstance(value, str):
        raise TypeError(f"'{key}' must be a string, got {type(value).__name__}")
    return value


def _summary_from(data: object, default_name: str) -> SessionSummary:
    """Listing row for one parsed session document.

    Raises:
        TypeError: The document or one of its listed fields has the wrong shape.
    """
    if not isinstance(data, dict):
        raise TypeError("top-level JSON value is not an object")

    tags = data.get("tags") or []
    if not isinstance(tags, list):
        raise TypeError(f"'tags' must be a list, got {type(tags).__name__}")

    stats = data.get("metadata") if isinstance(data.get("metadata"), dict) else {}
    command_count = stats.get("total_commands")
    if command_count is None:
        commands = data.get("commands") or []
        if not isinstance(commands, list):
            raise TypeError(f"'commands' must be a list, got {type(commands).__name__}")
        command_count = len(commands)
    elif isinstance(command_count, bool) or not isinstance(command_count, int):
        raise TypeError(f"'total_commands' must be an integer, got {type(command_count).__name__}")

    return SessionSummary(
        name=_optional_str(data, "name") or default_name,
        description=_optional_str(data, "description"),
        tags=[str(t) for t in tags],
        created_at=_optional_str(data, "created_at"),
        updated_at=_optional_str(data, "updated_at"),
        command_count=command_count,
        interpreter_version=_optional_str(data, "interpreter_version"),
    )


class SessionStore:
    """CRUD over session documents in a single directory."""

    def __init__(self, sessions_dir: Path, project_path: Optional[str] = None):
        """Initialize the store, creating sessions_dir if needed.

        Args:
            sessions_dir: Directory holding ``<name>.json`` files.
            project_path: Recorded in each saved session (default: current directory).
        """
        self.sessions_dir = Path(sessions_dir)
        self.project_path = project_path or os.getcwd()
        self._ensure_storage_dir()

    def _ensure_storage_dir(self) -> None:
        try:
            self.sessions_dir.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise SessionStorageError(f"Cannot create session directory {self.sessions_dir}: {exc}") from exc

    @staticmethod
    def _name(name: NameLike) -> SessionName:
        return name if isinstance(name, SessionName) else SessionName(name)

    def path_for(self, name: NameLike) -> Path:
        """On-disk path for a session: basename only, always ending in .json."""
        safe_name = os.path.basename(self._name(name).value)
        if not safe_name.endswith(".json"):
            safe_name += ".json"
        return self.sessions_dir / safe_name

    def exists(self, name: NameLike) -> bool:
        return self.path_for(name).is_file()

    def save(self, metadata: SessionMetadata, tracker: SessionTracker) -> SessionData:
        """Create or overwrite a session from the tracker's current state.

        An existing session's created_at is carried forward; updated_at is
        always refreshed. An existing file that cannot be decoded is replaced.

        Returns:
            The SessionData that was written.

        Raises:
            SessionStorageError: Serialization or the write failed.
        """
        created_at = metadata.created_at
        if self.exists(metadata.name):
            try:
                created_at = self.load(metadata.name).metadata.created_at or created_at
            except SessionCorruptError as exc:
                logger.warning("Replacing unreadable session %s: %s", metadata.name, exc)

        session_data = SessionData.from_tracker(
            SessionMetadata(
                name=metadata.name,
                description=metadata.description,
                tags=metadata.tags,
                created_at=created_at,
                interpreter_version=platform.python_version(),
                runtime_version=_runtime_version(),
            ),
            tracker,
            self.project_path,
        )
        self._write(session_data)
        logger.debug("Saved session %s (%d commands)", metadata.name, session_data.command_count)
        return session_data

    def load(self, name: NameLike) -> SessionData:
        """Read a session.

        Raises:
            SessionNotFoundError: No file for this name.
            SessionCorruptError: The file is not a decodable session document.
            SessionStorageError: The file could not be read.
        """
        session_name = self._name(name)
        path = self.path_for(session_name)
        if not path.is_file():
            raise SessionNotFoundError(session_name.value)
        try:
            raw = path.read_text(encoding="utf-8")
        except OSError as exc:
            raise SessionStorageError(f"Failed to read session '{session_name}': {exc}", session_name.value) from exc
        except UnicodeDecodeError as exc:
            raise SessionCorruptError(session_name.value, str(exc)) from exc
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise SessionCorruptError(session_name.value, str(exc)) from exc
        if not isinstance(data, dict):
            raise SessionCorruptError(session_name.value, "top-level JSON value is not an object")
        try:
            return SessionData.from_dict(data)
        except (KeyError, TypeError, ValueError, ValidationError) as exc:
            raise SessionCorruptError(session_name.value, str(exc)) from exc

    def update(self, session_data: SessionData) -> None:
        """Overwrite an existing session document as-is.

        Raises:
            SessionNotFoundError: The session does not exist yet.
            SessionStorageError: Serialization or the write failed.
        """
        if not self.exists(session_data.metadata.name):
            raise SessionNotFoundError(session_data.metadata.name.value)
        self._write(session_data)
        logger.debug("Updated session %s", session_data.metadata.name)

    def list(self, filter_tags: Iterable[str] = ()) -> List[SessionSummary]:
        """Summaries of all readable sessions, newest updated_at first.

        Files that cannot be read or parsed are skipped so one bad file does
        not hide the rest.

        Args:
            filter_tags: Keep only sessions carrying every one of these tags
                (case-insensitive). Empty means no filtering.
        """
        wanted = {t.strip().lower() for t in filter_tags if t.strip()}
        sessions: List[SessionSummary] = []

        for path in sorted(self.sessions_dir.glob("*.json")):
            try:
                data = json.loads(path.read_text(encoding="utf-8"))
            except (OSError, UnicodeDecodeError, json.JSONDecodeError) as exc:
                logger.warning("Skipping unreadable session file %s: %s", path.name, exc)
                continue
            try:
                summary = _summary_from(data, path.stem)
            except (TypeError, ValueError) as exc:
                logger.warning("Skipping malformed session file %s: %s", path.name, exc)
                continue

            if wanted and not wanted.issubset({t.lower() for t in summary.tags}):
                continue
            sessions.append(summary)

        sessions.sort(key=lambda s: str(s.updated_at or ""), reverse=True)
        return sessions

    def delete(self, name: NameLike) -> bool:
        """Remove a session file.

        Raises:
            SessionNotFoundError: No file for this name.
            SessionStorageError: The file could not be removed.
        """
        session_name = self._name(name)
        path = self.path_for(session_name)
        if not path.is_file():
            raise SessionNotFoundError(session_name.value)
        try:
            path.unlink()
        except OSError as exc:
            raise SessionStorageError(f"Failed to delete session '{session_name}': {exc}", session_name.value) from exc
        logger.debug("Deleted session %s", session_name)
        return True

    def names(self) -> List[str]:
        return [s.name for s in self.list()]

    def has_sessions(self) -> bool:
        return bool(self.names())

    def _write(self, session_data: SessionData) -> None:
        """Serialize fully, then replace the file atomically via a temp file."""
        name = session_data.metadata.name.value
        try:
            payload = json.dumps(session_data.to_dict(), indent=4, ensure_ascii=False)
        except (TypeError, ValueError) as exc:
            raise SessionStorageError(f"Failed to encode session '{name}' to JSON: {exc}", name) from exc

        path = self.path_for(session_data.metadata.name)
        tmp_name = None
        try:
            fd, tmp_name = tempfile.mkstemp(dir=self.sessions_dir, prefix=f".{name}.", suffix=".tmp")
            with os.fdopen(fd, "w", encoding="utf-8") as tmp_file:
                tmp_file.write(payload + "\n")
            os.replace(tmp_name, path)
        except OSError as exc:
            if tmp_name is not None:
                try:
                    os.unlink(tmp_name)
                except OSError:
                    pass
            raise SessionStorageError(f"Failed to write session to file {path}: {exc}", name) from exc
