"""
Data models for interactive sessions - value objects, command entries and
the stored session aggregate.

Value objects validate eagerly: constructing one with bad input raises
ValidationError, so an instance that exists is always valid.

Copyright (c) 2026 Andrew Hundt
Licensed under the Apache License, Version 2.0
"""

import datetime
import re
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Dict, Iterable, Iterator, List, Optional, Union

from .errors import ValidationError

if TYPE_CHECKING:
    from .tracker import SessionTracker

#: Identifier character class shared by session names and tags.
IDENTIFIER_RE = re.compile(r"[A-Za-z0-9_-]+")

MAX_TAG_LENGTH = 50
MAX_TAGS = 10
MAX_DESCRIPTION_LENGTH = 500

#: Single timestamp format for everything written to disk.
#: Lexicographic order of these strings equals chronological order.
TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%SZ"


def utc_now_iso() -> str:
    """Current UTC time as an ISO-8601 string (``2026-01-24T10:00:00Z``)."""
    return datetime.datetime.now(datetime.timezone.utc).strftime(TIMESTAMP_FORMAT)


@dataclass(frozen=True)
class SessionName:
    """Validated session name, also used as the storage file basename."""

    value: str

    def __post_init__(self):
        if not isinstance(self.value, str) or not self.value.strip():
            raise ValidationError(["Session name cannot be empty"])
        if not IDENTIFIER_RE.fullmatch(self.value):
            raise ValidationError(
                ["Session name must contain only alphanumeric characters, hyphens, and underscores"]
            )

    @classmethod
    def from_optional(cls, value: Optional[str]) -> Optional["SessionName"]:
        """Return None for None or blank input, otherwise a validated name."""
        if value is None or not value.strip():
            return None
        return cls(value)

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class SessionTag:
    """Single tag, trimmed and lowercased before validation."""

    value: str

    def __post_init__(self):
        normalized = str(self.value).strip().lower()
        object.__setattr__(self, "value", normalized)
        errors = []
        if not normalized:
            errors.append("Tag cannot be empty")
        elif not IDENTIFIER_RE.fullmatch(normalized):
            errors.append("Tag must contain only alphanumeric characters, hyphens, and underscores")
        if len(normalized) > MAX_TAG_LENGTH:
            errors.append(f"Tag cannot exceed {MAX_TAG_LENGTH} characters")
        if errors:
            raise ValidationError(errors)

    def __str__(self) -> str:
        return self.value


class SessionTags:
    """Ordered, case-insensitively unique set of at most ten tags.

    Duplicates collapse silently; more than MAX_TAGS distinct tags is a
    ValidationError rather than a silent truncation. add() and remove()
    return new instances.
    """

    def __init__(self, tags: Iterable[Union[str, SessionTag]] = ()):
        unique: List[SessionTag] = []
        for tag in tags:
            normalized = tag if isinstance(tag, SessionTag) else SessionTag(tag)
            if normalized not in unique:
                unique.append(normalized)
        if len(unique) > MAX_TAGS:
            raise ValidationError([f"tags: Cannot exceed {MAX_TAGS} tags"])
        self._tags = tuple(unique)

    @classmethod
    def parse(cls, values: Optional[Iterable[str]]) -> "SessionTags":
        """Build from CLI values, splitting each on commas: ["a,b", "c"] -> a, b, c."""
        if not values:
            return cls()
        split = [part for value in values for part in value.split(",") if part.strip()]
        return cls(split)

    def to_list(self) -> List[str]:
        return [tag.value for tag in self._tags]

    def contains(self, tag: Union[str, SessionTag]) -> bool:
        wanted = tag if isinstance(tag, SessionTag) else SessionTag(tag)
        return wanted in self._tags

    def has_all(self, tags: Iterable[Union[str, SessionTag]]) -> bool:
        """True when every given tag is in this collection (used for list filtering)."""
        return all(self.contains(tag) for tag in tags)

    def add(self, tags: Iterable[Union[str, SessionTag]]) -> "SessionTags":
        return SessionTags(list(self._tags) + list(tags))

    def remove(self, tags: Iterable[Union[str, SessionTag]]) -> "SessionTags":
        dropped = {t if isinstance(t, SessionTag) else SessionTag(t) for t in tags}
        return SessionTags(t for t in self._tags if t not in dropped)

    def __iter__(self) -> Iterator[SessionTag]:
        return iter(self._tags)

    def __len__(self) -> int:
        return len(self._tags)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, SessionTags):
            return NotImplemented
        return self._tags == other._tags

    def __repr__(self) -> str:
        return f"SessionTags({self.to_list()!r})"


@dataclass(frozen=True)
class SessionDescription:
    """Free-text description, at most 500 characters."""

    value: str

    def __post_init__(self):
        if len(self.value) > MAX_DESCRIPTION_LENGTH:
            raise ValidationError(["Session description is too long"])

    @classmethod
    def from_optional(cls, value: Optional[str]) -> Optional["SessionDescription"]:
        """Blank input means "no description", never an empty one."""
        if value is None or not value.strip():
            return None
        return cls(value)

    def __str__(self) -> str:
        return self.value


@dataclass
class CommandEntry:
    """One captured command.

    ``order`` is assigned once at capture time and stored verbatim; it is
    never recomputed from list position, so merged sessions keep their
    original numbering.
    """

    code: str
    output: Optional[str] = None
    timestamp: str = ""
    order: int = 0

    @classmethod
    def from_dict(cls, data: Dict[str, Any], position: int = 0) -> "CommandEntry":
        """Build from a stored dict. ``position`` (0-based) only backfills a missing order."""
        order = data.get("order")
        return cls(
            code=str(data.get("code", "")),
            output=data.get("output"),
            timestamp=str(data.get("timestamp") or ""),
            order=int(order) if order is not None else position + 1,
        )

    def to_dict(self) -> dict:
        return {
            "code": self.code,
            "output": self.output,
            "timestamp": self.timestamp,
            "order": self.order,
        }


@dataclass
class SessionMetadata:
    """Descriptive data stored alongside a session's commands."""

    name: SessionName
    description: Optional[SessionDescription] = None
    tags: SessionTags = field(default_factory=SessionTags)
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
    interpreter_version: Optional[str] = None
    runtime_version: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SessionMetadata":
        return cls(
            name=SessionName(data["name"]),
            description=SessionDescription.from_optional(data.get("description")),
            tags=SessionTags(data.get("tags") or []),
            created_at=data.get("created_at"),
            updated_at=data.get("updated_at"),
            interpreter_version=data.get("interpreter_version"),
            runtime_version=data.get("runtime_version"),
        )

    def to_dict(self) -> dict:
        return {
            "name": self.name.value,
            "description": self.description.value if self.description else None,
            "tags": self.tags.to_list(),
            "created_at": self.created_at,
            "updated_at": self.updated_at,
            "interpreter_version": self.interpreter_version,
            "runtime_version": self.runtime_version,
        }

    def with_updated_timestamp(self) -> "SessionMetadata":
        """Copy with updated_at = now; created_at defaults to now if still unset."""
        now = utc_now_iso()
        return SessionMetadata(
            name=self.name,
            description=self.description,
            tags=self.tags,
            created_at=self.created_at or now,
            updated_at=now,
            interpreter_version=self.interpreter_version,
            runtime_version=self.runtime_version,
        )

    @property
    def has_description(self) -> bool:
        return self.description is not None

    @property
    def has_tags(self) -> bool:
        return len(self.tags) > 0


@dataclass
class SessionData:
    """Complete stored session: metadata, commands, variables and statistics.

    This is the unit of storage - the store always reads and writes whole
    documents built from one of these.
    """

    metadata: SessionMetadata
    commands: List[CommandEntry] = field(default_factory=list)
    variables: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    session_metadata: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_tracker(
        cls, metadata: SessionMetadata, tracker: "SessionTracker", project_path: str
    ) -> "SessionData":
        return cls(
            metadata=metadata.with_updated_timestamp(),
            commands=list(tracker.commands),
            variables=dict(tracker.variables),
            session_metadata={
                "total_commands": tracker.command_count,
                "duration_seconds": tracker.duration,
                "project_path": project_path,
                "started_at": tracker.started_at.strftime(TIMESTAMP_FORMAT),
            },
        )

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SessionData":
        return cls(
            metadata=SessionMetadata.from_dict(data),
            commands=[CommandEntry.from_dict(c, i) for i, c in enumerate(data.get("commands") or [])],
            variables=dict(data.get("variables") or {}),
            session_metadata=dict(data.get("metadata") or {}),
        )

    def to_dict(self) -> dict:
        result = self.metadata.to_dict()
        result["commands"] = [c.to_dict() for c in self.commands]
        result["variables"] = self.variables
        result["metadata"] = self.session_metadata
        return result

    @property
    def command_count(self) -> int:
        return len(self.commands)

    @property
    def has_commands(self) -> bool:
        return bool(self.commands)

    @property
    def has_variables(self) -> bool:
        return bool(self.variables)


@dataclass
class SessionSummary:
    """One row of a session listing."""

    name: str
    description: Optional[str]
    tags: List[str]
    created_at: Optional[str]
    updated_at: Optional[str]
    command_count: int
    interpreter_version: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "description": self.description,
            "tags": self.tags,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
            "command_count": self.command_count,
            "interpreter_version": self.interpreter_version,
        }


@dataclass
class ExecutionResult:
    """Replay outcome: commands that ran and commands that raised."""

    executed: int = 0
    failed: int = 0

    def to_dict(self) -> dict:
        return {"executed": self.executed, "failed": self.failed}


@dataclass
class UpdateResult:
    """Outcome of merging new history lines into a loaded session."""

    name: str
    added: int = 0
    total: int = 0

    @property
    def has_changes(self) -> bool:
        return self.added > 0
