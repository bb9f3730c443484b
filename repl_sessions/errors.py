"""
Error taxonomy for session storage, validation and replay.

Copyright (c) 2026 Andrew Hundt
Licensed under the Apache License, Version 2.0
"""

from typing import List, Optional


class SessionError(Exception):
    """Base class for every error raised by repl_sessions."""


class ValidationError(SessionError, ValueError):
    """A value object rejected its input.

    Attributes:
        errors: One message per failed rule, in the order the rules were checked.
    """

    def __init__(self, errors: List[str]):
        self.errors = list(errors)
        super().__init__("; ".join(self.errors))

    @property
    def first_error(self) -> str:
        """Return the first failing rule's message (what the CLI shows)."""
        return self.errors[0] if self.errors else "Validation failed"


class SessionNotFoundError(SessionError, LookupError):
    """The named session has no file in the store."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Session '{name}' does not exist.")


class SessionCorruptError(SessionError):
    """The session file exists but cannot be decoded into a session."""

    def __init__(self, name: str, reason: str):
        self.name = name
        self.reason = reason
        super().__init__(f"Failed to decode session '{name}': {reason}")


class SessionStorageError(SessionError):
    """Reading or writing a session file failed."""

    def __init__(self, message: str, name: Optional[str] = None):
        self.name = name
        super().__init__(message)


class NoSessionLoadedError(SessionError):
    """An operation needs a loaded session but none was replayed in this shell."""

    def __init__(self):
        super().__init__("No session is currently loaded.")
