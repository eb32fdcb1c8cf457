"""Domain errors for the reader engine."""

from __future__ import annotations

from typing import Optional


class ReaderError(Exception):
    """Base class for reader failures carrying the offending reference."""

    def __init__(self, message: str, *, ref: Optional[str] = None) -> None:
        super().__init__(message)
        self.ref = ref


class FetchError(ReaderError):
    """The chapter fetch service failed (transport error or bad response)."""


class ChapterNotFound(ReaderError):
    """A reference did not resolve to any content."""


class SessionNotFound(ReaderError):
    """No reader session exists for the given identifier."""

    def __init__(self, session_id: str) -> None:
        super().__init__(f"Reader session '{session_id}' not found")
        self.session_id = session_id


class ContiguityError(ReaderError):
    """A fetched chapter does not continue the window it was requested for."""


class SettingsError(ReaderError):
    """Stored display settings could not be read or written."""
