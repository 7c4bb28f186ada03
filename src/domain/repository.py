"""Repository abstractions for session persistence backends.

These interfaces layer on top of :mod:`domain.persistence` so the
session engine can autosave to a local directory in production and to
a dictionary in tests without knowing which backend it talks to.
"""
from __future__ import annotations

from dataclasses import dataclass
import logging
from pathlib import Path
from typing import Any, Dict, Iterable, Protocol

from .errors import MalformedInputError, NotFoundError, SessionError
from .models import PersistedSession
from .persistence import SessionFileAdapter, SessionSerializer

logger = logging.getLogger(__name__)


class SessionRepositoryError(SessionError):
    """Base error for repository failures."""


class SessionNotFoundError(SessionRepositoryError, NotFoundError):
    """Raised when a requested session cannot be located."""


@dataclass(frozen=True)
class SessionSummary:
    """Lightweight descriptor for enumerating stored sessions."""

    identifier: str
    track_count: int
    pattern_count: int
    location: str


def _check_identifier(identifier: str) -> str:
    """Storage keys name a single document, never a path."""

    if not identifier or identifier.startswith(".") or any(sep in identifier for sep in ("/", "\\")):
        raise SessionRepositoryError(f"Invalid session identifier {identifier!r}")
    return identifier


def _summarize(identifier: str, session: PersistedSession, location: str) -> SessionSummary:
    return SessionSummary(
        identifier=identifier,
        track_count=len(session.sequencer_state),
        pattern_count=len(session.saved_patterns),
        location=location,
    )


class SessionRepository(Protocol):
    """Minimal interface shared by session storage backends."""

    def save(self, identifier: str, session: PersistedSession) -> SessionSummary:
        """Persist the session and return a :class:`SessionSummary`."""

    def load(self, identifier: str) -> PersistedSession:
        """Retrieve a session by identifier."""

    def delete(self, identifier: str) -> None:
        """Remove the session from the backing store."""

    def list(self) -> Iterable[SessionSummary]:
        """Iterate over available sessions."""


class LocalSessionRepository(SessionRepository):
    """Directory of autosaved session documents, one JSON file per key.

    Every mutation of the engine autosaves, so a document is written to a
    sibling temporary file first and moved into place. A crash mid-write
    leaves the previous document readable.
    """

    def __init__(self, adapter: SessionFileAdapter, *, extension: str = ".json") -> None:
        self._adapter = adapter
        self._extension = extension

    @classmethod
    def in_directory(cls, directory: Path, *, extension: str = ".json") -> "LocalSessionRepository":
        return cls(SessionFileAdapter(Path(directory)), extension=extension)

    @property
    def directory(self) -> Path:
        return self._adapter.base_path

    def _filename(self, identifier: str) -> str:
        return f"{_check_identifier(identifier)}{self._extension}"

    def _path_for(self, identifier: str) -> Path:
        return self._adapter.base_path / self._filename(identifier)

    def save(self, identifier: str, session: PersistedSession) -> SessionSummary:
        filename = self._filename(identifier)
        staging = f"{filename}.tmp"
        try:
            written = self._adapter.save(session, staging)
            destination = written.replace(self._adapter.base_path / filename)
        except OSError as exc:
            raise SessionRepositoryError(f"Could not write session {identifier!r}: {exc}") from exc
        return _summarize(identifier, session, str(destination))

    def load(self, identifier: str) -> PersistedSession:
        path = self._path_for(identifier)
        if not path.exists():
            raise SessionNotFoundError(f"Session {identifier!r} not found at {path}")
        return self._adapter.load(path.name)

    def delete(self, identifier: str) -> None:
        path = self._path_for(identifier)
        if not path.exists():
            raise SessionNotFoundError(f"Session {identifier!r} not found at {path}")
        path.unlink()

    def list(self) -> Iterable[SessionSummary]:
        """Summarize readable documents; unreadable ones are logged and skipped."""

        for file_path in sorted(self._adapter.base_path.glob(f"*{self._extension}")):
            try:
                session = self._adapter.load(file_path.name)
            except MalformedInputError as exc:
                logger.warning("Skipping unreadable session file %s: %s", file_path, exc)
                continue
            yield _summarize(file_path.stem, session, str(file_path))


class InMemorySessionRepository(SessionRepository):
    """Dictionary-backed repository suitable for tests.

    Sessions are kept in their serialized form so that what a test reads
    back went through the same codec as a document on disk.
    """

    def __init__(self) -> None:
        self._storage: Dict[str, Dict[str, Any]] = {}

    def save(self, identifier: str, session: PersistedSession) -> SessionSummary:
        self._storage[_check_identifier(identifier)] = SessionSerializer.to_dict(session)
        return _summarize(identifier, session, "in-memory")

    def load(self, identifier: str) -> PersistedSession:
        try:
            payload = self._storage[identifier]
        except KeyError as exc:
            raise SessionNotFoundError(f"Session {identifier!r} not found in memory") from exc
        return SessionSerializer.from_dict(payload)

    def delete(self, identifier: str) -> None:
        if identifier not in self._storage:
            raise SessionNotFoundError(f"Session {identifier!r} not found in memory")
        del self._storage[identifier]

    def list(self) -> Iterable[SessionSummary]:
        for identifier, payload in self._storage.items():
            yield _summarize(identifier, SessionSerializer.from_dict(payload), "in-memory")


__all__ = [
    "InMemorySessionRepository",
    "LocalSessionRepository",
    "SessionNotFoundError",
    "SessionRepository",
    "SessionRepositoryError",
    "SessionSummary",
]
