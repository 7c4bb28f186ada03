"""Persistence helpers for reading and writing session documents."""
from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, Mapping

from pydantic import ValidationError

from .errors import MalformedInputError
from .models import PersistedSession
from .pattern_library import PatternLibrary

logger = logging.getLogger(__name__)


class SessionSerializer:
    """Serialize :class:`PersistedSession` instances to/from JSON-compatible dicts."""

    @staticmethod
    def to_dict(session: PersistedSession) -> Dict[str, Any]:
        """Convert a session to a JSON-ready dictionary using camelCase keys."""

        return session.model_dump(mode="json", by_alias=True)

    @staticmethod
    def from_dict(payload: Mapping[str, Any]) -> PersistedSession:
        """Rehydrate a session, falling back to defaults for missing or invalid fields."""

        if not isinstance(payload, Mapping):
            raise MalformedInputError("Persisted session must be a JSON object")
        try:
            return PersistedSession.model_validate(dict(payload))
        except ValidationError as exc:
            logger.warning(
                "Persisted session failed validation with %d error(s); recovering field by field",
                exc.error_count(),
            )
        kept: Dict[str, Any] = {}
        for key, value in payload.items():
            try:
                PersistedSession.model_validate({key: value})
            except ValidationError:
                logger.warning("Discarding invalid persisted field %r; using its default", key)
                continue
            kept[key] = value
        try:
            return PersistedSession.model_validate(kept)
        except ValidationError as exc:
            raise MalformedInputError("Persisted session could not be recovered") from exc


class SessionFileAdapter:
    """Filesystem adapter that persists session documents under a base path."""

    def __init__(self, base_path: Path) -> None:
        self.base_path = base_path

    def save(self, session: PersistedSession, filename: str) -> Path:
        """Write the session to ``base_path / filename`` and return the path."""

        destination = self.base_path / filename
        destination.parent.mkdir(parents=True, exist_ok=True)
        data = json.dumps(SessionSerializer.to_dict(session), indent=2)
        destination.write_text(data, encoding="utf-8")
        return destination

    def load(self, filename: str) -> PersistedSession:
        """Load the session stored at ``base_path / filename``."""

        source = self.base_path / filename
        try:
            payload = json.loads(source.read_text(encoding="utf-8"))
        except json.JSONDecodeError as exc:
            raise MalformedInputError(f"Session file {source} is not valid JSON") from exc
        return SessionSerializer.from_dict(payload)


class PatternLibraryFileAdapter:
    """Read and write the ``[name, record]`` pattern export format."""

    @staticmethod
    def write(library: PatternLibrary, destination: Path) -> Path:
        destination.parent.mkdir(parents=True, exist_ok=True)
        destination.write_text(json.dumps(library.export(), indent=2), encoding="utf-8")
        return destination

    @staticmethod
    def read(source: Path) -> Any:
        """Return the decoded export payload; validation happens on import."""

        try:
            return json.loads(source.read_text(encoding="utf-8"))
        except json.JSONDecodeError as exc:
            raise MalformedInputError(f"Pattern file {source} is not valid JSON") from exc


__all__ = ["PatternLibraryFileAdapter", "SessionFileAdapter", "SessionSerializer"]
