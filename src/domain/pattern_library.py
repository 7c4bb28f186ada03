"""Named collection of saved programs and their originating snapshots."""
from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, Iterator, List, Mapping

from pydantic import ValidationError

from .errors import DuplicateNameError, MalformedInputError, NotFoundError
from .models import MixSelection, SavedPattern, SessionState

logger = logging.getLogger(__name__)


def parse_export_entries(entries: Any) -> List[SavedPattern]:
    """Validate an export payload of ``[name, record]`` pairs.

    The whole payload is checked before anything is returned so callers
    can replace their library atomically.
    """

    if not isinstance(entries, (list, tuple)):
        raise MalformedInputError("Pattern import must be a list of [name, record] pairs")
    patterns: List[SavedPattern] = []
    seen: set[str] = set()
    for position, entry in enumerate(entries):
        if not isinstance(entry, (list, tuple)) or len(entry) != 2:
            raise MalformedInputError(f"Entry {position} is not a [name, record] pair")
        name, record = entry
        if not isinstance(name, str) or not name.strip():
            raise MalformedInputError(f"Entry {position} has an empty or non-string name")
        if not isinstance(record, Mapping):
            raise MalformedInputError(f"Entry {name!r} has no record mapping")
        if name in seen:
            raise MalformedInputError(f"Pattern name {name!r} appears more than once")
        try:
            pattern = SavedPattern.model_validate({**record, "name": name})
        except ValidationError as exc:
            raise MalformedInputError(
                f"Entry {name!r} failed validation with {exc.error_count()} error(s)"
            ) from exc
        seen.add(name)
        patterns.append(pattern)
    return patterns


class PatternLibrary:
    """Ordered mapping of unique pattern names to :class:`SavedPattern` records."""

    def __init__(self, patterns: Iterable[SavedPattern] = ()) -> None:
        self._patterns: Dict[str, SavedPattern] = {}
        for pattern in patterns:
            if pattern.name in self._patterns:
                raise DuplicateNameError(f"Pattern {pattern.name!r} already exists")
            self._patterns[pattern.name] = pattern.model_copy(deep=True)

    def __len__(self) -> int:
        return len(self._patterns)

    def __contains__(self, name: object) -> bool:
        return name in self._patterns

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._patterns))

    def names(self) -> List[str]:
        return list(self._patterns)

    def patterns(self) -> List[SavedPattern]:
        """Return deep copies of every saved pattern in library order."""

        return [pattern.model_copy(deep=True) for pattern in self._patterns.values()]

    def code_for(self, name: str) -> str | None:
        pattern = self._patterns.get(name)
        return pattern.code if pattern is not None else None

    def save(self, name: str, code: str, snapshot: SessionState) -> SavedPattern:
        """Store ``code`` with the session ``snapshot`` under a new ``name``."""

        name = name.strip()
        code = code.strip()
        if not name:
            raise MalformedInputError("Pattern name must not be empty")
        if not code:
            raise MalformedInputError("Cannot save an empty program")
        if name in self._patterns:
            raise DuplicateNameError(f"Pattern {name!r} already exists; delete it before saving again")
        pattern = SavedPattern(
            name=name,
            code=code,
            sequencer_state={key: list(steps) for key, steps in snapshot.sequencer_state.items()},
            track_configs={key: config.model_copy() for key, config in snapshot.track_configs.items()},
            synth_params=snapshot.synth_params.model_copy(),
        )
        self._patterns[name] = pattern
        logger.debug("Saved pattern %r (%d chars)", name, len(code))
        return pattern.model_copy(deep=True)

    def load(self, name: str) -> SavedPattern:
        try:
            pattern = self._patterns[name]
        except KeyError as exc:
            raise NotFoundError(f"Pattern {name!r} not found") from exc
        return pattern.model_copy(deep=True)

    def delete(self, name: str, *, selection: MixSelection | None = None) -> SavedPattern:
        """Remove ``name`` and drop any ``saved`` mix selection entry for it."""

        if name not in self._patterns:
            raise NotFoundError(f"Pattern {name!r} not found")
        removed = self._patterns.pop(name)
        if selection is not None:
            selection.discard("saved", name)
        logger.debug("Deleted pattern %r", name)
        return removed

    def export(self) -> List[List[Any]]:
        """Return the library as ordered ``[name, record]`` pairs."""

        return [[name, pattern.to_record()] for name, pattern in self._patterns.items()]

    def import_entries(self, entries: Any, *, selection: MixSelection | None = None) -> int:
        """Replace the whole library with ``entries`` and clear saved selections.

        Malformed payloads raise :class:`MalformedInputError` and leave both
        the library and ``selection`` untouched.
        """

        patterns = parse_export_entries(entries)
        self._patterns = {pattern.name: pattern for pattern in patterns}
        if selection is not None:
            selection.clear("saved")
        logger.info("Imported %d saved pattern(s)", len(patterns))
        return len(patterns)

    def copy(self) -> PatternLibrary:
        return PatternLibrary(self._patterns.values())


__all__ = ["PatternLibrary", "parse_export_entries"]
