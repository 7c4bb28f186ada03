"""Bounded undo/redo history over whole-session snapshots."""
from __future__ import annotations

import logging
from typing import List

from domain.errors import NothingToRedoError, NothingToUndoError
from domain.models import HistoryEntry

logger = logging.getLogger(__name__)


class HistoryManager:
    """Append-only snapshot stack with a cursor and FIFO eviction.

    Callers push the state from *before* each mutation. Because the state
    after the latest mutation is not on the stack yet, :meth:`undo` accepts
    the live state and records it first, which is what lets :meth:`redo`
    return to it afterwards.
    """

    def __init__(self, max_history: int = 50) -> None:
        if max_history <= 0:
            raise ValueError("max_history must be positive")
        self._max_history = int(max_history)
        self._entries: List[HistoryEntry] = []
        self._index = -1
        self._tip_pending = False

    @property
    def max_history(self) -> int:
        return self._max_history

    @property
    def index(self) -> int:
        return self._index

    @property
    def entries(self) -> List[HistoryEntry]:
        """Return copies of the recorded entries, oldest first."""

        return [entry.model_copy(deep=True) for entry in self._entries]

    def __len__(self) -> int:
        return len(self._entries)

    @property
    def can_undo(self) -> bool:
        return self._index > 0 or (self._tip_pending and bool(self._entries))

    @property
    def can_redo(self) -> bool:
        return 0 <= self._index < len(self._entries) - 1

    def push(self, entry: HistoryEntry) -> None:
        """Record ``entry``, discarding any redo branch beyond the cursor.

        After an undo or redo the entry under the cursor is the live state,
        which is exactly what the next mutation pushes. It is not stored a
        second time; the push only marks the tip pending again.
        """

        if self._index < len(self._entries) - 1:
            del self._entries[self._index + 1 :]
        if self._tip_pending or not self._entries:
            self._append(entry)
        self._tip_pending = True

    def undo(self, current: HistoryEntry | None = None) -> HistoryEntry:
        """Step the cursor back and return the entry to restore."""

        if current is not None and self._tip_pending and self._entries:
            self._append(current)
            self._tip_pending = False
        if self._index <= 0:
            raise NothingToUndoError("Nothing to undo")
        self._tip_pending = False
        self._index -= 1
        logger.debug("Undo to history index %d of %d", self._index, len(self._entries))
        return self._entries[self._index].model_copy(deep=True)

    def redo(self) -> HistoryEntry:
        """Step the cursor forward and return the entry to restore."""

        if not self.can_redo:
            raise NothingToRedoError("Nothing to redo")
        self._index += 1
        logger.debug("Redo to history index %d of %d", self._index, len(self._entries))
        return self._entries[self._index].model_copy(deep=True)

    def clear(self) -> None:
        self._entries.clear()
        self._index = -1
        self._tip_pending = False

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _append(self, entry: HistoryEntry) -> None:
        self._entries.append(entry.model_copy(deep=True))
        overflow = len(self._entries) - self._max_history
        if overflow > 0:
            del self._entries[:overflow]
        self._index = len(self._entries) - 1


__all__ = ["HistoryManager"]
