"""Interface of the external pattern-evaluation engine."""
from __future__ import annotations

from typing import Any, Protocol


class Evaluator(Protocol):
    """Collaborator that plays program text; the session owns none of its state."""

    async def evaluate(self, program: str) -> Any:
        """Start playing ``program``, raising if the evaluator rejects it."""

    async def stop(self) -> None:
        """Silence every running pattern."""

    def set_tempo(self, cycles_per_second: float) -> None:
        """Set the evaluator tempo in cycles per second."""


__all__ = ["Evaluator"]
