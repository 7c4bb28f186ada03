"""Translate step grids into Strudel pattern-source fragments.

A grid becomes a structure mask of hit/rest markers. Tonal sounds play a
fixed reference pitch through that mask; sample sounds repeat the sample
once per step and use the mask to pick which repetitions sound.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import FrozenSet, List, Sequence

from domain.errors import MalformedInputError
from domain.models import TONAL_SOUNDS

HIT_MARKER = "x"
REST_MARKER = "~"


def structure_mask(steps: Sequence[bool]) -> str:
    """Return the space separated hit/rest markers for ``steps``."""

    return " ".join(HIT_MARKER if active else REST_MARKER for active in steps)


def parse_structure_mask(mask: str) -> List[bool]:
    """Inverse of :func:`structure_mask`; only the marker grammar is understood."""

    steps: List[bool] = []
    for token in mask.split():
        if token == HIT_MARKER:
            steps.append(True)
        elif token == REST_MARKER:
            steps.append(False)
        else:
            raise MalformedInputError(f"Unexpected token {token!r} in structure mask")
    return steps


def format_number(value: float) -> str:
    """Render numbers the way the evaluator's source language prints them."""

    number = float(value)
    if number.is_integer():
        return str(int(number))
    return repr(number)


@dataclass(frozen=True)
class PatternCompiler:
    """Pure step-grid to fragment translator."""

    tonal_sounds: FrozenSet[str] = field(default_factory=lambda: frozenset(TONAL_SOUNDS))
    reference_pitch: str = "c3"
    gain: float = 0.8

    def is_tonal(self, sound: str) -> bool:
        return sound in self.tonal_sounds

    def compile_track(self, steps: Sequence[bool], sound: str) -> str | None:
        """Return the fragment for one track, or ``None`` when no step is active."""

        if not any(steps):
            return None
        mask = structure_mask(steps)
        gain = format_number(self.gain)
        if self.is_tonal(sound):
            return f"note('{self.reference_pitch}').sound('{sound}').struct(\"{mask}\").gain({gain})"
        return f"s(\"{sound}*{len(steps)}\").struct(\"{mask}\").gain({gain})"


DEFAULT_COMPILER = PatternCompiler()


def compile_track(steps: Sequence[bool], sound: str) -> str | None:
    """Compile with the default reference pitch and gain."""

    return DEFAULT_COMPILER.compile_track(steps, sound)


__all__ = [
    "DEFAULT_COMPILER",
    "HIT_MARKER",
    "PatternCompiler",
    "REST_MARKER",
    "compile_track",
    "format_number",
    "parse_structure_mask",
    "structure_mask",
]
