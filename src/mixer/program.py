"""Assemble whole-program text from fragments and global synth parameters."""
from __future__ import annotations

from typing import Sequence

from domain.models import SynthParams
from tracker.pattern_compiler import format_number

PARALLEL_COMBINATOR = "stack"
VISUALIZER_SUFFIXES = {"scope": ".scope()", "spectrum": ".spectrum()"}


def parallel(fragments: Sequence[str]) -> str:
    """Return one fragment unwrapped, or several wrapped in ``stack(...)``."""

    if not fragments:
        return ""
    if len(fragments) == 1:
        return fragments[0]
    return f"{PARALLEL_COMBINATOR}({', '.join(fragments)})"


def tempo_statement(bpm: float) -> str:
    """Return the statement setting the evaluator tempo; ``cps = bpm / 60 / 4``."""

    return f"setCps({format_number(bpm)}/60/4)"


def effect_chain(params: SynthParams) -> str:
    return (
        f".lpf({format_number(params.lpf)})"
        f".lpq({format_number(params.lpq)})"
        f".room({format_number(params.room)})"
        f".delay({format_number(params.delay)})"
    )


def compose_program(fragments: Sequence[str], params: SynthParams) -> str:
    """Combine fragments under the global parameters.

    Decorations and the tempo statement only apply when at least one
    fragment exists; an empty selection yields the empty program.
    """

    body = parallel(fragments)
    if not body:
        return ""
    if params.effects_enabled:
        body += effect_chain(params)
    suffix = VISUALIZER_SUFFIXES.get(params.visualizer)
    if suffix:
        body += suffix
    if params.bpm_enabled:
        body = f"{tempo_statement(params.bpm)}\n{body}"
    return body


__all__ = [
    "PARALLEL_COMBINATOR",
    "VISUALIZER_SUFFIXES",
    "compose_program",
    "effect_chain",
    "parallel",
    "tempo_statement",
]
