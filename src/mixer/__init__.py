"""Mixer package composing tracks, presets and saved patterns into one program."""

from .engine import MixEngine, MixFragment, MixResult
from .presets import PRESETS
from .program import compose_program, effect_chain, parallel, tempo_statement

__all__ = [
    "MixEngine",
    "MixFragment",
    "MixResult",
    "PRESETS",
    "compose_program",
    "effect_chain",
    "parallel",
    "tempo_statement",
]
