"""Tracker-facing utilities: track grids, the pattern compiler, and undo history."""

from .history import HistoryManager
from .pattern_compiler import (
    DEFAULT_COMPILER,
    PatternCompiler,
    compile_track,
    parse_structure_mask,
    structure_mask,
)
from .track_store import TrackPolicy, TrackStore

__all__ = [
    "DEFAULT_COMPILER",
    "HistoryManager",
    "PatternCompiler",
    "TrackPolicy",
    "TrackStore",
    "compile_track",
    "parse_structure_mask",
    "structure_mask",
]
