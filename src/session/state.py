"""Read-only projections of session state handed to rendering layers."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Tuple

from domain.models import SynthParams


@dataclass(frozen=True)
class TrackView:
    """State bundle rendered into one sequencer row."""

    id: str
    steps: Tuple[bool, ...]
    step_count: int
    sound: str
    muted: bool
    solo: bool
    audible: bool
    mixed: bool


@dataclass(frozen=True)
class SourceView:
    """A preset or saved pattern and whether it is part of the mix."""

    key: str
    mixed: bool


@dataclass(frozen=True)
class SessionView:
    """High-level view model driving the sequencer, mixer and editor panels."""

    tracks: Tuple[TrackView, ...]
    presets: Tuple[SourceView, ...]
    saved_patterns: Tuple[SourceView, ...]
    synth_params: SynthParams
    editor_text: str
    can_undo: bool
    can_redo: bool
    is_playing: bool
    notices: Tuple[str, ...] = field(default_factory=tuple)

    def track(self, track_id: str) -> TrackView:
        for view in self.tracks:
            if view.id == track_id:
                return view
        raise KeyError(track_id)


__all__ = ["SessionView", "SourceView", "TrackView"]
