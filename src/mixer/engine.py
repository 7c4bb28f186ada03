"""Select enabled sources across tracks, presets and saved patterns and compose them.

Sources are gathered in a fixed order: tracks in the order the track
store keeps them, then presets in catalogue order, then saved patterns
in library order. Tracks that are muted, silenced by another track's
solo, or have no active step contribute nothing. Preset and saved
pattern code is used verbatim; saved patterns are never re-derived from
the snapshot stored next to their code.
"""
from __future__ import annotations

from dataclasses import dataclass, field
import logging
from typing import List, Literal, Mapping, Tuple

from domain.errors import NotFoundError
from domain.models import MixSelection, SynthParams
from domain.pattern_library import PatternLibrary
from tracker.pattern_compiler import DEFAULT_COMPILER, PatternCompiler
from tracker.track_store import TrackStore

from .presets import PRESETS
from .program import compose_program

logger = logging.getLogger(__name__)

SourceKind = Literal["track", "preset", "saved"]


@dataclass(frozen=True)
class MixFragment:
    """One source's contribution to the composed program."""

    kind: SourceKind
    key: str
    code: str


@dataclass(frozen=True)
class MixResult:
    """Composed program text plus the fragments it was built from."""

    program: str
    fragments: Tuple[MixFragment, ...] = field(default_factory=tuple)

    @property
    def is_empty(self) -> bool:
        return not self.fragments


class MixEngine:
    """Merge enabled sources into one program under the global synth parameters."""

    def __init__(
        self,
        presets: Mapping[str, str] | None = None,
        *,
        compiler: PatternCompiler | None = None,
    ) -> None:
        self._presets = dict(PRESETS if presets is None else presets)
        self._compiler = compiler or DEFAULT_COMPILER

    @property
    def presets(self) -> Mapping[str, str]:
        return dict(self._presets)

    @property
    def compiler(self) -> PatternCompiler:
        return self._compiler

    def preset(self, key: str) -> str:
        try:
            return self._presets[key]
        except KeyError as exc:
            raise NotFoundError(f"Preset {key!r} not found") from exc

    def track_fragment(self, store: TrackStore, track_id: str) -> str | None:
        """Compile a track if it is audible and has at least one active step."""

        if not store.is_audible(track_id):
            return None
        config = store.config(track_id)
        return self._compiler.compile_track(store.steps(track_id), config.sound)

    def collect_fragments(
        self,
        selection: MixSelection,
        store: TrackStore,
        library: PatternLibrary,
    ) -> List[MixFragment]:
        fragments: List[MixFragment] = []
        for track_id in store.track_ids():
            if not selection.is_enabled("tracks", track_id):
                continue
            code = self.track_fragment(store, track_id)
            if code is None:
                logger.debug("Track %s selected but silent; skipping", track_id)
                continue
            fragments.append(MixFragment("track", track_id, code))
        for key, code in self._presets.items():
            if selection.is_enabled("presets", key):
                fragments.append(MixFragment("preset", key, code))
        for name in library.names():
            if not selection.is_enabled("saved", name):
                continue
            code = library.code_for(name)
            if code:
                fragments.append(MixFragment("saved", name, code))
        return fragments

    def compose(self, fragments: List[MixFragment], params: SynthParams) -> MixResult:
        program = compose_program([fragment.code for fragment in fragments], params)
        return MixResult(program=program, fragments=tuple(fragments))

    def mix(
        self,
        selection: MixSelection,
        store: TrackStore,
        library: PatternLibrary,
        params: SynthParams,
    ) -> MixResult:
        """Collect every enabled source and compose the resulting program."""

        result = self.compose(self.collect_fragments(selection, store, library), params)
        logger.debug("Mixed %d fragment(s) into %d chars", len(result.fragments), len(result.program))
        return result


__all__ = ["MixEngine", "MixFragment", "MixResult", "SourceKind"]
