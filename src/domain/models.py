"""Pydantic-powered domain models for step-sequencer sessions.

The models describe the editable state of a session: per-track step
grids and their configuration, the mix selection across tracks, presets
and saved patterns, the global synth parameters, and the program text
shown in the code editor. Records serialize with camelCase aliases so
state written by the browser front end loads without translation; the
legacy field names used by earlier releases (``trackStates``,
``mixedPatterns``, ``code`` and the per-track ``steps``) are accepted on
input as well.
"""
from __future__ import annotations

from typing import Dict, List, Literal, Mapping, Sequence, Tuple

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    field_serializer,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel

ALLOWED_STEP_COUNTS: Tuple[int, ...] = (4, 8, 16)
DEFAULT_STEP_COUNT = 8
DEFAULT_SOUND = "bd"
DEFAULT_TRACK_IDS: Tuple[str, ...] = ("bd", "sd", "hh", "cp")
TONAL_SOUNDS = frozenset({"sawtooth", "sine", "triangle"})
SOUND_CATALOGUE: Tuple[str, ...] = (
    "bd",
    "jazz",
    "bass",
    "sd",
    "hh",
    "rm",
    "cp",
    "lt",
    "mt",
    "ht",
    "jvbass",
    "sawtooth",
    "sine",
    "triangle",
)

Visualizer = Literal["none", "scope", "spectrum"]
MixCategory = Literal["tracks", "presets", "saved"]
MIX_CATEGORIES: Tuple[str, ...] = ("tracks", "presets", "saved")


def default_sound_for(track_id: str) -> str:
    """Return the sound a freshly created track with ``track_id`` should use."""

    return track_id if track_id in SOUND_CATALOGUE else DEFAULT_SOUND


def resize_steps(steps: Sequence[bool], count: int) -> List[bool]:
    """Keep the leading ``min(len(steps), count)`` values and pad with rests."""

    kept = [bool(value) for value in list(steps)[:count]]
    return kept + [False] * (count - len(kept))


def default_sequencer_state() -> Dict[str, List[bool]]:
    return {track_id: [False] * DEFAULT_STEP_COUNT for track_id in DEFAULT_TRACK_IDS}


def default_track_configs() -> Dict[str, "TrackConfig"]:
    return {track_id: TrackConfig(sound=default_sound_for(track_id)) for track_id in DEFAULT_TRACK_IDS}


class _RecordModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class TrackConfig(_RecordModel):
    """Mute/solo flags, grid length and sound for a single track."""

    muted: bool = False
    solo: bool = False
    step_count: int = Field(
        DEFAULT_STEP_COUNT,
        validation_alias=AliasChoices("stepCount", "step_count", "steps"),
        serialization_alias="stepCount",
        description="Grid length; one of 4, 8 or 16",
    )
    sound: str = Field(DEFAULT_SOUND, min_length=1, description="Sound identifier resolved by the evaluator")

    @field_validator("step_count")
    @classmethod
    def _validate_step_count(cls, value: int) -> int:
        if value not in ALLOWED_STEP_COUNTS:
            raise ValueError(f"step_count must be one of {ALLOWED_STEP_COUNTS}, got {value}")
        return value

    @property
    def is_tonal(self) -> bool:
        return self.sound in TONAL_SOUNDS


class Track(_RecordModel):
    """Read-only view of one sequencer row and its step grid."""

    id: str = Field(..., min_length=1)
    steps: List[bool] = Field(default_factory=lambda: [False] * DEFAULT_STEP_COUNT)


class SynthParams(_RecordModel):
    """Global modifiers applied to the composed program rather than to tracks."""

    bpm: float = Field(120.0, gt=0, allow_inf_nan=False)
    bpm_enabled: bool = True
    lpf: float = Field(800.0, ge=0.0, allow_inf_nan=False, description="Low-pass cutoff in Hz")
    lpq: float = Field(1.0, ge=0.0, allow_inf_nan=False, description="Low-pass resonance")
    room: float = Field(0.5, ge=0.0, allow_inf_nan=False)
    delay: float = Field(0.3, ge=0.0, allow_inf_nan=False)
    effects_enabled: bool = Field(False, description="Append the lpf/lpq/room/delay chain")
    visualizer: Visualizer = "none"

    @property
    def cycles_per_second(self) -> float:
        """Return the evaluator tempo for ``bpm`` assuming four beats per cycle."""

        return self.bpm / 60.0 / 4.0


class MixSelection(_RecordModel):
    """Which tracks, presets and saved patterns feed the composed program."""

    tracks: Dict[str, bool] = Field(default_factory=dict)
    presets: Dict[str, bool] = Field(default_factory=dict)
    saved: Dict[str, bool] = Field(default_factory=dict)

    def _category(self, category: str) -> Dict[str, bool]:
        if category not in MIX_CATEGORIES:
            raise KeyError(f"Unknown mix category {category!r}")
        return getattr(self, category)

    def is_enabled(self, category: str, key: str) -> bool:
        return bool(self._category(category).get(key, False))

    def enabled(self, category: str) -> List[str]:
        """Return the enabled keys of ``category`` in insertion order."""

        return [key for key, enabled in self._category(category).items() if enabled]

    def any_enabled(self) -> bool:
        return any(self.enabled(category) for category in MIX_CATEGORIES)

    def set_enabled(self, category: str, key: str, enabled: bool) -> None:
        self._category(category)[key] = bool(enabled)

    def discard(self, category: str, key: str) -> None:
        self._category(category).pop(key, None)

    def clear(self, category: str | None = None) -> None:
        categories = MIX_CATEGORIES if category is None else (category,)
        for name in categories:
            self._category(name).clear()


class SavedPattern(_RecordModel):
    """Named program text plus the session state it was saved from."""

    name: str = Field(..., min_length=1)
    code: str = Field(..., min_length=1)
    sequencer_state: Dict[str, List[bool]] = Field(default_factory=dict)
    track_configs: Dict[str, TrackConfig] = Field(
        default_factory=dict,
        validation_alias=AliasChoices("trackConfigs", "trackStates", "track_configs"),
        serialization_alias="trackConfigs",
    )
    synth_params: SynthParams = Field(default_factory=SynthParams)

    def to_record(self) -> Dict[str, object]:
        """Return the JSON-ready record stored next to the name in exports."""

        return self.model_dump(mode="json", by_alias=True, exclude={"name"})


class SessionState(_RecordModel):
    """Complete editable state of a session; also the unit of undo history.

    Validation reconciles the sequencer grids with the track configs so a
    partial record always yields a consistent state: missing configs get
    defaults, missing grids are created empty, and every grid is resized
    to its config's ``step_count``.
    """

    sequencer_state: Dict[str, List[bool]] = Field(default_factory=dict)
    track_configs: Dict[str, TrackConfig] = Field(
        default_factory=dict,
        validation_alias=AliasChoices("trackConfigs", "trackStates", "track_configs"),
        serialization_alias="trackConfigs",
    )
    mix_selection: MixSelection = Field(
        default_factory=MixSelection,
        validation_alias=AliasChoices("mixSelection", "mixedPatterns", "mix_selection"),
        serialization_alias="mixSelection",
    )
    synth_params: SynthParams = Field(default_factory=SynthParams)
    editor_text: str = Field(
        "",
        validation_alias=AliasChoices("editorText", "code", "editor_text"),
        serialization_alias="editorText",
    )

    @model_validator(mode="after")
    def _reconcile_tracks(self) -> SessionState:
        if not self.sequencer_state and not self.track_configs:
            self.sequencer_state = default_sequencer_state()
        track_ids = list(dict.fromkeys([*self.sequencer_state, *self.track_configs]))
        grids: Dict[str, List[bool]] = {}
        configs: Dict[str, TrackConfig] = {}
        for track_id in track_ids:
            steps = self.sequencer_state.get(track_id, [])
            config = self.track_configs.get(track_id)
            if config is None:
                count = len(steps) if len(steps) in ALLOWED_STEP_COUNTS else DEFAULT_STEP_COUNT
                config = TrackConfig(step_count=count, sound=default_sound_for(track_id))
            grids[track_id] = resize_steps(steps, config.step_count)
            configs[track_id] = config
        self.sequencer_state = grids
        self.track_configs = configs
        for key in [key for key in self.mix_selection.tracks if key not in grids]:
            self.mix_selection.discard("tracks", key)
        return self

    def tracks(self) -> List[Track]:
        return [Track(id=track_id, steps=list(steps)) for track_id, steps in self.sequencer_state.items()]


# Undo history stores whole-session snapshots.
HistoryEntry = SessionState


class PersistedSession(SessionState):
    """Session state plus the saved-pattern library, as written to storage."""

    saved_patterns: List[SavedPattern] = Field(default_factory=list)

    @field_validator("saved_patterns", mode="before")
    @classmethod
    def _pairs_to_patterns(cls, value: object) -> object:
        if not isinstance(value, list):
            return value
        patterns: List[object] = []
        for entry in value:
            if isinstance(entry, (list, tuple)) and len(entry) == 2 and isinstance(entry[1], Mapping):
                patterns.append({**entry[1], "name": entry[0]})
            else:
                patterns.append(entry)
        return patterns

    @model_validator(mode="after")
    def _validate_unique_names(self) -> PersistedSession:
        names = [pattern.name for pattern in self.saved_patterns]
        if len(names) != len(set(names)):
            raise ValueError("Saved pattern names must be unique")
        return self

    @field_serializer("saved_patterns")
    def _patterns_to_pairs(self, patterns: List[SavedPattern]) -> List[List[object]]:
        return [[pattern.name, pattern.to_record()] for pattern in patterns]

    def session_state(self) -> SessionState:
        """Return the editable portion without the library."""

        return SessionState.model_validate(self.model_dump(exclude={"saved_patterns"}))


__all__ = [
    "ALLOWED_STEP_COUNTS",
    "DEFAULT_SOUND",
    "DEFAULT_STEP_COUNT",
    "DEFAULT_TRACK_IDS",
    "HistoryEntry",
    "MIX_CATEGORIES",
    "MixCategory",
    "MixSelection",
    "PersistedSession",
    "SOUND_CATALOGUE",
    "SavedPattern",
    "SessionState",
    "SynthParams",
    "TONAL_SOUNDS",
    "Track",
    "TrackConfig",
    "Visualizer",
    "default_sound_for",
    "default_sequencer_state",
    "default_track_configs",
    "resize_steps",
]
