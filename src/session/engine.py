"""Session façade tying the sequencer, mixer, library and history together.

The engine owns the authoritative state tree of one session. Every
mutating operation snapshots the state first, mutates, recomposes the
program when the change affects the mix, pushes the snapshot onto the
undo history and autosaves. A failing operation restores the snapshot
and re-raises, leaving the state and the history untouched.
"""
from __future__ import annotations

import asyncio
from contextlib import contextmanager
import logging
from typing import Any, Awaitable, Callable, Iterator, List, Mapping, Set, Tuple

import numpy as np
from pydantic import ValidationError

from domain.errors import (
    EvaluationError,
    InvariantViolationError,
    MalformedInputError,
    NotFoundError,
    OutOfRangeError,
)
from domain.models import (
    MixSelection,
    PersistedSession,
    SavedPattern,
    SessionState,
    SynthParams,
    TrackConfig,
    Visualizer,
)
from domain.pattern_library import PatternLibrary
from domain.repository import SessionNotFoundError, SessionRepository, SessionRepositoryError
from mixer.engine import MixEngine, MixResult
from tracker.history import HistoryManager
from tracker.pattern_compiler import PatternCompiler, parse_structure_mask
from tracker.track_store import TrackStore

from .config import SessionConfig
from .debounce import EditDebouncer
from .evaluator import Evaluator
from .state import SessionView, SourceView, TrackView

logger = logging.getLogger(__name__)

SYNTH_PARAM_NAMES = ("lpf", "lpq", "room", "delay")
VISUALIZERS = ("scope", "spectrum")


class SessionEngine:
    """Authoritative state of one sequencer session."""

    def __init__(
        self,
        *,
        config: SessionConfig | None = None,
        evaluator: Evaluator | None = None,
        repository: SessionRepository | None = None,
        presets: Mapping[str, str] | None = None,
        compiler: PatternCompiler | None = None,
        rng: np.random.Generator | None = None,
        record: PersistedSession | None = None,
    ) -> None:
        self._config = config or SessionConfig()
        self._evaluator = evaluator
        self._repository = repository
        self._rng = rng if rng is not None else np.random.default_rng()
        self._mixer = MixEngine(presets, compiler=compiler)
        self._history = HistoryManager(self._config.max_history)
        self._debouncer = EditDebouncer(self._config.edit_debounce_seconds, self._commit_text_edit)
        self._store = TrackStore(policy=self._config.track_policy)
        self._selection = MixSelection()
        self._params = SynthParams()
        self._editor_text = ""
        self._library = PatternLibrary()
        self._pending_edit: SessionState | None = None
        self._last_mix = MixResult(program="")
        self._playing = False
        self._call_serial = 0
        self._last_good_program: str | None = None
        self._tasks: Set[asyncio.Task[Any]] = set()
        self.last_persist_error: Exception | None = None
        if record is not None:
            self._library = PatternLibrary(record.saved_patterns)
            self._apply_state(record.session_state())

    # ------------------------------------------------------------------
    # Construction from storage
    # ------------------------------------------------------------------
    @classmethod
    def from_record(cls, record: PersistedSession, **kwargs: Any) -> "SessionEngine":
        return cls(record=record, **kwargs)

    @classmethod
    def restore_from_repository(
        cls,
        repository: SessionRepository | None = None,
        *,
        config: SessionConfig | None = None,
        **kwargs: Any,
    ) -> "SessionEngine":
        """Open the autosaved session, or a fresh default one when none exists.

        Without an explicit ``repository`` the engine autosaves into
        ``config.state_dir``; when that is unset too nothing is persisted.
        """

        config = config or SessionConfig()
        if repository is None:
            repository = config.repository()
        if repository is None:
            return cls(config=config, **kwargs)
        try:
            record = repository.load(config.storage_key)
        except SessionNotFoundError:
            logger.info("No saved session under %r; starting from defaults", config.storage_key)
            record = None
        except MalformedInputError as exc:
            logger.warning("Saved session %r is unreadable (%s); starting from defaults", config.storage_key, exc)
            record = None
        return cls(config=config, repository=repository, record=record, **kwargs)

    @classmethod
    def from_environment(cls, env: Mapping[str, str] | None = None, **kwargs: Any) -> "SessionEngine":
        """Restore the session configured by ``CYBERSTRUDEL_*`` variables."""

        return cls.restore_from_repository(config=SessionConfig.from_environment(env), **kwargs)

    # ------------------------------------------------------------------
    # Read access
    # ------------------------------------------------------------------
    @property
    def config(self) -> SessionConfig:
        return self._config

    @property
    def editor_text(self) -> str:
        return self._editor_text

    @property
    def synth_params(self) -> SynthParams:
        return self._params.model_copy()

    @property
    def mix_selection(self) -> MixSelection:
        return self._selection.model_copy(deep=True)

    def track_ids(self) -> List[str]:
        return self._store.track_ids()

    def track_config(self, track_id: str) -> TrackConfig:
        return self._store.config(track_id)

    def track_steps(self, track_id: str) -> Tuple[bool, ...]:
        return self._store.steps(track_id)

    def is_audible(self, track_id: str) -> bool:
        return self._store.is_audible(track_id)

    @property
    def library(self) -> PatternLibrary:
        return self._library.copy()

    @property
    def presets(self) -> Mapping[str, str]:
        return self._mixer.presets

    @property
    def history(self) -> HistoryManager:
        return self._history

    @property
    def last_mix(self) -> MixResult:
        return self._last_mix

    @property
    def is_playing(self) -> bool:
        return self._playing

    @property
    def last_good_program(self) -> str | None:
        return self._last_good_program

    @property
    def has_pending_edit(self) -> bool:
        return self._pending_edit is not None

    def snapshot(self) -> SessionState:
        """Return an independent copy of the editable state."""

        grids, configs = self._store.snapshot()
        return SessionState(
            sequencer_state=grids,
            track_configs=configs,
            mix_selection=self._selection.model_copy(deep=True),
            synth_params=self._params.model_copy(),
            editor_text=self._editor_text,
        )

    def view(self) -> SessionView:
        notices = []
        if self.last_persist_error is not None:
            notices.append(f"Autosave failed: {self.last_persist_error}")
        tracks = []
        for track_id in self._store.track_ids():
            config = self._store.config(track_id)
            tracks.append(
                TrackView(
                    id=track_id,
                    steps=self._store.steps(track_id),
                    step_count=config.step_count,
                    sound=config.sound,
                    muted=config.muted,
                    solo=config.solo,
                    audible=self._store.is_audible(track_id),
                    mixed=self._selection.is_enabled("tracks", track_id),
                )
            )
        return SessionView(
            tracks=tuple(tracks),
            presets=tuple(
                SourceView(key, self._selection.is_enabled("presets", key)) for key in self._mixer.presets
            ),
            saved_patterns=tuple(
                SourceView(name, self._selection.is_enabled("saved", name)) for name in self._library.names()
            ),
            synth_params=self._params.model_copy(),
            editor_text=self._editor_text,
            can_undo=self._history.can_undo or self._pending_edit is not None,
            can_redo=self._history.can_redo,
            is_playing=self._playing,
            notices=tuple(notices),
        )

    # ------------------------------------------------------------------
    # Tracks
    # ------------------------------------------------------------------
    def add_track(self, sound: str = "bd") -> str:
        with self._mutation("add track"):
            if not sound:
                raise MalformedInputError("Sound identifier must not be empty")
            track_id = self._store.add_track(sound=sound)
        return track_id

    def remove_track(self, track_id: str) -> None:
        with self._mutation(f"remove track {track_id}"):
            was_mixed = self._selection.is_enabled("tracks", track_id)
            self._store.remove_track(track_id)
            self._selection.discard("tracks", track_id)
            if was_mixed:
                self._remix()

    def toggle_step(self, track_id: str, index: int) -> bool:
        with self._mutation(f"toggle step {track_id}[{index}]"):
            value = self._store.toggle_step(track_id, index)
            self._remix_if_track_mixed(track_id)
        return value

    def set_step_count(self, track_id: str, count: int) -> None:
        with self._mutation(f"set step count {track_id}={count}"):
            self._store.set_step_count(track_id, count)
            self._remix_if_track_mixed(track_id)

    def set_sound(self, track_id: str, sound: str) -> None:
        with self._mutation(f"set sound {track_id}={sound}"):
            self._store.set_sound(track_id, sound)
            self._remix_if_track_mixed(track_id)

    def apply_mask(self, track_id: str, mask: str) -> None:
        """Replace a grid from a hit/rest structure mask such as ``"x ~ x ~"``."""

        with self._mutation(f"apply mask to {track_id}"):
            self._store.set_steps(track_id, parse_structure_mask(mask))
            self._remix_if_track_mixed(track_id)

    def set_muted(self, track_id: str, muted: bool) -> None:
        with self._mutation(f"set muted {track_id}={muted}"):
            self._store.set_muted(track_id, muted)
            self._remix_if_any_track_mixed()

    def set_solo(self, track_id: str, solo: bool) -> None:
        with self._mutation(f"set solo {track_id}={solo}"):
            self._store.set_solo(track_id, solo)
            self._remix_if_any_track_mixed()

    def toggle_mute(self, track_id: str) -> bool:
        muted = not self._store.config(track_id).muted
        self.set_muted(track_id, muted)
        return muted

    def toggle_solo(self, track_id: str) -> bool:
        solo = not self._store.config(track_id).solo
        self.set_solo(track_id, solo)
        return solo

    def randomize_track(self, track_id: str, probability: float | None = None) -> List[bool]:
        chance = self._config.randomize_probability if probability is None else probability
        with self._mutation(f"randomize {track_id}"):
            steps = self._store.randomize(track_id, chance, rng=self._rng)
            self._remix_if_track_mixed(track_id)
        return steps

    def randomize_sequencer(self, probability: float | None = None) -> None:
        chance = self._config.randomize_probability if probability is None else probability
        with self._mutation("randomize sequencer"):
            for track_id in self._store.track_ids():
                self._store.randomize(track_id, chance, rng=self._rng)
            self._remix_if_any_track_mixed()

    def clear_sequencer(self) -> None:
        """Silence every grid and drop track and saved-pattern selections."""

        with self._mutation("clear sequencer"):
            for track_id in self._store.track_ids():
                self._store.clear(track_id)
            self._selection.clear("tracks")
            self._selection.clear("saved")
            self._remix()

    # ------------------------------------------------------------------
    # Mix selection
    # ------------------------------------------------------------------
    def toggle_track_mix(self, track_id: str) -> bool:
        enabled = not self._selection.is_enabled("tracks", track_id)
        with self._mutation(f"toggle track mix {track_id}"):
            if enabled:
                self._require_playable(track_id)
            self._selection.set_enabled("tracks", track_id, enabled)
            self._remix()
        return enabled

    def set_preset_selected(self, key: str, selected: bool) -> None:
        with self._mutation(f"select preset {key}={selected}"):
            self._mixer.preset(key)
            self._selection.set_enabled("presets", key, selected)
            self._remix()

    def toggle_preset_mix(self, key: str) -> bool:
        enabled = not self._selection.is_enabled("presets", key)
        self.set_preset_selected(key, enabled)
        return enabled

    def toggle_saved_mix(self, name: str) -> bool:
        enabled = not self._selection.is_enabled("saved", name)
        with self._mutation(f"toggle saved mix {name}"):
            if name not in self._library:
                raise NotFoundError(f"Pattern {name!r} not found")
            self._selection.set_enabled("saved", name, enabled)
            self._remix()
        return enabled

    def recompose(self) -> MixResult:
        """Rebuild the program from the current selection, discarding manual edits."""

        with self._mutation("recompose"):
            result = self._remix()
        return result

    def random_mix(self, count: int | None = None) -> List[str]:
        """Replace the selection with ``count`` distinct presets picked at random."""

        wanted = self._config.random_mix_count if count is None else count
        keys = list(self._mixer.presets)
        if wanted <= 0:
            raise OutOfRangeError(f"Random mix needs a positive preset count, got {wanted}")
        with self._mutation("random mix"):
            picked = self._rng.choice(len(keys), size=min(wanted, len(keys)), replace=False)
            chosen = {keys[int(position)] for position in picked}
            self._selection.clear()
            for key in keys:
                self._selection.set_enabled("presets", key, key in chosen)
            self._remix()
        return [key for key in keys if key in chosen]

    def load_preset(self, key: str) -> str:
        """Make ``key`` the only selected source and return the composed program."""

        with self._mutation(f"load preset {key}"):
            self._mixer.preset(key)
            self._selection.clear()
            self._selection.set_enabled("presets", key, True)
            result = self._remix()
        return result.program

    def generate_track_code(self, track_id: str) -> str:
        """Select only ``track_id`` and return the program it compiles to."""

        with self._mutation(f"generate code for {track_id}"):
            self._require_playable(track_id)
            self._selection.clear()
            self._selection.set_enabled("tracks", track_id, True)
            result = self._remix()
        return result.program

    def generate_sequencer_code(self) -> str:
        """Select every track and return the composed program."""

        with self._mutation("generate sequencer code"):
            playable = [
                track_id
                for track_id in self._store.track_ids()
                if self._store.is_audible(track_id) and self._store.has_active_steps(track_id)
            ]
            if not playable:
                raise InvariantViolationError("No audible track has active steps")
            self._selection.clear()
            for track_id in self._store.track_ids():
                self._selection.set_enabled("tracks", track_id, True)
            result = self._remix()
        return result.program

    def clear_code(self) -> None:
        """Empty the editor and the whole selection; playback stops if running."""

        with self._mutation("clear code"):
            self._selection.clear()
            self._remix()

    # ------------------------------------------------------------------
    # Synth parameters
    # ------------------------------------------------------------------
    def set_bpm(self, bpm: float) -> None:
        with self._mutation(f"set bpm {bpm}"):
            self._params = self._validated_params("bpm", bpm)
            if self._params.bpm_enabled:
                self._remix_if_anything_mixed()

    def set_bpm_enabled(self, enabled: bool) -> None:
        with self._mutation(f"set bpm enabled {enabled}"):
            self._params = self._params.model_copy(update={"bpm_enabled": bool(enabled)})
            self._remix_if_anything_mixed()

    def set_synth_param(self, name: str, value: float) -> None:
        if name not in SYNTH_PARAM_NAMES:
            raise MalformedInputError(f"Unknown synth parameter {name!r}; expected one of {SYNTH_PARAM_NAMES}")
        with self._mutation(f"set {name}={value}"):
            self._params = self._validated_params(name, value)
            if self._params.effects_enabled:
                self._remix_if_anything_mixed()

    def set_effects_enabled(self, enabled: bool) -> None:
        with self._mutation(f"set effects enabled {enabled}"):
            self._params = self._params.model_copy(update={"effects_enabled": bool(enabled)})
            self._remix_if_anything_mixed()

    def toggle_visualizer(self, kind: str) -> Visualizer:
        """Switch the ``scope``/``spectrum`` suffix on, or off when already active."""

        if kind not in VISUALIZERS:
            raise MalformedInputError(f"Unknown visualizer {kind!r}; expected one of {VISUALIZERS}")
        visualizer: Visualizer = "none" if self._params.visualizer == kind else kind  # type: ignore[assignment]
        with self._mutation(f"visualizer {visualizer}"):
            self._params = self._params.model_copy(update={"visualizer": visualizer})
            self._remix_if_anything_mixed()
        return visualizer

    # ------------------------------------------------------------------
    # Pattern library
    # ------------------------------------------------------------------
    def save_pattern(self, name: str) -> SavedPattern:
        """Save the editor text with the current state; the library is not undoable."""

        self._flush_pending_edit()
        pattern = self._library.save(name, self._editor_text, self.snapshot())
        logger.info("Saved pattern %r", pattern.name)
        self.persist()
        return pattern

    def load_pattern(self, name: str) -> SavedPattern:
        """Restore a saved pattern's state and make it the only selected source.

        The editor gets the stored code verbatim rather than a recomposed
        program, so a saved tempo statement is not repeated.
        """

        with self._mutation(f"load pattern {name}"):
            pattern = self._library.load(name)
            grids, configs = self._store.snapshot()
            if pattern.sequencer_state or pattern.track_configs:
                grids, configs = pattern.sequencer_state, pattern.track_configs
            self._apply_state(
                SessionState(
                    sequencer_state=grids,
                    track_configs=configs,
                    synth_params=pattern.synth_params,
                    editor_text=pattern.code,
                )
            )
            self._selection.set_enabled("saved", name, True)
        if self._playing:
            self._schedule(self.evaluate)
        return pattern

    def delete_pattern(self, name: str) -> None:
        with self._mutation(f"delete pattern {name}"):
            was_mixed = self._selection.is_enabled("saved", name)
            self._library.delete(name, selection=self._selection)
            if was_mixed:
                self._remix()
        logger.info("Deleted pattern %r", name)

    def export_patterns(self) -> List[List[Any]]:
        return self._library.export()

    def import_patterns(self, entries: Any) -> int:
        """Replace the library with ``entries``; malformed input changes nothing."""

        with self._mutation("import patterns"):
            had_saved = bool(self._selection.enabled("saved"))
            count = self._library.import_entries(entries, selection=self._selection)
            if had_saved:
                self._remix()
        return count

    # ------------------------------------------------------------------
    # Program text
    # ------------------------------------------------------------------
    def set_editor_text(self, text: str) -> None:
        """Record a manual edit; bursts are committed to history once quiet."""

        if text == self._editor_text:
            return
        if self._pending_edit is None:
            self._pending_edit = self.snapshot()
        self._editor_text = text
        self._debouncer.trigger()

    def load_code(self, text: str) -> None:
        """Replace the program text wholesale; the mix no longer describes it."""

        with self._mutation("load code"):
            self._selection.clear()
            self._editor_text = text

    # ------------------------------------------------------------------
    # History
    # ------------------------------------------------------------------
    def undo(self) -> SessionState:
        self._flush_pending_edit()
        entry = self._history.undo(current=self.snapshot())
        self._apply_state(entry)
        logger.debug("Undo restored %d track(s)", len(entry.sequencer_state))
        self.persist()
        return self.snapshot()

    def redo(self) -> SessionState:
        self._flush_pending_edit()
        entry = self._history.redo()
        self._apply_state(entry)
        logger.debug("Redo restored %d track(s)", len(entry.sequencer_state))
        self.persist()
        return self.snapshot()

    # ------------------------------------------------------------------
    # Playback
    # ------------------------------------------------------------------
    async def evaluate(self) -> bool:
        """Play the editor text; return ``False`` when there is nothing to play
        or a later evaluate/stop superseded this call."""

        program = self._editor_text.strip()
        if not program:
            logger.info("Nothing to play")
            return False
        if self._evaluator is None:
            raise EvaluationError("No evaluator configured")
        self._call_serial += 1
        serial = self._call_serial
        if self._params.bpm_enabled:
            self._evaluator.set_tempo(self._params.cycles_per_second)
        try:
            await self._evaluator.evaluate(program)
        except Exception as exc:
            logger.error("Evaluator rejected the program: %s", exc)
            raise EvaluationError(f"Evaluator rejected the program: {exc}") from exc
        if serial != self._call_serial:
            logger.debug("Evaluation %d superseded by call %d", serial, self._call_serial)
            return False
        self._playing = True
        self._last_good_program = program
        logger.info("Playing %d chars of program text", len(program))
        return True

    async def stop(self) -> None:
        self._call_serial += 1
        if self._evaluator is not None:
            try:
                await self._evaluator.stop()
            except Exception as exc:
                raise EvaluationError(f"Evaluator failed to stop: {exc}") from exc
        self._playing = False
        logger.info("Playback stopped")

    async def toggle_playback(self) -> bool:
        """Stop when playing, otherwise evaluate; return whether audio is playing."""

        if self._playing:
            await self.stop()
            return False
        return await self.evaluate()

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------
    def to_record(self) -> PersistedSession:
        state = self.snapshot()
        return PersistedSession(
            sequencer_state=state.sequencer_state,
            track_configs=state.track_configs,
            mix_selection=state.mix_selection,
            synth_params=state.synth_params,
            editor_text=state.editor_text,
            saved_patterns=self._library.patterns(),
        )

    def persist(self) -> bool:
        """Autosave to the repository; failures are logged and kept for inspection."""

        if self._repository is None:
            return False
        try:
            self._repository.save(self._config.storage_key, self.to_record())
        except (OSError, SessionRepositoryError) as exc:
            logger.error("Failed to persist session %r: %s", self._config.storage_key, exc)
            self.last_persist_error = exc
            return False
        self.last_persist_error = None
        return True

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    @contextmanager
    def _mutation(self, action: str) -> Iterator[None]:
        self._flush_pending_edit()
        before = self.snapshot()
        library_before = self._library.copy()
        last_mix = self._last_mix
        try:
            yield
        except Exception:
            self._library = library_before
            self._apply_state(before)
            self._last_mix = last_mix
            logger.debug("Rolled back %s", action)
            raise
        self._history.push(before)
        logger.debug("Applied %s", action)
        self.persist()

    def _apply_state(self, state: SessionState) -> None:
        self._store.restore(state.sequencer_state, state.track_configs)
        selection = state.mix_selection.model_copy(deep=True)
        presets = self._mixer.presets
        for key in [key for key in selection.presets if key not in presets]:
            selection.discard("presets", key)
        for name in [name for name in selection.saved if name not in self._library]:
            selection.discard("saved", name)
        self._selection = selection
        self._params = state.synth_params.model_copy()
        self._editor_text = state.editor_text

    def _validated_params(self, name: str, value: Any) -> SynthParams:
        try:
            return SynthParams.model_validate({**self._params.model_dump(), name: value})
        except ValidationError as exc:
            raise OutOfRangeError(f"Invalid value {value!r} for {name}") from exc

    def _require_playable(self, track_id: str) -> None:
        if not self._store.is_audible(track_id):
            raise InvariantViolationError(f"Track {track_id!r} is muted or silenced by a solo")
        if not self._store.has_active_steps(track_id):
            raise InvariantViolationError(f"Track {track_id!r} has no active steps")

    def _remix(self) -> MixResult:
        result = self._mixer.mix(self._selection, self._store, self._library, self._params)
        self._editor_text = result.program
        self._last_mix = result
        if result.is_empty:
            logger.info("Nothing to play")
            if self._playing:
                self._schedule(self.stop)
        elif self._playing:
            self._schedule(self.evaluate)
        return result

    def _remix_if_track_mixed(self, track_id: str) -> None:
        if self._selection.is_enabled("tracks", track_id):
            self._remix()

    def _remix_if_any_track_mixed(self) -> None:
        if self._selection.enabled("tracks"):
            self._remix()

    def _remix_if_anything_mixed(self) -> None:
        if self._selection.any_enabled():
            self._remix()

    def _schedule(self, call: Callable[[], Awaitable[Any]]) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("No running event loop; playback not refreshed")
            return
        task = loop.create_task(call())
        self._tasks.add(task)
        task.add_done_callback(self._on_task_done)

    def _on_task_done(self, task: asyncio.Task[Any]) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.warning("Background playback refresh failed: %s", exc)

    def _flush_pending_edit(self) -> None:
        self._debouncer.flush()

    def _commit_text_edit(self) -> None:
        if self._pending_edit is None:
            return
        self._history.push(self._pending_edit)
        self._pending_edit = None
        logger.debug("Committed text edit")
        self.persist()


__all__ = ["SYNTH_PARAM_NAMES", "SessionEngine", "VISUALIZERS"]
