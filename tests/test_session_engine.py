import numpy as np
import pytest

from domain.errors import (
    DuplicateNameError,
    InvariantViolationError,
    MalformedInputError,
    NothingToRedoError,
    NothingToUndoError,
    NotFoundError,
    OutOfRangeError,
)
from domain.models import PersistedSession
from domain.repository import InMemorySessionRepository, SessionRepositoryError
from mixer import PRESETS
from session import SessionConfig, SessionEngine

TEMPO = "setCps(120/60/4)\n"
BD_FIRST = 's("bd*8").struct("x ~ ~ ~ ~ ~ ~ ~").gain(0.8)'
SD_FIRST = 's("sd*8").struct("x ~ ~ ~ ~ ~ ~ ~").gain(0.8)'


def make_engine(**config_overrides) -> SessionEngine:
    config = SessionConfig(edit_debounce_seconds=0.0, **config_overrides)
    return SessionEngine(config=config, rng=np.random.default_rng(3))


def test_fresh_engine_view(engine: SessionEngine) -> None:
    view = engine.view()

    assert [track.id for track in view.tracks] == ["bd", "sd", "hh", "cp"]
    assert all(track.audible and not track.mixed for track in view.tracks)
    assert [preset.key for preset in view.presets] == list(PRESETS)
    assert view.saved_patterns == ()
    assert view.editor_text == ""
    assert not view.can_undo and not view.can_redo
    assert not view.is_playing


def test_mutation_pushes_history_and_persists(engine: SessionEngine, repository: InMemorySessionRepository) -> None:
    assert engine.toggle_step("bd", 0) is True

    assert len(engine.history) == 1
    assert engine.view().can_undo
    stored = repository.load("cybersynth_state")
    assert stored.sequencer_state["bd"][0] is True


def test_failed_mutation_rolls_back_without_history(
    engine: SessionEngine, repository: InMemorySessionRepository
) -> None:
    with pytest.raises(OutOfRangeError):
        engine.toggle_step("bd", 8)
    with pytest.raises(InvariantViolationError):
        engine.toggle_track_mix("hh")
    with pytest.raises(NotFoundError):
        engine.toggle_preset_mix("zz")

    assert len(engine.history) == 0
    assert not engine.mix_selection.any_enabled()
    assert list(repository.list()) == []


def test_mixed_track_recomposes_on_change(engine: SessionEngine) -> None:
    engine.toggle_step("bd", 0)
    assert engine.toggle_track_mix("bd") is True
    assert engine.editor_text == TEMPO + BD_FIRST

    engine.toggle_step("bd", 1)
    assert engine.editor_text == TEMPO + 's("bd*8").struct("x x ~ ~ ~ ~ ~ ~").gain(0.8)'

    engine.set_editor_text("my edit")
    engine.toggle_step("sd", 0)
    assert engine.editor_text == "my edit"

    engine.set_step_count("bd", 4)
    assert engine.editor_text == TEMPO + 's("bd*4").struct("x x ~ ~").gain(0.8)'


def test_only_audible_tracks_with_steps_can_join_the_mix(engine: SessionEngine) -> None:
    engine.toggle_step("bd", 0)
    engine.toggle_mute("bd")

    with pytest.raises(InvariantViolationError):
        engine.toggle_track_mix("bd")
    with pytest.raises(InvariantViolationError):
        engine.toggle_track_mix("sd")


def test_solo_recomposes_selected_tracks(engine: SessionEngine) -> None:
    engine.toggle_step("bd", 0)
    engine.toggle_step("sd", 0)
    engine.toggle_track_mix("bd")
    engine.toggle_track_mix("sd")
    assert engine.editor_text == f"{TEMPO}stack({BD_FIRST}, {SD_FIRST})"

    assert engine.toggle_solo("sd") is True
    assert engine.editor_text == TEMPO + SD_FIRST
    assert not engine.view().track("bd").audible


def test_engine_level_undo_redo(engine: SessionEngine) -> None:
    engine.toggle_step("bd", 0)
    engine.toggle_step("bd", 1)

    engine.undo()
    assert engine.track_steps("bd")[:2] == (True, False)
    engine.undo()
    assert engine.track_steps("bd")[:2] == (False, False)
    with pytest.raises(NothingToUndoError):
        engine.undo()

    engine.redo()
    assert engine.track_steps("bd")[:2] == (True, False)
    engine.redo()
    assert engine.track_steps("bd")[:2] == (True, True)
    with pytest.raises(NothingToRedoError):
        engine.redo()


def test_undo_restores_text_without_recompiling(engine: SessionEngine) -> None:
    engine.toggle_step("bd", 0)
    engine.toggle_track_mix("bd")
    engine.set_editor_text("hand written")

    engine.undo()

    assert engine.editor_text == TEMPO + BD_FIRST
    engine.redo()
    assert engine.editor_text == "hand written"


def test_mutation_after_redo_keeps_every_undo_step(engine: SessionEngine) -> None:
    engine.toggle_step("bd", 0)
    engine.toggle_step("bd", 1)
    engine.undo()
    engine.redo()

    engine.toggle_step("hh", 0)

    engine.undo()
    assert engine.track_steps("bd")[:2] == (True, True)
    assert engine.track_steps("hh")[0] is False
    engine.undo()
    assert engine.track_steps("bd")[:2] == (True, False)
    engine.undo()
    assert engine.track_steps("bd")[:2] == (False, False)


def test_mutation_after_undo_keeps_every_undo_step(engine: SessionEngine) -> None:
    engine.toggle_step("bd", 0)
    engine.toggle_step("bd", 1)
    engine.undo()

    engine.toggle_step("hh", 0)

    engine.undo()
    assert engine.track_steps("bd")[:2] == (True, False)
    assert engine.track_steps("hh")[0] is False
    engine.undo()
    assert engine.track_steps("bd")[:2] == (False, False)
    with pytest.raises(NothingToUndoError):
        engine.undo()


def test_failed_library_mutation_restores_selection(
    engine: SessionEngine, monkeypatch: pytest.MonkeyPatch
) -> None:
    engine.load_code("s('hh*4')")
    engine.save_pattern("p")
    engine.toggle_saved_mix("p")
    history_length = len(engine.history)

    def broken_remix():
        raise RuntimeError("composer failed")

    monkeypatch.setattr(engine, "_remix", broken_remix)
    with pytest.raises(RuntimeError):
        engine.delete_pattern("p")

    assert engine.library.names() == ["p"]
    assert engine.mix_selection.saved == {"p": True}
    assert len(engine.history) == history_length


def test_add_and_remove_tracks(engine: SessionEngine) -> None:
    track_id = engine.add_track("sine")
    assert track_id == "track4"
    assert engine.track_config(track_id).sound == "sine"

    engine.toggle_step(track_id, 0)
    engine.toggle_track_mix(track_id)
    engine.remove_track(track_id)
    assert track_id not in engine.mix_selection.tracks
    assert engine.editor_text == ""

    for removed in ("bd", "sd", "hh"):
        engine.remove_track(removed)
    with pytest.raises(InvariantViolationError):
        engine.remove_track("cp")
    assert engine.track_ids() == ["cp"]


def test_randomize_uses_configured_probability() -> None:
    engine = make_engine(randomize_probability=1.0)

    assert engine.randomize_track("hh") == [True] * 8
    engine.randomize_sequencer(0.0)
    assert all(not any(engine.track_steps(track_id)) for track_id in engine.track_ids())
    with pytest.raises(OutOfRangeError):
        engine.randomize_track("hh", 2.0)


def test_randomize_is_reproducible_with_seeded_engines() -> None:
    first = make_engine().randomize_track("sd")
    second = make_engine().randomize_track("sd")

    assert first == second


def test_apply_mask_resizes_track(engine: SessionEngine) -> None:
    engine.apply_mask("hh", "x ~ x ~")

    assert engine.track_steps("hh") == (True, False, True, False)
    assert engine.track_config("hh").step_count == 4
    with pytest.raises(MalformedInputError):
        engine.apply_mask("hh", "x - x -")
    assert engine.track_config("hh").step_count == 4


def test_clear_sequencer_keeps_presets(engine: SessionEngine) -> None:
    engine.toggle_step("bd", 0)
    engine.toggle_track_mix("bd")
    engine.toggle_preset_mix("a")

    engine.clear_sequencer()

    assert not any(engine.track_steps("bd"))
    assert engine.mix_selection.enabled("tracks") == []
    assert engine.editor_text == TEMPO + PRESETS["a"]


def test_random_mix_picks_distinct_presets(engine: SessionEngine) -> None:
    keys = engine.random_mix()

    assert len(keys) == 3 == len(set(keys))
    assert engine.mix_selection.enabled("presets") == keys
    assert engine.editor_text == TEMPO + "stack(" + ", ".join(PRESETS[key] for key in keys) + ")"
    with pytest.raises(OutOfRangeError):
        engine.random_mix(0)


def test_load_preset_selects_only_that_preset(engine: SessionEngine) -> None:
    engine.toggle_preset_mix("a")

    program = engine.load_preset("c")

    assert program == TEMPO + PRESETS["c"]
    assert engine.mix_selection.enabled("presets") == ["c"]
    with pytest.raises(NotFoundError):
        engine.load_preset("missing")


def test_generate_track_and_sequencer_code(engine: SessionEngine) -> None:
    with pytest.raises(InvariantViolationError):
        engine.generate_sequencer_code()

    engine.toggle_step("bd", 0)
    engine.toggle_step("sd", 0)
    assert engine.generate_track_code("sd") == TEMPO + SD_FIRST
    assert engine.mix_selection.enabled("tracks") == ["sd"]

    assert engine.generate_sequencer_code() == f"{TEMPO}stack({BD_FIRST}, {SD_FIRST})"
    assert engine.mix_selection.enabled("tracks") == ["bd", "sd", "hh", "cp"]

    with pytest.raises(InvariantViolationError):
        engine.generate_track_code("hh")


def test_clear_and_load_code(engine: SessionEngine) -> None:
    engine.toggle_preset_mix("b")
    engine.clear_code()
    assert engine.editor_text == ""
    assert not engine.mix_selection.any_enabled()

    engine.load_code("s('bd*2')")
    assert engine.editor_text == "s('bd*2')"
    engine.undo()
    assert engine.editor_text == ""


def test_synth_parameters_rewrite_program(engine: SessionEngine) -> None:
    engine.toggle_step("bd", 0)
    engine.toggle_track_mix("bd")

    engine.set_synth_param("lpf", 1200)
    assert engine.editor_text == TEMPO + BD_FIRST

    engine.set_effects_enabled(True)
    assert engine.editor_text == TEMPO + BD_FIRST + ".lpf(1200).lpq(1).room(0.5).delay(0.3)"

    engine.set_bpm(140)
    engine.set_bpm_enabled(False)
    assert engine.editor_text == BD_FIRST + ".lpf(1200).lpq(1).room(0.5).delay(0.3)"
    assert engine.synth_params.bpm == 140


def test_invalid_synth_parameters_are_rejected(engine: SessionEngine) -> None:
    with pytest.raises(MalformedInputError):
        engine.set_synth_param("volume", 1.0)
    with pytest.raises(OutOfRangeError):
        engine.set_synth_param("room", -1.0)
    with pytest.raises(OutOfRangeError):
        engine.set_bpm(0)

    assert engine.synth_params.room == 0.5
    assert len(engine.history) == 0


@pytest.mark.parametrize("value", [float("nan"), float("inf"), float("-inf")])
def test_non_finite_parameters_are_rejected(engine: SessionEngine, value: float) -> None:
    engine.toggle_step("bd", 0)
    engine.toggle_track_mix("bd")
    history_length = len(engine.history)

    with pytest.raises(OutOfRangeError):
        engine.set_bpm(value)
    with pytest.raises(OutOfRangeError):
        engine.set_synth_param("lpf", value)

    assert engine.synth_params.bpm == 120
    assert engine.editor_text == TEMPO + BD_FIRST
    assert len(engine.history) == history_length


def test_visualizer_toggles(engine: SessionEngine) -> None:
    engine.toggle_step("bd", 0)
    engine.toggle_track_mix("bd")

    assert engine.toggle_visualizer("scope") == "scope"
    assert engine.editor_text.endswith(".scope()")
    assert engine.toggle_visualizer("spectrum") == "spectrum"
    assert engine.editor_text.endswith(".spectrum()")
    assert engine.toggle_visualizer("spectrum") == "none"
    assert engine.editor_text == TEMPO + BD_FIRST
    with pytest.raises(MalformedInputError):
        engine.toggle_visualizer("oscilloscope")


def test_save_load_and_delete_patterns(engine: SessionEngine) -> None:
    with pytest.raises(MalformedInputError):
        engine.save_pattern("empty")

    engine.toggle_step("bd", 0)
    engine.toggle_track_mix("bd")
    engine.set_bpm(100)
    saved = engine.save_pattern("X")
    with pytest.raises(DuplicateNameError):
        engine.save_pattern("X")

    engine.toggle_step("bd", 0)
    engine.set_bpm(90)
    assert engine.editor_text == ""

    loaded = engine.load_pattern("X")
    assert loaded.code == saved.code
    assert engine.track_steps("bd")[0] is True
    assert engine.synth_params.bpm == 100
    assert engine.editor_text == saved.code
    assert engine.mix_selection.enabled("saved") == ["X"]
    assert engine.mix_selection.enabled("tracks") == []

    engine.delete_pattern("X")
    assert engine.library.names() == []
    assert engine.mix_selection.saved == {}
    assert engine.editor_text == ""
    with pytest.raises(NotFoundError):
        engine.load_pattern("X")


def test_toggle_saved_mix_requires_existing_pattern(engine: SessionEngine) -> None:
    engine.load_code("s('cp*4')")
    engine.save_pattern("claps")

    assert engine.toggle_saved_mix("claps") is True
    assert engine.editor_text == TEMPO + "s('cp*4')"
    with pytest.raises(NotFoundError):
        engine.toggle_saved_mix("ghost")


def test_import_patterns_is_atomic(engine: SessionEngine) -> None:
    engine.load_code("s('bd')")
    engine.save_pattern("keep")
    engine.toggle_saved_mix("keep")
    history_length = len(engine.history)

    with pytest.raises(MalformedInputError):
        engine.import_patterns([["fresh", {"code": "s('hh')"}], ["broken"]])

    assert engine.library.names() == ["keep"]
    assert engine.mix_selection.enabled("saved") == ["keep"]
    assert len(engine.history) == history_length

    exported = engine.export_patterns()
    assert engine.import_patterns([["fresh", {"code": "s('hh')"}], *exported]) == 2
    assert engine.library.names() == ["fresh", "keep"]
    assert engine.mix_selection.saved == {}
    assert engine.editor_text == ""


def test_record_round_trip_and_repository_restore(
    engine: SessionEngine, repository: InMemorySessionRepository
) -> None:
    engine.toggle_step("cp", 3)
    engine.load_code("s('cp')")
    engine.save_pattern("cp")
    engine.toggle_saved_mix("cp")

    record = engine.to_record()
    clone = SessionEngine.from_record(record)
    assert clone.to_record() == record

    restored = SessionEngine.restore_from_repository(repository)
    assert restored.track_steps("cp")[3] is True
    assert restored.library.names() == ["cp"]
    assert restored.editor_text == engine.editor_text


def test_restore_prunes_unknown_selection_entries() -> None:
    repository = InMemorySessionRepository()
    repository.save(
        "cybersynth_state",
        PersistedSession.model_validate({"mixSelection": {"presets": {"a": True, "nope": True}, "saved": {"gone": True}}}),
    )

    engine = SessionEngine.restore_from_repository(repository)

    assert engine.mix_selection.presets == {"a": True}
    assert engine.mix_selection.saved == {}


def test_restore_without_saved_session_uses_defaults() -> None:
    engine = SessionEngine.restore_from_repository(InMemorySessionRepository())

    assert engine.track_ids() == ["bd", "sd", "hh", "cp"]
    assert engine.editor_text == ""


def test_restore_autosaves_into_configured_state_dir(tmp_path) -> None:
    config = SessionConfig(edit_debounce_seconds=0.0, state_dir=tmp_path, storage_key="studio")
    engine = SessionEngine.restore_from_repository(config=config)

    engine.toggle_step("sd", 2)

    assert (tmp_path / "studio.json").exists()
    reopened = SessionEngine.from_environment(
        {"CYBERSTRUDEL_STATE_DIR": str(tmp_path), "CYBERSTRUDEL_STORAGE_KEY": "studio"}
    )
    assert reopened.track_steps("sd")[2] is True
    assert reopened.view().notices == ()


def test_restore_without_repository_or_state_dir_does_not_persist() -> None:
    engine = SessionEngine.restore_from_repository(config=SessionConfig(edit_debounce_seconds=0.0))

    engine.toggle_step("bd", 0)

    assert engine.persist() is False
    assert engine.last_persist_error is None


def test_persist_failure_is_reported_not_raised() -> None:
    class FailingRepository(InMemorySessionRepository):
        def save(self, identifier, session):
            raise SessionRepositoryError("disk full")

    engine = SessionEngine(config=SessionConfig(edit_debounce_seconds=0.0), repository=FailingRepository())

    engine.toggle_step("bd", 0)

    assert engine.track_steps("bd")[0] is True
    assert isinstance(engine.last_persist_error, SessionRepositoryError)
    assert engine.view().notices == ("Autosave failed: disk full",)


def test_grid_front_end_policy() -> None:
    engine = SessionEngine(config=SessionConfig.grid_front_end(edit_debounce_seconds=0.0))
    engine.toggle_mute("hh")
    engine.toggle_solo("bd")

    engine.toggle_solo("sd")

    assert not engine.track_config("bd").solo
    assert not engine.track_config("hh").muted
    assert engine.toggle_mute("sd") is True
    assert not engine.track_config("sd").solo
