import pytest

from domain.errors import NotFoundError
from domain.models import MixSelection, SessionState, SynthParams
from domain.pattern_library import PatternLibrary
from mixer import PRESETS, MixEngine, compose_program, parallel, tempo_statement
from tracker.track_store import TrackStore

BD = 's("bd*8").struct("x ~ ~ ~ x ~ ~ ~").gain(0.8)'
SD = 's("sd*8").struct("~ ~ x ~ ~ ~ x ~").gain(0.8)'


@pytest.fixture()
def store() -> TrackStore:
    store = TrackStore()
    for index in (0, 4):
        store.toggle_step("bd", index)
    for index in (2, 6):
        store.toggle_step("sd", index)
    return store


@pytest.fixture()
def library() -> PatternLibrary:
    library = PatternLibrary()
    library.save("late", "s('cp*2')", SessionState())
    return library


def test_empty_selection_yields_empty_program(store: TrackStore, library: PatternLibrary) -> None:
    result = MixEngine().mix(MixSelection(), store, library, SynthParams())

    assert result.program == ""
    assert result.is_empty


def test_single_fragment_is_unwrapped_with_tempo(store: TrackStore, library: PatternLibrary) -> None:
    selection = MixSelection(tracks={"bd": True})

    result = MixEngine().mix(selection, store, library, SynthParams())

    assert result.program == f"setCps(120/60/4)\n{BD}"
    assert [fragment.key for fragment in result.fragments] == ["bd"]


def test_fragments_follow_track_preset_saved_order(store: TrackStore, library: PatternLibrary) -> None:
    selection = MixSelection()
    selection.set_enabled("saved", "late", True)
    selection.set_enabled("presets", "b", True)
    selection.set_enabled("presets", "a", True)
    selection.set_enabled("tracks", "sd", True)
    selection.set_enabled("tracks", "bd", True)

    result = MixEngine().mix(selection, store, library, SynthParams(bpm_enabled=False))

    assert [(fragment.kind, fragment.key) for fragment in result.fragments] == [
        ("track", "bd"),
        ("track", "sd"),
        ("preset", "a"),
        ("preset", "b"),
        ("saved", "late"),
    ]
    assert result.program == f"stack({BD}, {SD}, {PRESETS['a']}, {PRESETS['b']}, s('cp*2'))"


def test_silent_muted_and_unsoloed_tracks_are_skipped(store: TrackStore, library: PatternLibrary) -> None:
    selection = MixSelection(tracks={"bd": True, "sd": True, "hh": True})
    store.set_muted("bd", True)

    engine = MixEngine()
    result = engine.mix(selection, store, library, SynthParams(bpm_enabled=False))
    assert result.program == SD

    store.set_muted("bd", False)
    store.set_solo("bd", True)
    result = engine.mix(selection, store, library, SynthParams(bpm_enabled=False))
    assert result.program == BD


def test_decorations_apply_only_with_fragments(store: TrackStore, library: PatternLibrary) -> None:
    params = SynthParams(bpm=90, effects_enabled=True, visualizer="scope")
    selection = MixSelection(tracks={"bd": True})

    result = MixEngine().mix(selection, store, library, params)

    assert result.program == f"setCps(90/60/4)\n{BD}.lpf(800).lpq(1).room(0.5).delay(0.3).scope()"
    assert compose_program([], params) == ""


def test_selected_but_missing_sources_contribute_nothing(store: TrackStore, library: PatternLibrary) -> None:
    selection = MixSelection(saved={"gone": True}, presets={"zz": True})

    assert MixEngine().mix(selection, store, library, SynthParams()).is_empty


def test_custom_preset_catalogue() -> None:
    engine = MixEngine({"one": "s('bd')"})

    assert engine.preset("one") == "s('bd')"
    with pytest.raises(NotFoundError):
        engine.preset("a")


def test_program_helpers() -> None:
    assert parallel(["a"]) == "a"
    assert parallel(["a", "b"]) == "stack(a, b)"
    assert tempo_statement(132.5) == "setCps(132.5/60/4)"
    assert list(PRESETS) == list("abcdefghijkl")


def test_preset_fragments_are_kept_verbatim() -> None:
    assert list(PRESETS) == list("abcdefghijkl")
    assert PRESETS["f"].count(".lpf(tri.range(100, 5000).slow(2))") == 2
    assert PRESETS["h"] == 'sound("bd*2,<white pink brown>*8")\n.decay(.04).sustain(0).scope()'
