import sys
from pathlib import Path
from typing import List

import numpy as np
import pytest

ROOT = Path(__file__).resolve().parents[1]
for entry in (ROOT, ROOT / "src"):
    if str(entry) not in sys.path:
        sys.path.insert(0, str(entry))

from domain.models import PersistedSession, SavedPattern, TrackConfig  # noqa: E402
from domain.repository import InMemorySessionRepository  # noqa: E402
from session import SessionConfig, SessionEngine  # noqa: E402


class FakeEvaluator:
    """Records every call; optionally rejects programs containing ``reject_token``."""

    def __init__(self, reject_token: str | None = None) -> None:
        self.reject_token = reject_token
        self.evaluated: List[str] = []
        self.tempos: List[float] = []
        self.stop_calls = 0

    async def evaluate(self, program: str) -> None:
        if self.reject_token and self.reject_token in program:
            raise RuntimeError(f"syntax error near {self.reject_token}")
        self.evaluated.append(program)

    async def stop(self) -> None:
        self.stop_calls += 1

    def set_tempo(self, cycles_per_second: float) -> None:
        self.tempos.append(cycles_per_second)


@pytest.fixture()
def evaluator() -> FakeEvaluator:
    return FakeEvaluator()


@pytest.fixture()
def repository() -> InMemorySessionRepository:
    return InMemorySessionRepository()


@pytest.fixture()
def engine(evaluator: FakeEvaluator, repository: InMemorySessionRepository) -> SessionEngine:
    return SessionEngine(
        config=SessionConfig(edit_debounce_seconds=0.0),
        evaluator=evaluator,
        repository=repository,
        rng=np.random.default_rng(7),
    )


@pytest.fixture()
def example_record() -> PersistedSession:
    pattern = SavedPattern(
        name="groove",
        code="s('hh*4')",
        sequencer_state={"bd": [True, False, False, False]},
        track_configs={"bd": TrackConfig(step_count=4, sound="bd")},
    )
    return PersistedSession(
        sequencer_state={
            "bd": [True, False, True, False, True, False, True, False],
            "sine": [True, False, False, False],
        },
        track_configs={
            "bd": TrackConfig(sound="bd"),
            "sine": TrackConfig(step_count=4, sound="sine"),
        },
        saved_patterns=[pattern],
    )
