"""Session orchestration: the engine façade, its configuration and view models."""

from .config import SessionConfig
from .debounce import EditDebouncer
from .engine import SessionEngine
from .evaluator import Evaluator
from .state import SessionView, SourceView, TrackView

__all__ = [
    "EditDebouncer",
    "Evaluator",
    "SessionConfig",
    "SessionEngine",
    "SessionView",
    "SourceView",
    "TrackView",
]
