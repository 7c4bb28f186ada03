"""Domain package exposing session data models, the pattern library, and persistence helpers."""
from .errors import (
    ConfigurationError,
    DuplicateNameError,
    EvaluationError,
    InvariantViolationError,
    MalformedInputError,
    NothingToRedoError,
    NothingToUndoError,
    NotFoundError,
    OutOfRangeError,
    SessionError,
)
from .models import (
    ALLOWED_STEP_COUNTS,
    TONAL_SOUNDS,
    HistoryEntry,
    MixSelection,
    PersistedSession,
    SavedPattern,
    SessionState,
    SynthParams,
    Track,
    TrackConfig,
)
from .pattern_library import PatternLibrary, parse_export_entries
from .persistence import PatternLibraryFileAdapter, SessionFileAdapter, SessionSerializer
from .repository import (
    InMemorySessionRepository,
    LocalSessionRepository,
    SessionNotFoundError,
    SessionRepository,
    SessionRepositoryError,
    SessionSummary,
)

__all__ = [
    "ALLOWED_STEP_COUNTS",
    "TONAL_SOUNDS",
    "ConfigurationError",
    "DuplicateNameError",
    "EvaluationError",
    "HistoryEntry",
    "InMemorySessionRepository",
    "InvariantViolationError",
    "LocalSessionRepository",
    "MalformedInputError",
    "MixSelection",
    "NotFoundError",
    "NothingToRedoError",
    "NothingToUndoError",
    "OutOfRangeError",
    "PatternLibrary",
    "PatternLibraryFileAdapter",
    "PersistedSession",
    "SavedPattern",
    "SessionError",
    "SessionFileAdapter",
    "SessionNotFoundError",
    "SessionRepository",
    "SessionRepositoryError",
    "SessionSerializer",
    "SessionState",
    "SessionSummary",
    "SynthParams",
    "Track",
    "TrackConfig",
    "parse_export_entries",
]
