"""Error hierarchy shared by the sequencer, mixer, and session layers.

Every failure raised here is local and recoverable: the operation that
raised it has left the session state exactly as it found it.
"""
from __future__ import annotations


class SessionError(Exception):
    """Base error for recoverable session failures."""


class InvariantViolationError(SessionError):
    """Raised when an operation would break a structural invariant."""


class OutOfRangeError(SessionError):
    """Raised for step indices, step counts, or probabilities outside the allowed set."""


class DuplicateNameError(SessionError):
    """Raised when saving a pattern under a name that already exists."""


class NotFoundError(SessionError):
    """Raised when a track, preset, or saved pattern cannot be located."""


class NothingToUndoError(SessionError):
    """Raised when the history cursor already sits on the oldest entry."""


class NothingToRedoError(SessionError):
    """Raised when the history cursor already sits on the newest entry."""


class MalformedInputError(SessionError):
    """Raised when imported or user supplied data cannot be interpreted."""


class EvaluationError(SessionError):
    """Raised when the external evaluator rejects a program."""


class ConfigurationError(SessionError):
    """Raised when environment-provided configuration is invalid."""


__all__ = [
    "SessionError",
    "InvariantViolationError",
    "OutOfRangeError",
    "DuplicateNameError",
    "NotFoundError",
    "NothingToUndoError",
    "NothingToRedoError",
    "MalformedInputError",
    "EvaluationError",
    "ConfigurationError",
]
