"""Runtime configuration for :class:`session.engine.SessionEngine`."""
from __future__ import annotations

from dataclasses import dataclass, field
import os
from pathlib import Path
from typing import Callable, Mapping, TypeVar

from domain.errors import ConfigurationError
from domain.repository import LocalSessionRepository
from tracker.track_store import TrackPolicy

_T = TypeVar("_T")
_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


def _parse_bool(raw: str) -> bool:
    value = raw.strip().lower()
    if value in _TRUE_VALUES:
        return True
    if value in _FALSE_VALUES:
        return False
    raise ValueError(f"expected a boolean, got {raw!r}")


def _read(environment: Mapping[str, str], name: str, parse: Callable[[str], _T], default: _T) -> _T:
    raw = environment.get(name)
    if raw is None or raw == "":
        return default
    try:
        return parse(raw)
    except ValueError as exc:
        raise ConfigurationError(f"{name} is invalid: {exc}") from exc


@dataclass(frozen=True)
class SessionConfig:
    """Engine settings with defaults that match the sequencer front end."""

    max_history: int = 50
    edit_debounce_seconds: float = 0.5
    randomize_probability: float = 0.5
    random_mix_count: int = 3
    track_policy: TrackPolicy = field(default_factory=TrackPolicy)
    storage_key: str = "cybersynth_state"
    state_dir: Path | None = None

    def __post_init__(self) -> None:
        if self.max_history <= 0:
            raise ConfigurationError("max_history must be positive")
        if self.edit_debounce_seconds < 0.0:
            raise ConfigurationError("edit_debounce_seconds must not be negative")
        if not 0.0 <= self.randomize_probability <= 1.0:
            raise ConfigurationError("randomize_probability must be within [0, 1]")
        if self.random_mix_count <= 0:
            raise ConfigurationError("random_mix_count must be positive")
        if not self.storage_key:
            raise ConfigurationError("storage_key must not be empty")

    @classmethod
    def grid_front_end(cls, **overrides: object) -> "SessionConfig":
        """Settings reproducing the browser grid front end.

        Soloing there was exclusive and unmuted the other tracks, and a step
        became active when a uniform draw exceeded 0.7.
        """

        values: dict[str, object] = {
            "randomize_probability": 0.3,
            "track_policy": TrackPolicy(
                exclusive_solo=True,
                solo_clears_sibling_mute=True,
                mute_clears_solo=True,
            ),
        }
        values.update(overrides)
        return cls(**values)  # type: ignore[arg-type]

    def repository(self) -> LocalSessionRepository | None:
        """Return the repository autosaving into ``state_dir``, or ``None`` when unset."""

        if self.state_dir is None:
            return None
        return LocalSessionRepository.in_directory(self.state_dir)

    @classmethod
    def from_environment(
        cls,
        env: Mapping[str, str] | None = None,
    ) -> "SessionConfig":
        """Build a configuration from ``CYBERSTRUDEL_*`` environment variables.

        ``CYBERSTRUDEL_MAX_HISTORY``
            Number of undo snapshots kept; defaults to ``50``.
        ``CYBERSTRUDEL_EDIT_DEBOUNCE_SECONDS``
            Quiet period before a burst of text edits is recorded.
        ``CYBERSTRUDEL_RANDOMIZE_PROBABILITY``
            Chance that a randomized step becomes active.
        ``CYBERSTRUDEL_RANDOM_MIX_COUNT``
            Presets picked by a random mix.
        ``CYBERSTRUDEL_EXCLUSIVE_SOLO`` / ``CYBERSTRUDEL_SOLO_CLEARS_SIBLING_MUTE`` /
        ``CYBERSTRUDEL_MUTE_CLEARS_SOLO``
            Boolean solo/mute policy switches.
        ``CYBERSTRUDEL_STATE_DIR`` / ``CYBERSTRUDEL_STORAGE_KEY``
            Autosave directory and the document name inside it.
        """

        environment: Mapping[str, str] = os.environ if env is None else env
        defaults = cls()
        policy = TrackPolicy(
            exclusive_solo=_read(environment, "CYBERSTRUDEL_EXCLUSIVE_SOLO", _parse_bool, False),
            solo_clears_sibling_mute=_read(
                environment, "CYBERSTRUDEL_SOLO_CLEARS_SIBLING_MUTE", _parse_bool, False
            ),
            mute_clears_solo=_read(environment, "CYBERSTRUDEL_MUTE_CLEARS_SOLO", _parse_bool, False),
        )
        state_dir = environment.get("CYBERSTRUDEL_STATE_DIR")
        return cls(
            max_history=_read(environment, "CYBERSTRUDEL_MAX_HISTORY", int, defaults.max_history),
            edit_debounce_seconds=_read(
                environment,
                "CYBERSTRUDEL_EDIT_DEBOUNCE_SECONDS",
                float,
                defaults.edit_debounce_seconds,
            ),
            randomize_probability=_read(
                environment,
                "CYBERSTRUDEL_RANDOMIZE_PROBABILITY",
                float,
                defaults.randomize_probability,
            ),
            random_mix_count=_read(
                environment, "CYBERSTRUDEL_RANDOM_MIX_COUNT", int, defaults.random_mix_count
            ),
            track_policy=policy,
            storage_key=environment.get("CYBERSTRUDEL_STORAGE_KEY") or defaults.storage_key,
            state_dir=Path(state_dir).expanduser() if state_dir else None,
        )


__all__ = ["SessionConfig"]
