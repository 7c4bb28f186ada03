"""Per-track step grids and configuration for the step sequencer."""
from __future__ import annotations

from dataclasses import dataclass
import logging
from typing import Dict, List, Mapping, Sequence, Tuple

import numpy as np

from domain.errors import (
    InvariantViolationError,
    MalformedInputError,
    NotFoundError,
    OutOfRangeError,
)
from domain.models import (
    ALLOWED_STEP_COUNTS,
    DEFAULT_SOUND,
    DEFAULT_STEP_COUNT,
    Track,
    TrackConfig,
    default_sequencer_state,
    default_track_configs,
    resize_steps,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TrackPolicy:
    """Solo/mute interaction rules.

    The defaults let several tracks be soloed at once and never touch a
    sibling's mute flag. Enabling every flag reproduces the behaviour of
    the grid front end, where soloing was exclusive and unmuted the rest.
    """

    exclusive_solo: bool = False
    solo_clears_sibling_mute: bool = False
    mute_clears_solo: bool = False


class TrackStore:
    """Owns the step grids and configs of every track, keyed by stable id.

    Every operation validates its arguments before touching state, so a
    raised error always leaves the store unchanged.
    """

    def __init__(
        self,
        grids: Mapping[str, Sequence[bool]] | None = None,
        configs: Mapping[str, TrackConfig] | None = None,
        *,
        policy: TrackPolicy | None = None,
    ) -> None:
        self._policy = policy or TrackPolicy()
        self._grids: Dict[str, List[bool]] = {}
        self._configs: Dict[str, TrackConfig] = {}
        self.restore(
            grids if grids is not None else default_sequencer_state(),
            configs if configs is not None else default_track_configs(),
        )

    @property
    def policy(self) -> TrackPolicy:
        return self._policy

    def __len__(self) -> int:
        return len(self._grids)

    def __contains__(self, track_id: object) -> bool:
        return track_id in self._grids

    def track_ids(self) -> List[str]:
        """Return track ids in their stable insertion order."""

        return list(self._grids)

    def track(self, track_id: str) -> Track:
        return Track(id=track_id, steps=list(self._grid(track_id)))

    def tracks(self) -> List[Track]:
        return [self.track(track_id) for track_id in self._grids]

    def config(self, track_id: str) -> TrackConfig:
        return self._config(track_id).model_copy()

    def steps(self, track_id: str) -> Tuple[bool, ...]:
        return tuple(self._grid(track_id))

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------
    def any_soloed(self) -> bool:
        return any(config.solo for config in self._configs.values())

    def is_audible(self, track_id: str) -> bool:
        """Apply the mute/solo rule: mute always wins, solo narrows the audible set."""

        config = self._config(track_id)
        if config.muted:
            return False
        return config.solo or not self.any_soloed()

    def has_active_steps(self, track_id: str) -> bool:
        return any(self._grid(track_id))

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------
    def add_track(self, *, sound: str = DEFAULT_SOUND) -> str:
        """Append an empty 8-step track and return its generated id."""

        config = TrackConfig(step_count=DEFAULT_STEP_COUNT, sound=sound)
        suffix = len(self._grids)
        while f"track{suffix}" in self._grids:
            suffix += 1
        track_id = f"track{suffix}"
        self._grids[track_id] = [False] * config.step_count
        self._configs[track_id] = config
        logger.debug("Added track %s with sound %s", track_id, sound)
        return track_id

    def remove_track(self, track_id: str) -> None:
        self._grid(track_id)
        if len(self._grids) <= 1:
            raise InvariantViolationError("Cannot remove the last remaining track")
        del self._grids[track_id]
        del self._configs[track_id]
        logger.debug("Removed track %s", track_id)

    def toggle_step(self, track_id: str, index: int) -> bool:
        """Flip one step and return its new value."""

        grid = self._grid(track_id)
        if index < 0 or index >= len(grid):
            raise OutOfRangeError(
                f"Step index {index} out of range for track {track_id!r} with {len(grid)} steps"
            )
        grid[index] = not grid[index]
        return grid[index]

    def set_step_count(self, track_id: str, count: int) -> None:
        """Resize a grid, keeping leading values and padding new steps as rests."""

        grid = self._grid(track_id)
        if count not in ALLOWED_STEP_COUNTS:
            raise OutOfRangeError(f"Step count must be one of {ALLOWED_STEP_COUNTS}, got {count}")
        self._grids[track_id] = resize_steps(grid, count)
        self._configs[track_id] = self._configs[track_id].model_copy(update={"step_count": count})

    def set_sound(self, track_id: str, sound: str) -> None:
        self._grid(track_id)
        if not sound:
            raise MalformedInputError("Sound identifier must not be empty")
        self._configs[track_id] = self._configs[track_id].model_copy(update={"sound": sound})

    def set_muted(self, track_id: str, muted: bool) -> None:
        update: Dict[str, bool] = {"muted": bool(muted)}
        if muted and self._policy.mute_clears_solo:
            update["solo"] = False
        self._configs[track_id] = self._config(track_id).model_copy(update=update)

    def set_solo(self, track_id: str, solo: bool) -> None:
        config = self._config(track_id)
        if solo:
            for other_id, other in list(self._configs.items()):
                if other_id == track_id:
                    continue
                update: Dict[str, bool] = {}
                if self._policy.exclusive_solo:
                    update["solo"] = False
                if self._policy.solo_clears_sibling_mute:
                    update["muted"] = False
                if update:
                    self._configs[other_id] = other.model_copy(update=update)
        self._configs[track_id] = config.model_copy(update={"solo": bool(solo)})

    def randomize(
        self,
        track_id: str,
        probability: float,
        *,
        rng: np.random.Generator | None = None,
    ) -> List[bool]:
        """Activate each step independently with ``probability``."""

        grid = self._grid(track_id)
        if not 0.0 <= probability <= 1.0:
            raise OutOfRangeError(f"Probability must be within [0, 1], got {probability}")
        generator = rng if rng is not None else np.random.default_rng()
        draws = generator.random(len(grid))
        self._grids[track_id] = [bool(value) for value in draws < probability]
        return list(self._grids[track_id])

    def set_steps(self, track_id: str, steps: Sequence[bool]) -> None:
        """Replace a whole grid; its length becomes the track's step count."""

        self._grid(track_id)
        if len(steps) not in ALLOWED_STEP_COUNTS:
            raise OutOfRangeError(f"Step count must be one of {ALLOWED_STEP_COUNTS}, got {len(steps)}")
        self._grids[track_id] = [bool(value) for value in steps]
        self._configs[track_id] = self._configs[track_id].model_copy(update={"step_count": len(steps)})

    def clear(self, track_id: str) -> None:
        grid = self._grid(track_id)
        self._grids[track_id] = [False] * len(grid)

    # ------------------------------------------------------------------
    # Snapshots
    # ------------------------------------------------------------------
    def snapshot(self) -> Tuple[Dict[str, List[bool]], Dict[str, TrackConfig]]:
        """Return independent copies of the grids and configs."""

        grids = {track_id: list(grid) for track_id, grid in self._grids.items()}
        configs = {track_id: config.model_copy() for track_id, config in self._configs.items()}
        return grids, configs

    def restore(self, grids: Mapping[str, Sequence[bool]], configs: Mapping[str, TrackConfig]) -> None:
        """Replace every track with copies of ``grids`` and ``configs``."""

        if not grids:
            raise InvariantViolationError("A session needs at least one track")
        if set(grids) != set(configs):
            raise InvariantViolationError("Grids and configs must describe the same tracks")
        for track_id, grid in grids.items():
            if len(grid) != configs[track_id].step_count:
                raise InvariantViolationError(
                    f"Track {track_id!r} has {len(grid)} steps but its config declares "
                    f"{configs[track_id].step_count}"
                )
        self._grids = {track_id: [bool(value) for value in grid] for track_id, grid in grids.items()}
        self._configs = {track_id: configs[track_id].model_copy() for track_id in grids}

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _grid(self, track_id: str) -> List[bool]:
        try:
            return self._grids[track_id]
        except KeyError as exc:
            raise NotFoundError(f"Track {track_id!r} not found") from exc

    def _config(self, track_id: str) -> TrackConfig:
        try:
            return self._configs[track_id]
        except KeyError as exc:
            raise NotFoundError(f"Track {track_id!r} not found") from exc


__all__ = ["TrackPolicy", "TrackStore"]
