"""Per-trial context and target generation."""

from __future__ import annotations

from dataclasses import dataclass, field

import numpy as np

from handlab.net.command import format_start_trial
from handlab.types import ExperimentConfig, Vec2

from .signals import OneShot


@dataclass(eq=False)
class TrialContext:
    """One trial: where it goes and whether it is done.

    `completion` is fresh for every trial, so a finish flag that belongs to an
    earlier trial can never end this one.
    """

    block: int
    trial: int
    start: Vec2
    end: Vec2
    completion: OneShot[bool] = field(default_factory=OneShot)
    timed_out: bool = False

    @property
    def command(self) -> str:
        return format_start_trial(self.start, self.end)

    def is_complete(self) -> bool:
        return self.completion.is_set()


class TargetGenerator:
    """Random start/end positions for successive trials.

    Start: `start_centre` + U(-start_jitter, +start_jitter) per axis.
    End: U(end_range_x) x U(end_range_y).
    Positions are rounded to single precision, the resolution of the wire.
    """

    def __init__(
        self,
        start_centre: tuple[float, float] = (-3.0, -3.0),
        start_jitter: tuple[float, float] = (1.0, 1.0),
        end_range_x: tuple[float, float] = (-4.5, 4.5),
        end_range_y: tuple[float, float] = (-0.5, 0.5),
        seed: int | None = None,
    ):
        self._start_centre = np.asarray(start_centre, dtype=np.float64)
        self._start_jitter = np.asarray(start_jitter, dtype=np.float64)
        self._end_low = np.array([end_range_x[0], end_range_y[0]], dtype=np.float64)
        self._end_high = np.array([end_range_x[1], end_range_y[1]], dtype=np.float64)
        self._rng = np.random.default_rng(seed)

    @classmethod
    def from_config(cls, config: ExperimentConfig) -> "TargetGenerator":
        return cls(
            start_centre=config.start_centre,
            start_jitter=config.start_jitter,
            end_range_x=config.end_range_x,
            end_range_y=config.end_range_y,
            seed=config.seed,
        )

    def next_targets(self) -> tuple[Vec2, Vec2]:
        start = self._start_centre + self._rng.uniform(-1.0, 1.0, 2) * self._start_jitter
        end = self._rng.uniform(self._end_low, self._end_high)
        start = start.astype(np.float32)
        end = end.astype(np.float32)
        return (
            Vec2(float(start[0]), float(start[1])),
            Vec2(float(end[0]), float(end[1])),
        )
