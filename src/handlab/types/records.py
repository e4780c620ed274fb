"""Telemetry record and experiment state types."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import NamedTuple


class Vec2(NamedTuple):
    """A planar position (workspace units)."""

    x: float
    y: float


@dataclass(frozen=True)
class MovementRecord:
    """One decoded telemetry sample from the handle.

    Field order matches the wire layout (see `handlab.net.codec`).
    `trial_finished` is 1 on samples sent after the peripheral considers the
    current trial complete, 0 otherwise.
    """

    time_step: float
    handle_pos_x: float
    handle_pos_y: float
    handle_vel_x: float
    handle_vel_y: float
    handle_acc_x: float
    handle_acc_y: float
    target_start_x: float
    target_start_y: float
    target_end_x: float
    target_end_y: float
    trial_finished: int

    @property
    def handle_pos(self) -> Vec2:
        return Vec2(self.handle_pos_x, self.handle_pos_y)

    @property
    def is_trial_finished(self) -> bool:
        return self.trial_finished == 1


class ExperimentState(str, Enum):
    """State of the experiment. Values are the names written to the CSV log."""

    IDLE = "Idle"
    READY_TO_START = "ReadyToStart"
    TRIAL_RUNNING = "TrialRunning"
    TRIAL_FINISHED = "TrialFinished"
    RESTING = "Resting"
    FINISHED = "Finished"
    STOPPED = "Stopped"

    def __str__(self):
        return self.value

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATES


TERMINAL_STATES = frozenset({ExperimentState.FINISHED, ExperimentState.STOPPED})
