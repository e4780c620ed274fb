# -*- coding: utf-8 -*-
"""File conventions for block telemetry logs.

Directory Structure
-----------------
One CSV file per subject and block, all in a single directory:
<log_dir>/<subject>_Block<N>.csv

The default `log_dir` is `~/.handlab/Logs`.

Number Formatting
-----------------
Every float in a CSV row or a command payload is rendered as the shortest
string that round-trips the single-precision value, with a `.` decimal point
regardless of locale (e.g. `0.1`, `-3.25`, `nan`).
"""

from __future__ import annotations

import typing
from pathlib import Path

import numpy as np

from .defaults import DEFAULT_LOG_DIR

if typing.TYPE_CHECKING:
    from handlab.types import ExperimentState, MovementRecord

CSV_COLUMNS = (
    "Timestamp",
    "HandlePosX",
    "HandlePosY",
    "HandleVelX",
    "HandleVelY",
    "HandleAccX",
    "HandleAccY",
    "TargetStartPosX",
    "TargetStartPosY",
    "TargetEndPosX",
    "TargetEndPosY",
    "ExperimentState",
    "CurrentTrial",
    "IsTrialFinished",
)
CSV_HEADER = ",".join(CSV_COLUMNS)


def fmt_float(value: float) -> str:
    """Locale-independent shortest single-precision rendering of `value`."""
    return str(np.float32(value))


def format_record_line(
    record: MovementRecord, state: ExperimentState | str, trial: int
) -> str:
    """One CSV row: the record's 11 floats, then state name, trial and flag."""
    state_name = getattr(state, "value", state)
    return ",".join(
        (
            fmt_float(record.time_step),
            fmt_float(record.handle_pos_x),
            fmt_float(record.handle_pos_y),
            fmt_float(record.handle_vel_x),
            fmt_float(record.handle_vel_y),
            fmt_float(record.handle_acc_x),
            fmt_float(record.handle_acc_y),
            fmt_float(record.target_start_x),
            fmt_float(record.target_start_y),
            fmt_float(record.target_end_x),
            fmt_float(record.target_end_y),
            str(state_name),
            str(trial),
            str(record.trial_finished),
        )
    )


def block_log_path(log_dir: str | Path | None, subject_id: str, block: int) -> Path:
    """Path of the CSV file for `subject_id`'s block number `block` (1-based)."""
    if log_dir is None or str(log_dir) == "":
        log_dir = DEFAULT_LOG_DIR
    return Path(log_dir).expanduser() / f"{subject_id}_Block{block}.csv"
