from pathlib import Path

from handlab.types import ExperimentState, MovementRecord
from handlab.util import (
    CSV_HEADER,
    DEFAULT_LOG_DIR,
    block_log_path,
    fmt_float,
    format_record_line,
)


def test_csv_header():
    assert CSV_HEADER == (
        "Timestamp,HandlePosX,HandlePosY,HandleVelX,HandleVelY,HandleAccX,HandleAccY,"
        "TargetStartPosX,TargetStartPosY,TargetEndPosX,TargetEndPosY,"
        "ExperimentState,CurrentTrial,IsTrialFinished"
    )


def test_fmt_float_shortest_single_precision():
    assert fmt_float(0.1) == "0.1"
    assert fmt_float(-3.25) == "-3.25"
    assert fmt_float(2) == "2.0"
    # the double nearest 0.1 is not a float32; it still prints as 0.1
    assert fmt_float(0.1000000000000000055511151231257827) == "0.1"
    assert fmt_float(float("nan")) == "nan"


def test_format_record_line():
    record = MovementRecord(1.5, *([0.0] * 10), 1)
    line = format_record_line(record, ExperimentState.TRIAL_RUNNING, 2)
    assert line == ",".join(["1.5"] + ["0.0"] * 10 + ["TrialRunning", "2", "1"])
    assert len(line.split(",")) == len(CSV_HEADER.split(","))


def test_format_record_line_state_name_string():
    record = MovementRecord(*([1.0] * 11), 0)
    assert format_record_line(record, "Idle", 0).endswith(",Idle,0,0")


def test_block_log_path(tmp_path):
    assert block_log_path(tmp_path, "S01", 2) == tmp_path / "S01_Block2.csv"
    assert block_log_path(str(tmp_path), "S01", 1).name == "S01_Block1.csv"


def test_block_log_path_default_dir():
    path = block_log_path("", "S07", 3)
    assert path.parent == Path(DEFAULT_LOG_DIR)
    assert path.name == "S07_Block3.csv"
