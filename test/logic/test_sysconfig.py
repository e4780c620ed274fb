"""Tests for experiment configuration handling."""

from configparser import ConfigParser
from pathlib import Path

import pytest

from handlab.config import (
    copy_experiment_config,
    create_default_config_file,
    get_experiment_config,
    list_available_configs,
    load_experiment_config,
    validate_experiment_config,
)
from handlab.types import ExperimentConfig


@pytest.fixture
def temp_config_dir(tmp_path):
    """Create temporary .handlab directory."""
    config_dir = tmp_path / ".handlab"
    config_dir.mkdir()
    return config_dir


@pytest.fixture
def mock_experiments_file(temp_config_dir):
    """Create a mock experiments.ini file."""
    experiments_file = temp_config_dir / "experiments.ini"
    config = ConfigParser()
    config["Pilot"] = {
        "total_blocks": "2",
        "trials_per_block": "5",
        "rest_time": "10",
        "feedback_message": "Nice",
        "udp_port": "30001",
        "start_centre": "-2.0, -2.5",
        "end_range_x": "-1, 1",
        "seed": "99",
    }
    with experiments_file.open("w") as f:
        config.write(f)
    return experiments_file


@pytest.fixture
def home(mock_experiments_file, monkeypatch):
    home_dir = mock_experiments_file.parent.parent
    monkeypatch.setattr(Path, "home", lambda: home_dir)
    return home_dir


def test_validate_experiment_config(mock_experiments_file):
    config = ConfigParser()
    config.read(mock_experiments_file)

    is_valid, error_msg = validate_experiment_config(config, "Pilot")
    assert is_valid, f"Valid configuration was marked as invalid: {error_msg}"
    assert error_msg == ""

    config["Pilot"]["trials_per_lbock"] = "3"
    is_valid, error_msg = validate_experiment_config(config, "Pilot")
    assert not is_valid
    assert "Unknown fields" in error_msg


@pytest.mark.parametrize(
    "key, value",
    [
        ("total_blocks", "zero"),
        ("total_blocks", "0"),
        ("rest_time", "-1"),
        ("start_centre", "1, 2, 3"),
    ],
)
def test_validate_experiment_config_bad_values(mock_experiments_file, key, value):
    config = ConfigParser()
    config.read(mock_experiments_file)
    config["Pilot"][key] = value
    is_valid, error_msg = validate_experiment_config(config, "Pilot")
    assert not is_valid
    assert "Invalid value" in error_msg


def test_validate_missing_section(mock_experiments_file):
    config = ConfigParser()
    config.read(mock_experiments_file)
    is_valid, error_msg = validate_experiment_config(config, "Nope")
    assert not is_valid
    assert "Missing section" in error_msg


def test_load_user_config(home):
    config = load_experiment_config("pilot")  # case-insensitive
    assert isinstance(config, ExperimentConfig)
    assert config.name == "Pilot"
    assert config.total_blocks == 2
    assert config.trials_per_block == 5
    assert config.rest_time == 10.0
    assert config.feedback_message == "Nice"
    assert config.udp_port == 30001
    assert config.start_centre == (-2.0, -2.5)
    assert config.end_range_x == (-1.0, 1.0)
    assert config.seed == 99
    # not set in the file: defaults
    assert config.tcp_port == 20002
    assert config.feedback_time == 1.5


def test_load_package_configs(home):
    default = get_experiment_config()
    assert default.total_blocks == 4
    assert default.trials_per_block == 30
    assert default.rest_time == 30.0
    assert default.feedback_time == 1.5
    assert default.feedback_message == "Great!"
    assert default.peripheral_host == "127.0.0.1"
    assert (default.udp_port, default.tcp_port) == (20001, 20002)
    assert default.connect_timeout == 1.0

    mock = get_experiment_config("mock")
    assert mock.total_blocks == 2
    assert mock.seed == 1234


def test_load_missing(home):
    with pytest.raises(ValueError, match="not found"):
        load_experiment_config("does_not_exist")


def test_list_available_configs(home):
    configs = list_available_configs()
    assert configs["Pilot"] == "user"
    assert configs["Default"] == "package"
    assert configs["Mock"] == "package"


def test_copy_experiment_config(home, mock_experiments_file):
    copy_experiment_config("Pilot", "Pilot2")
    copied = load_experiment_config("Pilot2")
    assert copied.trials_per_block == 5
    assert copied.start_centre == (-2.0, -2.5)

    # package configs can be copied into the user file too
    copy_experiment_config("mock", "MyMock")
    assert load_experiment_config("mymock").seed == 1234

    with pytest.raises(ValueError, match="already exists"):
        copy_experiment_config("Pilot", "pilot2")
    with pytest.raises(ValueError):
        copy_experiment_config("NoSuchConfig", "Other")


def test_create_default_config_file(home, mock_experiments_file):
    path = create_default_config_file()
    assert path == mock_experiments_file
    config = ConfigParser()
    config.read(path)
    assert "Pilot" in config.sections()  # preserved
    assert "Default" in config.sections()
    assert validate_experiment_config(config, "Default") == (True, "")
    assert load_experiment_config("default").total_blocks == 4


def test_create_default_config_file_new(tmp_path):
    path = create_default_config_file(tmp_path / "new" / "experiments.ini")
    config = ConfigParser()
    config.read(path)
    assert config.sections() == ["Default"]


def test_config_post_init_validation():
    with pytest.raises(ValueError):
        ExperimentConfig(trials_per_block=0)
    with pytest.raises(ValueError):
        ExperimentConfig(feedback_time=-0.1)
