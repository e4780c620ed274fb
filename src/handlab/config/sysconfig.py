"""Experiment configuration handling for handlab.

Named experiment configurations live in INI files, one section per
configuration:

[Default]
total_blocks = 4
trials_per_block = 30
rest_time = 30
feedback_time = 1.5
feedback_message = Great!

# Peripheral
peripheral_host = 127.0.0.1
udp_port = 20001
tcp_port = 20002

# Targets, pairs are "x, y" (or "low, high")
start_centre = -3.0, -3.0
end_range_x = -4.5, 4.5

Any `ExperimentConfig` field may be given; fields that are left out keep their
defaults. Search order for a name: the user file ``~/.handlab/experiments.ini``
then the packaged ``handlab/config/experiments/<name>.ini``.

See Also
--------
handlab.types.config : The `ExperimentConfig` dataclass
"""

from __future__ import annotations

from configparser import ConfigParser, SectionProxy
from dataclasses import fields
from pathlib import Path

from loguru import logger

from handlab.types import ExperimentConfig

_INT_FIELDS = {"total_blocks", "trials_per_block", "udp_port", "tcp_port", "display_port"}
_FLOAT_FIELDS = {
    "rest_time",
    "feedback_time",
    "trial_timeout",
    "connect_timeout",
    "receiver_grace",
    "log_close_grace",
    "render_interval",
}
_PAIR_FIELDS = {"start_centre", "start_jitter", "end_range_x", "end_range_y"}
_OPTIONAL_INT_FIELDS = {"seed"}
_KNOWN_FIELDS = {f.name for f in fields(ExperimentConfig)}


def user_config_file() -> Path:
    return Path.home() / ".handlab" / "experiments.ini"


def package_config_dir() -> Path:
    return Path(__file__).parent / "experiments"


def _parse_pair(value: str) -> tuple[float, float]:
    parts = [p.strip() for p in value.strip("()[] ").split(",")]
    if len(parts) != 2:
        raise ValueError(f"Expected two comma separated numbers, got '{value}'")
    return float(parts[0]), float(parts[1])


def _section_to_dict(section: SectionProxy) -> dict:
    out = {"name": section.name}
    for key, value in section.items():
        if key not in _KNOWN_FIELDS or key == "name":
            continue
        if key in _INT_FIELDS:
            out[key] = int(value)
        elif key in _FLOAT_FIELDS:
            out[key] = float(value)
        elif key in _PAIR_FIELDS:
            out[key] = _parse_pair(value)
        elif key in _OPTIONAL_INT_FIELDS:
            out[key] = int(value) if value.strip().lower() not in ("", "none") else None
        else:
            out[key] = value
    return out


def validate_experiment_config(config: ConfigParser, section: str) -> tuple[bool, str]:
    """Validate an experiment configuration section.

    Parameters
    ----------
    config : ConfigParser
        ConfigParser instance containing the configuration
    section : str
        Name of the section to validate

    Returns
    -------
    tuple[bool, str]
        (is_valid, error_message)
    """
    if section not in config:
        return False, f"Missing section: {section}"
    # DEFAULT keys show up in every section; only check what the section sets.
    own_keys = set(config[section].keys()) - set(config.defaults().keys())
    unknown = sorted(own_keys - _KNOWN_FIELDS)
    if unknown:
        return False, f"Unknown fields: {', '.join(unknown)}"
    try:
        ExperimentConfig.from_dict(_section_to_dict(config[section]))
    except (ValueError, TypeError) as err:
        return False, f"Invalid value: {err}"
    return True, ""


def _create_experiment_config(config: ConfigParser, section: str) -> ExperimentConfig:
    is_valid, error_msg = validate_experiment_config(config, section)
    if not is_valid:
        raise ValueError(f"Invalid experiment configuration '{section}': {error_msg}")
    return ExperimentConfig.from_dict(_section_to_dict(config[section]))


def load_experiment_config(name: str) -> ExperimentConfig:
    """Load a named experiment configuration.

    Parameters
    ----------
    name : str
        Section name, case-insensitive.

    Returns
    -------
    ExperimentConfig
        Loaded and validated configuration.

    Raises
    ------
    ValueError
        Not found, or invalid.

    Notes
    -----
    Search order:
    1. ~/.handlab/experiments.ini
    2. package/config/experiments/<name>.ini
    """
    user_file = user_config_file()
    package_file = package_config_dir() / f"{name.lower()}.ini"

    for path in (user_file, package_file):
        if not path.exists():
            continue
        config = ConfigParser()
        config.read(path)
        for section in config.sections():
            if section.lower() == name.lower():
                logger.debug("Loading experiment config '{}' from {}", section, path)
                return _create_experiment_config(config, section)

    raise ValueError(
        f"Experiment configuration '{name}' not found in:\n"
        f"- User config: {user_file}\n"
        f"- Package config: {package_file}"
    )


def list_available_configs() -> dict[str, str]:
    """Map configuration names to their source, 'user' or 'package'.

    User configurations take precedence over package ones of the same name.
    Does not validate.
    """
    configs = {}
    package_dir = package_config_dir()
    if package_dir.exists():
        for file in sorted(package_dir.glob("*.ini")):
            config = ConfigParser()
            config.read(file)
            for section in config.sections():
                configs[section] = "package"

    user_file = user_config_file()
    if user_file.exists():
        config = ConfigParser()
        config.read(user_file)
        for section in config.sections():
            configs[section] = "user"
    return configs


def config_to_section(exp_config: ExperimentConfig) -> dict[str, str]:
    """INI representation of a configuration (inverse of loading)."""
    out = {}
    for key, value in exp_config.to_dict().items():
        if key == "name":
            continue
        if key in _PAIR_FIELDS:
            out[key] = f"{value[0]}, {value[1]}"
        elif value is None:
            out[key] = "none"
        else:
            out[key] = str(value)
    return out


def create_default_config_file(file_path: Path | None = None) -> Path:
    """Write the user configuration file with a 'Default' section.

    Existing sections in the file are preserved; a 'Default' section already
    present is left as it is.
    """
    file_path = Path(file_path) if file_path is not None else user_config_file()
    file_path.parent.mkdir(parents=True, exist_ok=True)

    config = ConfigParser()
    if file_path.exists():
        logger.debug("Found existing config file {}", file_path)
        config.read(file_path)
    if "Default" not in config.sections():
        config["Default"] = config_to_section(ExperimentConfig(name="Default"))
        logger.debug("Added 'Default' section to {}", file_path)

    with file_path.open("w") as f:
        config.write(f)
    return file_path


def copy_experiment_config(source: str, dest: str) -> None:
    """Copy a configuration into a new section of the user file.

    The source may be a user or a package configuration.

    Raises
    ------
    ValueError
        Source not found, or destination already exists in the user file.
    """
    source_config = load_experiment_config(source)

    user_file = user_config_file()
    config = ConfigParser()
    if user_file.exists():
        config.read(user_file)
    if any(section.lower() == dest.lower() for section in config.sections()):
        raise ValueError(f"Destination configuration '{dest}' already exists")

    config[dest] = config_to_section(source_config)
    user_file.parent.mkdir(parents=True, exist_ok=True)
    with user_file.open("w") as f:
        config.write(f)
    logger.info("Copied experiment config '{}' -> '{}' in {}", source, dest, user_file)
