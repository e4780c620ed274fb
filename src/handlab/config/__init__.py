"""
Named experiment configurations (INI files).

Examples
--------
```python
from handlab.config import get_experiment_config
config = get_experiment_config("mock")
```

See Also
--------
handlab.config.sysconfig : File format and search order
"""

from handlab.types import ExperimentConfig

from .sysconfig import (
    copy_experiment_config,
    create_default_config_file,
    list_available_configs,
    load_experiment_config,
    user_config_file,
    validate_experiment_config,
)


def get_experiment_config(name: str = "default") -> ExperimentConfig:
    return load_experiment_config(name)


__all__ = [
    "get_experiment_config",
    "copy_experiment_config",
    "create_default_config_file",
    "list_available_configs",
    "load_experiment_config",
    "user_config_file",
    "validate_experiment_config",
]
