"""
Command-line interface for handlab.

Examples
--------
A mock session, fully automatic:
```bash
$ python examples/mock_peripheral.py &
$ handlab run -n mock -s S01 --auto
```

Checking the peripheral link by hand:
```bash
$ handlab listen -n 10
$ handlab send "START_TRIAL;-3;-3;2;0"
```

CLI Tree
--------

```
$ handlab --tree
cli
└── config
    └── copy
    └── create
    └── list
    └── show
└── listen
└── run
└── send
└── watch
```
"""

from .base import cli, run_controller, tree_option
from .console import ConsoleDisplay, ConsoleOperator, format_notification

__all__ = [
    "cli",
    "run_controller",
    "tree_option",
    "ConsoleDisplay",
    "ConsoleOperator",
    "format_notification",
]
