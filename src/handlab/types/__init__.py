"""
Data model, notifications, configuration and errors.

1. Telemetry
    - `MovementRecord`: one decoded 48-byte sample from the handle
    - `Vec2`: planar positions for targets and the cursor

2. Experiment state
    - `ExperimentState`: the closed set of controller states
    - `TERMINAL_STATES`: `Finished` and `Stopped`

3. Notifications (controller -> display)
    - MessagePack serialisable dataclasses with a `type` discriminator, so a
      display can decode any of them with `Notification.from_msgpack`

4. Configuration
    - `ExperimentConfig`, usually loaded with `handlab.config`

5. Errors
    - Everything raised by the core derives from `HandlabError`

Examples
--------
Handling a notification:
```python
from handlab.types import Notification, StateUpdate
notif = Notification.from_msgpack(payload)
if isinstance(notif, StateUpdate):
    print(f"{notif.old_state} -> {notif.new_state}")
```

See Also
--------
handlab.net : Wire formats
handlab.experiment : The state machine that owns `ExperimentState`
"""

from __future__ import annotations

from .config import ExperimentConfig
from .messages import (
    ErrorNotice,
    Message,
    Notification,
    OperatorPrompt,
    RenderState,
    StateUpdate,
    TrialFeedback,
)
from .records import TERMINAL_STATES, ExperimentState, MovementRecord, Vec2


# Exceptions
class HandlabError(Exception):
    """Base exception for the controller core."""

    pass


class ShortBuffer(HandlabError, ValueError):
    """Raised when a telemetry payload is shorter than one record."""

    def __init__(self, size: int, expected: int):
        super().__init__(
            f"Telemetry payload too small: {size} bytes (expected {expected})"
        )
        self.size = size
        self.expected = expected


class BindFailure(HandlabError):
    """Raised when the telemetry socket cannot be bound."""

    pass


class IOFailure(HandlabError):
    """Raised when a block log cannot be opened, written or drained."""

    pass


class CommandError(HandlabError):
    """Base exception for command delivery errors."""

    pass


class ConnectTimeout(CommandError):
    """Raised when the command connection is not established in time."""

    pass


class SendFailure(CommandError):
    """Raised when the command connection is refused or the write fails."""

    pass


class OperatorAbort(HandlabError):
    """Raised inside the state machine when an emergency stop interrupts a wait."""

    pass


__all__ = [
    "ExperimentConfig",
    "Message",
    "Notification",
    "StateUpdate",
    "RenderState",
    "OperatorPrompt",
    "TrialFeedback",
    "ErrorNotice",
    "MovementRecord",
    "Vec2",
    "ExperimentState",
    "TERMINAL_STATES",
    "HandlabError",
    "ShortBuffer",
    "BindFailure",
    "IOFailure",
    "CommandError",
    "ConnectTimeout",
    "SendFailure",
    "OperatorAbort",
]
