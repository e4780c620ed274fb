"""Latest-value mailbox for the handle position."""

from __future__ import annotations

from collections import deque
from typing import Optional

from handlab.types import Vec2


class CursorBridge:
    """Hands cursor positions from the receive thread to the render loop.

    The telemetry rate is far above the display rate, so only the newest
    position matters: `publish` overwrites, `consume` takes what is there.
    Values the render loop never saw are gone; do not log or score from here.

    Both ends are single deque operations (atomic in CPython), so neither side
    ever waits on the other.
    """

    def __init__(self):
        self._slot: deque[Vec2] = deque(maxlen=1)

    def publish(self, position: Vec2) -> None:
        self._slot.append(position)

    def consume(self) -> Optional[Vec2]:
        """Newest position since the last consume, or None if there is none."""
        try:
            return self._slot.pop()
        except IndexError:
            return None
