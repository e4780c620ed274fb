"""Single-fire latch between threads and the event loop."""

from __future__ import annotations

import asyncio
import threading
from typing import Generic, Optional, TypeVar

T = TypeVar("T")


class OneShot(Generic[T]):
    """A value that is set at most once and awaited by at most one waiter.

    `set` may be called from any thread, before or after `wait`. The first call
    wins; later calls return False and change nothing. `wait` belongs to the
    event loop the latch was created on.
    """

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None):
        self._loop = loop if loop is not None else asyncio.get_running_loop()
        self._future: asyncio.Future = self._loop.create_future()
        self._lock = threading.Lock()
        self._fired = False
        self._value: Optional[T] = None
        self._waiter_claimed = False

    def __repr__(self):
        return f"OneShot(set={self._fired}, value={self._value!r})"

    def is_set(self) -> bool:
        return self._fired

    @property
    def value(self) -> Optional[T]:
        return self._value

    def set(self, value: T = True) -> bool:
        with self._lock:
            if self._fired:
                return False
            self._fired = True
            self._value = value
        if _running_loop() is self._loop:
            self._resolve(value)
        else:
            self._loop.call_soon_threadsafe(self._resolve, value)
        return True

    async def wait(self) -> T:
        if self._waiter_claimed:
            raise RuntimeError("OneShot already has a waiter.")
        self._waiter_claimed = True
        if self._fired:
            return self._value
        return await self._future

    def _resolve(self, value: T) -> None:
        # the future is cancelled if its waiter was.
        if not self._future.done():
            self._future.set_result(value)


def _running_loop() -> Optional[asyncio.AbstractEventLoop]:
    try:
        return asyncio.get_running_loop()
    except RuntimeError:
        return None
