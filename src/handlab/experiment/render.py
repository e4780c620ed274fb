"""Display-rate side of the controller: cursor pump and notification dispatch."""

from __future__ import annotations

import asyncio
import inspect
from typing import TYPE_CHECKING, Any, Callable, Iterable

from loguru import logger

if TYPE_CHECKING:
    from handlab.types import Notification

    from .cursor import CursorBridge
    from .orchestrator import TrialOrchestrator

NotificationHandler = Callable[["Notification"], Any]


async def render_pump(
    orchestrator: TrialOrchestrator, cursor_bridge: CursorBridge, interval: float
) -> None:
    """Push a `RenderState` with the newest cursor, once per display frame.

    Frames without a new position are skipped. Returns when the experiment
    reaches a terminal state.
    """
    logger.debug("Render pump started ({:.1f} Hz).", 1 / interval if interval else 0)
    while not orchestrator.state.is_terminal:
        position = cursor_bridge.consume()
        if position is not None:
            orchestrator.push_render_state(cursor=position)
        await asyncio.sleep(interval)
    logger.debug("Render pump stopped.")


async def dispatch_notifications(
    notif_queue: asyncio.Queue[Notification],
    handlers: Iterable[NotificationHandler],
) -> None:
    """Hand every notification to each handler, in order. Runs until cancelled.

    Handlers may be plain callables or coroutine functions. A failing handler
    is logged and skipped; it does not stop the others.
    """
    handlers = tuple(handlers)
    while True:
        notif = await notif_queue.get()
        for handler in handlers:
            try:
                result = handler(notif)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception("Notification handler {} failed on {}.", handler, notif)
        notif_queue.task_done()
