"""Composition root: build the controller from a config and run it."""

from __future__ import annotations

import asyncio
from typing import Iterable, Optional

from loguru import logger

from handlab.net import CommandChannel, TelemetryReceiver
from handlab.recording import EventLogger
from handlab.types import ExperimentConfig, ExperimentState, Notification

from .cursor import CursorBridge
from .operator import OperatorInputs
from .orchestrator import TrialOrchestrator
from .render import NotificationHandler, dispatch_notifications, render_pump

_FLUSH_TIMEOUT = 1.0


def build_orchestrator(
    config: ExperimentConfig,
    operator: OperatorInputs,
    notif_queue: Optional[asyncio.Queue[Notification]] = None,
) -> TrialOrchestrator:
    """Construct each component once and wire them together."""
    receiver = TelemetryReceiver(
        config.udp_port, config.udp_host, grace=config.receiver_grace
    )
    command_channel = CommandChannel(
        config.peripheral_host, config.tcp_port, config.connect_timeout
    )
    return TrialOrchestrator(
        config,
        receiver=receiver,
        command_channel=command_channel,
        event_logger=EventLogger(),
        cursor_bridge=CursorBridge(),
        operator=operator,
        notif_queue=notif_queue,
    )


async def run_experiment(
    orchestrator: TrialOrchestrator,
    handlers: Iterable[NotificationHandler] = (),
) -> ExperimentState:
    """Run the state machine with its render pump and notification dispatch.

    Returns the final state (`Finished` or `Stopped`). Notifications still
    queued at the end are delivered before returning.
    """
    pump = asyncio.create_task(
        render_pump(
            orchestrator, orchestrator.cursor_bridge, orchestrator.config.render_interval
        )
    )
    dispatcher = asyncio.create_task(
        dispatch_notifications(orchestrator.notif_queue, handlers)
    )
    try:
        final_state = await orchestrator.state_machine()
    finally:
        pump.cancel()
        try:
            # let call_soon_threadsafe puts land, then drain.
            await asyncio.sleep(0)
            await asyncio.wait_for(orchestrator.notif_queue.join(), _FLUSH_TIMEOUT)
        except TimeoutError:
            logger.warning("Notifications not delivered within {} s.", _FLUSH_TIMEOUT)
        dispatcher.cancel()
        await asyncio.gather(pump, dispatcher, return_exceptions=True)
    return final_state


async def run_from_config(
    config: ExperimentConfig,
    operator: OperatorInputs,
    handlers: Iterable[NotificationHandler] = (),
) -> ExperimentState:
    return await run_experiment(build_orchestrator(config, operator), handlers)
