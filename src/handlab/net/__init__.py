"""
Network side of the controller.

- `codec`: the 48-byte telemetry record layout
- `receiver`: UDP receive thread publishing records to sinks
- `command`: one-shot TCP commands to the peripheral
- `render_pub`: ZeroMQ transport for notifications to displays

See Also
--------
handlab.experiment : Consumers of the telemetry stream
"""

from .codec import RECORD_SIZE, RECORD_STRUCT, decode, encode
from .command import START_TRIAL, CommandChannel, SendResult, format_start_trial
from .receiver import TelemetryReceiver, TelemetrySink
from .render_pub import (
    RenderPublisher,
    clean_queue,
    start_bg_render_listener,
    wait_for_notif,
)

__all__ = [
    "RECORD_SIZE",
    "RECORD_STRUCT",
    "decode",
    "encode",
    "START_TRIAL",
    "CommandChannel",
    "SendResult",
    "format_start_trial",
    "TelemetryReceiver",
    "TelemetrySink",
    "RenderPublisher",
    "start_bg_render_listener",
    "clean_queue",
    "wait_for_notif",
]
