"""Binary layout of the telemetry datagram.

Each datagram carries one `MovementRecord`: eleven little-endian IEEE-754
single-precision floats followed by a little-endian signed 32-bit flag, 48
bytes in total::

    offset  field
    0       time_step
    4       handle_pos_x
    8       handle_pos_y
    12      handle_vel_x
    16      handle_vel_y
    20      handle_acc_x
    24      handle_acc_y
    28      target_start_x
    32      target_start_y
    36      target_end_x
    40      target_end_y
    44      trial_finished (int32, 0 or 1)

Values are not range checked; NaN and Inf are passed through.
"""

from __future__ import annotations

import struct
from dataclasses import astuple

from handlab.types import MovementRecord, ShortBuffer

__all__ = ["RECORD_SIZE", "RECORD_STRUCT", "decode", "encode"]

RECORD_STRUCT = struct.Struct("<11fi")
RECORD_SIZE = RECORD_STRUCT.size  # 48


def decode(payload: bytes) -> MovementRecord:
    """Decode the first 48 bytes of `payload`; trailing bytes are ignored."""
    if len(payload) < RECORD_SIZE:
        raise ShortBuffer(len(payload), RECORD_SIZE)
    return MovementRecord(*RECORD_STRUCT.unpack_from(payload))


def encode(record: MovementRecord) -> bytes:
    return RECORD_STRUCT.pack(*astuple(record))
