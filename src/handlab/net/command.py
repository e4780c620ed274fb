"""TCP command channel to the peripheral.

Every command gets its own connection: connect, write one ASCII line, close.
Commands are rare (one per trial) and a fresh connection never inherits a
half-open socket from a previous exchange.

Nothing here retries. A `START_TRIAL` that is retried after a slow first
delivery would start the same trial twice on the peripheral, so the caller
decides what a failure means.
"""

from __future__ import annotations

import asyncio
from enum import Enum
from typing import Optional

from loguru import logger

from handlab.types import ConnectTimeout, SendFailure, Vec2
from handlab.util import DEFAULT_CONNECT_TIMEOUT, DEFAULT_HOST_ADDR, DEFAULT_TCP_PORT
from handlab.util.save import fmt_float

__all__ = ["START_TRIAL", "CommandChannel", "SendResult", "format_start_trial"]

START_TRIAL = "START_TRIAL"


class SendResult(str, Enum):
    """Outcome of a successful `CommandChannel.send`. Failures raise instead."""

    SENT = "sent"
    SKIPPED = "skipped"  # empty command, no connection opened


def format_start_trial(start: Vec2, end: Vec2) -> str:
    """`START_TRIAL;<startX>;<startY>;<endX>;<endY>` with `.` decimals."""
    return ";".join(
        (START_TRIAL, *(fmt_float(v) for v in (start[0], start[1], end[0], end[1])))
    )


class CommandChannel:
    """Sends commands to the peripheral's TCP command port."""

    def __init__(
        self,
        host: str = DEFAULT_HOST_ADDR,
        port: int = DEFAULT_TCP_PORT,
        timeout: float = DEFAULT_CONNECT_TIMEOUT,
    ):
        self.host = host
        self.port = port
        self.timeout = timeout

    def __repr__(self):
        return f"CommandChannel({self.host}:{self.port}, timeout={self.timeout})"

    async def send(
        self, command: str, deadline: Optional[float] = None
    ) -> SendResult:
        """Deliver `command` on a new connection.

        Parameters
        ----------
        command : str
            ASCII command text. An empty command is not sent.
        deadline : float, optional
            Seconds allowed to establish the connection, by default the
            channel's `timeout`.

        Returns
        -------
        SendResult
            `SENT` once the command was written, `SKIPPED` for an empty
            command. Both are truthy: neither is a failure.

        Raises
        ------
        ConnectTimeout
            The connection was not established within `deadline`.
        SendFailure
            The connection was refused or the write failed.
        """
        if not command:
            logger.debug("Empty command, nothing sent.")
            return SendResult.SKIPPED
        if deadline is None:
            deadline = self.timeout
        try:
            data = command.encode("ascii")
        except UnicodeEncodeError as err:
            raise SendFailure(f"Command is not ASCII: {command!r}") from err

        try:
            reader, writer = await asyncio.wait_for(
                asyncio.open_connection(self.host, self.port), timeout=deadline
            )
        except asyncio.TimeoutError as err:
            logger.error(
                "TCP connect to {}:{} timed out after {} s.",
                self.host,
                self.port,
                deadline,
            )
            raise ConnectTimeout(
                f"Connect to {self.host}:{self.port} timed out after {deadline} s"
            ) from err
        except OSError as err:
            logger.error("TCP connect to {}:{} failed: {}", self.host, self.port, err)
            raise SendFailure(f"Connect to {self.host}:{self.port} failed: {err}") from err

        try:
            writer.write(data)
            await writer.drain()
        except OSError as err:
            logger.error("TCP command write failed: {}", err)
            raise SendFailure(f"Write to {self.host}:{self.port} failed: {err}") from err
        finally:
            writer.close()
            try:
                await writer.wait_closed()
            except OSError:
                # peer reset after our write; the command is already out.
                logger.debug("Peer reset while closing command connection.")
        logger.info("TCP command sent: {}", command)
        return SendResult.SENT
