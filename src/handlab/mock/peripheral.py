from __future__ import annotations

import asyncio
import socket
import time
from typing import Optional

import numpy as np
from loguru import logger

from handlab.net.codec import encode
from handlab.net.command import START_TRIAL
from handlab.types import MovementRecord, Vec2
from handlab.util import DEFAULT_HOST_ADDR, DEFAULT_TCP_PORT, DEFAULT_UDP_PORT


def min_jerk(s: float) -> float:
    """Minimum-jerk position profile, 0 -> 1 over s in [0, 1]."""
    s = min(max(s, 0.0), 1.0)
    return 10 * s**3 - 15 * s**4 + 6 * s**5


class MockPeripheral:
    """Simulated handle: takes `START_TRIAL` over TCP, streams telemetry over UDP.

    Between trials the handle sits still. On `START_TRIAL` it moves from the
    start to the end target along a minimum-jerk path in `trial_duration`
    seconds, then reports `trial_finished = 1` for `finish_repeats` samples.
    """

    def __init__(
        self,
        telemetry_host: str = DEFAULT_HOST_ADDR,
        telemetry_port: int = DEFAULT_UDP_PORT,
        host: str = DEFAULT_HOST_ADDR,
        tcp_port: int = DEFAULT_TCP_PORT,
        rate: float = 200.0,
        trial_duration: float = 0.5,
        finish_repeats: int = 3,
        noise: float = 0.0,
        seed: Optional[int] = None,
    ):
        self.telemetry_addr = (telemetry_host, telemetry_port)
        self.host = host
        self.tcp_port = tcp_port
        self.rate = rate
        self.trial_duration = trial_duration
        self.finish_repeats = finish_repeats
        self.noise = noise
        self.commands: list[str] = []
        self.records_sent = 0

        self._rng = np.random.default_rng(seed)
        self._server: Optional[asyncio.base_events.Server] = None
        self._sock: Optional[socket.socket] = None
        self._stream_task: Optional[asyncio.Task] = None
        self._t0 = 0.0
        self._position = Vec2(0.0, 0.0)
        self._trial: Optional[tuple[Vec2, Vec2, float]] = None  # start, end, t_start
        self._finish_left = 0

    async def __aenter__(self):
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.stop()

    async def start(self) -> None:
        self._server = await asyncio.start_server(
            self._handle_connection, self.host, self.tcp_port
        )
        self.tcp_port = self._server.sockets[0].getsockname()[1]
        self._sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        self._sock.setblocking(False)
        self._t0 = time.monotonic()
        self._stream_task = asyncio.create_task(self._stream())
        logger.info(
            "Mock peripheral: commands on {}:{}, telemetry to {}:{}",
            self.host,
            self.tcp_port,
            *self.telemetry_addr,
        )

    async def stop(self) -> None:
        if self._stream_task is not None:
            self._stream_task.cancel()
            try:
                await self._stream_task
            except asyncio.CancelledError:
                pass
            self._stream_task = None
        if self._server is not None:
            self._server.close()
            await self._server.wait_closed()
            self._server = None
        if self._sock is not None:
            self._sock.close()
            self._sock = None
        logger.info("Mock peripheral stopped ({} records sent).", self.records_sent)

    async def serve_forever(self) -> None:
        async with self:
            await asyncio.Event().wait()

    # ----------------------------------------------------------------------------------

    async def _handle_connection(self, reader, writer):
        try:
            data = await reader.read()
        finally:
            writer.close()
        text = data.decode("ascii", errors="replace").strip()
        self.commands.append(text)
        logger.debug("Mock peripheral got command: {}", text)
        parts = text.split(";")
        if parts[0] != START_TRIAL or len(parts) != 5:
            logger.warning("Mock peripheral ignoring command: {}", text)
            return
        try:
            sx, sy, ex, ey = (float(p) for p in parts[1:])
        except ValueError:
            logger.warning("Mock peripheral could not parse targets: {}", text)
            return
        self._position = Vec2(sx, sy)
        self._trial = (Vec2(sx, sy), Vec2(ex, ey), time.monotonic())
        self._finish_left = 0

    def next_record(self, now: float) -> MovementRecord:
        """Advance the simulated handle to `now` and sample it."""
        previous = self._position
        start = end = previous
        finished = 0
        if self._trial is not None:
            start, end, t_start = self._trial
            s = (now - t_start) / self.trial_duration if self.trial_duration else 1.0
            p = min_jerk(s)
            self._position = Vec2(
                start.x + p * (end.x - start.x), start.y + p * (end.y - start.y)
            )
            if s >= 1.0:
                if self._finish_left == 0:
                    self._finish_left = self.finish_repeats
                self._finish_left -= 1
                finished = 1
                if self._finish_left <= 0:
                    self._trial = None
        dt = 1.0 / self.rate
        x, y = self._position
        if self.noise:
            x, y = np.asarray((x, y)) + self._rng.normal(0.0, self.noise, 2)
        return MovementRecord(
            time_step=now - self._t0,
            handle_pos_x=float(x),
            handle_pos_y=float(y),
            handle_vel_x=(self._position.x - previous.x) / dt,
            handle_vel_y=(self._position.y - previous.y) / dt,
            handle_acc_x=0.0,
            handle_acc_y=0.0,
            target_start_x=start.x,
            target_start_y=start.y,
            target_end_x=end.x,
            target_end_y=end.y,
            trial_finished=finished,
        )

    async def _stream(self) -> None:
        interval = 1.0 / self.rate
        while True:
            record = self.next_record(time.monotonic())
            try:
                self._sock.sendto(encode(record), self.telemetry_addr)
                self.records_sent += 1
            except (BlockingIOError, ConnectionRefusedError):
                pass  # nobody listening yet
            await asyncio.sleep(interval)
