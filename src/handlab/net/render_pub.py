"""Notification transport to external displays (ZeroMQ PUB/SUB).

The controller binds a PUB socket and sends every notification as one
MessagePack frame. A display connects a SUB socket and decodes frames with
`Notification.from_msgpack`; `start_bg_render_listener` does that into an
`asyncio.Queue`.

PUB/SUB drops messages when no display is connected, which is what a render
push wants: a display that joins late just picks up from the next frame.
"""

from __future__ import annotations

import asyncio
import time
from typing import Optional, Type

import zmq
import zmq.asyncio
from loguru import logger

from handlab.types import Notification
from handlab.util import DEFAULT_DISPLAY_PORT, DEFAULT_HOST_ADDR

__all__ = [
    "RenderPublisher",
    "clean_queue",
    "start_bg_render_listener",
    "wait_for_notif",
]


class RenderPublisher:
    """PUB socket publishing notifications to displays.

    Call `open` before `publish`. `port` 0 binds a random free port, available
    from `port` after `open`.
    """

    def __init__(self, host: str = DEFAULT_HOST_ADDR, port: int = DEFAULT_DISPLAY_PORT):
        self.host = host
        self.port = port
        self._context: Optional[zmq.asyncio.Context] = None
        self._socket: Optional[zmq.asyncio.Socket] = None

    def is_open(self) -> bool:
        return self._socket is not None

    def open(self) -> None:
        if self._socket is not None:
            return
        self._context = zmq.asyncio.Context()
        sock = self._context.socket(zmq.PUB)
        try:
            if self.port == 0:
                self.port = sock.bind_to_random_port(f"tcp://{self.host}")
            else:
                sock.bind(f"tcp://{self.host}:{self.port}")
        except zmq.ZMQError:
            logger.exception("Error opening render publisher.")
            sock.close(linger=0)
            self._context.term()
            self._context = None
            raise
        self._socket = sock
        logger.info("Render publisher bound on {}:{}", self.host, self.port)

    async def publish(self, notif: Notification) -> None:
        if self._socket is None:
            return
        # below is rather loquacious
        logger.trace("*NOTIF* (controller->): {}", notif)
        await self._socket.send(notif.to_msgpack())

    # notification handler interface
    async def __call__(self, notif: Notification) -> None:
        await self.publish(notif)

    def close(self) -> None:
        if self._socket is not None:
            self._socket.close(linger=0)
            self._socket = None
        if self._context is not None:
            self._context.term()
            self._context = None
        logger.info("Render publisher closed.")


def start_bg_render_listener(
    host: str = DEFAULT_HOST_ADDR, port: int = DEFAULT_DISPLAY_PORT
) -> tuple[asyncio.Task, asyncio.Queue]:
    """Subscribe to a controller's notifications.

    Must be called from a running event loop. Returns the listener task and the
    queue it fills; cancel the task to disconnect.
    """
    qu: asyncio.Queue = asyncio.Queue()

    async def listen(queue):
        context = zmq.asyncio.Context()
        sock = context.socket(zmq.SUB)
        sock.setsockopt(zmq.SUBSCRIBE, b"")  # subscribe to all
        sock.connect(f"tcp://{host}:{port}")
        logger.info("Listening for notifications on {}:{}", host, port)
        try:
            while True:
                msg = await sock.recv()
                try:
                    notif = Notification.from_msgpack(msg)
                except Exception:
                    logger.exception("Could not decode notification.")
                    continue
                queue.put_nowait(notif)
                logger.trace("*NOTIF* (display<-): {}", notif)
        finally:
            sock.close(linger=0)
            context.term()

    task = asyncio.create_task(listen(qu))
    return task, qu


def clean_queue(qu: asyncio.Queue):
    while not qu.empty():
        try:
            qu.get_nowait()
        except asyncio.QueueEmpty:
            break


async def wait_for_notif(
    qu: asyncio.Queue, notif_type: Type[Notification], timeout: float = 5.0
) -> Notification:
    """First notification of `notif_type` from `qu`, skipping others.

    Raises
    ------
    TimeoutError
        None arrived within `timeout` seconds.
    """
    start = time.monotonic()
    while time.monotonic() - start < timeout:
        try:
            notif = qu.get_nowait()
            if isinstance(notif, notif_type):
                return notif
        except asyncio.QueueEmpty:
            pass
        await asyncio.sleep(0.01)
    raise TimeoutError(f"Timeout waiting for {notif_type.__name__} notification.")
