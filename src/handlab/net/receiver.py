"""UDP telemetry receiver.

The peripheral sends one `MovementRecord` per datagram, at the servo rate. The
receiver owns the socket and a dedicated thread that decodes each datagram and
hands the record to every subscriber, in arrival order, before reading the
next one.

Subscribers are sinks: any object with a non-blocking ``put_nowait(record)``
(a `queue.SimpleQueue`, or `TrialOrchestrator`). Whatever a sink does runs on
the receive thread, so it must be O(1) and must not block.

Stopping closes the socket. Closing does not wake a blocked ``recvfrom`` on
every platform, so the loop also receives with a short timeout and checks the
stop flag between datagrams; either way the thread is gone within the grace
period.
"""

from __future__ import annotations

import socket
import threading
from typing import Optional, Protocol

from loguru import logger

from handlab.types import BindFailure, MovementRecord, ShortBuffer
from handlab.util import DEFAULT_RECEIVER_GRACE, DEFAULT_UDP_PORT

from .codec import RECORD_SIZE, decode

__all__ = ["TelemetryReceiver", "TelemetrySink"]

_RECV_BUFSIZE = 2048
_POLL_INTERVAL = 0.1  # seconds; bounds how long a stop request can go unseen


class TelemetrySink(Protocol):
    def put_nowait(self, record: MovementRecord) -> None: ...


class TelemetryReceiver:
    """Receives telemetry datagrams on a background thread."""

    def __init__(
        self,
        port: int = DEFAULT_UDP_PORT,
        host: str = "",
        *,
        grace: float = DEFAULT_RECEIVER_GRACE,
    ):
        """
        Parameters
        ----------
        port : int
            Local UDP port. 0 binds an ephemeral port, see `port` after `start`.
        host : str
            Local interface to bind, "" for all interfaces.
        grace : float
            Seconds `stop` waits for the receive thread to exit.
        """
        self._host = host
        self._port = port
        self._grace = grace
        self._socket: Optional[socket.socket] = None
        self._thread: Optional[threading.Thread] = None
        self._stop_event = threading.Event()
        self._lock = threading.Lock()
        self._sinks: tuple[TelemetrySink, ...] = ()
        self._received = 0
        self._delivered = 0
        self._dropped = 0
        self._sink_errors = 0

    @property
    def port(self) -> int:
        return self._port

    @property
    def address(self) -> tuple[str, int]:
        return self._host, self._port

    @property
    def statistics(self) -> dict[str, int]:
        return {
            "received": self._received,
            "delivered": self._delivered,
            "dropped": self._dropped,
            "sink_errors": self._sink_errors,
        }

    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    # ------------------------------------------------------------------------------

    def subscribe(self, sink: TelemetrySink) -> None:
        with self._lock:
            if sink not in self._sinks:
                # copy-on-write: the loop iterates a snapshot without locking.
                self._sinks = self._sinks + (sink,)

    def unsubscribe(self, sink: TelemetrySink) -> None:
        with self._lock:
            self._sinks = tuple(s for s in self._sinks if s is not sink)

    def start(self) -> None:
        """Bind the socket and start the receive thread.

        Raises
        ------
        BindFailure
            The port could not be bound.
        """
        with self._lock:
            if self.is_running():
                logger.info("Telemetry receiver already running on port {}.", self._port)
                return
            logger.info("Starting UDP telemetry receiver on port {}.", self._port)
            sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
            try:
                sock.bind((self._host, self._port))
            except OSError as err:
                sock.close()
                logger.error("Could not bind UDP port {}: {}", self._port, err)
                raise BindFailure(f"Could not bind UDP port {self._port}: {err}") from err
            sock.settimeout(_POLL_INTERVAL)
            self._host, self._port = sock.getsockname()[:2]
            self._socket = sock
            # one event per run: a thread outliving its grace period keeps its own.
            self._stop_event = threading.Event()
            self._thread = threading.Thread(
                target=self._receive_loop,
                args=(sock, self._stop_event),
                name=f"telemetry-rx-{self._port}",
                daemon=True,
            )
            self._thread.start()

    def stop(self) -> None:
        """Stop the receive thread and close the socket. Safe to call twice."""
        with self._lock:
            thread, sock = self._thread, self._socket
            self._thread, self._socket = None, None
            if thread is None:
                return
            logger.info("Stopping UDP telemetry receiver on port {}.", self._port)
            self._stop_event.set()
            if sock is not None:
                sock.close()
        thread.join(self._grace)
        if thread.is_alive():
            logger.error(
                "Telemetry receive thread did not exit within {} s.", self._grace
            )
        else:
            logger.info("UDP telemetry receiver stopped. {}", self.statistics)

    # ------------------------------------------------------------------------------

    def _receive_loop(self, sock: socket.socket, stop_event: threading.Event) -> None:
        logger.debug("Telemetry receive loop started.")
        while not stop_event.is_set():
            try:
                payload, addr = sock.recvfrom(_RECV_BUFSIZE)
            except socket.timeout:
                continue
            except OSError:
                if stop_event.is_set() or sock.fileno() == -1:
                    break  # socket closed by stop()
                logger.exception("UDP receive error.")
                continue
            self._handle_datagram(payload, addr)
        logger.debug("Telemetry receive loop exited.")

    def _handle_datagram(self, payload: bytes, addr) -> None:
        self._received += 1
        try:
            record = decode(payload)
        except ShortBuffer:
            self._dropped += 1
            logger.warning(
                "Short telemetry datagram from {}: {} bytes (expected {}), dropped.",
                addr,
                len(payload),
                RECORD_SIZE,
            )
            return
        logger.trace("*TELEMETRY* (<-{}): {}", addr, record)
        for sink in self._sinks:
            try:
                sink.put_nowait(record)
            except Exception:
                self._sink_errors += 1
                logger.exception("Telemetry subscriber {} failed.", sink)
        self._delivered += 1
