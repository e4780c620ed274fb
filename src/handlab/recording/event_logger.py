"""Per-block CSV logging pipeline.

`append` may be called from any thread (in practice the telemetry receive
thread) and only puts the line on an unbounded FIFO. A drain thread owned by
the session takes lines off the queue in order and writes them to the file,
blocking on the queue while it is empty.

`close` is the durability point: it stops accepting lines, lets the drain
thread write everything that was already queued, then flushes, fsyncs and
closes the file. When it returns without raising, every line accepted before
the call is on disk.
"""

from __future__ import annotations

import os
import queue
import threading
from pathlib import Path
from typing import Optional

from loguru import logger

from handlab.types import IOFailure
from handlab.util.save import CSV_HEADER

__all__ = ["EventLogger", "LogSession"]

_CLOSE = object()  # drain thread sentinel


class LogSession:
    """One open log file, its line queue and its drain thread."""

    def __init__(self, path: str | Path, header: str = CSV_HEADER):
        self.path = Path(path)
        self.lines_written = 0
        self._queue: queue.SimpleQueue = queue.SimpleQueue()
        self._lock = threading.Lock()
        self._accepting = True
        self._error: Optional[OSError] = None
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self._file = open(self.path, "w", encoding="utf-8", newline="")
        except OSError as err:
            raise IOFailure(f"Could not open log file {self.path}: {err}") from err
        try:
            self._file.write(header + "\n")
        except OSError as err:
            self._file.close()
            raise IOFailure(f"Could not write header to {self.path}: {err}") from err
        self._thread = threading.Thread(
            target=self._drain, name=f"log-drain-{self.path.name}", daemon=True
        )
        self._thread.start()

    def __repr__(self):
        return f"LogSession({self.path})"

    def append(self, line: str) -> bool:
        with self._lock:
            if not self._accepting:
                return False
            self._queue.put(line)
        return True

    def close(self, timeout: Optional[float] = None) -> None:
        """Drain, flush and close. Raises IOFailure if any line was not written."""
        with self._lock:
            if self._accepting:
                self._accepting = False
                self._queue.put(_CLOSE)
        self._thread.join(timeout)
        if self._thread.is_alive():
            raise IOFailure(
                f"Log drain for {self.path} did not finish within {timeout} s"
            )
        if self._error is not None:
            raise IOFailure(f"Error writing {self.path}: {self._error}") from self._error

    def _drain(self) -> None:
        try:
            while True:
                line = self._queue.get()
                if line is _CLOSE:
                    break
                if self._error is not None:
                    continue  # keep consuming so close() still returns
                try:
                    self._file.write(line + "\n")
                    self.lines_written += 1
                except OSError as err:
                    self._error = err
                    logger.error("Error writing log file {}: {}", self.path, err)
        finally:
            try:
                self._file.flush()
                os.fsync(self._file.fileno())
                self._file.close()
            except OSError as err:
                if self._error is None:
                    self._error = err
                logger.error("Error closing log file {}: {}", self.path, err)


class EventLogger:
    """Owner of the (at most one) open `LogSession`.

    Examples
    --------
    ```python
    event_logger = EventLogger()
    event_logger.open("logs/S01_Block1.csv")
    event_logger.append("0.1,...")  # from any thread
    event_logger.close()  # everything appended is now on disk
    ```
    """

    def __init__(self):
        self._session: Optional[LogSession] = None
        self._lock = threading.Lock()

    @property
    def path(self) -> Optional[Path]:
        session = self._session
        return None if session is None else session.path

    @property
    def lines_written(self) -> int:
        session = self._session
        return 0 if session is None else session.lines_written

    def is_open(self) -> bool:
        return self._session is not None

    def open(self, path: str | Path, header: str = CSV_HEADER) -> LogSession:
        """Start logging to `path` (truncated), closing any open session first.

        Raises
        ------
        IOFailure
            The file could not be created or written, or the previous session
            failed to drain.
        """
        with self._lock:
            previous, self._session = self._session, None
            if previous is not None:
                logger.warning("Closing {} before opening {}.", previous.path, path)
                previous.close()
            session = self._session = LogSession(path, header)
        logger.info("Logging started: {}", session.path)
        return session

    def append(self, line: str) -> bool:
        """Queue `line` for the open session. Returns False if it was dropped."""
        session = self._session
        if session is None or not session.append(line):
            logger.warning("Log line dropped, no open log session: {}", line)
            return False
        return True

    def close(self, timeout: Optional[float] = None) -> None:
        """Drain and close the open session; no-op if none is open.

        Raises
        ------
        IOFailure
            A line could not be written, or the drain did not finish within
            `timeout` seconds.
        """
        with self._lock:
            session, self._session = self._session, None
            if session is None:
                return
            logger.info("Closing log: {}", session.path)
            session.close(timeout)
        logger.info("Log closed: {} ({} lines)", session.path, session.lines_written)
