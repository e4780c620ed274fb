"""Console front end for `handlab run`: stdin operator, stdout display."""

from __future__ import annotations

import sys
import threading
from typing import TYPE_CHECKING, Optional, TextIO

import click

from handlab.experiment import PROMPT
from handlab.types import (
    ErrorNotice,
    Notification,
    OperatorPrompt,
    RenderState,
    StateUpdate,
    TrialFeedback,
)

if TYPE_CHECKING:
    from handlab.experiment import OperatorInputs, TrialOrchestrator

STOP_WORDS = ("q", "quit", "stop")


def format_notification(notif: Notification, show_cursor: bool = False) -> Optional[str]:
    """One line of text for a notification, None for those not worth printing."""
    match notif:
        case StateUpdate():
            return (
                f"[{notif.new_state}] block {notif.block}, trial {notif.trial}"
                f" (from {notif.old_state})"
            )
        case OperatorPrompt():
            return f">> {notif.message}"
        case TrialFeedback():
            flag = " (timed out)" if notif.timed_out else ""
            return f"   trial {notif.trial}: {notif.message}{flag}"
        case ErrorNotice():
            return f"ERROR: {notif.message}"
        case RenderState() if show_cursor and notif.cursor is not None:
            x, y = notif.cursor
            return f"   cursor ({x:+.3f}, {y:+.3f})"
        case _:
            return None


class ConsoleDisplay:
    """Notification handler printing to the terminal."""

    def __init__(self, show_cursor: bool = False):
        self.show_cursor = show_cursor

    def __call__(self, notif: Notification) -> None:
        line = format_notification(notif, self.show_cursor)
        if line is not None:
            click.echo(line, err=isinstance(notif, ErrorNotice))


class ConsoleOperator:
    """Operator answers typed on stdin.

    - when the subject id is asked for, a line is the id
    - otherwise any line (an empty one will do) confirms the pending prompt
    - `q`, `quit` or `stop` is an emergency stop, at any time

    Lines are read on a daemon thread; both `OperatorInputs` and
    `emergency_stop` are safe to call from it.
    """

    def __init__(
        self,
        operator: OperatorInputs,
        orchestrator: TrialOrchestrator,
        stream: Optional[TextIO] = None,
    ):
        self.operator = operator
        self.orchestrator = orchestrator
        self._stream = stream if stream is not None else sys.stdin
        self._thread: Optional[threading.Thread] = None

    def start(self) -> None:
        self._thread = threading.Thread(
            target=self._read_loop, name="console-operator", daemon=True
        )
        self._thread.start()

    def handle_line(self, line: str) -> str:
        """Act on one line of input, return what it did."""
        text = line.strip()
        if text.lower() in STOP_WORDS:
            self.orchestrator.emergency_stop()
            return "stop"
        if self.operator.pending == PROMPT.SUBJECT_ID:
            try:
                self.operator.submit_subject_id(text)
            except ValueError as err:
                click.echo(f"Invalid subject id: {err}", err=True)
                return "invalid"
            return "subject_id"
        if self.operator.confirm():
            return "confirm"
        return "ignored"

    def _read_loop(self) -> None:
        for line in self._stream:
            self.handle_line(line)
            if self.orchestrator.state.is_terminal:
                break
