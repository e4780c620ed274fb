"""Operator inputs awaited by the orchestrator.

The orchestrator asks for one thing at a time (a subject id, then "start
block", "rest done" ...). Whatever drives the UI answers through
`submit_subject_id` / `confirm`, from any thread. Answers that arrive when
nothing matching is pending are ignored, so a stray double click can not
start the next block early.
"""

from __future__ import annotations

import re
import threading
import types
from typing import Any, Optional

from loguru import logger

from .signals import OneShot

PROMPT = types.SimpleNamespace()
PROMPT.SUBJECT_ID = "subject_id"
PROMPT.BLOCK_START = "block_start"
PROMPT.REST_DONE = "rest_done"

_CONFIRMATIONS = (PROMPT.BLOCK_START, PROMPT.REST_DONE)
_INVALID_ID = re.compile(r"[\\/:*?\"<>|\x00-\x1f]")


def validate_subject_id(subject_id: str) -> str:
    """Stripped subject id, safe to use in a file name.

    Raises
    ------
    ValueError
        Empty, or contains path separators or other characters not allowed in
        file names.
    """
    subject_id = str(subject_id).strip()
    if not subject_id:
        raise ValueError("Subject id must not be empty.")
    if subject_id in (".", "..") or _INVALID_ID.search(subject_id):
        raise ValueError(f"Subject id {subject_id!r} is not a valid file name.")
    return subject_id


class OperatorInputs:
    def __init__(self, subject_id: Optional[str] = None, auto_confirm: bool = False):
        """
        Parameters
        ----------
        subject_id : str, optional
            Answer the subject id prompt with this value without waiting.
        auto_confirm : bool
            Answer block start and rest done prompts immediately.
        """
        self._auto_subject_id = (
            validate_subject_id(subject_id) if subject_id is not None else None
        )
        self._auto_confirm = auto_confirm
        self._lock = threading.Lock()
        self._pending: Optional[tuple[str, OneShot]] = None

    @property
    def pending(self) -> Optional[str]:
        """Name of the prompt currently awaited, if any."""
        pending = self._pending
        return pending[0] if pending is not None else None

    async def wait_subject_id(self) -> str:
        return await self._request(PROMPT.SUBJECT_ID, self._auto_subject_id)

    async def wait_block_start(self) -> None:
        await self._request(PROMPT.BLOCK_START, True if self._auto_confirm else None)

    async def wait_rest_done(self) -> None:
        await self._request(PROMPT.REST_DONE, True if self._auto_confirm else None)

    def submit_subject_id(self, subject_id: str) -> bool:
        """Answer the subject id prompt. False if it was not pending.

        Raises
        ------
        ValueError
            See `validate_subject_id`.
        """
        return self._answer(PROMPT.SUBJECT_ID, validate_subject_id(subject_id))

    def confirm(self) -> bool:
        """Answer a pending block start or rest done prompt."""
        pending = self.pending
        if pending not in _CONFIRMATIONS:
            logger.debug("Confirmation ignored, pending prompt is {}.", pending)
            return False
        return self._answer(pending, True)

    # ------------------------------------------------------------------------------

    async def _request(self, prompt: str, auto_answer: Any) -> Any:
        shot: OneShot = OneShot()
        with self._lock:
            if self._pending is not None:
                raise RuntimeError(f"Prompt {self._pending[0]} is still pending.")
            self._pending = (prompt, shot)
        if auto_answer is not None:
            logger.debug("Prompt {} answered automatically.", prompt)
            shot.set(auto_answer)
        try:
            return await shot.wait()
        finally:
            with self._lock:
                if self._pending is not None and self._pending[1] is shot:
                    self._pending = None

    def _answer(self, prompt: str, value: Any) -> bool:
        with self._lock:
            pending = self._pending
            if pending is None or pending[0] != prompt:
                logger.debug("Answer to {} ignored, pending prompt is {}.", prompt, self.pending)
                return False
            self._pending = None
        logger.info("Operator answered {}.", prompt)
        return pending[1].set(value)
