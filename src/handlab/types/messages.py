"""Notification types pushed from the controller to displays."""

from __future__ import annotations

from dataclasses import dataclass

from mashumaro.mixins.msgpack import DataClassMessagePackMixin
from mashumaro.types import Discriminator


@dataclass
class Message(DataClassMessagePackMixin):
    """Base class for all messages."""

    def __repr__(self):
        fields = ", ".join(f"{key}={val}" for key, val in self.__dict__.items())
        return f"{self.__class__.__name__}({fields})"


@dataclass(kw_only=True, repr=False)
class Notification(Message):
    type: str

    class Config:
        discriminator = Discriminator(field="type", include_subtypes=True)


@dataclass(kw_only=True, repr=False)
class StateUpdate(Notification):
    type: str = "state_update"
    old_state: str
    new_state: str
    block: int
    trial: int


@dataclass(kw_only=True, repr=False)
class RenderState(Notification):
    """Everything a display needs to draw one frame."""

    type: str = "render_state"
    state: str
    block: int
    total_blocks: int
    trial: int
    trials_per_block: int
    start: tuple[float, float] | None = None
    end: tuple[float, float] | None = None
    cursor: tuple[float, float] | None = None


@dataclass(kw_only=True, repr=False)
class OperatorPrompt(Notification):
    """The controller is waiting on the operator (see `PROMPT`)."""

    type: str = "operator_prompt"
    prompt: str
    message: str = ""


@dataclass(kw_only=True, repr=False)
class TrialFeedback(Notification):
    type: str = "trial_feedback"
    block: int
    trial: int
    message: str
    duration: float
    timed_out: bool = False


@dataclass(kw_only=True, repr=False)
class ErrorNotice(Notification):
    type: str = "error_notice"
    message: str
