"""Block/trial state machine.

`TrialOrchestrator.state_machine` runs on the event loop. Each pass of the loop
routes the current state to a `_state_*` coroutine that does the work and
returns the next state. The orchestrator is also a telemetry sink: the receive
thread calls `put_nowait` for every record, which logs the record (while a
trial is running), moves the cursor and ends the armed trial on its finish
flag.

What the receive thread needs to know is kept in one tuple, `_gate` =
(state, trial, armed TrialContext), which is replaced whole, never mutated, so
a record sees either the old or the new value and never a mix.

Every await in a state goes through `_interruptible`, raced against the abort
event set by `emergency_stop`.
"""

from __future__ import annotations

import asyncio
import threading
from typing import TYPE_CHECKING, Awaitable, Callable, Optional, TypeVar

from loguru import logger

from handlab.types import (
    ErrorNotice,
    ExperimentConfig,
    ExperimentState,
    HandlabError,
    IOFailure,
    MovementRecord,
    OperatorAbort,
    OperatorPrompt,
    RenderState,
    StateUpdate,
    TrialFeedback,
    Vec2,
)
from handlab.util import block_log_path, format_error_response, format_record_line

from .operator import PROMPT
from .trial import TargetGenerator, TrialContext

if TYPE_CHECKING:
    from handlab.net import CommandChannel, TelemetryReceiver
    from handlab.recording import EventLogger
    from handlab.types import Notification

    from .cursor import CursorBridge
    from .operator import OperatorInputs

T = TypeVar("T")

STATE = ExperimentState


class TrialOrchestrator:
    def __init__(
        self,
        config: ExperimentConfig,
        receiver: TelemetryReceiver,
        command_channel: CommandChannel,
        event_logger: EventLogger,
        cursor_bridge: CursorBridge,
        operator: OperatorInputs,
        notif_queue: Optional[asyncio.Queue[Notification]] = None,
        targets: Optional[TargetGenerator] = None,
    ):
        self.config = config
        self.receiver = receiver
        self.command_channel = command_channel
        self.event_logger = event_logger
        self.cursor_bridge = cursor_bridge
        self.operator = operator
        self.notif_queue = notif_queue if notif_queue is not None else asyncio.Queue()
        self.targets = targets if targets is not None else TargetGenerator.from_config(config)

        self.state = STATE.IDLE
        self.subject_id = ""
        self.block = 0
        self.trial = 0
        self._trial_ctx: Optional[TrialContext] = None
        self._gate: tuple[ExperimentState, int, Optional[TrialContext]] = (
            STATE.IDLE,
            0,
            None,
        )

        self._state_lock = threading.Lock()
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._abort: Optional[asyncio.Event] = None
        self._stop_requested = False
        self._shutdown_done = False

        receiver.subscribe(self)

    # ----------------------------------------------------------------------------------
    # =============================== RECEIVE-THREAD SIDE ==============================
    # ----------------------------------------------------------------------------------

    def put_nowait(self, record: MovementRecord) -> None:
        """Telemetry sink, called on the receive thread for every record."""
        state, trial, ctx = self._gate
        self.cursor_bridge.publish(record.handle_pos)
        if state is not STATE.TRIAL_RUNNING:
            return
        if ctx is not None and ctx.is_complete():
            return  # belongs to no trial: the armed one is over
        self.event_logger.append(format_record_line(record, state, trial))
        if record.is_trial_finished and ctx is not None:
            if ctx.completion.set(True):
                logger.debug("Trial {} finish flag received.", trial)

    # ----------------------------------------------------------------------------------
    # =================================== CONTROL ======================================
    # ----------------------------------------------------------------------------------

    def emergency_stop(self) -> None:
        """Stop the experiment now. Any thread, any state, safe to repeat.

        Closes the telemetry gate, closes the open block log, stops the
        receiver, forces `Stopped` and interrupts whatever the state machine is
        waiting on.
        """
        with self._state_lock:
            if self.state.is_terminal or self._stop_requested:
                return
            self._stop_requested = True
        logger.warning("EMERGENCY STOP requested in state {}.", self.state)
        self._shutdown(STATE.STOPPED)
        self._change_state(STATE.STOPPED)
        self._signal_abort()

    @property
    def armed(self) -> Optional[TrialContext]:
        """Context of the trial finish flags currently go to, if any."""
        return self._gate[2]

    def render_state(self, cursor: Optional[Vec2] = None) -> RenderState:
        ctx = self._trial_ctx
        return RenderState(
            state=self.state.value,
            block=self.block,
            total_blocks=self.config.total_blocks,
            trial=self.trial,
            trials_per_block=self.config.trials_per_block,
            start=tuple(ctx.start) if ctx is not None else None,
            end=tuple(ctx.end) if ctx is not None else None,
            cursor=tuple(cursor) if cursor is not None else None,
        )

    def push_render_state(self, cursor: Optional[Vec2] = None) -> None:
        self._notify(self.render_state(cursor))

    # ----------------------------------------------------------------------------------
    # ================================= STATE MACHINE ==================================
    # ----------------------------------------------------------------------------------

    async def state_machine(self) -> ExperimentState:
        """Run the experiment to `Finished` or `Stopped`, return the final state."""
        self._loop = asyncio.get_running_loop()
        self._abort = asyncio.Event()
        if self._stop_requested:
            self._abort.set()
        logger.info(
            "Experiment '{}' starting: {} blocks x {} trials.",
            self.config.name,
            self.config.total_blocks,
            self.config.trials_per_block,
        )
        self.push_render_state()
        try:
            while not self.state.is_terminal:
                try:
                    next_state = await self._router(self.state)
                except OperatorAbort:
                    logger.warning("Experiment interrupted in state {}.", self.state)
                    next_state = STATE.STOPPED
                except HandlabError as err:
                    logger.error("Experiment aborted in state {}: {}", self.state, err)
                    self._notify(ErrorNotice(message=str(err)))
                    next_state = STATE.STOPPED
                except Exception:
                    logger.exception("Error in state machine.")
                    self._notify(ErrorNotice(message=format_error_response()))
                    next_state = STATE.STOPPED
                if next_state.is_terminal:
                    self._shutdown(next_state)
                self._change_state(next_state)
        except asyncio.CancelledError:
            logger.warning("Experiment task cancelled.")
            self.emergency_stop()
            raise
        logger.info("Experiment '{}' ended: {}.", self.config.name, self.state)
        return self.state

    async def _router(self, state: ExperimentState) -> ExperimentState:
        match state:
            case STATE.IDLE:
                return await self._state_idle()
            case STATE.READY_TO_START:
                return await self._state_ready_to_start()
            case STATE.TRIAL_RUNNING:
                return await self._state_trial_running()
            case STATE.TRIAL_FINISHED:
                return await self._state_trial_finished()
            case STATE.RESTING:
                return await self._state_resting()
            case _:
                raise RuntimeError(f"No handler for state {state}.")

    # ----------------------------------------------------------------------------------
    # ============================= STATE MACHINE - STATES =============================
    # ----------------------------------------------------------------------------------

    async def _state_idle(self) -> ExperimentState:
        self._prompt(PROMPT.SUBJECT_ID, "Enter subject id.")
        self.subject_id = await self._interruptible(self.operator.wait_subject_id())
        logger.info("Subject id: {}", self.subject_id)
        self._acquire("starting the receiver", self.receiver.start)
        self.block = 1
        return STATE.READY_TO_START

    async def _state_ready_to_start(self) -> ExperimentState:
        path = block_log_path(self.config.log_dir, self.subject_id, self.block)
        self._acquire("opening the block log", lambda: self.event_logger.open(path))
        self._prompt(
            PROMPT.BLOCK_START,
            f"Block {self.block}/{self.config.total_blocks} ready, confirm to start.",
        )
        await self._interruptible(self.operator.wait_block_start())
        self.trial = 1
        return STATE.TRIAL_RUNNING

    async def _state_trial_running(self) -> ExperimentState:
        start, end = self.targets.next_targets()
        ctx = TrialContext(block=self.block, trial=self.trial, start=start, end=end)
        self._trial_ctx = ctx
        self.push_render_state()

        await self._interruptible(self.command_channel.send(ctx.command))
        self._arm(ctx)

        timeout = self.config.trial_timeout or None
        try:
            await self._interruptible(ctx.completion.wait(), timeout=timeout)
        except TimeoutError:
            logger.warning(
                "Trial {} of block {} timed out after {} s.",
                self.trial,
                self.block,
                timeout,
            )
            ctx.timed_out = True
            ctx.completion.set(False)
        return STATE.TRIAL_FINISHED

    async def _state_trial_finished(self) -> ExperimentState:
        ctx = self._trial_ctx
        timed_out = ctx is not None and ctx.timed_out
        self._notify(
            TrialFeedback(
                block=self.block,
                trial=self.trial,
                message=(
                    self.config.timeout_message
                    if timed_out
                    else self.config.feedback_message
                ),
                duration=self.config.feedback_time,
                timed_out=timed_out,
            )
        )
        await self._interruptible(asyncio.sleep(self.config.feedback_time))

        if self.trial < self.config.trials_per_block:
            self.trial += 1
            return STATE.TRIAL_RUNNING

        logger.info("Block {} complete.", self.block)
        self._trial_ctx = None
        # off the loop: a full drain can take a while on a slow disk.
        await asyncio.to_thread(self.event_logger.close)
        if self.block < self.config.total_blocks:
            return STATE.RESTING
        return STATE.FINISHED

    async def _state_resting(self) -> ExperimentState:
        logger.info("Resting for {} s.", self.config.rest_time)
        await self._interruptible(asyncio.sleep(self.config.rest_time))
        self._prompt(
            PROMPT.REST_DONE,
            f"Rest over, confirm to continue with block {self.block + 1}.",
        )
        await self._interruptible(self.operator.wait_rest_done())
        self.block += 1
        self.trial = 0
        return STATE.READY_TO_START

    # ----------------------------------------------------------------------------------

    async def _interruptible(self, aw: Awaitable[T], timeout: Optional[float] = None) -> T:
        """Await `aw`, unless emergency stop or `timeout` comes first.

        Raises
        ------
        OperatorAbort
            Emergency stop was requested.
        TimeoutError
            `timeout` elapsed first.
        """
        task = asyncio.ensure_future(aw)
        abort = asyncio.ensure_future(self._abort.wait())
        try:
            done, _ = await asyncio.wait(
                {task, abort}, timeout=timeout, return_when=asyncio.FIRST_COMPLETED
            )
        finally:
            abort.cancel()
            if not task.done():
                task.cancel()
        if self._abort.is_set():
            raise OperatorAbort("Emergency stop.")
        if task in done:
            return task.result()
        raise TimeoutError(f"Timed out after {timeout} s.")

    def _acquire(self, what: str, acquire: Callable[[], T]) -> T:
        """Run `acquire` unless the experiment is already stopping.

        Holds the state lock, so a concurrent `emergency_stop` either comes
        first (nothing is acquired) or waits and then releases what was.
        `acquire` must not call back into the orchestrator.
        """
        with self._state_lock:
            if self._stop_requested or self._shutdown_done:
                raise OperatorAbort(f"Emergency stop before {what}.")
            return acquire()

    def _arm(self, ctx: TrialContext) -> None:
        # finish flags reach the context only once the peripheral has the command.
        with self._state_lock:
            if self.state is STATE.TRIAL_RUNNING:
                self._gate = (STATE.TRIAL_RUNNING, self.trial, ctx)

    def _change_state(self, new_state: ExperimentState) -> bool:
        with self._state_lock:
            old_state = self.state
            if new_state is old_state or old_state.is_terminal:
                return False
            self.state = new_state
            if not self._shutdown_done:
                self._gate = (new_state, self.trial, None)
        logger.info(
            "Experiment state: {} -> {} (block {}, trial {})",
            old_state,
            new_state,
            self.block,
            self.trial,
        )
        self._notify(
            StateUpdate(
                old_state=old_state.value,
                new_state=new_state.value,
                block=self.block,
                trial=self.trial,
            )
        )
        self.push_render_state()
        return True

    def _shutdown(self, final_state: ExperimentState) -> None:
        """Gate, log, socket: in that order. Runs once."""
        with self._state_lock:
            if self._shutdown_done:
                return
            self._shutdown_done = True
            self._gate = (final_state, self.trial, None)
        try:
            self.event_logger.close(timeout=self.config.log_close_grace)
        except IOFailure as err:
            logger.error("Block log not closed cleanly: {}", err)
            self._notify(ErrorNotice(message=str(err)))
        self.receiver.stop()
        self.receiver.unsubscribe(self)

    def _prompt(self, prompt: str, message: str) -> None:
        logger.info("Waiting for operator: {}", message)
        self._notify(OperatorPrompt(prompt=prompt, message=message))

    def _notify(self, notif: Notification) -> None:
        loop = self._loop
        if loop is None or loop.is_closed() or _running_loop() is loop:
            self.notif_queue.put_nowait(notif)
        else:
            loop.call_soon_threadsafe(self.notif_queue.put_nowait, notif)

    def _signal_abort(self) -> None:
        loop, abort = self._loop, self._abort
        if loop is None or abort is None:
            return  # state_machine sets it on entry
        if _running_loop() is loop:
            abort.set()
        elif not loop.is_closed():
            loop.call_soon_threadsafe(abort.set)


def _running_loop() -> Optional[asyncio.AbstractEventLoop]:
    try:
        return asyncio.get_running_loop()
    except RuntimeError:
        return None
