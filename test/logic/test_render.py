import asyncio

import pytest

from handlab.experiment import CursorBridge, dispatch_notifications, render_pump
from handlab.mock import MockPeripheral, min_jerk
from handlab.types import ErrorNotice, ExperimentState, Vec2


class FakeOrchestrator:
    def __init__(self):
        self.state = ExperimentState.TRIAL_RUNNING
        self.pushed = []

    def push_render_state(self, cursor=None):
        self.pushed.append(cursor)


@pytest.mark.asyncio
async def test_render_pump_pushes_latest_cursor():
    orch = FakeOrchestrator()
    bridge = CursorBridge()
    pump = asyncio.create_task(render_pump(orch, bridge, interval=0.01))
    for i in range(5):
        bridge.publish(Vec2(float(i), 0.0))
    await asyncio.sleep(0.05)
    assert orch.pushed == [Vec2(4.0, 0.0)]  # one frame, newest value only

    bridge.publish(Vec2(9.0, 1.0))
    await asyncio.sleep(0.05)
    assert orch.pushed[-1] == Vec2(9.0, 1.0)

    orch.state = ExperimentState.FINISHED
    await asyncio.wait_for(pump, 1.0)


@pytest.mark.asyncio
async def test_dispatch_notifications():
    qu = asyncio.Queue()
    sync_seen, async_seen = [], []

    async def async_handler(notif):
        async_seen.append(notif)

    def failing_handler(notif):
        raise RuntimeError("display gone")

    task = asyncio.create_task(
        dispatch_notifications(qu, [failing_handler, sync_seen.append, async_handler])
    )
    notifs = [ErrorNotice(message=str(i)) for i in range(3)]
    for notif in notifs:
        qu.put_nowait(notif)
    await asyncio.wait_for(qu.join(), 1.0)
    assert sync_seen == notifs
    assert async_seen == notifs
    task.cancel()


def test_min_jerk_profile():
    assert min_jerk(0.0) == 0.0
    assert min_jerk(1.0) == 1.0
    assert min_jerk(0.5) == pytest.approx(0.5)
    assert min_jerk(2.0) == 1.0
    assert min_jerk(-1.0) == 0.0


def test_mock_peripheral_trial_motion():
    periph = MockPeripheral(rate=100.0, trial_duration=1.0, finish_repeats=2)
    periph._trial = (Vec2(-3.0, -3.0), Vec2(1.0, 0.0), 10.0)

    mid = periph.next_record(10.5)
    assert mid.trial_finished == 0
    assert mid.handle_pos_x == pytest.approx(-1.0)
    assert (mid.target_end_x, mid.target_end_y) == (1.0, 0.0)

    flags = [periph.next_record(11.0 + i * 0.01).trial_finished for i in range(4)]
    assert flags == [1, 1, 0, 0]
    assert periph.next_record(12.0).handle_pos == (1.0, 0.0)
