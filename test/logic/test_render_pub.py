import asyncio

import pytest

from handlab.net import RenderPublisher, start_bg_render_listener, wait_for_notif
from handlab.types import ErrorNotice, Notification, RenderState, StateUpdate


def test_notification_msgpack_discriminator():
    notif = RenderState(
        state="TrialRunning",
        block=1,
        total_blocks=4,
        trial=2,
        trials_per_block=30,
        start=(-3.0, -3.0),
        end=(2.0, 0.5),
        cursor=None,
    )
    decoded = Notification.from_msgpack(notif.to_msgpack())
    assert isinstance(decoded, RenderState)
    assert decoded.trial == 2
    assert tuple(decoded.start) == (-3.0, -3.0)
    assert decoded.cursor is None

    decoded = Notification.from_msgpack(ErrorNotice(message="x").to_msgpack())
    assert isinstance(decoded, ErrorNotice)


@pytest.mark.network
class TestRenderPublisher:
    @pytest.mark.asyncio
    async def test_publish_subscribe(self):
        publisher = RenderPublisher("127.0.0.1", 0)
        publisher.open()
        assert publisher.port != 0
        task, qu = start_bg_render_listener("127.0.0.1", publisher.port)
        try:
            update = StateUpdate(
                old_state="Idle", new_state="ReadyToStart", block=1, trial=0
            )
            # PUB/SUB drops until the subscription is through: keep sending.
            notif = None
            for _ in range(100):
                await publisher(update)
                try:
                    notif = await wait_for_notif(qu, StateUpdate, timeout=0.05)
                    break
                except TimeoutError:
                    pass
            assert notif is not None
            assert notif.new_state == "ReadyToStart"
        finally:
            task.cancel()
            publisher.close()

    @pytest.mark.asyncio
    async def test_publish_when_closed_is_noop(self):
        publisher = RenderPublisher("127.0.0.1", 0)
        await publisher.publish(ErrorNotice(message="nobody listening"))
        assert not publisher.is_open()
