import asyncio

import pytest
from fastapi import WebSocketDisconnect

from recipegen.routers import cooking
from recipegen.services.tips import DEFAULT_TIP, TipChannel, tip_for


@pytest.mark.asyncio
async def test_publish_reaches_every_subscriber():
    channel = TipChannel()
    with channel.subscribe() as first, channel.subscribe() as second:
        assert channel.publish({"event": "cooking-tip"}) == 2
        assert await asyncio.wait_for(first.get(), 1) == {"event": "cooking-tip"}
        assert await asyncio.wait_for(second.get(), 1) == {"event": "cooking-tip"}
    assert channel.subscriber_count == 0


@pytest.mark.asyncio
async def test_slow_subscriber_drops_messages():
    channel = TipChannel(queue_size=2)
    with channel.subscribe() as queue:
        delivered = [channel.publish({"n": n}) for n in range(5)]
        assert delivered == [1, 1, 0, 0, 0]
        assert queue.qsize() == 2
        assert queue.get_nowait() == {"n": 0}


def test_publish_without_subscribers_is_a_no_op():
    assert TipChannel().publish({"event": "cooking-tip"}) == 0


def test_tip_for_echoes_context():
    tip = tip_for({"event": "cooking-assistance", "recipe_id": 3, "step": 2})
    assert tip == {"event": "cooking-tip", "tip": DEFAULT_TIP, "recipe_id": 3, "step": 2}
    assert tip_for(None) == {"event": "cooking-tip", "tip": DEFAULT_TIP}


class FakeSocket:
    def __init__(self, incoming):
        self.incoming = list(incoming)
        self.sent = []
        self.accepted = False

    async def accept(self):
        self.accepted = True

    async def receive_json(self):
        await asyncio.sleep(0)
        if self.incoming:
            return self.incoming.pop(0)
        raise WebSocketDisconnect(code=1000)

    async def send_json(self, data):
        self.sent.append(data)


@pytest.mark.asyncio
async def test_cooking_socket_cleans_up_on_disconnect(monkeypatch):
    channel = TipChannel()
    monkeypatch.setattr(cooking, "get_tip_channel", lambda: channel)
    socket = FakeSocket([{"event": "cooking-assistance", "step": 2}])

    await cooking.cooking_socket(socket)

    assert socket.accepted
    assert channel.subscriber_count == 0
    leftover = [task for task in asyncio.all_tasks() if task.get_coro().__name__.startswith("_pump")]
    assert leftover == []
