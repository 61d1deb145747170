import asyncio

import pytest

from bladeagent.eventbus import EventBus, Subscriber, match_all


def test_event_bus_many_subscribers():
    bus = EventBus()

    sub0 = bus.subscribe("topic0", 2, match_all)
    assert sub0.capacity == 2
    assert len(sub0) == 0

    sub1 = bus.subscribe("topic0", 2, lambda msg: msg > 5)
    assert sub1.capacity == 2
    assert len(sub1) == 0

    sub2 = bus.subscribe("topic1", 1, match_all)
    assert sub2.capacity == 1
    assert len(sub2) == 0

    sub3 = bus.subscribe("topic1", 0, match_all)
    assert sub3.capacity == 0
    assert len(sub3) == 0

    bus.publish("topic0", 10)
    bus.publish("topic0", 4)
    bus.publish("topic1", "Hello, World!")

    assert len(sub0) == 2
    assert sub0.receive_nowait() == 10
    assert sub0.receive_nowait() == 4

    assert len(sub1) == 1
    assert sub1.receive_nowait() == 10

    assert len(sub2) == 1
    assert sub2.receive_nowait() == "Hello, World!"

    # no buffer and no waiting receiver: the message is dropped
    assert len(sub3) == 0

    for sub in (sub0, sub1, sub2, sub3):
        sub.unsubscribe()


def test_unsubscribe():
    bus = EventBus()
    sub = bus.subscribe("topic", 2, match_all)
    sub.unsubscribe()
    bus.publish("topic", "This message should not be received")
    assert sub.closed is True
    with pytest.raises(EOFError):
        sub.receive_nowait()


def test_full_buffer_drops_newest():
    bus = EventBus()
    sub = bus.subscribe("topic", 1)
    bus.publish("topic", "first")
    bus.publish("topic", "second")
    assert len(sub) == 1
    assert sub.receive_nowait() == "first"


def test_receive_nowait_on_empty_raises_queue_empty():
    sub = EventBus().subscribe("topic", 1)
    with pytest.raises(asyncio.QueueEmpty):
        sub.receive_nowait()


def test_buffered_messages_survive_unsubscribe():
    bus = EventBus()
    with bus.subscribe("topic", 2) as sub:
        bus.publish("topic", "kept")
    assert sub.receive_nowait() == "kept"
    with pytest.raises(EOFError):
        sub.receive_nowait()


def test_negative_buffer_size_rejected():
    with pytest.raises(ValueError):
        Subscriber(-1)


@pytest.mark.asyncio
async def test_unbuffered_subscriber_receives_when_waiting():
    bus = EventBus()
    sub = bus.subscribe("topic", 0)
    task = asyncio.create_task(sub.receive())
    await asyncio.sleep(0)
    bus.publish("topic", "direct")
    assert await asyncio.wait_for(task, 1) == "direct"


@pytest.mark.asyncio
async def test_unsubscribe_wakes_waiting_receiver():
    sub = EventBus().subscribe("topic", 1)
    task = asyncio.create_task(sub.receive())
    await asyncio.sleep(0)
    sub.unsubscribe()
    with pytest.raises(EOFError):
        await asyncio.wait_for(task, 1)
    assert sub.closed is True
    assert len(sub) == 0


@pytest.mark.asyncio
async def test_receive_returns_buffered_message():
    bus = EventBus()
    sub = bus.subscribe("topic", 1)
    bus.publish("topic", 7)
    assert await sub.receive() == 7