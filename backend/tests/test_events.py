"""
事件总线单元测试
"""

import pytest

from core.events import EventBus, Event, Events


class TestEvent:
    """事件数据类测试"""

    def test_event_creation(self):
        event = Event(name=Events.PHOTOS_UPLOADED, source="photo_vault")

        assert event.data == {}
        assert event.timestamp is not None


class TestEventBus:
    """事件总线测试"""

    @pytest.mark.asyncio
    async def test_sync_and_async_handlers(self):
        bus = EventBus()
        received = []

        def sync_handler(event):
            received.append(("sync", event.data["n"]))

        async def async_handler(event):
            received.append(("async", event.data["n"]))

        bus.subscribe("test.event", sync_handler)
        bus.subscribe("test.event", async_handler)
        await bus.publish(Event(name="test.event", source="test", data={"n": 1}))

        assert received == [("sync", 1), ("async", 1)]

    @pytest.mark.asyncio
    async def test_handler_error_is_isolated(self):
        """订阅者异常不影响其他订阅者和发布方"""
        bus = EventBus()
        received = []

        def broken(event):
            raise RuntimeError("boom")

        bus.subscribe("test.event", broken)
        bus.subscribe("test.event", lambda e: received.append(e.name))
        await bus.publish(Event(name="test.event", source="test"))

        assert received == ["test.event"]

    @pytest.mark.asyncio
    async def test_unsubscribe(self):
        bus = EventBus()
        received = []
        handler = lambda e: received.append(e)

        bus.subscribe("test.event", handler)
        bus.unsubscribe("test.event", handler)
        bus.unsubscribe("other.event", handler)
        await bus.publish(Event(name="test.event", source="test"))

        assert received == []

    @pytest.mark.asyncio
    async def test_history(self):
        bus = EventBus()
        bus._max_history = 3
        for i in range(5):
            await bus.publish(Event(name="a" if i % 2 else "b", source="test", data={"i": i}))

        assert [e.data["i"] for e in bus.get_history()] == [2, 3, 4]
        assert [e.data["i"] for e in bus.get_history("a")] == [3]

        bus.clear()
        assert bus.get_history() == []
