"""
Tests for the event bus.
Covers pub/sub, once handlers, wait_for, priorities, filters, metrics,
history and handler errors.
"""

import asyncio
import pytest

from storyteller.core.event_bus import Event, EventBus, EventHandler, EventType


@pytest.fixture
async def event_bus():
    """Create a fresh, running event bus for each test."""
    # Reset singleton
    EventBus._instance = None

    bus = await EventBus.get_instance()
    await bus.start()
    yield bus
    await bus.stop()

    # Clean up
    EventBus._instance = None


class TestBasicPubSub:
    """Test basic publish/subscribe functionality."""

    @pytest.mark.asyncio
    async def test_basic_subscription(self, event_bus):
        """Test basic event subscription and emission."""
        received_events = []

        async def handler(event: Event):
            received_events.append(event)

        event_bus.subscribe(EventType.STORY_SELECTED, handler)
        await event_bus.emit(EventType.STORY_SELECTED, {"index": 1, "name": "La lune"})
        await asyncio.sleep(0.1)

        assert len(received_events) == 1
        assert received_events[0].type == EventType.STORY_SELECTED
        assert received_events[0].data["name"] == "La lune"

    @pytest.mark.asyncio
    async def test_post_from_sync_code(self, event_bus):
        """Timer callbacks publish with post() and sync handlers are supported."""
        received = []

        def handler(event: Event):
            received.append(event.data["emotion"])

        event_bus.subscribe(EventType.CUE_FIRED, handler)

        loop = asyncio.get_running_loop()
        loop.call_later(0.01, event_bus.post, EventType.CUE_FIRED, {"emotion": "joie"})
        await asyncio.sleep(0.1)

        assert received == ["joie"]

    @pytest.mark.asyncio
    async def test_multiple_subscribers(self, event_bus):
        """Test multiple handlers for the same event."""
        handler1_calls = []
        handler2_calls = []

        async def handler1(event: Event):
            handler1_calls.append(event)

        async def handler2(event: Event):
            handler2_calls.append(event)

        event_bus.subscribe(EventType.PLAYBACK_PAUSED, handler1)
        event_bus.subscribe(EventType.PLAYBACK_PAUSED, handler2)

        await event_bus.emit(EventType.PLAYBACK_PAUSED, {"position": 3.0})
        await asyncio.sleep(0.1)

        assert len(handler1_calls) == 1
        assert len(handler2_calls) == 1

    @pytest.mark.asyncio
    async def test_unsubscribe(self, event_bus):
        """Test unsubscribing handlers."""
        calls = []

        async def handler(event: Event):
            calls.append(event)

        event_bus.subscribe(EventType.PLAYBACK_RESUMED, handler)
        await event_bus.emit(EventType.PLAYBACK_RESUMED, {})
        await asyncio.sleep(0.1)

        event_bus.unsubscribe(handler)
        await event_bus.emit(EventType.PLAYBACK_RESUMED, {})
        await asyncio.sleep(0.1)

        assert len(calls) == 1


class TestOnceHandlers:
    """Test one-time event handlers."""

    @pytest.mark.asyncio
    async def test_once_handler(self, event_bus):
        """Test that once handlers only execute once."""
        calls = []

        async def handler(event: Event):
            calls.append(event)

        event_bus.once(EventType.CATALOG_LOADED, handler)

        await event_bus.emit(EventType.CATALOG_LOADED, {"count": 2})
        await event_bus.emit(EventType.CATALOG_LOADED, {"count": 2})
        await asyncio.sleep(0.1)

        assert len(calls) == 1

    @pytest.mark.asyncio
    async def test_once_with_multiple_event_types(self, event_bus):
        """A once handler registered for several types runs for the first only."""
        calls = []

        async def handler(event: Event):
            calls.append(event.type)

        event_bus.once([EventType.CATALOG_LOADED, EventType.CATALOG_FAILED], handler)

        await event_bus.emit(EventType.CATALOG_FAILED, {"error": "404"})
        await event_bus.emit(EventType.CATALOG_LOADED, {"count": 1})
        await asyncio.sleep(0.1)

        assert calls == [EventType.CATALOG_FAILED]

    @pytest.mark.asyncio
    async def test_once_with_filter_waits_for_match(self, event_bus):
        """Events rejected by the filter do not use up a once handler."""
        calls = []

        async def handler(event: Event):
            calls.append(event.data["emotion"])

        event_bus.once(EventType.CUE_FIRED, handler,
                       filter_func=lambda e: e.data["emotion"] == "peur")

        await event_bus.emit(EventType.CUE_FIRED, {"emotion": "joie"})
        await event_bus.emit(EventType.CUE_FIRED, {"emotion": "peur"})
        await event_bus.emit(EventType.CUE_FIRED, {"emotion": "peur"})
        await asyncio.sleep(0.1)

        assert calls == ["peur"]
        assert event_bus.get_stats()["total_handlers"] == 0


class TestWaitFor:
    """Test waiting for specific events."""

    @pytest.mark.asyncio
    async def test_wait_for_success(self, event_bus):
        """Test waiting for an event that arrives."""
        async def emit_later():
            await asyncio.sleep(0.05)
            await event_bus.emit(EventType.PLAYBACK_ENDED, {"index": 0})

        asyncio.create_task(emit_later())
        event = await event_bus.wait_for(EventType.PLAYBACK_ENDED, timeout=1.0)

        assert event is not None
        assert event.data["index"] == 0

    @pytest.mark.asyncio
    async def test_wait_for_timeout(self, event_bus):
        """Test timeout when the event never arrives."""
        event = await event_bus.wait_for(EventType.PLAYBACK_ENDED, timeout=0.1)

        assert event is None
        assert event_bus.get_stats()["total_handlers"] == 0

    @pytest.mark.asyncio
    async def test_wait_for_with_filter(self, event_bus):
        """Test waiting with a filter function."""
        async def emit_events():
            await asyncio.sleep(0.05)
            await event_bus.emit(EventType.CUE_FIRED, {"emotion": "joie"})
            await event_bus.emit(EventType.CUE_FIRED, {"emotion": "peur"})

        asyncio.create_task(emit_events())
        event = await event_bus.wait_for(
            EventType.CUE_FIRED,
            timeout=1.0,
            filter_func=lambda e: e.data["emotion"] == "peur"
        )

        assert event is not None
        assert event.data["emotion"] == "peur"


class TestPriority:
    """Test handler priority ordering."""

    @pytest.mark.asyncio
    async def test_priority_ordering(self, event_bus):
        """Higher priority handlers run first."""
        order = []

        async def low(event: Event):
            order.append("low")

        async def high(event: Event):
            order.append("high")

        async def normal(event: Event):
            order.append("normal")

        event_bus.subscribe(EventType.SYSTEM_STARTED, low, priority=1)
        event_bus.subscribe(EventType.SYSTEM_STARTED, high, priority=10)
        event_bus.subscribe(EventType.SYSTEM_STARTED, normal, priority=5)

        await event_bus.emit(EventType.SYSTEM_STARTED, {})
        await asyncio.sleep(0.1)

        assert order == ["high", "normal", "low"]


class TestFilters:
    """Test handler filter functions."""

    @pytest.mark.asyncio
    async def test_filter_function(self, event_bus):
        """Only events passing the filter reach the handler."""
        calls = []

        async def handler(event: Event):
            calls.append(event.data["emotion"])

        event_bus.subscribe(
            EventType.EMOTION_OVERLAY_STARTED, handler,
            filter_func=lambda e: e.data["emotion"] != "neutre"
        )

        await event_bus.emit(EventType.EMOTION_OVERLAY_STARTED, {"emotion": "neutre"})
        await event_bus.emit(EventType.EMOTION_OVERLAY_STARTED, {"emotion": "joie"})
        await asyncio.sleep(0.1)

        assert calls == ["joie"]

    def test_handler_matches(self):
        """EventHandler.matches checks type and filter."""
        handler = EventHandler(lambda e: None, [EventType.CUE_FIRED],
                               filter_func=lambda e: e.data.get("time", 0) > 1)
        early = Event(EventType.CUE_FIRED, {"time": 0.5}, None, "test")
        late = Event(EventType.CUE_FIRED, {"time": 2.0}, None, "test")
        other = Event(EventType.PLAYBACK_ENDED, {"time": 2.0}, None, "test")

        assert not handler.matches(early)
        assert handler.matches(late)
        assert not handler.matches(other)


class TestMetrics:
    """Test metrics collection."""

    @pytest.mark.asyncio
    async def test_event_counting(self, event_bus):
        """Events are counted per type."""
        await event_bus.emit(EventType.CUE_FIRED, {})
        await event_bus.emit(EventType.CUE_FIRED, {})
        await event_bus.emit(EventType.PLAYBACK_PAUSED, {})

        metrics = event_bus.get_stats()["metrics"]
        assert metrics["total_events"] == 3
        assert metrics["events_by_type"]["cue_fired"] == 2
        assert metrics["events_by_type"]["playback_paused"] == 1

    @pytest.mark.asyncio
    async def test_reset_metrics(self, event_bus):
        await event_bus.emit(EventType.CUE_FIRED, {})
        event_bus.reset_metrics()

        assert event_bus.get_stats()["metrics"]["total_events"] == 0

    @pytest.mark.asyncio
    async def test_queue_overflow(self):
        """A full queue drops events and counts the overflow."""
        bus = EventBus(max_queue_size=1)

        bus.post(EventType.CUE_FIRED, {})
        bus.post(EventType.CUE_FIRED, {})

        assert bus.metrics["queue_overflows"] == 1
        assert bus.metrics["total_events"] == 1
        assert len(bus.get_event_history()) == 1


class TestHistory:
    """Test event history."""

    @pytest.mark.asyncio
    async def test_event_history(self, event_bus):
        """Emitted events are recorded in order."""
        await event_bus.emit(EventType.STORY_SELECTED, {"index": 0})
        await event_bus.emit(EventType.PLAYBACK_RESUMED, {})

        history = event_bus.get_event_history()
        assert [e.type for e in history] == [EventType.STORY_SELECTED, EventType.PLAYBACK_RESUMED]

    @pytest.mark.asyncio
    async def test_event_history_filter(self, event_bus):
        """History can be filtered by type and limited."""
        for i in range(5):
            await event_bus.emit(EventType.CUE_FIRED, {"n": i})
        await event_bus.emit(EventType.PLAYBACK_ENDED, {})

        history = event_bus.get_event_history(EventType.CUE_FIRED, limit=2)
        assert [e.data["n"] for e in history] == [3, 4]

    @pytest.mark.asyncio
    async def test_clear_history(self, event_bus):
        await event_bus.emit(EventType.CUE_FIRED, {})
        event_bus.clear_history()

        assert event_bus.get_event_history() == []

    @pytest.mark.asyncio
    async def test_history_disabled(self):
        bus = EventBus(enable_history=False)
        bus.post(EventType.CUE_FIRED, {})

        assert bus.get_event_history() == []
        assert bus.get_stats()["event_history_size"] == 0


class TestErrorHandling:
    """Test error handling in handlers."""

    @pytest.mark.asyncio
    async def test_handler_error_doesnt_stop_bus(self, event_bus):
        """A failing handler does not prevent other handlers or later events."""
        calls = []

        async def failing_handler(event: Event):
            raise RuntimeError("boom")

        async def good_handler(event: Event):
            calls.append(event)

        event_bus.subscribe(EventType.CUE_FIRED, failing_handler, priority=10)
        event_bus.subscribe(EventType.CUE_FIRED, good_handler)

        await event_bus.emit(EventType.CUE_FIRED, {})
        await event_bus.emit(EventType.CUE_FIRED, {})
        await asyncio.sleep(0.1)

        assert len(calls) == 2
        metrics = event_bus.get_stats()["metrics"]
        assert metrics["total_errors"] == 2
        assert metrics["handler_errors"]["failing_handler"] == 2


class TestCorrelationAndMetadata:
    """Test event correlation IDs and metadata."""

    @pytest.mark.asyncio
    async def test_correlation_id(self, event_bus):
        received = []

        async def handler(event: Event):
            received.append(event)

        event_bus.subscribe(EventType.PREVIEW_STARTED, handler)
        await event_bus.emit(EventType.PREVIEW_STARTED, {"index": 0},
                             source="storyteller", correlation_id="preview-1",
                             metadata={"key": "shift+1"})
        await asyncio.sleep(0.1)

        assert received[0].correlation_id == "preview-1"
        assert received[0].metadata == {"key": "shift+1"}
        assert received[0].source == "storyteller"

    def test_event_round_trip(self):
        event = Event(EventType.CUE_FIRED, {"emotion": "joie"}, 12.5, "playback_scheduler",
                      correlation_id="c1")

        restored = Event.from_dict(event.to_dict())

        assert restored == event

    def test_event_default_timestamp(self):
        event = Event(EventType.SYSTEM_STOPPED, {}, None, "test")
        assert event.timestamp > 0


class TestSingleton:
    """Test the shared instance accessor."""

    @pytest.mark.asyncio
    async def test_get_instance_returns_same_bus(self, event_bus):
        assert await EventBus.get_instance() is event_bus
