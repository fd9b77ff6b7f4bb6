"""
Event Bus Tests

Publish/subscribe, handler isolation, history and the queued drain loop.
"""

import asyncio
from datetime import datetime, timedelta

import pytest

from revision_agents.communication import AgentMessage, EventBus, HistoryFilter
from revision_agents.events import FindingEvent, ScanRequestEvent
from revision_agents.models import Priority


class TestSubscriptions:
    """Subscribe / unsubscribe via explicit handles."""

    def test_subscribe_returns_handle(self, event_bus):
        sub = event_bus.subscribe("research.finding", lambda p: None)
        assert sub.topic == "research.finding"
        assert event_bus.get_subscriber_count("research.finding") == 1

    def test_unsubscribe_is_idempotent(self, event_bus):
        sub = event_bus.subscribe("research.finding", lambda p: None)
        assert event_bus.unsubscribe(sub) is True
        assert event_bus.unsubscribe(sub) is False
        assert event_bus.get_subscriber_count("research.finding") == 0

    def test_all_events_tracks_subscribed_topics(self, event_bus):
        a = event_bus.subscribe("a.one", lambda p: None)
        event_bus.subscribe("b.two", lambda p: None)
        assert event_bus.get_all_events() == {"a.one", "b.two"}

        event_bus.unsubscribe(a)
        assert event_bus.get_all_events() == {"b.two"}


class TestPublish:
    """Direct publish: history first, all handlers awaited."""

    @pytest.mark.asyncio
    async def test_sync_and_async_handlers_receive_payload(self, event_bus):
        received = []

        def sync_handler(payload):
            received.append(("sync", payload["value"]))

        async def async_handler(payload):
            await asyncio.sleep(0)
            received.append(("async", payload["value"]))

        event_bus.subscribe("test.event", sync_handler)
        event_bus.subscribe("test.event", async_handler)

        await event_bus.publish("test.event", {"value": 42})

        assert sorted(received) == [("async", 42), ("sync", 42)]

    @pytest.mark.asyncio
    async def test_message_recorded_before_handlers_run(self, event_bus):
        seen_history = []
        event_bus.subscribe("test.event", lambda p: seen_history.append(event_bus.history_size))

        await event_bus.publish("test.event", {"value": 1})

        assert seen_history == [1]

    @pytest.mark.asyncio
    async def test_failing_handler_does_not_block_siblings(self, event_bus):
        called = []

        async def broken(payload):
            raise ValueError("boom")

        async def slow(payload):
            await asyncio.sleep(0.01)
            called.append("slow")

        event_bus.subscribe("test.event", broken)
        event_bus.subscribe("test.event", slow)

        message = await event_bus.publish("test.event", {})

        assert called == ["slow"]
        assert isinstance(message, AgentMessage)

    @pytest.mark.asyncio
    async def test_unsubscribe_during_dispatch(self, event_bus):
        called = []
        subs = {}

        def first(payload):
            event_bus.unsubscribe(subs["second"])
            called.append("first")

        def second(payload):
            called.append("second")

        subs["first"] = event_bus.subscribe("test.event", first)
        subs["second"] = event_bus.subscribe("test.event", second)

        await event_bus.publish("test.event", {})
        await event_bus.publish("test.event", {})

        # Snapshot: second still runs on the first publish only
        assert called.count("first") == 2
        assert called.count("second") == 1

    @pytest.mark.asyncio
    async def test_publish_without_subscribers_is_recorded(self, event_bus):
        message = await event_bus.publish("nobody.listens", {"x": 1})
        assert event_bus.get_message_history() == [message]

    @pytest.mark.asyncio
    async def test_envelope_derived_from_payload(self, event_bus, make_finding):
        finding = make_finding(priority=Priority.CRITICAL)

        message = await event_bus.publish(
            "research.finding", FindingEvent(finding=finding, agent_id="research-agent")
        )

        assert message.sender == "research-agent"
        assert message.message_type == "finding"
        assert message.priority == Priority.CRITICAL
        assert message.id.startswith("MSG-")
        assert message.correlation_id.startswith("CORR-")

    @pytest.mark.asyncio
    async def test_handlers_of_one_topic_run_concurrently(self, event_bus):
        gate = asyncio.Event()
        order = []

        async def waits_for_gate(payload):
            await gate.wait()
            order.append("waiter")

        async def opens_gate(payload):
            order.append("opener")
            gate.set()

        event_bus.subscribe("research.finding", waits_for_gate)
        event_bus.subscribe("research.finding", opens_gate)

        # sequential dispatch would deadlock on the first handler
        await asyncio.wait_for(event_bus.publish("research.finding", {}), timeout=1)

        assert order == ["opener", "waiter"]

    @pytest.mark.asyncio
    async def test_payload_must_match_message_type(self, event_bus, make_finding):
        received = []
        event_bus.subscribe("research.finding", received.append)

        with pytest.raises(TypeError, match="FindingEvent"):
            await event_bus.publish("research.finding", ScanRequestEvent())

        assert received == []
        assert event_bus.get_message_history() == []

        await event_bus.publish("research.finding", {"finding": None})
        await event_bus.publish("research.finding", FindingEvent(finding=make_finding(), agent_id="research-agent"))
        await event_bus.publish("misc.ping", ScanRequestEvent())
        assert len(received) == 2

    @pytest.mark.asyncio
    async def test_unknown_sender_defaults(self, event_bus):
        message = await event_bus.publish("misc.ping", {"hello": "world"})
        assert message.sender == "unknown"
        assert message.priority == Priority.MEDIUM


class TestHistory:
    """Bounded history and filtering."""

    @pytest.mark.asyncio
    async def test_history_is_bounded_fifo(self):
        bus = EventBus(history_size=3)
        for i in range(5):
            await bus.publish("test.event", {"i": i})

        history = bus.get_message_history()
        assert [m.payload["i"] for m in history] == [2, 3, 4]

    @pytest.mark.asyncio
    async def test_filter_by_sender_and_type(self, event_bus):
        await event_bus.publish("manual.scan_request", ScanRequestEvent())
        await event_bus.publish("test.event", {"agent_id": "other"})

        manual = event_bus.get_message_history(HistoryFilter(sender="manual"))
        assert len(manual) == 1
        assert manual[0].message_type == "scan_request"

        by_type = event_bus.get_message_history(HistoryFilter(message_type="event"))
        assert [m.sender for m in by_type] == ["other"]

    @pytest.mark.asyncio
    async def test_filter_since_is_strict(self, event_bus):
        first = await event_bus.publish("test.event", {})
        later = event_bus.get_message_history(HistoryFilter(since=first.timestamp))
        assert first not in later

        earlier = first.timestamp - timedelta(seconds=1)
        assert event_bus.get_message_history(HistoryFilter(since=earlier)) == [first]

    @pytest.mark.asyncio
    async def test_clear_history(self, event_bus):
        await event_bus.publish("test.event", {})
        event_bus.clear_history()
        assert event_bus.get_message_history() == []


class TestQueuedMessages:
    """publish_message: one drain loop, in order."""

    def _message(self, sender: str, message_type: str, n: int) -> AgentMessage:
        return AgentMessage(
            id=f"MSG-{n}",
            sender=sender,
            recipient="broadcast",
            message_type=message_type,
            payload={"n": n},
            timestamp=datetime.now(),
        )

    @pytest.mark.asyncio
    async def test_routes_by_sender_and_type(self, event_bus):
        received = []
        event_bus.subscribe("planner.ping", lambda p: received.append(p["n"]))

        await event_bus.publish_message(self._message("planner", "ping", 1))

        assert received == [1]
        assert not event_bus.is_draining

    @pytest.mark.asyncio
    async def test_reentrant_publish_joins_active_drain(self, event_bus):
        order = []

        async def handler(payload):
            order.append(payload["n"])
            if payload["n"] == 1:
                assert event_bus.is_draining
                await event_bus.publish_message(self._message("planner", "ping", 2))
                # Appended only, processed after this handler returns
                assert order == [1]

        event_bus.subscribe("planner.ping", handler)
        await event_bus.publish_message(self._message("planner", "ping", 1))

        assert order == [1, 2]
        assert len(event_bus.get_message_history()) == 2

    @pytest.mark.asyncio
    async def test_mismatched_envelope_is_rejected(self, event_bus):
        message = AgentMessage(
            id="MSG-1",
            sender="planner",
            recipient="broadcast",
            message_type="finding",
            payload=ScanRequestEvent(),
            timestamp=datetime.now(),
        )

        with pytest.raises(TypeError):
            await event_bus.publish_message(message)

        assert event_bus.get_message_history() == []
        assert not event_bus.is_draining
