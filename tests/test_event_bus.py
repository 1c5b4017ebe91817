"""
Tests for `events/bus.py`.

Covers contract rules:
- Descending priority, ties in subscription order, wildcard last.
- Handler failures are isolated from siblings and from the publisher.
- max_calls counts deliveries; filtered payloads do not count.
- Bounded history evicts the oldest record.
- Soft validation delivers invalid payloads; strict validation rejects
  them before delivery and before history.
- A publisher timeout never cancels running handlers.
"""

from __future__ import annotations

import asyncio
from uuid import UUID

import pytest

from domain.errors import EventPayloadError, PublishTimeoutError
from events.bus import EventBus
from events.schemas import WILDCARD, EventName, LowStockPayload, OrderCancelledPayload

ORDER_ID = UUID("00000000-0000-0000-0000-0000000000d1")


def _cancelled(reason: str = "customer request") -> OrderCancelledPayload:
    return OrderCancelledPayload(id=ORDER_ID, reason=reason)


@pytest.mark.asyncio
async def test_handlers_run_in_priority_order_with_wildcard_last(bus: EventBus) -> None:
    calls = []
    bus.subscribe(WILDCARD, lambda p: calls.append("wildcard"), priority=100)
    bus.subscribe(EventName.ORDER_CANCELLED, lambda p: calls.append("low"), priority=1)
    bus.subscribe(EventName.ORDER_CANCELLED, lambda p: calls.append("high"), priority=10)
    bus.subscribe(EventName.ORDER_CANCELLED, lambda p: calls.append("low-2"), priority=1)

    await bus.publish(EventName.ORDER_CANCELLED, _cancelled())

    assert calls == ["high", "low", "low-2", "wildcard"]


@pytest.mark.asyncio
async def test_same_priority_handlers_run_concurrently(bus: EventBus) -> None:
    started = []
    release = asyncio.Event()

    async def slow(payload):
        started.append("slow")
        await release.wait()

    async def fast(payload):
        started.append("fast")
        release.set()

    bus.subscribe(EventName.ORDER_CANCELLED, slow)
    bus.subscribe(EventName.ORDER_CANCELLED, fast)

    await asyncio.wait_for(bus.publish(EventName.ORDER_CANCELLED, _cancelled()), timeout=1)

    assert started == ["slow", "fast"]


@pytest.mark.asyncio
async def test_handler_failure_is_isolated(bus: EventBus, caplog) -> None:
    received = []

    def broken(payload):
        raise RuntimeError("boom")

    async def broken_async(payload):
        raise ValueError("async boom")

    bus.subscribe(EventName.ORDER_CANCELLED, broken, priority=5)
    bus.subscribe(EventName.ORDER_CANCELLED, broken_async, priority=5)
    bus.subscribe(EventName.ORDER_CANCELLED, received.append)

    await bus.publish(EventName.ORDER_CANCELLED, _cancelled())

    assert len(received) == 1
    assert "Event handler failed" in caplog.text


@pytest.mark.asyncio
async def test_wildcard_receives_event_name(bus: EventBus) -> None:
    seen = []
    bus.subscribe(WILDCARD, seen.append)

    await bus.publish(EventName.ORDER_CANCELLED, _cancelled("late"))
    await bus.publish("custom:event", {"value": 1})

    assert seen[0]["event"] == "order:cancelled"
    assert seen[0]["reason"] == "late"
    assert seen[1] == {"event": "custom:event", "value": 1}


@pytest.mark.asyncio
async def test_max_calls_counts_deliveries_and_prunes(bus: EventBus) -> None:
    seen = []
    bus.subscribe(
        EventName.ORDER_CANCELLED,
        seen.append,
        predicate=lambda p: p.reason == "match",
        max_calls=2,
    )

    await bus.publish(EventName.ORDER_CANCELLED, _cancelled("skip"))
    await bus.publish(EventName.ORDER_CANCELLED, _cancelled("match"))
    await bus.publish(EventName.ORDER_CANCELLED, _cancelled("match"))
    await bus.publish(EventName.ORDER_CANCELLED, _cancelled("match"))

    assert [p.reason for p in seen] == ["match", "match"]
    assert bus.subscription_count(EventName.ORDER_CANCELLED) == 0


@pytest.mark.asyncio
async def test_subscribe_once(bus: EventBus) -> None:
    seen = []
    bus.subscribe_once(EventName.ORDER_CANCELLED, seen.append)

    await bus.publish(EventName.ORDER_CANCELLED, _cancelled())
    await bus.publish(EventName.ORDER_CANCELLED, _cancelled())

    assert len(seen) == 1


@pytest.mark.asyncio
async def test_unsubscribe_handles(bus: EventBus) -> None:
    seen = []
    remove = bus.subscribe(EventName.ORDER_CANCELLED, seen.append)
    remove_many = bus.subscribe_many([EventName.ORDER_CANCELLED, EventName.ORDER_UPDATED], seen.append)
    assert bus.subscription_count(EventName.ORDER_CANCELLED) == 2

    remove()
    remove_many()
    await bus.publish(EventName.ORDER_CANCELLED, _cancelled())

    assert seen == []
    assert bus.subscription_count(EventName.ORDER_UPDATED) == 0


def test_unsubscribe_by_handler(bus: EventBus) -> None:
    def handler(payload):
        return None

    bus.subscribe(EventName.ORDER_CANCELLED, handler)
    bus.subscribe(EventName.ORDER_CANCELLED, handler)
    bus.subscribe(EventName.ORDER_CANCELLED, lambda p: None)

    bus.unsubscribe(EventName.ORDER_CANCELLED, handler)
    assert bus.subscription_count(EventName.ORDER_CANCELLED) == 1

    bus.unsubscribe(EventName.ORDER_CANCELLED)
    assert bus.subscription_count(EventName.ORDER_CANCELLED) == 0


@pytest.mark.asyncio
async def test_history_is_bounded(clock) -> None:
    bus = EventBus(max_history=2, clock=clock)
    for reason in ("a", "b", "c"):
        await bus.publish(EventName.ORDER_CANCELLED, _cancelled(reason))
    await bus.publish("custom:event", {})

    records = bus.history()
    assert [r.name for r in records] == ["order:cancelled", "custom:event"]
    assert records[0].payload.reason == "c"
    assert len(bus.history(EventName.ORDER_CANCELLED)) == 1

    bus.clear_history()
    assert bus.history() == []


@pytest.mark.asyncio
async def test_soft_validation_warns_and_delivers(bus: EventBus, caplog) -> None:
    seen = []
    bus.subscribe(EventName.LOW_STOCK, seen.append)

    await bus.publish(EventName.LOW_STOCK, {"productId": "not-a-uuid", "currentStock": 1, "threshold": 5})

    assert len(seen) == 1
    assert len(bus.history(EventName.LOW_STOCK)) == 1
    assert "failed validation" in caplog.text


@pytest.mark.asyncio
async def test_strict_validation_rejects_before_delivery(clock) -> None:
    bus = EventBus(strict_validation=True, clock=clock)
    seen = []
    bus.subscribe(EventName.LOW_STOCK, seen.append)

    with pytest.raises(EventPayloadError):
        await bus.publish(EventName.LOW_STOCK, {"productId": "not-a-uuid", "currentStock": 1, "threshold": 5})

    assert seen == []
    assert bus.history() == []

    valid = LowStockPayload(product_id=ORDER_ID, current_stock=1, threshold=5)
    await bus.publish(EventName.LOW_STOCK, valid)
    assert seen == [valid]


@pytest.mark.asyncio
async def test_camel_case_mapping_payload_is_valid(clock) -> None:
    bus = EventBus(strict_validation=True, clock=clock)
    await bus.publish(
        EventName.LOW_STOCK,
        {"productId": str(ORDER_ID), "currentStock": 2, "threshold": 5},
    )
    assert len(bus.history()) == 1


@pytest.mark.asyncio
async def test_publish_timeout_does_not_cancel_handlers(bus: EventBus) -> None:
    finished = asyncio.Event()

    async def slow(payload):
        await asyncio.sleep(0.05)
        finished.set()

    bus.subscribe(EventName.ORDER_CANCELLED, slow)

    with pytest.raises(PublishTimeoutError):
        await bus.publish(EventName.ORDER_CANCELLED, _cancelled(), timeout=0.001)

    await bus.drain()
    assert finished.is_set()


@pytest.mark.asyncio
async def test_publish_async_is_fire_and_forget(bus: EventBus) -> None:
    seen = []

    async def handler(payload):
        await asyncio.sleep(0)
        seen.append(payload)

    bus.subscribe(EventName.ORDER_CANCELLED, handler)

    task = bus.publish_async(EventName.ORDER_CANCELLED, _cancelled())
    assert seen == []

    await bus.drain()
    assert task.done()
    assert len(seen) == 1


@pytest.mark.asyncio
async def test_publish_async_logs_strict_failures(clock, caplog) -> None:
    bus = EventBus(strict_validation=True, clock=clock)

    bus.publish_async(EventName.LOW_STOCK, {"bad": True})
    await bus.drain()

    assert "Fire-and-forget publish failed" in caplog.text


@pytest.mark.asyncio
async def test_reset_drops_subscriptions_and_history(bus: EventBus) -> None:
    bus.subscribe(EventName.ORDER_CANCELLED, lambda p: None)
    await bus.publish(EventName.ORDER_CANCELLED, _cancelled())

    bus.reset()

    assert bus.subscription_count(EventName.ORDER_CANCELLED) == 0
    assert bus.history() == []


def test_bus_rejects_bad_configuration() -> None:
    with pytest.raises(ValueError):
        EventBus(max_history=0)
    with pytest.raises(ValueError):
        EventBus().subscribe("", lambda p: None)
