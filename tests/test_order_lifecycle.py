"""
Tests for `services/order_lifecycle_service.py`.

Covers contract rules:
- Orders are created only from final pricings and announce order:created.
- Each mutation saves a new version and publishes after the write.
- Rejected transitions and idempotent replays publish nothing and leave
  the stored order untouched.
- A writer holding a stale version gets ConflictError.
- Checkout never takes more than a tracked variant has in stock.
- Concurrent mutations of one order are applied one at a time.
"""

from __future__ import annotations

import asyncio
from dataclasses import replace
from uuid import UUID

import pytest

from conftest import ADDRESS, CUSTOMER_ID, OTHER_VARIANT_ID, VARIANT_ID, make_cart, make_options, usd
from domain.errors import (
    ConflictError,
    InsufficientStockError,
    InvalidInputError,
    InvalidTransitionError,
    NotFoundError,
)
from domain.order import FulfillmentStatus, OrderChannel, OrderStatus, PaymentStatus
from events.schemas import EventName
from services.order_lifecycle_service import OrderLifecycleService
from services.pricing_service import price_cart

ORDER_ID = UUID("00000000-0000-0000-0000-0000000000d1")


@pytest.fixture
def service(order_store, bus, clock):
    return OrderLifecycleService(order_store, bus, clock, id_factory=lambda: ORDER_ID)


def _final_pricing(**kwargs):
    return price_cart(
        make_cart((5000, 2)),
        shipping_options=make_options(),
        selected_option_id="standard",
        free_shipping_threshold=usd(25000),
        **kwargs,
    )


async def _create(service):
    return await service.create_order(_final_pricing(), customer_id=CUSTOMER_ID, shipping_address=ADDRESS)


def _names(bus):
    return [record.name for record in bus.history()]


@pytest.mark.asyncio
async def test_create_order_freezes_pricing_and_publishes(service, bus, order_store) -> None:
    order = await _create(service)

    assert order.order_id == ORDER_ID
    assert order.order_status is OrderStatus.PENDING
    assert order.payment_status is PaymentStatus.PENDING
    assert order.channel is OrderChannel.RETAIL
    assert order.total == usd(11500)
    assert order.shipping_option_id == "standard"
    assert order.version == 0
    assert order_store.load_order(ORDER_ID) == order

    (record,) = bus.history(EventName.ORDER_CREATED)
    assert record.payload.id == ORDER_ID
    assert record.payload.total == 11500
    assert record.payload.items[0].quantity == 2


@pytest.mark.asyncio
async def test_wholesale_pricing_creates_wholesale_order(service) -> None:
    order = await service.create_order(
        _final_pricing(tier="growth"), customer_id=CUSTOMER_ID, shipping_address=ADDRESS
    )

    assert order.channel is OrderChannel.WHOLESALE
    assert order.payment_status is PaymentStatus.AWAITING


@pytest.mark.asyncio
async def test_non_final_pricing_is_rejected(service, bus) -> None:
    unresolved = price_cart(make_cart((5000, 1)), shipping_options=make_options())

    with pytest.raises(InvalidInputError):
        await service.create_order(unresolved, customer_id=CUSTOMER_ID, shipping_address=ADDRESS)
    assert bus.history() == []


@pytest.mark.asyncio
async def test_update_status_saves_and_publishes(service, bus) -> None:
    await _create(service)

    order = await service.update_status(ORDER_ID, "processing")

    assert order.order_status is OrderStatus.PROCESSING
    assert order.version == 1
    (record,) = bus.history(EventName.ORDER_UPDATED)
    assert (record.payload.field, record.payload.previous, record.payload.current) == (
        "order_status",
        "pending",
        "processing",
    )


@pytest.mark.asyncio
async def test_same_status_replay_is_silent(service, bus) -> None:
    created = await _create(service)

    assert await service.update_status(ORDER_ID, OrderStatus.PENDING) is created
    assert _names(bus) == [EventName.ORDER_CREATED.value]


@pytest.mark.asyncio
async def test_cancel_publishes_cancelled_with_refund_when_paid(service, bus) -> None:
    await _create(service)
    await service.record_payment(ORDER_ID, "paid", source="webhook", transaction_id="txn_1")

    await service.update_status(ORDER_ID, "canceled", reason="customer request")

    (record,) = bus.history(EventName.ORDER_CANCELLED)
    assert record.payload.reason == "customer request"
    assert record.payload.refund_amount == 11500


@pytest.mark.asyncio
async def test_terminal_order_rejects_changes_and_stays_put(service, bus, order_store) -> None:
    await _create(service)
    canceled = await service.update_status(ORDER_ID, "canceled")
    published = len(bus.history())

    with pytest.raises(InvalidTransitionError):
        await service.update_status(ORDER_ID, "processing")
    with pytest.raises(InvalidTransitionError):
        await service.add_tracking(ORDER_ID, "1Z999")

    assert order_store.load_order(ORDER_ID) == canceled
    assert len(bus.history()) == published


@pytest.mark.asyncio
async def test_complete_requires_payment(service) -> None:
    await _create(service)
    await service.update_status(ORDER_ID, "processing")

    with pytest.raises(InvalidTransitionError):
        await service.update_status(ORDER_ID, "completed")

    await service.record_payment(ORDER_ID, PaymentStatus.PAID, source="admin")
    completed = await service.update_status(ORDER_ID, "completed")
    assert completed.order_status is OrderStatus.COMPLETED


@pytest.mark.asyncio
async def test_unknown_status_is_invalid_input(service) -> None:
    await _create(service)
    with pytest.raises(InvalidInputError):
        await service.update_status(ORDER_ID, "shipped")


@pytest.mark.asyncio
async def test_add_tracking_ships_once(service, bus) -> None:
    await _create(service)

    shipped = await service.add_tracking(ORDER_ID, "1Z999", carrier="UPS")
    replay = await service.add_tracking(ORDER_ID, "1Z999", carrier="UPS")

    assert shipped.fulfillment_status is FulfillmentStatus.FULFILLED
    assert replay is shipped
    assert len(bus.history(EventName.ORDER_SHIPPED)) == 1
    (update,) = bus.history(EventName.ORDER_UPDATED)
    assert update.payload.field == "fulfillment_status"


@pytest.mark.asyncio
async def test_tracking_correction_is_an_update_only(service, bus) -> None:
    await _create(service)
    await service.add_tracking(ORDER_ID, "1Z999")

    corrected = await service.add_tracking(ORDER_ID, "1Z000")

    assert corrected.tracking_number == "1Z000"
    assert len(bus.history(EventName.ORDER_SHIPPED)) == 1
    last = bus.history(EventName.ORDER_UPDATED)[-1]
    assert (last.payload.field, last.payload.previous, last.payload.current) == ("tracking_number", "1Z999", "1Z000")


@pytest.mark.asyncio
async def test_payment_received_and_paid_is_sticky(service, bus) -> None:
    await _create(service)

    paid = await service.record_payment(ORDER_ID, "PAID", source="webhook", transaction_id="txn_1", method="card")
    replay = await service.record_payment(ORDER_ID, "paid", source="webhook", transaction_id="txn_1")

    assert paid.payment_transaction_id == "txn_1"
    assert replay is paid
    (record,) = bus.history(EventName.PAYMENT_RECEIVED)
    assert record.payload.amount == 11500
    assert record.payload.method == "card"

    with pytest.raises(InvalidTransitionError):
        await service.record_payment(ORDER_ID, "pending", source="webhook")


@pytest.mark.asyncio
async def test_stale_version_raises_conflict(service, order_store, monkeypatch) -> None:
    created = await _create(service)
    await service.update_status(ORDER_ID, "processing")

    # Another writer already advanced the order; this process still sees version 0.
    monkeypatch.setattr(order_store, "load_order", lambda order_id: replace(created, version=0))

    with pytest.raises(ConflictError):
        await service.update_status(ORDER_ID, "canceled")


@pytest.mark.asyncio
async def test_unknown_order_is_not_found(service) -> None:
    with pytest.raises(NotFoundError):
        await service.update_status(ORDER_ID, "processing")
    with pytest.raises(NotFoundError):
        service.get_order(ORDER_ID)


@pytest.fixture
def stocked_service(order_store, bus, clock, inventory_store):
    return OrderLifecycleService(order_store, bus, clock, id_factory=lambda: ORDER_ID, inventory=inventory_store)


@pytest.mark.asyncio
async def test_checkout_beyond_stock_is_rejected(stocked_service, inventory_store, order_store, bus) -> None:
    inventory_store.set_stock(VARIANT_ID, 10)
    pricing = price_cart(
        make_cart((5000, 50)), shipping_options=make_options(), selected_option_id="standard"
    )

    with pytest.raises(InsufficientStockError) as info:
        await stocked_service.create_order(pricing, customer_id=CUSTOMER_ID, shipping_address=ADDRESS)

    assert (info.value.requested, info.value.available) == (50, 10)
    assert order_store.load_order(ORDER_ID) is None
    assert bus.history() == []


@pytest.mark.asyncio
async def test_stock_check_sums_lines_and_skips_untracked(stocked_service, inventory_store) -> None:
    inventory_store.set_stock(VARIANT_ID, 10)
    cart = make_cart((5000, 6), (5000, 100))
    # Two lines for the same tracked variant; the second line's variant is untracked.
    doubled = replace(cart, lines=(cart.lines[0], cart.lines[0], cart.lines[1]))
    pricing = price_cart(doubled, shipping_options=make_options(), selected_option_id="standard")
    assert pricing.lines[2].variant_id == OTHER_VARIANT_ID

    with pytest.raises(InsufficientStockError) as info:
        await stocked_service.create_order(pricing, customer_id=CUSTOMER_ID, shipping_address=ADDRESS)
    assert info.value.requested == 12

    inventory_store.set_stock(VARIANT_ID, 12)
    order = await stocked_service.create_order(pricing, customer_id=CUSTOMER_ID, shipping_address=ADDRESS)
    assert order.version == 0


@pytest.mark.asyncio
async def test_concurrent_cancel_and_ship_apply_one_at_a_time(service, bus, order_store) -> None:
    await _create(service)

    cancelled, shipped = await asyncio.gather(
        service.update_status(ORDER_ID, "canceled"),
        service.add_tracking(ORDER_ID, "1Z999"),
        return_exceptions=True,
    )

    assert cancelled.order_status is OrderStatus.CANCELED
    assert isinstance(shipped, InvalidTransitionError)
    stored = order_store.load_order(ORDER_ID)
    assert stored.version == 1
    assert stored.order_status is OrderStatus.CANCELED
    assert stored.fulfillment_status is FulfillmentStatus.NOT_FULFILLED
    assert bus.history(EventName.ORDER_SHIPPED) == []


@pytest.mark.asyncio
async def test_concurrent_paid_webhooks_record_one_payment(service, bus, order_store) -> None:
    await _create(service)

    results = await asyncio.gather(
        service.record_payment(ORDER_ID, "paid", source="webhook", transaction_id="txn_1"),
        service.record_payment(ORDER_ID, "paid", source="webhook", transaction_id="txn_1"),
    )

    assert all(order.payment_status is PaymentStatus.PAID for order in results)
    assert order_store.load_order(ORDER_ID).version == 1
    assert len(bus.history(EventName.PAYMENT_RECEIVED)) == 1
