"""
Order lifecycle service.

Creates orders from final cart pricings and drives them through the
order, payment and fulfillment axes. Checkout is refused when a tracked
variant holds less stock than the cart asks for. The only mutators are:
- update_status (admin action, explicit target state)
- add_tracking (admin action)
- record_payment (payment-provider webhook or admin)

Each mutator is idempotent: replaying it with identical parameters
returns the stored order and emits nothing. An invalid transition raises
before anything is saved or published.

Concurrency:
- Mutations of one order are serialized by a per-order asyncio.Lock.
- The store write is a compare-and-swap on Order.version, so a writer in
  another process that got there first surfaces as ConflictError.
- Events are published after the write and outside the lock.
"""

from __future__ import annotations

import asyncio
import logging
import weakref
from typing import Callable, Dict, Optional, Union
from uuid import UUID, uuid4

from domain.errors import InsufficientStockError, InvalidInputError, NotFoundError
from domain.order import (
    FulfillmentStatus,
    Order,
    OrderChannel,
    OrderLine,
    OrderStatus,
    PaymentStatus,
    ShippingAddress,
)
from domain.time import Clock, utc_now
from events.bus import EventBus
from events.schemas import (
    EventName,
    OrderCancelledPayload,
    OrderCreatedPayload,
    OrderItemPayload,
    OrderShippedPayload,
    OrderUpdatedPayload,
    PaymentReceivedPayload,
)
from repositories.base import InventoryStore, OrderStore
from services.pricing_service import CartPricing

logger = logging.getLogger(__name__)


class OrderLifecycleService:
    def __init__(
        self,
        orders: OrderStore,
        bus: EventBus,
        clock: Clock = utc_now,
        *,
        id_factory: Callable[[], UUID] = uuid4,
        inventory: Optional[InventoryStore] = None,
    ):
        self._orders = orders
        self._inventory = inventory
        self._bus = bus
        self._clock = clock
        self._id_factory = id_factory
        self._locks: "weakref.WeakValueDictionary[UUID, asyncio.Lock]" = weakref.WeakValueDictionary()

    def _lock_for(self, order_id: UUID) -> asyncio.Lock:
        lock = self._locks.get(order_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[order_id] = lock
        return lock

    def get_order(self, order_id: UUID) -> Order:
        order = self._orders.load_order(order_id)
        if order is None:
            raise NotFoundError("Order", str(order_id))
        return order

    async def create_order(
        self,
        pricing: CartPricing,
        *,
        customer_id: UUID,
        shipping_address: ShippingAddress,
        channel: Optional[OrderChannel] = None,
    ) -> Order:
        """
        Freeze a final cart pricing into a new pending order.

        Process:
        1. Reject pricings that are not final (empty cart, shipping unresolved)
           and carts asking for more than a tracked variant has in stock
        2. Copy line prices and totals into an immutable Order
        3. Insert it and publish order:created

        Args:
            pricing: Result of price_cart for the checkout cart
            customer_id: Buyer
            shipping_address: Destination the shipping quote was made for
            channel: retail or wholesale; defaults to wholesale when the
                pricing carried a tier

        Returns:
            The stored Order (version 0)

        Raises:
            InvalidInputError: pricing is not final
            InsufficientStockError: a tracked variant is short of stock
        """
        # 1. Only a fully resolved price can be charged
        if not pricing.lines:
            raise InvalidInputError("Cannot create an order from an empty cart")
        if not pricing.is_final or pricing.shipping_total is None:
            raise InvalidInputError("Shipping must be resolved before an order can be created")
        self._check_stock(pricing)

        # 2. Freeze amounts
        if channel is None:
            channel = OrderChannel.WHOLESALE if pricing.tier is not None else OrderChannel.RETAIL
        now = self._clock()
        order = Order(
            order_id=self._id_factory(),
            customer_id=customer_id,
            channel=channel,
            currency=pricing.currency,
            items=tuple(
                OrderLine(
                    variant_id=line.variant_id,
                    product_id=line.product_id,
                    quantity=line.quantity,
                    unit_price=line.unit_price,
                    total=line.line_total,
                    sku=line.sku,
                )
                for line in pricing.lines
            ),
            shipping_address=shipping_address,
            subtotal=pricing.subtotal,
            discount_total=pricing.discount_total,
            shipping_total=pricing.shipping_total,
            total=pricing.total,
            created_at=now,
            updated_at=now,
            coupon_code=pricing.coupon.code if pricing.coupon else None,
            shipping_option_id=pricing.shipping.option.option_id if pricing.shipping.option else None,
        )

        # 3. Persist and announce
        stored = self._orders.insert_order(order)
        logger.info(
            "Order created",
            extra={
                "order_id": str(stored.order_id),
                "customer_id": str(customer_id),
                "channel": channel.value,
                "total": stored.total.amount,
                "currency": stored.currency,
            },
        )
        await self._bus.publish(
            EventName.ORDER_CREATED,
            OrderCreatedPayload(
                id=stored.order_id,
                customer_id=stored.customer_id,
                total=stored.total.amount,
                currency=stored.currency,
                items=[
                    OrderItemPayload(product_id=i.product_id, variant_id=i.variant_id, quantity=i.quantity)
                    for i in stored.items
                ],
            ),
        )
        return stored

    def _check_stock(self, pricing: CartPricing) -> None:
        if self._inventory is None:
            return
        requested: Dict[UUID, int] = {}
        for line in pricing.lines:
            requested[line.variant_id] = requested.get(line.variant_id, 0) + line.quantity
        for variant_id, quantity in requested.items():
            available = self._inventory.load_stock(variant_id)
            # Untracked variants are never short.
            if available is not None and available < quantity:
                logger.info(
                    "Checkout rejected for stock",
                    extra={"variant_id": str(variant_id), "requested": quantity, "available": available},
                )
                raise InsufficientStockError(str(variant_id), quantity, available)

    async def update_status(
        self,
        order_id: UUID,
        target: Union[OrderStatus, str],
        *,
        reason: Optional[str] = None,
    ) -> Order:
        """
        Move the order to an explicit target status.

        Raises:
            NotFoundError: unknown order
            InvalidInputError: unknown status value
            InvalidTransitionError: illegal edge, terminal order, or
                completing an unpaid order
            ConflictError: lost a concurrent write
        """
        target = _parse_enum(OrderStatus, target, "order status")

        async with self._lock_for(order_id):
            order = self.get_order(order_id)
            updated = order.with_order_status(target, at=self._clock())
            if updated is order:
                logger.debug("Order status unchanged", extra={"order_id": str(order_id), "status": target.value})
                return order
            stored = self._orders.save_order(updated, expected_version=order.version)

        logger.info(
            "Order status changed",
            extra={"order_id": str(order_id), "from": order.order_status.value, "to": target.value},
        )
        await self._bus.publish(
            EventName.ORDER_UPDATED,
            OrderUpdatedPayload(
                id=order_id,
                field="order_status",
                previous=order.order_status.value,
                current=target.value,
            ),
        )
        if target is OrderStatus.CANCELED:
            refund = stored.total.amount if stored.payment_status is PaymentStatus.PAID else None
            await self._bus.publish(
                EventName.ORDER_CANCELLED,
                OrderCancelledPayload(id=order_id, reason=reason, refund_amount=refund),
            )
        return stored

    async def add_tracking(
        self,
        order_id: UUID,
        tracking_number: str,
        *,
        carrier: Optional[str] = None,
        link: Optional[str] = None,
    ) -> Order:
        """
        Attach tracking and mark the order fulfilled.

        Identical tracking is a no-op. A corrected number on a fulfilled
        order is saved and announced as an update only.
        """
        async with self._lock_for(order_id):
            order = self.get_order(order_id)
            updated = order.with_tracking(tracking_number, at=self._clock(), carrier=carrier, link=link)
            if updated is order:
                return order
            stored = self._orders.save_order(updated, expected_version=order.version)

        first_shipment = order.fulfillment_status is FulfillmentStatus.NOT_FULFILLED
        logger.info(
            "Tracking added" if first_shipment else "Tracking corrected",
            extra={
                "order_id": str(order_id),
                "tracking_number": stored.tracking_number,
                "carrier": stored.tracking_carrier,
            },
        )
        if first_shipment:
            await self._bus.publish(
                EventName.ORDER_UPDATED,
                OrderUpdatedPayload(
                    id=order_id,
                    field="fulfillment_status",
                    previous=order.fulfillment_status.value,
                    current=stored.fulfillment_status.value,
                ),
            )
            await self._bus.publish(
                EventName.ORDER_SHIPPED,
                OrderShippedPayload(
                    id=order_id,
                    tracking_number=stored.tracking_number,
                    carrier=stored.tracking_carrier,
                    tracking_link=stored.tracking_link,
                ),
            )
        else:
            await self._bus.publish(
                EventName.ORDER_UPDATED,
                OrderUpdatedPayload(
                    id=order_id,
                    field="tracking_number",
                    previous=order.tracking_number,
                    current=stored.tracking_number,
                ),
            )
        return stored

    async def record_payment(
        self,
        order_id: UUID,
        status: Union[PaymentStatus, str],
        *,
        source: str,
        transaction_id: Optional[str] = None,
        method: Optional[str] = None,
    ) -> Order:
        """
        Apply a payment status reported by `source` (e.g. "webhook", "admin").

        paid is sticky: a later awaiting/overdue/pending report raises
        InvalidTransitionError. A replay of the current status is a no-op.
        """
        status = _parse_enum(PaymentStatus, status, "payment status")

        async with self._lock_for(order_id):
            order = self.get_order(order_id)
            updated = order.with_payment_status(status, at=self._clock(), transaction_id=transaction_id)
            if updated is order:
                logger.debug(
                    "Payment status unchanged",
                    extra={"order_id": str(order_id), "status": status.value, "source": source},
                )
                return order
            stored = self._orders.save_order(updated, expected_version=order.version)

        logger.info(
            "Payment status changed",
            extra={
                "order_id": str(order_id),
                "from": order.payment_status.value,
                "to": status.value,
                "source": source,
            },
        )
        await self._bus.publish(
            EventName.ORDER_UPDATED,
            OrderUpdatedPayload(
                id=order_id,
                field="payment_status",
                previous=order.payment_status.value,
                current=status.value,
            ),
        )
        if status is PaymentStatus.PAID:
            await self._bus.publish(
                EventName.PAYMENT_RECEIVED,
                PaymentReceivedPayload(
                    order_id=order_id,
                    amount=stored.total.amount,
                    method=method or source,
                    transaction_id=stored.payment_transaction_id,
                ),
            )
        return stored


def _parse_enum(enum_cls, value, label: str):
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(str(value).strip().lower())
    except ValueError as exc:
        raise InvalidInputError(f"Unknown {label}: {value!r}") from exc


__all__ = ["OrderLifecycleService"]
