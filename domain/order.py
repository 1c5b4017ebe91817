"""
Domain: Order aggregate and its status axes.

An Order is an immutable snapshot created at checkout confirmation. Its
amounts are frozen from the cart pricing computed at that moment. After
creation it changes only through status transitions, each of which
returns a new Order instance (or the same instance when the request is
an idempotent replay). Orders are never deleted.

Status axes:
- order_status: pending -> processing -> completed, pending/processing ->
  canceled. completed and canceled are terminal.
- payment_status: retail {pending, paid, refunded}; wholesale {awaiting,
  paid, overdue}. paid is sticky.
- fulfillment_status: not_fulfilled -> fulfilled, only by adding tracking.

Invariants:
- fulfillment_status == fulfilled implies tracking_number is set.
- order_status == completed implies payment_status == paid.
- total == max(0, subtotal - discount_total + shipping_total).
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum
from typing import FrozenSet, Mapping, Optional, Tuple
from uuid import UUID

from .errors import InvalidInputError, InvalidTransitionError
from .money import Money, compose_total
from .time import require_utc_timestamp


class OrderChannel(str, Enum):
    RETAIL = "retail"
    WHOLESALE = "wholesale"


class OrderStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    CANCELED = "canceled"


class PaymentStatus(str, Enum):
    # retail
    PENDING = "pending"
    REFUNDED = "refunded"
    # wholesale
    AWAITING = "awaiting"
    OVERDUE = "overdue"
    # both
    PAID = "paid"


class FulfillmentStatus(str, Enum):
    NOT_FULFILLED = "not_fulfilled"
    FULFILLED = "fulfilled"


ORDER_TRANSITIONS: Mapping[OrderStatus, FrozenSet[OrderStatus]] = {
    OrderStatus.PENDING: frozenset({OrderStatus.PROCESSING, OrderStatus.CANCELED}),
    OrderStatus.PROCESSING: frozenset({OrderStatus.COMPLETED, OrderStatus.CANCELED}),
    OrderStatus.COMPLETED: frozenset(),
    OrderStatus.CANCELED: frozenset(),
}

TERMINAL_ORDER_STATUSES = frozenset({OrderStatus.COMPLETED, OrderStatus.CANCELED})

PAYMENT_STATUSES: Mapping[OrderChannel, FrozenSet[PaymentStatus]] = {
    OrderChannel.RETAIL: frozenset({PaymentStatus.PENDING, PaymentStatus.PAID, PaymentStatus.REFUNDED}),
    OrderChannel.WHOLESALE: frozenset({PaymentStatus.AWAITING, PaymentStatus.PAID, PaymentStatus.OVERDUE}),
}

# Refunds are an explicit action handled outside the engine, so no edge
# leads into REFUNDED here and PAID has no outgoing edge.
PAYMENT_TRANSITIONS: Mapping[PaymentStatus, FrozenSet[PaymentStatus]] = {
    PaymentStatus.PENDING: frozenset({PaymentStatus.PAID}),
    PaymentStatus.AWAITING: frozenset({PaymentStatus.PAID, PaymentStatus.OVERDUE}),
    PaymentStatus.OVERDUE: frozenset({PaymentStatus.PAID}),
    PaymentStatus.PAID: frozenset(),
    PaymentStatus.REFUNDED: frozenset(),
}


def initial_payment_status(channel: OrderChannel) -> PaymentStatus:
    return PaymentStatus.AWAITING if channel is OrderChannel.WHOLESALE else PaymentStatus.PENDING


@dataclass(frozen=True, slots=True)
class ShippingAddress:
    address_1: str
    city: str
    postal_code: str
    country_code: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    address_2: Optional[str] = None
    province: Optional[str] = None
    phone: Optional[str] = None


@dataclass(frozen=True, slots=True)
class OrderLine:
    variant_id: UUID
    product_id: UUID
    quantity: int
    unit_price: Money
    total: Money
    sku: Optional[str] = None


@dataclass(frozen=True, slots=True)
class Order:
    order_id: UUID
    customer_id: UUID
    channel: OrderChannel
    currency: str
    items: Tuple[OrderLine, ...]
    shipping_address: ShippingAddress
    subtotal: Money
    discount_total: Money
    shipping_total: Money
    total: Money
    created_at: datetime
    updated_at: datetime
    order_status: OrderStatus = OrderStatus.PENDING
    payment_status: Optional[PaymentStatus] = None
    fulfillment_status: FulfillmentStatus = FulfillmentStatus.NOT_FULFILLED
    coupon_code: Optional[str] = None
    shipping_option_id: Optional[str] = None
    tracking_number: Optional[str] = None
    tracking_carrier: Optional[str] = None
    tracking_link: Optional[str] = None
    payment_transaction_id: Optional[str] = None
    version: int = 0

    def __post_init__(self) -> None:
        require_utc_timestamp("created_at", self.created_at)
        require_utc_timestamp("updated_at", self.updated_at)
        object.__setattr__(self, "items", tuple(self.items))

        if self.payment_status is None:
            object.__setattr__(self, "payment_status", initial_payment_status(self.channel))
        if self.payment_status not in PAYMENT_STATUSES[self.channel]:
            raise InvalidInputError(
                f"payment_status '{self.payment_status.value}' is not valid for {self.channel.value} orders"
            )

        for name in ("subtotal", "discount_total", "shipping_total", "total"):
            if getattr(self, name).currency != self.currency:
                raise InvalidInputError(f"{name} must be expressed in {self.currency}")
        expected_total = compose_total(self.subtotal, self.discount_total, self.shipping_total)
        if expected_total != self.total:
            raise InvalidInputError(
                f"total {self.total.amount} does not match subtotal - discount + shipping "
                f"({expected_total.amount})"
            )

        if self.fulfillment_status is FulfillmentStatus.FULFILLED and not self.tracking_number:
            raise InvalidInputError("a fulfilled order must carry a tracking number")
        if self.order_status is OrderStatus.COMPLETED and self.payment_status is not PaymentStatus.PAID:
            raise InvalidInputError("a completed order must be paid")
        if self.version < 0:
            raise InvalidInputError("version must be >= 0")

    @property
    def is_terminal(self) -> bool:
        return self.order_status in TERMINAL_ORDER_STATUSES

    @property
    def display_status(self) -> str:
        """Customer-facing status; a fulfilled open order reads as shipped."""

        if (
            self.fulfillment_status is FulfillmentStatus.FULFILLED
            and self.order_status in (OrderStatus.PENDING, OrderStatus.PROCESSING)
        ):
            return "shipped"
        return self.order_status.value

    def with_order_status(self, target: OrderStatus, *, at: datetime) -> "Order":
        """
        Return the order moved to `target`.

        Returns self unchanged for a same-state replay on an open order.
        Raises InvalidTransitionError for any attempt on a terminal order and
        for every edge not in ORDER_TRANSITIONS.
        """

        current = self.order_status
        if current in TERMINAL_ORDER_STATUSES:
            raise InvalidTransitionError(
                "order_status",
                current.value,
                target.value,
                f"Order is {current.value}; no further status changes are allowed",
            )
        if target == current:
            return self
        if target not in ORDER_TRANSITIONS[current]:
            raise InvalidTransitionError("order_status", current.value, target.value)
        if target is OrderStatus.COMPLETED and self.payment_status is not PaymentStatus.PAID:
            raise InvalidTransitionError(
                "order_status",
                current.value,
                target.value,
                f"Order cannot complete while payment is {self.payment_status.value}",
            )
        return replace(self, order_status=target, updated_at=at)

    def with_tracking(
        self,
        tracking_number: str,
        *,
        at: datetime,
        carrier: Optional[str] = None,
        link: Optional[str] = None,
    ) -> "Order":
        """
        Return the order fulfilled with the given tracking details.

        Re-adding identical tracking returns self. A different number on an
        already fulfilled order replaces the tracking details.
        """

        number = (tracking_number or "").strip()
        if not number:
            raise InvalidInputError("tracking_number is required to fulfill an order")
        if self.order_status is OrderStatus.CANCELED:
            raise InvalidTransitionError(
                "fulfillment_status",
                self.fulfillment_status.value,
                FulfillmentStatus.FULFILLED.value,
                "A canceled order cannot be fulfilled",
            )
        carrier = carrier.strip() if carrier and carrier.strip() else None
        link = link.strip() if link and link.strip() else None

        if (
            self.fulfillment_status is FulfillmentStatus.FULFILLED
            and self.tracking_number == number
            and self.tracking_carrier == carrier
            and self.tracking_link == link
        ):
            return self

        return replace(
            self,
            fulfillment_status=FulfillmentStatus.FULFILLED,
            tracking_number=number,
            tracking_carrier=carrier,
            tracking_link=link,
            updated_at=at,
        )

    def with_payment_status(
        self,
        target: PaymentStatus,
        *,
        at: datetime,
        transaction_id: Optional[str] = None,
    ) -> "Order":
        """
        Return the order with its payment axis moved to `target`.

        A replay of the current status returns self.
        """

        if target not in PAYMENT_STATUSES[self.channel]:
            raise InvalidInputError(
                f"payment_status '{target.value}' is not valid for {self.channel.value} orders"
            )
        current = self.payment_status
        if target == current:
            return self
        if target not in PAYMENT_TRANSITIONS[current]:
            raise InvalidTransitionError("payment_status", current.value, target.value)
        return replace(
            self,
            payment_status=target,
            payment_transaction_id=transaction_id or self.payment_transaction_id,
            updated_at=at,
        )


__all__ = [
    "Order",
    "OrderLine",
    "OrderChannel",
    "OrderStatus",
    "PaymentStatus",
    "FulfillmentStatus",
    "ShippingAddress",
    "ORDER_TRANSITIONS",
    "PAYMENT_TRANSITIONS",
    "PAYMENT_STATUSES",
    "TERMINAL_ORDER_STATUSES",
    "initial_payment_status",
]
