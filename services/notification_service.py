"""
Notification collaborator.

Turns order and stock events into customer or staff messages and hands
them to a delivery channel. Channels validate a message before sending;
an invalid message is logged and reported as a failed delivery rather
than raised, so one bad address never blocks other handlers.

Built-in channels only log the outgoing message. Production deployments
register channels backed by a real provider under the same names.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Dict, Mapping, Optional, Protocol
from uuid import uuid4

from domain.money import Money
from domain.time import Clock, utc_now
from events.bus import EventBus
from events.schemas import (
    EventName,
    LowStockPayload,
    OrderCancelledPayload,
    OrderCreatedPayload,
    OrderShippedPayload,
)
from repositories.base import CustomerStore, OrderStore

logger = logging.getLogger(__name__)

SUBJECT_MAX_LENGTH = 200
SMS_MAX_LENGTH = 160


@dataclass(frozen=True, slots=True)
class Notification:
    to: str
    subject: str
    body: str
    html_body: Optional[str] = None


@dataclass(frozen=True, slots=True)
class DeliveryResult:
    success: bool
    channel: str
    message_id: Optional[str] = None
    error: Optional[str] = None
    delivered_at: Optional[datetime] = None


class NotificationChannel(Protocol):
    name: str

    def validate(self, notification: Notification) -> Optional[str]:
        """Return an error message, or None when the notification can be sent."""
        ...

    async def send(self, notification: Notification) -> DeliveryResult:
        ...


class EmailChannel:
    name = "email"

    def __init__(self, clock: Clock = utc_now):
        self._clock = clock

    def validate(self, notification: Notification) -> Optional[str]:
        if "@" not in notification.to:
            return "Invalid email address"
        if not notification.subject or len(notification.subject) > SUBJECT_MAX_LENGTH:
            return f"Subject must be 1-{SUBJECT_MAX_LENGTH} characters"
        if not notification.body:
            return "Body is required"
        return None

    async def send(self, notification: Notification) -> DeliveryResult:
        logger.info("Email queued", extra={"to": notification.to, "subject": notification.subject})
        return DeliveryResult(
            success=True,
            channel=self.name,
            message_id=f"email-{uuid4().hex}",
            delivered_at=self._clock(),
        )


class SmsChannel:
    name = "sms"

    def __init__(self, clock: Clock = utc_now):
        self._clock = clock

    def validate(self, notification: Notification) -> Optional[str]:
        if not notification.to:
            return "Phone number is required"
        if not notification.body or len(notification.body) > SMS_MAX_LENGTH:
            return f"SMS message must be 1-{SMS_MAX_LENGTH} characters"
        return None

    async def send(self, notification: Notification) -> DeliveryResult:
        logger.info("SMS queued", extra={"to": notification.to})
        return DeliveryResult(
            success=True,
            channel=self.name,
            message_id=f"sms-{uuid4().hex}",
            delivered_at=self._clock(),
        )


def default_channels(clock: Clock = utc_now) -> Dict[str, NotificationChannel]:
    return {"email": EmailChannel(clock), "sms": SmsChannel(clock)}


class NotificationService:
    def __init__(
        self,
        customers: CustomerStore,
        orders: OrderStore,
        bus: EventBus,
        *,
        channels: Optional[Mapping[str, NotificationChannel]] = None,
        staff_email: Optional[str] = None,
    ):
        self._customers = customers
        self._orders = orders
        self._bus = bus
        self._channels: Dict[str, NotificationChannel] = dict(channels or default_channels())
        self._staff_email = staff_email

    def register(self) -> Callable[[], None]:
        removers = [
            self._bus.subscribe(EventName.ORDER_CREATED, self.on_order_created),
            self._bus.subscribe(EventName.ORDER_SHIPPED, self.on_order_shipped),
            self._bus.subscribe(EventName.ORDER_CANCELLED, self.on_order_cancelled),
            self._bus.subscribe(EventName.LOW_STOCK, self.on_low_stock),
        ]

        def unregister() -> None:
            for remove in removers:
                remove()

        return unregister

    async def send(self, notification: Notification, channel: str = "email") -> DeliveryResult:
        strategy = self._channels.get(channel)
        if strategy is None:
            logger.warning("Unknown notification channel", extra={"channel": channel})
            return DeliveryResult(success=False, channel=channel, error=f"Unknown notification channel: {channel}")

        error = strategy.validate(notification)
        if error:
            logger.warning("Notification rejected", extra={"channel": channel, "reason": error})
            return DeliveryResult(success=False, channel=channel, error=error)

        return await strategy.send(notification)

    async def on_order_created(self, payload: Any) -> None:
        event = OrderCreatedPayload.model_validate(payload)
        customer = self._customers.load_customer(event.customer_id)
        if customer is None:
            logger.warning("No customer for order confirmation", extra={"order_id": str(event.id)})
            return
        total = Money(event.total, event.currency).format() if event.currency else str(event.total)
        await self.send(Notification(
            to=customer.email,
            subject=f"Order confirmation #{_short(event.id)}",
            body=f"Hi {customer.display_name}, we received your order. Total: {total}.",
        ))

    async def on_order_shipped(self, payload: Any) -> None:
        event = OrderShippedPayload.model_validate(payload)
        order = self._orders.load_order(event.id)
        customer = self._customers.load_customer(order.customer_id) if order else None
        if customer is None:
            logger.warning("No customer for shipping notice", extra={"order_id": str(event.id)})
            return

        carrier = f" via {event.carrier}" if event.carrier else ""
        body = f"Your order #{_short(event.id)} has shipped{carrier}. Tracking number: {event.tracking_number}."
        if event.tracking_link:
            body += f" Track it at {event.tracking_link}"
        await self.send(Notification(to=customer.email, subject="Your order has shipped", body=body))
        if customer.phone:
            await self.send(
                Notification(
                    to=customer.phone,
                    subject="Order shipped",
                    body=f"Order #{_short(event.id)} shipped. Tracking: {event.tracking_number}",
                ),
                channel="sms",
            )

    async def on_order_cancelled(self, payload: Any) -> None:
        event = OrderCancelledPayload.model_validate(payload)
        order = self._orders.load_order(event.id)
        customer = self._customers.load_customer(order.customer_id) if order else None
        if customer is None:
            logger.warning("No customer for cancellation notice", extra={"order_id": str(event.id)})
            return

        body = f"Your order #{_short(event.id)} has been cancelled."
        if event.reason:
            body += f" Reason: {event.reason}."
        if event.refund_amount and order is not None:
            body += f" A refund of {Money(event.refund_amount, order.currency).format()} is on its way."
        await self.send(Notification(to=customer.email, subject="Your order was cancelled", body=body))

    async def on_low_stock(self, payload: Any) -> None:
        event = LowStockPayload.model_validate(payload)
        if not self._staff_email:
            return
        variant = f" (variant {event.variant_id})" if event.variant_id else ""
        await self.send(Notification(
            to=self._staff_email,
            subject="Low stock alert",
            body=(
                f"Product {event.product_id}{variant} is down to {event.current_stock} units "
                f"(threshold {event.threshold})."
            ),
        ))


def _short(order_id: Any) -> str:
    return str(order_id).split("-")[0].upper()


__all__ = [
    "Notification",
    "DeliveryResult",
    "NotificationChannel",
    "EmailChannel",
    "SmsChannel",
    "default_channels",
    "NotificationService",
]
