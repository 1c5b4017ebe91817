"""
Event names and payload schemas.

One pydantic model per event name. Publishers in this codebase publish
model instances; plain mappings are accepted too and validated against the
registered schema. Field names are snake_case in Python and camelCase on
the wire (`customerId`, `currentStock`, ...).

Amounts are integer minor units in the order's currency.
"""

from __future__ import annotations

from enum import Enum
from typing import Dict, List, Optional, Type
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class EventName(str, Enum):
    ORDER_CREATED = "order:created"
    ORDER_UPDATED = "order:updated"
    ORDER_CANCELLED = "order:cancelled"
    ORDER_SHIPPED = "order:shipped"
    LOW_STOCK = "product:low_stock"
    PAYMENT_RECEIVED = "payment:received"


WILDCARD = "*"


class EventPayload(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )


class OrderItemPayload(EventPayload):
    product_id: UUID
    variant_id: Optional[UUID] = None
    quantity: int = Field(gt=0)


class OrderCreatedPayload(EventPayload):
    id: UUID
    customer_id: UUID
    total: int = Field(ge=0)
    currency: Optional[str] = None
    items: List[OrderItemPayload]


class OrderUpdatedPayload(EventPayload):
    id: UUID
    field: str
    previous: Optional[str] = None
    current: str


class OrderCancelledPayload(EventPayload):
    id: UUID
    reason: Optional[str] = None
    refund_amount: Optional[int] = Field(default=None, ge=0)


class OrderShippedPayload(EventPayload):
    id: UUID
    tracking_number: str = Field(min_length=1)
    carrier: Optional[str] = None
    tracking_link: Optional[str] = None


class LowStockPayload(EventPayload):
    product_id: UUID
    variant_id: Optional[UUID] = None
    current_stock: int = Field(ge=0)
    threshold: int = Field(gt=0)


class PaymentReceivedPayload(EventPayload):
    order_id: UUID
    amount: int = Field(ge=0)
    method: str
    transaction_id: Optional[str] = None


EVENT_SCHEMAS: Dict[str, Type[EventPayload]] = {
    EventName.ORDER_CREATED.value: OrderCreatedPayload,
    EventName.ORDER_UPDATED.value: OrderUpdatedPayload,
    EventName.ORDER_CANCELLED.value: OrderCancelledPayload,
    EventName.ORDER_SHIPPED.value: OrderShippedPayload,
    EventName.LOW_STOCK.value: LowStockPayload,
    EventName.PAYMENT_RECEIVED.value: PaymentReceivedPayload,
}


__all__ = [
    "EventName",
    "WILDCARD",
    "EventPayload",
    "OrderItemPayload",
    "OrderCreatedPayload",
    "OrderUpdatedPayload",
    "OrderCancelledPayload",
    "OrderShippedPayload",
    "LowStockPayload",
    "PaymentReceivedPayload",
    "EVENT_SCHEMAS",
]
