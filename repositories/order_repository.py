"""
Order repository (Supabase persistence).

Persistence only: state-machine rules live on the Order aggregate. Amounts
are stored as integer minor units (`*_cents` columns); line items and the
shipping address are JSON columns.

Writes after creation are optimistic: the update is filtered on the
version the caller read, and an empty result means another writer won.
"""

from __future__ import annotations

from dataclasses import asdict
from typing import Any, Dict, Mapping, Optional
from uuid import UUID

from supabase import Client  # type: ignore[import-not-found]

from domain.errors import ConflictError
from domain.money import Money
from domain.order import (
    FulfillmentStatus,
    Order,
    OrderChannel,
    OrderLine,
    OrderStatus,
    PaymentStatus,
    ShippingAddress,
)
from repositories.client import parse_utc_datetime, rows_or_raise, to_iso_utc

# Keep this aligned with your database schema.
_ORDERS_TABLE: str = "orders"


def _line_to_json(line: OrderLine) -> Dict[str, Any]:
    return {
        "variant_id": str(line.variant_id),
        "product_id": str(line.product_id),
        "quantity": line.quantity,
        "unit_price_cents": line.unit_price.amount,
        "total_cents": line.total.amount,
        "sku": line.sku,
    }


def _line_from_json(data: Mapping[str, Any], currency: str) -> OrderLine:
    return OrderLine(
        variant_id=UUID(str(data["variant_id"])),
        product_id=UUID(str(data["product_id"])),
        quantity=int(data["quantity"]),
        unit_price=Money(int(data["unit_price_cents"]), currency),
        total=Money(int(data["total_cents"]), currency),
        sku=data.get("sku"),
    )


def order_to_row(order: Order) -> Dict[str, Any]:
    return {
        "order_id": str(order.order_id),
        "customer_id": str(order.customer_id),
        "channel": order.channel.value,
        "currency": order.currency,
        "items": [_line_to_json(line) for line in order.items],
        "shipping_address": asdict(order.shipping_address),
        "subtotal_cents": order.subtotal.amount,
        "discount_total_cents": order.discount_total.amount,
        "shipping_total_cents": order.shipping_total.amount,
        "total_cents": order.total.amount,
        "order_status": order.order_status.value,
        "payment_status": order.payment_status.value,
        "fulfillment_status": order.fulfillment_status.value,
        "coupon_code": order.coupon_code,
        "shipping_option_id": order.shipping_option_id,
        "tracking_number": order.tracking_number,
        "tracking_carrier": order.tracking_carrier,
        "tracking_link": order.tracking_link,
        "payment_transaction_id": order.payment_transaction_id,
        "version": order.version,
        "created_at_utc": to_iso_utc(order.created_at, name="created_at"),
        "updated_at_utc": to_iso_utc(order.updated_at, name="updated_at"),
    }


def row_to_order(row: Mapping[str, Any]) -> Order:
    currency = str(row["currency"])
    return Order(
        order_id=UUID(str(row["order_id"])),
        customer_id=UUID(str(row["customer_id"])),
        channel=OrderChannel(str(row["channel"])),
        currency=currency,
        items=tuple(_line_from_json(item, currency) for item in row.get("items") or []),
        shipping_address=ShippingAddress(**row["shipping_address"]),
        subtotal=Money(int(row["subtotal_cents"]), currency),
        discount_total=Money(int(row["discount_total_cents"]), currency),
        shipping_total=Money(int(row["shipping_total_cents"]), currency),
        total=Money(int(row["total_cents"]), currency),
        created_at=parse_utc_datetime(row["created_at_utc"]),
        updated_at=parse_utc_datetime(row["updated_at_utc"]),
        order_status=OrderStatus(str(row["order_status"])),
        payment_status=PaymentStatus(str(row["payment_status"])),
        fulfillment_status=FulfillmentStatus(str(row["fulfillment_status"])),
        coupon_code=row.get("coupon_code"),
        shipping_option_id=row.get("shipping_option_id"),
        tracking_number=row.get("tracking_number"),
        tracking_carrier=row.get("tracking_carrier"),
        tracking_link=row.get("tracking_link"),
        payment_transaction_id=row.get("payment_transaction_id"),
        version=int(row.get("version") or 0),
    )


class SupabaseOrderRepository:
    def __init__(self, client: Client):
        self._client = client

    def load_order(self, order_id: UUID) -> Optional[Order]:
        response = (
            self._client.table(_ORDERS_TABLE)
            .select("*")
            .eq("order_id", str(order_id))
            .limit(1)
            .execute()
        )
        rows = rows_or_raise(response, "fetch order")
        return row_to_order(rows[0]) if rows else None

    def insert_order(self, order: Order) -> Order:
        response = self._client.table(_ORDERS_TABLE).insert(order_to_row(order)).execute()
        rows_or_raise(response, "insert order")
        return order

    def save_order(self, order: Order, expected_version: int) -> Order:
        """
        Compare-and-swap on version.

        Example:
            stored = repo.save_order(order.with_order_status(...), expected_version=order.version)
        """
        row = order_to_row(order)
        row["version"] = expected_version + 1
        del row["order_id"]
        del row["created_at_utc"]

        response = (
            self._client.table(_ORDERS_TABLE)
            .update(row)
            .eq("order_id", str(order.order_id))
            .eq("version", expected_version)
            .execute()
        )
        rows = rows_or_raise(response, "update order")
        if not rows:
            raise ConflictError(str(order.order_id), expected_version)
        return row_to_order(rows[0])


__all__ = ["SupabaseOrderRepository", "order_to_row", "row_to_order"]
