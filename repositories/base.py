"""
Persistence ports used by the services.

Two adapters implement them: the in-memory stores in
`repositories.memory` and the Supabase repositories in
`repositories.*_repository`.
"""

from __future__ import annotations

from typing import Iterable, List, Mapping, Optional, Protocol, Sequence
from uuid import UUID

from domain.catalog import CatalogVariant
from domain.coupon import Coupon
from domain.customer import Customer
from domain.money import Money
from domain.order import Order
from domain.shipping import ShippingOption
from domain.wholesale import BulkDiscountBracket, WholesaleTier


class OrderStore(Protocol):
    def load_order(self, order_id: UUID) -> Optional[Order]:
        ...

    def insert_order(self, order: Order) -> Order:
        """Persist a new order. Raises ConflictError if the id exists."""
        ...

    def save_order(self, order: Order, expected_version: int) -> Order:
        """
        Compare-and-swap on version.

        Writes `order` with version expected_version + 1 if the stored
        version still equals `expected_version`; otherwise raises
        ConflictError. Returns the stored order.
        """
        ...


class CatalogStore(Protocol):
    def load_variants(self, variant_ids: Iterable[UUID], currency: str) -> Mapping[UUID, CatalogVariant]:
        """
        Variants by id, each with its retail price in `currency` (or None).

        Unknown ids are absent from the result.
        """
        ...

    def load_bulk_brackets(self, variant_ids: Iterable[UUID]) -> Mapping[UUID, Sequence[BulkDiscountBracket]]:
        """Active bulk brackets per variant; variants without any are absent."""
        ...


class CustomerStore(Protocol):
    def load_customer(self, customer_id: UUID) -> Optional[Customer]:
        ...

    def load_customer_tier(self, customer_id: UUID) -> Optional[WholesaleTier]:
        ...

    def load_negotiated_prices(self, customer_id: UUID, variant_ids: Iterable[UUID]) -> Mapping[UUID, Money]:
        ...


class CouponStore(Protocol):
    def load_coupon(self, code: str) -> Optional[Coupon]:
        """`code` is already normalized."""
        ...


class ShippingStore(Protocol):
    def load_shipping_options(self, country_code: str, region_id: str) -> List[ShippingOption]:
        ...


class InventoryStore(Protocol):
    def load_stock(self, variant_id: UUID) -> Optional[int]:
        """Current stock, or None when the variant does not track inventory."""
        ...

    def adjust_stock(self, variant_id: UUID, delta: int) -> int:
        """Apply `delta` and return the new stock level, floored at zero."""
        ...


__all__ = ["OrderStore", "CatalogStore", "CustomerStore", "CouponStore", "ShippingStore", "InventoryStore"]
