"""
In-memory stores.

Used by the default `DATA_BACKEND=memory` configuration and by the tests.
Each store guards its state with a lock so that concurrent request
threads see consistent reads and version checks.
"""

from __future__ import annotations

import threading
from dataclasses import replace
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple
from uuid import UUID

from domain.catalog import CatalogVariant
from domain.coupon import Coupon
from domain.customer import Customer
from domain.errors import ConflictError
from domain.money import Money
from domain.order import Order
from domain.shipping import ShippingOption
from domain.wholesale import BulkDiscountBracket, WholesaleTier


class InMemoryOrderStore:
    def __init__(self, orders: Iterable[Order] = ()):
        self._lock = threading.Lock()
        self._orders: Dict[UUID, Order] = {o.order_id: o for o in orders}

    def load_order(self, order_id: UUID) -> Optional[Order]:
        with self._lock:
            return self._orders.get(order_id)

    def insert_order(self, order: Order) -> Order:
        with self._lock:
            if order.order_id in self._orders:
                raise ConflictError(str(order.order_id), order.version)
            self._orders[order.order_id] = order
            return order

    def save_order(self, order: Order, expected_version: int) -> Order:
        with self._lock:
            current = self._orders.get(order.order_id)
            if current is None or current.version != expected_version:
                raise ConflictError(str(order.order_id), expected_version)
            stored = replace(order, version=expected_version + 1)
            self._orders[order.order_id] = stored
            return stored


class InMemoryCatalogStore:
    def __init__(self):
        self._lock = threading.Lock()
        self._variants: Dict[UUID, Tuple[UUID, Optional[str]]] = {}
        self._prices: Dict[Tuple[UUID, str], Money] = {}
        self._brackets: Dict[UUID, Tuple[BulkDiscountBracket, ...]] = {}

    def add_variant(
        self,
        variant_id: UUID,
        product_id: UUID,
        prices: Iterable[Money] = (),
        *,
        sku: Optional[str] = None,
        bulk_brackets: Iterable[BulkDiscountBracket] = (),
    ) -> None:
        with self._lock:
            self._variants[variant_id] = (product_id, sku)
            for price in prices:
                self._prices[(variant_id, price.currency)] = price
            brackets = tuple(bulk_brackets)
            if brackets:
                self._brackets[variant_id] = brackets
            else:
                self._brackets.pop(variant_id, None)

    def load_variants(self, variant_ids: Iterable[UUID], currency: str) -> Mapping[UUID, CatalogVariant]:
        with self._lock:
            found: Dict[UUID, CatalogVariant] = {}
            for vid in variant_ids:
                if vid not in self._variants:
                    continue
                product_id, sku = self._variants[vid]
                found[vid] = CatalogVariant(
                    variant_id=vid,
                    product_id=product_id,
                    price=self._prices.get((vid, currency)),
                    sku=sku,
                )
            return found

    def load_bulk_brackets(self, variant_ids: Iterable[UUID]) -> Mapping[UUID, Sequence[BulkDiscountBracket]]:
        with self._lock:
            return {vid: self._brackets[vid] for vid in variant_ids if vid in self._brackets}


class InMemoryCustomerStore:
    def __init__(
        self,
        customers: Iterable[Customer] = (),
        negotiated_prices: Optional[Mapping[Tuple[UUID, UUID], Money]] = None,
    ):
        self._lock = threading.Lock()
        self._customers: Dict[UUID, Customer] = {c.customer_id: c for c in customers}
        self._negotiated: Dict[Tuple[UUID, UUID], Money] = dict(negotiated_prices or {})

    def add_customer(self, customer: Customer) -> None:
        with self._lock:
            self._customers[customer.customer_id] = customer

    def set_negotiated_price(self, customer_id: UUID, variant_id: UUID, price: Money) -> None:
        with self._lock:
            self._negotiated[(customer_id, variant_id)] = price

    def load_customer(self, customer_id: UUID) -> Optional[Customer]:
        with self._lock:
            return self._customers.get(customer_id)

    def load_customer_tier(self, customer_id: UUID) -> Optional[WholesaleTier]:
        customer = self.load_customer(customer_id)
        return customer.wholesale_tier if customer else None

    def load_negotiated_prices(self, customer_id: UUID, variant_ids: Iterable[UUID]) -> Mapping[UUID, Money]:
        with self._lock:
            return {
                vid: self._negotiated[(customer_id, vid)]
                for vid in variant_ids
                if (customer_id, vid) in self._negotiated
            }


class InMemoryCouponStore:
    def __init__(self, coupons: Iterable[Coupon] = ()):
        self._lock = threading.Lock()
        self._coupons: Dict[str, Coupon] = {c.code: c for c in coupons}

    def add_coupon(self, coupon: Coupon) -> None:
        with self._lock:
            self._coupons[coupon.code] = coupon

    def load_coupon(self, code: str) -> Optional[Coupon]:
        with self._lock:
            return self._coupons.get(code)


class InMemoryShippingStore:
    def __init__(self, options: Iterable[ShippingOption] = ()):
        self._lock = threading.Lock()
        self._options: List[ShippingOption] = list(options)

    def add_option(self, option: ShippingOption) -> None:
        with self._lock:
            self._options.append(option)

    def load_shipping_options(self, country_code: str, region_id: str) -> List[ShippingOption]:
        with self._lock:
            return [o for o in self._options if o.country_code == country_code and o.region_id == region_id]


class InMemoryInventoryStore:
    def __init__(self, stock: Optional[Mapping[UUID, int]] = None):
        self._lock = threading.Lock()
        self._stock: Dict[UUID, int] = dict(stock or {})

    def set_stock(self, variant_id: UUID, quantity: int) -> None:
        with self._lock:
            self._stock[variant_id] = max(0, quantity)

    def load_stock(self, variant_id: UUID) -> Optional[int]:
        with self._lock:
            return self._stock.get(variant_id)

    def adjust_stock(self, variant_id: UUID, delta: int) -> int:
        with self._lock:
            level = max(0, self._stock.get(variant_id, 0) + delta)
            self._stock[variant_id] = level
            return level


__all__ = [
    "InMemoryOrderStore",
    "InMemoryCatalogStore",
    "InMemoryCustomerStore",
    "InMemoryCouponStore",
    "InMemoryShippingStore",
    "InMemoryInventoryStore",
]
