"""
Pytest configuration and shared fixtures.

Adds the project root to the Python path so tests can import domain,
events, services and repositories, and provides a fixed clock, an event
bus and in-memory stores.
"""

import sys
from datetime import datetime, timezone
from pathlib import Path
from uuid import UUID

import pytest

# Add the project root to the Python path so tests can import
# domain, services, repositories, etc.
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from domain.cart import Cart, CartLine  # noqa: E402
from domain.money import Money  # noqa: E402
from domain.order import ShippingAddress  # noqa: E402
from domain.shipping import ShippingOption  # noqa: E402
from events.bus import EventBus  # noqa: E402
from repositories.memory import (  # noqa: E402
    InMemoryCatalogStore,
    InMemoryCouponStore,
    InMemoryCustomerStore,
    InMemoryInventoryStore,
    InMemoryOrderStore,
    InMemoryShippingStore,
)

NOW = datetime(2025, 6, 1, 12, 0, 0, tzinfo=timezone.utc)

CUSTOMER_ID = UUID("00000000-0000-0000-0000-0000000000c1")
PRODUCT_ID = UUID("00000000-0000-0000-0000-0000000000a1")
VARIANT_ID = UUID("00000000-0000-0000-0000-0000000000b1")
OTHER_VARIANT_ID = UUID("00000000-0000-0000-0000-0000000000b2")


def usd(amount: int) -> Money:
    return Money(amount, "USD")


def make_cart(*lines, currency: str = "USD") -> Cart:
    """make_cart((unit_price, quantity), ...) with one variant per line."""
    variants = [VARIANT_ID, OTHER_VARIANT_ID]
    return Cart(
        currency=currency,
        lines=[
            CartLine(
                variant_id=variants[i] if i < len(variants) else UUID(int=0xB00 + i),
                product_id=PRODUCT_ID,
                unit_price=Money(price, currency),
                quantity=quantity,
            )
            for i, (price, quantity) in enumerate(lines)
        ],
    )


def make_options():
    return [
        ShippingOption("express", "Express", usd(2500), "us", "reg_us", estimated_days="1-2"),
        ShippingOption("standard", "Standard", usd(1500), "us", "reg_us", estimated_days="5-7"),
    ]


ADDRESS = ShippingAddress(address_1="1 Main St", city="Springfield", postal_code="12345", country_code="us")


@pytest.fixture
def clock():
    return lambda: NOW


@pytest.fixture
def bus(clock):
    return EventBus(clock=clock)


@pytest.fixture
def order_store():
    return InMemoryOrderStore()


@pytest.fixture
def catalog_store():
    return InMemoryCatalogStore()


@pytest.fixture
def customer_store():
    return InMemoryCustomerStore()


@pytest.fixture
def coupon_store():
    return InMemoryCouponStore()


@pytest.fixture
def shipping_store():
    return InMemoryShippingStore(make_options())


@pytest.fixture
def inventory_store():
    return InMemoryInventoryStore()
