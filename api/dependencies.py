"""
Application wiring.

Builds one event bus, the stores for the configured backend, and the
services on top of them. Routers reach the container through
`request.app.state.container`.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, List

from fastapi import Request

from config.settings import Settings
from domain.time import Clock, utc_now
from events.bus import EventBus
from repositories.base import CatalogStore, CouponStore, CustomerStore, InventoryStore, OrderStore, ShippingStore
from repositories.memory import (
    InMemoryCatalogStore,
    InMemoryCouponStore,
    InMemoryCustomerStore,
    InMemoryInventoryStore,
    InMemoryOrderStore,
    InMemoryShippingStore,
)
from services.inventory_service import InventoryService
from services.notification_service import NotificationService
from services.order_lifecycle_service import OrderLifecycleService
from services.pricing_service import CartPricingService


@dataclass
class Container:
    settings: Settings
    bus: EventBus
    orders: OrderStore
    catalog: CatalogStore
    customers: CustomerStore
    coupons: CouponStore
    shipping: ShippingStore
    inventory: InventoryStore
    pricing: CartPricingService
    lifecycle: OrderLifecycleService
    inventory_service: InventoryService
    notifications: NotificationService
    _unregister: List[Callable[[], None]] = field(default_factory=list)

    def start(self) -> None:
        """Subscribe the event collaborators to the bus."""
        if self._unregister:
            return
        self._unregister.append(self.inventory_service.register())
        self._unregister.append(self.notifications.register())

    async def stop(self) -> None:
        await self.bus.drain()
        for unregister in self._unregister:
            unregister()
        self._unregister.clear()


def _supabase_stores(settings: Settings):
    from repositories.catalog_repository import SupabaseCatalogRepository
    from repositories.client import get_supabase_client
    from repositories.coupon_repository import SupabaseCouponRepository
    from repositories.customer_repository import SupabaseCustomerRepository
    from repositories.inventory_repository import SupabaseInventoryRepository
    from repositories.order_repository import SupabaseOrderRepository
    from repositories.shipping_repository import SupabaseShippingRepository

    client = get_supabase_client(settings.supabase_url, settings.supabase_key)
    return (
        SupabaseOrderRepository(client),
        SupabaseCatalogRepository(client),
        SupabaseCustomerRepository(client),
        SupabaseCouponRepository(client),
        SupabaseShippingRepository(client),
        SupabaseInventoryRepository(client),
    )


def build_container(settings: Settings, *, clock: Clock = utc_now) -> Container:
    if settings.data_backend == "supabase":
        orders, catalog, customers, coupons, shipping, inventory = _supabase_stores(settings)
    else:
        orders = InMemoryOrderStore()
        catalog = InMemoryCatalogStore()
        customers = InMemoryCustomerStore()
        coupons = InMemoryCouponStore()
        shipping = InMemoryShippingStore()
        inventory = InMemoryInventoryStore()

    bus = EventBus(
        max_history=settings.event_history_size,
        strict_validation=settings.event_strict_validation,
        clock=clock,
    )
    return Container(
        settings=settings,
        bus=bus,
        orders=orders,
        catalog=catalog,
        customers=customers,
        coupons=coupons,
        shipping=shipping,
        inventory=inventory,
        pricing=CartPricingService(
            catalog=catalog,
            customers=customers,
            coupons=coupons,
            shipping=shipping,
            free_shipping_threshold=settings.free_shipping_threshold,
            stacking_policy=settings.stacking_policy,
            clock=clock,
        ),
        lifecycle=OrderLifecycleService(orders, bus, clock, inventory=inventory),
        inventory_service=InventoryService(
            inventory, orders, bus, low_stock_threshold=settings.low_stock_threshold
        ),
        notifications=NotificationService(
            customers, orders, bus, staff_email=settings.staff_notification_email
        ),
    )


def get_container(request: Request) -> Container:
    return request.app.state.container


__all__ = ["Container", "build_container", "get_container"]
