"""
Inventory collaborator.

Reacts to order events:
- order:created decrements stock for every ordered variant
- order:cancelled releases the stock of an unfulfilled order
- order:shipped re-checks the stock of every shipped variant

product:low_stock is published once per variant when its stock is seen
below the low-stock threshold, whether a decrement took it there or the
level was changed outside the engine and noticed at fulfillment. The
alert re-arms when stock climbs back to the threshold. Delivery is
at-most-once, so a lost event means a missed adjustment; reconciliation
is out of scope.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Optional, Set
from uuid import UUID

from domain.order import FulfillmentStatus
from events.bus import EventBus
from events.schemas import (
    EventName,
    LowStockPayload,
    OrderCancelledPayload,
    OrderCreatedPayload,
    OrderShippedPayload,
)
from repositories.base import InventoryStore, OrderStore

logger = logging.getLogger(__name__)

DEFAULT_LOW_STOCK_THRESHOLD = 5


class InventoryService:
    def __init__(
        self,
        inventory: InventoryStore,
        orders: OrderStore,
        bus: EventBus,
        *,
        low_stock_threshold: int = DEFAULT_LOW_STOCK_THRESHOLD,
    ):
        if low_stock_threshold < 1:
            raise ValueError("low_stock_threshold must be >= 1")
        self._inventory = inventory
        self._orders = orders
        self._bus = bus
        self._threshold = low_stock_threshold
        # Variants already reported low since they last stood at the threshold.
        self._alerted: Set[UUID] = set()

    def register(self) -> Callable[[], None]:
        """Subscribe to order events. Returns a callable that unsubscribes."""
        removers = [
            self._bus.subscribe(EventName.ORDER_CREATED, self.on_order_created, priority=10),
            self._bus.subscribe(EventName.ORDER_CANCELLED, self.on_order_cancelled, priority=10),
            self._bus.subscribe(EventName.ORDER_SHIPPED, self.on_order_shipped, priority=10),
        ]

        def unregister() -> None:
            for remove in removers:
                remove()

        return unregister

    async def on_order_created(self, payload: Any) -> None:
        event = OrderCreatedPayload.model_validate(payload)
        for item in event.items:
            if item.variant_id is None:
                logger.warning(
                    "Order item without variant; stock not adjusted",
                    extra={"order_id": str(event.id), "product_id": str(item.product_id)},
                )
                continue
            await self.adjust(item.product_id, item.variant_id, -item.quantity)

    async def on_order_cancelled(self, payload: Any) -> None:
        event = OrderCancelledPayload.model_validate(payload)
        order = self._orders.load_order(event.id)
        if order is None:
            logger.warning("Cancelled order not found; stock not released", extra={"order_id": str(event.id)})
            return
        if order.fulfillment_status is FulfillmentStatus.FULFILLED:
            # Goods already left the warehouse.
            logger.info("Cancelled order was shipped; stock not released", extra={"order_id": str(event.id)})
            return
        for line in order.items:
            await self.adjust(line.product_id, line.variant_id, line.quantity)

    async def on_order_shipped(self, payload: Any) -> None:
        event = OrderShippedPayload.model_validate(payload)
        order = self._orders.load_order(event.id)
        if order is None:
            logger.warning("Shipped order not found; stock not checked", extra={"order_id": str(event.id)})
            return
        for line in order.items:
            stock = self._inventory.load_stock(line.variant_id)
            if stock is not None:
                await self._check_low_stock(line.product_id, line.variant_id, stock)

    async def adjust(self, product_id: UUID, variant_id: UUID, delta: int) -> Optional[int]:
        """
        Apply a stock delta. Returns the new level, or None for untracked variants.
        """
        before = self._inventory.load_stock(variant_id)
        if before is None:
            logger.debug("Variant does not track inventory", extra={"variant_id": str(variant_id)})
            return None

        after = self._inventory.adjust_stock(variant_id, delta)
        logger.info(
            "Stock adjusted",
            extra={"variant_id": str(variant_id), "delta": delta, "before": before, "after": after},
        )
        await self._check_low_stock(product_id, variant_id, after)
        return after

    async def _check_low_stock(self, product_id: UUID, variant_id: UUID, stock: int) -> None:
        if stock >= self._threshold:
            self._alerted.discard(variant_id)
            return
        if variant_id in self._alerted:
            return
        self._alerted.add(variant_id)

        logger.warning(
            "Low stock",
            extra={"product_id": str(product_id), "variant_id": str(variant_id), "stock": stock},
        )
        await self._bus.publish(
            EventName.LOW_STOCK,
            LowStockPayload(
                product_id=product_id,
                variant_id=variant_id,
                current_stock=stock,
                threshold=self._threshold,
            ),
        )


__all__ = ["InventoryService", "DEFAULT_LOW_STOCK_THRESHOLD"]
