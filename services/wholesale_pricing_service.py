"""
Wholesale tier resolver.

Maps a retail unit price to the price a wholesale customer pays:
- no tier (or an unrecognized one): retail price, is_wholesale=False
- a negotiated per-variant price in (0, retail]: that price wins
- otherwise: retail * (1 - tier rate), rounded half-up

Bulk brackets are a separate, quantity-driven discount applied per line.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Optional, Union
from uuid import UUID

from domain.errors import InvalidInputError
from domain.money import BPS_DENOMINATOR, Money
from domain.wholesale import DEFAULT_BULK_BRACKETS, BulkDiscountBracket, WholesaleTier


@dataclass(frozen=True, slots=True)
class WholesalePrice:
    variant_id: UUID
    is_wholesale: bool
    price: Money
    savings: Money
    discount_bps: int
    tier: Optional[WholesaleTier] = None
    negotiated: bool = False


def parse_tier(raw: Union[str, WholesaleTier, None]) -> Optional[WholesaleTier]:
    """Accept a tier or a stored slug; anything unknown means retail."""
    if isinstance(raw, WholesaleTier):
        return raw
    return WholesaleTier.parse(raw)


def resolve_wholesale_price(
    tier: Union[str, WholesaleTier, None],
    variant_id: UUID,
    retail_price: Money,
    negotiated_price: Optional[Money] = None,
) -> WholesalePrice:
    """
    Resolve the unit price a customer of `tier` pays for one variant.

    Args:
        tier: Customer's active tier, a stored slug, or None for retail
        variant_id: Variant being priced
        retail_price: Variant's retail unit price
        negotiated_price: Explicit wholesale price for this variant, if any

    Returns:
        WholesalePrice. `price <= retail_price` always holds.

    Raises:
        InvalidInputError: negotiated price in another currency, not
            positive, or above the retail price

    Example:
        resolve_wholesale_price(WholesaleTier.GROWTH, vid, Money(10000, "USD")).price
        # Money(7000, "USD")
    """
    resolved_tier = parse_tier(tier)
    if resolved_tier is None:
        return WholesalePrice(
            variant_id=variant_id,
            is_wholesale=False,
            price=retail_price,
            savings=Money.zero(retail_price.currency),
            discount_bps=0,
        )

    if negotiated_price is not None:
        if negotiated_price.currency != retail_price.currency:
            raise InvalidInputError(
                f"Negotiated price for variant {variant_id} is in {negotiated_price.currency}, "
                f"expected {retail_price.currency}"
            )
        if negotiated_price.amount <= 0 or negotiated_price > retail_price:
            raise InvalidInputError(
                f"Negotiated price for variant {variant_id} must be within (0, retail price]"
            )
        return WholesalePrice(
            variant_id=variant_id,
            is_wholesale=True,
            price=negotiated_price,
            savings=retail_price.subtract(negotiated_price),
            discount_bps=_effective_bps(retail_price, negotiated_price),
            tier=resolved_tier,
            negotiated=True,
        )

    rate = resolved_tier.discount_bps
    price = retail_price.percentage_of(BPS_DENOMINATOR - rate)
    return WholesalePrice(
        variant_id=variant_id,
        is_wholesale=True,
        price=price,
        savings=retail_price.subtract(price),
        discount_bps=rate,
        tier=resolved_tier,
    )


def resolve_bulk_price(
    unit_price: Money,
    quantity: int,
    brackets: Iterable[BulkDiscountBracket] = DEFAULT_BULK_BRACKETS,
) -> Money:
    """
    Apply the highest bulk bracket whose min_quantity the line meets.

    Returns `unit_price` unchanged when no bracket applies.
    """
    applicable = [b for b in brackets if quantity >= b.min_quantity]
    if not applicable:
        return unit_price
    best = max(applicable, key=lambda b: (b.min_quantity, b.discount_bps))
    return unit_price.percentage_of(BPS_DENOMINATOR - best.discount_bps)


def _effective_bps(retail: Money, price: Money) -> int:
    if retail.amount == 0:
        return 0
    return (retail.amount - price.amount) * BPS_DENOMINATOR // retail.amount


__all__ = [
    "WholesalePrice",
    "parse_tier",
    "resolve_wholesale_price",
    "resolve_bulk_price",
]
