"""
Domain: wholesale tiers and bulk discount brackets.

Contract excerpts:
- Tiers form an ordered enumeration: starter (20%), growth (30%),
  enterprise (40%).
- A customer has at most one active tier. Tiers are assigned by an
  administrator, are not derived from cart contents, and apply only to
  future price computations.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from .errors import InvalidInputError
from .money import BPS_DENOMINATOR


class WholesaleTier(str, Enum):
    STARTER = "starter"
    GROWTH = "growth"
    ENTERPRISE = "enterprise"

    @property
    def discount_bps(self) -> int:
        return _TIER_DISCOUNT_BPS[self]

    @property
    def rank(self) -> int:
        return _TIER_ORDER.index(self)

    @staticmethod
    def parse(raw: Optional[str]) -> Optional["WholesaleTier"]:
        """
        Resolve a stored tier slug. Unknown or empty values resolve to None
        so that a stale slug falls back to retail pricing.
        """

        if not raw:
            return None
        try:
            return WholesaleTier(raw.strip().lower())
        except ValueError:
            return None


_TIER_DISCOUNT_BPS = {
    WholesaleTier.STARTER: 2_000,
    WholesaleTier.GROWTH: 3_000,
    WholesaleTier.ENTERPRISE: 4_000,
}

_TIER_ORDER = (WholesaleTier.STARTER, WholesaleTier.GROWTH, WholesaleTier.ENTERPRISE)


@dataclass(frozen=True, slots=True)
class BulkDiscountBracket:
    """Quantity bracket: lines with quantity >= min_quantity get discount_bps off."""

    min_quantity: int
    discount_bps: int

    def __post_init__(self) -> None:
        if self.min_quantity < 1:
            raise InvalidInputError("min_quantity must be at least 1")
        if not 0 < self.discount_bps <= BPS_DENOMINATOR:
            raise InvalidInputError("discount_bps must be within (0, 10000]")


# Brackets applied when a caller supplies none of its own.
DEFAULT_BULK_BRACKETS = (
    BulkDiscountBracket(min_quantity=10, discount_bps=500),
    BulkDiscountBracket(min_quantity=25, discount_bps=1_000),
    BulkDiscountBracket(min_quantity=50, discount_bps=1_500),
    BulkDiscountBracket(min_quantity=100, discount_bps=2_000),
)


__all__ = ["WholesaleTier", "BulkDiscountBracket", "DEFAULT_BULK_BRACKETS"]
