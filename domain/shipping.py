"""
Domain: shipping options and quotes.

Options are scoped to a (destination country, region) pair. The resolver
returns every option for the pair; the caller selects one.

A quote distinguishes "no option selected yet" (UNRESOLVED) from "free
shipping" (FREE). Only FREE is actually zero-cost.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from .errors import InvalidInputError
from .money import Money


def normalize_country_code(raw: str) -> str:
    """Country codes are stored as lower-case ISO-3166 alpha-2."""

    code = (raw or "").strip().lower()
    if len(code) != 2 or not code.isalpha():
        raise InvalidInputError(f"Country code must be ISO-2, got {raw!r}")
    return code


@dataclass(frozen=True, slots=True)
class ShippingOption:
    option_id: str
    name: str
    price: Money
    country_code: str
    region_id: str
    description: Optional[str] = None
    estimated_days: Optional[str] = None  # e.g. "5-7"

    def __post_init__(self) -> None:
        object.__setattr__(self, "country_code", normalize_country_code(self.country_code))
        if self.price.amount < 0:
            raise InvalidInputError("shipping price cannot be negative")

    @property
    def currency(self) -> str:
        return self.price.currency


class ShippingQuoteState(str, Enum):
    UNRESOLVED = "unresolved"
    FREE = "free"
    CHARGED = "charged"
    UNAVAILABLE = "unavailable"


@dataclass(frozen=True, slots=True)
class ShippingQuote:
    """
    Effective shipping cost for the caller-selected option.

    `amount` is None unless the state is FREE or CHARGED.
    """

    state: ShippingQuoteState
    option: Optional[ShippingOption] = None
    amount: Optional[Money] = None
    listed_price: Optional[Money] = None
    reason: Optional[str] = None

    @property
    def is_resolved(self) -> bool:
        return self.state in (ShippingQuoteState.FREE, ShippingQuoteState.CHARGED)


__all__ = [
    "ShippingOption",
    "ShippingQuote",
    "ShippingQuoteState",
    "normalize_country_code",
]
