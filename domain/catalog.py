"""
Domain: catalogue variants as seen by cart pricing.

Retail unit prices are owned by the catalogue, never by the caller. A
variant carries one price per currency; a variant without a price in the
cart's currency cannot be sold in that cart.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional
from uuid import UUID

from .money import Money


@dataclass(frozen=True, slots=True)
class CatalogVariant:
    """
    A sellable variant.

    price is the retail unit price in the requested currency, or None
    when the variant is not priced in that currency.
    """

    variant_id: UUID
    product_id: UUID
    price: Optional[Money] = None
    sku: Optional[str] = None


__all__ = ["CatalogVariant"]
