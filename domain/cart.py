"""
Domain: Cart and CartLine.

A cart is an in-progress collection of line items owned by the cart
session. It is superseded by an immutable Order at checkout confirmation.

Contract:
- quantity is a positive integer.
- Subtotal = sum(unit_price * quantity) over all lines.
- Every line must be priced in the cart's currency; a line priced in any
  other currency has no usable price (no conversion is attempted).
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Tuple
from uuid import UUID

from .errors import InvalidInputError, PriceUnavailableError
from .money import Money


@dataclass(frozen=True, slots=True)
class CartLine:
    variant_id: UUID
    product_id: UUID
    unit_price: Money
    quantity: int
    sku: Optional[str] = None

    def __post_init__(self) -> None:
        if isinstance(self.quantity, bool) or not isinstance(self.quantity, int):
            raise InvalidInputError("quantity must be an integer")
        if self.quantity <= 0:
            raise InvalidInputError(
                f"quantity must be positive, got {self.quantity} for variant {self.variant_id}"
            )

    @property
    def line_total(self) -> Money:
        return self.unit_price.multiply_by_quantity(self.quantity)


@dataclass(frozen=True, slots=True)
class Cart:
    currency: str
    lines: Tuple[CartLine, ...] = ()

    def __post_init__(self) -> None:
        # Normalizes the currency and validates its shape.
        object.__setattr__(self, "currency", Money.zero(self.currency).currency)
        object.__setattr__(self, "lines", tuple(self.lines))

    def subtotal(self) -> Money:
        total = Money.zero(self.currency)
        for line in self.lines:
            if line.unit_price.currency != self.currency:
                raise PriceUnavailableError(
                    f"Variant {line.variant_id} is not priced in {self.currency}"
                )
            total = total.add(line.line_total)
        return total


__all__ = ["Cart", "CartLine"]
