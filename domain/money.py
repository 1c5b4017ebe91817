"""
Domain: Money.

Amounts are a signed integer count of minor currency units (cents) plus a
3-letter currency code. Floats are never accepted.

Rounding policy:
- Division rounds half-up (away from zero on an exact half).

Bounds:
- Amounts must fit a signed 64-bit integer. Leaving that range is a
  precondition violation and raises OverflowError.
"""

from __future__ import annotations

from dataclasses import dataclass

from .errors import InvalidInputError

_MAX_MINOR = 2**63 - 1
_MIN_MINOR = -(2**63)

BPS_DENOMINATOR = 10_000


def _check_range(value: int) -> int:
    if value > _MAX_MINOR or value < _MIN_MINOR:
        raise OverflowError(f"Money amount {value} is outside the signed 64-bit range")
    return value


def divide_half_up(numerator: int, denominator: int) -> int:
    """Integer division rounding half-up, symmetric for negative numerators."""

    if denominator <= 0:
        raise ValueError("denominator must be positive")
    sign = -1 if numerator < 0 else 1
    quotient, remainder = divmod(abs(numerator), denominator)
    if remainder * 2 >= denominator:
        quotient += 1
    return sign * quotient


@dataclass(frozen=True, slots=True)
class Money:
    amount: int
    currency: str

    def __post_init__(self) -> None:
        if isinstance(self.amount, bool) or not isinstance(self.amount, int):
            raise InvalidInputError(
                f"Money amount must be an integer count of minor units, got {type(self.amount).__name__}"
            )
        if not isinstance(self.currency, str) or len(self.currency) != 3 or not self.currency.isalpha():
            raise InvalidInputError(f"Currency must be a 3-letter code, got {self.currency!r}")
        _check_range(self.amount)
        object.__setattr__(self, "currency", self.currency.upper())

    @staticmethod
    def zero(currency: str) -> "Money":
        return Money(0, currency)

    def _require_same_currency(self, other: "Money") -> None:
        if self.currency != other.currency:
            raise InvalidInputError(
                f"Currency mismatch: {self.currency} vs {other.currency}"
            )

    def add(self, other: "Money") -> "Money":
        self._require_same_currency(other)
        return Money(_check_range(self.amount + other.amount), self.currency)

    def subtract(self, other: "Money") -> "Money":
        """Subtract, clamping at zero. Totals are never negative."""

        self._require_same_currency(other)
        return Money(max(0, self.amount - other.amount), self.currency)

    def multiply_by_quantity(self, quantity: int) -> "Money":
        if isinstance(quantity, bool) or not isinstance(quantity, int):
            raise InvalidInputError("quantity must be an integer")
        return Money(_check_range(self.amount * quantity), self.currency)

    def percentage_of(self, bps: int) -> "Money":
        """
        Return `bps` basis points of this amount, rounded half-up.

        Example:
            Money(10000, "USD").percentage_of(7000) == Money(7000, "USD")
        """

        if isinstance(bps, bool) or not isinstance(bps, int):
            raise InvalidInputError("basis points must be an integer")
        return Money(
            _check_range(divide_half_up(self.amount * bps, BPS_DENOMINATOR)),
            self.currency,
        )

    def non_negative(self) -> "Money":
        return self if self.amount >= 0 else Money(0, self.currency)

    def min(self, other: "Money") -> "Money":
        self._require_same_currency(other)
        return self if self.amount <= other.amount else other

    def is_zero(self) -> bool:
        return self.amount == 0

    def __lt__(self, other: "Money") -> bool:
        self._require_same_currency(other)
        return self.amount < other.amount

    def __le__(self, other: "Money") -> bool:
        self._require_same_currency(other)
        return self.amount <= other.amount

    def __gt__(self, other: "Money") -> bool:
        self._require_same_currency(other)
        return self.amount > other.amount

    def __ge__(self, other: "Money") -> bool:
        self._require_same_currency(other)
        return self.amount >= other.amount

    def format(self) -> str:
        """Human-readable form for logs and notifications, e.g. 'USD 250.00'."""

        sign = "-" if self.amount < 0 else ""
        whole, cents = divmod(abs(self.amount), 100)
        return f"{self.currency} {sign}{whole}.{cents:02d}"


def compose_total(subtotal: Money, discount: Money, shipping: Money) -> Money:
    """total = max(0, subtotal - discount + shipping), in one currency."""

    subtotal._require_same_currency(discount)
    subtotal._require_same_currency(shipping)
    raw = _check_range(subtotal.amount - discount.amount + shipping.amount)
    return Money(max(0, raw), subtotal.currency)


__all__ = ["Money", "compose_total", "divide_half_up", "BPS_DENOMINATOR"]
