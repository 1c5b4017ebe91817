"""
Domain: promotional coupons.

Coupons are read-only at resolution time. Usage bookkeeping (incrementing
usage_count) happens at order persistence and is not modelled here.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional

from .errors import InvalidInputError
from .money import BPS_DENOMINATOR, Money
from .time import require_utc_timestamp

_CODE_PATTERN = re.compile(r"^[A-Z0-9_-]{1,64}$")


def normalize_coupon_code(raw: str) -> str:
    """
    Normalize a user-typed coupon code for case-insensitive lookup.

    Raises InvalidInputError for empty codes or codes with characters
    outside [A-Z0-9_-].
    """

    if not isinstance(raw, str):
        raise InvalidInputError("coupon code must be a string")
    code = raw.strip().upper()
    if not _CODE_PATTERN.match(code):
        raise InvalidInputError(f"Malformed coupon code: {raw!r}")
    return code


class CouponKind(str, Enum):
    PERCENTAGE = "percentage"
    FIXED_AMOUNT = "fixed_amount"
    FREE_SHIPPING = "free_shipping"


@dataclass(frozen=True, slots=True)
class Coupon:
    """
    A promotional discount rule.

    - PERCENTAGE coupons carry `percentage_bps` (2500 = 25%).
    - FIXED_AMOUNT coupons carry `fixed_amount`.
    - FREE_SHIPPING coupons discount nothing from goods; they waive shipping.
    """

    code: str
    kind: CouponKind
    percentage_bps: Optional[int] = None
    fixed_amount: Optional[Money] = None
    minimum_cart_total: Optional[Money] = None
    starts_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None
    is_active: bool = True
    usage_limit: Optional[int] = None
    usage_count: int = 0

    def __post_init__(self) -> None:
        object.__setattr__(self, "code", normalize_coupon_code(self.code))
        if self.kind is CouponKind.PERCENTAGE:
            if self.percentage_bps is None or not 0 < self.percentage_bps <= BPS_DENOMINATOR:
                raise InvalidInputError("percentage coupons need 0 < percentage_bps <= 10000")
        if self.kind is CouponKind.FIXED_AMOUNT:
            if self.fixed_amount is None or self.fixed_amount.amount <= 0:
                raise InvalidInputError("fixed_amount coupons need a positive fixed_amount")
        if self.starts_at is not None:
            require_utc_timestamp("starts_at", self.starts_at)
        if self.expires_at is not None:
            require_utc_timestamp("expires_at", self.expires_at)

    def usage_exhausted(self) -> bool:
        return self.usage_limit is not None and self.usage_count >= self.usage_limit


__all__ = ["Coupon", "CouponKind", "normalize_coupon_code"]
