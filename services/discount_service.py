"""
Discount resolver for promotional coupons.

Validates a user-typed coupon code against the coupon catalogue and
prices it for a given subtotal. This module never decides whether a
coupon may be combined with wholesale pricing; that is the cart pricing
engine's call.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Mapping, Optional, Union

from domain.coupon import Coupon, CouponKind, normalize_coupon_code
from domain.errors import CouponInvalidError, CouponInvalidReason, PriceUnavailableError
from domain.money import Money
from domain.time import require_utc_timestamp

CouponLookup = Union[Mapping[str, Coupon], Callable[[str], Optional[Coupon]]]


@dataclass(frozen=True, slots=True)
class CouponResolution:
    """
    A coupon that applies to the cart.

    discount_amount: amount taken off goods (0 <= discount <= subtotal)
    free_shipping: True when the coupon waives the shipping charge
    """
    code: str
    discount_amount: Money
    free_shipping: bool = False
    kind: Optional[CouponKind] = None


def price_coupon(coupon: Coupon, subtotal: Money, now: datetime) -> CouponResolution:
    """
    Check the coupon's validity window and usage, then price it.

    Args:
        coupon: The coupon found for the normalized code
        subtotal: Cart subtotal the coupon is priced against
        now: Current UTC time

    Returns:
        CouponResolution with a discount never exceeding the subtotal

    Raises:
        CouponInvalidError: inactive, not started, expired, exhausted or
            below the minimum cart total
        PriceUnavailableError: the coupon's fixed amount or minimum is in
            another currency than the subtotal
    """
    require_utc_timestamp("now", now)

    if not coupon.is_active:
        raise CouponInvalidError(coupon.code, CouponInvalidReason.INACTIVE, "This coupon is no longer active")
    if coupon.starts_at is not None and now < coupon.starts_at:
        raise CouponInvalidError(coupon.code, CouponInvalidReason.NOT_STARTED, "This coupon is not yet valid")
    if coupon.expires_at is not None and now > coupon.expires_at:
        raise CouponInvalidError(coupon.code, CouponInvalidReason.EXPIRED, "This coupon has expired")
    if coupon.usage_exhausted():
        raise CouponInvalidError(
            coupon.code, CouponInvalidReason.USAGE_LIMIT_REACHED, "This coupon has reached its usage limit"
        )
    for amount in (coupon.fixed_amount, coupon.minimum_cart_total):
        # No conversion: a coupon amount in another currency cannot be priced.
        if amount is not None and amount.currency != subtotal.currency:
            raise PriceUnavailableError(f"Coupon {coupon.code} is not available in {subtotal.currency}")
    if coupon.minimum_cart_total is not None and subtotal < coupon.minimum_cart_total:
        raise CouponInvalidError(
            coupon.code,
            CouponInvalidReason.MINIMUM_NOT_MET,
            f"Minimum purchase of {coupon.minimum_cart_total.format()} required",
        )

    if coupon.kind is CouponKind.PERCENTAGE:
        discount = subtotal.percentage_of(coupon.percentage_bps)
    elif coupon.kind is CouponKind.FIXED_AMOUNT:
        discount = coupon.fixed_amount
    else:
        discount = Money.zero(subtotal.currency)

    # Never discount below zero.
    discount = discount.min(subtotal)

    return CouponResolution(
        code=coupon.code,
        discount_amount=discount,
        free_shipping=coupon.kind is CouponKind.FREE_SHIPPING,
        kind=coupon.kind,
    )


def resolve_coupon(code: str, subtotal: Money, coupons: CouponLookup, now: datetime) -> CouponResolution:
    """
    Normalize `code`, look it up and price it against `subtotal`.

    `coupons` is either a mapping keyed by normalized code or a lookup
    callable such as `CouponStore.load_coupon`.

    Raises:
        InvalidInputError: malformed code
        CouponInvalidError: unknown code or a failed validity check
    """
    normalized = normalize_coupon_code(code)
    if callable(coupons):
        coupon = coupons(normalized)
    else:
        coupon = coupons.get(normalized)
    if coupon is None:
        raise CouponInvalidError(normalized, CouponInvalidReason.NOT_FOUND, "Invalid coupon code")
    return price_coupon(coupon, subtotal, now)


__all__ = [
    "CouponResolution",
    "CouponLookup",
    "price_coupon",
    "resolve_coupon",
    "normalize_coupon_code",
]
