"""
Tests for `services/discount_service.py` and `domain/coupon.py`.

Covers contract rules:
- Codes are trimmed and upper-cased; malformed codes are invalid input.
- Percentage coupons round half-up; fixed coupons are capped at the subtotal.
- Each validity failure reports its own reason.
"""

from __future__ import annotations

from datetime import timedelta

import pytest

from conftest import NOW, usd
from domain.coupon import Coupon, CouponKind, normalize_coupon_code
from domain.errors import CouponInvalidError, CouponInvalidReason, InvalidInputError, PriceUnavailableError
from domain.money import Money
from services.discount_service import price_coupon, resolve_coupon


def _coupons(*coupons: Coupon):
    return {c.code: c for c in coupons}


def test_normalize_coupon_code() -> None:
    assert normalize_coupon_code("  save10 ") == "SAVE10"
    assert normalize_coupon_code("summer_sale-2025") == "SUMMER_SALE-2025"
    for bad in ("", "   ", "SAVE 10", "SAVE!", "X" * 65):
        with pytest.raises(InvalidInputError):
            normalize_coupon_code(bad)


def test_resolve_is_case_insensitive() -> None:
    coupons = _coupons(Coupon(code="SAVE10", kind=CouponKind.PERCENTAGE, percentage_bps=1000))

    result = resolve_coupon(" save10 ", usd(10000), coupons, NOW)

    assert result.code == "SAVE10"
    assert result.discount_amount == usd(1000)
    assert result.free_shipping is False


def test_unknown_code_is_not_found() -> None:
    with pytest.raises(CouponInvalidError) as info:
        resolve_coupon("NOPE", usd(10000), {}, NOW)
    assert info.value.reason is CouponInvalidReason.NOT_FOUND


def test_resolve_accepts_lookup_callable() -> None:
    coupon = Coupon(code="TENOFF", kind=CouponKind.FIXED_AMOUNT, fixed_amount=usd(1000))
    result = resolve_coupon("tenoff", usd(5000), lambda code: coupon if code == "TENOFF" else None, NOW)
    assert result.discount_amount == usd(1000)


def test_fixed_coupon_is_capped_at_subtotal() -> None:
    coupon = Coupon(code="BIG", kind=CouponKind.FIXED_AMOUNT, fixed_amount=usd(5000))

    result = price_coupon(coupon, usd(3000), NOW)

    assert result.discount_amount == usd(3000)


def test_percentage_coupon_rounds_half_up() -> None:
    coupon = Coupon(code="PCT15", kind=CouponKind.PERCENTAGE, percentage_bps=1500)
    # 3333 * 15% = 499.95 -> 500
    assert price_coupon(coupon, usd(3333), NOW).discount_amount == usd(500)


def test_free_shipping_coupon_discounts_nothing() -> None:
    coupon = Coupon(code="SHIPFREE", kind=CouponKind.FREE_SHIPPING)

    result = price_coupon(coupon, usd(4000), NOW)

    assert result.discount_amount == usd(0)
    assert result.free_shipping is True


@pytest.mark.parametrize(
    "coupon, reason",
    [
        (Coupon(code="OFF", kind=CouponKind.FREE_SHIPPING, is_active=False), CouponInvalidReason.INACTIVE),
        (
            Coupon(code="SOON", kind=CouponKind.FREE_SHIPPING, starts_at=NOW + timedelta(days=1)),
            CouponInvalidReason.NOT_STARTED,
        ),
        (
            Coupon(code="OLD", kind=CouponKind.FREE_SHIPPING, expires_at=NOW - timedelta(seconds=1)),
            CouponInvalidReason.EXPIRED,
        ),
        (
            Coupon(code="USED", kind=CouponKind.FREE_SHIPPING, usage_limit=3, usage_count=3),
            CouponInvalidReason.USAGE_LIMIT_REACHED,
        ),
        (
            Coupon(code="MIN", kind=CouponKind.FREE_SHIPPING, minimum_cart_total=usd(5001)),
            CouponInvalidReason.MINIMUM_NOT_MET,
        ),
    ],
)
def test_invalid_coupon_reasons(coupon: Coupon, reason: CouponInvalidReason) -> None:
    with pytest.raises(CouponInvalidError) as info:
        price_coupon(coupon, usd(5000), NOW)
    assert info.value.reason is reason
    assert info.value.coupon_code == coupon.code


def test_minimum_is_inclusive() -> None:
    coupon = Coupon(code="MIN", kind=CouponKind.FIXED_AMOUNT, fixed_amount=usd(500), minimum_cart_total=usd(5000))
    assert price_coupon(coupon, usd(5000), NOW).discount_amount == usd(500)


@pytest.mark.parametrize(
    "coupon",
    [
        Coupon(code="EURO5", kind=CouponKind.FIXED_AMOUNT, fixed_amount=Money(500, "EUR")),
        Coupon(
            code="EUROMIN",
            kind=CouponKind.PERCENTAGE,
            percentage_bps=1000,
            minimum_cart_total=Money(1000, "EUR"),
        ),
    ],
)
def test_coupon_in_other_currency_is_unavailable(coupon: Coupon) -> None:
    with pytest.raises(PriceUnavailableError):
        price_coupon(coupon, usd(5000), NOW)


def test_coupon_definition_is_validated() -> None:
    with pytest.raises(InvalidInputError):
        Coupon(code="PCT", kind=CouponKind.PERCENTAGE)
    with pytest.raises(InvalidInputError):
        Coupon(code="PCT", kind=CouponKind.PERCENTAGE, percentage_bps=10001)
    with pytest.raises(InvalidInputError):
        Coupon(code="FIX", kind=CouponKind.FIXED_AMOUNT, fixed_amount=usd(0))
