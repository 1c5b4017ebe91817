"""
Tests for `services/pricing_service.py`.

Covers contract rules:
- total = max(0, subtotal - discount + shipping).
- Pricing is pure: the same inputs give the same result.
- Shipping unresolved: total covers goods only and is_final is false.
- The stacking policy is the single place coupons meet wholesale pricing.
"""

from __future__ import annotations

import pytest

from conftest import CUSTOMER_ID, NOW, OTHER_VARIANT_ID, PRODUCT_ID, VARIANT_ID, make_cart, make_options, usd
from domain.cart import Cart, CartLine
from domain.coupon import Coupon, CouponKind
from domain.customer import Customer
from domain.errors import CouponInvalidError, CouponInvalidReason, InvalidInputError, NotFoundError, PriceUnavailableError
from domain.money import Money
from domain.shipping import ShippingQuoteState
from domain.wholesale import DEFAULT_BULK_BRACKETS, BulkDiscountBracket, WholesaleTier
from services.pricing_service import CartPricingService, StackingPolicy, price_cart

THRESHOLD = usd(25000)
SAVE10 = Coupon(code="SAVE10", kind=CouponKind.PERCENTAGE, percentage_bps=1000)


def test_retail_cart_with_shipping() -> None:
    pricing = price_cart(
        make_cart((5000, 2)),
        shipping_options=make_options(),
        selected_option_id="standard",
        free_shipping_threshold=THRESHOLD,
        now=NOW,
    )

    assert pricing.subtotal == usd(10000)
    assert pricing.shipping_total == usd(1500)
    assert pricing.total == usd(11500)
    assert pricing.is_final is True
    assert pricing.tier is None


def test_free_shipping_override_example() -> None:
    pricing = price_cart(
        make_cart((13000, 2)),
        shipping_options=make_options(),
        selected_option_id="standard",
        free_shipping_threshold=THRESHOLD,
        now=NOW,
    )

    assert pricing.subtotal == usd(26000)
    assert pricing.shipping.state is ShippingQuoteState.FREE
    assert pricing.total == usd(26000)


def test_unresolved_shipping_is_not_final() -> None:
    pricing = price_cart(make_cart((5000, 1)), shipping_options=make_options(), now=NOW)

    assert pricing.shipping.state is ShippingQuoteState.UNRESOLVED
    assert pricing.shipping_total is None
    assert pricing.total == usd(5000)
    assert pricing.is_final is False
    assert pricing.warnings


def test_unknown_selected_option_raises() -> None:
    with pytest.raises(NotFoundError):
        price_cart(make_cart((5000, 1)), shipping_options=make_options(), selected_option_id="drone", now=NOW)


def test_coupon_floor_never_negative() -> None:
    coupon = Coupon(code="BIG", kind=CouponKind.FIXED_AMOUNT, fixed_amount=usd(5000))

    pricing = price_cart(
        make_cart((3000, 1)),
        coupon=coupon,
        shipping_options=make_options(),
        selected_option_id="standard",
        free_shipping_threshold=THRESHOLD,
        now=NOW,
    )

    assert pricing.discount_total == usd(3000)
    assert pricing.total == usd(1500)


def test_discount_and_shipping_coexist() -> None:
    pricing = price_cart(
        make_cart((10000, 1)),
        coupon=SAVE10,
        shipping_options=make_options(),
        selected_option_id="express",
        free_shipping_threshold=THRESHOLD,
        now=NOW,
    )

    assert pricing.discount_total == usd(1000)
    assert pricing.shipping_total == usd(2500)
    assert pricing.total == usd(11500)


def test_free_shipping_coupon_zeroes_shipping() -> None:
    coupon = Coupon(code="SHIPFREE", kind=CouponKind.FREE_SHIPPING)
    pricing = price_cart(
        make_cart((1000, 1)),
        coupon=coupon,
        shipping_options=make_options(),
        selected_option_id="express",
        now=NOW,
    )

    assert pricing.shipping.state is ShippingQuoteState.FREE
    assert pricing.total == usd(1000)


def test_pricing_is_idempotent() -> None:
    kwargs = dict(
        tier=WholesaleTier.GROWTH,
        coupon=SAVE10,
        shipping_options=make_options(),
        selected_option_id="standard",
        free_shipping_threshold=THRESHOLD,
        now=NOW,
    )
    cart = make_cart((3333, 3), (1999, 1))

    assert price_cart(cart, **kwargs) == price_cart(cart, **kwargs)


def test_tier_then_coupon_prices_coupon_on_tier_subtotal() -> None:
    pricing = price_cart(
        make_cart((10000, 1)),
        tier="growth",
        coupon=SAVE10,
        shipping_options=make_options(),
        selected_option_id="standard",
        free_shipping_threshold=THRESHOLD,
        now=NOW,
    )

    assert pricing.retail_subtotal == usd(10000)
    assert pricing.subtotal == usd(7000)
    assert pricing.wholesale_savings == usd(3000)
    assert pricing.discount_total == usd(700)
    assert pricing.total == usd(7000 - 700 + 1500)
    assert pricing.lines[0].is_wholesale is True


def test_exclusive_policy_rejects_coupon_for_wholesale() -> None:
    with pytest.raises(CouponInvalidError) as info:
        price_cart(
            make_cart((10000, 1)),
            tier="growth",
            coupon=SAVE10,
            stacking_policy=StackingPolicy.EXCLUSIVE,
            now=NOW,
        )
    assert info.value.reason is CouponInvalidReason.NOT_COMBINABLE


def test_exclusive_policy_allows_coupon_for_retail() -> None:
    pricing = price_cart(
        make_cart((10000, 1)),
        coupon=SAVE10,
        stacking_policy=StackingPolicy.EXCLUSIVE,
        now=NOW,
    )
    assert pricing.discount_total == usd(1000)


def test_negotiated_and_bulk_prices() -> None:
    cart = make_cart((1000, 10), (1000, 10))
    other_variant = cart.lines[1].variant_id

    pricing = price_cart(
        cart,
        tier="starter",
        negotiated_prices={VARIANT_ID: usd(600)},
        bulk_brackets={
            VARIANT_ID: [BulkDiscountBracket(10, 5000)],
            other_variant: [BulkDiscountBracket(10, 1000)],
        },
        now=NOW,
    )

    negotiated, bulk = pricing.lines
    # Negotiated prices are final; bulk brackets only stack on tier rates.
    assert negotiated.unit_price == usd(600)
    assert bulk.unit_price == usd(720)
    assert pricing.subtotal == usd(6000 + 7200)


def test_line_in_other_currency_is_price_unavailable() -> None:
    cart = Cart(
        currency="USD",
        lines=[CartLine(variant_id=VARIANT_ID, product_id=VARIANT_ID, unit_price=Money(100, "EUR"), quantity=1)],
    )
    with pytest.raises(PriceUnavailableError):
        price_cart(cart, now=NOW)


def test_retail_subtotal_is_cart_subtotal() -> None:
    cart = make_cart((3333, 3), (1999, 2))

    pricing = price_cart(cart, tier="starter", now=NOW)

    assert pricing.retail_subtotal == cart.subtotal() == usd(3333 * 3 + 1999 * 2)


def test_quantity_must_be_positive() -> None:
    with pytest.raises(InvalidInputError):
        make_cart((1000, 0))


def test_empty_cart_is_never_final() -> None:
    pricing = price_cart(
        make_cart(), shipping_options=make_options(), selected_option_id="standard", now=NOW
    )
    assert pricing.total == usd(1500)
    assert pricing.is_final is False


def test_service_loads_tier_coupon_and_options(catalog_store, customer_store, coupon_store, shipping_store, clock) -> None:
    customer_store.add_customer(
        Customer(customer_id=CUSTOMER_ID, email="buyer@example.com", wholesale_tier=WholesaleTier.ENTERPRISE)
    )
    coupon_store.add_coupon(SAVE10)
    service = CartPricingService(
        catalog=catalog_store,
        customers=customer_store,
        coupons=coupon_store,
        shipping=shipping_store,
        free_shipping_threshold=THRESHOLD,
        clock=clock,
    )

    pricing = service.price(
        make_cart((10000, 1)),
        customer_id=CUSTOMER_ID,
        coupon_code=" save10",
        country="US",
        region_id="reg_us",
        selected_option_id="standard",
    )

    assert pricing.tier is WholesaleTier.ENTERPRISE
    assert pricing.subtotal == usd(6000)
    assert pricing.discount_total == usd(600)
    assert pricing.total == usd(6000 - 600 + 1500)
    assert pricing.computed_at == NOW


def test_service_unknown_coupon(catalog_store, customer_store, coupon_store, shipping_store) -> None:
    service = CartPricingService(
        catalog=catalog_store, customers=customer_store, coupons=coupon_store, shipping=shipping_store
    )
    with pytest.raises(CouponInvalidError) as info:
        service.price(make_cart((1000, 1)), coupon_code="missing")
    assert info.value.reason is CouponInvalidReason.NOT_FOUND


@pytest.fixture
def service(catalog_store, customer_store, coupon_store, shipping_store, clock):
    return CartPricingService(
        catalog=catalog_store,
        customers=customer_store,
        coupons=coupon_store,
        shipping=shipping_store,
        free_shipping_threshold=THRESHOLD,
        clock=clock,
    )


def test_build_cart_uses_catalogue_prices(service, catalog_store) -> None:
    catalog_store.add_variant(VARIANT_ID, PRODUCT_ID, [usd(5000), Money(4500, "EUR")], sku="TEE-M")

    cart = service.build_cart([(VARIANT_ID, 2)], "usd")

    (line,) = cart.lines
    assert cart.currency == "USD"
    assert line.unit_price == usd(5000)
    assert line.product_id == PRODUCT_ID
    assert line.sku == "TEE-M"
    assert service.build_cart([(VARIANT_ID, 1)], "EUR").lines[0].unit_price == Money(4500, "EUR")


def test_build_cart_unknown_variant(service) -> None:
    with pytest.raises(NotFoundError):
        service.build_cart([(VARIANT_ID, 1)], "USD")


def test_build_cart_variant_without_price_in_currency(service, catalog_store) -> None:
    catalog_store.add_variant(VARIANT_ID, PRODUCT_ID, [Money(4500, "EUR")])

    with pytest.raises(PriceUnavailableError):
        service.build_cart([(VARIANT_ID, 1)], "USD")


def test_service_applies_catalogue_bulk_brackets(service, catalog_store, customer_store) -> None:
    catalog_store.add_variant(VARIANT_ID, PRODUCT_ID, [usd(1000)], bulk_brackets=DEFAULT_BULK_BRACKETS)
    catalog_store.add_variant(OTHER_VARIANT_ID, PRODUCT_ID, [usd(1000)])
    customer_store.add_customer(
        Customer(customer_id=CUSTOMER_ID, email="buyer@example.com", wholesale_tier=WholesaleTier.GROWTH)
    )
    cart = service.build_cart([(VARIANT_ID, 100), (OTHER_VARIANT_ID, 100)], "USD")

    pricing = service.price(cart, customer_id=CUSTOMER_ID)

    bulk, plain = pricing.lines
    # Growth tier takes 1000 to 700; the 100+ bracket takes another 20%.
    assert bulk.unit_price == usd(560)
    assert plain.unit_price == usd(700)


def test_service_skips_brackets_for_retail_customers(service, catalog_store) -> None:
    catalog_store.add_variant(VARIANT_ID, PRODUCT_ID, [usd(1000)], bulk_brackets=DEFAULT_BULK_BRACKETS)
    cart = service.build_cart([(VARIANT_ID, 100)], "USD")

    pricing = service.price(cart)

    assert pricing.lines[0].unit_price == usd(1000)
