"""
Cart API Endpoints.

Cart pricing, coupon validation, shipping option lookup and checkout.
"""

from typing import List

from fastapi import APIRouter, Depends, Query

from api.dependencies import Container, get_container
from api.models import (
    CartPriceRequest,
    CartPricingResponse,
    CheckoutRequest,
    CouponResponse,
    CouponValidateRequest,
    OrderResponse,
    ShippingOptionResponse,
)
from domain.cart import Cart
from domain.money import Money
from domain.order import ShippingAddress

router = APIRouter()


def _to_cart(request: CartPriceRequest, container: Container) -> Cart:
    return container.pricing.build_cart(
        [(line.variant_id, line.quantity) for line in request.lines],
        request.currency or container.settings.store_currency,
    )


def _price(request: CartPriceRequest, container: Container):
    return container.pricing.price(
        _to_cart(request, container),
        customer_id=request.customer_id,
        coupon_code=request.coupon_code,
        country=request.country_code,
        region_id=request.region_id,
        selected_option_id=request.shipping_option_id,
    )


@router.post(
    "/cart/price",
    response_model=CartPricingResponse,
    summary="Price Cart",
    description="Compute subtotal, wholesale savings, coupon discount, shipping and total for a cart.",
)
def price_cart(request: CartPriceRequest, container: Container = Depends(get_container)):
    """
    Price a cart without creating anything.

    **Shipping:**
    Until a shipping option is selected the quote is `unresolved`, the
    total covers goods only and `is_final` is false.

    **Free shipping:**
    A subtotal at or above the store threshold ships free regardless of
    the selected option's listed price.
    """
    return CartPricingResponse.of(_price(request, container))


@router.post(
    "/coupons/validate",
    response_model=CouponResponse,
    summary="Validate Coupon",
)
def validate_coupon(request: CouponValidateRequest, container: Container = Depends(get_container)):
    currency = request.currency or container.settings.store_currency
    resolution = container.pricing.validate_coupon(request.code, Money(request.subtotal_cents, currency))
    return CouponResponse.of(resolution)


@router.get(
    "/shipping-options",
    response_model=List[ShippingOptionResponse],
    summary="List Shipping Options",
    description="Options for a destination, cheapest first. Unknown destinations return an empty list.",
)
def list_shipping_options(
    country_code: str = Query(..., description="ISO-3166 alpha-2 country code"),
    region_id: str = Query(...),
    container: Container = Depends(get_container),
):
    return [ShippingOptionResponse.of(o) for o in container.pricing.shipping_options(country_code, region_id)]


@router.post(
    "/checkout",
    response_model=OrderResponse,
    status_code=201,
    summary="Checkout",
    description="Re-price the cart at catalogue prices and freeze the result into a new pending order.",
)
async def checkout(request: CheckoutRequest, container: Container = Depends(get_container)):
    pricing = _price(request, container)
    address = request.shipping_address
    order = await container.lifecycle.create_order(
        pricing,
        customer_id=request.customer_id,
        shipping_address=ShippingAddress(**address.model_dump()),
    )
    return OrderResponse.of(order)
