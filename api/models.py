"""
API Request and Response Models.

Pydantic models for validating API requests and serializing responses.
Amounts are integer minor units (cents) with their currency.
"""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from domain.money import Money
from domain.order import Order
from domain.shipping import ShippingOption, ShippingQuote
from services.discount_service import CouponResolution
from services.pricing_service import CartPricing


# ============================================================================
# Shared
# ============================================================================

class MoneyModel(BaseModel):
    amount: int
    currency: str

    @classmethod
    def of(cls, money: Optional[Money]) -> Optional["MoneyModel"]:
        if money is None:
            return None
        return cls(amount=money.amount, currency=money.currency)


class ErrorResponse(BaseModel):
    code: str
    message: str
    reason: Optional[str] = None


# ============================================================================
# Cart Models
# ============================================================================

class CartLineRequest(BaseModel):
    """
    Single cart line. Quantity is checked by the domain (positive integer).

    Unit prices always come from the catalogue; price fields sent by the
    client are ignored.
    """
    variant_id: UUID
    quantity: int


class CartPriceRequest(BaseModel):
    """Request to price a cart."""
    currency: Optional[str] = Field(None, description="Defaults to the store currency")
    lines: List[CartLineRequest] = Field(default_factory=list)
    customer_id: Optional[UUID] = None
    coupon_code: Optional[str] = None
    country_code: Optional[str] = None
    region_id: Optional[str] = None
    shipping_option_id: Optional[str] = None

    model_config = ConfigDict(json_schema_extra={
        "example": {
            "currency": "USD",
            "lines": [
                {
                    "variant_id": "123e4567-e89b-12d3-a456-426614174000",
                    "quantity": 2,
                }
            ],
            "coupon_code": "save10",
            "country_code": "us",
            "region_id": "reg_us",
            "shipping_option_id": "standard",
        }
    })


class PricedLineResponse(BaseModel):
    variant_id: UUID
    product_id: UUID
    quantity: int
    retail_unit_price: MoneyModel
    unit_price: MoneyModel
    line_total: MoneyModel
    savings: MoneyModel
    is_wholesale: bool
    sku: Optional[str] = None


class ShippingQuoteResponse(BaseModel):
    state: str
    option_id: Optional[str] = None
    amount: Optional[MoneyModel] = None
    listed_price: Optional[MoneyModel] = None
    reason: Optional[str] = None

    @classmethod
    def of(cls, quote: ShippingQuote) -> "ShippingQuoteResponse":
        return cls(
            state=quote.state.value,
            option_id=quote.option.option_id if quote.option else None,
            amount=MoneyModel.of(quote.amount),
            listed_price=MoneyModel.of(quote.listed_price),
            reason=quote.reason,
        )


class CouponResponse(BaseModel):
    code: str
    discount_amount: MoneyModel
    free_shipping: bool

    @classmethod
    def of(cls, resolution: CouponResolution) -> "CouponResponse":
        return cls(
            code=resolution.code,
            discount_amount=MoneyModel.of(resolution.discount_amount),
            free_shipping=resolution.free_shipping,
        )


class CartPricingResponse(BaseModel):
    """Full price breakdown. `total` covers goods only while is_final is false."""
    currency: str
    lines: List[PricedLineResponse]
    retail_subtotal: MoneyModel
    subtotal: MoneyModel
    wholesale_savings: MoneyModel
    discount_total: MoneyModel
    shipping: ShippingQuoteResponse
    total: MoneyModel
    is_final: bool
    tier: Optional[str] = None
    coupon: Optional[CouponResponse] = None
    stacking_policy: str
    warnings: List[str] = Field(default_factory=list)
    computed_at: datetime

    @classmethod
    def of(cls, pricing: CartPricing) -> "CartPricingResponse":
        return cls(
            currency=pricing.currency,
            lines=[
                PricedLineResponse(
                    variant_id=line.variant_id,
                    product_id=line.product_id,
                    quantity=line.quantity,
                    retail_unit_price=MoneyModel.of(line.retail_unit_price),
                    unit_price=MoneyModel.of(line.unit_price),
                    line_total=MoneyModel.of(line.line_total),
                    savings=MoneyModel.of(line.savings),
                    is_wholesale=line.is_wholesale,
                    sku=line.sku,
                )
                for line in pricing.lines
            ],
            retail_subtotal=MoneyModel.of(pricing.retail_subtotal),
            subtotal=MoneyModel.of(pricing.subtotal),
            wholesale_savings=MoneyModel.of(pricing.wholesale_savings),
            discount_total=MoneyModel.of(pricing.discount_total),
            shipping=ShippingQuoteResponse.of(pricing.shipping),
            total=MoneyModel.of(pricing.total),
            is_final=pricing.is_final,
            tier=pricing.tier.value if pricing.tier else None,
            coupon=CouponResponse.of(pricing.coupon) if pricing.coupon else None,
            stacking_policy=pricing.stacking_policy.value,
            warnings=list(pricing.warnings),
            computed_at=pricing.computed_at,
        )


class CouponValidateRequest(BaseModel):
    code: str
    subtotal_cents: int = Field(..., ge=0)
    currency: Optional[str] = None


class ShippingOptionResponse(BaseModel):
    option_id: str
    name: str
    description: Optional[str] = None
    price: MoneyModel
    estimated_days: Optional[str] = None

    @classmethod
    def of(cls, option: ShippingOption) -> "ShippingOptionResponse":
        return cls(
            option_id=option.option_id,
            name=option.name,
            description=option.description,
            price=MoneyModel.of(option.price),
            estimated_days=option.estimated_days,
        )


# ============================================================================
# Order Models
# ============================================================================

class ShippingAddressModel(BaseModel):
    address_1: str
    city: str
    postal_code: str
    country_code: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    address_2: Optional[str] = None
    province: Optional[str] = None
    phone: Optional[str] = None


class CheckoutRequest(CartPriceRequest):
    """Price the cart and, if the pricing is final, create the order."""
    customer_id: UUID
    shipping_address: ShippingAddressModel


class OrderLineResponse(BaseModel):
    variant_id: UUID
    product_id: UUID
    quantity: int
    unit_price: MoneyModel
    total: MoneyModel
    sku: Optional[str] = None


class OrderResponse(BaseModel):
    order_id: UUID
    customer_id: UUID
    channel: str
    currency: str
    items: List[OrderLineResponse]
    shipping_address: ShippingAddressModel
    subtotal: MoneyModel
    discount_total: MoneyModel
    shipping_total: MoneyModel
    total: MoneyModel
    order_status: str
    payment_status: str
    fulfillment_status: str
    display_status: str
    coupon_code: Optional[str] = None
    shipping_option_id: Optional[str] = None
    tracking_number: Optional[str] = None
    tracking_carrier: Optional[str] = None
    tracking_link: Optional[str] = None
    version: int
    created_at: datetime
    updated_at: datetime

    @classmethod
    def of(cls, order: Order) -> "OrderResponse":
        address = order.shipping_address
        return cls(
            order_id=order.order_id,
            customer_id=order.customer_id,
            channel=order.channel.value,
            currency=order.currency,
            items=[
                OrderLineResponse(
                    variant_id=line.variant_id,
                    product_id=line.product_id,
                    quantity=line.quantity,
                    unit_price=MoneyModel.of(line.unit_price),
                    total=MoneyModel.of(line.total),
                    sku=line.sku,
                )
                for line in order.items
            ],
            shipping_address=ShippingAddressModel(
                address_1=address.address_1,
                city=address.city,
                postal_code=address.postal_code,
                country_code=address.country_code,
                first_name=address.first_name,
                last_name=address.last_name,
                address_2=address.address_2,
                province=address.province,
                phone=address.phone,
            ),
            subtotal=MoneyModel.of(order.subtotal),
            discount_total=MoneyModel.of(order.discount_total),
            shipping_total=MoneyModel.of(order.shipping_total),
            total=MoneyModel.of(order.total),
            order_status=order.order_status.value,
            payment_status=order.payment_status.value,
            fulfillment_status=order.fulfillment_status.value,
            display_status=order.display_status,
            coupon_code=order.coupon_code,
            shipping_option_id=order.shipping_option_id,
            tracking_number=order.tracking_number,
            tracking_carrier=order.tracking_carrier,
            tracking_link=order.tracking_link,
            version=order.version,
            created_at=order.created_at,
            updated_at=order.updated_at,
        )


class StatusUpdateRequest(BaseModel):
    status: str = Field(..., description="pending, processing, completed or canceled")
    reason: Optional[str] = None


class TrackingRequest(BaseModel):
    tracking_number: str
    carrier: Optional[str] = None
    link: Optional[str] = None


class PaymentWebhookRequest(BaseModel):
    """Payment provider callback. Only the payment axis is touched."""
    order_id: UUID
    status: str
    transaction_id: Optional[str] = None
    method: Optional[str] = None

    model_config = ConfigDict(json_schema_extra={
        "example": {
            "order_id": "123e4567-e89b-12d3-a456-426614174000",
            "status": "paid",
            "transaction_id": "pi_3NwQ",
            "method": "card",
        }
    })
