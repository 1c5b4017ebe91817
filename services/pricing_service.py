"""
Cart pricing engine.

Composes the wholesale tier resolver, the discount resolver and the
shipping cost resolver into one chargeable total:

    total = max(0, subtotal - discount + effective shipping)

The computation is pure and re-derivable from its inputs. Nothing here is
cached; the only frozen total is the one copied into an Order at checkout.

Combination policy (the single place coupons meet wholesale pricing):
- TIER_THEN_COUPON (default): tier prices each line first, the coupon is
  priced against the tier-adjusted subtotal.
- EXCLUSIVE: a customer with an active tier may not redeem a coupon.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, List, Mapping, Optional, Sequence, Tuple, Union
from uuid import UUID

from domain.cart import Cart, CartLine
from domain.coupon import Coupon, normalize_coupon_code
from domain.errors import CouponInvalidError, CouponInvalidReason, NotFoundError, PriceUnavailableError
from domain.money import Money, compose_total
from domain.shipping import ShippingOption, ShippingQuote
from domain.time import Clock, utc_now
from domain.wholesale import BulkDiscountBracket, WholesaleTier
from services.discount_service import CouponResolution, price_coupon, resolve_coupon
from services.shipping_service import list_shipping_options, quote_shipping, select_shipping_option
from services.wholesale_pricing_service import parse_tier, resolve_bulk_price, resolve_wholesale_price

if TYPE_CHECKING:
    from repositories.base import CatalogStore, CouponStore, CustomerStore, ShippingStore

logger = logging.getLogger(__name__)


class StackingPolicy(str, Enum):
    TIER_THEN_COUPON = "tier_then_coupon"
    EXCLUSIVE = "exclusive"


@dataclass(frozen=True, slots=True)
class PricedLine:
    """
    One cart line after wholesale resolution.

    retail_unit_price: catalogue price
    unit_price: what this customer pays per unit
    savings: (retail_unit_price - unit_price) * quantity
    """
    variant_id: UUID
    product_id: UUID
    quantity: int
    retail_unit_price: Money
    unit_price: Money
    line_total: Money
    savings: Money
    is_wholesale: bool
    sku: Optional[str] = None


@dataclass(frozen=True, slots=True)
class CartPricing:
    """
    Full price breakdown for a cart.

    Includes:
    - Per-line prices after wholesale resolution
    - Subtotal (tier-adjusted) and the retail subtotal it came from
    - Coupon discount, if a coupon applied
    - Shipping quote (may be unresolved or unavailable)
    - Total, which covers goods only while shipping is not resolved

    is_final is True only when the cart has lines and shipping is resolved;
    only a final pricing may be turned into an order.
    """
    currency: str
    lines: Tuple[PricedLine, ...]
    retail_subtotal: Money
    subtotal: Money
    wholesale_savings: Money
    discount_total: Money
    shipping: ShippingQuote
    total: Money
    is_final: bool
    computed_at: datetime
    tier: Optional[WholesaleTier] = None
    coupon: Optional[CouponResolution] = None
    stacking_policy: StackingPolicy = StackingPolicy.TIER_THEN_COUPON
    warnings: Tuple[str, ...] = field(default_factory=tuple)

    @property
    def shipping_total(self) -> Optional[Money]:
        """Effective shipping cost, or None while unresolved or unavailable."""
        return self.shipping.amount if self.shipping.is_resolved else None


def price_cart(
    cart: Cart,
    *,
    tier: Union[str, WholesaleTier, None] = None,
    negotiated_prices: Optional[Mapping[UUID, Money]] = None,
    bulk_brackets: Optional[Mapping[UUID, Sequence[BulkDiscountBracket]]] = None,
    coupon: Optional[Coupon] = None,
    shipping_options: Sequence[ShippingOption] = (),
    selected_option_id: Optional[str] = None,
    free_shipping_threshold: Optional[Money] = None,
    stacking_policy: StackingPolicy = StackingPolicy.TIER_THEN_COUPON,
    now: Optional[datetime] = None,
) -> CartPricing:
    """
    Price a cart.

    Args:
        cart: Cart to price
        tier: Customer's wholesale tier (None or unknown: retail)
        negotiated_prices: Per-variant wholesale prices overriding the tier rate
        bulk_brackets: Per-variant quantity brackets, applied to wholesale lines
            priced by tier rate
        coupon: Coupon already looked up for the customer's code
        shipping_options: Options available for the destination
        selected_option_id: Option the customer picked, if any
        free_shipping_threshold: Subtotal at or above which shipping is free
        stacking_policy: How a coupon combines with wholesale pricing
        now: Pricing time (UTC), used for coupon validity windows

    Returns:
        CartPricing

    Raises:
        PriceUnavailableError: a line is not priced in the cart currency
        CouponInvalidError: the coupon does not apply (incl. not_combinable)
        NotFoundError: selected_option_id is not among shipping_options

    Example:
        pricing = price_cart(cart, tier="growth", shipping_options=options,
                             selected_option_id="standard",
                             free_shipping_threshold=Money(25000, "USD"))
        print(pricing.total.format(), pricing.is_final)
    """
    now = now or utc_now()
    currency = cart.currency
    negotiated_prices = negotiated_prices or {}
    bulk_brackets = bulk_brackets or {}
    resolved_tier = parse_tier(tier)

    retail_subtotal = cart.subtotal()
    priced: List[PricedLine] = []
    subtotal = Money.zero(currency)

    for line in cart.lines:
        wholesale = resolve_wholesale_price(
            resolved_tier,
            line.variant_id,
            line.unit_price,
            negotiated_prices.get(line.variant_id),
        )
        unit_price = wholesale.price
        if wholesale.is_wholesale and not wholesale.negotiated and line.variant_id in bulk_brackets:
            unit_price = resolve_bulk_price(unit_price, line.quantity, bulk_brackets[line.variant_id])

        line_total = unit_price.multiply_by_quantity(line.quantity)
        priced.append(PricedLine(
            variant_id=line.variant_id,
            product_id=line.product_id,
            quantity=line.quantity,
            retail_unit_price=line.unit_price,
            unit_price=unit_price,
            line_total=line_total,
            savings=line.line_total.subtract(line_total),
            is_wholesale=wholesale.is_wholesale,
            sku=line.sku,
        ))
        subtotal = subtotal.add(line_total)

    resolution: Optional[CouponResolution] = None
    if coupon is not None:
        if stacking_policy is StackingPolicy.EXCLUSIVE and resolved_tier is not None:
            raise CouponInvalidError(
                coupon.code,
                CouponInvalidReason.NOT_COMBINABLE,
                "Coupons cannot be combined with wholesale pricing",
            )
        resolution = price_coupon(coupon, subtotal, now)

    discount = resolution.discount_amount if resolution else Money.zero(currency)

    option = select_shipping_option(shipping_options, selected_option_id) if selected_option_id else None
    shipping = quote_shipping(
        option,
        subtotal,
        free_shipping_threshold,
        free_shipping=bool(resolution and resolution.free_shipping),
    )

    warnings: List[str] = []
    if shipping.is_resolved:
        total = compose_total(subtotal, discount, shipping.amount)
    else:
        # Goods only until shipping is resolved.
        total = compose_total(subtotal, discount, Money.zero(currency))
        if shipping.reason:
            warnings.append(shipping.reason)

    return CartPricing(
        currency=currency,
        lines=tuple(priced),
        retail_subtotal=retail_subtotal,
        subtotal=subtotal,
        wholesale_savings=retail_subtotal.subtract(subtotal),
        discount_total=discount,
        shipping=shipping,
        total=total,
        is_final=bool(priced) and shipping.is_resolved,
        computed_at=now,
        tier=resolved_tier,
        coupon=resolution,
        stacking_policy=stacking_policy,
        warnings=tuple(warnings),
    )


class CartPricingService:
    """
    Loads catalogue prices, tier, negotiated prices, bulk brackets, coupon
    and shipping options from the stores, then delegates to price_cart.
    """

    def __init__(
        self,
        *,
        catalog: "CatalogStore",
        customers: "CustomerStore",
        coupons: "CouponStore",
        shipping: "ShippingStore",
        free_shipping_threshold: Optional[Money] = None,
        stacking_policy: StackingPolicy = StackingPolicy.TIER_THEN_COUPON,
        clock: Clock = utc_now,
    ):
        self._catalog = catalog
        self._customers = customers
        self._coupons = coupons
        self._shipping = shipping
        self._threshold = free_shipping_threshold
        self._policy = stacking_policy
        self._clock = clock

    @property
    def stacking_policy(self) -> StackingPolicy:
        return self._policy

    def shipping_options(self, country: str, region_id: str) -> List[ShippingOption]:
        return list_shipping_options(country, region_id, self._shipping)

    def validate_coupon(self, code: str, subtotal: Money) -> CouponResolution:
        return resolve_coupon(code, subtotal, self._coupons.load_coupon, self._clock())

    def build_cart(self, items: Sequence[Tuple[UUID, int]], currency: str) -> Cart:
        """
        Build a cart from (variant_id, quantity) pairs at catalogue prices.

        Callers never supply unit prices; each line takes the retail price
        the catalogue holds for `currency`.

        Raises:
            NotFoundError: a variant is not in the catalogue
            PriceUnavailableError: a variant has no price in `currency`
            InvalidInputError: a quantity is not a positive integer
        """
        currency = Money.zero(currency).currency
        variants = self._catalog.load_variants([variant_id for variant_id, _ in items], currency)

        lines: List[CartLine] = []
        for variant_id, quantity in items:
            variant = variants.get(variant_id)
            if variant is None:
                raise NotFoundError("Variant", str(variant_id))
            if variant.price is None or variant.price.currency != currency:
                raise PriceUnavailableError(f"Variant {variant_id} is not priced in {currency}")
            lines.append(CartLine(
                variant_id=variant_id,
                product_id=variant.product_id,
                unit_price=variant.price,
                quantity=quantity,
                sku=variant.sku,
            ))
        return Cart(currency=currency, lines=tuple(lines))

    def price(
        self,
        cart: Cart,
        *,
        customer_id: Optional[UUID] = None,
        coupon_code: Optional[str] = None,
        country: Optional[str] = None,
        region_id: Optional[str] = None,
        selected_option_id: Optional[str] = None,
    ) -> CartPricing:
        tier: Optional[WholesaleTier] = None
        negotiated: Mapping[UUID, Money] = {}
        brackets: Mapping[UUID, Sequence[BulkDiscountBracket]] = {}
        if customer_id is not None:
            tier = self._customers.load_customer_tier(customer_id)
            if tier is not None:
                variant_ids = [line.variant_id for line in cart.lines]
                negotiated = self._customers.load_negotiated_prices(customer_id, variant_ids)
                brackets = self._catalog.load_bulk_brackets(variant_ids)

        coupon: Optional[Coupon] = None
        if coupon_code:
            code = normalize_coupon_code(coupon_code)
            coupon = self._coupons.load_coupon(code)
            if coupon is None:
                raise CouponInvalidError(code, CouponInvalidReason.NOT_FOUND, "Invalid coupon code")

        options: List[ShippingOption] = []
        if country and region_id:
            options = self.shipping_options(country, region_id)

        pricing = price_cart(
            cart,
            tier=tier,
            negotiated_prices=negotiated,
            bulk_brackets=brackets,
            coupon=coupon,
            shipping_options=options,
            selected_option_id=selected_option_id,
            free_shipping_threshold=self._threshold,
            stacking_policy=self._policy,
            now=self._clock(),
        )
        logger.debug(
            "Cart priced",
            extra={
                "customer_id": str(customer_id) if customer_id else None,
                "total": pricing.total.amount,
                "currency": pricing.currency,
                "is_final": pricing.is_final,
            },
        )
        return pricing


__all__ = [
    "StackingPolicy",
    "PricedLine",
    "CartPricing",
    "price_cart",
    "CartPricingService",
]
