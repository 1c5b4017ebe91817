"""
Shipping cost resolver.

Lists the flat-rate options for a destination and quotes the one the
customer picked. A missing selection is UNRESOLVED and is never priced
as zero; only the free-shipping threshold or a free-shipping coupon
makes shipping free.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Iterable, List, Optional

from domain.errors import NotFoundError
from domain.money import Money
from domain.shipping import ShippingOption, ShippingQuote, ShippingQuoteState, normalize_country_code

if TYPE_CHECKING:
    from repositories.base import ShippingStore


def order_shipping_options(options: Iterable[ShippingOption]) -> List[ShippingOption]:
    """Ascending price, ties broken by option id."""
    return sorted(options, key=lambda o: (o.price.amount, o.option_id))


def list_shipping_options(country: str, region_id: str, store: "ShippingStore") -> List[ShippingOption]:
    """
    Return every option configured for (country, region), cheapest first.

    An unknown destination yields an empty list, not an error.

    Raises:
        InvalidInputError: country is not an ISO-2 code
    """
    country_code = normalize_country_code(country)
    options = store.load_shipping_options(country_code, region_id)
    return order_shipping_options(
        o for o in options if o.country_code == country_code and o.region_id == region_id
    )


def select_shipping_option(options: Iterable[ShippingOption], option_id: str) -> ShippingOption:
    for option in options:
        if option.option_id == option_id:
            return option
    raise NotFoundError("Shipping option", option_id)


def quote_shipping(
    option: Optional[ShippingOption],
    subtotal: Money,
    threshold: Optional[Money],
    free_shipping: bool = False,
) -> ShippingQuote:
    """
    Effective shipping cost for the selected option.

    Args:
        option: The selected option, or None when nothing is selected yet
        subtotal: Goods subtotal the threshold is compared against
        threshold: Free-shipping threshold in the cart currency, or None
        free_shipping: True when a free-shipping coupon applies

    Returns:
        ShippingQuote. FREE and CHARGED carry an amount; UNRESOLVED and
        UNAVAILABLE do not.
    """
    if option is None:
        return ShippingQuote(state=ShippingQuoteState.UNRESOLVED, reason="No shipping option selected")

    if option.currency != subtotal.currency:
        return ShippingQuote(
            state=ShippingQuoteState.UNAVAILABLE,
            option=option,
            listed_price=option.price,
            reason=f"Shipping option {option.option_id} is not priced in {subtotal.currency}",
        )

    if free_shipping:
        return ShippingQuote(
            state=ShippingQuoteState.FREE,
            option=option,
            amount=Money.zero(subtotal.currency),
            listed_price=option.price,
            reason="Free-shipping coupon",
        )

    if threshold is not None and threshold.currency == subtotal.currency and subtotal >= threshold:
        return ShippingQuote(
            state=ShippingQuoteState.FREE,
            option=option,
            amount=Money.zero(subtotal.currency),
            listed_price=option.price,
            reason=f"Orders of {threshold.format()} or more ship free",
        )

    return ShippingQuote(
        state=ShippingQuoteState.CHARGED,
        option=option,
        amount=option.price,
        listed_price=option.price,
    )


__all__ = [
    "order_shipping_options",
    "list_shipping_options",
    "select_shipping_option",
    "quote_shipping",
]
