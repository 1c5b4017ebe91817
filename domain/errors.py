"""
Domain: error taxonomy for pricing and order lifecycle.

Every failure the engine reports to a caller is one of these types.
Handler failures inside the event bus are never raised; they are logged.
"""

from __future__ import annotations

from enum import Enum
from typing import Optional


class CommerceError(Exception):
    """Base class for errors reported by the pricing and lifecycle engine."""

    code: str = "COMMERCE_ERROR"

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class InvalidInputError(CommerceError, ValueError):
    """Malformed input rejected before any computation (bad code, bad quantity)."""

    code = "INVALID_INPUT"


class NotFoundError(CommerceError):
    """A referenced coupon, shipping route, option or order does not exist."""

    code = "NOT_FOUND"

    def __init__(self, resource: str, identifier: Optional[str] = None):
        self.resource = resource
        self.identifier = identifier
        suffix = f" with id '{identifier}'" if identifier else ""
        super().__init__(f"{resource}{suffix} not found")


class PriceUnavailableError(CommerceError):
    """A price cannot be determined for the cart's currency."""

    code = "PRICE_UNAVAILABLE"


class InsufficientStockError(CommerceError):
    """A tracked variant does not have enough stock for the requested quantity."""

    code = "INSUFFICIENT_STOCK"

    def __init__(self, variant_id: str, requested: int, available: int):
        self.variant_id = variant_id
        self.requested = requested
        self.available = available
        super().__init__(
            f"Variant '{variant_id}' has {available} in stock, {requested} requested"
        )


class CouponInvalidReason(str, Enum):
    NOT_FOUND = "not_found"
    INACTIVE = "inactive"
    NOT_STARTED = "not_started"
    EXPIRED = "expired"
    USAGE_LIMIT_REACHED = "usage_limit_reached"
    MINIMUM_NOT_MET = "minimum_not_met"
    NOT_COMBINABLE = "not_combinable"


class CouponInvalidError(CommerceError):
    """A coupon code was well-formed but cannot be applied to this cart."""

    code = "COUPON_INVALID"

    def __init__(self, coupon_code: str, reason: CouponInvalidReason, detail: Optional[str] = None):
        self.coupon_code = coupon_code
        self.reason = reason
        super().__init__(detail or f"Coupon '{coupon_code}' is invalid: {reason.value}")


class InvalidTransitionError(CommerceError):
    """An illegal state-machine edge. Nothing was mutated and no event was emitted."""

    code = "INVALID_TRANSITION"

    def __init__(self, axis: str, current: str, target: str, detail: Optional[str] = None):
        self.axis = axis
        self.current = current
        self.target = target
        super().__init__(
            detail or f"Invalid {axis} transition from '{current}' to '{target}'"
        )


class ConflictError(CommerceError):
    """A concurrent order mutation won the race; reload and retry."""

    code = "CONFLICT"

    def __init__(self, order_id: str, expected_version: int):
        self.order_id = order_id
        self.expected_version = expected_version
        super().__init__(
            f"Order '{order_id}' was modified concurrently (expected version {expected_version})"
        )


class EventPayloadError(CommerceError):
    """Payload failed schema validation while the bus runs in strict mode."""

    code = "EVENT_PAYLOAD_INVALID"


class PublishTimeoutError(CommerceError):
    """The publisher stopped waiting; handlers keep running to completion."""

    code = "PUBLISH_TIMEOUT"


__all__ = [
    "CommerceError",
    "InvalidInputError",
    "NotFoundError",
    "PriceUnavailableError",
    "InsufficientStockError",
    "CouponInvalidReason",
    "CouponInvalidError",
    "InvalidTransitionError",
    "ConflictError",
    "EventPayloadError",
    "PublishTimeoutError",
]
