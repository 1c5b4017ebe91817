"""
Domain: Customer accounts as seen by pricing and notifications.

Only the fields the engine reads: contact details for notifications and
the administrator-assigned wholesale tier for pricing.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional
from uuid import UUID

from .time import require_utc_timestamp
from .wholesale import WholesaleTier


@dataclass(frozen=True, slots=True)
class Customer:
    """
    Customer account.

    wholesale_tier is None for retail customers. A stale or unknown tier
    slug in storage is mapped to None by the repository.
    """

    customer_id: UUID
    email: str
    status: str = "active"  # active, suspended, closed

    first_name: Optional[str] = None
    last_name: Optional[str] = None
    phone: Optional[str] = None
    company_name: Optional[str] = None

    wholesale_tier: Optional[WholesaleTier] = None
    tier_assigned_at: Optional[datetime] = None

    created_at: Optional[datetime] = None

    def __post_init__(self) -> None:
        if self.tier_assigned_at is not None:
            require_utc_timestamp("tier_assigned_at", self.tier_assigned_at)
        if self.created_at is not None:
            require_utc_timestamp("created_at", self.created_at)

    def is_active(self) -> bool:
        return self.status == "active"

    @property
    def is_wholesale(self) -> bool:
        return self.wholesale_tier is not None

    @property
    def display_name(self) -> str:
        name = " ".join(part for part in (self.first_name, self.last_name) if part)
        return name or self.company_name or self.email


__all__ = ["Customer"]
