"""
Customer repository (Supabase persistence).

Reads customer contact details, the assigned wholesale tier, and the
explicit wholesale prices stored on product variants.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, Mapping, Optional
from uuid import UUID

from supabase import Client  # type: ignore[import-not-found]

from domain.customer import Customer
from domain.money import Money
from domain.wholesale import WholesaleTier
from repositories.client import parse_optional_datetime, rows_or_raise

logger = logging.getLogger(__name__)

_CUSTOMERS_TABLE: str = "customers"
_VARIANTS_TABLE: str = "product_variants"


def row_to_customer(row: Mapping[str, Any]) -> Customer:
    raw_tier = row.get("wholesale_tier")
    tier = WholesaleTier.parse(raw_tier)
    if raw_tier and tier is None:
        logger.warning(
            "Unknown wholesale tier; pricing as retail",
            extra={"customer_id": str(row["customer_id"]), "tier": raw_tier},
        )
    return Customer(
        customer_id=UUID(str(row["customer_id"])),
        email=str(row["email"]),
        status=str(row.get("status") or "active"),
        first_name=row.get("first_name"),
        last_name=row.get("last_name"),
        phone=row.get("phone"),
        company_name=row.get("company_name"),
        wholesale_tier=tier,
        tier_assigned_at=parse_optional_datetime(row.get("tier_assigned_at_utc")),
        created_at=parse_optional_datetime(row.get("created_at_utc")),
    )


class SupabaseCustomerRepository:
    def __init__(self, client: Client):
        self._client = client

    def load_customer(self, customer_id: UUID) -> Optional[Customer]:
        response = (
            self._client.table(_CUSTOMERS_TABLE)
            .select("*")
            .eq("customer_id", str(customer_id))
            .limit(1)
            .execute()
        )
        rows = rows_or_raise(response, "fetch customer")
        return row_to_customer(rows[0]) if rows else None

    def load_customer_tier(self, customer_id: UUID) -> Optional[WholesaleTier]:
        customer = self.load_customer(customer_id)
        return customer.wholesale_tier if customer else None

    def load_negotiated_prices(self, customer_id: UUID, variant_ids: Iterable[UUID]) -> Mapping[UUID, Money]:
        ids = [str(v) for v in variant_ids]
        if not ids:
            return {}
        response = (
            self._client.table(_VARIANTS_TABLE)
            .select("variant_id, wholesale_price_cents, currency")
            .in_("variant_id", ids)
            .execute()
        )
        rows = rows_or_raise(response, "fetch wholesale prices")
        prices: Dict[UUID, Money] = {}
        for row in rows:
            if row.get("wholesale_price_cents") is None:
                continue
            prices[UUID(str(row["variant_id"]))] = Money(int(row["wholesale_price_cents"]), str(row["currency"]))
        return prices


__all__ = ["SupabaseCustomerRepository", "row_to_customer"]
