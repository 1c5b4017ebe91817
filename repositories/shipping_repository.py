"""
Shipping option repository (Supabase persistence).
"""

from __future__ import annotations

from typing import Any, List, Mapping

from supabase import Client  # type: ignore[import-not-found]

from domain.money import Money
from domain.shipping import ShippingOption
from repositories.client import rows_or_raise

_SHIPPING_OPTIONS_TABLE: str = "shipping_options"


def row_to_shipping_option(row: Mapping[str, Any]) -> ShippingOption:
    return ShippingOption(
        option_id=str(row["option_id"]),
        name=str(row["name"]),
        price=Money(int(row["price_cents"]), str(row["currency"])),
        country_code=str(row["country_code"]),
        region_id=str(row["region_id"]),
        description=row.get("description"),
        estimated_days=row.get("estimated_days"),
    )


class SupabaseShippingRepository:
    def __init__(self, client: Client):
        self._client = client

    def load_shipping_options(self, country_code: str, region_id: str) -> List[ShippingOption]:
        response = (
            self._client.table(_SHIPPING_OPTIONS_TABLE)
            .select("*")
            .eq("country_code", country_code)
            .eq("region_id", region_id)
            .execute()
        )
        rows = rows_or_raise(response, "fetch shipping options")
        return [row_to_shipping_option(row) for row in rows]


__all__ = ["SupabaseShippingRepository", "row_to_shipping_option"]
