"""
Catalogue repository (Supabase persistence).

Retail prices live in `money_amounts`, one row per variant and currency.
Bulk brackets live in `bulk_discounts`; inactive rows are ignored.
"""

from __future__ import annotations

from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence
from uuid import UUID

from supabase import Client  # type: ignore[import-not-found]

from domain.catalog import CatalogVariant
from domain.money import Money
from domain.wholesale import BulkDiscountBracket
from repositories.client import rows_or_raise

_VARIANTS_TABLE: str = "product_variants"
_PRICES_TABLE: str = "money_amounts"
_BULK_DISCOUNTS_TABLE: str = "bulk_discounts"


def row_to_bracket(row: Mapping[str, Any]) -> BulkDiscountBracket:
    return BulkDiscountBracket(
        min_quantity=int(row["min_quantity"]),
        discount_bps=int(row["discount_bps"]),
    )


class SupabaseCatalogRepository:
    def __init__(self, client: Client):
        self._client = client

    def load_variants(self, variant_ids: Iterable[UUID], currency: str) -> Mapping[UUID, CatalogVariant]:
        ids = [str(v) for v in variant_ids]
        if not ids:
            return {}

        response = (
            self._client.table(_VARIANTS_TABLE)
            .select("variant_id, product_id, sku")
            .in_("variant_id", ids)
            .execute()
        )
        variant_rows = rows_or_raise(response, "fetch product variants")

        response = (
            self._client.table(_PRICES_TABLE)
            .select("variant_id, currency, amount_cents")
            .in_("variant_id", ids)
            .eq("currency", currency)
            .execute()
        )
        price_rows = rows_or_raise(response, "fetch variant prices")
        prices: Dict[UUID, Money] = {
            UUID(str(row["variant_id"])): Money(int(row["amount_cents"]), str(row["currency"]))
            for row in price_rows
        }

        variants: Dict[UUID, CatalogVariant] = {}
        for row in variant_rows:
            variant_id = UUID(str(row["variant_id"]))
            sku: Optional[str] = row.get("sku")
            variants[variant_id] = CatalogVariant(
                variant_id=variant_id,
                product_id=UUID(str(row["product_id"])),
                price=prices.get(variant_id),
                sku=sku,
            )
        return variants

    def load_bulk_brackets(self, variant_ids: Iterable[UUID]) -> Mapping[UUID, Sequence[BulkDiscountBracket]]:
        ids = [str(v) for v in variant_ids]
        if not ids:
            return {}
        response = (
            self._client.table(_BULK_DISCOUNTS_TABLE)
            .select("variant_id, min_quantity, discount_bps")
            .in_("variant_id", ids)
            .eq("active", True)
            .execute()
        )
        rows = rows_or_raise(response, "fetch bulk discounts")
        brackets: Dict[UUID, List[BulkDiscountBracket]] = {}
        for row in rows:
            brackets.setdefault(UUID(str(row["variant_id"])), []).append(row_to_bracket(row))
        return brackets


__all__ = ["SupabaseCatalogRepository", "row_to_bracket"]
