"""
Inventory repository (Supabase persistence).

Stock lives on product_variants.inventory_quantity. Variants with
manage_inventory = false are untracked and report None.

Adjustments go through the `adjust_variant_stock` PostgreSQL function so
that the read-modify-write happens in a single statement:

    adjust_variant_stock(p_variant_id uuid, p_delta int) returns int
    -- greatest(0, inventory_quantity + p_delta), returned after update
"""

from __future__ import annotations

from typing import Any, Optional
from uuid import UUID

from supabase import Client  # type: ignore[import-not-found]

from repositories.client import rows_or_raise

_VARIANTS_TABLE: str = "product_variants"


class SupabaseInventoryRepository:
    def __init__(self, client: Client):
        self._client = client

    def load_stock(self, variant_id: UUID) -> Optional[int]:
        response = (
            self._client.table(_VARIANTS_TABLE)
            .select("inventory_quantity, manage_inventory")
            .eq("variant_id", str(variant_id))
            .limit(1)
            .execute()
        )
        rows = rows_or_raise(response, "fetch stock")
        if not rows or not rows[0].get("manage_inventory", True):
            return None
        return int(rows[0].get("inventory_quantity") or 0)

    def adjust_stock(self, variant_id: UUID, delta: int) -> int:
        response = self._client.rpc(
            "adjust_variant_stock",
            {"p_variant_id": str(variant_id), "p_delta": delta},
        ).execute()

        error = getattr(response, "error", None)
        if error:
            raise RuntimeError(f"Failed to adjust stock: {error}")
        return _scalar(getattr(response, "data", None))


def _scalar(data: Any) -> int:
    # RPC results arrive either bare or wrapped in a one-row list.
    if isinstance(data, list):
        data = data[0] if data else 0
    if isinstance(data, dict):
        data = next(iter(data.values()), 0)
    return int(data or 0)


__all__ = ["SupabaseInventoryRepository"]
