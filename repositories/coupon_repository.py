"""
Coupon repository (Supabase persistence).

Read-only lookup by normalized code. Codes are stored upper-case.
"""

from __future__ import annotations

from typing import Any, Mapping, Optional

from supabase import Client  # type: ignore[import-not-found]

from domain.coupon import Coupon, CouponKind
from domain.money import Money
from repositories.client import parse_optional_datetime, rows_or_raise

_COUPONS_TABLE: str = "coupons"


def row_to_coupon(row: Mapping[str, Any]) -> Coupon:
    currency = str(row.get("currency") or "USD")

    def money(column: str) -> Optional[Money]:
        value = row.get(column)
        return Money(int(value), currency) if value is not None else None

    return Coupon(
        code=str(row["code"]),
        kind=CouponKind(str(row["kind"])),
        percentage_bps=int(row["percentage_bps"]) if row.get("percentage_bps") is not None else None,
        fixed_amount=money("fixed_amount_cents"),
        minimum_cart_total=money("minimum_cart_total_cents"),
        starts_at=parse_optional_datetime(row.get("starts_at_utc")),
        expires_at=parse_optional_datetime(row.get("expires_at_utc")),
        is_active=bool(row.get("is_active", True)),
        usage_limit=int(row["usage_limit"]) if row.get("usage_limit") is not None else None,
        usage_count=int(row.get("usage_count") or 0),
    )


class SupabaseCouponRepository:
    def __init__(self, client: Client):
        self._client = client

    def load_coupon(self, code: str) -> Optional[Coupon]:
        response = (
            self._client.table(_COUPONS_TABLE)
            .select("*")
            .eq("code", code)
            .limit(1)
            .execute()
        )
        rows = rows_or_raise(response, "fetch coupon")
        return row_to_coupon(rows[0]) if rows else None


__all__ = ["SupabaseCouponRepository", "row_to_coupon"]
