"""
Application settings.

Read from environment variables. A `.env` file at the project root is
loaded first; variables already set in the environment win.

Environment variables:
- STORE_CURRENCY: ISO currency of the store (default USD)
- FREE_SHIPPING_THRESHOLD_CENTS: subtotal in minor units at or above which
  shipping is free (default 25000); empty disables the override
- EVENT_HISTORY_SIZE: event bus history capacity (default 1000)
- EVENT_STRICT_VALIDATION: reject invalid event payloads (default false)
- LOW_STOCK_THRESHOLD: stock level that triggers low-stock alerts (default 5)
- COUPON_STACKING_POLICY: tier_then_coupon | exclusive
- DATA_BACKEND: memory | supabase (default memory)
- SUPABASE_URL, SUPABASE_KEY: required when DATA_BACKEND=supabase
- STAFF_NOTIFICATION_EMAIL: recipient of low-stock alerts (optional)
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

from dotenv import load_dotenv

from domain.money import Money
from services.pricing_service import StackingPolicy

ENV_PATH = Path(__file__).parent.parent / ".env"

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off", ""}


@dataclass(frozen=True, slots=True)
class Settings:
    store_currency: str = "USD"
    free_shipping_threshold_cents: Optional[int] = 25_000
    event_history_size: int = 1000
    event_strict_validation: bool = False
    low_stock_threshold: int = 5
    stacking_policy: StackingPolicy = StackingPolicy.TIER_THEN_COUPON
    data_backend: str = "memory"
    supabase_url: Optional[str] = None
    supabase_key: Optional[str] = None
    staff_notification_email: Optional[str] = None

    @property
    def free_shipping_threshold(self) -> Optional[Money]:
        if self.free_shipping_threshold_cents is None:
            return None
        return Money(self.free_shipping_threshold_cents, self.store_currency)


def _int(env: Mapping[str, str], name: str, default: Optional[int], minimum: int = 0) -> Optional[int]:
    raw = env.get(name)
    if raw is None:
        return default
    if raw.strip() == "":
        return None
    try:
        value = int(raw)
    except ValueError:
        raise RuntimeError(f"Invalid value for {name}: {raw!r} is not an integer")
    if value < minimum:
        raise RuntimeError(f"Invalid value for {name}: must be >= {minimum}")
    return value


def _bool(env: Mapping[str, str], name: str, default: bool) -> bool:
    raw = env.get(name)
    if raw is None:
        return default
    value = raw.strip().lower()
    if value in _TRUE:
        return True
    if value in _FALSE:
        return False
    raise RuntimeError(f"Invalid value for {name}: {raw!r} is not a boolean")


def load_settings(env: Optional[Mapping[str, str]] = None) -> Settings:
    """
    Build Settings from `env` (defaults to os.environ after loading .env).

    Raises:
        RuntimeError: a variable has an invalid value, or the supabase
            backend is selected without credentials
    """
    if env is None:
        load_dotenv(dotenv_path=ENV_PATH)
        env = os.environ

    currency = env.get("STORE_CURRENCY", "USD").strip().upper()
    if len(currency) != 3 or not currency.isalpha():
        raise RuntimeError(f"Invalid value for STORE_CURRENCY: {currency!r}")

    raw_policy = env.get("COUPON_STACKING_POLICY", StackingPolicy.TIER_THEN_COUPON.value).strip().lower()
    try:
        policy = StackingPolicy(raw_policy)
    except ValueError:
        raise RuntimeError(
            f"Invalid value for COUPON_STACKING_POLICY: {raw_policy!r}. "
            f"Use one of: {', '.join(p.value for p in StackingPolicy)}"
        )

    backend = env.get("DATA_BACKEND", "memory").strip().lower()
    if backend not in ("memory", "supabase"):
        raise RuntimeError(f"Invalid value for DATA_BACKEND: {backend!r}. Use 'memory' or 'supabase'.")

    supabase_url = env.get("SUPABASE_URL") or None
    supabase_key = env.get("SUPABASE_KEY") or None
    if backend == "supabase":
        if not supabase_url:
            raise RuntimeError(
                "Missing environment variable: SUPABASE_URL. "
                "Set SUPABASE_URL to your Supabase project URL."
            )
        if not supabase_key:
            raise RuntimeError(
                "Missing environment variable: SUPABASE_KEY. "
                "Set SUPABASE_KEY to your Supabase API key."
            )

    history_size = _int(env, "EVENT_HISTORY_SIZE", 1000, minimum=1)
    low_stock = _int(env, "LOW_STOCK_THRESHOLD", 5, minimum=1)
    if history_size is None or low_stock is None:
        raise RuntimeError("EVENT_HISTORY_SIZE and LOW_STOCK_THRESHOLD cannot be empty")

    return Settings(
        store_currency=currency,
        free_shipping_threshold_cents=_int(env, "FREE_SHIPPING_THRESHOLD_CENTS", 25_000),
        event_history_size=history_size,
        event_strict_validation=_bool(env, "EVENT_STRICT_VALIDATION", False),
        low_stock_threshold=low_stock,
        stacking_policy=policy,
        data_backend=backend,
        supabase_url=supabase_url,
        supabase_key=supabase_key,
        staff_notification_email=env.get("STAFF_NOTIFICATION_EMAIL") or None,
    )


__all__ = ["Settings", "load_settings", "ENV_PATH"]
