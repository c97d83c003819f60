# catalog_sync/sync/components/price.py
from __future__ import annotations

from decimal import Decimal, ROUND_CEILING, ROUND_FLOOR, ROUND_HALF_UP
from typing import Any

from catalog_sync.models import PriceRow, PricingConfig

_ROUNDING = {
    "nearest": ROUND_HALF_UP,   # ties go away from zero
    "near": ROUND_HALF_UP,
    "up": ROUND_CEILING,
    "down": ROUND_FLOOR,
}


def _dec(v: Any) -> Decimal:
    # via str() so 0.1 stays 0.1 instead of its binary expansion
    return v if isinstance(v, Decimal) else Decimal(str(v))


def round_to_step(value: Any, step: Any, mode: str) -> Decimal:
    """
    Round `value` to a multiple of `step`.
      round_to_step(103, 5, "nearest") -> 105
      round_to_step(101, 5, "up")      -> 105
      round_to_step(104, 5, "down")    -> 100
    Step 0 or mode "none" returns the value untouched.
    """
    v = _dec(value)
    s = _dec(step or 0)
    rounding = _ROUNDING.get((mode or "none").lower())
    if s <= 0 or rounding is None:
        return v
    q = (v / s).quantize(Decimal(1), rounding=rounding)
    return q * s


def format_price(value: Any) -> str:
    """Woo wants regular_price as a string with 2 decimals."""
    d = _dec(value or 0).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    return f"{d:.2f}"


def convert_amount(source_amount: Any, config: PricingConfig) -> Decimal:
    raw = _dec(source_amount) * _dec(config.fx_rate) * (1 + _dec(config.markup_pct) / 100)
    return round_to_step(raw, config.rounding_step, config.rounding_mode)


def compute_target_price(row: PriceRow, config: PricingConfig) -> str:
    """Target-currency price for a row: converted + marked up + rounded, or taken verbatim."""
    if row.source_amount is not None:
        return format_price(convert_amount(row.source_amount, config))
    return format_price(row.target_amount)


def prices_equal(current: Any, target: str) -> bool:
    """True when Woo's current regular_price already matches `target` (within 0.009)."""
    try:
        return abs(_dec(current) - _dec(target)) < Decimal("0.009")
    except (ArithmeticError, ValueError, TypeError):
        return False
