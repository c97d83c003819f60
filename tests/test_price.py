from decimal import Decimal

import pytest

from catalog_sync.models import PriceRow, PricingConfig
from catalog_sync.sync.components.price import (
    compute_target_price,
    format_price,
    prices_equal,
    round_to_step,
)


@pytest.mark.parametrize("value, step, mode, expected", [
    (103, 5, "nearest", 105),
    (102, 5, "nearest", 100),
    (102.5, 5, "nearest", 105),
    (101, 5, "up", 105),
    (104, 5, "down", 100),
    (100, 5, "up", 100),
    (123.456, 0, "nearest", Decimal("123.456")),
    (123.456, 5, "none", Decimal("123.456")),
    (12.34, 0.5, "nearest", Decimal("12.5")),
])
def test_round_to_step(value, step, mode, expected):
    assert round_to_step(value, step, mode) == Decimal(str(expected))


def test_price_computation_with_markup():
    cfg = PricingConfig(fx_rate=13, markup_pct=20, rounding_step=1, rounding_mode="nearest")
    row = PriceRow(sku="STC1234", source_amount=10)
    assert compute_target_price(row, cfg) == "156.00"


def test_target_amount_is_taken_verbatim():
    cfg = PricingConfig(fx_rate=13, markup_pct=50, rounding_step=10, rounding_mode="up")
    row = PriceRow(sku="STC1234", target_amount=199.5)
    assert compute_target_price(row, cfg) == "199.50"


def test_no_rounding_keeps_two_decimals():
    cfg = PricingConfig(fx_rate=12.87, rounding_step=0, rounding_mode="none")
    row = PriceRow(sku="A", source_amount=3.33)
    assert compute_target_price(row, cfg) == "42.86"


def test_legacy_mode_alias():
    assert PricingConfig(fx_rate=13, rounding_mode="near").rounding_mode == "nearest"


def test_format_and_compare():
    assert format_price(5) == "5.00"
    assert prices_equal("156", "156.00")
    assert not prices_equal("155.00", "156.00")
    assert not prices_equal("", "156.00")
    assert not prices_equal(None, "156.00")
