from catalog_sync.models import PriceRow, RejectedRow
from catalog_sync.pricing.normalizer import (
    CandidateColumns,
    NumericScan,
    normalize_row,
    normalize_rows,
)


def test_declared_source_column():
    res = normalize_row({"Part No": " STC1234 ", "Description": "Brake pad", "Price": "10.50"})
    assert isinstance(res, PriceRow)
    assert res.sku == "STC1234"
    assert res.source_amount == 10.5
    assert res.target_amount is None
    assert res.matched_rule == "source_columns"


def test_headers_are_case_and_space_insensitive():
    res = normalize_row({"\ufeffpart  no": "A1", "gbp price": "3"})
    assert res.sku == "A1"
    assert res.source_amount == 3


def test_target_currency_column():
    res = normalize_row({"SKU": "A1", "Pris (SEK)": "1 299,00"})
    assert isinstance(res, PriceRow)
    assert res.target_amount == 1299.0
    assert res.source_amount is None


def test_stock_column_is_picked_up():
    res = normalize_row({"SKU": "A1", "Price": "2", "Stock": "7"})
    assert res.stock_quantity == 7


def test_missing_sku_is_rejected():
    res = normalize_row({"Part No": "  ", "Price": "10"})
    assert isinstance(res, RejectedRow)
    assert res.reason == "missing sku"


def test_unparsable_price_is_rejected():
    res = normalize_row({"Part No": "A1", "Price": "n/a", "Notes": "call us"})
    assert isinstance(res, RejectedRow)
    assert res.reason == "invalid price"


def test_negative_price_is_rejected():
    res = normalize_row({"Part No": "A1", "Price": "-4"})
    assert isinstance(res, RejectedRow)
    assert res.reason == "invalid price"


def test_numeric_scan_fallback():
    res = normalize_row({"Part No": "A1", "Cost": "12,75"})
    assert res.source_amount == 12.75
    assert res.matched_rule == "numeric_scan"


def test_numeric_scan_skips_unit_of_issue():
    res = normalize_row({"Part No": "A1", "UOI": "1", "Trade": "8.40"})
    assert res.source_amount == 8.4


def test_numeric_scan_ignores_numeric_sku():
    res = normalize_row({"Part No": "12345", "Amount": "9"})
    assert res.source_amount == 9


def test_custom_rules():
    rules = [CandidateColumns("supplier", ["Nettopris"], currency="target"), NumericScan(high=50)]
    assert normalize_row({"SKU": "A", "Nettopris": "450"}, rules).target_amount == 450
    assert isinstance(normalize_row({"SKU": "A", "Other": "450"}, rules), RejectedRow)


def test_normalize_rows_splits_and_numbers_lines():
    accepted, rejected = normalize_rows(
        [{"SKU": "A", "Price": "1"}, {"SKU": "", "Price": "1"}, {"SKU": "C", "Price": "x"}],
        first_line=11,
    )
    assert [r.sku for r in accepted] == ["A"]
    assert [(r.reason, r.line) for r in rejected] == [("missing sku", 12), ("invalid price", 13)]


def test_first_non_empty_candidate_wins_even_if_unparsable():
    rules = [CandidateColumns("source_columns", ["Price", "GBP"])]
    assert isinstance(normalize_row({"SKU": "A1", "Price": "n/a", "GBP": "5"}, rules), RejectedRow)
    assert normalize_row({"SKU": "A1", "Price": "", "GBP": "5"}, rules).source_amount == 5


def test_unparsable_declared_column_falls_through_to_later_rules():
    res = normalize_row({"SKU": "A1", "Price": "n/a", "Pris SEK": "120"})
    assert res.target_amount == 120
    assert res.matched_rule == "target_columns"
