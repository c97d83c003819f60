#===========================================================================
# catalog_sync/pricing/normalizer.py
# Price feed row → PriceRow, via an ordered list of column-detection rules.
#
# Feeds come from different suppliers/spreadsheets, so the price column is
# found by rules tried in order: declared source-currency columns, declared
# target-currency columns, then a numeric scan. Pass your own `rules` to
# support a new feed layout without touching the reconciler.
#===========================================================================
from __future__ import annotations

import re
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple, Union

from catalog_sync.models import PriceRow, RejectedRow
from catalog_sync.sync.components.util import get_ci, header_index, normalize_header, parse_number

SKU_KEYS = ["Part No", "PartNo", "Part_No", "SKU", "Code", "Part Number", "Article", "Art Nr", "Art.Nr"]
SOURCE_PRICE_KEYS = [
    "Price", "GBP", "RRP", "Price GBP", "GBP Price", "Unit Price", "Net Price", "List Price",
    "Pris (GBP)", "Pris GBP", "RRP GBP",
]
TARGET_PRICE_KEYS = ["SEK", "Price SEK", "Pris (SEK)", "Pris SEK", "Nytt pris (SEK)"]
STOCK_KEYS = ["Stock", "Stock Qty", "Qty Available", "Lager", "Lagersaldo"]

# headers that look like unit-of-issue / quantity fields
QUANTITY_HEADER_RE = re.compile(r"\b(uoi|qty|quantity|pack|unit|units|moq|antal)\b", re.I)


class ColumnRule:
    """
    One way of finding the price in a row.
    `currency` says whether the value is in the source currency (needs FX) or
    already in the target currency.
    """
    name = "rule"
    currency = "source"

    def extract(self, row: Mapping[str, Any], index: Dict[str, str], claimed: set) -> Optional[float]:
        raise NotImplementedError


class CandidateColumns(ColumnRule):
    """
    First declared column (case-insensitive) with a non-empty value wins. If
    that value does not parse, the rule does not match; later candidates are
    not consulted.
    """

    def __init__(self, name: str, candidates: Sequence[str], currency: str = "source"):
        self.name = name
        self.candidates = list(candidates)
        self.currency = currency

    def extract(self, row, index, claimed):
        for key in self.candidates:
            raw = get_ci(row, key, index)
            if raw is None or str(raw).strip() == "":
                continue
            return parse_number(raw)
        return None


class NumericScan(ColumnRule):
    """
    Best-effort fallback: first column holding a number within [low, high].
    Values ≤ 1.0 under a quantity-looking header (UOI, Qty, Pack…) are skipped
    so a unit-of-issue of 1 is not read as a price. Not reliable on
    adversarial headers; keep it last.
    """

    def __init__(self, name: str = "numeric_scan", low: float = 0.01, high: float = 100000.0, currency: str = "source"):
        self.name = name
        self.low = low
        self.high = high
        self.currency = currency

    def extract(self, row, index, claimed):
        for key, raw in row.items():
            if key in claimed:
                continue
            n = parse_number(raw)
            if n is None or not (self.low <= n <= self.high):
                continue
            if n <= 1.0 and QUANTITY_HEADER_RE.search(normalize_header(key)):
                continue
            return n
        return None


DEFAULT_RULES: List[ColumnRule] = [
    CandidateColumns("source_columns", SOURCE_PRICE_KEYS, currency="source"),
    CandidateColumns("target_columns", TARGET_PRICE_KEYS, currency="target"),
    NumericScan(),
]


def pick_sku(row: Mapping[str, Any], index: Optional[Dict[str, str]] = None) -> Tuple[str, Optional[str]]:
    """(sku, original header) or ("", None)."""
    idx = index if index is not None else header_index(row)
    for k in SKU_KEYS:
        found = idx.get(k.lower())
        if found is None:
            continue
        v = row[found]
        if v is not None and str(v).strip():
            return str(v).strip(), found
    return "", None


def _pick_stock(row, index) -> Tuple[Optional[int], Optional[str]]:
    for k in STOCK_KEYS:
        found = index.get(k.lower())
        if found is None:
            continue
        n = parse_number(row[found])
        if n is not None and n >= 0:
            return int(n), found
    return None, None


def normalize_row(
    row: Mapping[str, Any],
    rules: Optional[Sequence[ColumnRule]] = None,
    *,
    line: Optional[int] = None,
) -> Union[PriceRow, RejectedRow]:
    raw = dict(row or {})
    index = header_index(raw)

    sku, sku_key = pick_sku(raw, index)
    if not sku:
        return RejectedRow(reason="missing sku", line=line, raw=raw)

    stock, stock_key = _pick_stock(raw, index)
    claimed = {k for k in (sku_key, stock_key) if k is not None}

    for rule in rules if rules is not None else DEFAULT_RULES:
        amount = rule.extract(raw, index, claimed)
        if amount is None:
            continue
        if amount < 0:
            break
        kwargs = {"source_amount": amount} if rule.currency == "source" else {"target_amount": amount}
        return PriceRow(sku=sku, stock_quantity=stock, matched_rule=rule.name, line=line, **kwargs)

    return RejectedRow(reason="invalid price", line=line, raw=raw)


def normalize_rows(
    rows: Sequence[Mapping[str, Any]],
    rules: Optional[Sequence[ColumnRule]] = None,
    *,
    first_line: int = 1,
) -> Tuple[List[PriceRow], List[RejectedRow]]:
    accepted: List[PriceRow] = []
    rejected: List[RejectedRow] = []
    for i, row in enumerate(rows):
        res = normalize_row(row, rules, line=first_line + i)
        if isinstance(res, PriceRow):
            accepted.append(res)
        else:
            rejected.append(res)
    return accepted, rejected
