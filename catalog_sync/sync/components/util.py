# catalog_sync/sync/components/util.py
from __future__ import annotations

import inspect
import math
import re
from typing import Any, Dict, Mapping, Optional

_WS_RE = re.compile(r"\s+")


async def maybe_await(x):
    if inspect.isawaitable(x):
        return await x
    return x


def normalize_header(h: Any) -> str:
    """Strip BOM, collapse whitespace."""
    return _WS_RE.sub(" ", str(h or "").replace("\ufeff", "")).strip()


def header_index(row: Mapping[str, Any]) -> Dict[str, str]:
    """lowercased normalized header → original key (first one wins)."""
    out: Dict[str, str] = {}
    for k in row.keys():
        out.setdefault(normalize_header(k).lower(), k)
    return out


def get_ci(row: Mapping[str, Any], key: str, index: Optional[Dict[str, str]] = None) -> Any:
    idx = index if index is not None else header_index(row)
    found = idx.get(normalize_header(key).lower())
    return row[found] if found is not None else None


def parse_number(v: Any) -> Optional[float]:
    """'1 234,50' → 1234.5; anything non-numeric or non-finite → None."""
    if v is None or isinstance(v, bool):
        return None
    if isinstance(v, (int, float)):
        f = float(v)
    else:
        s = _WS_RE.sub("", str(v)).replace(",", ".")
        if not s:
            return None
        try:
            f = float(s)
        except ValueError:
            return None
    return f if math.isfinite(f) else None
