# catalog_sync/pricing/feed_reader.py
# --------------------------------------------------------------------------------------
# Uploaded price file (CSV / XLSX bytes) → list of {header: value} rows.
# Everything is read as text; number parsing is the normalizer's job.
# --------------------------------------------------------------------------------------
from __future__ import annotations

import base64
import binascii
import csv
import io
import logging
import zipfile
from typing import Any, Dict, List

import pandas as pd

from catalog_sync.errors import ValidationError
from catalog_sync.sync.components.util import normalize_header

logger = logging.getLogger("uvicorn.error")

EXCEL_SUFFIXES = (".xlsx", ".xlsm", ".xls")


def decode_base64(b64: str) -> bytes:
    # tolerate a data-URL prefix ("data:...;base64,")
    clean = b64.split(",")[-1] if "," in b64 else b64
    try:
        return base64.b64decode(clean, validate=False)
    except (binascii.Error, ValueError) as e:
        raise ValidationError("base64 payload could not be decoded") from e


def _frame_to_rows(df: pd.DataFrame) -> List[Dict[str, Any]]:
    df = df.rename(columns=lambda c: normalize_header(c))
    df = df.fillna("")
    rows = df.to_dict(orient="records")
    return [r for r in rows if any(str(v).strip() for v in r.values())]


def read_price_file(content: bytes, filename: str = "") -> List[Dict[str, Any]]:
    """
    Parse CSV (comma, semicolon or tab separated; sniffed) or the first sheet of
    an Excel workbook.
    """
    if not content:
        raise ValidationError("empty price file")
    name = (filename or "").lower()
    try:
        if name.endswith(EXCEL_SUFFIXES):
            df = pd.read_excel(io.BytesIO(content), sheet_name=0, dtype=str)
        else:
            df = pd.read_csv(
                io.BytesIO(content),
                sep=None,
                engine="python",
                dtype=str,
                encoding="utf-8-sig",
                skip_blank_lines=True,
                on_bad_lines="skip",
            )
    except (ValueError, UnicodeDecodeError, pd.errors.ParserError, pd.errors.EmptyDataError, csv.Error, zipfile.BadZipFile) as e:
        logger.warning("[PRICE] could not parse %s: %s", filename or "<upload>", e)
        raise ValidationError(f"could not read {filename or 'file'} as CSV/Excel") from e

    rows = _frame_to_rows(df)
    logger.info("[PRICE] read %d rows from %s (headers=%s)", len(rows), filename or "<upload>", list(df.columns)[:12])
    return rows
