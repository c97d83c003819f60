#===========================================================================
# catalog_sync/pricing/reconciler.py
# Apply normalized price rows to Woo products with a fixed-size worker pool.
#
# Workers pull the next row index from a shared cursor, so no row is handled
# twice and none is skipped. Completion order is arbitrary; the result only
# holds counters and bounded samples.
#===========================================================================
from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, Optional, Sequence, Union

import httpx

from catalog_sync.config import settings
from catalog_sync.errors import TargetWriteError, ValidationError
from catalog_sync.logging_filters import truncate_body
from catalog_sync.models import PriceRow, PricingConfig, ReconciliationResult
from catalog_sync.sync.components.price import compute_target_price, prices_equal
from catalog_sync.sync.components.results import ResultAccumulator
from catalog_sync.sync.components.util import maybe_await

logger = logging.getLogger("uvicorn.error")

MAX_CHUNK = 20000

ProgressCallback = Callable[[Dict[str, Any]], Union[None, Awaitable[None]]]


def clamp_chunk_size(chunk_size: Optional[int]) -> int:
    n = int(chunk_size or settings.PRICE_CHUNK_SIZE or 500)
    return max(1, min(MAX_CHUNK, n))


def build_patch(target_price: str, row: PriceRow, publish: bool) -> Dict[str, Any]:
    patch: Dict[str, Any] = {"regular_price": target_price}
    if publish:
        patch["status"] = "publish"
    if row.stock_quantity is not None:
        patch["manage_stock"] = True
        patch["stock_quantity"] = row.stock_quantity
    return patch


async def _reconcile_one(
    client,
    row: PriceRow,
    config: PricingConfig,
    acc: ResultAccumulator,
    *,
    dry_run: bool,
    publish: bool,
    skip_unchanged: bool,
) -> None:
    target_price = compute_target_price(row, config)
    try:
        product = await client.find_product_by_sku(row.sku)
        if not product:
            await acc.record("not_found", {"sku": row.sku, "reason": "not found"})
            return

        pid = product.get("id")
        current = product.get("regular_price")
        if skip_unchanged and prices_equal(current, target_price):
            await acc.record("skipped", {"id": pid, "sku": row.sku, "price": current, "reason": "unchanged"})
            return

        if dry_run:
            await acc.record("updated", {"id": pid, "sku": row.sku, "from": current, "to": target_price, "dry_run": True})
            return

        res = await client.update_product(pid, build_patch(target_price, row, publish))
        if res.get("ok"):
            await acc.record("updated", {"id": pid, "sku": row.sku, "from": current, "to": target_price})
        else:
            body = res.get("body")
            text = body if isinstance(body, str) else str(body or "update failed")
            await acc.record("failed", {"sku": row.sku, "status": res.get("status"), "error": truncate_body(text)})
    except (TargetWriteError, httpx.HTTPError) as e:
        # timeouts land here too: a failed row, not a failed batch
        await acc.record("failed", {"sku": row.sku, "error": truncate_body(str(e)) or type(e).__name__})


async def reconcile_rows(
    client,
    rows: Sequence[PriceRow],
    config: PricingConfig,
    *,
    concurrency: int = 1,
    dry_run: bool = False,
    publish: bool = False,
    chunk_size: Optional[int] = None,
    skip_unchanged: bool = False,
    cancel_event: Optional[asyncio.Event] = None,
    on_progress: Optional[ProgressCallback] = None,
    result: Optional[ReconciliationResult] = None,
) -> ReconciliationResult:
    """
    Patch `regular_price` (and optionally status/stock) for every row.
    Not found → not_found; non-2xx / timeout → failed; dry run → counted as
    updated without writing. Never raises for a single row.
    """
    try:
        workers = int(concurrency)
    except (TypeError, ValueError):
        raise ValidationError(f"invalid concurrency: {concurrency!r}")
    if workers < 1:
        raise ValidationError("concurrency must be >= 1")

    result = result or ReconciliationResult(kind="prices", dry_run=dry_run, total=len(rows))
    result.dry_run = dry_run
    result.publish = publish
    acc = ResultAccumulator(result)
    size = clamp_chunk_size(chunk_size)
    total = len(rows)

    for start in range(0, total, size):
        if cancel_event is not None and cancel_event.is_set():
            break
        chunk = rows[start:start + size]
        cursor = 0

        async def worker() -> None:
            nonlocal cursor
            while True:
                if cancel_event is not None and cancel_event.is_set():
                    return
                if cursor >= len(chunk):
                    return
                i = cursor
                cursor += 1
                await acc.record("attempted")
                await _reconcile_one(
                    client, chunk[i], config, acc,
                    dry_run=dry_run, publish=publish, skip_unchanged=skip_unchanged,
                )
                await acc.record("processed")

        await asyncio.gather(*(worker() for _ in range(min(workers, len(chunk)))))

        logger.info(
            "[PRICE] progress %d/%d updated=%d skipped=%d notFound=%d failed=%d",
            min(start + len(chunk), total), total,
            result.updated, result.skipped, result.not_found, result.failed,
        )
        if on_progress is not None:
            await maybe_await(on_progress(await acc.snapshot()))

    if cancel_event is not None and cancel_event.is_set():
        result.cancelled = True
        logger.warning("[PRICE] cancelled after %d/%d rows", result.processed, total)
    return result
