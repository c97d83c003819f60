#=================================================================
# catalog_sync/service.py
# Entry points used by the API layer (and scripts/tests):
#   plan_category_sync → apply_category_sync   (Britpart tree → Woo categories)
#   reconcile_prices                           (price feed rows → Woo products)
#   import_products                            (Britpart parts → Woo products)
# Clients are created per call unless injected.
#=================================================================
from __future__ import annotations

import asyncio
import logging
from contextlib import AsyncExitStack
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

from catalog_sync.britpart import BritpartClient
from catalog_sync.models import PlanItem, PricingConfig, ReconciliationResult
from catalog_sync.pricing.normalizer import ColumnRule, normalize_rows
from catalog_sync.pricing.reconciler import ProgressCallback, reconcile_rows
from catalog_sync.sync.category_apply import apply_plan
from catalog_sync.sync.category_plan import plan_categories
from catalog_sync.sync.category_tree import collect_tree
from catalog_sync.sync.product_import import DEFAULT_STOCK, import_products as _import_products
from catalog_sync.woocommerce import WooClient

logger = logging.getLogger("uvicorn.error")


async def _client(stack: AsyncExitStack, injected, factory):
    if injected is not None:
        return injected
    return await stack.enter_async_context(factory())


# ---- CATEGORY SYNC ----

async def plan_category_sync(
    roots: Iterable[Any],
    *,
    source=None,
    target=None,
    root_parent_id: int = 0,
) -> List[PlanItem]:
    """Collect the tree under `roots` and diff it against Woo. No writes."""
    async with AsyncExitStack() as stack:
        bp = await _client(stack, source, BritpartClient)
        nodes = await collect_tree(bp, roots)
        wc = await _client(stack, target, WooClient)
        return await plan_categories(wc, nodes, root_parent_id=root_parent_id)


async def apply_category_sync(
    plan: Sequence[PlanItem],
    dry_run: bool,
    *,
    target=None,
    root_parent_id: int = 0,
) -> ReconciliationResult:
    async with AsyncExitStack() as stack:
        wc = await _client(stack, target, WooClient)
        return await apply_plan(wc, plan, dry_run=dry_run, root_parent_id=root_parent_id)


async def sync_categories(
    roots: Iterable[Any],
    dry_run: bool = False,
    *,
    source=None,
    target=None,
    root_parent_id: int = 0,
) -> ReconciliationResult:
    async with AsyncExitStack() as stack:
        wc = await _client(stack, target, WooClient)
        plan = await plan_category_sync(roots, source=source, target=wc, root_parent_id=root_parent_id)
        return await apply_category_sync(plan, dry_run, target=wc, root_parent_id=root_parent_id)


# ---- PRICE RECONCILIATION ----

def _window(total: int, offset: int, limit_rows: int) -> tuple[int, int]:
    start = max(0, min(total, int(offset or 0)))
    limit = max(0, int(limit_rows or 0))
    end = min(start + limit, total) if limit > 0 else total
    return start, end


async def reconcile_prices(
    rows: Sequence[Mapping[str, Any]],
    config: PricingConfig,
    concurrency: int = 1,
    dry_run: bool = False,
    publish: bool = False,
    *,
    target=None,
    offset: int = 0,
    limit_rows: int = 0,
    chunk_size: Optional[int] = None,
    skip_unchanged: bool = False,
    rules: Optional[Sequence[ColumnRule]] = None,
    cancel_event: Optional[asyncio.Event] = None,
    on_progress: Optional[ProgressCallback] = None,
) -> ReconciliationResult:
    """
    Normalize raw feed rows (window `offset`..`offset+limit_rows`), then patch
    prices. Rejected rows are counted as skipped with their reason.
    `next_offset` is None once the end of the feed is reached.
    """
    total = len(rows)
    start, end = _window(total, offset, limit_rows)
    window = rows[start:end]

    result = ReconciliationResult(
        kind="prices",
        dry_run=dry_run,
        total=total,
        range={"offset": start, "end": end},
        next_offset=end if end < total else None,
        publish=publish,
        pricing=config.model_dump(),
        detect={"headers": list(rows[0].keys()) if rows else []},
    )

    accepted, rejected = normalize_rows(window, rules, first_line=start + 1)
    for rej in rejected:
        result.attempted += 1
        result.processed += 1
        result.skipped += 1
        result.add_sample("skipped", {"reason": rej.reason, "line": rej.line, "raw": rej.raw})
    if rejected:
        logger.info("[PRICE] %d of %d rows rejected by the normalizer", len(rejected), len(window))

    async with AsyncExitStack() as stack:
        wc = await _client(stack, target, WooClient)
        result = await reconcile_rows(
            wc,
            accepted,
            config,
            concurrency=concurrency,
            dry_run=dry_run,
            publish=publish,
            chunk_size=chunk_size,
            skip_unchanged=skip_unchanged,
            cancel_event=cancel_event,
            on_progress=on_progress,
            result=result,
        )

    logger.info(
        "[PRICE] done (dry_run=%s) %d/%d succeeded: updated=%d skipped=%d notFound=%d failed=%d",
        dry_run, result.succeeded, len(window), result.updated, result.skipped, result.not_found, result.failed,
    )
    return result


# ---- PRODUCT IMPORT ----

async def import_products(
    category_ids: Iterable[Any],
    dry_run: bool = False,
    *,
    source=None,
    target=None,
    publish: bool = False,
    default_stock: int = DEFAULT_STOCK,
    woo_category_id: Optional[int] = None,
    limit: int = 0,
) -> ReconciliationResult:
    async with AsyncExitStack() as stack:
        bp = await _client(stack, source, BritpartClient)
        wc = await _client(stack, target, WooClient)
        return await _import_products(
            bp, wc, category_ids,
            dry_run=dry_run, publish=publish, default_stock=default_stock,
            woo_category_id=woo_category_id, limit=limit,
        )


def summarize(result: ReconciliationResult) -> Dict[str, Any]:
    """API payload: the result plus the `ok` flag callers expect."""
    out = result.to_dict()
    out["ok"] = True
    return out
