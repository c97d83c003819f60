# catalog_sync/sync/product_import.py
# ==========================================
# Britpart parts (per subcategory) → Woo products, matched by SKU.
# ==========================================
from __future__ import annotations

import logging
import re
from typing import Any, Dict, Iterable, List, Optional

import httpx

from catalog_sync.errors import TargetWriteError, UpstreamError, ValidationError
from catalog_sync.logging_filters import truncate_body
from catalog_sync.models import ReconciliationResult
from catalog_sync.sync.category_plan import category_slug
from catalog_sync.sync.category_tree import normalize_roots

logger = logging.getLogger("uvicorn.error")

SKU_FIELDS = ("sku", "code", "partNumber", "partNo")
DEFAULT_STOCK = 100
# existing products only get category, stock and publish state; their content is left alone
UPDATE_FIELDS = ("categories", "manage_stock", "stock_status", "stock_quantity", "status")

_HTTP_URL_RE = re.compile(r"^https?://", re.I)


def pick_sku(part: Dict[str, Any]) -> str:
    for key in SKU_FIELDS:
        v = part.get(key)
        if isinstance(v, (str, int)) and not isinstance(v, bool) and str(v).strip():
            return str(v).strip()
    return ""


def image_urls(part: Dict[str, Any]) -> List[str]:
    """`imageUrls`, else `images[].url|src|href`; only absolute http(s) links."""
    raw = part.get("imageUrls")
    if not isinstance(raw, list):
        images = part.get("images") if isinstance(part.get("images"), list) else []
        raw = [
            (img.get("url") or img.get("src") or img.get("href")) if isinstance(img, dict) else img
            for img in images
        ]
    out: List[str] = []
    for u in raw:
        if isinstance(u, str) and _HTTP_URL_RE.match(u.strip()) and u.strip() not in out:
            out.append(u.strip())
    return out


def build_product_payload(
    part: Dict[str, Any],
    sku: str,
    *,
    category_id: Optional[int],
    default_stock: int,
    publish: bool,
) -> Dict[str, Any]:
    """
    Create payload. No price is sent: prices belong to the price reconciler,
    and an import must not reset them.
    """
    name = str(part.get("name") or part.get("title") or "").strip() or sku
    payload: Dict[str, Any] = {
        "name": name,
        "sku": sku,
        "description": str(part.get("description") or ""),
        "manage_stock": True,
        "stock_status": "instock",
        "stock_quantity": default_stock,
    }
    if category_id:
        payload["categories"] = [{"id": int(category_id)}]
    urls = image_urls(part)
    if urls:
        payload["images"] = [{"src": u} for u in urls]
    if publish:
        payload["status"] = "publish"
    return payload


async def _category_for(target, subcategory_id: int, cache: Dict[int, Optional[int]], result: ReconciliationResult) -> Optional[int]:
    if subcategory_id not in cache:
        slug = category_slug(subcategory_id)
        cid = await target.find_category_by_slug(slug)
        cache[subcategory_id] = cid
        if cid is None:
            result.warnings += 1
            result.add_sample("warnings", {
                "subcategory_id": subcategory_id,
                "warning": f"no Woo category '{slug}'; products imported without a category",
            })
            logger.warning("[IMPORT] no Woo category %s; run the category sync first", slug)
    return cache[subcategory_id]


async def import_products(
    source,
    target,
    category_ids: Iterable[Any],
    *,
    dry_run: bool = False,
    publish: bool = False,
    default_stock: int = DEFAULT_STOCK,
    woo_category_id: Optional[int] = None,
    limit: int = 0,
) -> ReconciliationResult:
    """
    Fetch every part of the given Britpart subcategories and create or update
    the matching Woo product (by SKU). Products go into `woo_category_id` when
    given, otherwise into the category the category sync made for their
    subcategory (`bp-{id}`).

    A Britpart failure aborts before anything is written. Per-product failures
    are counted and sampled; the run carries on. Dry run does the SKU lookups
    and counts would-be creates/updates without writing.
    """
    ids = list(category_ids or [])
    if not ids:
        raise ValidationError("categoryIds required")
    subcategories = normalize_roots(ids)
    if default_stock < 0:
        raise ValidationError("defaultStock must be >= 0")
    if limit < 0:
        raise ValidationError("limit must be >= 0")

    # collect first so a Britpart failure never leaves a half-imported run
    parts: List[tuple[int, Dict[str, Any]]] = []
    for sub_id in subcategories:
        try:
            batch = await source.fetch_parts(sub_id)
        except httpx.HTTPError as e:
            raise UpstreamError(f"Britpart parts {sub_id}: {e}") from e
        parts.extend((sub_id, p) for p in batch)
    if limit:
        parts = parts[:limit]

    result = ReconciliationResult(kind="products", dry_run=dry_run, total=len(parts), publish=publish)
    categories: Dict[int, Optional[int]] = {}
    seen: set[str] = set()

    for sub_id, part in parts:
        result.attempted += 1
        result.processed += 1
        sku = pick_sku(part)
        if not sku:
            result.skipped += 1
            result.add_sample("skipped", {"subcategory_id": sub_id, "reason": "missing sku"})
            continue
        if sku in seen:
            result.skipped += 1
            result.add_sample("skipped", {"sku": sku, "reason": "duplicate sku"})
            continue
        seen.add(sku)

        try:
            if woo_category_id:
                cat_id: Optional[int] = int(woo_category_id)
            else:
                cat_id = await _category_for(target, sub_id, categories, result)
            payload = build_product_payload(
                part, sku, category_id=cat_id, default_stock=default_stock, publish=publish,
            )
            existing = await target.find_product_by_sku(sku)
            pid = existing.get("id") if existing else None
            if pid:
                bucket = "updated"
                payload = {k: v for k, v in payload.items() if k in UPDATE_FIELDS}
            else:
                bucket = "created"

            if dry_run:
                setattr(result, bucket, getattr(result, bucket) + 1)
                result.add_sample(bucket, {"sku": sku, "id": pid, "preview": payload, "dry_run": True})
                continue

            if pid:
                res = await target.update_product(pid, payload)
            else:
                res = await target.create_product(payload)
            if res.get("ok"):
                setattr(result, bucket, getattr(result, bucket) + 1)
                body = res.get("body")
                new_id = body.get("id") if isinstance(body, dict) else None
                result.add_sample(bucket, {"sku": sku, "id": pid or new_id})
            else:
                body = res.get("body")
                text = body if isinstance(body, str) else str(body or f"{bucket[:-1]} failed")
                result.failed += 1
                result.add_sample("failed", {"sku": sku, "id": pid, "status": res.get("status"), "error": truncate_body(text)})
                logger.error("[IMPORT] %s %s failed: %s", "update" if pid else "create", sku, res.get("status"))
        except (TargetWriteError, httpx.HTTPError) as e:
            result.failed += 1
            result.add_sample("failed", {"sku": sku, "error": truncate_body(str(e)) or type(e).__name__})
            logger.error("[IMPORT] %s failed: %s", sku, e)

    logger.info(
        "[IMPORT] done (dry_run=%s) parts=%d created=%d updated=%d skipped=%d failed=%d",
        dry_run, len(parts), result.created, result.updated, result.skipped, result.failed,
    )
    return result
