#=======================================================================================
# catalog_sync/routes.py
# FastAPI routes for Britpart → WooCommerce category sync, product import and price reconciliation.
#
# All endpoints live under /api/* and (apart from /api/health) require HTTP Basic (admin).
# In main_app.py, include with NO extra prefix to avoid /api/api duplication.
#=======================================================================================

import asyncio
import json
import secrets
import logging
from typing import Any, Dict, List

from fastapi import APIRouter, Query, Request, Depends, HTTPException, status
from fastapi.security import HTTPBasic, HTTPBasicCredentials
from fastapi.responses import JSONResponse
from pydantic import ValidationError as PydanticValidationError

from catalog_sync import audit_log, jobs, service
from catalog_sync.britpart import BritpartClient
from catalog_sync.config import settings
from catalog_sync.errors import CatalogSyncError, TargetWriteError, UpstreamError, ValidationError
from catalog_sync.models import PricingConfig
from catalog_sync.pricing.feed_reader import decode_base64, read_price_file
from catalog_sync.woocommerce import WooClient

logger = logging.getLogger("uvicorn.error")

router = APIRouter(prefix="/api", tags=["Catalog Sync API"])

# ---------------------------
# HTTP Basic (admin)
# ---------------------------
security = HTTPBasic()

def verify_admin(credentials: HTTPBasicCredentials = Depends(security)) -> str:
    ok_user = secrets.compare_digest(credentials.username or "", settings.ADMIN_USER or "")
    ok_pass = secrets.compare_digest(credentials.password or "", settings.ADMIN_PASS or "")
    if not (ok_user and ok_pass):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
            headers={"WWW-Authenticate": "Basic"},
        )
    return credentials.username

# ---------------------------
# Helpers
# ---------------------------
async def _safe_json(req: Request) -> Dict[str, Any]:
    """Best-effort JSON body parsing; anything unparsable is an empty body."""
    try:
        body = await req.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        return {}
    return body if isinstance(body, dict) else {}

def _get_bool(payload: Dict[str, Any], *keys: str, default: bool = False) -> bool:
    for k in keys:
        if k in payload:
            v = payload.get(k)
            if isinstance(v, str):
                return v.strip().lower() in {"1", "true", "yes", "on", "y"}
            return bool(v)
    return default

def _get_int(payload: Dict[str, Any], *keys: str, default: int = 0) -> int:
    for k in keys:
        if payload.get(k) not in (None, ""):
            try:
                return int(float(payload[k]))
            except (TypeError, ValueError, OverflowError):
                raise ValidationError(f"{k} must be a number")
    return default

def _first(payload: Dict[str, Any], *keys: str, default: Any = None) -> Any:
    for k in keys:
        if payload.get(k) not in (None, ""):
            return payload[k]
    return default

def _error_response(e: CatalogSyncError) -> JSONResponse:
    content = e.to_dict()
    if isinstance(e, UpstreamError):
        content["where"] = "britpart"
    elif isinstance(e, TargetWriteError):
        content["where"] = "woocommerce"
    return JSONResponse(status_code=e.status_code, content=content)

def _pricing_from(payload: Dict[str, Any]) -> PricingConfig:
    try:
        return PricingConfig(
            fx_rate=_first(payload, "fx", "fxRate", default=settings.PRICE_FX),
            markup_pct=_first(payload, "markupPct", "markup", default=settings.PRICE_MARKUP_PCT),
            rounding_step=_first(payload, "step", "roundStep", default=settings.PRICE_ROUND_STEP),
            rounding_mode=_first(payload, "roundMode", "round", default=settings.PRICE_ROUND_MODE),
        )
    except PydanticValidationError as e:
        raise ValidationError("invalid pricing parameters", details={"errors": e.errors(include_url=False, include_context=False)})

def _root_ids(payload: Dict[str, Any], *keys: str) -> List[Any]:
    raw = _first(payload, *(keys or ("rootIds", "roots", "ids")), default=[])
    if isinstance(raw, (str, int)):
        raw = [s for s in str(raw).replace(";", ",").split(",") if s.strip()]
    return list(raw)

# ----------------------------------------------------------------------
# Health / logs
# ----------------------------------------------------------------------

@router.get("/health")
async def api_health():
    """Configuration check only; no upstream calls."""
    bp_ok = bool(settings.BRITPART_BASE and settings.BRITPART_TOKEN)
    wc_ok = bool(settings.WC_BASE_URL and settings.WC_API_KEY and settings.WC_API_SECRET)
    return JSONResponse(content={
        "ok": bp_ok and wc_ok,
        "britpart": {"configured": bp_ok},
        "woocommerce": {"configured": wc_ok},
    })

@router.get("/logs")
async def api_logs(user: str = Depends(verify_admin)):
    return JSONResponse(content={"entries": audit_log.get_audit_log()})

# ----------------------------------------------------------------------
# Browsing
# ----------------------------------------------------------------------

@router.get("/britpart/categories")
async def api_britpart_categories(parentId: int = Query(3, gt=0), user: str = Depends(verify_admin)):
    """Direct children of a Britpart category (id + title)."""
    try:
        async with BritpartClient() as bp:
            parent = await bp.fetch_category(parentId)
            children = await asyncio.gather(*(bp.fetch_category(cid) for cid in parent.child_ids))
    except CatalogSyncError as e:
        return _error_response(e)
    return JSONResponse(content={
        "ok": True,
        "parentId": parent.id,
        "title": parent.display_title,
        "children": [{"id": c.id, "title": c.display_title, "hasChildren": bool(c.child_ids)} for c in children],
    })

@router.get("/woo/categories")
async def api_woo_categories(user: str = Depends(verify_admin)):
    try:
        async with WooClient() as wc:
            cats = await wc.list_categories()
    except CatalogSyncError as e:
        return _error_response(e)
    return JSONResponse(content={"ok": True, "count": len(cats), "categories": cats})

# ----------------------------------------------------------------------
# Category sync
# ----------------------------------------------------------------------

@router.post("/categories/plan")
async def api_categories_plan(request: Request, user: str = Depends(verify_admin)):
    """
    Body: { "rootIds": [..], "parentWooId"?: int }
    Returns the plan without writing anything.
    """
    payload = await _safe_json(request)
    try:
        parent_woo = _get_int(payload, "parentWooId", "parent_woo_id", default=0)
        plan = await service.plan_category_sync(_root_ids(payload), root_parent_id=parent_woo)
    except CatalogSyncError as e:
        return _error_response(e)
    counts = {a: sum(1 for p in plan if p.action == a) for a in ("create", "update", "noop")}
    return JSONResponse(content={"ok": True, "counts": counts, "items": [p.model_dump() for p in plan]})

@router.post("/categories/sync")
async def api_categories_sync(request: Request, user: str = Depends(verify_admin)):
    """
    Body: { "rootIds": [..], "dryRun" | "dry_run": bool (default true), "parentWooId"?: int }
    """
    payload = await _safe_json(request)
    dry_run = _get_bool(payload, "dryRun", "dry_run", default=True)
    try:
        parent_woo = _get_int(payload, "parentWooId", "parent_woo_id", default=0)
        result = await service.sync_categories(_root_ids(payload), dry_run, root_parent_id=parent_woo)
    except CatalogSyncError as e:
        return _error_response(e)
    out = service.summarize(result)
    audit_log.record_run("categories.sync", user, out)
    return JSONResponse(content=out)

# ----------------------------------------------------------------------
# Price reconciliation
# ----------------------------------------------------------------------

async def _reconcile(payload: Dict[str, Any], rows: List[Dict[str, Any]], user: str, source: str):
    config = _pricing_from(payload)
    opts = {
        "concurrency": _get_int(payload, "concurrency", default=settings.PRICE_CONCURRENCY),
        "dry_run": _get_bool(payload, "dryRun", "dry_run", default=True),
        "publish": _get_bool(payload, "publish", default=False),
        "offset": _get_int(payload, "offset", default=0),
        "limit_rows": _get_int(payload, "limitRows", "limit_rows", default=0),
        "chunk_size": _get_int(payload, "batchSize", "chunkSize", default=0) or None,
        "skip_unchanged": _get_bool(payload, "skipUnchanged", "skip_unchanged", default=False),
    }
    if opts["concurrency"] < 1:
        raise ValidationError("concurrency must be >= 1")
    blocking = _get_bool(payload, "blocking", default=True)

    if blocking:
        result = await service.reconcile_prices(rows, config, **opts)
        out = service.summarize(result)
        audit_log.record_run(f"prices.{source}", user, out)
        return JSONResponse(content=out)

    async def runner(cancel_event, on_progress):
        result = await service.reconcile_prices(rows, config, cancel_event=cancel_event, on_progress=on_progress, **opts)
        out = service.summarize(result)
        audit_log.record_run(f"prices.{source}", user, out)
        return out

    request_echo = dict(opts)
    request_echo.update({"rows": len(rows), "pricing": config.model_dump(), "source": source})
    job_id = await jobs.submit_job("prices", request_echo, runner)
    return JSONResponse(
        status_code=202,
        content={"job_id": job_id, "status": "queued"},
        headers={"Location": f"/api/prices/jobs/{job_id}"},
    )

@router.post("/prices/reconcile")
async def api_prices_reconcile(request: Request, user: str = Depends(verify_admin)):
    """
    Body:
      {
        "rows": [ {header: value, ...}, ... ],
        "fx", "markupPct", "step", "roundMode",
        "concurrency", "dryRun" (default true), "publish",
        "offset", "limitRows", "batchSize", "skipUnchanged",
        "blocking": bool (default true)  # false → 202 + job id, poll /api/prices/jobs/{id}
      }
    """
    payload = await _safe_json(request)
    rows = payload.get("rows")
    try:
        if not isinstance(rows, list) or not all(isinstance(r, dict) for r in rows):
            raise ValidationError("rows must be a list of objects")
        return await _reconcile(payload, rows, user, "reconcile")
    except CatalogSyncError as e:
        return _error_response(e)

@router.post("/prices/upload")
async def api_prices_upload(request: Request, user: str = Depends(verify_admin)):
    """Body: { "filename": "prices.xlsx", "base64": "...", ...same options as /prices/reconcile }"""
    payload = await _safe_json(request)
    try:
        b64 = payload.get("base64") or payload.get("data")
        if not b64 or not isinstance(b64, str):
            raise ValidationError("base64 file content required")
        filename = str(payload.get("filename") or "")
        rows = read_price_file(decode_base64(b64), filename)
        return await _reconcile(payload, rows, user, "upload")
    except CatalogSyncError as e:
        return _error_response(e)

# ----------------------------------------------------------------------
# Products
# ----------------------------------------------------------------------

_PRODUCT_SORT = {"name": "title", "title": "title", "price": "price", "date": "date", "id": "id"}

@router.get("/products")
async def api_products(
    q: str = "",
    status_filter: str = Query("", alias="status"),
    category: int = Query(0, ge=0),
    sortBy: str = "name",
    sortDir: str = "asc",
    page: int = Query(1, ge=1),
    perPage: int = Query(25, ge=1, le=100),
    user: str = Depends(verify_admin),
):
    """One page of Woo products for the admin table; totals come from Woo's X-WP-* headers."""
    try:
        async with WooClient() as wc:
            out = await wc.list_products(
                page=page,
                per_page=perPage,
                search=q.strip(),
                status=status_filter.strip(),
                category=category or None,
                orderby=_PRODUCT_SORT.get(sortBy.lower(), "title"),
                order="desc" if sortDir.lower() == "desc" else "asc",
            )
    except CatalogSyncError as e:
        return _error_response(e)
    return JSONResponse(content={"ok": True, **out})

@router.post("/products/import")
async def api_products_import(request: Request, user: str = Depends(verify_admin)):
    """
    Body: { "categoryIds": [..], "dryRun" (default true), "publish",
            "defaultStock" (default 100), "wooCategoryId"?, "limit"? }
    """
    payload = await _safe_json(request)
    try:
        result = await service.import_products(
            _root_ids(payload, "categoryIds", "category_ids"),
            _get_bool(payload, "dryRun", "dry_run", "debug", default=True),
            publish=_get_bool(payload, "publish", default=False),
            default_stock=_get_int(payload, "defaultStock", "default_stock", default=100),
            woo_category_id=_get_int(payload, "wooCategoryId", "woo_category_id", default=0) or None,
            limit=_get_int(payload, "limit", default=0),
        )
    except CatalogSyncError as e:
        return _error_response(e)
    out = service.summarize(result)
    audit_log.record_run("products.import", user, out)
    return JSONResponse(content=out)

# ----------------------------------------------------------------------
# Background jobs
# ----------------------------------------------------------------------

@router.get("/prices/jobs")
async def api_price_jobs(user: str = Depends(verify_admin)):
    return JSONResponse(content={"jobs": await jobs.list_jobs()})

@router.get("/prices/jobs/{job_id}")
async def api_price_job(job_id: str, user: str = Depends(verify_admin)):
    rec = await jobs.get_job(job_id)
    if not rec:
        raise HTTPException(status_code=404, detail="job not found")
    return JSONResponse(content=rec)

@router.post("/prices/jobs/{job_id}/cancel")
async def api_price_job_cancel(job_id: str, user: str = Depends(verify_admin)):
    job_status = await jobs.cancel_job(job_id)
    if job_status is None:
        raise HTTPException(status_code=404, detail="job not found")
    return JSONResponse(content={"ok": True, "job_id": job_id, "status": job_status})
