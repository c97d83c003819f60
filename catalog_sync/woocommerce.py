#==========================================================================================
# catalog_sync/woocommerce.py
# WooCommerce API interface module (target store).
# Categories are matched by slug, products by SKU. Category writes raise
# TargetWriteError (including a 2xx whose body is not JSON); product
# create/update report status instead of raising so a batch can fold them
# into its counters.
#==========================================================================================
from __future__ import annotations

import html
import logging
from typing import Any, Dict, List, Optional

import httpx

from catalog_sync.config import settings
from catalog_sync.errors import TargetWriteError
from catalog_sync.logging_filters import truncate_body

logger = logging.getLogger("uvicorn.error")

PER_PAGE = 100


def _to_int(v: Any, default: int = 0) -> int:
    try:
        return int(v or 0)
    except (TypeError, ValueError):
        return default


def _json_object(resp: httpx.Response, what: str) -> Dict[str, Any]:
    # a 2xx with a PHP notice in front of the JSON is still a failed write
    try:
        data = resp.json()
    except ValueError as e:
        raise TargetWriteError(
            f"{what}: invalid JSON ({truncate_body(resp.text, 120)})",
            status=resp.status_code,
            body=resp.text,
        ) from e
    if not isinstance(data, dict):
        raise TargetWriteError(f"{what}: unexpected body", status=resp.status_code, body=resp.text)
    return data


def _outcome(resp: httpx.Response) -> Dict[str, Any]:
    try:
        body: Any = resp.json() if resp.content else None
    except ValueError:
        body = resp.text
    return {"ok": 200 <= resp.status_code < 300, "status": resp.status_code, "body": body}


class WooClient:
    """
    Async client for /wp-json/wc/v3 with consumer key/secret auth.
    One httpx.AsyncClient per run; use `async with WooClient() as wc:`.
    """

    def __init__(
        self,
        base_url: str | None = None,
        api_key: str | None = None,
        api_secret: str | None = None,
        *,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        base = (base_url if base_url is not None else settings.WC_BASE_URL).rstrip("/")
        self.api_root = f"{base}/wp-json/wc/v3"
        auth = (
            api_key if api_key is not None else settings.WC_API_KEY,
            api_secret if api_secret is not None else settings.WC_API_SECRET,
        )
        self._client = httpx.AsyncClient(
            auth=auth,
            timeout=timeout or settings.HTTP_TIMEOUT,
            verify=settings.HTTP_VERIFY_SSL,
            transport=transport,
        )

    async def __aenter__(self) -> "WooClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    def _url(self, path: str) -> str:
        return f"{self.api_root}{path if path.startswith('/') else '/' + path}"

    async def _get_list(self, path: str, params: Dict[str, Any]) -> List[Dict[str, Any]]:
        resp = await self._client.get(self._url(path), params=params)
        if resp.status_code != 200:
            raise TargetWriteError(
                f"Woo GET {path} {resp.status_code}: {truncate_body(resp.text)}",
                status=resp.status_code,
                body=resp.text,
            )
        try:
            data = resp.json()
        except ValueError as e:
            raise TargetWriteError(f"Woo GET {path}: invalid JSON", status=resp.status_code, body=resp.text) from e
        return data if isinstance(data, list) else []

    # ---- Categories ----

    async def list_categories(self) -> List[Dict[str, Any]]:
        """Fetch all product categories (paginated)."""
        out: List[Dict[str, Any]] = []
        page = 1
        while True:
            batch = await self._get_list("/products/categories", {"per_page": PER_PAGE, "page": page})
            out.extend(batch)
            if len(batch) < PER_PAGE:
                break
            page += 1
        return out

    async def find_category_by_slug(self, slug: str) -> Optional[int]:
        batch = await self._get_list("/products/categories", {"slug": slug, "per_page": 1})
        for cat in batch:
            # Woo does a LIKE-ish match on some installs; insist on the exact slug
            if str(cat.get("slug") or "") == slug and cat.get("id"):
                return int(cat["id"])
        return None

    async def get_category(self, category_id: int) -> Dict[str, Any]:
        resp = await self._client.get(self._url(f"/products/categories/{category_id}"))
        if resp.status_code != 200:
            raise TargetWriteError(
                f"Woo category {category_id} {resp.status_code}: {truncate_body(resp.text)}",
                status=resp.status_code,
                body=resp.text,
            )
        data = _json_object(resp, f"Woo category {category_id}")
        return {
            "id": _to_int(data.get("id"), category_id),
            # Woo stores names HTML-escaped ("A &amp; B")
            "name": html.unescape(str(data.get("name") or "")),
            "parent": _to_int(data.get("parent")),
        }

    async def create_category(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        resp = await self._client.post(self._url("/products/categories"), json=payload)
        if resp.status_code not in (200, 201):
            raise TargetWriteError(
                f"Woo create category '{payload.get('slug')}' {resp.status_code}: {truncate_body(resp.text)}",
                status=resp.status_code,
                body=resp.text,
            )
        data = _json_object(resp, f"Woo create category '{payload.get('slug')}'")
        if not data.get("id"):
            raise TargetWriteError(f"Woo create category '{payload.get('slug')}': no id in response")
        logger.info("[WC] created category %s (%s) parent=%s", data["id"], payload.get("slug"), payload.get("parent"))
        return {"id": int(data["id"])}

    async def update_category(self, category_id: int, payload: Dict[str, Any]) -> None:
        resp = await self._client.put(self._url(f"/products/categories/{category_id}"), json=payload)
        if resp.status_code not in (200, 201):
            raise TargetWriteError(
                f"Woo update category {category_id} {resp.status_code}: {truncate_body(resp.text)}",
                status=resp.status_code,
                body=resp.text,
            )
        logger.info("[WC] updated category %s %s", category_id, payload)

    # ---- Products ----

    async def find_product_by_sku(self, sku: str) -> Optional[Dict[str, Any]]:
        batch = await self._get_list("/products", {"sku": sku, "per_page": 1})
        if not batch:
            return None
        p = batch[0]
        return {"id": _to_int(p.get("id")), "regular_price": p.get("regular_price"), "status": p.get("status")}

    async def list_products(
        self,
        *,
        page: int = 1,
        per_page: int = 10,
        search: str = "",
        status: str = "",
        category: Optional[int] = None,
        orderby: str = "title",
        order: str = "asc",
    ) -> Dict[str, Any]:
        """One page of products, trimmed for a table view, plus X-WP-Total/X-WP-TotalPages."""
        params: Dict[str, Any] = {
            "page": max(1, page),
            "per_page": max(1, min(PER_PAGE, per_page)),
            "orderby": orderby,
            "order": "desc" if order == "desc" else "asc",
        }
        if search:
            params["search"] = search
        if status:
            params["status"] = status
        if category:
            params["category"] = category
        resp = await self._client.get(self._url("/products"), params=params)
        if resp.status_code != 200:
            raise TargetWriteError(
                f"Woo GET /products {resp.status_code}: {truncate_body(resp.text)}",
                status=resp.status_code,
                body=resp.text,
            )
        try:
            items = resp.json()
        except ValueError as e:
            raise TargetWriteError("Woo GET /products: invalid JSON", status=resp.status_code, body=resp.text) from e
        rows = []
        for p in items if isinstance(items, list) else []:
            cats = p.get("categories") if isinstance(p.get("categories"), list) else []
            images = p.get("images") if isinstance(p.get("images"), list) else []
            rows.append({
                "id": p.get("id"),
                "sku": p.get("sku"),
                "name": html.unescape(str(p.get("name") or "")),
                "price": p.get("price"),
                "stock_quantity": p.get("stock_quantity"),
                "stock_status": p.get("stock_status"),
                "status": p.get("status"),
                "categories": ", ".join(html.unescape(str(c.get("name") or "")) for c in cats),
                "category_ids": [c.get("id") for c in cats],
                "image": images[0].get("src") if images else None,
            })
        return {
            "items": rows,
            "total": _to_int(resp.headers.get("x-wp-total")),
            "pages": _to_int(resp.headers.get("x-wp-totalpages")),
            "page": params["page"],
            "per_page": params["per_page"],
        }

    async def create_product(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        """POST /products; returns {ok, status, body} for any HTTP status."""
        resp = await self._client.post(self._url("/products"), json=payload)
        return _outcome(resp)

    async def update_product(self, product_id: int, patch: Dict[str, Any]) -> Dict[str, Any]:
        """PUT /products/{id}; returns {ok, status, body} for any HTTP status."""
        resp = await self._client.put(self._url(f"/products/{product_id}"), json=patch)
        return _outcome(resp)
