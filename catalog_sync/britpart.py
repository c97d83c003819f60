#===========================================================================
# catalog_sync/britpart.py
# Britpart API interface module (source catalog).
# Reads category nodes and parts; every failure surfaces as UpstreamError so a tree
# collection can abort instead of planning on partial data.
#===========================================================================
from __future__ import annotations

import logging
import math
import re
from typing import Any, Dict, Iterable, List, Optional

import httpx

from catalog_sync.config import settings
from catalog_sync.errors import UpstreamError
from catalog_sync.logging_filters import truncate_body
from catalog_sync.models import SourceNode

logger = logging.getLogger("uvicorn.error")

MAX_PART_PAGES = 500

_FULL_ENDPOINT_RE = re.compile(r"/part/(getall|getcategories)(?:$|\?)", re.I)


def api_prefix(base: str) -> str:
    """
    BRITPART_BASE may point at a full endpoint (…/part/getcategories or …/part/getall);
    strip it back to the prefix so both endpoints can be addressed.
    """
    base = (base or "").rstrip("/")
    if _FULL_ENDPOINT_RE.search(base):
        return re.sub(r"/part/(getall|getcategories).*$", "", base, flags=re.I)
    return base


def _as_positive_int(v: Any) -> Optional[int]:
    if isinstance(v, bool):
        return None
    try:
        f = float(v)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(f) or f <= 0 or f != int(f):
        return None
    return int(f)


def child_ids_of(raw: Dict[str, Any]) -> List[int]:
    """Union of embedded `subcategories[].id` and the `subcategoryIds` list, in order, deduplicated."""
    out: List[int] = []
    seen = set()

    def add(values: Iterable[Any]):
        for v in values:
            n = _as_positive_int(v)
            if n is not None and n not in seen:
                seen.add(n)
                out.append(n)

    embedded = raw.get("subcategories")
    if isinstance(embedded, list):
        add(s.get("id") for s in embedded if isinstance(s, dict))
    ids = raw.get("subcategoryIds")
    if isinstance(ids, list):
        add(ids)
    return out


def parse_category(raw: Any, requested_id: int) -> SourceNode:
    if not isinstance(raw, dict):
        raise UpstreamError(f"Britpart category {requested_id}: malformed body", details={"id": requested_id})
    node_id = _as_positive_int(raw.get("id")) or requested_id
    title = raw.get("title")
    return SourceNode(
        id=node_id,
        title=str(title) if title is not None else None,
        child_ids=child_ids_of(raw),
    )


class BritpartClient:
    """
    Thin async client for the Britpart parts API.
    Use as `async with BritpartClient() as bp:`; pass `transport=` in tests.
    """

    def __init__(
        self,
        base: str | None = None,
        token: str | None = None,
        *,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base = api_prefix(base if base is not None else settings.BRITPART_BASE)
        self.token = token if token is not None else settings.BRITPART_TOKEN
        self._client = httpx.AsyncClient(
            timeout=timeout or settings.HTTP_TIMEOUT,
            verify=settings.HTTP_VERIFY_SSL,
            transport=transport,
        )

    async def __aenter__(self) -> "BritpartClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    def _require_env(self) -> None:
        if not self.base:
            raise UpstreamError("Missing setting: BRITPART_BASE")
        if not self.token:
            raise UpstreamError("Missing setting: BRITPART_TOKEN")

    async def _get_json(self, path: str, params: Dict[str, Any]) -> Any:
        self._require_env()
        url = f"{self.base}{path if path.startswith('/') else '/' + path}"
        query = {"token": self.token, **{k: v for k, v in params.items() if v is not None}}
        try:
            resp = await self._client.get(url, params=query)
        except httpx.HTTPError as e:
            raise UpstreamError(f"Britpart {path} request failed: {e}") from e
        if resp.status_code != 200:
            raise UpstreamError(
                f"Britpart {path} {resp.status_code}: {truncate_body(resp.text)}",
                status=resp.status_code,
            )
        try:
            return resp.json()
        except ValueError as e:
            raise UpstreamError(f"Britpart {path}: invalid JSON ({truncate_body(resp.text, 120)})") from e

    async def fetch_category(self, category_id: int) -> SourceNode:
        """GET /part/getcategories?id=… → SourceNode (title may be missing)."""
        raw = await self._get_json("/part/getcategories", {"id": category_id})
        node = parse_category(raw, category_id)
        logger.debug("[BP] category %s '%s' children=%d", node.id, node.display_title, len(node.child_ids))
        return node

    async def fetch_parts(self, subcategory_id: int, *, max_pages: int = MAX_PART_PAGES) -> List[Dict[str, Any]]:
        """All parts of one subcategory via /part/getall (paged by `totalPages`)."""
        parts: List[Dict[str, Any]] = []
        page = 1
        while True:
            raw = await self._get_json("/part/getall", {"subcategoryId": subcategory_id, "page": page})
            if not isinstance(raw, dict):
                raise UpstreamError(f"Britpart getall {subcategory_id}: malformed body", details={"id": subcategory_id})
            batch = [p for p in (raw.get("parts") or []) if isinstance(p, dict)]
            parts.extend(batch)
            total_pages = _as_positive_int(raw.get("totalPages")) or 1
            if not batch or page >= total_pages:
                break
            if page >= max_pages:
                raise UpstreamError(f"Britpart getall {subcategory_id}: more than {max_pages} pages")
            page += 1
        logger.debug("[BP] subcategory %s: %d parts over %d page(s)", subcategory_id, len(parts), page)
        return parts
