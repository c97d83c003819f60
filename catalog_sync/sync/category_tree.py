# catalog_sync/sync/category_tree.py
# ==========================================
# Britpart category tree → flat, parent-first node list
# ==========================================
from __future__ import annotations

import logging
from collections import deque
from typing import Any, Iterable, List, Optional

import httpx

from catalog_sync.config import settings
from catalog_sync.errors import UpstreamError, ValidationError
from catalog_sync.models import CollectedNode

logger = logging.getLogger("uvicorn.error")


def normalize_roots(roots: Iterable[Any]) -> List[int]:
    """Coerce root ids to positive ints, dropping duplicates (first occurrence wins)."""
    out: List[int] = []
    for r in roots or []:
        try:
            n = int(r)
        except (TypeError, ValueError, OverflowError):
            raise ValidationError(f"invalid root id: {r!r}")
        if n <= 0 or isinstance(r, bool) or (isinstance(r, float) and r != n):
            raise ValidationError(f"invalid root id: {r!r}")
        if n not in out:
            out.append(n)
    if not out:
        raise ValidationError("rootIds required")
    return out


async def collect_tree(client, roots: Iterable[Any], *, max_nodes: Optional[int] = None) -> List[CollectedNode]:
    """
    Breadth-first walk from `roots` using `client.fetch_category`.

    Each source id is fetched and emitted at most once (the graph is not trusted
    to be acyclic) and always after the node that queued it. Any fetch failure
    aborts the whole walk: no partial tree is returned.
    """
    root_ids = normalize_roots(roots)
    limit = max_nodes if max_nodes is not None else settings.BRITPART_MAX_NODES

    seen: set[int] = set()
    queue: deque[tuple[int, Optional[int], int]] = deque((rid, None, 0) for rid in root_ids)
    out: List[CollectedNode] = []

    while queue:
        node_id, parent_id, depth = queue.popleft()
        if node_id in seen:
            continue
        seen.add(node_id)

        try:
            node = await client.fetch_category(node_id)
        except UpstreamError:
            logger.error("[TREE] fetch of category %s failed; aborting collection", node_id)
            raise
        except httpx.HTTPError as e:
            logger.error("[TREE] fetch of category %s failed; aborting collection", node_id)
            raise UpstreamError(f"Britpart category {node_id}: {e}") from e

        out.append(CollectedNode(
            source_id=node_id,
            title=node.display_title,
            parent_source_id=parent_id,
            depth=depth,
        ))
        if limit and len(out) > limit:
            raise UpstreamError(f"category tree exceeds {limit} nodes", details={"roots": root_ids})

        for child_id in node.child_ids:
            if child_id not in seen:
                queue.append((child_id, node_id, depth + 1))

    logger.info("[TREE] collected %d nodes from roots %s", len(out), root_ids)
    return out
