# catalog_sync/sync/category_plan.py
# ==========================================
# Collected Britpart nodes → create / update / noop plan against Woo.
# Read-only: safe to run as a preview.
# ==========================================
from __future__ import annotations

import logging
import warnings
from typing import Dict, List, Optional, Sequence

from catalog_sync.config import settings
from catalog_sync.errors import ConsistencyWarning
from catalog_sync.models import CollectedNode, PlanItem

logger = logging.getLogger("uvicorn.error")


def category_slug(source_id: int, prefix: Optional[str] = None) -> str:
    """Stable Woo slug for a Britpart category id."""
    p = settings.CATEGORY_SLUG_PREFIX if prefix is None else prefix
    return f"{p}{int(source_id)}"


async def plan_categories(
    client,
    nodes: Sequence[CollectedNode],
    *,
    root_parent_id: int = 0,
    slug_prefix: Optional[str] = None,
) -> List[PlanItem]:
    """
    Classify each node (in collector order, parents first):
      create → no Woo category carries the slug yet
      update → it exists but its name or parent differs from what we want
      noop   → it exists and matches
    """
    resolved: Dict[int, int] = {}   # source id → Woo id, for nodes that already exist
    pending: set[int] = set()       # source ids that will be created
    plan: List[PlanItem] = []

    for node in nodes:
        slug = category_slug(node.source_id, slug_prefix)
        name = node.title
        warning = None

        if node.parent_source_id is None:
            desired_parent: Optional[int] = int(root_parent_id or 0)
        elif node.parent_source_id in resolved:
            desired_parent = resolved[node.parent_source_id]
        elif node.parent_source_id in pending:
            desired_parent = None
        else:
            desired_parent = None
            warning = f"parent {node.parent_source_id} of {node.source_id} not resolved before child"
            warnings.warn(warning, ConsistencyWarning, stacklevel=2)
            logger.warning("[PLAN] %s; comparing against top level", warning)

        target_id = await client.find_category_by_slug(slug)
        if target_id is None:
            pending.add(node.source_id)
            plan.append(PlanItem(
                source_id=node.source_id,
                slug=slug,
                name=name,
                parent_source_id=node.parent_source_id,
                parent_target_id=desired_parent,
                action="create",
                warning=warning,
            ))
            continue

        current = await client.get_category(target_id)
        current_name = current.get("name")
        current_parent = int(current.get("parent") or 0)
        resolved[node.source_id] = int(target_id)

        parent_pending = node.parent_source_id is not None and node.parent_source_id in pending
        if parent_pending:
            # parent gets a brand-new id on apply, so this node must move
            changed = True
        else:
            changed = current_name != name or current_parent != int(desired_parent or 0)

        plan.append(PlanItem(
            source_id=node.source_id,
            slug=slug,
            name=name,
            parent_source_id=node.parent_source_id,
            parent_target_id=desired_parent,
            action="update" if changed else "noop",
            target_id=int(target_id),
            current_name=current_name,
            current_parent_id=current_parent,
            warning=warning,
        ))

    counts = {a: sum(1 for p in plan if p.action == a) for a in ("create", "update", "noop")}
    logger.info("[PLAN] %d items: create=%d update=%d noop=%d", len(plan), counts["create"], counts["update"], counts["noop"])
    return plan
