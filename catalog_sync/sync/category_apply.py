# catalog_sync/sync/category_apply.py
# ==========================================
# Apply a category plan to Woo, parents before children.
# ==========================================
from __future__ import annotations

import logging
from typing import Dict, Optional, Sequence

import httpx

from catalog_sync.errors import TargetWriteError
from catalog_sync.models import PlanItem, ReconciliationResult

logger = logging.getLogger("uvicorn.error")


def _fail(result: ReconciliationResult, item: PlanItem, err: Exception) -> None:
    result.failed += 1
    result.add_sample("failed", {
        "source_id": item.source_id,
        "slug": item.slug,
        "action": item.action,
        "error": str(err),
    })
    logger.error("[APPLY] %s %s failed: %s", item.action, item.slug, err)


async def apply_plan(
    client,
    plan: Sequence[PlanItem],
    *,
    dry_run: bool = False,
    root_parent_id: int = 0,
) -> ReconciliationResult:
    """
    Walk the plan in order. `id_map` (Britpart id → Woo id) is rebuilt on every
    call and only written by this loop.

    A child whose parent failed (or never resolved) is placed at the top level
    (parent 0) and flagged via `parent_fallback` / `result.fallbacks`.
    In dry-run mode creates/updates only do the slug read but still count.
    """
    result = ReconciliationResult(kind="categories", dry_run=dry_run, total=len(plan))
    id_map: Dict[int, int] = {}
    pending: set[int] = set()  # dry-run creates: will exist, id unknown

    for item in plan:
        result.attempted += 1

        if item.action == "noop":
            try:
                if item.target_id is None:
                    item.target_id = await client.find_category_by_slug(item.slug)
            except (TargetWriteError, httpx.HTTPError) as e:
                _fail(result, item, e)
                continue
            if item.target_id is not None:
                id_map[item.source_id] = int(item.target_id)
            result.skipped += 1
            result.add_sample("skipped", {"source_id": item.source_id, "slug": item.slug, "target_id": item.target_id})
            continue

        # ---- resolve the parent ----
        if item.parent_source_id is None:
            parent: int = int(root_parent_id or item.parent_target_id or 0)
        elif item.parent_source_id in id_map:
            parent = id_map[item.parent_source_id]
        elif item.parent_source_id in pending:
            parent = 0
        else:
            parent = 0
            item.parent_fallback = True
            result.fallbacks.append(item.source_id)
            result.warnings += 1
            result.add_sample("warnings", {
                "source_id": item.source_id,
                "slug": item.slug,
                "warning": f"parent {item.parent_source_id} unresolved; placed at top level",
            })
            logger.warning("[APPLY] %s: parent %s unresolved, falling back to top level", item.slug, item.parent_source_id)
        item.parent_target_id = parent

        try:
            if item.action == "update" and item.target_id is None:
                item.target_id = await client.find_category_by_slug(item.slug)

            if dry_run:
                if item.action == "create":
                    existing = await client.find_category_by_slug(item.slug)
                    if existing is not None:
                        id_map[item.source_id] = int(existing)
                        item.target_id = int(existing)
                    else:
                        pending.add(item.source_id)
                    result.created += 1
                    result.add_sample("created", _sample(item, parent, dry_run=True))
                else:
                    if item.target_id is not None:
                        id_map[item.source_id] = int(item.target_id)
                    else:
                        pending.add(item.source_id)
                    result.updated += 1
                    result.add_sample("updated", _sample(item, parent, dry_run=True))
                continue

            if item.action == "update" and item.target_id is not None:
                # the category exists even if this write fails; children can still attach
                id_map[item.source_id] = int(item.target_id)
                await client.update_category(int(item.target_id), {"name": item.name, "parent": parent})
                result.updated += 1
                result.add_sample("updated", _sample(item, parent))
                continue

            # create, or an update whose category vanished since planning
            created = await client.create_category({"name": item.name, "slug": item.slug, "parent": parent})
            item.target_id = int(created["id"])
            id_map[item.source_id] = item.target_id
            result.created += 1
            result.add_sample("created", _sample(item, parent))
        except (TargetWriteError, httpx.HTTPError) as e:
            _fail(result, item, e)

    result.mapping = [{"source_id": p.source_id, "target_id": id_map.get(p.source_id)} for p in plan]
    logger.info(
        "[APPLY] done (dry_run=%s) created=%d updated=%d skipped=%d failed=%d fallbacks=%d",
        dry_run, result.created, result.updated, result.skipped, result.failed, len(result.fallbacks),
    )
    return result


def _sample(item: PlanItem, parent: int, dry_run: bool = False) -> Dict[str, Optional[object]]:
    out: Dict[str, Optional[object]] = {
        "source_id": item.source_id,
        "slug": item.slug,
        "name": item.name,
        "parent": parent,
        "target_id": item.target_id,
    }
    if item.parent_fallback:
        out["parent_fallback"] = True
    if dry_run:
        out["dry_run"] = True
    return out
