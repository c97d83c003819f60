import asyncio

import pytest

from catalog_sync.errors import ConsistencyWarning
from catalog_sync.models import CollectedNode
from catalog_sync.sync.category_plan import category_slug, plan_categories


def _nodes(*specs):
    return [CollectedNode(source_id=s, title=t, parent_source_id=p) for s, t, p in specs]


def _plan(woo, nodes, **kw):
    return asyncio.run(plan_categories(woo, nodes, slug_prefix="bp-", **kw))


def test_slug_is_deterministic():
    assert category_slug(42, "bp-") == "bp-42"
    assert category_slug("42", "bp-") == category_slug(42, "bp-")


def test_empty_store_plans_only_creates(woo):
    plan = _plan(woo, _nodes((1, "Root", None), (2, "Brakes", 1)))
    assert [p.action for p in plan] == ["create", "create"]
    assert [p.slug for p in plan] == ["bp-1", "bp-2"]
    assert plan[0].parent_target_id == 0
    assert woo.writes == []


def test_matching_categories_are_noop(woo):
    root = woo.add_category("Root", "bp-1", 0)
    woo.add_category("Brakes", "bp-2", root)
    plan = _plan(woo, _nodes((1, "Root", None), (2, "Brakes", 1)))
    assert [p.action for p in plan] == ["noop", "noop"]
    assert plan[1].parent_target_id == root


def test_renamed_or_moved_categories_are_updates(woo):
    root = woo.add_category("Root", "bp-1", 0)
    woo.add_category("Old name", "bp-2", root)
    woo.add_category("Pads", "bp-3", 0)  # should sit under Root
    plan = _plan(woo, _nodes((1, "Root", None), (2, "Brakes", 1), (3, "Pads", 1)))
    assert [p.action for p in plan] == ["noop", "update", "update"]
    assert plan[1].current_name == "Old name"
    assert plan[2].current_parent_id == 0
    assert plan[2].parent_target_id == root


def test_existing_child_of_new_parent_must_move(woo):
    woo.add_category("Brakes", "bp-2", 0)
    plan = _plan(woo, _nodes((1, "Root", None), (2, "Brakes", 1)))
    assert [p.action for p in plan] == ["create", "update"]
    assert plan[1].warning is None


def test_root_parent_option_moves_roots(woo):
    woo.add_category("Root", "bp-1", 0)
    plan = _plan(woo, _nodes((1, "Root", None)), root_parent_id=77)
    assert plan[0].action == "update"
    assert plan[0].parent_target_id == 77


def test_unresolved_parent_is_flagged(woo):
    with pytest.warns(ConsistencyWarning):
        plan = _plan(woo, _nodes((5, "Orphan", 99)))
    assert plan[0].action == "create"
    assert plan[0].warning and "99" in plan[0].warning
