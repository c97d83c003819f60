import asyncio

import pytest

from catalog_sync.errors import UpstreamError, ValidationError
from catalog_sync.sync.category_tree import collect_tree, normalize_roots


def test_cycle_and_diamond_visit_each_node_once(make_source):
    # 1 -> 2, 3 ; 2 -> 4 ; 3 -> 4 (diamond) ; 4 -> 1 (cycle)
    src = make_source({
        1: ("Root", [2, 3]),
        2: ("Brakes", [4]),
        3: ("Engine", [4]),
        4: ("Pads", [1]),
    })
    nodes = asyncio.run(collect_tree(src, [1]))

    assert [n.source_id for n in nodes] == [1, 2, 3, 4]
    assert sorted(src.calls) == [1, 2, 3, 4]
    by_id = {n.source_id: n for n in nodes}
    assert by_id[1].parent_source_id is None
    assert by_id[4].parent_source_id == 2
    assert by_id[4].depth == 2


def test_parents_are_emitted_before_children(make_source):
    src = make_source({
        10: ("A", [11, 12]),
        11: ("B", [13]),
        12: ("C", []),
        13: ("D", [14]),
        14: ("E", []),
    })
    nodes = asyncio.run(collect_tree(src, [10]))
    position = {n.source_id: i for i, n in enumerate(nodes)}
    for n in nodes:
        if n.parent_source_id is not None:
            assert position[n.parent_source_id] < position[n.source_id]


def test_missing_title_gets_synthesized_label(make_source):
    src = make_source({5: (None, [])})
    nodes = asyncio.run(collect_tree(src, [5]))
    assert nodes[0].title == "Category 5"


def test_duplicate_roots_are_collected_once(make_source):
    src = make_source({1: ("Root", [2]), 2: ("Child", [])})
    nodes = asyncio.run(collect_tree(src, [1, "1", 2]))
    assert [n.source_id for n in nodes] == [1, 2]
    # 2 was requested as a root before it was reached from 1
    assert nodes[1].parent_source_id is None


def test_upstream_failure_aborts_collection(make_source):
    src = make_source({1: ("Root", [2, 3]), 2: ("A", []), 3: ("B", [])}, fail_on={3})
    with pytest.raises(UpstreamError):
        asyncio.run(collect_tree(src, [1]))


def test_node_limit_aborts_collection(make_source):
    src = make_source({1: ("Root", [2, 3]), 2: ("A", []), 3: ("B", [])})
    with pytest.raises(UpstreamError):
        asyncio.run(collect_tree(src, [1], max_nodes=2))


@pytest.mark.parametrize("roots", [[], None, ["abc"], [0], [-3], [1.5], [True], [float("inf")], [float("nan")]])
def test_invalid_roots_are_rejected(roots):
    with pytest.raises(ValidationError):
        normalize_roots(roots)


def test_roots_are_coerced_and_deduplicated():
    assert normalize_roots(["3", 3, 7.0, 9]) == [3, 7, 9]
