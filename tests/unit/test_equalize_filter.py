"""
Unit tests for the relevance filter.

Checks pruning of value-less branches, preservation of ancestor chains,
idempotence and that the aggregated input forest is left untouched.
"""

from conftest import item_row, link_row, wbs_row

from tools.equalize.equalize import build_equalization
from tools.equalize.equalize_filter import filter_relevant
from tools.equalize.equalize_matrix import build_matrix
from tools.equalize.equalize_models import LinkageRow, Proposal, WbsNode
from tools.equalize.equalize_tree import build_tree


def _build(nodes, links, proposal_ids=("P1",)):
    wbs = [WbsNode.model_validate(r) for r in nodes]
    matrix = build_matrix([LinkageRow.model_validate(r) for r in links])
    proposals = [Proposal(id=pid) for pid in proposal_ids]
    return build_tree(wbs, matrix, proposals)


def _ids(nodes):
    out = []
    for node in nodes:
        out.append(node.id)
        out.extend(_ids(node.children))
    return out


def _subtree_has_value(node):
    return node.has_value() or any(_subtree_has_value(c) for c in node.children)


def test_scenario_zero_sibling_is_dropped():
    tree = _build(
        [wbs_row("R"), wbs_row("C1", "R", 2), wbs_row("C2", "R", 2)],
        [link_row("C1", item_row("i1", "P1", 100.0))],
    )
    filtered = filter_relevant(tree)

    assert _ids(filtered) == ["R", "C1"]


def test_deep_value_keeps_whole_ancestor_chain():
    tree = _build(
        [
            wbs_row("L1"),
            wbs_row("L2", "L1", 2),
            wbs_row("L3", "L2", 3),
            wbs_row("L4", "L3", 4),
            wbs_row("L3b", "L2", 3),
        ],
        [link_row("L4", item_row("deep", "P1", 1.0))],
    )
    assert _ids(filter_relevant(tree)) == ["L1", "L2", "L3", "L4"]


def test_roots_without_value_are_dropped():
    tree = _build(
        [wbs_row("A"), wbs_row("B"), wbs_row("C")],
        [link_row("B", item_row("b", "P2", 3.0))],
        proposal_ids=("P1", "P2"),
    )
    assert _ids(filter_relevant(tree)) == ["B"]


def test_hidden_only_node_is_filtered_out():
    """A node whose only link is hidden behaves as if it were unlinked."""
    tree = _build(
        [wbs_row("R"), wbs_row("N", "R", 2), wbs_row("M", "R", 2)],
        [
            link_row("N", item_row("h", "P1", 1000.0, hidden=True)),
            link_row("M", item_row("m", "P1", 5.0)),
        ],
    )
    filtered = filter_relevant(tree)

    assert _ids(filtered) == ["R", "M"]
    assert filtered[0].values["P1"].total == 5


def test_filter_is_idempotent():
    tree = _build(
        [wbs_row("R"), wbs_row("C1", "R", 2), wbs_row("C2", "R", 2), wbs_row("Z")],
        [link_row("C2", item_row("i", "P1", 8.0))],
    )
    once = filter_relevant(tree)
    assert filter_relevant(once) == once


def test_filter_does_not_mutate_input():
    tree = _build(
        [wbs_row("R"), wbs_row("C1", "R", 2), wbs_row("C2", "R", 2)],
        [link_row("C1", item_row("i", "P1", 8.0))],
    )
    before = [node.model_dump() for node in tree]
    filter_relevant(tree)

    assert [node.model_dump() for node in tree] == before
    assert [c.id for c in tree[0].children] == ["C1", "C2"]


def test_kept_nodes_have_value_and_dropped_subtrees_have_none():
    tree = _build(
        [
            wbs_row("A"),
            wbs_row("A1", "A", 2),
            wbs_row("A2", "A", 2),
            wbs_row("A21", "A2", 3),
            wbs_row("B"),
            wbs_row("B1", "B", 2),
        ],
        [
            link_row("A21", item_row("x", "P1", 2.0)),
            link_row("B1", None),
        ],
    )
    filtered = filter_relevant(tree)
    kept = set(_ids(filtered))

    def check(nodes):
        for node in nodes:
            if node.id in kept:
                assert node.has_value()
            else:
                assert not _subtree_has_value(node)
            check(node.children)

    check(tree)
    assert kept == {"A", "A2", "A21"}


def test_empty_forest_stays_empty():
    assert filter_relevant([]) == []


def test_null_link_contributes_nothing_end_to_end():
    nodes = [WbsNode.model_validate(wbs_row("N"))]
    rows = [LinkageRow.model_validate(link_row("N", None))]
    assert build_equalization(nodes, [Proposal(id="P1")], rows) == []
