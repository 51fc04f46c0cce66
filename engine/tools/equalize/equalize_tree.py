"""
WBS tree builder.

Turns the flat, parent-referencing WBS list into a forest of TreeNodes with
per-proposal values, then rolls child totals up into their ancestors.

Nodes live in an arena (list + id index); parent/child relations are kept as
index lists while building and only materialized into ``TreeNode.children``
at the end, so no node ever holds a reference back to its parent.
"""

from dataclasses import dataclass, field
from typing import Iterator, Sequence

from tools.equalize.equalize_matrix import Matrix
from tools.equalize.equalize_models import Proposal, TreeNode, ValueCell, WbsNode


class WbsStructureError(ValueError):
    """The WBS snapshot is not a forest (duplicate ids or a parent cycle)."""


@dataclass
class WbsArena:
    nodes: list[TreeNode] = field(default_factory=list)
    index: dict[str, int] = field(default_factory=dict)
    children: list[list[int]] = field(default_factory=list)
    roots: list[int] = field(default_factory=list)


def _value_cell(linked_items: list) -> ValueCell:
    total = sum((item.item_total_price_subtotal or 0) for item in linked_items)
    return ValueCell(items=list(linked_items), total=total)


def _create_nodes(
    wbs_nodes: Sequence[WbsNode], matrix: Matrix, proposals: Sequence[Proposal]
) -> WbsArena:
    arena = WbsArena()
    for wbs in wbs_nodes:
        if wbs.id in arena.index:
            raise WbsStructureError(f"Duplicate WBS node id: {wbs.id}")

        items_for_node = matrix.get(wbs.id, {})
        values = {
            proposal.id: _value_cell(items_for_node.get(proposal.id, []))
            for proposal in proposals
        }
        arena.index[wbs.id] = len(arena.nodes)
        arena.nodes.append(
            TreeNode(
                id=wbs.id,
                caminho=wbs.caminho,
                item=wbs.item,
                nivel=wbs.nivel,
                values=values,
            )
        )
        arena.children.append([])
    return arena


def _link(arena: WbsArena, wbs_nodes: Sequence[WbsNode]) -> None:
    for idx, wbs in enumerate(wbs_nodes):
        parent_idx = arena.index.get(wbs.parent_id) if wbs.parent_id else None
        if parent_idx is None:
            arena.roots.append(idx)
        else:
            arena.children[parent_idx].append(idx)


def iter_post_order(children: Sequence[Sequence[int]], roots: Sequence[int]) -> Iterator[int]:
    """Yield arena indices children-first, roots in order."""
    for root in roots:
        stack = [(root, False)]
        while stack:
            idx, expanded = stack.pop()
            if expanded:
                yield idx
                continue
            stack.append((idx, True))
            for child in reversed(children[idx]):
                stack.append((child, False))


def _check_forest(arena: WbsArena) -> None:
    """Every node must hang off a root; anything else sits on a parent cycle."""
    reached = set(iter_post_order(arena.children, arena.roots))
    if len(reached) == len(arena.nodes):
        return
    stranded = [node.id for i, node in enumerate(arena.nodes) if i not in reached]
    preview = ", ".join(stranded[:10])
    if len(stranded) > 10:
        preview += f", ... ({len(stranded)} nodes)"
    raise WbsStructureError(f"WBS parent cycle detected involving: {preview}")


def _aggregate(arena: WbsArena, proposals: Sequence[Proposal]) -> None:
    for idx in iter_post_order(arena.children, arena.roots):
        node = arena.nodes[idx]
        for proposal in proposals:
            cell = node.values[proposal.id]
            for child_idx in arena.children[idx]:
                child_total = arena.nodes[child_idx].values[proposal.id].total
                if child_total > 0:
                    # Totals roll up, items stay on the node they were linked to
                    cell.total += child_total


def _materialize(arena: WbsArena) -> list[TreeNode]:
    for idx, child_indices in enumerate(arena.children):
        arena.nodes[idx].children = [arena.nodes[c] for c in child_indices]
    return [arena.nodes[r] for r in arena.roots]


def build_arena(
    wbs_nodes: Sequence[WbsNode], matrix: Matrix, proposals: Sequence[Proposal]
) -> WbsArena:
    """Create, link and aggregate nodes without materializing children."""
    arena = _create_nodes(wbs_nodes, matrix, proposals)
    _link(arena, wbs_nodes)
    _check_forest(arena)
    _aggregate(arena, proposals)
    return arena


def build_tree(
    wbs_nodes: Sequence[WbsNode], matrix: Matrix, proposals: Sequence[Proposal]
) -> list[TreeNode]:
    """
    Build the aggregated WBS forest.

    Args:
        wbs_nodes: Flat WBS list in display order
        matrix: Output of ``build_matrix``
        proposals: Every proposal being compared (one value cell each per node)

    Returns:
        Root TreeNodes in input order

    Raises:
        WbsStructureError: duplicate node ids or a parent cycle
    """
    return _materialize(build_arena(wbs_nodes, matrix, proposals))
