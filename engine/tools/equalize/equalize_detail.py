"""
Per-proposal comparison of a single WBS node.

Two views share the same lowest/highest rules:
- ``compare_row``: one row of the equalization table (aggregated totals)
- ``compare_node_detail``: the drill-down of a node's own linked items

Rules: only positive totals take part; the lowest positive total is flagged
"lowest", the highest is flagged "highest" only when more than one proposal
has a positive total.
"""

from enum import Enum
from dataclasses import dataclass, field
from typing import Optional, Sequence

from tools.equalize.equalize_matrix import group_by_proposal
from tools.equalize.equalize_models import (
    LinkageRow,
    Proposal,
    ProposalItem,
    TreeNode,
    WbsNode,
)


class Highlight(str, Enum):
    NONE = "none"
    LOWEST = "lowest"
    HIGHEST = "highest"
    INTERMEDIATE = "intermediate"


@dataclass
class TotalsRange:
    """Min/max over the positive totals of one comparison."""

    lowest: Optional[float] = None
    highest: float = 0.0
    count: int = 0

    @classmethod
    def of(cls, totals: Sequence[float]) -> "TotalsRange":
        positive = [t for t in totals if t > 0]
        if not positive:
            return cls()
        return cls(lowest=min(positive), highest=max(positive), count=len(positive))

    def is_lowest(self, total: float) -> bool:
        return total > 0 and total == self.lowest

    def is_highest(self, total: float) -> bool:
        return self.count > 1 and total == self.highest

    def highlight(self, total: float) -> Highlight:
        if total <= 0:
            return Highlight.NONE
        if self.is_lowest(total):
            return Highlight.LOWEST
        if self.is_highest(total):
            return Highlight.HIGHEST
        return Highlight.INTERMEDIATE

    def bar_percent(self, total: float) -> float:
        if self.highest <= 0:
            return 0.0
        return total / self.highest * 100


def compare_row(node: TreeNode, proposals: Sequence[Proposal]) -> dict:
    """Highlight flags and bar widths for one equalization table row."""
    totals = {p.id: node.values[p.id].total if p.id in node.values else 0.0 for p in proposals}
    rng = TotalsRange.of(list(totals.values()))

    cells = {}
    for proposal in proposals:
        total = totals[proposal.id]
        cells[proposal.id] = {
            "total": total,
            "is_lowest": rng.is_lowest(total),
            "is_highest": rng.is_highest(total),
            "bar_percent": rng.bar_percent(total),
        }
    return {
        "id": node.id,
        "has_linked_items": node.has_linked_items(),
        "cells": cells,
    }


@dataclass
class ProposalColumn:
    """One proposal's side of the node drill-down."""

    proposta_id: str
    construtora_nome: str
    items: list[ProposalItem] = field(default_factory=list)
    total: float = 0.0
    highlight: Highlight = Highlight.NONE

    def to_dict(self) -> dict:
        return {
            "proposta_id": self.proposta_id,
            "construtora_nome": self.construtora_nome,
            "total": self.total,
            "highlight": self.highlight.value,
            "items": [item.model_dump(mode="json") for item in self.items],
        }


@dataclass
class NodeDetail:
    node: WbsNode
    columns: list[ProposalColumn] = field(default_factory=list)
    lowest_total: Optional[float] = None
    highest_total: Optional[float] = None

    def to_dict(self) -> dict:
        return {
            "node": self.node.model_dump(mode="json"),
            "lowest_total": self.lowest_total,
            "highest_total": self.highest_total,
            "columns": [col.to_dict() for col in self.columns],
        }


def compare_node_detail(
    node: WbsNode,
    linkage_rows: Sequence[LinkageRow],
    proposals: Sequence[Proposal],
) -> NodeDetail:
    """
    Group a node's linked items by proposal and flag lowest/highest totals.

    Args:
        node: The WBS node being inspected
        linkage_rows: Linkage rows of that node only
        proposals: Proposals in column order

    Returns:
        NodeDetail with one column per proposal
    """
    grouped = group_by_proposal(linkage_rows)
    detail = NodeDetail(node=node)

    for proposal in proposals:
        items = grouped.get(proposal.id, [])
        detail.columns.append(
            ProposalColumn(
                proposta_id=proposal.id,
                construtora_nome=proposal.construtora_nome,
                items=items,
                total=sum((item.item_total_price_subtotal or 0) for item in items),
            )
        )

    rng = TotalsRange.of([col.total for col in detail.columns])
    for col in detail.columns:
        col.highlight = rng.highlight(col.total)
    detail.lowest_total = rng.lowest
    detail.highest_total = rng.highest if rng.count else None
    return detail
