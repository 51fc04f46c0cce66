"""
Linkage indexer.

Reshapes the flat "eap_equalizacao" rows into the comparison matrix:

    wbs_id -> proposta_id -> [LinkedItem, ...]
"""

from typing import Iterable

from tools.equalize.equalize_models import LinkageRow, LinkedItem

Matrix = dict[str, dict[str, list[LinkedItem]]]


def _is_comparable(row: LinkageRow) -> bool:
    """Unresolved links and items hidden from equalization never count."""
    item = row.eap_proposta
    return item is not None and not item.hidden_from_equalization


def build_matrix(linkage_rows: Iterable[LinkageRow]) -> Matrix:
    """
    Group linked items by WBS node and proposal, keeping input order.

    Args:
        linkage_rows: Linkage records, each with an optional embedded item

    Returns:
        Nested mapping of wbs id -> proposal id -> linked items
    """
    matrix: Matrix = {}
    for row in linkage_rows:
        if not _is_comparable(row):
            continue
        item = row.eap_proposta
        by_proposal = matrix.setdefault(row.eap_padrao_id, {})
        by_proposal.setdefault(item.proposta_id, []).append(item.to_linked())
    return matrix


def group_by_proposal(linkage_rows: Iterable[LinkageRow]) -> dict:
    """Full proposal items for a single node's rows, keyed by proposal id."""
    grouped: dict = {}
    for row in linkage_rows:
        if not _is_comparable(row):
            continue
        item = row.eap_proposta
        grouped.setdefault(item.proposta_id, []).append(item)
    return grouped
