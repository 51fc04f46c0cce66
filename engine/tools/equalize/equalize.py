"""
Equalization tool entry points.

Each ``*_main`` function loads a fresh snapshot through the store, runs the
comparison logic and returns a JSON-ready dict for ``api.handle()``:
- equalization_main: aggregated + filtered WBS comparison tree
- equalization_detail_main: drill-down of one WBS node
- wbs_reference_main / proposals_main / proposal_detail_main: read views
- item_tag_main / item_hidden_main: optimistic item edits
"""

from __future__ import annotations

import time
from typing import Any, Dict, Optional, Sequence

from utils.core.log import pid_tool_logger, set_logger, get_logger
from utils.core.errors import _make_error_payload, _not_found_payload
from tools.equalize import equalize_store as store
from tools.equalize.equalize_detail import compare_node_detail, compare_row
from tools.equalize.equalize_edits import ItemEdit, ItemEditSession
from tools.equalize.equalize_filter import filter_relevant
from tools.equalize.equalize_matrix import build_matrix
from tools.equalize.equalize_models import (
    ItemTag,
    LinkageRow,
    Proposal,
    TreeNode,
    WbsNode,
)
from tools.equalize.equalize_sections import group_items_by_section
from tools.equalize.equalize_tree import build_tree


def build_equalization(
    wbs_nodes: Sequence[WbsNode],
    proposals: Sequence[Proposal],
    linkage_rows: Sequence[LinkageRow],
) -> list[TreeNode]:
    """Index links, build and aggregate the WBS forest, then prune empty branches."""
    matrix = build_matrix(linkage_rows)
    return filter_relevant(build_tree(wbs_nodes, matrix, proposals))


def _walk(nodes: Sequence[TreeNode]):
    stack = list(reversed(nodes))
    while stack:
        node = stack.pop()
        yield node
        stack.extend(reversed(node.children))


def _bind_logger(
    tool_name: str,
    package_id: Optional[str],
    remote_ip: Optional[str],
    request_method: Optional[str],
    user_name: Optional[str],
):
    base_logger = pid_tool_logger(package_id=package_id or "SYSTEM", tool_name=tool_name)
    set_logger(
        base_logger,
        tool_name=tool_name,
        package_id=package_id or "SYSTEM",
        ip_address=remote_ip or "no_ip",
        request_type=request_method or "N/A",
        user_name=user_name or "Anonymous",
    )
    return get_logger()


def equalization_main(
    package_id: Optional[str] = None,
    remote_ip: Optional[str] = None,
    request_method: Optional[str] = None,
    user_name: Optional[str] = None,
) -> Dict[str, Any]:
    logger = _bind_logger("equalization", package_id, remote_ip, request_method, user_name)
    start_t = time.perf_counter()

    wbs_nodes = store.fetch_wbs_nodes()
    proposals = store.fetch_proposals()
    linkage_rows = store.fetch_linkage_rows()

    tree = build_equalization(wbs_nodes, proposals, linkage_rows)
    rows = [compare_row(node, proposals) for node in _walk(tree)]

    logger.info(
        f"Equalization built: {len(wbs_nodes)} WBS nodes, {len(proposals)} proposals, "
        f"{len(linkage_rows)} links -> {len(rows)} rows "
        f"in {time.perf_counter() - start_t:.2f}s"
    )
    return {
        "empty": not tree,
        "proposals": [p.model_dump(mode="json") for p in proposals],
        "tree": [node.model_dump(mode="json") for node in tree],
        "rows": rows,
    }


def equalization_detail_main(
    wbs_id: str,
    package_id: Optional[str] = None,
    remote_ip: Optional[str] = None,
    request_method: Optional[str] = None,
    user_name: Optional[str] = None,
) -> Dict[str, Any]:
    logger = _bind_logger(
        "equalization_detail", package_id, remote_ip, request_method, user_name
    )

    node = store.fetch_wbs_node(wbs_id)
    if node is None:
        logger.warning(f"WBS node {wbs_id} not found")
        return _not_found_payload("equalization_detail", "WBS node", wbs_id)

    detail = compare_node_detail(node, store.fetch_linkage_rows(wbs_id), store.fetch_proposals())
    logger.info(f"Detail for {node.caminho}: {len(detail.columns)} proposals")
    return detail.to_dict()


def wbs_reference_main(
    package_id: Optional[str] = None,
    remote_ip: Optional[str] = None,
    request_method: Optional[str] = None,
    user_name: Optional[str] = None,
) -> Dict[str, Any]:
    logger = _bind_logger("wbs_reference", package_id, remote_ip, request_method, user_name)
    nodes = store.fetch_wbs_nodes()
    logger.info(f"Listed {len(nodes)} WBS nodes")
    return {"nodes": [n.model_dump(mode="json") for n in nodes]}


def proposals_main(
    package_id: Optional[str] = None,
    remote_ip: Optional[str] = None,
    request_method: Optional[str] = None,
    user_name: Optional[str] = None,
) -> Dict[str, Any]:
    logger = _bind_logger("proposals", package_id, remote_ip, request_method, user_name)
    proposals = store.fetch_proposal_summaries()
    logger.info(f"Listed {len(proposals)} proposals")
    return {"proposals": [p.model_dump(mode="json") for p in proposals]}


def proposal_detail_main(
    proposal_id: str,
    package_id: Optional[str] = None,
    remote_ip: Optional[str] = None,
    request_method: Optional[str] = None,
    user_name: Optional[str] = None,
) -> Dict[str, Any]:
    logger = _bind_logger("proposal_detail", package_id, remote_ip, request_method, user_name)

    proposal = store.fetch_proposal(proposal_id)
    if proposal is None:
        logger.warning(f"Proposal {proposal_id} not found")
        return _not_found_payload("proposal_detail", "Proposal", proposal_id)

    sections = group_items_by_section(store.fetch_proposal_items(proposal_id))
    return {
        "proposal": proposal.model_dump(mode="json"),
        "sections": [s.model_dump(mode="json") for s in sections],
    }


def _submit_item_edit(stage: str, item_id: str, make_edit) -> Dict[str, Any]:
    logger = get_logger()
    item = store.fetch_item(item_id)
    if item is None:
        logger.warning(f"Item {item_id} not found")
        return _not_found_payload(stage, "Item", item_id)

    sections = group_items_by_section(store.fetch_proposal_items(item.proposta_id))
    session = ItemEditSession(sections, writer=store.write_item_edit)
    result = session.submit(make_edit(item_id))
    if not result.ok:
        return _make_error_payload(stage, result.error, {"rolledBack": True})

    logger.info(f"Item {item_id} updated on proposal {item.proposta_id}")
    return {
        "proposta_id": item.proposta_id,
        "sections": [s.model_dump(mode="json") for s in result.sections],
    }


def item_tag_main(
    item_id: str,
    tag: Optional[str],
    package_id: Optional[str] = None,
    remote_ip: Optional[str] = None,
    request_method: Optional[str] = None,
    user_name: Optional[str] = None,
) -> Dict[str, Any]:
    _bind_logger("item_tag", package_id, remote_ip, request_method, user_name)
    try:
        parsed = ItemTag(tag) if tag else None
    except ValueError:
        return _make_error_payload("item_tag", f"Unknown tag: {tag}")
    return _submit_item_edit("item_tag", item_id, lambda i: ItemEdit.tag(i, parsed))


def item_hidden_main(
    item_id: str,
    hidden: bool,
    package_id: Optional[str] = None,
    remote_ip: Optional[str] = None,
    request_method: Optional[str] = None,
    user_name: Optional[str] = None,
) -> Dict[str, Any]:
    _bind_logger("item_hidden", package_id, remote_ip, request_method, user_name)
    return _submit_item_edit("item_hidden", item_id, lambda i: ItemEdit.hidden(i, hidden))


def main():
    """Build the comparison from the configured database and print it."""
    result = equalization_main(package_id="SYSTEM", request_method="CLI")
    names = {p["id"]: p["construtora_nome"] for p in result["proposals"]}
    if result["empty"]:
        print("No equalized items found.")
        return

    def _print(nodes: list, depth: int = 0):
        for node in nodes:
            totals = ", ".join(
                f"{names[pid]}={cell['total']:,.2f}" for pid, cell in node["values"].items()
            )
            print(f"{'  ' * depth}{node['caminho']} {node['item']}: {totals}")
            _print(node["children"], depth + 1)

    _print(result["tree"])


if __name__ == "__main__":
    main()
