"""
Relevance filter for the aggregated WBS forest.

A node is kept when any proposal has a positive total on it, or when one of
its descendants is kept. Kept nodes are shallow copies with filtered
children; the input forest is left untouched.
"""

from typing import Optional, Sequence

from tools.equalize.equalize_models import TreeNode


def _filter_node(node: TreeNode) -> Optional[TreeNode]:
    kept_children = filter_relevant(node.children)
    if not kept_children and not node.has_value():
        return None
    return node.model_copy(update={"children": kept_children})


def filter_relevant(nodes: Sequence[TreeNode]) -> list[TreeNode]:
    """Drop every node whose whole subtree carries no value for any proposal."""
    kept = []
    for node in nodes:
        filtered = _filter_node(node)
        if filtered is not None:
            kept.append(filtered)
    return kept
