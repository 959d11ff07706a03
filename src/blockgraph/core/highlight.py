"""Visibility / highlight classification for a selected node.

visible = ancestors(selected) + subtree(selected)
          + ancestors(r) + subtree(r) for every related node r

Subtrees are pulled in only for Block nodes (selecting a block reveals all
its parts). Nodes outside `visible` are dimmed; a link is dimmed when either
endpoint is. Nothing is removed from the graph.
"""

from __future__ import annotations

import logging
from typing import Iterable, Optional, Sequence, Set

from .hierarchy import index_tree
from .models import (
    GraphLink,
    GraphNode,
    HighlightResult,
    LinkEmphasis,
    NodeType,
    RelatedNodes,
    TreeNode,
)

logger = logging.getLogger(__name__)


def branch_ids(tree_node: TreeNode) -> Set[int]:
    """Ancestors (inclusive) plus, for Block nodes, the whole subtree."""
    ids = {ancestor.node.id for ancestor in tree_node.ancestors() if not ancestor.is_virtual}
    if tree_node.node.type == NodeType.BLOCK:
        ids.update(descendant.node.id for descendant in tree_node.iter_descendants())
    return ids


def _all_emphasized(
    root: Optional[TreeNode],
    links: Sequence[GraphLink],
) -> HighlightResult:
    return HighlightResult(
        selected_id=None,
        nodes={node_id: True for node_id in index_tree(root) if node_id >= 0},
        links=[LinkEmphasis(source=link.source, target=link.target, emphasized=True) for link in links],
    )


def compute_highlight(
    root: Optional[TreeNode],
    links: Sequence[GraphLink],
    selected: Optional[GraphNode],
    related: Optional[RelatedNodes] = None,
) -> HighlightResult:
    """Classify every node and link as emphasized or dimmed.

    Args:
        root: Tree from create_hierarchy (None for an empty graph)
        links: Graph links to classify
        selected: Selected node, or None for no selection
        related: Output of find_related_nodes for the selection

    Returns:
        HighlightResult keyed by node id; no selection emphasizes everything
    """
    if selected is None:
        return _all_emphasized(root, links)

    index = index_tree(root)
    selected_tree = index.get(selected.id)
    if selected_tree is None:
        logger.debug(f"Selected node {selected.id} is not in the tree; nothing dimmed")
        return _all_emphasized(root, links)

    visible = branch_ids(selected_tree)
    targets: Iterable[GraphNode] = related.all() if related is not None else []
    for node in targets:
        tree_node = index.get(node.id)
        if tree_node is None:
            continue
        visible |= branch_ids(tree_node)

    nodes = {node_id: node_id in visible for node_id in index if node_id >= 0}
    link_flags = [
        LinkEmphasis(
            source=link.source,
            target=link.target,
            emphasized=link.source in visible and link.target in visible,
        )
        for link in links
    ]
    logger.debug(f"Highlight for node {selected.id}: {len(visible)} of {len(nodes)} nodes visible")
    return HighlightResult(selected_id=selected.id, nodes=nodes, links=link_flags)
