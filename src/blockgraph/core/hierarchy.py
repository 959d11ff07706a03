"""Hierarchy assembly: a single rooted tree from the node/link graph."""

from __future__ import annotations

import logging
from typing import Dict, Iterator, List, Optional, Set

from .models import GraphData, GraphNode, TreeNode, make_virtual_root

logger = logging.getLogger(__name__)


def _children_index(graph: GraphData) -> Dict[int, List[GraphNode]]:
    """Outgoing-link targets per source id, in link insertion order."""
    by_id = {node.id: node for node in graph.nodes}
    children: Dict[int, List[GraphNode]] = {node.id: [] for node in graph.nodes}
    for link in graph.links:
        target = by_id.get(link.target)
        if link.source not in children or target is None:
            logger.debug(f"Ignoring link {link.source} -> {link.target}: unknown endpoint")
            continue
        children[link.source].append(target)
    return children


def find_roots(nodes: List[GraphNode]) -> List[GraphNode]:
    """All nodes at the minimum depth, in node order."""
    if not nodes:
        return []
    min_depth = min(node.depth for node in nodes)
    return [node for node in nodes if node.depth == min_depth]


def create_hierarchy(graph: GraphData) -> Optional[TreeNode]:
    """Assemble the rooted tree for layout.

    Returns None when the graph has no nodes. With several top-level nodes a
    virtual root (id -1) is synthesised as their common parent.
    """
    if not graph.nodes:
        logger.info("No nodes to assemble into a hierarchy")
        return None

    children = _children_index(graph)
    roots = find_roots(graph.nodes)

    placed: Set[int] = set()

    def attach(node: GraphNode, parent: Optional[TreeNode]) -> TreeNode:
        tree_node = TreeNode(node=node, parent=parent)
        placed.add(node.id)
        stack = [tree_node]
        while stack:
            current = stack.pop()
            for child in children.get(current.node.id, []):
                if child.id in placed:
                    logger.warning(f"Node '{child.path}' reached twice; keeping its first placement")
                    continue
                placed.add(child.id)
                child_tree = TreeNode(node=child, parent=current)
                current.children.append(child_tree)
                stack.append(child_tree)
        return tree_node

    if len(roots) == 1:
        root = attach(roots[0], None)
    else:
        root = TreeNode(node=make_virtual_root())
        for candidate in roots:
            if candidate.id in placed:
                continue
            root.children.append(attach(candidate, root))

    unplaced = len(graph.nodes) - len(placed)
    if unplaced:
        logger.warning(f"{unplaced} node(s) are not reachable from the root and were left out of the tree")
    return root


def iter_tree(root: Optional[TreeNode]) -> Iterator[TreeNode]:
    """Pre-order traversal; empty for a None root."""
    if root is None:
        return iter(())
    return root.iter_descendants()


def index_tree(root: Optional[TreeNode]) -> Dict[int, TreeNode]:
    """Map node id -> tree node (virtual root included)."""
    return {tree_node.node.id: tree_node for tree_node in iter_tree(root)}


def count_tree_nodes(root: Optional[TreeNode]) -> int:
    return sum(1 for _ in iter_tree(root))
