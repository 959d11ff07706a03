"""BlockGraphSession - current graph, tree and selection for one project.

This service handles:
- Full rebuilds of graph and tree (data refresh, hide_parts toggle)
- Node lookup by id or path
- Selection: relationship resolution plus highlight classification
"""

from __future__ import annotations

import logging
from typing import Dict, Optional, Union

from pydantic import BaseModel

from .builder import build_graph
from .highlight import compute_highlight
from .hierarchy import count_tree_nodes, create_hierarchy
from .models import (
    PATH_SEPARATOR,
    SCOPE_SEPARATOR,
    GraphData,
    GraphNode,
    HighlightResult,
    NodeType,
    ProjectData,
    RelatedNodes,
    TreeNode,
)
from .relations import find_related_nodes

logger = logging.getLogger(__name__)


class NodeNotFoundError(Exception):
    """Raised when a node lookup does not match any node."""

    def __init__(self, message: str, details: Optional[Dict] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class Selection(BaseModel):
    node: Optional[GraphNode] = None
    related: RelatedNodes
    highlight: HighlightResult


def _path_key(path: str) -> str:
    """Normalise '/A/X', 'A/X' and 'A → X' to the same key."""
    parts = []
    for chunk in path.split(PATH_SEPARATOR.strip()):
        parts.extend(s.strip() for s in chunk.split(SCOPE_SEPARATOR))
    return PATH_SEPARATOR.join(p for p in parts if p)


class BlockGraphSession:
    """Owns the project data and everything derived from it.

    Derived state (graph, tree, selection) is recomputed from scratch on
    every rebuild; nothing is cached across builds.
    """

    def __init__(self, project: ProjectData, hide_parts: bool = False):
        self.project = project
        self.hide_parts = hide_parts
        self.graph = GraphData()
        self.tree: Optional[TreeNode] = None
        self.selected: Optional[GraphNode] = None
        self.rebuild()

    def rebuild(self) -> GraphData:
        previous = self.selected.path if self.selected is not None else None
        self.graph = build_graph(
            self.project.blocks,
            hide_parts=self.hide_parts,
            context=self.project.context(),
        )
        self.tree = create_hierarchy(self.graph)
        # Node objects are new after a rebuild; reselect by path
        self.selected = self.graph.find_by_path(previous) if previous else None
        if previous and self.selected is None:
            logger.info(f"Selection '{previous}' no longer exists; cleared")
        return self.graph

    def set_project(self, project: ProjectData) -> GraphData:
        self.project = project
        return self.rebuild()

    def set_hide_parts(self, hidden: bool) -> GraphData:
        logger.info(f"Toggling parts visibility: {'hidden' if hidden else 'visible'}")
        self.hide_parts = hidden
        return self.rebuild()

    # ========================================
    # Lookup
    # ========================================

    def find_node(self, ref: Union[int, str]) -> GraphNode:
        """Find a node by its ' → ' path, by a '/'-separated path or by id.

        A string is tried as a path first, so a node named "12" is not
        shadowed by the node with id 12.
        """
        if isinstance(ref, str):
            node = self.graph.find_by_path(ref)
            if node is not None:
                return node
            key = _path_key(ref)
            for candidate in self.graph.nodes:
                if _path_key(candidate.path) == key:
                    return candidate
        if isinstance(ref, int) or ref.strip().lstrip("-").isdigit():
            node = self.graph.get_node(int(ref))
            if node is not None:
                return node
        raise NodeNotFoundError(f"Node not found: {ref}", {"ref": ref})

    # ========================================
    # Selection
    # ========================================

    def select(self, node: Optional[GraphNode]) -> Selection:
        self.selected = node
        return self.current_selection()

    def clear_selection(self) -> Selection:
        return self.select(None)

    def current_selection(self) -> Selection:
        related = find_related_nodes(self.selected, self.graph.nodes)
        highlight = compute_highlight(self.tree, self.graph.links, self.selected, related)
        return Selection(node=self.selected, related=related, highlight=highlight)

    def stats(self) -> Dict[str, int]:
        counts = {node_type.value: 0 for node_type in NodeType}
        for node in self.graph.nodes:
            counts[node.type.value] += 1
        return {
            "nodes": len(self.graph.nodes),
            "links": len(self.graph.links),
            "tree_nodes": count_tree_nodes(self.tree),
            "records": len(self.project.blocks),
            **counts,
        }
