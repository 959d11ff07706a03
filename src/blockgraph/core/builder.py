"""Graph builder.

Turns normalized block definitions into a deduplicated `{nodes, links}` graph.
Every prefix of a record's placement path becomes one node (keyed by the
joined prefix), and every adjacent prefix pair becomes one link.
"""

from __future__ import annotations

import logging
from typing import Dict, Iterable, List, Optional, Set, Tuple

from .models import (
    PATH_SEPARATOR,
    BlockDefinition,
    GraphContext,
    GraphData,
    GraphLink,
    GraphNode,
    NodeType,
    ScopeDefinition,
)

logger = logging.getLogger(__name__)


def join_path(segments: List[str]) -> str:
    return PATH_SEPARATOR.join(segments)


def full_path_segments(block: BlockDefinition, hide_parts: bool = False) -> List[str]:
    """scope segments + block name + (unless hidden) part segments."""
    segments = [*block.scope_segments, block.block_name]
    if not hide_parts:
        segments.extend(block.block_part)
    return segments


def segment_type(index: int, scope_length: int) -> NodeType:
    if index < scope_length:
        return NodeType.SCOPE
    if index == scope_length:
        return NodeType.BLOCK
    return NodeType.PART


class GraphBuilder:
    """Accumulates nodes and links for one build.

    A fresh builder is used per build; nothing is shared across builds.
    """

    def __init__(self, context: Optional[GraphContext] = None):
        self.context = context or GraphContext()
        self.nodes: List[GraphNode] = []
        self.links: List[GraphLink] = []
        self._node_map: Dict[str, GraphNode] = {}
        self._link_keys: Set[Tuple[int, int]] = set()
        self._known_scopes: Optional[Set[str]] = None

    # ========================================
    # Primitives
    # ========================================

    def get_or_create_node(self, segments: List[str], node_type: NodeType) -> GraphNode:
        path = join_path(segments)
        node = self._node_map.get(path)
        if node is None:
            node = GraphNode(
                id=len(self.nodes),
                name=segments[-1],
                path=path,
                depth=len(segments) - 1,
                type=node_type,
            )
            self._node_map[path] = node
            self.nodes.append(node)
        elif node.type != node_type:
            logger.debug(f"Node '{path}' already typed {node.type.value}, keeping it over {node_type.value}")
        return node

    def add_link(self, source: GraphNode, target: GraphNode) -> None:
        key = (source.id, target.id)
        if key in self._link_keys:
            return
        self._link_keys.add(key)
        self.links.append(GraphLink(source=source.id, target=target.id))

    def add_chain(self, segments: List[str], scope_length: int) -> GraphNode:
        """Create (or reuse) a node for every prefix and link neighbours.

        Returns the terminal node.
        """
        if not segments:
            raise ValueError("Cannot place a block with an empty path")
        node = self.get_or_create_node(segments[:1], segment_type(0, scope_length))
        for i in range(1, len(segments)):
            child = self.get_or_create_node(segments[: i + 1], segment_type(i, scope_length))
            self.add_link(node, child)
            node = child
        return node

    # ========================================
    # Scopes
    # ========================================

    def add_scopes(self, scopes: List[ScopeDefinition]) -> None:
        """Seed Scope nodes from the scopes catalog, pre-order."""
        self._known_scopes = set()
        for root in scopes:
            for scope in root.walk():
                segments = [s for s in scope.path.split("/") if s]
                if not segments:
                    continue
                node = self.add_chain(segments, scope_length=len(segments))
                if scope.description and not node.description:
                    node.description = scope.description
                self._known_scopes.add("/" + "/".join(segments))

    def resolves_scope(self, block: BlockDefinition) -> bool:
        segments = block.scope_segments
        if self._known_scopes is None or not segments:
            return True
        return "/" + "/".join(segments) in self._known_scopes

    # ========================================
    # Records
    # ========================================

    def add_block(self, block: BlockDefinition, hide_parts: bool = False) -> Optional[GraphNode]:
        """Place one record; returns its terminal node or None when dropped."""
        if block.ignore:
            return None
        if not self.resolves_scope(block):
            logger.warning(
                f"Dropping block '{block.block_name}' ({block.file_path or 'no file'}): "
                f"scope '{block.scope}' is not in the scopes catalog"
            )
            return None

        segments = full_path_segments(block, hide_parts)
        terminal = self.add_chain(segments, scope_length=len(block.scope_segments))
        terminal.blocks.append(block)
        return terminal

    def backfill_from_catalog(self) -> int:
        """Give record-less Block/Part nodes a synthetic entry from the glossary."""
        catalog = self.context.catalog
        if not catalog:
            return 0
        filled = 0
        for node in self.nodes:
            if node.blocks or node.type == NodeType.SCOPE:
                continue
            entry = catalog.get(node.name)
            if entry is None:
                continue
            node.blocks.append(
                BlockDefinition(
                    block_name=node.name,
                    description=entry.description,
                    catalog_data=entry,
                )
            )
            filled += 1
        return filled

    def build(self, blocks: Iterable[BlockDefinition], hide_parts: bool = False) -> GraphData:
        if self.context.scopes is not None:
            self.add_scopes(self.context.scopes)

        dropped = 0
        for block in blocks:
            if self.add_block(block, hide_parts) is None and not block.ignore:
                dropped += 1

        filled = self.backfill_from_catalog()
        logger.info(
            f"Built graph: {len(self.nodes)} nodes, {len(self.links)} links "
            f"({dropped} dropped, {filled} filled from catalog, hide_parts={hide_parts})"
        )
        return GraphData(nodes=self.nodes, links=self.links)


def build_graph(
    blocks: Iterable[BlockDefinition],
    hide_parts: bool = False,
    context: Optional[GraphContext] = None,
) -> GraphData:
    """Build the deduplicated node/link graph for a record list.

    Args:
        blocks: Normalized records, in input order (ids follow first-seen order)
        hide_parts: Omit Part segments; part records fold into their Block node
        context: Optional scopes catalog and block glossary

    Returns:
        GraphData with nodes and links; empty input yields empty lists
    """
    return GraphBuilder(context).build(blocks, hide_parts=hide_parts)
