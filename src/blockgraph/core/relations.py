"""Relationship resolution for a selected node.

`based` and `extend` hold block names. They are resolved by name only:
a token matches every node called that, or holding a record whose
blockName is that (the same block may be declared under several scopes,
and its parts carry its blockName). A name that does not exist simply
matches nothing.
"""

from __future__ import annotations

import logging
from typing import Iterable, List, Optional, Sequence

from .models import BlockDefinition, GraphNode, NodeType, RelatedNodes
from .normalizer import split_list

logger = logging.getLogger(__name__)


def reference_tokens(blocks: Iterable[BlockDefinition], field: str) -> List[str]:
    """Collect `based`/`extend` tokens across records, re-split on commas."""
    tokens: List[str] = []
    for block in blocks:
        for token in split_list(getattr(block, field)):
            if token not in tokens:
                tokens.append(token)
    return tokens


def declares_block(node: GraphNode) -> bool:
    """True for Block nodes and for nodes a block record terminates at.

    A node first created as a Scope keeps that type even when a later
    record declares a block at the same path.
    """
    if node.type == NodeType.BLOCK:
        return True
    return any(block.block_name == node.name and not block.block_part for block in node.blocks)


def matches_name(node: GraphNode, token: str) -> bool:
    """Node name is authoritative; a record's blockName is an alias.

    Bare Scope nodes (no contributing records) are never reference targets.
    """
    if node.name == token and (node.type != NodeType.SCOPE or node.blocks):
        return True
    return any(block.block_name == token for block in node.blocks)


def _unique(nodes: Iterable[GraphNode]) -> List[GraphNode]:
    seen = set()
    result = []
    for node in nodes:
        if node.id in seen:
            continue
        seen.add(node.id)
        result.append(node)
    return result


def resolve_tokens(tokens: Sequence[str], nodes: Sequence[GraphNode]) -> List[GraphNode]:
    matches: List[GraphNode] = []
    for token in tokens:
        found = [node for node in nodes if matches_name(node, token)]
        if not found:
            logger.debug(f"Reference '{token}' does not match any block")
        matches.extend(found)
    return _unique(matches)


def find_related_nodes(
    selected: Optional[GraphNode],
    nodes: Sequence[GraphNode],
) -> RelatedNodes:
    """Resolve based/extend references and same-name blocks for a selection."""
    if selected is None:
        return RelatedNodes()

    based = resolve_tokens(reference_tokens(selected.blocks, "based"), nodes)
    extend = resolve_tokens(reference_tokens(selected.blocks, "extend"), nodes)
    other = _unique(
        node for node in nodes
        if declares_block(node) and node.name == selected.name and node.id != selected.id
    )
    return RelatedNodes(based=based, extend=extend, other=other)
