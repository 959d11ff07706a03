"""Core graph engine: normalize, build, assemble, resolve, highlight."""

from .builder import build_graph
from .highlight import compute_highlight
from .hierarchy import create_hierarchy
from .models import (
    BlockDefinition,
    CatalogEntry,
    GraphContext,
    GraphData,
    GraphLink,
    GraphNode,
    HighlightResult,
    NodeType,
    ProjectData,
    RelatedNodes,
    ScopeDefinition,
    TreeNode,
)
from .normalizer import normalize_record, normalize_records
from .relations import find_related_nodes

__all__ = [
    "BlockDefinition",
    "CatalogEntry",
    "GraphContext",
    "GraphData",
    "GraphLink",
    "GraphNode",
    "HighlightResult",
    "NodeType",
    "ProjectData",
    "RelatedNodes",
    "ScopeDefinition",
    "TreeNode",
    "build_graph",
    "compute_highlight",
    "create_hierarchy",
    "find_related_nodes",
    "normalize_record",
    "normalize_records",
]
