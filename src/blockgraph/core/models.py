"""Block graph data models."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional

from pydantic import BaseModel, ConfigDict, Field

PATH_SEPARATOR = " → "
SCOPE_SEPARATOR = "/"
VIRTUAL_ROOT_ID = -1


class NodeType(str, enum.Enum):
    SCOPE = "scope"
    BLOCK = "block"
    PART = "part"


# ============================================================================
# Input records
# ============================================================================

class CatalogEntry(BaseModel):
    """Glossary entry from the block catalog, keyed by block name."""
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    name: str = Field(default="", description="Block name the entry describes")
    full_name: Optional[str] = Field(default=None, alias="fullName")
    description: str = Field(default="", description="Glossary description text")


class BlockDefinition(BaseModel):
    """One placement of a named component, decoded from a definition file."""
    model_config = ConfigDict(populate_by_name=True)

    file_path: str = Field(default="", alias="filePath")
    directory: str = Field(default="", description="Directory holding the definition file")
    scope: str = Field(default="", description="Canonical scope path (/A/B), empty for top level")
    block_name: str = Field(default="Unknown", alias="blockName")
    block_part: List[str] = Field(default_factory=list, alias="blockPart")
    description: str = ""
    aspects: str = ""
    ignore: bool = False
    based: List[str] = Field(default_factory=list)
    extend: List[str] = Field(default_factory=list)
    files_count: Optional[int] = Field(default=None, alias="filesCount")
    code_lines: Optional[int] = Field(default=None, alias="codeLines")
    catalog_data: Optional[CatalogEntry] = Field(
        default=None,
        alias="catalogData",
        description="Set only on entries synthesised from the block catalog",
    )

    @property
    def scope_segments(self) -> List[str]:
        return [s for s in self.scope.split(SCOPE_SEPARATOR) if s]

    @property
    def is_catalog_entry(self) -> bool:
        return self.catalog_data is not None


class ScopeDefinition(BaseModel):
    """A node of the scopes catalog tree."""
    model_config = ConfigDict(populate_by_name=True)

    path: str
    name: str
    description: str = ""
    files_count: Optional[int] = Field(default=None, alias="filesCount")
    code_lines: Optional[int] = Field(default=None, alias="codeLines")
    children: List["ScopeDefinition"] = Field(default_factory=list)

    def walk(self) -> Iterator["ScopeDefinition"]:
        """Yield this scope and all nested scopes in pre-order."""
        yield self
        for child in self.children:
            yield from child.walk()


# ============================================================================
# Graph
# ============================================================================

class GraphNode(BaseModel):
    """A deduplicated graph vertex keyed by its placement path."""
    id: int = Field(..., description="Sequential id in first-seen order")
    name: str = Field(..., description="Last segment of the path")
    path: str = Field(..., description="Segments joined by ' → '; identity key")
    depth: int = Field(..., description="0-based segment index; -1 for the virtual root")
    type: NodeType
    description: str = ""
    blocks: List[BlockDefinition] = Field(default_factory=list)


class GraphLink(BaseModel):
    """Directed parent → child connection between two nodes."""
    source: int
    target: int


class GraphData(BaseModel):
    """The `{nodes, links}` payload handed to the renderer."""
    nodes: List[GraphNode] = Field(default_factory=list)
    links: List[GraphLink] = Field(default_factory=list)

    def get_node(self, node_id: int) -> Optional[GraphNode]:
        for node in self.nodes:
            if node.id == node_id:
                return node
        return None

    def find_by_path(self, path: str) -> Optional[GraphNode]:
        for node in self.nodes:
            if node.path == path:
                return node
        return None


class GraphContext(BaseModel):
    """Caller-owned inputs for a graph build besides the record list."""
    scopes: Optional[List[ScopeDefinition]] = None
    catalog: Optional[Dict[str, CatalogEntry]] = None


class ProjectData(BaseModel):
    """Everything loaded from one project directory."""
    scopes: Optional[List[ScopeDefinition]] = None
    blocks: List[BlockDefinition] = Field(default_factory=list)
    catalog: Optional[Dict[str, CatalogEntry]] = None

    def context(self) -> GraphContext:
        return GraphContext(scopes=self.scopes, catalog=self.catalog)


def make_virtual_root() -> GraphNode:
    return GraphNode(
        id=VIRTUAL_ROOT_ID,
        name="Root",
        path="Root",
        depth=-1,
        type=NodeType.SCOPE,
    )


# ============================================================================
# Tree
# ============================================================================

@dataclass
class TreeNode:
    """Tree wrapper around a GraphNode with a parent reference."""
    node: GraphNode
    children: List["TreeNode"] = field(default_factory=list)
    parent: Optional["TreeNode"] = field(default=None, repr=False, compare=False)

    @property
    def is_virtual(self) -> bool:
        return self.node.id == VIRTUAL_ROOT_ID

    def iter_descendants(self) -> Iterator["TreeNode"]:
        """Yield this node and every node below it, pre-order."""
        stack = [self]
        while stack:
            current = stack.pop()
            yield current
            stack.extend(reversed(current.children))

    def ancestors(self) -> Iterator["TreeNode"]:
        """Yield this node, then each parent up to the root."""
        current: Optional[TreeNode] = self
        while current is not None:
            yield current
            current = current.parent

    def to_dict(self) -> Dict[str, Any]:
        return {
            "data": self.node.model_dump(by_alias=True, mode="json"),
            "children": [child.to_dict() for child in self.children] or None,
        }


# ============================================================================
# Selection results
# ============================================================================

class RelatedNodes(BaseModel):
    based: List[GraphNode] = Field(default_factory=list)
    extend: List[GraphNode] = Field(default_factory=list)
    other: List[GraphNode] = Field(default_factory=list)

    def all(self) -> List[GraphNode]:
        return [*self.based, *self.extend, *self.other]


class LinkEmphasis(BaseModel):
    source: int
    target: int
    emphasized: bool


class HighlightResult(BaseModel):
    """Emphasis flags per node id and per link."""
    selected_id: Optional[int] = None
    nodes: Dict[int, bool] = Field(default_factory=dict)
    links: List[LinkEmphasis] = Field(default_factory=list)

    def visible_ids(self) -> List[int]:
        return [node_id for node_id, emphasized in self.nodes.items() if emphasized]

    def is_emphasized(self, node_id: int) -> bool:
        return self.nodes.get(node_id, False)


ScopeDefinition.model_rebuild()
