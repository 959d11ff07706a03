"""Tests for the graph builder."""

import logging

import pytest

from blockgraph.core.builder import GraphBuilder, build_graph, full_path_segments
from blockgraph.core.models import (
    BlockDefinition,
    CatalogEntry,
    GraphContext,
    NodeType,
    ScopeDefinition,
)
from blockgraph.core.normalizer import normalize_records


def _by_path(graph):
    return {node.path: node for node in graph.nodes}


def _link_pairs(graph):
    paths = {node.id: node.path for node in graph.nodes}
    return [(paths[link.source], paths[link.target]) for link in graph.links]


def test_build_graph_empty():
    graph = build_graph([])
    assert graph.nodes == []
    assert graph.links == []


def test_block_with_part(simple_records):
    """Scope, block and part nodes with one link per parent/child pair."""
    graph = build_graph(normalize_records(simple_records))
    nodes = _by_path(graph)

    assert list(nodes) == ["A", "A → X", "A → X → P1"]
    assert nodes["A"].type == NodeType.SCOPE
    assert nodes["A → X"].type == NodeType.BLOCK
    assert nodes["A → X → P1"].type == NodeType.PART
    assert [n.depth for n in graph.nodes] == [0, 1, 2]
    assert [n.id for n in graph.nodes] == [0, 1, 2]

    assert nodes["A"].blocks == []
    assert len(nodes["A → X"].blocks) == 1
    assert nodes["A → X"].blocks[0].block_part == []
    assert len(nodes["A → X → P1"].blocks) == 1

    assert _link_pairs(graph) == [("A", "A → X"), ("A → X", "A → X → P1")]


def test_hide_parts(simple_records):
    """Part nodes are not created; part records fold into their block."""
    graph = build_graph(normalize_records(simple_records), hide_parts=True)
    nodes = _by_path(graph)

    assert list(nodes) == ["A", "A → X"]
    assert len(graph.links) == 1
    assert len(nodes["A → X"].blocks) == 2
    assert all(node.type != NodeType.PART for node in graph.nodes)


def test_same_path_records_accumulate():
    """Two records for one path merge into one node keeping both."""
    blocks = normalize_records([
        {"scope": "/A", "blockName": "X", "description": "first"},
        {"scope": "/A", "blockName": "X", "description": "second"},
    ])
    graph = build_graph(blocks)
    node = _by_path(graph)["A → X"]

    assert len(graph.nodes) == 2
    assert [b.description for b in node.blocks] == ["first", "second"]


def test_no_duplicate_links():
    blocks = normalize_records([
        {"scope": "/A/B", "blockName": "X"},
        {"scope": "/A/B", "blockName": "Y"},
        {"scope": "/A/B", "blockName": "X", "blockPart": "P"},
    ])
    graph = build_graph(blocks)
    pairs = [(link.source, link.target) for link in graph.links]
    assert len(pairs) == len(set(pairs))
    assert len(graph.links) == len(graph.nodes) - 1


def test_path_uniqueness():
    """Distinct node paths equal the distinct prefixes of all record paths."""
    records = [
        {"scope": "/A/B", "blockName": "X", "blockPart": "P/Q"},
        {"scope": "/A", "blockName": "Y"},
        {"scope": "/A/B", "blockName": "X"},
        {"scope": "/C", "blockName": "X"},
    ]
    blocks = normalize_records(records)
    graph = build_graph(blocks)

    expected = set()
    for block in blocks:
        segments = full_path_segments(block)
        for i in range(len(segments)):
            expected.add(" → ".join(segments[: i + 1]))

    paths = [node.path for node in graph.nodes]
    assert len(paths) == len(set(paths))
    assert set(paths) == expected


def test_same_name_under_different_scopes_are_distinct():
    graph = build_graph(normalize_records([
        {"scope": "/A", "blockName": "X"},
        {"scope": "/B", "blockName": "X"},
    ]))
    x_nodes = [node for node in graph.nodes if node.name == "X"]
    assert len(x_nodes) == 2
    assert {node.path for node in x_nodes} == {"A → X", "B → X"}


def test_parentless_block_is_top_level():
    """A block without a scope is its own top-level node; its parts hang off it."""
    graph = build_graph(normalize_records([
        {"blockName": "X"},
        {"blockName": "X", "blockPart": "P"},
    ]))
    nodes = _by_path(graph)
    assert nodes["X"].type == NodeType.BLOCK
    assert nodes["X"].depth == 0
    assert len(nodes["X"].blocks) == 1
    assert nodes["X → P"].type == NodeType.PART


def test_ignored_records_contribute_nothing():
    blocks = normalize_records(
        [
            {"scope": "/A", "blockName": "X"},
            {"scope": "/Hidden", "blockName": "Secret", "ignore": True},
        ],
        drop_ignored=False,
    )
    graph = build_graph(blocks)
    assert [node.path for node in graph.nodes] == ["A", "A → X"]
    assert all(not block.ignore for node in graph.nodes for block in node.blocks)


def test_ids_are_deterministic(related_records):
    first = build_graph(normalize_records(related_records))
    second = build_graph(normalize_records(related_records))
    assert [(n.id, n.path) for n in first.nodes] == [(n.id, n.path) for n in second.nodes]
    assert first.links == second.links


def test_legacy_and_scope_schemas_build_the_same_graph():
    legacy = build_graph(normalize_records([{"parents": "A,B", "blockName": "X"}]))
    scoped = build_graph(normalize_records([{"scope": "/A/B", "blockName": "X"}]))
    assert [n.path for n in legacy.nodes] == [n.path for n in scoped.nodes]
    assert [n.type for n in legacy.nodes] == [n.type for n in scoped.nodes]


class TestScopesCatalog:
    """Scope nodes seeded from a scopes catalog."""

    def _scopes(self):
        return [
            ScopeDefinition(
                path="/A",
                name="A",
                description="Area A",
                children=[ScopeDefinition(path="/A/B", name="B")],
            )
        ]

    def test_catalog_scopes_become_nodes(self):
        context = GraphContext(scopes=self._scopes())
        graph = build_graph([], context=context)
        nodes = _by_path(graph)
        assert list(nodes) == ["A", "A → B"]
        assert nodes["A"].description == "Area A"
        assert all(node.type == NodeType.SCOPE for node in graph.nodes)
        assert len(graph.links) == 1

    def test_unknown_scope_dropped_with_warning(self, caplog):
        context = GraphContext(scopes=self._scopes())
        blocks = normalize_records([
            {"scope": "/A/B", "blockName": "X"},
            {"scope": "/Nowhere", "blockName": "Y"},
        ])
        with caplog.at_level(logging.WARNING):
            graph = build_graph(blocks, context=context)

        paths = [node.path for node in graph.nodes]
        assert "A → B → X" in paths
        assert not any("Nowhere" in path or path.endswith("Y") for path in paths)
        assert "scopes catalog" in caplog.text

    def test_without_catalog_scopes_come_from_records(self):
        graph = build_graph(normalize_records([{"scope": "/Nowhere", "blockName": "Y"}]))
        assert [node.path for node in graph.nodes] == ["Nowhere", "Nowhere → Y"]


class TestCatalogBackfill:
    """Glossary entries for nodes without their own definition."""

    def test_blockless_node_gets_catalog_entry(self):
        catalog = {"X": CatalogEntry(name="X", full_name="Extended X", description="From glossary")}
        blocks = normalize_records([{"scope": "/A", "blockName": "X", "blockPart": "P"}])
        graph = build_graph(blocks, context=GraphContext(catalog=catalog))
        node = _by_path(graph)["A → X"]

        assert len(node.blocks) == 1
        entry = node.blocks[0]
        assert entry.is_catalog_entry
        assert entry.description == "From glossary"
        assert entry.catalog_data.full_name == "Extended X"

    def test_declared_blocks_are_not_backfilled(self):
        catalog = {"X": CatalogEntry(name="X", description="From glossary")}
        blocks = normalize_records([{"scope": "/A", "blockName": "X", "description": "Declared"}])
        graph = build_graph(blocks, context=GraphContext(catalog=catalog))
        node = _by_path(graph)["A → X"]

        assert len(node.blocks) == 1
        assert not node.blocks[0].is_catalog_entry

    def test_scope_nodes_are_not_backfilled(self):
        catalog = {"A": CatalogEntry(name="A", description="Not a block")}
        graph = build_graph(normalize_records([{"scope": "/A", "blockName": "X"}]), context=GraphContext(catalog=catalog))
        assert _by_path(graph)["A"].blocks == []


def test_direct_block_definitions_are_accepted():
    block = BlockDefinition(scope="A/B", block_name="X")
    graph = build_graph([block])
    assert [node.path for node in graph.nodes] == ["A", "A → B", "A → B → X"]


def test_add_chain_rejects_empty_path():
    builder = GraphBuilder()
    with pytest.raises(ValueError):
        builder.add_chain([], scope_length=0)
    assert builder.nodes == []


def test_add_chain_returns_terminal_node():
    builder = GraphBuilder()
    terminal = builder.add_chain(["A", "X", "P1"], scope_length=1)
    assert terminal.path == "A → X → P1"
    assert terminal.type == NodeType.PART
    assert [(link.source, link.target) for link in builder.links] == [(0, 1), (1, 2)]
