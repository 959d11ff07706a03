"""Tests for hierarchy assembly."""

from blockgraph.core.builder import build_graph
from blockgraph.core.hierarchy import count_tree_nodes, create_hierarchy, find_roots, index_tree
from blockgraph.core.models import GraphData, GraphLink, GraphNode, NodeType
from blockgraph.core.normalizer import normalize_records


def _node(node_id, name, depth, node_type=NodeType.SCOPE):
    return GraphNode(id=node_id, name=name, path=name, depth=depth, type=node_type)


def test_empty_graph_returns_none():
    assert create_hierarchy(GraphData()) is None


def test_single_root(simple_records):
    graph = build_graph(normalize_records(simple_records))
    root = create_hierarchy(graph)

    assert root is not None
    assert not root.is_virtual
    assert root.node.path == "A"
    assert root.parent is None
    assert [c.node.path for c in root.children] == ["A → X"]
    assert [c.node.path for c in root.children[0].children] == ["A → X → P1"]


def test_multiple_roots_get_virtual_root():
    graph = build_graph(normalize_records([
        {"scope": "/A", "blockName": "X"},
        {"scope": "/B", "blockName": "Y"},
    ]))
    root = create_hierarchy(graph)

    assert root.is_virtual
    assert root.node.id == -1
    assert root.node.depth == -1
    assert root.node.blocks == []
    assert [c.node.path for c in root.children] == ["A", "B"]
    # Graph depth is unchanged; only the tree parent is the virtual root
    for child in root.children:
        assert child.node.depth == 0
        assert child.parent is root


def test_tree_totality(related_graph):
    """Every node is in the tree exactly once, plus at most a virtual root."""
    root = create_hierarchy(related_graph)
    ids = [tree_node.node.id for tree_node in root.iter_descendants()]

    assert len(ids) == len(set(ids))
    real_ids = [node_id for node_id in ids if node_id != -1]
    assert sorted(real_ids) == sorted(node.id for node in related_graph.nodes)
    assert count_tree_nodes(root) == len(related_graph.nodes) + 1


def test_children_follow_link_order():
    nodes = [_node(0, "R", 0), _node(1, "b", 1), _node(2, "a", 1)]
    links = [GraphLink(source=0, target=1), GraphLink(source=0, target=2)]
    root = create_hierarchy(GraphData(nodes=nodes, links=links))
    assert [c.node.name for c in root.children] == ["b", "a"]


def test_roots_are_minimum_depth_nodes():
    nodes = [_node(0, "deep", 2), _node(1, "top", 1), _node(2, "top2", 1)]
    assert [n.name for n in find_roots(nodes)] == ["top", "top2"]


def test_cycle_does_not_loop_forever():
    nodes = [_node(0, "R", 0), _node(1, "C", 1)]
    links = [
        GraphLink(source=0, target=1),
        GraphLink(source=1, target=0),
        GraphLink(source=1, target=99),
    ]
    root = create_hierarchy(GraphData(nodes=nodes, links=links))
    assert count_tree_nodes(root) == 2
    assert root.children[0].children == []


def test_index_and_to_dict(simple_records):
    graph = build_graph(normalize_records(simple_records))
    root = create_hierarchy(graph)

    index = index_tree(root)
    assert set(index) == {0, 1, 2}
    assert [a.node.id for a in index[2].ancestors()] == [2, 1, 0]

    payload = root.to_dict()
    assert payload["data"]["path"] == "A"
    assert payload["children"][0]["data"]["type"] == "block"
    leaf = payload["children"][0]["children"][0]
    assert leaf["children"] is None
    assert leaf["data"]["blocks"][0]["blockPart"] == ["P1"]
