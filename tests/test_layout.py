"""Tests for the layered layout."""
from domain.models import Edge, Node, NodePosition
from exploration.layout import LayoutConfig, LayoutEngine, compute_layout


def _tree():
    nodes = [Node(id="main", kind="main"), Node(id="q1"), Node(id="q2"), Node(id="q1a")]
    edges = [
        Edge(id="edge-q1", source_node_id="main", target_node_id="q1"),
        Edge(id="edge-q2", source_node_id="main", target_node_id="q2"),
        Edge(id="edge-q1a", source_node_id="q1", target_node_id="q1a"),
    ]
    return nodes, edges


def test_empty_graph():
    assert compute_layout([], []) == {}


def test_single_root_uses_large_box():
    positions = compute_layout([Node(id="main", kind="main")], [])
    assert positions["main"] == NodePosition(x=100, y=0, width=600, height=500)


def test_root_and_two_children():
    nodes = [Node(id="main", kind="main"), Node(id="q1"), Node(id="q2")]
    edges = [
        Edge(id="edge-q1", source_node_id="main", target_node_id="q1"),
        Edge(id="edge-q2", source_node_id="main", target_node_id="q2"),
    ]
    positions = compute_layout(nodes, edges)

    # Children column is 100 + 800 + 100 tall; the root is centred against it.
    assert positions["main"] == NodePosition(x=100, y=250, width=600, height=500)
    assert positions["q1"] == NodePosition(x=1200, y=0, width=300, height=100)
    assert positions["q2"] == NodePosition(x=1200, y=900, width=300, height=100)


def test_ranks_flow_left_to_right():
    nodes, edges = _tree()
    positions = compute_layout(nodes, edges)

    assert positions["main"].x < positions["q1"].x < positions["q1a"].x
    assert positions["q1"].x == positions["q2"].x


def test_supplied_order_within_rank():
    nodes, edges = _tree()
    positions = compute_layout(nodes, edges)
    assert positions["q1"].y < positions["q2"].y

    swapped = [nodes[0], nodes[2], nodes[1], nodes[3]]
    positions = compute_layout(swapped, edges)
    assert positions["q2"].y < positions["q1"].y


def test_layout_is_idempotent():
    nodes, edges = _tree()
    engine = LayoutEngine()
    assert engine.layout(nodes, edges) == engine.layout(nodes, edges)


def test_edges_to_unknown_nodes_are_ignored():
    nodes = [Node(id="main", kind="main")]
    edges = [Edge(id="edge-ghost", source_node_id="main", target_node_id="ghost")]
    assert set(compute_layout(nodes, edges)) == {"main"}


def test_custom_config_and_root():
    config = LayoutConfig(
        main_node_width=200,
        main_node_height=100,
        question_node_width=50,
        question_node_height=20,
        node_separation=10,
        rank_separation=30,
        margin_x=0,
    )
    nodes = [Node(id="start", kind="main"), Node(id="q")]
    edges = [Edge(id="edge-q", source_node_id="start", target_node_id="q")]

    positions = compute_layout(nodes, edges, config=config, root_id="start")

    assert positions["start"] == NodePosition(x=0, y=0, width=200, height=100)
    assert positions["q"] == NodePosition(x=230, y=40, width=50, height=20)
