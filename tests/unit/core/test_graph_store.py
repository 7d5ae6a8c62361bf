"""
Unit tests for core/graph_store.py - GraphStore

Tests the graph store functionality including:
- Node creation, retrieval and deletion (with edge cascade)
- Edge creation and its structural checks
- Position and style updates
- Value semantics of handed-out graphs
- The rustworkx bridge and Polars views
"""
import pytest

from core.graph_store import (
    GraphStore,
    NotFoundError,
    DuplicateIdError,
    GraphInvariantError,
    build_digraph,
)
from core.ontology import NodeKind, INITIALIZER_ID, VALID_AMOUNT_STYLE
from core.schemas import Graph, NodeData, EdgeData, Position, PlainPayload


# =============================================================================
# NODE OPERATIONS TESTS
# =============================================================================

def test_add_node_appends_node(store):
    """
    Validate that add_node appends a node and makes it current.

    Verifies:
    - Node count increases by 1
    - The returned graph is the store's current graph
    - The new node is last in graph order
    """
    node = NodeData.provider("Stripe", id="Stripe-4")

    graph = store.add_node(node)

    assert store.node_count == 4
    assert graph is store.graph
    assert graph.nodes[-1] == node


def test_add_node_duplicate_id_fails(store):
    """
    Validate that adding a node whose id is taken raises DuplicateIdError.

    Verifies:
    - The error names the id
    - The graph is unchanged
    """
    before = store.graph

    with pytest.raises(DuplicateIdError) as exc_info:
        store.add_node(NodeData.provider("Stripe", id="provider-1"))

    assert "provider-1" in str(exc_info.value)
    assert store.graph is before


def test_add_second_initializer_fails(store):
    """Validate that a graph can never hold two initializers."""
    with pytest.raises(GraphInvariantError):
        store.add_node(NodeData.initializer(id="another-initializer"))

    assert len(store.graph.nodes_of_kind(NodeKind.INITIALIZER)) == 1


def test_get_node_missing_raises(store):
    with pytest.raises(NotFoundError) as exc_info:
        store.get_node("nope")

    assert exc_info.value.node_id == "nope"


def test_delete_node_cascades_edges(store):
    """
    Validate that deleting a node removes every edge touching it.

    Verifies:
    - The node is gone
    - Edges in and out of the node are gone
    - Unrelated edges survive
    """
    store.add_edge(EdgeData.connect(INITIALIZER_ID, "provider-1"))
    store.add_edge(EdgeData.connect("provider-1", "provider-2"))
    store.add_edge(EdgeData.connect(INITIALIZER_ID, "provider-2"))

    store.delete_node("provider-1")

    assert not store.has_node("provider-1")
    assert [e.id for e in store.graph.edges] == [f"edge-{INITIALIZER_ID}-provider-2"]
    for edge in store.graph.edges:
        assert "provider-1" not in (edge.source, edge.target)


def test_delete_missing_node_is_noop(store):
    before = store.graph

    result = store.delete_node("does-not-exist")

    assert result is before
    assert store.graph is before


# =============================================================================
# EDGE OPERATIONS TESTS
# =============================================================================

def test_add_edge_creates_edge(store):
    edge = EdgeData.connect(INITIALIZER_ID, "provider-1")

    store.add_edge(edge)

    assert store.edge_count == 1
    assert store.graph.edges[0] == edge
    assert edge.id == f"edge-{INITIALIZER_ID}-provider-1"


def test_add_edge_missing_endpoint_fails(store):
    with pytest.raises(NotFoundError):
        store.add_edge(EdgeData.connect(INITIALIZER_ID, "ghost"))
    with pytest.raises(NotFoundError):
        store.add_edge(EdgeData.connect("ghost", "provider-1"))

    assert store.edge_count == 0


def test_add_edge_duplicate_id_fails(store):
    store.add_edge(EdgeData.connect(INITIALIZER_ID, "provider-1"))

    with pytest.raises(DuplicateIdError):
        store.add_edge(EdgeData.connect(INITIALIZER_ID, "provider-1"))


def test_add_edge_accepts_parallel_and_cyclic_edges(store):
    """
    Validate that the store does not police edge legality.

    Verifies:
    - Parallel edges with distinct ids are accepted
    - A provider cycle is accepted
    - An edge into the initializer is accepted (the validator rejects it, not the store)
    """
    store.add_edge(EdgeData.connect("provider-1", "provider-2", id="a"))
    store.add_edge(EdgeData.connect("provider-1", "provider-2", id="b"))
    store.add_edge(EdgeData.connect("provider-2", "provider-1", id="c"))
    store.add_edge(EdgeData.connect("provider-1", INITIALIZER_ID, id="d"))

    assert store.edge_count == 4


# =============================================================================
# UPDATE TESTS
# =============================================================================

def test_update_node_position(store):
    store.update_node_position("provider-1", Position(10.0, 20.0))

    assert store.get_node("provider-1").position == Position(10.0, 20.0)


def test_update_node_style_merges(store):
    store.update_node_style(INITIALIZER_ID, {"border": "1px"})
    store.update_node_style(INITIALIZER_ID, VALID_AMOUNT_STYLE)

    style = store.get_node(INITIALIZER_ID).style
    assert style["border"] == "1px"
    assert style["backgroundColor"] == "lightgreen"


def test_update_missing_node_raises(store):
    with pytest.raises(NotFoundError):
        store.update_node_position("ghost", Position(0.0, 0.0))
    with pytest.raises(NotFoundError):
        store.update_node_style("ghost", {"color": "red"})


# =============================================================================
# VALUE SEMANTICS TESTS
# =============================================================================

def test_handed_out_graph_never_changes(store):
    """
    Validate that a graph value obtained earlier is unaffected by later mutations.

    Verifies:
    - Node and edge tuples of the old value are unchanged
    - Node positions in the old value are unchanged
    """
    old = store.graph
    old_ids = old.node_ids()

    store.add_node(NodeData.provider("PayPal", id="PayPal-4"))
    store.update_node_position("provider-1", Position(999.0, 999.0))
    store.add_edge(EdgeData.connect(INITIALIZER_ID, "PayPal-4"))
    store.delete_node("provider-2")

    assert old.node_ids() == old_ids
    assert old.edges == ()
    assert old.get("provider-1").position == Position(300.0, 50.0)


def test_replace_installs_graph(store):
    replacement = Graph(nodes=(NodeData.derived("x", id="d-1"),))

    store.replace(replacement)

    assert store.graph is replacement
    assert store.initializer is None
    assert "d-1" in store
    assert len(store) == 1


# =============================================================================
# BRIDGE AND VIEW TESTS
# =============================================================================

def test_build_digraph_maps_ids(store):
    store.add_edge(EdgeData.connect(INITIALIZER_ID, "provider-1"))

    digraph, node_map = build_digraph(store.graph)

    assert digraph.num_nodes() == 3
    assert digraph.num_edges() == 1
    assert digraph[node_map[INITIALIZER_ID]] == INITIALIZER_ID
    assert digraph.has_edge(node_map[INITIALIZER_ID], node_map["provider-1"])


def test_build_digraph_dangling_edge_raises():
    graph = Graph(
        nodes=(NodeData.derived("a", id="a"),),
        edges=(EdgeData.connect("a", "b"),),
    )

    with pytest.raises(NotFoundError):
        build_digraph(graph)


def test_polars_views(store):
    store.add_edge(EdgeData.connect(INITIALIZER_ID, "provider-1"))

    nodes = store.to_polars_nodes()
    edges = store.to_polars_edges()

    assert nodes.columns == ["id", "kind", "provider_name", "x", "y", "rich"]
    assert nodes.height == 3
    assert nodes.filter(nodes["kind"] == "PROVIDER").height == 2
    assert nodes.row(0, named=True)["rich"] is True
    assert edges.height == 1
    assert edges.row(0) == (f"edge-{INITIALIZER_ID}-provider-1", INITIALIZER_ID, "provider-1")


def test_polars_views_of_empty_store(empty_store):
    assert empty_store.to_polars_nodes().height == 0
    assert empty_store.to_polars_edges().height == 0


def test_node_data_provider_name_rule():
    with pytest.raises(ValueError):
        NodeData(id="p", kind=NodeKind.PROVIDER)
    with pytest.raises(ValueError):
        NodeData(id="d", kind=NodeKind.DERIVED, provider_name="Stripe", payload=PlainPayload("x"))
