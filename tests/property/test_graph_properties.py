"""Property-based tests for the graph model.

Properties tested:
- Storable round trip preserves ids, kinds, provider names, positions, edges
- Connection legality depends only on the endpoint kinds
- Deleting a node never leaves an edge pointing at it
- Undoing every recorded mutation restores the starting graph, and
  redoing them all restores the final one
- Layout changes positions only, is deterministic, and ranks every
  edge of an acyclic graph downwards
"""

from __future__ import annotations

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from core.graph_store import GraphStore
from core.history import HistoryManager
from core.layout import assign_ranks, layout
from core.ontology import LEGAL_CONNECTIONS, NodeKind
from core.schemas import Graph, NodeData, EdgeData, Position, PlainPayload, RichPayload
from core.serializer import from_storable, to_storable
from core.validator import is_legal_connection

pytestmark = pytest.mark.property


# =============================================================================
# Strategies
# =============================================================================

coordinates = st.floats(allow_nan=False, allow_infinity=False, min_value=-1e6, max_value=1e6)
positions = st.builds(Position, coordinates, coordinates)

plain_values = st.one_of(
    st.none(),
    st.text(max_size=20),
    st.integers(min_value=-1000, max_value=1000),
    st.lists(st.integers(min_value=0, max_value=9), max_size=3),
)

payloads = st.one_of(
    st.builds(PlainPayload, plain_values),
    st.builds(RichPayload, tag=st.sampled_from(["amount-form", "provider-card"])),
)

non_initializer_kinds = st.sampled_from([NodeKind.PROVIDER, NodeKind.DERIVED])


@st.composite
def graphs(draw, max_nodes: int = 8, acyclic: bool = False) -> Graph:
    """Graphs with unique ids, at most one initializer, and no dangling edges."""
    count = draw(st.integers(min_value=0, max_value=max_nodes))
    with_initializer = count > 0 and draw(st.booleans())

    nodes = []
    for i in range(count):
        kind = NodeKind.INITIALIZER if (with_initializer and i == 0) else draw(non_initializer_kinds)
        nodes.append(
            NodeData(
                id=f"n{i}",
                kind=kind,
                provider_name=f"Provider {i}" if kind == NodeKind.PROVIDER else None,
                payload=draw(payloads),
                position=draw(positions),
            )
        )

    edges = []
    if count:
        pairs = draw(
            st.lists(
                st.tuples(st.integers(0, count - 1), st.integers(0, count - 1)),
                max_size=12,
            )
        )
        for n, (s, t) in enumerate(pairs):
            if acyclic and s >= t:
                continue
            edges.append(EdgeData.connect(f"n{s}", f"n{t}", id=f"e{n}"))

    return Graph(nodes=tuple(nodes), edges=tuple(edges))


def _structure(graph: Graph):
    return (
        [(n.id, NodeKind(n.kind), n.provider_name, n.position) for n in graph.nodes],
        list(graph.edges),
    )


# =============================================================================
# Serializer Properties
# =============================================================================


class TestStorableRoundTripProperties:
    """Property tests for the storable form."""

    @given(graph=graphs())
    @settings(max_examples=100)
    def test_round_trip_preserves_structure(self, graph: Graph) -> None:
        """Property: from_storable(to_storable(g)) keeps everything but rich content and style."""
        restored = from_storable(to_storable(graph))

        assert _structure(restored) == _structure(graph)
        for before, after in zip(graph.nodes, restored.nodes):
            if isinstance(before.payload, PlainPayload):
                assert after.payload == before.payload
            else:
                assert isinstance(after.payload, RichPayload)


# =============================================================================
# Validator Properties
# =============================================================================


class TestConnectionRuleProperties:
    """Property tests for the connection rule."""

    @given(graph=graphs(), data=st.data())
    @settings(max_examples=100)
    def test_legality_is_the_kind_matrix(self, graph: Graph, data: st.DataObject) -> None:
        """Property: an edge is legal iff (source kind, target kind) is in the matrix."""
        ids = graph.node_ids() + ["ghost"]
        source = data.draw(st.sampled_from(ids))
        target = data.draw(st.sampled_from(ids))

        s, t = graph.get(source), graph.get(target)
        expected = s is not None and t is not None and (s.kind, t.kind) in LEGAL_CONNECTIONS

        assert is_legal_connection(graph, source, target) is expected


# =============================================================================
# Store And History Properties
# =============================================================================

# A mutation script: ("add", kind) or ("delete", index into current ids)
mutations = st.lists(
    st.one_of(
        st.tuples(st.just("add"), non_initializer_kinds),
        st.tuples(st.just("delete"), st.integers(min_value=0, max_value=20)),
    ),
    min_size=1,
    max_size=10,
)


class TestStoreHistoryProperties:
    """Property tests for deletion and undo/redo."""

    @given(graph=graphs(), data=st.data())
    @settings(max_examples=100)
    def test_delete_cascades(self, graph: Graph, data: st.DataObject) -> None:
        """Property: after delete_node(x), no edge touches x."""
        if not graph.nodes:
            return
        store = GraphStore(graph)
        victim = data.draw(st.sampled_from(graph.node_ids()))

        store.delete_node(victim)

        assert not store.has_node(victim)
        assert all(victim not in (e.source, e.target) for e in store.graph.edges)
        assert store.edge_count == sum(
            1 for e in graph.edges if victim not in (e.source, e.target)
        )

    @given(graph=graphs(), script=mutations)
    @settings(max_examples=100)
    def test_undo_all_then_redo_all(self, graph: Graph, script) -> None:
        """Property: undo N times returns the start; redo N times returns the end."""
        store = GraphStore(graph)
        history = HistoryManager()
        start = store.graph
        recorded = 0

        for step, (op, arg) in enumerate(script):
            if op == "add":
                name = f"P{step}" if arg == NodeKind.PROVIDER else None
                node = NodeData(id=f"new{step}", kind=arg, provider_name=name)
                history.record_before_mutation(store.graph, "addNode")
                store.add_node(node)
                recorded += 1
            elif store.node_count:
                victim = store.graph.node_ids()[arg % store.node_count]
                history.record_before_mutation(store.graph, "deleteNode")
                store.delete_node(victim)
                recorded += 1

        end = store.graph

        for _ in range(recorded):
            store.replace(history.undo(store.graph))
        assert store.graph == start
        assert not history.can_undo

        for _ in range(recorded):
            store.replace(history.redo(store.graph))
        assert store.graph == end
        assert not history.can_redo


# =============================================================================
# Layout Properties
# =============================================================================


class TestLayoutProperties:
    """Property tests for the layered layout."""

    @given(graph=graphs())
    @settings(max_examples=50, deadline=None)
    def test_layout_changes_positions_only(self, graph: Graph) -> None:
        """Property: only positions differ, and the result is deterministic."""
        result = layout(graph)

        assert result.edges == graph.edges
        assert [(n.id, n.kind, n.payload, n.style) for n in result.nodes] == [
            (n.id, n.kind, n.payload, n.style) for n in graph.nodes
        ]
        assert layout(graph) == result

    @given(graph=graphs())
    @settings(max_examples=50, deadline=None)
    def test_layout_positions_are_distinct(self, graph: Graph) -> None:
        """Property: no two nodes share a box."""
        result = layout(graph)

        assert len({n.position for n in result.nodes}) == len(result.nodes)

    @given(graph=graphs(acyclic=True))
    @settings(max_examples=50, deadline=None)
    def test_acyclic_edges_point_down(self, graph: Graph) -> None:
        """Property: for every edge of a DAG, rank[target] >= rank[source] + 1."""
        ranks = assign_ranks(graph)

        for edge in graph.edges:
            assert ranks[edge.target] >= ranks[edge.source] + 1
