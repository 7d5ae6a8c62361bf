"""
Unit tests for core/history.py - HistoryManager

Tests linear undo/redo over graph snapshots:
- Undo/redo round trips
- New mutations invalidate redo
- Empty stacks are no-ops
- Snapshots are isolated from the live graph
- Optional depth bound
"""
import pytest

from core.graph_store import GraphStore
from core.history import HistoryManager, Snapshot
from core.ontology import INITIALIZER_ID
from core.schemas import NodeData, EdgeData, Position, RichPayload


@pytest.fixture
def history():
    return HistoryManager()


def _add(store, history, node):
    history.record_before_mutation(store.graph, "addNode")
    store.add_node(node)


def test_undo_restores_previous_state(store, history):
    """
    Validate that undo returns the graph as it was before the recorded mutation.

    Verifies:
    - The added node is gone after undo
    - The redo stack has one entry
    """
    before = store.graph
    _add(store, history, NodeData.provider("Stripe", id="Stripe-4"))

    store.replace(history.undo(store.graph))

    assert store.graph == before
    assert history.can_redo
    assert not history.can_undo


def test_redo_reapplies_undone_mutation(store, history):
    _add(store, history, NodeData.provider("Stripe", id="Stripe-4"))
    after = store.graph

    store.replace(history.undo(store.graph))
    store.replace(history.redo(store.graph))

    assert store.graph == after
    assert history.undo_depth == 1
    assert history.redo_depth == 0


def test_new_mutation_clears_redo(store, history):
    _add(store, history, NodeData.provider("Stripe", id="Stripe-4"))
    store.replace(history.undo(store.graph))
    assert history.can_redo

    _add(store, history, NodeData.provider("PayPal", id="PayPal-4"))

    assert not history.can_redo
    assert store.graph == history.redo(store.graph)


def test_empty_stacks_are_noops(store, history):
    current = store.graph

    assert history.undo(current) is current
    assert history.redo(current) is current
    assert history.undo_depth == 0
    assert history.redo_depth == 0


def test_multi_step_undo_order(store, history):
    """
    Validate that undo walks back through mutations in reverse order.

    Verifies:
    - Each undo removes the most recent remaining addition
    - Redo replays them in the order they happened
    """
    states = [store.graph]
    for name in ("Stripe", "PayPal", "Apple Pay"):
        _add(store, history, NodeData.provider(name, id=f"{name}-x"))
        states.append(store.graph)

    for expected in reversed(states[:-1]):
        store.replace(history.undo(store.graph))
        assert store.graph == expected

    for expected in states[1:]:
        store.replace(history.redo(store.graph))
        assert store.graph == expected


def test_delete_undo_restores_edges(store, history):
    store.add_edge(EdgeData.connect(INITIALIZER_ID, "provider-1"))
    before = store.graph

    history.record_before_mutation(store.graph, "deleteNode")
    store.delete_node("provider-1")
    assert store.edge_count == 0

    store.replace(history.undo(store.graph))

    assert store.graph == before
    assert store.edge_count == 1


def test_snapshot_isolated_from_live_graph(store, history):
    """
    Validate that later updates to the live graph do not leak into snapshots.

    Verifies:
    - Moving and restyling a node after recording leaves the snapshot intact
    """
    history.record_before_mutation(store.graph, "addNode")
    store.add_node(NodeData.provider("Stripe", id="Stripe-4"))
    store.update_node_position("provider-1", Position(1.0, 1.0))
    store.update_node_style(INITIALIZER_ID, {"backgroundColor": "red"})

    restored = history.undo(store.graph)

    assert restored.get("provider-1").position == Position(300.0, 50.0)
    assert restored.get(INITIALIZER_ID).style == {}
    assert not restored.has_node("Stripe-4")


def test_snapshot_shares_payloads(store):
    content = object()
    store.add_node(NodeData.provider("Stripe", id="s", payload=RichPayload(tag="card", content=content)))

    snapshot = Snapshot.capture(store.graph, "x")

    assert snapshot.graph.get("s").payload.content is content
    assert snapshot.graph.nodes is not store.graph.nodes


def test_max_depth_drops_oldest(store):
    history = HistoryManager(max_depth=2)
    for i in range(4):
        _add(store, history, NodeData.derived(str(i), id=f"d-{i}"))

    assert history.undo_depth == 2
    store.replace(history.undo(store.graph))
    store.replace(history.undo(store.graph))
    assert store.graph.node_ids()[-1] == "d-1"
    assert not history.can_undo


def test_zero_max_depth_is_unbounded():
    assert HistoryManager(0).max_depth is None


def test_clear(store, history):
    _add(store, history, NodeData.derived("x", id="d"))
    history.clear()
    assert not history.can_undo
    assert repr(history) == "HistoryManager(undo=0, redo=0)"


def test_graph_store_is_untouched_by_history(history):
    store = GraphStore()
    history.record_before_mutation(store.graph)
    assert store.node_count == 0
