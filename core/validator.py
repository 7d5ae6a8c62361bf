"""
Connection validation for the payment flow.

A proposed edge is legal iff its endpoint kinds appear in the
connection matrix (core.ontology.LEGAL_CONNECTIONS):

    INITIALIZER -> PROVIDER
    PROVIDER    -> PROVIDER

Everything else is rejected, including edges touching an id that is
not in the graph. Cycles and parallel edges are NOT checked; only the
endpoint kinds matter.

The validator is pure: it reads a Graph value and never mutates it.
"""
from core.ontology import NodeKind, is_legal_kind_pair
from core.graph_store import GraphError
from core.schemas import Graph


class IllegalConnectionError(GraphError):
    """Raised when a proposed edge fails the connection rule."""
    def __init__(self, source_id: str, target_id: str):
        self.source_id = source_id
        self.target_id = target_id
        super().__init__(f"Illegal connection: {source_id} -> {target_id}")


def is_legal_connection(graph: Graph, source_id: str, target_id: str) -> bool:
    """Check whether an edge source -> target may be added to `graph`."""
    source = graph.get(source_id)
    target = graph.get(target_id)
    if source is None or target is None:
        return False
    return is_legal_kind_pair(source.kind, target.kind)


def check_connection(graph: Graph, source_id: str, target_id: str) -> None:
    """
    Gate an edge-creation mutation.

    Raises:
        IllegalConnectionError: If the connection is not legal
    """
    if not is_legal_connection(graph, source_id, target_id):
        raise IllegalConnectionError(source_id, target_id)


def is_initializer_link(graph: Graph, source_id: str, target_id: str) -> bool:
    """True if source -> target wires the initializer to a provider."""
    source = graph.get(source_id)
    target = graph.get(target_id)
    return (
        source is not None
        and target is not None
        and source.kind == NodeKind.INITIALIZER
        and target.kind == NodeKind.PROVIDER
    )
