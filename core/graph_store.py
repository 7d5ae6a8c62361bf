"""
PAYFLOW GRAPH STORE - The Single Source of Truth

Holds the canonical Graph value and applies every mutation to it.
Each mutating method returns the NEW Graph value and makes it current;
a value that has been handed out is never modified, so long-lived
history snapshots stay valid.

Architecture (The Bridge Pattern, for algorithms):
  Python Layer (Business Logic)
  - Uses string IDs: "payment-initialize", "Stripe-4"
  - Calls: store.add_node(node), store.delete_node("Stripe-4")

  Bridge Layer (to_digraph)
  - node_map: Dict[str, int]  (ID -> Index)

  Rust Layer (rustworkx.PyDiGraph)
  - Uses integer indices: 0, 1, 2, ...
  - Used by the layout engine for cycle breaking and topological order

Policy vs Mechanism:
  The store does NOT consult the connection validator. Callers decide
  whether an edge is legal; the store only guarantees structural
  integrity (unique ids, existing endpoints, one initializer).
"""
import logging
from typing import Dict, List, Optional, Tuple

import msgspec
import polars as pl
import rustworkx as rx

from core.ontology import NodeKind
from core.schemas import Graph, NodeData, EdgeData, Position

logger = logging.getLogger(__name__)


# =============================================================================
# CUSTOM EXCEPTIONS
# =============================================================================

class GraphError(Exception):
    """Base exception for graph operations."""
    pass


class NotFoundError(GraphError):
    """Raised when an operation references an id that is not in the graph."""
    def __init__(self, node_id: str):
        self.node_id = node_id
        super().__init__(f"Node not found: {node_id}")


class DuplicateIdError(GraphError):
    """Raised when adding a node or edge whose id already exists."""
    def __init__(self, element_id: str):
        self.element_id = element_id
        super().__init__(f"Id already exists: {element_id}")


class GraphInvariantError(GraphError):
    """Raised when a mutation would break a structural invariant."""
    pass


# =============================================================================
# RUSTWORKX BRIDGE
# =============================================================================

def build_digraph(graph: Graph) -> Tuple[rx.PyDiGraph, Dict[str, int]]:
    """
    Build a rustworkx multigraph from a Graph value.

    Node payloads are node ids; edge payloads are edge ids. Nodes and
    edges are inserted in graph order so that algorithms run on the
    result are deterministic.

    Returns:
        (digraph, node_map) where node_map maps node id -> rx index

    Raises:
        NotFoundError: If an edge references a node that is not in the graph
    """
    digraph = rx.PyDiGraph(multigraph=True)
    node_map: Dict[str, int] = {}

    for node in graph.nodes:
        node_map[node.id] = digraph.add_node(node.id)

    for edge in graph.edges:
        for endpoint in (edge.source, edge.target):
            if endpoint not in node_map:
                raise NotFoundError(endpoint)
        digraph.add_edge(node_map[edge.source], node_map[edge.target], edge.id)

    return digraph, node_map


# =============================================================================
# GRAPH STORE
# =============================================================================

class GraphStore:
    """
    Owner of the current Graph value.

    Usage:
        store = GraphStore(create_default_graph())

        store.add_node(NodeData.provider("Stripe", id="Stripe-4"))
        store.add_edge(EdgeData.connect("payment-initialize", "Stripe-4"))
        store.delete_node("Stripe-4")   # edge removed with it

        graph = store.graph             # immutable value, safe to keep

    Thread Safety:
        NOT thread-safe. A multi-threaded host must guard the store and the
        history stacks with the same lock.
    """

    def __init__(self, graph: Optional[Graph] = None):
        self._graph: Graph = graph if graph is not None else Graph()

    # =========================================================================
    # PROPERTIES
    # =========================================================================

    @property
    def graph(self) -> Graph:
        """The current graph value."""
        return self._graph

    @property
    def node_count(self) -> int:
        return len(self._graph.nodes)

    @property
    def edge_count(self) -> int:
        return len(self._graph.edges)

    @property
    def initializer(self) -> Optional[NodeData]:
        return self._graph.initializer

    # =========================================================================
    # NODE OPERATIONS
    # =========================================================================

    def add_node(self, node: NodeData) -> Graph:
        """
        Append a node.

        Raises:
            DuplicateIdError: If the node id is already present
            GraphInvariantError: If the graph already has an initializer and
                                 `node` is another one
        """
        if self._graph.has_node(node.id):
            raise DuplicateIdError(node.id)

        if node.kind == NodeKind.INITIALIZER and self._graph.initializer is not None:
            raise GraphInvariantError(
                f"Cannot add initializer {node.id}: "
                f"{self._graph.initializer.id} already exists"
            )

        logger.debug("add_node %s (%s)", node.id, node.kind)
        return self._commit(msgspec.structs.replace(self._graph, nodes=self._graph.nodes + (node,)))

    def delete_node(self, node_id: str) -> Graph:
        """
        Remove a node and every edge touching it.

        Deleting an absent id is a no-op and returns the current graph.
        """
        if not self._graph.has_node(node_id):
            return self._graph

        nodes = tuple(n for n in self._graph.nodes if n.id != node_id)
        edges = tuple(
            e for e in self._graph.edges
            if e.source != node_id and e.target != node_id
        )

        logger.debug(
            "delete_node %s (cascaded %d edges)",
            node_id, len(self._graph.edges) - len(edges),
        )
        return self._commit(Graph(nodes=nodes, edges=edges))

    def update_node_position(self, node_id: str, position: Position) -> Graph:
        """
        Move a node.

        Raises:
            NotFoundError: If node doesn't exist
        """
        return self._replace_node(node_id, lambda n: n.with_position(position))

    def update_node_style(self, node_id: str, style: Dict[str, str]) -> Graph:
        """
        Merge style fields into a node (e.g. amount validity feedback).

        Raises:
            NotFoundError: If node doesn't exist
        """
        return self._replace_node(node_id, lambda n: n.with_style(style))

    def get_node(self, node_id: str) -> NodeData:
        """
        Retrieve a node by its id.

        Raises:
            NotFoundError: If node doesn't exist
        """
        node = self._graph.get(node_id)
        if node is None:
            raise NotFoundError(node_id)
        return node

    def has_node(self, node_id: str) -> bool:
        return self._graph.has_node(node_id)

    def find_provider(self, name: str) -> Optional[NodeData]:
        return self._graph.find_provider(name)

    # =========================================================================
    # EDGE OPERATIONS
    # =========================================================================

    def add_edge(self, edge: EdgeData) -> Graph:
        """
        Append an edge.

        The connection validator is NOT consulted here; callers run it first.
        Parallel edges and cycles are accepted.

        Raises:
            DuplicateIdError: If the edge id is already present
            NotFoundError: If source or target node doesn't exist
        """
        if self._graph.has_edge_id(edge.id):
            raise DuplicateIdError(edge.id)
        if not self._graph.has_node(edge.source):
            raise NotFoundError(edge.source)
        if not self._graph.has_node(edge.target):
            raise NotFoundError(edge.target)

        logger.debug("add_edge %s: %s -> %s", edge.id, edge.source, edge.target)
        return self._commit(msgspec.structs.replace(self._graph, edges=self._graph.edges + (edge,)))

    # =========================================================================
    # WHOLE-GRAPH OPERATIONS
    # =========================================================================

    def replace(self, graph: Graph) -> Graph:
        """Install a whole graph value (undo/redo, load, import, layout)."""
        return self._commit(graph)

    def to_digraph(self) -> Tuple[rx.PyDiGraph, Dict[str, int]]:
        """Build a rustworkx multigraph of the current graph (see build_digraph)."""
        return build_digraph(self._graph)

    # =========================================================================
    # TABULAR VIEWS (Polars)
    # =========================================================================

    def to_polars_nodes(self) -> pl.DataFrame:
        """Export nodes to a Polars DataFrame (one row per node)."""
        nodes = self._graph.nodes
        return pl.DataFrame(
            {
                "id": [n.id for n in nodes],
                "kind": [NodeKind(n.kind).value for n in nodes],
                "provider_name": [n.provider_name for n in nodes],
                "x": [float(n.position.x) for n in nodes],
                "y": [float(n.position.y) for n in nodes],
                "rich": [n.is_rich for n in nodes],
            },
            schema={
                "id": pl.Utf8,
                "kind": pl.Utf8,
                "provider_name": pl.Utf8,
                "x": pl.Float64,
                "y": pl.Float64,
                "rich": pl.Boolean,
            },
        )

    def to_polars_edges(self) -> pl.DataFrame:
        """Export edges to a Polars DataFrame."""
        edges = self._graph.edges
        return pl.DataFrame(
            {
                "id": [e.id for e in edges],
                "source": [e.source for e in edges],
                "target": [e.target for e in edges],
            },
            schema={"id": pl.Utf8, "source": pl.Utf8, "target": pl.Utf8},
        )

    # =========================================================================
    # INTERNAL UTILITIES
    # =========================================================================

    def _replace_node(self, node_id: str, change) -> Graph:
        nodes: List[NodeData] = list(self._graph.nodes)
        for i, node in enumerate(nodes):
            if node.id == node_id:
                nodes[i] = change(node)
                return self._commit(msgspec.structs.replace(self._graph, nodes=tuple(nodes)))
        raise NotFoundError(node_id)

    def _commit(self, graph: Graph) -> Graph:
        self._graph = graph
        return graph

    def __len__(self) -> int:
        """Return number of nodes."""
        return self.node_count

    def __contains__(self, node_id: str) -> bool:
        """Check if node exists."""
        return self._graph.has_node(node_id)

    def __repr__(self) -> str:
        return f"GraphStore(nodes={self.node_count}, edges={self.edge_count})"
