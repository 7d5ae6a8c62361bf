"""
PAYFLOW CORE - Central exports for core functionality.

This module provides access to:
- The data model (NodeData, EdgeData, Graph and payloads)
- The graph store and its exceptions
- Connection validation, history, layout and serialization
"""

from core.ontology import NodeKind, PROVIDER_PLACEHOLDER, PAYMENT_PROVIDERS
from core.schemas import (
    Position,
    PlainPayload,
    RichPayload,
    NodeData,
    EdgeData,
    Graph,
    StorableGraph,
    KeyValueStore,
    create_default_graph,
)
from core.graph_store import (
    GraphStore,
    GraphError,
    NotFoundError,
    DuplicateIdError,
    GraphInvariantError,
)
from core.validator import IllegalConnectionError, is_legal_connection
from core.history import HistoryManager, Snapshot
from core.layout import LayoutOptions, layout
from core.serializer import (
    MalformedDataError,
    OPAQUE_PAYLOAD,
    to_storable,
    from_storable,
)

__all__ = [
    # Data model
    "NodeKind",
    "PROVIDER_PLACEHOLDER",
    "PAYMENT_PROVIDERS",
    "Position",
    "PlainPayload",
    "RichPayload",
    "NodeData",
    "EdgeData",
    "Graph",
    "StorableGraph",
    "KeyValueStore",
    "create_default_graph",
    # Store
    "GraphStore",
    "GraphError",
    "NotFoundError",
    "DuplicateIdError",
    "GraphInvariantError",
    # Algorithms
    "IllegalConnectionError",
    "is_legal_connection",
    "HistoryManager",
    "Snapshot",
    "LayoutOptions",
    "layout",
    # Serialization
    "MalformedDataError",
    "OPAQUE_PAYLOAD",
    "to_storable",
    "from_storable",
]
