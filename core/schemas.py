"""
PAYFLOW SCHEMAS - The Grammar of the Editor

If ontology.py is the Dictionary (defining the words we can use),
schemas.py is the Grammar (defining how we structure a graph).

This module defines the core data structures that flow through the editor:
- Position: Canvas coordinates of a node
- PlainPayload / RichPayload: The two payload variants
- NodeData / EdgeData: The graph elements
- Graph: The immutable (nodes, edges) value handed out by the store
- StorableNode / StorableEdge / StorableGraph: The persistence-safe form
- KeyValueStore: The protocol a save target implements

Design Principles:
1. VALUES, NOT OBJECTS: Graph, NodeData and EdgeData are frozen. Every
   mutation builds a new value; a value handed out is never changed.
2. OPAQUE RICH CONTENT: RichPayload.content may be any Python object. Only
   its tag is ever persisted.
3. KW_ONLY: Enforce keyword arguments to prevent positional mix-ups
4. IMMUTABLE IDS: Node/edge IDs are set once and never change
"""
import msgspec
from typing import Optional, Dict, Any, List, Protocol, Tuple, Union, runtime_checkable
from datetime import datetime, timezone
import uuid

from core.ontology import (
    NodeKind,
    PayloadVariant,
    INITIALIZER_ID,
    AMOUNT_FORM_TAG,
    PROVIDER_CARD_TAG,
)


# =============================================================================
# UTILITY FUNCTIONS
# =============================================================================

def now_utc() -> str:
    """Fast UTC timestamp as ISO8601 string."""
    return datetime.now(timezone.utc).isoformat()


def generate_id() -> str:
    """Generate a new UUID hex string for node/edge IDs."""
    return uuid.uuid4().hex


# =============================================================================
# POSITION
# =============================================================================

class Position(msgspec.Struct, frozen=True):
    """Canvas coordinates of a node."""
    x: float
    y: float


# =============================================================================
# PAYLOADS (Tagged Union)
# =============================================================================

class PlainPayload(msgspec.Struct, frozen=True, tag=PayloadVariant.PLAIN.value, tag_field="variant"):
    """
    A payload whose value is already JSON-compatible (str, number, list, dict).

    Persisted verbatim as the node's payloadTag.
    """
    value: Any = None


class RichPayload(msgspec.Struct, frozen=True, tag=PayloadVariant.RICH.value, tag_field="variant"):
    """
    Opaque content supplied by the presentation layer.

    `tag` names the capability (e.g. "amount-form"); `content` is whatever
    the presentation layer attached and is never persisted. On reload the
    content is rebuilt from a placeholder, not restored.
    """
    tag: str
    content: Any = None


Payload = Union[PlainPayload, RichPayload]


# =============================================================================
# NODE DATA
# =============================================================================

class NodeData(msgspec.Struct, kw_only=True, frozen=True):
    """
    One node of the payment flow.

    Architecture Notes:
    - `id`: Business ID, unique within the graph for its lifetime
    - `provider_name`: Set iff kind is PROVIDER
    - `style`: Visual feedback fields (amount validity); merged, never mutated
    """
    # === Identity ===
    id: str
    kind: NodeKind
    provider_name: Optional[str] = None

    # === Content ===
    payload: Payload = msgspec.field(default_factory=PlainPayload)

    # === Canvas ===
    position: Position = msgspec.field(default_factory=lambda: Position(0.0, 0.0))
    style: Dict[str, str] = msgspec.field(default_factory=dict)

    def __post_init__(self):
        if self.kind == NodeKind.PROVIDER:
            if not self.provider_name:
                raise ValueError(f"Provider node {self.id!r} requires a provider_name")
        elif self.provider_name is not None:
            raise ValueError(
                f"Node {self.id!r} of kind {self.kind} cannot carry a provider_name"
            )

    @property
    def is_rich(self) -> bool:
        return isinstance(self.payload, RichPayload)

    def with_position(self, position: Position) -> "NodeData":
        """Return a copy placed at `position`."""
        return msgspec.structs.replace(self, position=position)

    def with_style(self, style: Dict[str, str]) -> "NodeData":
        """Return a copy with `style` merged over the current style."""
        return msgspec.structs.replace(self, style={**self.style, **style})

    @classmethod
    def initializer(
        cls,
        id: str = INITIALIZER_ID,
        position: Optional[Position] = None,
        payload: Optional[Payload] = None,
    ) -> "NodeData":
        """Create the initializer node (label plus amount input)."""
        return cls(
            id=id,
            kind=NodeKind.INITIALIZER,
            payload=payload or RichPayload(tag=AMOUNT_FORM_TAG),
            position=position or Position(50.0, 100.0),
        )

    @classmethod
    def provider(
        cls,
        name: str,
        id: Optional[str] = None,
        position: Optional[Position] = None,
        payload: Optional[Payload] = None,
    ) -> "NodeData":
        """Create a provider node. The default payload is a rich provider card."""
        return cls(
            id=id or generate_id(),
            kind=NodeKind.PROVIDER,
            provider_name=name,
            payload=payload or RichPayload(tag=PROVIDER_CARD_TAG),
            position=position or Position(0.0, 0.0),
        )

    @classmethod
    def derived(
        cls,
        label: str,
        id: Optional[str] = None,
        position: Optional[Position] = None,
    ) -> "NodeData":
        """Create a derived node carrying a plain text label."""
        return cls(
            id=id or generate_id(),
            kind=NodeKind.DERIVED,
            payload=PlainPayload(label),
            position=position or Position(0.0, 0.0),
        )


# =============================================================================
# EDGE DATA
# =============================================================================

class EdgeData(msgspec.Struct, kw_only=True, frozen=True):
    """
    A directed connection between two nodes.

    Edges are intentionally "thin": identity and endpoints only.
    """
    id: str
    source: str
    target: str

    @classmethod
    def connect(cls, source: str, target: str, id: Optional[str] = None) -> "EdgeData":
        """Factory method to create an EdgeData."""
        return cls(id=id or f"edge-{source}-{target}", source=source, target=target)


# =============================================================================
# GRAPH (The Value Handed Out by the Store)
# =============================================================================

class Graph(msgspec.Struct, kw_only=True, frozen=True):
    """
    The pair (nodes, edges). Order is creation/update order and carries
    no meaning beyond display.
    """
    nodes: Tuple[NodeData, ...] = ()
    edges: Tuple[EdgeData, ...] = ()

    def get(self, node_id: str) -> Optional[NodeData]:
        """Return the node with `node_id`, or None."""
        for node in self.nodes:
            if node.id == node_id:
                return node
        return None

    def has_node(self, node_id: str) -> bool:
        return self.get(node_id) is not None

    def has_edge_id(self, edge_id: str) -> bool:
        return any(e.id == edge_id for e in self.edges)

    def node_ids(self) -> List[str]:
        return [n.id for n in self.nodes]

    def nodes_of_kind(self, kind: NodeKind) -> List[NodeData]:
        return [n for n in self.nodes if n.kind == kind]

    @property
    def initializer(self) -> Optional[NodeData]:
        """The initializer node, if present."""
        found = self.nodes_of_kind(NodeKind.INITIALIZER)
        return found[0] if found else None

    def find_provider(self, name: str) -> Optional[NodeData]:
        """Return the provider node named `name`, or None."""
        for node in self.nodes:
            if node.kind == NodeKind.PROVIDER and node.provider_name == name:
                return node
        return None

    def copy(self) -> "Graph":
        """
        Copy the structure of this graph.

        Node and edge containers are fresh; payload objects are shared by
        reference since rich content is opaque and never copied.
        """
        return Graph(
            nodes=tuple(msgspec.structs.replace(n, style=dict(n.style)) for n in self.nodes),
            edges=tuple(self.edges),
        )


def create_default_graph() -> Graph:
    """The starting canvas: one initializer and two generic providers."""
    return Graph(
        nodes=(
            NodeData.initializer(),
            NodeData.provider(
                "Provider 1",
                id="provider-1",
                position=Position(300.0, 50.0),
                payload=PlainPayload("Provider 1"),
            ),
            NodeData.provider(
                "Provider 2",
                id="provider-2",
                position=Position(300.0, 150.0),
                payload=PlainPayload("Provider 2"),
            ),
        ),
    )


# =============================================================================
# STORABLE FORM (Persistence-Safe)
# =============================================================================

class StorableNode(msgspec.Struct, kw_only=True, rename="camel"):
    """Flattened node: {id, kind, providerName, position, payloadTag}."""
    id: str
    kind: NodeKind
    provider_name: Optional[str] = None
    position: Position
    payload_tag: Any = None


class StorableEdge(msgspec.Struct, kw_only=True):
    """Flattened edge: {id, source, target}."""
    id: str
    source: str
    target: str


class StorableGraph(msgspec.Struct, kw_only=True):
    """The JSON-compatible structure written to storage or a file."""
    nodes: List[StorableNode]
    edges: List[StorableEdge]


# =============================================================================
# PERSISTENCE PROTOCOL
# =============================================================================

@runtime_checkable
class KeyValueStore(Protocol):
    """Flat string key-value persistence the serializer saves into."""

    def get(self, key: str) -> Optional[str]:
        ...

    def set(self, key: str, value: str) -> None:
        ...

    def delete(self, key: str) -> None:
        ...
