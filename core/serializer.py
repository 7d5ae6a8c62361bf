"""
PAYFLOW SERIALIZER - Graph <-> Storable Form

Converts the store's Graph value to a persistence-safe structure and back:

    {
      "nodes": [{"id", "kind", "providerName", "position", "payloadTag"}],
      "edges": [{"id", "source", "target"}]
    }

Rich payloads cannot be persisted. Their payloadTag is the sentinel
OPAQUE_PAYLOAD, and on reload a placeholder is built for the node's kind
by a registry the caller supplies. The round trip is exact for ids,
kinds, provider names, positions and edge topology, and lossy for rich
content. Styles are not persisted.

Boundaries served:
- Flat key-value store: nodes and edges under the keys "nodes" / "edges"
- Single file: the storable form plus a "live" view of the full graph
"""
import logging
from pathlib import Path
from typing import Any, Callable, Dict, Mapping, Optional, Union

import msgspec

from core.graph_store import GraphError
from core.ontology import NodeKind, PayloadVariant
from core.schemas import (
    Graph,
    KeyValueStore,
    NodeData,
    EdgeData,
    Payload,
    PlainPayload,
    RichPayload,
    StorableGraph,
    StorableNode,
    StorableEdge,
)

logger = logging.getLogger(__name__)


OPAQUE_PAYLOAD = "opaque-payload"

NODES_KEY = "nodes"
EDGES_KEY = "edges"

# Rebuilds a payload for a node whose payloadTag is the sentinel
PlaceholderBuilder = Callable[[StorableNode], Payload]
Placeholders = Mapping[NodeKind, PlaceholderBuilder]


class MalformedDataError(GraphError):
    """Raised when storable data is corrupt, incomplete or cannot be encoded."""
    pass


# Pre-compiled encoders/decoders, reused across calls
_encoder = msgspec.json.Encoder()
_decoder = msgspec.json.Decoder()


# =============================================================================
# GRAPH -> STORABLE
# =============================================================================

def payload_tag(payload: Payload) -> Any:
    """
    The persisted form of a payload.

    Plain values that encode to JSON are kept; rich payloads (and plain
    values that turn out not to be serializable) become the sentinel.
    """
    if isinstance(payload, RichPayload):
        return OPAQUE_PAYLOAD
    try:
        value = msgspec.to_builtins(payload.value)
        # to_builtins accepts some values (e.g. tuple dict keys) JSON rejects
        _encoder.encode(value)
    except (TypeError, ValueError, msgspec.EncodeError) as exc:
        logger.debug("Plain payload is not serializable, storing sentinel: %s", exc)
        return OPAQUE_PAYLOAD
    return value


def to_storable(graph: Graph) -> StorableGraph:
    """Flatten a Graph into its storable form."""
    return StorableGraph(
        nodes=[
            StorableNode(
                id=node.id,
                kind=NodeKind(node.kind),
                provider_name=node.provider_name,
                position=node.position,
                payload_tag=payload_tag(node.payload),
            )
            for node in graph.nodes
        ],
        edges=[
            StorableEdge(id=edge.id, source=edge.source, target=edge.target)
            for edge in graph.edges
        ],
    )


# =============================================================================
# STORABLE -> GRAPH
# =============================================================================

def _rebuild_payload(record: StorableNode, placeholders: Optional[Placeholders]) -> Payload:
    if record.payload_tag != OPAQUE_PAYLOAD:
        return PlainPayload(record.payload_tag)

    builder = placeholders.get(record.kind) if placeholders else None
    if builder is None:
        return RichPayload(tag=OPAQUE_PAYLOAD)
    return builder(record)


def _coerce(data: Union[StorableGraph, Mapping[str, Any]]) -> StorableGraph:
    if isinstance(data, StorableGraph):
        return data
    if not isinstance(data, Mapping):
        raise MalformedDataError(f"Workflow data must be an object, got {type(data).__name__}")

    for key in (NODES_KEY, EDGES_KEY):
        if key not in data:
            raise MalformedDataError(f"Workflow data is missing {key!r}")
        if not isinstance(data[key], list):
            raise MalformedDataError(f"Workflow {key!r} must be a list")

    try:
        return msgspec.convert(data, type=StorableGraph)
    except msgspec.ValidationError as exc:
        raise MalformedDataError(f"Invalid workflow data: {exc}") from exc


def from_storable(
    data: Union[StorableGraph, Mapping[str, Any]],
    placeholders: Optional[Placeholders] = None,
) -> Graph:
    """
    Rebuild a Graph from its storable form.

    Args:
        data: A StorableGraph, or the decoded JSON object
        placeholders: Kind -> builder for nodes stored with the sentinel.
                      Without a builder the node gets a generic
                      RichPayload(tag=OPAQUE_PAYLOAD).

    Raises:
        MalformedDataError: If `nodes`/`edges` are missing or not lists, a
                            record is invalid, ids repeat, an edge points at
                            an absent node, or there is more than one
                            initializer
    """
    storable = _coerce(data)

    nodes = []
    seen: Dict[str, NodeKind] = {}
    for record in storable.nodes:
        if record.id in seen:
            raise MalformedDataError(f"Duplicate node id: {record.id}")
        try:
            node = NodeData(
                id=record.id,
                kind=record.kind,
                provider_name=record.provider_name,
                payload=_rebuild_payload(record, placeholders),
                position=record.position,
            )
        except ValueError as exc:
            raise MalformedDataError(str(exc)) from exc
        seen[record.id] = record.kind
        nodes.append(node)

    if sum(1 for kind in seen.values() if kind == NodeKind.INITIALIZER) > 1:
        raise MalformedDataError("Workflow data has more than one initializer")

    edges = []
    edge_ids = set()
    for record in storable.edges:
        if record.id in edge_ids:
            raise MalformedDataError(f"Duplicate edge id: {record.id}")
        for endpoint in (record.source, record.target):
            if endpoint not in seen:
                raise MalformedDataError(f"Edge {record.id} references unknown node {endpoint}")
        edge_ids.add(record.id)
        edges.append(EdgeData(id=record.id, source=record.source, target=record.target))

    return Graph(nodes=tuple(nodes), edges=tuple(edges))


# =============================================================================
# JSON CODEC
# =============================================================================

def encode_storable(storable: StorableGraph) -> bytes:
    """Encode a StorableGraph as compact JSON bytes."""
    return _encoder.encode(storable)


def decode_json(data: Union[bytes, str]) -> Any:
    """
    Decode JSON bytes/text into builtins.

    Raises:
        MalformedDataError: If `data` is not valid JSON or not valid UTF-8
    """
    try:
        return _decoder.decode(data)
    except (msgspec.DecodeError, UnicodeError) as exc:
        raise MalformedDataError(f"Invalid JSON: {exc}") from exc


def decode_storable(data: Union[bytes, str]) -> StorableGraph:
    """
    Decode JSON bytes/text produced by encode_storable.

    Raises:
        MalformedDataError: If `data` is not a valid storable graph
    """
    return _coerce(decode_json(data))


# =============================================================================
# KEY-VALUE PERSISTENCE
# =============================================================================

def save_to_store(graph: Graph, kv: KeyValueStore) -> None:
    """
    Write the storable form under the "nodes" and "edges" keys.

    Raises:
        MalformedDataError: If the graph cannot be encoded as JSON
    """
    storable = to_storable(graph)
    try:
        raw_nodes = _encoder.encode(storable.nodes).decode("utf-8")
        raw_edges = _encoder.encode(storable.edges).decode("utf-8")
    except (TypeError, ValueError, msgspec.EncodeError) as exc:
        raise MalformedDataError(f"Workflow cannot be encoded: {exc}") from exc
    kv.set(NODES_KEY, raw_nodes)
    kv.set(EDGES_KEY, raw_edges)


def load_from_store(kv: KeyValueStore, placeholders: Optional[Placeholders] = None) -> Optional[Graph]:
    """
    Read a graph saved by save_to_store.

    Returns:
        The graph, or None if nothing has been saved

    Raises:
        MalformedDataError: If the saved data is corrupt
    """
    raw_nodes = kv.get(NODES_KEY)
    raw_edges = kv.get(EDGES_KEY)
    if raw_nodes is None or raw_edges is None:
        return None

    return from_storable(
        {NODES_KEY: decode_json(raw_nodes), EDGES_KEY: decode_json(raw_edges)},
        placeholders,
    )


# =============================================================================
# FILE EXPORT / IMPORT
# =============================================================================

def _describe_opaque(obj: Any) -> Any:
    """enc_hook for the live view: anything msgspec can't encode becomes its repr."""
    return repr(obj)


def _live_payload(payload: Payload) -> Any:
    """Best-effort rendering of a payload; falls back to its repr."""
    try:
        rendered = msgspec.to_builtins(payload, enc_hook=_describe_opaque)
        _encoder.encode(rendered)
    except (TypeError, ValueError, msgspec.EncodeError):
        variant = PayloadVariant.RICH if isinstance(payload, RichPayload) else PayloadVariant.PLAIN
        return {"variant": variant.value, "repr": repr(payload)}
    return rendered


def _live_view(graph: Graph) -> Dict[str, Any]:
    nodes = []
    for node in graph.nodes:
        record = msgspec.to_builtins(msgspec.structs.replace(node, payload=PlainPayload(None)))
        record["payload"] = _live_payload(node.payload)
        nodes.append(record)
    return {NODES_KEY: nodes, EDGES_KEY: msgspec.to_builtins(graph.edges)}


def export_document(graph: Graph) -> bytes:
    """
    Build the export file contents (pretty-printed JSON).

    Top-level `nodes`/`edges` hold the storable form so the file can be
    imported again; `live` holds the full graph (styles included) for
    inspection, with rich content rendered as text.
    """
    storable = to_storable(graph)
    document = {
        NODES_KEY: msgspec.to_builtins(storable.nodes),
        EDGES_KEY: msgspec.to_builtins(storable.edges),
        "live": _live_view(graph),
    }
    return msgspec.json.format(_encoder.encode(document), indent=2)


def import_document(data: Union[bytes, str], placeholders: Optional[Placeholders] = None) -> Graph:
    """
    Rebuild a graph from export file contents. The `live` section is ignored.

    Raises:
        MalformedDataError: If the contents are not a valid workflow
    """
    return from_storable(decode_json(data), placeholders)


def export_to_file(graph: Graph, path: Union[str, Path]) -> Path:
    """Write the export document to `path`."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(export_document(graph))
    return path


def import_from_file(path: Union[str, Path], placeholders: Optional[Placeholders] = None) -> Graph:
    """
    Read an export document from `path`.

    Raises:
        OSError: If the file cannot be read
        MalformedDataError: If the contents are not a valid workflow
    """
    return import_document(Path(path).read_bytes(), placeholders)
