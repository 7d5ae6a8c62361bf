"""
PAYFLOW LAYOUT ENGINE - Layered Auto-Layout

Arranges nodes top-to-bottom in ranks (Sugiyama-style):

1. Cycle breaking: self-loops and one edge per cycle are ignored for ranking
   (rustworkx.digraph_find_cycle until the graph is a DAG)
2. Ranking: longest path over rustworkx.topological_sort, so every kept
   edge u -> v has rank[v] >= rank[u] + 1
3. Virtual nodes: edges spanning several ranks become chains, so every
   ordering link joins adjacent ranks
4. Ordering: start from graph order, then alternate down/up barycenter
   sweeps and keep the ordering with the fewest crossings
5. Coordinates: fixed-size boxes, each rank centred on the widest one

Only node positions change. The result is deterministic for a given graph
and LayoutOptions; positions are box centres.
"""
import logging
from typing import Dict, List, Optional, Set, Tuple, Union

import msgspec
import rustworkx as rx

from core.graph_store import GraphInvariantError, build_digraph
from core.schemas import Graph, Position

logger = logging.getLogger(__name__)


# Virtual nodes are keyed (VIRTUAL, edge index, rank); real nodes by their str id
VIRTUAL = "virtual"
LayerKey = Union[str, Tuple[str, int, int]]


class LayoutOptions(msgspec.Struct, kw_only=True, frozen=True):
    """Box geometry and spacing for the layered layout."""
    node_width: float = 100.0
    node_height: float = 50.0
    node_sep: float = 50.0            # horizontal gap between boxes in a rank
    rank_sep: float = 50.0            # vertical gap between ranks
    max_sweeps: int = 24


# =============================================================================
# RANK ASSIGNMENT
# =============================================================================

def _break_cycles(digraph: rx.PyDiGraph) -> int:
    """Remove self-loops and cycle-closing edges in place. Returns the count removed."""
    removed = 0
    for edge_idx in list(digraph.edge_indices()):
        source, target = digraph.get_edge_endpoints_by_index(edge_idx)
        if source == target:
            digraph.remove_edge_from_index(edge_idx)
            removed += 1

    while not rx.is_directed_acyclic_graph(digraph):
        for start in digraph.node_indices():
            cycle = rx.digraph_find_cycle(digraph, source=start)
            if len(cycle) > 0:
                source, target = cycle[-1]
                digraph.remove_edge(source, target)
                removed += 1
                break
        else:
            raise GraphInvariantError("Cycle detected but no cycle edge could be located")

    return removed


def assign_ranks(graph: Graph) -> Dict[str, int]:
    """
    Assign each node a rank (layer index, 0 = top).

    For every edge that survives cycle breaking, the target's rank is at
    least the source's rank + 1. Nodes without predecessors get rank 0.
    """
    digraph, node_map = build_digraph(graph)
    removed = _break_cycles(digraph)
    if removed:
        logger.debug("Ignoring %d cycle edge(s) for ranking", removed)

    ranks: Dict[int, int] = {idx: 0 for idx in digraph.node_indices()}
    for idx in rx.topological_sort(digraph):
        for succ in digraph.successor_indices(idx):
            if ranks[succ] < ranks[idx] + 1:
                ranks[succ] = ranks[idx] + 1

    return {node_id: ranks[idx] for node_id, idx in node_map.items()}


# =============================================================================
# VIRTUAL NODES
# =============================================================================

def _build_layers(
    graph: Graph,
    ranks: Dict[str, int],
) -> Tuple[List[List[LayerKey]], Dict[LayerKey, List[LayerKey]], Dict[LayerKey, List[LayerKey]]]:
    """
    Group nodes by rank and link adjacent ranks.

    Edges are oriented downwards by rank (reversed cycle edges point up in
    the graph but down here); edges within one rank are ignored. Long
    edges are split with virtual nodes.

    Returns:
        (layers, down, up): layers in graph order, then adjacency to the
        next rank (down) and to the previous rank (up)
    """
    layer_count = max(ranks.values()) + 1
    layers: List[List[LayerKey]] = [[] for _ in range(layer_count)]
    for node in graph.nodes:
        layers[ranks[node.id]].append(node.id)

    down: Dict[LayerKey, List[LayerKey]] = {}
    up: Dict[LayerKey, List[LayerKey]] = {}

    def link(upper: LayerKey, lower: LayerKey) -> None:
        down.setdefault(upper, []).append(lower)
        up.setdefault(lower, []).append(upper)

    for edge_no, edge in enumerate(graph.edges):
        top, bottom = edge.source, edge.target
        if ranks[top] == ranks[bottom]:
            continue
        if ranks[top] > ranks[bottom]:
            top, bottom = bottom, top

        previous = top
        for rank in range(ranks[top] + 1, ranks[bottom]):
            virtual = (VIRTUAL, edge_no, rank)
            layers[rank].append(virtual)
            link(previous, virtual)
            previous = virtual
        link(previous, bottom)

    return layers, down, up


# =============================================================================
# CROSSING MINIMISATION (Barycenter)
# =============================================================================

def count_crossings(ordering: List[List[LayerKey]], down: Dict[LayerKey, List[LayerKey]]) -> int:
    """Count edge crossings between consecutive ranks (inversion count)."""
    total = 0
    for rank in range(len(ordering) - 1):
        below = {nid: i for i, nid in enumerate(ordering[rank + 1])}
        links: List[Tuple[int, int]] = []
        for i, nid in enumerate(ordering[rank]):
            for nb in down.get(nid, ()):
                if nb in below:
                    links.append((i, below[nb]))
        for a in range(len(links)):
            for b in range(a + 1, len(links)):
                (a0, a1), (b0, b1) = links[a], links[b]
                if (a0 - b0) * (a1 - b1) < 0:
                    total += 1
    return total


def _sort_by_barycenter(
    layer: List[LayerKey],
    fixed: List[LayerKey],
    neighbours: Dict[LayerKey, List[LayerKey]],
) -> None:
    """Stable in-place sort of `layer` by mean neighbour position in `fixed`."""
    fixed_pos = {nid: float(i) for i, nid in enumerate(fixed)}
    own_pos = {nid: float(i) for i, nid in enumerate(layer)}

    def barycenter(nid: LayerKey) -> float:
        positions = [fixed_pos[nb] for nb in neighbours.get(nid, ()) if nb in fixed_pos]
        if not positions:
            return own_pos[nid]
        return sum(positions) / len(positions)

    layer.sort(key=barycenter)


def minimise_crossings(
    layers: List[List[LayerKey]],
    down: Dict[LayerKey, List[LayerKey]],
    up: Dict[LayerKey, List[LayerKey]],
    max_sweeps: int = 24,
) -> List[List[LayerKey]]:
    """
    Reduce crossings with alternating barycenter sweeps.

    Returns the best ordering seen; the input ordering wins ties, so a
    graph with no crossings keeps its graph order.
    """
    ordering = [list(layer) for layer in layers]
    best = [list(layer) for layer in ordering]
    best_crossings = count_crossings(best, down)

    for _ in range(max_sweeps):
        if best_crossings == 0:
            break

        for rank in range(1, len(ordering)):
            _sort_by_barycenter(ordering[rank], ordering[rank - 1], up)
        for rank in range(len(ordering) - 2, -1, -1):
            _sort_by_barycenter(ordering[rank], ordering[rank + 1], down)

        crossings = count_crossings(ordering, down)
        if crossings >= best_crossings:
            break
        best = [list(layer) for layer in ordering]
        best_crossings = crossings

    return best


# =============================================================================
# COORDINATE ASSIGNMENT
# =============================================================================

def assign_coordinates(
    ordering: List[List[LayerKey]],
    options: LayoutOptions,
    real_ids: Set[str],
) -> Dict[str, Position]:
    """Place real nodes as box centres; each rank is centred on the widest one."""
    rows = [[nid for nid in layer if nid in real_ids] for layer in ordering]
    slot = options.node_width + options.node_sep
    widest = max((len(row) for row in rows), default=0)
    total_width = widest * slot - options.node_sep

    positions: Dict[str, Position] = {}
    for rank, row in enumerate(rows):
        row_width = len(row) * slot - options.node_sep
        offset = (total_width - row_width) / 2.0
        y = rank * (options.node_height + options.rank_sep) + options.node_height / 2.0
        for i, nid in enumerate(row):
            x = offset + i * slot + options.node_width / 2.0
            positions[nid] = Position(x, y)
    return positions


# =============================================================================
# ENTRY POINT
# =============================================================================

def layout(graph: Graph, options: Optional[LayoutOptions] = None) -> Graph:
    """
    Compute a layered layout for `graph`.

    Args:
        graph: The graph to arrange
        options: Box geometry and spacing (defaults: 100 x 50 boxes)

    Returns:
        A new Graph whose nodes differ from `graph` only in `position`
    """
    if not graph.nodes:
        return graph

    options = options or LayoutOptions()
    ranks = assign_ranks(graph)
    layers, down, up = _build_layers(graph, ranks)
    ordering = minimise_crossings(layers, down, up, options.max_sweeps)
    positions = assign_coordinates(ordering, options, set(ranks))

    logger.debug("Laid out %d nodes in %d ranks", len(graph.nodes), len(ordering))
    return msgspec.structs.replace(
        graph,
        nodes=tuple(node.with_position(positions[node.id]) for node in graph.nodes),
    )
