"""
PAYFLOW EDITOR SESSION - The Boundary the UI Talks To

One EditorSession is one open canvas. It owns the GraphStore, the
HistoryManager, the NoticeBoard and the event bus, and turns user
gestures into store mutations:

    Gesture                      Store effect                  History
    ---------------------------  ----------------------------  -------
    amount typed                 initializer style             no
    provider picked              add Provider node             yes
    drag a connection            add edge (if legal)           no
    delete a provider            delete node + its edges       yes
    "Add Node +"                 add Derived amount node       yes
    undo / redo                  replace graph                 -
    auto layout                  replace positions             no
    save / load / import         persist / replace graph       no

Failures the user can cause (illegal connection, duplicate provider,
corrupt saved data) never raise out of the session: they become a
notice, and the graph is left as it was.
"""
import logging
import random
import re
from pathlib import Path
from typing import Callable, Dict, Optional, Union

from core.graph_store import GraphStore
from core.history import HistoryManager
from core.layout import layout
from core.ontology import (
    NodeKind,
    PROVIDER_PLACEHOLDER,
    VALID_AMOUNT_STYLE,
    INVALID_AMOUNT_STYLE,
    AMOUNT_FORM_TAG,
    PROVIDER_CARD_TAG,
    is_provider_choice,
)
from core.schemas import Graph, NodeData, EdgeData, Position, RichPayload, StorableNode, create_default_graph
from core.serializer import (
    MalformedDataError,
    Placeholders,
    save_to_store,
    load_from_store,
    export_to_file,
    import_from_file,
)
from core.validator import is_legal_connection, is_initializer_link
from infrastructure.config import EditorConfig, load_config
from infrastructure.event_bus import EventBus, EventType
from infrastructure.notices import NoticeBoard, NoticeLevel
from infrastructure.storage import KeyValueStore, MemoryKeyValueStore, SqliteKeyValueStore, StorageError

logger = logging.getLogger(__name__)


# =============================================================================
# USER-FACING MESSAGES
# =============================================================================

CONNECT_ERROR = (
    "Unable to connect. Ensure you are connecting from the payment "
    "initializer or to another provider node."
)
SAVE_OK = "Workflow saved successfully!"
SAVE_FAILED = "Failed to save workflow. Please try again."
LOAD_OK = "Workflow loaded successfully!"
LOAD_EMPTY = "No saved workflow found."
LOAD_FAILED = "Failed to load workflow. Please try again."
IMPORT_OK = "Workflow imported successfully!"
IMPORT_FAILED = "Failed to import workflow. Please ensure the file is valid."


def amount_limit_message(max_amount: float) -> str:
    """Limit text in plain notation: 10.0 -> "$10", 1000000.0 -> "$1000000", 12.5 -> "$12.5"."""
    if float(max_amount).is_integer():
        return f"Amount cannot exceed ${int(max_amount)}!"
    return f"Amount cannot exceed ${max_amount}!"


def duplicate_provider_message(name: str) -> str:
    return f"{name} already exists!"


# =============================================================================
# PLACEHOLDERS
# =============================================================================

def _amount_form(record: StorableNode) -> RichPayload:
    return RichPayload(tag=AMOUNT_FORM_TAG)


def _provider_card(record: StorableNode) -> RichPayload:
    return RichPayload(tag=PROVIDER_CARD_TAG, content=record.provider_name)


# Rich content rebuilt on load/import: the initializer gets a fresh amount
# form and providers get a card showing their name
DEFAULT_PLACEHOLDERS: Dict[NodeKind, Callable[[StorableNode], RichPayload]] = {
    NodeKind.INITIALIZER: _amount_form,
    NodeKind.PROVIDER: _provider_card,
}


# =============================================================================
# AMOUNT PARSING
# =============================================================================

_LEADING_FLOAT = re.compile(
    r"^\s*([+-]?(?:Infinity|(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?))"
)


def parse_amount(raw: str) -> Optional[float]:
    """
    Read the leading number of `raw`, ignoring trailing text.

    "7" -> 7.0, "12.5usd" -> 12.5, " .5" -> 0.5, "abc" -> None, "" -> None
    """
    match = _LEADING_FLOAT.match(raw or "")
    if match is None:
        return None
    return float(match.group(1).replace("Infinity", "inf"))


# =============================================================================
# EDITOR SESSION
# =============================================================================

class EditorSession:
    """
    One open payment-flow canvas.

    Usage:
        session = EditorSession(config=load_config(), kv=SqliteKeyValueStore())

        session.on_amount_entered("7")
        session.on_provider_chosen("Stripe")             # adds "Stripe-4"
        session.on_connect_requested("payment-initialize", "Stripe-4")
        session.add_amount_node()
        session.undo()

    Args:
        config: Editor configuration (defaults if omitted)
        graph: Starting graph (the default canvas if omitted)
        kv: Save/load target (an in-memory store if omitted)
        bus: Event bus for graph change notifications
        notices: Notice board (its clock controls notice expiry)
        rng: Random source for spawn positions
        placeholders: Rich payload builders used on load/import

    Thread Safety:
        NOT thread-safe. Drive a session from one thread.
    """

    SOURCE = "editor"

    def __init__(
        self,
        config: Optional[EditorConfig] = None,
        graph: Optional[Graph] = None,
        kv: Optional[KeyValueStore] = None,
        bus: Optional[EventBus] = None,
        notices: Optional[NoticeBoard] = None,
        rng: Optional[random.Random] = None,
        placeholders: Optional[Placeholders] = None,
    ):
        self.config = config or EditorConfig()
        self.store = GraphStore(graph if graph is not None else create_default_graph())
        self.history = HistoryManager(self.config.history.max_depth)
        self.kv: KeyValueStore = kv if kv is not None else MemoryKeyValueStore()
        self.bus = bus or EventBus()
        self.notices = notices or NoticeBoard()
        self.rng = rng or random.Random()
        self.placeholders = placeholders if placeholders is not None else DEFAULT_PLACEHOLDERS

        # Session state
        self.last_entered_amount: Optional[float] = None
        self.is_valid_amount = False
        self.is_connected_to_provider = False
        self.selected_provider_choice = PROVIDER_PLACEHOLDER

    @classmethod
    def open(cls, config: Optional[EditorConfig] = None, **kwargs) -> "EditorSession":
        """Create a session that saves to the SQLite file named in the config."""
        config = config or load_config()
        return cls(config=config, kv=SqliteKeyValueStore(config.storage.path), **kwargs)

    # =========================================================================
    # PROPERTIES
    # =========================================================================

    @property
    def graph(self) -> Graph:
        return self.store.graph

    @property
    def last_error(self) -> Optional[str]:
        """Text of the live notice, or None."""
        return self.notices.text

    @property
    def can_add_amount_node(self) -> bool:
        return self.is_valid_amount and self.is_connected_to_provider

    # =========================================================================
    # AMOUNT
    # =========================================================================

    def on_amount_entered(self, raw: str) -> None:
        """
        React to the amount field changing.

        Non-numeric input only clears the notice and marks the amount
        invalid. A number colours the initializer (red above the limit,
        green otherwise); the limit notice stays until a later entry clears it.
        """
        amount = parse_amount(raw)
        self.last_entered_amount = amount

        if amount is None:
            self._clear_notice()
            self.is_valid_amount = False
            return

        max_amount = self.config.amount.max_amount
        if amount > max_amount:
            style = INVALID_AMOUNT_STYLE
            self.is_valid_amount = False
            self._notify(amount_limit_message(max_amount), ttl=None, level=NoticeLevel.ERROR)
        else:
            style = VALID_AMOUNT_STYLE
            self.is_valid_amount = True
            self._clear_notice()

        initializer = self.store.initializer
        if initializer is None:
            return
        self.store.update_node_style(initializer.id, style)
        self._emit(EventType.NODE_UPDATED, node_id=initializer.id, style=dict(style))

    # =========================================================================
    # PROVIDERS
    # =========================================================================

    def on_provider_chosen(self, name: str) -> Optional[NodeData]:
        """
        Add a provider picked from the catalog.

        Returns:
            The new node, or None for the placeholder or a duplicate provider
        """
        self.selected_provider_choice = name
        try:
            if not is_provider_choice(name):
                return None

            if self.store.find_provider(name) is not None:
                self._notify(
                    duplicate_provider_message(name),
                    ttl=self.config.notices.error_ttl,
                    level=NoticeLevel.ERROR,
                )
                return None

            node = NodeData.provider(
                name,
                id=self._next_id(name),
                position=self._spawn_position(),
                payload=RichPayload(tag=PROVIDER_CARD_TAG, content=name),
            )
            self.history.record_before_mutation(self.store.graph, "addProvider")
            self.store.add_node(node)
            self._emit(EventType.NODE_CREATED, node_id=node.id, kind=NodeKind.PROVIDER.value)
            self._clear_notice()
            return node
        finally:
            self.selected_provider_choice = PROVIDER_PLACEHOLDER

    def on_delete_requested(self, node_id: str) -> None:
        """Delete a node and its edges (undoable). Unknown ids are ignored."""
        if not self.store.has_node(node_id):
            logger.debug("Delete requested for unknown node %s", node_id)
            return

        self.history.record_before_mutation(self.store.graph, "deleteNode")
        self.store.delete_node(node_id)
        self._emit(EventType.NODE_DELETED, node_id=node_id)

    # =========================================================================
    # CONNECTIONS
    # =========================================================================

    def on_connect_requested(self, source_id: str, target_id: str) -> Optional[EdgeData]:
        """
        Try to connect two nodes.

        Returns:
            The new edge, or None if the connection was rejected
        """
        graph = self.store.graph
        if not is_legal_connection(graph, source_id, target_id):
            logger.warning("Rejected connection %s -> %s", source_id, target_id)
            self.is_connected_to_provider = False
            self._notify(CONNECT_ERROR, ttl=self.config.notices.error_ttl, level=NoticeLevel.ERROR)
            return None

        edge = EdgeData.connect(source_id, target_id, id=self._next_edge_id(source_id, target_id))
        self.store.add_edge(edge)
        self.is_connected_to_provider = is_initializer_link(graph, source_id, target_id)
        self._emit(EventType.EDGE_CREATED, edge_id=edge.id, source_id=source_id, target_id=target_id)
        return edge

    # =========================================================================
    # DERIVED NODES
    # =========================================================================

    def add_amount_node(self) -> Optional[NodeData]:
        """
        Add a node showing the entered amount ("Add Node +").

        Only available once the amount is valid and the initializer has been
        connected to a provider; returns None otherwise.
        """
        if not self.can_add_amount_node:
            return None

        amount = self.last_entered_amount or 0.0
        node = NodeData.derived(
            f"Amount = ${amount:.2f}",
            id=self._next_id("amount"),
            position=self._spawn_position(),
        )
        self.history.record_before_mutation(self.store.graph, "addAmountNode")
        self.store.add_node(node)
        self._emit(EventType.NODE_CREATED, node_id=node.id, kind=NodeKind.DERIVED.value)
        return node

    # =========================================================================
    # HISTORY
    # =========================================================================

    def undo(self) -> Graph:
        if not self.history.can_undo:
            return self.store.graph
        return self._install(self.history.undo(self.store.graph), "undo")

    def redo(self) -> Graph:
        if not self.history.can_redo:
            return self.store.graph
        return self._install(self.history.redo(self.store.graph), "redo")

    # =========================================================================
    # LAYOUT
    # =========================================================================

    def auto_layout(self) -> Graph:
        """Arrange nodes in ranks. Not undoable."""
        return self._install(layout(self.store.graph, self.config.layout.to_options()), "layout")

    # =========================================================================
    # PERSISTENCE
    # =========================================================================

    def save(self) -> bool:
        """Persist the graph to the key-value store."""
        ttl = self.config.notices.status_ttl
        try:
            save_to_store(self.store.graph, self.kv)
        except (StorageError, MalformedDataError) as e:
            logger.warning("Save failed: %s", e, exc_info=True)
            self._notify(SAVE_FAILED, ttl=ttl, level=NoticeLevel.ERROR)
            return False

        self._notify(SAVE_OK, ttl=ttl)
        return True

    def load(self) -> bool:
        """Replace the graph with the saved one. Not undoable."""
        ttl = self.config.notices.status_ttl
        try:
            graph = load_from_store(self.kv, self.placeholders)
        except (StorageError, MalformedDataError) as e:
            logger.warning("Load failed: %s", e, exc_info=True)
            self._notify(LOAD_FAILED, ttl=ttl, level=NoticeLevel.ERROR)
            return False

        if graph is None:
            self._notify(LOAD_EMPTY, ttl=ttl)
            return False

        self._install(graph, "load")
        self._notify(LOAD_OK, ttl=ttl)
        return True

    def export_json(self, path: Union[str, Path]) -> Path:
        """
        Write the graph to a JSON file.

        Raises:
            OSError: If the file cannot be written
        """
        written = export_to_file(self.store.graph, path)
        logger.info("Exported workflow to %s", written)
        return written

    def import_json(self, path: Union[str, Path]) -> bool:
        """Replace the graph with one read from a JSON file. Not undoable."""
        ttl = self.config.notices.status_ttl
        try:
            graph = import_from_file(path, self.placeholders)
        except (OSError, MalformedDataError) as e:
            logger.warning("Import from %s failed: %s", path, e, exc_info=True)
            self._notify(IMPORT_FAILED, ttl=ttl, level=NoticeLevel.ERROR)
            return False

        self._install(graph, "import")
        self._notify(IMPORT_OK, ttl=ttl)
        return True

    # =========================================================================
    # INTERNAL UTILITIES
    # =========================================================================

    def _install(self, graph: Graph, reason: str) -> Graph:
        self.store.replace(graph)
        self._emit(EventType.GRAPH_REPLACED, reason=reason)
        return graph

    def _next_id(self, prefix: str) -> str:
        n = self.store.node_count + 1
        while self.store.has_node(f"{prefix}-{n}"):
            n += 1
        return f"{prefix}-{n}"

    def _next_edge_id(self, source_id: str, target_id: str) -> str:
        base = f"edge-{source_id}-{target_id}"
        candidate, n = base, 1
        while self.store.graph.has_edge_id(candidate):
            n += 1
            candidate = f"{base}-{n}"
        return candidate

    def _spawn_position(self) -> Position:
        spawn = self.config.spawn
        return Position(
            spawn.x_min + self.rng.random() * (spawn.x_max - spawn.x_min),
            spawn.y_min + self.rng.random() * (spawn.y_max - spawn.y_min),
        )

    def _notify(self, text: str, ttl: Optional[float], level: NoticeLevel = NoticeLevel.INFO) -> None:
        self.notices.post(text, ttl=ttl, level=level)
        self._emit(EventType.NOTICE_POSTED, text=text, level=level.value)

    def _clear_notice(self) -> None:
        self.notices.clear()

    def _emit(self, event_type: EventType, **payload) -> None:
        self.bus.emit(event_type, payload, source=self.SOURCE)

    def __repr__(self) -> str:
        return f"EditorSession({self.store!r}, {self.history!r})"
