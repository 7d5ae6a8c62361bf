"""
PAYFLOW HISTORY - Linear Undo/Redo over Graph Snapshots

Two stacks of Snapshot values:
- undo: states BEFORE each recorded mutation (most recent on top)
- redo: states that were undone (most recent on top)

Discipline (linear history, no branching):
1. record_before_mutation() pushes the pre-mutation graph and clears redo
2. undo() moves the current graph onto redo and returns the popped state
3. redo() is the mirror image

Only structural mutations (add/delete node, add derived node) are
recorded. Position and style updates are NOT undoable.

Ownership:
    The HistoryManager exclusively owns its snapshots. Each snapshot is a
    private copy of the graph structure, so nothing done to the live
    graph can reach a stored snapshot. Payload objects are shared by
    reference: rich content is opaque and never copied.
"""
import logging
from collections import deque
from typing import Deque, Optional

import msgspec

from core.schemas import Graph, now_utc

logger = logging.getLogger(__name__)


class Snapshot(msgspec.Struct, kw_only=True, frozen=True):
    """An immutable copy of a Graph captured at one instant."""
    graph: Graph
    action: str = ""
    taken_at: str = msgspec.field(default_factory=now_utc)

    @classmethod
    def capture(cls, graph: Graph, action: str = "") -> "Snapshot":
        return cls(graph=graph.copy(), action=action)


class HistoryManager:
    """
    Undo/redo stacks for one GraphStore.

    Usage:
        history = HistoryManager()

        history.record_before_mutation(store.graph, "addNode")
        store.add_node(node)

        store.replace(history.undo(store.graph))
        store.replace(history.redo(store.graph))

    Args:
        max_depth: Optional bound on each stack. None (or 0) = unbounded;
                   when bounded the oldest entries are dropped first.

    Thread Safety:
        NOT thread-safe. Update together with the GraphStore it serves.
    """

    def __init__(self, max_depth: Optional[int] = None):
        self._max_depth = max_depth or None
        self._undo: Deque[Snapshot] = deque(maxlen=self._max_depth)
        self._redo: Deque[Snapshot] = deque(maxlen=self._max_depth)

    # =========================================================================
    # PROPERTIES
    # =========================================================================

    @property
    def can_undo(self) -> bool:
        return bool(self._undo)

    @property
    def can_redo(self) -> bool:
        return bool(self._redo)

    @property
    def undo_depth(self) -> int:
        return len(self._undo)

    @property
    def redo_depth(self) -> int:
        return len(self._redo)

    @property
    def max_depth(self) -> Optional[int]:
        return self._max_depth

    # =========================================================================
    # OPERATIONS
    # =========================================================================

    def record_before_mutation(self, graph: Graph, action: str = "") -> None:
        """
        Push the state about to be replaced and invalidate the redo stack.

        Must be called BEFORE the mutation is applied.
        """
        self._undo.append(Snapshot.capture(graph, action))
        if self._redo:
            logger.debug("Discarding %d redo entries after %r", len(self._redo), action)
        self._redo.clear()

    def undo(self, current: Graph) -> Graph:
        """
        Step back one recorded mutation.

        Returns `current` unchanged when there is nothing to undo.
        """
        if not self._undo:
            return current

        snapshot = self._undo.pop()
        self._redo.append(Snapshot.capture(current, snapshot.action))
        logger.debug("undo %r", snapshot.action)
        return snapshot.graph.copy()

    def redo(self, current: Graph) -> Graph:
        """
        Re-apply the most recently undone mutation.

        Returns `current` unchanged when there is nothing to redo.
        """
        if not self._redo:
            return current

        snapshot = self._redo.pop()
        self._undo.append(Snapshot.capture(current, snapshot.action))
        logger.debug("redo %r", snapshot.action)
        return snapshot.graph.copy()

    def clear(self) -> None:
        """Forget all history."""
        self._undo.clear()
        self._redo.clear()

    def __repr__(self) -> str:
        return f"HistoryManager(undo={self.undo_depth}, redo={self.redo_depth})"
