"""
PAYFLOW INFRASTRUCTURE - System-Level Modules

This package contains infrastructure components:
- config: payflow.toml loading and validation
- event_bus: synchronous graph change notifications
- notices: the single transient user-facing notice
- storage: key-value persistence (memory and SQLite)
"""

from infrastructure.event_bus import EventBus, EventType, GraphEvent
from infrastructure.notices import Notice, NoticeBoard, NoticeLevel
from infrastructure.storage import (
    KeyValueStore,
    MemoryKeyValueStore,
    SqliteKeyValueStore,
    StorageError,
)

__all__ = [
    "EventBus",
    "EventType",
    "GraphEvent",
    "Notice",
    "NoticeBoard",
    "NoticeLevel",
    "KeyValueStore",
    "MemoryKeyValueStore",
    "SqliteKeyValueStore",
    "StorageError",
]
