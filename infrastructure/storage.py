"""
Key-Value Store - flat string persistence for saved workflows.

The editor saves a workflow as two JSON strings under the keys "nodes"
and "edges". Anything with get/set/delete over strings can back it:

- MemoryKeyValueStore: a dict, for tests and throwaway sessions
- SqliteKeyValueStore: one table in one SQLite file (data/workflow.db)

Layer: L1 (Database)
"""
import logging
import sqlite3
from pathlib import Path
from typing import Dict, Iterator, Optional

from core.schemas import KeyValueStore

logger = logging.getLogger(__name__)


class StorageError(Exception):
    """Raised when the backing store cannot be read or written."""
    pass


class MemoryKeyValueStore:
    """In-process KeyValueStore backed by a dict."""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._data: Dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self) -> Iterator[str]:
        return iter(list(self._data))

    def __len__(self) -> int:
        return len(self._data)

    def __repr__(self) -> str:
        return f"MemoryKeyValueStore(keys={len(self._data)})"


class SqliteKeyValueStore:
    """SQLite-backed KeyValueStore (one `kv` table)."""

    DB_PATH = Path("data/workflow.db")

    def __init__(self, db_path: Path | str | None = None):
        """
        Initialize the store.

        Args:
            db_path: Optional path to database file (defaults to data/workflow.db)
        """
        self.db_path = Path(db_path) if db_path else self.DB_PATH
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_schema()

    def _init_schema(self) -> None:
        """Create the table if it doesn't exist."""
        with sqlite3.connect(self.db_path) as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS kv (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL,
                    updated_at TEXT DEFAULT CURRENT_TIMESTAMP
                )
                """
            )

    def get(self, key: str) -> Optional[str]:
        """
        Read a value.

        Raises:
            StorageError: If the database cannot be read
        """
        try:
            with sqlite3.connect(self.db_path) as conn:
                row = conn.execute("SELECT value FROM kv WHERE key = ?", (key,)).fetchone()
        except sqlite3.Error as e:
            raise StorageError(f"Failed to read {key!r}: {e}") from e
        return row[0] if row else None

    def set(self, key: str, value: str) -> None:
        """
        Write a value, replacing any previous one.

        Raises:
            StorageError: If the database cannot be written
        """
        try:
            with sqlite3.connect(self.db_path) as conn:
                conn.execute(
                    """
                    INSERT INTO kv (key, value) VALUES (?, ?)
                    ON CONFLICT(key) DO UPDATE SET
                        value = excluded.value,
                        updated_at = CURRENT_TIMESTAMP
                    """,
                    (key, value),
                )
        except sqlite3.Error as e:
            raise StorageError(f"Failed to write {key!r}: {e}") from e
        logger.debug("Stored %s (%d chars) in %s", key, len(value), self.db_path)

    def delete(self, key: str) -> None:
        try:
            with sqlite3.connect(self.db_path) as conn:
                conn.execute("DELETE FROM kv WHERE key = ?", (key,))
        except sqlite3.Error as e:
            raise StorageError(f"Failed to delete {key!r}: {e}") from e

    def __repr__(self) -> str:
        return f"SqliteKeyValueStore({str(self.db_path)!r})"
