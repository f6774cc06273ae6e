"""
Durable Catalog Store - SQLite-based persistence for catalog entries.

CHOICE: SQLite
--------------
- Embedded: No external dependencies
- ACID: Transactions prevent partial writes
- Schema: Explicit versioning with user_version pragma
- Indexed: by id (primary key), type and name
- Corruption: Built-in detection (PRAGMA integrity_check)

GUARANTEES:
-----------
- All writes are transactional
- Built-in presets are seeded exactly once, in the same transaction
  that sets the schema version marker
- Preset records can never be overwritten or deleted
- Schema version tracked explicitly; newer versions fail loudly

NOT PROVIDED:
-------------
- Automatic migration
- Background compaction
"""

import json
import logging
import sqlite3
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Dict, Iterator, List, Optional

from .errors import (
    EntryNotFoundError,
    PresetImmutableError,
    StorageCorruptionError,
    StorageError,
)
from .models import CatalogEntry
from .presets import builtin_presets

logger = logging.getLogger(__name__)


# Schema version - increment on breaking changes
STORAGE_SCHEMA_VERSION = 1


class CatalogBackend:
    """
    Interface shared by the durable store and its in-memory fallback.

    The Catalog Manager only talks to this interface, so a backend can be
    swapped without touching catalog semantics.
    """

    persistent = True

    def initialize(self) -> None:
        raise NotImplementedError

    def close(self) -> None:
        pass

    def get_all(self) -> List[CatalogEntry]:
        raise NotImplementedError

    def get(self, entry_id: str) -> Optional[CatalogEntry]:
        raise NotImplementedError

    def find_by_type(self, entry_type: str) -> List[CatalogEntry]:
        return [e for e in self.get_all() if e.type == entry_type]

    def find_by_name(self, name: str) -> List[CatalogEntry]:
        return [e for e in self.get_all() if e.name == name]

    def put(self, entry: CatalogEntry) -> None:
        raise NotImplementedError

    def delete(self, entry_id: str) -> None:
        raise NotImplementedError

    def __enter__(self):
        self.initialize()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()


class CatalogStorage(CatalogBackend):
    """
    SQLite-backed durable catalog.

    One connection, shared between the caller's thread and the background
    write queue, guarded by a lock.
    """

    def __init__(self, db_path: Path):
        """
        Initialize storage.

        Args:
            db_path: Path to SQLite database file.
                     Parent directories are created on initialize().
        """
        self.db_path = Path(db_path)
        self._conn: Optional[sqlite3.Connection] = None
        self._lock = threading.RLock()

    def initialize(self) -> None:
        """
        Open the database and initialize or verify its schema.

        Idempotent: on an already-seeded database this only verifies
        the schema version.

        Raises:
            StorageError: If the database cannot be opened or is newer
            StorageCorruptionError: If corruption is detected
        """
        with self._lock:
            if self._conn is not None:
                return

            try:
                self.db_path.parent.mkdir(parents=True, exist_ok=True)
                self._conn = sqlite3.connect(
                    str(self.db_path),
                    isolation_level=None,  # Explicit transactions only
                    check_same_thread=False,  # Written from the write queue thread
                )
                self._conn.row_factory = sqlite3.Row
                self._check_integrity()
                self._init_schema()
            except (sqlite3.Error, OSError) as e:
                self._discard_connection()
                raise StorageError(f"Failed to open catalog storage: {e}") from e
            except StorageError:
                self._discard_connection()
                raise

            logger.info(f"Opened catalog storage at {self.db_path}")

    def close(self) -> None:
        """Close database connection."""
        with self._lock:
            self._discard_connection()

    def _discard_connection(self) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    @contextmanager
    def _transaction(self) -> Iterator[sqlite3.Connection]:
        """Run a block in an IMMEDIATE transaction, rolling back on error."""
        with self._lock:
            if self._conn is None:
                raise StorageError("Catalog storage not opened")
            conn = self._conn
            try:
                conn.execute("BEGIN IMMEDIATE")
            except sqlite3.Error as e:
                raise StorageError(f"Failed to begin transaction: {e}") from e
            try:
                yield conn
                conn.execute("COMMIT")
            except sqlite3.Error as e:
                conn.execute("ROLLBACK")
                raise StorageError(f"Catalog storage operation failed: {e}") from e
            except BaseException:
                conn.execute("ROLLBACK")
                raise

    def _check_integrity(self) -> None:
        """
        Check database integrity.

        Raises:
            StorageCorruptionError: If corruption detected
        """
        try:
            result = self._conn.execute("PRAGMA integrity_check").fetchone()
        except sqlite3.DatabaseError as e:
            raise StorageCorruptionError(f"Integrity check failed: {e}") from e
        if result and result[0] != "ok":
            raise StorageCorruptionError(f"Database corruption detected: {result[0]}")

    def _init_schema(self) -> None:
        """
        Create and seed the schema on a new database, or verify its version.

        The version marker, not the number of stored presets, decides
        whether seeding has happened.
        """
        with self._transaction() as conn:
            current_version = conn.execute("PRAGMA user_version").fetchone()[0]

            if current_version == 0:
                self._create_schema(conn)
                presets = builtin_presets()
                for preset in presets:
                    self._write(conn, preset)
                conn.execute(f"PRAGMA user_version = {STORAGE_SCHEMA_VERSION}")
                logger.info(f"Seeded catalog with {len(presets)} built-in presets")
            elif current_version != STORAGE_SCHEMA_VERSION:
                raise StorageError(
                    f"Schema version mismatch: expected {STORAGE_SCHEMA_VERSION}, "
                    f"found {current_version}. No automatic migration."
                )

    def _create_schema(self, conn: sqlite3.Connection) -> None:
        """Create initial database schema."""
        conn.execute("""
            CREATE TABLE IF NOT EXISTS materials (
                id TEXT PRIMARY KEY,
                name TEXT NOT NULL,
                type TEXT NOT NULL,
                properties_json TEXT NOT NULL,
                is_preset INTEGER NOT NULL,
                created_at REAL
            )
        """)

        conn.execute("""
            CREATE INDEX IF NOT EXISTS idx_materials_type
            ON materials(type)
        """)

        conn.execute("""
            CREATE INDEX IF NOT EXISTS idx_materials_name
            ON materials(name)
        """)

    def get_schema_version(self) -> int:
        with self._lock:
            if self._conn is None:
                raise StorageError("Catalog storage not opened")
            return self._conn.execute("PRAGMA user_version").fetchone()[0]

    @staticmethod
    def _write(conn: sqlite3.Connection, entry: CatalogEntry) -> None:
        conn.execute(
            """
            INSERT OR REPLACE INTO materials
                (id, name, type, properties_json, is_preset, created_at)
            VALUES (?, ?, ?, ?, ?, ?)
            """,
            (
                entry.id,
                entry.name,
                entry.type,
                json.dumps(entry.properties, sort_keys=True),
                1 if entry.is_preset else 0,
                entry.created_at,
            ),
        )

    @staticmethod
    def _row_to_entry(row: sqlite3.Row) -> CatalogEntry:
        try:
            return CatalogEntry(
                id=row["id"],
                name=row["name"],
                type=row["type"],
                properties=json.loads(row["properties_json"]),
                is_preset=bool(row["is_preset"]),
                created_at=row["created_at"],
            )
        except ValueError as e:
            raise StorageCorruptionError(f"Invalid record '{row['id']}': {e}") from e

    def _query(self, sql: str, params=()) -> List[CatalogEntry]:
        with self._lock:
            if self._conn is None:
                raise StorageError("Catalog storage not opened")
            try:
                rows = self._conn.execute(sql, params).fetchall()
            except sqlite3.Error as e:
                raise StorageError(f"Catalog query failed: {e}") from e
        return [self._row_to_entry(row) for row in rows]

    def get_all(self) -> List[CatalogEntry]:
        return self._query("SELECT * FROM materials ORDER BY type, name, id")

    def get(self, entry_id: str) -> Optional[CatalogEntry]:
        rows = self._query("SELECT * FROM materials WHERE id = ?", (entry_id,))
        return rows[0] if rows else None

    def find_by_type(self, entry_type: str) -> List[CatalogEntry]:
        return self._query(
            "SELECT * FROM materials WHERE type = ? ORDER BY name, id", (entry_type,)
        )

    def find_by_name(self, name: str) -> List[CatalogEntry]:
        return self._query(
            "SELECT * FROM materials WHERE name = ? ORDER BY type, id", (name,)
        )

    def put(self, entry: CatalogEntry) -> None:
        """
        Insert or replace a user-created entry by id.

        Raises:
            PresetImmutableError: If the entry is a preset or a preset
                record already exists under its id
            StorageError: If the write fails
        """
        if entry.is_preset:
            raise PresetImmutableError(entry.id, entry.name, "overwritten")

        with self._transaction() as conn:
            row = conn.execute(
                "SELECT name, is_preset FROM materials WHERE id = ?", (entry.id,)
            ).fetchone()
            if row is not None and row["is_preset"]:
                raise PresetImmutableError(entry.id, row["name"], "overwritten")
            self._write(conn, entry)

        logger.debug(f"Stored catalog entry '{entry.id}'")

    def delete(self, entry_id: str) -> None:
        """
        Delete a user-created entry.

        Raises:
            EntryNotFoundError: If no record has this id
            PresetImmutableError: If the record is a preset
            StorageError: If the write fails
        """
        with self._transaction() as conn:
            row = conn.execute(
                "SELECT name, is_preset FROM materials WHERE id = ?", (entry_id,)
            ).fetchone()
            if row is None:
                raise EntryNotFoundError(entry_id)
            if row["is_preset"]:
                raise PresetImmutableError(entry_id, row["name"], "deleted")
            conn.execute("DELETE FROM materials WHERE id = ?", (entry_id,))

        logger.debug(f"Deleted catalog entry '{entry_id}'")


class InMemoryCatalogStorage(CatalogBackend):
    """
    Non-persistent catalog seeded from the built-in presets.

    Used as the degraded-mode fallback when durable storage cannot be
    opened. Enforces the same preset rules as CatalogStorage.
    """

    persistent = False

    def __init__(self):
        self._entries: Dict[str, CatalogEntry] = {}
        self._seeded = False

    def initialize(self) -> None:
        if self._seeded:
            return
        for preset in builtin_presets():
            self._entries[preset.id] = preset
        self._seeded = True

    def get_all(self) -> List[CatalogEntry]:
        return sorted(self._entries.values(), key=lambda e: (e.type, e.name, e.id))

    def get(self, entry_id: str) -> Optional[CatalogEntry]:
        return self._entries.get(entry_id)

    def put(self, entry: CatalogEntry) -> None:
        existing = self._entries.get(entry.id)
        if entry.is_preset or (existing is not None and existing.is_preset):
            raise PresetImmutableError(entry.id, entry.name, "overwritten")
        self._entries[entry.id] = entry

    def delete(self, entry_id: str) -> None:
        existing = self._entries.get(entry_id)
        if existing is None:
            raise EntryNotFoundError(entry_id)
        if existing.is_preset:
            raise PresetImmutableError(entry_id, existing.name, "deleted")
        del self._entries[entry_id]
