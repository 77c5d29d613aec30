"""
Record Store — SQLite Document Collection

Tables:
    records      - one row per record (the collection)
    schema_meta  - schema version and provenance

The connection is opened lazily by init() and reused for the life of the
store. On first connection the user_id counter is seeded from the largest
user_id already present, so ids stay unique across restarts.

Mutations publish events (add/update/delete) on the event bus. add and
delete also ask the BackupWriter for a snapshot; update does not.

Single-writer: the counter is process-local and reseeded only at
connection time. Two processes writing to the same file can allocate the
same user_id.

Author: vaultctl contributors
"""

from __future__ import annotations

import logging
import sqlite3
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, List, Optional, Tuple

from vaultctl.backup import BackupWriter
from vaultctl.events import (
    RECORD_ADDED,
    RECORD_DELETED,
    RECORD_UPDATED,
    EventBus,
    get_event_bus,
)
from vaultctl.types import (
    NumericId,
    OpaqueId,
    PublicRecord,
    RecordRef,
    StoredRecord,
    generate_object_id,
    resolve_ref,
    to_public,
    utcnow,
)

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 1
COLLECTION = "records"

_SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS records (
    internal_id TEXT PRIMARY KEY,
    user_id     INTEGER NOT NULL,
    name        TEXT NOT NULL DEFAULT '',
    value       TEXT NOT NULL DEFAULT '',
    created_at  TEXT NOT NULL,
    updated_at  TEXT
);

CREATE TABLE IF NOT EXISTS schema_meta (
    key   TEXT PRIMARY KEY,
    value TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_records_user_id ON records(user_id);
"""


class StoreConnectionError(ConnectionError):
    """The backing database cannot be opened or initialized."""


class RecordStore:
    """
    SQLite-backed record collection with sequential public ids.

    Usage:
        store = RecordStore(".vault/vault.db", backup=BackupWriter("backups"))
        store.init()
        rec = store.add_record("alpha", "1")
        store.update_record(rec.user_id, "beta", "2")
        store.close()
    """

    def __init__(
        self,
        db_path: str = ":memory:",
        *,
        wal_mode: bool = True,
        bus: Optional[EventBus] = None,
        backup: Optional[BackupWriter] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        """
        Args:
            db_path: SQLite database path (or ":memory:").
            wal_mode: Enable WAL journal mode for disk-backed databases.
            bus: Event bus for lifecycle events (default: process-wide bus).
            backup: Snapshot writer called after add/delete. None disables
                backups.
            clock: Returns the current datetime; used for created_at and
                updated_at (injectable for tests).
        """
        self._db_path = db_path
        self._wal_mode = wal_mode
        self._bus = bus if bus is not None else get_event_bus()
        self._backup = backup
        self._clock = clock or utcnow
        self._conn: Optional[sqlite3.Connection] = None
        self._next_user_id: Optional[int] = None

    # -- Connection lifecycle ---------------------------------------------

    @property
    def db_path(self) -> str:
        return self._db_path

    @property
    def connected(self) -> bool:
        return self._conn is not None

    @property
    def next_user_id(self) -> Optional[int]:
        """user_id the next add_record() will assign (None before init())."""
        return self._next_user_id

    def init(self) -> None:
        """Open the connection and seed the user_id counter. Idempotent.

        Raises:
            StoreConnectionError: the database cannot be opened.
        """
        if self._conn is not None:
            return
        conn: Optional[sqlite3.Connection] = None
        try:
            if self._db_path != ":memory:":
                Path(self._db_path).parent.mkdir(parents=True, exist_ok=True)
            conn = sqlite3.connect(self._db_path)
            conn.row_factory = sqlite3.Row
            if self._wal_mode and self._db_path != ":memory:":
                conn.execute("PRAGMA journal_mode=WAL")
            conn.executescript(_SCHEMA_SQL)
            conn.execute(
                "INSERT OR IGNORE INTO schema_meta (key, value) VALUES ('schema_version', ?)",
                (str(SCHEMA_VERSION),),
            )
            conn.execute(
                "INSERT OR IGNORE INTO schema_meta (key, value) VALUES ('created_by', 'vaultctl')",
            )
            conn.commit()
        except (OSError, sqlite3.Error) as exc:
            if conn is not None:
                try:
                    conn.close()
                except sqlite3.Error:
                    pass
            logger.error(f"Failed to open record store at {self._db_path}: {exc}")
            raise StoreConnectionError(
                f"cannot open record store at {self._db_path}: {exc}"
            ) from exc

        self._conn = conn
        seeded = self._seed_user_id()
        # Keep ids monotonic across close()/init() on the same instance
        if self._next_user_id is None or seeded > self._next_user_id:
            self._next_user_id = seeded
        logger.info(
            f"RecordStore connected: {self._db_path} "
            f"(collection={COLLECTION}, next userID={self._next_user_id})"
        )

    def _seed_user_id(self) -> int:
        """max(user_id) + 1, or 1 if the collection is empty or unreadable."""
        try:
            row = self._conn.execute(
                "SELECT MAX(user_id) AS max_id FROM records "
                "WHERE typeof(user_id) = 'integer'"
            ).fetchone()
        except sqlite3.Error as exc:
            logger.warning(f"userID scan failed, starting at 1: {exc}")
            return 1
        max_id = row["max_id"] if row is not None else None
        if isinstance(max_id, int) and max_id > 0:
            return max_id + 1
        return 1

    def close(self) -> None:
        """Release the connection. Idempotent; close errors are ignored."""
        if self._conn is None:
            return
        try:
            self._conn.close()
        except sqlite3.Error as exc:
            logger.debug(f"Ignoring error while closing store: {exc}")
        finally:
            self._conn = None

    def __enter__(self) -> RecordStore:
        self.init()
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def _connection(self) -> sqlite3.Connection:
        self.init()
        return self._conn

    def _now(self) -> str:
        return self._clock().isoformat()

    # -- Lookup helpers ----------------------------------------------------

    @staticmethod
    def _where(ref: RecordRef) -> Tuple[Optional[str], Tuple[Any, ...]]:
        """SQL predicate for a resolved reference (None = matches nothing)."""
        if isinstance(ref, NumericId):
            return "user_id = ?", (ref.user_id,)
        if isinstance(ref, OpaqueId):
            return "internal_id = ?", (ref.object_id,)
        return None, ()

    def _find_row(self, conn: sqlite3.Connection, ref: RecordRef) -> Optional[sqlite3.Row]:
        where, params = self._where(ref)
        if where is None:
            logger.debug(f"Unresolvable record reference: {ref!r}")
            return None
        return conn.execute(
            f"SELECT * FROM records WHERE {where} ORDER BY rowid LIMIT 1",
            params,
        ).fetchone()

    # -- Write operations --------------------------------------------------

    def add_record(self, name: str, value: str) -> PublicRecord:
        """Insert a record with the next user_id. Publishes ``add`` and backs up."""
        conn = self._connection()
        user_id = self._next_user_id
        self._next_user_id += 1
        internal_id = generate_object_id()
        conn.execute(
            "INSERT INTO records (internal_id, user_id, name, value, created_at) "
            "VALUES (?,?,?,?,?)",
            (internal_id, user_id, name, value, self._now()),
        )
        conn.commit()
        row = conn.execute(
            "SELECT * FROM records WHERE internal_id = ?", (internal_id,)
        ).fetchone()
        record = to_public(row)
        self._bus.publish(RECORD_ADDED, record)
        self._write_backup()
        return record

    def update_record(self, ref: Any, name: str, value: str) -> Optional[PublicRecord]:
        """Replace name/value and stamp updated_at. None if nothing matches.

        Does not write a backup.
        """
        conn = self._connection()
        row = self._find_row(conn, resolve_ref(ref))
        if row is None:
            return None
        conn.execute(
            "UPDATE records SET name = ?, value = ?, updated_at = ? WHERE internal_id = ?",
            (name, value, self._now(), row["internal_id"]),
        )
        conn.commit()
        updated = conn.execute(
            "SELECT * FROM records WHERE internal_id = ?", (row["internal_id"],)
        ).fetchone()
        record = to_public(updated)
        self._bus.publish(RECORD_UPDATED, record)
        return record

    def delete_record(self, ref: Any) -> Optional[PublicRecord]:
        """Hard-delete the matching record and return its prior state.

        None if nothing matches (no event, no backup).
        """
        conn = self._connection()
        row = self._find_row(conn, resolve_ref(ref))
        if row is None:
            return None
        record = to_public(row)
        conn.execute("DELETE FROM records WHERE internal_id = ?", (row["internal_id"],))
        conn.commit()
        self._bus.publish(RECORD_DELETED, record)
        self._write_backup()
        return record

    def _write_backup(self) -> Optional[Path]:
        if self._backup is None:
            return None
        try:
            return self._backup.write(self)
        except Exception:
            logger.exception("Backup writer raised; mutation already committed")
            return None

    # -- Read operations ---------------------------------------------------

    def get_record(self, ref: Any) -> Optional[PublicRecord]:
        """Read one record by user_id or object id."""
        conn = self._connection()
        return to_public(self._find_row(conn, resolve_ref(ref)))

    def list_records(self) -> List[PublicRecord]:
        """All records, normalized, in storage order."""
        conn = self._connection()
        rows = conn.execute("SELECT * FROM records ORDER BY rowid").fetchall()
        return [to_public(r) for r in rows]

    def documents(self) -> List[StoredRecord]:
        """All records exactly as stored (used for backups)."""
        conn = self._connection()
        rows = conn.execute("SELECT * FROM records ORDER BY rowid").fetchall()
        return [StoredRecord.from_row(r) for r in rows]

    def count(self) -> int:
        conn = self._connection()
        return conn.execute("SELECT COUNT(*) AS cnt FROM records").fetchone()["cnt"]
