"""SQLite-backed key-value drives for the news feed synchronizer.

Each drive is a namespace of byte values addressed by path-like keys. Writes
go through a Batch, which is committed atomically by ``flush()``.

Only one writer per drive is assumed: the synchronizer's sequential loop.
There is no cross-process locking, so sharing a drive between writers would
need compare-and-swap support at the key level.
"""

import json
import logging
import secrets
import sqlite3
from datetime import datetime
from pathlib import Path

from newsfeed_sync.models import DriveKeys

logger = logging.getLogger(__name__)

DB_FILENAME = "feeds.db"
SCHEMA_KEY = "/slashfeed.json"
KEY_BYTES = 32

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS drives (
    id TEXT PRIMARY KEY,
    public_key BLOB NOT NULL,
    encryption_key BLOB NOT NULL,
    announce INTEGER DEFAULT 0,
    version INTEGER DEFAULT 0,
    created_at TEXT NOT NULL DEFAULT (datetime('now'))
);

CREATE TABLE IF NOT EXISTS entries (
    drive_id TEXT NOT NULL REFERENCES drives(id) ON DELETE CASCADE,
    key TEXT NOT NULL,
    value BLOB NOT NULL,
    updated_at TEXT NOT NULL DEFAULT (datetime('now')),
    PRIMARY KEY (drive_id, key)
);
"""


class StorageError(Exception):
    """Raised when a drive cannot be read or a batch cannot be committed."""


class Batch:
    """A set of pending writes against one drive.

    Reads see the batch's own pending puts first. Nothing reaches the
    database until ``flush()``.
    """

    def __init__(self, storage: "FeedStorage", drive_id: str):
        self._storage = storage
        self._drive_id = drive_id
        self._pending: dict[str, bytes] = {}
        self._closed = False

    def get(self, key: str) -> bytes | None:
        self._check_open()
        if key in self._pending:
            return self._pending[key]
        return self._storage.get(self._drive_id, key)

    def put(self, key: str, value: bytes) -> None:
        self._check_open()
        self._pending[key] = bytes(value)

    def flush(self) -> int:
        """Commit pending writes in one transaction. Returns count written."""
        self._check_open()
        self._closed = True
        if not self._pending:
            return 0

        now = datetime.utcnow().isoformat()
        conn = self._storage.conn
        try:
            with conn:
                conn.executemany(
                    """INSERT INTO entries (drive_id, key, value, updated_at)
                       VALUES (?, ?, ?, ?)
                       ON CONFLICT(drive_id, key)
                       DO UPDATE SET value = excluded.value,
                                     updated_at = excluded.updated_at""",
                    [
                        (self._drive_id, key, value, now)
                        for key, value in self._pending.items()
                    ],
                )
                conn.execute(
                    "UPDATE drives SET version = version + 1 WHERE id = ?",
                    (self._drive_id,),
                )
        except sqlite3.Error as e:
            raise StorageError(
                f"Could not commit batch to drive '{self._drive_id}': {e}"
            ) from e

        written = len(self._pending)
        self._pending.clear()
        return written

    def abort(self) -> None:
        """Discard pending writes."""
        self._pending.clear()
        self._closed = True

    def _check_open(self) -> None:
        if self._closed:
            raise StorageError("Batch has already been flushed or aborted")


class FeedStorage:
    """Manages the drives that hold mirrored feeds."""

    def __init__(self, storage_path: str, schema: dict):
        self.storage_path = storage_path
        self.schema = schema
        self._conn: sqlite3.Connection | None = None

    def connect(self) -> None:
        """Open the database and initialize its schema."""
        if self.storage_path == ":memory:":
            db_path = ":memory:"
        else:
            directory = Path(self.storage_path)
            directory.mkdir(parents=True, exist_ok=True)
            db_path = str(directory / DB_FILENAME)

        self._conn = sqlite3.connect(db_path, check_same_thread=False)
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.execute("PRAGMA foreign_keys=ON")
        self._conn.row_factory = sqlite3.Row
        self._conn.executescript(SCHEMA_SQL)
        self._conn.commit()

    def close(self) -> None:
        """Close the database connection."""
        if self._conn:
            self._conn.close()
            self._conn = None

    @property
    def conn(self) -> sqlite3.Connection:
        if self._conn is None:
            raise RuntimeError("Storage not connected. Call connect() first.")
        return self._conn

    def feed(self, drive_id: str, announce: bool = False) -> DriveKeys:
        """Open (creating if needed) the drive for a feed and return its keys.

        Key material is generated once, on first open, and reused afterwards.
        The schema descriptor is stored in the drive on every open.
        """
        row = self.conn.execute(
            "SELECT public_key, encryption_key FROM drives WHERE id = ?",
            (drive_id,),
        ).fetchone()

        if row:
            keys = DriveKeys(
                public_key=bytes(row["public_key"]),
                encryption_key=bytes(row["encryption_key"]),
            )
            self.conn.execute(
                "UPDATE drives SET announce = ? WHERE id = ?",
                (int(announce), drive_id),
            )
            self.conn.commit()
        else:
            keys = DriveKeys(
                public_key=secrets.token_bytes(KEY_BYTES),
                encryption_key=secrets.token_bytes(KEY_BYTES),
            )
            self.conn.execute(
                """INSERT INTO drives (id, public_key, encryption_key, announce)
                   VALUES (?, ?, ?, ?)""",
                (drive_id, keys.public_key, keys.encryption_key, int(announce)),
            )
            self.conn.commit()
            logger.info("Created drive '%s'", drive_id)

        self._write_schema(drive_id)
        return keys

    def batch(self, drive_id: str) -> Batch:
        """Start a batch of writes against a drive."""
        self._require_drive(drive_id)
        return Batch(self, drive_id)

    def get(self, drive_id: str, key: str) -> bytes | None:
        """Read the value stored at key, or None if absent."""
        try:
            row = self.conn.execute(
                "SELECT value FROM entries WHERE drive_id = ? AND key = ?",
                (drive_id, key),
            ).fetchone()
        except sqlite3.Error as e:
            raise StorageError(f"Could not read '{key}': {e}") from e
        return bytes(row["value"]) if row else None

    def list_keys(self, drive_id: str, prefix: str = "") -> list[str]:
        """List keys in a drive, optionally restricted to a prefix."""
        rows = self.conn.execute(
            """SELECT key FROM entries
               WHERE drive_id = ? AND substr(key, 1, ?) = ?
               ORDER BY key""",
            (drive_id, len(prefix), prefix),
        ).fetchall()
        return [r["key"] for r in rows]

    def version(self, drive_id: str) -> int:
        """Number of committed batches that wrote to the drive."""
        row = self._require_drive(drive_id)
        return row["version"]

    def _require_drive(self, drive_id: str) -> sqlite3.Row:
        row = self.conn.execute(
            "SELECT * FROM drives WHERE id = ?", (drive_id,)
        ).fetchone()
        if row is None:
            raise StorageError(f"Drive '{drive_id}' has not been opened")
        return row

    def _write_schema(self, drive_id: str) -> None:
        data = json.dumps(self.schema).encode("utf-8")
        if self.get(drive_id, SCHEMA_KEY) == data:
            return
        batch = self.batch(drive_id)
        batch.put(SCHEMA_KEY, data)
        batch.flush()
