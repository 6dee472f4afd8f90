"""SQLite BLOB storage backend for flatdav.

Implements the ObjectStore protocol using a single SQLite table that
holds each object's bytes and metadata side by side.

Tables:
    objects(key, data, size, etag, content_type, uploaded_at)

Ranged reads use ``substr()`` on the BLOB column so only the requested
slice leaves the database. This backend is useful for single-node
deployments where one database file simplifies operations and backups.
"""

import hashlib
import logging
from datetime import datetime, timezone

import aiosqlite

from flatdav.storage.backend import StoreError, group_listing
from flatdav.storage.models import Listing, StoredObject

logger = logging.getLogger(__name__)

_CREATE_OBJECTS = """
CREATE TABLE IF NOT EXISTS objects (
    key TEXT NOT NULL PRIMARY KEY,
    data BLOB NOT NULL,
    size INTEGER NOT NULL,
    etag TEXT NOT NULL,
    content_type TEXT NOT NULL,
    uploaded_at TEXT NOT NULL
)
"""

_META_COLUMNS = "key, size, etag, content_type, uploaded_at"


def _row_to_object(row: tuple, body: bytes = b"") -> StoredObject:
    """Build a StoredObject from a ``_META_COLUMNS`` row."""
    key, size, etag, content_type, uploaded_at = row
    return StoredObject(
        key=key,
        size=size,
        etag=etag,
        content_type=content_type,
        uploaded_at=datetime.fromisoformat(uploaded_at),
        body=body,
    )


class SQLiteObjectStore:
    """Object store that persists objects inside a SQLite database.

    Attributes:
        db_path: Path to the SQLite database file (``:memory:`` for tests).
    """

    def __init__(self, db_path: str) -> None:
        """Initialize the SQLite object store.

        Args:
            db_path: Path to the SQLite database file.
        """
        self.db_path = db_path
        self._db: aiosqlite.Connection | None = None

    async def init(self) -> None:
        """Open the SQLite connection and create the table if it does not exist.

        Configures WAL mode and a 5-second busy timeout for concurrent access.
        """
        db = await aiosqlite.connect(self.db_path)
        self._db = db
        await db.execute("PRAGMA journal_mode=WAL")
        await db.execute("PRAGMA busy_timeout=5000")
        await db.execute(_CREATE_OBJECTS)
        await db.commit()
        logger.info("SQLite object store initialized at %s", self.db_path)

    async def close(self) -> None:
        """Close the SQLite connection."""
        if self._db is not None:
            await self._db.close()
            self._db = None

    def _ensure_db(self) -> aiosqlite.Connection:
        """Return the active database connection or raise."""
        if self._db is None:
            raise StoreError("SQLiteObjectStore not initialized, call init() first")
        return self._db

    async def head(self, key: str) -> StoredObject | None:
        db = self._ensure_db()
        async with db.execute(
            f"SELECT {_META_COLUMNS} FROM objects WHERE key = ?", (key,)
        ) as cursor:
            row = await cursor.fetchone()
        return _row_to_object(row) if row is not None else None

    async def get(
        self, key: str, byte_range: tuple[int, int] | None = None
    ) -> StoredObject | None:
        """Retrieve an object, reading only the requested slice when ranged.

        Args:
            key: The object key.
            byte_range: Optional inclusive ``(start, end)`` offsets.

        Returns:
            The object with its (possibly sliced) body, or None if absent.
        """
        db = self._ensure_db()
        if byte_range is None:
            sql = f"SELECT {_META_COLUMNS}, data FROM objects WHERE key = ?"
            params: tuple = (key,)
        else:
            start, end = byte_range
            # substr() on a BLOB is 1-indexed and counts bytes
            sql = f"SELECT {_META_COLUMNS}, substr(data, ?, ?) FROM objects WHERE key = ?"
            params = (start + 1, end - start + 1, key)

        async with db.execute(sql, params) as cursor:
            row = await cursor.fetchone()

        if row is None:
            return None
        return _row_to_object(row[:5], body=bytes(row[5] or b""))

    async def put(self, key: str, data: bytes, content_type: str) -> StoredObject:
        db = self._ensure_db()
        obj = StoredObject(
            key=key,
            size=len(data),
            etag=hashlib.md5(data).hexdigest(),
            content_type=content_type,
            uploaded_at=datetime.now(timezone.utc),
        )
        await db.execute(
            "INSERT OR REPLACE INTO objects (key, data, size, etag, content_type, uploaded_at) "
            "VALUES (?, ?, ?, ?, ?, ?)",
            (key, data, obj.size, obj.etag, obj.content_type, obj.uploaded_at.isoformat()),
        )
        await db.commit()
        return obj

    async def delete(self, key: str) -> None:
        """Delete an object from the database.

        Silently succeeds if the object does not exist (idempotent).
        """
        db = self._ensure_db()
        await db.execute("DELETE FROM objects WHERE key = ?", (key,))
        await db.commit()

    async def list(self, prefix: str, delimiter: str = "") -> Listing:
        """List objects under a prefix, grouping by delimiter in Python.

        The prefix filter runs in SQL; delimiter roll-up happens on the
        metadata rows so object bodies are never loaded.
        """
        db = self._ensure_db()
        async with db.execute(
            f"SELECT {_META_COLUMNS} FROM objects WHERE substr(key, 1, ?) = ? ORDER BY key",
            (len(prefix), prefix),
        ) as cursor:
            rows = await cursor.fetchall()
        return group_listing((_row_to_object(r) for r in rows), prefix, delimiter)
