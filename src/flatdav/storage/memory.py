"""In-memory storage backend for flatdav.

Implements the ObjectStore protocol using a Python dictionary. Nothing
survives a restart: every startup begins with an empty store. Useful for
tests and throwaway shares.
"""

import hashlib
import logging
from datetime import datetime, timezone

from flatdav.storage.backend import StoreError, group_listing
from flatdav.storage.models import Listing, StoredObject

logger = logging.getLogger(__name__)


class MemoryCapacityError(StoreError):
    """Raised when a put would exceed the configured max_size_bytes."""


class MemoryObjectStore:
    """Object store that holds all objects in memory.

    Objects are kept in a dictionary keyed by object key, each value a
    StoredObject carrying its full body.

    Attributes:
        max_size_bytes: Maximum total bytes allowed (0 = unlimited).
    """

    def __init__(self, max_size_bytes: int = 0) -> None:
        """Initialize the memory object store.

        Args:
            max_size_bytes: Maximum total bytes of object data to hold in memory.
                0 means unlimited.
        """
        self.max_size_bytes = max_size_bytes
        self._objects: dict[str, StoredObject] = {}
        # Track total bytes stored
        self._current_size: int = 0

    def _check_capacity(self, key: str, new_bytes: int) -> None:
        """Check whether replacing ``key`` with new_bytes would exceed capacity.

        Args:
            key: The key being written (its old size is released first).
            new_bytes: Size of the incoming body.

        Raises:
            MemoryCapacityError: If the store would exceed capacity.
        """
        if self.max_size_bytes <= 0:
            return
        existing = self._objects.get(key)
        freed = existing.size if existing is not None else 0
        projected = self._current_size - freed + new_bytes
        if projected > self.max_size_bytes:
            raise MemoryCapacityError(
                f"Cannot store {new_bytes} bytes: would exceed "
                f"max_size_bytes ({projected} > {self.max_size_bytes})"
            )

    async def init(self) -> None:
        logger.info(
            "Memory object store initialized (max_size=%s)",
            self.max_size_bytes if self.max_size_bytes > 0 else "unlimited",
        )

    async def close(self) -> None:
        """Drop all objects."""
        self._objects.clear()
        self._current_size = 0

    async def head(self, key: str) -> StoredObject | None:
        obj = self._objects.get(key)
        return obj.without_body() if obj is not None else None

    async def get(
        self, key: str, byte_range: tuple[int, int] | None = None
    ) -> StoredObject | None:
        obj = self._objects.get(key)
        if obj is None:
            return None
        if byte_range is None:
            return obj
        start, end = byte_range
        return StoredObject(
            key=obj.key,
            size=obj.size,
            etag=obj.etag,
            content_type=obj.content_type,
            uploaded_at=obj.uploaded_at,
            body=obj.body[start : end + 1],
        )

    async def put(self, key: str, data: bytes, content_type: str) -> StoredObject:
        """Store an object, updating size tracking.

        Args:
            key: The object key.
            data: The raw bytes.
            content_type: MIME type to record.

        Returns:
            The stored object's metadata.

        Raises:
            MemoryCapacityError: If the store would exceed max_size_bytes.
        """
        self._check_capacity(key, len(data))

        existing = self._objects.get(key)
        if existing is not None:
            self._current_size -= existing.size

        obj = StoredObject(
            key=key,
            size=len(data),
            etag=hashlib.md5(data).hexdigest(),
            content_type=content_type,
            uploaded_at=datetime.now(timezone.utc),
            body=bytes(data),
        )
        self._objects[key] = obj
        self._current_size += obj.size
        return obj.without_body()

    async def delete(self, key: str) -> None:
        obj = self._objects.pop(key, None)
        if obj is not None:
            self._current_size -= obj.size

    async def list(self, prefix: str, delimiter: str = "") -> Listing:
        listing = group_listing(self._objects.values(), prefix, delimiter)
        listing.objects = [o.without_body() for o in listing.objects]
        return listing
