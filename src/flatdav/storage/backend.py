"""Abstract object store protocol for flatdav."""

from collections.abc import Iterable
from typing import Protocol

from flatdav.storage.models import Listing, StoredObject


class StoreError(Exception):
    """Raised when a backend cannot fulfill a request."""


class ObjectStore(Protocol):
    """Protocol defining the flat object store interface.

    All backends (memory, SQLite, S3-compatible) implement this interface.
    The store knows nothing about collections: keys are opaque strings and
    the ``/`` separator only matters to ``list()`` grouping.
    """

    async def init(self) -> None:
        """Initialize the backend (open connections, create tables, etc.)."""
        ...

    async def close(self) -> None:
        """Release resources held by the backend."""
        ...

    async def head(self, key: str) -> StoredObject | None:
        """Look up an object's metadata without its body.

        Args:
            key: The object key.

        Returns:
            The object with an empty body, or None if absent.
        """
        ...

    async def get(
        self, key: str, byte_range: tuple[int, int] | None = None
    ) -> StoredObject | None:
        """Retrieve an object with its body.

        Args:
            key: The object key.
            byte_range: Optional inclusive ``(start, end)`` offsets; when
                given, ``body`` holds only that slice while ``size`` still
                reports the full object size.

        Returns:
            The object, or None if absent.
        """
        ...

    async def put(self, key: str, data: bytes, content_type: str) -> StoredObject:
        """Store an object, replacing any existing object at the key.

        Args:
            key: The object key.
            data: The raw bytes to store.
            content_type: MIME type to record with the object.

        Returns:
            The stored object's metadata.
        """
        ...

    async def delete(self, key: str) -> None:
        """Delete an object. Succeeds silently if the key is absent.

        Args:
            key: The object key.
        """
        ...

    async def list(self, prefix: str, delimiter: str = "") -> Listing:
        """List objects under a prefix.

        Args:
            prefix: Only keys starting with this string are returned.
            delimiter: When non-empty, keys containing the delimiter after
                the prefix are rolled up into ``common_prefixes``.

        Returns:
            The complete listing (backends page internally).
        """
        ...


def group_listing(
    objects: Iterable[StoredObject], prefix: str, delimiter: str = ""
) -> Listing:
    """Split objects under ``prefix`` into direct members and common prefixes.

    Shared by backends that filter keys themselves rather than asking an
    upstream service to group them.

    Args:
        objects: Candidate objects; those not under ``prefix`` are skipped.
        prefix: The listing prefix.
        delimiter: Grouping delimiter, or empty for a flat recursive listing.

    Returns:
        A Listing with objects sorted by key and sorted common prefixes.
    """
    members: list[StoredObject] = []
    common_prefixes: set[str] = set()

    for obj in sorted(objects, key=lambda o: o.key):
        if not obj.key.startswith(prefix):
            continue
        if delimiter:
            suffix = obj.key[len(prefix):]
            delim_pos = suffix.find(delimiter)
            if delim_pos >= 0:
                common_prefixes.add(prefix + suffix[: delim_pos + len(delimiter)])
                continue
        members.append(obj)

    return Listing(objects=members, common_prefixes=sorted(common_prefixes))
