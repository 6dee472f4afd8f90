"""Directory emulation over a flat key namespace.

The object store has no directories. A key prefix ``K/`` counts as a
collection when either:

    - an explicit marker exists: a zero-length object stored at ``K/``
      (created by MKCOL), or
    - it is implied: at least one object key starts with ``K/``.

Nothing else is ever persisted for a collection, so removing every
object beneath an implicit collection makes it disappear.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from flatdav.mime import resolve_content_type
from flatdav.storage.backend import ObjectStore
from flatdav.storage.models import DIRECTORY_CONTENT_TYPE, SEPARATOR, Listing, StoredObject


class CollectionKind(str, Enum):
    """How a collection's existence is known."""

    EXPLICIT = "explicit"
    IMPLICIT = "implicit"


@dataclass
class DirectoryEntry:
    """One immediate member of a collection.

    Attributes:
        key: Full object key; collection keys end with the separator.
        name: Display name (last path segment, no trailing separator).
        is_collection: True for sub-collections.
        size: Size in bytes (always 0 for collections).
        content_type: MIME type (``httpd/unix-directory`` for collections).
        uploaded_at: Upload time, or None when the entry was inferred
            from a common prefix and has no object of its own.
    """

    key: str
    name: str
    is_collection: bool
    size: int = 0
    content_type: str = DIRECTORY_CONTENT_TYPE
    uploaded_at: datetime | None = None


@dataclass
class Collection:
    """A collection resolved against the store, with its immediate members.

    Attributes:
        prefix: The collection's key prefix ("" for the root).
        kind: Whether a marker object backs the collection.
        marker: The marker object, when explicit.
        entries: Files first, then sub-collections, each in key order.
    """

    prefix: str
    kind: CollectionKind
    marker: StoredObject | None = None
    entries: list[DirectoryEntry] = field(default_factory=list)

    @property
    def name(self) -> str:
        return display_name(self.prefix)


def normalize_key(path: str) -> str:
    """Turn a decoded request path into an object key (no leading separator)."""
    return path.lstrip(SEPARATOR)


def collection_prefix(key: str) -> str:
    """Return the listing prefix for a collection key.

    The root maps to ``""``; every other key gains a trailing separator.
    """
    if not key or key == SEPARATOR:
        return ""
    return key if key.endswith(SEPARATOR) else key + SEPARATOR


def display_name(key: str) -> str:
    """Last non-empty path segment of a key, or ``Root`` for the root."""
    stripped = key.rstrip(SEPARATOR)
    if not stripped:
        return "Root"
    return stripped.rsplit(SEPARATOR, 1)[-1]


def parent_prefix(key: str) -> str:
    """Prefix of the collection containing ``key`` ("" at top level)."""
    stripped = key.rstrip(SEPARATOR)
    if SEPARATOR not in stripped:
        return ""
    return stripped.rsplit(SEPARATOR, 1)[0] + SEPARATOR


def classify_listing(
    listing: Listing, prefix: str
) -> tuple[StoredObject | None, list[DirectoryEntry]]:
    """Split a one-level listing into the collection's marker and its members.

    Args:
        listing: Result of ``store.list(prefix, "/")``.
        prefix: The collection prefix the listing was made for.

    Returns:
        A ``(marker, entries)`` pair. ``marker`` is the object stored at
        exactly ``prefix`` (the collection's own directory marker), if any.
    """
    marker: StoredObject | None = None
    files: list[DirectoryEntry] = []
    collections: list[DirectoryEntry] = []
    seen: set[str] = set()

    for obj in listing.objects:
        relative = obj.key[len(prefix):]
        if not relative:
            marker = obj
            continue
        if obj.key.endswith(SEPARATOR):
            collections.append(
                DirectoryEntry(
                    key=obj.key,
                    name=display_name(relative),
                    is_collection=True,
                    uploaded_at=obj.uploaded_at,
                )
            )
            seen.add(obj.key)
        else:
            files.append(
                DirectoryEntry(
                    key=obj.key,
                    name=relative,
                    is_collection=False,
                    size=obj.size,
                    content_type=resolve_content_type(obj.key),
                    uploaded_at=obj.uploaded_at,
                )
            )

    for cp in listing.common_prefixes:
        if cp in seen or cp == prefix:
            continue
        seen.add(cp)
        collections.append(
            DirectoryEntry(key=cp, name=display_name(cp[len(prefix):]), is_collection=True)
        )

    collections.sort(key=lambda e: e.key)
    return marker, files + collections


async def load_collection(store: ObjectStore, key: str) -> Collection | None:
    """Resolve ``key`` as a collection and list its immediate members.

    The root always exists. Any other prefix exists when it has a marker
    object or at least one member.

    Args:
        store: The object store.
        key: The collection key, with or without trailing separator.

    Returns:
        The collection, or None if nothing exists at or beneath the prefix.
    """
    prefix = collection_prefix(key)
    listing = await store.list(prefix, SEPARATOR)
    marker, entries = classify_listing(listing, prefix)

    if marker is not None:
        return Collection(prefix, CollectionKind.EXPLICIT, marker, entries)
    if entries or not prefix:
        return Collection(prefix, CollectionKind.IMPLICIT, None, entries)
    return None
