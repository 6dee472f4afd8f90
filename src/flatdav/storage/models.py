"""Data model types for the flatdav object store.

These dataclasses are the values exchanged between the DAV handlers and
the storage backends: a single stored object and the result of a
prefix/delimiter listing.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime

# Key separator used to emulate a hierarchy over the flat namespace.
SEPARATOR = "/"

# Content type recorded on directory marker objects.
DIRECTORY_CONTENT_TYPE = "httpd/unix-directory"


@dataclass
class StoredObject:
    """One object held by the store.

    Attributes:
        key: The object key (no leading separator).
        size: Total size of the object in bytes.
        etag: Hex MD5 of the full body, unquoted.
        content_type: MIME type recorded at upload time.
        uploaded_at: Timezone-aware UTC upload timestamp.
        body: Object bytes. Empty for metadata-only lookups; holds just
            the requested slice for ranged reads.
    """

    key: str
    size: int
    etag: str
    content_type: str
    uploaded_at: datetime
    body: bytes = b""

    def without_body(self) -> StoredObject:
        """Return a copy carrying metadata only."""
        return replace(self, body=b"")


@dataclass
class Listing:
    """Result of a prefix/delimiter listing.

    Attributes:
        objects: Objects under the prefix with no further delimiter after it
            (every object under the prefix when no delimiter was given).
        common_prefixes: One-level sub-prefixes, each ending in the delimiter.
    """

    objects: list[StoredObject] = field(default_factory=list)
    common_prefixes: list[str] = field(default_factory=list)

    def is_empty(self) -> bool:
        return not self.objects and not self.common_prefixes
