"""WebDAV XML response rendering helpers for flatdav."""

import email.utils
import urllib.parse
from datetime import datetime, timezone
from xml.sax.saxutils import escape as _sax_escape

from fastapi.responses import Response

from flatdav.directory import Collection, DirectoryEntry
from flatdav.mime import resolve_content_type
from flatdav.storage.models import DIRECTORY_CONTENT_TYPE, SEPARATOR, StoredObject

XML_MEDIA_TYPE = "application/xml; charset=utf-8"


def _escape_xml(value: str) -> str:
    """Escape special XML characters in a string value.

    Args:
        value: The raw string to escape.

    Returns:
        The XML-safe escaped string.
    """
    return _sax_escape(str(value))


def format_creation_date(dt: datetime) -> str:
    """Format a timestamp as RFC 3339 in UTC with millisecond precision.

    Example: ``2024-01-01T00:00:00.000Z``
    """
    utc = dt.astimezone(timezone.utc)
    return utc.strftime("%Y-%m-%dT%H:%M:%S.") + f"{utc.microsecond // 1000:03d}Z"


def format_http_date(dt: datetime) -> str:
    """Format a timestamp as an RFC 1123 HTTP date.

    Example: ``Mon, 01 Jan 2024 00:00:00 GMT``
    """
    return email.utils.format_datetime(dt.astimezone(timezone.utc), usegmt=True)


def href_for(key: str) -> str:
    """Absolute, percent-encoded href for an object key."""
    return urllib.parse.quote(SEPARATOR + key, safe="/")


def render_response_entry(
    href: str,
    display_name: str,
    is_collection: bool,
    size: int,
    content_type: str,
    timestamp: datetime,
) -> str:
    """Render one ``<D:response>`` element with a single 200 propstat.

    Args:
        href: Absolute, percent-encoded path of the resource.
        display_name: Value of ``D:displayname``.
        is_collection: Whether to mark ``D:resourcetype`` as a collection.
        size: Value of ``D:getcontentlength``.
        content_type: Value of ``D:getcontenttype``.
        timestamp: Source of ``D:creationdate`` and ``D:getlastmodified``.

    Returns:
        The XML fragment.
    """
    resource_type = "<D:collection/>" if is_collection else ""
    parts = [
        "<D:response>",
        f"<D:href>{_escape_xml(href)}</D:href>",
        "<D:propstat>",
        "<D:prop>",
        f"<D:resourcetype>{resource_type}</D:resourcetype>",
        f"<D:displayname>{_escape_xml(display_name)}</D:displayname>",
        f"<D:getcontentlength>{size}</D:getcontentlength>",
        f"<D:getcontenttype>{_escape_xml(content_type)}</D:getcontenttype>",
        f"<D:creationdate>{format_creation_date(timestamp)}</D:creationdate>",
        f"<D:getlastmodified>{format_http_date(timestamp)}</D:getlastmodified>",
        "</D:prop>",
        "<D:status>HTTP/1.1 200 OK</D:status>",
        "</D:propstat>",
        "</D:response>",
    ]
    return "\n".join(parts)


def render_multistatus(entries: list[str]) -> str:
    """Wrap rendered response entries in a ``D:multistatus`` document."""
    parts = [
        '<?xml version="1.0" encoding="utf-8"?>',
        '<D:multistatus xmlns:D="DAV:">',
        *entries,
        "</D:multistatus>",
    ]
    return "\n".join(parts)


def _render_member(entry: DirectoryEntry, now: datetime) -> str:
    return render_response_entry(
        href=href_for(entry.key),
        display_name=entry.name,
        is_collection=entry.is_collection,
        size=0 if entry.is_collection else entry.size,
        content_type=DIRECTORY_CONTENT_TYPE if entry.is_collection else entry.content_type,
        timestamp=entry.uploaded_at or now,
    )


def render_collection_propfind(
    collection: Collection,
    include_members: bool = True,
    now: datetime | None = None,
) -> str:
    """Render the multi-status body for a PROPFIND on a collection.

    The first entry always describes the collection itself. Its timestamps
    come from the directory marker when one exists, otherwise ``now``.
    Inferred sub-collections (common prefixes) also use ``now``.

    Args:
        collection: The resolved collection.
        include_members: False for ``Depth: 0`` (self-entry only).
        now: Timestamp for entries with no stored object. Defaults to
            the current UTC time.

    Returns:
        The multistatus XML document.
    """
    now = now or datetime.now(timezone.utc)
    marker_time = collection.marker.uploaded_at if collection.marker is not None else now

    entries = [
        render_response_entry(
            href=href_for(collection.prefix),
            display_name=collection.name,
            is_collection=True,
            size=0,
            content_type=DIRECTORY_CONTENT_TYPE,
            timestamp=marker_time,
        )
    ]
    if include_members:
        entries.extend(_render_member(entry, now) for entry in collection.entries)
    return render_multistatus(entries)


def render_file_propfind(obj: StoredObject) -> str:
    """Render the multi-status body for a PROPFIND on a single file.

    The content type comes from the key's extension, as in collection
    listings, so a file reports the same properties however it is reached.
    """
    entry = render_response_entry(
        href=href_for(obj.key),
        display_name=obj.key.rsplit(SEPARATOR, 1)[-1],
        is_collection=False,
        size=obj.size,
        content_type=resolve_content_type(obj.key),
        timestamp=obj.uploaded_at,
    )
    return render_multistatus([entry])


def render_finite_depth_error() -> str:
    """Render the RFC 4918 error body refusing an infinite-depth PROPFIND."""
    parts = [
        '<?xml version="1.0" encoding="utf-8"?>',
        '<D:error xmlns:D="DAV:">',
        "<D:propfind-finite-depth/>",
        "</D:error>",
    ]
    return "\n".join(parts)


def xml_response(
    body: str, status: int = 207, headers: dict[str, str] | None = None
) -> Response:
    """Wrap an XML body string in a FastAPI Response with correct content type.

    Args:
        body: The XML body string.
        status: HTTP status code (default 207 Multi-Status).
        headers: Extra response headers.

    Returns:
        A FastAPI Response with media_type application/xml.
    """
    return Response(
        content=body,
        status_code=status,
        headers=headers,
        media_type=XML_MEDIA_TYPE,
    )
