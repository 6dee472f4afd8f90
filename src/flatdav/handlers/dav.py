"""WebDAV method handlers for flatdav.

Implements the DAV surface over a flat object store:
    - GET / HEAD (files with Range support, HTML listing for collections)
    - PUT (upload with size limit)
    - DELETE (single object, or every object beneath a collection)
    - PROPFIND (Depth 0 and 1 multi-status listings)
    - MKCOL (directory marker objects)
    - OPTIONS (capabilities and CORS preflight)

Every handler re-queries the store; nothing is cached between requests.
"""

import logging

from fastapi import FastAPI, Request, Response
from fastapi.responses import HTMLResponse

from flatdav.directory import (
    Collection,
    CollectionKind,
    collection_prefix,
    load_collection,
    normalize_key,
)
from flatdav.errors import (
    ALLOWED_METHODS,
    BadRequest,
    MethodNotAllowed,
    NotFound,
    PayloadTooLarge,
    StoreFailure,
    UnsupportedMediaType,
)
from flatdav.html_listing import render_directory_listing
from flatdav.mime import resolve_content_type
from flatdav.ranges import parse_range_header
from flatdav.storage.models import DIRECTORY_CONTENT_TYPE, SEPARATOR, StoredObject
from flatdav.validation import parse_depth, validate_object_key
from flatdav.xml_utils import (
    format_http_date,
    href_for,
    render_collection_propfind,
    render_file_propfind,
    xml_response,
)

logger = logging.getLogger(__name__)

DAV_COMPLIANCE = "1,2"

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": ALLOWED_METHODS,
    "Access-Control-Allow-Headers": "*",
    "Access-Control-Allow-Credentials": "true",
    "Access-Control-Max-Age": "86400",
}


def _object_headers(obj: StoredObject) -> dict[str, str]:
    """Build response headers describing a stored object.

    Args:
        obj: The object's metadata.

    Returns:
        A dict of response headers.
    """
    return {
        "Content-Type": obj.content_type,
        "ETag": f'"{obj.etag}"',
        "Content-Length": str(obj.size),
        "Last-Modified": format_http_date(obj.uploaded_at),
        "Accept-Ranges": "bytes",
    }


class DavHandler:
    """Handles WebDAV methods against the configured object store.

    Attributes:
        app: The parent FastAPI application.
    """

    def __init__(self, app: FastAPI) -> None:
        """Initialize the DAV handler.

        Args:
            app: The FastAPI application instance.
        """
        self.app = app

    @property
    def store(self):
        """Shortcut to the object store on app.state."""
        return self.app.state.storage

    @property
    def config(self):
        """Shortcut to the FlatDavConfig on app.state."""
        return self.app.state.config

    def _key(self, path: str) -> str:
        key = normalize_key(path)
        validate_object_key(key)
        return key

    # -- OPTIONS ---------------------------------------------------------------

    async def options(self, request: Request, path: str) -> Response:
        """Advertise DAV compliance and allowed methods for any path."""
        headers = {
            "DAV": DAV_COMPLIANCE,
            "Allow": ALLOWED_METHODS,
            "MS-Author-Via": "DAV",
            **CORS_HEADERS,
        }
        return Response(status_code=200, headers=headers)

    # -- GET / HEAD ------------------------------------------------------------

    async def get(self, request: Request, path: str, head: bool = False) -> Response:
        """Serve a file, or an HTML listing when the path is a collection.

        Implements: GET /{path} and HEAD /{path}

        The root and any path ending in ``/`` are collection paths, so a
        directory marker's empty body is never served as a file.

        Args:
            request: The incoming HTTP request.
            path: The decoded request path.
            head: Omit the body but keep every header.

        Returns:
            200/206 with the object, or 200 with an HTML listing.

        Raises:
            NotFound: If neither an object nor any descendant exists.
        """
        key = self._key(path)

        if key and not key.endswith(SEPARATOR):
            response = await self._serve_object(request, key, head)
            if response is not None:
                return response

        collection = await load_collection(self.store, key)
        if collection is None:
            raise NotFound()

        page = render_directory_listing(collection)
        headers = {"Cache-Control": "no-cache"}
        if head:
            headers["Content-Length"] = str(len(page.encode("utf-8")))
            return HTMLResponse(content=b"", headers=headers)
        return HTMLResponse(content=page, headers=headers)

    async def _serve_object(self, request: Request, key: str, head: bool) -> Response | None:
        """Serve the object stored at exactly ``key``, or None if there is none.

        A plain GET costs one store read. A ranged GET first reads the
        metadata to learn the size, then asks the store for the slice.
        """
        range_header = request.headers.get("range")
        if head or range_header:
            obj = await self.store.head(key)
        else:
            obj = await self.store.get(key)
        if obj is None:
            return None

        byte_range = parse_range_header(range_header, obj.size)

        if byte_range is None:
            if head:
                return Response(status_code=200, headers=_object_headers(obj))
            if range_header:
                # Unparseable Range: fall back to the whole body
                obj = await self.store.get(key)
                if obj is None:
                    return None
            return Response(content=obj.body, status_code=200, headers=_object_headers(obj))

        start, end = byte_range
        headers = _object_headers(obj)
        headers["Content-Range"] = f"bytes {start}-{end}/{obj.size}"
        headers["Content-Length"] = str(end - start + 1)

        if head:
            return Response(status_code=206, headers=headers)

        ranged = await self.store.get(key, byte_range=byte_range)
        if ranged is None:
            return None
        return Response(content=ranged.body, status_code=206, headers=headers)

    # -- PUT -------------------------------------------------------------------

    async def put(self, request: Request, path: str) -> Response:
        """Store the request body under the path's key.

        Implements: PUT /{path}

        The declared Content-Length is checked against the upload limit
        before any of the body is read; bodies without a declared length
        are counted as they stream in. Re-uploading a key replaces it.

        Args:
            request: The incoming HTTP request.
            path: The decoded request path.

        Returns:
            201 Created with Location and ETag headers.

        Raises:
            MethodNotAllowed: For the root, a collection path, or a key
                whose directory marker already exists.
            PayloadTooLarge: If the body exceeds ``dav.max_upload_bytes``.
            StoreFailure: If the store rejects the write.
        """
        key = self._key(path)
        if not key or key.endswith(SEPARATOR):
            raise MethodNotAllowed("Cannot PUT to a collection")
        if await self.store.head(key + SEPARATOR) is not None:
            raise MethodNotAllowed("A collection already exists at this path")

        max_bytes = self.config.dav.max_upload_bytes
        declared = request.headers.get("content-length")
        if declared is not None:
            try:
                declared_length = int(declared)
            except ValueError:
                raise BadRequest(f"Invalid Content-Length: {declared}")
            if declared_length > max_bytes:
                raise PayloadTooLarge(max_bytes)

        data = await self._read_body(request, max_bytes)
        content_type = request.headers.get("content-type") or resolve_content_type(key)

        try:
            obj = await self.store.put(key, data, content_type)
        except Exception as exc:
            logger.error("Upload of %s failed: %s", key, exc)
            raise StoreFailure(f"Upload failed: {exc}") from exc

        return Response(
            content="Created",
            status_code=201,
            headers={"Location": href_for(key), "ETag": f'"{obj.etag}"'},
            media_type="text/plain",
        )

    async def _read_body(self, request: Request, max_bytes: int) -> bytes:
        """Collect the request body, aborting once it passes ``max_bytes``."""
        chunks: list[bytes] = []
        total = 0
        async for chunk in request.stream():
            total += len(chunk)
            if total > max_bytes:
                raise PayloadTooLarge(max_bytes)
            chunks.append(chunk)
        return b"".join(chunks)

    # -- DELETE ----------------------------------------------------------------

    async def delete(self, request: Request, path: str) -> Response:
        """Delete a file, or every object beneath a collection.

        Implements: DELETE /{path}

        Collection deletes remove objects one at a time and are not
        atomic. If a delete fails midway the response reports how many
        objects were already removed; nothing is rolled back.

        Args:
            request: The incoming HTTP request.
            path: The decoded request path.

        Returns:
            204 for a file, 200 for a collection.

        Raises:
            MethodNotAllowed: For the root collection.
            NotFound: If neither an object nor any descendant exists.
            StoreFailure: If a collection delete stops partway.
        """
        key = self._key(path)
        if not key:
            raise MethodNotAllowed("The root collection cannot be deleted")

        if not key.endswith(SEPARATOR):
            obj = await self.store.head(key)
            if obj is not None:
                await self.store.delete(key)
                return Response(status_code=204)

        prefix = collection_prefix(key)
        listing = await self.store.list(prefix)
        if not listing.objects:
            raise NotFound()

        total = len(listing.objects)
        deleted = 0
        for obj in listing.objects:
            try:
                await self.store.delete(obj.key)
            except Exception as exc:
                logger.error(
                    "Collection delete of /%s stopped after %d of %d objects: %s",
                    prefix, deleted, total, exc,
                )
                raise StoreFailure(
                    f"Deleted {deleted} of {total} objects under /{prefix} "
                    f"before failing on /{obj.key}: {exc}"
                ) from exc
            deleted += 1

        logger.info("Deleted collection /%s (%d objects)", prefix, deleted)
        return Response(content="OK", status_code=200, media_type="text/plain")

    # -- PROPFIND --------------------------------------------------------------

    async def propfind(self, request: Request, path: str) -> Response:
        """Describe a file or a collection as a WebDAV multi-status document.

        Implements: PROPFIND /{path}

        ``Depth: 0`` describes only the target; ``Depth: 1`` (the default)
        adds the collection's immediate members. Listing is always one
        level deep: ``c.txt`` under ``b/`` shows up only as the collection
        ``b/`` when listing the root. A collection with nothing in it
        still answers with its own entry.

        Args:
            request: The incoming HTTP request.
            path: The decoded request path.

        Returns:
            207 Multi-Status with an XML body.

        Raises:
            Forbidden: For ``Depth: infinity``.
            BadRequest: For any other unsupported Depth value.
        """
        key = self._key(path)
        depth = parse_depth(request.headers.get("depth"))
        headers = {"DAV": DAV_COMPLIANCE, "Access-Control-Allow-Origin": "*"}

        if key and not key.endswith(SEPARATOR):
            obj = await self.store.head(key)
            if obj is not None:
                return xml_response(render_file_propfind(obj), headers=headers)

        collection = await load_collection(self.store, key)
        if collection is None:
            collection = Collection(collection_prefix(key), CollectionKind.IMPLICIT)

        body = render_collection_propfind(collection, include_members=depth > 0)
        return xml_response(body, headers=headers)

    # -- MKCOL -----------------------------------------------------------------

    async def mkcol(self, request: Request, path: str) -> Response:
        """Create an empty collection by storing a directory marker.

        Implements: MKCOL /{path}

        Args:
            request: The incoming HTTP request.
            path: The decoded request path.

        Returns:
            201 Created.

        Raises:
            MethodNotAllowed: If the marker or a same-named file exists,
                or for the root.
            UnsupportedMediaType: If the request carries a body.
        """
        key = self._key(path)
        if not key.strip(SEPARATOR):
            raise MethodNotAllowed("The root collection already exists")

        if await request.body():
            raise UnsupportedMediaType("MKCOL does not accept a request body")

        marker_key = collection_prefix(key)
        if await self.store.head(marker_key) is not None:
            raise MethodNotAllowed("Collection already exists")
        if await self.store.head(marker_key.rstrip(SEPARATOR)) is not None:
            raise MethodNotAllowed("A file already exists at this path")

        await self.store.put(marker_key, b"", DIRECTORY_CONTENT_TYPE)
        return Response(
            content="Created",
            status_code=201,
            headers={"Location": href_for(marker_key)},
            media_type="text/plain",
        )

    # -- Everything else -------------------------------------------------------

    async def not_allowed(self, request: Request, path: str) -> Response:
        """Reject a verb outside the supported set."""
        raise MethodNotAllowed(f"Method {request.method} not allowed")
