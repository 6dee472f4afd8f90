"""Content-type resolution from key extensions."""

DEFAULT_CONTENT_TYPE = "application/octet-stream"

_CONTENT_TYPES = {
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "png": "image/png",
    "gif": "image/gif",
    "webp": "image/webp",
    "svg": "image/svg+xml",
    "pdf": "application/pdf",
    "txt": "text/plain",
    "md": "text/markdown",
    "csv": "text/csv",
    "html": "text/html",
    "htm": "text/html",
    "css": "text/css",
    "js": "application/javascript",
    "json": "application/json",
    "xml": "application/xml",
    "mp4": "video/mp4",
    "mp3": "audio/mpeg",
    "mov": "video/quicktime",
    "wav": "audio/wav",
    "zip": "application/zip",
    "gz": "application/gzip",
    "tar": "application/x-tar",
}


def resolve_content_type(key: str) -> str:
    """Return the MIME type for a key based on its extension.

    Only the last path segment is considered, so dots in parent
    "directories" never count. Unknown or missing extensions fall back to
    ``application/octet-stream``.

    Args:
        key: The object key or filename.

    Returns:
        A MIME type string.
    """
    name = key.rsplit("/", 1)[-1]
    if "." not in name:
        return DEFAULT_CONTENT_TYPE
    ext = name.rsplit(".", 1)[-1].lower()
    return _CONTENT_TYPES.get(ext, DEFAULT_CONTENT_TYPE)
