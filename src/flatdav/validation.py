"""Request input validation helpers for flatdav.

These functions enforce key and header rules independently of any HTTP
handler so they can be unit-tested in isolation. Each raises a
``DavError`` subclass on invalid input.
"""

from flatdav.errors import BadRequest, Forbidden
from flatdav.xml_utils import render_finite_depth_error

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

# Upstream object stores (S3, R2) cap keys at 1024 UTF-8 bytes.
_MAX_KEY_BYTES = 1024


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def validate_object_key(key: str) -> None:
    """Validate an object key derived from a request path.

    Args:
        key: The object key string.

    Raises:
        BadRequest: If the key exceeds 1024 UTF-8 bytes or contains a NUL.
    """
    if len(key.encode("utf-8")) > _MAX_KEY_BYTES:
        raise BadRequest("Path too long")
    if "\x00" in key:
        raise BadRequest("Path contains a NUL character")


def parse_depth(value: str | None) -> int:
    """Parse the PROPFIND ``Depth`` header.

    Args:
        value: The raw header value, or None when absent.

    Returns:
        0 or 1. An absent header means 1.

    Raises:
        Forbidden: For ``infinity``, with a ``propfind-finite-depth`` body.
        BadRequest: For any other value.
    """
    if value is None:
        return 1
    depth = value.strip().lower()
    if depth == "0":
        return 0
    if depth == "1":
        return 1
    if depth == "infinity":
        raise Forbidden(render_finite_depth_error(), content_type="application/xml")
    raise BadRequest(f"Invalid Depth header value: {value}")
