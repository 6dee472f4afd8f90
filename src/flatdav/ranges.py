"""HTTP Range request parsing for flatdav."""

import re

_RANGE_RE = re.compile(r"^bytes=(\d+)-(\d*)$")


def parse_range_header(header: str | None, total: int) -> tuple[int, int] | None:
    """Parse an HTTP Range header into inclusive (start, end) byte offsets.

    Only the single ``bytes=start-end`` form is understood, with ``end``
    optional. The parser is lenient instead of answering 416:

        - ``end`` past the object is clamped to ``total - 1``;
        - ``start`` at or past the end of the object, or ``start > end``,
          yields the full range ``(0, total - 1)``.

    Args:
        header: The Range header value, e.g. "bytes=0-4".
        total: The total size of the resource in bytes.

    Returns:
        A (start, end) tuple, or None if the header is absent, malformed,
        or the resource is empty. Callers serve None as the full content.
    """
    if not header or total <= 0:
        return None

    m = _RANGE_RE.match(header.strip())
    if not m:
        return None

    start = int(m.group(1))
    end = int(m.group(2)) if m.group(2) else total - 1

    if start >= total or start > end:
        return (0, total - 1)
    if end >= total:
        end = total - 1

    return (start, end)
