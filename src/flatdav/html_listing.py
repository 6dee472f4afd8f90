"""Browser-facing HTML directory pages for flatdav."""

import html

from flatdav.directory import Collection, parent_prefix
from flatdav.xml_utils import href_for

_UNITS = ["B", "KB", "MB", "GB", "TB"]

_STYLE = """
    body { font-family: Arial, sans-serif; margin: 40px; }
    h1 { color: #333; }
    ul { list-style: none; padding: 0; }
    li { padding: 8px; border-bottom: 1px solid #eee; }
    a { text-decoration: none; color: #0066cc; }
    a:hover { text-decoration: underline; }
    .size { color: #666; font-size: 0.9em; }
    .directory:before { content: "\\1F4C1  "; }
    .file:before { content: "\\1F4C4  "; }
"""


def format_file_size(size: int) -> str:
    """Render a byte count with a binary unit, e.g. ``1.5 KB``.

    Args:
        size: Size in bytes.

    Returns:
        Human-readable size with at most two decimals.
    """
    if size <= 0:
        return "0 B"
    value = float(size)
    unit = 0
    while value >= 1024 and unit < len(_UNITS) - 1:
        value /= 1024
        unit += 1
    return f"{round(value, 2):g} {_UNITS[unit]}"


def render_directory_listing(collection: Collection) -> str:
    """Render an HTML page listing a collection's immediate members.

    Sub-collections come first, then files with their sizes. Every
    collection other than the root gets a parent link.

    Args:
        collection: The resolved collection.

    Returns:
        A complete HTML document.
    """
    prefix = collection.prefix
    title = "Root Directory" if not prefix else f"Directory: /{prefix}"
    items: list[str] = []

    if prefix:
        parent = href_for(parent_prefix(prefix))
        items.append(
            f'<li class="directory"><a href="{parent}">.. (Parent Directory)</a></li>'
        )

    for entry in collection.entries:
        if entry.is_collection:
            items.append(
                f'<li class="directory"><a href="{href_for(entry.key)}">'
                f"{html.escape(entry.name)}/</a></li>"
            )
    for entry in collection.entries:
        if not entry.is_collection:
            items.append(
                f'<li class="file"><a href="{href_for(entry.key)}">{html.escape(entry.name)}</a> '
                f'<span class="size">({format_file_size(entry.size)})</span></li>'
            )

    body = "\n    ".join(items)
    return f"""<!DOCTYPE html>
<html>
<head>
  <meta charset="utf-8">
  <title>{html.escape(title)}</title>
  <style>{_STYLE}  </style>
</head>
<body>
  <h1>{html.escape(title)}</h1>
  <ul>
    {body}
  </ul>
  <p><small>Served by flatdav</small></p>
</body>
</html>"""
