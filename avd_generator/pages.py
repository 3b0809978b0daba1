"""
pages.py
--------
Preserve-and-write for generated markdown pages.

Anything a human adds below the sentinel line of a generated page survives the
next regeneration. Only the FIRST sentinel in the existing file counts as the
boundary; text after it (including any further sentinels) is kept verbatim,
minus surrounding whitespace. A file without the sentinel is overwritten whole.
"""

import logging
from pathlib import Path

log = logging.getLogger(__name__)

SENTINEL = "<!--- Add Aqua content below --->"


def get_custom_content(path: Path) -> str:
    """Manual content below the sentinel in an existing page ("" if none)."""
    try:
        text = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return ""
    _, found, custom = text.partition(SENTINEL)
    if not found:
        return ""
    return custom.strip()


def compose_page(rendered: str, custom: str) -> str:
    """Rendered page with the preserved content re-appended after the sentinel."""
    if not custom:
        return rendered
    if SENTINEL not in rendered:
        rendered = rendered.rstrip("\n") + "\n\n" + SENTINEL
    return rendered.rstrip("\n") + "\n" + custom + "\n"


def write_page(path: Path, rendered: str) -> bool:
    """
    Write rendered to path, keeping any custom content of the old file.
    Returns True when custom content was carried over. Raises OSError.
    """
    custom = get_custom_content(path)
    if custom:
        log.debug(f"  Preserving {len(custom)} chars of custom content in {path.name}")
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(compose_page(rendered, custom), encoding="utf-8")
    return bool(custom)
