"""Remote destination paths."""

import re
from typing import Optional

PLACEHOLDER_ALBUM = "Untitled Album"

_RESERVED_CHARS = re.compile(r'[<>:"/\\|?*\x00-\x1f]')


def sanitize_album_name(name: str) -> str:
    """Turn an album label into a single safe folder name.

    Drops ".." sequences and leading separators, replaces reserved
    characters with "_", and falls back to PLACEHOLDER_ALBUM when nothing
    usable remains.
    """
    cleaned = name or ""
    while ".." in cleaned:
        cleaned = cleaned.replace("..", "")
    cleaned = cleaned.lstrip("/\\")
    cleaned = _RESERVED_CHARS.sub("_", cleaned)
    cleaned = cleaned.strip().strip(".").strip()
    if not cleaned.strip("_ ."):
        return PLACEHOLDER_ALBUM
    return cleaned


def destination_folder(library_path: str, album_name: Optional[str], organize_by_album: bool) -> str:
    """Folder on the remote store that receives an upload."""
    base = "/" + library_path.strip("/") if library_path.strip("/") else ""
    if organize_by_album and album_name:
        return f"{base}/{sanitize_album_name(album_name)}"
    return base or "/"
