"""Write album labels into an export's files without uploading them."""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional

from takeout_sync.archive.scanner import ArchiveItem, ArchiveScanner, resolve_photos_root
from takeout_sync.utils.tagger import TagWriter

logger = logging.getLogger(__name__)


@dataclass
class RetagResult:
    photos: int = 0
    albums: int = 0
    tagged: int = 0
    skipped: int = 0  # unsupported formats
    failed: int = 0


def retag_archive(
    path: Path | str,
    limit: Optional[int] = None,
    dry_run: bool = False,
    tagger: Optional[TagWriter] = None,
    on_item: Optional[Callable[[ArchiveItem], None]] = None,
) -> RetagResult:
    """Tag every photo that sits in an album folder with that album's name."""
    root = resolve_photos_root(path)
    scan = ArchiveScanner(root).scan(on_item=on_item)
    items = [item for item in scan.items if item.album_name]
    if limit:
        items = items[:limit]

    tagger = tagger or TagWriter(dry_run=dry_run)
    result = RetagResult(photos=len(items), albums=len({item.album_name for item in items}))
    for item in items:
        tag = tagger.write_album_tag(item.path, item.album_name)
        if tag.success:
            result.tagged += 1
        elif tag.unsupported:
            result.skipped += 1
        else:
            result.failed += 1

    logger.info(
        "%sRetag of %s: %d tagged, %d unsupported, %d failed",
        "[DRY RUN] " if dry_run else "", root, result.tagged, result.skipped, result.failed,
    )
    return result
