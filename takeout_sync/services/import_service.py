"""Archive import: scan an export, classify each photo, record it in the catalog."""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Optional

from sqlmodel import Session

from takeout_sync.archive.scanner import ArchiveItem, ArchiveScanner, extract_archive, resolve_photos_root
from takeout_sync.models.photo import ArchivePhoto, utc_now
from takeout_sync.services.catalog import find_archive_photo, upsert_archive_photo
from takeout_sync.services.identity import Classification, IdentityResolver

logger = logging.getLogger(__name__)

COMMIT_EVERY = 100


@dataclass
class ImportResult:
    account: str
    total_scanned: int = 0
    new_photos: int = 0
    already_imported: int = 0
    duplicates_in_remote: int = 0
    duplicates_in_batch: int = 0
    albums_found: dict[str, int] = field(default_factory=dict)
    errors: list[str] = field(default_factory=list)


def to_archive_photo(item: ArchiveItem, account_name: str) -> ArchivePhoto:
    return ArchivePhoto(
        id=ArchivePhoto.make_id(account_name, item.content_hash),
        account_name=account_name,
        filename=item.filename,
        creation_time=item.creation_time,
        file_size=item.file_size,
        content_hash=item.content_hash,
        mime_type=item.mime_type,
        source_path=str(item.path),
        album_name=item.album_name,
        last_scanned_at=utc_now(),
    )


def _catalog_record(item: ArchiveItem, account_name: str, session: Session) -> ArchivePhoto:
    """The photo to upsert, keeping the id of an earlier import of the same file.

    Album tagging after upload rewrites the file, so a rescan can see a new
    digest for a photo the catalog already holds.
    """
    photo = to_archive_photo(item, account_name)
    if session.get(ArchivePhoto, photo.id) is None:
        existing = find_archive_photo(account_name, photo.source_path, item.filename, item.creation_time, session)
        if existing is not None:
            logger.debug("%s changed since it was imported as %s", item.path, existing.id)
            photo.id = existing.id
    return photo


def import_archive(
    path: Path | str,
    account_name: str,
    session: Session,
    zip_path: Optional[Path | str] = None,
    on_item: Optional[Callable[[ArchiveItem], None]] = None,
) -> ImportResult:
    """Import one Takeout export into the catalog.

    New photos are stored pending transfer; photos already on the remote store
    are stored as backed up; repeats within the same export are skipped.
    """
    if zip_path:
        path = extract_archive(zip_path, path)
    root = resolve_photos_root(path)

    resolver = IdentityResolver.from_catalog(session)
    scan = ArchiveScanner(root).scan(on_item=on_item)

    result = ImportResult(account=account_name, total_scanned=len(scan.items))
    result.albums_found = scan.albums
    result.errors.extend(scan.errors)

    pending = 0
    for item in scan.items:
        classification, matched = resolver.classify(item.content_hash, item.filename, item.creation_time)

        if classification is Classification.DUPLICATE_IN_BATCH:
            result.duplicates_in_batch += 1
            logger.debug("Skipping %s: repeated in this export (%s)", item.path, matched)
            continue

        satisfied = classification is Classification.DUPLICATE_IN_REMOTE
        _, created = upsert_archive_photo(
            _catalog_record(item, account_name, session), session, satisfied=satisfied, commit=False
        )
        if satisfied:
            result.duplicates_in_remote += 1
            logger.debug("%s already on remote store (%s)", item.filename, matched)
        elif created:
            result.new_photos += 1
        else:
            result.already_imported += 1

        pending += 1
        if pending >= COMMIT_EVERY:
            session.commit()
            pending = 0

    session.commit()
    logger.info(
        "Import for %s: %d scanned, %d new, %d already imported, %d already on remote, %d repeated",
        account_name, result.total_scanned, result.new_photos, result.already_imported,
        result.duplicates_in_remote, result.duplicates_in_batch,
    )
    return result
