"""Retroactive album reconciliation.

Phase 1 discovers the remote photo id of each backed-up photo by searching
the remote store for its filename. Phase 2 adds photos with a known id to the
remote album named after their archive folder, in chunks, and records each
confirmed membership. Both phases re-derive their backlog from the catalog,
so an interrupted or partially failed run is finished by the next one.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from sqlmodel import Session

from takeout_sync.config import settings
from takeout_sync.errors import NotAuthenticatedError, RemoteApiError
from takeout_sync.models.photo import ArchivePhoto, utc_day
from takeout_sync.remote.synology import ERROR_NAME_EXISTS, RemoteItem, SynologyPhotosClient
from takeout_sync.services.catalog import (
    album_sync_counts,
    get_album_by_name,
    get_or_create_album,
    photos_needing_album_sync,
    photos_needing_remote_id,
    record_membership,
    set_remote_photo_id,
)
from takeout_sync.utils.pacing import FixedDelay, Pacer

logger = logging.getLogger(__name__)

MAX_LOOKUP_CONCURRENCY = 8
DEFAULT_LOOKUP_CONCURRENCY = 4
DEFAULT_BATCH_SIZE = 100

# Lookup outcomes
FOUND = "found"
NOT_FOUND = "not_found"
AMBIGUOUS = "ambiguous"
ERROR = "error"


@dataclass
class FixAlbumsResult:
    processed: int = 0
    photo_ids_found: int = 0
    albums_created: int = 0
    added_to_albums: int = 0
    skipped: int = 0
    errors: int = 0


def pick_remote_match(
    candidates: list[RemoteItem],
    filename: str,
    creation_time: Optional[datetime],
) -> tuple[str, Optional[int]]:
    """Choose the one search hit that is this photo, or report why none is.

    Search is by keyword, so hits are first narrowed to exact (case-insensitive)
    filename matches, then by creation day when several remain.
    """
    named = [c for c in candidates if c.filename.lower() == filename.lower()]
    if not named:
        return NOT_FOUND, None
    if len(named) == 1:
        return FOUND, named[0].id

    day = utc_day(creation_time)
    same_day = [c for c in named if day is not None and utc_day(c.creation_time) == day]
    if len(same_day) == 1:
        return FOUND, same_day[0].id
    return AMBIGUOUS, None


def clamp_concurrency(value: int) -> int:
    return max(1, min(int(value), MAX_LOOKUP_CONCURRENCY))


class AlbumReconciler:
    """Two-phase album fix-up for one archive account."""

    def __init__(
        self,
        session: Session,
        client: Optional[SynologyPhotosClient] = None,
        lookup_pacer: Optional[Pacer] = None,
        chunk_pacer: Optional[Pacer] = None,
    ):
        self.session = session
        self.client = client
        self.lookup_pacer = lookup_pacer or FixedDelay(settings.lookup_delay)
        self.chunk_pacer = chunk_pacer or FixedDelay(settings.album_chunk_delay)

    def run(
        self,
        account_name: str,
        limit: Optional[int] = None,
        batch_size: int = DEFAULT_BATCH_SIZE,
        concurrency: int = DEFAULT_LOOKUP_CONCURRENCY,
        dry_run: bool = False,
    ) -> FixAlbumsResult:
        if batch_size <= 0:
            raise ValueError(f"batch_size must be positive, got {batch_size}")
        if not dry_run and self.client is None:
            raise NotAuthenticatedError("A connected remote client is required outside dry run.")

        result = FixAlbumsResult()
        touched: set[str] = set()

        simulated = self.discover_photo_ids(account_name, result, touched, limit, concurrency, dry_run)
        self.assign_albums(account_name, result, touched, limit, batch_size, dry_run, simulated)

        result.processed = len(touched)
        logger.info(
            "%sFix albums for %s: %d processed, %d ids found, %d albums created, "
            "%d added, %d skipped, %d errors",
            "[DRY RUN] " if dry_run else "", account_name, result.processed, result.photo_ids_found,
            result.albums_created, result.added_to_albums, result.skipped, result.errors,
        )
        return result

    # --- Phase 1 ---

    def discover_photo_ids(
        self,
        account_name: str,
        result: FixAlbumsResult,
        touched: set[str],
        limit: Optional[int],
        concurrency: int,
        dry_run: bool,
    ) -> list[ArchivePhoto]:
        """Search the remote store for photos without an id.

        Returns the photos a dry run pretends to have found.
        """
        backlog = photos_needing_remote_id(account_name, self.session, limit=limit)
        if not backlog:
            return []
        touched.update(p.id for p in backlog)
        logger.info("Looking up remote ids for %d photos", len(backlog))

        if dry_run:
            result.photo_ids_found += len(backlog)
            return backlog

        workers = clamp_concurrency(concurrency)
        with ThreadPoolExecutor(max_workers=workers) as pool:
            for start in range(0, len(backlog), workers):
                if start:
                    self.lookup_pacer.wait()
                batch = backlog[start:start + workers]
                # Workers only see plain values; catalog writes stay on this thread
                keys = [(p.id, p.filename, p.creation_time) for p in batch]
                outcomes = list(pool.map(self._lookup, keys))
                for (photo_id, filename, _), (outcome, remote_id) in zip(keys, outcomes):
                    if outcome == FOUND:
                        set_remote_photo_id(photo_id, remote_id, self.session)
                        result.photo_ids_found += 1
                    elif outcome == ERROR:
                        result.errors += 1
                    else:
                        logger.debug("No unique remote match for %s (%s)", filename, outcome)
                        result.skipped += 1
        return []

    def _lookup(self, key: tuple[str, str, Optional[datetime]]) -> tuple[str, Optional[int]]:
        _, filename, creation_time = key
        try:
            candidates = self.client.search_by_filename(filename)
        except RemoteApiError as e:
            logger.warning("Search failed for %s: %s", filename, e)
            return ERROR, None
        return pick_remote_match(candidates, filename, creation_time)

    # --- Phase 2 ---

    def assign_albums(
        self,
        account_name: str,
        result: FixAlbumsResult,
        touched: set[str],
        limit: Optional[int],
        batch_size: int,
        dry_run: bool,
        simulated: list[ArchivePhoto],
    ) -> None:
        backlog = photos_needing_album_sync(account_name, self.session, limit=limit)
        known = {p.id for p in backlog}
        backlog.extend(p for p in simulated if p.id not in known)
        if not backlog:
            return
        touched.update(p.id for p in backlog)

        by_album: dict[str, list[ArchivePhoto]] = {}
        for photo in backlog:
            by_album.setdefault(photo.album_name, []).append(photo)
        logger.info("Adding %d photos to %d albums", len(backlog), len(by_album))

        first_chunk = True
        for album_name, photos in by_album.items():
            if dry_run:
                if get_album_by_name(account_name, album_name, self.session) is None:
                    result.albums_created += 1
                result.added_to_albums += len(photos)
                logger.info("[DRY RUN] Would add %d photos to album %r", len(photos), album_name)
                continue

            try:
                remote_album_id, created = self._resolve_album(album_name)
            except RemoteApiError as e:
                logger.error("Could not get or create album %r: %s", album_name, e)
                result.errors += len(photos)
                continue
            if created:
                result.albums_created += 1
            album = get_or_create_album(account_name, album_name, remote_album_id, self.session)

            photo_chunks = [photos[start:start + batch_size] for start in range(0, len(photos), batch_size)]
            for i, chunk in enumerate(photo_chunks):
                if not first_chunk:
                    self.chunk_pacer.wait()
                first_chunk = False
                try:
                    self.client.add_items_to_album(remote_album_id, [p.remote_photo_id for p in chunk])
                except RemoteApiError as e:
                    # Later chunks of this album wait for the next run
                    unsent = sum(len(c) for c in photo_chunks[i:])
                    logger.error(
                        "Failed to add %d photos to album %r, leaving %d for the next run: %s",
                        len(chunk), album_name, unsent, e,
                    )
                    result.errors += unsent
                    break
                record_membership(album.id, [p.id for p in chunk], self.session)
                result.added_to_albums += len(chunk)

    def _resolve_album(self, name: str) -> tuple[int, bool]:
        """Remote id of the album with this name, creating it if needed.

        Returns (remote album id, created).
        """
        existing = self.client.find_album_by_name(name)
        if existing is not None:
            return existing.id, False
        try:
            return self.client.create_album(name), True
        except RemoteApiError as e:
            if e.code == ERROR_NAME_EXISTS:
                logger.info("Album %r was created concurrently, fetching it", name)
            else:
                logger.warning("Creating album %r failed, checking whether it exists: %s", name, e)
            existing = self.client.find_album_by_name(name)
            if existing is not None:
                return existing.id, False
            raise


def album_status(account_name: str, session: Session) -> dict[str, int]:
    """Reconciliation progress for one account."""
    counts = album_sync_counts(account_name, session)
    return {
        "total_with_albums": sum(c["synced"] + c["needs_sync"] for c in counts.values()),
        "synced_to_albums": sum(c["synced"] for c in counts.values()),
        "needing_sync": len(photos_needing_album_sync(account_name, session)),
        "needing_photo_id": len(photos_needing_remote_id(account_name, session)),
    }
