"""Photo catalog: upserts, backlog queries and narrow status transitions.

Identity fields are written once at insert. Status fields (backed-up flag,
remote photo id, album membership) change only through the transition
functions below, so a rescan can never roll back work done by later phases.
"""

import logging
from datetime import datetime
from typing import Iterable, Optional, Union

from sqlmodel import Session, col, func, select

from takeout_sync.models.album import Album, AlbumItem
from takeout_sync.models.photo import ArchivePhoto, RemotePhoto, utc_day, utc_now

logger = logging.getLogger(__name__)

AnyPhoto = Union[ArchivePhoto, RemotePhoto]

# Fields a rescan is allowed to refresh on an existing record
_ARCHIVE_SCAN_FIELDS = ("filename", "file_size", "mime_type", "creation_time", "source_path")
_REMOTE_SCAN_FIELDS = ("filename", "file_size", "mime_type", "creation_time", "remote_path",
                       "width", "height", "content_hash")


# --- Upserts ---

def upsert_archive_photo(
    photo: ArchivePhoto,
    session: Session,
    satisfied: bool = False,
    commit: bool = True,
) -> tuple[ArchivePhoto, bool]:
    """Insert an archive photo, or merge scan fields into the existing record.

    satisfied=True records the photo as already present on the remote store.
    On an existing record that can only move is_backed_up from False to True.
    Returns (record, created).
    """
    existing = session.get(ArchivePhoto, photo.id)
    if existing is None:
        if satisfied:
            photo.is_backed_up = True
            photo.can_be_removed = True
            photo.backed_up_at = utc_now()
        session.add(photo)
        if commit:
            session.commit()
            session.refresh(photo)
        return photo, True

    for field in _ARCHIVE_SCAN_FIELDS:
        value = getattr(photo, field)
        if value is not None:
            setattr(existing, field, value)
    existing.last_scanned_at = utc_now()
    if satisfied and not existing.is_backed_up:
        existing.is_backed_up = True
        existing.can_be_removed = True
        existing.backed_up_at = utc_now()
    session.add(existing)
    if commit:
        session.commit()
        session.refresh(existing)
    return existing, False


def upsert_remote_photo(photo: RemotePhoto, session: Session, commit: bool = True) -> RemotePhoto:
    """Insert or refresh a photo indexed from the remote store."""
    existing = session.get(RemotePhoto, photo.id)
    if existing is None:
        session.add(photo)
        target = photo
    else:
        for field in _REMOTE_SCAN_FIELDS:
            value = getattr(photo, field)
            if value is not None:
                setattr(existing, field, value)
        existing.last_scanned_at = utc_now()
        session.add(existing)
        target = existing
    if commit:
        session.commit()
        session.refresh(target)
    return target


# --- Lookups ---

def get_photo(photo_id: str, session: Session) -> Optional[AnyPhoto]:
    """Point lookup across both sources."""
    return session.get(ArchivePhoto, photo_id) or session.get(RemotePhoto, photo_id)


def find_archive_photo(
    account_name: str,
    source_path: str,
    filename: str,
    creation_time: Optional[datetime],
    session: Session,
) -> Optional[ArchivePhoto]:
    """Existing record for a rescanned file whose digest may have changed.

    Matches the same source path first, then the same filename (ignoring case)
    on the same UTC day.
    """
    by_path = session.exec(
        select(ArchivePhoto).where(
            ArchivePhoto.account_name == account_name,
            ArchivePhoto.source_path == source_path,
        )
    ).first()
    if by_path is not None:
        return by_path

    day = utc_day(creation_time)
    if day is None:
        return None
    candidates = session.exec(
        select(ArchivePhoto)
        .where(
            ArchivePhoto.account_name == account_name,
            func.lower(ArchivePhoto.filename) == filename.lower(),
        )
        .order_by(col(ArchivePhoto.id))
    ).all()
    for photo in candidates:
        if photo.creation_day == day:
            return photo
    return None


def list_photos(
    session: Session,
    source: str = "archive",
    account_name: Optional[str] = None,
    backed_up: Optional[bool] = None,
    album_name: Optional[str] = None,
    filename_contains: Optional[str] = None,
    limit: Optional[int] = None,
) -> list[AnyPhoto]:
    """Filtered listing ordered by creation time (oldest first)."""
    model = RemotePhoto if source == "remote" else ArchivePhoto
    query = select(model)
    if account_name:
        query = query.where(model.account_name == account_name)
    if filename_contains:
        query = query.where(col(model.filename).contains(filename_contains))
    if model is ArchivePhoto:
        if backed_up is not None:
            query = query.where(ArchivePhoto.is_backed_up == backed_up)
        if album_name:
            query = query.where(ArchivePhoto.album_name == album_name)
    query = query.order_by(col(model.creation_time).asc(), col(model.id).asc())
    if limit:
        query = query.limit(limit)
    return list(session.exec(query).all())


def photos_not_backed_up(account_name: str, session: Session, limit: Optional[int] = None) -> list[ArchivePhoto]:
    """Transfer backlog, oldest first so repeated limited runs resume in order."""
    query = (
        select(ArchivePhoto)
        .where(ArchivePhoto.account_name == account_name, ArchivePhoto.is_backed_up == False)  # noqa: E712
        .order_by(col(ArchivePhoto.creation_time).asc(), col(ArchivePhoto.id).asc())
    )
    if limit:
        query = query.limit(limit)
    return list(session.exec(query).all())


def _has_album():
    return col(ArchivePhoto.album_name).is_not(None), ArchivePhoto.album_name != ""


def photos_needing_remote_id(account_name: str, session: Session, limit: Optional[int] = None) -> list[ArchivePhoto]:
    """Backed-up photos with an album but no discovered remote photo id."""
    query = (
        select(ArchivePhoto)
        .where(
            ArchivePhoto.account_name == account_name,
            ArchivePhoto.is_backed_up == True,  # noqa: E712
            *_has_album(),
            col(ArchivePhoto.remote_photo_id).is_(None),
        )
        .order_by(col(ArchivePhoto.album_name), col(ArchivePhoto.creation_time), col(ArchivePhoto.id))
    )
    if limit:
        query = query.limit(limit)
    return list(session.exec(query).all())


def _membership_exists():
    """Correlated EXISTS: the photo is recorded in an album named like its album_name."""
    return (
        select(AlbumItem.id)
        .join(Album, col(Album.id) == AlbumItem.album_id)
        .where(
            AlbumItem.photo_id == ArchivePhoto.id,
            Album.name == ArchivePhoto.album_name,
            Album.account_name == ArchivePhoto.account_name,
        )
        .exists()
    )


def photos_needing_album_sync(account_name: str, session: Session, limit: Optional[int] = None) -> list[ArchivePhoto]:
    """Photos with a remote id and an album but no confirmed membership."""
    query = (
        select(ArchivePhoto)
        .where(
            ArchivePhoto.account_name == account_name,
            ArchivePhoto.is_backed_up == True,  # noqa: E712
            *_has_album(),
            col(ArchivePhoto.remote_photo_id).is_not(None),
            ~_membership_exists(),
        )
        .order_by(col(ArchivePhoto.album_name), col(ArchivePhoto.creation_time), col(ArchivePhoto.id))
    )
    if limit:
        query = query.limit(limit)
    return list(session.exec(query).all())


def photos_safe_to_delete(session: Session, account_name: Optional[str] = None) -> list[ArchivePhoto]:
    """Archive photos known to exist on the remote store."""
    return list_photos(session, source="archive", account_name=account_name, backed_up=True)


def remote_identity_rows(session: Session) -> list[tuple[Optional[str], str, Optional[datetime]]]:
    """(content_hash, filename, creation_time) for every indexed remote photo."""
    rows = session.exec(
        select(RemotePhoto.content_hash, RemotePhoto.filename, RemotePhoto.creation_time)
    ).all()
    return [tuple(r) for r in rows]


# --- Status transitions ---

def mark_backed_up(photo_id: str, session: Session, remote_path: Optional[str] = None) -> bool:
    """Record a confirmed upload. Returns False when already backed up or unknown."""
    photo = session.get(ArchivePhoto, photo_id)
    if photo is None or photo.is_backed_up:
        return False
    photo.is_backed_up = True
    photo.can_be_removed = True
    photo.backed_up_at = utc_now()
    if remote_path:
        photo.remote_path = remote_path
    session.add(photo)
    session.commit()
    return True


def set_remote_photo_id(photo_id: str, remote_photo_id: int, session: Session) -> None:
    """Store a remote photo id confirmed by a search match."""
    photo = session.get(ArchivePhoto, photo_id)
    if photo is None:
        raise KeyError(photo_id)
    photo.remote_photo_id = remote_photo_id
    session.add(photo)
    session.commit()


def get_album_by_name(account_name: str, name: str, session: Session) -> Optional[Album]:
    return session.exec(
        select(Album).where(Album.account_name == account_name, Album.name == name)
    ).first()


def get_or_create_album(account_name: str, name: str, remote_album_id: int, session: Session) -> Album:
    """Local album row for a remote album; refreshes the remote id if it moved."""
    album = get_album_by_name(account_name, name, session)
    if album is None:
        album = Album(account_name=account_name, name=name, remote_album_id=remote_album_id)
    elif album.remote_album_id != remote_album_id:
        logger.info("Album %r remote id changed %s -> %s", name, album.remote_album_id, remote_album_id)
        album.remote_album_id = remote_album_id
    album.last_synced_at = utc_now()
    session.add(album)
    session.commit()
    session.refresh(album)
    return album


def record_membership(album_id: int, photo_ids: Iterable[str], session: Session) -> int:
    """Record confirmed membership for photos; existing pairs are left alone.

    Returns the number of new memberships.
    """
    photo_ids = list(photo_ids)
    if not photo_ids:
        return 0
    existing = set(session.exec(
        select(AlbumItem.photo_id).where(
            AlbumItem.album_id == album_id,
            col(AlbumItem.photo_id).in_(photo_ids),
        )
    ).all())
    added = 0
    for pid in photo_ids:
        if pid in existing:
            continue
        session.add(AlbumItem(album_id=album_id, photo_id=pid))
        existing.add(pid)
        added += 1
    album = session.get(Album, album_id)
    if album is not None:
        album.last_synced_at = utc_now()
        session.add(album)
    session.commit()
    return added


# --- Aggregates ---

def album_counts(session: Session, account_name: Optional[str] = None) -> dict[str, int]:
    """Album name -> archive photo count, largest first."""
    query = (
        select(ArchivePhoto.album_name, func.count())
        .where(*_has_album())
        .group_by(ArchivePhoto.album_name)
        .order_by(func.count().desc(), col(ArchivePhoto.album_name))
    )
    if account_name:
        query = query.where(ArchivePhoto.account_name == account_name)
    return {name: count for name, count in session.exec(query).all()}


def album_sync_counts(account_name: str, session: Session) -> dict[str, dict[str, int]]:
    """Per album: backed-up photos already in their album vs still needing it."""
    totals = session.exec(
        select(ArchivePhoto.album_name, func.count())
        .where(
            ArchivePhoto.account_name == account_name,
            ArchivePhoto.is_backed_up == True,  # noqa: E712
            *_has_album(),
        )
        .group_by(ArchivePhoto.album_name)
    ).all()
    synced = dict(session.exec(
        select(ArchivePhoto.album_name, func.count())
        .where(
            ArchivePhoto.account_name == account_name,
            ArchivePhoto.is_backed_up == True,  # noqa: E712
            *_has_album(),
            _membership_exists(),
        )
        .group_by(ArchivePhoto.album_name)
    ).all())
    return {
        name: {"synced": synced.get(name, 0), "needs_sync": count - synced.get(name, 0)}
        for name, count in totals
    }


def photo_stats(session: Session) -> dict[str, int]:
    """Headline counts for status output."""
    def count(query) -> int:
        return session.exec(query).one()

    total_archive = count(select(func.count()).select_from(ArchivePhoto))
    backed_up = count(
        select(func.count()).select_from(ArchivePhoto).where(ArchivePhoto.is_backed_up == True)  # noqa: E712
    )
    return {
        "total_archive": total_archive,
        "total_remote": count(select(func.count()).select_from(RemotePhoto)),
        "backed_up": backed_up,
        "pending": total_archive - backed_up,
        "can_be_removed": count(
            select(func.count()).select_from(ArchivePhoto).where(ArchivePhoto.can_be_removed == True)  # noqa: E712
        ),
        "albums": count(select(func.count()).select_from(Album)),
        "album_items": count(select(func.count()).select_from(AlbumItem)),
    }
