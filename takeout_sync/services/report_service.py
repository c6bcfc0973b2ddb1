"""Read-only reports: deletion candidates, date ranges and inspection queries."""

import csv
import json
from pathlib import Path
from typing import Any, Optional

from sqlmodel import Session, col, func, select

from takeout_sync.models.photo import ArchivePhoto, RemotePhoto
from takeout_sync.services.catalog import list_photos, photos_safe_to_delete

EXPORT_FORMATS = ("csv", "json", "dates")


def _day(value) -> str:
    return value.date().isoformat() if value else "no-date"


def photo_row(photo: ArchivePhoto) -> dict[str, Any]:
    return {
        "filename": photo.filename,
        "date": photo.creation_time.isoformat() if photo.creation_time else None,
        "account": photo.account_name,
        "size": photo.file_size,
    }


def deletion_candidates(session: Session, account_name: Optional[str] = None) -> list[ArchivePhoto]:
    """Archive photos that are on the remote store, oldest first."""
    return photos_safe_to_delete(session, account_name=account_name)


def write_csv(photos: list[ArchivePhoto], output: Path | str) -> Path:
    output = Path(output)
    with open(output, "w", newline="", encoding="utf-8") as f:
        writer = csv.writer(f, quoting=csv.QUOTE_NONNUMERIC)
        writer.writerow(["filename", "date", "account", "size_bytes"])
        for photo in photos:
            row = photo_row(photo)
            writer.writerow([row["filename"], row["date"] or "", row["account"], row["size"] or 0])
    return output


def write_json(photos: list[ArchivePhoto], output: Path | str) -> Path:
    output = Path(output)
    if output.suffix.lower() == ".csv":
        output = output.with_suffix(".json")
    output.write_text(json.dumps([photo_row(p) for p in photos], indent=2), encoding="utf-8")
    return output


def date_summary(photos: list[ArchivePhoto]) -> dict[str, Any]:
    """Oldest/newest day and per-month counts, for filtering in the source service."""
    dated = [p.creation_time for p in photos if p.creation_time]
    by_month: dict[str, int] = {}
    for ts in dated:
        key = ts.strftime("%Y-%m")
        by_month[key] = by_month.get(key, 0) + 1
    return {
        "total": len(photos),
        "oldest": min(dated).date().isoformat() if dated else None,
        "newest": max(dated).date().isoformat() if dated else None,
        "by_month": dict(sorted(by_month.items())),
    }


# --- Inspection ---

def _brief(photo) -> dict[str, Any]:
    return {
        "id": photo.id,
        "filename": photo.filename,
        "date": _day(photo.creation_time),
        "size": photo.file_size,
    }


def inspect_new(session: Session, limit: int = 20) -> list[dict[str, Any]]:
    """Oldest archive photos still waiting for transfer."""
    return [_brief(p) for p in list_photos(session, source="archive", backed_up=False, limit=limit)]


def inspect_remote(session: Session, limit: int = 20) -> list[dict[str, Any]]:
    """Sample of indexed remote photos, newest first."""
    photos = session.exec(
        select(RemotePhoto).order_by(col(RemotePhoto.creation_time).desc()).limit(limit)
    ).all()
    return [_brief(p) for p in photos]


def inspect_matched(session: Session, limit: int = 20) -> list[dict[str, Any]]:
    """Archive and remote photos sharing a filename, with their days side by side."""
    rows = session.exec(
        select(ArchivePhoto, RemotePhoto)
        .join(RemotePhoto, func.lower(RemotePhoto.filename) == func.lower(ArchivePhoto.filename))
        .limit(limit)
    ).all()
    matches = []
    for archive, remote in rows:
        archive_day, remote_day = _day(archive.creation_time), _day(remote.creation_time)
        matches.append({
            "filename": archive.filename,
            "archive_date": archive_day,
            "remote_date": remote_day,
            "archive_size": archive.file_size,
            "remote_size": remote.file_size,
            "date_match": archive_day == remote_day,
        })
    return matches


def search_filename(session: Session, term: str, limit: int = 20) -> dict[str, list[dict[str, Any]]]:
    """Filename substring search in both sources."""
    return {
        "remote": [_brief(p) for p in list_photos(session, source="remote", filename_contains=term, limit=limit)],
        "archive": [_brief(p) for p in list_photos(session, source="archive", filename_contains=term, limit=limit)],
    }
