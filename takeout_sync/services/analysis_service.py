"""Cross-source duplicate detection and the library analysis report."""

import json
import logging
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Optional

from sqlmodel import Session, col, func, select

from takeout_sync.config import settings
from takeout_sync.errors import ConfigurationError
from takeout_sync.models.photo import ArchivePhoto, RemotePhoto, utc_now
from takeout_sync.remote.synology import StorageInfo
from takeout_sync.services.identity import name_day_key

logger = logging.getLogger(__name__)

MATCH_HASH = "hash"
MATCH_NAME_DAY = "filename+date"


@dataclass
class DuplicatePair:
    archive: ArchivePhoto
    remote: RemotePhoto
    match_type: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "archive": {
                "id": self.archive.id,
                "account": self.archive.account_name,
                "filename": self.archive.filename,
                "hash": self.archive.content_hash or "",
            },
            "remote": {
                "id": self.remote.id,
                "account": self.remote.account_name,
                "filename": self.remote.filename,
                "hash": self.remote.content_hash or "",
            },
            "match_type": self.match_type,
        }


@dataclass
class ArchiveAccountSummary:
    name: str
    total_photos: int = 0
    backed_up: int = 0
    not_backed_up: int = 0
    can_be_removed: int = 0
    paired_with: Optional[str] = None


@dataclass
class RemoteAccountSummary:
    name: str
    total_photos: int = 0
    storage_used: int = 0
    storage_total: int = 0
    percent_used: float = 0.0


@dataclass
class AnalysisReport:
    timestamp: str
    archive_accounts: list[ArchiveAccountSummary] = field(default_factory=list)
    remote_accounts: list[RemoteAccountSummary] = field(default_factory=list)
    duplicates: list[dict[str, Any]] = field(default_factory=list)
    recommendations: list[str] = field(default_factory=list)


def find_duplicates(session: Session, account_name: Optional[str] = None) -> list[DuplicatePair]:
    """Archive photos that also exist on the remote store, with how they matched.

    A pair matches on equal digests, or on the same filename (ignoring case)
    taken on the same UTC day. Each pair is reported once, digest first.
    """
    by_hash: dict[str, list[RemotePhoto]] = {}
    by_name_day: dict[tuple, list[RemotePhoto]] = {}
    for remote in session.exec(select(RemotePhoto).order_by(col(RemotePhoto.id))).all():
        if remote.content_hash:
            by_hash.setdefault(remote.content_hash, []).append(remote)
        key = name_day_key(remote.filename, remote.creation_time)
        if key is not None:
            by_name_day.setdefault(key, []).append(remote)

    query = select(ArchivePhoto).order_by(col(ArchivePhoto.creation_time), col(ArchivePhoto.id))
    if account_name:
        query = query.where(ArchivePhoto.account_name == account_name)

    pairs: list[DuplicatePair] = []
    for photo in session.exec(query).all():
        seen: set[str] = set()
        for remote in by_hash.get(photo.content_hash or "", []):
            seen.add(remote.id)
            pairs.append(DuplicatePair(photo, remote, MATCH_HASH))
        key = name_day_key(photo.filename, photo.creation_time)
        for remote in by_name_day.get(key, []) if key is not None else []:
            if remote.id not in seen:
                pairs.append(DuplicatePair(photo, remote, MATCH_NAME_DAY))
    return pairs


def removable_photos(session: Session, account_name: Optional[str] = None) -> list[ArchivePhoto]:
    """Archive photos with a copy on the remote store, oldest first, each once."""
    photos: dict[str, ArchivePhoto] = {}
    for pair in find_duplicates(session, account_name=account_name):
        photos.setdefault(pair.archive.id, pair.archive)
    return list(photos.values())


def _archive_summary(name: str, session: Session) -> ArchiveAccountSummary:
    def count(*conditions) -> int:
        return session.exec(
            select(func.count()).select_from(ArchivePhoto).where(ArchivePhoto.account_name == name, *conditions)
        ).one()

    total = count()
    backed_up = count(ArchivePhoto.is_backed_up == True)  # noqa: E712
    try:
        paired_with: Optional[str] = settings.get_paired_account(name).name
    except ConfigurationError:
        paired_with = None
    return ArchiveAccountSummary(
        name=name,
        total_photos=total,
        backed_up=backed_up,
        not_backed_up=total - backed_up,
        can_be_removed=count(ArchivePhoto.can_be_removed == True),  # noqa: E712
        paired_with=paired_with,
    )


def recommendations(report: AnalysisReport) -> list[str]:
    advice: list[str] = []
    for account in report.archive_accounts:
        if account.not_backed_up > 0:
            advice.append(
                f"{account.name} has {account.not_backed_up} imported photos not yet on the NAS. "
                f"Run 'takeout-sync sync --account {account.name}' to upload them."
            )
        if account.can_be_removed > 0:
            advice.append(
                f"{account.can_be_removed} photos from {account.name}'s export are backed up "
                f"and can be deleted from Google Photos to free up space."
            )
        if not account.paired_with:
            advice.append(
                f"WARNING: {account.name} is not paired with a remote account. "
                f"Set TAKEOUT_SYNC_PAIRINGS or configure an account with that name."
            )

    if report.duplicates:
        advice.append(
            f"Found {len(report.duplicates)} photos that exist in both the export and the NAS. "
            f"These can be safely deleted from Google Photos."
        )

    if not advice:
        advice.append("All photos are synced and no duplicates found. Your library is in good shape!")
    return advice


def generate_report(session: Session, storage: Optional[dict[str, StorageInfo]] = None) -> AnalysisReport:
    """Per-account totals, pairings, duplicates and suggested next steps.

    storage maps remote account names to their last known volume usage.
    """
    logger.info("Generating analysis report")
    storage = storage or {}
    report = AnalysisReport(timestamp=utc_now().isoformat())

    names = settings.archive_accounts()
    imported = session.exec(select(ArchivePhoto.account_name).distinct().order_by(col(ArchivePhoto.account_name))).all()
    names.extend(n for n in imported if n not in names)
    report.archive_accounts = [_archive_summary(name, session) for name in names]

    remote_counts = dict(session.exec(
        select(RemotePhoto.account_name, func.count()).group_by(RemotePhoto.account_name)
    ).all())
    for account in settings.accounts():
        info = storage.get(account.name, StorageInfo())
        report.remote_accounts.append(RemoteAccountSummary(
            name=account.name,
            total_photos=remote_counts.get(account.name, 0),
            storage_used=info.used,
            storage_total=info.total,
            percent_used=info.percent_used,
        ))

    report.duplicates = [pair.to_dict() for pair in find_duplicates(session)]
    report.recommendations = recommendations(report)
    return report


def write_report(report: AnalysisReport, output: Path | str) -> Path:
    output = Path(output)
    output.write_text(json.dumps(asdict(report), indent=2), encoding="utf-8")
    return output
