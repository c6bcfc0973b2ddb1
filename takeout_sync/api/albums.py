"""Album API endpoints."""

from typing import Optional

from fastapi import APIRouter, Depends
from sqlmodel import Session

from takeout_sync.config import settings
from takeout_sync.database import get_session
from takeout_sync.schemas.album import (
    AlbumCountResponse,
    AlbumListResponse,
    AlbumStatusResponse,
    AlbumSyncCount,
)
from takeout_sync.services.catalog import album_counts, album_sync_counts
from takeout_sync.services.reconciler import album_status

router = APIRouter(prefix="/albums", tags=["albums"])


@router.get("", response_model=AlbumListResponse)
def list_albums(
    account: Optional[str] = None,
    session: Session = Depends(get_session),
):
    """Albums detected in imported archives, largest first."""
    counts = album_counts(session, account_name=account)
    return AlbumListResponse(
        albums=[AlbumCountResponse(name=name, photo_count=n) for name, n in counts.items()],
        total_count=len(counts),
    )


@router.get("/status", response_model=AlbumStatusResponse)
def get_album_status(
    account: Optional[str] = None,
    session: Session = Depends(get_session),
):
    """Album reconciliation progress for one account."""
    account = account or settings.account
    per_album = album_sync_counts(account, session)
    return AlbumStatusResponse(
        account=account,
        **album_status(account, session),
        albums=[
            AlbumSyncCount(name=name, synced=c["synced"], needs_sync=c["needs_sync"])
            for name, c in sorted(per_album.items())
        ],
    )
