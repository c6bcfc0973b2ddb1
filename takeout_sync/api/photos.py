"""Photo catalog API endpoints."""

from typing import Literal, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlmodel import Session

from takeout_sync.database import get_session
from takeout_sync.models.photo import ArchivePhoto
from takeout_sync.schemas.photo import PhotoListResponse, PhotoResponse
from takeout_sync.services.catalog import (
    AnyPhoto,
    get_photo,
    list_photos,
    photos_needing_album_sync,
    photos_needing_remote_id,
)

router = APIRouter(prefix="/photos", tags=["photos"])


def _iso(value) -> Optional[str]:
    return value.isoformat() if value else None


def _photo_to_response(p: AnyPhoto) -> PhotoResponse:
    resp = PhotoResponse(
        id=p.id,
        source=p.source,
        account_name=p.account_name,
        filename=p.filename,
        creation_time=_iso(p.creation_time),
        file_size=p.file_size,
        content_hash=p.content_hash,
        mime_type=p.mime_type,
        remote_path=p.remote_path,
    )
    if isinstance(p, ArchivePhoto):
        resp.source_path = p.source_path
        resp.album_name = p.album_name
        resp.is_backed_up = bool(p.is_backed_up)
        resp.backed_up_at = _iso(p.backed_up_at)
        resp.can_be_removed = bool(p.can_be_removed)
        resp.remote_photo_id = p.remote_photo_id
    else:
        resp.remote_item_id = p.remote_item_id
        resp.width = p.width
        resp.height = p.height
    return resp


@router.get("", response_model=PhotoListResponse)
def get_photos(
    source: Literal["archive", "remote"] = "archive",
    account: Optional[str] = None,
    backed_up: Optional[bool] = None,
    album: Optional[str] = None,
    needs: Optional[Literal["remote-id", "album-sync"]] = None,
    limit: int = Query(default=100, ge=1, le=1000),
    session: Session = Depends(get_session),
):
    """List catalog photos, optionally only one reconciliation backlog."""
    if needs:
        if not account:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="needs requires account")
        if needs == "remote-id":
            photos = photos_needing_remote_id(account, session, limit=limit)
        else:
            photos = photos_needing_album_sync(account, session, limit=limit)
    else:
        photos = list_photos(
            session,
            source=source,
            account_name=account,
            backed_up=backed_up,
            album_name=album,
            limit=limit,
        )
    return PhotoListResponse(
        photos=[_photo_to_response(p) for p in photos],
        total_count=len(photos),
    )


@router.get("/{photo_id}", response_model=PhotoResponse)
def get_photo_detail(photo_id: str, session: Session = Depends(get_session)):
    photo = get_photo(photo_id, session)
    if not photo:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Photo not found")
    return _photo_to_response(photo)
