"""Photo and status response schemas."""

from typing import Optional

from pydantic import BaseModel


class PhotoResponse(BaseModel):
    id: str
    source: str
    account_name: str
    filename: str
    creation_time: Optional[str]
    file_size: Optional[int]
    content_hash: Optional[str]
    mime_type: Optional[str]
    # Archive only
    source_path: Optional[str] = None
    album_name: Optional[str] = None
    is_backed_up: Optional[bool] = None
    backed_up_at: Optional[str] = None
    can_be_removed: Optional[bool] = None
    remote_path: Optional[str] = None
    remote_photo_id: Optional[int] = None
    # Remote only
    remote_item_id: Optional[int] = None
    width: Optional[int] = None
    height: Optional[int] = None


class PhotoListResponse(BaseModel):
    photos: list[PhotoResponse]
    total_count: int


class DeletionCandidate(BaseModel):
    filename: str
    date: Optional[str]
    account: str
    size: Optional[int]


class DeletionCandidatesResponse(BaseModel):
    photos: list[DeletionCandidate]
    total_count: int
    oldest: Optional[str]
    newest: Optional[str]
    by_month: dict[str, int]


class SystemStatusResponse(BaseModel):
    version: str
    db_path: str
    total_archive: int
    total_remote: int
    backed_up: int
    pending: int
    can_be_removed: int
    albums: int
    album_items: int
    accounts: list[str]
