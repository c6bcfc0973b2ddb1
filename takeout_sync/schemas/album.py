"""Album response schemas."""

from pydantic import BaseModel


class AlbumCountResponse(BaseModel):
    name: str
    photo_count: int


class AlbumListResponse(BaseModel):
    albums: list[AlbumCountResponse]
    total_count: int


class AlbumSyncCount(BaseModel):
    name: str
    synced: int
    needs_sync: int


class AlbumStatusResponse(BaseModel):
    account: str
    total_with_albums: int
    synced_to_albums: int
    needing_sync: int
    needing_photo_id: int
    albums: list[AlbumSyncCount]
