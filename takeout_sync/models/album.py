"""Album models."""

from datetime import datetime
from typing import Optional

from sqlalchemy import UniqueConstraint
from sqlmodel import Field, SQLModel

from takeout_sync.models.photo import utc_now


class Album(SQLModel, table=True):
    __tablename__ = "albums"
    __table_args__ = (
        UniqueConstraint("account_name", "name"),
        UniqueConstraint("account_name", "remote_album_id"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    remote_album_id: int = Field(index=True)
    account_name: str = Field(index=True)
    name: str
    created_at: datetime = Field(default_factory=utc_now)
    last_synced_at: datetime = Field(default_factory=utc_now)


class AlbumItem(SQLModel, table=True):
    """Confirmed remote membership of an archive photo in an album."""

    __tablename__ = "album_items"
    __table_args__ = (UniqueConstraint("album_id", "photo_id"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    album_id: int = Field(foreign_key="albums.id", index=True)
    photo_id: str = Field(foreign_key="archive_photos.id", index=True)
    added_at: datetime = Field(default_factory=utc_now)
