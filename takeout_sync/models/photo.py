"""Archive and remote photo models.

Both sources share the identity projection in PhotoBase; source-specific
fields live on their own table.
"""

from datetime import date, datetime, timezone
from typing import ClassVar, Optional

from sqlmodel import Field, SQLModel


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def utc_day(value: Optional[datetime]) -> Optional[date]:
    """Calendar day of a timestamp in UTC. Naive values are taken as UTC."""
    if value is None:
        return None
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc)
    return value.date()


class PhotoBase(SQLModel):
    id: str = Field(primary_key=True)
    account_name: str = Field(index=True)
    filename: str = Field(index=True)
    creation_time: Optional[datetime] = Field(default=None, index=True)
    file_size: Optional[int] = None
    content_hash: Optional[str] = Field(default=None, index=True)
    mime_type: Optional[str] = None
    last_scanned_at: datetime = Field(default_factory=utc_now)

    source: ClassVar[str] = ""

    @property
    def creation_day(self) -> Optional[date]:
        return utc_day(self.creation_time)


class ArchivePhoto(PhotoBase, table=True):
    __tablename__ = "archive_photos"

    source: ClassVar[str] = "archive"

    source_path: str  # file inside the archive export
    album_name: Optional[str] = Field(default=None, index=True)  # set once at import
    # Status fields, written only through catalog transitions
    is_backed_up: bool = Field(default=False, index=True)
    backed_up_at: Optional[datetime] = None
    can_be_removed: bool = Field(default=False)
    remote_path: Optional[str] = None  # destination folder on the remote store
    remote_photo_id: Optional[int] = Field(default=None, index=True)

    @staticmethod
    def make_id(account_name: str, content_hash: str) -> str:
        return f"takeout-{account_name}-{content_hash}"


class RemotePhoto(PhotoBase, table=True):
    __tablename__ = "remote_photos"

    source: ClassVar[str] = "remote"

    remote_item_id: int = Field(index=True)
    remote_path: Optional[str] = None
    width: Optional[int] = None
    height: Optional[int] = None

    @staticmethod
    def make_id(account_name: str, remote_item_id: int, space: str = "personal") -> str:
        if space == "shared":
            return f"synology-shared-{remote_item_id}"
        return f"synology-{account_name}-personal-{remote_item_id}"
