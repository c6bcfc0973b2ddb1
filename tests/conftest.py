"""Shared fixtures. The environment points at temporary directories before the package is imported."""

import os
import tempfile
from datetime import datetime, timezone
from typing import Optional

import pytest

_DATA_DIR = tempfile.mkdtemp()
os.environ["TAKEOUT_SYNC_DATA_DIR"] = _DATA_DIR
os.environ["TAKEOUT_SYNC_DB_PATH"] = os.path.join(_DATA_DIR, "test.db")
os.environ["TAKEOUT_SYNC_LOG_DIR"] = tempfile.mkdtemp()
os.environ["TAKEOUT_SYNC_ACCOUNT"] = "account1"
os.environ["TAKEOUT_SYNC_USERNAME"] = "tester"
os.environ["TAKEOUT_SYNC_PHOTO_PATH"] = "/photo"
for _delay in ("UPLOAD_DELAY", "LOOKUP_DELAY", "ALBUM_CHUNK_DELAY", "SCAN_PAGE_DELAY"):
    os.environ[f"TAKEOUT_SYNC_{_delay}"] = "0"

from sqlmodel import Session  # noqa: E402

from takeout_sync.database import init_db, make_engine  # noqa: E402
from takeout_sync.errors import RemoteApiError  # noqa: E402
from takeout_sync.models.photo import ArchivePhoto, RemotePhoto  # noqa: E402
from takeout_sync.remote.synology import RemoteAlbum, RemoteItem  # noqa: E402


@pytest.fixture
def engine(tmp_path):
    eng = make_engine(tmp_path / "catalog.db")
    init_db(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session(engine):
    with Session(engine) as s:
        yield s


def utc(*args) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)


@pytest.fixture
def make_archive_photo():
    def _make(
        content_hash: str,
        filename: str = "IMG_0001.jpg",
        account_name: str = "account1",
        creation_time: Optional[datetime] = None,
        source_path: str = "/nonexistent/IMG_0001.jpg",
        **fields,
    ) -> ArchivePhoto:
        return ArchivePhoto(
            id=ArchivePhoto.make_id(account_name, content_hash),
            account_name=account_name,
            filename=filename,
            creation_time=creation_time or utc(2021, 6, 1, 12, 0),
            file_size=1024,
            content_hash=content_hash,
            mime_type="image/jpeg",
            source_path=source_path,
            **fields,
        )
    return _make


@pytest.fixture
def make_remote_photo():
    def _make(
        remote_item_id: int,
        filename: str,
        creation_time: Optional[datetime] = None,
        content_hash: Optional[str] = None,
        account_name: str = "account1",
    ) -> RemotePhoto:
        return RemotePhoto(
            id=RemotePhoto.make_id(account_name, remote_item_id),
            account_name=account_name,
            filename=filename,
            creation_time=creation_time,
            content_hash=content_hash,
            remote_item_id=remote_item_id,
        )
    return _make


class FakeRemoteClient:
    """In-memory stand-in for SynologyPhotosClient."""

    def __init__(self, account_name: str = "account1"):
        self.account_name = account_name
        self.opened = False
        self.closed = False
        # Uploads
        self.uploads: list[tuple[str, str]] = []
        self.failing_uploads: set[str] = set()
        # Search
        self.search_index: dict[str, list[RemoteItem]] = {}
        self.failing_searches: set[str] = set()
        self.search_calls: list[str] = []
        # Albums
        self.albums: dict[str, int] = {}
        self.next_album_id = 100
        self.create_fails_with_race = False
        self.create_fails = False
        self.created_albums: list[str] = []
        self.add_calls: list[tuple[int, list[int]]] = []
        self.failing_add_calls: set[int] = set()  # 1-based call numbers

    def __enter__(self):
        return self.open()

    def __exit__(self, *exc):
        self.close()

    def open(self):
        self.opened = True
        return self

    def close(self):
        self.closed = True

    def upload(self, data: bytes, filename: str, folder: str) -> None:
        if filename in self.failing_uploads:
            raise RemoteApiError(f"Upload of {filename} failed", code=500)
        self.uploads.append((filename, folder))

    def search_by_filename(self, filename: str) -> list[RemoteItem]:
        self.search_calls.append(filename)
        if filename in self.failing_searches:
            raise RemoteApiError("search failed")
        return list(self.search_index.get(filename, []))

    def find_album_by_name(self, name: str) -> Optional[RemoteAlbum]:
        if name in self.albums:
            return RemoteAlbum(id=self.albums[name], name=name)
        return None

    def create_album(self, name: str) -> int:
        if self.create_fails_with_race:
            # Someone else created it first
            self.albums[name] = self.next_album_id
            self.next_album_id += 1
            raise RemoteApiError("name exists", code=641)
        if self.create_fails:
            raise RemoteApiError("create failed")
        self.albums[name] = self.next_album_id
        self.next_album_id += 1
        self.created_albums.append(name)
        return self.albums[name]

    def add_items_to_album(self, album_id: int, item_ids: list[int]) -> None:
        self.add_calls.append((album_id, list(item_ids)))
        if len(self.add_calls) in self.failing_add_calls:
            raise RemoteApiError("add_item failed")


@pytest.fixture
def fake_client():
    return FakeRemoteClient()
