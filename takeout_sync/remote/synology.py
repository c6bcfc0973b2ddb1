"""Synology Photos web API client.

One client per remote account and command invocation: construct it, open()
(or use it as a context manager), pass it to the services, close() it.
"""

import json
import logging
import mimetypes
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Iterator, Optional, TypeVar

import requests

from takeout_sync.config import RemoteAccount, settings
from takeout_sync.errors import AuthenticationError, NotAuthenticatedError, RemoteApiError

logger = logging.getLogger(__name__)

T = TypeVar("T")

AUTH_PATH = "/webapi/auth.cgi"
ENTRY_PATH = "/webapi/entry.cgi"

PAGE_SIZE = 100
ALBUM_PAGE_SIZE = 500
SEARCH_MAX_RESULTS = 500

# Synology error code for "name already exists" on album/folder creation
ERROR_NAME_EXISTS = 641

SPACE_APIS = {
    "personal": "SYNO.Foto.Browse.Item",
    "shared": "SYNO.FotoTeam.Browse.Item",
}


def _optional_int(value: Any) -> Optional[int]:
    return None if value is None else int(value)


@dataclass
class RemoteItem:
    """A photo or video as listed by the remote store."""

    id: int
    filename: str
    filesize: Optional[int] = None
    time: Optional[int] = None  # capture time, epoch seconds
    type: str = "photo"
    folder_id: Optional[int] = None
    width: Optional[int] = None
    height: Optional[int] = None

    @property
    def creation_time(self) -> Optional[datetime]:
        if self.time is None:
            return None
        return datetime.fromtimestamp(self.time, tz=timezone.utc)

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "RemoteItem":
        """Build from one API row. Raises KeyError, TypeError or ValueError on a malformed row."""
        resolution = (data.get("additional") or {}).get("resolution") or {}
        return cls(
            id=int(data["id"]),
            filename=str(data.get("filename") or ""),
            filesize=_optional_int(data.get("filesize")),
            time=_optional_int(data.get("time")),
            type=data.get("type", "photo"),
            folder_id=data.get("folder_id"),
            width=resolution.get("width"),
            height=resolution.get("height"),
        )


@dataclass
class RemoteAlbum:
    id: int
    name: str
    item_count: int = 0


@dataclass
class RemoteFolder:
    id: int
    name: str
    parent: int = 0


@dataclass
class StorageInfo:
    used: int = 0
    total: int = 0

    @property
    def percent_used(self) -> float:
        return self.used / self.total * 100 if self.total > 0 else 0.0


def _parse_rows(rows: Any, parse: Callable[[dict[str, Any]], T], context: str) -> list[T]:
    """Parse a response list; a malformed row fails the whole call as a RemoteApiError."""
    try:
        return [parse(row) for row in rows]
    except (KeyError, TypeError, ValueError, AttributeError) as e:
        raise RemoteApiError(f"{context}: malformed item in response ({e!r})") from e


def pick_photo_volume(volumes: list[dict[str, Any]]) -> Optional[dict[str, Any]]:
    """The volume holding the photo library: volume_1, else the first non-surveillance one."""
    for vol in volumes:
        if "volume_1" in (vol.get("name"), vol.get("volume")):
            return vol
    for vol in volumes:
        if "surveillance" not in (vol.get("vol_desc") or "").lower():
            return vol
    return volumes[0] if volumes else None


class SynologyPhotosClient:
    """Session-scoped client for one Synology Photos account."""

    def __init__(self, account: RemoteAccount, http: Optional[requests.Session] = None):
        self.account = account
        self.base_url = account.base_url
        self._http = http or requests.Session()
        self.sid: Optional[str] = None

    @property
    def account_name(self) -> str:
        return self.account.name

    # --- Lifecycle ---

    def __enter__(self) -> "SynologyPhotosClient":
        self.open()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def open(self) -> "SynologyPhotosClient":
        self.authenticate()
        return self

    def close(self) -> None:
        self.logout()
        self._http.close()

    def authenticate(self) -> str:
        """Log in and keep the session id."""
        logger.info("Authenticating with Synology NAS at %s as %s", self.account.host, self.account.username)
        try:
            resp = self._http.get(
                self.base_url + AUTH_PATH,
                params={
                    "api": "SYNO.API.Auth",
                    "version": 6,
                    "method": "login",
                    "account": self.account.username,
                    "passwd": self.account.password,
                    "session": "PhotoStation",
                    "format": "sid",
                },
                timeout=settings.request_timeout,
            )
            resp.raise_for_status()
            payload = resp.json()
        except (requests.RequestException, ValueError) as e:
            raise AuthenticationError(f"Synology authentication failed: {e}") from e

        sid = (payload.get("data") or {}).get("sid")
        if not payload.get("success") or not sid:
            code = (payload.get("error") or {}).get("code")
            raise AuthenticationError(f"Synology authentication failed: {payload.get('error')}", code=code)

        self.sid = sid
        logger.info("Synology authentication successful for %s", self.account_name)
        return sid

    def logout(self) -> None:
        if not self.sid:
            return
        try:
            self._http.get(
                self.base_url + AUTH_PATH,
                params={
                    "api": "SYNO.API.Auth",
                    "version": 6,
                    "method": "logout",
                    "session": "PhotoStation",
                    "_sid": self.sid,
                },
                timeout=settings.request_timeout,
            )
            logger.info("Synology logout successful for %s", self.account_name)
        except requests.RequestException as e:
            logger.warning("Synology logout error: %s", e)
        finally:
            self.sid = None

    # --- Transport ---

    def _require_session(self) -> str:
        if not self.sid:
            raise NotAuthenticatedError()
        return self.sid

    def _call(self, api: str, method: str, version: int = 1, timeout: Optional[float] = None, **params) -> dict:
        """GET an entry.cgi method and return its data payload.

        Raises RemoteApiError on transport failure or an unsuccessful envelope.
        """
        sid = self._require_session()
        query = {"api": api, "method": method, "version": version, "_sid": sid, **params}
        try:
            resp = self._http.get(
                self.base_url + ENTRY_PATH,
                params=query,
                timeout=timeout or settings.request_timeout,
            )
            resp.raise_for_status()
            payload = resp.json()
        except (requests.RequestException, ValueError) as e:
            raise RemoteApiError(f"{api}.{method} failed: {e}") from e

        if not payload.get("success"):
            error = payload.get("error") or {}
            raise RemoteApiError(f"{api}.{method} failed: {json.dumps(error)}", code=error.get("code"))
        return payload.get("data") or {}

    # --- Folders ---

    def list_folders(self, parent_id: int = 0) -> list[RemoteFolder]:
        data = self._call("SYNO.Foto.Browse.Folder", "list", id=parent_id, offset=0, limit=1000)
        return _parse_rows(
            data.get("list", []),
            lambda f: RemoteFolder(id=int(f["id"]), name=f.get("name", ""), parent=f.get("parent", 0)),
            "SYNO.Foto.Browse.Folder.list",
        )

    def create_folder(self, name: str, parent_id: int = 0) -> int:
        data = self._call("SYNO.Foto.Browse.Folder", "create", name=name, target_id=parent_id)
        folder = data.get("folder") or {}
        if "id" not in folder:
            raise RemoteApiError(f'Folder created but no id returned for "{name}"')
        return int(folder["id"])

    def list_folder_items(self, folder_id: int) -> list[RemoteItem]:
        """All items of one folder, following pagination."""
        items: list[RemoteItem] = []
        offset = 0
        while True:
            data = self._call(
                "SYNO.Foto.Browse.Item", "list",
                folder_id=folder_id, offset=offset, limit=PAGE_SIZE,
                additional=json.dumps(["resolution"]),
            )
            page = data.get("list", [])
            items.extend(_parse_rows(page, RemoteItem.from_api, "SYNO.Foto.Browse.Item.list"))
            if len(page) < PAGE_SIZE:
                return items
            offset += PAGE_SIZE

    def iter_space_items(self, space: str = "personal") -> Iterator[list[RemoteItem]]:
        """Yield pages of every item in the personal or shared space."""
        api = SPACE_APIS[space]
        offset = 0
        while True:
            data = self._call(
                api, "list", offset=offset, limit=PAGE_SIZE,
                additional=json.dumps(["resolution", "orientation"]),
            )
            page = _parse_rows(data.get("list", []), RemoteItem.from_api, f"{api}.list")
            if not page:
                return
            yield page
            if len(page) < PAGE_SIZE:
                return
            offset += PAGE_SIZE

    # --- Upload ---

    def upload(self, data: bytes, filename: str, folder: str) -> None:
        """Upload file bytes into a folder path, creating parents.

        Returns only when the remote store confirmed the upload.
        """
        sid = self._require_session()
        content_type = mimetypes.guess_type(filename)[0] or "application/octet-stream"
        try:
            resp = self._http.post(
                self.base_url + ENTRY_PATH,
                params={"api": "SYNO.FileStation.Upload", "version": 2, "method": "upload", "_sid": sid},
                data={"path": folder, "create_parents": "true", "overwrite": "false"},
                files={"file": (filename, data, content_type)},
                timeout=settings.upload_timeout,
            )
            resp.raise_for_status()
            payload = resp.json()
        except (requests.RequestException, ValueError) as e:
            raise RemoteApiError(f"Upload of {filename} failed: {e}") from e

        if not payload.get("success"):
            error = payload.get("error") or {}
            raise RemoteApiError(f"Upload of {filename} failed: {json.dumps(error)}", code=error.get("code"))
        logger.info("Uploaded %s to %s", filename, folder)

    # --- Albums ---

    def list_albums(self) -> list[RemoteAlbum]:
        albums: list[RemoteAlbum] = []
        offset = 0
        while True:
            data = self._call("SYNO.Foto.Browse.Album", "list", offset=offset, limit=ALBUM_PAGE_SIZE)
            page = data.get("list", [])
            albums.extend(_parse_rows(
                page,
                lambda a: RemoteAlbum(id=int(a["id"]), name=a.get("name", ""), item_count=a.get("item_count", 0)),
                "SYNO.Foto.Browse.Album.list",
            ))
            if len(page) < ALBUM_PAGE_SIZE:
                return albums
            offset += ALBUM_PAGE_SIZE

    def find_album_by_name(self, name: str) -> Optional[RemoteAlbum]:
        for album in self.list_albums():
            if album.name == name:
                return album
        return None

    def create_album(self, name: str) -> int:
        data = self._call("SYNO.Foto.Browse.NormalAlbum", "create", name=name)
        album = data.get("album") or {}
        if "id" not in album:
            raise RemoteApiError(f'Album created but no id returned for "{name}"')
        logger.info('Created album "%s" (id %s)', name, album["id"])
        return int(album["id"])

    def add_items_to_album(self, album_id: int, item_ids: list[int]) -> None:
        """Add one chunk of photo ids to an album. All or nothing."""
        if not item_ids:
            return
        self._call(
            "SYNO.Foto.Browse.NormalAlbum", "add_item",
            id=album_id, item=json.dumps(list(item_ids)),
        )
        logger.info("Added %d photos to album %s", len(item_ids), album_id)

    # --- Search ---

    def search_by_filename(self, filename: str) -> list[RemoteItem]:
        """Items whose name matches the keyword, up to SEARCH_MAX_RESULTS."""
        items: list[RemoteItem] = []
        offset = 0
        while offset < SEARCH_MAX_RESULTS:
            limit = min(PAGE_SIZE, SEARCH_MAX_RESULTS - offset)
            data = self._call(
                "SYNO.Foto.Search.Search", "list_item",
                keyword=filename, offset=offset, limit=limit,
            )
            page = data.get("list", [])
            items.extend(_parse_rows(page, RemoteItem.from_api, "SYNO.Foto.Search.Search.list_item"))
            if len(page) < limit:
                break
            offset += limit
        return items

    # --- Storage ---

    def get_storage_info(self) -> StorageInfo:
        """Used and total bytes of the volume holding the photo library."""
        data = self._call("SYNO.Core.System", "info", type="storage")
        volume = pick_photo_volume(data.get("vol_info") or [])
        if volume is None:
            logger.warning("Could not retrieve Synology storage info for %s", self.account_name)
            return StorageInfo()
        try:
            info = StorageInfo(used=int(volume.get("used_size") or 0), total=int(volume.get("total_size") or 0))
        except (TypeError, ValueError) as e:
            raise RemoteApiError(f"SYNO.Core.System.info: malformed volume info ({e!r})") from e
        logger.info(
            "Synology storage: %.2f GB / %.2f GB (%.1f%%)",
            info.used / 1024 ** 3, info.total / 1024 ** 3, info.percent_used,
        )
        return info
