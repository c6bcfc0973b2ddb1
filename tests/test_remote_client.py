"""Synology Photos client against a scripted HTTP session."""

import json

import pytest
import requests

from takeout_sync.config import RemoteAccount
from takeout_sync.errors import AuthenticationError, NotAuthenticatedError, RemoteApiError
from takeout_sync.remote.synology import SEARCH_MAX_RESULTS, SynologyPhotosClient
from takeout_sync.services.catalog import upsert_archive_photo
from takeout_sync.services.reconciler import AlbumReconciler
from takeout_sync.utils.pacing import FixedDelay


class FakeResponse:
    def __init__(self, payload, status_code=200):
        self._payload = payload
        self.status_code = status_code

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error")

    def json(self):
        return self._payload


class FakeHTTP:
    """Routes (api, method) to a handler returning a payload."""

    def __init__(self):
        self.calls = []
        self.handlers = {
            ("SYNO.API.Auth", "login"): lambda p: {"success": True, "data": {"sid": "SID123"}},
            ("SYNO.API.Auth", "logout"): lambda p: {"success": True},
        }
        self.closed = False

    def _dispatch(self, url, params, **kwargs):
        self.calls.append({"url": url, "params": dict(params), **kwargs})
        handler = self.handlers.get((params["api"], params["method"]))
        if handler is None:
            return FakeResponse({"success": False, "error": {"code": 103}})
        result = handler(params)
        if isinstance(result, Exception):
            raise result
        return FakeResponse(result)

    def get(self, url, params=None, **kwargs):
        return self._dispatch(url, params, **kwargs)

    def post(self, url, params=None, **kwargs):
        return self._dispatch(url, params, **kwargs)

    def close(self):
        self.closed = True

    def calls_to(self, api, method):
        return [c for c in self.calls if c["params"]["api"] == api and c["params"]["method"] == method]


@pytest.fixture
def account():
    return RemoteAccount(name="account1", host="nas.local", port=5001, username="me", password="pw", use_ssl=True)


@pytest.fixture
def http():
    return FakeHTTP()


@pytest.fixture
def client(account, http):
    with SynologyPhotosClient(account, http=http) as c:
        yield c


def test_operations_require_open_session(account, http):
    c = SynologyPhotosClient(account, http=http)
    with pytest.raises(NotAuthenticatedError):
        c.list_albums()
    with pytest.raises(NotAuthenticatedError):
        c.upload(b"x", "a.jpg", "/photo")
    assert http.calls == []


def test_lifecycle_logs_in_and_out(account, http):
    with SynologyPhotosClient(account, http=http) as c:
        assert c.sid == "SID123"
    login = http.calls_to("SYNO.API.Auth", "login")[0]
    assert login["url"] == "https://nas.local:5001/webapi/auth.cgi"
    assert login["params"]["account"] == "me"
    assert http.calls_to("SYNO.API.Auth", "logout")[0]["params"]["_sid"] == "SID123"
    assert c.sid is None
    assert http.closed


def test_rejected_login(account, http):
    http.handlers[("SYNO.API.Auth", "login")] = lambda p: {"success": False, "error": {"code": 400}}
    with pytest.raises(AuthenticationError) as exc:
        SynologyPhotosClient(account, http=http).open()
    assert exc.value.code == 400


def test_login_transport_failure(account, http):
    http.handlers[("SYNO.API.Auth", "login")] = lambda p: requests.ConnectionError("refused")
    with pytest.raises(AuthenticationError):
        SynologyPhotosClient(account, http=http).open()


def test_envelope_failure_carries_code(client, http):
    http.handlers[("SYNO.Foto.Browse.NormalAlbum", "create")] = (
        lambda p: {"success": False, "error": {"code": 641}}
    )
    with pytest.raises(RemoteApiError) as exc:
        client.create_album("Trip")
    assert exc.value.code == 641


def test_transport_failure_is_wrapped(client, http):
    http.handlers[("SYNO.Foto.Browse.Album", "list")] = lambda p: requests.Timeout("slow")
    with pytest.raises(RemoteApiError):
        client.list_albums()


def test_list_albums_paginates_and_finds_by_name(client, http):
    pages = {0: [{"id": i, "name": f"A{i}"} for i in range(500)], 500: [{"id": 900, "name": "Trip"}]}
    http.handlers[("SYNO.Foto.Browse.Album", "list")] = (
        lambda p: {"success": True, "data": {"list": pages.get(p["offset"], [])}}
    )
    albums = client.list_albums()
    assert len(albums) == 501
    assert client.find_album_by_name("Trip").id == 900
    assert client.find_album_by_name("Missing") is None


def test_create_album_returns_id(client, http):
    http.handlers[("SYNO.Foto.Browse.NormalAlbum", "create")] = (
        lambda p: {"success": True, "data": {"album": {"id": 33, "name": p["name"]}}}
    )
    assert client.create_album("Trip") == 33


def test_add_items_sends_one_json_chunk(client, http):
    http.handlers[("SYNO.Foto.Browse.NormalAlbum", "add_item")] = lambda p: {"success": True}
    client.add_items_to_album(33, [1, 2, 3])
    client.add_items_to_album(33, [])
    calls = http.calls_to("SYNO.Foto.Browse.NormalAlbum", "add_item")
    assert len(calls) == 1
    assert calls[0]["params"]["id"] == 33
    assert json.loads(calls[0]["params"]["item"]) == [1, 2, 3]
    assert calls[0]["params"]["_sid"] == "SID123"


def test_search_is_capped(client, http):
    def search(p):
        return {"success": True, "data": {"list": [
            {"id": p["offset"] + i, "filename": "IMG.jpg", "time": 1600000000} for i in range(p["limit"])
        ]}}
    http.handlers[("SYNO.Foto.Search.Search", "list_item")] = search

    items = client.search_by_filename("IMG.jpg")

    assert len(items) == SEARCH_MAX_RESULTS
    assert all(c["params"]["keyword"] == "IMG.jpg" for c in http.calls_to("SYNO.Foto.Search.Search", "list_item"))
    assert items[0].creation_time.year == 2020


def test_search_stops_on_short_page(client, http):
    http.handlers[("SYNO.Foto.Search.Search", "list_item")] = (
        lambda p: {"success": True, "data": {"list": [{"id": 1, "filename": "a.jpg"}]}}
    )
    assert [i.id for i in client.search_by_filename("a.jpg")] == [1]
    assert len(http.calls_to("SYNO.Foto.Search.Search", "list_item")) == 1


def test_upload_posts_multipart(client, http):
    http.handlers[("SYNO.FileStation.Upload", "upload")] = lambda p: {"success": True}
    client.upload(b"bytes", "a.jpg", "/photo/Trip")
    call = http.calls_to("SYNO.FileStation.Upload", "upload")[0]
    assert call["data"]["path"] == "/photo/Trip"
    assert call["data"]["overwrite"] == "false"
    assert call["files"]["file"][0] == "a.jpg"
    assert call["files"]["file"][1] == b"bytes"


def test_upload_failure(client, http):
    http.handlers[("SYNO.FileStation.Upload", "upload")] = (
        lambda p: {"success": False, "error": {"code": 1805}}
    )
    with pytest.raises(RemoteApiError) as exc:
        client.upload(b"bytes", "a.jpg", "/photo")
    assert exc.value.code == 1805


def test_iter_space_items_uses_space_api(client, http):
    pages = {0: [{"id": i, "filename": f"{i}.jpg", "additional": {"resolution": {"width": 4, "height": 3}}}
                 for i in range(100)],
             100: [{"id": 100, "filename": "100.jpg"}]}
    http.handlers[("SYNO.FotoTeam.Browse.Item", "list")] = (
        lambda p: {"success": True, "data": {"list": pages.get(p["offset"], [])}}
    )
    batches = list(client.iter_space_items("shared"))
    assert [len(b) for b in batches] == [100, 1]
    assert batches[0][0].width == 4


def test_list_folders_and_create_folder(client, http):
    http.handlers[("SYNO.Foto.Browse.Folder", "list")] = (
        lambda p: {"success": True, "data": {"list": [{"id": 2, "name": "/Trip", "parent": 1}]}}
    )
    http.handlers[("SYNO.Foto.Browse.Folder", "create")] = (
        lambda p: {"success": True, "data": {"folder": {"id": 5}}}
    )
    assert client.list_folders(1)[0].name == "/Trip"
    assert client.create_folder("New", 1) == 5


def test_list_folder_items(client, http):
    http.handlers[("SYNO.Foto.Browse.Item", "list")] = (
        lambda p: {"success": True, "data": {"list": [{"id": 9, "filename": "x.jpg", "folder_id": p["folder_id"]}]}}
    )
    items = client.list_folder_items(2)
    assert items[0].folder_id == 2


@pytest.mark.parametrize("row", [
    {"filename": "a.jpg"},
    {"id": "not-a-number", "filename": "a.jpg"},
    {"id": 1, "filename": "a.jpg", "time": "yesterday"},
    "a.jpg",
])
def test_malformed_search_hit_is_an_api_error(client, http, row):
    http.handlers[("SYNO.Foto.Search.Search", "list_item")] = (
        lambda p: {"success": True, "data": {"list": [row]}}
    )
    with pytest.raises(RemoteApiError):
        client.search_by_filename("a.jpg")


def test_malformed_album_row_is_an_api_error(client, http):
    http.handlers[("SYNO.Foto.Browse.Album", "list")] = (
        lambda p: {"success": True, "data": {"list": [{"name": "Trip"}]}}
    )
    with pytest.raises(RemoteApiError):
        client.find_album_by_name("Trip")


def test_storage_info_prefers_volume_1(client, http):
    http.handlers[("SYNO.Core.System", "info")] = lambda p: {"success": True, "data": {"vol_info": [
        {"name": "volume_2", "vol_desc": "Surveillance", "used_size": "10", "total_size": "100"},
        {"name": "volume_1", "vol_desc": "", "used_size": "250", "total_size": "1000"},
    ]}}

    info = client.get_storage_info()

    assert (info.used, info.total) == (250, 1000)
    assert info.percent_used == 25.0
    assert http.calls_to("SYNO.Core.System", "info")[0]["params"]["type"] == "storage"


def test_storage_info_skips_surveillance_volume(client, http):
    http.handlers[("SYNO.Core.System", "info")] = lambda p: {"success": True, "data": {"vol_info": [
        {"name": "volume_3", "vol_desc": "Surveillance", "used_size": 1, "total_size": 2},
        {"name": "volume_4", "vol_desc": "Data", "used_size": 5, "total_size": 10},
    ]}}
    assert client.get_storage_info().total == 10


def test_storage_info_without_volumes(client, http):
    http.handlers[("SYNO.Core.System", "info")] = lambda p: {"success": True, "data": {}}
    info = client.get_storage_info()
    assert info.total == 0
    assert info.percent_used == 0.0


def test_malformed_search_hit_counts_as_one_lookup_error(client, http, session, make_archive_photo):
    for name in ("bad.jpg", "good.jpg"):
        photo = make_archive_photo(name, filename=name, album_name="Trip")
        upsert_archive_photo(photo, session, satisfied=True)
    rows = {"bad.jpg": [{"filename": "bad.jpg"}], "good.jpg": [{"id": 7, "filename": "good.jpg"}]}
    http.handlers[("SYNO.Foto.Search.Search", "list_item")] = (
        lambda p: {"success": True, "data": {"list": rows[p["keyword"]]}}
    )
    http.handlers[("SYNO.Foto.Browse.Album", "list")] = lambda p: {"success": True, "data": {"list": []}}
    http.handlers[("SYNO.Foto.Browse.NormalAlbum", "create")] = (
        lambda p: {"success": True, "data": {"album": {"id": 3}}}
    )
    http.handlers[("SYNO.Foto.Browse.NormalAlbum", "add_item")] = lambda p: {"success": True, "data": {}}

    result = AlbumReconciler(
        session, client=client, lookup_pacer=FixedDelay(0), chunk_pacer=FixedDelay(0)
    ).run("account1", concurrency=2)

    assert result.errors == 1
    assert result.photo_ids_found == 1
    assert result.added_to_albums == 1
