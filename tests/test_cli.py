"""Command-line parsing and end-to-end commands against the test catalog."""

import json

import pytest
from PIL import Image
from sqlmodel import Session

from takeout_sync import cli, database
from takeout_sync.config import RemoteAccount, settings
from takeout_sync.database import init_db
from takeout_sync.errors import RemoteApiError
from takeout_sync.models.photo import ArchivePhoto, RemotePhoto
from takeout_sync.remote.synology import RemoteItem, StorageInfo


def test_batch_size_must_be_positive():
    parser = cli.build_parser()
    with pytest.raises(SystemExit):
        parser.parse_args(["fix-albums", "--batch-size", "0"])
    with pytest.raises(SystemExit):
        parser.parse_args(["fix-albums", "--batch-size", "abc"])
    args = parser.parse_args(["fix-albums", "--batch-size", "250"])
    assert args.batch_size == 250


def test_sync_defaults():
    args = cli.build_parser().parse_args(["sync"])
    assert args.tag_with_album is True
    assert args.organize_by_album is False
    assert args.dry_run is False
    assert cli.build_parser().parse_args(["sync", "--no-tag-with-album"]).tag_with_album is False


def test_inspect_modes_are_exclusive():
    with pytest.raises(SystemExit):
        cli.build_parser().parse_args(["inspect", "--new", "--matched"])


def test_import_then_status(tmp_path, capsys):
    album = tmp_path / "Takeout" / "Google Photos" / "Cli Trip"
    album.mkdir(parents=True)
    (album / "x.jpg").write_bytes(b"cli-test-bytes")

    assert cli.main(["import", str(tmp_path), "--account", "cli_account"]) == 0
    out = capsys.readouterr().out
    assert "New photos: 1" in out

    assert cli.main(["albums", "--account", "cli_account"]) == 0
    assert "Cli Trip: 1 photos" in capsys.readouterr().out

    assert cli.main(["status"]) == 0
    assert "Archive photos:" in capsys.readouterr().out


def test_missing_archive_exits_with_error(tmp_path):
    assert cli.main(["import", str(tmp_path / "nowhere")]) == 1


def test_unpaired_sync_exits_with_error():
    assert cli.main(["sync", "--account", "not_configured"]) == 1


def test_fix_albums_dry_run_without_backlog(capsys):
    assert cli.main(["fix-albums", "--account", "empty_account", "--dry-run"]) == 0
    assert "already in their albums" in capsys.readouterr().out


def seed(*photos):
    init_db()
    with Session(database.engine) as s:
        for photo in photos:
            s.add(photo)
        s.commit()


class RecordingFactory:
    """Stands in for the client class; hands out one fake client and remembers the accounts asked for."""

    def __init__(self, client):
        self.client = client
        self.accounts = []

    def __call__(self, account):
        self.accounts.append(account.name)
        return self.client


def test_fix_albums_checks_every_pairing_before_any_work(monkeypatch, fake_client):
    seed(ArchivePhoto(
        id="takeout-cli_paired-h1", account_name="cli_paired", filename="p.jpg", content_hash="cli-h1",
        source_path="/x/p.jpg", album_name="Trip", is_backed_up=True, can_be_removed=True, remote_photo_id=5,
    ))
    monkeypatch.setattr(settings, "pairings", {"cli_paired": "account1", "cli_unpaired": "nowhere"})
    factory = RecordingFactory(fake_client)
    monkeypatch.setattr(cli, "SynologyPhotosClient", factory)

    assert cli.main(["fix-albums"]) == 1
    assert factory.accounts == []
    assert fake_client.add_calls == []
    assert fake_client.created_albums == []


def test_sync_without_account_covers_every_account(tmp_path, monkeypatch, fake_client):
    photo = tmp_path / "s.jpg"
    photo.write_bytes(b"sync-bytes")
    seed(ArchivePhoto(
        id="takeout-cli_sync-h1", account_name="cli_sync", filename="s.jpg", content_hash="cli-sync-h1",
        source_path=str(photo),
    ))
    monkeypatch.setattr(settings, "pairings", {"cli_sync": "account1"})
    monkeypatch.setattr(cli, "SynologyPhotosClient", RecordingFactory(fake_client))

    assert cli.main(["sync"]) == 0
    assert fake_client.uploads == [("s.jpg", "/photo")]
    with Session(database.engine) as s:
        assert s.get(ArchivePhoto, "takeout-cli_sync-h1").is_backed_up is True


def test_sync_checks_every_pairing_before_any_upload(tmp_path, monkeypatch, fake_client):
    monkeypatch.setattr(settings, "pairings", {"cli_unpaired": "nowhere"})
    factory = RecordingFactory(fake_client)
    monkeypatch.setattr(cli, "SynologyPhotosClient", factory)

    assert cli.main(["sync"]) == 1
    assert factory.accounts == []


class ScanClient:
    def __init__(self, account, fail=False):
        self.account_name = account.name
        self.fail = fail

    def open(self):
        return self

    def close(self):
        pass

    def iter_space_items(self, space):
        if self.fail:
            raise RemoteApiError("list failed")
        item_id = 71 if space == "personal" else 72
        yield [RemoteItem(id=item_id, filename=f"{space}.jpg", time=1600000000)]


def test_scan_continues_after_an_account_fails(monkeypatch, capsys):
    monkeypatch.setattr(settings, "remote_accounts", [RemoteAccount(name="cli_second", username="second")])
    monkeypatch.setattr(cli, "SynologyPhotosClient", lambda account: ScanClient(account, fail=account.name == "account1"))

    assert cli.main(["scan"]) == 0

    assert "1 account(s) skipped: indexing failed" in capsys.readouterr().out
    with Session(database.engine) as s:
        assert s.get(RemotePhoto, "synology-cli_second-personal-71") is not None
        # The shared space is indexed by the first account that succeeds
        assert s.get(RemotePhoto, "synology-shared-72") is not None


def test_retag_command(tmp_path, capsys):
    album = tmp_path / "Google Photos" / "Cli Retag"
    album.mkdir(parents=True)
    Image.new("RGB", (8, 8), "red").save(album / "r.jpg", "JPEG")

    assert cli.main(["retag", str(tmp_path), "--dry-run"]) == 0
    assert "Tagged: 1" in capsys.readouterr().out


def test_duplicates_and_analyze(tmp_path, capsys):
    assert cli.main(["duplicates", "--removable", "--account", "cli_nobody"]) == 0
    assert "Found 0 photos" in capsys.readouterr().out

    report = tmp_path / "report.json"
    assert cli.main(["analyze", "-o", str(report)]) == 0
    assert "RECOMMENDATIONS" in capsys.readouterr().out
    assert "recommendations" in json.loads(report.read_text())


class StorageClient:
    def __init__(self, account):
        self.account_name = account.name

    def open(self):
        return self

    def close(self):
        pass

    def get_storage_info(self):
        return StorageInfo(used=512 * 1024 ** 3, total=2048 * 1024 ** 3)


def test_status_with_storage(monkeypatch, capsys):
    monkeypatch.setattr(cli, "SynologyPhotosClient", StorageClient)
    assert cli.main(["status", "--storage"]) == 0
    out = capsys.readouterr().out
    assert "25.0%" in out
    assert "512.00 GB / 2.00 TB" in out


@pytest.mark.parametrize("size, text", [(512, "512.00 B"), (2048, "2.00 KB"), (5 * 1024 ** 3, "5.00 GB")])
def test_format_bytes(size, text):
    assert cli.format_bytes(size) == text
