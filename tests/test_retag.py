"""Tagging an export in place, without uploading."""

from PIL import Image

from takeout_sync.services.retag_service import retag_archive
from takeout_sync.utils.tagger import TagWriter


def make_export(root):
    album = root / "Takeout" / "Google Photos" / "Trip to Florida"
    album.mkdir(parents=True)
    Image.new("RGB", (8, 8), "red").save(album / "a.jpg", "JPEG")
    Image.new("RGB", (8, 8), "green").save(album / "b.jpg", "JPEG")
    (album / "clip.mp4").write_bytes(b"video")
    (album / "broken.jpg").write_bytes(b"\xff\xd8garbage")
    loose = root / "Takeout" / "Google Photos" / "Photos from 2019"
    loose.mkdir()
    Image.new("RGB", (8, 8), "blue").save(loose / "c.jpg", "JPEG")
    return album


def test_retag_tags_album_photos_only(tmp_path):
    album = make_export(tmp_path)

    result = retag_archive(tmp_path)

    assert (result.photos, result.albums) == (4, 1)
    assert (result.tagged, result.skipped, result.failed) == (2, 1, 1)
    assert TagWriter().read_tags(album / "a.jpg") == ["Trip to Florida"]
    loose = tmp_path / "Takeout" / "Google Photos" / "Photos from 2019" / "c.jpg"
    assert TagWriter().read_tags(loose) == []


def test_retag_limit(tmp_path):
    make_export(tmp_path)
    result = retag_archive(tmp_path, limit=1)
    assert result.photos == 1
    assert result.tagged == 1


def test_retag_dry_run_writes_nothing(tmp_path):
    album = make_export(tmp_path)
    before = (album / "a.jpg").read_bytes()

    result = retag_archive(tmp_path, dry_run=True)

    assert result.tagged == 3  # the dry run does not open files
    assert (album / "a.jpg").read_bytes() == before
