"""Duplicate classification against the remote index and the current scan."""

from datetime import datetime, timezone

from takeout_sync.services.catalog import upsert_remote_photo
from takeout_sync.services.identity import Classification, IdentityResolver, name_day_key


def utc(*args):
    return datetime(*args, tzinfo=timezone.utc)


def test_content_digest_match_is_remote_duplicate():
    resolver = IdentityResolver([("abc123", "other-name.jpg", utc(2019, 1, 1))])
    result, matched = resolver.classify("abc123", "IMG_0001.jpg", utc(2021, 5, 5))
    assert result is Classification.DUPLICATE_IN_REMOTE
    assert matched == "hash"


def test_filename_and_day_match_despite_different_digest():
    resolver = IdentityResolver([("remote-fingerprint", "IMG_0001.JPG", utc(2021, 5, 5, 23, 59))])
    result, matched = resolver.classify("local-digest", "img_0001.jpg", utc(2021, 5, 5, 0, 1))
    assert result is Classification.DUPLICATE_IN_REMOTE
    assert matched == "filename+date"


def test_same_filename_on_another_day_is_new():
    resolver = IdentityResolver([(None, "IMG_0001.jpg", utc(2021, 5, 5))])
    result, _ = resolver.classify("digest", "IMG_0001.jpg", utc(2021, 5, 6))
    assert result is Classification.NEW


def test_unknown_creation_time_only_matches_by_digest():
    resolver = IdentityResolver([(None, "IMG_0001.jpg", None)])
    result, _ = resolver.classify("digest", "IMG_0001.jpg", None)
    assert result is Classification.NEW
    assert name_day_key("IMG_0001.jpg", None) is None


def test_repeat_within_scan_is_batch_duplicate():
    resolver = IdentityResolver([])
    first, _ = resolver.classify("same", "a.jpg", utc(2020, 1, 1))
    second, matched = resolver.classify("same", "b.jpg", utc(2020, 2, 2))
    assert first is Classification.NEW
    assert second is Classification.DUPLICATE_IN_BATCH
    assert matched == "hash"


def test_remote_check_runs_before_batch_check():
    resolver = IdentityResolver([("on-remote", "x.jpg", None)])
    resolver.classify("on-remote", "x.jpg", utc(2020, 1, 1))
    result, _ = resolver.classify("on-remote", "x.jpg", utc(2020, 1, 1))
    assert result is Classification.DUPLICATE_IN_REMOTE


def test_remote_duplicates_do_not_join_batch_index():
    resolver = IdentityResolver([("on-remote", "x.jpg", None)])
    resolver.classify("on-remote", "x.jpg", utc(2020, 1, 1))
    assert resolver.batch.match("on-remote", "x.jpg", utc(2020, 1, 1)) is None


def test_resolver_reads_remote_rows_from_catalog(session, make_remote_photo):
    upsert_remote_photo(make_remote_photo(7, "Beach.jpg", utc(2018, 8, 1, 10)), session)
    resolver = IdentityResolver.from_catalog(session)
    result, matched = resolver.classify("whatever", "beach.jpg", utc(2018, 8, 1, 18))
    assert result is Classification.DUPLICATE_IN_REMOTE
    assert matched == "filename+date"
