"""Duplicate classification for scanned archive photos.

A photo matches a known one when either predicate holds:
  1. the content digests are equal, or
  2. the filenames are equal ignoring case AND the creation dates fall on the
     same UTC day (exports shift the time of day, rarely the day).
"""

import enum
from datetime import date, datetime
from typing import Iterable, Optional

from sqlmodel import Session

from takeout_sync.models.photo import utc_day
from takeout_sync.services.catalog import remote_identity_rows


class Classification(str, enum.Enum):
    DUPLICATE_IN_REMOTE = "duplicate_in_remote"
    DUPLICATE_IN_BATCH = "duplicate_in_batch"
    NEW = "new"


def name_day_key(filename: str, creation_time: Optional[datetime]) -> Optional[tuple[str, date]]:
    """Fallback identity key, or None when the creation time is unknown."""
    day = utc_day(creation_time)
    if day is None:
        return None
    return filename.lower(), day


class IdentityIndex:
    """Set of digests and (filename, day) keys seen so far."""

    def __init__(self) -> None:
        self._hashes: set[str] = set()
        self._name_days: set[tuple[str, date]] = set()

    def add(self, content_hash: Optional[str], filename: str, creation_time: Optional[datetime]) -> None:
        if content_hash:
            self._hashes.add(content_hash)
        key = name_day_key(filename, creation_time)
        if key is not None:
            self._name_days.add(key)

    def match(self, content_hash: Optional[str], filename: str, creation_time: Optional[datetime]) -> Optional[str]:
        """Return the predicate that matched ('hash' or 'filename+date'), or None."""
        if content_hash and content_hash in self._hashes:
            return "hash"
        key = name_day_key(filename, creation_time)
        if key is not None and key in self._name_days:
            return "filename+date"
        return None


class IdentityResolver:
    """Classifies photos of one scan against the remote index and the scan itself."""

    def __init__(self, remote_rows: Iterable[tuple[Optional[str], str, Optional[datetime]]]):
        self.remote = IdentityIndex()
        for content_hash, filename, creation_time in remote_rows:
            self.remote.add(content_hash, filename, creation_time)
        self.batch = IdentityIndex()

    @classmethod
    def from_catalog(cls, session: Session) -> "IdentityResolver":
        return cls(remote_identity_rows(session))

    def classify(
        self,
        content_hash: Optional[str],
        filename: str,
        creation_time: Optional[datetime],
    ) -> tuple[Classification, Optional[str]]:
        """Classify one photo; new photos join the batch index.

        Returns (classification, matched predicate).
        """
        matched = self.remote.match(content_hash, filename, creation_time)
        if matched:
            return Classification.DUPLICATE_IN_REMOTE, matched

        matched = self.batch.match(content_hash, filename, creation_time)
        if matched:
            return Classification.DUPLICATE_IN_BATCH, matched

        self.batch.add(content_hash, filename, creation_time)
        return Classification.NEW, None
