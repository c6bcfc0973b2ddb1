"""Google Takeout archive scanner: media discovery, sidecar timestamps, album hints."""

import json
import logging
import os
import re
import zipfile
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Optional

from takeout_sync.errors import ArchiveNotFoundError
from takeout_sync.utils.hashing import compute_file_hash

logger = logging.getLogger(__name__)

IMAGE_TYPES = {
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
    ".gif": "image/gif",
    ".webp": "image/webp",
    ".heic": "image/heic",
    ".heif": "image/heif",
    ".bmp": "image/bmp",
    ".tiff": "image/tiff",
    ".tif": "image/tiff",
}

VIDEO_TYPES = {
    ".mp4": "video/mp4",
    ".mov": "video/quicktime",
    ".avi": "video/x-msvideo",
    ".mkv": "video/x-matroska",
    ".webm": "video/webm",
    ".m4v": "video/x-m4v",
    ".3gp": "video/3gpp",
    ".wmv": "video/x-ms-wmv",
}

ALL_TYPES = {**IMAGE_TYPES, **VIDEO_TYPES}

# Folder names Takeout generates on its own; never real albums
_AUTO_FOLDER_PATTERNS = [
    re.compile(r"^\d{4}$"),
    re.compile(r"^\d{4}-\d{2}$"),
    re.compile(r"^\d{4}-\d{2}-\d{2}$"),
    re.compile(r"^photos from \d{4}$", re.IGNORECASE),
]
_AUTO_FOLDER_NAMES = {"untitled", "archive", "trash", "bin", "failed videos", "google photos"}


@dataclass
class ArchiveItem:
    path: Path
    filename: str
    mime_type: str
    file_size: int
    creation_time: datetime  # UTC
    content_hash: str
    album_name: Optional[str] = None
    metadata: Optional[dict[str, Any]] = None

    @property
    def is_video(self) -> bool:
        return self.path.suffix.lower() in VIDEO_TYPES


@dataclass
class ScanResult:
    items: list[ArchiveItem] = field(default_factory=list)
    total_photos: int = 0
    total_videos: int = 0
    total_size: int = 0
    errors: list[str] = field(default_factory=list)

    @property
    def albums(self) -> dict[str, int]:
        counts: dict[str, int] = {}
        for item in self.items:
            if item.album_name:
                counts[item.album_name] = counts.get(item.album_name, 0) + 1
        return counts


def is_auto_folder(name: str) -> bool:
    """True for date-shaped and keyword folders that Takeout creates itself."""
    if name.strip().lower() in _AUTO_FOLDER_NAMES:
        return True
    return any(p.match(name.strip()) for p in _AUTO_FOLDER_PATTERNS)


def infer_album(file_path: Path, root: Path) -> Optional[str]:
    """Album label from the first folder under the archive root, if it is a real album."""
    parts = file_path.relative_to(root).parts
    if len(parts) < 2:
        return None
    folder = parts[0]
    if is_auto_folder(folder):
        return None
    return folder


def sidecar_candidates(file_path: Path) -> list[Path]:
    """Sidecar JSON names, newest export convention first."""
    return [
        file_path.with_name(f"{file_path.name}.supplemental-metadata.json"),
        file_path.with_name(f"{file_path.name}.json"),
        file_path.with_name(f"{file_path.stem}.json"),
    ]


def load_sidecar(file_path: Path) -> Optional[dict[str, Any]]:
    for candidate in sidecar_candidates(file_path):
        if not candidate.is_file():
            continue
        try:
            return json.loads(candidate.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.debug("Could not parse metadata at %s: %s", candidate, e)
    return None


def _timestamp(metadata: dict[str, Any], key: str) -> Optional[datetime]:
    raw = (metadata.get(key) or {}).get("timestamp")
    if raw in (None, ""):
        return None
    try:
        return datetime.fromtimestamp(int(raw), tz=timezone.utc)
    except (TypeError, ValueError, OverflowError, OSError):
        return None


def capture_time(file_path: Path, metadata: Optional[dict[str, Any]], stat: os.stat_result) -> datetime:
    """Original capture time: sidecar photoTakenTime, then creationTime, then the filesystem."""
    if metadata:
        for key in ("photoTakenTime", "creationTime"):
            ts = _timestamp(metadata, key)
            if ts is not None:
                return ts
    created = getattr(stat, "st_birthtime", None) or stat.st_mtime
    return datetime.fromtimestamp(created, tz=timezone.utc)


class ArchiveScanner:
    """Walks an extracted archive and describes each media file."""

    def __init__(self, root: Path | str):
        self.root = Path(root)

    def scan(self, on_item: Optional[Callable[[ArchiveItem], None]] = None) -> ScanResult:
        if not self.root.is_dir():
            raise ArchiveNotFoundError(f"Archive folder not found: {self.root}")

        logger.info("Scanning archive folder: %s", self.root)
        result = ScanResult()

        for dirpath, dirnames, filenames in os.walk(self.root):
            dirnames.sort()
            for name in sorted(filenames):
                path = Path(dirpath) / name
                ext = path.suffix.lower()
                if ext not in ALL_TYPES:
                    continue
                try:
                    item = self.describe(path)
                except OSError as e:
                    result.errors.append(f"Error processing {path}: {e}")
                    logger.warning("Error processing file %s: %s", path, e)
                    continue

                result.items.append(item)
                result.total_size += item.file_size
                if item.is_video:
                    result.total_videos += 1
                else:
                    result.total_photos += 1
                if on_item:
                    on_item(item)

        logger.info(
            "Archive scan complete: %d photos, %d videos, %.2f GB",
            result.total_photos, result.total_videos, result.total_size / 1024 ** 3,
        )
        return result

    def describe(self, path: Path) -> ArchiveItem:
        stat = path.stat()
        metadata = load_sidecar(path)
        return ArchiveItem(
            path=path,
            filename=path.name,
            mime_type=ALL_TYPES.get(path.suffix.lower(), "application/octet-stream"),
            file_size=stat.st_size,
            creation_time=capture_time(path, metadata, stat),
            content_hash=compute_file_hash(path),
            album_name=infer_album(path, self.root),
            metadata=metadata,
        )


def resolve_photos_root(path: Path | str) -> Path:
    """Locate the "Google Photos" folder inside an extracted Takeout export."""
    path = Path(path)
    for candidate in (path / "Takeout" / "Google Photos", path / "Google Photos"):
        if candidate.is_dir():
            return candidate
    return path


def extract_archive(zip_path: Path | str, dest: Path | str) -> Path:
    """Extract a Takeout zip and return the destination folder."""
    zip_path, dest = Path(zip_path), Path(dest)
    if not zip_path.is_file():
        raise ArchiveNotFoundError(f"Zip file not found: {zip_path}")
    logger.info("Extracting %s to %s", zip_path, dest)
    dest.mkdir(parents=True, exist_ok=True)
    with zipfile.ZipFile(zip_path) as zf:
        zf.extractall(dest)
    return dest
