"""Album labels in embedded EXIF metadata (Windows XP keyword/subject + description)."""

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from PIL import Image

logger = logging.getLogger(__name__)

TAG_IMAGE_DESCRIPTION = 0x010E
TAG_XP_SUBJECT = 0x9C9F
TAG_XP_KEYWORDS = 0x9C9E

SUPPORTED_FORMATS = {".jpg", ".jpeg", ".png", ".tif", ".tiff", ".webp"}

UNSUPPORTED_PREFIX = "Unsupported format for tagging"


@dataclass
class TagWriteResult:
    success: bool
    file_path: Path
    album_name: str
    error: Optional[str] = None

    @property
    def unsupported(self) -> bool:
        return bool(self.error and self.error.startswith(UNSUPPORTED_PREFIX))


def _xp_encode(text: str) -> bytes:
    return (text + "\x00").encode("utf-16-le")


def _xp_decode(value) -> str:
    if isinstance(value, str):
        return value
    try:
        return bytes(value).decode("utf-16-le").rstrip("\x00")
    except (TypeError, ValueError):
        return ""


class TagWriter:
    """Writes an album label into a photo's embedded keywords. Best effort."""

    def __init__(self, dry_run: bool = False):
        self.dry_run = dry_run

    def write_album_tag(self, file_path: Path | str, album_name: str) -> TagWriteResult:
        file_path = Path(file_path)
        result = TagWriteResult(success=False, file_path=file_path, album_name=album_name)

        if not file_path.exists():
            result.error = "File not found"
            return result
        if not album_name:
            result.error = "No album name provided"
            return result
        ext = file_path.suffix.lower()
        if ext not in SUPPORTED_FORMATS:
            result.error = f"{UNSUPPORTED_PREFIX}: {ext}"
            return result

        if self.dry_run:
            logger.info("[DRY RUN] Would write tag %r to %s", album_name, file_path)
            result.success = True
            return result

        tmp_path = file_path.with_name(file_path.name + ".tagging")
        try:
            with Image.open(file_path) as img:
                exif = img.getexif()
                keywords = [k for k in _xp_decode(exif.get(TAG_XP_KEYWORDS, b"")).split(";") if k]
                if album_name not in keywords:
                    keywords.append(album_name)
                exif[TAG_XP_KEYWORDS] = _xp_encode(";".join(keywords))
                exif[TAG_XP_SUBJECT] = _xp_encode(album_name)
                exif[TAG_IMAGE_DESCRIPTION] = f"Album: {album_name}"

                save_kwargs = {"exif": exif}
                if img.info.get("icc_profile"):
                    save_kwargs["icc_profile"] = img.info["icc_profile"]
                if img.format == "JPEG":
                    save_kwargs["quality"] = "keep"
                img.save(tmp_path, format=img.format, **save_kwargs)
            os.replace(tmp_path, file_path)
            logger.debug("Tagged %s with album: %s", file_path.name, album_name)
            result.success = True
        except (OSError, ValueError, KeyError, Image.DecompressionBombError) as e:
            result.error = f"Failed to write tag: {e}"
            logger.warning("Failed to write tag to %s: %s", file_path, e)
            tmp_path.unlink(missing_ok=True)

        return result

    def read_tags(self, file_path: Path | str) -> list[str]:
        """Keywords stored in the file, without duplicates."""
        try:
            with Image.open(file_path) as img:
                exif = img.getexif()
        except (OSError, Image.DecompressionBombError) as e:
            logger.warning("Failed to read tags from %s: %s", file_path, e)
            return []

        tags: list[str] = []
        for tag in (TAG_XP_KEYWORDS, TAG_XP_SUBJECT):
            for keyword in _xp_decode(exif.get(tag, b"")).split(";"):
                if keyword and keyword not in tags:
                    tags.append(keyword)
        return tags
