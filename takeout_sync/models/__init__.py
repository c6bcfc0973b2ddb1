"""Takeout Sync catalog models."""

from takeout_sync.models.photo import ArchivePhoto, PhotoBase, RemotePhoto
from takeout_sync.models.album import Album, AlbumItem

__all__ = [
    "PhotoBase",
    "ArchivePhoto",
    "RemotePhoto",
    "Album",
    "AlbumItem",
]
