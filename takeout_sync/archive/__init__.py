"""Archive export discovery."""

from takeout_sync.archive.scanner import ArchiveItem, ArchiveScanner, ScanResult

__all__ = ["ArchiveItem", "ArchiveScanner", "ScanResult"]
