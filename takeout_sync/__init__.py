"""Takeout Sync - back up Google Takeout archives to Synology Photos."""

__version__ = "0.1.0"
