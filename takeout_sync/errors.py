"""Exception types shared across the sync pipeline."""

from typing import Optional


class TakeoutSyncError(Exception):
    """Base class for expected, reportable failures."""


class ConfigurationError(TakeoutSyncError):
    """Configuration makes the requested work impossible; raised before any work starts."""


class ArchiveNotFoundError(TakeoutSyncError):
    """The archive export path (folder or zip) does not exist."""


class RemoteApiError(TakeoutSyncError):
    """A remote call failed: API envelope reported failure, or the transport broke."""

    def __init__(self, message: str, code: Optional[int] = None):
        super().__init__(message)
        self.code = code


class AuthenticationError(RemoteApiError):
    """Login was rejected. Fatal for the account it belongs to."""


class NotAuthenticatedError(RuntimeError):
    """A remote operation was called without an open session.

    This is a programming error, never a retryable condition.
    """

    def __init__(self, message: str = "Not authenticated. Call open() first."):
        super().__init__(message)
