"""Synchronizer exception types.

Convention:
- Table and row operations let ``AccessDeniedError`` and ``TransportError``
  propagate to the immediate caller.
- File batches catch every ``SyncError`` per file, log it, and report an
  overall failure once the whole batch has been attempted.
- Staleness is not an exception: it is handled by evicting the cached table
  resource and refreshing it.
"""

from __future__ import annotations


class SyncError(Exception):
    """Base class for all synchronizer errors."""


class AuthError(SyncError):
    """Raised when the access token cannot be verified.

    Fatal for the ``Synchronizer`` being constructed; a new instance with a
    fresh token is required.
    """


class AccessDeniedError(SyncError):
    """Raised when the server answers 403 Forbidden."""


class TransportError(SyncError):
    """Raised for network failures and non-success statuses other than 403."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class RowConflictError(TransportError):
    """Raised when the server rejects a row mutation with 409 Conflict.

    The row ETag sent by the client no longer matches the server's row.
    Resolving the conflict is up to the caller.
    """


class IntegrityMismatchError(SyncError):
    """Raised when a file's content hash disagrees with its manifest entry."""

    def __init__(self, relative_path: str, expected: str, actual: str | None) -> None:
        super().__init__(
            f"Content hash mismatch for {relative_path}: manifest has {expected}, "
            f"local file has {actual}"
        )
        self.relative_path = relative_path
        self.expected = expected
        self.actual = actual


class UnsafePathError(ValueError):
    """Raised when a relative path resolves outside the application folder."""
