"""Exceptions for object storage adapters."""

from __future__ import annotations


class StorageError(RuntimeError):
    """Base error for failed object storage calls."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class BucketAlreadyExistsError(StorageError):
    """Raised when bucket creation conflicts with an existing bucket."""


class TusUploadError(StorageError):
    """Raised when a resumable upload cannot be created or continued."""
