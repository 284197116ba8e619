"""Remote content provider infrastructure package."""

from drive_course_import.infrastructure.remote.drive_client import GoogleDriveClient
from drive_course_import.infrastructure.remote.errors import (
    OperationTimeoutError,
    RemoteAuthError,
    RemoteProviderError,
    RemoteRateLimitError,
    RemoteRequestError,
    RemoteResponseError,
    RemoteServerError,
    StreamTimeoutError,
)
from drive_course_import.infrastructure.remote.retry import (
    RateLimiter,
    RetryExecutor,
    RetryPolicy,
)

__all__ = [
    "GoogleDriveClient",
    "OperationTimeoutError",
    "RateLimiter",
    "RemoteAuthError",
    "RemoteProviderError",
    "RemoteRateLimitError",
    "RemoteRequestError",
    "RemoteResponseError",
    "RemoteServerError",
    "RetryExecutor",
    "RetryPolicy",
    "StreamTimeoutError",
]
