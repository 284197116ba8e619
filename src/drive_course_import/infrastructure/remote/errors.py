"""Exceptions raised by remote content provider adapters."""

from __future__ import annotations

RATE_LIMIT_REASONS = frozenset({"rateLimitExceeded", "userRateLimitExceeded"})
# 403 reasons scoped to one file; the credentials themselves are still valid.
FILE_FORBIDDEN_REASONS = frozenset(
    {
        "exportSizeLimitExceeded",
        "cannotDownloadFile",
        "cannotExportFile",
        "fileNotDownloadable",
        "insufficientFilePermissions",
    }
)


class RemoteProviderError(RuntimeError):
    """Base error for failed remote provider calls."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        reason: str | None = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.reason = reason


class RemoteAuthError(RemoteProviderError):
    """Raised when the provider rejects credentials (HTTP 401/403)."""


class RemoteRateLimitError(RemoteProviderError):
    """Raised on HTTP 429 or a provider rate-limit reason code."""


class RemoteServerError(RemoteProviderError):
    """Raised on retryable provider server-side errors (HTTP 5xx)."""


class RemoteRequestError(RemoteProviderError):
    """Raised when the provider rejects a request as a non-retryable client error."""


class RemoteResponseError(RemoteProviderError):
    """Raised when a provider payload cannot be parsed safely."""


class OperationTimeoutError(TimeoutError):
    """Raised when a labelled operation exceeds its deadline."""

    def __init__(self, label: str, timeout_ms: int) -> None:
        super().__init__(f"Operation {label!r} timed out after {timeout_ms} ms.")
        self.label = label
        self.timeout_ms = timeout_ms


class StreamTimeoutError(OperationTimeoutError):
    """Raised when a whole byte-streaming transfer exceeds its deadline."""
