"""Environment-driven settings for one import process."""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Protocol

MIB = 1024 * 1024

DRIVE_ACCESS_TOKEN_ENV_VAR = "DRIVE_IMPORT_DRIVE_ACCESS_TOKEN"
STORAGE_SERVICE_KEY_ENV_VAR = "DRIVE_IMPORT_STORAGE_SERVICE_KEY"
SUPABASE_URL_ENV_VAR = "SUPABASE_URL"


class ImportConfigurationError(ValueError):
    """Raised when an environment value cannot be used."""


class SecretSource(Protocol):
    """Fallback lookup for credentials missing from the environment."""

    def get_secret(self, name: str) -> str | None:
        """Return secret or None."""
        ...


@dataclass(frozen=True)
class ImportSettings:
    """Tunables of the remote, storage and retry layers."""

    rate_limit_interval_ms: int = 200
    max_rate_limit_backoff_ms: int = 8000
    retry_attempts: int = 6
    retry_base_delay_ms: int = 300
    call_timeout_ms: int = 60_000
    max_doc_export_bytes: int = 25 * MIB
    tus_threshold_bytes: int = 50 * MIB
    tus_chunk_bytes: int = 6 * MIB
    download_request_timeout_ms: int = 60_000
    stream_timeout_ms: int = 600_000
    storage_bucket: str = "course-materials"
    supabase_url: str | None = None


_INT_SETTINGS = {
    "rate_limit_interval_ms": "DRIVE_IMPORT_RATE_LIMIT_INTERVAL_MS",
    "max_rate_limit_backoff_ms": "DRIVE_IMPORT_MAX_RATE_LIMIT_BACKOFF_MS",
    "retry_attempts": "DRIVE_IMPORT_RETRY_ATTEMPTS",
    "retry_base_delay_ms": "DRIVE_IMPORT_RETRY_BASE_DELAY_MS",
    "call_timeout_ms": "DRIVE_IMPORT_CALL_TIMEOUT_MS",
    "max_doc_export_bytes": "DRIVE_IMPORT_MAX_DOC_EXPORT_BYTES",
    "tus_threshold_bytes": "DRIVE_IMPORT_TUS_THRESHOLD_BYTES",
    "tus_chunk_bytes": "DRIVE_IMPORT_TUS_CHUNK_BYTES",
    "download_request_timeout_ms": "DRIVE_IMPORT_DOWNLOAD_REQUEST_TIMEOUT_MS",
    "stream_timeout_ms": "DRIVE_IMPORT_STREAM_TIMEOUT_MS",
}
STORAGE_BUCKET_ENV_VAR = "DRIVE_IMPORT_STORAGE_BUCKET"


def load_import_settings(environ: Mapping[str, str] | None = None) -> ImportSettings:
    """Build settings from environment values; blank values keep the default."""
    env = os.environ if environ is None else environ
    defaults = ImportSettings()
    values: dict[str, object] = {}

    for field_name, env_var in _INT_SETTINGS.items():
        raw = env.get(env_var, "").strip()
        if raw:
            values[field_name] = _parse_positive_int(env_var, raw)

    bucket = env.get(STORAGE_BUCKET_ENV_VAR, "").strip()
    values["storage_bucket"] = bucket or defaults.storage_bucket

    supabase_url = env.get(SUPABASE_URL_ENV_VAR, "").strip()
    values["supabase_url"] = supabase_url.rstrip("/") or None

    return ImportSettings(**values)  # type: ignore[arg-type]


def resolve_secret(
    env_var: str,
    *,
    environ: Mapping[str, str] | None = None,
    fallback: SecretSource | None = None,
) -> str | None:
    """Return a secret from the environment, then from ``fallback``."""
    env = os.environ if environ is None else environ
    value = env.get(env_var, "").strip()
    if value:
        return value
    if fallback is None:
        return None
    return fallback.get_secret(env_var)


def _parse_positive_int(env_var: str, raw: str) -> int:
    try:
        value = int(raw)
    except ValueError as exc:
        raise ImportConfigurationError(f"{env_var} must be an integer, got {raw!r}.") from exc
    if value <= 0:
        raise ImportConfigurationError(f"{env_var} must be positive, got {value}.")
    return value
