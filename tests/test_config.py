"""Unit tests for environment-driven import settings."""

from __future__ import annotations

import pytest

from drive_course_import.infrastructure.config import (
    DRIVE_ACCESS_TOKEN_ENV_VAR,
    ImportConfigurationError,
    ImportSettings,
    load_import_settings,
    resolve_secret,
)


class _StaticSecrets:
    def __init__(self, values: dict[str, str]) -> None:
        self._values = values

    def get_secret(self, name: str) -> str | None:
        return self._values.get(name)


def test_defaults_apply_when_environment_is_empty() -> None:
    settings = load_import_settings({})

    assert settings == ImportSettings()
    assert settings.rate_limit_interval_ms == 200
    assert settings.retry_attempts == 6
    assert settings.max_doc_export_bytes == 25 * 1024 * 1024
    assert settings.tus_threshold_bytes == 50 * 1024 * 1024
    assert settings.storage_bucket == "course-materials"
    assert settings.supabase_url is None


def test_environment_overrides_defaults() -> None:
    settings = load_import_settings(
        {
            "DRIVE_IMPORT_RATE_LIMIT_INTERVAL_MS": "50",
            "DRIVE_IMPORT_RETRY_ATTEMPTS": " 2 ",
            "DRIVE_IMPORT_STREAM_TIMEOUT_MS": "1000",
            "DRIVE_IMPORT_STORAGE_BUCKET": "materials",
            "SUPABASE_URL": "https://project.supabase.co/",
            "DRIVE_IMPORT_CALL_TIMEOUT_MS": "",
        }
    )

    assert settings.rate_limit_interval_ms == 50
    assert settings.retry_attempts == 2
    assert settings.stream_timeout_ms == 1000
    assert settings.storage_bucket == "materials"
    assert settings.supabase_url == "https://project.supabase.co"
    assert settings.call_timeout_ms == 60_000


@pytest.mark.parametrize("raw", ["abc", "0", "-5"])
def test_invalid_numbers_are_rejected(raw: str) -> None:
    with pytest.raises(ImportConfigurationError, match="DRIVE_IMPORT_TUS_CHUNK_BYTES"):
        load_import_settings({"DRIVE_IMPORT_TUS_CHUNK_BYTES": raw})


def test_resolve_secret_prefers_environment_then_fallback() -> None:
    fallback = _StaticSecrets({DRIVE_ACCESS_TOKEN_ENV_VAR: "from-keyring"})

    assert (
        resolve_secret(
            DRIVE_ACCESS_TOKEN_ENV_VAR,
            environ={DRIVE_ACCESS_TOKEN_ENV_VAR: " from-env "},
            fallback=fallback,
        )
        == "from-env"
    )
    assert resolve_secret(DRIVE_ACCESS_TOKEN_ENV_VAR, environ={}, fallback=fallback) == (
        "from-keyring"
    )
    assert resolve_secret(DRIVE_ACCESS_TOKEN_ENV_VAR, environ={}) is None
