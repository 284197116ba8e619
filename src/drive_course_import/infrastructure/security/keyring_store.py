"""Keyring-backed secret storage adapter."""

from __future__ import annotations

import keyring
from keyring.errors import KeyringError, PasswordDeleteError

DEFAULT_SERVICE_NAME = "drive-course-import"


class KeyringStoreError(RuntimeError):
    """Raised when keyring backend operation fails."""


class KeyringSecretStore:
    """Store named credentials using OS keyring backend."""

    def __init__(self, service_name: str = DEFAULT_SERVICE_NAME) -> None:
        self._service_name = service_name

    def set_secret(self, name: str, value: str) -> None:
        """Persist a secret under ``name``."""
        normalized = value.strip()
        if not normalized:
            raise ValueError("secret value must not be empty")

        try:
            keyring.set_password(self._service_name, name, normalized)
        except KeyringError as exc:
            raise KeyringStoreError(f"Failed to persist secret {name}.") from exc

    def get_secret(self, name: str) -> str | None:
        """Load secret or return None."""
        try:
            secret = keyring.get_password(self._service_name, name)
        except KeyringError as exc:
            raise KeyringStoreError(f"Failed to read secret {name}.") from exc

        return secret if secret else None

    def delete_secret(self, name: str) -> None:
        """Delete secret; no-op if it is already absent."""
        try:
            keyring.delete_password(self._service_name, name)
        except PasswordDeleteError:
            return
        except KeyringError as exc:
            raise KeyringStoreError(f"Failed to delete secret {name}.") from exc
