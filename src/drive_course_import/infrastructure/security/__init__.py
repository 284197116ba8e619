"""Security infrastructure package."""

from drive_course_import.infrastructure.security.keyring_store import (
    KeyringSecretStore,
    KeyringStoreError,
)

__all__ = ["KeyringSecretStore", "KeyringStoreError"]
