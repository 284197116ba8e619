"""Object storage infrastructure package."""

from drive_course_import.infrastructure.storage.errors import (
    BucketAlreadyExistsError,
    StorageError,
    TusUploadError,
)
from drive_course_import.infrastructure.storage.supabase_storage import SupabaseStorageClient
from drive_course_import.infrastructure.storage.transfer import (
    StorageTarget,
    StoredObject,
    StreamTransferManager,
    TransferSettings,
)
from drive_course_import.infrastructure.storage.tus import TusUploader

__all__ = [
    "BucketAlreadyExistsError",
    "StorageError",
    "StorageTarget",
    "StoredObject",
    "StreamTransferManager",
    "SupabaseStorageClient",
    "TransferSettings",
    "TusUploadError",
    "TusUploader",
]
