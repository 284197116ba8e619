"""Download remote files to disk under a deadline and store them in object storage."""

from __future__ import annotations

import logging
import mimetypes
import tempfile
import threading
from dataclasses import dataclass
from pathlib import Path

from drive_course_import.application.naming import slugify
from drive_course_import.application.remote_content import (
    ByteStream,
    ObjectStorage,
    RemoteContentProvider,
)
from drive_course_import.infrastructure.remote.errors import StreamTimeoutError
from drive_course_import.infrastructure.remote.retry import RetryExecutor
from drive_course_import.infrastructure.storage.errors import BucketAlreadyExistsError

LOGGER = logging.getLogger(__name__)

DEFAULT_TUS_THRESHOLD_BYTES = 50 * 1024 * 1024
_KNOWN_EXTENSIONS = {
    "application/pdf": "pdf",
    "text/plain": "txt",
    "text/csv": "csv",
    "video/mp4": "mp4",
}


@dataclass(frozen=True)
class TransferSettings:
    """Deadlines, protocol threshold and destination bucket of transfers."""

    bucket: str = "course-materials"
    tus_threshold_bytes: int = DEFAULT_TUS_THRESHOLD_BYTES
    download_request_timeout_ms: int = 60_000
    stream_timeout_ms: int = 600_000


@dataclass(frozen=True)
class StorageTarget:
    """Course location used to address the stored object."""

    course_id: str
    module_name: str
    subject_name: str


@dataclass(frozen=True)
class StoredObject:
    """Result of one download-then-store transfer."""

    storage_path: str
    public_url: str
    content_type: str
    size_bytes: int
    resumable: bool


def build_object_path(target: StorageTarget, remote_file_id: str, extension: str) -> str:
    """Deterministic ``course/module/subject/file.ext`` object path."""
    return "/".join(
        (
            target.course_id,
            slugify(target.module_name),
            slugify(target.subject_name),
            f"{remote_file_id}.{extension}",
        )
    )


def extension_for(content_type: str) -> str:
    known = _KNOWN_EXTENSIONS.get(content_type)
    if known:
        return known
    guessed = mimetypes.guess_extension(content_type)
    return guessed.lstrip(".") if guessed else "bin"


class StreamTransferManager:
    """Stream remote files through a temporary directory into object storage."""

    def __init__(
        self,
        *,
        provider: RemoteContentProvider,
        storage: ObjectStorage,
        retry_executor: RetryExecutor,
        settings: TransferSettings | None = None,
    ) -> None:
        self._provider = provider
        self._storage = storage
        self._retry_executor = retry_executor
        self._settings = settings or TransferSettings()
        self._bucket_lock = threading.Lock()
        self._bucket_ready = False

    def download_then_store(
        self,
        remote_file_id: str,
        content_type: str,
        target: StorageTarget,
        *,
        export_mime_type: str | None = None,
    ) -> StoredObject:
        """Download a file (or its export) and upload it with a size-appropriate protocol."""
        stored_content_type = export_mime_type or content_type
        object_path = build_object_path(target, remote_file_id, extension_for(stored_content_type))

        with tempfile.TemporaryDirectory(prefix="drive-import-") as temp_dir:
            local_path = Path(temp_dir) / f"{remote_file_id}.download"
            stream = self._retry_executor.execute(
                f"drive.download:{remote_file_id}",
                lambda: self._provider.open_download(remote_file_id, export_mime_type),
                timeout_ms=self._settings.download_request_timeout_ms,
            )
            self._copy_with_deadline(f"stream:{remote_file_id}", stream, local_path)

            size_bytes = local_path.stat().st_size
            resumable = size_bytes >= self._settings.tus_threshold_bytes
            self._ensure_bucket()
            if resumable:
                self._storage.upload_resumable(
                    self._settings.bucket,
                    object_path,
                    local_path,
                    stored_content_type,
                )
            else:
                with local_path.open("rb") as handle:
                    self._storage.upload(
                        self._settings.bucket,
                        object_path,
                        handle,
                        stored_content_type,
                    )

        public_url = self._storage.get_public_url(self._settings.bucket, object_path)
        LOGGER.info(
            (
                "event=transfer_stored file_id=%s object_path=%s size_bytes=%s "
                "resumable=%s content_type=%s"
            ),
            remote_file_id,
            object_path,
            size_bytes,
            resumable,
            stored_content_type,
        )
        return StoredObject(
            storage_path=object_path,
            public_url=public_url,
            content_type=stored_content_type,
            size_bytes=size_bytes,
            resumable=resumable,
        )

    def _copy_with_deadline(self, label: str, stream: ByteStream, destination: Path) -> None:
        timeout_ms = self._settings.stream_timeout_ms
        finished = threading.Event()
        cancelled = threading.Event()
        failures: list[Exception] = []
        try:
            handle = destination.open("wb")
        except OSError:
            stream.close()
            raise

        def pump() -> None:
            try:
                for chunk in stream.iter_chunks():
                    if cancelled.is_set():
                        return
                    handle.write(chunk)
            except Exception as exc:
                failures.append(exc)
            finally:
                finished.set()

        worker = threading.Thread(target=pump, name="stream-transfer", daemon=True)
        worker.start()

        if not finished.wait(timeout_ms / 1000):
            cancelled.set()
            stream.close()
            handle.close()
            worker.join(timeout=1.0)
            LOGGER.warning(
                "event=transfer_stream_timeout label=%s timeout_ms=%s",
                label,
                timeout_ms,
            )
            raise StreamTimeoutError(label, timeout_ms)

        worker.join()
        handle.close()
        stream.close()
        if failures:
            raise failures[0]

    def _ensure_bucket(self) -> None:
        with self._bucket_lock:
            if self._bucket_ready:
                return
            bucket = self._settings.bucket
            if not self._storage.bucket_exists(bucket):
                try:
                    self._storage.create_bucket(bucket)
                except BucketAlreadyExistsError:
                    LOGGER.info("event=storage_bucket_already_exists bucket=%s", bucket)
                else:
                    LOGGER.info("event=storage_bucket_created bucket=%s", bucket)
            self._bucket_ready = True
