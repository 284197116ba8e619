"""TUS 1.0.0 resumable upload client for Supabase Storage."""

from __future__ import annotations

import base64
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
from urllib.parse import urljoin

import httpx

from drive_course_import.infrastructure.storage.errors import TusUploadError

LOGGER = logging.getLogger(__name__)

TUS_VERSION = "1.0.0"
DEFAULT_CHUNK_BYTES = 6 * 1024 * 1024
DEFAULT_CHUNK_RETRY_ATTEMPTS = 4
DEFAULT_CHUNK_RETRY_DELAY_SECONDS = 1.0
RESUMABLE_ENDPOINT_PATH = "/storage/v1/upload/resumable"


@dataclass(frozen=True)
class TusUploadResult:
    """Location of the finished upload and number of transferred chunks."""

    upload_url: str
    parts: int
    total_bytes: int


def build_upload_metadata(
    *,
    bucket: str,
    object_path: str,
    content_type: str,
    cache_control: str = "3600",
) -> str:
    """Encode the ``Upload-Metadata`` header value."""
    entries = [
        ("bucketName", bucket),
        ("objectName", object_path),
        ("contentType", content_type),
        ("cacheControl", cache_control),
    ]
    return ",".join(
        f"{key} {base64.b64encode(value.encode('utf-8')).decode('ascii')}"
        for key, value in entries
    )


class TusUploader:
    """Upload a local file to Supabase Storage in resumable chunks."""

    def __init__(
        self,
        *,
        http_client: httpx.Client,
        service_key: str,
        chunk_bytes: int = DEFAULT_CHUNK_BYTES,
        retry_attempts: int = DEFAULT_CHUNK_RETRY_ATTEMPTS,
        retry_delay_seconds: float = DEFAULT_CHUNK_RETRY_DELAY_SECONDS,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if chunk_bytes < 1:
            raise ValueError("chunk_bytes must be >= 1")
        if retry_attempts < 0:
            raise ValueError("retry_attempts must be >= 0")

        self._http_client = http_client
        self._service_key = service_key
        self._chunk_bytes = chunk_bytes
        self._retry_attempts = retry_attempts
        self._retry_delay_seconds = retry_delay_seconds
        self._sleep = sleep

    def upload(
        self,
        *,
        bucket: str,
        object_path: str,
        local_path: Path,
        content_type: str,
    ) -> TusUploadResult:
        total_bytes = local_path.stat().st_size
        upload_url = self._create_upload(
            bucket=bucket,
            object_path=object_path,
            content_type=content_type,
            total_bytes=total_bytes,
        )

        offset = 0
        parts = 0
        with local_path.open("rb") as handle:
            while offset < total_bytes:
                handle.seek(offset)
                chunk = handle.read(self._chunk_bytes)
                if not chunk:
                    break
                offset = self._send_chunk_with_retry(upload_url, chunk, offset)
                parts += 1

        LOGGER.info(
            "event=tus_upload_completed bucket=%s object_path=%s parts=%s total_bytes=%s",
            bucket,
            object_path,
            parts,
            total_bytes,
        )
        return TusUploadResult(upload_url=upload_url, parts=parts, total_bytes=total_bytes)

    def _create_upload(
        self,
        *,
        bucket: str,
        object_path: str,
        content_type: str,
        total_bytes: int,
    ) -> str:
        response = self._http_client.post(
            RESUMABLE_ENDPOINT_PATH,
            headers={
                **self._auth_headers(),
                "Upload-Length": str(total_bytes),
                "Upload-Metadata": build_upload_metadata(
                    bucket=bucket,
                    object_path=object_path,
                    content_type=content_type,
                ),
                "x-upsert": "true",
            },
        )
        if response.status_code != 201:
            raise TusUploadError(
                f"TUS upload creation failed with status={response.status_code}.",
                status_code=response.status_code,
            )

        location = response.headers.get("Location")
        if not location:
            raise TusUploadError("TUS upload creation response has no Location header.")
        if location.startswith("http"):
            return location
        return urljoin(str(self._http_client.base_url), location)

    def _send_chunk_with_retry(self, upload_url: str, chunk: bytes, offset: int) -> int:
        attempt = 0
        while True:
            try:
                return self._send_chunk(upload_url, chunk, offset)
            except (TusUploadError, httpx.TransportError) as exc:
                attempt += 1
                if attempt > self._retry_attempts:
                    raise
                LOGGER.warning(
                    "event=tus_chunk_retry offset=%s attempt=%s error_type=%s",
                    offset,
                    attempt,
                    exc.__class__.__name__,
                )
                self._sleep(self._retry_delay_seconds * attempt)

    def _send_chunk(self, upload_url: str, chunk: bytes, offset: int) -> int:
        response = self._http_client.patch(
            upload_url,
            headers={
                **self._auth_headers(),
                "Upload-Offset": str(offset),
                "Content-Type": "application/offset+octet-stream",
            },
            content=chunk,
        )
        if response.status_code != 204:
            raise TusUploadError(
                f"TUS chunk upload failed with status={response.status_code}.",
                status_code=response.status_code,
            )

        new_offset = response.headers.get("Upload-Offset")
        return int(new_offset) if new_offset else offset + len(chunk)

    def _auth_headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self._service_key}",
            "apikey": self._service_key,
            "Tus-Resumable": TUS_VERSION,
        }
