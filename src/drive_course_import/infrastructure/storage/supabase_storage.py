"""Supabase Storage REST adapter behind the object storage port."""

from __future__ import annotations

from pathlib import Path
from typing import BinaryIO
from urllib.parse import quote

import httpx

from drive_course_import.application.remote_content import ObjectStorage
from drive_course_import.infrastructure.storage.errors import (
    BucketAlreadyExistsError,
    StorageError,
)
from drive_course_import.infrastructure.storage.tus import DEFAULT_CHUNK_BYTES, TusUploader


class SupabaseStorageClient(ObjectStorage):
    """Bucket, single-shot and resumable uploads against Supabase Storage."""

    def __init__(
        self,
        *,
        base_url: str,
        service_key: str,
        http_client: httpx.Client | None = None,
        tus_chunk_bytes: int = DEFAULT_CHUNK_BYTES,
        timeout_seconds: float = 120.0,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._service_key = service_key
        self._http_client = http_client or httpx.Client(base_url=self._base_url)
        self._owns_client = http_client is None
        self._timeout_seconds = timeout_seconds
        self._tus = TusUploader(
            http_client=self._http_client,
            service_key=service_key,
            chunk_bytes=tus_chunk_bytes,
        )

    def close(self) -> None:
        """Close owned HTTP client."""
        if self._owns_client:
            self._http_client.close()

    def bucket_exists(self, bucket: str) -> bool:
        response = self._http_client.get(
            f"/storage/v1/bucket/{quote(bucket)}",
            headers=self._headers(),
            timeout=self._timeout_seconds,
        )
        if response.status_code == 200:
            return True
        if response.status_code in (400, 404):
            return False
        raise StorageError(
            f"storage bucket lookup failed with status={response.status_code}.",
            status_code=response.status_code,
        )

    def create_bucket(self, bucket: str) -> None:
        response = self._http_client.post(
            "/storage/v1/bucket",
            headers=self._headers(),
            json={"id": bucket, "name": bucket, "public": True},
            timeout=self._timeout_seconds,
        )
        if response.status_code < 400:
            return
        if response.status_code == 409 or "already exists" in response.text.lower():
            raise BucketAlreadyExistsError(
                f"storage bucket {bucket!r} already exists.",
                status_code=response.status_code,
            )
        raise StorageError(
            f"storage bucket creation failed with status={response.status_code}.",
            status_code=response.status_code,
        )

    def upload(self, bucket: str, object_path: str, data: BinaryIO, content_type: str) -> None:
        response = self._http_client.post(
            f"/storage/v1/object/{quote(bucket)}/{quote(object_path)}",
            headers={
                **self._headers(),
                "Content-Type": content_type,
                "x-upsert": "true",
            },
            content=data.read(),
            timeout=self._timeout_seconds,
        )
        if response.status_code >= 400:
            raise StorageError(
                f"storage upload failed with status={response.status_code}.",
                status_code=response.status_code,
            )

    def upload_resumable(
        self,
        bucket: str,
        object_path: str,
        local_path: Path,
        content_type: str,
    ) -> None:
        self._tus.upload(
            bucket=bucket,
            object_path=object_path,
            local_path=local_path,
            content_type=content_type,
        )

    def get_public_url(self, bucket: str, object_path: str) -> str:
        return f"{self._base_url}/storage/v1/object/public/{quote(bucket)}/{quote(object_path)}"

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self._service_key}",
            "apikey": self._service_key,
        }
