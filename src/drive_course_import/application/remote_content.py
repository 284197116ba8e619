"""Application ports for the remote content provider and object storage."""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO, Protocol

from drive_course_import.domain.course_structure import RemoteNode


@dataclass(frozen=True)
class RemoteListPage:
    """One page of a remote folder listing."""

    nodes: list[RemoteNode]
    next_page_token: str | None = None


class ByteStream(Protocol):
    """Readable remote byte stream that can be forcibly closed."""

    def iter_chunks(self) -> Iterator[bytes]:
        """Yield payload chunks until the stream is exhausted."""
        ...

    def close(self) -> None:
        """Release the underlying connection; unblocks a pending read."""
        ...


class RemoteContentProvider(Protocol):
    """Port implemented by the remote folder/file provider adapter."""

    def list_children(self, folder_id: str, page_token: str | None = None) -> RemoteListPage:
        """Return one page of non-trashed children of a folder."""
        ...

    def open_download(self, file_id: str, export_mime_type: str | None = None) -> ByteStream:
        """Open a byte stream of the file, exported to ``export_mime_type`` if given."""
        ...

    def export_text(self, file_id: str, mime_type: str) -> str:
        """Export a provider-native document as text."""
        ...


class ObjectStorage(Protocol):
    """Port implemented by the object storage adapter."""

    def bucket_exists(self, bucket: str) -> bool:
        """Return whether the bucket exists."""
        ...

    def create_bucket(self, bucket: str) -> None:
        """Create a public bucket; raises BucketAlreadyExistsError on conflict."""
        ...

    def upload(self, bucket: str, object_path: str, data: BinaryIO, content_type: str) -> None:
        """Upload the whole payload in a single request."""
        ...

    def upload_resumable(
        self,
        bucket: str,
        object_path: str,
        local_path: Path,
        content_type: str,
    ) -> None:
        """Upload a local file in resumable chunks."""
        ...

    def get_public_url(self, bucket: str, object_path: str) -> str:
        """Return the durable public locator of a stored object."""
        ...
