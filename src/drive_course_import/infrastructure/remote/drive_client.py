"""Google Drive v3 REST adapter behind the remote content provider port."""

from __future__ import annotations

from collections.abc import Callable, Iterator
from typing import cast

import httpx
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from drive_course_import.application.remote_content import (
    ByteStream,
    RemoteContentProvider,
    RemoteListPage,
)
from drive_course_import.domain.course_structure import (
    FOLDER_MIME_TYPE,
    RemoteNode,
    RemoteNodeKind,
)
from drive_course_import.infrastructure.remote.errors import (
    FILE_FORBIDDEN_REASONS,
    RATE_LIMIT_REASONS,
    RemoteAuthError,
    RemoteRateLimitError,
    RemoteRequestError,
    RemoteResponseError,
    RemoteServerError,
)

DRIVE_API_BASE_URL = "https://www.googleapis.com"
LIST_FIELDS = "nextPageToken, files(id, name, mimeType, size, quotaBytesUsed)"
LIST_PAGE_SIZE = 1000
DOWNLOAD_CHUNK_BYTES = 256 * 1024


class DriveFileResource(BaseModel):
    """Subset of the Drive ``files`` resource used by the importer."""

    model_config = ConfigDict(populate_by_name=True)

    id: str
    name: str | None = None
    mime_type: str = Field(default="application/octet-stream", alias="mimeType")
    size: int | None = None
    quota_bytes_used: int | None = Field(default=None, alias="quotaBytesUsed")

    def to_node(self) -> RemoteNode:
        kind = RemoteNodeKind.FOLDER if self.mime_type == FOLDER_MIME_TYPE else RemoteNodeKind.FILE
        size_bytes = self.size if self.size is not None else self.quota_bytes_used
        return RemoteNode(
            id=self.id,
            name=self.name,
            kind=kind,
            mime_type=self.mime_type,
            size_bytes=size_bytes,
        )


class DriveFileListPayload(BaseModel):
    """Drive ``files.list`` response payload."""

    model_config = ConfigDict(populate_by_name=True)

    files: list[DriveFileResource] = Field(default_factory=list)
    next_page_token: str | None = Field(default=None, alias="nextPageToken")


class HttpxByteStream:
    """Byte stream over a streaming httpx response."""

    def __init__(self, response: httpx.Response, chunk_size: int = DOWNLOAD_CHUNK_BYTES) -> None:
        self._response = response
        self._chunk_size = chunk_size

    def iter_chunks(self) -> Iterator[bytes]:
        yield from self._response.iter_bytes(chunk_size=self._chunk_size)

    def close(self) -> None:
        self._response.close()


class GoogleDriveClient(RemoteContentProvider):
    """Drive v3 files API adapter using a bearer token."""

    def __init__(
        self,
        *,
        token_provider: Callable[[], str],
        http_client: httpx.Client | None = None,
        base_url: str = DRIVE_API_BASE_URL,
        timeout_seconds: float = 60.0,
    ) -> None:
        self._token_provider = token_provider
        self._http_client = http_client or httpx.Client(base_url=base_url)
        self._owns_client = http_client is None
        self._timeout_seconds = timeout_seconds

    def close(self) -> None:
        """Close owned HTTP client."""
        if self._owns_client:
            self._http_client.close()

    def list_children(self, folder_id: str, page_token: str | None = None) -> RemoteListPage:
        params: dict[str, str | int | bool] = {
            "q": f"'{folder_id}' in parents and trashed = false",
            "fields": LIST_FIELDS,
            "orderBy": "name",
            "pageSize": LIST_PAGE_SIZE,
            "supportsAllDrives": True,
            "includeItemsFromAllDrives": True,
        }
        if page_token:
            params["pageToken"] = page_token

        response = self._http_client.get(
            "/drive/v3/files",
            params=params,
            headers=self._headers(),
            timeout=self._timeout_seconds,
        )
        _raise_for_status(response)

        try:
            payload = DriveFileListPayload.model_validate(response.json())
        except (ValueError, ValidationError) as exc:
            raise RemoteResponseError(
                "drive files.list returned an unexpected payload.",
                status_code=response.status_code,
            ) from exc

        return RemoteListPage(
            nodes=[resource.to_node() for resource in payload.files],
            next_page_token=payload.next_page_token or None,
        )

    def open_download(self, file_id: str, export_mime_type: str | None = None) -> ByteStream:
        if export_mime_type:
            url = f"/drive/v3/files/{file_id}/export"
            params: dict[str, str | bool] = {"mimeType": export_mime_type}
        else:
            url = f"/drive/v3/files/{file_id}"
            params = {"alt": "media", "supportsAllDrives": True}

        request = self._http_client.build_request(
            "GET",
            url,
            params=params,
            headers=self._headers(),
            timeout=self._timeout_seconds,
        )
        response = self._http_client.send(request, stream=True)
        if response.status_code >= 400:
            response.read()
            response.close()
            _raise_for_status(response)
        return HttpxByteStream(response)

    def export_text(self, file_id: str, mime_type: str) -> str:
        response = self._http_client.get(
            f"/drive/v3/files/{file_id}/export",
            params={"mimeType": mime_type},
            headers=self._headers(),
            timeout=self._timeout_seconds,
        )
        _raise_for_status(response)
        return response.text

    def _headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self._token_provider()}"}


def _raise_for_status(response: httpx.Response) -> None:
    status_code = response.status_code
    if status_code < 400:
        return

    reason, detail = _extract_error_reason(response)
    message = f"drive request failed with status={status_code}."
    if reason:
        message = f"{message} reason={reason}"
    if detail:
        message = f"{message} detail={detail}"

    if status_code == 429 or reason in RATE_LIMIT_REASONS:
        raise RemoteRateLimitError(message, status_code=status_code, reason=reason)
    if status_code == 403 and reason in FILE_FORBIDDEN_REASONS:
        raise RemoteRequestError(message, status_code=status_code, reason=reason)
    if status_code in (401, 403):
        raise RemoteAuthError(message, status_code=status_code, reason=reason)
    if 500 <= status_code <= 599:
        raise RemoteServerError(message, status_code=status_code, reason=reason)
    raise RemoteRequestError(message, status_code=status_code, reason=reason)


def _extract_error_reason(response: httpx.Response) -> tuple[str | None, str | None]:
    try:
        payload = response.json()
    except ValueError:
        text = response.text.strip()
        return None, _truncate_error_detail(text) if text else None

    if not isinstance(payload, dict):
        return None, None

    error_obj = cast(dict[str, object], payload).get("error")
    if isinstance(error_obj, str):
        return None, _truncate_error_detail(error_obj)
    if not isinstance(error_obj, dict):
        return None, None

    error = cast(dict[str, object], error_obj)
    message = error.get("message")
    detail = _truncate_error_detail(message) if isinstance(message, str) else None

    reason: str | None = None
    errors = error.get("errors")
    if isinstance(errors, list) and errors:
        first = errors[0]
        if isinstance(first, dict):
            candidate = cast(dict[str, object], first).get("reason")
            if isinstance(candidate, str) and candidate.strip():
                reason = candidate.strip()
    if reason is None:
        status = error.get("status")
        if isinstance(status, str) and status.strip():
            reason = status.strip()
    return reason, detail


def _truncate_error_detail(value: str, *, max_length: int = 300) -> str:
    if len(value) <= max_length:
        return value
    return f"{value[:max_length]}..."
