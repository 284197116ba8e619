"""Contract tests for the Drive v3 client with mocked transport."""

from __future__ import annotations

from collections.abc import Callable
from typing import TypeVar

import httpx
import pytest

from drive_course_import.domain.course_structure import FOLDER_MIME_TYPE, RemoteNodeKind
from drive_course_import.infrastructure.remote.drive_client import GoogleDriveClient
from drive_course_import.infrastructure.remote.errors import (
    RemoteAuthError,
    RemoteRateLimitError,
    RemoteRequestError,
    RemoteResponseError,
    RemoteServerError,
)

T = TypeVar("T")


def test_list_children_parses_files_and_page_token() -> None:
    captured: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        captured.append(request)
        assert request.url.path == "/drive/v3/files"
        return httpx.Response(
            status_code=200,
            json={
                "nextPageToken": "page-2",
                "files": [
                    {"id": "f1", "name": "Módulo 1", "mimeType": FOLDER_MIME_TYPE},
                    {"id": "f2", "name": "Aula.pdf", "mimeType": "application/pdf", "size": "42"},
                    {
                        "id": "f3",
                        "name": "Notas",
                        "mimeType": "application/vnd.google-apps.document",
                        "quotaBytesUsed": "7",
                    },
                ],
            },
        )

    page = _with_client(handler, lambda client: client.list_children("root-id", "page-1"))

    assert page.next_page_token == "page-2"
    assert [node.id for node in page.nodes] == ["f1", "f2", "f3"]
    assert page.nodes[0].kind is RemoteNodeKind.FOLDER
    assert page.nodes[1].kind is RemoteNodeKind.FILE
    assert page.nodes[1].size_bytes == 42
    assert page.nodes[2].size_bytes == 7

    request = captured[0]
    assert request.headers["Authorization"] == "Bearer drive-token"
    assert request.url.params["q"] == "'root-id' in parents and trashed = false"
    assert request.url.params["pageToken"] == "page-1"
    assert "quotaBytesUsed" in request.url.params["fields"]


def test_list_children_without_token_has_no_next_page() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        assert "pageToken" not in request.url.params
        return httpx.Response(status_code=200, json={"files": []})

    page = _with_client(handler, lambda client: client.list_children("root-id"))

    assert page.nodes == []
    assert page.next_page_token is None


def test_list_children_rejects_unexpected_payload() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(status_code=200, json={"files": "not-a-list"})

    with pytest.raises(RemoteResponseError):
        _with_client(handler, lambda client: client.list_children("root-id"))


@pytest.mark.parametrize(
    ("status_code", "payload", "expected_error"),
    [
        (429, {"error": {"message": "slow down"}}, RemoteRateLimitError),
        (
            403,
            {"error": {"errors": [{"reason": "userRateLimitExceeded"}], "message": "quota"}},
            RemoteRateLimitError,
        ),
        (403, {"error": {"errors": [{"reason": "forbidden"}], "message": "no"}}, RemoteAuthError),
        (401, {"error": {"status": "UNAUTHENTICATED"}}, RemoteAuthError),
        (
            403,
            {"error": {"errors": [{"reason": "exportSizeLimitExceeded"}], "message": "big"}},
            RemoteRequestError,
        ),
        (
            403,
            {"error": {"errors": [{"reason": "cannotDownloadFile"}], "message": "locked"}},
            RemoteRequestError,
        ),
        (503, {"error": {"message": "backend"}}, RemoteServerError),
        (404, {"error": {"message": "File not found"}}, RemoteRequestError),
    ],
)
def test_error_statuses_map_to_typed_errors(
    status_code: int,
    payload: dict[str, object],
    expected_error: type[Exception],
) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(status_code=status_code, json=payload)

    with pytest.raises(expected_error) as exc_info:
        _with_client(handler, lambda client: client.list_children("root-id"))

    assert getattr(exc_info.value, "status_code") == status_code


def test_rate_limit_reason_is_kept_on_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            status_code=403,
            json={"error": {"errors": [{"reason": "rateLimitExceeded"}]}},
        )

    with pytest.raises(RemoteRateLimitError) as exc_info:
        _with_client(handler, lambda client: client.export_text("doc-1", "text/plain"))

    assert exc_info.value.reason == "rateLimitExceeded"


def test_export_text_requests_export_endpoint() -> None:
    captured: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        captured.append(request)
        return httpx.Response(status_code=200, text="GABARITO\n1 - A")

    text = _with_client(handler, lambda client: client.export_text("doc-1", "text/plain"))

    assert text == "GABARITO\n1 - A"
    assert captured[0].url.path == "/drive/v3/files/doc-1/export"
    assert captured[0].url.params["mimeType"] == "text/plain"


def test_open_download_streams_media_bytes() -> None:
    captured: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        captured.append(request)
        return httpx.Response(status_code=200, content=b"0123456789")

    def download(client: GoogleDriveClient) -> bytes:
        stream = client.open_download("file-1")
        try:
            return b"".join(stream.iter_chunks())
        finally:
            stream.close()

    payload = _with_client(handler, download)

    assert payload == b"0123456789"
    assert captured[0].url.path == "/drive/v3/files/file-1"
    assert captured[0].url.params["alt"] == "media"


def test_open_download_uses_export_for_native_documents() -> None:
    captured: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        captured.append(request)
        return httpx.Response(status_code=200, content=b"%PDF-1.4")

    def download(client: GoogleDriveClient) -> bytes:
        stream = client.open_download("doc-1", "application/pdf")
        try:
            return b"".join(stream.iter_chunks())
        finally:
            stream.close()

    assert _with_client(handler, download) == b"%PDF-1.4"
    assert captured[0].url.path == "/drive/v3/files/doc-1/export"
    assert captured[0].url.params["mimeType"] == "application/pdf"


def test_open_download_raises_typed_error_before_streaming() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(status_code=500, json={"error": {"message": "boom"}})

    with pytest.raises(RemoteServerError):
        _with_client(handler, lambda client: client.open_download("file-1"))


def _with_client(
    handler: Callable[[httpx.Request], httpx.Response],
    call: Callable[[GoogleDriveClient], T],
) -> T:
    http_client = httpx.Client(
        transport=httpx.MockTransport(handler),
        base_url="https://www.googleapis.com",
    )
    client = GoogleDriveClient(token_provider=lambda: "drive-token", http_client=http_client)
    try:
        return call(client)
    finally:
        http_client.close()
