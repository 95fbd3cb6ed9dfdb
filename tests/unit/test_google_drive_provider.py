"""Unit tests for the Google Drive adapter, driven through httpx.MockTransport."""

from __future__ import annotations

import json
from collections.abc import Callable

import httpx
import pytest

from src.models.principal import AuthenticatedPrincipal
from src.providers.source_files.google_drive_provider import GoogleDriveProvider
from src.utils.errors import (
    AuthExpiredError,
    PermissionDeniedError,
    ProviderUnavailableError,
    SourceNotFoundError,
)

_API = "https://drive.test/drive/v3"
_UPLOAD = "https://drive.test/upload/drive/v3"

Handler = Callable[[httpx.Request], httpx.Response]


def _provider(handler: Handler, requests: list[httpx.Request] | None = None) -> GoogleDriveProvider:
    def _record(request: httpx.Request) -> httpx.Response:
        if requests is not None:
            requests.append(request)
        return handler(request)

    client = httpx.AsyncClient(transport=httpx.MockTransport(_record))
    return GoogleDriveProvider(
        http_client=client,
        folder_name="N8N AI Agent",
        api_base_url=_API,
        upload_base_url=_UPLOAD,
    )


class TestGet:
    async def test_fetches_metadata_then_media(self, principal: AuthenticatedPrincipal) -> None:
        requests: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.params.get("alt") == "media":
                return httpx.Response(200, content=b"file bytes")
            return httpx.Response(200, json={"id": "f1", "name": "notes.txt", "mimeType": "text/plain"})

        provider = _provider(handler, requests)
        source = await provider.get("f1", principal)

        assert source.name == "notes.txt"
        assert source.mime_type == "text/plain"
        assert source.content == b"file bytes"
        assert source.size == len(b"file bytes")
        assert [r.url.path for r in requests] == ["/drive/v3/files/f1", "/drive/v3/files/f1"]
        assert all(r.headers["authorization"] == "Bearer ya29.test-token" for r in requests)

    @pytest.mark.parametrize(
        ("status", "expected"),
        [
            (401, AuthExpiredError),
            (403, PermissionDeniedError),
            (404, SourceNotFoundError),
            (500, ProviderUnavailableError),
            (429, ProviderUnavailableError),
        ],
    )
    async def test_status_mapping(
        self, principal: AuthenticatedPrincipal, status: int, expected: type
    ) -> None:
        provider = _provider(lambda request: httpx.Response(status, json={"error": {}}))
        with pytest.raises(expected) as exc_info:
            await provider.get("f1", principal)
        assert exc_info.value.provider_name == "google_drive"

    async def test_transport_error_is_unavailable(self, principal: AuthenticatedPrincipal) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(ProviderUnavailableError):
            await _provider(handler).get("f1", principal)


class TestExists:
    async def test_existing_file(self, principal: AuthenticatedPrincipal) -> None:
        provider = _provider(lambda r: httpx.Response(200, json={"id": "f1", "trashed": False}))
        assert await provider.exists("f1", principal) is True

    async def test_trashed_file(self, principal: AuthenticatedPrincipal) -> None:
        provider = _provider(lambda r: httpx.Response(200, json={"id": "f1", "trashed": True}))
        assert await provider.exists("f1", principal) is False

    async def test_missing_file(self, principal: AuthenticatedPrincipal) -> None:
        provider = _provider(lambda r: httpx.Response(404))
        assert await provider.exists("f1", principal) is False

    async def test_expired_token_still_raises(self, principal: AuthenticatedPrincipal) -> None:
        provider = _provider(lambda r: httpx.Response(401))
        with pytest.raises(AuthExpiredError):
            await provider.exists("f1", principal)


class TestList:
    async def test_follows_pagination(self, principal: AuthenticatedPrincipal) -> None:
        requests: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.params.get("pageToken") == "p2":
                return httpx.Response(200, json={"files": [{"id": "b", "name": "b.txt"}]})
            return httpx.Response(
                200,
                json={
                    "files": [{"id": "a", "name": "a.pdf", "size": "42", "webViewLink": "https://x/a"}],
                    "nextPageToken": "p2",
                },
            )

        files = await _provider(handler, requests).list("folder-1", principal)

        assert [f.id for f in files] == ["a", "b"]
        assert files[0].size == 42
        assert files[0].web_view_link == "https://x/a"
        first = requests[0].url.params
        assert first["q"] == "'folder-1' in parents and trashed=false"
        assert first["orderBy"] == "createdTime desc"


class TestResolveFolder:
    async def test_existing_folder(self, principal: AuthenticatedPrincipal) -> None:
        requests: list[httpx.Request] = []
        provider = _provider(
            lambda r: httpx.Response(200, json={"files": [{"id": "folder-1", "name": "N8N AI Agent"}]}),
            requests,
        )
        assert await provider.resolve_folder(principal) == "folder-1"
        assert "name='N8N AI Agent'" in requests[0].url.params["q"]

    async def test_missing_folder_without_create(self, principal: AuthenticatedPrincipal) -> None:
        provider = _provider(lambda r: httpx.Response(200, json={"files": []}))
        assert await provider.resolve_folder(principal) is None

    async def test_missing_folder_is_created(self, principal: AuthenticatedPrincipal) -> None:
        requests: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            if request.method == "POST":
                return httpx.Response(200, json={"id": "new-folder"})
            return httpx.Response(200, json={"files": []})

        provider = _provider(handler, requests)
        assert await provider.resolve_folder(principal, create=True) == "new-folder"
        body = json.loads(requests[1].content)
        assert body == {"name": "N8N AI Agent", "mimeType": "application/vnd.google-apps.folder"}


class TestUpload:
    async def test_multipart_upload(self, principal: AuthenticatedPrincipal) -> None:
        requests: list[httpx.Request] = []
        provider = _provider(
            lambda r: httpx.Response(
                200, json={"id": "new-file", "name": "a.txt", "mimeType": "text/plain", "size": "5"}
            ),
            requests,
        )

        info = await provider.upload("a.txt", "text/plain", b"hello", principal, folder_ref="folder-1")

        assert info.id == "new-file"
        request = requests[0]
        assert str(request.url).startswith(f"{_UPLOAD}/files")
        assert request.url.params["uploadType"] == "multipart"
        assert request.headers["content-type"].startswith("multipart/related; boundary=")
        assert b'"parents": ["folder-1"]' in request.content
        assert b"hello" in request.content
