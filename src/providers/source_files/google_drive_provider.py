"""Google Drive source-file provider.

Talks to the Drive v3 REST API through a shared ``httpx.AsyncClient``,
authenticating every request with the principal's delegated OAuth access
token.  All files live in one application folder ("N8N AI Agent" by
default) in the user's Drive.

HTTP failures are mapped onto the driveVector hierarchy:

    401 -> AuthExpiredError        (token expired or revoked)
    403 -> PermissionDeniedError
    404 -> SourceNotFoundError
    any other status, or a transport error -> ProviderUnavailableError
"""

from __future__ import annotations

import json
import uuid
from typing import Any, NoReturn

import httpx
import structlog

from src.interfaces.source_file_provider import ISourceFileProvider
from src.models.ingestion import SourceFile, SourceFileInfo
from src.models.principal import AuthenticatedPrincipal
from src.utils.errors import (
    AuthExpiredError,
    PermissionDeniedError,
    ProviderUnavailableError,
    SourceNotFoundError,
)

logger = structlog.get_logger(logger_name=__name__)

_DEFAULT_API_BASE = "https://www.googleapis.com/drive/v3"
_DEFAULT_UPLOAD_BASE = "https://www.googleapis.com/upload/drive/v3"
_FOLDER_MIME_TYPE = "application/vnd.google-apps.folder"
_FILE_FIELDS = "id,name,mimeType,size,createdTime,modifiedTime,webViewLink,iconLink"
_LIST_PAGE_SIZE = 100


def _escape_query_value(value: str) -> str:
    """Escape a literal for use inside a single-quoted Drive query string."""
    return value.replace("\\", "\\\\").replace("'", "\\'")


def _to_file_info(item: dict[str, Any]) -> SourceFileInfo:
    size = item.get("size")
    return SourceFileInfo(
        id=item["id"],
        name=item.get("name", ""),
        mime_type=item.get("mimeType"),
        size=int(size) if size is not None else None,
        created_time=item.get("createdTime"),
        modified_time=item.get("modifiedTime"),
        web_view_link=item.get("webViewLink"),
        icon_link=item.get("iconLink"),
    )


class GoogleDriveProvider(ISourceFileProvider):
    """Source-file provider backed by the Google Drive v3 REST API.

    Parameters
    ----------
    http_client:
        Shared async client, owned and closed by the application.
    folder_name:
        Name of the application folder holding the user's documents.
    api_base_url / upload_base_url:
        Drive endpoints; overridable for tests and proxies.
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        folder_name: str = "N8N AI Agent",
        api_base_url: str = _DEFAULT_API_BASE,
        upload_base_url: str = _DEFAULT_UPLOAD_BASE,
    ) -> None:
        self._client = http_client
        self._folder_name = folder_name
        self._api_base = api_base_url.rstrip("/")
        self._upload_base = upload_base_url.rstrip("/")

    @property
    def folder_name(self) -> str:
        return self._folder_name

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _auth_headers(principal: AuthenticatedPrincipal) -> dict[str, str]:
        return {"Authorization": f"Bearer {principal.access_token}"}

    def _raise_for_status(self, response: httpx.Response, resource: str) -> None:
        """Map a non-2xx Drive response onto the error hierarchy."""
        if response.is_success:
            return
        status = response.status_code
        provider = self.get_provider_name()
        if status == 401:
            raise AuthExpiredError(
                message="Google Drive rejected the access token. Please sign in again.",
                provider_name=provider,
            )
        if status == 403:
            raise PermissionDeniedError(provider_name=provider)
        if status == 404:
            raise SourceNotFoundError(
                message=f"File not found in Google Drive: {resource}",
                provider_name=provider,
            )
        raise ProviderUnavailableError(
            message=f"Google Drive returned HTTP {status} for {resource}",
            provider_name=provider,
        )

    def _transport_error(self, exc: httpx.HTTPError, resource: str) -> NoReturn:
        logger.warning("drive_transport_error", resource=resource, error=str(exc))
        raise ProviderUnavailableError(
            message=f"Google Drive request failed for {resource}: {exc}",
            provider_name=self.get_provider_name(),
        ) from exc

    async def _request(
        self,
        method: str,
        url: str,
        principal: AuthenticatedPrincipal,
        resource: str,
        **kwargs: Any,
    ) -> httpx.Response:
        headers = {**self._auth_headers(principal), **kwargs.pop("headers", {})}
        try:
            response = await self._client.request(method, url, headers=headers, **kwargs)
        except httpx.HTTPError as exc:
            self._transport_error(exc, resource)
        self._raise_for_status(response, resource)
        return response

    async def _get_metadata(self, file_id: str, principal: AuthenticatedPrincipal) -> dict[str, Any]:
        response = await self._request(
            "GET",
            f"{self._api_base}/files/{file_id}",
            principal,
            file_id,
            params={"fields": f"{_FILE_FIELDS},trashed"},
        )
        return response.json()

    # ------------------------------------------------------------------
    # ISourceFileProvider implementation
    # ------------------------------------------------------------------

    async def get(self, file_id: str, principal: AuthenticatedPrincipal) -> SourceFile:
        """Fetch metadata, then the raw bytes via ``alt=media``."""
        metadata = await self._get_metadata(file_id, principal)
        response = await self._request(
            "GET",
            f"{self._api_base}/files/{file_id}",
            principal,
            file_id,
            params={"alt": "media"},
        )
        content = response.content
        logger.info("drive_file_downloaded", file_id=file_id, size=len(content))
        return SourceFile(
            file_id=file_id,
            name=metadata.get("name", file_id),
            mime_type=metadata.get("mimeType"),
            size=len(content),
            content=content,
        )

    async def exists(self, file_id: str, principal: AuthenticatedPrincipal) -> bool:
        try:
            metadata = await self._get_metadata(file_id, principal)
        except SourceNotFoundError:
            return False
        return not metadata.get("trashed", False)

    async def list(self, folder_ref: str, principal: AuthenticatedPrincipal) -> list[SourceFileInfo]:
        """List non-trashed files in *folder_ref*, newest first, following pagination."""
        query = f"'{_escape_query_value(folder_ref)}' in parents and trashed=false"
        files: list[SourceFileInfo] = []
        page_token: str | None = None

        while True:
            params: dict[str, Any] = {
                "q": query,
                "fields": f"nextPageToken,files({_FILE_FIELDS})",
                "orderBy": "createdTime desc",
                "pageSize": _LIST_PAGE_SIZE,
            }
            if page_token:
                params["pageToken"] = page_token
            response = await self._request(
                "GET", f"{self._api_base}/files", principal, folder_ref, params=params
            )
            data = response.json()
            files.extend(_to_file_info(item) for item in data.get("files", []))
            page_token = data.get("nextPageToken")
            if not page_token:
                break

        logger.debug("drive_folder_listed", folder_id=folder_ref, count=len(files))
        return files

    async def resolve_folder(
        self,
        principal: AuthenticatedPrincipal,
        create: bool = False,
    ) -> str | None:
        query = (
            f"name='{_escape_query_value(self._folder_name)}' "
            f"and mimeType='{_FOLDER_MIME_TYPE}' and trashed=false"
        )
        response = await self._request(
            "GET",
            f"{self._api_base}/files",
            principal,
            self._folder_name,
            params={"q": query, "fields": "files(id,name)", "spaces": "drive"},
        )
        folders = response.json().get("files", [])
        if folders:
            return folders[0]["id"]
        if not create:
            return None

        response = await self._request(
            "POST",
            f"{self._api_base}/files",
            principal,
            self._folder_name,
            params={"fields": "id"},
            json={"name": self._folder_name, "mimeType": _FOLDER_MIME_TYPE},
        )
        folder_id = response.json()["id"]
        logger.info("drive_folder_created", folder_id=folder_id, name=self._folder_name)
        return folder_id

    async def upload(
        self,
        file_name: str,
        mime_type: str,
        content: bytes,
        principal: AuthenticatedPrincipal,
        folder_ref: str | None = None,
    ) -> SourceFileInfo:
        """Upload with a ``multipart/related`` request (metadata part + media part)."""
        metadata: dict[str, Any] = {"name": file_name, "mimeType": mime_type}
        if folder_ref:
            metadata["parents"] = [folder_ref]

        boundary = f"drivevector-{uuid.uuid4().hex}"
        body = b"".join(
            [
                f"--{boundary}\r\n".encode(),
                b"Content-Type: application/json; charset=UTF-8\r\n\r\n",
                json.dumps(metadata).encode("utf-8"),
                f"\r\n--{boundary}\r\n".encode(),
                f"Content-Type: {mime_type}\r\n\r\n".encode(),
                content,
                f"\r\n--{boundary}--".encode(),
            ]
        )
        response = await self._request(
            "POST",
            f"{self._upload_base}/files",
            principal,
            file_name,
            params={"uploadType": "multipart", "fields": _FILE_FIELDS},
            headers={"Content-Type": f"multipart/related; boundary={boundary}"},
            content=body,
        )
        info = _to_file_info(response.json())
        logger.info("drive_file_uploaded", file_id=info.id, name=file_name, size=len(content))
        return info

    def get_provider_name(self) -> str:
        return "google_drive"
