"""Abstract base class for cloud file-storage providers.

The source-file provider is where users' documents live (Google Drive in
production).  Every call acts on behalf of an
:class:`~src.models.principal.AuthenticatedPrincipal` using that
principal's delegated OAuth token.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from src.models.ingestion import SourceFile, SourceFileInfo
from src.models.principal import AuthenticatedPrincipal


# Concrete implementation: GoogleDriveProvider (src/providers/source_files/)
class ISourceFileProvider(ABC):
    """Contract for reading, listing and uploading user files.

    Errors are mapped uniformly by every adapter:

    * token rejected -> :class:`~src.utils.errors.AuthExpiredError`
    * access refused -> :class:`~src.utils.errors.PermissionDeniedError`
    * no such file -> :class:`~src.utils.errors.SourceNotFoundError`
    * anything else -> :class:`~src.utils.errors.ProviderUnavailableError`
    """

    @abstractmethod
    async def get(self, file_id: str, principal: AuthenticatedPrincipal) -> SourceFile:
        """Fetch metadata and the full byte content of *file_id*."""

    @abstractmethod
    async def exists(self, file_id: str, principal: AuthenticatedPrincipal) -> bool:
        """Return ``True`` when *file_id* exists and is not trashed.

        Returns ``False`` for a missing file rather than raising
        :class:`~src.utils.errors.SourceNotFoundError`.
        """

    @abstractmethod
    async def list(self, folder_ref: str, principal: AuthenticatedPrincipal) -> list[SourceFileInfo]:
        """List the non-trashed files directly inside *folder_ref*."""

    @abstractmethod
    async def resolve_folder(
        self,
        principal: AuthenticatedPrincipal,
        create: bool = False,
    ) -> str | None:
        """Return the id of the application folder.

        Parameters
        ----------
        principal:
            The caller.
        create:
            Create the folder when it does not exist.

        Returns
        -------
        str | None
            The folder id, or ``None`` when it is missing and *create* is
            ``False``.
        """

    @abstractmethod
    async def upload(
        self,
        file_name: str,
        mime_type: str,
        content: bytes,
        principal: AuthenticatedPrincipal,
        folder_ref: str | None = None,
    ) -> SourceFileInfo:
        """Upload *content* as a new file, inside *folder_ref* when given."""

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a human-readable identifier for this provider."""
