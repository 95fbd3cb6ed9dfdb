"""User file management: listing, upload, metadata, soft deletion and restore.

Deletion is two-phase.  Phase 1 is a single relational transaction that
marks the upload record inactive and the ingestion record ``deleted``; it
is the source of truth for "the file is gone".  Phase 2 removes the file's
vectors from the index on a best-effort basis: a failure there is logged
and returned as a warning, never raised, since orphaned vectors are
harmless once the relational record is inactive.

The provider file itself is left in place, so a soft delete can be undone
with :meth:`FileService.restore`.
"""

from __future__ import annotations

import asyncio
from collections.abc import Sequence
from typing import TYPE_CHECKING

import structlog

from src.models.ingestion import (
    DeletionResult,
    FileIngestionOutcome,
    FileUpload,
    IngestionItem,
    IngestionRecord,
    SourceFileInfo,
    UploadRecord,
)
from src.utils.errors import AlreadyDeletedError, RecordNotFoundError, ValidationError

if TYPE_CHECKING:
    from src.interfaces.ingestion_record_store import IIngestionRecordStore
    from src.interfaces.source_file_provider import ISourceFileProvider
    from src.interfaces.vector_store_provider import IVectorStoreProvider
    from src.models.principal import AuthenticatedPrincipal
    from src.services.ingestion.ingestion_service import IngestionService

logger = structlog.get_logger(logger_name=__name__)

_DEFAULT_MAX_UPLOAD_BYTES = 10 * 1024 * 1024


class FileService:
    """Coordinates the source-file provider, record store and vector index per user.

    Parameters
    ----------
    record_store:
        Upload and ingestion records.
    source_provider:
        Where the files live.
    vector_store:
        Vector index cleaned up on delete.
    ingestion_service:
        Used by :meth:`upload` to ingest freshly uploaded files.
    max_upload_bytes:
        Per-file size limit for uploads.
    allowed_mime_types:
        Upload allow-list.
    """

    def __init__(
        self,
        record_store: IIngestionRecordStore,
        source_provider: ISourceFileProvider,
        vector_store: IVectorStoreProvider,
        ingestion_service: IngestionService,
        max_upload_bytes: int = _DEFAULT_MAX_UPLOAD_BYTES,
        allowed_mime_types: Sequence[str] = (),
    ) -> None:
        self._records = record_store
        self._source = source_provider
        self._vector_store = vector_store
        self._ingestion = ingestion_service
        self._max_upload_bytes = max_upload_bytes
        self._allowed_mime_types = frozenset(allowed_mime_types)

    # ------------------------------------------------------------------
    # Deletion
    # ------------------------------------------------------------------

    async def delete(self, principal: AuthenticatedPrincipal, file_id: str) -> DeletionResult:
        """Soft-delete *file_id* for *principal* and clean up its vectors.

        The pair is resolved through both its upload record and its live
        ingestion record; a file ingested by id has only the latter.

        Raises
        ------
        RecordNotFoundError
            No upload record, no live ingestion record, and the provider
            has no such file.
        AlreadyDeletedError
            The upload record is already inactive and no live ingestion
            record remains.
        DatabaseError
            The transactional phase failed; nothing was changed.
        """
        user_id = principal.user_id
        upload = await self._records.find_upload(user_id, file_id)
        record = await self._records.find_active(user_id, file_id)

        if upload is None:
            if record is None and not await self._source.exists(file_id, principal):
                raise RecordNotFoundError(message=f"No record or file found for {file_id}")
            # Remember the deletion so the listing hides the file from now on.
            await self._records.create_inactive_upload(
                user_id=user_id,
                email=principal.email,
                file_id=file_id,
                file_name=record.file_name if record is not None else file_id,
            )
            logger.info(
                "file_deleted_without_record",
                user_id=user_id,
                file_id=file_id,
                ingestion_record=record.id if record is not None else None,
            )
            record_created = True
        elif not upload.is_active and record is None:
            raise AlreadyDeletedError(message=f"File {file_id} is already deleted")
        else:
            record_created = False

        # Phase 1: transactional soft delete of whichever rows are still live.
        await self._records.soft_delete(user_id, file_id)

        # Phase 2: best-effort vector cleanup.
        warnings: list[str] = []
        vectors_deleted: int | None = None
        try:
            vectors_deleted = await self._vector_store.delete_by_filter(file_id)
        except Exception as exc:
            logger.warning(
                "vector_cleanup_failed",
                user_id=user_id,
                file_id=file_id,
                error_type=type(exc).__name__,
                error=str(exc),
            )
            warnings.append(f"Vector cleanup failed: {type(exc).__name__}: {exc}")

        logger.info(
            "file_deleted",
            user_id=user_id,
            file_id=file_id,
            vectors_deleted=vectors_deleted,
            warnings=len(warnings),
        )
        return DeletionResult(
            file_id=file_id,
            record_created=record_created,
            vectors_deleted=vectors_deleted,
            warnings=warnings,
        )

    async def restore(self, principal: AuthenticatedPrincipal, file_id: str) -> UploadRecord:
        """Undo a soft delete so the file shows up in listings again.

        Vectors removed by the delete are not brought back; the file must
        be ingested again to become searchable.  Restoring a visible file
        is a no-op.

        Raises
        ------
        RecordNotFoundError
            *principal* has no upload record for *file_id*.
        """
        user_id = principal.user_id
        upload = await self._records.find_upload(user_id, file_id)
        if upload is None:
            raise RecordNotFoundError(message=f"No upload record found for {file_id}")
        if upload.is_active:
            logger.info("file_restore_skipped_active", user_id=user_id, file_id=file_id)
            return upload

        restored = await self._records.restore_upload(user_id, file_id)
        logger.info("file_restored", user_id=user_id, file_id=file_id, upload_records=restored)
        return await self._records.find_upload(user_id, file_id)

    # ------------------------------------------------------------------
    # Listing
    # ------------------------------------------------------------------

    async def list_files(self, principal: AuthenticatedPrincipal) -> list[SourceFileInfo]:
        """List the app folder, hiding soft-deleted files.

        When the deleted-files lookup fails the unfiltered listing is
        returned (fail open).  A missing folder yields an empty list.
        """
        folder_id = await self._source.resolve_folder(principal)
        if folder_id is None:
            logger.info("drive_folder_missing", user_id=principal.user_id)
            return []

        files = await self._source.list(folder_id, principal)

        try:
            inactive = await self._records.inactive_file_ids(principal.user_id)
        except Exception as exc:
            logger.warning(
                "inactive_lookup_failed_fail_open",
                user_id=principal.user_id,
                error_type=type(exc).__name__,
                error=str(exc),
            )
            return files

        visible = [f for f in files if f.id not in inactive]
        logger.debug(
            "files_listed",
            user_id=principal.user_id,
            total=len(files),
            hidden=len(files) - len(visible),
        )
        return visible

    async def file_metadata(self, principal: AuthenticatedPrincipal) -> dict[str, IngestionRecord]:
        """Return the live ingestion records of *principal*, keyed by file id."""
        return await self._records.list_for_user(principal.user_id)

    # ------------------------------------------------------------------
    # Upload
    # ------------------------------------------------------------------

    def validate_upload(self, upload: FileUpload) -> None:
        """Reject files over the size limit or outside the MIME allow-list."""
        if not upload.content:
            raise ValidationError(message=f"File '{upload.file_name}' is empty")
        if len(upload.content) > self._max_upload_bytes:
            limit_mb = self._max_upload_bytes // (1024 * 1024)
            raise ValidationError(
                message=f"File '{upload.file_name}' exceeds the {limit_mb} MB limit",
            )
        if self._allowed_mime_types and upload.mime_type not in self._allowed_mime_types:
            raise ValidationError(
                message=f"File type not allowed for '{upload.file_name}': {upload.mime_type}",
            )

    async def upload(
        self,
        principal: AuthenticatedPrincipal,
        uploads: Sequence[FileUpload],
    ) -> list[FileIngestionOutcome]:
        """Upload files to the app folder, register them, then ingest them.

        Every file is validated before anything is written.  Each file is
        then stored, registered and ingested on its own: a Drive or
        ingestion failure becomes that file's outcome and never affects
        the others.  Outcomes are returned in input order.
        """
        if not uploads:
            raise ValidationError(message="No files provided")
        for upload in uploads:
            self.validate_upload(upload)

        folder_id = await self._source.resolve_folder(principal, create=True)

        stored = await asyncio.gather(
            *(self._store(principal, upload, folder_id) for upload in uploads),
            return_exceptions=True,
        )

        items = [
            IngestionItem(
                file_id=info.id,
                file_name=upload.file_name,
                content=upload.content,
                mime_type=upload.mime_type,
            )
            for upload, info in zip(uploads, stored)
            if not isinstance(info, BaseException)
        ]
        ingested = iter(await self._ingestion.ingest_many(principal, items))

        outcomes: list[FileIngestionOutcome] = []
        for upload, info in zip(uploads, stored):
            if isinstance(info, BaseException):
                outcomes.append(
                    FileIngestionOutcome(
                        file_name=upload.file_name,
                        success=False,
                        error_type=type(info).__name__,
                        error=getattr(info, "message", None) or str(info),
                    )
                )
            else:
                outcomes.append(next(ingested))

        logger.info(
            "files_uploaded",
            user_id=principal.user_id,
            count=len(outcomes),
            stored=len(items),
            succeeded=sum(1 for o in outcomes if o.success),
        )
        return outcomes

    async def _store(
        self,
        principal: AuthenticatedPrincipal,
        upload: FileUpload,
        folder_id: str | None,
    ) -> SourceFileInfo:
        """Write one file to the provider and register its upload record."""
        try:
            info = await self._source.upload(
                upload.file_name,
                upload.mime_type,
                upload.content,
                principal,
                folder_ref=folder_id,
            )
            await self._records.register_upload(
                user_id=principal.user_id,
                email=principal.email,
                file_id=info.id,
                file_name=upload.file_name,
                file_type=upload.mime_type,
                file_size=len(upload.content),
                drive_link=info.web_view_link,
                icon_link=info.icon_link,
            )
        except Exception as exc:
            logger.error(
                "file_store_failed",
                user_id=principal.user_id,
                file_name=upload.file_name,
                error_type=type(exc).__name__,
                error=str(exc),
            )
            raise
        return info
