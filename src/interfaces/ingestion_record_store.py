"""Abstract base class for the relational ingestion-record store.

Two kinds of rows are kept per ``(user_id, file_id)`` pair:

* an **upload record** (``uploaded_files``): the authoritative "this file is
  visible to the user" flag, soft-deleted via ``is_active``/``deleted_at``;
* an **ingestion record** (``ingestion_records``): the vectorization state
  machine, at most one active and non-deleted row per pair.

No method ever hard-deletes a row.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any

from src.models.ingestion import IngestionRecord, UploadRecord


# Concrete implementation: SqliteIngestionRecordStore (src/providers/records/)
class IIngestionRecordStore(ABC):
    """Contract for persisting ingestion and upload records."""

    # ------------------------------------------------------------------
    # Ingestion records
    # ------------------------------------------------------------------

    @abstractmethod
    async def find_active(self, user_id: str, file_id: str) -> IngestionRecord | None:
        """Return the active, non-deleted ingestion record for the pair, if any."""

    @abstractmethod
    async def get(self, user_id: str, record_id: str) -> IngestionRecord | None:
        """Return the record with *record_id* owned by *user_id*, if any."""

    @abstractmethod
    async def create_pending(
        self,
        user_id: str,
        email: str,
        file_id: str,
        file_name: str,
        file_type: str | None = None,
    ) -> IngestionRecord:
        """Insert a new ``pending`` record.

        Raises
        ------
        src.utils.errors.IngestionConflictError
            If another active record for the pair was inserted concurrently.
        """

    @abstractmethod
    async def reset_to_pending(self, record_id: str) -> IngestionRecord:
        """Move a ``failed`` record back to ``pending`` and clear its error."""

    @abstractmethod
    async def reclaim_stale(self, record_id: str, stale_before: datetime) -> IngestionRecord | None:
        """Move an in-flight record untouched since *stale_before* back to ``pending``.

        The check and the update are one conditional statement, so of two
        concurrent callers at most one gets the record back.

        Returns
        -------
        IngestionRecord or None
            The reclaimed record, or ``None`` when the record is no longer
            ``pending``/``processing`` or was updated after *stale_before*.
        """

    @abstractmethod
    async def mark_processing(self, record_id: str, file_size: int) -> IngestionRecord:
        """Move a record to ``processing`` and store the fetched byte size."""

    @abstractmethod
    async def mark_ingested(
        self,
        record_id: str,
        vector_count: int,
        chunk_count: int,
        metadata: dict[str, Any],
        namespace: str | None = None,
    ) -> IngestionRecord:
        """Move a record to ``ingested`` with its counts and stats.

        Raises
        ------
        ValueError
            If ``vector_count < 0`` or ``chunk_count < vector_count``.
        """

    @abstractmethod
    async def mark_failed(self, record_id: str, message: str) -> IngestionRecord:
        """Move a record to ``failed`` with a non-empty *message*.

        Raises
        ------
        ValueError
            If *message* is empty.
        """

    @abstractmethod
    async def list_for_user(self, user_id: str) -> dict[str, IngestionRecord]:
        """Return active, non-deleted records keyed by ``file_id``."""

    # ------------------------------------------------------------------
    # Upload records
    # ------------------------------------------------------------------

    @abstractmethod
    async def register_upload(
        self,
        user_id: str,
        email: str,
        file_id: str,
        file_name: str,
        file_type: str | None = None,
        file_size: int | None = None,
        drive_link: str | None = None,
        icon_link: str | None = None,
    ) -> UploadRecord:
        """Insert an active upload record for a newly uploaded file."""

    @abstractmethod
    async def find_upload(self, user_id: str, file_id: str) -> UploadRecord | None:
        """Return the most recent upload record for the pair, active or not."""

    @abstractmethod
    async def create_inactive_upload(
        self,
        user_id: str,
        email: str,
        file_id: str,
        file_name: str,
    ) -> UploadRecord:
        """Insert an upload record that is soft-deleted from the start."""

    @abstractmethod
    async def inactive_file_ids(self, user_id: str) -> set[str]:
        """Return the file ids of every inactive upload record of *user_id*."""

    @abstractmethod
    async def soft_delete(self, user_id: str, file_id: str) -> int:
        """Soft-delete the upload record and any active ingestion record.

        Both updates run in one transaction: either both rows change or
        neither does.

        Returns
        -------
        int
            The number of ingestion records moved to ``deleted``.
        """

    @abstractmethod
    async def restore_upload(self, user_id: str, file_id: str) -> int:
        """Reactivate every inactive upload record of the pair in one transaction.

        Ingestion records stay ``deleted``; the file must be ingested again.

        Returns
        -------
        int
            The number of upload records reactivated.
        """
