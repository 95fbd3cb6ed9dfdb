"""SQLite-backed ingestion and upload record store.

Implements :class:`IIngestionRecordStore` on top of the shared
:class:`~src.providers.records.database.Database`.  Uses ``aiosqlite`` for
async I/O; every state change returns a freshly read record.
"""

from __future__ import annotations

import json
import uuid
from datetime import datetime, timezone
from typing import Any

import aiosqlite
import structlog

from src.interfaces.ingestion_record_store import IIngestionRecordStore
from src.models.ingestion import IngestionRecord, IngestionStatus, UploadRecord
from src.providers.records.database import Database
from src.utils.errors import DatabaseError, IngestionConflictError, RecordNotFoundError

logger = structlog.get_logger(logger_name=__name__)

_RECORD_COLUMNS = (
    "id, user_id, email_id, file_id, file_name, file_type, file_size, status, "
    "vector_count, chunk_count, ingestion_date, created_at, updated_at, "
    "error_message, metadata, vector_namespace, is_active, deleted_at"
)

_UPLOAD_COLUMNS = (
    "id, user_id, email_id, file_id, file_name, file_type, file_size, upload_status, "
    "upload_date, drive_link, icon_link, error_message, is_active, deleted_at, "
    "created_at, updated_at"
)

_ACTIVE_RECORD_WHERE = "is_active = 1 AND status != 'deleted'"

_INSERT_RECORD_SQL = """\
INSERT INTO ingestion_records (
    id, user_id, email_id, file_id, file_name, file_type, status,
    vector_count, chunk_count, created_at, updated_at, is_active
) VALUES (?, ?, ?, ?, ?, ?, 'pending', 0, 0, ?, ?, 1);
"""

_INSERT_UPLOAD_SQL = """\
INSERT INTO uploaded_files (
    id, user_id, email_id, file_id, file_name, file_type, file_size,
    upload_status, upload_date, drive_link, icon_link,
    created_at, updated_at, is_active, deleted_at
) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?);
"""


def _now() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="microseconds")


def _row_to_record(row: aiosqlite.Row) -> IngestionRecord:
    raw_metadata = row["metadata"]
    return IngestionRecord(
        id=row["id"],
        user_id=row["user_id"],
        email=row["email_id"] or "",
        file_id=row["file_id"],
        file_name=row["file_name"],
        file_type=row["file_type"],
        file_size=row["file_size"],
        status=IngestionStatus(row["status"]),
        vector_count=row["vector_count"] or 0,
        chunk_count=row["chunk_count"] or 0,
        ingestion_date=row["ingestion_date"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
        error_message=row["error_message"],
        metadata=json.loads(raw_metadata) if raw_metadata else {},
        vector_namespace=row["vector_namespace"],
        is_active=bool(row["is_active"]),
        deleted_at=row["deleted_at"],
    )


def _row_to_upload(row: aiosqlite.Row) -> UploadRecord:
    return UploadRecord(
        id=row["id"],
        user_id=row["user_id"],
        email=row["email_id"] or "",
        file_id=row["file_id"],
        file_name=row["file_name"],
        file_type=row["file_type"],
        file_size=row["file_size"],
        upload_status=row["upload_status"],
        upload_date=row["upload_date"],
        drive_link=row["drive_link"],
        icon_link=row["icon_link"],
        error_message=row["error_message"],
        is_active=bool(row["is_active"]),
        deleted_at=row["deleted_at"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


class SqliteIngestionRecordStore(IIngestionRecordStore):
    """Ingestion-record persistence in the shared SQLite database."""

    def __init__(self, database: Database) -> None:
        self._db = database

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    async def _fetch_record(self, db: aiosqlite.Connection, record_id: str) -> IngestionRecord:
        cursor = await db.execute(
            f"SELECT {_RECORD_COLUMNS} FROM ingestion_records WHERE id = ?",
            (record_id,),
        )
        row = await cursor.fetchone()
        if row is None:
            raise RecordNotFoundError(message=f"Ingestion record not found: {record_id}")
        return _row_to_record(row)

    async def _update_record(
        self,
        record_id: str,
        assignments: str,
        params: tuple[Any, ...],
    ) -> IngestionRecord:
        """Apply ``SET {assignments}, updated_at = now`` and return the fresh row."""
        try:
            async with self._db.connect() as db:
                cursor = await db.execute(
                    f"UPDATE ingestion_records SET {assignments}, updated_at = ? WHERE id = ?",
                    (*params, _now(), record_id),
                )
                if cursor.rowcount == 0:
                    raise RecordNotFoundError(message=f"Ingestion record not found: {record_id}")
                return await self._fetch_record(db, record_id)
        except aiosqlite.Error as exc:
            raise DatabaseError(
                message=f"Failed to update ingestion record {record_id}: {exc}",
                provider_name="sqlite",
            ) from exc

    # ------------------------------------------------------------------
    # Ingestion records
    # ------------------------------------------------------------------

    async def find_active(self, user_id: str, file_id: str) -> IngestionRecord | None:
        async with self._db.connect() as db:
            cursor = await db.execute(
                f"SELECT {_RECORD_COLUMNS} FROM ingestion_records "
                f"WHERE user_id = ? AND file_id = ? AND {_ACTIVE_RECORD_WHERE} "
                "ORDER BY created_at DESC LIMIT 1",
                (user_id, file_id),
            )
            row = await cursor.fetchone()
        return _row_to_record(row) if row else None

    async def get(self, user_id: str, record_id: str) -> IngestionRecord | None:
        async with self._db.connect() as db:
            cursor = await db.execute(
                f"SELECT {_RECORD_COLUMNS} FROM ingestion_records WHERE id = ? AND user_id = ?",
                (record_id, user_id),
            )
            row = await cursor.fetchone()
        return _row_to_record(row) if row else None

    async def create_pending(
        self,
        user_id: str,
        email: str,
        file_id: str,
        file_name: str,
        file_type: str | None = None,
    ) -> IngestionRecord:
        record_id = str(uuid.uuid4())
        now = _now()
        try:
            async with self._db.connect() as db:
                await db.execute(
                    _INSERT_RECORD_SQL,
                    (record_id, user_id, email, file_id, file_name, file_type, now, now),
                )
                record = await self._fetch_record(db, record_id)
        except aiosqlite.IntegrityError as exc:
            # The partial unique index rejected a second live record.
            raise IngestionConflictError(
                message=f"An active ingestion record already exists for file {file_id}",
            ) from exc

        logger.info(
            "ingestion_record_created",
            record_id=record_id,
            user_id=user_id,
            file_id=file_id,
        )
        return record

    async def reset_to_pending(self, record_id: str) -> IngestionRecord:
        return await self._update_record(
            record_id,
            "status = 'pending', error_message = NULL",
            (),
        )

    async def reclaim_stale(self, record_id: str, stale_before: datetime) -> IngestionRecord | None:
        cutoff = stale_before.astimezone(timezone.utc).isoformat(timespec="microseconds")
        try:
            async with self._db.connect() as db:
                cursor = await db.execute(
                    "UPDATE ingestion_records "
                    "SET status = 'pending', error_message = NULL, updated_at = ? "
                    "WHERE id = ? AND status IN ('pending', 'processing') "
                    "AND is_active = 1 AND updated_at < ?",
                    (_now(), record_id, cutoff),
                )
                if cursor.rowcount == 0:
                    return None
                record = await self._fetch_record(db, record_id)
        except aiosqlite.Error as exc:
            raise DatabaseError(
                message=f"Failed to reclaim ingestion record {record_id}: {exc}",
                provider_name="sqlite",
            ) from exc

        logger.info("ingestion_record_reclaimed", record_id=record_id, file_id=record.file_id)
        return record

    async def mark_processing(self, record_id: str, file_size: int) -> IngestionRecord:
        return await self._update_record(
            record_id,
            "status = 'processing', file_size = ?",
            (file_size,),
        )

    async def mark_ingested(
        self,
        record_id: str,
        vector_count: int,
        chunk_count: int,
        metadata: dict[str, Any],
        namespace: str | None = None,
    ) -> IngestionRecord:
        if vector_count < 0:
            msg = f"vector_count must be >= 0, got {vector_count}"
            raise ValueError(msg)
        if chunk_count < vector_count:
            msg = f"chunk_count ({chunk_count}) must be >= vector_count ({vector_count})"
            raise ValueError(msg)

        return await self._update_record(
            record_id,
            "status = 'ingested', vector_count = ?, chunk_count = ?, "
            "ingestion_date = ?, metadata = ?, vector_namespace = ?, error_message = NULL",
            (vector_count, chunk_count, _now(), json.dumps(metadata), namespace),
        )

    async def mark_failed(self, record_id: str, message: str) -> IngestionRecord:
        if not message or not message.strip():
            msg = "A failed ingestion record requires a non-empty error message"
            raise ValueError(msg)
        return await self._update_record(
            record_id,
            "status = 'failed', error_message = ?",
            (message,),
        )

    async def list_for_user(self, user_id: str) -> dict[str, IngestionRecord]:
        async with self._db.connect() as db:
            cursor = await db.execute(
                f"SELECT {_RECORD_COLUMNS} FROM ingestion_records "
                f"WHERE user_id = ? AND {_ACTIVE_RECORD_WHERE} ORDER BY created_at DESC",
                (user_id,),
            )
            rows = await cursor.fetchall()
        records: dict[str, IngestionRecord] = {}
        for row in rows:
            record = _row_to_record(row)
            records.setdefault(record.file_id, record)
        return records

    # ------------------------------------------------------------------
    # Upload records
    # ------------------------------------------------------------------

    async def _insert_upload(
        self,
        user_id: str,
        email: str,
        file_id: str,
        file_name: str,
        file_type: str | None,
        file_size: int | None,
        drive_link: str | None,
        icon_link: str | None,
        active: bool,
    ) -> UploadRecord:
        upload_id = str(uuid.uuid4())
        now = _now()
        async with self._db.connect() as db:
            await db.execute(
                _INSERT_UPLOAD_SQL,
                (
                    upload_id,
                    user_id,
                    email,
                    file_id,
                    file_name,
                    file_type,
                    file_size,
                    "uploaded" if active else "deleted",
                    now,
                    drive_link,
                    icon_link,
                    now,
                    now,
                    1 if active else 0,
                    None if active else now,
                ),
            )
            cursor = await db.execute(
                f"SELECT {_UPLOAD_COLUMNS} FROM uploaded_files WHERE id = ?",
                (upload_id,),
            )
            row = await cursor.fetchone()
        return _row_to_upload(row)

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
        upload = await self._insert_upload(
            user_id, email, file_id, file_name, file_type, file_size, drive_link, icon_link, True
        )
        logger.info("upload_registered", user_id=user_id, file_id=file_id, file_name=file_name)
        return upload

    async def find_upload(self, user_id: str, file_id: str) -> UploadRecord | None:
        async with self._db.connect() as db:
            cursor = await db.execute(
                f"SELECT {_UPLOAD_COLUMNS} FROM uploaded_files "
                "WHERE user_id = ? AND file_id = ? "
                "ORDER BY is_active DESC, created_at DESC LIMIT 1",
                (user_id, file_id),
            )
            row = await cursor.fetchone()
        return _row_to_upload(row) if row else None

    async def create_inactive_upload(
        self,
        user_id: str,
        email: str,
        file_id: str,
        file_name: str,
    ) -> UploadRecord:
        upload = await self._insert_upload(
            user_id, email, file_id, file_name, None, None, None, None, False
        )
        logger.info("inactive_upload_created", user_id=user_id, file_id=file_id)
        return upload

    async def inactive_file_ids(self, user_id: str) -> set[str]:
        async with self._db.connect() as db:
            cursor = await db.execute(
                "SELECT DISTINCT file_id FROM uploaded_files WHERE user_id = ? AND is_active = 0",
                (user_id,),
            )
            rows = await cursor.fetchall()
        return {row["file_id"] for row in rows}

    async def soft_delete(self, user_id: str, file_id: str) -> int:
        now = _now()
        try:
            async with self._db.transaction() as db:
                await db.execute(
                    "UPDATE uploaded_files "
                    "SET is_active = 0, deleted_at = ?, upload_status = 'deleted', updated_at = ? "
                    "WHERE user_id = ? AND file_id = ? AND is_active = 1",
                    (now, now, user_id, file_id),
                )
                cursor = await db.execute(
                    "UPDATE ingestion_records "
                    "SET status = 'deleted', is_active = 0, deleted_at = ?, updated_at = ? "
                    f"WHERE user_id = ? AND file_id = ? AND {_ACTIVE_RECORD_WHERE}",
                    (now, now, user_id, file_id),
                )
                records_deleted = cursor.rowcount if cursor.rowcount and cursor.rowcount > 0 else 0
        except aiosqlite.Error as exc:
            logger.error("soft_delete_rolled_back", user_id=user_id, file_id=file_id, error=str(exc))
            raise DatabaseError(
                message=f"Soft delete failed for file {file_id}: {exc}",
                provider_name="sqlite",
            ) from exc

        logger.info(
            "records_soft_deleted",
            user_id=user_id,
            file_id=file_id,
            ingestion_records=records_deleted,
        )
        return records_deleted

    async def restore_upload(self, user_id: str, file_id: str) -> int:
        now = _now()
        try:
            async with self._db.transaction() as db:
                cursor = await db.execute(
                    "UPDATE uploaded_files "
                    "SET is_active = 1, deleted_at = NULL, upload_status = 'uploaded', updated_at = ? "
                    "WHERE user_id = ? AND file_id = ? AND is_active = 0",
                    (now, user_id, file_id),
                )
                restored = cursor.rowcount if cursor.rowcount and cursor.rowcount > 0 else 0
        except aiosqlite.Error as exc:
            raise DatabaseError(
                message=f"Restore failed for file {file_id}: {exc}",
                provider_name="sqlite",
            ) from exc

        logger.info("upload_restored", user_id=user_id, file_id=file_id, upload_records=restored)
        return restored
