"""Pydantic request/response schemas for the driveVector API.

Defines the public contract for all REST endpoints: ingestion, file
management, search, admin and health.

# ─── HOW SCHEMAS WORK ─────────────────────────────────────────────────
#
# Request and response bodies use camelCase on the wire (``fileId``,
# ``topK``) via an alias generator; Python code uses snake_case.  FastAPI
# serializes responses by alias, and ``populate_by_name`` lets handlers
# build models with snake_case keywords.
#
# Every response is an envelope with a ``success`` flag.  Errors use
# :class:`ErrorResponse` and carry the exception class name and message.
# ──────────────────────────────────────────────────────────────────────
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from src.models.ingestion import (
    DeletionResult,
    FileIngestionOutcome,
    IngestionRecord,
    SearchHit,
    SourceFileInfo,
    UploadRecord,
)


class _ApiModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ---------------------------------------------------------------------------
# Requests
# ---------------------------------------------------------------------------


class IngestRequest(_ApiModel):
    """Ingest one Drive file by id."""

    file_id: str = Field(min_length=1)
    file_name: str = Field(min_length=1)


class SearchRequest(_ApiModel):
    """Semantic search over the caller's ingested chunks."""

    query: str = Field(min_length=1)
    top_k: int | None = Field(default=None, ge=1, le=50)


# ---------------------------------------------------------------------------
# Responses
# ---------------------------------------------------------------------------


class ErrorResponse(_ApiModel):
    """Standard error response body."""

    success: bool = False
    error: str
    detail: str | None = None


class IngestionRecordEntry(_ApiModel):
    """Public view of an ingestion record."""

    ingestion_id: str
    file_id: str
    file_name: str
    file_type: str | None = None
    file_size: int | None = None
    status: str
    vector_count: int = 0
    chunk_count: int = 0
    ingestion_date: datetime | None = None
    error_message: str | None = None
    updated_at: datetime | None = None

    @classmethod
    def from_record(cls, record: IngestionRecord) -> IngestionRecordEntry:
        return cls(
            ingestion_id=record.id,
            file_id=record.file_id,
            file_name=record.file_name,
            file_type=record.file_type,
            file_size=record.file_size,
            status=record.status.value,
            vector_count=record.vector_count,
            chunk_count=record.chunk_count,
            ingestion_date=record.ingestion_date,
            error_message=record.error_message,
            updated_at=record.updated_at,
        )


class IngestResponse(_ApiModel):
    """Result of ``POST /ingestions``."""

    success: bool = True
    ingestion_id: str
    file_id: str
    status: str
    already_ingested: bool = False
    vector_count: int = 0
    chunk_count: int = 0
    stats: dict[str, Any] = Field(default_factory=dict)


class IngestionStatusResponse(_ApiModel):
    """Result of ``GET /ingestions/{id}``."""

    success: bool = True
    ingestion: IngestionRecordEntry
    stats: dict[str, Any] = Field(default_factory=dict)


class FileEntry(_ApiModel):
    """A file in the caller's Drive folder."""

    id: str
    name: str
    mime_type: str | None = None
    size: int | None = None
    created_time: str | None = None
    modified_time: str | None = None
    web_view_link: str | None = None
    icon_link: str | None = None

    @classmethod
    def from_info(cls, info: SourceFileInfo) -> FileEntry:
        return cls(**info.model_dump())


class FileListResponse(_ApiModel):
    """Result of ``GET /files``."""

    success: bool = True
    files: list[FileEntry] = Field(default_factory=list)


class FileMetadataResponse(_ApiModel):
    """Result of ``GET /files/metadata``: live ingestion records keyed by file id."""

    success: bool = True
    files: dict[str, IngestionRecordEntry] = Field(default_factory=dict)


class UploadResultEntry(_ApiModel):
    """Per-file outcome of an upload."""

    file_name: str
    file_id: str | None = None
    success: bool
    ingestion_id: str | None = None
    status: str | None = None
    already_ingested: bool = False
    vector_count: int = 0
    error_type: str | None = None
    error: str | None = None

    @classmethod
    def from_outcome(cls, outcome: FileIngestionOutcome) -> UploadResultEntry:
        record = outcome.record
        return cls(
            file_name=outcome.file_name,
            file_id=outcome.file_id,
            success=outcome.success,
            ingestion_id=record.id if record else None,
            status=record.status.value if record else None,
            already_ingested=outcome.already_ingested,
            vector_count=record.vector_count if record else 0,
            error_type=outcome.error_type,
            error=outcome.error,
        )


class UploadResponse(_ApiModel):
    """Result of ``POST /files/upload``.  ``success`` is true only if every file succeeded."""

    success: bool
    results: list[UploadResultEntry] = Field(default_factory=list)


class DeleteResponse(_ApiModel):
    """Result of ``DELETE /files/{file_id}``."""

    success: bool = True
    file_id: str
    record_created: bool = False
    vectors_deleted: int | None = None
    warnings: list[str] = Field(default_factory=list)

    @classmethod
    def from_result(cls, result: DeletionResult) -> DeleteResponse:
        return cls(
            success=result.deleted,
            file_id=result.file_id,
            record_created=result.record_created,
            vectors_deleted=result.vectors_deleted,
            warnings=list(result.warnings),
        )


class RestoreResponse(_ApiModel):
    """Result of ``POST /files/{file_id}/restore``."""

    success: bool = True
    file_id: str
    file_name: str
    restored_at: datetime
    # Vectors are not restored; the file needs a new ingestion.
    needs_ingestion: bool = True

    @classmethod
    def from_upload(cls, upload: UploadRecord) -> RestoreResponse:
        return cls(file_id=upload.file_id, file_name=upload.file_name, restored_at=upload.updated_at)


class SearchResultEntry(_ApiModel):
    id: str
    score: float
    file_id: str | None = None
    file_name: str | None = None
    chunk_index: int | None = None
    text: str = ""

    @classmethod
    def from_hit(cls, hit: SearchHit) -> SearchResultEntry:
        return cls(**hit.model_dump())


class SearchResponse(_ApiModel):
    """Result of ``POST /search``."""

    success: bool = True
    query: str
    results: list[SearchResultEntry] = Field(default_factory=list)


class SchemaResponse(_ApiModel):
    """Column layout of every table, for ``GET /admin/schema``."""

    success: bool = True
    tables: dict[str, list[dict[str, Any]]] = Field(default_factory=dict)


class MigrateResponse(_ApiModel):
    """Per-table outcome of ``POST /admin/migrate``."""

    success: bool = True
    results: list[dict[str, Any]] = Field(default_factory=list)


class HealthResponse(_ApiModel):
    """Application health check response."""

    status: str
    version: str
    providers: dict[str, Any]
