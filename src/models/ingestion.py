"""Ingestion pipeline data models for driveVector.

Defines Pydantic v2 models for the relational ingestion records, the
intermediate documents and chunks produced while processing a file, the
vectors written to the index, and the results returned to API callers.
All models use frozen config; state changes go through the record store,
which returns fresh instances.

Lifecycle of one file:

    SourceFile (bytes from Drive)
      -> SourceDocument[]   (extractors.py, one per PDF page or one for text)
      -> ChunkingResult     (chunker.py, capped at max_chunks)
      -> VectorRecord[]     (ingestion_service.py, one per non-empty chunk)
      -> IngestionRecord    (status = ingested, with stats in ``metadata``)
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


# ---------------------------------------------------------------------------
# IngestionStatus: the record state machine.
# ---------------------------------------------------------------------------
class IngestionStatus(str, Enum):  # noqa: UP042
    """Lifecycle states of an :class:`IngestionRecord`.

        pending -> processing -> ingested
                              -> failed -> pending (retry reuses the record)
        any active state      -> deleted (soft delete)
    """

    PENDING = "pending"
    PROCESSING = "processing"
    INGESTED = "ingested"
    FAILED = "failed"
    DELETED = "deleted"


# ---------------------------------------------------------------------------
# Relational records
# ---------------------------------------------------------------------------
class IngestionRecord(BaseModel):
    """One row of ``ingestion_records``: the state of one file's vectorization."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(description="UUID4 identifier of the record.")
    user_id: str
    email: str
    file_id: str = Field(description="Provider file id (Drive file id).")
    file_name: str
    file_type: str | None = None
    file_size: int | None = Field(default=None, ge=0)
    status: IngestionStatus = IngestionStatus.PENDING
    vector_count: int = Field(default=0, ge=0)
    chunk_count: int = Field(default=0, ge=0)
    ingestion_date: datetime | None = None
    created_at: datetime
    updated_at: datetime
    error_message: str | None = None
    # Stats blob written on success (document count, chunk sizes, etc.).
    metadata: dict[str, Any] = Field(default_factory=dict)
    vector_namespace: str | None = None
    is_active: bool = True
    deleted_at: datetime | None = None


class UploadRecord(BaseModel):
    """One row of ``uploaded_files``: the authoritative "file is visible" record."""

    model_config = ConfigDict(frozen=True)

    id: str
    user_id: str
    email: str
    file_id: str
    file_name: str
    file_type: str | None = None
    file_size: int | None = None
    upload_status: str = "uploaded"
    upload_date: datetime | None = None
    drive_link: str | None = None
    icon_link: str | None = None
    error_message: str | None = None
    is_active: bool = True
    deleted_at: datetime | None = None
    created_at: datetime
    updated_at: datetime


class MigrationResult(BaseModel):
    """Outcome of the additive soft-delete migration for one table."""

    model_config = ConfigDict(frozen=True)

    table: str
    columns_added: list[str] = Field(default_factory=list)
    rows_backfilled: int = 0


# ---------------------------------------------------------------------------
# Source files and intermediate pipeline values
# ---------------------------------------------------------------------------
class SourceFile(BaseModel):
    """A file fetched from the source-file provider, bytes included."""

    model_config = ConfigDict(frozen=True)

    file_id: str
    name: str
    mime_type: str | None = None
    size: int = Field(default=0, ge=0)
    content: bytes = b""


class SourceFileInfo(BaseModel):
    """Listing entry for a file in the provider folder (no content)."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    mime_type: str | None = None
    size: int | None = None
    created_time: str | None = None
    modified_time: str | None = None
    web_view_link: str | None = None
    icon_link: str | None = None


class FileUpload(BaseModel):
    """A single file received in a multipart upload request."""

    model_config = ConfigDict(frozen=True)

    file_name: str
    mime_type: str
    content: bytes


class IngestionItem(BaseModel):
    """One file to ingest.  ``content`` is set when the bytes are already in hand."""

    model_config = ConfigDict(frozen=True)

    file_id: str
    file_name: str
    content: bytes | None = None
    mime_type: str | None = None


class SourceDocument(BaseModel):
    """A unit of extracted text (a PDF page, or a whole text file)."""

    model_config = ConfigDict(frozen=True)

    text: str
    metadata: dict[str, Any] = Field(default_factory=dict)


class Chunk(BaseModel):
    """A chunk of normalized text with its position in the file."""

    model_config = ConfigDict(frozen=True)

    text: str
    sequence_index: int = Field(ge=0)
    source_metadata: dict[str, Any] = Field(default_factory=dict)


class ChunkingResult(BaseModel):
    """Chunks kept after the ceiling, plus how many were produced before it."""

    model_config = ConfigDict(frozen=True)

    chunks: list[Chunk] = Field(default_factory=list)
    total_produced: int = Field(default=0, ge=0)
    truncated: bool = False


class VectorRecord(BaseModel):
    """A vector ready for upsert.  ``id`` is ``"{file_id}-{sequence_index}"``."""

    model_config = ConfigDict(frozen=True)

    id: str
    values: list[float]
    metadata: dict[str, Any] = Field(default_factory=dict)


class VectorMatch(BaseModel):
    """A single similarity-search hit."""

    model_config = ConfigDict(frozen=True)

    id: str
    score: float
    metadata: dict[str, Any] = Field(default_factory=dict)


# ---------------------------------------------------------------------------
# Results returned to callers
# ---------------------------------------------------------------------------
class IngestionResult(BaseModel):
    """Return value of :meth:`IngestionService.ingest`."""

    model_config = ConfigDict(frozen=True)

    record: IngestionRecord
    # True when the file was already ingested and nothing was re-run.
    already_ingested: bool = False

    @property
    def stats(self) -> dict[str, Any]:
        return dict(self.record.metadata)


class FileIngestionOutcome(BaseModel):
    """Per-file result of a batch upload or batch ingestion."""

    model_config = ConfigDict(frozen=True)

    file_name: str
    file_id: str | None = None
    success: bool
    record: IngestionRecord | None = None
    already_ingested: bool = False
    error_type: str | None = None
    error: str | None = None


class DeletionResult(BaseModel):
    """Outcome of :meth:`FileService.delete`."""

    model_config = ConfigDict(frozen=True)

    file_id: str
    deleted: bool = True
    # True when the file had no upload record and one was created inactive.
    record_created: bool = False
    vectors_deleted: int | None = None
    warnings: list[str] = Field(default_factory=list)


class SearchHit(BaseModel):
    """A chunk returned by the search service."""

    model_config = ConfigDict(frozen=True)

    id: str
    score: float
    file_id: str | None = None
    file_name: str | None = None
    chunk_index: int | None = None
    text: str = ""
