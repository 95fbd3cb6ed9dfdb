"""FastAPI API routes for driveVector.

Provides REST endpoints for ingestion, Drive file management, search,
schema administration and health.  Service dependencies are resolved from
``app.state`` via FastAPI's ``Depends`` using the ``Annotated`` aliases in
:mod:`src.api.dependencies`.

# ─── API ROUTE MAP ────────────────────────────────────────────────────
#
# Endpoint                        Method  Description
# ─────────────────────────────────────────────────────────────────────
# /api/v1/ingestions              POST    Ingest one Drive file by id
# /api/v1/ingestions/{id}         GET     Ingestion record status + stats
# /api/v1/files                   GET     List the app folder (minus deleted)
# /api/v1/files/upload            POST    Upload files to Drive, then ingest
# /api/v1/files/metadata          GET     Live ingestion records by file id
# /api/v1/files/{file_id}         DELETE  Soft delete + vector cleanup
# /api/v1/files/{file_id}/restore POST    Undo a soft delete (no vectors)
# /api/v1/search                  POST    Semantic search of own chunks
# /api/v1/admin/schema            GET     Table/column introspection
# /api/v1/admin/migrate           POST    Re-run the soft-delete migration
# /api/v1/health                  GET     Health check + provider status
#
# Every route except /health requires a session token (bearer header or
# ``session`` cookie).  Application errors are converted to ErrorResponse
# bodies by the handlers in middleware.py.
# ──────────────────────────────────────────────────────────────────────
"""

from __future__ import annotations

import asyncio
import uuid
from typing import Any

import structlog
from fastapi import APIRouter, File, Request, UploadFile

from src.api.dependencies import (
    DatabaseDep,
    FileServiceDep,
    IngestionServiceDep,
    PrincipalDep,
    SearchServiceDep,
)
from src.api.schemas import (
    DeleteResponse,
    ErrorResponse,
    FileEntry,
    FileListResponse,
    FileMetadataResponse,
    HealthResponse,
    IngestionRecordEntry,
    IngestionStatusResponse,
    IngestRequest,
    IngestResponse,
    MigrateResponse,
    RestoreResponse,
    SchemaResponse,
    SearchRequest,
    SearchResponse,
    SearchResultEntry,
    UploadResponse,
    UploadResultEntry,
)
from src.models.ingestion import FileUpload
from src.utils.errors import ValidationError
from src.utils.logging import get_logger

_logger: structlog.BoundLogger = get_logger(__name__)

router = APIRouter(prefix="/api/v1")

_APP_VERSION = "0.1.0"
_DEFAULT_UPLOAD_MIME = "application/octet-stream"

_ERRORS: dict[int | str, dict[str, Any]] = {
    400: {"model": ErrorResponse},
    401: {"model": ErrorResponse},
}


# ---------------------------------------------------------------------------
# Ingestion
# ---------------------------------------------------------------------------


@router.post(
    "/ingestions",
    response_model=IngestResponse,
    responses={**_ERRORS, 409: {"model": ErrorResponse}},
    summary="Ingest a Drive file into the vector index",
)
async def create_ingestion(
    body: IngestRequest,
    principal: PrincipalDep,
    ingestion_service: IngestionServiceDep,
) -> IngestResponse:
    """Fetch, chunk, embed and index one file.  Re-ingesting is a no-op."""
    result = await ingestion_service.ingest(principal, body.file_id, body.file_name)
    record = result.record
    return IngestResponse(
        ingestion_id=record.id,
        file_id=record.file_id,
        status=record.status.value,
        already_ingested=result.already_ingested,
        vector_count=record.vector_count,
        chunk_count=record.chunk_count,
        stats=result.stats,
    )


@router.get(
    "/ingestions/{ingestion_id}",
    response_model=IngestionStatusResponse,
    responses={**_ERRORS, 404: {"model": ErrorResponse}},
    summary="Get an ingestion record",
)
async def get_ingestion(
    ingestion_id: str,
    principal: PrincipalDep,
    ingestion_service: IngestionServiceDep,
) -> IngestionStatusResponse:
    """Return the status and stats of one of the caller's ingestion records."""
    try:
        uuid.UUID(ingestion_id)
    except ValueError as exc:
        raise ValidationError(message=f"Invalid ingestion id: {ingestion_id}") from exc

    record = await ingestion_service.get_record(principal, ingestion_id)
    return IngestionStatusResponse(
        ingestion=IngestionRecordEntry.from_record(record),
        stats=dict(record.metadata),
    )


# ---------------------------------------------------------------------------
# Files
# ---------------------------------------------------------------------------


@router.get(
    "/files",
    response_model=FileListResponse,
    responses=_ERRORS,
    summary="List files in the app's Drive folder",
)
async def list_files(principal: PrincipalDep, file_service: FileServiceDep) -> FileListResponse:
    files = await file_service.list_files(principal)
    return FileListResponse(files=[FileEntry.from_info(f) for f in files])


@router.post(
    "/files/upload",
    response_model=UploadResponse,
    responses=_ERRORS,
    summary="Upload files to Drive and ingest them",
)
async def upload_files(
    principal: PrincipalDep,
    file_service: FileServiceDep,
    files: list[UploadFile] = File(...),  # noqa: B008
) -> UploadResponse:
    """Validate every file, upload to the Drive folder, then ingest concurrently."""
    uploads: list[FileUpload] = []
    for upload in files:
        content = await upload.read()
        uploads.append(
            FileUpload(
                file_name=upload.filename or "upload",
                mime_type=upload.content_type or _DEFAULT_UPLOAD_MIME,
                content=content,
            )
        )

    outcomes = await file_service.upload(principal, uploads)
    return UploadResponse(
        success=all(o.success for o in outcomes),
        results=[UploadResultEntry.from_outcome(o) for o in outcomes],
    )


@router.get(
    "/files/metadata",
    response_model=FileMetadataResponse,
    responses=_ERRORS,
    summary="Live ingestion records keyed by file id",
)
async def file_metadata(
    principal: PrincipalDep,
    file_service: FileServiceDep,
) -> FileMetadataResponse:
    records = await file_service.file_metadata(principal)
    return FileMetadataResponse(
        files={file_id: IngestionRecordEntry.from_record(r) for file_id, r in records.items()},
    )


@router.delete(
    "/files/{file_id}",
    response_model=DeleteResponse,
    responses={**_ERRORS, 404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
    summary="Soft-delete a file and remove its vectors",
)
async def delete_file(
    file_id: str,
    principal: PrincipalDep,
    file_service: FileServiceDep,
) -> DeleteResponse:
    """Hide the file from listings and drop its vectors.  The Drive file is kept."""
    result = await file_service.delete(principal, file_id)
    return DeleteResponse.from_result(result)


@router.post(
    "/files/{file_id}/restore",
    response_model=RestoreResponse,
    responses={**_ERRORS, 404: {"model": ErrorResponse}},
    summary="Undo a soft delete",
)
async def restore_file(
    file_id: str,
    principal: PrincipalDep,
    file_service: FileServiceDep,
) -> RestoreResponse:
    """Show a soft-deleted file in listings again.  Its vectors are not restored."""
    upload = await file_service.restore(principal, file_id)
    return RestoreResponse.from_upload(upload)


# ---------------------------------------------------------------------------
# Search
# ---------------------------------------------------------------------------


@router.post(
    "/search",
    response_model=SearchResponse,
    responses=_ERRORS,
    summary="Semantic search over the caller's ingested files",
)
async def search(
    body: SearchRequest,
    principal: PrincipalDep,
    search_service: SearchServiceDep,
) -> SearchResponse:
    hits = await search_service.search(principal, body.query, body.top_k)
    return SearchResponse(
        query=body.query,
        results=[SearchResultEntry.from_hit(h) for h in hits],
    )


# ---------------------------------------------------------------------------
# Admin
# ---------------------------------------------------------------------------


@router.get(
    "/admin/schema",
    response_model=SchemaResponse,
    responses=_ERRORS,
    summary="Describe the relational schema",
)
async def admin_schema(_principal: PrincipalDep, database: DatabaseDep) -> SchemaResponse:
    return SchemaResponse(tables=await database.schema())


@router.post(
    "/admin/migrate",
    response_model=MigrateResponse,
    responses=_ERRORS,
    summary="Re-run the idempotent soft-delete migration",
)
async def admin_migrate(_principal: PrincipalDep, database: DatabaseDep) -> MigrateResponse:
    results = await database.migrate()
    _logger.info("admin_migration_requested", tables=len(results))
    return MigrateResponse(results=[r.model_dump() for r in results])


# ---------------------------------------------------------------------------
# System endpoints
# ---------------------------------------------------------------------------


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Application health check",
)
async def health_check(request: Request) -> HealthResponse:
    """Return application health, version, and provider availability."""
    providers: dict[str, Any] = {}
    if hasattr(request.app.state, "provider_registry"):
        providers = dict(request.app.state.provider_registry)

    # Actively check the vector index; Pinecone's check is a network call.
    vector_store = getattr(request.app.state, "vector_store", None)
    if vector_store is not None:
        providers["vector_store"] = await asyncio.to_thread(vector_store.is_available)

    database = getattr(request.app.state, "database", None)
    providers["database"] = bool(database is not None and database.initialized)

    all_ok = all(
        providers.get(key, False) for key in ("embedding", "vector_store", "database")
    )
    return HealthResponse(
        status="healthy" if all_ok else "degraded",
        version=_APP_VERSION,
        providers=providers,
    )
