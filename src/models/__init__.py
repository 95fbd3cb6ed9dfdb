"""driveVector domain models, re-exported from their submodules.

    - ingestion.py  - records, pipeline values and results
    - principal.py  - the authenticated caller
"""

from __future__ import annotations

from src.models.ingestion import (
    Chunk,
    ChunkingResult,
    DeletionResult,
    FileIngestionOutcome,
    FileUpload,
    IngestionItem,
    IngestionRecord,
    IngestionResult,
    IngestionStatus,
    MigrationResult,
    SearchHit,
    SourceDocument,
    SourceFile,
    SourceFileInfo,
    UploadRecord,
    VectorMatch,
    VectorRecord,
)
from src.models.principal import AuthenticatedPrincipal

__all__ = [
    "AuthenticatedPrincipal",
    "Chunk",
    "ChunkingResult",
    "DeletionResult",
    "FileIngestionOutcome",
    "FileUpload",
    "IngestionItem",
    "IngestionRecord",
    "IngestionResult",
    "IngestionStatus",
    "MigrationResult",
    "SearchHit",
    "SourceDocument",
    "SourceFile",
    "SourceFileInfo",
    "UploadRecord",
    "VectorMatch",
    "VectorRecord",
]
