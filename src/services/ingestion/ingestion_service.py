"""Orchestrator for the document ingestion pipeline.

Pipeline stages: **claim -> fetch -> extract -> normalize/chunk -> embed -> upsert -> finalize**.

The :class:`IngestionService` implements the **Orchestrator pattern**: it
coordinates the record store, the source-file provider, the chunker, the
embedding provider and the vector store without any of them knowing about
each other.  The relational record is the state machine:

    (none) --create--> pending --fetch ok--> processing --all ok--> ingested
                          ^                      |
                          |                      +--any error--> failed
                          +----- retry of a failed record -------+

Idempotency is enforced on ``(user_id, file_id)``: an already ingested file
is returned untouched, and a file whose ingestion is still in flight is
rejected with :class:`IngestionConflictError`.  An in-flight record that
has not been touched for ``stale_after_seconds`` (a crashed worker, or a
``failed`` write that itself failed) is reclaimed and run again.

All dependencies are injected via constructor, so providers can be swapped
(e.g. ChromaDB -> Pinecone) without changing this class.
"""

from __future__ import annotations

import asyncio
import math
import time
from collections.abc import Sequence
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING, Any

import structlog

from src.models.ingestion import (
    Chunk,
    ChunkingResult,
    FileIngestionOutcome,
    IngestionItem,
    IngestionRecord,
    IngestionResult,
    IngestionStatus,
    SourceDocument,
    VectorRecord,
)
from src.services.ingestion.chunker import TextChunker
from src.services.ingestion.extractors import extract_documents
from src.utils.errors import IngestionConflictError, RecordNotFoundError
from src.utils.text_normalizer import clean_for_embedding, normalize

if TYPE_CHECKING:
    from src.interfaces.embedding_provider import IEmbeddingProvider
    from src.interfaces.ingestion_record_store import IIngestionRecordStore
    from src.interfaces.source_file_provider import ISourceFileProvider
    from src.interfaces.vector_store_provider import IVectorStoreProvider
    from src.models.principal import AuthenticatedPrincipal

logger = structlog.get_logger(logger_name=__name__)

# Chunks in this length band count as "optimal" in the stats blob.
_OPTIMAL_CHUNK_MIN = 100
_OPTIMAL_CHUNK_MAX = 1000

_DEFAULT_STALE_AFTER_SECONDS = 900


def vector_id(file_id: str, sequence_index: int) -> str:
    """Deterministic vector id; re-ingesting a file overwrites its vectors."""
    return f"{file_id}-{sequence_index}"


def failure_message(exc: BaseException) -> str:
    """Render an exception as ``"<ExceptionClass>: <message>"`` for the record."""
    detail = getattr(exc, "message", None) or str(exc) or "no details"
    return f"{type(exc).__name__}: {detail}"


class IngestionService:
    """Runs one file at a time through the full ingestion pipeline.

    Parameters
    ----------
    record_store:
        Persists the ingestion record state machine.
    source_provider:
        Fetches file bytes when the caller does not supply them.
    embedding_provider:
        Generates one embedding per chunk.
    vector_store:
        Receives the file's vectors in a single upsert.
    chunker:
        Splits normalized documents; defaults to ``TextChunker(500, 100, 100)``.
    namespace:
        Vector namespace recorded on ingested records, if the index uses one.
    stale_after_seconds:
        A ``pending``/``processing`` record untouched for this long is
        treated as abandoned and may be claimed again.
    """

    def __init__(
        self,
        record_store: IIngestionRecordStore,
        source_provider: ISourceFileProvider,
        embedding_provider: IEmbeddingProvider,
        vector_store: IVectorStoreProvider,
        chunker: TextChunker | None = None,
        namespace: str | None = None,
        stale_after_seconds: float = _DEFAULT_STALE_AFTER_SECONDS,
    ) -> None:
        self._records = record_store
        self._source = source_provider
        self._embedding_provider = embedding_provider
        self._vector_store = vector_store
        self._chunker = chunker or TextChunker()
        self._namespace = namespace
        self._stale_after = timedelta(seconds=stale_after_seconds)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def ingest(
        self,
        principal: AuthenticatedPrincipal,
        file_id: str,
        file_name: str,
        content: bytes | None = None,
        mime_type: str | None = None,
    ) -> IngestionResult:
        """Ingest one file for *principal*.

        Parameters
        ----------
        principal:
            The caller; owns the record and the vectors.
        file_id:
            Provider file id.
        file_name:
            Display name; its extension selects the PDF loader.
        content:
            File bytes when already in hand (upload flow).  When ``None``
            the bytes are fetched from the source-file provider.
        mime_type:
            MIME type of *content*, if known.

        Returns
        -------
        IngestionResult
            The final record, with ``already_ingested=True`` when nothing ran.

        Raises
        ------
        IngestionConflictError
            If an ingestion for this file is already pending or processing.
        DriveVectorError
            Any fetch, extraction, embedding or index error.  The record is
            marked ``failed`` before the error propagates.
        """
        existing = await self._records.find_active(principal.user_id, file_id)
        if existing is not None and existing.status == IngestionStatus.INGESTED:
            logger.info(
                "ingestion_skipped_already_ingested",
                record_id=existing.id,
                file_id=file_id,
            )
            return IngestionResult(record=existing, already_ingested=True)

        record = await self._claim(principal, file_id, file_name, mime_type, existing)

        try:
            return await self._run_pipeline(principal, record, content, mime_type)
        except Exception as exc:
            await self._record_failure(record, exc)
            raise

    async def ingest_many(
        self,
        principal: AuthenticatedPrincipal,
        items: Sequence[IngestionItem],
    ) -> list[FileIngestionOutcome]:
        """Ingest several files concurrently; one failure never affects another.

        Returns one outcome per item, in input order.
        """
        results = await asyncio.gather(
            *(
                self.ingest(principal, item.file_id, item.file_name, item.content, item.mime_type)
                for item in items
            ),
            return_exceptions=True,
        )

        outcomes: list[FileIngestionOutcome] = []
        for item, result in zip(items, results):
            if isinstance(result, BaseException):
                outcomes.append(
                    FileIngestionOutcome(
                        file_name=item.file_name,
                        file_id=item.file_id,
                        success=False,
                        error_type=type(result).__name__,
                        error=getattr(result, "message", None) or str(result),
                    )
                )
            else:
                outcomes.append(
                    FileIngestionOutcome(
                        file_name=item.file_name,
                        file_id=item.file_id,
                        success=True,
                        record=result.record,
                        already_ingested=result.already_ingested,
                    )
                )
        return outcomes

    async def get_record(self, principal: AuthenticatedPrincipal, record_id: str) -> IngestionRecord:
        """Return *principal*'s ingestion record, or raise :class:`RecordNotFoundError`."""
        record = await self._records.get(principal.user_id, record_id)
        if record is None:
            raise RecordNotFoundError(message=f"Ingestion record not found: {record_id}")
        return record

    # ------------------------------------------------------------------
    # State machine
    # ------------------------------------------------------------------

    async def _claim(
        self,
        principal: AuthenticatedPrincipal,
        file_id: str,
        file_name: str,
        mime_type: str | None,
        existing: IngestionRecord | None,
    ) -> IngestionRecord:
        """Return a ``pending`` record for the pair, reusing a failed or abandoned one."""
        if existing is None:
            return await self._records.create_pending(
                user_id=principal.user_id,
                email=principal.email,
                file_id=file_id,
                file_name=file_name,
                file_type=mime_type,
            )

        if existing.status in (IngestionStatus.PENDING, IngestionStatus.PROCESSING):
            stale_before = datetime.now(timezone.utc) - self._stale_after
            if existing.updated_at < stale_before:
                reclaimed = await self._records.reclaim_stale(existing.id, stale_before)
                if reclaimed is not None:
                    logger.warning(
                        "ingestion_reclaimed_stale",
                        record_id=existing.id,
                        file_id=file_id,
                        status=existing.status.value,
                    )
                    return reclaimed
            logger.info(
                "ingestion_conflict",
                record_id=existing.id,
                file_id=file_id,
                status=existing.status.value,
            )
            raise IngestionConflictError(
                message=f"Ingestion of file {file_id} is already {existing.status.value}",
            )

        logger.info("ingestion_retry", record_id=existing.id, file_id=file_id)
        return await self._records.reset_to_pending(existing.id)

    async def _record_failure(self, record: IngestionRecord, exc: Exception) -> None:
        """Best-effort ``failed`` write; the original error always propagates."""
        message = failure_message(exc)
        try:
            await self._records.mark_failed(record.id, message)
        except Exception as mark_exc:
            logger.error(
                "ingestion_failure_not_recorded",
                record_id=record.id,
                original_error=message,
                error=str(mark_exc),
            )
        logger.error(
            "ingestion_failed",
            record_id=record.id,
            file_id=record.file_id,
            error_type=type(exc).__name__,
            error=message,
        )

    # ------------------------------------------------------------------
    # Pipeline
    # ------------------------------------------------------------------

    async def _run_pipeline(
        self,
        principal: AuthenticatedPrincipal,
        record: IngestionRecord,
        content: bytes | None,
        mime_type: str | None,
    ) -> IngestionResult:
        start = time.monotonic()
        file_id = record.file_id

        # Step 1: fetch.
        if content is None:
            source = await self._source.get(file_id, principal)
            content = source.content
            mime_type = mime_type or source.mime_type
        record = await self._records.mark_processing(record.id, len(content))

        # Step 2: extract.
        documents = extract_documents(content, record.file_name, mime_type)

        # Step 3: normalize + chunk.
        normalized = [SourceDocument(text=normalize(d.text), metadata=d.metadata) for d in documents]
        chunking = self._chunker.split(normalized)

        # Step 4: embed, all chunks concurrently; any failure fails the file.
        vectors = await self._embed_chunks(principal, record, chunking.chunks)

        # Step 5: one upsert for the whole file.
        if vectors:
            await self._vector_store.upsert(vectors)

        # Step 6: finalize.
        processing_ms = round((time.monotonic() - start) * 1000, 2)
        stats = self._build_stats(documents, chunking, vectors, processing_ms)
        record = await self._records.mark_ingested(
            record.id,
            vector_count=len(vectors),
            chunk_count=len(chunking.chunks),
            metadata=stats,
            namespace=self._namespace,
        )

        logger.info(
            "ingestion_complete",
            record_id=record.id,
            file_id=file_id,
            documents=len(documents),
            chunks=len(chunking.chunks),
            vectors=len(vectors),
            truncated=chunking.truncated,
            processing_ms=processing_ms,
        )
        return IngestionResult(record=record)

    async def _embed_chunks(
        self,
        principal: AuthenticatedPrincipal,
        record: IngestionRecord,
        chunks: list[Chunk],
    ) -> list[VectorRecord]:
        """Clean and embed every chunk, returning vectors in ``sequence_index`` order.

        Chunks that clean down to nothing are skipped, so they count toward
        ``chunk_count`` but not ``vector_count``.
        """
        prepared = [(chunk, clean_for_embedding(chunk.text)) for chunk in chunks]
        embeddable = [(chunk, text) for chunk, text in prepared if text]
        if len(embeddable) < len(prepared):
            logger.debug(
                "chunks_empty_after_cleaning",
                record_id=record.id,
                skipped=len(prepared) - len(embeddable),
            )
        if not embeddable:
            return []

        embeddings = await asyncio.gather(
            *(self._embedding_provider.embed_single(text) for _, text in embeddable)
        )

        # gather preserves input order, and embeddable is in sequence order.
        return [
            VectorRecord(
                id=vector_id(record.file_id, chunk.sequence_index),
                values=list(values),
                metadata={
                    "text": text,
                    "fileName": record.file_name,
                    "fileId": record.file_id,
                    "chunkIndex": chunk.sequence_index,
                    "chunkSize": len(text),
                    "userId": principal.user_id,
                    "pageNumber": chunk.source_metadata.get("page_number"),
                },
            )
            for (chunk, text), values in zip(embeddable, embeddings)
        ]

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _build_stats(
        documents: list[SourceDocument],
        chunking: ChunkingResult,
        vectors: list[VectorRecord],
        processing_ms: float,
    ) -> dict[str, Any]:
        """Summarize one ingestion run for the record's metadata blob."""
        sizes = [len(c.text) for c in chunking.chunks]
        total_chars = sum(sizes)
        average_size = round(total_chars / len(sizes)) if sizes else 0
        magnitudes = [math.sqrt(sum(v * v for v in vec.values)) for vec in vectors]
        dimensions = len(vectors[0].values) if vectors else 0

        return {
            "documentCount": len(documents),
            "averageChunkSize": average_size,
            "embeddingStats": {
                "totalEmbeddings": len(vectors),
                "embeddingDimensions": dimensions,
                "minMagnitude": round(min(magnitudes), 6) if magnitudes else 0.0,
                "maxMagnitude": round(max(magnitudes), 6) if magnitudes else 0.0,
                "averageMagnitude": (
                    round(sum(magnitudes) / len(magnitudes), 6) if magnitudes else 0.0
                ),
            },
            "chunkStats": {
                "minSize": min(sizes) if sizes else 0,
                "maxSize": max(sizes) if sizes else 0,
                "optimalChunks": sum(
                    1 for s in sizes if _OPTIMAL_CHUNK_MIN < s < _OPTIMAL_CHUNK_MAX
                ),
                "averageSize": average_size,
                "totalProduced": chunking.total_produced,
                "truncated": chunking.truncated,
            },
            "processingTime": processing_ms,
            "vectorDimensions": dimensions,
            # Vectors per KB of chunk text.
            "vectorDensity": round(len(vectors) / (total_chars / 1000), 4) if total_chars else 0.0,
            "contentQuality": {
                "textDensity": round(average_size / 500, 4),
                "vectorEfficiency": (
                    round(len(vectors) / len(chunking.chunks), 4) if chunking.chunks else 0.0
                ),
            },
        }
