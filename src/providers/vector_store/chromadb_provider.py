"""ChromaDB vector store provider adapter.

Wraps ``chromadb.PersistentClient`` to implement :class:`IVectorStoreProvider`.
Uses cosine distance for similarity search.  Fully local and free, so it
is the default index when no Pinecone key is configured.
"""

from __future__ import annotations

import os
from typing import Any

# Disable ChromaDB telemetry before importing chromadb.
os.environ["ANONYMIZED_TELEMETRY"] = "False"

import chromadb
import structlog

from src.interfaces.vector_store_provider import IVectorStoreProvider
from src.models.ingestion import VectorMatch, VectorRecord
from src.utils.errors import RAGError

logger = structlog.get_logger(logger_name=__name__)


class _NoopEmbeddingFunction(chromadb.EmbeddingFunction[list[str]]):
    """No-op embedding function that prevents ChromaDB from loading a model.

    driveVector always passes pre-computed embeddings to ``upsert()``, so
    ChromaDB's built-in embedding is never invoked.
    """

    def __call__(self, input: list[str]) -> list[list[float]]:
        raise NotImplementedError(
            "driveVector uses pre-computed embeddings; "
            "ChromaDB's built-in embedding should never be called."
        )

    def name(self) -> str:
        """Return function name (required by ChromaDB's EmbeddingFunction protocol)."""
        return "noop_precomputed"


class ChromaDBProvider(IVectorStoreProvider):
    """Vector store provider backed by ChromaDB with local persistence.

    Parameters
    ----------
    persist_directory:
        Directory for the on-disk collection.
    collection_name:
        Name of the collection holding every user's chunk vectors.
    client:
        Optional pre-built client (tests pass an ``EphemeralClient``).
    """

    def __init__(
        self,
        persist_directory: str = "./data/chromadb",
        collection_name: str = "drivevector_chunks",
        client: Any | None = None,
    ) -> None:
        self._persist_directory = persist_directory
        self._collection_name = collection_name
        self._client = client or chromadb.PersistentClient(
            path=persist_directory,
            settings=chromadb.config.Settings(anonymized_telemetry=False),
        )
        # Collections created by older ChromaDB versions may carry a
        # persisted embedding function that conflicts with the no-op one.
        try:
            self._collection = self._client.get_or_create_collection(
                name=collection_name,
                metadata={"hnsw:space": "cosine"},
                embedding_function=_NoopEmbeddingFunction(),
            )
        except ValueError:
            self._collection = self._client.get_or_create_collection(
                name=collection_name,
                metadata={"hnsw:space": "cosine"},
            )

    # ------------------------------------------------------------------
    # IVectorStoreProvider implementation
    # ------------------------------------------------------------------

    async def upsert(self, vectors: list[VectorRecord], batch_size: int = 500) -> int:
        """Upsert *vectors* into the collection in batches of *batch_size*."""
        if not vectors:
            return 0

        try:
            total_stored = 0
            for start in range(0, len(vectors), batch_size):
                batch = vectors[start : start + batch_size]
                self._collection.upsert(
                    ids=[v.id for v in batch],
                    embeddings=[v.values for v in batch],
                    documents=[str(v.metadata.get("text", "")) for v in batch],
                    metadatas=[self._to_chroma_metadata(v.metadata) for v in batch],
                )
                total_stored += len(batch)

            logger.info("chromadb_upsert", count=total_stored)
            return total_stored
        except Exception as exc:
            raise RAGError(
                message=f"ChromaDB upsert failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

    async def delete_by_filter(self, file_id: str) -> int:
        """Delete all vectors whose ``fileId`` metadata equals *file_id*."""
        where = {"fileId": file_id}
        try:
            existing = self._collection.get(where=where)
            count = len(existing["ids"]) if existing["ids"] else 0

            if count > 0:
                self._collection.delete(where=where)

            logger.info("chromadb_delete_by_filter", file_id=file_id, deleted_count=count)
            return count
        except Exception as exc:
            raise RAGError(
                message=f"ChromaDB delete_by_filter failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

    async def query(
        self,
        vector: list[float],
        top_k: int = 5,
        include_metadata: bool = True,
        filters: dict[str, Any] | None = None,
    ) -> list[VectorMatch]:
        """Return the nearest vectors, scored as ``1 - cosine distance``."""
        try:
            collection_count = self._collection.count()
            if collection_count == 0 or top_k <= 0:
                return []

            kwargs: dict[str, Any] = {
                "query_embeddings": [vector],
                "n_results": min(top_k, collection_count),
                "include": ["metadatas", "distances"],
            }
            where = self._translate_filters(filters)
            if where:
                kwargs["where"] = where

            results = self._collection.query(**kwargs)
        except Exception as exc:
            raise RAGError(
                message=f"ChromaDB query failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        ids = results.get("ids") or [[]]
        distances = results.get("distances") or [[]]
        metadatas = results.get("metadatas") or [[]]

        matches: list[VectorMatch] = []
        for i, vector_id in enumerate(ids[0]):
            distance = distances[0][i] if i < len(distances[0]) else 1.0
            metadata = (metadatas[0][i] or {}) if include_metadata and i < len(metadatas[0]) else {}
            matches.append(
                VectorMatch(id=vector_id, score=round(1.0 - float(distance), 6), metadata=dict(metadata))
            )
        return matches

    def get_provider_name(self) -> str:
        return "chromadb"

    def is_available(self) -> bool:
        """Return ``True`` if the ChromaDB collection is accessible."""
        try:
            self._collection.count()
            return True
        except Exception:
            return False

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _to_chroma_metadata(metadata: dict[str, Any]) -> dict[str, str | int | float | bool]:
        """Drop ``None`` values; ChromaDB metadata values must be scalars."""
        meta: dict[str, str | int | float | bool] = {}
        for key, value in metadata.items():
            if value is None:
                continue
            if isinstance(value, (str, int, float, bool)):
                meta[key] = value
            else:
                meta[key] = str(value)
        return meta

    @staticmethod
    def _translate_filters(filters: dict[str, Any] | None) -> dict[str, Any] | None:
        """Translate a flat equality map into a ChromaDB ``where`` clause.

        ChromaDB requires an explicit ``$and`` when more than one key is given.
        """
        if not filters:
            return None
        clauses = [{key: value} for key, value in filters.items()]
        if len(clauses) == 1:
            return clauses[0]
        return {"$and": clauses}
