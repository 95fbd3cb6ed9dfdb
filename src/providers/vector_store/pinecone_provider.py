"""Pinecone vector store provider adapter.

Wraps a ``pinecone.Pinecone`` index to implement
:class:`IVectorStoreProvider`.  The Pinecone SDK is synchronous, so every
call runs via ``asyncio.to_thread`` to keep the event loop free.
"""

from __future__ import annotations

import asyncio
from typing import Any

import structlog
from pinecone import Pinecone

from src.interfaces.vector_store_provider import IVectorStoreProvider
from src.models.ingestion import VectorMatch, VectorRecord
from src.utils.errors import RAGError

logger = structlog.get_logger(logger_name=__name__)

# Pinecone caps upsert requests at 2 MB; 100 vectors of 1536 floats fits.
_UPSERT_BATCH_SIZE = 100


class PineconeProvider(IVectorStoreProvider):
    """Vector store provider backed by a hosted Pinecone index.

    Parameters
    ----------
    api_key:
        Pinecone API key.
    index_name:
        Name of an existing index (cosine metric, embedding dimension).
    namespace:
        Namespace for every read and write; ``""`` is the default namespace.
    index:
        Optional pre-built index handle (tests inject a fake).
    """

    def __init__(
        self,
        api_key: str = "",
        index_name: str = "",
        namespace: str = "",
        index: Any | None = None,
    ) -> None:
        self._index_name = index_name
        self._namespace = namespace
        if index is not None:
            self._index = index
        else:
            self._index = Pinecone(api_key=api_key).Index(index_name)

    @property
    def namespace(self) -> str:
        return self._namespace

    # -- Sync helpers (executed via asyncio.to_thread) -------------------------

    def _upsert_sync(self, vectors: list[VectorRecord]) -> int:
        total = 0
        for start in range(0, len(vectors), _UPSERT_BATCH_SIZE):
            batch = vectors[start : start + _UPSERT_BATCH_SIZE]
            payload = [
                {
                    "id": v.id,
                    "values": v.values,
                    "metadata": {k: val for k, val in v.metadata.items() if val is not None},
                }
                for v in batch
            ]
            self._index.upsert(vectors=payload, namespace=self._namespace)
            total += len(batch)
        return total

    def _delete_sync(self, file_id: str) -> None:
        self._index.delete(filter={"fileId": {"$eq": file_id}}, namespace=self._namespace)

    def _query_sync(
        self,
        vector: list[float],
        top_k: int,
        include_metadata: bool,
        filters: dict[str, Any] | None,
    ) -> Any:
        kwargs: dict[str, Any] = {
            "vector": vector,
            "top_k": top_k,
            "namespace": self._namespace,
            "include_metadata": include_metadata,
        }
        if filters:
            kwargs["filter"] = {key: {"$eq": value} for key, value in filters.items()}
        return self._index.query(**kwargs)

    # ------------------------------------------------------------------
    # IVectorStoreProvider implementation
    # ------------------------------------------------------------------

    async def upsert(self, vectors: list[VectorRecord]) -> int:
        if not vectors:
            return 0
        try:
            count = await asyncio.to_thread(self._upsert_sync, vectors)
        except Exception as exc:
            logger.warning("pinecone_upsert_failed", error_type=type(exc).__name__, error=str(exc))
            raise RAGError(
                message=f"Pinecone upsert failed ({type(exc).__name__})",
                provider_name=self.get_provider_name(),
            ) from exc
        logger.info("pinecone_upsert", count=count, namespace=self._namespace)
        return count

    async def delete_by_filter(self, file_id: str) -> int:
        """Delete every vector of *file_id*.  Pinecone reports no count, so ``-1``."""
        try:
            await asyncio.to_thread(self._delete_sync, file_id)
        except Exception as exc:
            logger.warning(
                "pinecone_delete_by_filter_failed", error_type=type(exc).__name__, error=str(exc)
            )
            raise RAGError(
                message=f"Pinecone delete_by_filter failed ({type(exc).__name__})",
                provider_name=self.get_provider_name(),
            ) from exc
        logger.info("pinecone_delete_by_filter", file_id=file_id, namespace=self._namespace)
        return -1

    async def query(
        self,
        vector: list[float],
        top_k: int = 5,
        include_metadata: bool = True,
        filters: dict[str, Any] | None = None,
    ) -> list[VectorMatch]:
        try:
            response = await asyncio.to_thread(
                self._query_sync, vector, top_k, include_metadata, filters
            )
        except Exception as exc:
            logger.warning("pinecone_query_failed", error_type=type(exc).__name__, error=str(exc))
            raise RAGError(
                message=f"Pinecone query failed ({type(exc).__name__})",
                provider_name=self.get_provider_name(),
            ) from exc

        return [
            VectorMatch(
                id=match.id,
                score=float(match.score),
                metadata=dict(match.metadata or {}) if include_metadata else {},
            )
            for match in response.matches
        ]

    def get_provider_name(self) -> str:
        return "pinecone"

    def is_available(self) -> bool:
        try:
            self._index.describe_index_stats()
            return True
        except Exception:
            return False
