"""Similarity search over a user's ingested chunks.

The query is cleaned the same way chunks are before embedding, embedded
with the ingestion model, and matched against the vector index restricted
to the caller's own vectors via the ``userId`` metadata filter.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog

from src.models.ingestion import SearchHit, VectorMatch
from src.utils.errors import ValidationError
from src.utils.text_normalizer import clean_for_embedding

if TYPE_CHECKING:
    from src.interfaces.embedding_provider import IEmbeddingProvider
    from src.interfaces.vector_store_provider import IVectorStoreProvider
    from src.models.principal import AuthenticatedPrincipal

logger = structlog.get_logger(logger_name=__name__)

_MAX_TOP_K = 50


class SearchService:
    """Embeds a query and returns the closest chunks owned by the caller."""

    def __init__(
        self,
        embedding_provider: IEmbeddingProvider,
        vector_store: IVectorStoreProvider,
        default_top_k: int = 5,
    ) -> None:
        self._embedding_provider = embedding_provider
        self._vector_store = vector_store
        self._default_top_k = default_top_k

    async def search(
        self,
        principal: AuthenticatedPrincipal,
        query: str,
        top_k: int | None = None,
    ) -> list[SearchHit]:
        """Return up to *top_k* chunks of *principal*'s files closest to *query*.

        Raises
        ------
        ValidationError
            The query is empty after cleaning, or *top_k* is out of range.
        """
        cleaned = clean_for_embedding(query or "")
        if not cleaned:
            raise ValidationError(message="Search query must not be empty")

        k = self._default_top_k if top_k is None else top_k
        if k < 1 or k > _MAX_TOP_K:
            raise ValidationError(message=f"top_k must be between 1 and {_MAX_TOP_K}")

        vector = await self._embedding_provider.embed_single(cleaned)
        matches = await self._vector_store.query(
            vector,
            top_k=k,
            include_metadata=True,
            filters={"userId": principal.user_id},
        )

        hits = [_to_hit(match) for match in matches]
        logger.info(
            "search_completed",
            user_id=principal.user_id,
            top_k=k,
            hits=len(hits),
        )
        return hits


def _to_hit(match: VectorMatch) -> SearchHit:
    meta = match.metadata or {}
    chunk_index = meta.get("chunkIndex")
    return SearchHit(
        id=match.id,
        score=match.score,
        file_id=meta.get("fileId"),
        file_name=meta.get("fileName"),
        chunk_index=int(chunk_index) if chunk_index is not None else None,
        text=meta.get("text") or "",
    )
