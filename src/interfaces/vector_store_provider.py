"""Abstract base class for vector-index service providers.

Defines the contract for upserting, deleting and querying chunk vectors.
Implementations wrap ChromaDB (local, the default) or Pinecone (hosted).
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from src.models.ingestion import VectorMatch, VectorRecord


# Concrete implementations (src/providers/vector_store/):
#   ChromaDBProvider  - local persistent collection, cosine space
#   PineconeProvider  - hosted index, selected when PINECONE_API_KEY is set
class IVectorStoreProvider(ABC):
    """Contract for the vector index used by ingestion, deletion and search.

    Every stored vector carries this metadata:

    * ``fileId`` - provider file id, used by :meth:`delete_by_filter`
    * ``fileName``
    * ``userId`` - owner, used to scope search results
    * ``chunkIndex`` - 0-based ``sequence_index`` of the chunk
    * ``chunkSize`` - chunk length in characters
    * ``text`` - the cleaned chunk text

    **Supported filter syntax** for :meth:`query` is a flat equality map,
    e.g. ``{"userId": "u-1"}``.  Adapters translate it to their backend.
    """

    @abstractmethod
    async def upsert(self, vectors: list[VectorRecord]) -> int:
        """Insert or replace *vectors* by id.

        Parameters
        ----------
        vectors:
            Vectors to write.  Ids are deterministic
            (``"{file_id}-{sequence_index}"``), so re-ingesting a file
            overwrites rather than duplicates.

        Returns
        -------
        int
            The number of vectors written.

        Raises
        ------
        src.utils.errors.RAGError
            If the index rejects the write.
        """

    @abstractmethod
    async def delete_by_filter(self, file_id: str) -> int:
        """Delete every vector whose ``fileId`` metadata equals *file_id*.

        Returns
        -------
        int
            The number of vectors deleted, or ``-1`` when the backend does
            not report a count.

        Raises
        ------
        src.utils.errors.RAGError
            If the delete fails.
        """

    @abstractmethod
    async def query(
        self,
        vector: list[float],
        top_k: int = 5,
        include_metadata: bool = True,
        filters: dict[str, Any] | None = None,
    ) -> list[VectorMatch]:
        """Return the *top_k* nearest vectors to *vector*.

        Parameters
        ----------
        vector:
            Query embedding.
        top_k:
            Maximum number of matches.
        include_metadata:
            When ``False`` matches carry an empty metadata dict.
        filters:
            Optional equality filters on metadata (see class docstring).

        Returns
        -------
        list[VectorMatch]
            Matches ranked by similarity score, highest first.
        """

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a human-readable identifier for this vector store."""

    @abstractmethod
    def is_available(self) -> bool:
        """Return ``True`` if the store is configured and reachable."""
