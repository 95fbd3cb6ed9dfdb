"""Abstract base class for text-embedding service providers.

Defines the contract for generating embedding vectors from text.  The
production adapter wraps OpenAI (or an Azure OpenAI deployment of)
``text-embedding-3-small``; tests inject a deterministic fake.
"""

from __future__ import annotations

from abc import ABC, abstractmethod


# Concrete implementation: OpenAIEmbeddingProvider (src/providers/embedding/)
class IEmbeddingProvider(ABC):
    """Contract for text-embedding services used by the ingestion pipeline.

    Embeddings are consumed by
    :class:`~src.interfaces.vector_store_provider.IVectorStoreProvider` for
    indexing and by the search service for query-time similarity search.
    """

    @abstractmethod
    async def embed(self, texts: list[str]) -> list[list[float]]:
        """Generate embedding vectors for a batch of texts.

        Parameters
        ----------
        texts:
            One or more non-empty text strings to embed.

        Returns
        -------
        list[list[float]]
            Embedding vectors corresponding positionally to *texts*.  Each
            inner list has length equal to :meth:`get_dimension`.

        Raises
        ------
        src.utils.errors.InvalidInputError
            If any input is empty or rejected by the service.
        src.utils.errors.RateLimitError
            If the service reports a rate limit.
        src.utils.errors.RAGError
            For any other API or transport failure.
        """

    @abstractmethod
    async def embed_single(self, text: str) -> list[float]:
        """Generate an embedding vector for a single text string.

        The ingestion pipeline calls this once per chunk, concurrently.

        Parameters
        ----------
        text:
            The non-empty text string to embed.

        Returns
        -------
        list[float]
            The embedding vector with length equal to :meth:`get_dimension`.
        """

    @abstractmethod
    def get_dimension(self) -> int:
        """Return the dimensionality of the embedding vectors.

        Must match the dimension of the configured vector index
        (``1536`` for ``text-embedding-3-small``).
        """

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a human-readable identifier for this embedding provider."""

    @abstractmethod
    def is_available(self) -> bool:
        """Return ``True`` if the provider has credentials configured."""
