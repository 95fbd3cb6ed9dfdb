"""Embedding provider implementations.

Embeddings convert chunk text into numeric vectors for the vector index.

    OpenAIEmbeddingProvider - text-embedding-3-small (1536 dims) via OpenAI
                              or an Azure OpenAI deployment.
"""

from src.providers.embedding.openai_embedding_provider import OpenAIEmbeddingProvider

__all__ = ["OpenAIEmbeddingProvider"]
