"""Vector store provider implementations.

ChromaDB stores chunk vectors on disk at CHROMADB_PERSIST_DIR and is the
default.  When PINECONE_API_KEY and PINECONE_INDEX_NAME are set, main.py
selects the hosted Pinecone index instead.
"""

from src.providers.vector_store.chromadb_provider import ChromaDBProvider
from src.providers.vector_store.pinecone_provider import PineconeProvider

__all__ = ["ChromaDBProvider", "PineconeProvider"]
