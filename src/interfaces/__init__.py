"""Public interface definitions for all external service providers.

Every external service driveVector talks to is accessed through the
abstract base classes in this package.  Concrete adapters live in
``src/providers/`` and are wired together in ``src/main.py``, so services
and tests can swap any backend without touching business logic.

CONCRETE PROVIDER MAP:
    Interface                 ->  Concrete implementations (src/providers/)
    ---------------------------------------------------------------------
    IEmbeddingProvider        ->  OpenAIEmbeddingProvider
    IVectorStoreProvider      ->  ChromaDBProvider, PineconeProvider
    ISourceFileProvider       ->  GoogleDriveProvider
    IIngestionRecordStore     ->  SqliteIngestionRecordStore
"""

from src.interfaces.embedding_provider import IEmbeddingProvider
from src.interfaces.ingestion_record_store import IIngestionRecordStore
from src.interfaces.source_file_provider import ISourceFileProvider
from src.interfaces.vector_store_provider import IVectorStoreProvider

__all__ = [
    "IEmbeddingProvider",
    "IIngestionRecordStore",
    "ISourceFileProvider",
    "IVectorStoreProvider",
]
