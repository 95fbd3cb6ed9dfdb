"""driveVector FastAPI application entry point.

Wires together all providers, services, and routes via dependency injection.
Loads configuration from ``.env`` and ``config/config.yaml`` and configures
structured logging.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any

import httpx
import structlog
import uvicorn
from fastapi import FastAPI

from src.api.middleware import (
    ErrorHandlingMiddleware,
    RequestLoggingMiddleware,
    configure_cors,
    register_exception_handlers,
)
from src.api.routes import router as api_router
from src.config.loader import load_config
from src.config.settings import Settings
from src.interfaces.vector_store_provider import IVectorStoreProvider
from src.providers.embedding.openai_embedding_provider import OpenAIEmbeddingProvider
from src.providers.records.database import Database
from src.providers.records.sqlite_ingestion_record_store import SqliteIngestionRecordStore
from src.providers.source_files.google_drive_provider import GoogleDriveProvider
from src.services.file_service import FileService
from src.services.ingestion.chunker import TextChunker
from src.services.ingestion.ingestion_service import IngestionService
from src.services.search_service import SearchService
from src.utils.logging import configure_logging, get_logger

# ---------------------------------------------------------------------------
# Module-level settings & logging
# ---------------------------------------------------------------------------

settings = Settings()
config = load_config(settings=settings)

configure_logging(
    log_level=settings.log_level,
    json_output=(settings.app_env == "production"),
)
_logger: structlog.BoundLogger = get_logger(__name__)

_APP_NAME = config.get("app", {}).get("name", "driveVector")
_APP_VERSION = str(config.get("app", {}).get("version", "0.1.0"))


# ---------------------------------------------------------------------------
# Vector store selection
# ---------------------------------------------------------------------------


def _build_vector_store(app_settings: Settings) -> IVectorStoreProvider:
    """Pinecone when both its API key and index are configured, else local ChromaDB."""
    if app_settings.get_vector_store_backend() == "pinecone":
        from src.providers.vector_store.pinecone_provider import PineconeProvider

        return PineconeProvider(
            api_key=app_settings.pinecone_api_key,
            index_name=app_settings.pinecone_index_name,
            namespace=app_settings.pinecone_namespace,
        )

    from src.providers.vector_store.chromadb_provider import ChromaDBProvider

    return ChromaDBProvider(
        persist_directory=app_settings.chromadb_persist_dir,
        collection_name=app_settings.chromadb_collection,
    )


# ---------------------------------------------------------------------------
# Full DI assembly for the FastAPI application
# ---------------------------------------------------------------------------


def _build_all(app_settings: Settings, app_config: dict[str, Any]) -> dict[str, Any]:
    """Construct every provider and service instance for the application.

    Returns a flat dict of named components to be stored on ``app.state``.
    """
    ingestion_cfg = app_config.get("ingestion", {})
    search_cfg = app_config.get("search", {})

    # -- Shared resources --
    http_client = httpx.AsyncClient(timeout=httpx.Timeout(app_settings.drive_timeout_seconds))
    database = Database(app_settings.database_path)
    record_store = SqliteIngestionRecordStore(database)

    # -- Providers --
    embedding_provider = OpenAIEmbeddingProvider(settings=app_settings)
    vector_store = _build_vector_store(app_settings)
    source_provider = GoogleDriveProvider(
        http_client=http_client,
        folder_name=app_settings.drive_folder_name,
        api_base_url=app_settings.drive_api_base_url,
        upload_base_url=app_settings.drive_upload_base_url,
    )

    # -- Services --
    chunker = TextChunker(
        chunk_size=int(ingestion_cfg.get("chunk_size", app_settings.chunk_size)),
        overlap=int(ingestion_cfg.get("chunk_overlap", app_settings.chunk_overlap)),
        max_chunks=int(ingestion_cfg.get("max_chunks", app_settings.max_chunks)),
    )
    ingestion_service = IngestionService(
        record_store=record_store,
        source_provider=source_provider,
        embedding_provider=embedding_provider,
        vector_store=vector_store,
        chunker=chunker,
        namespace=app_settings.pinecone_namespace or None,
        stale_after_seconds=float(
            ingestion_cfg.get("stale_after_seconds", app_settings.ingestion_stale_after_seconds)
        ),
    )
    file_service = FileService(
        record_store=record_store,
        source_provider=source_provider,
        vector_store=vector_store,
        ingestion_service=ingestion_service,
        max_upload_bytes=int(ingestion_cfg.get("max_upload_bytes", app_settings.max_upload_bytes)),
        allowed_mime_types=ingestion_cfg.get("allowed_mime_types", app_settings.allowed_mime_types),
    )
    search_service = SearchService(
        embedding_provider=embedding_provider,
        vector_store=vector_store,
        default_top_k=int(search_cfg.get("default_top_k", app_settings.search_default_top_k)),
    )

    # -- Provider availability for /health --
    provider_registry: dict[str, Any] = {
        "embedding": embedding_provider.is_available(),
        "embedding_provider": embedding_provider.get_provider_name(),
        "vector_store_provider": vector_store.get_provider_name(),
        "source_files": source_provider.get_provider_name(),
    }

    return {
        "settings": app_settings,
        "http_client": http_client,
        "database": database,
        "record_store": record_store,
        "embedding_provider": embedding_provider,
        "vector_store": vector_store,
        "source_provider": source_provider,
        "ingestion_service": ingestion_service,
        "file_service": file_service,
        "search_service": search_service,
        "provider_registry": provider_registry,
    }


# ---------------------------------------------------------------------------
# Application lifespan (startup / shutdown)
# ---------------------------------------------------------------------------


@asynccontextmanager
async def _lifespan(application: FastAPI):  # noqa: ANN201
    """Initialise all providers and services on startup, clean up on shutdown."""
    components = _build_all(settings, config)

    for key, value in components.items():
        setattr(application.state, key, value)

    # Create tables and run the additive soft-delete migration.
    database: Database = components["database"]
    await database.initialize()

    _logger.info(
        "app_startup",
        version=_APP_VERSION,
        environment=settings.app_env,
        embedding=components["provider_registry"]["embedding_provider"],
        vector_store=components["provider_registry"]["vector_store_provider"],
    )

    yield

    # -- Shutdown: close shared httpx client --
    http_client: httpx.AsyncClient = components["http_client"]
    await http_client.aclose()
    _logger.info("app_shutdown", message="HTTP client closed")


# ---------------------------------------------------------------------------
# FastAPI application factory
# ---------------------------------------------------------------------------


def create_app() -> FastAPI:
    """Build and configure the FastAPI application."""
    application = FastAPI(
        title=f"{_APP_NAME} API",
        version=_APP_VERSION,
        description=(
            "Ingest Google Drive documents into a vector index: extract, chunk, "
            "embed and upsert per user, with soft deletion and semantic search."
        ),
        lifespan=_lifespan,
    )

    # -- Middleware (order matters: last added = first executed) --
    application.add_middleware(ErrorHandlingMiddleware)
    application.add_middleware(RequestLoggingMiddleware)
    configure_cors(application)
    register_exception_handlers(application)

    # -- API routes --
    application.include_router(api_router)

    return application


app = create_app()

# ---------------------------------------------------------------------------
# CLI entry point
# ---------------------------------------------------------------------------

if __name__ == "__main__":
    uvicorn.run(
        "src.main:app",
        host=settings.app_host,
        port=settings.app_port,
        reload=(settings.app_env == "development"),
    )
