"""Application settings loaded from environment variables via pydantic-settings.

# ─── HOW SETTINGS WORK ────────────────────────────────────────────────
#
# pydantic-settings reads configuration from two sources (in priority
# order):
#
#   1. Environment variables, e.g. OPENAI_API_KEY=sk-abc123 (always win)
#   2. The .env file in the project root (local development)
#
# Field name `openai_api_key` maps to env var `OPENAI_API_KEY`.  Defaults
# below apply when neither source sets the field.
#
# The .env file is never committed.  .env.example lists every variable.
# ──────────────────────────────────────────────────────────────────────
"""

from pydantic_settings import BaseSettings, SettingsConfigDict

_DEFAULT_ALLOWED_MIME_TYPES = [
    "application/pdf",
    "application/msword",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    "application/vnd.ms-excel",
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    "image/jpeg",
    "image/png",
    "image/gif",
    "text/plain",
]


class Settings(BaseSettings):
    """driveVector application settings.

    Environment variables override defaults. Loaded from .env file when present.
    """

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # === Embeddings ===
    # Empty string = "not configured".  When the Azure endpoint is set the
    # Azure client is used and the deployment name replaces the model name.
    openai_api_key: str = ""
    openai_base_url: str = ""
    openai_embedding_model: str = "text-embedding-3-small"
    azure_openai_endpoint: str = ""
    azure_openai_api_version: str = "2024-02-01"
    azure_openai_embedding_deployment: str = ""

    # === Vector index ===
    # Pinecone is used when an API key is present, otherwise local ChromaDB.
    pinecone_api_key: str = ""
    pinecone_index_name: str = ""
    pinecone_namespace: str = ""
    chromadb_persist_dir: str = "./data/chromadb"
    chromadb_collection: str = "drivevector_chunks"

    # === Google Drive ===
    drive_api_base_url: str = "https://www.googleapis.com/drive/v3"
    drive_upload_base_url: str = "https://www.googleapis.com/upload/drive/v3"
    drive_folder_name: str = "N8N AI Agent"
    drive_timeout_seconds: float = 30.0

    # === Relational store ===
    database_path: str = "data/drivevector.db"

    # === Ingestion ===
    chunk_size: int = 500
    chunk_overlap: int = 100
    max_chunks: int = 100
    max_upload_bytes: int = 10 * 1024 * 1024
    ingestion_stale_after_seconds: int = 900
    allowed_mime_types: list[str] = list(_DEFAULT_ALLOWED_MIME_TYPES)

    # === Search ===
    search_default_top_k: int = 5

    # === Sessions ===
    session_secret: str = "change-me"
    session_ttl_seconds: int = 86400

    # === App Config ===
    app_host: str = "0.0.0.0"
    app_port: int = 8000
    app_env: str = "development"
    log_level: str = "INFO"

    def get_vector_store_backend(self) -> str:
        """Return ``"pinecone"`` when Pinecone is configured, else ``"chromadb"``."""
        if self.pinecone_api_key and self.pinecone_index_name:
            return "pinecone"
        return "chromadb"

    def uses_azure_embeddings(self) -> bool:
        return bool(self.azure_openai_endpoint)
