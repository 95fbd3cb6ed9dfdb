"""YAML configuration loader with environment variable overrides.

# ─── CONFIGURATION HIERARCHY ──────────────────────────────────────────
#
# Configuration is loaded in layers (later layers override earlier):
#
#   1. config/config.yaml  - static defaults checked into the repo
#   2. .env file           - local developer overrides (not committed)
#   3. Environment vars    - set at deploy time
#
# load_config() reads the YAML file first, then deep-merges the values
# resolved by Settings on top, so a default in config.yaml can be
# overridden per environment.
# ──────────────────────────────────────────────────────────────────────
"""

from pathlib import Path

import yaml

from src.config.settings import Settings


def load_config(path: str = "config/config.yaml", settings: Settings | None = None) -> dict:
    """Load YAML config and merge with environment-based Settings.

    Environment variables (via Settings) override YAML values where keys overlap.

    Args:
        path: Path to the YAML configuration file.
        settings: Pre-built settings; a fresh ``Settings()`` is read when omitted.

    Returns:
        Fully resolved configuration dictionary.
    """
    config_path = Path(path)
    if config_path.exists():
        with open(config_path) as f:
            yaml_config = yaml.safe_load(f) or {}
    else:
        yaml_config = {}

    settings = settings or Settings()
    env_overrides = {
        "app": {
            "host": settings.app_host,
            "port": settings.app_port,
            "env": settings.app_env,
        },
        "ingestion": {
            "chunk_size": settings.chunk_size,
            "chunk_overlap": settings.chunk_overlap,
            "max_chunks": settings.max_chunks,
            "max_upload_bytes": settings.max_upload_bytes,
            "allowed_mime_types": list(settings.allowed_mime_types),
        },
        "embedding": {
            "model": settings.openai_embedding_model,
            "azure": settings.uses_azure_embeddings(),
        },
        "vector_store": {
            "provider": settings.get_vector_store_backend(),
            "collection": settings.chromadb_collection,
        },
        "source_files": {
            "folder_name": settings.drive_folder_name,
        },
        "database": {
            "path": settings.database_path,
        },
        "logging": {
            "level": settings.log_level,
        },
    }

    _deep_merge(yaml_config, env_overrides)
    return yaml_config


def _deep_merge(base: dict, overrides: dict) -> None:
    """Recursively merge overrides into base dict, mutating base in place."""
    for key, value in overrides.items():
        if key in base and isinstance(base[key], dict) and isinstance(value, dict):
            _deep_merge(base[key], value)
        else:
            base[key] = value
