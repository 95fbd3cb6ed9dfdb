"""Utility modules for driveVector.

Available utility modules (all re-exported here for convenience):

- **errors** -- Domain-specific exception hierarchy rooted at
  DriveVectorError; every class declares the HTTP status the API maps it to.
- **logging** -- structlog setup with a dual-renderer pattern: coloured
  console output in development, structured JSON in production.
- **text_normalizer** -- ASCII normalization applied before chunking and
  cleaning applied before embedding.
- **auth** (not re-exported here) -- HMAC-signed session tokens carrying
  the caller's delegated Drive credentials.
"""

# -- Domain exception hierarchy --------------------------------------------
from src.utils.errors import (
    AlreadyDeletedError,
    AuthenticationError,
    ConfigurationError,
    DatabaseError,
    DriveVectorError,
    IngestionConflictError,
    ProviderUnavailableError,
    RateLimitError,
    RecordNotFoundError,
    ValidationError,
)

# -- Structured logging setup ----------------------------------------------
from src.utils.logging import configure_logging, get_logger

# -- Text normalization (pre-chunk and pre-embed) --------------------------
from src.utils.text_normalizer import ascii_only, clean_for_embedding, normalize

__all__ = [
    "AlreadyDeletedError",
    "AuthenticationError",
    "ConfigurationError",
    "DatabaseError",
    "DriveVectorError",
    "IngestionConflictError",
    "ProviderUnavailableError",
    "RateLimitError",
    "RecordNotFoundError",
    "ValidationError",
    "ascii_only",
    "clean_for_embedding",
    "configure_logging",
    "get_logger",
    "normalize",
]
