"""Custom exception hierarchy for driveVector.

All application exceptions inherit from :class:`DriveVectorError`, which
carries an optional ``provider_name`` so error handlers can identify which
external service (e.g. "openai", "google_drive", "chromadb") caused the
failure.  Every class also declares the HTTP status the API layer maps it to.

The hierarchy is organized by failure domain:

    DriveVectorError  (base -- catch-all, 500)
    +-- ConfigurationError        (startup / missing config)
    +-- AuthenticationError       (no or invalid session, 401)
    |   +-- AuthExpiredError      (delegated OAuth token rejected, 401)
    +-- PermissionDeniedError     (provider refused access, 403)
    +-- ValidationError           (malformed request / disallowed file, 400)
    +-- NotFoundError             (404)
    |   +-- SourceNotFoundError   (file missing at the provider)
    |   +-- RecordNotFoundError   (relational record missing)
    +-- AlreadyDeletedError       (soft-deleted already, 409)
    +-- IngestionConflictError    (ingestion already in flight, 409)
    +-- ExtractionError           (text extraction failed)
    +-- IngestionError            (pipeline step failed)
    +-- RAGError                  (embedding or vector-index failure)
    |   +-- RateLimitError        (429)
    |   +-- InvalidInputError     (400)
    |   +-- ProviderTimeoutError  (504)
    +-- ProviderUnavailableError  (external service down / unreachable)
    +-- DatabaseError             (relational store failure)
"""


class DriveVectorError(Exception):
    """Base exception for all driveVector errors.

    Every subclass carries a human-readable ``message`` and an optional
    ``provider_name`` identifying which external service triggered the
    error.  The ``__str__`` method prefixes the provider name in brackets
    for structured log output, e.g. ``[openai] Rate limit exceeded``.
    """

    status_code: int = 500

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        provider_name: str | None = None,
    ) -> None:
        self._message = message
        self._provider_name = provider_name
        super().__init__(self._message)

    @property
    def message(self) -> str:
        return self._message

    @property
    def provider_name(self) -> str | None:
        return self._provider_name

    def __str__(self) -> str:
        if self._provider_name:
            return f"[{self._provider_name}] {self._message}"
        return self._message


# ---------------------------------------------------------------------------
# Startup / request errors
# ---------------------------------------------------------------------------

class ConfigurationError(DriveVectorError):
    """Raised when configuration is invalid or missing at startup."""

    def __init__(
        self,
        message: str = "Invalid or missing configuration",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class AuthenticationError(DriveVectorError):
    """Raised when a request carries no valid session for a principal."""

    status_code = 401

    def __init__(
        self,
        message: str = "Not authenticated",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class AuthExpiredError(AuthenticationError):
    """Raised when the provider rejects the principal's delegated token."""

    def __init__(
        self,
        message: str = "Delegated credentials expired or were revoked",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class PermissionDeniedError(DriveVectorError):
    """Raised when the provider refuses access to a resource."""

    status_code = 403

    def __init__(
        self,
        message: str = "Permission denied. Please try logging in again.",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class ValidationError(DriveVectorError):
    """Raised when a request is rejected before any record is created."""

    status_code = 400

    def __init__(
        self,
        message: str = "Invalid request",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


# ---------------------------------------------------------------------------
# Lookup / state errors
# ---------------------------------------------------------------------------

class NotFoundError(DriveVectorError):
    """Raised when a file or record does not exist."""

    status_code = 404

    def __init__(
        self,
        message: str = "Not found",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class SourceNotFoundError(NotFoundError):
    """Raised when the source-file provider has no file with the given id."""

    def __init__(
        self,
        message: str = "File not found",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class RecordNotFoundError(NotFoundError):
    """Raised when no relational record matches the principal and id."""

    def __init__(
        self,
        message: str = "Record not found",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class AlreadyDeletedError(DriveVectorError):
    """Raised when deleting a file whose record is already inactive.

    Not retryable: the file is already gone from the user's point of view.
    """

    status_code = 409

    def __init__(
        self,
        message: str = "File already deleted",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class IngestionConflictError(DriveVectorError):
    """Raised when an ingestion for the same file is already pending or running."""

    status_code = 409

    def __init__(
        self,
        message: str = "Ingestion already in progress for this file",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


# ---------------------------------------------------------------------------
# Pipeline errors
# ---------------------------------------------------------------------------

class ExtractionError(DriveVectorError):
    """Raised when text cannot be extracted from the source bytes."""

    def __init__(
        self,
        message: str = "Text extraction failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class IngestionError(DriveVectorError):
    """Raised when an ingestion step fails and the record is marked failed."""

    def __init__(
        self,
        message: str = "Ingestion failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class RAGError(DriveVectorError):
    """Raised when an embedding or vector-index operation fails."""

    def __init__(
        self,
        message: str = "RAG pipeline operation failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class RateLimitError(RAGError):
    """Raised when an API rate limit is exceeded.

    The core never retries; the caller re-invokes the operation.
    """

    status_code = 429

    def __init__(
        self,
        message: str = "Rate limit exceeded",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class InvalidInputError(RAGError):
    """Raised when the embedding service rejects its input (e.g. empty text)."""

    status_code = 400

    def __init__(
        self,
        message: str = "Invalid embedding input",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class ProviderTimeoutError(RAGError):
    """Raised when an upstream call times out at the transport level."""

    status_code = 504

    def __init__(
        self,
        message: str = "Upstream service timed out",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class ProviderUnavailableError(DriveVectorError):
    """Raised when an external service or provider is unreachable."""

    def __init__(
        self,
        message: str = "External service is unavailable",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class DatabaseError(DriveVectorError):
    """Raised when the relational store cannot complete an operation."""

    def __init__(
        self,
        message: str = "Database operation failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)
