"""OpenAI / Azure OpenAI embedding provider adapter.

Wraps the ``openai`` async client to implement :class:`IEmbeddingProvider`.
When ``AZURE_OPENAI_ENDPOINT`` is set the Azure client is used and the
deployment name is sent as the model; otherwise the regular OpenAI client
is used (optionally against an OpenAI-compatible ``base_url``).
"""

from __future__ import annotations

import openai
import structlog

from src.config.settings import Settings
from src.interfaces.embedding_provider import IEmbeddingProvider
from src.utils.errors import (
    InvalidInputError,
    ProviderTimeoutError,
    RAGError,
    RateLimitError,
)

logger = structlog.get_logger(logger_name=__name__)

_OPENAI_BATCH_LIMIT = 2048

# Known embedding model dimensions.
_MODEL_DIMENSIONS: dict[str, int] = {
    "text-embedding-3-small": 1536,
    "text-embedding-3-large": 3072,
    "text-embedding-ada-002": 1536,
}


class OpenAIEmbeddingProvider(IEmbeddingProvider):
    """Embedding provider backed by the OpenAI embeddings API.

    Uses ``text-embedding-3-small`` (1536 dims) by default.  SDK errors are
    translated into the driveVector hierarchy so callers never see
    ``openai`` exception types.
    """

    def __init__(self, settings: Settings, client: openai.AsyncOpenAI | None = None) -> None:
        self._settings = settings
        self._api_key = settings.openai_api_key
        self._model = settings.openai_embedding_model or "text-embedding-3-small"

        if client is not None:
            self._client = client
            self._provider_label = "openai_embedding"
        elif settings.azure_openai_endpoint:
            self._client = openai.AsyncAzureOpenAI(
                api_key=self._api_key,
                api_version=settings.azure_openai_api_version,
                azure_endpoint=settings.azure_openai_endpoint,
            )
            self._provider_label = "azure_openai_embedding"
        else:
            client_kwargs: dict = {"api_key": self._api_key}
            if settings.openai_base_url:
                client_kwargs["base_url"] = settings.openai_base_url
            self._client = openai.AsyncOpenAI(**client_kwargs)
            self._provider_label = (
                "openai-compatible_embedding" if settings.openai_base_url else "openai_embedding"
            )

        # Azure routes by deployment name, which may differ from the model.
        self._request_model = settings.azure_openai_embedding_deployment or self._model
        self._dimension = _MODEL_DIMENSIONS.get(self._model, 1536)

    # ------------------------------------------------------------------
    # IEmbeddingProvider implementation
    # ------------------------------------------------------------------

    async def embed(self, texts: list[str]) -> list[list[float]]:
        """Generate embedding vectors for a batch of texts.

        Splits into batches of 2048 if the input exceeds the per-call limit.
        Empty strings are rejected up front with :class:`InvalidInputError`.
        """
        if not texts:
            return []
        if any(not t or not t.strip() for t in texts):
            raise InvalidInputError(
                message="Cannot embed empty text",
                provider_name=self.get_provider_name(),
            )

        try:
            all_embeddings: list[list[float]] = []
            for start in range(0, len(texts), _OPENAI_BATCH_LIMIT):
                batch = texts[start : start + _OPENAI_BATCH_LIMIT]
                response = await self._client.embeddings.create(
                    input=batch,
                    model=self._request_model,
                )
                all_embeddings.extend(item.embedding for item in response.data)
                logger.debug(
                    "openai_embedding_batch",
                    model=self._request_model,
                    provider=self._provider_label,
                    batch_size=len(batch),
                    tokens=response.usage.total_tokens if response.usage else None,
                )
            return all_embeddings
        except openai.RateLimitError as exc:
            self._log_api_error(exc)
            raise RateLimitError(
                message=f"{self._provider_label} rate limit exceeded",
                provider_name=self.get_provider_name(),
            ) from exc
        except openai.BadRequestError as exc:
            self._log_api_error(exc)
            raise InvalidInputError(
                message=f"{self._provider_label} rejected the embedding input",
                provider_name=self.get_provider_name(),
            ) from exc
        except openai.APITimeoutError as exc:
            self._log_api_error(exc)
            raise ProviderTimeoutError(
                message=f"{self._provider_label} request timed out",
                provider_name=self.get_provider_name(),
            ) from exc
        except openai.APIError as exc:
            self._log_api_error(exc)
            raise RAGError(
                message=f"{self._provider_label} embedding request failed",
                provider_name=self.get_provider_name(),
            ) from exc

    def _log_api_error(self, exc: openai.APIError) -> None:
        # Provider bodies stay in the server log; callers only see a fixed phrase.
        logger.warning(
            "openai_embedding_error",
            provider=self._provider_label,
            error_type=type(exc).__name__,
            status_code=getattr(exc, "status_code", None),
            error=str(exc),
        )

    async def embed_single(self, text: str) -> list[float]:
        """Generate an embedding vector for a single text string."""
        result = await self.embed([text])
        return result[0]

    def get_dimension(self) -> int:
        return self._dimension

    def get_provider_name(self) -> str:
        return self._provider_label

    def is_available(self) -> bool:
        """Return ``True`` if an API key is configured."""
        return bool(self._api_key)
