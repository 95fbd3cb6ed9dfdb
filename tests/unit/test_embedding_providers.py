"""Unit tests for the OpenAI / Azure OpenAI embedding provider adapter."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import openai
import pytest

from src.config.settings import Settings
from src.providers.embedding.openai_embedding_provider import OpenAIEmbeddingProvider
from src.utils.errors import InvalidInputError, ProviderTimeoutError, RAGError, RateLimitError

_EMBEDDINGS_URL = "https://api.openai.com/v1/embeddings"


def _settings(**overrides) -> Settings:
    defaults = {
        "openai_api_key": "sk-test",
        "openai_base_url": "",
        "openai_embedding_model": "text-embedding-3-small",
        "azure_openai_endpoint": "",
        "azure_openai_embedding_deployment": "",
    }
    defaults.update(overrides)
    return Settings(_env_file=None, **defaults)


def _response(vectors: list[list[float]]) -> MagicMock:
    response = MagicMock()
    response.data = [MagicMock(embedding=v) for v in vectors]
    response.usage = MagicMock(total_tokens=10)
    return response


def _client(side_effect=None, vectors: list[list[float]] | None = None) -> MagicMock:
    client = MagicMock()
    client.embeddings.create = AsyncMock(
        side_effect=side_effect,
        return_value=_response(vectors or [[0.1, 0.2]]),
    )
    return client


def _http_response(status: int) -> httpx.Response:
    return httpx.Response(status, request=httpx.Request("POST", _EMBEDDINGS_URL))


class TestConfiguration:
    def test_openai_label_and_dimension(self) -> None:
        with patch("src.providers.embedding.openai_embedding_provider.openai.AsyncOpenAI"):
            provider = OpenAIEmbeddingProvider(_settings())
        assert provider.get_provider_name() == "openai_embedding"
        assert provider.get_dimension() == 1536

    def test_large_model_dimension(self) -> None:
        provider = OpenAIEmbeddingProvider(
            _settings(openai_embedding_model="text-embedding-3-large"), client=_client()
        )
        assert provider.get_dimension() == 3072

    def test_compatible_base_url_label(self) -> None:
        with patch("src.providers.embedding.openai_embedding_provider.openai.AsyncOpenAI") as ctor:
            provider = OpenAIEmbeddingProvider(_settings(openai_base_url="http://localhost:1234/v1"))
        assert provider.get_provider_name() == "openai-compatible_embedding"
        assert ctor.call_args.kwargs["base_url"] == "http://localhost:1234/v1"

    def test_azure_client_when_endpoint_set(self) -> None:
        with patch(
            "src.providers.embedding.openai_embedding_provider.openai.AsyncAzureOpenAI"
        ) as azure_ctor:
            provider = OpenAIEmbeddingProvider(
                _settings(
                    azure_openai_endpoint="https://example.openai.azure.com",
                    azure_openai_embedding_deployment="embed-deploy",
                )
            )
        assert provider.get_provider_name() == "azure_openai_embedding"
        assert azure_ctor.call_args.kwargs["azure_endpoint"] == "https://example.openai.azure.com"

    def test_is_available_tracks_api_key(self) -> None:
        assert OpenAIEmbeddingProvider(_settings(), client=_client()).is_available() is True
        assert (
            OpenAIEmbeddingProvider(_settings(openai_api_key=""), client=_client()).is_available()
            is False
        )


class TestEmbed:
    async def test_embed_returns_vectors_in_order(self) -> None:
        client = _client(vectors=[[0.1], [0.2]])
        provider = OpenAIEmbeddingProvider(_settings(), client=client)

        result = await provider.embed(["hello", "world"])

        assert result == [[0.1], [0.2]]
        kwargs = client.embeddings.create.call_args.kwargs
        assert kwargs == {"input": ["hello", "world"], "model": "text-embedding-3-small"}

    async def test_deployment_name_is_sent_as_model(self) -> None:
        client = _client()
        provider = OpenAIEmbeddingProvider(
            _settings(azure_openai_embedding_deployment="embed-deploy"), client=client
        )
        await provider.embed_single("hello")
        assert client.embeddings.create.call_args.kwargs["model"] == "embed-deploy"

    async def test_embed_empty_list(self) -> None:
        client = _client()
        provider = OpenAIEmbeddingProvider(_settings(), client=client)
        assert await provider.embed([]) == []
        client.embeddings.create.assert_not_called()

    @pytest.mark.parametrize("text", ["", "   "])
    async def test_empty_text_is_rejected(self, text: str) -> None:
        client = _client()
        provider = OpenAIEmbeddingProvider(_settings(), client=client)
        with pytest.raises(InvalidInputError):
            await provider.embed_single(text)
        client.embeddings.create.assert_not_called()

    async def test_large_batches_are_split(self) -> None:
        client = MagicMock()
        client.embeddings.create = AsyncMock(
            side_effect=lambda input, model: _response([[0.0]] * len(input))
        )
        provider = OpenAIEmbeddingProvider(_settings(), client=client)

        result = await provider.embed(["t"] * 2050)

        assert len(result) == 2050
        assert client.embeddings.create.await_count == 2


class TestErrorMapping:
    @pytest.mark.parametrize(
        ("sdk_error", "expected"),
        [
            (
                openai.RateLimitError("slow down", response=_http_response(429), body=None),
                RateLimitError,
            ),
            (
                openai.BadRequestError("bad input", response=_http_response(400), body=None),
                InvalidInputError,
            ),
            (
                openai.APITimeoutError(request=httpx.Request("POST", _EMBEDDINGS_URL)),
                ProviderTimeoutError,
            ),
            (
                openai.InternalServerError("oops", response=_http_response(500), body=None),
                RAGError,
            ),
        ],
    )
    async def test_sdk_errors_are_translated(self, sdk_error: Exception, expected: type) -> None:
        provider = OpenAIEmbeddingProvider(_settings(), client=_client(side_effect=sdk_error))
        with pytest.raises(expected) as exc_info:
            await provider.embed(["hello"])
        assert exc_info.value.provider_name == "openai_embedding"

    async def test_provider_error_body_is_not_exposed(self) -> None:
        sdk_error = openai.RateLimitError(
            "Error code: 429 - {'error': {'message': 'org-4f2a quota exhausted'}}",
            response=_http_response(429),
            body={"error": {"message": "org-4f2a quota exhausted"}},
        )
        provider = OpenAIEmbeddingProvider(_settings(), client=_client(side_effect=sdk_error))

        with pytest.raises(RateLimitError) as exc_info:
            await provider.embed(["hello"])

        assert exc_info.value.message == "openai_embedding rate limit exceeded"
        assert "org-4f2a" not in str(exc_info.value)
