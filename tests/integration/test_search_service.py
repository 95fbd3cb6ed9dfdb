"""Integration tests for SearchService over ingested chunks."""

from __future__ import annotations

import pytest

from src.models.principal import AuthenticatedPrincipal
from src.services.ingestion.ingestion_service import IngestionService
from src.services.search_service import SearchService
from src.utils.errors import ValidationError
from tests.conftest import FakeSourceFileProvider, MockEmbeddingProvider, MockVectorStore


@pytest.fixture
def search_service(
    embedding_provider: MockEmbeddingProvider, vector_store: MockVectorStore
) -> SearchService:
    return SearchService(embedding_provider=embedding_provider, vector_store=vector_store, default_top_k=3)


@pytest.fixture
async def ingested(
    ingestion_service: IngestionService,
    source_provider: FakeSourceFileProvider,
    principal: AuthenticatedPrincipal,
    other_principal: AuthenticatedPrincipal,
    sample_text: str,
) -> None:
    source_provider.add_file("mine", "mine.txt", sample_text.encode())
    source_provider.add_file("theirs", "theirs.txt", sample_text.encode())
    await ingestion_service.ingest(principal, "mine", "mine.txt")
    await ingestion_service.ingest(other_principal, "theirs", "theirs.txt")


class TestSearch:
    async def test_results_only_include_the_callers_chunks(
        self,
        search_service: SearchService,
        ingested: None,
        principal: AuthenticatedPrincipal,
    ) -> None:
        hits = await search_service.search(principal, "warehouse lease", top_k=50)

        assert hits
        assert {h.file_id for h in hits} == {"mine"}
        assert all(h.file_name == "mine.txt" for h in hits)
        assert [h.score for h in hits] == sorted((h.score for h in hits), reverse=True)

    async def test_default_top_k(
        self,
        search_service: SearchService,
        ingested: None,
        principal: AuthenticatedPrincipal,
    ) -> None:
        hits = await search_service.search(principal, "hiring")

        assert len(hits) == 3
        assert all(isinstance(h.chunk_index, int) for h in hits)
        assert all(h.text for h in hits)

    async def test_exact_chunk_text_ranks_first(
        self,
        search_service: SearchService,
        vector_store: MockVectorStore,
        ingested: None,
        principal: AuthenticatedPrincipal,
    ) -> None:
        target = vector_store.vectors["mine-1"].metadata["text"]

        hits = await search_service.search(principal, target, top_k=1)

        assert [h.id for h in hits] == ["mine-1"]
        assert hits[0].score == pytest.approx(1.0)

    @pytest.mark.parametrize("query", ["", "   ", "☃☃"])
    async def test_empty_query_is_rejected(
        self, search_service: SearchService, principal: AuthenticatedPrincipal, query: str
    ) -> None:
        with pytest.raises(ValidationError):
            await search_service.search(principal, query)

    @pytest.mark.parametrize("top_k", [0, -1, 51])
    async def test_top_k_out_of_range_is_rejected(
        self, search_service: SearchService, principal: AuthenticatedPrincipal, top_k: int
    ) -> None:
        with pytest.raises(ValidationError):
            await search_service.search(principal, "hiring", top_k=top_k)
