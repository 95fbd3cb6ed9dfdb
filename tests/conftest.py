"""Shared pytest fixtures for the driveVector test suite."""

from __future__ import annotations

import hashlib
import math
from collections.abc import Callable
from pathlib import Path
from typing import Any

import pytest

from src.interfaces.embedding_provider import IEmbeddingProvider
from src.interfaces.source_file_provider import ISourceFileProvider
from src.interfaces.vector_store_provider import IVectorStoreProvider
from src.models.ingestion import SourceFile, SourceFileInfo, VectorMatch, VectorRecord
from src.models.principal import AuthenticatedPrincipal
from src.providers.records.database import Database
from src.providers.records.sqlite_ingestion_record_store import SqliteIngestionRecordStore
from src.services.ingestion.chunker import TextChunker
from src.services.ingestion.ingestion_service import IngestionService
from src.utils.errors import ProviderUnavailableError, RAGError, SourceNotFoundError

# ---------------------------------------------------------------------------
# Sample content
# ---------------------------------------------------------------------------


@pytest.fixture
def project_root() -> Path:
    """Return the project root directory."""
    return Path(__file__).parent.parent


@pytest.fixture
def sample_text() -> str:
    """Roughly 1.4 KB of plain prose, enough for a few chunks."""
    paragraphs = [
        "Quarterly planning notes for the operations team. The agenda covers "
        "hiring, the warehouse move and the new supplier contracts.",
        "Hiring: two engineers start next month. Onboarding material lives in "
        "the shared drive and should be reviewed before their first day.",
        "Warehouse: the lease on the old site ends in June. Movers are booked "
        "for the last week of May and inventory counts happen the week before.",
        "Suppliers: three vendors answered the request for proposals. Pricing "
        "is within five percent across all of them, so delivery terms decide.",
    ]
    return "\n\n".join(paragraphs * 3)


# ---------------------------------------------------------------------------
# In-memory providers
# ---------------------------------------------------------------------------


class MockEmbeddingProvider(IEmbeddingProvider):
    """Deterministic hash-based embeddings.

    ``fail_when`` is called with each text; when it returns ``True`` the
    call raises :class:`RAGError` instead of returning a vector.
    """

    def __init__(self, dimension: int = 8, fail_when: Callable[[str], bool] | None = None) -> None:
        self._dimension = dimension
        self.fail_when = fail_when
        self.calls: list[str] = []

    def _vector(self, text: str) -> list[float]:
        digest = hashlib.sha256(text.encode("utf-8")).digest()
        return [(b / 255.0) - 0.5 for b in digest[: self._dimension]]

    async def embed(self, texts: list[str]) -> list[list[float]]:
        return [await self.embed_single(t) for t in texts]

    async def embed_single(self, text: str) -> list[float]:
        self.calls.append(text)
        if self.fail_when is not None and self.fail_when(text):
            raise RAGError(message="embedding backend unavailable", provider_name="mock")
        return self._vector(text)

    def get_dimension(self) -> int:
        return self._dimension

    def get_provider_name(self) -> str:
        return "mock-embedding"

    def is_available(self) -> bool:
        return True


class MockVectorStore(IVectorStoreProvider):
    """Dict-backed vector index with exact cosine search and metadata filters."""

    def __init__(self) -> None:
        self.vectors: dict[str, VectorRecord] = {}
        self.upsert_calls = 0
        self.fail_delete = False

    async def upsert(self, vectors: list[VectorRecord]) -> int:
        self.upsert_calls += 1
        for vector in vectors:
            self.vectors[vector.id] = vector
        return len(vectors)

    async def delete_by_filter(self, file_id: str) -> int:
        if self.fail_delete:
            raise RAGError(message="index unreachable", provider_name="mock")
        doomed = [vid for vid, v in self.vectors.items() if v.metadata.get("fileId") == file_id]
        for vid in doomed:
            del self.vectors[vid]
        return len(doomed)

    async def query(
        self,
        vector: list[float],
        top_k: int = 5,
        include_metadata: bool = True,
        filters: dict[str, Any] | None = None,
    ) -> list[VectorMatch]:
        candidates = [
            v
            for v in self.vectors.values()
            if all(v.metadata.get(k) == val for k, val in (filters or {}).items())
        ]
        scored = sorted(
            (VectorMatch(id=v.id, score=_cosine(vector, v.values), metadata=v.metadata) for v in candidates),
            key=lambda m: m.score,
            reverse=True,
        )
        return scored[:top_k]

    def ids_for(self, file_id: str) -> list[str]:
        return sorted(vid for vid, v in self.vectors.items() if v.metadata.get("fileId") == file_id)

    def get_provider_name(self) -> str:
        return "mock-vector-store"

    def is_available(self) -> bool:
        return True


def _cosine(a: list[float], b: list[float]) -> float:
    dot = sum(x * y for x, y in zip(a, b))
    norm = math.sqrt(sum(x * x for x in a)) * math.sqrt(sum(y * y for y in b))
    return dot / norm if norm else 0.0


class FakeSourceFileProvider(ISourceFileProvider):
    """In-memory Drive stand-in with a single app folder."""

    def __init__(self, folder_id: str | None = "folder-1") -> None:
        self.folder_id = folder_id
        self.files: dict[str, SourceFile] = {}
        self.get_calls = 0
        self._next_upload = 0
        self.fail_upload_names: set[str] = set()

    def add_file(self, file_id: str, name: str, content: bytes, mime_type: str = "text/plain") -> None:
        self.files[file_id] = SourceFile(
            file_id=file_id,
            name=name,
            mime_type=mime_type,
            size=len(content),
            content=content,
        )

    async def get(self, file_id: str, principal: AuthenticatedPrincipal) -> SourceFile:
        self.get_calls += 1
        if file_id not in self.files:
            raise SourceNotFoundError(message=f"File not found: {file_id}", provider_name="fake")
        return self.files[file_id]

    async def exists(self, file_id: str, principal: AuthenticatedPrincipal) -> bool:
        return file_id in self.files

    async def list(self, folder_ref: str, principal: AuthenticatedPrincipal) -> list[SourceFileInfo]:
        return [
            SourceFileInfo(id=f.file_id, name=f.name, mime_type=f.mime_type, size=f.size)
            for f in self.files.values()
        ]

    async def resolve_folder(self, principal: AuthenticatedPrincipal, create: bool = False) -> str | None:
        if self.folder_id is None and create:
            self.folder_id = "folder-created"
        return self.folder_id

    async def upload(
        self,
        file_name: str,
        mime_type: str,
        content: bytes,
        principal: AuthenticatedPrincipal,
        folder_ref: str | None = None,
    ) -> SourceFileInfo:
        if file_name in self.fail_upload_names:
            raise ProviderUnavailableError(message="Drive upload failed: 503", provider_name="fake")
        self._next_upload += 1
        file_id = f"uploaded-{self._next_upload}"
        self.add_file(file_id, file_name, content, mime_type)
        return SourceFileInfo(
            id=file_id,
            name=file_name,
            mime_type=mime_type,
            size=len(content),
            web_view_link=f"https://drive.example/{file_id}",
        )

    def get_provider_name(self) -> str:
        return "fake-drive"


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def principal() -> AuthenticatedPrincipal:
    return AuthenticatedPrincipal(
        user_id="user-1",
        email="user1@example.com",
        access_token="ya29.test-token",
    )


@pytest.fixture
def other_principal() -> AuthenticatedPrincipal:
    return AuthenticatedPrincipal(
        user_id="user-2",
        email="user2@example.com",
        access_token="ya29.other-token",
    )


@pytest.fixture
def embedding_provider() -> MockEmbeddingProvider:
    return MockEmbeddingProvider()


@pytest.fixture
def vector_store() -> MockVectorStore:
    return MockVectorStore()


@pytest.fixture
def source_provider() -> FakeSourceFileProvider:
    return FakeSourceFileProvider()


@pytest.fixture
async def database(tmp_path: Path) -> Database:
    db = Database(tmp_path / "drivevector-test.db")
    await db.initialize()
    return db


@pytest.fixture
def record_store(database: Database) -> SqliteIngestionRecordStore:
    return SqliteIngestionRecordStore(database)


@pytest.fixture
def ingestion_service(
    record_store: SqliteIngestionRecordStore,
    source_provider: FakeSourceFileProvider,
    embedding_provider: MockEmbeddingProvider,
    vector_store: MockVectorStore,
) -> IngestionService:
    return IngestionService(
        record_store=record_store,
        source_provider=source_provider,
        embedding_provider=embedding_provider,
        vector_store=vector_store,
        chunker=TextChunker(),
    )
