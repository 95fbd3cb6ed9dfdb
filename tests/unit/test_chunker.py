"""Unit tests for the TextChunker: recursive splitting with overlapping windows."""

from __future__ import annotations

import pytest

from src.models.ingestion import SourceDocument
from src.services.ingestion.chunker import TextChunker

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _words(count: int, word: str = "abcd") -> str:
    """``count`` copies of *word* joined by single spaces."""
    return " ".join([word] * count)


def _doc(text: str, **metadata) -> SourceDocument:
    return SourceDocument(text=text, metadata=metadata or {"source": "test.txt"})


# ---------------------------------------------------------------------------
# Tests
# ---------------------------------------------------------------------------


class TestConfiguration:
    def test_defaults(self) -> None:
        chunker = TextChunker()
        assert chunker.chunk_size == 500
        assert chunker.overlap == 100
        assert chunker.max_chunks == 100

    @pytest.mark.parametrize(
        ("chunk_size", "overlap", "max_chunks"),
        [(0, 0, 10), (100, -1, 10), (100, 100, 10), (100, 150, 10), (100, 10, 0)],
    )
    def test_invalid_parameters_raise(self, chunk_size: int, overlap: int, max_chunks: int) -> None:
        with pytest.raises(ValueError):
            TextChunker(chunk_size=chunk_size, overlap=overlap, max_chunks=max_chunks)


class TestWindowing:
    def test_short_text_is_one_chunk(self) -> None:
        result = TextChunker().split([_doc("A single short sentence.")])
        assert [c.text for c in result.chunks] == ["A single short sentence."]
        assert result.total_produced == 1
        assert result.truncated is False

    def test_empty_text_produces_no_chunks(self) -> None:
        result = TextChunker().split([_doc(""), _doc("   ")])
        assert result.chunks == []
        assert result.total_produced == 0

    def test_1399_characters_make_four_overlapping_chunks(self) -> None:
        text = _words(280)
        assert len(text) == 1399

        chunks = TextChunker().split_text(text)

        # 100 words per window, 20 words (100 chars) carried into the next.
        assert chunks == [_words(100), _words(100), _words(100), _words(40)]

    def test_chunks_never_exceed_chunk_size(self, sample_text: str) -> None:
        chunker = TextChunker(chunk_size=200, overlap=40)
        for text in chunker.split_text(sample_text):
            assert 0 < len(text) <= 200

    def test_consecutive_chunks_overlap(self) -> None:
        text = " ".join(f"w{i:03d}" for i in range(300))
        chunks = TextChunker(chunk_size=100, overlap=20).split_text(text)

        assert len(chunks) > 2
        for previous, current in zip(chunks, chunks[1:]):
            head = current.split(" ")[0]
            assert head in previous.split(" ")

    def test_zero_overlap_partitions_the_words(self) -> None:
        text = " ".join(f"w{i:03d}" for i in range(100))
        chunks = TextChunker(chunk_size=50, overlap=0).split_text(text)
        words = " ".join(chunks).split(" ")
        assert words == text.split(" ")

    def test_paragraph_breaks_are_preferred(self) -> None:
        para_a = _words(30, "alpha")
        para_b = _words(30, "omega")
        chunks = TextChunker(chunk_size=200, overlap=0).split_text(f"{para_a}\n\n{para_b}")
        assert chunks == [para_a, para_b]

    def test_unbroken_text_falls_back_to_characters(self) -> None:
        chunks = TextChunker(chunk_size=100, overlap=10).split_text("x" * 250)
        assert all(len(c) <= 100 for c in chunks)
        assert chunks[0] == "x" * 100

    def test_deterministic(self, sample_text: str) -> None:
        chunker = TextChunker(chunk_size=150, overlap=30)
        first = chunker.split([_doc(sample_text)])
        second = chunker.split([_doc(sample_text)])
        assert first == second


class TestSequencing:
    def test_indices_are_contiguous_across_documents(self) -> None:
        docs = [
            _doc(_words(150), page_number=1),
            _doc(_words(150), page_number=2),
        ]
        result = TextChunker().split(docs)

        assert [c.sequence_index for c in result.chunks] == list(range(len(result.chunks)))
        pages = [c.source_metadata["page_number"] for c in result.chunks]
        assert pages == sorted(pages)
        assert set(pages) == {1, 2}

    def test_empty_documents_do_not_consume_indices(self) -> None:
        result = TextChunker().split([_doc(""), _doc("hello there")])
        assert [(c.sequence_index, c.text) for c in result.chunks] == [(0, "hello there")]


class TestCeiling:
    def test_ceiling_keeps_first_max_chunks(self) -> None:
        text = "abcd " * 20020
        result = TextChunker().split([_doc(text)])

        assert len(result.chunks) == 100
        assert result.truncated is True
        assert result.total_produced > 100
        assert result.chunks[-1].sequence_index == 99

    def test_exactly_at_ceiling_is_not_truncated(self) -> None:
        chunker = TextChunker(chunk_size=60, overlap=0, max_chunks=3)
        text = "\n\n".join(_words(15, f"p{i}") for i in range(3))
        result = chunker.split([_doc(text)])
        assert len(result.chunks) == 3
        assert result.total_produced == 3
        assert result.truncated is False
