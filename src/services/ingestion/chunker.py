"""Recursive character chunking with overlapping windows.

Splits normalized document text into :class:`~src.models.ingestion.Chunk`
objects sized for the embedding model (500 characters with 100 characters
of overlap by default).

The strategy is recursive: text is split on the coarsest separator it
contains (paragraph break, then line break, then space, then individual
characters).  Pieces shorter than the chunk size are merged greedily into
windows; any piece that is still too long is split again with the next
finer separator.  When a window is flushed, its leading pieces are dropped
until the carried-over tail fits in the overlap allowance, so consecutive
chunks share context across the boundary.

Each separator stays attached to the piece that follows it, so joining a
window's pieces reproduces the original text span exactly.

A hard ceiling (``max_chunks``) bounds the cost of one file.  Chunks past
the ceiling are dropped and the result reports the truncation.
"""

from __future__ import annotations

import re
from collections.abc import Sequence

import structlog

from src.models.ingestion import Chunk, ChunkingResult, SourceDocument

logger = structlog.get_logger(logger_name=__name__)

_DEFAULT_SEPARATORS: tuple[str, ...] = ("\n\n", "\n", " ", "")


class TextChunker:
    """Splits documents into overlapping character windows.

    Parameters
    ----------
    chunk_size:
        Maximum characters per chunk (default 500).
    overlap:
        Maximum characters carried from the end of one chunk into the next
        (default 100).  Must be smaller than *chunk_size*.
    max_chunks:
        Ceiling on the number of chunks kept per file (default 100).
    separators:
        Separators tried from coarsest to finest.  The last one should be
        ``""`` so any span can be split down to single characters.
    """

    def __init__(
        self,
        chunk_size: int = 500,
        overlap: int = 100,
        max_chunks: int = 100,
        separators: Sequence[str] = _DEFAULT_SEPARATORS,
    ) -> None:
        if chunk_size <= 0:
            raise ValueError(f"chunk_size must be positive, got {chunk_size}")
        if overlap < 0:
            raise ValueError(f"overlap must be non-negative, got {overlap}")
        if overlap >= chunk_size:
            raise ValueError(
                f"overlap ({overlap}) must be smaller than chunk_size ({chunk_size})"
            )
        if max_chunks <= 0:
            raise ValueError(f"max_chunks must be positive, got {max_chunks}")
        self._chunk_size = chunk_size
        self._overlap = overlap
        self._max_chunks = max_chunks
        self._separators = list(separators)

    @property
    def chunk_size(self) -> int:
        return self._chunk_size

    @property
    def overlap(self) -> int:
        return self._overlap

    @property
    def max_chunks(self) -> int:
        return self._max_chunks

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def split(self, documents: Sequence[SourceDocument]) -> ChunkingResult:
        """Split every document of one file into chunks.

        Chunks from all documents are numbered with one contiguous 0-based
        ``sequence_index``, in document order.  Each chunk carries its
        document's metadata (e.g. ``page_number``) as ``source_metadata``.

        Returns
        -------
        ChunkingResult
            The first ``max_chunks`` chunks, the total produced before the
            ceiling, and whether anything was dropped.
        """
        chunks: list[Chunk] = []
        total_produced = 0

        for document in documents:
            for text in self.split_text(document.text):
                if len(chunks) < self._max_chunks:
                    chunks.append(
                        Chunk(
                            text=text,
                            sequence_index=total_produced,
                            source_metadata=dict(document.metadata),
                        )
                    )
                total_produced += 1

        truncated = total_produced > self._max_chunks
        if truncated:
            logger.warning(
                "chunk_ceiling_reached",
                total_produced=total_produced,
                kept=len(chunks),
                max_chunks=self._max_chunks,
            )

        logger.debug(
            "chunking_complete",
            documents=len(documents),
            num_chunks=len(chunks),
            avg_chars=self._avg_chars(chunks),
        )
        return ChunkingResult(chunks=chunks, total_produced=total_produced, truncated=truncated)

    def split_text(self, text: str) -> list[str]:
        """Split a single string into stripped, non-empty chunk texts."""
        if not text or not text.strip():
            return []
        return self._split_recursive(text, self._separators)

    # ------------------------------------------------------------------
    # Recursive splitting
    # ------------------------------------------------------------------

    def _split_recursive(self, text: str, separators: list[str]) -> list[str]:
        """Split *text* on the coarsest separator present, recursing on long pieces."""
        separator = separators[-1]
        finer: list[str] = []
        for i, candidate in enumerate(separators):
            if candidate == "":
                separator = candidate
                break
            if candidate in text:
                separator = candidate
                finer = separators[i + 1 :]
                break

        pieces = self._split_keeping_separator(text, separator)

        chunks: list[str] = []
        short_pieces: list[str] = []
        for piece in pieces:
            if len(piece) < self._chunk_size:
                short_pieces.append(piece)
                continue

            if short_pieces:
                chunks.extend(self._merge(short_pieces))
                short_pieces = []
            if not finer:
                stripped = piece.strip()
                if stripped:
                    chunks.append(stripped)
            else:
                chunks.extend(self._split_recursive(piece, finer))

        if short_pieces:
            chunks.extend(self._merge(short_pieces))
        return chunks

    @staticmethod
    def _split_keeping_separator(text: str, separator: str) -> list[str]:
        """Split *text* on *separator*, attaching each separator to the next piece."""
        if separator == "":
            return list(text)

        parts = re.split(f"({re.escape(separator)})", text)
        pieces = [parts[0]]
        # re.split with a capture group alternates text, separator, text, ...
        pieces.extend(parts[i] + parts[i + 1] for i in range(1, len(parts) - 1, 2))
        return [p for p in pieces if p != ""]

    # ------------------------------------------------------------------
    # Window accumulation
    # ------------------------------------------------------------------

    def _merge(self, pieces: list[str]) -> list[str]:
        """Greedily pack *pieces* into windows of at most ``chunk_size`` characters.

        On each flush, leading pieces are dropped until the remaining tail
        is at most ``overlap`` characters and the incoming piece fits.
        """
        chunks: list[str] = []
        window: list[str] = []
        total = 0

        for piece in pieces:
            length = len(piece)
            if total + length > self._chunk_size and window:
                chunk = "".join(window).strip()
                if chunk:
                    chunks.append(chunk)
                while window and (
                    total > self._overlap or total + length > self._chunk_size
                ):
                    total -= len(window[0])
                    window.pop(0)
            window.append(piece)
            total += length

        chunk = "".join(window).strip()
        if chunk:
            chunks.append(chunk)
        return chunks

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _avg_chars(chunks: list[Chunk]) -> int:
        if not chunks:
            return 0
        return sum(len(c.text) for c in chunks) // len(chunks)
