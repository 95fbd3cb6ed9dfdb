"""Document ingestion pipeline for driveVector.

Pipeline stages overview:

1. **Extract** (extractors.py) -- PDF pages via PyMuPDF, or the whole file
   decoded as UTF-8, into SourceDocument objects.

2. **Normalize** (src/utils/text_normalizer.py) -- reduces text to
   single-spaced printable ASCII.

3. **Chunk** (chunker.py / TextChunker) -- recursive character splitting
   into 500-character windows with 100 characters of overlap, capped at
   100 chunks per file.

4. **Embed** (via IEmbeddingProvider) -- one embedding per cleaned chunk,
   all requested concurrently.

5. **Store** (via IVectorStoreProvider) -- one upsert per file with ids
   ``"{file_id}-{sequence_index}"``.

The IngestionService class drives all five stages and the relational
record state machine around them.
"""

from src.services.ingestion.chunker import TextChunker
from src.services.ingestion.extractors import extract_documents
from src.services.ingestion.ingestion_service import IngestionService

__all__ = [
    "IngestionService",
    "TextChunker",
    "extract_documents",
]
