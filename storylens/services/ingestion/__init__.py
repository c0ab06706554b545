"""Document indexing pipeline for StoryLens.

Orchestrates the save pipeline: **chunk -> embed + tag -> publish -> invalidate**.

1. **Chunk** (chunker.py / TextChunker) -- Splits project text into
   ~800-word overlapping spans, preferring paragraph, then sentence, then
   word boundaries, and labelling each span with its chapter heading.

2. **Tag** (metadata_extractor.py / MetadataExtractor) -- Extracts
   characters, themes, emotions, plot elements and semantic tags with an
   analysis provider, parsed by response_parser.py and falling back to the
   keyword tables in keyword_tagger.py.

3. **Embed** (via EmbeddingService) -- Cached, batched embedding with
   exponential backoff on rate limits.

4. **Publish** (via IVectorStoreProvider) -- Atomically swaps the project's
   current index version.

The IndexingService class runs all four and invalidates the project's
caches before returning.
"""

from storylens.services.ingestion.chunker import TextChunker
from storylens.services.ingestion.indexing_service import IndexingService
from storylens.services.ingestion.metadata_extractor import MetadataExtractor

__all__ = [
    "IndexingService",
    "MetadataExtractor",
    "TextChunker",
]
