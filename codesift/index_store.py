"""Index stores: one query interface over two interchangeable backends.

* :class:`VectorIndexStore` keeps embedded chunks in a LanceDB table and
  answers with cosine nearest neighbours.
* :class:`LexicalIndexStore` keeps every chunk in process and answers by
  query-term overlap.  It needs no embedding and no external service.

Both return :class:`~codesift.models.Match` lists ranked by similarity,
highest first.  Threshold filtering is the retrieval engine's job.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import List, Optional, Tuple

from .models import CodeChunk, IndexEntry, Match
from .pipeline import EmbeddingPipeline, canonical_text
from .vector_store import VectorStore

logger = logging.getLogger(__name__)


class IndexStore(ABC):
    """Abstract base class for index backends."""

    backend: str = ""

    @abstractmethod
    def rebuild(self, chunks: List[CodeChunk]) -> None:
        """Replace the whole stored chunk set with *chunks*."""

    @abstractmethod
    def query(self, text: str, kind: Optional[str], limit: int) -> List[Match]:
        """Return up to *limit* matches for *text*, best first."""

    def discard(self) -> None:
        """Release whatever the backend holds for this store."""


class VectorIndexStore(IndexStore):
    """Cosine search over one LanceDB collection.

    Only chunks with an embedding are stored.  ``query`` embeds the text with
    the same pipeline that embedded the chunks, so the vectors are
    comparable.

    Raises:
        BackendUnavailable: LanceDB failed during ``rebuild`` or ``query``.
        EmbedFailure: the query text could not be embedded.
    """

    backend = "vector"

    def __init__(self, store: VectorStore, pipeline: EmbeddingPipeline, collection: str) -> None:
        self.store = store
        self.pipeline = pipeline
        self.collection = collection
        self.size = 0

    def rebuild(self, chunks: List[CodeChunk]) -> None:
        entries = [
            IndexEntry.from_chunk(chunk, canonical_text(chunk))
            for chunk in chunks
            if chunk.embedded
        ]
        self.store.upsert(self.collection, entries)
        self.size = len(entries)

    def query(self, text: str, kind: Optional[str], limit: int) -> List[Match]:
        vector = self.pipeline.embed_query(text)
        hits = self.store.query(self.collection, vector, limit, kind)
        matches = [
            Match(chunk_id=hit.id, similarity=max(0.0, min(1.0, 1.0 - hit.distance)))
            for hit in hits
        ]
        matches.sort(key=lambda m: m.similarity, reverse=True)
        return matches

    def discard(self) -> None:
        self.store.drop(self.collection)


class LexicalIndexStore(IndexStore):
    """Term-overlap matching, always available.

    A chunk is a candidate only if it contains at least one query term
    (case-insensitive substring of ``name + source + context``).  Its
    similarity is the fraction of query terms it contains.
    """

    backend = "lexical"

    def __init__(self) -> None:
        # (chunk id, kind, lower-cased searchable text), in extraction order
        self._docs: List[Tuple[str, str, str]] = []

    def rebuild(self, chunks: List[CodeChunk]) -> None:
        self._docs = [
            (
                chunk.id,
                chunk.kind,
                f"{chunk.name} {chunk.source_text} {chunk.context_window}".lower(),
            )
            for chunk in chunks
        ]

    def query(self, text: str, kind: Optional[str], limit: int) -> List[Match]:
        terms = text.lower().split()
        if not terms:
            return []
        matches: List[Match] = []
        for chunk_id, chunk_kind, doc in self._docs:
            if kind and chunk_kind != kind:
                continue
            hits = sum(1 for term in terms if term in doc)
            if hits == 0:
                continue
            matches.append(Match(chunk_id=chunk_id, similarity=hits / len(terms)))
        matches.sort(key=lambda m: m.similarity, reverse=True)
        return matches[:limit]

    def __len__(self) -> int:
        return len(self._docs)
