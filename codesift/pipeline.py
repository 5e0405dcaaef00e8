"""Embedding pipeline: populate ``CodeChunk.embedding`` for a chunk set.

One request per chunk runs on a bounded thread pool.  A chunk whose request
keeps failing is logged and left without an embedding; it never fails the
batch.  With no embedder configured the pipeline does nothing, which is the
supported lexical-only mode.
"""

from __future__ import annotations

import logging
import threading
import time
from collections import OrderedDict
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, List, Optional

from .config import (
    DEFAULT_EMBED_BACKOFF,
    DEFAULT_EMBED_CACHE_SIZE,
    DEFAULT_EMBED_RETRIES,
    DEFAULT_EMBED_WORKERS,
)
from .errors import EmbedFailure
from .models import CodeChunk

logger = logging.getLogger(__name__)


def canonical_text(chunk: CodeChunk) -> str:
    """Fixed-order text used both as the embedding input and the stored document."""
    return "\n".join([
        f"Type: {chunk.kind}",
        f"Name: {chunk.name}",
        f"File: {chunk.file_path}",
        f"Content: {chunk.source_text}",
        f"Context: {chunk.context_window}",
        f"Dependencies: {', '.join(sorted(chunk.dependencies))}",
    ])


class EmbeddingPipeline:
    """Embed chunks concurrently with per-chunk retries and a text cache.

    The cache is keyed by canonical text (and the embedder's ``model_key``),
    so re-indexing unchanged code reuses earlier vectors without calling
    the embedding service again.  It holds at most *cache_size* vectors,
    evicting the least recently used.  Retry *n* of a chunk waits
    ``backoff * 2**(n - 1)`` seconds first.
    """

    def __init__(
        self,
        embedder: Optional[Any],
        workers: int = DEFAULT_EMBED_WORKERS,
        retries: int = DEFAULT_EMBED_RETRIES,
        backoff: float = DEFAULT_EMBED_BACKOFF,
        cache_size: int = DEFAULT_EMBED_CACHE_SIZE,
    ) -> None:
        self.embedder = embedder
        self.workers = max(1, workers)
        self.retries = max(0, retries)
        self.backoff = max(0.0, backoff)
        self.cache_size = max(0, cache_size)
        self._cache: "OrderedDict[str, List[float]]" = OrderedDict()
        self._cache_lock = threading.Lock()

    @property
    def enabled(self) -> bool:
        return self.embedder is not None

    def run(
        self,
        chunks: List[CodeChunk],
        should_stop: Optional[Callable[[], bool]] = None,
    ) -> int:
        """Embed *chunks* in place and return how many now carry a vector.

        *should_stop* is polled before each request; once it returns True the
        remaining chunks are left unembedded.
        """
        if not self.enabled or not chunks:
            return 0

        def _job(chunk: CodeChunk) -> bool:
            if should_stop is not None and should_stop():
                return False
            vector = self._embed_with_retry(canonical_text(chunk), chunk.id)
            if vector is None:
                return False
            chunk.embedding = vector
            return True

        with ThreadPoolExecutor(max_workers=self.workers, thread_name_prefix="codesift-embed") as pool:
            outcomes = list(pool.map(_job, chunks))

        embedded = sum(1 for ok in outcomes if ok)
        if embedded < len(chunks):
            logger.info("Embedded %d of %d chunks", embedded, len(chunks))
        return embedded

    def embed_query(self, text: str) -> List[float]:
        """Embed query text once (no retry); raises :class:`EmbedFailure`."""
        if self.embedder is None:
            raise EmbedFailure("no embedding capability configured")
        return self.embedder.embed_text(text)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _cache_key(self, text: str) -> str:
        return f"{getattr(self.embedder, 'model_key', '')}||{text}"

    def _embed_with_retry(self, text: str, chunk_id: str) -> Optional[List[float]]:
        key = self._cache_key(text)
        with self._cache_lock:
            cached = self._cache.get(key)
            if cached is not None:
                self._cache.move_to_end(key)
                return cached

        last_error: Optional[EmbedFailure] = None
        for attempt in range(self.retries + 1):
            if attempt and self.backoff:
                time.sleep(self.backoff * 2 ** (attempt - 1))
            try:
                vector = self.embedder.embed_text(text)
            except EmbedFailure as exc:
                last_error = exc
                continue
            self._cache_put(key, vector)
            return vector

        logger.warning("Embedding failed for %s: %s", chunk_id, last_error)
        return None

    def _cache_put(self, key: str, vector: List[float]) -> None:
        if not self.cache_size:
            return
        with self._cache_lock:
            self._cache[key] = vector
            self._cache.move_to_end(key)
            while len(self._cache) > self.cache_size:
                self._cache.popitem(last=False)

    @property
    def cached(self) -> int:
        """Number of vectors currently held in the cache."""
        with self._cache_lock:
            return len(self._cache)

    def clear_cache(self) -> None:
        with self._cache_lock:
            self._cache.clear()
