"""Index generations and the holder that swaps them atomically.

An :class:`IndexGeneration` is one complete, immutable snapshot of every
chunk found under an analyzed path, plus the stores built over it.  The
:class:`GenerationHolder` is the only shared mutable state in the engine:
it hands out generation numbers, publishes finished generations, and lets
readers wait until no build is in flight.

Publishing rule: a finished build is swapped in only if it is still the most
recently *started* one.  Anything older is discarded, so a slow build of an
old path can never overwrite a newer index.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Tuple

from .errors import NotIndexed
from .index_store import LexicalIndexStore, VectorIndexStore
from .models import CodeChunk, ParseFailure

logger = logging.getLogger(__name__)


class IndexState(str, Enum):
    EMPTY = "empty"
    INDEXING = "indexing"
    READY = "ready"


@dataclass(frozen=True)
class IndexGeneration:
    number: int
    root: str
    file_count: int
    chunks: Tuple[CodeChunk, ...]
    lexical: LexicalIndexStore
    vector: Optional[VectorIndexStore] = None
    failures: Tuple[ParseFailure, ...] = ()
    _by_id: Dict[str, CodeChunk] = field(default_factory=dict, repr=False, compare=False)

    def __post_init__(self) -> None:
        self._by_id.update((chunk.id, chunk) for chunk in self.chunks)

    @property
    def backend_mode(self) -> str:
        return "vector" if self.vector is not None else "lexical"

    @property
    def embedded_count(self) -> int:
        return sum(1 for chunk in self.chunks if chunk.embedded)

    def chunk(self, chunk_id: str) -> Optional[CodeChunk]:
        return self._by_id.get(chunk_id)

    def discard(self) -> None:
        """Drop backend resources owned by this generation."""
        if self.vector is not None:
            self.vector.discard()


class GenerationHolder:
    """Thread-safe reference to the current generation.

    Readers only take a reference under the lock; generations are never
    mutated after publication.
    """

    def __init__(self) -> None:
        self._cond = threading.Condition()
        self._current: Optional[IndexGeneration] = None
        self._previous: Optional[IndexGeneration] = None
        self._latest_started = 0
        self._in_flight = 0

    # ------------------------------------------------------------------
    # Writer side
    # ------------------------------------------------------------------

    def begin(self) -> int:
        """Start a build and return its generation number."""
        with self._cond:
            self._latest_started += 1
            self._in_flight += 1
            return self._latest_started

    def is_stale(self, number: int) -> bool:
        with self._cond:
            return number != self._latest_started

    def publish(self, generation: IndexGeneration) -> Tuple[bool, List[IndexGeneration]]:
        """Swap *generation* in if it is still the newest build.

        Returns ``(published, retired)`` where *retired* lists generations
        whose backend resources can now be released.  The generation being
        replaced is kept one round longer for readers still holding it.
        """
        with self._cond:
            self._in_flight -= 1
            if generation.number != self._latest_started:
                self._cond.notify_all()
                return False, [generation]
            retired = [self._previous] if self._previous is not None else []
            self._previous = self._current
            self._current = generation
            self._cond.notify_all()
        logger.info(
            "Published index generation %d (%d chunks, %s)",
            generation.number, len(generation.chunks), generation.backend_mode,
        )
        return True, retired

    def abort(self, number: int) -> None:
        """Mark build *number* finished without producing a generation."""
        with self._cond:
            self._in_flight -= 1
            self._cond.notify_all()
        logger.debug("Index build %d aborted", number)

    # ------------------------------------------------------------------
    # Reader side
    # ------------------------------------------------------------------

    @property
    def state(self) -> IndexState:
        with self._cond:
            if self._in_flight:
                return IndexState.INDEXING
            return IndexState.READY if self._current is not None else IndexState.EMPTY

    @property
    def current(self) -> Optional[IndexGeneration]:
        with self._cond:
            return self._current

    def wait_ready(self, timeout: Optional[float] = None) -> IndexGeneration:
        """Block until no build is in flight, then return the current generation.

        Raises:
            NotIndexed: nothing was ever indexed, or *timeout* elapsed while a
                build was still running.
        """
        with self._cond:
            if self._current is None and not self._in_flight:
                raise NotIndexed("No codebase has been indexed yet. Run index(path) first.")
            if not self._cond.wait_for(lambda: self._in_flight == 0, timeout):
                raise NotIndexed(f"Indexing still in progress after {timeout}s.")
            if self._current is None:
                raise NotIndexed("Indexing did not produce a usable index.")
            return self._current
