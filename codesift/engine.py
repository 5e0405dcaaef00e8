"""Engine facade: index a directory, then query it.

``index(path)`` runs the whole build (walk, parse, extract, embed, store)
and atomically swaps the result in as the current generation.  Every query
operation reads whatever generation is current, waiting while a build is in
flight.
"""

from __future__ import annotations

import logging
import uuid
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Any, Dict, List, Optional, Set, Tuple

from . import analysis
from .config import Settings
from .embeddings import get_embedder
from .errors import BackendUnavailable, InvalidPath
from .extractor import ChunkExtractor, walk_source_files
from .generation import GenerationHolder, IndexGeneration, IndexState
from .index_store import LexicalIndexStore, VectorIndexStore
from .llm import get_llm
from .models import (
    CodeChunk,
    EmbeddingReport,
    IndexSummary,
    ParseFailure,
    PatternSummary,
    SearchQuery,
    SearchResult,
)
from .parser import SourceParser
from .pipeline import EmbeddingPipeline
from .retrieval import BackendMonitor, RetrievalEngine
from .vector_store import VectorStore

logger = logging.getLogger(__name__)


class CodeIndexEngine:
    """Indexes one codebase at a time and serves queries over it.

    Args:
        settings:     Tunables; defaults when omitted.
        embedder:     Embedding capability, or None for lexical-only mode.
        llm:          Explanation capability, or None.
        vector_store: LanceDB adapter (or anything with the same methods).
                      It is handshaken once here; if that fails the engine
                      stays lexical for its whole lifetime.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        embedder: Optional[Any] = None,
        llm: Optional[Any] = None,
        vector_store: Optional[Any] = None,
    ) -> None:
        self.settings = settings or Settings()
        self.extractor = ChunkExtractor(SourceParser(), self.settings.context_radius)
        self.pipeline = EmbeddingPipeline(
            embedder,
            workers=self.settings.embed_workers,
            retries=self.settings.embed_retries,
            backoff=self.settings.embed_backoff,
            cache_size=self.settings.embed_cache_size,
        )
        self.vector_store = vector_store
        self.monitor = BackendMonitor(available=self._handshake(vector_store))
        self.holder = GenerationHolder()
        self.retrieval = RetrievalEngine(self.holder, self.monitor, llm, self.settings.ready_timeout)
        # Tables from different engines sharing one LanceDB directory must not collide.
        self._session = uuid.uuid4().hex[:8]

    @classmethod
    def from_config(cls, settings: Optional[Settings] = None) -> "CodeIndexEngine":
        """Build an engine from ``config.toml`` and the environment."""
        settings = settings or Settings.load()
        embedder = get_embedder(settings.embeddings)
        vector_store = None
        if settings.vector_enabled and embedder is not None:
            try:
                vector_store = VectorStore(settings.vector_uri)
            except BackendUnavailable as exc:
                logger.warning("Vector backend disabled: %s", exc)
        return cls(
            settings=settings,
            embedder=embedder,
            llm=get_llm(settings.llm),
            vector_store=vector_store,
        )

    @staticmethod
    def _handshake(vector_store: Optional[Any]) -> bool:
        if vector_store is None:
            return False
        try:
            vector_store.handshake()
        except BackendUnavailable as exc:
            logger.warning("Vector backend unreachable, using lexical search: %s", exc)
            return False
        return True

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def state(self) -> IndexState:
        return self.holder.state

    @property
    def backend_mode(self) -> str:
        generation = self.holder.current
        if generation is None:
            return "vector" if self.monitor.available else "lexical"
        if generation.vector is not None and self.monitor.available:
            return "vector"
        return "lexical"

    # ------------------------------------------------------------------
    # Indexing
    # ------------------------------------------------------------------

    def index(self, path: str) -> IndexSummary:
        """Re-index *path* from scratch and publish it as the current generation.

        Raises:
            InvalidPath: *path* is missing or not a directory; nothing changes.
        """
        root = Path(path).expanduser()
        if not root.exists():
            raise InvalidPath(f"Path does not exist: {path}")
        if not root.is_dir():
            raise InvalidPath(f"Path is not a directory: {path}")
        root = root.resolve()

        number = self.holder.begin()
        logger.info("Indexing %s (generation %d)", root, number)
        try:
            generation, summary = self._build(root, number)
        except Exception:
            self.holder.abort(number)
            raise

        if generation is None:
            self.holder.abort(number)
            return summary

        published, retired = self.holder.publish(generation)
        for old in retired:
            self._retire(old)
        if not published:
            summary.discarded = True
            logger.info("Generation %d superseded by a newer build; discarded", number)
        return summary

    def _build(self, root: Path, number: int) -> Tuple[Optional[IndexGeneration], IndexSummary]:
        settings = self.settings
        files = walk_source_files(
            root,
            max_depth=settings.max_depth,
            max_file_bytes=settings.max_file_bytes,
            skip_dirs=settings.skip_dirs,
        )
        chunks, failures = self._extract_all(files, root)
        summary = IndexSummary(
            path=str(root),
            generation=number,
            file_count=len(files),
            chunk_count=len(chunks),
            embedded_count=0,
            backend_mode="lexical",
            failures=failures,
        )
        if self.holder.is_stale(number):
            summary.discarded = True
            return None, summary

        summary.embedded_count = self.pipeline.run(
            chunks, should_stop=lambda: self.holder.is_stale(number),
        )
        if self.holder.is_stale(number):
            summary.discarded = True
            return None, summary

        lexical = LexicalIndexStore()
        lexical.rebuild(chunks)
        vector = self._build_vector(chunks, number) if summary.embedded_count else None
        summary.backend_mode = "vector" if vector is not None else "lexical"

        generation = IndexGeneration(
            number=number,
            root=str(root),
            file_count=len(files),
            chunks=tuple(chunks),
            lexical=lexical,
            vector=vector,
            failures=tuple(failures),
        )
        logger.info(
            "Indexed %d files: %d chunks, %d embedded, %s mode, %d failures",
            len(files), len(chunks), summary.embedded_count, summary.backend_mode, len(failures),
        )
        return generation, summary

    def _extract_all(self, files: List[Path], root: Path) -> Tuple[List[CodeChunk], List[ParseFailure]]:
        chunks: List[CodeChunk] = []
        failures: List[ParseFailure] = []
        with ThreadPoolExecutor(
            max_workers=max(1, self.settings.parse_workers),
            thread_name_prefix="codesift-parse",
        ) as pool:
            for result in pool.map(lambda p: self.extractor.extract_file(p, root), files):
                if isinstance(result, ParseFailure):
                    logger.warning("Skipping %s: %s", result.file_path, result.reason)
                    failures.append(result)
                else:
                    chunks.extend(result)
        return chunks, failures

    def _build_vector(self, chunks: List[CodeChunk], number: int) -> Optional[VectorIndexStore]:
        if self.vector_store is None or not self.monitor.available:
            return None
        collection = f"{self.settings.collection}_{self._session}_{number}"
        store = VectorIndexStore(self.vector_store, self.pipeline, collection)
        try:
            store.rebuild(chunks)
        except BackendUnavailable as exc:
            self.monitor.mark_down(str(exc))
            return None
        return store

    def _retire(self, generation: IndexGeneration) -> None:
        try:
            generation.discard()
        except BackendUnavailable as exc:
            logger.warning("Could not drop vectors of generation %d: %s", generation.number, exc)

    def close(self) -> None:
        """Drop every vector table this engine created."""
        if self.vector_store is None or not self.monitor.available:
            return
        prefix = f"{self.settings.collection}_{self._session}_"
        try:
            for name in self.vector_store.collections():
                if name.startswith(prefix):
                    self.vector_store.drop(name)
        except BackendUnavailable as exc:
            logger.warning("Could not clean up vector tables: %s", exc)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def search(
        self,
        text: str,
        threshold: Optional[float] = None,
        limit: Optional[int] = None,
        kind: Optional[str] = None,
    ) -> List[SearchResult]:
        return self.retrieval.search(SearchQuery(
            text=text,
            threshold=self.settings.default_threshold if threshold is None else threshold,
            limit=self.settings.default_limit if limit is None else limit,
            kind=kind,
        ))

    def find_similar(
        self,
        snippet: str,
        threshold: Optional[float] = None,
        limit: Optional[int] = None,
    ) -> List[SearchResult]:
        return self.retrieval.find_similar(
            snippet,
            threshold=self.settings.default_threshold if threshold is None else threshold,
            limit=self.settings.default_limit if limit is None else limit,
        )

    def explain(self, question: str, include_context: bool = True) -> str:
        return self.retrieval.explain(question, include_context)

    def intelligent_query(self, question: str) -> str:
        return self.retrieval.intelligent_query(question)

    def patterns(self) -> PatternSummary:
        return analysis.patterns(self._ready().chunks)

    def dependency_graph(self) -> Dict[str, Set[str]]:
        return analysis.dependency_graph(self._ready().chunks)

    def embedding_report(self) -> EmbeddingReport:
        return analysis.embedding_report(self._ready().chunks)

    def find_symbol(self, name: str, kind: Optional[str] = None) -> List[CodeChunk]:
        return analysis.find_symbol(self._ready().chunks, name, kind)

    def _ready(self) -> IndexGeneration:
        return self.holder.wait_ready(self.settings.ready_timeout)
