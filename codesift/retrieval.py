"""Retrieval engine: thresholded, ranked search over the current generation.

Search asks whichever store is active.  The vector store is used while the
backend is healthy; the first ``BackendUnavailable`` marks it down for the
rest of the process and every later query goes to the lexical store.  A
query whose text cannot be embedded is answered lexically without marking
the backend down.

Results are cached per generation in a small LRU dict, so a re-index never
serves stale hits.
"""

from __future__ import annotations

import logging
import threading
from collections import OrderedDict
from typing import Any, List, Optional, Tuple

from .analysis import patterns
from .config import EXPLAIN_LIMIT, EXPLAIN_THRESHOLD, INSIGHT_LIMIT, INSIGHT_THRESHOLD
from .errors import BackendUnavailable, EmbedFailure, ExplainFailure
from .generation import GenerationHolder, IndexGeneration
from .models import Match, PatternSummary, SearchQuery, SearchResult

logger = logging.getLogger(__name__)

# Max entries in the query cache.
_CACHE_SIZE = 64

# Max characters of source shown per result in formatted output.
_MAX_SNIPPET_CHARS = 200

NO_EXPLAINER_NOTICE = (
    "Note: no explanation model is configured. "
    "Set OPENAI_API_KEY or configure [llm] in config.toml for detailed explanations."
)

_EXPLAIN_PROMPT = """Based on the following code search results, explain the answer to the question: "{question}"

Search results:
{results}

Cover:
1. What the relevant code does
2. How it relates to the question
3. Key technical details and patterns
4. Suggestions for usage or improvement

Keep the explanation technical but accessible."""

_INSIGHT_PROMPT = """You are an expert code analyst. Using the search results and structure summary below, answer the question: "{question}"

Search results:
{results}

Code structure:
{patterns}

Chunks indexed: {chunk_count}

Give a direct answer, reference concrete code from the results, and note architectural insights and possible improvements."""


class BackendMonitor:
    """Process-wide record of whether the vector backend may be used.

    Once marked down it stays down; there is no per-query retry.
    """

    def __init__(self, available: bool = True) -> None:
        self._available = available
        self._reason = ""
        self._lock = threading.Lock()

    @property
    def available(self) -> bool:
        with self._lock:
            return self._available

    @property
    def reason(self) -> str:
        with self._lock:
            return self._reason

    def mark_down(self, reason: str) -> None:
        with self._lock:
            if not self._available:
                return
            self._available = False
            self._reason = reason
        logger.warning("Vector backend unavailable, using lexical search from now on: %s", reason)


class RetrievalEngine:
    """Search, similarity, and explanation over a :class:`GenerationHolder`."""

    def __init__(
        self,
        holder: GenerationHolder,
        monitor: BackendMonitor,
        llm: Optional[Any] = None,
        ready_timeout: Optional[float] = None,
    ) -> None:
        self.holder = holder
        self.monitor = monitor
        self.llm = llm
        self.ready_timeout = ready_timeout
        self._cache: "OrderedDict[Tuple[Any, ...], List[SearchResult]]" = OrderedDict()
        self._cache_lock = threading.Lock()

    # ------------------------------------------------------------------
    # Search
    # ------------------------------------------------------------------

    def search(self, query: SearchQuery) -> List[SearchResult]:
        """Results with ``similarity >= threshold``, best first, at most ``limit``.

        Blocks while an index build is in flight.

        Raises:
            InvalidQuery: before any backend is touched.
            NotIndexed: nothing has been indexed yet.
        """
        query.validate()
        generation = self.holder.wait_ready(self.ready_timeout)
        return self._search(generation, query)

    def find_similar(self, snippet: str, threshold: float, limit: int) -> List[SearchResult]:
        return self.search(SearchQuery(text=snippet, threshold=threshold, limit=limit))

    def _search(self, generation: IndexGeneration, query: SearchQuery) -> List[SearchResult]:
        key = (
            generation.number, query.text, query.threshold, query.limit, query.kind,
            self.monitor.available,
        )
        cached = self._cache_get(key)
        if cached is not None:
            return list(cached)

        matches, backend = self._query_store(generation, query)
        results: List[SearchResult] = []
        for match in matches:
            chunk = generation.chunk(match.chunk_id)
            if chunk is None:
                continue
            if match.similarity < query.threshold:
                continue
            if query.kind and chunk.kind != query.kind:
                continue
            results.append(SearchResult(
                chunk=chunk,
                similarity=match.similarity,
                context=chunk.context_window,
                backend=backend,
            ))
        results.sort(key=lambda r: r.similarity, reverse=True)
        results = results[:query.limit]

        self._cache_put(key, results)
        return list(results)

    def _query_store(self, generation: IndexGeneration, query: SearchQuery) -> Tuple[List[Match], str]:
        if generation.vector is not None and self.monitor.available:
            try:
                return generation.vector.query(query.text, query.kind, query.limit), "vector"
            except BackendUnavailable as exc:
                self.monitor.mark_down(str(exc))
            except EmbedFailure as exc:
                logger.warning("Could not embed query, answering lexically: %s", exc)
        return generation.lexical.query(query.text, query.kind, query.limit), "lexical"

    # ------------------------------------------------------------------
    # Explanation
    # ------------------------------------------------------------------

    def explain(self, question: str, include_context: bool = True) -> str:
        """Explain *question* from the top matches; never raises on model failure."""
        query = SearchQuery(text=question, threshold=EXPLAIN_THRESHOLD, limit=EXPLAIN_LIMIT)
        query.validate()
        generation = self.holder.wait_ready(self.ready_timeout)
        formatted = format_results(self._search(generation, query), include_context)

        if self.llm is None:
            return f"{formatted}\n\n{NO_EXPLAINER_NOTICE}"
        prompt = _EXPLAIN_PROMPT.format(question=question, results=formatted)
        try:
            return self.llm.explain(prompt)
        except ExplainFailure as exc:
            logger.warning("Explanation failed: %s", exc)
            return f"{formatted}\n\nWarning: explanation failed: {exc}"

    def intelligent_query(self, question: str) -> str:
        """Broader search plus the structure summary, forwarded to the model."""
        query = SearchQuery(text=question, threshold=INSIGHT_THRESHOLD, limit=INSIGHT_LIMIT)
        query.validate()
        generation = self.holder.wait_ready(self.ready_timeout)
        formatted = format_results(self._search(generation, query), include_context=False)
        structure = format_patterns(patterns(generation.chunks))

        if self.llm is None:
            return f"{formatted}\n\n{structure}\n\n{NO_EXPLAINER_NOTICE}"
        prompt = _INSIGHT_PROMPT.format(
            question=question,
            results=formatted,
            patterns=structure,
            chunk_count=len(generation.chunks),
        )
        try:
            return self.llm.explain(prompt)
        except ExplainFailure as exc:
            logger.warning("Analysis failed: %s", exc)
            return f"{formatted}\n\n{structure}\n\nWarning: analysis failed: {exc}"

    # ------------------------------------------------------------------
    # Cache helpers
    # ------------------------------------------------------------------

    def _cache_get(self, key: Tuple[Any, ...]) -> Optional[List[SearchResult]]:
        with self._cache_lock:
            if key in self._cache:
                self._cache.move_to_end(key)
                return self._cache[key]
        return None

    def _cache_put(self, key: Tuple[Any, ...], value: List[SearchResult]) -> None:
        with self._cache_lock:
            self._cache[key] = value
            self._cache.move_to_end(key)
            while len(self._cache) > _CACHE_SIZE:
                self._cache.popitem(last=False)

    def clear_cache(self) -> None:
        """Flush the query result cache."""
        with self._cache_lock:
            self._cache.clear()


# ===================================================================
# Formatting
# ===================================================================

def format_results(results: List[SearchResult], include_context: bool = True) -> str:
    """Plain-text rendering of search results, used in model prompts."""
    if not results:
        return "No matching code found."
    lines = ["Search results:", ""]
    for r in results:
        chunk = r.chunk
        snippet = chunk.source_text[:_MAX_SNIPPET_CHARS]
        if len(chunk.source_text) > _MAX_SNIPPET_CHARS:
            snippet += "..."
        lines.append(f"{chunk.name} ({chunk.kind})")
        lines.append(f"   File: {chunk.file_path}:{chunk.line}")
        lines.append(f"   Similarity: {r.similarity * 100:.1f}%")
        lines.append(f"   Content: {snippet}")
        if include_context and r.context:
            lines.append("   Context:")
            lines.extend(f"      {ctx}" for ctx in r.context.split("\n"))
        lines.append("")
    return "\n".join(lines).rstrip()


def format_patterns(summary: PatternSummary) -> str:
    counts = summary.kind_counts
    lines = [
        "Code structure:",
        f"  Functions: {counts.get('function', 0)}",
        f"  Classes: {counts.get('class', 0)}",
        f"  Interfaces: {counts.get('interface', 0)}",
        f"  Imports: {counts.get('import', 0)}",
        f"  Variables: {counts.get('variable', 0)}",
        f"  High complexity functions: {summary.high_complexity}",
        "",
        "Complexity distribution:",
    ]
    lines.extend(f"  {label}: {count}" for label, count in summary.complexity_histogram.items())
    return "\n".join(lines)
