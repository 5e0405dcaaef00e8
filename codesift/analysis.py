"""Aggregate views over one index generation's chunks."""

from __future__ import annotations

from collections import Counter
from typing import Dict, Iterable, List, Optional, Set

from .models import CodeChunk, EmbeddingReport, PatternSummary

HIGH_COMPLEXITY = 10

# (label, lowest score in bucket), highest first
COMPLEXITY_BUCKETS = (
    ("Very High (15+)", 16),
    ("High (8-15)", 8),
    ("Medium (4-7)", 4),
    ("Low (1-3)", 1),
)


def complexity_bucket(score: int) -> str:
    for label, floor in COMPLEXITY_BUCKETS:
        if score >= floor:
            return label
    return COMPLEXITY_BUCKETS[-1][0]


def patterns(chunks: Iterable[CodeChunk]) -> PatternSummary:
    """Chunk counts per kind and a histogram of complexity scores.

    Every chunk lands in a histogram bucket; only functions count towards
    ``high_complexity``.
    """
    kind_counts: Counter = Counter()
    histogram: Dict[str, int] = {label: 0 for label, _ in reversed(COMPLEXITY_BUCKETS)}
    high = 0
    for chunk in chunks:
        kind_counts[chunk.kind] += 1
        histogram[complexity_bucket(chunk.complexity)] += 1
        if chunk.kind == "function" and chunk.complexity > HIGH_COMPLEXITY:
            high += 1
    return PatternSummary(
        kind_counts=dict(kind_counts),
        complexity_histogram=histogram,
        high_complexity=high,
    )


def dependency_graph(chunks: Iterable[CodeChunk]) -> Dict[str, Set[str]]:
    """Map each chunk name to the names it references.

    Chunks that share a name (overloads, re-declarations across files) are
    merged into one node.
    """
    graph: Dict[str, Set[str]] = {}
    for chunk in chunks:
        graph.setdefault(chunk.name, set()).update(chunk.dependencies)
    return graph


def embedding_report(chunks: Iterable[CodeChunk]) -> EmbeddingReport:
    total = 0
    embedded = 0
    kinds: Counter = Counter()
    for chunk in chunks:
        total += 1
        if chunk.embedded:
            embedded += 1
            kinds[chunk.kind] += 1
    return EmbeddingReport(total_chunks=total, embedded_chunks=embedded, kind_counts=dict(kinds))


def find_symbol(chunks: Iterable[CodeChunk], name: str, kind: Optional[str] = None) -> List[CodeChunk]:
    return [
        chunk for chunk in chunks
        if chunk.name == name and (kind is None or chunk.kind == kind)
    ]
