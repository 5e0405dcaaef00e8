"""Core data models used by extraction, indexing, and retrieval layers."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, List, Optional

from .errors import InvalidQuery

CHUNK_KINDS = ("function", "class", "interface", "import", "variable")

ANONYMOUS = "anonymous"


@dataclass
class CodeChunk:
    """One named unit of source: a function, class, interface, import or variable.

    ``id`` is ``file_path:line:name`` (``#n`` appended on collision) and
    ``line`` is 1-based.  ``embedding`` stays None until the pipeline fills it.
    """

    id: str
    kind: str
    name: str
    source_text: str
    file_path: str
    line: int
    context_window: str
    dependencies: FrozenSet[str] = frozenset()
    complexity: int = 1
    embedding: Optional[List[float]] = None

    @property
    def embedded(self) -> bool:
        return bool(self.embedding)


@dataclass(frozen=True)
class IndexEntry:
    """The projection of a :class:`CodeChunk` that a backend actually stores."""

    id: str
    embedding: Optional[List[float]]
    metadata: Dict[str, Any]
    document: str

    @classmethod
    def from_chunk(cls, chunk: CodeChunk, document: str) -> "IndexEntry":
        return cls(
            id=chunk.id,
            embedding=chunk.embedding,
            metadata={
                "kind": chunk.kind,
                "name": chunk.name,
                "file_path": chunk.file_path,
                "line": chunk.line,
                "dependencies": json.dumps(sorted(chunk.dependencies)),
            },
            document=document,
        )


@dataclass(frozen=True)
class ParseFailure:
    file_path: str
    reason: str


@dataclass(frozen=True)
class SearchQuery:
    text: str
    threshold: float = 0.7
    limit: int = 10
    kind: Optional[str] = None

    def validate(self) -> None:
        """Raise :class:`InvalidQuery` unless the query can be executed."""
        if not self.text or not self.text.strip():
            raise InvalidQuery("Query text must not be empty.")
        if not 0.0 <= self.threshold <= 1.0:
            raise InvalidQuery(
                f"Similarity threshold must be within [0, 1], got {self.threshold}."
            )
        if self.limit <= 0:
            raise InvalidQuery(f"Result limit must be positive, got {self.limit}.")
        if self.kind is not None and self.kind not in CHUNK_KINDS:
            raise InvalidQuery(
                f"Unknown chunk kind '{self.kind}'. "
                f"Expected one of: {', '.join(CHUNK_KINDS)}"
            )


@dataclass(frozen=True)
class Match:
    chunk_id: str
    similarity: float


@dataclass
class SearchResult:
    chunk: CodeChunk
    similarity: float
    context: str
    backend: str


@dataclass
class IndexSummary:
    path: str
    generation: int
    file_count: int
    chunk_count: int
    embedded_count: int
    backend_mode: str
    failures: List[ParseFailure] = field(default_factory=list)
    discarded: bool = False

    @property
    def coverage(self) -> float:
        if not self.chunk_count:
            return 0.0
        return self.embedded_count / self.chunk_count

    def as_dict(self) -> Dict[str, Any]:
        return {
            "path": self.path,
            "generation": self.generation,
            "file_count": self.file_count,
            "chunk_count": self.chunk_count,
            "embedded_count": self.embedded_count,
            "backend_mode": self.backend_mode,
            "failed_files": [f.file_path for f in self.failures],
            "discarded": self.discarded,
        }


@dataclass
class PatternSummary:
    kind_counts: Dict[str, int]
    complexity_histogram: Dict[str, int]
    high_complexity: int


@dataclass
class EmbeddingReport:
    total_chunks: int
    embedded_chunks: int
    kind_counts: Dict[str, int]

    @property
    def coverage(self) -> float:
        if not self.total_chunks:
            return 0.0
        return self.embedded_chunks / self.total_chunks
