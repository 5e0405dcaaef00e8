"""Pytest configuration and fixtures for codesift tests."""

import shutil
import tempfile
from pathlib import Path
from typing import Callable, Dict, Generator, List, Optional

import pytest

from codesift.config import Settings
from codesift.embeddings import HashEmbeddingModel, cosine_similarity
from codesift.errors import BackendUnavailable, EmbedFailure, ExplainFailure
from codesift.models import IndexEntry
from codesift.vector_store import VectorHit


@pytest.fixture(autouse=True)
def _isolate_environment(monkeypatch, tmp_path: Path):
    """Keep every test away from the real home directory and the network.

    ``CODESIFT_HOME`` points at a throwaway directory and ``OPENAI_API_KEY``
    is removed so the engine starts in lexical-only mode unless a test
    opts in.  Outgoing HTTP through ``requests`` fails fast.
    """
    monkeypatch.setenv("CODESIFT_HOME", str(tmp_path / "codesift-home"))
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)

    def _no_network(*args, **kwargs):
        import requests
        raise requests.ConnectionError("network disabled in tests")

    monkeypatch.setattr("requests.post", _no_network)
    monkeypatch.setattr("requests.Session.post", _no_network)


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for tests."""
    tmp = Path(tempfile.mkdtemp())
    yield tmp
    shutil.rmtree(tmp, ignore_errors=True)


@pytest.fixture
def sample_project_path() -> Path:
    """Get path to sample test project."""
    return Path(__file__).parent / "fixtures" / "sample_project"


@pytest.fixture
def make_project(temp_dir: Path) -> Callable[[Dict[str, str]], Path]:
    """Write ``{relative path: text}`` under a fresh project root."""

    def _make(files: Dict[str, str]) -> Path:
        root = temp_dir / "project"
        for rel, text in files.items():
            path = root / rel
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(text, encoding="utf-8")
        root.mkdir(parents=True, exist_ok=True)
        return root

    return _make


@pytest.fixture
def settings(temp_dir: Path) -> Settings:
    """Settings with small worker pools and a private vector directory."""
    return Settings(
        parse_workers=2,
        embed_workers=2,
        embed_backoff=0.0,
        vector_uri=str(temp_dir / "lancedb"),
        ready_timeout=10.0,
    )


# ===================================================================
# Fake collaborators
# ===================================================================

class FakeVectorStore:
    """In-memory stand-in for :class:`codesift.vector_store.VectorStore`.

    Brute-force cosine search.  Set ``fail = True`` to make every call raise
    ``BackendUnavailable`` as an unreachable backend would.
    """

    def __init__(self, fail_handshake: bool = False) -> None:
        self.fail = False
        self.fail_handshake = fail_handshake
        self.tables: Dict[str, List[IndexEntry]] = {}
        self.query_calls = 0
        self.dropped: List[str] = []

    def _check(self) -> None:
        if self.fail:
            raise BackendUnavailable("fake backend is down")

    def handshake(self) -> None:
        if self.fail_handshake:
            raise BackendUnavailable("fake handshake refused")
        self._check()

    def collections(self) -> List[str]:
        self._check()
        return list(self.tables)

    def drop(self, collection: str) -> None:
        self._check()
        if self.tables.pop(collection, None) is not None:
            self.dropped.append(collection)

    def count(self, collection: str) -> int:
        self._check()
        return len(self.tables.get(collection, []))

    def upsert(self, collection: str, entries: List[IndexEntry]) -> None:
        self._check()
        self.tables[collection] = [e for e in entries if e.embedding]

    def query(self, collection: str, embedding: List[float], k: int, kind: Optional[str] = None) -> List[VectorHit]:
        self._check()
        self.query_calls += 1
        hits = [
            VectorHit(
                id=e.id,
                distance=1.0 - cosine_similarity(embedding, e.embedding),
                metadata=e.metadata,
                document=e.document,
            )
            for e in self.tables.get(collection, [])
            if kind is None or e.metadata["kind"] == kind
        ]
        hits.sort(key=lambda h: h.distance)
        return hits[:k]


class CountingEmbedder(HashEmbeddingModel):
    """Hash embedder that records calls and can fail on chosen texts."""

    def __init__(self, fail_on: str = "", failures_before_success: int = 0) -> None:
        super().__init__(dim=64)
        self.calls = 0
        self.fail_on = fail_on
        self.failures_before_success = failures_before_success

    def embed_text(self, text: str) -> List[float]:
        self.calls += 1
        if self.fail_on and self.fail_on in text:
            raise EmbedFailure(f"refusing to embed text containing {self.fail_on!r}")
        if self.failures_before_success > 0:
            self.failures_before_success -= 1
            raise EmbedFailure("transient failure")
        return super().embed_text(text)


class FakeLLM:
    """Explanation capability returning a canned answer, or failing."""

    def __init__(self, answer: str = "Canned explanation.", fail: bool = False) -> None:
        self.answer = answer
        self.fail = fail
        self.prompts: List[str] = []

    def explain(self, prompt: str) -> str:
        self.prompts.append(prompt)
        if self.fail:
            raise ExplainFailure("model unavailable")
        return self.answer


@pytest.fixture
def fake_vector_store() -> FakeVectorStore:
    return FakeVectorStore()


@pytest.fixture
def embedder() -> CountingEmbedder:
    return CountingEmbedder()


@pytest.fixture
def add_source() -> str:
    return "function add(a, b) { return a + b; }\n"
