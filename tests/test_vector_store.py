"""Tests for the LanceDB-backed VectorStore."""

from pathlib import Path

import pytest

from codesift.errors import BackendUnavailable
from codesift.models import IndexEntry
from codesift.vector_store import LANCE_AVAILABLE, VectorStore


def _entry(chunk_id: str, kind: str, vector) -> IndexEntry:
    return IndexEntry(
        id=chunk_id,
        embedding=vector,
        metadata={
            "kind": kind,
            "name": chunk_id.rsplit(":", 1)[-1],
            "file_path": "m.js",
            "line": 1,
            "dependencies": '["a", "b"]',
        },
        document=f"Type: {kind}",
    )


@pytest.mark.skipif(not LANCE_AVAILABLE, reason="lancedb not installed")
class TestVectorStore:
    """Test VectorStore functionality."""

    @pytest.fixture
    def store(self, temp_dir: Path) -> VectorStore:
        return VectorStore(str(temp_dir / "lancedb"))

    @pytest.fixture
    def entries(self):
        return [
            _entry("m.js:1:add", "function", [1.0, 0.0, 0.0]),
            _entry("m.js:2:sub", "function", [0.0, 1.0, 0.0]),
            _entry("m.js:3:Cart", "class", [0.7, 0.7, 0.0]),
        ]

    def test_init_creates_directory(self, temp_dir: Path):
        VectorStore(str(temp_dir / "nested" / "lancedb")).handshake()

        assert (temp_dir / "nested" / "lancedb").exists()

    def test_empty(self, store: VectorStore):
        assert store.collections() == []

    def test_upsert_and_count(self, store: VectorStore, entries):
        store.upsert("gen_1", entries)

        assert store.collections() == ["gen_1"]
        assert store.count("gen_1") == 3

    def test_upsert_skips_entries_without_vectors(self, store: VectorStore, entries):
        entries.append(_entry("m.js:4:TAX", "variable", None))
        store.upsert("gen_1", entries)

        assert store.count("gen_1") == 3

    def test_upsert_nothing_creates_nothing(self, store: VectorStore):
        store.upsert("gen_1", [_entry("m.js:4:TAX", "variable", None)])

        assert store.collections() == []

    def test_upsert_overwrites(self, store: VectorStore, entries):
        store.upsert("gen_1", entries)
        store.upsert("gen_1", entries[:1])

        assert store.count("gen_1") == 1

    def test_query_nearest_first(self, store: VectorStore, entries):
        store.upsert("gen_1", entries)
        hits = store.query("gen_1", [1.0, 0.0, 0.0], k=3)

        assert [h.id for h in hits] == ["m.js:1:add", "m.js:3:Cart", "m.js:2:sub"]
        assert hits[0].distance == pytest.approx(0.0, abs=1e-5)
        assert hits[0].metadata["dependencies"] == ["a", "b"]
        assert hits[0].document == "Type: function"

    def test_query_limit(self, store: VectorStore, entries):
        store.upsert("gen_1", entries)

        assert len(store.query("gen_1", [1.0, 0.0, 0.0], k=1)) == 1

    def test_query_kind_filter(self, store: VectorStore, entries):
        store.upsert("gen_1", entries)
        hits = store.query("gen_1", [1.0, 0.0, 0.0], k=3, kind="class")

        assert [h.id for h in hits] == ["m.js:3:Cart"]

    def test_drop(self, store: VectorStore, entries):
        store.upsert("gen_1", entries)
        store.upsert("gen_2", entries)
        store.drop("gen_1")
        store.drop("never_created")

        assert store.collections() == ["gen_2"]

    def test_missing_collection_is_backend_failure(self, store: VectorStore):
        with pytest.raises(BackendUnavailable):
            store.query("missing", [1.0, 0.0, 0.0], k=3)
        with pytest.raises(BackendUnavailable):
            store.count("missing")
