"""Vector store backed by LanceDB, a serverless, local-first vector database.

Each index generation writes its own table (``<collection>_<generation>``)
so a reader never sees a half-written collection; old tables are dropped
once no reader can still be holding them.

Every LanceDB / Arrow error is translated into
:class:`~codesift.errors.BackendUnavailable` at this boundary.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional

from .errors import BackendUnavailable
from .models import IndexEntry

logger = logging.getLogger(__name__)

try:
    import lancedb  # type: ignore[import-untyped]
    import pyarrow as pa  # type: ignore[import-untyped]
    LANCE_AVAILABLE = True
except ImportError:
    LANCE_AVAILABLE = False


@dataclass(frozen=True)
class VectorHit:
    id: str
    distance: float
    metadata: Dict[str, Any]
    document: str


def _schema(dim: int) -> Any:
    """Arrow schema for one collection.

    ============ ============ =====================================
    Column       Type         Description
    ============ ============ =====================================
    id           utf8         Chunk id (``file:line:name``)
    vector       float32[dim] Embedding vector
    document     utf8         Canonical chunk text
    kind         utf8         function / class / interface / ...
    name         utf8         Chunk name
    file_path    utf8         Path relative to the indexed root
    line         int32        1-based start line
    dependencies utf8         JSON list of referenced names
    ============ ============ =====================================
    """
    return pa.schema([
        pa.field("id", pa.string()),
        pa.field("vector", pa.list_(pa.float32(), dim)),
        pa.field("document", pa.string()),
        pa.field("kind", pa.string()),
        pa.field("name", pa.string()),
        pa.field("file_path", pa.string()),
        pa.field("line", pa.int32()),
        pa.field("dependencies", pa.string()),
    ])


class VectorStore:
    """LanceDB connection holding one table per index generation."""

    def __init__(self, uri: str) -> None:
        if not LANCE_AVAILABLE:
            raise BackendUnavailable(
                "lancedb is not installed. Install with: pip install lancedb pyarrow"
            )
        self.uri = uri
        try:
            if "://" not in uri:
                Path(uri).mkdir(parents=True, exist_ok=True)
            self._db: Any = lancedb.connect(uri)
        except Exception as exc:
            raise BackendUnavailable(f"Cannot open LanceDB at {uri}: {exc}") from exc

    def handshake(self) -> None:
        """Round-trip to the backend once; raises ``BackendUnavailable``."""
        self.collections()

    # ------------------------------------------------------------------
    # Collections
    # ------------------------------------------------------------------

    def collections(self) -> List[str]:
        try:
            return list(self._db.table_names())
        except Exception as exc:
            raise BackendUnavailable(f"LanceDB listing failed: {exc}") from exc

    def drop(self, collection: str) -> None:
        try:
            if collection in self._db.table_names():
                self._db.drop_table(collection)
        except Exception as exc:
            raise BackendUnavailable(f"LanceDB drop of '{collection}' failed: {exc}") from exc

    def count(self, collection: str) -> int:
        try:
            return self._db.open_table(collection).count_rows()
        except Exception as exc:
            raise BackendUnavailable(f"LanceDB count of '{collection}' failed: {exc}") from exc

    # ------------------------------------------------------------------
    # Write
    # ------------------------------------------------------------------

    def upsert(self, collection: str, entries: List[IndexEntry]) -> None:
        """Replace the contents of *collection* with *entries*.

        Entries without an embedding are not stored.
        """
        rows = [
            {
                "id": e.id,
                "vector": e.embedding,
                "document": e.document,
                "kind": e.metadata.get("kind", ""),
                "name": e.metadata.get("name", ""),
                "file_path": e.metadata.get("file_path", ""),
                "line": int(e.metadata.get("line", 0)),
                "dependencies": e.metadata.get("dependencies", "[]"),
            }
            for e in entries
            if e.embedding
        ]
        if not rows:
            return
        dim = len(rows[0]["vector"])
        try:
            data = pa.Table.from_pylist(rows, schema=_schema(dim))
            self._db.create_table(collection, data=data, mode="overwrite")
        except Exception as exc:
            raise BackendUnavailable(f"LanceDB write to '{collection}' failed: {exc}") from exc
        logger.debug("Wrote %d vectors to LanceDB table %s", len(rows), collection)

    # ------------------------------------------------------------------
    # Search
    # ------------------------------------------------------------------

    def query(
        self,
        collection: str,
        embedding: List[float],
        k: int,
        kind: Optional[str] = None,
    ) -> List[VectorHit]:
        """Cosine nearest neighbours, optionally restricted to one chunk kind.

        ``_distance`` is the cosine distance (``1 − cos_sim``), in ``[0, 2]``.
        """
        try:
            table = self._db.open_table(collection)
            search = table.search(embedding).distance_type("cosine").limit(k)
            if kind:
                search = search.where(f"kind = '{kind}'", prefilter=True)
            rows = search.to_list()
        except Exception as exc:
            raise BackendUnavailable(f"LanceDB search on '{collection}' failed: {exc}") from exc

        hits: List[VectorHit] = []
        for row in rows:
            hits.append(VectorHit(
                id=row.get("id", ""),
                distance=float(row.get("_distance", 1.0)),
                metadata={
                    "kind": row.get("kind", ""),
                    "name": row.get("name", ""),
                    "file_path": row.get("file_path", ""),
                    "line": row.get("line", 0),
                    "dependencies": json.loads(row.get("dependencies") or "[]"),
                },
                document=row.get("document", ""),
            ))
        return hits
