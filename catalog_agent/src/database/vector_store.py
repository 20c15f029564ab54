"""
Catalog Agent - CorpusStore
============================
Wrapper around a LanceDB table that serves as the searchable catalog
corpus.  One row per catalog record:

    item_id | embedding_text | embedding (fixed-size float32) | metadata (JSON)

Design decisions:
  • **Singleton DB connection** — ``_get_connection()`` caches the
    ``lancedb.DBConnection`` per path to avoid file-lock contention.
  • **Fixed shape** — the vector column is a ``FixedSizeList`` of
    ``VECTOR_DIMENSION`` floats, and the similarity metric is written
    into the schema metadata at creation time.  Both are checked again
    before every write and search.
  • **Reset-before-build** — ``create_index`` always drops the existing
    table first.  Partial index states are never repaired in place.
  • **No embedder here** — vectors are computed by the
    ``EmbeddingIndexer``; this module only stores and searches them.

Usage:
    from catalog_agent.src.database.vector_store import CorpusStore
    store = CorpusStore()
    store.create_index()
    store.upsert(doc)
    hits = store.search(query_vector, k=5)
"""

from __future__ import annotations

import json
import threading
from dataclasses import dataclass, field
from typing import Any

import lancedb
import pyarrow as pa

from catalog_agent.config.settings import settings
from catalog_agent.src.core.errors import IndexStateError, StorageError
from catalog_agent.src.utils.logger import get_logger

logger = get_logger(__name__)

SUPPORTED_METRICS = ("cosine", "l2", "dot")
ID_FIELD = "item_id"
METADATA_FIELD = "metadata"

_DB_LOCK = threading.Lock()
_db_connection_cache: dict[str, lancedb.DBConnection] = {}


@dataclass(frozen=True)
class IndexedDocument:
    """A catalog record ready to be written: text, vector and metadata."""

    item_id: str
    embedding_text: str
    vector: list[float]
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class SearchHit:
    """One ranked similarity search result (lower distance = closer)."""

    item_id: str
    embedding_text: str
    metadata: dict[str, Any]
    distance: float


def _get_connection(db_path: str) -> lancedb.DBConnection:
    """Return a **singleton** ``lancedb.DBConnection`` for *db_path* (thread-safe)."""
    if db_path not in _db_connection_cache:
        with _DB_LOCK:
            if db_path not in _db_connection_cache:
                logger.info("Opening new LanceDB connection: %s", db_path)
                _db_connection_cache[db_path] = lancedb.connect(db_path)
    return _db_connection_cache[db_path]


def build_schema(dimension: int, metric: str, vector_field: str, text_field: str) -> pa.Schema:
    """Arrow schema for an index of *dimension*-length vectors compared by *metric*."""
    return pa.schema(
        [
            pa.field(ID_FIELD, pa.utf8(), nullable=False),
            pa.field(text_field, pa.utf8()),
            pa.field(vector_field, pa.list_(pa.float32(), dimension)),
            pa.field(METADATA_FIELD, pa.utf8()),
        ],
        metadata={"metric": metric, "dimension": str(dimension)},
    )


class CorpusStore:
    """
    Document collection plus vector index, backed by one LanceDB table.

    Parameters
    ----------
    db_path
        Database directory.  Defaults to ``settings.LANCEDB_PATH``.
    index_name
        Table name.  Defaults to ``settings.INDEX_NAME``.
    metric, dimension
        Index shape used by ``create_index`` and expected of an existing
        table.  Default to ``settings.SIMILARITY_METRIC`` /
        ``settings.VECTOR_DIMENSION``.
    """

    __slots__ = ("_db_path", "_index_name", "_metric", "_dimension", "_vector_field", "_text_field", "_shape_error", "db", "table")

    def __init__(self, db_path: str | None = None, index_name: str | None = None, metric: str | None = None, dimension: int | None = None, vector_field: str | None = None, text_field: str | None = None) -> None:
        self._db_path: str = str(db_path or settings.LANCEDB_PATH)
        self._index_name: str = index_name or settings.INDEX_NAME
        self._metric: str = metric or settings.SIMILARITY_METRIC
        self._dimension: int = settings.VECTOR_DIMENSION if dimension is None else dimension
        self._vector_field: str = vector_field or settings.VECTOR_FIELD
        self._text_field: str = text_field or settings.TEXT_FIELD
        self._shape_error: str | None = None
        self.db: lancedb.DBConnection | None = None
        self.table: Any = None
        self._connect()


    def _connect(self) -> None:
        """Open the LanceDB connection and, if present, the index table."""
        try:
            self.db = _get_connection(self._db_path)
            if self._index_name in self.list_indexes():
                self.table = self.db.open_table(self._index_name)
                self._check_existing_shape()
                if self.table is None:
                    return
                logger.info("[STORE] Opened index '%s' (%d rows, %s/%d).", self._index_name, self.table.count_rows(), self._metric, self._dimension)
            else:
                logger.warning("[STORE] Index '%s' does not exist yet — run the ingestion script.", self._index_name)
        except OSError as exc:
            logger.error("LanceDB filesystem error at %s: %s", self._db_path, exc)
            raise StorageError(f"cannot open corpus store at {self._db_path}") from exc


    def _check_existing_shape(self) -> None:
        """
        Adopt the stored metric and quarantine a table whose dimension
        differs from the configured one.

        A quarantined table stays on disk (so ``create_index`` can still
        drop it) but every read and write raises ``IndexStateError``.
        """
        schema = self.table.schema
        stored_dimension = self._vector_dimension_of(schema)
        if stored_dimension != self._dimension:
            self._shape_error = f"Index '{self._index_name}' has dimension {stored_dimension}, expected {self._dimension}. Recreate the index."
            logger.error("[STORE] %s", self._shape_error)
            self.table = None
            return
        stored_metric = self._stored_metric(schema)
        if stored_metric and stored_metric != self._metric:
            logger.warning("[STORE] Index '%s' was built for metric '%s'; using it instead of '%s'.", self._index_name, stored_metric, self._metric)
            self._metric = stored_metric

    # ══════════════════════════════════════════════════════════════════
    #  INDEX LIFECYCLE
    # ══════════════════════════════════════════════════════════════════

    def list_indexes(self) -> list[str]:
        """Names of all tables in the database (follows ``list_tables`` pagination)."""
        names: list[str] = []
        page_token = None
        while True:
            page = self.db.list_tables(page_token=page_token)
            names.extend(page.tables)
            page_token = page.page_token
            if not page_token:
                return names


    def drop_index(self, name: str | None = None) -> bool:
        """Drop index *name* (default: this store's index).  Returns True if something was dropped."""
        name = name or self._index_name
        if name not in self.list_indexes():
            logger.info("[STORE] Index '%s' does not exist — nothing to drop.", name)
            return False
        try:
            self.db.drop_table(name)
        except OSError as exc:
            logger.error("Filesystem error dropping index '%s': %s", name, exc)
            raise StorageError(f"cannot drop index {name}") from exc
        if name == self._index_name:
            self.table = None
            self._shape_error = None
        logger.info("[STORE] Dropped index '%s'.", name)
        return True


    def create_index(self, name: str | None = None, metric: str | None = None, dimension: int | None = None) -> None:
        """
        Destructively (re)create the vector index.

        Any existing table with the same name is dropped first, so the
        result always has exactly the requested metric and dimension.
        If creation fails, whatever was half-created is dropped again and
        ``IndexStateError`` is raised.  Must not run while chat traffic
        reads the same index.
        """
        name = name or self._index_name
        metric = metric or self._metric
        dimension = self._dimension if dimension is None else dimension

        if metric not in SUPPORTED_METRICS:
            raise IndexStateError(f"Unsupported similarity metric '{metric}'. Choose one of {SUPPORTED_METRICS}.")
        if dimension < 1:
            raise IndexStateError(f"Vector dimension must be ≥ 1, got {dimension}.")

        self.drop_index(name)
        schema = build_schema(dimension, metric, self._vector_field, self._text_field)
        try:
            table = self.db.create_table(name, schema=schema)
        except Exception as exc:
            logger.exception("[STORE] Failed to create index '%s'.", name)
            self.drop_index(name)
            raise IndexStateError(f"failed to create index {name}") from exc

        self._index_name, self._metric, self._dimension = name, metric, dimension
        self._shape_error = None
        self.table = table
        logger.info("[STORE] Created index '%s' (metric=%s, dimension=%d, path=%s).", name, metric, dimension, self._vector_field)


    def describe_index(self) -> dict[str, Any]:
        """Return ``{name, metric, dimension, rows}`` as stored on disk."""
        self._require_table()
        schema = self.table.schema
        return {
            "name": self._index_name,
            "metric": self._stored_metric(schema) or self._metric,
            "dimension": self._vector_dimension_of(schema),
            "rows": self.table.count_rows(),
        }

    # ══════════════════════════════════════════════════════════════════
    #  DOCUMENTS
    # ══════════════════════════════════════════════════════════════════

    def delete_all(self) -> int:
        """Remove every document but keep the index.  Returns rows removed."""
        self._require_table()
        before = self.table.count_rows()
        self.table.delete("true")
        logger.info("[STORE] Cleared %d document(s) from '%s'.", before, self._index_name)
        return before


    def upsert(self, doc: IndexedDocument) -> None:
        """
        Insert or replace the document keyed by ``doc.item_id``.

        Raises
        ------
        IndexStateError
            Index missing, or the vector length differs from the index dimension.
        StorageError
            LanceDB rejected the write.
        """
        self._require_table()
        self._check_dimension(doc.vector, context=f"document '{doc.item_id}'")

        row = {
            ID_FIELD: doc.item_id,
            self._text_field: doc.embedding_text,
            self._vector_field: [float(x) for x in doc.vector],
            METADATA_FIELD: json.dumps(doc.metadata, ensure_ascii=False, sort_keys=True),
        }
        try:
            data = pa.Table.from_pylist([row], schema=self.table.schema)
            self.table.merge_insert(ID_FIELD).when_matched_update_all().when_not_matched_insert_all().execute(data)
        except Exception as exc:
            logger.error("[STORE] Failed to upsert '%s': %s", doc.item_id, exc)
            raise StorageError(f"failed to write document {doc.item_id}") from exc
        logger.debug("[STORE] Upserted '%s'.", doc.item_id)


    def search(self, vector: list[float], k: int = 5) -> list[SearchHit]:
        """
        Return the *k* documents nearest to *vector*, closest first.

        Raises
        ------
        IndexStateError
            Index missing, or the query vector has the wrong length.
        StorageError
            The search itself failed.
        """
        self._require_table()
        self._check_dimension(vector, context="query vector")
        if self.table.count_rows() == 0:
            logger.warning("[STORE] Search on empty index '%s'.", self._index_name)
            return []

        try:
            rows = self.table.search(vector, vector_column_name=self._vector_field).distance_type(self._metric).limit(k).to_list()
        except Exception as exc:
            logger.error("[STORE] Vector search failed: %s", exc)
            raise StorageError("vector search failed") from exc

        hits = [
            SearchHit(
                item_id=row[ID_FIELD],
                embedding_text=row[self._text_field],
                metadata=json.loads(row[METADATA_FIELD]) if row.get(METADATA_FIELD) else {},
                distance=float(row["_distance"]),
            )
            for row in rows
        ]
        logger.info("[STORE] Search returned %d hit(s) (k=%d, metric=%s).", len(hits), k, self._metric)
        return hits


    def count(self) -> int:
        """Return the number of documents in the index (0 if it does not exist)."""
        if self.table is None:
            return 0
        return self.table.count_rows()

    # ══════════════════════════════════════════════════════════════════
    #  HELPERS
    # ══════════════════════════════════════════════════════════════════

    @property
    def index_name(self) -> str:
        return self._index_name


    @property
    def metric(self) -> str:
        return self._metric


    @property
    def dimension(self) -> int:
        return self._dimension


    def _require_table(self) -> None:
        if self._shape_error:
            raise IndexStateError(self._shape_error)
        if self.table is None:
            raise IndexStateError(f"Index '{self._index_name}' is not initialised. Run create_index() first.")


    def _check_dimension(self, vector: list[float], context: str) -> None:
        if len(vector) != self._dimension:
            raise IndexStateError(f"{context} has dimension {len(vector)}, index '{self._index_name}' expects {self._dimension}.")


    def _vector_dimension_of(self, schema: pa.Schema) -> int | None:
        if self._vector_field not in schema.names:
            return None
        return getattr(schema.field(self._vector_field).type, "list_size", None)


    @staticmethod
    def _stored_metric(schema: pa.Schema) -> str | None:
        raw = (schema.metadata or {}).get(b"metric")
        return raw.decode("utf-8") if raw else None


    def __repr__(self) -> str:
        return f"CorpusStore(db='{self._db_path}', index='{self._index_name}', metric='{self._metric}', dimension={self._dimension}, rows={self.count()})"
