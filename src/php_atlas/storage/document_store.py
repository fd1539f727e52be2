"""Document store for per-file metadata.

Stores one schema-less JSON document per source file, keyed by file name, in
SQLite. Field lookups go through the JSON1 functions so any stored field can
be matched without a fixed column layout.
"""

import json
import logging
import sqlite3
import threading
from pathlib import Path
from typing import Any, Protocol, runtime_checkable

from .models import ClassInfo, FunctionInfo, StoreStats, UpsertResult

logger = logging.getLogger(__name__)

_SCHEMA_DDL = """
CREATE TABLE IF NOT EXISTS documents (
    id INTEGER PRIMARY KEY,
    collection TEXT NOT NULL,
    doc_key TEXT NOT NULL,
    body TEXT NOT NULL,
    written_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
    UNIQUE(collection, doc_key)
);

CREATE INDEX IF NOT EXISTS idx_documents_collection ON documents(collection);
"""


class StorageError(Exception):
    """The store could not complete an operation."""


class StorageWriteError(StorageError):
    """The store rejected a document write."""


@runtime_checkable
class DocumentStore(Protocol):
    """Protocol for upsert-capable document stores."""

    def find_one(self, query: dict[str, Any]) -> dict[str, Any] | None:
        """Return the first document whose fields equal every item of *query*."""
        ...

    def upsert(self, fields: dict[str, Any]) -> UpsertResult:
        """Insert a document, or merge *fields* into the one with the same key."""
        ...


def _json_path(field: str) -> str:
    return '$."' + field.replace('"', '\\"') + '"'


def _param_names(item: dict[str, Any]) -> list[str]:
    return [p.get("name", "") for p in item.get("parameters") or []]


class SQLiteDocumentStore:
    """JSON document collection in SQLite with upsert-by-key semantics."""

    def __init__(
        self,
        db_path: str | Path = "data/php_atlas.db",
        collection: str = "files",
        key_field: str = "file_name",
    ):
        self.db_path = Path(db_path)
        if str(db_path) != ":memory:":
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self.collection = collection
        self.key_field = key_field
        self._lock = threading.Lock()
        self._conn = sqlite3.connect(str(db_path), check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._init_schema()

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _init_schema(self) -> None:
        with self._lock:
            self._conn.executescript(_SCHEMA_DDL)

    def _query(self, sql: str, params: tuple | list = ()) -> list[sqlite3.Row]:
        with self._lock:
            return self._conn.execute(sql, params).fetchall()

    def close(self) -> None:
        with self._lock:
            self._conn.close()

    # ------------------------------------------------------------------
    # Read / write
    # ------------------------------------------------------------------

    def find_one(self, query: dict[str, Any]) -> dict[str, Any] | None:
        """Return the first document matching every field of *query* exactly."""
        clauses = ["collection = ?"]
        params: list[Any] = [self.collection]
        for field, value in query.items():
            if field == self.key_field:
                clauses.append("doc_key IS ?")
                params.append(value)
            else:
                clauses.append("json_extract(body, ?) IS ?")
                params.extend([_json_path(field), value])

        try:
            rows = self._query(
                f"SELECT body FROM documents WHERE {' AND '.join(clauses)} LIMIT 1",
                params,
            )
        except sqlite3.Error as exc:
            raise StorageError(f"Lookup failed for {query}: {exc}") from exc
        return json.loads(rows[0]["body"]) if rows else None

    def get(self, key: str) -> dict[str, Any] | None:
        """Return the document stored under *key*."""
        return self.find_one({self.key_field: key})

    def upsert(self, fields: dict[str, Any]) -> UpsertResult:
        """Insert or merge-assign *fields* into the document with the same key.

        Fields not present in *fields* are kept from the stored document.

        Raises:
            StorageWriteError: if the document has no key or cannot be encoded
        """
        key = fields.get(self.key_field)
        if not isinstance(key, str) or not key:
            raise StorageWriteError(f"Document has no '{self.key_field}' key")

        with self._lock:
            try:
                # Round-trip so the comparison below sees stored JSON types
                incoming = json.loads(json.dumps(fields, ensure_ascii=False, allow_nan=False))
                row = self._conn.execute(
                    "SELECT body FROM documents WHERE collection = ? AND doc_key = ?",
                    (self.collection, key),
                ).fetchone()

                if row is None:
                    self._conn.execute(
                        "INSERT INTO documents (collection, doc_key, body) VALUES (?, ?, ?)",
                        (self.collection, key, json.dumps(incoming, ensure_ascii=False)),
                    )
                    self._conn.commit()
                    logger.debug(f"Created document {key}")
                    return UpsertResult.CREATED

                existing = json.loads(row["body"])
                merged = {**existing, **incoming}
                if merged == existing:
                    logger.debug(f"Document unchanged by write: {key}")
                    return UpsertResult.NOOP

                self._conn.execute(
                    """UPDATE documents
                       SET body = ?, written_at = CURRENT_TIMESTAMP
                       WHERE collection = ? AND doc_key = ?""",
                    (json.dumps(merged, ensure_ascii=False), self.collection, key),
                )
                self._conn.commit()
                return UpsertResult.MODIFIED
            except (sqlite3.Error, TypeError, ValueError) as exc:
                self._conn.rollback()
                raise StorageWriteError(f"Failed to write document {key}: {exc}") from exc

    # ------------------------------------------------------------------
    # Symbol search
    # ------------------------------------------------------------------

    def find_class(self, name: str, exact: bool = True, limit: int = 20) -> list[ClassInfo]:
        """Find class-like declarations by name across all files."""
        condition = "= ? COLLATE NOCASE" if exact else "LIKE ?"
        pattern = name if exact else f"%{name}%"
        rows = self._query(
            f"""SELECT d.doc_key AS file_name,
                       json_extract(d.body, '$.namespace') AS namespace,
                       json_extract(c.value, '$.name') AS name,
                       json_array_length(c.value, '$.methods') AS method_count
                FROM documents d, json_each(d.body, '$.classes') c
                WHERE d.collection = ? AND json_extract(c.value, '$.name') {condition}
                ORDER BY d.doc_key
                LIMIT ?""",
            (self.collection, pattern, limit),
        )
        return [
            ClassInfo(
                name=r["name"],
                file_name=r["file_name"],
                namespace=r["namespace"],
                method_count=r["method_count"] or 0,
            )
            for r in rows
        ]

    def find_function(self, name: str, exact: bool = True, limit: int = 20) -> list[FunctionInfo]:
        """Find free functions and methods by name across all files."""
        condition = "= ? COLLATE NOCASE" if exact else "LIKE ?"
        pattern = name if exact else f"%{name}%"
        rows = self._query(
            f"""SELECT d.doc_key AS file_name, NULL AS class_name, f.value AS item
                FROM documents d, json_each(d.body, '$.functions') f
                WHERE d.collection = ? AND json_extract(f.value, '$.name') {condition}
                UNION ALL
                SELECT d.doc_key, json_extract(c.value, '$.name'), m.value
                FROM documents d,
                     json_each(d.body, '$.classes') c,
                     json_each(c.value, '$.methods') m
                WHERE d.collection = ? AND json_extract(m.value, '$.name') {condition}
                LIMIT ?""",
            (self.collection, pattern, self.collection, pattern, limit),
        )
        results = []
        for r in rows:
            item = json.loads(r["item"])
            results.append(
                FunctionInfo(
                    name=item.get("name", ""),
                    file_name=r["file_name"],
                    parameters=_param_names(item),
                    class_name=r["class_name"],
                )
            )
        return results

    # ------------------------------------------------------------------
    # Statistics
    # ------------------------------------------------------------------

    def stats(self) -> StoreStats:
        """Return current document counts."""
        row = self._query(
            """SELECT COUNT(*) AS files,
                      COALESCE(SUM(json_array_length(body, '$.classes')), 0) AS classes,
                      COALESCE(SUM(json_array_length(body, '$.functions')), 0) AS functions
               FROM documents WHERE collection = ?""",
            (self.collection,),
        )[0]
        methods = self._query(
            """SELECT COALESCE(SUM(json_array_length(c.value, '$.methods')), 0)
               FROM documents d, json_each(d.body, '$.classes') c
               WHERE d.collection = ?""",
            (self.collection,),
        )[0][0]
        return StoreStats(
            files=row["files"],
            classes=row["classes"],
            functions=row["functions"],
            methods=methods,
        )

    def has_data(self) -> bool:
        """Return True if the collection holds any document."""
        return self.stats().files > 0
