"""
reader.py - Read-only access to the local SQLite index.

The engine owns the index schema and writes it during sync/watch. This
module only reads it: the per-collection document tables registered in
collection_registry and the last applied commit in ledger_index_state.
"""

import json
import logging
import os
import sqlite3
from pathlib import Path
from typing import Any, Sequence

from ledgerdb.config import COLLECTION_REGISTRY_TABLE, INDEX_STATE_TABLE
from ledgerdb.errors import DocumentNotFoundError, IndexNotFoundError, LedgerError
from ledgerdb.models import IndexedDoc

logger = logging.getLogger(__name__)


def quote_ident(name: str) -> str:
    """Quote an SQLite identifier."""
    return '"' + name.replace('"', '""') + '"'


def open_readonly(db_path: str) -> sqlite3.Connection:
    """
    Open the index database without write access.

    Raises:
        IndexNotFoundError: If the file does not exist
        LedgerError: If SQLite refuses to open it
    """
    if not os.path.exists(db_path):
        raise IndexNotFoundError(db_path)
    uri = Path(db_path).resolve().as_uri() + "?mode=ro"
    try:
        conn = sqlite3.connect(uri, uri=True, check_same_thread=False)
    except sqlite3.Error as e:
        raise LedgerError(
            f"Failed to open index database: {e}",
            context={"db_path": db_path},
        ) from e
    conn.row_factory = sqlite3.Row
    return conn


def _decode_payload(raw: Any) -> Any:
    if raw is None:
        return None
    if isinstance(raw, (bytes, bytearray)):
        raw = bytes(raw).decode("utf-8")
    return json.loads(raw)


class IndexReader:
    """
    Query the materialized index.

    Usage:
        with client.open_index() as index:
            doc = index.get("users", "u1")
    """

    def __init__(self, db_path: str):
        self._db_path = db_path
        self._conn: sqlite3.Connection | None = open_readonly(db_path)

    def __enter__(self) -> "IndexReader":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    @property
    def db_path(self) -> str:
        return self._db_path

    @property
    def connection(self) -> sqlite3.Connection:
        if self._conn is None:
            raise LedgerError("Index reader is closed", context={"db_path": self._db_path})
        return self._conn

    def close(self) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    def last_commit(self) -> str | None:
        """Commit the index was last advanced to, None before the first sync."""
        row = self._fetchone(f"SELECT last_commit FROM {INDEX_STATE_TABLE} WHERE id = 1")
        if row is None or not row["last_commit"]:
            return None
        return row["last_commit"]

    def collections(self) -> list[str]:
        rows = self._fetchall(f"SELECT collection FROM {COLLECTION_REGISTRY_TABLE} ORDER BY collection")
        return [row["collection"] for row in rows]

    def table_for(self, collection: str) -> str | None:
        row = self._fetchone(
            f"SELECT table_name FROM {COLLECTION_REGISTRY_TABLE} WHERE collection = ?",
            (collection,),
        )
        return row["table_name"] if row else None

    def get(self, collection: str, doc_id: str) -> IndexedDoc:
        """
        Read one document from the index.

        Raises:
            DocumentNotFoundError: Unknown collection or document
        """
        table = self.table_for(collection)
        if table is None:
            raise DocumentNotFoundError(collection, doc_id)
        row = self._fetchone(
            f"SELECT doc_id, payload, tx_hash, tx_id, op, schema_version, updated_at, deleted "
            f"FROM {quote_ident(table)} WHERE doc_id = ?",
            (doc_id,),
        )
        if row is None:
            raise DocumentNotFoundError(collection, doc_id)
        return IndexedDoc(
            doc_id=row["doc_id"],
            payload=_decode_payload(row["payload"]),
            tx_hash=row["tx_hash"],
            tx_id=row["tx_id"],
            op=row["op"],
            schema_version=row["schema_version"],
            updated_at=row["updated_at"],
            deleted=bool(row["deleted"]),
        )

    def query(self, sql: str, params: Sequence[Any] = ()) -> list[dict[str, Any]]:
        """Run a read-only SQL query and return rows as dicts."""
        try:
            rows = self.connection.execute(sql, tuple(params)).fetchall()
        except sqlite3.Error as e:
            raise LedgerError(f"Index query failed: {e}", context={"sql": sql[:200]}) from e
        return [dict(row) for row in rows]

    def _fetchone(self, sql: str, params: Sequence[Any] = ()) -> sqlite3.Row | None:
        rows = self._fetchall(sql, params)
        return rows[0] if rows else None

    def _fetchall(self, sql: str, params: Sequence[Any] = ()) -> list[sqlite3.Row]:
        try:
            return self.connection.execute(sql, tuple(params)).fetchall()
        except sqlite3.OperationalError as e:
            # Tables appear on the engine's first sync
            if "no such table" in str(e):
                logger.debug(f"Index at {self._db_path} has no schema yet: {e}")
                return []
            raise LedgerError(f"Index query failed: {e}", context={"sql": sql[:200]}) from e
