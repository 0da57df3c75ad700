"""
Tests for IndexReader over a database laid out the way the engine writes it.
"""

import json
import os
import sqlite3

import pytest

from ledgerdb.errors import DocumentNotFoundError, IndexNotFoundError, LedgerError
from ledgerdb.index import IndexReader


def build_index(db_path, docs=(), last_commit="c0042"):
    conn = sqlite3.connect(db_path)
    conn.executescript(
        """
        CREATE TABLE ledger_index_state (
            id INTEGER PRIMARY KEY CHECK (id = 1),
            last_commit TEXT,
            last_state_tree TEXT
        );
        CREATE TABLE collection_registry (
            collection TEXT PRIMARY KEY,
            table_name TEXT NOT NULL
        );
        CREATE TABLE "collection_users" (
            doc_id TEXT PRIMARY KEY,
            payload BLOB,
            tx_hash TEXT NOT NULL,
            tx_id TEXT NOT NULL,
            op TEXT NOT NULL,
            schema_version TEXT,
            updated_at INTEGER NOT NULL,
            deleted INTEGER NOT NULL DEFAULT 0
        );
        """
    )
    conn.execute("INSERT INTO ledger_index_state (id, last_commit) VALUES (1, ?)", (last_commit,))
    conn.execute("INSERT INTO collection_registry VALUES ('users', 'collection_users')")
    for doc_id, payload, deleted in docs:
        raw = json.dumps(payload).encode() if payload is not None else None
        conn.execute(
            'INSERT INTO "collection_users" VALUES (?, ?, ?, ?, ?, ?, ?, ?)',
            (doc_id, raw, f"h-{doc_id}", f"t-{doc_id}", "delete" if deleted else "put", None, 1700000000, int(deleted)),
        )
    conn.commit()
    conn.close()


class TestIndexReader:
    def setup_method(self):
        self.docs = [
            ("u1", {"name": "Ann"}, False),
            ("u2", {"name": "Bo"}, False),
            ("u3", None, True),
        ]

    def test_missing_database(self, temp_dir):
        with pytest.raises(IndexNotFoundError) as exc_info:
            IndexReader(os.path.join(temp_dir, "index.db"))
        assert "run an index sync first" in str(exc_info.value)

    def test_get_document(self, temp_dir):
        db_path = os.path.join(temp_dir, "index.db")
        build_index(db_path, self.docs)
        with IndexReader(db_path) as index:
            doc = index.get("users", "u1")
        assert doc.payload == {"name": "Ann"}
        assert doc.tx_hash == "h-u1"
        assert doc.deleted is False

    def test_tombstone(self, temp_dir):
        db_path = os.path.join(temp_dir, "index.db")
        build_index(db_path, self.docs)
        with IndexReader(db_path) as index:
            doc = index.get("users", "u3")
        assert doc.deleted is True
        assert doc.payload is None
        assert doc.op == "delete"

    def test_missing_document_and_collection(self, temp_dir):
        db_path = os.path.join(temp_dir, "index.db")
        build_index(db_path, self.docs)
        with IndexReader(db_path) as index:
            with pytest.raises(DocumentNotFoundError):
                index.get("users", "nobody")
            with pytest.raises(DocumentNotFoundError) as exc_info:
                index.get("orders", "o9")
        assert exc_info.value.collection == "orders"

    def test_state_and_registry(self, temp_dir):
        db_path = os.path.join(temp_dir, "index.db")
        build_index(db_path, self.docs)
        with IndexReader(db_path) as index:
            assert index.last_commit() == "c0042"
            assert index.collections() == ["users"]
            assert index.table_for("users") == "collection_users"
            assert index.table_for("orders") is None

    def test_query(self, temp_dir):
        db_path = os.path.join(temp_dir, "index.db")
        build_index(db_path, self.docs)
        with IndexReader(db_path) as index:
            rows = index.query(
                'SELECT doc_id FROM "collection_users" WHERE deleted = ? ORDER BY doc_id', [0]
            )
        assert rows == [{"doc_id": "u1"}, {"doc_id": "u2"}]

    def test_reader_is_read_only(self, temp_dir):
        db_path = os.path.join(temp_dir, "index.db")
        build_index(db_path, self.docs)
        with IndexReader(db_path) as index:
            with pytest.raises(LedgerError):
                index.query('DELETE FROM "collection_users"')
            assert len(index.query('SELECT doc_id FROM "collection_users"')) == 3

    def test_empty_database_before_first_sync(self, temp_dir):
        db_path = os.path.join(temp_dir, "index.db")
        sqlite3.connect(db_path).close()
        with IndexReader(db_path) as index:
            assert index.last_commit() is None
            assert index.collections() == []
            with pytest.raises(DocumentNotFoundError):
                index.get("users", "u1")

    def test_closed_reader(self, temp_dir):
        db_path = os.path.join(temp_dir, "index.db")
        build_index(db_path)
        index = IndexReader(db_path)
        index.close()
        index.close()
        with pytest.raises(LedgerError):
            index.last_commit()

    def test_client_opens_default_index(self, client):
        build_index(client.index_db_path, self.docs)
        with client.open_index() as index:
            assert index.db_path == client.index_db_path
            assert index.get("users", "u2").payload == {"name": "Bo"}
