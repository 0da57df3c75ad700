"""
Tests for the LedgerClient facade: argument vectors, decoding, errors.
"""

import asyncio
import logging
import os
import typing

import pytest

from ledgerdb import LedgerClient
from ledgerdb.errors import ConfigurationError, DecodeError, ExecutionError
from ledgerdb.models import M, GetResult, PutResult

from fakes import FAKE_EXECUTABLE, FakeTransport


PUT_OK = {"commit": "c7", "tx_hash": "h1", "tx_id": "t1"}


class TestConstruction:
    def test_blank_repo_path(self):
        for repo in ("", "   "):
            with pytest.raises(ConfigurationError) as exc_info:
                LedgerClient(repo, transport=FakeTransport())
            assert "repoPath is required" in str(exc_info.value)

    def test_binary_path_comes_from_env_override(self, temp_dir, monkeypatch):
        monkeypatch.setenv("LEDGERDB_BIN", "/usr/local/bin/ledgerdb")
        assert LedgerClient(temp_dir).binary_path == "/usr/local/bin/ledgerdb"

    def test_explicit_binary_path_wins(self, temp_dir, monkeypatch):
        monkeypatch.setenv("LEDGERDB_BIN", "/usr/local/bin/ledgerdb")
        assert LedgerClient(temp_dir, binary_path="/tmp/ledgerdb").binary_path == "/tmp/ledgerdb"

    def test_env_is_overlaid_on_process_env(self, temp_dir, monkeypatch):
        monkeypatch.setenv("LEDGERDB_TEST_BASE", "1")
        client = LedgerClient(temp_dir, env={"GIT_AUTHOR_NAME": "ci"}, transport=FakeTransport())
        assert client.env["LEDGERDB_TEST_BASE"] == "1"
        assert client.env["GIT_AUTHOR_NAME"] == "ci"

    def test_index_defaults(self, client, temp_dir):
        assert client.index_db_path == os.path.join(temp_dir, "index.db")
        assert client.index_config.mode == "state"

    def test_invalid_index_defaults(self, temp_dir):
        with pytest.raises(ConfigurationError):
            LedgerClient(temp_dir, index={"mode": "sideways"}, transport=FakeTransport())

    def test_repr(self, client):
        assert FAKE_EXECUTABLE in repr(client)

    def test_json_calls_return_the_requested_model(self):
        hints = typing.get_type_hints(LedgerClient._exec_json)
        assert hints["model"] == typing.Type[M]
        assert hints["return"] is M


class TestDocumentOperations:
    def test_put_builds_write_args(self, client, transport, temp_dir):
        transport.queue(PUT_OK)
        result = asyncio.run(client.put("users", "u1", {"name": "Ann"}))

        assert result == PutResult(commit="c7", tx_hash="h1", tx_id="t1")
        assert transport.last_args == [
            "--repo", temp_dir, "--json",
            "doc", "put", "users", "u1", "--payload", '{"name":"Ann"}',
        ]
        assert transport.calls[-1].cwd == temp_dir

    def test_put_string_payload_is_verbatim(self, client, transport):
        transport.queue(PUT_OK)
        asyncio.run(client.put("users", "u1", '{"name": "Ann"}'))
        assert transport.last_args[-1] == '{"name": "Ann"}'

    def test_put_without_payload_sends_null(self, client, transport):
        transport.queue(PUT_OK)
        asyncio.run(client.put("users", "u1"))
        assert transport.last_args[-2:] == ["--payload", "null"]

    def test_write_without_auto_sync(self, temp_dir, transport):
        client = LedgerClient(temp_dir, auto_sync=False, transport=transport)
        transport.queue(PUT_OK)
        asyncio.run(client.delete("users", "u1"))
        assert transport.last_args[:4] == ["--repo", temp_dir, "--json", "--sync=false"]
        assert transport.last_args[4:] == ["doc", "delete", "users", "u1"]

    def test_reads_never_disable_sync(self, temp_dir, transport):
        client = LedgerClient(temp_dir, auto_sync=False, transport=transport)
        transport.queue({"doc": None})
        transport.queue({"entries": []})
        asyncio.run(client.get("users", "u1"))
        asyncio.run(client.log("users", "u1"))
        for call in transport.calls:
            assert "--sync=false" not in call.args

    def test_patch(self, client, transport):
        transport.queue(PUT_OK)
        ops = [{"op": "replace", "path": "/name", "value": "Bo"}]
        asyncio.run(client.patch("users", "u1", ops))
        assert transport.last_args[-5:] == [
            "patch", "users", "u1", "--ops", '[{"op":"replace","path":"/name","value":"Bo"}]',
        ]

    def test_get_with_metadata(self, client, transport):
        transport.queue({"doc": {"name": "Ann"}, "tx_hash": "h1", "tx_id": "t1", "op": "put"})
        result = asyncio.run(client.get("users", "u1"))
        assert result.doc == {"name": "Ann"}
        assert result.op == "put"

    def test_get_without_metadata(self, client, transport):
        transport.queue({"doc": {"name": "Ann"}})
        assert asyncio.run(client.get("users", "u1")) == GetResult(doc={"name": "Ann"})

    def test_log_keeps_engine_order(self, client, transport):
        transport.queue({"entries": [
            {"tx_hash": "h2", "tx_id": "t2", "parent_hash": "h1", "timestamp": 20, "op": "patch"},
            {"tx_hash": "h1", "tx_id": "t1", "timestamp": 10, "op": "put"},
        ]})
        entries = asyncio.run(client.log("users", "u1"))
        assert [e.tx_hash for e in entries] == ["h2", "h1"]
        assert entries[1].parent_hash is None

    def test_log_null_entries(self, client, transport):
        transport.queue({"entries": None})
        assert asyncio.run(client.log("users", "u1")) == []

    def test_revert_by_tx_id(self, client, transport):
        transport.queue(PUT_OK)
        asyncio.run(client.revert("orders", "o9", tx_id="t3"))
        args = transport.last_args
        assert args[-6:] == ["doc", "revert", "orders", "o9", "--tx-id", "t3"]
        assert "--tx-hash" not in args

    def test_revert_with_both_selectors_warns(self, client, transport, caplog):
        transport.queue(PUT_OK)
        with caplog.at_level(logging.WARNING, logger="ledgerdb.client"):
            asyncio.run(client.revert("orders", "o9", tx_id="t3", tx_hash="h3"))
        assert "--tx-id" in transport.last_args
        assert "--tx-hash" in transport.last_args
        assert "both tx_id and tx_hash" in caplog.text

    def test_push_returns_plain_output(self, client, transport, temp_dir):
        transport.queue("Everything up-to-date\n")
        assert asyncio.run(client.push()) == "Everything up-to-date\n"
        assert transport.last_args == ["--repo", temp_dir, "push"]


class TestRepositoryOperations:
    def test_status(self, client, transport):
        transport.queue({
            "path": "/srv/repo",
            "bare": True,
            "head": "c7",
            "manifest": {"version": 1, "name": "shop", "stream_layout": "sharded", "history_mode": "append"},
        })
        status = asyncio.run(client.status())
        assert status.bare is True
        assert status.manifest.name == "shop"
        assert transport.last_args[-1] == "status"

    def test_apply_collection_is_a_write(self, temp_dir, transport):
        client = LedgerClient(temp_dir, auto_sync=False, transport=transport)
        transport.queue("Collection users applied\n")
        out = asyncio.run(client.apply_collection("users", "schemas/users.json", ["email"]))
        assert out == "Collection users applied\n"
        assert transport.last_args == [
            "--repo", temp_dir, "--sync=false",
            "collection", "apply", "users", "--schema", "schemas/users.json", "--indexes", "email",
        ]

    def test_apply_collection_requires_schema(self, client, transport):
        with pytest.raises(ConfigurationError):
            asyncio.run(client.apply_collection("users", " "))
        assert transport.calls == []

    def test_verify(self, client, transport):
        transport.queue({"streams": 2, "valid": 1, "issues": [
            {"stream_path": "documents/users/u1", "code": "hash_mismatch", "message": "bad hash"},
        ]})
        result = asyncio.run(client.verify(deep=True))
        assert not result.ok
        assert result.issues[0].code == "hash_mismatch"
        assert transport.last_args[-3:] == ["integrity", "verify", "--deep"]

    def test_gc_and_snapshot(self, temp_dir, transport):
        client = LedgerClient(temp_dir, auto_sync=False, transport=transport)
        transport.queue({"status": "ok", "prune": "now"})
        transport.queue({"streams": 4, "processed": 4, "snapshotted": 1, "planned": 1, "skipped": 3})
        gc = asyncio.run(client.gc(prune="now"))
        assert gc.prune == "now"
        assert "--sync=false" not in transport.last_args
        snap = asyncio.run(client.snapshot(threshold=10))
        assert snap.snapshotted == 1
        assert "--sync=false" in transport.last_args


class TestErrors:
    def test_execution_error_propagates_unchanged(self, client, transport):
        error = ExecutionError("Command failed", exit_code=1, stderr="document not found\n")
        transport.queue(error)
        with pytest.raises(ExecutionError) as exc_info:
            asyncio.run(client.get("users", "missing"))
        assert exc_info.value is error
        assert "document not found" in str(exc_info.value)

    def test_malformed_json(self, client, transport):
        transport.queue("not json")
        with pytest.raises(DecodeError) as exc_info:
            asyncio.run(client.get("users", "u1"))
        assert "ledgerdb json parse failed" in str(exc_info.value)

    def test_wrong_shape(self, client, transport):
        transport.queue({"commit": "c1"})
        with pytest.raises(DecodeError) as exc_info:
            asyncio.run(client.put("users", "u1", {}))
        assert "tx_hash" in str(exc_info.value)

    def test_unrelated_object_is_not_an_idle_sync(self, client, transport):
        for output in ({"error": "unknown flag"}, {}):
            transport.queue(output)
            with pytest.raises(DecodeError) as exc_info:
                asyncio.run(client.index_sync())
            assert "IndexSyncResult" in str(exc_info.value)

    def test_sync_missing_one_counter(self, client, transport):
        transport.queue({"reset": False, "fetched": True, "commits": 0, "txs_applied": 0,
                         "docs_upserted": 0, "docs_deleted": 0})
        with pytest.raises(DecodeError) as exc_info:
            asyncio.run(client.index_sync())
        assert "collections" in str(exc_info.value)

    def test_get_without_doc_key(self, client, transport):
        transport.queue({"status": "ok"})
        with pytest.raises(DecodeError) as exc_info:
            asyncio.run(client.get("users", "u1"))
        assert "doc" in str(exc_info.value)

    def test_get_null_doc_is_valid(self, client, transport):
        transport.queue({"doc": None})
        assert asyncio.run(client.get("users", "u1")).doc is None

    def test_unserializable_payload_never_reaches_engine(self, client, transport):
        with pytest.raises(ConfigurationError):
            asyncio.run(client.put("users", "u1", {"bad": {1, 2}}))
        assert transport.calls == []


class TestRoundTrip:
    def test_put_then_log_contains_tx(self, engine_client):
        put = asyncio.run(engine_client.put("users", "u1", {"name": "Ann"}))
        entries = asyncio.run(engine_client.log("users", "u1"))
        assert put.tx_hash in [e.tx_hash for e in entries]

    def test_put_then_get(self, engine_client):
        asyncio.run(engine_client.put("users", "u1", {"name": "Ann"}))
        result = asyncio.run(engine_client.get("users", "u1"))
        assert result.doc == {"name": "Ann"}

    def test_history_is_a_hash_chain(self, engine_client):
        async def scenario():
            await engine_client.put("users", "u1", {"name": "Ann"})
            await engine_client.put("users", "u1", {"name": "Bo"})
            await engine_client.delete("users", "u1")
            return await engine_client.log("users", "u1")

        entries = asyncio.run(scenario())
        assert [e.op for e in entries] == ["delete", "put", "put"]
        assert entries[0].parent_hash == entries[1].tx_hash
        assert entries[1].parent_hash == entries[2].tx_hash

    def test_concurrent_calls_are_independent(self, engine_client):
        async def scenario():
            return await asyncio.gather(*[
                engine_client.put("users", f"u{i}", {"n": i}) for i in range(5)
            ])

        results = asyncio.run(scenario())
        assert len({r.tx_id for r in results}) == 5
