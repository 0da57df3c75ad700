"""
client.py - Main client interface.

LedgerClient is the primary public interface of the package. Each
document operation is a thin composition of:

- argument construction (ledgerdb.command)
- one engine invocation (ledgerdb.transport)
- decoding of the engine's JSON output (ledgerdb.models)

A client is immutable after construction. Concurrent calls each start
their own engine process and share no mutable state; ordering of
concurrent writes to one document is the engine's concern.
"""

import logging
import os
from typing import Any, Mapping, Sequence, Type

from ledgerdb.binary import resolve_binary_path
from ledgerdb.command.builder import (
    base_args,
    collection_apply_args,
    doc_args,
    gc_args,
    revert_args,
    snapshot_args,
    verify_args,
)
from ledgerdb.command.payload import normalize_payload
from ledgerdb.config import MAX_BUFFER_BYTES
from ledgerdb.errors import ConfigurationError
from ledgerdb.index.config import IndexConfig, IndexOverrides, WatchOptions, default_index_config
from ledgerdb.index.controller import IndexSyncController
from ledgerdb.index.reader import IndexReader
from ledgerdb.index.watch import IndexWatch
from ledgerdb.models import (
    GcResult,
    GetResult,
    IndexSyncResult,
    IntegrityResult,
    LogEntry,
    LogResult,
    M,
    PutResult,
    RepoStatus,
    SnapshotResult,
    decode_output,
)
from ledgerdb.transport.base import EngineTransport
from ledgerdb.transport.subprocess_transport import SubprocessTransport

logger = logging.getLogger(__name__)


class LedgerClient:
    """
    Async client for a LedgerDB repository.

    Args:
        repo_path: Repository directory; required, must not be blank
        binary_path: Engine executable; defaults to LEDGERDB_BIN or the
            bundled binary
        env: Variables overlaid on os.environ for the engine process
        auto_sync: When False, writes carry --sync=false
        index: Default index configuration (IndexOverrides or mapping)
        transport: Engine transport; defaults to a SubprocessTransport
        max_buffer: Output cap for the default transport

    Raises:
        ConfigurationError: If repo_path is empty or index defaults are invalid
    """

    def __init__(
        self,
        repo_path: str,
        binary_path: str | None = None,
        env: Mapping[str, str] | None = None,
        auto_sync: bool = True,
        index: IndexOverrides | Mapping[str, Any] | None = None,
        transport: EngineTransport | None = None,
        max_buffer: int = MAX_BUFFER_BYTES,
    ):
        if not repo_path or not str(repo_path).strip():
            raise ConfigurationError("repoPath is required", field="repo_path", value=repo_path)

        self._repo_path = str(repo_path)
        if transport is None:
            transport = SubprocessTransport(binary_path or resolve_binary_path(), max_buffer=max_buffer)
        self._transport = transport
        self._env = {**os.environ, **(env or {})}
        self._auto_sync = auto_sync
        self._index_defaults = default_index_config(self._repo_path, index)
        self._index = IndexSyncController(
            transport, self._repo_path, self._index_defaults, env=self._env
        )

    def __repr__(self) -> str:
        return f"LedgerClient(repo_path={self._repo_path!r}, binary_path={self.binary_path!r})"

    @property
    def repo_path(self) -> str:
        return self._repo_path

    @property
    def binary_path(self) -> str:
        return self._transport.executable

    @property
    def auto_sync(self) -> bool:
        return self._auto_sync

    @property
    def env(self) -> dict[str, str]:
        return dict(self._env)

    @property
    def index_config(self) -> IndexConfig:
        return self._index_defaults

    @property
    def index_db_path(self) -> str:
        return self._index_defaults.db_path

    @property
    def index(self) -> IndexSyncController:
        return self._index

    # ------------------------------------------------------------------
    # Documents
    # ------------------------------------------------------------------

    async def get(self, collection: str, doc_id: str) -> GetResult:
        """Read the current value of a document."""
        return await self._exec_json(GetResult, doc_args("get", collection, doc_id), write=False)

    async def put(self, collection: str, doc_id: str, payload: Any = None) -> PutResult:
        """
        Write a full document snapshot.

        Strings are sent as-is; any other value is encoded as JSON.
        """
        data = normalize_payload(payload)
        return await self._exec_json(
            PutResult, doc_args("put", collection, doc_id, "--payload", data), write=True
        )

    async def patch(self, collection: str, doc_id: str, ops: Any) -> PutResult:
        """Apply JSON Patch (RFC 6902) operations to a document."""
        data = normalize_payload(ops, field="ops")
        return await self._exec_json(
            PutResult, doc_args("patch", collection, doc_id, "--ops", data), write=True
        )

    async def delete(self, collection: str, doc_id: str) -> PutResult:
        """Tombstone a document."""
        return await self._exec_json(PutResult, doc_args("delete", collection, doc_id), write=True)

    async def log(self, collection: str, doc_id: str) -> list[LogEntry]:
        """
        Transaction history of a document, in the order the engine
        reports it (head first).
        """
        result = await self._exec_json(LogResult, doc_args("log", collection, doc_id), write=False)
        return list(result.entries or [])

    async def revert(
        self,
        collection: str,
        doc_id: str,
        tx_id: str | None = None,
        tx_hash: str | None = None,
    ) -> PutResult:
        """
        Rewind a document to an earlier transaction.

        Pass one of tx_id or tx_hash. Both are forwarded when both are
        given and the engine decides.
        """
        if tx_id and tx_hash:
            logger.warning(
                f"revert {collection}/{doc_id} given both tx_id and tx_hash; forwarding both"
            )
        return await self._exec_json(
            PutResult, revert_args(collection, doc_id, tx_id=tx_id, tx_hash=tx_hash), write=True
        )

    async def push(self) -> str:
        """Publish pending local commits to the remote. Returns engine output."""
        return await self._exec_plain(["push"], write=False)

    # ------------------------------------------------------------------
    # Repository
    # ------------------------------------------------------------------

    async def status(self) -> RepoStatus:
        return await self._exec_json(RepoStatus, ["status"], write=False)

    async def apply_collection(
        self,
        name: str,
        schema: str,
        indexes: Sequence[str] | None = None,
    ) -> str:
        """Create or update a collection from a JSON schema file."""
        if not schema or not schema.strip():
            raise ConfigurationError("collection schema path is required", field="schema")
        return await self._exec_plain(collection_apply_args(name, schema, indexes), write=True)

    async def verify(self, deep: bool = False) -> IntegrityResult:
        """Check the hash chains of every document stream."""
        return await self._exec_json(IntegrityResult, verify_args(deep), write=False)

    async def gc(self, prune: str | None = None) -> GcResult:
        return await self._exec_json(GcResult, gc_args(prune), write=False)

    async def snapshot(
        self,
        threshold: int | None = None,
        max_snapshots: int | None = None,
        dry_run: bool = False,
    ) -> SnapshotResult:
        """Write snapshot transactions for streams with long patch chains."""
        return await self._exec_json(
            SnapshotResult, snapshot_args(threshold, max_snapshots, dry_run), write=True
        )

    # ------------------------------------------------------------------
    # Index
    # ------------------------------------------------------------------

    async def index_sync(self, overrides: IndexOverrides | Mapping[str, Any] | None = None) -> IndexSyncResult:
        """One-shot index sync with per-call overrides."""
        return await self._index.sync(overrides)

    async def start_index_watch(self, options: WatchOptions | Mapping[str, Any] | None = None) -> IndexWatch:
        """Start a continuous index watch; the caller must terminate it."""
        return await self._index.start_watch(options)

    def open_index(self, db_path: str | None = None) -> IndexReader:
        """Open the local index for reading."""
        return IndexReader(db_path or self.index_db_path)

    # ------------------------------------------------------------------
    # Engine calls
    # ------------------------------------------------------------------

    def build_args(self, args: Sequence[str], write: bool, json_output: bool = True) -> list[str]:
        """Full argument vector for a subcommand."""
        return base_args(self._repo_path, json_output, write=write, auto_sync=self._auto_sync) + list(args)

    async def _exec_json(self, model: Type[M], args: Sequence[str], write: bool) -> M:
        full_args = self.build_args(args, write, json_output=True)
        run = await self._transport.run(full_args, cwd=self._repo_path, env=self._env)
        return decode_output(model, run)

    async def _exec_plain(self, args: Sequence[str], write: bool) -> str:
        full_args = self.build_args(args, write, json_output=False)
        run = await self._transport.run(full_args, cwd=self._repo_path, env=self._env)
        return run.stdout
