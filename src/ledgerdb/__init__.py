"""
ledgerdb - Python client for the LedgerDB document ledger

An async API over the ledgerdb engine executable: document operations
(get/put/patch/delete/log/revert/push) and synchronization of the local
SQLite index (one-shot sync or continuous watch).
"""

from ledgerdb.client import LedgerClient
from ledgerdb.binary import resolve_binary_path
from ledgerdb.errors import (
    LedgerError,
    ConfigurationError,
    SpawnError,
    ExecutionError,
    DecodeError,
    IndexNotFoundError,
    DocumentNotFoundError,
)
from ledgerdb.index import (
    IndexConfig,
    IndexOverrides,
    WatchOptions,
    IndexSyncController,
    IndexWatch,
    IndexReader,
)
from ledgerdb.models import (
    PutResult,
    GetResult,
    LogEntry,
    IndexSyncResult,
    RepoStatus,
    Manifest,
    IntegrityResult,
    SnapshotResult,
    GcResult,
    IndexedDoc,
)
from ledgerdb.transport import EngineTransport, SubprocessTransport

__version__ = "0.3.0"
__all__ = [
    # Core
    "LedgerClient",
    "resolve_binary_path",
    # Errors
    "LedgerError",
    "ConfigurationError",
    "SpawnError",
    "ExecutionError",
    "DecodeError",
    "IndexNotFoundError",
    "DocumentNotFoundError",
    # Index
    "IndexConfig",
    "IndexOverrides",
    "WatchOptions",
    "IndexSyncController",
    "IndexWatch",
    "IndexReader",
    # Results
    "PutResult",
    "GetResult",
    "LogEntry",
    "IndexSyncResult",
    "RepoStatus",
    "Manifest",
    "IntegrityResult",
    "SnapshotResult",
    "GcResult",
    "IndexedDoc",
    # Transport
    "EngineTransport",
    "SubprocessTransport",
]
