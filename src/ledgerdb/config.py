"""
config.py - Configuration constants for ledgerdb.

All configuration is immutable and defined at module level.
Runtime configuration (index defaults, per-call overrides) lives in
ledgerdb.index.config as frozen dataclasses.
"""

from typing import Final

# Environment variable that selects an alternate engine executable
BINARY_ENV_VAR: Final[str] = "LEDGERDB_BIN"

# Engine executable name inside the package's bin/ directory
BINARY_NAME: Final[str] = "ledgerdb"
BINARY_NAME_WINDOWS: Final[str] = "ledgerdb.exe"

# Cap on captured stdout/stderr per run-to-completion call (10 MiB)
MAX_BUFFER_BYTES: Final[int] = 10 * 1024 * 1024

# Index database file created next to the repository when no path is given
DEFAULT_INDEX_DB_NAME: Final[str] = "index.db"

# Index modes understood by the engine
INDEX_MODE_HISTORY: Final[str] = "history"
INDEX_MODE_STATE: Final[str] = "state"
INDEX_MODES: Final[frozenset[str]] = frozenset({INDEX_MODE_HISTORY, INDEX_MODE_STATE})

# Index defaults
DEFAULT_INDEX_MODE: Final[str] = INDEX_MODE_STATE
DEFAULT_INTERVAL_MS: Final[int] = 1000
DEFAULT_JITTER_MS: Final[int] = 0
DEFAULT_BATCH_COMMITS: Final[int] = 200
DEFAULT_FAST: Final[bool] = True
DEFAULT_FETCH: Final[bool] = True
DEFAULT_ONLY_CHANGES: Final[bool] = True

# Watch handle stdio modes
STDIO_INHERIT: Final[str] = "inherit"
STDIO_PIPE: Final[str] = "pipe"
STDIO_MODES: Final[frozenset[str]] = frozenset({STDIO_INHERIT, STDIO_PIPE})

# Seconds to wait after SIGTERM before killing a watch process
WATCH_TERMINATE_TIMEOUT: Final[float] = 5.0

# Engine flag spellings
FLAG_REPO: Final[str] = "--repo"
FLAG_JSON: Final[str] = "--json"
FLAG_NO_SYNC: Final[str] = "--sync=false"
FLAG_NO_FETCH: Final[str] = "--fetch=false"

# Tables the engine maintains inside the index database
INDEX_STATE_TABLE: Final[str] = "ledger_index_state"
COLLECTION_REGISTRY_TABLE: Final[str] = "collection_registry"
