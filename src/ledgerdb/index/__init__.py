"""
index - Local SQLite index: configuration, sync/watch control, reads.
"""

from ledgerdb.index.config import (
    IndexConfig,
    IndexOverrides,
    WatchOptions,
    coerce_overrides,
    default_index_config,
    resolve_index_config,
)
from ledgerdb.index.watch import IndexWatch, JSONStreamDecoder
from ledgerdb.index.controller import IndexSyncController
from ledgerdb.index.reader import IndexReader

__all__ = [
    # config
    "IndexConfig",
    "IndexOverrides",
    "WatchOptions",
    "coerce_overrides",
    "default_index_config",
    "resolve_index_config",
    # watch
    "IndexWatch",
    "JSONStreamDecoder",
    # controller
    "IndexSyncController",
    # reader
    "IndexReader",
]
