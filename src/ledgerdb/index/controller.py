"""
controller.py - Index synchronization controller.

Two entry points share one configuration path:

- sync(): one incremental pass, run to completion, returns the report
- start_watch(): the engine's own polling loop in an attached process

Session defaults are merged with per-call overrides and the merged
value is validated before any process starts. The local index advances
from its last applied commit, so a repeated sync with no new remote
activity applies nothing; that guarantee is the engine's and is
reported back unchanged.
"""

import logging
from typing import Any, Mapping

from ledgerdb.command.builder import base_args, index_args
from ledgerdb.index.config import (
    IndexConfig,
    IndexOverrides,
    WatchOptions,
    coerce_overrides,
    resolve_index_config,
)
from ledgerdb.index.watch import IndexWatch
from ledgerdb.metrics import ClientLogger
from ledgerdb.models import IndexSyncResult, decode_output
from ledgerdb.transport.base import EngineTransport

logger = logging.getLogger(__name__)


class IndexSyncController:
    """
    Keeps the local SQLite index in step with the repository's commit log.

    Args:
        transport: Engine transport used for every invocation
        repo_path: Repository the engine operates on
        defaults: Session-level index configuration, never modified
        env: Environment handed to the engine process
    """

    def __init__(
        self,
        transport: EngineTransport,
        repo_path: str,
        defaults: IndexConfig,
        env: Mapping[str, str] | None = None,
    ):
        self._transport = transport
        self._repo_path = repo_path
        self._defaults = defaults
        self._env = env
        self._events = ClientLogger(__name__)

    @property
    def defaults(self) -> IndexConfig:
        return self._defaults

    def resolve(self, overrides: IndexOverrides | Mapping[str, Any] | None = None) -> IndexConfig:
        """Session defaults merged with overrides, validated."""
        return resolve_index_config(self._defaults, overrides)

    def sync_args(self, overrides: IndexOverrides | Mapping[str, Any] | None = None) -> list[str]:
        """Full argument vector for a one-shot sync."""
        config = self.resolve(overrides)
        return base_args(self._repo_path, json_output=True) + index_args("sync", config)

    def watch_args(self, options: WatchOptions | Mapping[str, Any] | None = None) -> list[str]:
        """
        Full argument vector for a continuous watch.

        Raises:
            ConfigurationError: If the merged interval is not positive
        """
        opts = coerce_overrides(options, WatchOptions)
        config = self.resolve(opts)
        return base_args(self._repo_path, json_output=opts.json) + index_args("watch", config)

    async def sync(self, overrides: IndexOverrides | Mapping[str, Any] | None = None) -> IndexSyncResult:
        """
        Run one incremental sync pass.

        Returns:
            What the pass did; reset=True means the index was rebuilt

        Raises:
            ConfigurationError: Invalid merged configuration
            SpawnError, ExecutionError, DecodeError: From the engine call
        """
        config = self.resolve(overrides)
        args = base_args(self._repo_path, json_output=True) + index_args("sync", config)
        run = await self._transport.run(args, cwd=self._repo_path, env=self._env)
        result = decode_output(IndexSyncResult, run)
        self._events.index_synced(
            config.mode,
            result.txs_applied,
            result.docs_upserted,
            result.docs_deleted,
            result.reset,
            result.last_commit,
        )
        if result.reset:
            logger.warning(f"Index at {config.db_path} was rebuilt from scratch")
        return result

    async def start_watch(self, options: WatchOptions | Mapping[str, Any] | None = None) -> IndexWatch:
        """
        Start the engine's continuous watch loop.

        Validation happens before the process is spawned; a bad interval
        never reaches the engine. The returned handle belongs to the
        caller, who must terminate it.

        Raises:
            ConfigurationError: If interval_ms <= 0 or jitter_ms < 0
            SpawnError: If the engine could not be started
        """
        opts = coerce_overrides(options, WatchOptions)
        config = self.resolve(opts)
        args = base_args(self._repo_path, json_output=opts.json) + index_args("watch", config)
        process = await self._transport.spawn(
            args, cwd=self._repo_path, env=self._env, stdio=opts.stdio
        )
        self._events.watch_started(process.pid, config.interval_ms, config.jitter_ms)
        return IndexWatch(process, config, json_output=opts.json, stdio=opts.stdio, events=self._events)
