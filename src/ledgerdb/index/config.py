"""
config.py - Index configuration and layered resolution.

Session defaults are an IndexConfig built once per client. Every sync
or watch call merges its IndexOverrides on top and validates the merged
value, so an invariant holds no matter which layer set the field.
"""

import os
from dataclasses import dataclass, fields, replace
from typing import Any, Mapping

from ledgerdb.config import (
    DEFAULT_BATCH_COMMITS,
    DEFAULT_FAST,
    DEFAULT_FETCH,
    DEFAULT_INDEX_DB_NAME,
    DEFAULT_INDEX_MODE,
    DEFAULT_INTERVAL_MS,
    DEFAULT_JITTER_MS,
    DEFAULT_ONLY_CHANGES,
    INDEX_MODES,
    STDIO_INHERIT,
    STDIO_MODES,
)
from ledgerdb.errors import ConfigurationError


@dataclass(frozen=True)
class IndexConfig:
    """
    Fully resolved index configuration.

    mode="history" replays every transaction in causal order;
    mode="state" materializes only the latest value per document.
    """
    db_path: str
    mode: str = DEFAULT_INDEX_MODE
    interval_ms: int = DEFAULT_INTERVAL_MS
    jitter_ms: int = DEFAULT_JITTER_MS
    batch_commits: int = DEFAULT_BATCH_COMMITS
    fast: bool = DEFAULT_FAST
    fetch: bool = DEFAULT_FETCH
    only_changes: bool = DEFAULT_ONLY_CHANGES

    def __post_init__(self) -> None:
        if not self.db_path or not str(self.db_path).strip():
            raise ConfigurationError("index db path is required", field="db_path")
        if self.mode not in INDEX_MODES:
            raise ConfigurationError(
                f"invalid index mode: {self.mode}",
                field="mode",
                value=self.mode,
            )

    def validate_for_watch(self) -> None:
        """
        Check the constraints a continuous watch depends on.

        Raises:
            ConfigurationError: If interval_ms <= 0 or jitter_ms < 0
        """
        if self.interval_ms <= 0:
            raise ConfigurationError(
                "index watch interval must be > 0",
                field="interval_ms",
                value=self.interval_ms,
            )
        if self.jitter_ms < 0:
            raise ConfigurationError(
                "index watch jitter must be >= 0",
                field="jitter_ms",
                value=self.jitter_ms,
            )


@dataclass(frozen=True)
class IndexOverrides:
    """Per-call overrides; None means "use the session default"."""
    db_path: str | None = None
    mode: str | None = None
    interval_ms: int | None = None
    jitter_ms: int | None = None
    batch_commits: int | None = None
    fast: bool | None = None
    fetch: bool | None = None
    only_changes: bool | None = None

    def items(self) -> dict[str, Any]:
        """Set fields that map onto IndexConfig."""
        config_fields = {f.name for f in fields(IndexConfig)}
        return {
            f.name: getattr(self, f.name)
            for f in fields(self)
            if f.name in config_fields and getattr(self, f.name) is not None
        }


@dataclass(frozen=True)
class WatchOptions(IndexOverrides):
    """
    Overrides for a continuous watch plus how its process is attached.

    json asks the engine for structured output per reported pass;
    stdio="pipe" lets the caller read that output from the handle.
    """
    json: bool = False
    stdio: str = STDIO_INHERIT

    def __post_init__(self) -> None:
        if self.stdio not in STDIO_MODES:
            raise ConfigurationError(
                f"invalid stdio mode: {self.stdio}",
                field="stdio",
                value=self.stdio,
            )


def coerce_overrides(value: Any, cls: type = IndexOverrides):
    """Accept an overrides dataclass, a mapping of its fields, or None."""
    if value is None:
        return cls()
    if isinstance(value, cls):
        return value
    if isinstance(value, IndexOverrides):
        return cls(**{f.name: getattr(value, f.name) for f in fields(IndexOverrides)})
    if isinstance(value, Mapping):
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(value) - known)
        if unknown:
            raise ConfigurationError(
                f"unknown index option(s): {', '.join(unknown)}",
                field="overrides",
                value=unknown,
            )
        return cls(**value)
    raise ConfigurationError(
        f"overrides must be {cls.__name__} or a mapping, got {type(value).__name__}",
        field="overrides",
    )


def default_index_config(repo_path: str, overrides: Any = None) -> IndexConfig:
    """
    Build the session's default index configuration.

    The index database defaults to <repo_path>/index.db.
    """
    layer = coerce_overrides(overrides)
    base = IndexConfig(db_path=os.path.join(repo_path, DEFAULT_INDEX_DB_NAME))
    return resolve_index_config(base, layer)


def resolve_index_config(base: IndexConfig, overrides: Any = None) -> IndexConfig:
    """
    Merge overrides onto base and validate the result.

    The base is never modified; a new IndexConfig is returned.
    """
    layer = coerce_overrides(overrides)
    values = layer.items()
    if not values:
        return base
    return replace(base, **values)
