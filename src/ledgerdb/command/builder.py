"""
builder.py - Argument vectors for the engine executable.

Every invocation has the shape:

    <exe> --repo <path> [--json] [--sync=false] <subcommand> [args...]

Builders are pure functions of their inputs: the same input always
produces the same list, in the same order.
"""

from typing import TYPE_CHECKING, Sequence

from ledgerdb.config import (
    FLAG_JSON,
    FLAG_NO_FETCH,
    FLAG_NO_SYNC,
    FLAG_REPO,
)

if TYPE_CHECKING:
    from ledgerdb.index.config import IndexConfig

INDEX_SUBCOMMANDS = ("sync", "watch")

# Subcommands that take a second word (doc put, index sync, ...)
_COMMAND_GROUPS = frozenset({"doc", "index", "collection", "integrity", "maintenance"})


def base_args(
    repo_path: str,
    json_output: bool,
    write: bool = False,
    auto_sync: bool = True,
) -> list[str]:
    """
    Leading flags shared by every invocation.

    --sync=false is only emitted for writes when auto-sync is disabled;
    reads never carry it.
    """
    args = [FLAG_REPO, repo_path]
    if json_output:
        args.append(FLAG_JSON)
    if write and not auto_sync:
        args.append(FLAG_NO_SYNC)
    return args


def doc_args(action: str, collection: str, doc_id: str, *extra: str) -> list[str]:
    return ["doc", action, collection, doc_id, *extra]


def revert_args(
    collection: str,
    doc_id: str,
    tx_id: str | None = None,
    tx_hash: str | None = None,
) -> list[str]:
    """
    Arguments for doc revert.

    Both selectors are passed through when both are given; the engine
    decides whether that is acceptable.
    """
    args = doc_args("revert", collection, doc_id)
    if tx_id:
        args.extend(["--tx-id", tx_id])
    if tx_hash:
        args.extend(["--tx-hash", tx_hash])
    return args


def index_args(subcommand: str, config: "IndexConfig") -> list[str]:
    """
    Arguments for index sync or index watch.

    Args:
        subcommand: "sync" or "watch"
        config: Already merged index configuration

    Raises:
        ConfigurationError: For watch, if interval_ms <= 0 or jitter_ms < 0
    """
    if subcommand not in INDEX_SUBCOMMANDS:
        raise ValueError(f"unknown index subcommand: {subcommand}")

    args = ["index", subcommand, "--db", config.db_path, "--mode", config.mode]

    if subcommand == "watch":
        config.validate_for_watch()
        args.extend(["--interval", f"{config.interval_ms}ms"])
        if config.jitter_ms > 0:
            args.extend(["--jitter", f"{config.jitter_ms}ms"])
        if config.only_changes:
            args.append("--only-changes")

    if config.batch_commits and config.batch_commits > 0:
        args.extend(["--batch-commits", str(config.batch_commits)])
    if config.fast:
        args.append("--fast")
    if not config.fetch:
        args.append(FLAG_NO_FETCH)
    return args


def collection_apply_args(name: str, schema_path: str, indexes: Sequence[str] | None = None) -> list[str]:
    args = ["collection", "apply", name, "--schema", schema_path]
    if indexes:
        args.extend(["--indexes", ",".join(indexes)])
    return args


def verify_args(deep: bool = False) -> list[str]:
    args = ["integrity", "verify"]
    if deep:
        args.append("--deep")
    return args


def gc_args(prune: str | None = None) -> list[str]:
    args = ["maintenance", "gc"]
    if prune:
        args.extend(["--prune", prune])
    return args


def snapshot_args(
    threshold: int | None = None,
    max_snapshots: int | None = None,
    dry_run: bool = False,
) -> list[str]:
    args = ["maintenance", "snapshot"]
    if threshold is not None:
        args.extend(["--threshold", str(threshold)])
    if max_snapshots is not None:
        args.extend(["--max", str(max_snapshots)])
    if dry_run:
        args.append("--dry-run")
    return args


def describe_subcommand(args: Sequence[str]) -> str:
    """
    Short label for an argument vector, e.g. "doc put" or "push".

    Used for log messages and metric labels.
    """
    words: list[str] = []
    skip_next = False
    for arg in args:
        if skip_next:
            skip_next = False
            continue
        if arg == FLAG_REPO:
            skip_next = True
            continue
        if arg.startswith("-"):
            continue
        words.append(arg)
        if words[0] not in _COMMAND_GROUPS or len(words) == 2:
            break
    return " ".join(words) or "ledgerdb"
