"""
command - Argument construction for engine invocations.
"""

from ledgerdb.command.builder import (
    base_args,
    doc_args,
    revert_args,
    index_args,
    collection_apply_args,
    verify_args,
    gc_args,
    snapshot_args,
    describe_subcommand,
)
from ledgerdb.command.payload import normalize_payload

__all__ = [
    # builder
    "base_args",
    "doc_args",
    "revert_args",
    "index_args",
    "collection_apply_args",
    "verify_args",
    "gc_args",
    "snapshot_args",
    "describe_subcommand",
    # payload
    "normalize_payload",
]
