"""
models.py - Result shapes produced by the engine's --json output.

These models are produced by decoding engine output, never constructed
from local state. They are frozen and ignore unknown keys so a newer
engine that adds fields does not break older clients.
"""

import json
from typing import TYPE_CHECKING, Any, List, Optional, Type, TypeVar

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from ledgerdb.errors import DecodeError

if TYPE_CHECKING:
    from ledgerdb.transport.base import CompletedRun


class EngineModel(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")


M = TypeVar("M", bound=EngineModel)


def _summarize(error: ValidationError) -> str:
    parts = []
    for item in error.errors():
        location = ".".join(str(p) for p in item.get("loc", ())) or "<root>"
        parts.append(f"{location}: {item.get('msg')}")
    return "; ".join(parts)


def validate_output(model: Type[M], data: Any, command=None, stderr: str = "") -> M:
    """
    Validate an already parsed JSON value against a result model.

    Raises:
        DecodeError: If the value does not have the model's shape
    """
    try:
        return model.model_validate(data)
    except ValidationError as e:
        raise DecodeError(
            f"unexpected {model.__name__} shape: {_summarize(e)}",
            command=command,
            stderr=stderr,
        ) from e


def decode_output(model: Type[M], run: "CompletedRun") -> M:
    """
    Parse a run's stdout as one JSON document and validate it.

    Raises:
        DecodeError: On malformed JSON or an unexpected shape; the
            engine's stderr is embedded in the message
    """
    try:
        data = json.loads(run.stdout)
    except json.JSONDecodeError as e:
        raise DecodeError(str(e), command=run.args, stderr=run.stderr) from e
    return validate_output(model, data, command=run.args, stderr=run.stderr)


class PutResult(EngineModel):
    """Outcome of any write: the resulting commit and the transaction it holds."""
    commit: str
    tx_hash: str
    tx_id: str


class GetResult(EngineModel):
    """Current document value plus metadata of the transaction that produced it."""
    doc: Any
    tx_hash: Optional[str] = None
    tx_id: Optional[str] = None
    op: Optional[str] = None


class LogEntry(EngineModel):
    """
    One transaction in a document's history.

    parent_hash links each entry to the transaction it was applied on top
    of, forming a hash chain analogous to a commit graph.
    """
    tx_hash: str
    tx_id: str
    parent_hash: Optional[str] = None
    timestamp: int
    op: str


class LogResult(EngineModel):
    entries: Optional[List[LogEntry]] = None


class IndexSyncResult(EngineModel):
    """
    Report of one index synchronization pass.

    reset=True means the local index was rebuilt from scratch instead of
    being advanced incrementally from last_commit.
    """
    reset: bool
    fetched: bool
    commits: int
    txs_applied: int
    docs_upserted: int
    docs_deleted: int
    collections: int
    last_commit: Optional[str] = None

    @property
    def has_changes(self) -> bool:
        return (
            self.commits > 0
            or self.txs_applied > 0
            or self.docs_upserted > 0
            or self.docs_deleted > 0
        )


class Manifest(EngineModel):
    version: int
    name: str
    stream_layout: Optional[str] = None
    history_mode: Optional[str] = None
    created_at: Optional[str] = None


class RepoStatus(EngineModel):
    path: str
    bare: bool
    head: Optional[str] = None
    manifest: Optional[Manifest] = None


class Issue(EngineModel):
    stream_path: str
    code: str
    message: str


class IntegrityResult(EngineModel):
    streams: int
    valid: int
    issues: List[Issue] = Field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.issues and self.valid == self.streams


class SnapshotResult(EngineModel):
    streams: int
    processed: int
    snapshotted: int
    planned: int
    skipped: int
    truncated: bool = False
    dry_run: bool = False
    issues: List[Issue] = Field(default_factory=list)


class GcResult(EngineModel):
    status: str
    prune: Optional[str] = None


class IndexedDoc(EngineModel):
    """A document row read from the local SQLite index."""
    doc_id: str
    payload: Any = None
    tx_hash: str
    tx_id: str
    op: str
    schema_version: Optional[str] = None
    updated_at: int
    deleted: bool = False
