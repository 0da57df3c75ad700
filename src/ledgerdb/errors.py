"""
errors.py - Domain-specific exceptions for ledgerdb.

All exceptions inherit from LedgerError for unified handling.
Each exception type represents a distinct failure mode:

- ConfigurationError: invalid client or index configuration, raised
  before any process is started
- SpawnError: the engine executable could not be started
- ExecutionError: the engine ran and failed (non-zero exit, buffer cap)
- DecodeError: the engine succeeded but its output was not the
  expected structured shape
"""

from typing import Any, Sequence


class LedgerError(Exception):
    """Base exception for all ledgerdb errors."""

    def __init__(self, message: str, context: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.context = context or {}

    def __str__(self) -> str:
        if self.context:
            context_str = ", ".join(f"{k}={v!r}" for k, v in self.context.items())
            return f"{self.message} [{context_str}]"
        return self.message


class ConfigurationError(LedgerError):
    """
    Raised when client or index configuration is invalid.

    This includes an empty repository path, a non-positive watch
    interval, an unknown index mode, or a payload that cannot be
    encoded. Always raised synchronously, never delegated to the engine.
    """

    def __init__(
        self, message: str, field: str | None = None, value: Any = None
    ) -> None:
        context = {}
        if field is not None:
            context["field"] = field
        if value is not None:
            context["value"] = repr(value)[:100]
        super().__init__(message, context=context)
        self.field = field
        self.value = value


class SpawnError(LedgerError):
    """
    Raised when the engine executable cannot be started.

    Missing binary, permission denied, or any other OS-level failure
    that happens before the process produces output.
    """

    def __init__(self, executable: str, cause: BaseException | None = None) -> None:
        detail = f": {cause}" if cause is not None else ""
        super().__init__(
            f"ledgerdb: failed to start {executable}{detail}",
            context={"executable": executable},
        )
        self.executable = executable
        self.cause = cause


class ExecutionError(LedgerError):
    """
    Raised when the engine ran but did not succeed.

    The message is the runtime's failure description followed by the
    trimmed standard error of the process when there is any.
    """

    def __init__(
        self,
        message: str,
        command: Sequence[str] | None = None,
        exit_code: int | None = None,
        stderr: str = "",
    ) -> None:
        details = stderr.strip()
        full_message = f"{message}: {details}" if details else message
        context = {}
        if exit_code is not None:
            context["exit_code"] = exit_code
        super().__init__(full_message, context=context)
        self.command = list(command) if command is not None else []
        self.exit_code = exit_code
        self.stderr = stderr


class DecodeError(LedgerError):
    """
    Raised when engine output cannot be decoded.

    The engine exited zero but stdout was not valid JSON or did not
    match the expected result shape. Stderr is embedded so the caller
    sees more than "invalid output".
    """

    def __init__(
        self,
        reason: str,
        command: Sequence[str] | None = None,
        stderr: str = "",
    ) -> None:
        details = stderr.strip()
        message = f"ledgerdb json parse failed: {reason}"
        if details:
            message = f"{message}: {details}"
        super().__init__(message)
        self.reason = reason
        self.command = list(command) if command is not None else []
        self.stderr = stderr


class IndexNotFoundError(LedgerError):
    """Raised when the local index database does not exist yet."""

    def __init__(self, db_path: str) -> None:
        super().__init__(
            "Index database not found; run an index sync first",
            context={"db_path": db_path},
        )
        self.db_path = db_path


class DocumentNotFoundError(LedgerError):
    """Raised when a document is missing from the local index."""

    def __init__(self, collection: str, doc_id: str) -> None:
        super().__init__(
            f"Document not found: {collection}/{doc_id}",
            context={"collection": collection, "doc_id": doc_id},
        )
        self.collection = collection
        self.doc_id = doc_id
