"""
transport/__init__.py - Transport layer for engine invocations.

Provides the injectable transport interface and its subprocess-backed
implementation.
"""

from ledgerdb.transport.base import AttachedProcess, CompletedRun, EngineTransport
from ledgerdb.transport.subprocess_transport import SubprocessHandle, SubprocessTransport

__all__ = [
    "AttachedProcess",
    "CompletedRun",
    "EngineTransport",
    "SubprocessHandle",
    "SubprocessTransport",
]
