"""
base.py - Abstract base classes for engine transports.

A transport knows how to run the engine executable. The client and the
index controller only build argument vectors and decode results, so
tests can substitute a transport that returns canned output instead of
starting a real process.
"""

import asyncio
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Mapping, Sequence


@dataclass(frozen=True)
class CompletedRun:
    """Captured outcome of a run-to-completion invocation."""
    args: tuple[str, ...]
    exit_code: int
    stdout: str
    stderr: str


class AttachedProcess(ABC):
    """
    A live engine process started in attached mode.

    The owner is responsible for terminating it; nothing reaps it
    automatically.
    """

    @property
    @abstractmethod
    def pid(self) -> int | None:
        pass

    @property
    @abstractmethod
    def returncode(self) -> int | None:
        """Exit status, or None while the process is still running."""
        pass

    @property
    @abstractmethod
    def stdout(self) -> asyncio.StreamReader | None:
        """Standard output stream, None when inherited from the caller."""
        pass

    @property
    @abstractmethod
    def stderr(self) -> asyncio.StreamReader | None:
        """Standard error stream, None when inherited from the caller."""
        pass

    @abstractmethod
    async def wait(self) -> int:
        """Wait for the process to exit and return its status."""
        pass

    @abstractmethod
    def terminate(self) -> None:
        """Ask the process to stop (SIGTERM). No-op once it has exited."""
        pass

    @abstractmethod
    def kill(self) -> None:
        """Force the process to stop (SIGKILL). No-op once it has exited."""
        pass


class EngineTransport(ABC):
    """
    Abstract base class for engine transports.

    Implementations must provide:
    - run(): wait for termination, capture all output, fail on non-zero exit
    - spawn(): start a long-running process and hand back a live handle
    """

    @property
    @abstractmethod
    def executable(self) -> str:
        """Path of the engine executable this transport invokes."""
        pass

    @abstractmethod
    async def run(
        self,
        args: Sequence[str],
        *,
        cwd: str | None = None,
        env: Mapping[str, str] | None = None,
    ) -> CompletedRun:
        """
        Run the engine to completion.

        Raises:
            SpawnError: If the executable could not be started
            ExecutionError: On non-zero exit or when output exceeds the buffer cap
        """
        pass

    @abstractmethod
    async def spawn(
        self,
        args: Sequence[str],
        *,
        cwd: str | None = None,
        env: Mapping[str, str] | None = None,
        stdio: str = "inherit",
    ) -> AttachedProcess:
        """
        Start the engine in attached mode.

        stdio="pipe" captures stdout only. stderr is always inherited.

        Raises:
            SpawnError: If the executable could not be started
        """
        pass
