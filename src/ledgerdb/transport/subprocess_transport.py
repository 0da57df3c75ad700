"""
subprocess_transport.py - Engine transport backed by child processes.

Uses asyncio subprocesses so every call is a single suspend point for
the caller. One child process per invocation; nothing is pooled or
retried.
"""

import asyncio
import logging
import shlex
import time
from typing import Mapping, Sequence

from ledgerdb.command.builder import describe_subcommand
from ledgerdb.config import MAX_BUFFER_BYTES, STDIO_INHERIT, STDIO_MODES, STDIO_PIPE
from ledgerdb.errors import ConfigurationError, ExecutionError, SpawnError
from ledgerdb.metrics import ClientLogger
from ledgerdb.transport.base import AttachedProcess, CompletedRun, EngineTransport

logger = logging.getLogger(__name__)

_READ_CHUNK = 64 * 1024


class BufferLimitExceeded(Exception):
    """A captured stream grew past the configured cap."""

    def __init__(self, stream: str, limit: int):
        super().__init__(f"{stream} maxBuffer length exceeded ({limit} bytes)")
        self.stream = stream
        self.limit = limit


async def _read_capped(reader: asyncio.StreamReader, limit: int, stream: str) -> bytes:
    chunks = []
    total = 0
    while True:
        chunk = await reader.read(_READ_CHUNK)
        if not chunk:
            return b"".join(chunks)
        total += len(chunk)
        if total > limit:
            raise BufferLimitExceeded(stream, limit)
        chunks.append(chunk)


class SubprocessHandle(AttachedProcess):
    """AttachedProcess over an asyncio.subprocess.Process."""

    def __init__(self, process: asyncio.subprocess.Process):
        self._process = process

    @property
    def pid(self) -> int | None:
        return self._process.pid

    @property
    def returncode(self) -> int | None:
        return self._process.returncode

    @property
    def stdout(self) -> asyncio.StreamReader | None:
        return self._process.stdout

    @property
    def stderr(self) -> asyncio.StreamReader | None:
        return self._process.stderr

    async def wait(self) -> int:
        return await self._process.wait()

    def terminate(self) -> None:
        if self._process.returncode is not None:
            return
        try:
            self._process.terminate()
        except ProcessLookupError:
            pass

    def kill(self) -> None:
        if self._process.returncode is not None:
            return
        try:
            self._process.kill()
        except ProcessLookupError:
            pass


class SubprocessTransport(EngineTransport):
    """
    Runs the engine executable as a child process.

    Args:
        executable: Path to the engine binary
        max_buffer: Cap in bytes for each captured stream in run()
    """

    def __init__(self, executable: str, max_buffer: int = MAX_BUFFER_BYTES):
        if max_buffer <= 0:
            raise ConfigurationError("max_buffer must be > 0", field="max_buffer", value=max_buffer)
        self._executable = executable
        self._max_buffer = max_buffer
        self._events = ClientLogger(__name__)

    @property
    def executable(self) -> str:
        return self._executable

    @property
    def max_buffer(self) -> int:
        return self._max_buffer

    async def run(
        self,
        args: Sequence[str],
        *,
        cwd: str | None = None,
        env: Mapping[str, str] | None = None,
    ) -> CompletedRun:
        command = [self._executable, *args]
        subcommand = describe_subcommand(args)
        logger.debug(f"exec {shlex.join(command)}")

        start = time.perf_counter()
        process = await self._start(
            command,
            subcommand,
            cwd=cwd,
            env=env,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )

        readers = [
            asyncio.ensure_future(_read_capped(process.stdout, self._max_buffer, "stdout")),
            asyncio.ensure_future(_read_capped(process.stderr, self._max_buffer, "stderr")),
        ]
        try:
            stdout_bytes, stderr_bytes = await asyncio.gather(*readers)
        except BufferLimitExceeded as e:
            _kill_quietly(process)
            await asyncio.gather(*readers, return_exceptions=True)
            await process.wait()
            self._events.command_failed(subcommand, str(e))
            raise ExecutionError(
                f"Command failed: {shlex.join(command)}: {e}",
                command=command,
            ) from e
        except asyncio.CancelledError:
            _kill_quietly(process)
            for reader in readers:
                reader.cancel()
            raise

        exit_code = await process.wait()
        stdout = stdout_bytes.decode("utf-8", errors="replace")
        stderr = stderr_bytes.decode("utf-8", errors="replace")
        duration_ms = (time.perf_counter() - start) * 1000

        if exit_code != 0:
            error = ExecutionError(
                f"Command failed: {shlex.join(command)} (exit code {exit_code})",
                command=command,
                exit_code=exit_code,
                stderr=stderr,
            )
            self._events.command_failed(subcommand, error.message, exit_code)
            raise error

        self._events.command_completed(subcommand, duration_ms)
        return CompletedRun(args=tuple(args), exit_code=exit_code, stdout=stdout, stderr=stderr)

    async def spawn(
        self,
        args: Sequence[str],
        *,
        cwd: str | None = None,
        env: Mapping[str, str] | None = None,
        stdio: str = STDIO_INHERIT,
    ) -> AttachedProcess:
        if stdio not in STDIO_MODES:
            raise ConfigurationError(f"invalid stdio mode: {stdio}", field="stdio", value=stdio)

        command = [self._executable, *args]
        logger.debug(f"spawn {shlex.join(command)} (stdio={stdio})")
        if stdio == STDIO_PIPE:
            # stderr stays inherited: nothing reads it while the process runs
            streams = {
                "stdin": asyncio.subprocess.DEVNULL,
                "stdout": asyncio.subprocess.PIPE,
                "stderr": None,
            }
        else:
            streams = {"stdin": None, "stdout": None, "stderr": None}

        process = await self._start(command, describe_subcommand(args), cwd=cwd, env=env, **streams)
        return SubprocessHandle(process)

    async def _start(self, command, subcommand, *, cwd, env, **streams) -> asyncio.subprocess.Process:
        try:
            return await asyncio.create_subprocess_exec(
                *command,
                cwd=cwd,
                env=dict(env) if env is not None else None,
                **streams,
            )
        except OSError as e:
            self._events.command_failed(subcommand, f"failed to start: {e}")
            raise SpawnError(self._executable, e) from e


def _kill_quietly(process: asyncio.subprocess.Process) -> None:
    if process.returncode is None:
        try:
            process.kill()
        except ProcessLookupError:
            pass
