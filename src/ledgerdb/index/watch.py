"""
watch.py - Handle for a running `index watch` process.

The engine loops on its own, waking every interval and syncing the
index. This module only owns the process: it exposes the output, decodes
the per-pass JSON reports when asked, and stops the process on request.
Nothing terminates the watch automatically except leaving an
`async with` block.
"""

import asyncio
import codecs
import json
import logging
from typing import AsyncIterator

from ledgerdb.config import MAX_BUFFER_BYTES, STDIO_PIPE, WATCH_TERMINATE_TIMEOUT
from ledgerdb.errors import ConfigurationError, DecodeError
from ledgerdb.index.config import IndexConfig
from ledgerdb.metrics import ClientLogger
from ledgerdb.models import IndexSyncResult, validate_output
from ledgerdb.transport.base import AttachedProcess

logger = logging.getLogger(__name__)

_READ_CHUNK = 64 * 1024


class JSONStreamDecoder:
    """
    Incremental decoder for a stream of concatenated JSON documents.

    The engine pretty-prints one object per reported pass, so documents
    span several lines and can arrive split across reads. Raw bytes go
    through feed_bytes(), which keeps a multi-byte character split
    between two reads intact.
    """

    def __init__(self, max_buffer: int = MAX_BUFFER_BYTES):
        self._decoder = json.JSONDecoder()
        self._text = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._buffer = ""
        self._max_buffer = max_buffer

    @property
    def pending(self) -> str:
        return self._buffer

    def feed_bytes(self, data: bytes) -> list:
        """Add raw stream bytes and return every document completed by them."""
        return self.feed(self._text.decode(data))

    def feed(self, text: str) -> list:
        """Add text and return every document completed by it."""
        self._buffer += text
        documents = []
        while True:
            self._buffer = self._buffer.lstrip()
            if not self._buffer:
                break
            if self._buffer[0] not in "{[":
                bad = self._buffer[:40]
                self._buffer = ""
                raise DecodeError(f"unexpected watch output: {bad!r}")
            try:
                document, end = self._decoder.raw_decode(self._buffer)
            except json.JSONDecodeError:
                if len(self._buffer) > self._max_buffer:
                    self._buffer = ""
                    raise DecodeError("watch output exceeded buffer without a complete document")
                break
            documents.append(document)
            self._buffer = self._buffer[end:]
        return documents

    def close(self) -> None:
        """Signal end of stream; leftover text is an error."""
        self._buffer += self._text.decode(b"", final=True)
        leftover = self._buffer.strip()
        self._buffer = ""
        if leftover:
            raise DecodeError(f"truncated watch output: {leftover[:40]!r}")


class IndexWatch:
    """
    A live `index watch` process.

    terminate() is idempotent: it is safe to call several times,
    concurrently, or after the process already exited.
    """

    def __init__(
        self,
        process: AttachedProcess,
        config: IndexConfig,
        json_output: bool = False,
        stdio: str = "inherit",
        events: ClientLogger | None = None,
    ):
        self._process = process
        self._config = config
        self._json = json_output
        self._stdio = stdio
        self._events = events or ClientLogger(__name__)
        self._stopping: asyncio.Future | None = None
        self._stopped = False

    @property
    def pid(self) -> int | None:
        return self._process.pid

    @property
    def returncode(self) -> int | None:
        return self._process.returncode

    @property
    def running(self) -> bool:
        return self._process.returncode is None

    @property
    def config(self) -> IndexConfig:
        return self._config

    @property
    def stdout(self) -> asyncio.StreamReader | None:
        return self._process.stdout

    @property
    def stderr(self) -> asyncio.StreamReader | None:
        return self._process.stderr

    def _require_pipe(self) -> asyncio.StreamReader:
        if self._stdio != STDIO_PIPE or self._process.stdout is None:
            raise ConfigurationError(
                "watch output is inherited; start the watch with stdio='pipe' to read it",
                field="stdio",
                value=self._stdio,
            )
        return self._process.stdout

    async def lines(self) -> AsyncIterator[str]:
        """Yield stdout line by line until the process closes it."""
        stream = self._require_pipe()
        while True:
            raw = await stream.readline()
            if not raw:
                return
            yield raw.decode("utf-8", errors="replace").rstrip("\r\n")

    async def results(self) -> AsyncIterator[IndexSyncResult]:
        """
        Yield one IndexSyncResult per pass the engine reports.

        With only_changes enabled the engine skips passes that changed
        nothing, so gaps between results are expected.
        """
        if not self._json:
            raise ConfigurationError(
                "watch was started without json output",
                field="json",
                value=self._json,
            )
        stream = self._require_pipe()
        decoder = JSONStreamDecoder()
        while True:
            chunk = await stream.read(_READ_CHUNK)
            if not chunk:
                decoder.close()
                return
            for document in decoder.feed_bytes(chunk):
                yield validate_output(IndexSyncResult, document)

    async def wait(self) -> int:
        """Wait for the engine to exit on its own."""
        code = await self._process.wait()
        self._mark_stopped()
        return code

    async def terminate(self, timeout: float = WATCH_TERMINATE_TIMEOUT) -> int | None:
        """
        Stop the watch: SIGTERM, then SIGKILL after timeout seconds.

        Returns:
            The process exit status
        """
        if self._stopping is None:
            self._stopping = asyncio.ensure_future(self._stop(timeout))
        return await asyncio.shield(self._stopping)

    async def _stop(self, timeout: float) -> int | None:
        if self._process.returncode is None:
            logger.debug(f"Terminating index watch pid={self.pid}")
            self._process.terminate()
            try:
                await asyncio.wait_for(self._process.wait(), timeout)
            except asyncio.TimeoutError:
                logger.warning(f"Index watch pid={self.pid} ignored SIGTERM, killing")
                self._process.kill()
                await self._process.wait()
        self._mark_stopped()
        return self._process.returncode

    def _mark_stopped(self) -> None:
        if not self._stopped:
            self._stopped = True
            self._events.watch_stopped(self.pid, self._process.returncode)

    async def __aenter__(self) -> "IndexWatch":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.terminate()
