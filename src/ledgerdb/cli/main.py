"""
main.py - Command line front-end for the ledgerdb client.

Wraps LedgerClient so documents and the local index can be driven from
a shell with rich output. `exec` forwards raw arguments to the engine
unchanged.
"""

import asyncio
import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from ledgerdb.binary import resolve_binary_path
from ledgerdb.client import LedgerClient
from ledgerdb.errors import LedgerError, SpawnError
from ledgerdb.index.config import IndexOverrides, WatchOptions
from ledgerdb.metrics import configure_logging
from ledgerdb.models import IndexSyncResult, PutResult
from ledgerdb.transport.subprocess_transport import SubprocessTransport

app = typer.Typer(help="LedgerDB client CLI")
doc_app = typer.Typer(help="Read and write documents")
index_app = typer.Typer(help="Synchronize and query the local SQLite index")
app.add_typer(doc_app, name="doc")
app.add_typer(index_app, name="index")

console = Console()
err_console = Console(stderr=True)


@dataclass
class CLIState:
    repo: str = "."
    binary: Optional[str] = None
    auto_sync: bool = True

    def client(self) -> LedgerClient:
        return LedgerClient(self.repo, binary_path=self.binary, auto_sync=self.auto_sync)


def _state(ctx: typer.Context) -> CLIState:
    return ctx.obj


def _run(coro) -> Any:
    """Run a client coroutine, turning library errors into exit code 1."""
    try:
        return asyncio.run(coro)
    except LedgerError as e:
        err_console.print(f"[red]{escape(str(e))}[/red]")
        raise typer.Exit(code=1)


def _read_input(inline: Optional[str], file: Optional[Path], what: str) -> str:
    if inline is not None and file is not None:
        err_console.print(f"[red]Use either --{what} or --file, not both[/red]")
        raise typer.Exit(code=2)
    if file is not None:
        return file.read_text(encoding="utf-8")
    if inline is None:
        err_console.print(f"[red]--{what} or --file is required[/red]")
        raise typer.Exit(code=2)
    return inline


def _print_put(result: PutResult) -> None:
    table = Table(title="Committed")
    table.add_column("Property", style="cyan")
    table.add_column("Value", style="magenta")
    table.add_row("Commit", result.commit)
    table.add_row("Tx Hash", result.tx_hash)
    table.add_row("Tx ID", result.tx_id)
    console.print(table)


def _print_sync(result: IndexSyncResult) -> None:
    state = "[green]applied[/green]" if result.has_changes else "[dim]idle[/dim]"
    table = Table(title="Index Sync")
    table.add_column("Property", style="cyan")
    table.add_column("Value", style="magenta")
    table.add_row("Status", state)
    table.add_row("Reset", str(result.reset))
    table.add_row("Fetched", str(result.fetched))
    table.add_row("Commits", str(result.commits))
    table.add_row("Txs Applied", str(result.txs_applied))
    table.add_row("Docs Upserted", str(result.docs_upserted))
    table.add_row("Docs Deleted", str(result.docs_deleted))
    table.add_row("Collections", str(result.collections))
    table.add_row("Last Commit", result.last_commit or "-")
    console.print(table)


@app.callback()
def main_callback(
    ctx: typer.Context,
    repo: str = typer.Option(".", "--repo", "-r", help="Path to the repository"),
    binary: Optional[str] = typer.Option(None, "--bin", help="Engine executable (env: LEDGERDB_BIN)"),
    sync: bool = typer.Option(True, "--sync/--no-sync", help="Auto-fetch before writes and auto-push after"),
    log_level: str = typer.Option("WARNING", "--log-level", help="Log level (DEBUG, INFO, WARNING, ERROR)"),
    json_logs: bool = typer.Option(False, "--json-logs", help="Emit logs as JSON"),
):
    """Drive a LedgerDB repository through the ledgerdb engine."""
    configure_logging(level=log_level, json_format=json_logs)
    ctx.obj = CLIState(repo=repo, binary=binary, auto_sync=sync)


# =============================================================================
# Documents
# =============================================================================

@doc_app.command("get")
def doc_get(ctx: typer.Context, collection: str, doc_id: str):
    """Print the current value of a document."""
    result = _run(_state(ctx).client().get(collection, doc_id))
    console.print_json(json.dumps(result.model_dump()))


@doc_app.command("put")
def doc_put(
    ctx: typer.Context,
    collection: str,
    doc_id: str,
    payload: Optional[str] = typer.Option(None, "--payload", help="Inline JSON document payload"),
    file: Optional[Path] = typer.Option(None, "--file", help="Path to JSON document payload"),
):
    """Write a full document snapshot."""
    data = _read_input(payload, file, "payload")
    _print_put(_run(_state(ctx).client().put(collection, doc_id, data)))


@doc_app.command("patch")
def doc_patch(
    ctx: typer.Context,
    collection: str,
    doc_id: str,
    ops: Optional[str] = typer.Option(None, "--ops", help="Inline JSON Patch operations"),
    file: Optional[Path] = typer.Option(None, "--file", help="Path to JSON Patch operations"),
):
    """Apply JSON Patch operations to a document."""
    data = _read_input(ops, file, "ops")
    _print_put(_run(_state(ctx).client().patch(collection, doc_id, data)))


@doc_app.command("delete")
def doc_delete(ctx: typer.Context, collection: str, doc_id: str):
    """Tombstone a document."""
    _print_put(_run(_state(ctx).client().delete(collection, doc_id)))


@doc_app.command("log")
def doc_log(ctx: typer.Context, collection: str, doc_id: str):
    """Show the transaction history of a document."""
    entries = _run(_state(ctx).client().log(collection, doc_id))
    if not entries:
        console.print("[yellow]No transactions.[/yellow]")
        return
    table = Table(title=f"{collection}/{doc_id}")
    table.add_column("Tx ID", style="cyan")
    table.add_column("Tx Hash", style="dim")
    table.add_column("Parent", style="dim")
    table.add_column("Op", style="magenta")
    table.add_column("Timestamp")
    for entry in entries:
        table.add_row(
            entry.tx_id,
            entry.tx_hash[:12],
            (entry.parent_hash or "-")[:12],
            entry.op,
            str(entry.timestamp),
        )
    console.print(table)


@doc_app.command("revert")
def doc_revert(
    ctx: typer.Context,
    collection: str,
    doc_id: str,
    tx_id: Optional[str] = typer.Option(None, "--tx-id", help="Target transaction ID from doc log"),
    tx_hash: Optional[str] = typer.Option(None, "--tx-hash", help="Target transaction hash from doc log"),
):
    """Rewind a document to an earlier transaction."""
    _print_put(_run(_state(ctx).client().revert(collection, doc_id, tx_id=tx_id, tx_hash=tx_hash)))


# =============================================================================
# Index
# =============================================================================

@index_app.command("sync")
def index_sync(
    ctx: typer.Context,
    db: Optional[str] = typer.Option(None, "--db", help="Path to SQLite index database"),
    mode: Optional[str] = typer.Option(None, "--mode", help="Index source (history, state)"),
    batch_commits: Optional[int] = typer.Option(None, "--batch-commits", help="Commits per SQLite transaction"),
    fetch: Optional[bool] = typer.Option(None, "--fetch/--no-fetch", help="Fetch remote updates before syncing"),
):
    """Run a single incremental index sync."""
    overrides = IndexOverrides(db_path=db, mode=mode, batch_commits=batch_commits, fetch=fetch)
    _print_sync(_run(_state(ctx).client().index_sync(overrides)))


@index_app.command("watch")
def index_watch(
    ctx: typer.Context,
    db: Optional[str] = typer.Option(None, "--db", help="Path to SQLite index database"),
    mode: Optional[str] = typer.Option(None, "--mode", help="Index source (history, state)"),
    interval: Optional[int] = typer.Option(None, "--interval", help="Polling interval in milliseconds"),
    jitter: Optional[int] = typer.Option(None, "--jitter", help="Random jitter in milliseconds"),
    batch_commits: Optional[int] = typer.Option(None, "--batch-commits", help="Commits per SQLite transaction"),
    only_changes: Optional[bool] = typer.Option(None, "--only-changes/--all-passes", help="Report only passes that changed the index"),
):
    """Keep the index in sync until interrupted."""
    client = _state(ctx).client()
    options = WatchOptions(
        db_path=db,
        mode=mode,
        interval_ms=interval,
        jitter_ms=jitter,
        batch_commits=batch_commits,
        only_changes=only_changes,
        json=True,
        stdio="pipe",
    )

    async def run_watch():
        watch = await client.start_index_watch(options)
        console.print(f"[bold green]Index watch started (pid {watch.pid})[/bold green]")
        console.print("[dim]Press Ctrl+C to stop[/dim]")
        async with watch:
            async for result in watch.results():
                _print_sync(result)
            code = await watch.wait()
        if code != 0:
            err_console.print(f"[red]Index watch exited with code {code}[/red]")
            raise typer.Exit(code=1)

    try:
        _run(run_watch())
    except KeyboardInterrupt:
        console.print("\n[yellow]Index watch stopped.[/yellow]")


@index_app.command("get")
def index_get(ctx: typer.Context, collection: str, doc_id: str):
    """Read a document from the local index instead of the ledger."""
    client = _state(ctx).client()
    try:
        with client.open_index() as index:
            doc = index.get(collection, doc_id)
    except LedgerError as e:
        err_console.print(f"[red]{escape(str(e))}[/red]")
        raise typer.Exit(code=1)
    console.print_json(json.dumps(doc.model_dump()))


# =============================================================================
# Repository
# =============================================================================

@app.command()
def push(ctx: typer.Context):
    """Push local commits to origin."""
    output = _run(_state(ctx).client().push())
    if output.strip():
        console.print(output.rstrip())
    console.print("[green]Push completed[/green]")


@app.command()
def status(ctx: typer.Context):
    """Show repository status."""
    result = _run(_state(ctx).client().status())
    table = Table(title="Repository Status")
    table.add_column("Property", style="cyan")
    table.add_column("Value", style="magenta")
    table.add_row("Path", result.path)
    table.add_row("Bare", str(result.bare))
    table.add_row("Head", result.head or "-")
    if result.manifest:
        table.add_row("Name", result.manifest.name)
        table.add_row("Stream Layout", result.manifest.stream_layout or "-")
        table.add_row("History Mode", result.manifest.history_mode or "-")
    console.print(table)


@app.command()
def verify(
    ctx: typer.Context,
    deep: bool = typer.Option(False, "--deep", help="Rebuild documents by applying patches"),
):
    """Verify the hash chains of every document stream."""
    result = _run(_state(ctx).client().verify(deep=deep))
    console.print(f"Streams: {result.streams}, valid: {result.valid}")
    if result.issues:
        table = Table(title="Integrity Issues")
        table.add_column("Stream", style="cyan")
        table.add_column("Code", style="yellow")
        table.add_column("Message")
        for issue in result.issues:
            table.add_row(escape(issue.stream_path), issue.code, escape(issue.message))
        console.print(table)
        raise typer.Exit(code=1)
    console.print("[green]Integrity OK[/green]")


@app.command(
    "exec",
    context_settings={"allow_extra_args": True, "ignore_unknown_options": True},
)
def exec_engine(ctx: typer.Context):
    """Run the engine with raw arguments and forward its exit code."""
    state = _state(ctx)
    transport = SubprocessTransport(state.binary or resolve_binary_path())

    async def passthrough() -> int:
        process = await transport.spawn(list(ctx.args))
        return await process.wait()

    try:
        code = asyncio.run(passthrough())
    except SpawnError as e:
        err_console.print(escape(e.message))
        raise typer.Exit(code=1)
    raise typer.Exit(code=code if code >= 0 else 1)


def main():
    app()


if __name__ == "__main__":
    main()
