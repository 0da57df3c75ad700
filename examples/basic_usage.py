import asyncio
import sys

from ledgerdb import LedgerClient, WatchOptions


async def run_example(repo_path):
    print("--- LedgerDB: Basic Example ---")

    # 1. Open the repository (engine from LEDGERDB_BIN or the bundled binary)
    client = LedgerClient(repo_path, auto_sync=False, index={"mode": "state", "batch_commits": 50})
    print(f"Engine: {client.binary_path}")

    # 2. Write and amend a document
    put = await client.put("users", "u1", {"name": "Ann"})
    print(f"Put committed {put.commit} (tx {put.tx_id})")
    await client.patch("users", "u1", [{"op": "replace", "path": "/name", "value": "Ann Lee"}])

    # 3. Read it back with its history
    current = await client.get("users", "u1")
    print(f"Current value: {current.doc}")
    for entry in await client.log("users", "u1"):
        print(f"  {entry.tx_id} {entry.op} parent={entry.parent_hash}")

    # 4. Bring the local SQLite index up to date and query it
    result = await client.index_sync()
    print(f"Index sync applied {result.txs_applied} transactions")
    with client.open_index() as index:
        print(f"Indexed: {index.get('users', 'u1').payload}")

    # 5. Follow changes for a few seconds
    async with await client.start_index_watch(WatchOptions(interval_ms=500, json=True, stdio="pipe")) as watch:
        async def follow():
            async for report in watch.results():
                print(f"Watch pass: {report.txs_applied} transactions")

        try:
            await asyncio.wait_for(follow(), 3)
        except asyncio.TimeoutError:
            pass

    print("\nExample finished.")


if __name__ == "__main__":
    asyncio.run(run_example(sys.argv[1] if len(sys.argv) > 1 else "."))
