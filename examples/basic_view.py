"""Basic address view example.

This script demonstrates how to drive addrview from Python: activate an
address page, wait for every query to land, then page through the table.
"""

import asyncio

from addrview.config import load_config
from addrview.fetchers import get_backend
from addrview.lifecycle import ViewLifecycle

ADDRESS = "0xd8da6bf26964af9d7eed9e03e53415d37aa96045"


async def main():
    """Show the summary and the first two transaction pages of one address."""
    config = load_config()
    backend = get_backend(config)

    try:
        async with ViewLifecycle(backend, table=config.table) as lifecycle:
            state = await lifecycle.activate(ADDRESS, f"/addr/{ADDRESS}")
            state = await lifecycle.settle()

            print(f"{state.title}: {state.subtitle}")
            print(f"Balance: {state.summary.balance}")
            print(f"Transactions: {state.summary.transaction_count}")
            print(f"Signed blocks: {state.summary.signed_block_count}")
            if state.degraded:
                print("Some details could not be loaded.")

            print(f"\n{state.table.info}")
            for row in state.table.rows:
                print("  " + "  ".join(cell.text for cell in row))

            await lifecycle.view.table.goto_page(1)
            print(f"\n{state.table.info}")
    finally:
        await backend.close()


if __name__ == "__main__":
    asyncio.run(main())
