#!/usr/bin/env python3
"""
TSN SDK Demo - Shows primitive and composed streams end to end.

The demo runs against the in-memory ledger, so no node is needed.
"""

import asyncio
from datetime import date

from tsn_sdk import (
    ClientSettings,
    EthereumAddress,
    GetIndexInput,
    InMemoryLedger,
    InMemoryTransport,
    InsertRecordInput,
    StreamType,
    Taxonomy,
    TaxonomyItem,
    TsnClient,
    Visibility,
    generate_stream_id,
)

OWNER = EthereumAddress("0x" + "a1" * 20)
READER = EthereumAddress("0x" + "b2" * 20)

PRICES = {
    "eggs": [(date(2024, 1, 1), 3), (date(2024, 2, 1), 4), (date(2024, 3, 1), "4.5")],
    "milk": [(date(2024, 1, 1), 1), (date(2024, 2, 1), "1.1"), (date(2024, 3, 1), "1.2")],
}
WEIGHTS = {"eggs": 1, "milk": 3}


async def main(settings=None):
    print("=" * 60)
    print("TSN SDK Demo - Primitive and Composed Streams")
    print("=" * 60)

    settings = settings or ClientSettings(tx_poll_interval=0.01)
    ledger = InMemoryLedger(settings)
    client = TsnClient(InMemoryTransport(ledger, OWNER), settings=settings)

    # 1. Primitive streams
    print("\n[Step 1] Deploying primitive streams...")

    children = {}
    for name, records in PRICES.items():
        stream_id = generate_stream_id(name)
        await client.wait_for_tx(await client.deploy_stream(stream_id, StreamType.PRIMITIVE))
        stream = await client.load_stream(client.own_stream_locator(stream_id))
        await client.wait_for_tx(await stream.initialize())

        primitive = await stream.as_primitive()
        inputs = [InsertRecordInput(date=day, value=value) for day, value in records]
        await client.wait_for_tx(await primitive.insert_records(inputs))
        children[name] = primitive
        print(f"  - {name}: {stream_id} ({len(records)} records)")

    # 2. Composed stream
    print("\n[Step 2] Deploying composed stream...")

    taxonomy = Taxonomy(
        items=tuple(
            TaxonomyItem(child_stream=children[name].locator, weight=weight)
            for name, weight in WEIGHTS.items()
        )
    )
    basket = await client.deploy_composed_stream_with_taxonomy(
        generate_stream_id("basket"), taxonomy
    )
    print(f"  - basket: {basket.stream_id} over {', '.join(WEIGHTS)}")

    # 3. Values and index
    print("\n[Step 3] Reading the basket...")

    records = await basket.get_record()
    for record in records:
        print(f"  - {record.date}: {record.value:.4f}")

    index = await basket.get_index(GetIndexInput(base_date=date(2024, 1, 1)))
    for point in index:
        print(f"  - index {point.date}: {point.value:.2f}")

    # 4. Access control
    print("\n[Step 4] Making eggs private...")

    eggs = children["eggs"]
    await client.wait_for_tx(await eggs.set_read_visibility(Visibility.PRIVATE))
    await client.wait_for_tx(await eggs.allow_read_wallet(READER))
    allowed = await eggs.get_allowed_read_wallets()
    print(f"  - read visibility: {(await eggs.get_read_visibility()).name}")
    print(f"  - allowed wallets: {', '.join(str(wallet) for wallet in allowed)}")

    # 5. Listing
    print("\n[Step 5] Listing streams...")

    streams = await client.get_all_streams()
    print(f"  - {len(streams)} streams owned by {client.address}")

    print("\nDone.")
    return records, index


if __name__ == "__main__":
    asyncio.run(main())
