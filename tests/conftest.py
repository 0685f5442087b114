"""
Shared fixtures for the TSN SDK tests.

Every fixture builds on one InMemoryLedger per test, with clients bound to
three wallets: the owner, a reader and an unrelated provider.
"""

import pytest

from tsn_sdk import (
    ClientSettings,
    InMemoryLedger,
    InMemoryTransport,
    InsertRecordInput,
    StreamType,
    Taxonomy,
    TaxonomyItem,
    TsnClient,
    generate_stream_id,
)

from tests.helpers import OWNER, PROVIDER, READER, FakeClock


@pytest.fixture
def settings():
    """Settings with a fast poll interval."""
    return ClientSettings(tx_poll_interval=0.001)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def ledger(settings, clock):
    """Fresh in-memory ledger."""
    return InMemoryLedger(settings, clock=clock)


@pytest.fixture
def client(ledger, settings):
    """Client signing as OWNER."""
    return TsnClient(InMemoryTransport(ledger, OWNER), settings=settings)


@pytest.fixture
def reader_client(ledger, settings):
    """Client signing as READER."""
    return TsnClient(InMemoryTransport(ledger, READER), settings=settings)


@pytest.fixture
def provider_client(ledger, settings):
    """Client signing as PROVIDER."""
    return TsnClient(InMemoryTransport(ledger, PROVIDER), settings=settings)


@pytest.fixture
def deploy_primitive():
    """Deploy, initialize and fill a primitive stream.

    Usage: ``await deploy_primitive(client, "name", [(date, value), ...])``
    """

    async def _deploy(client, name, records=()):
        stream_id = generate_stream_id(name)
        await client.wait_for_tx(await client.deploy_stream(stream_id, StreamType.PRIMITIVE))
        stream = await client.load_stream(client.own_stream_locator(stream_id))
        await client.wait_for_tx(await stream.initialize())
        primitive = await stream.as_primitive()
        if records:
            inputs = [InsertRecordInput(date=day, value=value) for day, value in records]
            await client.wait_for_tx(await primitive.insert_records(inputs))
        return primitive

    return _deploy


@pytest.fixture
def deploy_composed():
    """Deploy a composed stream over ``(child_stream, weight)`` pairs."""

    async def _deploy(client, name, children, start_date=None):
        taxonomy = Taxonomy(
            items=tuple(
                TaxonomyItem(child_stream=child.locator, weight=weight) for child, weight in children
            ),
            start_date=start_date,
        )
        return await client.deploy_composed_stream_with_taxonomy(generate_stream_id(name), taxonomy)

    return _deploy
