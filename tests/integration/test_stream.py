"""
Integration tests for stream metadata and access control on the in-memory ledger.

Tests cover:
- Lifecycle: deployed, initialized, typed
- Metadata history and soft disable
- Visibility latest-wins
- Allow-list idempotence
- Ledger-side rule enforcement
"""

from datetime import date, timedelta
from decimal import Decimal

import pytest

from tsn_sdk import (
    GetFirstRecordInput,
    GetIndexInput,
    GetRecordInput,
    InsertRecordInput,
    MetadataKey,
    MetadataValue,
    MetadataValueNotFoundError,
    RecordNotFoundError,
    RemoteError,
    StreamNotFoundError,
    StreamNotInitializedError,
    StreamType,
    StreamTypeError,
    TransactionFailedError,
    Visibility,
    generate_stream_id,
)

from tests.helpers import OWNER, READER, d


class TestLifecycle:
    """Tests for deploy/initialize state transitions."""

    @pytest.mark.asyncio
    async def test_load_missing_stream(self, client):
        """Loading an undeployed stream fails."""
        with pytest.raises(StreamNotFoundError):
            await client.load_stream(client.own_stream_locator(generate_stream_id("nothing")))

    @pytest.mark.asyncio
    async def test_not_initialized(self, client):
        """A deployed stream without init has no type and refuses writes."""
        stream_id = generate_stream_id("fresh")
        await client.wait_for_tx(await client.deploy_stream(stream_id, StreamType.PRIMITIVE))
        stream = await client.load_stream(client.own_stream_locator(stream_id))

        assert not await stream.is_initialized()
        with pytest.raises(StreamNotInitializedError):
            await stream.get_type()
        with pytest.raises(StreamNotInitializedError):
            await stream.set_read_visibility(Visibility.PRIVATE)
        with pytest.raises(StreamNotInitializedError):
            await stream.get_record()

    @pytest.mark.asyncio
    async def test_initialize(self, client):
        """Init writes the type and owner rows."""
        stream_id = generate_stream_id("fresh")
        await client.wait_for_tx(await client.deploy_stream(stream_id, StreamType.COMPOSED))
        stream = await client.load_stream(client.own_stream_locator(stream_id))
        await client.wait_for_tx(await stream.initialize())

        assert await stream.get_type() == StreamType.COMPOSED
        assert await stream.get_stream_owner() == OWNER
        readonly = await stream.get_metadata(MetadataKey.READONLY_KEY)
        assert len(readonly) == 3

    @pytest.mark.asyncio
    async def test_initialize_twice_fails(self, client, deploy_primitive):
        """init runs once."""
        stream = await deploy_primitive(client, "once")
        with pytest.raises(TransactionFailedError) as exc_info:
            await client.wait_for_tx(await stream.initialize())
        assert "already initialized" in exc_info.value.log

    @pytest.mark.asyncio
    async def test_wrong_view(self, client, deploy_primitive):
        """A primitive stream cannot be used as composed."""
        stream = await deploy_primitive(client, "prim")
        with pytest.raises(StreamTypeError):
            await client.load_composed_stream(stream.locator)


class TestMetadata:
    """Tests for the append-only metadata store."""

    @pytest.mark.asyncio
    async def test_history_newest_first(self, client, deploy_primitive):
        """All enabled rows come back newest first; only_latest keeps one."""
        stream = await deploy_primitive(client, "meta")
        await client.wait_for_tx(await stream.set_read_visibility(Visibility.PRIVATE))
        await client.wait_for_tx(await stream.set_read_visibility(Visibility.PUBLIC))

        rows = await stream.get_metadata(MetadataKey.READ_VISIBILITY)
        assert [row.value_i for row in rows] == [0, 1]
        assert rows[0].created_at > rows[1].created_at

        latest = await stream.get_metadata(MetadataKey.READ_VISIBILITY, only_latest=True)
        assert len(latest) == 1
        assert latest[0].value_i == 0

    @pytest.mark.asyncio
    async def test_batch_insert_one_transaction(self, client, deploy_primitive, ledger):
        """A batch is one transaction."""
        stream = await deploy_primitive(client, "batch")
        height = ledger.height
        await client.wait_for_tx(
            await stream.batch_insert_metadata(
                [
                    (MetadataKey.READ_VISIBILITY, MetadataValue.int_(1)),
                    (MetadataKey.COMPOSE_VISIBILITY, MetadataValue.int_(1)),
                ]
            )
        )
        assert ledger.height == height + 1
        assert await stream.get_read_visibility() == Visibility.PRIVATE
        assert await stream.get_compose_visibility() == Visibility.PRIVATE

    @pytest.mark.asyncio
    async def test_batch_is_atomic(self, client, deploy_primitive):
        """A rejected row leaves the other rows unapplied."""
        stream = await deploy_primitive(client, "atomic")
        tx_hash = await stream.batch_insert_metadata(
            [
                (MetadataKey.READ_VISIBILITY, MetadataValue.int_(1)),
                (MetadataKey.READONLY_KEY, MetadataValue.string("read_visibility")),
            ]
        )
        with pytest.raises(TransactionFailedError):
            await client.wait_for_tx(tx_hash)
        assert await stream.get_read_visibility() is None

    @pytest.mark.asyncio
    async def test_disable_row(self, client, deploy_primitive):
        """Disabled rows disappear from queries; older rows resurface."""
        stream = await deploy_primitive(client, "disable")
        await client.wait_for_tx(await stream.set_read_visibility(Visibility.PUBLIC))
        await client.wait_for_tx(await stream.set_read_visibility(Visibility.PRIVATE))

        latest = (await stream.get_metadata(MetadataKey.READ_VISIBILITY, only_latest=True))[0]
        await client.wait_for_tx(await stream.disable_metadata(latest.row_id))

        assert await stream.get_read_visibility() == Visibility.PUBLIC

    @pytest.mark.asyncio
    async def test_disable_twice_fails(self, client, deploy_primitive):
        """A disabled row cannot be disabled again."""
        stream = await deploy_primitive(client, "disable2")
        await client.wait_for_tx(await stream.set_read_visibility(Visibility.PUBLIC))
        row = (await stream.get_metadata(MetadataKey.READ_VISIBILITY))[0]
        await client.wait_for_tx(await stream.disable_metadata(row.row_id))
        with pytest.raises(TransactionFailedError):
            await client.wait_for_tx(await stream.disable_metadata(row.row_id))

    @pytest.mark.asyncio
    async def test_readonly_keys_are_immutable(self, client, deploy_primitive):
        """type rows can neither be inserted nor disabled."""
        stream = await deploy_primitive(client, "ro")
        with pytest.raises(TransactionFailedError):
            await client.wait_for_tx(
                await stream.insert_metadata(MetadataKey.TYPE, MetadataValue.string("composed"))
            )

        type_row = (await stream.get_metadata(MetadataKey.TYPE))[0]
        with pytest.raises(TransactionFailedError):
            await client.wait_for_tx(await stream.disable_metadata(type_row.row_id))
        assert await stream.get_type() == StreamType.PRIMITIVE

    @pytest.mark.asyncio
    async def test_only_owner_writes(self, client, reader_client, deploy_primitive):
        """Other wallets cannot write metadata."""
        stream = await deploy_primitive(client, "owned")
        foreign = await reader_client.load_stream(stream.locator)
        with pytest.raises(TransactionFailedError) as exc_info:
            await reader_client.wait_for_tx(await foreign.set_read_visibility(Visibility.PRIVATE))
        assert "not the stream owner" in exc_info.value.log

    @pytest.mark.asyncio
    async def test_default_base_date(self, client, deploy_primitive):
        """The default base date is stored as an ISO string."""
        stream = await deploy_primitive(client, "base")
        await client.wait_for_tx(await stream.set_default_base_date(date(2020, 1, 2)))
        rows = await stream.get_metadata(MetadataKey.DEFAULT_BASE_DATE)
        assert rows[0].value_s == "2020-01-02"


class TestVisibility:
    """Tests for visibility resolution."""

    @pytest.mark.asyncio
    async def test_latest_wins(self, client, deploy_primitive):
        """Unset, then private, then public."""
        stream = await deploy_primitive(client, "vis")
        assert await stream.get_read_visibility() is None

        await client.wait_for_tx(await stream.set_read_visibility(Visibility.PRIVATE))
        assert await stream.get_read_visibility() == Visibility.PRIVATE

        await client.wait_for_tx(await stream.set_read_visibility(Visibility.PUBLIC))
        assert await stream.get_read_visibility() == Visibility.PUBLIC

    @pytest.mark.asyncio
    async def test_axes_are_independent(self, client, deploy_primitive):
        """Setting read visibility leaves compose visibility unset."""
        stream = await deploy_primitive(client, "axes")
        await client.wait_for_tx(await stream.set_read_visibility(Visibility.PRIVATE))
        assert await stream.get_compose_visibility() is None


class TestAllowLists:
    """Tests for read and compose allow-lists."""

    @pytest.mark.asyncio
    async def test_disable_never_allowed_wallet(self, client, deploy_primitive):
        """Disabling an absent wallet fails without a transaction."""
        stream = await deploy_primitive(client, "wallets")
        with pytest.raises(MetadataValueNotFoundError):
            await stream.disable_read_wallet(READER)

    @pytest.mark.asyncio
    async def test_allow_then_disable(self, client, deploy_primitive):
        """A disabled wallet is no longer listed."""
        stream = await deploy_primitive(client, "wallets")
        await client.wait_for_tx(await stream.allow_read_wallet(READER))
        assert await stream.get_allowed_read_wallets() == [READER]

        await client.wait_for_tx(await stream.disable_read_wallet(READER))
        assert await stream.get_allowed_read_wallets() == []

        with pytest.raises(MetadataValueNotFoundError):
            await stream.disable_read_wallet(READER)

    @pytest.mark.asyncio
    async def test_allowed_twice_disabled_once(self, client, deploy_primitive):
        """Each allow row is disabled separately."""
        stream = await deploy_primitive(client, "wallets")
        await client.wait_for_tx(await stream.allow_read_wallet(READER))
        await client.wait_for_tx(await stream.allow_read_wallet(READER))
        await client.wait_for_tx(await stream.disable_read_wallet(READER))
        assert await stream.get_allowed_read_wallets() == [READER]

    @pytest.mark.asyncio
    async def test_compose_allow_list(self, client, deploy_primitive, deploy_composed):
        """Allowed composers resolve back to their locators."""
        child = await deploy_primitive(client, "child")
        parent = await deploy_composed(client, "parent", [(child, 1)])

        await client.wait_for_tx(await child.allow_compose_stream(parent.locator))
        assert await child.get_allowed_compose_streams() == [parent.locator]

        await client.wait_for_tx(await child.disable_compose_stream(parent.locator))
        assert await child.get_allowed_compose_streams() == []


class TestRecords:
    """Tests for record reads on primitive streams."""

    @pytest.mark.asyncio
    async def test_range_inclusive(self, client, deploy_primitive):
        """Both range ends are inclusive."""
        stream = await deploy_primitive(
            client, "range", [(d("2020-01-01"), 1), (d("2020-01-02"), 2), (d("2020-01-03"), 3)]
        )
        records = await stream.get_record(
            GetRecordInput(date_from=d("2020-01-02"), date_to=d("2020-01-03"))
        )
        assert [(r.date, r.value) for r in records] == [
            (d("2020-01-02"), Decimal(2)),
            (d("2020-01-03"), Decimal(3)),
        ]

    @pytest.mark.asyncio
    async def test_latest_insert_wins(self, client, deploy_primitive):
        """Re-inserting a date replaces its value."""
        stream = await deploy_primitive(client, "rewrite", [(d("2020-01-01"), 1)])
        await client.wait_for_tx(
            await stream.insert_records([InsertRecordInput(d("2020-01-01"), "1.5")])
        )
        records = await stream.get_record()
        assert [r.value for r in records] == [Decimal("1.5")]

    @pytest.mark.asyncio
    async def test_frozen_at(self, client, deploy_primitive, clock):
        """frozen_at hides later insertions."""
        stream = await deploy_primitive(client, "frozen", [(d("2020-01-01"), 1)])
        frozen = clock.now
        clock.now = frozen.replace(year=2025)
        await client.wait_for_tx(
            await stream.insert_records([InsertRecordInput(d("2020-01-01"), 9)])
        )

        assert (await stream.get_record())[0].value == Decimal(9)
        old = await stream.get_record(GetRecordInput(frozen_at=frozen))
        assert old[0].value == Decimal(1)

    @pytest.mark.asyncio
    async def test_frozen_at_sub_second(self, client, deploy_primitive, clock):
        """An insertion half a second in is visible when frozen later in that second."""
        stream = await deploy_primitive(client, "subsecond")
        start = clock.now
        clock.now = start + timedelta(microseconds=500000)
        await client.wait_for_tx(
            await stream.insert_records([InsertRecordInput(d("2020-01-01"), 1)])
        )

        later = await stream.get_record(
            GetRecordInput(frozen_at=start + timedelta(microseconds=900000))
        )
        earlier = await stream.get_record(
            GetRecordInput(frozen_at=start + timedelta(microseconds=100000))
        )

        assert len(later) == 1
        assert earlier == []

    @pytest.mark.asyncio
    async def test_first_record(self, client, deploy_primitive):
        """First record overall and on or after a date."""
        stream = await deploy_primitive(
            client, "first", [(d("2020-01-05"), 5), (d("2020-01-01"), 1)]
        )
        assert (await stream.get_first_record()).date == d("2020-01-01")
        after = await stream.get_first_record(GetFirstRecordInput(after_date=d("2020-01-02")))
        assert after.value == Decimal(5)

        with pytest.raises(RecordNotFoundError):
            await stream.get_first_record(GetFirstRecordInput(after_date=d("2021-01-01")))

    @pytest.mark.asyncio
    async def test_index(self, client, deploy_primitive):
        """Index is 100 at the base date."""
        stream = await deploy_primitive(
            client, "index", [(d("2020-01-01"), 2), (d("2020-01-02"), 3)]
        )
        index = await stream.get_index()
        assert [i.value for i in index] == [Decimal(100), Decimal(150)]

        rebased = await stream.get_index(GetIndexInput(base_date=d("2020-01-02")))
        assert rebased[1].value == Decimal(100)

    @pytest.mark.asyncio
    async def test_index_default_base_date(self, client, deploy_primitive):
        """Without a base date argument the stream default applies."""
        stream = await deploy_primitive(
            client, "index", [(d("2020-01-01"), 2), (d("2020-01-02"), 4)]
        )
        await client.wait_for_tx(await stream.set_default_base_date(d("2020-01-02")))
        index = await stream.get_index()
        assert [i.value for i in index] == [Decimal(50), Decimal(100)]

    @pytest.mark.asyncio
    async def test_private_read(self, client, reader_client, deploy_primitive):
        """Private streams are readable only by owner and allowed wallets."""
        stream = await deploy_primitive(client, "private", [(d("2020-01-01"), 1)])
        await client.wait_for_tx(await stream.set_read_visibility(Visibility.PRIVATE))

        as_reader = await reader_client.load_stream(stream.locator)
        with pytest.raises(RemoteError) as exc_info:
            await as_reader.get_record()
        assert "Access denied" in str(exc_info.value)

        await client.wait_for_tx(await stream.allow_read_wallet(READER))
        assert len(await as_reader.get_record()) == 1
        assert len(await stream.get_record()) == 1
