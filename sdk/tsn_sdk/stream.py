"""
Stream handle for the TSN SDK.

A Stream addresses one deployed dataset and exposes:
- Lifecycle: initialize, get_type, get_stream_owner, typed views
- Metadata store: get/insert/batch insert/disable/disable by ref
- Access control: visibilities and read/compose allow-lists
- Reads: get_record, get_index, get_first_record

Example:
    >>> stream = await Stream.load(transport, locator)
    >>> tx_hash = await stream.set_read_visibility(Visibility.PRIVATE)
    >>> await client.wait_for_tx(tx_hash)

Invariants:
    - Every write except initialize() requires an initialized stream
    - Metadata is append-only; revocation is a soft disable
    - Cached type/owner/initialized/deployed values are set at most once
    - Transport failures are re-raised with operation and stream context
"""

from __future__ import annotations

import logging
from datetime import date
from typing import TYPE_CHECKING, Any, Iterable, Sequence, TypeVar

from .codec import (
    MetadataRow,
    RecordRow,
    date_arg,
    datetime_arg,
    decode_rows,
    string_from_value,
    value_from_row,
)
from .errors import (
    DecodeError,
    MetadataValueNotFoundError,
    RecordNotFoundError,
    RemoteError,
    StreamNotFoundError,
    StreamNotInitializedError,
    StreamTypeError,
    ValidationError,
)
from .identifiers import EthereumAddress, StreamId, generate_dbid
from .transport import DatasetNotFoundError, DatasetSchema, Row, Transport, TransportError
from .types import (
    GetFirstRecordInput,
    GetIndexInput,
    GetRecordInput,
    MetadataKey,
    MetadataValue,
    StreamIndex,
    StreamLocator,
    StreamRecord,
    StreamType,
    Visibility,
)

if TYPE_CHECKING:
    from .composed import ComposedStream
    from .primitive import PrimitiveStream

StreamT = TypeVar("StreamT", bound="Stream")


class Stream:
    """Handle on one deployed stream.

    Obtain instances through ``Stream.load`` or ``TsnClient.load_stream``.
    Handles are cheap; the cached lookups are per instance.
    """

    def __init__(
        self,
        transport: Transport,
        locator: StreamLocator,
        *,
        logger: logging.Logger | None = None,
    ) -> None:
        """Initialize a handle without contacting the transport.

        Args:
            transport: Ledger transport
            locator: Stream id and owner
            logger: Logger for this handle (defaults to the module logger)
        """
        self._transport = transport
        self.locator = locator
        self.dbid = generate_dbid(locator.stream_id, locator.data_provider.bytes)
        self._logger = logger or logging.getLogger(__name__)

        self._type: StreamType | None = None
        self._owner: EthereumAddress | None = None
        self._initialized = False
        self._deployed = False

    @classmethod
    async def load(
        cls: type[StreamT],
        transport: Transport,
        locator: StreamLocator,
        *,
        logger: logging.Logger | None = None,
    ) -> StreamT:
        """Load a deployed stream.

        Raises:
            StreamNotFoundError: If the dataset is not deployed or is not a stream
        """
        stream = cls(transport, locator, logger=logger)
        await stream._check_deployed()
        return stream

    @classmethod
    def _from_stream(cls: type[StreamT], stream: Stream) -> StreamT:
        view = cls(stream._transport, stream.locator, logger=stream._logger)
        view._type = stream._type
        view._owner = stream._owner
        view._initialized = stream._initialized
        view._deployed = stream._deployed
        return view

    @property
    def stream_id(self) -> StreamId:
        return self.locator.stream_id

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.locator}, dbid={self.dbid})"

    # ------------------------------------------------------------------
    # Transport plumbing
    # ------------------------------------------------------------------

    async def _call(self, procedure: str, args: Sequence[Any]) -> list[Row]:
        self._logger.debug(f"call {procedure} on {self.stream_id} args={list(args)}")
        try:
            return await self._transport.call(self.dbid, procedure, args)
        except DatasetNotFoundError as e:
            raise StreamNotFoundError(str(self.stream_id), self.dbid) from e
        except TransportError as e:
            raise RemoteError(str(e), operation=procedure, stream_id=str(self.stream_id)) from e

    async def _execute(self, procedure: str, rows: Sequence[Sequence[Any]]) -> str:
        self._logger.debug(f"execute {procedure} on {self.stream_id} ({len(rows)} rows)")
        try:
            return await self._transport.execute(self.dbid, procedure, rows)
        except DatasetNotFoundError as e:
            raise StreamNotFoundError(str(self.stream_id), self.dbid) from e
        except TransportError as e:
            raise RemoteError(str(e), operation=procedure, stream_id=str(self.stream_id)) from e

    async def _checked_execute(self, procedure: str, rows: Sequence[Sequence[Any]]) -> str:
        # init is the only write allowed before the stream is initialized
        await self._check_initialized()
        return await self._execute(procedure, rows)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def get_schema(self) -> DatasetSchema:
        """Fetch the dataset schema.

        Raises:
            StreamNotFoundError: If the dataset is not deployed
        """
        try:
            return await self._transport.get_schema(self.dbid)
        except DatasetNotFoundError as e:
            raise StreamNotFoundError(str(self.stream_id), self.dbid) from e
        except TransportError as e:
            raise RemoteError(str(e), operation="get_schema", stream_id=str(self.stream_id)) from e

    async def _check_deployed(self) -> None:
        if self._deployed:
            return
        schema = await self.get_schema()
        if not schema.is_stream():
            self._logger.debug(f"Dataset {self.dbid} lacks the stream procedures")
            raise StreamNotFoundError(str(self.stream_id), self.dbid)
        self._deployed = True

    async def _check_initialized(self) -> None:
        if self._initialized:
            return
        await self._check_deployed()
        await self.get_type()
        self._initialized = True

    async def initialize(self) -> str:
        """Initialize the stream (writes its type and owner rows).

        Returns:
            Transaction hash
        """
        await self._check_deployed()
        return await self._execute("init", [[]])

    async def get_type(self) -> StreamType:
        """Stream type from its permanent ``type`` row.

        Raises:
            StreamNotInitializedError: If no type row exists
        """
        if self._type is not None:
            return self._type

        rows = await self.get_metadata(MetadataKey.TYPE, only_latest=True)
        if not rows:
            # type can never be disabled, so no row means no init
            raise StreamNotInitializedError(str(self.stream_id))

        raw = value_from_row(MetadataKey.TYPE.metadata_type, rows[0])
        try:
            self._type = StreamType.from_str(str(raw))
        except ValidationError as e:
            raise DecodeError(f"Unknown stream type: {raw}", procedure="get_metadata") from e
        return self._type

    async def get_stream_owner(self) -> EthereumAddress:
        """Owner address from the permanent ``stream_owner`` row."""
        if self._owner is not None:
            return self._owner

        rows = await self.get_metadata(MetadataKey.STREAM_OWNER, only_latest=True)
        if not rows:
            raise StreamNotInitializedError(str(self.stream_id))

        raw = value_from_row(MetadataKey.STREAM_OWNER.metadata_type, rows[0])
        self._owner = _address_from_row(str(raw))
        return self._owner

    async def is_initialized(self) -> bool:
        """Whether the stream's type row exists."""
        try:
            await self._check_initialized()
        except StreamNotInitializedError:
            return False
        return True

    async def _require_type(self, expected: StreamType) -> None:
        await self._check_initialized()
        actual = await self.get_type()
        if actual != expected:
            raise StreamTypeError(str(self.stream_id), expected.value, actual.value)

    async def as_primitive(self) -> PrimitiveStream:
        """Primitive view of this stream.

        Raises:
            StreamTypeError: If the stream is composed
        """
        from .primitive import PrimitiveStream

        await self._require_type(StreamType.PRIMITIVE)
        return PrimitiveStream._from_stream(self)

    async def as_composed(self) -> ComposedStream:
        """Composed view of this stream.

        Raises:
            StreamTypeError: If the stream is primitive
        """
        from .composed import ComposedStream

        await self._require_type(StreamType.COMPOSED)
        return ComposedStream._from_stream(self)

    # ------------------------------------------------------------------
    # Metadata store
    # ------------------------------------------------------------------

    async def get_metadata(
        self,
        key: MetadataKey,
        only_latest: bool = False,
        ref: str | None = None,
    ) -> list[MetadataRow]:
        """Query enabled metadata rows for ``key``, newest first.

        Args:
            key: Metadata key
            only_latest: Return at most the most recent row
            ref: Only rows whose ref value equals this (sent as null if None)

        Returns:
            Decoded metadata rows
        """
        rows = await self._call("get_metadata", [key.value, only_latest, ref])
        return decode_rows(MetadataRow, rows, procedure="get_metadata")

    async def insert_metadata(self, key: MetadataKey, value: MetadataValue) -> str:
        """Append one metadata row.

        Raises:
            MetadataTypeError: If ``value`` does not match the key's type
        """
        return await self.batch_insert_metadata([(key, value)])

    async def batch_insert_metadata(
        self, items: Iterable[tuple[MetadataKey, MetadataValue]]
    ) -> str:
        """Append several metadata rows in one transaction."""
        rows: list[list[Any]] = []
        for key, value in items:
            kind = key.metadata_type
            rows.append([key.value, string_from_value(kind, value), kind.value])
        return await self._checked_execute("insert_metadata", rows)

    async def disable_metadata(self, row_id: str) -> str:
        """Soft-disable one metadata row."""
        return await self._checked_execute("disable_metadata", [[row_id]])

    async def disable_metadata_by_ref(self, key: MetadataKey, ref: str) -> str:
        """Disable the latest enabled row of ``key`` whose ref is ``ref``.

        Raises:
            MetadataValueNotFoundError: If no such row exists
        """
        rows = await self.get_metadata(key, only_latest=True, ref=ref)
        if not rows:
            raise MetadataValueNotFoundError(key.value, ref)
        return await self.disable_metadata(rows[0].row_id)

    # ------------------------------------------------------------------
    # Access control
    # ------------------------------------------------------------------

    async def set_read_visibility(self, visibility: Visibility) -> str:
        """Append a read visibility row.

        Raises:
            ValidationError: If ``visibility`` is not 0 or 1
        """
        value = MetadataValue.int_(int(Visibility.from_value(visibility)))
        return await self.insert_metadata(MetadataKey.READ_VISIBILITY, value)

    async def set_compose_visibility(self, visibility: Visibility) -> str:
        """Append a compose visibility row."""
        value = MetadataValue.int_(int(Visibility.from_value(visibility)))
        return await self.insert_metadata(MetadataKey.COMPOSE_VISIBILITY, value)

    async def get_read_visibility(self) -> Visibility | None:
        """Latest read visibility, or None if never set (or all disabled)."""
        return await self._get_visibility(MetadataKey.READ_VISIBILITY)

    async def get_compose_visibility(self) -> Visibility | None:
        """Latest compose visibility, or None if never set (or all disabled)."""
        return await self._get_visibility(MetadataKey.COMPOSE_VISIBILITY)

    async def _get_visibility(self, key: MetadataKey) -> Visibility | None:
        rows = await self.get_metadata(key, only_latest=True)
        if not rows:
            return None
        raw = value_from_row(key.metadata_type, rows[0])
        try:
            return Visibility.from_value(int(raw))
        except ValidationError as e:
            raise DecodeError(f"Invalid stored {key.value}: {raw}", procedure="get_metadata") from e

    async def allow_read_wallet(self, wallet: EthereumAddress) -> str:
        """Allow ``wallet`` to read this stream while it is private."""
        return await self.insert_metadata(
            MetadataKey.ALLOW_READ_WALLET, MetadataValue.ref(wallet.address)
        )

    async def disable_read_wallet(self, wallet: EthereumAddress) -> str:
        """Remove ``wallet`` from the read allow-list.

        Raises:
            MetadataValueNotFoundError: If the wallet is not allowed
        """
        return await self.disable_metadata_by_ref(MetadataKey.ALLOW_READ_WALLET, wallet.address)

    async def allow_compose_stream(self, locator: StreamLocator) -> str:
        """Allow the composed stream at ``locator`` to use this stream as a child."""
        dbid = generate_dbid(locator.stream_id, locator.data_provider.bytes)
        return await self.insert_metadata(MetadataKey.ALLOW_COMPOSE_STREAM, MetadataValue.ref(dbid))

    async def disable_compose_stream(self, locator: StreamLocator) -> str:
        """Remove the composed stream at ``locator`` from the compose allow-list.

        Raises:
            MetadataValueNotFoundError: If the stream is not allowed
        """
        dbid = generate_dbid(locator.stream_id, locator.data_provider.bytes)
        return await self.disable_metadata_by_ref(MetadataKey.ALLOW_COMPOSE_STREAM, dbid)

    async def get_allowed_read_wallets(self) -> list[EthereumAddress]:
        """Wallets currently on the read allow-list."""
        rows = await self.get_metadata(MetadataKey.ALLOW_READ_WALLET)
        kind = MetadataKey.ALLOW_READ_WALLET.metadata_type
        return [_address_from_row(str(value_from_row(kind, row))) for row in rows]

    async def get_allowed_compose_streams(self) -> list[StreamLocator]:
        """Composed streams currently on the compose allow-list.

        Stored values are dataset references; each is resolved through the
        transport to recover its stream id and owner.
        """
        rows = await self.get_metadata(MetadataKey.ALLOW_COMPOSE_STREAM)
        kind = MetadataKey.ALLOW_COMPOSE_STREAM.metadata_type

        locators: list[StreamLocator] = []
        for row in rows:
            dbid = str(value_from_row(kind, row))
            try:
                schema = await self._transport.get_schema(dbid)
            except DatasetNotFoundError as e:
                raise StreamNotFoundError(dbid, dbid) from e
            except TransportError as e:
                raise RemoteError(
                    str(e), operation="get_schema", stream_id=str(self.stream_id)
                ) from e
            try:
                locators.append(
                    StreamLocator(
                        stream_id=StreamId(schema.name),
                        data_provider=EthereumAddress.from_bytes(schema.owner),
                    )
                )
            except ValidationError as e:
                raise DecodeError(
                    f"Allowed compose stream {dbid} is not a valid stream", procedure="get_metadata"
                ) from e
        return locators

    async def set_default_base_date(self, base_date: date) -> str:
        """Set the date whose value index queries rebase to 100 by default."""
        return await self.insert_metadata(
            MetadataKey.DEFAULT_BASE_DATE, MetadataValue.string(base_date.isoformat())
        )

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_record(self, query: GetRecordInput | None = None) -> list[StreamRecord]:
        """Records within a date range (both ends inclusive)."""
        query = query or GetRecordInput()
        await self._check_initialized()
        args = [date_arg(query.date_from), date_arg(query.date_to), datetime_arg(query.frozen_at)]
        rows = await self._call("get_record", args)
        return _to_records(decode_rows(RecordRow, rows, procedure="get_record"))

    async def get_index(self, query: GetIndexInput | None = None) -> list[StreamIndex]:
        """Index values within a date range, rebased to 100 at the base date."""
        query = query or GetIndexInput()
        await self._check_initialized()
        args = [
            date_arg(query.date_from),
            date_arg(query.date_to),
            datetime_arg(query.frozen_at),
            date_arg(query.base_date),
        ]
        rows = await self._call("get_index", args)
        return _to_records(decode_rows(RecordRow, rows, procedure="get_index"))

    async def get_first_record(self, query: GetFirstRecordInput | None = None) -> StreamRecord:
        """First record, optionally on or after a date.

        Raises:
            RecordNotFoundError: If the stream has no matching record
        """
        query = query or GetFirstRecordInput()
        await self._check_initialized()
        args = [date_arg(query.after_date), datetime_arg(query.frozen_at)]
        rows = await self._call("get_first_record", args)
        records = _to_records(decode_rows(RecordRow, rows, procedure="get_first_record"))
        if not records:
            raise RecordNotFoundError(str(self.stream_id))
        return records[0]


def _address_from_row(raw: str) -> EthereumAddress:
    try:
        return EthereumAddress(raw)
    except ValidationError as e:
        raise DecodeError(f"Stored address is invalid: {raw}", procedure="get_metadata") from e


def _to_records(rows: list[RecordRow]) -> list[StreamRecord]:
    return [StreamRecord(date=row.date_value, value=row.value) for row in rows]
