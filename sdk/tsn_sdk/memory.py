"""
In-memory ledger and transport for testing.

This module provides an in-process stand-in for the remote database that
implements the stream procedures, for:
- Unit and integration tests
- Local development without a node

InMemoryLedger holds every dataset, metadata row, record, taxonomy version
and transaction result. InMemoryTransport binds a signer address to a ledger
so several wallets can share one ledger.

Invariants:
    - All data is lost on process exit
    - Executions are atomic: every row applies or none does
    - A failed execution is recorded on its tx result, never raised
    - Only a dataset's owner may execute its procedures
    - Metadata is append-only; disabled rows stay stored
    - Read access is checked on every record read, recursively for children

How to change safely:
    - This is test-only code, changes don't affect the SDK
    - Keep procedure arguments identical to what Stream sends
    - Keep the access rules in tsn_sdk.access, not here
"""

from __future__ import annotations

import asyncio
import bisect
import copy
import hashlib
import logging
import uuid
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, Dict, List, Optional, Sequence

from .access import AccessPolicy
from .codec import column_for, decimal_arg, parse_date_arg, parse_datetime_arg, value_from_string
from .config import ClientSettings
from .contracts import stream_type_of
from .errors import TsnError, ValidationError
from .identifiers import EthereumAddress, StreamId, generate_dbid
from .taxonomy import (
    CompositionGuard,
    TaxonomyVersion,
    WeightedChild,
    active_version,
    rebase_index,
    weighted_average,
)
from .transport import (
    DatasetInfo,
    DatasetNotFoundError,
    DatasetSchema,
    ProcedureError,
    Row,
    TransportError,
    TxResult,
)
from .types import (
    READONLY_KEYS,
    MetadataKey,
    MetadataType,
    MetadataValue,
    StreamLocator,
    StreamType,
    Visibility,
    to_weight,
)

_READONLY_KEY_NAMES = frozenset(key.value for key in READONLY_KEYS)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class _MetadataEntry:
    row_id: str
    key: str
    value: MetadataValue
    created_at: int
    disabled_at: Optional[int] = None


@dataclass
class _RecordEntry:
    date: date
    value: Decimal
    created_at: int
    inserted_at: datetime


@dataclass
class _Dataset:
    dbid: str
    name: str
    owner: bytes
    procedures: tuple[str, ...]
    metadata: List[_MetadataEntry] = field(default_factory=list)
    records: List[_RecordEntry] = field(default_factory=list)
    taxonomies: List[TaxonomyVersion] = field(default_factory=list)
    child_locators: Dict[str, StreamLocator] = field(default_factory=dict)

    def enabled(self, key: str) -> list[_MetadataEntry]:
        """Enabled rows of ``key``, newest first."""
        return [e for e in reversed(self.metadata) if e.key == key and e.disabled_at is None]


@dataclass
class _TxEntry:
    result: TxResult
    pending_polls: int = 0


# A resolved series: ascending dates and their values
_Series = tuple[List[date], List[Decimal]]


class InMemoryLedger:
    """In-memory implementation of the stream procedures.

    Attributes:
        settings: SDK settings (composition depth)
        confirmation_polls: query_tx polls that report a tx as pending

    Thread safety:
        Uses an asyncio lock. Safe to use from multiple coroutines.

    Example:
        >>> ledger = InMemoryLedger()
        >>> transport = InMemoryTransport(ledger, owner_address)
        >>> client = TsnClient(transport)
    """

    def __init__(
        self,
        settings: Optional[ClientSettings] = None,
        *,
        logger: Optional[logging.Logger] = None,
        confirmation_polls: int = 0,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        """Initialize an empty ledger.

        Args:
            settings: SDK settings (defaults loaded from environment)
            logger: Logger (defaults to the module logger)
            confirmation_polls: Number of query_tx polls before a tx is final
            clock: Source of insertion instants used by frozen_at queries
        """
        self.settings = settings or ClientSettings()
        self.confirmation_polls = confirmation_polls
        self._logger = logger or logging.getLogger(__name__)
        self._clock = clock or _utcnow
        self._datasets: Dict[str, _Dataset] = {}
        self._txs: Dict[str, _TxEntry] = {}
        self._height = 0
        self._lock = asyncio.Lock()

        self._writers: Dict[str, Callable[[_Dataset, list[Any]], None]] = {
            "init": self._init,
            "insert_metadata": self._insert_metadata,
            "disable_metadata": self._disable_metadata,
            "insert_record": self._insert_record,
            "set_taxonomy": self._set_taxonomy,
        }
        self._readers: Dict[str, Callable[[_Dataset, list[Any], EthereumAddress], list[Row]]] = {
            "get_metadata": self._get_metadata,
            "get_record": self._get_record,
            "get_index": self._get_index,
            "get_first_record": self._get_first_record,
            "describe_taxonomies": self._describe_taxonomies,
        }

    @property
    def height(self) -> int:
        """Current block height (one block per write)."""
        return self._height

    # ------------------------------------------------------------------
    # Transport-facing API
    # ------------------------------------------------------------------

    async def deploy_dataset(self, signer: bytes, schema: DatasetSchema) -> str:
        """Deploy a dataset owned by ``signer``."""
        if schema.owner != signer:
            raise ProcedureError("deploy", "schema owner must be the signer")

        async with self._lock:
            tx_hash = self._next_tx("deploy", schema.name)
            dbid = generate_dbid(schema.name, schema.owner)
            if dbid in self._datasets:
                self._record_tx(tx_hash, f"dataset already exists: {dbid}")
            else:
                self._datasets[dbid] = _Dataset(
                    dbid=dbid,
                    name=schema.name,
                    owner=schema.owner,
                    procedures=tuple(schema.procedures),
                )
                self._record_tx(tx_hash)
                self._logger.debug(f"Deployed dataset {schema.name} as {dbid}")
        return tx_hash

    async def drop_dataset(self, signer: bytes, name: str) -> str:
        """Drop the signer's dataset called ``name`` with all its data."""
        async with self._lock:
            tx_hash = self._next_tx("drop", name)
            dbid = generate_dbid(name, signer)
            if self._datasets.pop(dbid, None) is None:
                self._record_tx(tx_hash, f"dataset not found: {dbid}")
            else:
                self._record_tx(tx_hash)
                self._logger.debug(f"Dropped dataset {name} ({dbid})")
        return tx_hash

    async def get_schema(self, dbid: str) -> DatasetSchema:
        async with self._lock:
            dataset = self._get(dbid)
            return DatasetSchema(name=dataset.name, owner=dataset.owner, procedures=dataset.procedures)

    async def list_datasets(self, owner: Optional[bytes] = None) -> list[DatasetInfo]:
        async with self._lock:
            return [
                DatasetInfo(dbid=ds.dbid, name=ds.name, owner=ds.owner)
                for ds in self._datasets.values()
                if owner is None or ds.owner == owner
            ]

    async def query_tx(self, tx_hash: str) -> Optional[TxResult]:
        async with self._lock:
            entry = self._txs.get(tx_hash)
            if entry is None:
                raise TransportError(f"unknown transaction: {tx_hash}")
            if entry.pending_polls > 0:
                entry.pending_polls -= 1
                return None
            return entry.result

    async def execute(
        self, signer: bytes, dbid: str, procedure: str, rows: Sequence[Sequence[Any]]
    ) -> str:
        """Apply ``procedure`` once per row, atomically.

        Raises:
            DatasetNotFoundError: If the dataset is not deployed
            ProcedureError: If the dataset has no such write procedure
        """
        async with self._lock:
            dataset = self._get(dbid)
            handler = self._writers.get(procedure)
            if handler is None or procedure not in dataset.procedures:
                raise ProcedureError(procedure, "no such write procedure")

            tx_hash = self._next_tx(procedure, dbid)
            staged = copy.deepcopy(dataset)
            try:
                if signer != dataset.owner:
                    raise ProcedureError(procedure, "caller is not the stream owner")
                for row in rows:
                    handler(staged, list(row))
            except ProcedureError as e:
                self._record_tx(tx_hash, e.reason)
            except TsnError as e:
                self._record_tx(tx_hash, f"{procedure}: {e.message}")
            else:
                self._datasets[dbid] = staged
                self._record_tx(tx_hash)
        return tx_hash

    async def call(
        self, caller: bytes, dbid: str, procedure: str, args: Sequence[Any]
    ) -> list[Row]:
        """Run a read procedure as ``caller``.

        Raises:
            DatasetNotFoundError: If the dataset is not deployed
            ProcedureError: On bad arguments or a failed access check
        """
        async with self._lock:
            dataset = self._get(dbid)
            reader = self._readers.get(procedure)
            if reader is None or procedure not in dataset.procedures:
                raise ProcedureError(procedure, "no such read procedure")
            try:
                return reader(dataset, list(args), EthereumAddress.from_bytes(caller))
            except TsnError as e:
                raise ProcedureError(procedure, e.message) from e

    # Testing helpers

    def record_count(self, dbid: str) -> int:
        """Number of stored record rows of a dataset (0 if not deployed)."""
        dataset = self._datasets.get(dbid)
        return len(dataset.records) if dataset else 0

    def has_dataset(self, dbid: str) -> bool:
        return dbid in self._datasets

    # ------------------------------------------------------------------
    # Bookkeeping
    # ------------------------------------------------------------------

    def _get(self, dbid: str) -> _Dataset:
        dataset = self._datasets.get(dbid)
        if dataset is None:
            raise DatasetNotFoundError(dbid)
        return dataset

    def _next_tx(self, operation: str, target: str) -> str:
        self._height += 1
        return hashlib.sha256(f"{self._height}:{operation}:{target}".encode("utf-8")).hexdigest()

    def _record_tx(self, tx_hash: str, error: Optional[str] = None) -> None:
        if error is None:
            result = TxResult(tx_hash=tx_hash, height=self._height)
        else:
            self._logger.debug(f"Transaction {tx_hash} failed: {error}")
            result = TxResult(tx_hash=tx_hash, height=self._height, code=1, log=error)
        self._txs[tx_hash] = _TxEntry(result=result, pending_polls=self.confirmation_polls)

    def _stream_type(self, dataset: _Dataset) -> Optional[StreamType]:
        rows = dataset.enabled(MetadataKey.TYPE.value)
        if not rows:
            return None
        return StreamType.from_str(str(rows[0].value.value))

    def _require_type(self, dataset: _Dataset, procedure: str, expected: StreamType) -> None:
        actual = self._stream_type(dataset)
        if actual is None:
            raise ProcedureError(procedure, "stream not initialized")
        if actual != expected:
            raise ProcedureError(procedure, f"stream is {actual.value}, not {expected.value}")

    def _append_metadata(self, dataset: _Dataset, key: str, value: MetadataValue) -> None:
        dataset.metadata.append(
            _MetadataEntry(
                row_id=str(uuid.uuid4()),
                key=key,
                value=value,
                created_at=self._height,
            )
        )

    # ------------------------------------------------------------------
    # Write procedures
    # ------------------------------------------------------------------

    def _init(self, dataset: _Dataset, args: list[Any]) -> None:
        if self._stream_type(dataset) is not None:
            raise ProcedureError("init", "stream already initialized")

        schema = DatasetSchema(name=dataset.name, owner=dataset.owner, procedures=dataset.procedures)
        owner = EthereumAddress.from_bytes(dataset.owner)
        self._append_metadata(
            dataset, MetadataKey.TYPE.value, MetadataValue.string(stream_type_of(schema).value)
        )
        self._append_metadata(
            dataset, MetadataKey.STREAM_OWNER.value, MetadataValue.ref(owner.address)
        )
        for key in READONLY_KEYS:
            self._append_metadata(dataset, MetadataKey.READONLY_KEY.value, MetadataValue.string(key.value))

    def _insert_metadata(self, dataset: _Dataset, args: list[Any]) -> None:
        key, raw, type_name = _expect_args("insert_metadata", args, 3)
        if self._stream_type(dataset) is None:
            raise ProcedureError("insert_metadata", "stream not initialized")
        if key in _READONLY_KEY_NAMES:
            raise ProcedureError("insert_metadata", f"cannot insert read-only key {key}")

        kind = MetadataType.from_str(str(type_name))
        try:
            declared = MetadataKey.from_str(str(key)).metadata_type
        except ValidationError:
            declared = kind
        if declared != kind:
            raise ProcedureError(
                "insert_metadata", f"key {key} holds {declared.value} values, got {kind.value}"
            )

        value = value_from_string(kind, str(raw))
        if key in (MetadataKey.READ_VISIBILITY.value, MetadataKey.COMPOSE_VISIBILITY.value):
            Visibility.from_value(int(value.value))
        if key == MetadataKey.ALLOW_READ_WALLET.value:
            value = MetadataValue.ref(EthereumAddress(str(value.value)).address)
        if key == MetadataKey.DEFAULT_BASE_DATE.value:
            _parse_date("insert_metadata", str(value.value))

        self._append_metadata(dataset, str(key), value)

    def _disable_metadata(self, dataset: _Dataset, args: list[Any]) -> None:
        (row_id,) = _expect_args("disable_metadata", args, 1)
        for entry in dataset.metadata:
            if entry.row_id != row_id:
                continue
            if entry.key in _READONLY_KEY_NAMES:
                raise ProcedureError("disable_metadata", f"cannot disable read-only key {entry.key}")
            if entry.disabled_at is not None:
                raise ProcedureError("disable_metadata", f"row {row_id} is already disabled")
            entry.disabled_at = self._height
            return
        raise ProcedureError("disable_metadata", f"row not found: {row_id}")

    def _insert_record(self, dataset: _Dataset, args: list[Any]) -> None:
        raw_date, raw_value = _expect_args("insert_record", args, 2)
        self._require_type(dataset, "insert_record", StreamType.PRIMITIVE)
        day = _parse_date("insert_record", raw_date)
        if day is None:
            raise ProcedureError("insert_record", "record date is required")
        try:
            value = Decimal(str(raw_value))
        except InvalidOperation:
            raise ProcedureError("insert_record", f"invalid value: {raw_value!r}") from None
        if not value.is_finite():
            raise ProcedureError("insert_record", f"invalid value: {raw_value!r}")

        dataset.records.append(
            _RecordEntry(date=day, value=value, created_at=self._height, inserted_at=self._clock())
        )

    def _set_taxonomy(self, dataset: _Dataset, args: list[Any]) -> None:
        providers, stream_ids, weights, raw_start = _expect_args("set_taxonomy", args, 4)
        self._require_type(dataset, "set_taxonomy", StreamType.COMPOSED)
        if not (len(providers) == len(stream_ids) == len(weights)):
            raise ProcedureError("set_taxonomy", "taxonomy arrays differ in length")
        if not providers:
            raise ProcedureError("set_taxonomy", "taxonomy has no children")

        children: list[WeightedChild] = []
        for provider, stream_id, weight in zip(providers, stream_ids, weights):
            locator = StreamLocator(
                stream_id=StreamId(str(stream_id)), data_provider=EthereumAddress(str(provider))
            )
            child_ref = generate_dbid(locator.stream_id, locator.data_provider.bytes)
            if child_ref == dataset.dbid:
                raise ProcedureError("set_taxonomy", "a stream cannot be its own child")
            dataset.child_locators[child_ref] = locator
            children.append(WeightedChild(child_ref=child_ref, weight=to_weight(str(weight))))

        dataset.taxonomies.append(
            TaxonomyVersion(
                version=len(dataset.taxonomies) + 1,
                start_date=_parse_date("set_taxonomy", raw_start),
                children=tuple(children),
                created_at=self._height,
            )
        )

    # ------------------------------------------------------------------
    # Read procedures
    # ------------------------------------------------------------------

    def _get_metadata(self, dataset: _Dataset, args: list[Any], reader: EthereumAddress) -> list[Row]:
        key, only_latest, ref = _expect_args("get_metadata", args, 3)
        entries = dataset.enabled(str(key))
        if ref is not None:
            entries = [e for e in entries if e.value.type == MetadataType.REF and e.value.value == ref]
        if only_latest:
            entries = entries[:1]
        return [_metadata_row(entry) for entry in entries]

    def _get_record(self, dataset: _Dataset, args: list[Any], reader: EthereumAddress) -> list[Row]:
        raw_from, raw_to, raw_frozen = _expect_args("get_record", args, 3)
        date_from = _parse_date("get_record", raw_from)
        date_to = _parse_date("get_record", raw_to)
        dates, values = self._resolve(dataset, _parse_instant("get_record", raw_frozen), reader)
        return [
            _record_row(day, value)
            for day, value in zip(dates, values)
            if _in_range(day, date_from, date_to)
        ]

    def _get_index(self, dataset: _Dataset, args: list[Any], reader: EthereumAddress) -> list[Row]:
        raw_from, raw_to, raw_frozen, raw_base = _expect_args("get_index", args, 4)
        date_from = _parse_date("get_index", raw_from)
        date_to = _parse_date("get_index", raw_to)
        dates, values = self._resolve(dataset, _parse_instant("get_index", raw_frozen), reader)
        if not dates:
            return []

        base_date = _parse_date("get_index", raw_base) or self._default_base_date(dataset) or dates[0]
        base_value = _value_at(dates, values, base_date)
        if base_value is None:
            # base date precedes all data
            base_value = values[0]

        rows: list[Row] = []
        for day, value in zip(dates, values):
            if not _in_range(day, date_from, date_to):
                continue
            index = rebase_index(value, base_value)
            if index is None:
                raise ProcedureError("get_index", f"base value on {base_date} is zero")
            rows.append(_record_row(day, index))
        return rows

    def _get_first_record(
        self, dataset: _Dataset, args: list[Any], reader: EthereumAddress
    ) -> list[Row]:
        raw_after, raw_frozen = _expect_args("get_first_record", args, 2)
        after = _parse_date("get_first_record", raw_after)
        dates, values = self._resolve(dataset, _parse_instant("get_first_record", raw_frozen), reader)
        for day, value in zip(dates, values):
            if after is None or day >= after:
                return [_record_row(day, value)]
        return []

    def _describe_taxonomies(
        self, dataset: _Dataset, args: list[Any], reader: EthereumAddress
    ) -> list[Row]:
        (latest_version,) = _expect_args("describe_taxonomies", args, 1)
        self._require_type(dataset, "describe_taxonomies", StreamType.COMPOSED)
        versions = dataset.taxonomies[-1:] if latest_version else dataset.taxonomies

        rows: list[Row] = []
        for version in versions:
            for child in version.children:
                locator = dataset.child_locators[child.child_ref]
                rows.append(
                    {
                        "child_stream_id": str(locator.stream_id),
                        "child_data_provider": locator.data_provider.address,
                        "weight": decimal_arg(child.weight),
                        "created_at": version.created_at,
                        "version": version.version,
                        "start_date": version.start_date.isoformat() if version.start_date else None,
                    }
                )
        return rows

    # ------------------------------------------------------------------
    # Value resolution
    # ------------------------------------------------------------------

    def _default_base_date(self, dataset: _Dataset) -> Optional[date]:
        rows = dataset.enabled(MetadataKey.DEFAULT_BASE_DATE.value)
        if not rows:
            return None
        return _parse_date("get_index", str(rows[0].value.value))

    def _policy(self, dataset: _Dataset) -> AccessPolicy:
        def latest_visibility(key: MetadataKey) -> Optional[Visibility]:
            rows = dataset.enabled(key.value)
            return Visibility.from_value(int(rows[0].value.value)) if rows else None

        return AccessPolicy(
            stream_ref=dataset.dbid,
            owner=EthereumAddress.from_bytes(dataset.owner),
            read_visibility=latest_visibility(MetadataKey.READ_VISIBILITY),
            compose_visibility=latest_visibility(MetadataKey.COMPOSE_VISIBILITY),
            allowed_wallets=frozenset(
                EthereumAddress(str(e.value.value))
                for e in dataset.enabled(MetadataKey.ALLOW_READ_WALLET.value)
            ),
            allowed_composers=frozenset(
                str(e.value.value) for e in dataset.enabled(MetadataKey.ALLOW_COMPOSE_STREAM.value)
            ),
        )

    def _resolve(
        self, dataset: _Dataset, frozen_at: Optional[datetime], reader: EthereumAddress
    ) -> _Series:
        guard = CompositionGuard(max_depth=self.settings.max_composition_depth)
        return self._series(dataset, frozen_at, reader, guard, parent=None)

    def _series(
        self,
        dataset: _Dataset,
        frozen_at: Optional[datetime],
        reader: EthereumAddress,
        guard: CompositionGuard,
        parent: Optional[_Dataset],
    ) -> _Series:
        with guard.enter(dataset.dbid):
            stream_type = self._stream_type(dataset)
            if stream_type is None:
                raise ProcedureError("get_record", f"stream not initialized: {dataset.name}")

            policy = self._policy(dataset)
            policy.check_read(reader)
            if parent is not None:
                policy.check_compose(parent.dbid)

            if stream_type == StreamType.PRIMITIVE:
                return _primitive_series(dataset, frozen_at)
            return self._composed_series(dataset, frozen_at, reader, guard)

    def _composed_series(
        self,
        dataset: _Dataset,
        frozen_at: Optional[datetime],
        reader: EthereumAddress,
        guard: CompositionGuard,
    ) -> _Series:
        children: Dict[str, _Series] = {}
        for version in dataset.taxonomies:
            for child in version.children:
                if child.child_ref in children:
                    continue
                child_dataset = self._datasets.get(child.child_ref)
                if child_dataset is None or self._stream_type(child_dataset) is None:
                    self._logger.debug(
                        f"Child {child.child_ref} of {dataset.dbid} has no data, skipping"
                    )
                    children[child.child_ref] = ([], [])
                    continue
                children[child.child_ref] = self._series(
                    child_dataset, frozen_at, reader, guard, parent=dataset
                )

        record_days = {ref: set(series[0]) for ref, series in children.items()}
        all_dates = sorted(set().union(*record_days.values()))
        dates: list[date] = []
        values: list[Decimal] = []
        for day in all_dates:
            version = active_version(dataset.taxonomies, day)
            if version is None:
                continue
            # only children of the active version contribute dates
            if not any(day in record_days[child.child_ref] for child in version.children):
                continue
            pairs = []
            for child in version.children:
                value = _value_at(*children[child.child_ref], day)
                if value is not None:
                    pairs.append((value, child.weight))
            aggregate = weighted_average(pairs)
            if aggregate is not None:
                dates.append(day)
                values.append(aggregate)
        return dates, values


class InMemoryTransport:
    """Transport bound to one signer on an InMemoryLedger.

    Example:
        >>> ledger = InMemoryLedger()
        >>> owner = InMemoryTransport(ledger, EthereumAddress("0x" + "1" * 40))
        >>> reader = InMemoryTransport(ledger, EthereumAddress("0x" + "2" * 40))
    """

    def __init__(self, ledger: InMemoryLedger, address: EthereumAddress | bytes) -> None:
        self.ledger = ledger
        self._address = address.bytes if isinstance(address, EthereumAddress) else bytes(address)

    @property
    def address(self) -> bytes:
        return self._address

    async def call(self, dbid: str, procedure: str, args: Sequence[Any]) -> list[Row]:
        return await self.ledger.call(self._address, dbid, procedure, args)

    async def execute(self, dbid: str, procedure: str, rows: Sequence[Sequence[Any]]) -> str:
        return await self.ledger.execute(self._address, dbid, procedure, rows)

    async def get_schema(self, dbid: str) -> DatasetSchema:
        return await self.ledger.get_schema(dbid)

    async def query_tx(self, tx_hash: str) -> Optional[TxResult]:
        return await self.ledger.query_tx(tx_hash)

    async def deploy_dataset(self, schema: DatasetSchema) -> str:
        return await self.ledger.deploy_dataset(self._address, schema)

    async def drop_dataset(self, name: str) -> str:
        return await self.ledger.drop_dataset(self._address, name)

    async def list_datasets(self, owner: Optional[bytes] = None) -> list[DatasetInfo]:
        return await self.ledger.list_datasets(owner)


def _expect_args(procedure: str, args: list[Any], count: int) -> list[Any]:
    if len(args) != count:
        raise ProcedureError(procedure, f"expected {count} arguments, got {len(args)}")
    return args


def _parse_date(procedure: str, raw: Any) -> Optional[date]:
    try:
        return parse_date_arg(raw)
    except (TypeError, ValueError):
        raise ProcedureError(procedure, f"invalid date: {raw!r}") from None


def _parse_instant(procedure: str, raw: Any) -> Optional[datetime]:
    try:
        return parse_datetime_arg(raw)
    except (TypeError, ValueError):
        raise ProcedureError(procedure, f"invalid timestamp: {raw!r}") from None


def _in_range(day: date, date_from: Optional[date], date_to: Optional[date]) -> bool:
    if date_from is not None and day < date_from:
        return False
    if date_to is not None and day > date_to:
        return False
    return True


def _value_at(dates: list[date], values: list[Decimal], day: date) -> Optional[Decimal]:
    """Last known value on or before ``day``."""
    position = bisect.bisect_right(dates, day)
    if position == 0:
        return None
    return values[position - 1]


def _primitive_series(dataset: _Dataset, frozen_at: Optional[datetime]) -> _Series:
    latest: Dict[date, Decimal] = {}
    for record in dataset.records:
        if frozen_at is not None and record.inserted_at > frozen_at:
            continue
        latest[record.date] = record.value
    dates = sorted(latest)
    return dates, [latest[day] for day in dates]


def _metadata_row(entry: _MetadataEntry) -> Row:
    row: Row = {
        "row_id": entry.row_id,
        "value_i": None,
        "value_b": None,
        "value_s": None,
        "value_ref": None,
        "created_at": entry.created_at,
        "disabled_at": entry.disabled_at,
    }
    row[column_for(entry.value.type)] = entry.value.value
    return row


def _record_row(day: date, value: Decimal) -> Row:
    return {"date_value": day.isoformat(), "value": decimal_arg(value)}
