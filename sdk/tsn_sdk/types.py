"""
Data model for the TSN SDK.

This module provides the value types shared by every layer:
- StreamType, Visibility: small enumerations persisted as metadata
- MetadataType, MetadataKey: metadata keys and their declared value kinds
- MetadataValue: tagged value, one constructor per physical kind
- StreamLocator, TaxonomyItem, Taxonomy: composition structure
- StreamRecord and the record query/insert inputs

Invariants:
    - Every MetadataKey declares exactly one MetadataType
    - A MetadataValue's tag always matches its Python type
    - Taxonomy weights are finite, non-negative decimals
    - Values are immutable once constructed

Example:
    >>> item = TaxonomyItem(child_stream=locator, weight=Decimal("1.5"))
    >>> Taxonomy(items=(item,), start_date=date(2020, 1, 30))
"""

from __future__ import annotations

from collections import OrderedDict
from dataclasses import dataclass
from dataclasses import field as dataclass_field
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from enum import Enum, IntEnum
from typing import Any, Union

from .errors import ValidationError
from .identifiers import EthereumAddress, StreamId


class StreamType(Enum):
    """Kinds of stream a dataset can be initialized as."""

    PRIMITIVE = "primitive"
    COMPOSED = "composed"

    @classmethod
    def from_str(cls, value: str) -> StreamType:
        """Convert string to StreamType."""
        for kind in cls:
            if kind.value == value:
                return kind
        raise ValidationError(f"Unknown stream type: {value}", field_name="type", value=value)


class Visibility(IntEnum):
    """Read or compose visibility of a stream."""

    PUBLIC = 0
    PRIVATE = 1

    @classmethod
    def from_value(cls, value: int) -> Visibility:
        """Validate a stored int visibility."""
        if isinstance(value, bool) or value not in (0, 1):
            raise ValidationError(
                f"Invalid visibility value: {value}", field_name="visibility", value=value
            )
        return cls(value)


class MetadataType(Enum):
    """Physical value kinds of a metadata row."""

    INT = "int"
    BOOL = "bool"
    STRING = "string"
    REF = "ref"

    @classmethod
    def from_str(cls, value: str) -> MetadataType:
        """Convert string to MetadataType."""
        for kind in cls:
            if kind.value == value:
                return kind
        raise ValidationError(
            f"Invalid metadata type: {value}", field_name="metadata_type", value=value
        )


class MetadataKey(Enum):
    """Metadata keys understood by stream procedures."""

    TYPE = "type"
    STREAM_OWNER = "stream_owner"
    READONLY_KEY = "readonly_key"
    COMPOSE_VISIBILITY = "compose_visibility"
    READ_VISIBILITY = "read_visibility"
    ALLOW_READ_WALLET = "allow_read_wallet"
    ALLOW_COMPOSE_STREAM = "allow_compose_stream"
    DEFAULT_BASE_DATE = "default_base_date"

    @property
    def metadata_type(self) -> MetadataType:
        """Declared value kind of this key."""
        return _KEY_TYPES[self]

    @classmethod
    def from_str(cls, value: str) -> MetadataKey:
        """Convert string to MetadataKey."""
        for key in cls:
            if key.value == value:
                return key
        raise ValidationError(f"Unknown metadata key: {value}", field_name="key", value=value)

    def __str__(self) -> str:
        return self.value


_KEY_TYPES: dict[MetadataKey, MetadataType] = {
    MetadataKey.TYPE: MetadataType.STRING,
    MetadataKey.STREAM_OWNER: MetadataType.REF,
    MetadataKey.READONLY_KEY: MetadataType.STRING,
    MetadataKey.COMPOSE_VISIBILITY: MetadataType.INT,
    MetadataKey.READ_VISIBILITY: MetadataType.INT,
    MetadataKey.ALLOW_READ_WALLET: MetadataType.REF,
    MetadataKey.ALLOW_COMPOSE_STREAM: MetadataType.REF,
    MetadataKey.DEFAULT_BASE_DATE: MetadataType.STRING,
}

# Keys written by init and never changed afterwards
READONLY_KEYS: tuple[MetadataKey, ...] = (
    MetadataKey.TYPE,
    MetadataKey.STREAM_OWNER,
    MetadataKey.READONLY_KEY,
)


MetadataScalar = Union[int, bool, str]


@dataclass(frozen=True)
class MetadataValue:
    """Tagged metadata value.

    Build with the per-kind constructors rather than directly:

        >>> MetadataValue.int_(1)
        >>> MetadataValue.ref("0xabc...")
    """

    type: MetadataType
    value: MetadataScalar

    def __post_init__(self) -> None:
        if not _matches(self.type, self.value):
            raise ValidationError(
                f"{type(self.value).__name__} is not a valid {self.type.value} metadata value",
                field_name="value",
                value=self.value,
            )

    @classmethod
    def int_(cls, value: int) -> MetadataValue:
        return cls(MetadataType.INT, value)

    @classmethod
    def bool_(cls, value: bool) -> MetadataValue:
        return cls(MetadataType.BOOL, value)

    @classmethod
    def string(cls, value: str) -> MetadataValue:
        return cls(MetadataType.STRING, value)

    @classmethod
    def ref(cls, value: str) -> MetadataValue:
        return cls(MetadataType.REF, value)


def _matches(kind: MetadataType, value: Any) -> bool:
    if kind == MetadataType.INT:
        return isinstance(value, int) and not isinstance(value, bool)
    if kind == MetadataType.BOOL:
        return isinstance(value, bool)
    return isinstance(value, str)


@dataclass(frozen=True)
class StreamLocator:
    """Uniquely addresses one deployed stream.

    Attributes:
        stream_id: Stream identifier
        data_provider: Owner address
    """

    stream_id: StreamId
    data_provider: EthereumAddress

    def __str__(self) -> str:
        return f"{self.data_provider}/{self.stream_id}"


def to_weight(value: Decimal | int | float | str) -> Decimal:
    """Coerce a taxonomy weight to a finite, non-negative Decimal.

    Floats go through their shortest repr so 0.1 stays 0.1.
    """
    if isinstance(value, bool):
        raise ValidationError("Weight cannot be a boolean", field_name="weight", value=value)
    try:
        weight = Decimal(repr(value)) if isinstance(value, float) else Decimal(value)
    except (InvalidOperation, TypeError, ValueError) as e:
        raise ValidationError(f"Invalid weight: {value!r}", field_name="weight", value=value) from e
    if not weight.is_finite() or weight < 0:
        raise ValidationError(
            f"Weight must be a finite non-negative number, got {value!r}",
            field_name="weight",
            value=value,
        )
    return weight


@dataclass(frozen=True)
class TaxonomyItem:
    """One weighted child of a composed stream.

    Attributes:
        child_stream: Locator of the child stream
        weight: Non-negative decimal weight
        start_date: Start date of the taxonomy version this item belongs to
        version: Version number (set on described items)
    """

    child_stream: StreamLocator
    weight: Decimal
    start_date: date | None = None
    version: int | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "weight", to_weight(self.weight))


@dataclass(frozen=True)
class Taxonomy:
    """Ordered children of a composed stream plus an optional start date.

    When returned by ``describe_taxonomies`` with full history, items of
    several versions are present in version order; use ``versions()``.
    """

    items: tuple[TaxonomyItem, ...] = dataclass_field(default_factory=tuple)
    start_date: date | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "items", tuple(self.items))

    def versions(self) -> OrderedDict[int | None, list[TaxonomyItem]]:
        """Group items by version, preserving order."""
        grouped: OrderedDict[int | None, list[TaxonomyItem]] = OrderedDict()
        for item in self.items:
            grouped.setdefault(item.version, []).append(item)
        return grouped

    def __len__(self) -> int:
        return len(self.items)


@dataclass(frozen=True)
class StreamRecord:
    """A dated value of a stream."""

    date: date
    value: Decimal


StreamIndex = StreamRecord


@dataclass(frozen=True)
class GetRecordInput:
    """Parameters of a record range query.

    Attributes:
        date_from: First date (inclusive), None for unbounded
        date_to: Last date (inclusive), None for unbounded
        frozen_at: Ignore data inserted after this instant
    """

    date_from: date | None = None
    date_to: date | None = None
    frozen_at: datetime | None = None


@dataclass(frozen=True)
class GetIndexInput(GetRecordInput):
    """Parameters of an index range query.

    Attributes:
        base_date: Date whose value is rebased to 100
    """

    base_date: date | None = None


@dataclass(frozen=True)
class GetFirstRecordInput:
    """Parameters of a first-record query."""

    after_date: date | None = None
    frozen_at: datetime | None = None


@dataclass(frozen=True)
class InsertRecordInput:
    """One record to insert into a primitive stream."""

    date: date
    value: Decimal | int | str

    def __post_init__(self) -> None:
        if isinstance(self.value, (bool, float)):
            raise ValidationError(
                f"Record value must be int, str or Decimal, got {type(self.value).__name__}",
                field_name="value",
                value=self.value,
            )
        try:
            value = Decimal(self.value)
        except (InvalidOperation, TypeError, ValueError) as e:
            raise ValidationError(
                f"Invalid record value: {self.value!r}", field_name="value", value=self.value
            ) from e
        if not value.is_finite():
            raise ValidationError(
                f"Record value must be finite: {self.value!r}", field_name="value", value=self.value
            )
        object.__setattr__(self, "value", value)
