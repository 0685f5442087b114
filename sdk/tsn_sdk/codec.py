"""
Typed metadata codec and row decoding for the TSN SDK.

This module converts between SDK values and the wire format of stream
procedures:
- string_from_value: MetadataValue -> wire string, checked against the key type
- value_from_string: wire string -> MetadataValue (used when storing rows)
- value_from_row: pick the authoritative column of a metadata row
- decode_rows: raw call rows -> typed pydantic models
- date_arg / datetime_arg: optional argument encoding (None stays null)

Invariants:
    - Encode/decode round-trips for every MetadataType
    - A value whose tag differs from the declared type is rejected
    - Decode failures raise DecodeError, never default silently
"""

from __future__ import annotations

from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Any, Iterable, Mapping, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, field_validator
from pydantic import ValidationError as PydanticValidationError

from .errors import DecodeError, MetadataTypeError, UnsupportedMetadataTypeError
from .types import MetadataType, MetadataValue

ModelT = TypeVar("ModelT", bound=BaseModel)


def string_from_value(kind: MetadataType, value: MetadataValue) -> str:
    """Encode a metadata value for ``insert_metadata``.

    Args:
        kind: Declared type of the metadata key
        value: Tagged value to encode

    Returns:
        Wire string (decimal int, "true"/"false", or the string itself)

    Raises:
        MetadataTypeError: If the value's tag is not ``kind``
        UnsupportedMetadataTypeError: If ``kind`` is unknown
    """
    if not isinstance(kind, MetadataType):
        raise UnsupportedMetadataTypeError(kind)
    if value.type != kind:
        raise MetadataTypeError(
            f"Expected a {kind.value} value, got {value.type.value}",
            expected=kind.value,
            actual=value.type.value,
        )

    if kind == MetadataType.INT:
        return str(value.value)
    if kind == MetadataType.BOOL:
        return "true" if value.value else "false"
    return str(value.value)


def value_from_string(kind: MetadataType, raw: str) -> MetadataValue:
    """Decode a wire string into a tagged value of ``kind``.

    Raises:
        MetadataTypeError: If ``raw`` does not parse as ``kind``
        UnsupportedMetadataTypeError: If ``kind`` is unknown
    """
    if kind == MetadataType.INT:
        try:
            return MetadataValue.int_(int(raw))
        except ValueError as e:
            raise MetadataTypeError(
                f"'{raw}' is not an int", expected=kind.value, actual="string"
            ) from e
    if kind == MetadataType.BOOL:
        if raw not in ("true", "false"):
            raise MetadataTypeError(f"'{raw}' is not a bool", expected=kind.value, actual="string")
        return MetadataValue.bool_(raw == "true")
    if kind == MetadataType.STRING:
        return MetadataValue.string(raw)
    if kind == MetadataType.REF:
        return MetadataValue.ref(raw)
    raise UnsupportedMetadataTypeError(kind)


class MetadataRow(BaseModel):
    """A row returned by ``get_metadata``.

    Only the column selected by the key's declared type is meaningful.
    """

    model_config = ConfigDict(frozen=True)

    row_id: str
    value_i: Optional[int] = None
    value_b: Optional[bool] = None
    value_s: Optional[str] = None
    value_ref: Optional[str] = None
    created_at: int
    disabled_at: Optional[int] = None

    @property
    def enabled(self) -> bool:
        return self.disabled_at is None


_COLUMNS: dict[MetadataType, str] = {
    MetadataType.INT: "value_i",
    MetadataType.BOOL: "value_b",
    MetadataType.STRING: "value_s",
    MetadataType.REF: "value_ref",
}


def column_for(kind: MetadataType) -> str:
    """Name of the row column that stores values of ``kind``."""
    try:
        return _COLUMNS[kind]
    except (KeyError, TypeError):
        raise UnsupportedMetadataTypeError(kind) from None


def value_from_row(kind: MetadataType, row: MetadataRow) -> int | bool | str:
    """Select the authoritative value of ``row`` for a key of type ``kind``.

    Raises:
        UnsupportedMetadataTypeError: If ``kind`` is unknown
        DecodeError: If the selected column is null
    """
    value = getattr(row, column_for(kind))
    if value is None:
        raise DecodeError(
            f"Metadata row {row.row_id} has no {kind.value} value",
            procedure="get_metadata",
        )
    return value


class RecordRow(BaseModel):
    """A row returned by ``get_record``, ``get_index`` and ``get_first_record``."""

    date_value: date
    value: Decimal


class TaxonomyRow(BaseModel):
    """A row returned by ``describe_taxonomies``."""

    child_stream_id: str
    child_data_provider: str
    weight: Decimal
    created_at: int
    version: int
    start_date: Optional[date] = None

    @field_validator("start_date", mode="before")
    @classmethod
    def _empty_start_date(cls, value: Any) -> Any:
        # unset start dates come back as empty strings
        if value == "":
            return None
        return value


def decode_rows(
    model: type[ModelT],
    rows: Iterable[Mapping[str, Any]],
    procedure: str | None = None,
) -> list[ModelT]:
    """Decode raw call rows into ``model`` instances.

    Raises:
        DecodeError: If any row does not match the model; the pydantic
            error is chained as ``__cause__``
    """
    results: list[ModelT] = []
    for i, row in enumerate(rows):
        try:
            results.append(model.model_validate(dict(row)))
        except (PydanticValidationError, TypeError, ValueError) as e:
            raise DecodeError(
                f"Failed to decode row {i} of {procedure or model.__name__}: {e}",
                procedure=procedure,
            ) from e
    return results


def date_arg(value: date | None) -> str | None:
    """Encode an optional date as ISO string or null."""
    return value.isoformat() if value is not None else None


def datetime_arg(value: datetime | None) -> str | None:
    """Encode an optional instant as UTC RFC3339 with microseconds, or null."""
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%fZ")


def decimal_arg(value: Decimal) -> str:
    """Encode a decimal as a fixed-point string, never scientific notation."""
    return format(value, "f")


def parse_datetime_arg(value: str | None) -> datetime | None:
    """Inverse of ``datetime_arg``; also accepts offsets and whole seconds."""
    if value is None:
        return None
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        raise ValueError(f"timestamp without offset: {value}")
    return parsed.astimezone(timezone.utc)


def parse_date_arg(value: str | None) -> date | None:
    """Inverse of ``date_arg``; empty string is treated as null."""
    if value is None or value == "":
        return None
    return date.fromisoformat(value)
