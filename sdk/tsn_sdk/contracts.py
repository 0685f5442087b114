"""
Dataset contracts deployed for each stream type.

A stream is a dataset whose name is the stream id and whose procedures
implement the stream interface. Primitive and composed streams share the
metadata and read procedures; each adds its own write procedures.
"""

from __future__ import annotations

from .errors import ValidationError
from .identifiers import StreamId
from .transport import DatasetSchema
from .types import StreamType

COMMON_PROCEDURES: tuple[str, ...] = (
    "init",
    "get_metadata",
    "insert_metadata",
    "disable_metadata",
    "get_record",
    "get_index",
    "get_first_record",
)

PRIMITIVE_PROCEDURES: tuple[str, ...] = COMMON_PROCEDURES + ("insert_record",)

COMPOSED_PROCEDURES: tuple[str, ...] = COMMON_PROCEDURES + (
    "set_taxonomy",
    "describe_taxonomies",
)

_PROCEDURES_BY_TYPE: dict[StreamType, tuple[str, ...]] = {
    StreamType.PRIMITIVE: PRIMITIVE_PROCEDURES,
    StreamType.COMPOSED: COMPOSED_PROCEDURES,
}


def get_contract(stream_type: StreamType, stream_id: StreamId, owner: bytes) -> DatasetSchema:
    """Build the dataset schema to deploy for a stream.

    Raises:
        ValidationError: If ``stream_type`` is not a StreamType
    """
    try:
        procedures = _PROCEDURES_BY_TYPE[stream_type]
    except (KeyError, TypeError):
        raise ValidationError(
            f"Unknown stream type: {stream_type!r}", field_name="stream_type", value=stream_type
        ) from None
    return DatasetSchema(name=str(stream_id), owner=owner, procedures=procedures)


def stream_type_of(schema: DatasetSchema) -> StreamType:
    """Infer the stream type a dataset was deployed as."""
    if "set_taxonomy" in schema.procedures:
        return StreamType.COMPOSED
    return StreamType.PRIMITIVE
