"""
Primitive stream view.

Primitive streams hold raw dated records written by their owner.
"""

from __future__ import annotations

from typing import Iterable

from .codec import date_arg, decimal_arg
from .errors import ValidationError
from .stream import Stream
from .types import InsertRecordInput, StreamType


class PrimitiveStream(Stream):
    """Stream view exposing record insertion."""

    async def _check_primitive(self) -> None:
        await self._require_type(StreamType.PRIMITIVE)

    async def insert_records(self, records: Iterable[InsertRecordInput]) -> str:
        """Insert records in one transaction.

        For a date inserted more than once, the latest insertion is the
        value reported by reads.

        Args:
            records: Records to insert

        Returns:
            Transaction hash

        Raises:
            StreamNotInitializedError: If the stream has no type row
            StreamTypeError: If the stream is composed
        """
        rows = [[date_arg(record.date), decimal_arg(record.value)] for record in records]
        if not rows:
            raise ValidationError("No records to insert", field_name="records", value=[])

        await self._check_primitive()
        return await self._execute("insert_record", rows)
