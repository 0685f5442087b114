"""
Composed stream view.

A composed stream aggregates its children through a taxonomy. Each
``set_taxonomy`` call writes a new version; older versions stay queryable
and keep applying to the dates before the newer version's start date.

Wire format of set_taxonomy (one execution row of parallel arrays):
    [data_providers, stream_ids, weights, start_date]

Invariants:
    - Weights travel as fixed-point decimal strings, never floats
    - Data providers travel in canonical 0x lowercase form
    - An unset start date travels as null
"""

from __future__ import annotations

from .codec import TaxonomyRow, date_arg, decimal_arg, decode_rows
from .errors import DecodeError, ValidationError
from .identifiers import EthereumAddress, StreamId
from .stream import Stream
from .types import StreamLocator, StreamType, Taxonomy, TaxonomyItem


class ComposedStream(Stream):
    """Stream view exposing taxonomy management."""

    async def _check_composed(self) -> None:
        await self._require_type(StreamType.COMPOSED)

    async def set_taxonomy(self, taxonomy: Taxonomy) -> str:
        """Write a new taxonomy version.

        Args:
            taxonomy: Weighted children and optional start date

        Returns:
            Transaction hash

        Raises:
            ValidationError: If the taxonomy has no children
            StreamTypeError: If the stream is primitive
        """
        if not taxonomy.items:
            raise ValidationError("Taxonomy has no children", field_name="items", value=[])

        await self._check_composed()

        data_providers = [item.child_stream.data_provider.address for item in taxonomy.items]
        stream_ids = [str(item.child_stream.stream_id) for item in taxonomy.items]
        weights = [decimal_arg(item.weight) for item in taxonomy.items]

        self._logger.debug(
            f"Setting taxonomy on {self.stream_id}: {len(taxonomy.items)} children, "
            f"start_date={taxonomy.start_date}"
        )
        return await self._execute(
            "set_taxonomy",
            [[data_providers, stream_ids, weights, date_arg(taxonomy.start_date)]],
        )

    async def describe_taxonomies(self, latest_version: bool = True) -> Taxonomy:
        """Read the taxonomy.

        Args:
            latest_version: Only the newest version; False returns every
                version, items ordered by version

        Returns:
            Taxonomy whose items carry their version and start date. The
            taxonomy's own start date is that of the newest version returned.
        """
        await self._check_composed()
        rows = await self._call("describe_taxonomies", [latest_version])
        decoded = decode_rows(TaxonomyRow, rows, procedure="describe_taxonomies")

        items: list[TaxonomyItem] = []
        for row in decoded:
            try:
                locator = StreamLocator(
                    stream_id=StreamId(row.child_stream_id),
                    data_provider=EthereumAddress(row.child_data_provider),
                )
                items.append(
                    TaxonomyItem(
                        child_stream=locator,
                        weight=row.weight,
                        start_date=row.start_date,
                        version=row.version,
                    )
                )
            except ValidationError as e:
                raise DecodeError(
                    f"Invalid taxonomy row for {self.stream_id}: {e.message}",
                    procedure="describe_taxonomies",
                ) from e

        start_date = items[-1].start_date if items else None
        return Taxonomy(items=tuple(items), start_date=start_date)
