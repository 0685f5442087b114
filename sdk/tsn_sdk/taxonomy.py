"""
Aggregation contract of composed streams.

A composed stream's value on date D comes from the taxonomy version active
on D: the newest version whose start date is on or before D. The value is
the weighted average of its children's values on D, each child resolved
recursively if it is itself composed.

    value(D) = sum(child_value(D) * weight) / sum(weight)

Index values are rebased so the value at the base date equals 100.

Invariants:
    - An unset start date means "active since the beginning of history"
    - Versions sharing a start date: the later-inserted one wins
    - A stream never appears twice on its own resolution path
"""

from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Iterable, Iterator, Sequence

from .errors import TaxonomyCycleError

BEGINNING_OF_HISTORY = date.min

HUNDRED = Decimal(100)


@dataclass(frozen=True)
class WeightedChild:
    """A child reference with its weight inside one taxonomy version."""

    child_ref: str
    weight: Decimal


@dataclass(frozen=True)
class TaxonomyVersion:
    """One ``set_taxonomy`` write.

    Attributes:
        version: Monotonic version number
        start_date: First date the version applies to, None if unset
        children: Weighted children in insertion order
        created_at: Block height of the write
    """

    version: int
    start_date: date | None
    children: tuple[WeightedChild, ...] = field(default_factory=tuple)
    created_at: int = 0

    @property
    def effective_start(self) -> date:
        return self.start_date or BEGINNING_OF_HISTORY


def active_version(versions: Sequence[TaxonomyVersion], on: date) -> TaxonomyVersion | None:
    """Pick the version in effect on ``on``.

    Args:
        versions: Versions in insertion order
        on: Date being resolved

    Returns:
        The active version, or None if no version has started yet
    """
    best: tuple[date, int] | None = None
    chosen: TaxonomyVersion | None = None
    for position, version in enumerate(versions):
        if version.effective_start > on:
            continue
        key = (version.effective_start, position)
        if best is None or key > best:
            best = key
            chosen = version
    return chosen


def weighted_average(pairs: Iterable[tuple[Decimal, Decimal]]) -> Decimal | None:
    """Weighted average of (value, weight) pairs.

    Returns None when there are no pairs or the weights sum to zero.

    Example:
        >>> weighted_average([(Decimal(1), Decimal(1)), (Decimal(3), Decimal(2))])
        Decimal('2.333333333333333333333333333')
    """
    total = Decimal(0)
    total_weight = Decimal(0)
    for value, weight in pairs:
        total += value * weight
        total_weight += weight
    if total_weight == 0:
        return None
    return total / total_weight


def rebase_index(value: Decimal, base_value: Decimal) -> Decimal | None:
    """Express ``value`` as a percentage of ``base_value``.

    Returns None when the base is zero.
    """
    if base_value == 0:
        return None
    return value * HUNDRED / base_value


class CompositionGuard:
    """Visited-set and depth guard for recursive composed-stream resolution.

    Example:
        >>> guard = CompositionGuard(max_depth=16)
        >>> with guard.enter(parent_dbid):
        ...     with guard.enter(child_dbid):
        ...         ...
    """

    def __init__(self, max_depth: int) -> None:
        self.max_depth = max_depth
        self._path: list[str] = []

    @property
    def path(self) -> list[str]:
        return list(self._path)

    @contextmanager
    def enter(self, stream_ref: str) -> Iterator[None]:
        """Push ``stream_ref`` onto the resolution path.

        Raises:
            TaxonomyCycleError: If the stream is already on the path or the
                path would exceed ``max_depth``
        """
        if stream_ref in self._path:
            raise TaxonomyCycleError(
                f"Composition cycle detected at {stream_ref}",
                path=self._path + [stream_ref],
            )
        if len(self._path) >= self.max_depth:
            raise TaxonomyCycleError(
                f"Composition deeper than {self.max_depth} levels at {stream_ref}",
                path=self._path + [stream_ref],
            )
        self._path.append(stream_ref)
        try:
            yield
        finally:
            self._path.pop()
