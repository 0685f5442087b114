"""Constants and small helpers shared by the test modules."""

from datetime import date, datetime, timezone
from decimal import Decimal

from tsn_sdk import EthereumAddress

OWNER = EthereumAddress("0x" + "a1" * 20)
READER = EthereumAddress("0x" + "b2" * 20)
PROVIDER = EthereumAddress("0x" + "c3" * 20)


class FakeClock:
    """Controllable clock for frozen_at queries."""

    def __init__(self) -> None:
        self.now = datetime(2024, 1, 1, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now


def d(value: str) -> date:
    """Shorthand for ISO dates."""
    return date.fromisoformat(value)


def assert_close(actual: Decimal, expected: Decimal, places: int = 18) -> None:
    assert abs(actual - expected) < Decimal(10) ** -places, f"{actual} != {expected}"
