"""
Stream identifiers, account addresses and dataset references.

Every other layer keys its data on the values built here:
- StreamId: "st" + 30 hex chars, derived from a name or given directly
- EthereumAddress: 20-byte account, canonically lowercase with 0x prefix
- generate_dbid: deterministic dataset reference for (stream id, owner)

Invariants:
    - Values are validated at construction and immutable afterwards
    - Malformed input is rejected, never coerced
    - All functions are pure
"""

from __future__ import annotations

import hashlib
import re
from dataclasses import dataclass

from .errors import ValidationError

STREAM_ID_PREFIX = "st"
STREAM_ID_LENGTH = 32

_ADDRESS_RE = re.compile(r"^0x[a-fA-F0-9]{40}$")


@dataclass(frozen=True, order=True)
class StreamId:
    """Validated stream identifier.

    Example:
        >>> StreamId("st" + "0" * 30)
        StreamId(id='st000000000000000000000000000000')
    """

    id: str

    def __post_init__(self) -> None:
        if not isinstance(self.id, str):
            raise ValidationError(
                f"Stream id must be a string, got {type(self.id).__name__}",
                field_name="stream_id",
                value=self.id,
            )
        if len(self.id) != STREAM_ID_LENGTH or not self.id.startswith(STREAM_ID_PREFIX):
            raise ValidationError(
                f"Invalid stream id '{self.id}': expected {STREAM_ID_LENGTH} chars "
                f"starting with '{STREAM_ID_PREFIX}'",
                field_name="stream_id",
                value=self.id,
            )

    def __str__(self) -> str:
        return self.id


def generate_stream_id(name: str) -> StreamId:
    """Derive a stream id from a human-readable name.

    The same name always yields the same id.

    Example:
        >>> generate_stream_id("cpi") == generate_stream_id("cpi")
        True
    """
    digest = hashlib.sha256(name.encode("utf-8")).hexdigest()
    return StreamId(STREAM_ID_PREFIX + digest[: STREAM_ID_LENGTH - len(STREAM_ID_PREFIX)])


@dataclass(frozen=True)
class EthereumAddress:
    """Account address, stored lowercase and 0x-prefixed.

    Input is accepted with or without the prefix and in any case.

    Example:
        >>> str(EthereumAddress("ABCDEF" + "0" * 34))
        '0xabcdef0000000000000000000000000000000000'
    """

    hex: str

    def __post_init__(self) -> None:
        if not isinstance(self.hex, str) or not self.hex:
            raise ValidationError("Address cannot be empty", field_name="address", value=self.hex)

        normalized = self.hex.lower()
        if not normalized.startswith("0x"):
            normalized = "0x" + normalized

        if not _ADDRESS_RE.match(normalized):
            raise ValidationError(
                f"Address does not match {_ADDRESS_RE.pattern}: {self.hex}",
                field_name="address",
                value=self.hex,
            )
        object.__setattr__(self, "hex", normalized)

    @classmethod
    def from_bytes(cls, raw: bytes) -> EthereumAddress:
        """Build an address from its 20 raw bytes."""
        return cls(raw.hex())

    @property
    def address(self) -> str:
        """Address as 0x-prefixed lowercase hex."""
        return self.hex

    @property
    def bytes(self) -> bytes:
        """Address as raw bytes."""
        return bytes.fromhex(self.hex[2:])

    def __str__(self) -> str:
        return self.hex


def generate_dbid(stream_id: StreamId | str, owner: bytes) -> str:
    """Dataset reference for a stream deployed by ``owner``.

    Args:
        stream_id: Stream identifier (dataset name)
        owner: Raw owner address bytes

    Returns:
        "x" followed by the sha224 hex digest of lower(name) + owner
    """
    name = str(stream_id).lower().encode("utf-8")
    return "x" + hashlib.sha224(name + owner).hexdigest()
