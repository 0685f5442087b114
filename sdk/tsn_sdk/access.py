"""
Read and compose access resolution for streams.

Streams carry two independent visibility axes, each Public, Private or
unset, plus allow-lists stored as metadata:
- read: allow_read_wallet rows name wallets that may read a private stream
- compose: allow_compose_stream rows name composed streams (by dbid) that
  may include a compose-private stream as a child

The remote engine enforces these rules on every read. This module holds
the same rules so the in-memory ledger and tests apply them identically.

Invariants:
    - The owner can always read its own streams
    - Compose privacy applies to every composer, the owner's own included
    - Unset visibility behaves as Public
    - Read and compose checks are independent; a composed read needs both

How to change safely:
    - Keep this in line with the server procedures
    - Test every visibility/allow-list combination
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Collection

from .errors import AccessDeniedError
from .identifiers import EthereumAddress
from .types import Visibility

logger = logging.getLogger(__name__)


class Permission(Enum):
    """Access kinds checked on stream reads."""

    READ = "read"
    COMPOSE = "compose"


def can_read(
    visibility: Visibility | None,
    allowed_wallets: Collection[EthereumAddress],
    wallet: EthereumAddress,
    owner: EthereumAddress,
) -> bool:
    """Check if ``wallet`` may read a stream.

    Example:
        >>> can_read(Visibility.PRIVATE, [reader], reader, owner)
        True
    """
    if wallet == owner:
        return True
    if visibility != Visibility.PRIVATE:
        return True
    return wallet in allowed_wallets


def can_compose(
    visibility: Visibility | None,
    allowed_streams: Collection[str],
    composer_dbid: str,
) -> bool:
    """Check if the composed stream ``composer_dbid`` may use a stream as child.

    Args:
        visibility: Compose visibility of the child
        allowed_streams: dbids from the child's allow_compose_stream rows
        composer_dbid: dbid of the composing (parent) stream
    """
    if visibility != Visibility.PRIVATE:
        return True
    return composer_dbid in allowed_streams


@dataclass(frozen=True)
class AccessPolicy:
    """Snapshot of one stream's access metadata.

    Attributes:
        stream_ref: dbid of the stream the policy belongs to
        owner: Stream owner
        read_visibility: Latest read visibility, None when unset
        compose_visibility: Latest compose visibility, None when unset
        allowed_wallets: Enabled read allow-list entries
        allowed_composers: Enabled compose allow-list entries (dbids)
    """

    stream_ref: str
    owner: EthereumAddress
    read_visibility: Visibility | None = None
    compose_visibility: Visibility | None = None
    allowed_wallets: frozenset[EthereumAddress] = field(default_factory=frozenset)
    allowed_composers: frozenset[str] = field(default_factory=frozenset)

    def check_read(self, wallet: EthereumAddress) -> None:
        """Raise AccessDeniedError if ``wallet`` cannot read."""
        if not can_read(self.read_visibility, self.allowed_wallets, wallet, self.owner):
            logger.debug(f"Read denied for {wallet} on {self.stream_ref}")
            raise AccessDeniedError(
                f"Access denied: {wallet} lacks {Permission.READ.value} on {self.stream_ref}",
                actor=str(wallet),
                resource_id=self.stream_ref,
                required_permission=Permission.READ.value,
            )

    def check_compose(self, composer_dbid: str) -> None:
        """Raise AccessDeniedError if ``composer_dbid`` cannot use this stream."""
        if not can_compose(self.compose_visibility, self.allowed_composers, composer_dbid):
            logger.debug(f"Compose denied for {composer_dbid} on {self.stream_ref}")
            raise AccessDeniedError(
                f"Access denied: {composer_dbid} lacks {Permission.COMPOSE.value} "
                f"on {self.stream_ref}",
                actor=composer_dbid,
                resource_id=self.stream_ref,
                required_permission=Permission.COMPOSE.value,
            )
