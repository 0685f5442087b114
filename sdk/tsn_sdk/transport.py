"""
Transport protocol between the SDK and the ledger-backed database.

The SDK never talks to the network itself. It drives a Transport, which
is responsible for encoding, signing and broadcasting. This module defines
the protocol, the dataset and transaction types it exchanges, and the
transport error family.

Invariants:
    - call() is read-only and returns rows as column-name mappings
    - execute() returns a tx hash immediately; durability comes from query_tx
    - Optional arguments are passed as None (explicit null)
    - get_schema() raises DatasetNotFoundError for unknown datasets

How to change safely:
    - Protocol changes require updating InMemoryTransport
    - Keep argument lists positional; procedures are positional
"""

from __future__ import annotations

from abc import abstractmethod
from dataclasses import dataclass, field
from typing import Any, Optional, Protocol, Sequence, runtime_checkable

# A dataset is treated as a stream only if it exposes all of these
STREAM_FINGERPRINT_PROCEDURES: tuple[str, ...] = ("get_index", "get_record", "get_metadata")

Row = dict[str, Any]


class TransportError(Exception):
    """Base exception for transport operations."""

    pass


class DatasetNotFoundError(TransportError):
    """The requested dataset is not deployed."""

    def __init__(self, dbid: str) -> None:
        super().__init__(f"dataset not found: {dbid}")
        self.dbid = dbid


class ProcedureError(TransportError):
    """A procedure call was rejected by the remote engine."""

    def __init__(self, procedure: str, message: str) -> None:
        super().__init__(f"{procedure}: {message}")
        self.procedure = procedure
        self.reason = message


@dataclass(frozen=True)
class DatasetSchema:
    """Deployed dataset schema.

    Attributes:
        name: Dataset name (the stream id for streams)
        owner: Raw owner address bytes
        procedures: Names of the procedures the dataset exposes
    """

    name: str
    owner: bytes
    procedures: tuple[str, ...] = field(default_factory=tuple)

    def is_stream(self) -> bool:
        """Whether the dataset exposes the stream fingerprint procedures."""
        available = set(self.procedures)
        return all(name in available for name in STREAM_FINGERPRINT_PROCEDURES)


@dataclass(frozen=True)
class DatasetInfo:
    """Listing entry for a deployed dataset."""

    dbid: str
    name: str
    owner: bytes


@dataclass(frozen=True)
class TxResult:
    """Outcome of an included transaction.

    Attributes:
        tx_hash: Transaction hash
        height: Block height of inclusion
        code: 0 on success
        log: Error message when code is non-zero
    """

    tx_hash: str
    height: int
    code: int = 0
    log: str = ""

    @property
    def success(self) -> bool:
        return self.code == 0


@runtime_checkable
class Transport(Protocol):
    """Protocol for ledger transports.

    Implementations bind a signer; ``address`` is its raw identity.

    Example:
        >>> transport = InMemoryTransport(ledger, owner_address)
        >>> rows = await transport.call(dbid, "get_metadata", ["type", True, None])
    """

    @property
    @abstractmethod
    def address(self) -> bytes:
        """Raw address bytes of the signer."""
        ...

    @abstractmethod
    async def call(self, dbid: str, procedure: str, args: Sequence[Any]) -> list[Row]:
        """Run a read-only procedure.

        Raises:
            DatasetNotFoundError: If the dataset is not deployed
            ProcedureError: If the procedure rejects the call
        """
        ...

    @abstractmethod
    async def execute(
        self, dbid: str, procedure: str, rows: Sequence[Sequence[Any]]
    ) -> str:
        """Broadcast a state-changing procedure, one invocation per row.

        Returns:
            Transaction hash
        """
        ...

    @abstractmethod
    async def get_schema(self, dbid: str) -> DatasetSchema:
        """Fetch a dataset schema.

        Raises:
            DatasetNotFoundError: If the dataset is not deployed
        """
        ...

    @abstractmethod
    async def query_tx(self, tx_hash: str) -> Optional[TxResult]:
        """Return the tx result, or None while it is still pending."""
        ...

    @abstractmethod
    async def deploy_dataset(self, schema: DatasetSchema) -> str:
        """Deploy a dataset owned by the signer; returns the tx hash."""
        ...

    @abstractmethod
    async def drop_dataset(self, name: str) -> str:
        """Drop the signer's dataset called ``name``; returns the tx hash."""
        ...

    @abstractmethod
    async def list_datasets(self, owner: Optional[bytes] = None) -> list[DatasetInfo]:
        """List deployed datasets, optionally filtered by owner."""
        ...
