"""
TSN Python SDK - Client library for TSN streams.

This SDK provides a typed interface to primitive and composed streams:
- Identifiers (StreamId, EthereumAddress, generate_stream_id)
- Typed metadata values and keys
- Stream handles with metadata, access control and record reads
- Composed streams with weighted, versioned taxonomies
- TsnClient for deploying, loading and listing streams
- An in-memory ledger transport for tests and local development

Example:
    >>> from tsn_sdk import InMemoryLedger, InMemoryTransport, TsnClient
    >>>
    >>> transport = InMemoryTransport(InMemoryLedger(), owner_address)
    >>> client = TsnClient(transport)
    >>> stream_id = generate_stream_id("cpi")
    >>> await client.wait_for_tx(await client.deploy_stream(stream_id, StreamType.PRIMITIVE))

Invariants:
    - Addresses are lowercase and 0x-prefixed everywhere
    - Metadata is append-only; revocation is a soft disable
    - Mutations are durable only after wait_for_tx

Version: 1.0.0
"""

__version__ = "1.0.0"

from .client import TsnClient
from .composed import ComposedStream
from .config import ClientSettings, setup_logging
from .errors import (
    AccessDeniedError,
    DatasetExistsError,
    DecodeError,
    MetadataTypeError,
    MetadataValueNotFoundError,
    NotFoundError,
    RecordNotFoundError,
    RemoteError,
    StreamNotFoundError,
    StreamNotInitializedError,
    StreamTypeError,
    TaxonomyCycleError,
    TransactionFailedError,
    TsnError,
    UnsupportedMetadataTypeError,
    ValidationError,
)
from .identifiers import EthereumAddress, StreamId, generate_dbid, generate_stream_id
from .memory import InMemoryLedger, InMemoryTransport
from .primitive import PrimitiveStream
from .stream import Stream
from .transport import DatasetInfo, DatasetSchema, Transport, TxResult
from .types import (
    GetFirstRecordInput,
    GetIndexInput,
    GetRecordInput,
    InsertRecordInput,
    MetadataKey,
    MetadataType,
    MetadataValue,
    StreamIndex,
    StreamLocator,
    StreamRecord,
    StreamType,
    Taxonomy,
    TaxonomyItem,
    Visibility,
)

__all__ = [
    # Version
    "__version__",
    # Identifiers
    "StreamId",
    "EthereumAddress",
    "generate_stream_id",
    "generate_dbid",
    # Types
    "StreamType",
    "Visibility",
    "MetadataKey",
    "MetadataType",
    "MetadataValue",
    "StreamLocator",
    "Taxonomy",
    "TaxonomyItem",
    "StreamRecord",
    "StreamIndex",
    "GetRecordInput",
    "GetIndexInput",
    "GetFirstRecordInput",
    "InsertRecordInput",
    # Streams
    "Stream",
    "PrimitiveStream",
    "ComposedStream",
    # Client
    "TsnClient",
    "ClientSettings",
    "setup_logging",
    # Transport
    "Transport",
    "DatasetSchema",
    "DatasetInfo",
    "TxResult",
    "InMemoryLedger",
    "InMemoryTransport",
    # Errors
    "TsnError",
    "ValidationError",
    "MetadataTypeError",
    "UnsupportedMetadataTypeError",
    "NotFoundError",
    "StreamNotFoundError",
    "MetadataValueNotFoundError",
    "RecordNotFoundError",
    "DatasetExistsError",
    "StreamNotInitializedError",
    "StreamTypeError",
    "DecodeError",
    "RemoteError",
    "TransactionFailedError",
    "AccessDeniedError",
    "TaxonomyCycleError",
]
