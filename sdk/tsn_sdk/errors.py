"""
Error types for the TSN SDK.

This module defines all exception types raised by the SDK:
- TsnError: Base exception
- ValidationError: Malformed identifier, address or value
- MetadataTypeError / UnsupportedMetadataTypeError: Codec failures
- StreamNotFoundError, MetadataValueNotFoundError, RecordNotFoundError: Not found
- DatasetExistsError: Deploying over an existing dataset
- StreamNotInitializedError, StreamTypeError: State preconditions
- DecodeError: A remote row could not be decoded
- RemoteError, TransactionFailedError: Remote failures with context
- AccessDeniedError, TaxonomyCycleError: Server-side rule violations

Invariants:
    - All errors inherit from TsnError
    - Errors include context for debugging
    - Error messages are actionable
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class TsnError(Exception):
    """Base exception for all TSN SDK errors.

    Attributes:
        message: Error message
        code: Error code for programmatic handling
        details: Additional error context
    """

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or "TSN_ERROR"
        self.details = details or {}


class ValidationError(TsnError):
    """Input validation failed before any remote call.

    Raised when:
    - Stream id is not "st" + 30 chars
    - Address is not 40 hex digits
    - Visibility value is not 0 or 1
    - Taxonomy weight is negative or not finite
    """

    def __init__(
        self,
        message: str,
        field_name: Optional[str] = None,
        value: Any = None,
    ) -> None:
        super().__init__(
            message,
            code="VALIDATION_ERROR",
            details={"field": field_name, "value": value},
        )
        self.field_name = field_name
        self.value = value


class MetadataTypeError(TsnError):
    """Metadata value does not match the key's declared type."""

    def __init__(self, message: str, expected: str, actual: str) -> None:
        super().__init__(
            message,
            code="METADATA_TYPE_MISMATCH",
            details={"expected": expected, "actual": actual},
        )
        self.expected = expected
        self.actual = actual


class UnsupportedMetadataTypeError(TsnError):
    """Metadata type is not one of int, bool, string or ref."""

    def __init__(self, metadata_type: Any) -> None:
        super().__init__(
            f"Unsupported metadata type: {metadata_type!r}",
            code="UNSUPPORTED_METADATA_TYPE",
            details={"metadata_type": str(metadata_type)},
        )
        self.metadata_type = metadata_type


class NotFoundError(TsnError):
    """Resource not found.

    Attributes:
        resource_type: Kind of resource (stream, metadata, record)
        resource_id: Identifier of the missing resource
    """

    def __init__(
        self,
        message: str,
        resource_type: str,
        resource_id: str,
        code: str = "NOT_FOUND",
    ) -> None:
        super().__init__(
            message,
            code=code,
            details={
                "resource_type": resource_type,
                "resource_id": resource_id,
            },
        )
        self.resource_type = resource_type
        self.resource_id = resource_id


class StreamNotFoundError(NotFoundError):
    """Stream dataset is not deployed."""

    def __init__(self, stream_id: str, dbid: Optional[str] = None) -> None:
        super().__init__(
            f"Stream not found: {stream_id}",
            resource_type="stream",
            resource_id=stream_id,
            code="STREAM_NOT_FOUND",
        )
        self.details["dbid"] = dbid
        self.dbid = dbid


class MetadataValueNotFoundError(NotFoundError):
    """No enabled metadata row matches the (key, ref) pair."""

    def __init__(self, key: str, ref: str) -> None:
        super().__init__(
            f"Metadata value not found: {key}={ref}",
            resource_type="metadata",
            resource_id=f"{key}:{ref}",
            code="METADATA_VALUE_NOT_FOUND",
        )
        self.key = key
        self.ref = ref


class RecordNotFoundError(NotFoundError):
    """First-record query returned no rows."""

    def __init__(self, stream_id: str) -> None:
        super().__init__(
            f"Record not found in stream {stream_id}",
            resource_type="record",
            resource_id=stream_id,
            code="RECORD_NOT_FOUND",
        )


class DatasetExistsError(TsnError):
    """A dataset with this stream id is already deployed for the owner."""

    def __init__(self, stream_id: str, dbid: str) -> None:
        super().__init__(
            f"Dataset already exists for stream {stream_id} ({dbid})",
            code="DATASET_EXISTS",
            details={"stream_id": stream_id, "dbid": dbid},
        )
        self.stream_id = stream_id
        self.dbid = dbid


class StreamNotInitializedError(TsnError):
    """Operation attempted before the stream's type row exists.

    Call ``initialize()`` and wait for the transaction first.
    """

    def __init__(self, stream_id: str) -> None:
        super().__init__(
            f"Stream {stream_id} is not initialized; call initialize() and wait "
            "for the transaction before using it",
            code="STREAM_NOT_INITIALIZED",
            details={"stream_id": stream_id},
        )
        self.stream_id = stream_id


class StreamTypeError(TsnError):
    """Primitive-only operation on a composed stream, or vice versa."""

    def __init__(self, stream_id: str, expected: str, actual: str) -> None:
        super().__init__(
            f"Stream {stream_id} is not a {expected} stream (it is {actual})",
            code="STREAM_TYPE_MISMATCH",
            details={"stream_id": stream_id, "expected": expected, "actual": actual},
        )
        self.stream_id = stream_id
        self.expected = expected
        self.actual = actual


class DecodeError(TsnError):
    """A remote row could not be decoded into the expected result.

    The original parse error is available as ``__cause__``.
    """

    def __init__(self, message: str, procedure: Optional[str] = None) -> None:
        super().__init__(
            message,
            code="DECODE_ERROR",
            details={"procedure": procedure},
        )
        self.procedure = procedure


class RemoteError(TsnError):
    """The transport failed; the original error is ``__cause__``.

    Attributes:
        operation: Procedure or transport operation name
        stream_id: Target stream, when known
    """

    def __init__(
        self,
        message: str,
        operation: str,
        stream_id: Optional[str] = None,
    ) -> None:
        super().__init__(
            f"{operation} failed for stream {stream_id or '-'}: {message}",
            code="REMOTE_ERROR",
            details={"operation": operation, "stream_id": stream_id},
        )
        self.operation = operation
        self.stream_id = stream_id


class TransactionFailedError(TsnError):
    """Transaction was included but its execution failed."""

    def __init__(self, tx_hash: str, log: str, tx_code: int) -> None:
        super().__init__(
            f"Transaction {tx_hash} failed (code {tx_code}): {log}",
            code="TRANSACTION_FAILED",
            details={"tx_hash": tx_hash, "log": log, "tx_code": tx_code},
        )
        self.tx_hash = tx_hash
        self.log = log
        self.tx_code = tx_code


class AccessDeniedError(TsnError):
    """Read or compose access refused by stream visibility rules."""

    def __init__(
        self,
        message: str,
        actor: str,
        resource_id: str,
        required_permission: Optional[str] = None,
    ) -> None:
        super().__init__(
            message,
            code="ACCESS_DENIED",
            details={
                "actor": actor,
                "resource_id": resource_id,
                "required_permission": required_permission,
            },
        )
        self.actor = actor
        self.resource_id = resource_id
        self.required_permission = required_permission


class TaxonomyCycleError(TsnError):
    """Composed stream references itself, or nesting is too deep."""

    def __init__(self, message: str, path: Optional[list[str]] = None) -> None:
        super().__init__(
            message,
            code="TAXONOMY_CYCLE",
            details={"path": path or []},
        )
        self.path = path or []
