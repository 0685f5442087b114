"""
TSN Client for Python SDK.

This module provides the main client interface:
- TsnClient: stream deployment, loading, listing and tx confirmation

Example:
    >>> client = TsnClient(transport)
    >>> stream_id = generate_stream_id("cpi")
    >>> await client.wait_for_tx(await client.deploy_stream(stream_id, StreamType.PRIMITIVE))
    >>> stream = await client.load_primitive_stream(client.own_stream_locator(stream_id))
    >>> await client.wait_for_tx(await stream.initialize())

Invariants:
    - Mutations return a tx hash; they are durable only after wait_for_tx
    - Composite workflows wait for each step before issuing the next
    - The client holds no state beyond its transport, settings and logger
"""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

from .composed import ComposedStream
from .config import ClientSettings
from .contracts import get_contract
from .errors import (
    DatasetExistsError,
    RemoteError,
    StreamNotFoundError,
    TransactionFailedError,
    ValidationError,
)
from .identifiers import EthereumAddress, StreamId, generate_dbid
from .primitive import PrimitiveStream
from .stream import Stream
from .transport import DatasetInfo, DatasetNotFoundError, Transport, TransportError, TxResult
from .types import StreamLocator, StreamType, Taxonomy


class TsnClient:
    """Client for deploying and addressing streams.

    Example:
        >>> client = TsnClient(transport, settings=ClientSettings(tx_poll_interval=0.1))
        >>> streams = await client.get_all_streams()
    """

    def __init__(
        self,
        transport: Transport,
        *,
        settings: ClientSettings | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        """Initialize client.

        Args:
            transport: Ledger transport bound to the signer
            settings: SDK settings (defaults loaded from environment)
            logger: Logger passed to every stream handle
        """
        self._transport = transport
        self.settings = settings or ClientSettings()
        self._logger = logger or logging.getLogger(__name__)

    @property
    def address(self) -> EthereumAddress:
        """Signer address."""
        return EthereumAddress.from_bytes(self._transport.address)

    def own_stream_locator(self, stream_id: StreamId) -> StreamLocator:
        """Locator of a stream owned by the signer."""
        return StreamLocator(stream_id=stream_id, data_provider=self.address)

    async def deploy_stream(self, stream_id: StreamId, stream_type: StreamType) -> str:
        """Deploy a stream dataset owned by the signer.

        Returns:
            Transaction hash

        Raises:
            ValidationError: If ``stream_type`` is unknown
        """
        schema = get_contract(stream_type, stream_id, self._transport.address)
        self._logger.debug(f"Deploying {stream_type.value} stream {stream_id}")
        try:
            return await self._transport.deploy_dataset(schema)
        except TransportError as e:
            raise RemoteError(str(e), operation="deploy", stream_id=str(stream_id)) from e

    async def destroy_stream(self, stream_id: StreamId) -> str:
        """Drop a stream owned by the signer, with all its data."""
        self._logger.debug(f"Destroying stream {stream_id}")
        try:
            return await self._transport.drop_dataset(str(stream_id))
        except TransportError as e:
            raise RemoteError(str(e), operation="drop", stream_id=str(stream_id)) from e

    async def load_stream(self, locator: StreamLocator) -> Stream:
        """Load a deployed stream.

        Raises:
            StreamNotFoundError: If the stream is not deployed
        """
        return await Stream.load(self._transport, locator, logger=self._logger)

    async def load_primitive_stream(self, locator: StreamLocator) -> PrimitiveStream:
        """Load a deployed, initialized primitive stream.

        Raises:
            StreamNotFoundError: If the stream is not deployed
            StreamNotInitializedError: If the stream has no type yet
            StreamTypeError: If the stream is composed
        """
        stream = await self.load_stream(locator)
        return await stream.as_primitive()

    async def load_composed_stream(self, locator: StreamLocator) -> ComposedStream:
        """Load a deployed, initialized composed stream.

        Raises:
            StreamNotFoundError: If the stream is not deployed
            StreamNotInitializedError: If the stream has no type yet
            StreamTypeError: If the stream is primitive
        """
        stream = await self.load_stream(locator)
        return await stream.as_composed()

    async def wait_for_tx(self, tx_hash: str, interval: Optional[float] = None) -> TxResult:
        """Poll until a transaction is included.

        There is no built-in timeout; wrap in ``asyncio.wait_for`` to bound it.

        Args:
            tx_hash: Transaction hash returned by a mutation
            interval: Seconds between polls (defaults to settings)

        Returns:
            The successful TxResult

        Raises:
            TransactionFailedError: If the transaction failed
        """
        delay = self.settings.tx_poll_interval if interval is None else interval
        while True:
            try:
                result = await self._transport.query_tx(tx_hash)
            except TransportError as e:
                raise RemoteError(str(e), operation="query_tx") from e

            if result is not None:
                break
            await asyncio.sleep(delay)

        if not result.success:
            self._logger.warning(f"Transaction {tx_hash} failed: {result.log}")
            raise TransactionFailedError(tx_hash, result.log, result.code)
        return result

    async def get_all_streams(self, owner: EthereumAddress | None = None) -> list[StreamLocator]:
        """List deployed streams, optionally only those of ``owner``.

        Datasets that are not streams (wrong name format, bad owner, or
        missing stream procedures) are skipped.
        """
        try:
            datasets = await self._transport.list_datasets(owner.bytes if owner else None)
        except TransportError as e:
            raise RemoteError(str(e), operation="list_datasets") from e

        locators: list[StreamLocator] = []
        for info in datasets:
            locator = await self._stream_locator(info)
            if locator is not None:
                locators.append(locator)
        return locators

    async def get_all_initialized_streams(
        self, owner: EthereumAddress | None = None
    ) -> list[StreamLocator]:
        """Like ``get_all_streams`` but only streams that have been initialized."""
        initialized: list[StreamLocator] = []
        for locator in await self.get_all_streams(owner):
            stream = Stream(self._transport, locator, logger=self._logger)
            if await stream.is_initialized():
                initialized.append(locator)
        return initialized

    async def _stream_locator(self, info: DatasetInfo) -> StreamLocator | None:
        try:
            locator = StreamLocator(
                stream_id=StreamId(info.name),
                data_provider=EthereumAddress.from_bytes(info.owner),
            )
        except ValidationError as e:
            self._logger.warning(f"Skipping dataset {info.dbid}: {e.message}")
            return None

        try:
            schema = await self._transport.get_schema(info.dbid)
        except DatasetNotFoundError:
            # dropped between listing and lookup
            self._logger.warning(f"Skipping dataset {info.dbid}: no longer deployed")
            return None
        except TransportError as e:
            raise RemoteError(str(e), operation="get_schema", stream_id=info.name) from e

        if not schema.is_stream():
            self._logger.debug(f"Skipping dataset {info.dbid}: not a stream")
            return None
        return locator

    async def deploy_composed_stream_with_taxonomy(
        self, stream_id: StreamId, taxonomy: Taxonomy
    ) -> ComposedStream:
        """Deploy, initialize and set the taxonomy of a composed stream.

        Each step is confirmed before the next one is issued.

        Raises:
            StreamNotFoundError: If a child stream is not deployed
            ValidationError: If the stream would be its own child
            DatasetExistsError: If the stream is already deployed
            TransactionFailedError: If any step fails
        """
        locator = self.own_stream_locator(stream_id)

        for item in taxonomy.items:
            if item.child_stream == locator:
                raise ValidationError(
                    f"Stream {stream_id} cannot be a child of itself",
                    field_name="taxonomy",
                    value=str(locator),
                )
            await self.load_stream(item.child_stream)

        dbid = generate_dbid(stream_id, locator.data_provider.bytes)
        try:
            await self.load_stream(locator)
        except StreamNotFoundError:
            pass
        else:
            raise DatasetExistsError(str(stream_id), dbid)

        self._logger.info(f"Deploying composed stream {stream_id}")
        await self.wait_for_tx(await self.deploy_stream(stream_id, StreamType.COMPOSED))

        stream = await self.load_stream(locator)
        self._logger.info(f"Initializing composed stream {stream_id}")
        await self.wait_for_tx(await stream.initialize())

        composed = await stream.as_composed()
        self._logger.info(f"Setting taxonomy of {stream_id} ({len(taxonomy)} children)")
        await self.wait_for_tx(await composed.set_taxonomy(taxonomy))
        return composed
