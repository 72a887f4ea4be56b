from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable
from typing import Any, Mapping, TypeVar

import aiohttp
from web3 import AsyncHTTPProvider, AsyncWeb3
from web3.exceptions import BlockNotFound, TransactionNotFound, Web3Exception
from web3.middleware import ExtraDataToPOAMiddleware

from chain_indexer.app.domain.chains import ChainConfig
from chain_indexer.app.domain.errors import ConnectivityError, FetchError
from chain_indexer.app.domain.ports.out import ChainConnection, RawBlock, RawReceipt

logger = logging.getLogger(__name__)

_T = TypeVar("_T")

_DEFAULT_REQUEST_TIMEOUT_SECONDS = 30.0

# Everything a provider call can raise for a node / transport problem.
_RPC_ERRORS: tuple[type[BaseException], ...] = (
    Web3Exception,
    aiohttp.ClientError,
    asyncio.TimeoutError,
    OSError,
    ValueError,
)


class Web3ChainConnection(ChainConnection):
    """
    Chain connection backed by AsyncWeb3 over HTTP.

    Bound to one ChainConfig and to the endpoint that answered at connect
    time. Every read is bounded by the provider request timeout, and every
    provider / transport failure is re-raised as FetchError.
    """

    def __init__(self, *, w3: AsyncWeb3, config: ChainConfig, endpoint: str) -> None:
        self._w3 = w3
        self._config = config
        self._endpoint = endpoint

    @classmethod
    async def connect(
        cls,
        config: ChainConfig,
        endpoint: str,
        *,
        timeout: float = _DEFAULT_REQUEST_TIMEOUT_SECONDS,
    ) -> Web3ChainConnection:
        w3 = AsyncWeb3(
            AsyncHTTPProvider(
                endpoint,
                request_kwargs={"timeout": timeout},
            )
        )
        if config.poa:
            w3.middleware_onion.inject(ExtraDataToPOAMiddleware, layer=0)

        connection = cls(w3=w3, config=config, endpoint=endpoint)
        try:
            if not await w3.is_connected():
                raise ConnectivityError(config.chain_id, f"endpoint {endpoint} is not reachable")
            remote_chain_id = await w3.eth.chain_id
        except _RPC_ERRORS as exc:
            await connection.close()
            raise ConnectivityError(config.chain_id, f"endpoint {endpoint} failed: {exc!r}") from exc
        except ConnectivityError:
            await connection.close()
            raise

        if remote_chain_id != config.chain_id:
            await connection.close()
            raise ConnectivityError(
                config.chain_id,
                f"endpoint {endpoint} serves chain {remote_chain_id}",
            )
        return connection

    @property
    def chain_id(self) -> int:
        return self._config.chain_id

    @property
    def config(self) -> ChainConfig:
        return self._config

    @property
    def endpoint(self) -> str:
        return self._endpoint

    @property
    def w3(self) -> AsyncWeb3:
        return self._w3

    # ---------------------------------------------------------------------
    # Reads
    # ---------------------------------------------------------------------

    async def latest_block_number(self) -> int:
        return int(await self._call("eth_blockNumber", self._w3.eth.block_number))

    async def block_by_number(self, number: int) -> RawBlock | None:
        try:
            return await self._call(
                "eth_getBlockByNumber",
                self._w3.eth.get_block(number, full_transactions=True),
            )
        except FetchError as exc:
            if isinstance(exc.__cause__, BlockNotFound):
                return None
            raise

    async def block_by_hash(self, block_hash: str) -> RawBlock | None:
        try:
            return await self._call(
                "eth_getBlockByHash",
                self._w3.eth.get_block(block_hash, full_transactions=True),
            )
        except FetchError as exc:
            if isinstance(exc.__cause__, BlockNotFound):
                return None
            raise

    async def transaction_receipt(self, tx_hash: str) -> RawReceipt | None:
        try:
            return await self._call(
                "eth_getTransactionReceipt",
                self._w3.eth.get_transaction_receipt(tx_hash),
            )
        except FetchError as exc:
            if isinstance(exc.__cause__, TransactionNotFound):
                return None
            raise

    async def balance(self, address: str, block: int | str = "latest") -> str:
        checksum = self._w3.to_checksum_address(address)
        wei = await self._call("eth_getBalance", self._w3.eth.get_balance(checksum, block))
        return str(wei)

    async def code(self, address: str, block: int | str = "latest") -> str | None:
        checksum = self._w3.to_checksum_address(address)
        raw = await self._call("eth_getCode", self._w3.eth.get_code(checksum, block))
        code = bytes(raw)
        return "0x" + code.hex() if code else None

    async def estimate_gas(self, tx: Mapping[str, Any]) -> int:
        return int(await self._call("eth_estimateGas", self._w3.eth.estimate_gas(dict(tx))))

    async def gas_price(self) -> str:
        return str(await self._call("eth_gasPrice", self._w3.eth.gas_price))

    async def health_check(self) -> bool:
        try:
            await self.latest_block_number()
        except FetchError:
            logger.warning("Health check failed: chain_id=%s endpoint=%s", self.chain_id, self._endpoint)
            return False
        return True

    async def close(self) -> None:
        disconnect = getattr(self._w3.provider, "disconnect", None)
        if disconnect is None:
            return
        try:
            await disconnect()
        except NotImplementedError:
            pass

    async def _call(self, operation: str, awaitable: Awaitable[_T]) -> _T:
        try:
            return await awaitable
        except _RPC_ERRORS as exc:
            raise FetchError(self.chain_id, operation, repr(exc)) from exc
