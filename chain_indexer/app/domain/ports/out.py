from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Protocol

from chain_indexer.app.domain.chains import ChainConfig
from chain_indexer.app.domain.events import DecodedEvent
from chain_indexer.app.domain.models import (
    Address,
    Block,
    Log,
    Token,
    TokenBalance,
    TokenMetadata,
    TokenTransfer,
    Transaction,
)

# Raw node payloads (web3 AttributeDict or plain dicts in tests).
RawBlock = Mapping[str, Any]
RawReceipt = Mapping[str, Any]


class ChainConnection(Protocol):
    """
    Port for read access to a single chain's RPC endpoint.

    Implementations are bound to one ChainConfig and one endpoint URL for
    their whole lifetime; transport failures surface as FetchError.
    """

    @property
    def chain_id(self) -> int: ...

    @property
    def config(self) -> ChainConfig: ...

    @property
    def endpoint(self) -> str: ...

    async def latest_block_number(self) -> int: ...

    async def block_by_number(self, number: int) -> RawBlock | None: ...

    async def block_by_hash(self, block_hash: str) -> RawBlock | None: ...

    async def transaction_receipt(self, tx_hash: str) -> RawReceipt | None: ...

    async def balance(self, address: str, block: int | str = "latest") -> str: ...

    async def code(self, address: str, block: int | str = "latest") -> str | None: ...

    async def estimate_gas(self, tx: Mapping[str, Any]) -> int: ...

    async def gas_price(self) -> str: ...

    async def health_check(self) -> bool: ...

    async def close(self) -> None: ...


class ChainConnectionProvider(Protocol):
    """Read side of the chain registry, as seen by the sync engine."""

    def active_configs(self) -> frozenset[ChainConfig]: ...

    def connection(self, chain_id: int) -> ChainConnection: ...


class IndexerStorage(Protocol):
    """
    Port for persisting normalized chain records.

    Every write is an idempotent single statement (upsert or insert-or-skip),
    so the port is safe to share between concurrently running chain tasks.
    Failures surface as StorageError.
    """

    async def latest_block(self, chain_id: int) -> Block | None: ...

    async def get_block_by_number(self, chain_id: int, block_number: int) -> Block | None: ...

    async def get_block_by_hash(self, chain_id: int, block_hash: str) -> Block | None: ...

    async def insert_or_update_block(self, block: Block) -> None: ...

    async def insert_or_update_transaction(self, tx: Transaction) -> bool:
        """Return True when a new row was written, False when an existing one was completed."""
        ...

    async def insert_log(self, log: Log) -> None: ...

    async def upsert_token(self, token: Token) -> None: ...

    async def insert_token_transfer(self, transfer: TokenTransfer) -> bool:
        """Return True when a new row was written, False on a duplicate."""
        ...

    async def get_token_balance(
        self,
        chain_id: int,
        token_address: str,
        holder_address: str,
    ) -> TokenBalance | None: ...

    async def upsert_token_balance(self, balance: TokenBalance) -> None: ...

    async def upsert_address(self, address: Address) -> None: ...

    async def tokens_missing_metadata(
        self,
        chain_id: int,
        limit: int | None = None,
    ) -> list[str]: ...


class EvmEventDecoder(Protocol):
    def decode(self, log: Log) -> DecodedEvent | None:
        """
        Decode a stored log into a typed event.

        Return:
          - the decoded event when the log matches the decoder's signature
          - None otherwise (not an error, the log stays a plain Log)
        """
        ...


class Erc20TokenMetadataFetcher(Protocol):
    """
    Low-level dependency used by token metadata enrichment.

    Implementations perform eth_call against the ERC-20 contract; any
    field the contract does not answer is None.
    """

    async def fetch(self, *, token_address: str) -> TokenMetadata: ...
