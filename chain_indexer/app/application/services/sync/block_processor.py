from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from datetime import datetime
from typing import Any

from chain_indexer.app.application.services.record_mappers import (
    map_addresses,
    map_block,
    map_log,
    map_token,
    map_token_balance,
    map_token_transfer,
    map_transaction,
    to_hex,
)
from chain_indexer.app.domain.errors import FetchError, MappingError
from chain_indexer.app.domain.events import DecodedEvent, Erc20Transfer
from chain_indexer.app.domain.models import Block, Log
from chain_indexer.app.domain.ports.out import (
    ChainConnection,
    EvmEventDecoder,
    IndexerStorage,
    RawReceipt,
)

logger = logging.getLogger(__name__)


class BlockProcessor:
    """
    Fetches one block of one chain and writes everything derived from it.

    Order of writes: per transaction (in block order) the Transaction row,
    the touched Address rows, its receipt Logs and decoded token activity;
    the Block row goes last. `latest_block` therefore only ever returns a
    height whose transactions are all stored.

    Fetch failures, block mapping failures and every StorageError propagate
    so the caller can abort its batch and retry the same height. Malformed
    transactions (MappingError) are logged and the next one is processed.
    Every write is idempotent on retry: addresses are only counted for a
    newly inserted transaction, balances only for a newly inserted transfer.
    """

    def __init__(
        self,
        *,
        connection: ChainConnection,
        storage: IndexerStorage,
        decoders: Sequence[EvmEventDecoder] = (),
    ) -> None:
        self._connection = connection
        self._storage = storage
        self._decoders = tuple(decoders)
        self._chain_id = connection.chain_id

    async def process_block(self, number: int) -> Block:
        raw = await self._connection.block_by_number(number)
        if raw is None:
            raise FetchError(self._chain_id, "eth_getBlockByNumber", f"block {number} not found")

        block = map_block(raw, self._chain_id)

        failed = 0
        for index, raw_tx in enumerate(raw.get("transactions") or ()):
            try:
                await self._process_transaction(raw_tx, block, index)
            except MappingError as exc:
                failed += 1
                logger.warning(
                    "Skipping malformed transaction: chain_id=%s block=%s tx_index=%s error=%s",
                    self._chain_id,
                    number,
                    index,
                    exc,
                )

        await self._storage.insert_or_update_block(block)

        logger.debug(
            "Processed block: chain_id=%s block=%s hash=%s tx_count=%s failed_txs=%s",
            self._chain_id,
            block.block_number,
            block.hash,
            block.tx_count,
            failed,
        )
        return block

    # ---------------------------------------------------------------------
    # Transactions
    # ---------------------------------------------------------------------

    async def _process_transaction(self, raw_tx: Any, block: Block, index: int) -> None:
        if not isinstance(raw_tx, Mapping) or "hash" not in raw_tx:
            raise MappingError(f"Expected a full transaction object, got {type(raw_tx).__name__}")

        try:
            tx_hash = to_hex(raw_tx["hash"])
        except TypeError as exc:
            raise MappingError(f"Invalid transaction hash: {exc}") from exc
        receipt = await self._fetch_receipt(tx_hash)

        tx = map_transaction(
            raw_tx,
            self._chain_id,
            block_number=block.block_number,
            block_hash=block.hash,
            transaction_index=index,
            timestamp=block.timestamp,
            receipt=receipt,
        )
        inserted = await self._storage.insert_or_update_transaction(tx)

        if inserted:
            for address in map_addresses(tx, timestamp=block.timestamp):
                await self._storage.upsert_address(address)

        if receipt is not None:
            for raw_log in receipt.get("logs") or ():
                await self._process_log(raw_log, block)

    async def _fetch_receipt(self, tx_hash: str) -> RawReceipt | None:
        try:
            receipt = await self._connection.transaction_receipt(tx_hash)
        except FetchError as exc:
            logger.warning(
                "Failed to get receipt: chain_id=%s tx_hash=%s error=%s",
                self._chain_id,
                tx_hash,
                exc,
            )
            return None
        if receipt is None:
            logger.warning("Receipt not available: chain_id=%s tx_hash=%s", self._chain_id, tx_hash)
        return receipt

    # ---------------------------------------------------------------------
    # Logs / events
    # ---------------------------------------------------------------------

    async def _process_log(self, raw_log: Mapping[str, Any], block: Block) -> None:
        try:
            log = map_log(raw_log, self._chain_id)
        except MappingError as exc:
            logger.warning("Skipping malformed log: chain_id=%s block=%s error=%s", self._chain_id, block.block_number, exc)
            return

        await self._storage.insert_log(log)

        event = self._decode(log)
        if isinstance(event, Erc20Transfer):
            await self._apply_erc20_transfer(event, log, block.timestamp)

    def _decode(self, log: Log) -> DecodedEvent | None:
        for decoder in self._decoders:
            event = decoder.decode(log)
            if event is not None:
                return event
        return None

    async def _apply_erc20_transfer(self, event: Erc20Transfer, log: Log, timestamp: datetime) -> None:
        await self._storage.upsert_token(map_token(self._chain_id, event.token_address))

        inserted = await self._storage.insert_token_transfer(
            map_token_transfer(event, log, timestamp=timestamp)
        )
        if not inserted:
            # Already applied by an earlier pass over this block.
            return

        value = int(event.value)
        if not event.is_mint:
            await self._apply_balance_delta(event.token_address, event.from_address, -value, timestamp)
        if not event.is_burn:
            await self._apply_balance_delta(event.token_address, event.to_address, value, timestamp)

    async def _apply_balance_delta(self, token: str, holder: str, delta: int, timestamp: datetime) -> None:
        current = await self._storage.get_token_balance(self._chain_id, token, holder)
        base = int(current.balance) if current is not None else 0
        # Holders seen only from the middle of history can go "negative".
        new_balance = max(base + delta, 0)
        await self._storage.upsert_token_balance(
            map_token_balance(self._chain_id, token, holder, new_balance, updated_at=timestamp)
        )
