from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum

from chain_indexer.app.application.services.sync.block_processor import BlockProcessor
from chain_indexer.app.domain.errors import IndexerError
from chain_indexer.app.domain.ports.out import ChainConnection, IndexerStorage

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 100
DEFAULT_POLL_INTERVAL_SECONDS = 5.0


class SyncState(str, Enum):
    IDLE = "idle"
    POLLING = "polling"
    SYNCING = "syncing"
    STOPPED = "stopped"


@dataclass(frozen=True)
class BlockRange:
    from_block: int
    to_block: int

    def validate(self) -> None:
        if self.from_block < 0 or self.to_block < 0:
            raise ValueError("Block numbers must be non-negative")
        if self.from_block > self.to_block:
            raise ValueError("from_block must be <= to_block")


class ChainSyncer:
    """
    Polling / catch-up loop for a single chain.

    Each tick compares the chain head with the highest stored block and
    processes at most `batch_size` heights after it, strictly in ascending
    order. A failed height aborts the tick; the stored head therefore never
    moves past an unprocessed block and the next tick retries from there.

    `stop_event` is shared by all chains. It is checked between blocks and
    it wakes the interval wait, so a stop is observed within one block or
    one tick.
    """

    def __init__(
        self,
        *,
        connection: ChainConnection,
        storage: IndexerStorage,
        processor: BlockProcessor,
        stop_event: asyncio.Event,
        batch_size: int = DEFAULT_BATCH_SIZE,
        poll_interval: float = DEFAULT_POLL_INTERVAL_SECONDS,
    ) -> None:
        if batch_size <= 0:
            raise ValueError("batch_size must be positive")
        if poll_interval <= 0:
            raise ValueError("poll_interval must be positive")
        self._connection = connection
        self._storage = storage
        self._processor = processor
        self._stop_event = stop_event
        self._batch_size = batch_size
        self._poll_interval = poll_interval
        self._chain_id = connection.chain_id
        self._state = SyncState.IDLE

    @property
    def chain_id(self) -> int:
        return self._chain_id

    @property
    def state(self) -> SyncState:
        return self._state

    async def run(self) -> None:
        logger.info("Starting chain indexer: chain_id=%s", self._chain_id)

        while not self._stop_event.is_set():
            try:
                await self.sync_once()
            except IndexerError as exc:
                logger.error("Sync error: chain_id=%s error=%s", self._chain_id, exc)
            except Exception:
                # Unexpected bugs are retried next tick; other chains keep running.
                logger.exception("Unexpected sync error: chain_id=%s", self._chain_id)

            if self._stop_event.is_set():
                break
            self._state = SyncState.POLLING
            await self._wait_for_next_tick()

        self._state = SyncState.STOPPED
        logger.info("Stop signal received, chain indexer stopped: chain_id=%s", self._chain_id)

    async def sync_once(self) -> BlockRange | None:
        """
        Run one tick. Returns the range of heights stored, or None when the
        stored head already matches the chain head.
        """
        self._state = SyncState.POLLING

        chain_head = await self._connection.latest_block_number()
        latest = await self._storage.latest_block(self._chain_id)
        # -1 = nothing stored yet, start from genesis
        stored_head = latest.block_number if latest is not None else -1

        if chain_head <= stored_head:
            return None

        batch = BlockRange(
            from_block=stored_head + 1,
            to_block=min(stored_head + self._batch_size, chain_head),
        )
        batch.validate()

        self._state = SyncState.SYNCING
        logger.info(
            "Syncing blocks: chain_id=%s from=%s to=%s total_behind=%s",
            self._chain_id,
            batch.from_block,
            batch.to_block,
            chain_head - stored_head,
        )

        last_done = stored_head
        for number in range(batch.from_block, batch.to_block + 1):
            if self._stop_event.is_set():
                logger.info("Stopping mid-batch: chain_id=%s next_block=%s", self._chain_id, number)
                break
            try:
                await self._processor.process_block(number)
            except IndexerError:
                logger.error("Failed to process block: chain_id=%s block=%s", self._chain_id, number)
                raise
            last_done = number

        if last_done == stored_head:
            return None

        logger.info(
            "Sync batch complete: chain_id=%s synced_from=%s synced_to=%s",
            self._chain_id,
            batch.from_block,
            last_done,
        )
        return BlockRange(from_block=batch.from_block, to_block=last_done)

    async def _wait_for_next_tick(self) -> None:
        try:
            await asyncio.wait_for(self._stop_event.wait(), timeout=self._poll_interval)
        except asyncio.TimeoutError:
            pass
