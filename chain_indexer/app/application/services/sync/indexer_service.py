from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence

from chain_indexer.app.application.services.sync.block_processor import BlockProcessor
from chain_indexer.app.application.services.sync.chain_syncer import (
    DEFAULT_BATCH_SIZE,
    DEFAULT_POLL_INTERVAL_SECONDS,
    ChainSyncer,
    SyncState,
)
from chain_indexer.app.domain.errors import ChainNotFoundError, ConnectivityError
from chain_indexer.app.domain.ports.out import (
    ChainConnectionProvider,
    EvmEventDecoder,
    IndexerStorage,
)

logger = logging.getLogger(__name__)


class IndexerService:
    """
    Runs one ChainSyncer task per connected chain until stopped.

    `stop()` broadcasts a single event to every chain task; `run()` returns
    once all of them have finished their in-flight block and exited.
    """

    def __init__(
        self,
        *,
        chains: ChainConnectionProvider,
        storage: IndexerStorage,
        decoders: Sequence[EvmEventDecoder] = (),
        batch_size: int = DEFAULT_BATCH_SIZE,
        poll_interval: float = DEFAULT_POLL_INTERVAL_SECONDS,
    ) -> None:
        self._chains = chains
        self._storage = storage
        self._decoders = tuple(decoders)
        self._batch_size = batch_size
        self._poll_interval = poll_interval
        self._stop_event = asyncio.Event()
        self._syncers: dict[int, ChainSyncer] = {}

    async def run(self) -> None:
        configs = sorted(self._chains.active_configs(), key=lambda c: c.chain_id)
        if not configs:
            raise ConnectivityError(None, "no active chains to index")

        logger.info("Starting indexer service: chains=%s", [c.chain_id for c in configs])

        for config in configs:
            connection = self._chains.connection(config.chain_id)
            self._syncers[config.chain_id] = ChainSyncer(
                connection=connection,
                storage=self._storage,
                processor=BlockProcessor(
                    connection=connection,
                    storage=self._storage,
                    decoders=self._decoders,
                ),
                stop_event=self._stop_event,
                batch_size=self._batch_size,
                poll_interval=self._poll_interval,
            )

        tasks = [
            asyncio.create_task(syncer.run(), name=f"sync-chain-{chain_id}")
            for chain_id, syncer in self._syncers.items()
        ]
        try:
            await asyncio.gather(*tasks)
        finally:
            # A crashed chain task takes the others down gracefully.
            self._stop_event.set()
            await asyncio.gather(*tasks, return_exceptions=True)
            logger.info("Indexer service stopped")

    def stop(self) -> None:
        if not self._stop_event.is_set():
            logger.info("Shutdown requested")
        self._stop_event.set()

    @property
    def stopping(self) -> bool:
        return self._stop_event.is_set()

    def state(self, chain_id: int) -> SyncState:
        try:
            return self._syncers[chain_id].state
        except KeyError:
            raise ChainNotFoundError(chain_id) from None

    async def synced_height(self, chain_id: int) -> int | None:
        """Highest durably stored block of a chain, None when nothing is stored."""
        latest = await self._storage.latest_block(chain_id)
        return latest.block_number if latest is not None else None
