from __future__ import annotations

import asyncio
import logging
import signal

from chain_indexer.app.application.services.sync.indexer_service import IndexerService
from chain_indexer.app.config import settings
from chain_indexer.app.infrastructure.chain.registry import ChainRegistry
from chain_indexer.app.infrastructure.db.engine import create_app_async_engine
from chain_indexer.app.infrastructure.decoders.erc20.transfer_decoder import Erc20TransferDecoder
from chain_indexer.app.infrastructure.factories.chain_connection_factory import chain_connector_factory
from chain_indexer.app.infrastructure.factories.storage_factory import indexer_storage_factory

logger = logging.getLogger(__name__)


def _install_stop_handlers(service: IndexerService) -> None:
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, service.stop)
        except NotImplementedError:
            # Windows event loops: Ctrl+C still raises KeyboardInterrupt.
            pass


async def sync_chains_task(
    *,
    chains_config: str | None = None,
    backend: str = "sqlalchemy",
) -> None:
    """
    Task: continuously index every active chain of the chains file.

    - connects each active chain (primary RPC, then backups),
    - runs one sync loop per connected chain until SIGINT / SIGTERM,
    - closes every RPC client and the DB pool on the way out.
    """
    registry = await ChainRegistry.load(
        chains_config or settings.chains_config_path,
        connect=chain_connector_factory(timeout=settings.rpc_request_timeout_seconds),
        default_chain_id=settings.default_chain_id,
    )
    engine = create_app_async_engine()
    try:
        service = IndexerService(
            chains=registry,
            storage=indexer_storage_factory(backend=backend, engine=engine),
            decoders=[Erc20TransferDecoder()],
            batch_size=settings.indexer_batch_size,
            poll_interval=settings.indexer_poll_interval_seconds,
        )
        _install_stop_handlers(service)
        await service.run()
    finally:
        await registry.shutdown()
        await engine.dispose()
