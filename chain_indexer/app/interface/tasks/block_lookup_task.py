from __future__ import annotations

from chain_indexer.app.application.services.block_lookup import BlockLookupResult, lookup_block
from chain_indexer.app.infrastructure.db.engine import create_app_async_engine
from chain_indexer.app.infrastructure.factories.storage_factory import indexer_storage_factory


async def block_lookup_task(
    *,
    chain_id: int,
    query: str,
    backend: str = "sqlalchemy",
) -> BlockLookupResult:
    """
    Task: find a stored block by height ("19000000") or hash ("0x...").
    """
    engine = create_app_async_engine()
    try:
        return await lookup_block(
            storage=indexer_storage_factory(backend=backend, engine=engine),
            chain_id=chain_id,
            query=query,
        )
    finally:
        await engine.dispose()
