from __future__ import annotations

from chain_indexer.app.application.services.domain.index_token_metadata import (
    TokenMetadataReport,
    index_token_metadata,
)
from chain_indexer.app.config import settings
from chain_indexer.app.infrastructure.chain.registry import ChainRegistry
from chain_indexer.app.infrastructure.db.engine import create_app_async_engine
from chain_indexer.app.infrastructure.factories.chain_connection_factory import chain_connector_factory
from chain_indexer.app.infrastructure.factories.storage_factory import indexer_storage_factory
from chain_indexer.app.infrastructure.factories.token_metadata_factory import (
    token_metadata_fetcher_factory,
)


async def token_metadata_task(
    *,
    chain_id: int,
    limit: int | None = None,
    backend: str = "sqlalchemy",
) -> TokenMetadataReport:
    """
    Task: fill ERC-20 metadata of indexed tokens for a given chain.

    - selects tokens of the chain with symbol or decimals still NULL,
    - fetches symbol / decimals / name / totalSupply via eth_call,
    - upserts them into indexer.tokens.
    """
    registry = await ChainRegistry.load(
        settings.chains_config_path,
        connect=chain_connector_factory(timeout=settings.rpc_request_timeout_seconds),
    )
    engine = create_app_async_engine()
    try:
        return await index_token_metadata(
            storage=indexer_storage_factory(backend=backend, engine=engine),
            fetcher=token_metadata_fetcher_factory(connection=registry.connection(chain_id)),
            chain_id=chain_id,
            limit=limit,
        )
    finally:
        await registry.shutdown()
        await engine.dispose()
