from __future__ import annotations

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

from chain_indexer.app.config import settings
from chain_indexer.app.infrastructure.db.db_base import INDEXER_SCHEMA, BaseDB

# Register every table on BaseDB.metadata.
from chain_indexer.app.infrastructure.db.models import (  # noqa: F401
    addresses,
    blocks,
    logs,
    tokens,
    transactions,
)


def create_app_async_engine(*, echo: bool = False) -> AsyncEngine:
    """
    Factory for AsyncEngine used by background tasks / indexers.

    One pooled engine is shared by every chain task; each storage call
    checks a connection out for the duration of a single statement.
    """
    return create_async_engine(
        settings.database_url,  # postgresql+asyncpg://...
        echo=echo,
        pool_pre_ping=True,
        pool_size=settings.db_pool_size,
        max_overflow=settings.db_max_overflow,
    )


async def create_schema(engine: AsyncEngine) -> None:
    """
    Create the indexer schema and tables if they do not exist yet.

    Development bootstrap: existing tables are left untouched, columns are
    never altered.
    """
    async with engine.begin() as conn:
        await conn.execute(text(f'CREATE SCHEMA IF NOT EXISTS "{INDEXER_SCHEMA}"'))
        await conn.run_sync(BaseDB.metadata.create_all)
