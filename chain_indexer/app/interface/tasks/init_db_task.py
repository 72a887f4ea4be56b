from __future__ import annotations

import logging

from chain_indexer.app.infrastructure.db.engine import create_app_async_engine, create_schema

logger = logging.getLogger(__name__)


async def init_db_task() -> None:
    """Task: create the indexer schema and its tables."""
    engine = create_app_async_engine()
    try:
        await create_schema(engine)
        logger.info("Indexer schema is ready")
    finally:
        await engine.dispose()
