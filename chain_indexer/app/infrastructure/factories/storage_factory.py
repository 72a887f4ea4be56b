from __future__ import annotations

from typing import Callable, Dict

from sqlalchemy.ext.asyncio import AsyncEngine

from chain_indexer.app.domain.ports.out import IndexerStorage
from chain_indexer.app.infrastructure.adapters.sqlalchemy_storage import (
    SqlAlchemyIndexerStorage,
)

StorageFactory = Callable[[AsyncEngine], IndexerStorage]

_STORAGE_REGISTRY: Dict[str, StorageFactory] = {
    "sqlalchemy": lambda engine: SqlAlchemyIndexerStorage(engine=engine),
}


def indexer_storage_factory(
    *,
    backend: str,
    engine: AsyncEngine,
) -> IndexerStorage:
    """
    Create an IndexerStorage for the given backend.
    """
    try:
        factory = _STORAGE_REGISTRY[backend]
    except KeyError:
        raise ValueError(f"Unsupported storage backend: {backend!r}")

    return factory(engine)
