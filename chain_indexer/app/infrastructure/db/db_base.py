from __future__ import annotations

from sqlalchemy import MetaData
from sqlalchemy.orm import DeclarativeBase

INDEXER_SCHEMA = "indexer"


class BaseDB(DeclarativeBase):
    """Declarative base for every table owned by the indexer."""

    metadata = MetaData(schema=INDEXER_SCHEMA)
