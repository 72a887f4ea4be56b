from __future__ import annotations

from datetime import datetime

from sqlalchemy import (
    BigInteger,
    DateTime,
    Index,
    Integer,
    Numeric,
    PrimaryKeyConstraint,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column

from chain_indexer.app.infrastructure.db.db_base import BaseDB


class BlocksDB(BaseDB):
    """
    Canonical table for EVM blocks.

    Each row represents a single block on a given chain. Re-indexing a
    height overwrites the mutable columns of the existing row.
    """

    __tablename__ = "blocks"
    __table_args__ = (
        # Natural primary key: unique block per chain
        PrimaryKeyConstraint("chain_id", "block_number"),
        # Lookup by block hash on a given chain
        Index("ix_blocks_chain_hash", "chain_id", "hash"),
        # Common access pattern: filter by time for a given chain
        Index("ix_blocks_chain_timestamp", "chain_id", "timestamp"),
    )
    # -------------------------------------------------------------------------
    # Chain / identity
    # -------------------------------------------------------------------------
    chain_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    block_number: Mapped[int] = mapped_column(BigInteger, nullable=False)
    hash: Mapped[str] = mapped_column(Text, nullable=False)
    parent_hash: Mapped[str] = mapped_column(Text, nullable=False)
    miner: Mapped[str] = mapped_column(Text, nullable=False)
    # -------------------------------------------------------------------------
    # Time
    # -------------------------------------------------------------------------
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    # -------------------------------------------------------------------------
    # Gas / execution metadata
    # -------------------------------------------------------------------------
    gas_limit: Mapped[int] = mapped_column(BigInteger, nullable=False)
    gas_used: Mapped[int] = mapped_column(BigInteger, nullable=False)
    # Base fee per gas (EIP-1559); NULL on older blocks / chains
    base_fee_per_gas: Mapped[Numeric | None] = mapped_column(Numeric(78, 0), nullable=True)
    tx_count: Mapped[int] = mapped_column(Integer, nullable=False)
    size: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    # -------------------------------------------------------------------------
    # Header fields present only on some consensus variants
    # -------------------------------------------------------------------------
    nonce: Mapped[str | None] = mapped_column(Text, nullable=True)
    sha3_uncles: Mapped[str | None] = mapped_column(Text, nullable=True)
    state_root: Mapped[str | None] = mapped_column(Text, nullable=True)
    transactions_root: Mapped[str | None] = mapped_column(Text, nullable=True)
    receipts_root: Mapped[str | None] = mapped_column(Text, nullable=True)
    difficulty: Mapped[Numeric | None] = mapped_column(Numeric(78, 0), nullable=True)
    total_difficulty: Mapped[Numeric | None] = mapped_column(Numeric(78, 0), nullable=True)
    extra_data: Mapped[str | None] = mapped_column(Text, nullable=True)
    mix_hash: Mapped[str | None] = mapped_column(Text, nullable=True)
