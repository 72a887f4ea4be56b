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
    func,
)
from sqlalchemy.orm import Mapped, mapped_column

from chain_indexer.app.infrastructure.db.db_base import BaseDB


class TokensDB(BaseDB):
    """
    Token registry (ERC-20).

    One row = one token contract per chain. Metadata columns stay NULL until
    the metadata task resolves them; upserts never overwrite a known value
    with NULL.
    """

    __tablename__ = "tokens"
    __table_args__ = (
        PrimaryKeyConstraint("chain_id", "address"),
        Index("ix_tokens_chain_symbol", "chain_id", "symbol"),
    )

    chain_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    address: Mapped[str] = mapped_column(Text, nullable=False)
    token_type: Mapped[str] = mapped_column(Text, nullable=False)

    name: Mapped[str | None] = mapped_column(Text, nullable=True)
    symbol: Mapped[str | None] = mapped_column(Text, nullable=True)
    decimals: Mapped[int | None] = mapped_column(Integer, nullable=True)
    total_supply: Mapped[Numeric | None] = mapped_column(Numeric(78, 0), nullable=True)

    holder_count: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    transfer_count: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )


class TokenTransfersDB(BaseDB):
    """Decoded token transfers; insert-only, one row per Transfer log."""

    __tablename__ = "token_transfers"
    __table_args__ = (
        PrimaryKeyConstraint("chain_id", "transaction_hash", "log_index"),
        Index("ix_token_transfers_chain_token_block", "chain_id", "token_address", "block_number"),
        Index("ix_token_transfers_chain_from", "chain_id", "from_address"),
        Index("ix_token_transfers_chain_to", "chain_id", "to_address"),
    )

    chain_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    transaction_hash: Mapped[str] = mapped_column(Text, nullable=False)
    log_index: Mapped[int] = mapped_column(Integer, nullable=False)
    token_address: Mapped[str] = mapped_column(Text, nullable=False)
    from_address: Mapped[str] = mapped_column(Text, nullable=False)
    to_address: Mapped[str] = mapped_column(Text, nullable=False)
    value: Mapped[Numeric | None] = mapped_column(Numeric(78, 0), nullable=True)
    # Only set for non-fungible variants
    token_id: Mapped[Numeric | None] = mapped_column(Numeric(78, 0), nullable=True)
    block_number: Mapped[int] = mapped_column(BigInteger, nullable=False)
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


class TokenBalancesDB(BaseDB):
    """Transfer-derived holder balances (best-effort, see TokenBalance)."""

    __tablename__ = "token_balances"
    __table_args__ = (
        PrimaryKeyConstraint("chain_id", "token_address", "holder_address"),
        Index("ix_token_balances_chain_holder", "chain_id", "holder_address"),
    )

    chain_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    token_address: Mapped[str] = mapped_column(Text, nullable=False)
    holder_address: Mapped[str] = mapped_column(Text, nullable=False)
    balance: Mapped[Numeric] = mapped_column(Numeric(78, 0), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
