from __future__ import annotations

from datetime import datetime

from sqlalchemy import (
    BigInteger,
    DateTime,
    Index,
    Integer,
    Numeric,
    PrimaryKeyConstraint,
    SmallInteger,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column

from chain_indexer.app.infrastructure.db.db_base import BaseDB


class TransactionsDB(BaseDB):
    """
    Canonical table for EVM transactions, enriched with receipt context.

    Receipt columns are NULL when the receipt was not available at
    indexing time; a later re-index fills them in.
    """

    __tablename__ = "transactions"
    __table_args__ = (
        PrimaryKeyConstraint("chain_id", "hash"),
        Index("ix_transactions_chain_block", "chain_id", "block_number", "transaction_index"),
        Index("ix_transactions_chain_from", "chain_id", "from_address"),
        Index("ix_transactions_chain_to", "chain_id", "to_address"),
    )

    # -------------------------------------------------------------------------
    # Identity / position
    # -------------------------------------------------------------------------

    """Chain identifier (e.g., 1 = Ethereum mainnet)."""
    chain_id: Mapped[int] = mapped_column(BigInteger, nullable=False)

    """Transaction hash (0x hex)."""
    hash: Mapped[str] = mapped_column(Text, nullable=False)

    block_number: Mapped[int] = mapped_column(BigInteger, nullable=False)
    block_hash: Mapped[str] = mapped_column(Text, nullable=False)

    """Index of the transaction within the block (0-based)."""
    transaction_index: Mapped[int] = mapped_column(Integer, nullable=False)

    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    # -------------------------------------------------------------------------
    # Transaction payload
    # -------------------------------------------------------------------------

    from_address: Mapped[str] = mapped_column(Text, nullable=False)

    """Recipient address. Null for contract creations."""
    to_address: Mapped[str | None] = mapped_column(Text, nullable=True)

    """Value in native token units (wei). NUMERIC to avoid precision loss."""
    value: Mapped[Numeric] = mapped_column(Numeric(78, 0), nullable=False)

    gas: Mapped[int] = mapped_column(BigInteger, nullable=False)
    gas_price: Mapped[Numeric | None] = mapped_column(Numeric(78, 0), nullable=True)
    max_fee_per_gas: Mapped[Numeric | None] = mapped_column(Numeric(78, 0), nullable=True)
    max_priority_fee_per_gas: Mapped[Numeric | None] = mapped_column(Numeric(78, 0), nullable=True)
    input: Mapped[str | None] = mapped_column(Text, nullable=True)
    nonce: Mapped[int] = mapped_column(BigInteger, nullable=False)

    """
    Transaction type:
      0 = legacy,
      1 = access list,
      2 = EIP-1559,
    and so on (chain-specific).
    """
    transaction_type: Mapped[int] = mapped_column(SmallInteger, nullable=False)

    # -------------------------------------------------------------------------
    # Receipt context
    # -------------------------------------------------------------------------

    """1 = success, 0 = failure, NULL = receipt not available."""
    status: Mapped[int | None] = mapped_column(SmallInteger, nullable=True)

    gas_used: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    cumulative_gas_used: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    effective_gas_price: Mapped[Numeric | None] = mapped_column(Numeric(78, 0), nullable=True)

    """Address of the contract created by this transaction, if any."""
    contract_address: Mapped[str | None] = mapped_column(Text, nullable=True)

    logs_bloom: Mapped[str | None] = mapped_column(Text, nullable=True)
