from __future__ import annotations

from sqlalchemy import (
    BigInteger,
    Boolean,
    Index,
    Integer,
    PrimaryKeyConstraint,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column

from chain_indexer.app.infrastructure.db.db_base import BaseDB


class TransactionLogsDB(BaseDB):
    """
    Raw EVM event logs, one row per receipt log entry.

    Insert-only: a log is identified by (chain_id, transaction_hash,
    log_index) and re-indexing never overwrites it. Topics are kept
    ABI-agnostic; decoding happens before the domain tables are written.
    """

    __tablename__ = "transaction_logs"
    __table_args__ = (
        PrimaryKeyConstraint("chain_id", "transaction_hash", "log_index"),
        # Typical lookup pattern: contract + event + block range
        Index(
            "ix_logs_chain_address_topic0_block",
            "chain_id",
            "address",
            "topic0",
            "block_number",
        ),
    )

    chain_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    transaction_hash: Mapped[str] = mapped_column(Text, nullable=False)
    log_index: Mapped[int] = mapped_column(Integer, nullable=False)

    """Address of the contract that emitted the log."""
    address: Mapped[str] = mapped_column(Text, nullable=False)

    """Event data payload (ABI-encoded, non-indexed args). NULL when empty."""
    data: Mapped[str | None] = mapped_column(Text, nullable=True)

    """topic0: keccak256 hash of the event signature."""
    topic0: Mapped[str | None] = mapped_column(Text, nullable=True)
    topic1: Mapped[str | None] = mapped_column(Text, nullable=True)
    topic2: Mapped[str | None] = mapped_column(Text, nullable=True)
    topic3: Mapped[str | None] = mapped_column(Text, nullable=True)

    block_number: Mapped[int] = mapped_column(BigInteger, nullable=False)
    block_hash: Mapped[str] = mapped_column(Text, nullable=False)
    transaction_index: Mapped[int] = mapped_column(Integer, nullable=False)
    removed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
