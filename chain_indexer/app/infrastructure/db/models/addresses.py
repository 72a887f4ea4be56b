from __future__ import annotations

from datetime import datetime

from sqlalchemy import (
    BigInteger,
    Boolean,
    DateTime,
    Numeric,
    PrimaryKeyConstraint,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column

from chain_indexer.app.infrastructure.db.db_base import BaseDB


class AddressesDB(BaseDB):
    """
    Per-chain address aggregates.

    tx_count and the last-seen columns are only correct when transactions
    of a chain are applied in block order, which the sync engine guarantees.
    """

    __tablename__ = "addresses"
    __table_args__ = (PrimaryKeyConstraint("chain_id", "address"),)

    chain_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    address: Mapped[str] = mapped_column(Text, nullable=False)
    balance: Mapped[Numeric] = mapped_column(Numeric(78, 0), nullable=False, default=0)
    nonce: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    is_contract: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    tx_count: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)

    first_seen_block: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    first_seen_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    last_seen_block: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    last_seen_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
