from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import asdict
from decimal import Decimal
from typing import Any, Mapping

from sqlalchemy import func, literal_column, or_, select
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine

from chain_indexer.app.domain.errors import StorageError
from chain_indexer.app.domain.models import (
    Address,
    Block,
    Log,
    Token,
    TokenBalance,
    TokenTransfer,
    Transaction,
)
from chain_indexer.app.domain.ports.out import IndexerStorage
from chain_indexer.app.infrastructure.db.models.addresses import AddressesDB
from chain_indexer.app.infrastructure.db.models.blocks import BlocksDB
from chain_indexer.app.infrastructure.db.models.logs import TransactionLogsDB
from chain_indexer.app.infrastructure.db.models.tokens import (
    TokenBalancesDB,
    TokensDB,
    TokenTransfersDB,
)
from chain_indexer.app.infrastructure.db.models.transactions import TransactionsDB

logger = logging.getLogger(__name__)

# Decimal-string columns per table; converted to Decimal for NUMERIC binds.
_BLOCK_NUMERIC = ("difficulty", "total_difficulty", "base_fee_per_gas")
_TX_NUMERIC = ("value", "gas_price", "max_fee_per_gas", "max_priority_fee_per_gas", "effective_gas_price")
_TOKEN_NUMERIC = ("total_supply",)
_TRANSFER_NUMERIC = ("value", "token_id")
_BALANCE_NUMERIC = ("balance",)
_ADDRESS_NUMERIC = ("balance",)

_TX_RECEIPT_COLUMNS = (
    "status",
    "gas_used",
    "cumulative_gas_used",
    "effective_gas_price",
    "contract_address",
    "logs_bloom",
)


def _to_row(record: Any, numeric: tuple[str, ...]) -> dict[str, Any]:
    row = asdict(record)
    for col in numeric:
        if row.get(col) is not None:
            row[col] = Decimal(row[col])
    return row


def _from_row(row: Mapping[str, Any], numeric: tuple[str, ...]) -> dict[str, Any]:
    out = dict(row)
    for col in numeric:
        if out.get(col) is not None:
            out[col] = str(int(out[col]))
    return out


class SqlAlchemyIndexerStorage(IndexerStorage):
    """
    PostgreSQL/SQLAlchemy implementation of IndexerStorage.

    Every write is a single INSERT ... ON CONFLICT statement in its own
    short transaction, so chain tasks can share one pooled engine and
    concurrent upserts never lose increments.
    """

    def __init__(self, *, engine: AsyncEngine) -> None:
        self._engine = engine

    @asynccontextmanager
    async def _begin(self, operation: str) -> AsyncIterator[AsyncConnection]:
        try:
            async with self._engine.begin() as conn:
                yield conn
        except (SQLAlchemyError, OSError) as exc:
            raise StorageError(f"{operation} failed: {exc}") from exc

    # ---------------------------------------------------------------------
    # Blocks
    # ---------------------------------------------------------------------

    async def latest_block(self, chain_id: int) -> Block | None:
        blocks = BlocksDB.__table__
        stmt = (
            select(blocks)
            .where(blocks.c.chain_id == chain_id)
            .order_by(blocks.c.block_number.desc())
            .limit(1)
        )
        return await self._fetch_block("latest_block", stmt)

    async def get_block_by_number(self, chain_id: int, block_number: int) -> Block | None:
        blocks = BlocksDB.__table__
        stmt = select(blocks).where(
            blocks.c.chain_id == chain_id,
            blocks.c.block_number == block_number,
        )
        return await self._fetch_block("get_block_by_number", stmt)

    async def get_block_by_hash(self, chain_id: int, block_hash: str) -> Block | None:
        blocks = BlocksDB.__table__
        stmt = select(blocks).where(
            blocks.c.chain_id == chain_id,
            blocks.c.hash == block_hash.lower(),
        )
        return await self._fetch_block("get_block_by_hash", stmt)

    async def _fetch_block(self, operation: str, stmt: Any) -> Block | None:
        async with self._begin(operation) as conn:
            result = await conn.execute(stmt)
            row = result.mappings().first()
        if row is None:
            return None
        return Block(**_from_row(row, _BLOCK_NUMERIC))

    async def insert_or_update_block(self, block: Block) -> None:
        row = _to_row(block, _BLOCK_NUMERIC)
        stmt = insert(BlocksDB).values(**row)
        stmt = stmt.on_conflict_do_update(
            index_elements=[BlocksDB.chain_id, BlocksDB.block_number],
            set_={
                col: stmt.excluded[col]
                for col in row
                if col not in ("chain_id", "block_number")
            },
        )
        async with self._begin("insert_or_update_block") as conn:
            await conn.execute(stmt)

    # ---------------------------------------------------------------------
    # Transactions / logs
    # ---------------------------------------------------------------------

    async def insert_or_update_transaction(self, tx: Transaction) -> bool:
        row = _to_row(tx, _TX_NUMERIC)
        stmt = insert(TransactionsDB).values(**row)
        # Identity columns are immutable; a re-index may only complete the
        # receipt, never erase a receipt that is already stored.
        stmt = stmt.on_conflict_do_update(
            index_elements=[TransactionsDB.chain_id, TransactionsDB.hash],
            set_={
                col: func.coalesce(stmt.excluded[col], TransactionsDB.__table__.c[col])
                for col in _TX_RECEIPT_COLUMNS
            },
        )
        # xmax is 0 only for a row created by this statement's insert branch.
        stmt = stmt.returning(literal_column("(xmax = 0)").label("inserted"))
        async with self._begin("insert_or_update_transaction") as conn:
            result = await conn.execute(stmt)
            inserted = bool(result.scalar_one())
        return inserted

    async def insert_log(self, log: Log) -> None:
        stmt = insert(TransactionLogsDB).values(**asdict(log))
        stmt = stmt.on_conflict_do_nothing(
            index_elements=[
                TransactionLogsDB.chain_id,
                TransactionLogsDB.transaction_hash,
                TransactionLogsDB.log_index,
            ]
        )
        async with self._begin("insert_log") as conn:
            await conn.execute(stmt)

    # ---------------------------------------------------------------------
    # Tokens
    # ---------------------------------------------------------------------

    async def upsert_token(self, token: Token) -> None:
        row = _to_row(token, _TOKEN_NUMERIC)
        stmt = insert(TokensDB).values(**row)
        stmt = stmt.on_conflict_do_update(
            index_elements=[TokensDB.chain_id, TokensDB.address],
            set_={
                "name": func.coalesce(stmt.excluded["name"], TokensDB.name),
                "symbol": func.coalesce(stmt.excluded["symbol"], TokensDB.symbol),
                "decimals": func.coalesce(stmt.excluded["decimals"], TokensDB.decimals),
                "total_supply": func.coalesce(stmt.excluded["total_supply"], TokensDB.total_supply),
                "updated_at": func.now(),
            },
        )
        async with self._begin("upsert_token") as conn:
            await conn.execute(stmt)

    async def insert_token_transfer(self, transfer: TokenTransfer) -> bool:
        row = _to_row(transfer, _TRANSFER_NUMERIC)
        stmt = (
            insert(TokenTransfersDB)
            .values(**row)
            .on_conflict_do_nothing(
                index_elements=[
                    TokenTransfersDB.chain_id,
                    TokenTransfersDB.transaction_hash,
                    TokenTransfersDB.log_index,
                ]
            )
            .returning(TokenTransfersDB.log_index)
        )
        async with self._begin("insert_token_transfer") as conn:
            result = await conn.execute(stmt)
            inserted = result.first() is not None
        return inserted

    async def get_token_balance(
        self,
        chain_id: int,
        token_address: str,
        holder_address: str,
    ) -> TokenBalance | None:
        balances = TokenBalancesDB.__table__
        stmt = select(balances).where(
            balances.c.chain_id == chain_id,
            balances.c.token_address == token_address,
            balances.c.holder_address == holder_address,
        )
        async with self._begin("get_token_balance") as conn:
            result = await conn.execute(stmt)
            row = result.mappings().first()
        if row is None:
            return None
        return TokenBalance(**_from_row(row, _BALANCE_NUMERIC))

    async def upsert_token_balance(self, balance: TokenBalance) -> None:
        row = _to_row(balance, _BALANCE_NUMERIC)
        stmt = insert(TokenBalancesDB).values(**row)
        stmt = stmt.on_conflict_do_update(
            index_elements=[
                TokenBalancesDB.chain_id,
                TokenBalancesDB.token_address,
                TokenBalancesDB.holder_address,
            ],
            set_={
                "balance": stmt.excluded.balance,
                "updated_at": stmt.excluded.updated_at,
            },
        )
        async with self._begin("upsert_token_balance") as conn:
            await conn.execute(stmt)

    async def tokens_missing_metadata(
        self,
        chain_id: int,
        limit: int | None = None,
    ) -> list[str]:
        tokens = TokensDB.__table__
        stmt = (
            select(tokens.c.address)
            .where(
                tokens.c.chain_id == chain_id,
                or_(tokens.c.symbol.is_(None), tokens.c.decimals.is_(None)),
            )
            .order_by(tokens.c.address)
        )
        if limit is not None:
            stmt = stmt.limit(limit)
        async with self._begin("tokens_missing_metadata") as conn:
            result = await conn.execute(stmt)
            return [r[0] for r in result.all()]

    # ---------------------------------------------------------------------
    # Addresses
    # ---------------------------------------------------------------------

    async def upsert_address(self, address: Address) -> None:
        row = _to_row(address, _ADDRESS_NUMERIC)
        stmt = insert(AddressesDB).values(**row)
        # first_seen_* only ever come from the insert branch.
        stmt = stmt.on_conflict_do_update(
            index_elements=[AddressesDB.chain_id, AddressesDB.address],
            set_={
                "tx_count": AddressesDB.tx_count + stmt.excluded.tx_count,
                "nonce": func.greatest(AddressesDB.nonce, stmt.excluded.nonce),
                "is_contract": or_(AddressesDB.is_contract, stmt.excluded.is_contract),
                "last_seen_block": stmt.excluded.last_seen_block,
                "last_seen_at": stmt.excluded.last_seen_at,
            },
        )
        async with self._begin("upsert_address") as conn:
            await conn.execute(stmt)
