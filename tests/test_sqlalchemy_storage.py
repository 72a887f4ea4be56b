"""
Tests for the PostgreSQL storage adapter.

No database: statements are captured from a fake engine and compiled with
the PostgreSQL dialect.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from dataclasses import asdict
from datetime import datetime, timezone
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy.dialects import postgresql
from sqlalchemy.exc import OperationalError

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
from chain_indexer.app.infrastructure.adapters.sqlalchemy_storage import SqlAlchemyIndexerStorage

TS = datetime(2024, 1, 1, tzinfo=timezone.utc)
TOKEN = "0x" + "Cc" * 20
HOLDER = "0x" + "Aa" * 20


class FakeEngine:
    def __init__(self) -> None:
        self.result = MagicMock()
        self.conn = MagicMock()
        self.conn.execute = AsyncMock(return_value=self.result)

    @asynccontextmanager
    async def begin(self):
        yield self.conn

    @property
    def statements(self) -> list:
        return [c.args[0] for c in self.conn.execute.await_args_list]

    def sql(self, index: int = -1) -> str:
        return str(self.statements[index].compile(dialect=postgresql.dialect()))

    def params(self, index: int = -1) -> dict:
        return self.statements[index].compile(dialect=postgresql.dialect()).params


@pytest.fixture
def engine() -> FakeEngine:
    return FakeEngine()


@pytest.fixture
def sql_storage(engine) -> SqlAlchemyIndexerStorage:
    return SqlAlchemyIndexerStorage(engine=engine)


def _block(**overrides) -> Block:
    fields = dict(
        chain_id=1,
        block_number=100,
        hash="0x" + "ab" * 32,
        parent_hash="0x" + "aa" * 32,
        miner="0x" + "99" * 20,
        gas_limit=30_000_000,
        gas_used=21_000,
        timestamp=TS,
        tx_count=1,
        difficulty="58750003716598352816469",
    )
    fields.update(overrides)
    return Block(**fields)


class TestBlocks:
    @pytest.mark.asyncio
    async def test_block_upsert(self, sql_storage, engine) -> None:
        await sql_storage.insert_or_update_block(_block())

        sql = engine.sql()
        assert "INSERT INTO indexer.blocks" in sql
        assert "ON CONFLICT (chain_id, block_number) DO UPDATE SET" in sql
        assert "hash = excluded.hash" in sql
        assert engine.params()["difficulty"] == Decimal("58750003716598352816469")

    @pytest.mark.asyncio
    async def test_latest_block_reads_highest_row(self, sql_storage, engine) -> None:
        row = asdict(_block())
        row["difficulty"] = Decimal(row["difficulty"])
        engine.result.mappings.return_value.first.return_value = row

        block = await sql_storage.latest_block(1)

        assert block == _block()
        sql = engine.sql()
        assert "ORDER BY indexer.blocks.block_number DESC" in sql
        assert "LIMIT" in sql

    @pytest.mark.asyncio
    async def test_no_blocks(self, sql_storage, engine) -> None:
        engine.result.mappings.return_value.first.return_value = None

        assert await sql_storage.latest_block(1) is None
        assert await sql_storage.get_block_by_number(1, 5) is None

    @pytest.mark.asyncio
    async def test_get_block_by_hash_is_case_insensitive(self, sql_storage, engine) -> None:
        engine.result.mappings.return_value.first.return_value = None

        await sql_storage.get_block_by_hash(1, "0x" + "AB" * 32)

        assert "0x" + "ab" * 32 in engine.params().values()


class TestTransactionsAndLogs:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("returned, expected", [(True, True), (False, False)])
    async def test_transaction_upsert_never_erases_receipt(self, sql_storage, engine, returned, expected) -> None:
        engine.result.scalar_one.return_value = returned
        tx = Transaction(
            chain_id=1,
            hash="0x" + "01" * 32,
            block_number=100,
            block_hash="0x" + "ab" * 32,
            transaction_index=0,
            from_address="0x" + "11" * 20,
            to_address=None,
            value="1000000000000000000",
            gas=21_000,
            nonce=0,
            transaction_type=2,
            timestamp=TS,
        )

        assert await sql_storage.insert_or_update_transaction(tx) is expected

        sql = engine.sql()
        assert "ON CONFLICT (chain_id, hash) DO UPDATE SET" in sql
        assert "RETURNING (xmax = 0)" in sql
        assert "coalesce(excluded.status, indexer.transactions.status)" in sql
        assert "coalesce(excluded.contract_address, indexer.transactions.contract_address)" in sql
        assert "from_address = excluded.from_address" not in sql
        assert engine.params()["value"] == Decimal(10**18)

    @pytest.mark.asyncio
    async def test_log_insert_skips_duplicates(self, sql_storage, engine) -> None:
        log = Log(
            chain_id=1,
            transaction_hash="0x" + "01" * 32,
            log_index=0,
            address=TOKEN,
            data=None,
            block_number=100,
            block_hash="0x" + "ab" * 32,
            transaction_index=0,
        )

        await sql_storage.insert_log(log)

        sql = engine.sql()
        assert "INSERT INTO indexer.transaction_logs" in sql
        assert "ON CONFLICT (chain_id, transaction_hash, log_index) DO NOTHING" in sql


class TestTokens:
    @pytest.mark.asyncio
    async def test_token_upsert_coalesces_metadata(self, sql_storage, engine) -> None:
        await sql_storage.upsert_token(Token(chain_id=1, address=TOKEN, token_type="ERC20"))

        sql = engine.sql()
        assert "ON CONFLICT (chain_id, address) DO UPDATE SET" in sql
        assert "coalesce(excluded.symbol, indexer.tokens.symbol)" in sql
        assert "coalesce(excluded.decimals, indexer.tokens.decimals)" in sql

    @pytest.mark.asyncio
    @pytest.mark.parametrize("returned, expected", [((0,), True), (None, False)])
    async def test_transfer_insert_reports_new_rows(self, sql_storage, engine, returned, expected) -> None:
        engine.result.first.return_value = returned
        transfer = TokenTransfer(
            chain_id=1,
            transaction_hash="0x" + "01" * 32,
            log_index=0,
            token_address=TOKEN,
            from_address=HOLDER,
            to_address="0x" + "Bb" * 20,
            value="1000",
            block_number=100,
            timestamp=TS,
        )

        assert await sql_storage.insert_token_transfer(transfer) is expected

        sql = engine.sql()
        assert "DO NOTHING RETURNING" in sql

    @pytest.mark.asyncio
    async def test_balance_upsert_overwrites(self, sql_storage, engine) -> None:
        balance = TokenBalance(chain_id=1, token_address=TOKEN, holder_address=HOLDER, balance="1000", updated_at=TS)

        await sql_storage.upsert_token_balance(balance)

        sql = engine.sql()
        assert "ON CONFLICT (chain_id, token_address, holder_address) DO UPDATE SET" in sql
        assert "balance = excluded.balance" in sql

    @pytest.mark.asyncio
    async def test_get_token_balance(self, sql_storage, engine) -> None:
        engine.result.mappings.return_value.first.return_value = {
            "chain_id": 1,
            "token_address": TOKEN,
            "holder_address": HOLDER,
            "balance": Decimal("1000"),
            "updated_at": TS,
        }

        balance = await sql_storage.get_token_balance(1, TOKEN, HOLDER)

        assert balance is not None
        assert balance.balance == "1000"

    @pytest.mark.asyncio
    async def test_tokens_missing_metadata(self, sql_storage, engine) -> None:
        engine.result.all.return_value = [(TOKEN,)]

        assert await sql_storage.tokens_missing_metadata(1, limit=10) == [TOKEN]

        sql = engine.sql()
        assert "indexer.tokens.symbol IS NULL OR indexer.tokens.decimals IS NULL" in sql
        assert "LIMIT" in sql


class TestAddresses:
    @pytest.mark.asyncio
    async def test_address_upsert_increments_tx_count(self, sql_storage, engine) -> None:
        address = Address(chain_id=1, address=HOLDER, nonce=3, first_seen_block=100, last_seen_block=100)

        await sql_storage.upsert_address(address)

        sql = engine.sql()
        assert "ON CONFLICT (chain_id, address) DO UPDATE SET" in sql
        assert "indexer.addresses.tx_count + excluded.tx_count" in sql
        assert "greatest(indexer.addresses.nonce, excluded.nonce)" in sql
        assert "last_seen_block = excluded.last_seen_block" in sql
        assert "first_seen_block = " not in sql


class TestErrors:
    @pytest.mark.asyncio
    async def test_sqlalchemy_errors_become_storage_error(self, sql_storage, engine) -> None:
        engine.conn.execute.side_effect = OperationalError("INSERT ...", {}, Exception("connection refused"))

        with pytest.raises(StorageError):
            await sql_storage.insert_or_update_block(_block())

    @pytest.mark.asyncio
    async def test_connection_errors_become_storage_error(self, sql_storage, engine) -> None:
        engine.conn.execute.side_effect = ConnectionRefusedError()

        with pytest.raises(StorageError):
            await sql_storage.latest_block(1)
