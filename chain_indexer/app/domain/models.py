from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

# Conventions shared by every record below:
#   - hashes / topics / byte payloads are 0x-prefixed hex strings,
#   - addresses are EIP-55 checksummed hex strings,
#   - arbitrary-precision quantities (wei values, balances, gas prices,
#     difficulty, token amounts) are decimal strings.


@dataclass(frozen=True, kw_only=True)
class Block:
    """
    One block of one chain, identified by (chain_id, block_number).

    Optional fields are only present on some consensus variants
    (difficulty / mix_hash on PoW chains, base fee after London, ...).
    """

    chain_id: int
    block_number: int
    hash: str
    parent_hash: str
    miner: str
    gas_limit: int
    gas_used: int
    timestamp: datetime
    tx_count: int

    nonce: str | None = None
    sha3_uncles: str | None = None
    state_root: str | None = None
    transactions_root: str | None = None
    receipts_root: str | None = None
    difficulty: str | None = None
    total_difficulty: str | None = None
    size: int | None = None
    extra_data: str | None = None
    mix_hash: str | None = None
    base_fee_per_gas: str | None = None


@dataclass(frozen=True, kw_only=True)
class Transaction:
    """
    One transaction, unique by (chain_id, hash).

    Receipt-derived fields are None when the receipt could not be fetched.
    """

    chain_id: int
    hash: str
    block_number: int
    block_hash: str
    transaction_index: int
    from_address: str
    to_address: str | None
    value: str
    gas: int
    nonce: int
    transaction_type: int
    timestamp: datetime
    input: str | None = None

    # legacy / access-list transactions
    gas_price: str | None = None
    # EIP-1559 transactions
    max_fee_per_gas: str | None = None
    max_priority_fee_per_gas: str | None = None

    # receipt
    status: int | None = None
    gas_used: int | None = None
    cumulative_gas_used: int | None = None
    effective_gas_price: str | None = None
    contract_address: str | None = None
    logs_bloom: str | None = None

    @property
    def is_contract_creation(self) -> bool:
        return self.to_address is None


@dataclass(frozen=True, kw_only=True)
class Log:
    """One event log, unique by (chain_id, transaction_hash, log_index)."""

    chain_id: int
    transaction_hash: str
    log_index: int
    address: str
    data: str | None
    block_number: int
    block_hash: str
    transaction_index: int
    topic0: str | None = None
    topic1: str | None = None
    topic2: str | None = None
    topic3: str | None = None
    removed: bool = False

    @property
    def topics(self) -> tuple[str, ...]:
        return tuple(
            t for t in (self.topic0, self.topic1, self.topic2, self.topic3) if t is not None
        )


@dataclass(frozen=True, kw_only=True)
class Token:
    chain_id: int
    address: str
    token_type: str
    name: str | None = None
    symbol: str | None = None
    decimals: int | None = None
    total_supply: str | None = None
    holder_count: int = 0
    transfer_count: int = 0


@dataclass(frozen=True, kw_only=True)
class TokenTransfer:
    chain_id: int
    transaction_hash: str
    log_index: int
    token_address: str
    from_address: str
    to_address: str
    value: str | None
    block_number: int
    timestamp: datetime
    token_id: str | None = None


@dataclass(frozen=True, kw_only=True)
class TokenBalance:
    """
    Transfer-derived holder balance.

    This is an approximation: only Transfer events seen by the indexer are
    applied, so rebasing tokens, balance changes without events and history
    before the first indexed block are not reflected.
    """

    chain_id: int
    token_address: str
    holder_address: str
    balance: str
    updated_at: datetime


@dataclass(frozen=True, kw_only=True)
class Address:
    chain_id: int
    address: str
    balance: str = "0"
    nonce: int = 0
    is_contract: bool = False
    tx_count: int = 1
    first_seen_block: int | None = None
    first_seen_at: datetime | None = None
    last_seen_block: int | None = None
    last_seen_at: datetime | None = None


@dataclass(frozen=True, kw_only=True)
class TokenMetadata:
    name: str | None = None
    symbol: str | None = None
    decimals: int | None = None
    total_supply: str | None = None
