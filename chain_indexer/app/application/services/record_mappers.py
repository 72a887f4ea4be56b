"""
Pure transformations from raw node payloads into normalized records.

Raw payloads are mappings shaped like web3's AttributeDicts: camelCase keys,
byte fields as bytes/HexBytes (hex strings are accepted too), quantities as
ints. Nothing here touches storage or the network.
"""
from __future__ import annotations

from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any

from eth_utils import to_checksum_address

from chain_indexer.app.domain.errors import MappingError
from chain_indexer.app.domain.events import ZERO_ADDRESS, Erc20Transfer
from chain_indexer.app.domain.models import (
    Address,
    Block,
    Log,
    Token,
    TokenBalance,
    TokenMetadata,
    TokenTransfer,
    Transaction,
)

ERC20_TOKEN_TYPE = "ERC20"

_MAX_TOPICS = 4


@contextmanager
def _mapping(kind: str) -> Iterator[None]:
    try:
        yield
    except MappingError:
        raise
    except (KeyError, TypeError, ValueError) as exc:
        raise MappingError(f"Cannot map {kind}: {exc!r}") from exc


# -----------------------------------------------------------------------------
# Value normalization
# -----------------------------------------------------------------------------


def to_hex(value: Any) -> str:
    if isinstance(value, (bytes, bytearray, memoryview)):
        return "0x" + bytes(value).hex()
    if isinstance(value, str):
        s = value.lower()
        return s if s.startswith("0x") else "0x" + s
    raise TypeError(f"Expected bytes or hex string, got {type(value).__name__}")


def hex_or_none(value: Any) -> str | None:
    """Hex-encode, mapping missing / empty / bare '0x' values to None."""
    if value is None:
        return None
    h = to_hex(value)
    if h == "0x":
        return None
    return h


def to_bytes(value: Any) -> bytes:
    if value is None:
        return b""
    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value)
    if isinstance(value, str):
        s = value[2:] if value.lower().startswith("0x") else value
        return bytes.fromhex(s)
    raise TypeError(f"Expected bytes or hex string, got {type(value).__name__}")


def to_int(value: Any) -> int:
    if isinstance(value, bool):
        raise TypeError("Expected an integer quantity, got bool")
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        return int(value, 16) if value.lower().startswith("0x") else int(value)
    raise TypeError(f"Expected an integer quantity, got {type(value).__name__}")


def int_or_none(value: Any) -> int | None:
    return None if value is None else to_int(value)


def decimal_or_none(value: Any) -> str | None:
    """Arbitrary-precision quantity as a decimal string."""
    return None if value is None else str(to_int(value))


def address_or_none(value: Any) -> str | None:
    if value is None or value == "":
        return None
    return to_checksum_address(value)


def block_time(value: Any) -> datetime:
    return datetime.fromtimestamp(to_int(value), tz=timezone.utc)


# -----------------------------------------------------------------------------
# Mappers
# -----------------------------------------------------------------------------


def map_block(raw: Mapping[str, Any], chain_id: int) -> Block:
    with _mapping("block"):
        # POA middleware moves extraData to proofOfAuthorityData.
        extra = raw.get("extraData", raw.get("proofOfAuthorityData"))
        return Block(
            chain_id=chain_id,
            block_number=to_int(raw["number"]),
            hash=to_hex(raw["hash"]),
            parent_hash=to_hex(raw["parentHash"]),
            miner=to_checksum_address(raw["miner"]),
            gas_limit=to_int(raw["gasLimit"]),
            gas_used=to_int(raw["gasUsed"]),
            timestamp=block_time(raw["timestamp"]),
            tx_count=len(raw.get("transactions") or ()),
            nonce=hex_or_none(raw.get("nonce")),
            sha3_uncles=hex_or_none(raw.get("sha3Uncles")),
            state_root=hex_or_none(raw.get("stateRoot")),
            transactions_root=hex_or_none(raw.get("transactionsRoot")),
            receipts_root=hex_or_none(raw.get("receiptsRoot")),
            difficulty=decimal_or_none(raw.get("difficulty")),
            total_difficulty=decimal_or_none(raw.get("totalDifficulty")),
            size=int_or_none(raw.get("size")),
            extra_data=hex_or_none(extra),
            mix_hash=hex_or_none(raw.get("mixHash")),
            base_fee_per_gas=decimal_or_none(raw.get("baseFeePerGas")),
        )


def map_transaction(
    raw: Mapping[str, Any],
    chain_id: int,
    *,
    block_number: int,
    block_hash: str,
    transaction_index: int,
    timestamp: datetime,
    receipt: Mapping[str, Any] | None = None,
) -> Transaction:
    """
    Build a Transaction, merging receipt fields when a receipt is available.

    Fee fields follow the transaction type: EIP-1559 style transactions
    carry the fee-cap / tip-cap pair, the others the legacy gas price.
    """
    with _mapping("transaction"):
        tx_type = int_or_none(raw.get("type")) or 0
        dynamic_fee = raw.get("maxFeePerGas") is not None

        fields: dict[str, Any] = {
            "chain_id": chain_id,
            "hash": to_hex(raw["hash"]),
            "block_number": block_number,
            "block_hash": block_hash,
            "transaction_index": transaction_index,
            "from_address": to_checksum_address(raw["from"]),
            "to_address": address_or_none(raw.get("to")),
            "value": str(to_int(raw.get("value", 0))),
            "gas": to_int(raw["gas"]),
            "nonce": to_int(raw["nonce"]),
            "transaction_type": tx_type,
            "timestamp": timestamp,
            "input": hex_or_none(raw.get("input")),
        }
        if dynamic_fee:
            fields["max_fee_per_gas"] = decimal_or_none(raw.get("maxFeePerGas"))
            fields["max_priority_fee_per_gas"] = decimal_or_none(raw.get("maxPriorityFeePerGas"))
        else:
            fields["gas_price"] = decimal_or_none(raw.get("gasPrice"))

        if receipt is not None:
            contract_address = address_or_none(receipt.get("contractAddress"))
            if contract_address == ZERO_ADDRESS:
                contract_address = None
            fields.update(
                status=int_or_none(receipt.get("status")),
                gas_used=int_or_none(receipt.get("gasUsed")),
                cumulative_gas_used=int_or_none(receipt.get("cumulativeGasUsed")),
                effective_gas_price=decimal_or_none(receipt.get("effectiveGasPrice")),
                contract_address=contract_address,
                logs_bloom=hex_or_none(receipt.get("logsBloom")),
            )

        return Transaction(**fields)


def map_log(raw: Mapping[str, Any], chain_id: int) -> Log:
    with _mapping("log"):
        topics = [to_hex(t) for t in raw.get("topics") or ()]
        if len(topics) > _MAX_TOPICS:
            raise MappingError(f"Log carries {len(topics)} topics, at most {_MAX_TOPICS} allowed")
        topics += [None] * (_MAX_TOPICS - len(topics))

        return Log(
            chain_id=chain_id,
            transaction_hash=to_hex(raw["transactionHash"]),
            log_index=to_int(raw["logIndex"]),
            address=to_checksum_address(raw["address"]),
            data=hex_or_none(raw.get("data")),
            block_number=to_int(raw["blockNumber"]),
            block_hash=to_hex(raw["blockHash"]),
            transaction_index=to_int(raw["transactionIndex"]),
            topic0=topics[0],
            topic1=topics[1],
            topic2=topics[2],
            topic3=topics[3],
            removed=bool(raw.get("removed", False)),
        )


def map_token(
    chain_id: int,
    address: str,
    *,
    token_type: str = ERC20_TOKEN_TYPE,
    metadata: TokenMetadata | None = None,
) -> Token:
    metadata = metadata or TokenMetadata()
    with _mapping("token"):
        return Token(
            chain_id=chain_id,
            address=to_checksum_address(address),
            token_type=token_type,
            name=metadata.name,
            symbol=metadata.symbol,
            decimals=metadata.decimals,
            total_supply=metadata.total_supply,
        )


def map_token_transfer(
    transfer: Erc20Transfer,
    log: Log,
    *,
    timestamp: datetime,
) -> TokenTransfer:
    return TokenTransfer(
        chain_id=log.chain_id,
        transaction_hash=log.transaction_hash,
        log_index=log.log_index,
        token_address=transfer.token_address,
        from_address=transfer.from_address,
        to_address=transfer.to_address,
        value=transfer.value,
        block_number=log.block_number,
        timestamp=timestamp,
    )


def map_token_balance(
    chain_id: int,
    token_address: str,
    holder_address: str,
    balance: int,
    *,
    updated_at: datetime,
) -> TokenBalance:
    if balance < 0:
        raise MappingError(f"Negative balance {balance} for {holder_address}")
    return TokenBalance(
        chain_id=chain_id,
        token_address=token_address,
        holder_address=holder_address,
        balance=str(balance),
        updated_at=updated_at,
    )


def map_addresses(tx: Transaction, *, timestamp: datetime) -> list[Address]:
    """
    Address rows touched by a transaction: sender, recipient and the
    contract it created (if any). Each row counts as one tx for its address.
    """
    seen = {
        "first_seen_block": tx.block_number,
        "first_seen_at": timestamp,
        "last_seen_block": tx.block_number,
        "last_seen_at": timestamp,
    }
    out = [
        Address(
            chain_id=tx.chain_id,
            address=tx.from_address,
            nonce=tx.nonce + 1,
            **seen,
        )
    ]
    if tx.to_address is not None and tx.to_address != tx.from_address:
        out.append(Address(chain_id=tx.chain_id, address=tx.to_address, **seen))
    if tx.contract_address is not None:
        out.append(
            Address(
                chain_id=tx.chain_id,
                address=tx.contract_address,
                is_contract=True,
                **seen,
            )
        )
    return out
