from __future__ import annotations

import asyncio
from typing import Any

import aiohttp
from web3 import AsyncWeb3
from web3.contract.async_contract import AsyncContract
from web3.exceptions import BadFunctionCallOutput, ContractLogicError, Web3Exception

from chain_indexer.app.domain.errors import FetchError
from chain_indexer.app.domain.models import TokenMetadata
from chain_indexer.app.domain.ports.out import Erc20TokenMetadataFetcher

# Minimal ERC-20 ABI fragments
_ERC20_ABI_STD = [
    {"name": "symbol", "type": "function", "stateMutability": "view", "inputs": [], "outputs": [{"name": "", "type": "string"}]},
    {"name": "decimals", "type": "function", "stateMutability": "view", "inputs": [], "outputs": [{"name": "", "type": "uint8"}]},
    {"name": "name", "type": "function", "stateMutability": "view", "inputs": [], "outputs": [{"name": "", "type": "string"}]},
    {"name": "totalSupply", "type": "function", "stateMutability": "view", "inputs": [], "outputs": [{"name": "", "type": "uint256"}]},
]

# MKR-era tokens return bytes32 for symbol / name.
_ERC20_ABI_LEGACY = [
    {"name": "symbol", "type": "function", "stateMutability": "view", "inputs": [], "outputs": [{"name": "", "type": "bytes32"}]},
    {"name": "decimals", "type": "function", "stateMutability": "view", "inputs": [], "outputs": [{"name": "", "type": "uint256"}]},
    {"name": "name", "type": "function", "stateMutability": "view", "inputs": [], "outputs": [{"name": "", "type": "bytes32"}]},
]

_MAX_DECIMALS = 255


class Web3Erc20TokenMetadataFetcher(Erc20TokenMetadataFetcher):
    """
    ERC-20 metadata fetcher using AsyncWeb3 (one instance per chain).

    Fetches:
      - symbol() -> str | None
      - decimals() -> int | None
      - name() -> str | None
      - totalSupply() -> decimal string | None

    A function the contract does not implement (or reverts on) yields None
    for that field; the standard ABI is tried first, the bytes32 legacy ABI
    only for fields still missing. Transport failures raise FetchError.
    """

    def __init__(self, *, w3: AsyncWeb3, chain_id: int) -> None:
        self._w3 = w3
        self._chain_id = chain_id

    async def fetch(self, *, token_address: str) -> TokenMetadata:
        addr = self._w3.to_checksum_address(token_address)

        contract_std: AsyncContract = self._w3.eth.contract(address=addr, abi=_ERC20_ABI_STD)
        contract_legacy: AsyncContract = self._w3.eth.contract(address=addr, abi=_ERC20_ABI_LEGACY)

        # 1) Try standard
        symbol = self._normalize_symbol_name(await self._safe_call(contract_std, "symbol"))
        name = self._normalize_symbol_name(await self._safe_call(contract_std, "name"))
        decimals = self._normalize_decimals(await self._safe_call(contract_std, "decimals"))
        raw_supply = await self._safe_call(contract_std, "totalSupply")
        total_supply = str(raw_supply) if isinstance(raw_supply, int) and raw_supply >= 0 else None

        # 2) Fallback to legacy ONLY for missing fields
        if symbol is None:
            symbol = self._normalize_symbol_name(await self._safe_call(contract_legacy, "symbol"))
        if name is None:
            name = self._normalize_symbol_name(await self._safe_call(contract_legacy, "name"))
        if decimals is None:
            decimals = self._normalize_decimals(await self._safe_call(contract_legacy, "decimals"))

        return TokenMetadata(
            name=name,
            symbol=symbol,
            decimals=decimals,
            total_supply=total_supply,
        )

    @staticmethod
    def _normalize_decimals(val: Any) -> int | None:
        if isinstance(val, int) and not isinstance(val, bool) and 0 <= val <= _MAX_DECIMALS:
            return int(val)
        return None

    @staticmethod
    def _normalize_symbol_name(val: Any) -> str | None:
        if val is None:
            return None

        if isinstance(val, str):
            # Postgres TEXT rejects NUL bytes.
            return val.replace("\x00", "").strip() or None

        if isinstance(val, (bytes, bytearray, memoryview)):
            try:
                return bytes(val).rstrip(b"\x00").decode("utf-8").strip() or None
            except UnicodeDecodeError:
                return None

        return None

    async def _safe_call(self, contract: AsyncContract, fn_name: str) -> Any | None:
        try:
            fn = getattr(contract.functions, fn_name)
            return await fn().call()
        except (BadFunctionCallOutput, ContractLogicError, ValueError):
            # Non-ERC20, proxy weirdness, revert, or empty response
            return None
        except (aiohttp.ClientError, asyncio.TimeoutError, OSError) as exc:
            raise FetchError(self._chain_id, f"eth_call {fn_name}", repr(exc)) from exc
        except Web3Exception:
            # Other provider-side decode / call errors
            return None
