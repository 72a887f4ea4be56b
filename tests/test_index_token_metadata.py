"""Tests for ERC-20 token metadata enrichment."""

from __future__ import annotations

import pytest

from chain_indexer.app.application.services.domain.index_token_metadata import index_token_metadata
from chain_indexer.app.application.services.record_mappers import map_token
from chain_indexer.app.domain.errors import FetchError
from chain_indexer.app.domain.models import TokenMetadata
from tests.fakes import InMemoryStorage

USDC = "0xA0b86991c6218b36c1d19D4a2e9Eb0cE3606eB48"
WETH = "0xC02aaA39b223FE8D0A0e5C4F27eAD9083C756Cc2"
BROKEN = "0x000000000000000000000000000000000000dEaD"


class FakeFetcher:
    def __init__(self, answers: dict[str, TokenMetadata]) -> None:
        self.answers = answers
        self.calls: list[str] = []

    async def fetch(self, *, token_address: str) -> TokenMetadata:
        self.calls.append(token_address)
        if token_address not in self.answers:
            raise FetchError(1, "eth_call symbol", "connection reset")
        return self.answers[token_address]


async def _seed(storage: InMemoryStorage, *addresses: str) -> None:
    for address in addresses:
        await storage.upsert_token(map_token(1, address))


class TestIndexTokenMetadata:
    @pytest.mark.asyncio
    async def test_fills_missing_metadata(self, storage) -> None:
        await _seed(storage, USDC, WETH)
        fetcher = FakeFetcher(
            {
                USDC: TokenMetadata(name="USD Coin", symbol="USDC", decimals=6, total_supply="1000"),
                WETH: TokenMetadata(name="Wrapped Ether", symbol="WETH", decimals=18),
            }
        )

        report = await index_token_metadata(storage=storage, fetcher=fetcher, chain_id=1)

        assert report.total == 2
        assert report.updated == 2
        assert report.fetch_errors == 0
        assert storage.tokens[(1, USDC)].symbol == "USDC"
        assert storage.tokens[(1, USDC)].decimals == 6
        assert storage.tokens[(1, WETH)].name == "Wrapped Ether"
        assert await storage.tokens_missing_metadata(1) == []

    @pytest.mark.asyncio
    async def test_fetch_failure_is_counted_not_fatal(self, storage) -> None:
        await _seed(storage, USDC, BROKEN)
        fetcher = FakeFetcher({USDC: TokenMetadata(symbol="USDC", decimals=6)})

        report = await index_token_metadata(storage=storage, fetcher=fetcher, chain_id=1, batch_size=1)

        assert report.fetch_errors == 1
        assert report.updated == 1
        assert await storage.tokens_missing_metadata(1) == [BROKEN]

    @pytest.mark.asyncio
    async def test_partial_answer_keeps_stored_values(self, storage) -> None:
        await storage.upsert_token(map_token(1, USDC, metadata=TokenMetadata(name="USD Coin", symbol="USDC")))
        fetcher = FakeFetcher({USDC: TokenMetadata(decimals=6)})

        await index_token_metadata(storage=storage, fetcher=fetcher, chain_id=1)

        token = storage.tokens[(1, USDC)]
        assert token.name == "USD Coin"
        assert token.symbol == "USDC"
        assert token.decimals == 6

    @pytest.mark.asyncio
    async def test_complete_tokens_are_skipped(self, storage) -> None:
        await storage.upsert_token(map_token(1, USDC, metadata=TokenMetadata(symbol="USDC", decimals=6)))
        fetcher = FakeFetcher({})

        report = await index_token_metadata(storage=storage, fetcher=fetcher, chain_id=1)

        assert report.total == 0
        assert fetcher.calls == []

    @pytest.mark.asyncio
    async def test_limit(self, storage) -> None:
        await _seed(storage, USDC, WETH)
        fetcher = FakeFetcher({})

        report = await index_token_metadata(storage=storage, fetcher=fetcher, chain_id=1, limit=1)

        assert report.total == 1
        assert len(fetcher.calls) == 1

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "kwargs",
        [{"chain_id": 0}, {"chain_id": 1, "limit": 0}, {"chain_id": 1, "batch_size": 0}],
    )
    async def test_rejects_invalid_arguments(self, storage, kwargs) -> None:
        with pytest.raises(ValueError):
            await index_token_metadata(storage=storage, fetcher=FakeFetcher({}), **kwargs)
