from __future__ import annotations

from typing import Callable, Dict

from chain_indexer.app.domain.ports.out import ChainConnection, Erc20TokenMetadataFetcher
from chain_indexer.app.infrastructure.chain.web3_connection import Web3ChainConnection
from chain_indexer.app.infrastructure.fetchers.erc20_tokens_fetcher import (
    Web3Erc20TokenMetadataFetcher,
)

TokenMetadataFetcherFactory = Callable[[ChainConnection], Erc20TokenMetadataFetcher]


def _make_web3_fetcher(connection: ChainConnection) -> Erc20TokenMetadataFetcher:
    """
    Reuse the registry's AsyncWeb3 client (already failed over to a
    reachable endpoint) for the eth_calls.
    """
    if not isinstance(connection, Web3ChainConnection):
        raise TypeError(f"web3 fetcher needs a Web3ChainConnection, got {type(connection).__name__}")
    return Web3Erc20TokenMetadataFetcher(w3=connection.w3, chain_id=connection.chain_id)


_FETCHER_REGISTRY: Dict[str, TokenMetadataFetcherFactory] = {
    "web3": _make_web3_fetcher,
}


def token_metadata_fetcher_factory(
    *,
    backend: str = "web3",
    connection: ChainConnection,
) -> Erc20TokenMetadataFetcher:
    try:
        factory = _FETCHER_REGISTRY[backend]
    except KeyError:
        raise ValueError(f"Unsupported token metadata fetcher backend: {backend!r}")

    return factory(connection)
