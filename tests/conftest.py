"""Pytest configuration and shared fixtures for all tests."""

import os

# Settings are built at import time of chain_indexer.app.config.
os.environ.setdefault("POSTGRES_USER", "indexer")
os.environ.setdefault("POSTGRES_PASSWORD", "indexer")
os.environ.setdefault("POSTGRES_SERVER", "localhost")
os.environ.setdefault("POSTGRES_PORT", "5432")
os.environ.setdefault("POSTGRES_DB", "chain_indexer_test")

import pytest

from chain_indexer.app.domain.chains import ChainConfig
from chain_indexer.app.infrastructure.decoders.erc20.transfer_decoder import Erc20TransferDecoder
from tests.fakes import FakeChainConnection, InMemoryStorage


@pytest.fixture
def chain_config() -> ChainConfig:
    return ChainConfig(
        chain_id=1,
        name="Ethereum",
        native_symbol="ETH",
        rpc_endpoint="http://primary.local",
        backup_rpc_endpoints=("http://backup.local",),
    )


@pytest.fixture
def storage() -> InMemoryStorage:
    return InMemoryStorage()


@pytest.fixture
def connection(chain_config: ChainConfig) -> FakeChainConnection:
    return FakeChainConnection(chain_config, head=0)


@pytest.fixture
def transfer_decoder() -> Erc20TransferDecoder:
    return Erc20TransferDecoder()
