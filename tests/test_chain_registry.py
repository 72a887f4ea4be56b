"""Tests for chains file loading, RPC failover and registry lifecycle."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from chain_indexer.app.domain.chains import ChainConfig
from chain_indexer.app.domain.errors import ChainNotFoundError, ConfigError, ConnectivityError
from chain_indexer.app.infrastructure.chain.registry import ChainRegistry, load_chains_file
from tests.fakes import FakeChainConnection

CHAINS = {
    "default_chain_id": 1,
    "chains": [
        {
            "chain_id": 1,
            "name": "Ethereum",
            "native_symbol": "ETH",
            "rpc_endpoint": "http://eth-primary",
            "backup_rpc_endpoints": ["http://eth-backup-1", "http://eth-backup-2"],
        },
        {
            "chain_id": 56,
            "name": "BSC",
            "native_symbol": "BNB",
            "rpc_endpoint": "http://bsc-primary",
            "poa": True,
        },
        {
            "chain_id": 137,
            "name": "Polygon",
            "native_symbol": "POL",
            "rpc_endpoint": "http://polygon-primary",
            "is_active": False,
        },
    ],
}


def _write(tmp_path: Path, payload: object) -> Path:
    path = tmp_path / "chains.json"
    path.write_text(payload if isinstance(payload, str) else json.dumps(payload), encoding="utf-8")
    return path


class _Connector:
    """Connect fn double: endpoints listed in `down` refuse the connection."""

    def __init__(self, down: set[str] | None = None) -> None:
        self.down = down or set()
        self.attempts: list[str] = []

    async def __call__(self, config: ChainConfig, endpoint: str) -> FakeChainConnection:
        self.attempts.append(endpoint)
        if endpoint in self.down:
            raise ConnectivityError(config.chain_id, f"endpoint {endpoint} is not reachable")
        return FakeChainConnection(config, endpoint=endpoint)


class TestLoadChainsFile:
    def test_parses_configs(self, tmp_path: Path) -> None:
        chains_file = load_chains_file(_write(tmp_path, CHAINS))

        assert [c.chain_id for c in chains_file.chains] == [1, 56, 137]
        assert chains_file.default_chain_id == 1
        eth = chains_file.chains[0]
        assert eth.endpoints == ("http://eth-primary", "http://eth-backup-1", "http://eth-backup-2")
        assert eth.block_time_seconds == 12
        assert chains_file.chains[1].poa is True

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigError):
            load_chains_file(tmp_path / "nope.json")

    def test_invalid_json(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigError):
            load_chains_file(_write(tmp_path, "{not json"))

    def test_schema_violation(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigError):
            load_chains_file(_write(tmp_path, {"chains": [{"chain_id": 1}]}))

    def test_duplicate_chain_ids(self, tmp_path: Path) -> None:
        payload = {"chains": [CHAINS["chains"][0], CHAINS["chains"][0]]}
        with pytest.raises(ConfigError):
            load_chains_file(_write(tmp_path, payload))


class TestChainRegistry:
    @pytest.mark.asyncio
    async def test_connects_active_chains_only(self, tmp_path: Path) -> None:
        connector = _Connector()

        registry = await ChainRegistry.load(_write(tmp_path, CHAINS), connect=connector)

        assert {c.chain_id for c in registry.active_configs()} == {1, 56}
        assert "http://polygon-primary" not in connector.attempts
        assert registry.config(137).name == "Polygon"
        assert registry.default_chain_id == 1
        with pytest.raises(ChainNotFoundError):
            registry.connection(137)

    @pytest.mark.asyncio
    async def test_fails_over_to_backup_in_order(self, tmp_path: Path) -> None:
        connector = _Connector(down={"http://eth-primary", "http://eth-backup-1"})

        registry = await ChainRegistry.load(_write(tmp_path, CHAINS), connect=connector)

        assert registry.connection(1).endpoint == "http://eth-backup-2"
        eth_attempts = [e for e in connector.attempts if e.startswith("http://eth")]
        assert eth_attempts == ["http://eth-primary", "http://eth-backup-1", "http://eth-backup-2"]

    @pytest.mark.asyncio
    async def test_unreachable_chain_is_excluded(self, tmp_path: Path) -> None:
        connector = _Connector(down={"http://bsc-primary"})

        registry = await ChainRegistry.load(_write(tmp_path, CHAINS), connect=connector)

        assert {c.chain_id for c in registry.active_configs()} == {1}
        with pytest.raises(ChainNotFoundError):
            registry.connection(56)

    @pytest.mark.asyncio
    async def test_default_chain_id_override(self, tmp_path: Path) -> None:
        registry = await ChainRegistry.load(_write(tmp_path, CHAINS), connect=_Connector(), default_chain_id=56)
        assert registry.default_chain_id == 56

    @pytest.mark.asyncio
    async def test_unknown_chain(self, tmp_path: Path) -> None:
        registry = await ChainRegistry.load(_write(tmp_path, CHAINS), connect=_Connector())

        with pytest.raises(ChainNotFoundError):
            registry.config(999)

    @pytest.mark.asyncio
    async def test_shutdown_closes_every_connection_once(self, tmp_path: Path) -> None:
        registry = await ChainRegistry.load(_write(tmp_path, CHAINS), connect=_Connector())
        connections = [registry.connection(1), registry.connection(56)]

        await registry.shutdown()
        await registry.shutdown()

        assert all(c.closed for c in connections)
