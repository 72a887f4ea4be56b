from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from pathlib import Path
from types import MappingProxyType
from typing import Mapping

from pydantic import ValidationError

from chain_indexer.app.domain.chains import ChainConfig, ChainsFile
from chain_indexer.app.domain.errors import ChainNotFoundError, ConfigError, ConnectivityError
from chain_indexer.app.domain.ports.out import ChainConnection

logger = logging.getLogger(__name__)

# (config, endpoint) -> live connection, raising ConnectivityError on failure
ConnectFn = Callable[[ChainConfig, str], Awaitable[ChainConnection]]


def load_chains_file(config_source: str | Path) -> ChainsFile:
    path = Path(config_source)
    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigError(f"Failed to read chains config {str(path)!r}: {exc}") from exc

    try:
        chains_file = ChainsFile.model_validate_json(raw)
    except ValidationError as exc:
        raise ConfigError(f"Failed to parse chains config {str(path)!r}: {exc}") from exc

    ids = [c.chain_id for c in chains_file.chains]
    duplicates = sorted({i for i in ids if ids.count(i) > 1})
    if duplicates:
        raise ConfigError(f"Duplicate chain ids in {str(path)!r}: {duplicates}")
    return chains_file


async def connect_with_failover(config: ChainConfig, connect: ConnectFn) -> ChainConnection:
    """
    Try the primary endpoint, then every backup in listed order.

    The first endpoint that connects wins; ConnectivityError when none does.
    """
    for endpoint in config.endpoints:
        try:
            connection = await connect(config, endpoint)
        except ConnectivityError as exc:
            logger.warning(
                "Failed to connect to RPC endpoint: chain_id=%s endpoint=%s error=%s",
                config.chain_id,
                endpoint,
                exc,
            )
            continue

        if endpoint != config.rpc_endpoint:
            logger.info("Connected to backup RPC: chain_id=%s endpoint=%s", config.chain_id, endpoint)
        return connection

    raise ConnectivityError(config.chain_id, "failed to connect to any RPC endpoint")


class ChainRegistry:
    """
    Owns the chain configs and one live connection per reachable active chain.

    The connection map is built once in `load` and never mutated afterwards,
    so chain tasks read it without locking. Only `shutdown` takes the lock.
    """

    def __init__(
        self,
        *,
        configs: Mapping[int, ChainConfig],
        connections: Mapping[int, ChainConnection],
        default_chain_id: int | None = None,
    ) -> None:
        self._configs = MappingProxyType(dict(configs))
        self._connections = MappingProxyType(dict(connections))
        self._default_chain_id = default_chain_id
        self._lock = asyncio.Lock()
        self._closed = False

    @classmethod
    async def load(
        cls,
        config_source: str | Path,
        *,
        connect: ConnectFn,
        default_chain_id: int | None = None,
    ) -> ChainRegistry:
        chains_file = load_chains_file(config_source)

        configs: dict[int, ChainConfig] = {}
        connections: dict[int, ChainConnection] = {}

        for config in chains_file.chains:
            configs[config.chain_id] = config
            if not config.is_active:
                continue
            try:
                connections[config.chain_id] = await connect_with_failover(config, connect)
            except ConnectivityError as exc:
                logger.warning(
                    "Failed to initialise chain client: chain_id=%s name=%s error=%s",
                    config.chain_id,
                    config.name,
                    exc,
                )
                continue
            logger.info("Initialised chain client: chain_id=%s name=%s", config.chain_id, config.name)

        if not connections:
            logger.error("No active chain could be connected")

        return cls(
            configs=configs,
            connections=connections,
            default_chain_id=default_chain_id if default_chain_id is not None else chains_file.default_chain_id,
        )

    @property
    def default_chain_id(self) -> int | None:
        return self._default_chain_id

    def connection(self, chain_id: int) -> ChainConnection:
        try:
            return self._connections[chain_id]
        except KeyError:
            raise ChainNotFoundError(chain_id) from None

    def config(self, chain_id: int) -> ChainConfig:
        try:
            return self._configs[chain_id]
        except KeyError:
            raise ChainNotFoundError(chain_id) from None

    def active_configs(self) -> frozenset[ChainConfig]:
        """Configs of the active chains that have a live connection."""
        return frozenset(self._configs[chain_id] for chain_id in self._connections)

    async def shutdown(self) -> None:
        async with self._lock:
            if self._closed:
                return
            self._closed = True
            for chain_id, connection in self._connections.items():
                await connection.close()
                logger.info("Closed chain client: chain_id=%s", chain_id)
