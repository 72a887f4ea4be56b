from __future__ import annotations

from functools import partial
from typing import Callable, Dict

from chain_indexer.app.infrastructure.chain.registry import ConnectFn
from chain_indexer.app.infrastructure.chain.web3_connection import Web3ChainConnection

_CONNECTION_REGISTRY: Dict[str, Callable[[float], ConnectFn]] = {
    "web3": lambda timeout: partial(Web3ChainConnection.connect, timeout=timeout),
}


def chain_connector_factory(
    *,
    backend: str = "web3",
    timeout: float,
) -> ConnectFn:
    """
    Return the connect function the ChainRegistry uses to open one
    connection per (chain, endpoint), bounded by `timeout` per request.
    """
    try:
        factory = _CONNECTION_REGISTRY[backend]
    except KeyError:
        raise ValueError(f"Unsupported chain connection backend: {backend!r}")

    return factory(timeout)
