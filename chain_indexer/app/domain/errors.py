from __future__ import annotations


class IndexerError(Exception):
    """Base class for every error raised by the indexing core."""


class ConfigError(IndexerError):
    """Chains file is missing, unreadable or does not match the schema."""


class ChainNotFoundError(IndexerError):
    def __init__(self, chain_id: int) -> None:
        super().__init__(f"chain {chain_id} not found or not active")
        self.chain_id = chain_id


class ConnectivityError(IndexerError):
    """No RPC endpoint of a chain (chain_id=None: of any chain) could be reached."""

    def __init__(self, chain_id: int | None, message: str) -> None:
        super().__init__(message if chain_id is None else f"chain {chain_id}: {message}")
        self.chain_id = chain_id


class FetchError(IndexerError):
    """A head, block or receipt could not be retrieved from the node."""

    def __init__(self, chain_id: int, operation: str, message: str) -> None:
        super().__init__(f"chain {chain_id}: {operation} failed: {message}")
        self.chain_id = chain_id
        self.operation = operation


class MappingError(IndexerError):
    """Raw chain data is malformed or misses a required field."""


class StorageError(IndexerError):
    """A persistence call failed."""
