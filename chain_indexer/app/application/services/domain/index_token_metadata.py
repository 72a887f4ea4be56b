from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any

from chain_indexer.app.application.services.record_mappers import map_token
from chain_indexer.app.domain.errors import IndexerError
from chain_indexer.app.domain.ports.out import Erc20TokenMetadataFetcher, IndexerStorage

logger = logging.getLogger(__name__)

_DEFAULT_BATCH_SIZE = 500


@dataclass(frozen=True)
class TokenMetadataReport:
    total: int
    updated: int
    fetch_errors: int


def _chunks(seq: list[Any], size: int) -> Iterable[list[Any]]:
    for i in range(0, len(seq), size):
        yield seq[i : i + size]


async def index_token_metadata(
    *,
    storage: IndexerStorage,
    fetcher: Erc20TokenMetadataFetcher,
    chain_id: int,
    limit: int | None = None,
    batch_size: int = _DEFAULT_BATCH_SIZE,
) -> TokenMetadataReport:
    """
    Fill name / symbol / decimals / total supply of tokens discovered by
    the sync engine.

    Only tokens with symbol or decimals still NULL are selected. Stored
    values are never overwritten by NULLs (the token upsert coalesces).
    """
    if chain_id <= 0:
        raise ValueError("chain_id must be positive")
    if limit is not None and limit <= 0:
        raise ValueError("limit must be positive when provided")
    if batch_size <= 0:
        raise ValueError("batch_size must be positive")

    logger.info(
        "Starting ERC20 token metadata indexing",
        extra={"chain_id": chain_id, "limit": limit},
    )

    addresses = await storage.tokens_missing_metadata(chain_id, limit)
    total = len(addresses)
    logger.info("Discovered %s token candidates for metadata fetch", total)

    updated = 0
    fetch_errors = 0

    for batch_idx, batch in enumerate(_chunks(addresses, batch_size), start=1):
        logger.info(
            "Processing token batch %s (%s/%s)",
            batch_idx,
            min(batch_idx * batch_size, total),
            total,
        )

        batch_errors = 0
        for token_address in batch:
            try:
                metadata = await fetcher.fetch(token_address=token_address)
            except IndexerError as exc:
                batch_errors += 1
                logger.warning(
                    "Failed to fetch token metadata: chain_id=%s token=%s error=%s",
                    chain_id,
                    token_address,
                    exc,
                )
                continue

            await storage.upsert_token(map_token(chain_id, token_address, metadata=metadata))
            updated += 1

        fetch_errors += batch_errors
        logger.info(
            "Upserted %s tokens (fetch_errors=%s)",
            len(batch) - batch_errors,
            batch_errors,
        )

    logger.info(
        "Finished ERC20 token metadata indexing",
        extra={"chain_id": chain_id, "total": total},
    )
    return TokenMetadataReport(total=total, updated=updated, fetch_errors=fetch_errors)
