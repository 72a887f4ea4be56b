from __future__ import annotations

import re
from dataclasses import dataclass

from chain_indexer.app.domain.models import Block
from chain_indexer.app.domain.ports.out import IndexerStorage

_BLOCK_HASH_RE = re.compile(r"^0x[0-9a-fA-F]{64}$")


@dataclass(frozen=True)
class BlockByHeight:
    block: Block


@dataclass(frozen=True)
class BlockByHash:
    block: Block


@dataclass(frozen=True)
class BlockNotFound:
    query: str


BlockLookupResult = BlockByHeight | BlockByHash | BlockNotFound


async def lookup_block(
    *,
    storage: IndexerStorage,
    chain_id: int,
    query: str,
) -> BlockLookupResult:
    """
    Resolve a user supplied block reference against stored blocks.

    A decimal string is a height, a 66-char `0x` string is a block hash.
    Anything else, or a reference with no stored block, is BlockNotFound.
    """
    q = query.strip()

    if q.isascii() and q.isdigit():
        block = await storage.get_block_by_number(chain_id, int(q))
        return BlockByHeight(block) if block is not None else BlockNotFound(query)

    if _BLOCK_HASH_RE.match(q):
        block = await storage.get_block_by_hash(chain_id, q.lower())
        return BlockByHash(block) if block is not None else BlockNotFound(query)

    return BlockNotFound(query)
