from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import Any

from .block_lookup_task import block_lookup_task
from .init_db_task import init_db_task
from .sync_chains_task import sync_chains_task
from .token_metadata_task import token_metadata_task

TaskFn = Callable[..., Awaitable[Any]]

TASKS: dict[str, TaskFn] = {
    "sync_chains_task": sync_chains_task,
    "token_metadata_task": token_metadata_task,
    "block_lookup_task": block_lookup_task,
    "init_db_task": init_db_task,
}
