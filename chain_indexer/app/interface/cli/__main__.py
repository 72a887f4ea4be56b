import asyncio
import inspect
import logging

import typer
from dotenv import load_dotenv
from InquirerPy import inquirer

from chain_indexer.app.application.services.block_lookup import BlockByHash, BlockByHeight
from chain_indexer.app.config import settings
from chain_indexer.app.interface.tasks import TASKS
from chain_indexer.app.interface.tasks.block_lookup_task import block_lookup_task
from chain_indexer.app.interface.tasks.init_db_task import init_db_task
from chain_indexer.app.interface.tasks.sync_chains_task import sync_chains_task
from chain_indexer.app.interface.tasks.token_metadata_task import token_metadata_task


load_dotenv()

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
)

app = typer.Typer()
indexer_app = typer.Typer(help="cli for indexing EVM chains.")
app.add_typer(indexer_app, name="indexer")


def _echo_result(result: object) -> None:
    if isinstance(result, (BlockByHeight, BlockByHash)):
        block = result.block
        typer.echo(
            f"chain={block.chain_id} block={block.block_number} hash={block.hash} "
            f"txs={block.tx_count} time={block.timestamp.isoformat()}"
        )
    elif result is not None:
        typer.echo(str(result))


@indexer_app.command("run")
def run() -> None:
    task_name = inquirer.select(
        message="Select task:",
        choices=list(TASKS.keys()),
        pointer="❯",
        instruction="Use ↑/↓ to move, Enter to select",
    ).execute()

    task = TASKS[task_name]

    kwargs: dict[str, object] = {}

    params = inspect.signature(task).parameters

    if "chain_id" in params:
        kwargs["chain_id"] = int(
            inquirer.text(
                message="Chain ID (e.g. 1 for Ethereum mainnet):",
                default=str(settings.default_chain_id or 1),
            ).execute()
        )
    if "query" in params:
        kwargs["query"] = inquirer.text(message="Block number or hash:").execute()
    if "limit" in params:
        limit_str = inquirer.text(
            message="Limit (optional, empty = no limit):",
            default="",
        ).execute()
        kwargs["limit"] = int(limit_str) if limit_str.strip() else None

    _echo_result(asyncio.run(task(**kwargs)))  # type: ignore


@indexer_app.command("sync")
def sync(
    chains_config: str = typer.Option(None, "--chains-config", help="Path to chains.json"),
) -> None:
    """Index every active chain until interrupted."""
    asyncio.run(sync_chains_task(chains_config=chains_config))


@indexer_app.command("tokens")
def tokens(
    chain_id: int = typer.Option(..., "--chain-id"),
    limit: int = typer.Option(None, "--limit", min=1),
) -> None:
    """Fetch ERC-20 metadata for tokens missing symbol / decimals."""
    report = asyncio.run(token_metadata_task(chain_id=chain_id, limit=limit))
    typer.echo(f"tokens={report.total} updated={report.updated} fetch_errors={report.fetch_errors}")


@indexer_app.command("block")
def block(
    query: str = typer.Argument(..., help="Block number or 0x block hash"),
    chain_id: int = typer.Option(None, "--chain-id"),
) -> None:
    """Look up a stored block by height or hash."""
    chain_id = chain_id or settings.default_chain_id
    if chain_id is None:
        raise typer.BadParameter("--chain-id is required when DEFAULT_CHAIN_ID is not set")

    result = asyncio.run(block_lookup_task(chain_id=chain_id, query=query))
    if not isinstance(result, (BlockByHeight, BlockByHash)):
        typer.echo(f"block {query!r} not found on chain {chain_id}", err=True)
        raise typer.Exit(code=1)
    _echo_result(result)


@indexer_app.command("init-db")
def init_db() -> None:
    """Create the indexer schema and tables."""
    asyncio.run(init_db_task())


if __name__ == "__main__":
    LOGO = r"""
      ___  _           _         ___          _
     / __|| |_   __ _ (_) _ _   |_ _| _ _   __| | ___ __ __ ___  _ _
    | (__ | ' \ / _` || || ' \   | | | ' \ / _` |/ -_)\ \ // -_)| '_|
     \___||_||_|\__,_||_||_||_| |___||_||_|\__,_|\___|/_\_\\___||_|

      --- Chain Indexer CLI ---
    """
    typer.echo(LOGO)
    app()
