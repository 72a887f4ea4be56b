from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class ChainConfig(BaseModel):
    """
    Static descriptor of one EVM chain, as found in the chains file.

    Loaded once at startup and never mutated (frozen model, hashable so it
    can live in the registry's active set).
    """

    model_config = ConfigDict(frozen=True)

    chain_id: int = Field(..., gt=0)
    name: str
    short_name: str = ""
    native_symbol: str
    rpc_endpoint: str
    backup_rpc_endpoints: tuple[str, ...] = ()
    ws_endpoint: str | None = None
    block_time_seconds: int = 12
    is_testnet: bool = False
    is_active: bool = True
    supports_eip1559: bool = True

    # Chains such as BSC / Polygon put >32 bytes into extraData;
    # web3 needs the POA middleware to accept their blocks.
    poa: bool = False

    @property
    def endpoints(self) -> tuple[str, ...]:
        """Primary endpoint followed by the backups, in failover order."""
        return (self.rpc_endpoint, *self.backup_rpc_endpoints)


class ChainsFile(BaseModel):
    chains: list[ChainConfig]
    default_chain_id: int | None = None
