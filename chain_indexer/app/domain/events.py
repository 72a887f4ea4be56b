from __future__ import annotations

from dataclasses import dataclass

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"


@dataclass(frozen=True, kw_only=True)
class Erc20Transfer:
    """Decoded `Transfer(address indexed from, address indexed to, uint256 value)`."""

    token_address: str
    from_address: str
    to_address: str
    value: str

    @property
    def is_mint(self) -> bool:
        return self.from_address == ZERO_ADDRESS

    @property
    def is_burn(self) -> bool:
        return self.to_address == ZERO_ADDRESS


# Union of every event the decoders can produce. Only ERC20 transfers today.
DecodedEvent = Erc20Transfer
