from __future__ import annotations

from typing import Any, Mapping

from eth_abi import decode as abi_decode
from eth_utils import keccak, to_checksum_address

from chain_indexer.app.application.services.record_mappers import to_bytes
from chain_indexer.app.domain.events import Erc20Transfer
from chain_indexer.app.domain.models import Log
from chain_indexer.app.domain.ports.out import EvmEventDecoder

_TRANSFER_EVENT_ABI: Mapping[str, Any] = {
    "type": "event",
    "name": "Transfer",
    "anonymous": False,
    "inputs": [
        {"name": "from", "type": "address", "indexed": True},
        {"name": "to", "type": "address", "indexed": True},
        {"name": "value", "type": "uint256", "indexed": False},
    ],
}

_WORD = 32


class Erc20TransferDecoder(EvmEventDecoder):
    """
    Decoder for the ERC-20 Transfer event.

    Topics:
      topic0 = keccak("Transfer(address,address,uint256)")
      topic1 = from (address, as 32-byte topic)
      topic2 = to   (address, as 32-byte topic)

    Data (non-indexed):
      value (uint256)

    ERC-721 uses the same signature but indexes the token id as a fourth
    topic; requiring exactly three topics keeps those out.
    """

    def __init__(self) -> None:
        self._event_abi = _TRANSFER_EVENT_ABI
        self._signature = self._event_signature(self._event_abi)
        self._topic0 = keccak(text=self._signature)

    @property
    def topic0(self) -> bytes:
        return self._topic0

    @property
    def event_signature(self) -> str:
        return self._signature

    def decode(self, log: Log) -> Erc20Transfer | None:
        # 1) must match expected event
        if log.topic0 is None or to_bytes(log.topic0) != self._topic0:
            return None

        # 2) exactly three topics: signature, from, to
        if log.topic1 is None or log.topic2 is None or log.topic3 is not None:
            return None

        topic1 = to_bytes(log.topic1)
        topic2 = to_bytes(log.topic2)
        if len(topic1) != _WORD or len(topic2) != _WORD:
            return None

        # 3) value must fit one uint256 word
        data = to_bytes(log.data)
        if len(data) > _WORD:
            return None

        return Erc20Transfer(
            token_address=log.address,
            from_address=self._topic_as_address(topic1),
            to_address=self._topic_as_address(topic2),
            value=str(self._decode_value(data)),
        )

    # ---------------------------------------------------------------------
    # ABI helpers
    # ---------------------------------------------------------------------

    def _event_signature(self, event_abi: Mapping[str, Any]) -> str:
        types = [inp["type"] for inp in event_abi["inputs"]]
        return f"{event_abi['name']}({','.join(types)})"

    def _topic_as_address(self, topic: bytes) -> str:
        # Indexed address is left-zero padded to 32 bytes.
        return to_checksum_address(topic[-20:])

    def _decode_value(self, data: bytes) -> int:
        if len(data) == _WORD:
            (value,) = abi_decode(["uint256"], data)
            return int(value)
        # Short non-standard payload: read the raw bytes as one big-endian word.
        return int.from_bytes(data, byteorder="big", signed=False)
