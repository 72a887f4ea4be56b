"""Tests for the ERC-20 Transfer decoder."""

from __future__ import annotations

from eth_utils import to_checksum_address

from chain_indexer.app.application.services.record_mappers import map_log
from chain_indexer.app.domain.events import ZERO_ADDRESS
from chain_indexer.app.infrastructure.decoders.erc20.transfer_decoder import Erc20TransferDecoder
from tests.fakes import TRANSFER_TOPIC, addr, make_raw_log, make_transfer_log, pad_topic

SENDER = "0x" + "a" * 40
RECIPIENT = "0x" + "b" * 40


class TestErc20TransferDecoder:
    def test_signature_and_topic0(self, transfer_decoder: Erc20TransferDecoder) -> None:
        assert transfer_decoder.event_signature == "Transfer(address,address,uint256)"
        assert "0x" + transfer_decoder.topic0.hex() == TRANSFER_TOPIC

    def test_decodes_transfer(self, transfer_decoder: Erc20TransferDecoder) -> None:
        raw = make_raw_log(1, 0, 0, topics=[TRANSFER_TOPIC, pad_topic(SENDER), pad_topic(RECIPIENT)])
        raw["data"] = "0x" + "00" * 30 + "03e8"

        event = transfer_decoder.decode(map_log(raw, 1))

        assert event is not None
        assert event.from_address == to_checksum_address(SENDER)
        assert event.to_address == to_checksum_address(RECIPIENT)
        assert event.value == "1000"
        assert event.token_address == to_checksum_address(addr("cc"))

    def test_mint_and_burn_flags(self, transfer_decoder: Erc20TransferDecoder) -> None:
        mint = transfer_decoder.decode(
            map_log(make_transfer_log(1, 0, 0, sender=ZERO_ADDRESS, recipient=RECIPIENT, value=5), 1)
        )
        burn = transfer_decoder.decode(
            map_log(make_transfer_log(1, 0, 1, sender=SENDER, recipient=ZERO_ADDRESS, value=5), 1)
        )

        assert mint is not None and mint.is_mint and not mint.is_burn
        assert burn is not None and burn.is_burn and not burn.is_mint

    def test_max_uint256_value(self, transfer_decoder: Erc20TransferDecoder) -> None:
        value = 2**256 - 1
        log = map_log(make_transfer_log(1, 0, 0, sender=SENDER, recipient=RECIPIENT, value=value), 1)

        event = transfer_decoder.decode(log)

        assert event is not None
        assert event.value == str(value)

    def test_short_payload_is_read_as_one_word(self, transfer_decoder: Erc20TransferDecoder) -> None:
        raw = make_raw_log(1, 0, 0, topics=[TRANSFER_TOPIC, pad_topic(SENDER), pad_topic(RECIPIENT)], data="0x03e8")

        event = transfer_decoder.decode(map_log(raw, 1))

        assert event is not None
        assert event.value == "1000"

    def test_oversized_payload_is_ignored(self, transfer_decoder: Erc20TransferDecoder) -> None:
        # 64 bytes of 0xff would overflow a uint256 if read as one integer
        raw = make_raw_log(
            1, 0, 0, topics=[TRANSFER_TOPIC, pad_topic(SENDER), pad_topic(RECIPIENT)], data="0x" + "ff" * 64
        )

        assert transfer_decoder.decode(map_log(raw, 1)) is None

    def test_other_event_is_ignored(self, transfer_decoder: Erc20TransferDecoder) -> None:
        approval_topic = "0x8c5be1e5ebec7d5bd14f71427d1e84f3dd0314c0f7b2291e5b200ac8c7c3b925"
        raw = make_raw_log(1, 0, 0, topics=[approval_topic, pad_topic(SENDER), pad_topic(RECIPIENT)])

        assert transfer_decoder.decode(map_log(raw, 1)) is None

    def test_erc721_transfer_is_ignored(self, transfer_decoder: Erc20TransferDecoder) -> None:
        token_id = "0x" + "00" * 31 + "07"
        raw = make_raw_log(
            1, 0, 0, topics=[TRANSFER_TOPIC, pad_topic(SENDER), pad_topic(RECIPIENT), token_id]
        )

        assert transfer_decoder.decode(map_log(raw, 1)) is None

    def test_missing_indexed_topics_is_ignored(self, transfer_decoder: Erc20TransferDecoder) -> None:
        raw = make_raw_log(1, 0, 0, topics=[TRANSFER_TOPIC], data="0x" + "00" * 96)

        assert transfer_decoder.decode(map_log(raw, 1)) is None

    def test_log_without_topics_is_ignored(self, transfer_decoder: Erc20TransferDecoder) -> None:
        assert transfer_decoder.decode(map_log(make_raw_log(1, 0, 0), 1)) is None
