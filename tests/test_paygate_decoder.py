# tests/test_paygate_decoder.py
"""
Unit tests for Transfer event decoding.
"""
from app.paygate.decoder import (
    TRANSFER_TOPIC,
    addresses_equal,
    decode_transfer_log,
    decode_transfers,
)
from app.paygate.types import RawLog, TransferRecord

from tests.chain_fixtures import (
    APPROVAL_TOPIC,
    OTHER_TOKEN,
    RECEIVER,
    SENDER,
    TOKEN,
    address_topic,
    transfer_log,
    uint_word,
)


class TestTransferTopic:
    """Test the event signature hash."""

    def test_transfer_topic_value(self):
        """The Transfer topic is keccak256 of the canonical signature."""
        assert TRANSFER_TOPIC == "0xddf252ad1be2c89b69c2b068fc378daa952ba7f163c4a11628f55a4df523b3ef"


class TestDecodeTransferLog:
    """Test decoding of a single log entry."""

    def test_standard_transfer(self):
        """Value in data, addresses in topics."""
        record = decode_transfer_log(transfer_log(SENDER, RECEIVER, 100000), log_index=3)

        assert record == TransferRecord(sender=SENDER, receiver=RECEIVER, value=100000, log_index=3)

    def test_addresses_are_checksummed(self):
        """Decoded addresses come back in checksum form."""
        record = decode_transfer_log(transfer_log(TOKEN, RECEIVER, 1))
        assert record.sender == TOKEN

    def test_indexed_value_variant(self):
        """Value as a fourth topic with empty data."""
        log = RawLog(
            address=TOKEN,
            topics=(TRANSFER_TOPIC, address_topic(SENDER), address_topic(RECEIVER), uint_word(42)),
            data="0x",
        )
        record = decode_transfer_log(log)
        assert record.value == 42

    def test_uppercase_topic_accepted(self):
        """Topic comparison ignores hex case."""
        log = transfer_log(SENDER, RECEIVER, 5)
        log = RawLog(address=log.address, topics=(TRANSFER_TOPIC.upper().replace("0X", "0x"),) + log.topics[1:], data=log.data)
        assert decode_transfer_log(log).value == 5

    def test_max_uint256(self):
        """The largest uint256 decodes without loss."""
        record = decode_transfer_log(transfer_log(SENDER, RECEIVER, 2 ** 256 - 1))
        assert record.value == 2 ** 256 - 1

    def test_approval_event_skipped(self):
        """Another event from the same contract is skipped."""
        log = RawLog(
            address=TOKEN,
            topics=(APPROVAL_TOPIC, address_topic(SENDER), address_topic(RECEIVER)),
            data=uint_word(100000),
        )
        assert decode_transfer_log(log) is None

    def test_missing_topics_skipped(self):
        """An ERC-721 style or truncated entry is skipped."""
        log = RawLog(address=TOKEN, topics=(TRANSFER_TOPIC, address_topic(SENDER)), data=uint_word(1))
        assert decode_transfer_log(log) is None

    def test_short_data_skipped(self):
        """Data shorter than one word is skipped."""
        log = transfer_log(SENDER, RECEIVER, 1)
        log = RawLog(address=log.address, topics=log.topics, data="0x01")
        assert decode_transfer_log(log) is None

    def test_non_hex_data_skipped(self):
        """Data that is not hex is skipped."""
        log = transfer_log(SENDER, RECEIVER, 1)
        log = RawLog(address=log.address, topics=log.topics, data="0x" + "zz" * 32)
        assert decode_transfer_log(log) is None

    def test_dirty_address_padding_skipped(self):
        """An address topic with non-zero upper bytes is skipped."""
        log = transfer_log(SENDER, RECEIVER, 1)
        dirty = "0x" + "f" * 24 + RECEIVER[2:].lower()
        log = RawLog(address=log.address, topics=(log.topics[0], log.topics[1], dirty), data=log.data)
        assert decode_transfer_log(log) is None

    def test_indexed_value_with_data_skipped(self):
        """Four topics plus non-empty data is not a valid Transfer."""
        log = RawLog(
            address=TOKEN,
            topics=(TRANSFER_TOPIC, address_topic(SENDER), address_topic(RECEIVER), uint_word(1)),
            data=uint_word(1),
        )
        assert decode_transfer_log(log) is None


class TestDecodeTransfers:
    """Test decoding of a receipt's log list."""

    def test_filters_by_token_case_insensitively(self):
        """Only logs from the expected token count, whatever the address case."""
        logs = [
            transfer_log(SENDER, RECEIVER, 1, token=OTHER_TOKEN),
            transfer_log(SENDER, RECEIVER, 2, token=TOKEN.lower()),
        ]
        transfers = decode_transfers(logs, TOKEN.upper().replace("0X", "0x"))

        assert [t.value for t in transfers] == [2]
        assert transfers[0].log_index == 1

    def test_preserves_log_order(self):
        """Records come back in log order."""
        logs = [transfer_log(SENDER, RECEIVER, v) for v in (3, 1, 2)]
        assert [t.value for t in decode_transfers(logs, TOKEN)] == [3, 1, 2]

    def test_skips_undecodable_entries(self):
        """Undecodable entries reduce the result instead of raising."""
        logs = [
            RawLog(address=TOKEN, topics=(), data="0x"),
            RawLog(address=TOKEN, topics=(APPROVAL_TOPIC,), data="garbage"),
            transfer_log(SENDER, RECEIVER, 7),
        ]
        transfers = decode_transfers(logs, TOKEN)

        assert len(transfers) == 1
        assert transfers[0].value == 7

    def test_restartable(self):
        """Decoding the same input twice yields the same records."""
        logs = (transfer_log(SENDER, RECEIVER, 1), transfer_log(SENDER, RECEIVER, 2))
        assert decode_transfers(logs, TOKEN) == decode_transfers(logs, TOKEN)

    def test_no_logs(self):
        """An empty receipt yields no transfers."""
        assert decode_transfers([], TOKEN) == []


class TestAddressesEqual:
    """Test address comparison."""

    def test_case_insensitive(self):
        """Checksummed and lowercase forms are equal."""
        assert addresses_equal(TOKEN, TOKEN.lower()) is True

    def test_different(self):
        """Different addresses are not equal."""
        assert addresses_equal(SENDER, RECEIVER) is False

    def test_missing(self):
        """A missing address never matches."""
        assert addresses_equal(None, RECEIVER) is False
        assert addresses_equal("", "") is False
