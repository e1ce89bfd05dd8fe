# app/paygate/decoder.py
"""
ERC-20 Transfer event decoding.

Transfer(address indexed from, address indexed to, uint256 value)
- topics[0]: event signature hash
- topics[1]: from address, left-padded to 32 bytes
- topics[2]: to address, left-padded to 32 bytes
- data: value as a 32-byte big-endian uint256

Some tokens index the value as well, in which case it arrives as topics[3]
and data is empty. Both layouts are accepted.

Anything that does not decode cleanly is skipped, never raised: other
events emitted by the same contract (Approval, etc.) are expected.
"""
import logging
import re
from typing import Iterable, List, Optional

from eth_utils import keccak, to_checksum_address

from app.paygate.types import RawLog, TransferRecord

logger = logging.getLogger(__name__)

TRANSFER_EVENT_SIGNATURE = "Transfer(address,address,uint256)"
TRANSFER_TOPIC = "0x" + keccak(text=TRANSFER_EVENT_SIGNATURE).hex()

WORD_HEX_LENGTH = 64  # 32 bytes
HEX_DIGITS = re.compile(r"[0-9a-fA-F]*")


def _strip_hex(value: str) -> Optional[str]:
    """Return the hex digits of a 0x-prefixed string, or None if not hex."""
    if not isinstance(value, str) or value[:2].lower() != "0x":
        return None
    digits = value[2:]
    if not HEX_DIGITS.fullmatch(digits):
        return None
    return digits.lower()


def _decode_address_topic(topic: str) -> Optional[str]:
    digits = _strip_hex(topic)
    if digits is None or len(digits) != WORD_HEX_LENGTH:
        return None
    # The upper 12 bytes of an address word are always zero
    if digits[:24] != "0" * 24:
        return None
    return to_checksum_address("0x" + digits[24:])


def _decode_uint256_word(word: str) -> Optional[int]:
    digits = _strip_hex(word)
    if digits is None or len(digits) != WORD_HEX_LENGTH:
        return None
    return int(digits, 16)


def decode_transfer_log(log: RawLog, log_index: int = 0) -> Optional[TransferRecord]:
    """
    Decode one log entry as a Transfer event.

    Args:
        log: Raw log entry
        log_index: Position of the entry within the receipt

    Returns:
        TransferRecord, or None if the entry is not a well-formed Transfer
    """
    topics = log.topics
    if len(topics) not in (3, 4):
        return None
    if not isinstance(topics[0], str) or topics[0].lower() != TRANSFER_TOPIC:
        return None

    sender = _decode_address_topic(topics[1])
    receiver = _decode_address_topic(topics[2])
    if sender is None or receiver is None:
        return None

    if len(topics) == 4:
        # value indexed; data must carry nothing
        data_digits = _strip_hex(log.data or "0x")
        if data_digits is None or data_digits:
            return None
        value = _decode_uint256_word(topics[3])
    else:
        value = _decode_uint256_word(log.data)

    if value is None:
        return None

    return TransferRecord(sender=sender, receiver=receiver, value=value, log_index=log_index)


def addresses_equal(a: Optional[str], b: Optional[str]) -> bool:
    """Case-insensitive address comparison."""
    if not a or not b:
        return False
    return a.lower() == b.lower()


def decode_transfers(logs: Iterable[RawLog], token_address: str) -> List[TransferRecord]:
    """
    Extract Transfer records emitted by a given token contract.

    Log order is preserved. Entries from other contracts and entries that
    fail to decode are dropped.

    Args:
        logs: Raw log entries from a receipt
        token_address: Contract whose Transfer events count

    Returns:
        List of TransferRecord in log order
    """
    transfers = []
    skipped = 0
    for index, log in enumerate(logs):
        if not addresses_equal(log.address, token_address):
            continue
        record = decode_transfer_log(log, log_index=index)
        if record is None:
            skipped += 1
            continue
        transfers.append(record)

    if skipped:
        logger.debug(f"Skipped {skipped} non-Transfer log(s) from token {token_address}")
    return transfers
