# app/paygate/verifier.py
"""
Payment verification over a fetched receipt.

Steps:
1. A receipt whose status is not success never verifies
2. Decode Transfer events emitted by the expected token
3. Keep transfers to the expected receiver (and from the expected sender,
   when one is given)
4. Compare against the required amount in the token's smallest unit,
   using the configured MatchPolicy

Verification holds no state; the same inputs always give the same verdict.
"""
import logging
from typing import List, Optional

from app.paygate.config import MatchPolicy
from app.paygate.decoder import addresses_equal, decode_transfers
from app.paygate.errors import (
    REASON_INSUFFICIENT_PAYMENT,
    REASON_NO_MATCHING_TRANSFER,
    REASON_TRANSACTION_FAILED,
)
from app.paygate.types import (
    ReceiptStatus,
    TransactionReceipt,
    TransferRecord,
    VerificationVerdict,
)

logger = logging.getLogger(__name__)


def select_candidates(
    transfers: List[TransferRecord],
    expected_receiver: str,
    expected_sender: Optional[str] = None
) -> List[TransferRecord]:
    """Filter transfers by receiver and, optionally, sender."""
    candidates = [t for t in transfers if addresses_equal(t.receiver, expected_receiver)]
    if expected_sender:
        candidates = [t for t in candidates if addresses_equal(t.sender, expected_sender)]
    return candidates


class PaymentVerifier:
    """Decides whether a receipt pays at least the required amount."""

    def __init__(self, policy: MatchPolicy = MatchPolicy.SINGLE):
        self.policy = policy

    def verify(
        self,
        receipt: TransactionReceipt,
        expected_receiver: str,
        expected_token: str,
        minimum_value: int,
        expected_sender: Optional[str] = None
    ) -> VerificationVerdict:
        """
        Check a receipt against the expected payment.

        Args:
            receipt: Receipt of the claimed payment transaction
            expected_receiver: Address that must receive the tokens
            expected_token: Token contract whose Transfer events count
            minimum_value: Required amount in the token's smallest unit
            expected_sender: If given, only transfers from this address count

        Returns:
            VerificationVerdict; reason is set when ok is False
        """
        if receipt.status is not ReceiptStatus.SUCCESS:
            logger.info(f"Receipt {receipt.transaction_hash} status is {receipt.status.value}")
            return VerificationVerdict.rejected(REASON_TRANSACTION_FAILED, required_value=minimum_value)

        transfers = decode_transfers(receipt.logs, expected_token)
        candidates = select_candidates(transfers, expected_receiver, expected_sender)

        if not candidates:
            logger.info(
                f"Receipt {receipt.transaction_hash}: {len(transfers)} token transfer(s), "
                f"none to the receiver"
                + (" from the claimed sender" if expected_sender else "")
            )
            return VerificationVerdict.rejected(REASON_NO_MATCHING_TRANSFER, required_value=minimum_value)

        if self.policy is MatchPolicy.AGGREGATE:
            paid = sum(t.value for t in candidates)
        else:
            paid = max(t.value for t in candidates)

        if paid >= minimum_value:
            logger.info(
                f"Receipt {receipt.transaction_hash} verified: paid {paid} >= {minimum_value} "
                f"({self.policy.value} policy)"
            )
            return VerificationVerdict.verified(paid_value=paid, required_value=minimum_value)

        logger.info(
            f"Receipt {receipt.transaction_hash} underpaid: {paid} < {minimum_value} "
            f"({self.policy.value} policy)"
        )
        return VerificationVerdict.rejected(
            REASON_INSUFFICIENT_PAYMENT,
            paid_value=paid,
            required_value=minimum_value
        )
