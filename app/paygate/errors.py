# app/paygate/errors.py
"""Exception types and reason strings for the payment gate."""
from typing import Optional

# Reasons carried by a denied verdict. These are returned to the caller
# verbatim, so they must not mention anything beyond public configuration.
REASON_TRANSACTION_NOT_FOUND = "transaction not found"
REASON_TRANSACTION_FAILED = "transaction failed"
REASON_NO_MATCHING_TRANSFER = "no matching transfer found"
REASON_INSUFFICIENT_PAYMENT = "insufficient payment"
REASON_INVALID_TX_HASH = "invalid transaction hash"
REASON_INVALID_SENDER = "invalid sender address"
REASON_PROOF_ALREADY_USED = "payment already used"


class PaymentGatewayError(Exception):
    """Base class for payment gateway errors."""


class ConfigError(PaymentGatewayError):
    """Required configuration is missing or invalid.

    Surfaced as an internal error, never as payment required.
    """


class ReceiptFormatError(PaymentGatewayError):
    """The node returned a receipt that cannot be interpreted."""


class UpstreamActionError(PaymentGatewayError):
    """The protected action failed after the payment was verified."""

    def __init__(self, detail: str, status_code: Optional[int] = None):
        super().__init__(detail)
        self.detail = detail
        self.status_code = status_code
