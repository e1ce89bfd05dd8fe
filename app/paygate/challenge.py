# app/paygate/challenge.py
"""Payment descriptor construction for 402 responses."""
import logging
import secrets
from typing import Optional

from app.paygate.config import PaymentConfig
from app.paygate.types import PaymentDescriptor
from app.paygate.units import to_base_units

logger = logging.getLogger(__name__)


def generate_nonce() -> str:
    """Random memo a client may attach to its payment for bookkeeping."""
    return "0x" + secrets.token_hex(16)


class PaymentChallengeBuilder:
    """Builds the "how to pay" descriptor from server configuration."""

    def __init__(self, config: PaymentConfig):
        self.config = config

    def build(self, sender: Optional[str] = None, nonce: Optional[str] = None) -> PaymentDescriptor:
        """
        Create a payment descriptor.

        Args:
            sender: Address the client says it will pay from (echoed back)
            nonce: Memo to include; one is generated when the config asks
                for nonces and none is given

        Returns:
            A fresh PaymentDescriptor
        """
        config = self.config
        if nonce is None and config.include_nonce:
            nonce = generate_nonce()

        return PaymentDescriptor(
            chain_id=config.chain_id,
            token=config.token,
            receiver=config.receiver,
            amount=config.price,
            amount_base_units=to_base_units(config.price, config.decimals),
            decimals=config.decimals,
            symbol=config.symbol,
            nonce=nonce,
            sender=sender,
        )
