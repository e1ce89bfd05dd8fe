# app/paygate/config.py
"""
Immutable payment configuration.

Settings are read from the environment once (app.core.config) and turned
into a PaymentConfig here. Every component takes the PaymentConfig through
its constructor; nothing in the verification path reads settings directly.
"""
import logging
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Optional

from eth_utils import is_address, to_checksum_address

from app.core.config import Settings
from app.paygate.errors import ConfigError
from app.paygate.units import parse_amount, to_base_units

logger = logging.getLogger(__name__)


class MatchPolicy(Enum):
    """How qualifying transfers are compared against the price."""
    SINGLE = "single"        # one transfer must cover the price on its own
    AGGREGATE = "aggregate"  # the sum of qualifying transfers must cover it


def normalize_address(value: Optional[str], name: str) -> str:
    """
    Validate an EVM address and return its checksummed form.

    Raises:
        ConfigError: If the address is missing or malformed
    """
    if not value or not value.strip():
        raise ConfigError(f"Missing env: {name}")
    value = value.strip()
    if not is_address(value):
        raise ConfigError(f"{name} is not a valid address: {value}")
    return to_checksum_address(value)


@dataclass(frozen=True)
class PaymentConfig:
    """Server-side payment terms, validated once."""
    rpc_url: str
    receiver: str
    token: str
    price: Decimal
    chain_id: int = 8453
    decimals: int = 6
    symbol: str = "USDC"
    match_policy: MatchPolicy = MatchPolicy.SINGLE
    include_nonce: bool = False
    rpc_timeout_seconds: float = 10.0

    @property
    def price_base_units(self) -> int:
        """Price in the token's smallest unit."""
        return to_base_units(self.price, self.decimals)

    @classmethod
    def from_settings(cls, settings: Settings) -> "PaymentConfig":
        """
        Build and validate a PaymentConfig from application settings.

        Raises:
            ConfigError: If any required value is missing or invalid
        """
        if not settings.BASE_RPC_URL:
            raise ConfigError("Missing env: BASE_RPC_URL")
        if settings.PRICE_USDC is None or not str(settings.PRICE_USDC).strip():
            raise ConfigError("Missing env: PRICE_USDC")

        try:
            price = parse_amount(settings.PRICE_USDC)
        except ConfigError as e:
            raise ConfigError(f"PRICE_USDC must be a positive number ({e})")

        try:
            match_policy = MatchPolicy(settings.PAYMENT_MATCH_POLICY.strip().lower())
        except ValueError:
            raise ConfigError(
                f"PAYMENT_MATCH_POLICY must be 'single' or 'aggregate', "
                f"got {settings.PAYMENT_MATCH_POLICY!r}"
            )

        # Price must be representable in the token's smallest unit
        to_base_units(price, settings.PAYMENT_TOKEN_DECIMALS)

        if settings.PAYMENT_CHAIN_ID <= 0:
            raise ConfigError(f"PAYMENT_CHAIN_ID must be positive, got {settings.PAYMENT_CHAIN_ID}")
        if settings.RPC_TIMEOUT_SECONDS <= 0:
            raise ConfigError("RPC_TIMEOUT_SECONDS must be positive")

        config = cls(
            rpc_url=str(settings.BASE_RPC_URL),
            receiver=normalize_address(settings.PAYMENT_RECEIVER, "PAYMENT_RECEIVER"),
            token=normalize_address(settings.USDC_BASE, "USDC_BASE"),
            price=price,
            chain_id=settings.PAYMENT_CHAIN_ID,
            decimals=settings.PAYMENT_TOKEN_DECIMALS,
            symbol=settings.PAYMENT_TOKEN_SYMBOL,
            match_policy=match_policy,
            include_nonce=settings.PAYMENT_INCLUDE_NONCE,
            rpc_timeout_seconds=settings.RPC_TIMEOUT_SECONDS,
        )

        return config
