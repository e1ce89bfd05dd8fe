# tests/test_paygate_challenge.py
"""
Unit tests for payment descriptor construction.
"""
from decimal import Decimal

from app.paygate.challenge import PaymentChallengeBuilder, generate_nonce
from app.paygate.config import PaymentConfig

from tests.chain_fixtures import RECEIVER, SENDER, TOKEN


def make_config(**overrides) -> PaymentConfig:
    values = {
        "rpc_url": "https://rpc.example.org",
        "receiver": RECEIVER,
        "token": TOKEN,
        "price": Decimal("0.10"),
    }
    values.update(overrides)
    return PaymentConfig(**values)


class TestPaymentChallengeBuilder:
    """Test descriptor contents."""

    def test_descriptor_from_config(self):
        """The descriptor mirrors the configured payment terms."""
        descriptor = PaymentChallengeBuilder(make_config()).build()

        assert descriptor.chain_id == 8453
        assert descriptor.token == TOKEN
        assert descriptor.receiver == RECEIVER
        assert descriptor.amount == Decimal("0.10")
        assert descriptor.amount_base_units == 100000
        assert descriptor.decimals == 6
        assert descriptor.symbol == "USDC"
        assert descriptor.nonce is None
        assert descriptor.sender is None

    def test_wire_format(self):
        """to_dict uses the client-facing field names."""
        body = PaymentChallengeBuilder(make_config()).build().to_dict()

        assert body == {
            "chainId": 8453,
            "token": TOKEN,
            "to": RECEIVER,
            "amount": "0.10",
            "amountBaseUnits": "100000",
            "decimals": 6,
            "symbol": "USDC",
        }

    def test_whole_amount_without_exponent(self):
        """Whole prices are written as plain decimals."""
        body = PaymentChallengeBuilder(make_config(price=Decimal("1E+1"))).build().to_dict()

        assert body["amount"] == "10"
        assert body["amountBaseUnits"] == "10000000"

    def test_sender_hint_echoed(self):
        """A sender hint is included as 'from'."""
        body = PaymentChallengeBuilder(make_config()).build(sender=SENDER).to_dict()
        assert body["from"] == SENDER

    def test_nonce_when_configured(self):
        """A fresh nonce is generated per descriptor when enabled."""
        builder = PaymentChallengeBuilder(make_config(include_nonce=True))

        first = builder.build()
        second = builder.build()

        assert first.nonce is not None
        assert first.nonce != second.nonce
        assert "nonce" in first.to_dict()

    def test_explicit_nonce(self):
        """An explicit nonce is used as given."""
        descriptor = PaymentChallengeBuilder(make_config()).build(nonce="0xabc")
        assert descriptor.nonce == "0xabc"

    def test_custom_token_terms(self):
        """Chain, decimals and symbol follow the configuration."""
        config = make_config(chain_id=84532, decimals=18, symbol="DAI", price=Decimal("1.5"))
        descriptor = PaymentChallengeBuilder(config).build()

        assert descriptor.chain_id == 84532
        assert descriptor.amount_base_units == 1_500_000_000_000_000_000
        assert descriptor.symbol == "DAI"


class TestGenerateNonce:
    """Test nonce generation."""

    def test_format(self):
        """Nonces are 16 random bytes in hex."""
        nonce = generate_nonce()
        assert nonce.startswith("0x")
        assert len(nonce) == 34
