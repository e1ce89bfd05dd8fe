# app/paygate/types.py
"""Value objects shared by the payment gate components."""
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Optional, Tuple


class ReceiptStatus(Enum):
    """Outcome of a mined transaction as reported by its receipt."""
    SUCCESS = "success"
    FAILURE = "failure"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class RawLog:
    """A single event log entry exactly as emitted by a contract."""
    address: str
    topics: Tuple[str, ...]
    data: str = "0x"


@dataclass(frozen=True)
class TransactionReceipt:
    """The parts of a transaction receipt the gate looks at."""
    transaction_hash: str
    status: ReceiptStatus
    logs: Tuple[RawLog, ...] = ()
    block_number: Optional[int] = None


@dataclass(frozen=True)
class TransferRecord:
    """A decoded ERC-20 Transfer event.

    Addresses are EIP-55 checksummed; value is in the token's smallest unit.
    """
    sender: str
    receiver: str
    value: int
    log_index: int = 0


@dataclass(frozen=True)
class VerificationVerdict:
    """Result of checking a receipt against the expected payment."""
    ok: bool
    reason: Optional[str] = None
    paid_value: int = 0
    required_value: int = 0

    @classmethod
    def verified(cls, paid_value: int, required_value: int) -> "VerificationVerdict":
        return cls(ok=True, paid_value=paid_value, required_value=required_value)

    @classmethod
    def rejected(
        cls,
        reason: str,
        paid_value: int = 0,
        required_value: int = 0
    ) -> "VerificationVerdict":
        return cls(ok=False, reason=reason, paid_value=paid_value, required_value=required_value)


@dataclass(frozen=True)
class PaymentDescriptor:
    """
    Machine-readable "how to pay" object returned with a 402 response.

    amount is in human units (e.g. Decimal("0.10") USDC) and is presentation
    only; amount_base_units is the integer the verifier compares against.
    """
    chain_id: int
    token: str
    receiver: str
    amount: Decimal
    amount_base_units: int
    decimals: int
    symbol: str
    nonce: Optional[str] = None
    sender: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Serialize using the wire field names clients expect."""
        body: Dict[str, Any] = {
            "chainId": self.chain_id,
            "token": self.token,
            "to": self.receiver,
            "amount": format(self.amount, "f"),
            "amountBaseUnits": str(self.amount_base_units),
            "decimals": self.decimals,
            "symbol": self.symbol,
        }
        if self.nonce is not None:
            body["nonce"] = self.nonce
        if self.sender is not None:
            body["from"] = self.sender
        return body
