# app/api/models/payment.py
from pydantic import BaseModel, Field
from typing import Optional, Any, Dict


class PaymentDescriptorModel(BaseModel):
    """How to pay for a protected action."""
    chainId: int = Field(..., description="EVM chain id", examples=[8453])
    token: str = Field(..., description="Token contract address")
    to: str = Field(..., description="Address that must receive the payment")
    amount: str = Field(..., description="Required amount in human units", examples=["0.10"])
    amountBaseUnits: str = Field(..., description="Required amount in the token's smallest unit", examples=["100000"])
    decimals: int = Field(..., description="Token decimals", examples=[6])
    symbol: str = Field(..., description="Token symbol", examples=["USDC"])
    nonce: Optional[str] = Field(default=None, description="Optional memo for the payment")
    from_: Optional[str] = Field(default=None, alias="from", description="Sender hint echoed from the request")


class PaymentRequiredResponse(BaseModel):
    """Body of a 402 response."""
    error: str = Field(..., examples=["Payment required"])
    reason: Optional[str] = Field(default=None, description="Why a supplied proof was rejected")
    details: Optional[str] = Field(default=None, description="What is missing from the request")
    paid: Optional[str] = Field(default=None, description="Amount found on-chain when it was short")
    required: Optional[str] = Field(default=None, description="Amount that was required")
    payment: PaymentDescriptorModel


class UpstreamErrorResponse(BaseModel):
    """The payment was accepted but the protected action failed."""
    error: str = Field(..., examples=["Upstream action failed"])
    details: str
    status: Optional[int] = Field(default=None, description="Status returned by the downstream service")


class ProtectedContentResponse(BaseModel):
    """Content served after a verified payment."""
    ok: bool = True
    data: Dict[str, Any]
