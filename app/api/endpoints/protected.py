# app/api/endpoints/protected.py
from typing import Optional

from fastapi import APIRouter, Depends, Header, Request
import logging

from app.api.dependencies import enforce_rate_limit, get_client_ip, get_payment_gateway
from app.api.models.payment import PaymentRequiredResponse, ProtectedContentResponse
from app.core.config import Settings, get_settings
from app.paygate.gateway import PaymentGateway

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get(
    "/protected",
    summary="Fetch Content Behind a Payment",
    dependencies=[Depends(enforce_rate_limit)],
    response_model=ProtectedContentResponse,
    responses={402: {"model": PaymentRequiredResponse, "description": "Payment proof missing or not verified"}},
)
def get_protected_content(
    request: Request,
    x_payment_tx: Optional[str] = Header(default=None, description="Hash of the payment transaction"),
    x_wallet: Optional[str] = Header(default=None, description="Address the payment was sent from (optional)"),
    settings: Settings = Depends(get_settings),
    gateway: PaymentGateway = Depends(get_payment_gateway),
):
    """
    Returns protected content once the caller proves payment.

    The proof goes in the `X-Payment-Tx` header. `X-Wallet` optionally names
    the paying address; when present only transfers from it count, and it is
    echoed back in the 402 descriptor as `from`.
    """
    def serve_content():
        return {"ok": True, "data": {"secret": settings.PROTECTED_CONTENT_SECRET}}

    result = gateway.process(
        resource="protected",
        action=serve_content,
        tx_hash=x_payment_tx,
        sender=x_wallet,
        client_ip=get_client_ip(request),
        proof_field="X-Payment-Tx header",
    )
    return result.to_response()
