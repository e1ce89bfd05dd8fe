# app/api/endpoints/booking.py
from fastapi import APIRouter, Depends, Request
import logging

from app.api.dependencies import (
    enforce_rate_limit,
    get_calcom_client,
    get_client_ip,
    get_payment_gateway,
)
from app.api.models.booking import BookingRequest
from app.api.models.payment import PaymentRequiredResponse, UpstreamErrorResponse
from app.paygate.gateway import PaymentGateway
from app.services.calcom_api import CalcomClient, build_booking_payload

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post(
    "/book",
    summary="Create a Booking Paid with a Token Transfer",
    dependencies=[Depends(enforce_rate_limit)],
    responses={
        402: {"model": PaymentRequiredResponse, "description": "Payment proof missing or not verified"},
        502: {"model": UpstreamErrorResponse, "description": "Payment accepted but Cal.com rejected the booking"},
    },
)
def create_booking(
    booking_request: BookingRequest,
    request: Request,
    calcom: CalcomClient = Depends(get_calcom_client),
    gateway: PaymentGateway = Depends(get_payment_gateway),
):
    """
    Creates a Cal.com booking once the caller proves payment.

    Without `paymentTxHash` the response is 402 with the payment descriptor.
    With it, the transaction receipt is checked on-chain; only a verified,
    unused payment creates the booking. The Cal.com response is returned as is.
    """
    payload = build_booking_payload(
        booking_request.model_dump(exclude={"paymentTxHash", "payerAddress"}, exclude_none=True)
    )

    result = gateway.process(
        resource="booking",
        action=lambda: calcom.create_booking(payload),
        tx_hash=booking_request.paymentTxHash,
        sender=booking_request.payerAddress,
        client_ip=get_client_ip(request),
        proof_field="paymentTxHash",
    )
    return result.to_response()
