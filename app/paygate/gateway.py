# app/paygate/gateway.py
"""
Payment gateway state machine.

Every protected request walks the same states:

    AwaitingProof -> Verifying -> Granted | Denied

1. No proof: build a payment descriptor and answer 402
2. Proof given: fetch the receipt and verify the transfer
3. Verified: claim the proof in the ledger and run the protected action
   exactly once, returning its result verbatim
4. Not verified: answer 402 with the reason, never running the action

Verification problems never escape as exceptions; they become a 402 with
a reason. A failure of the protected action itself is reported as an
upstream error so clients can tell "payment fine, booking failed" apart
from "payment rejected".
"""
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Optional

from eth_utils import is_address, to_checksum_address
from starlette.responses import JSONResponse

from app.paygate import audit
from app.paygate.challenge import PaymentChallengeBuilder
from app.paygate.config import PaymentConfig
from app.paygate.errors import (
    REASON_INSUFFICIENT_PAYMENT,
    REASON_INVALID_SENDER,
    REASON_INVALID_TX_HASH,
    REASON_PROOF_ALREADY_USED,
    REASON_TRANSACTION_NOT_FOUND,
    UpstreamActionError,
)
from app.paygate.ledger import ProofLedger
from app.paygate.rpc import ChainReceiptClient, LookupStatus
from app.paygate.types import PaymentDescriptor, VerificationVerdict
from app.paygate.units import from_base_units
from app.paygate.verifier import PaymentVerifier

logger = logging.getLogger(__name__)

PAYMENT_REQUIRED_STATUS = 402


class GatewayState(Enum):
    AWAITING_PROOF = "awaiting_proof"
    VERIFYING = "verifying"
    GRANTED = "granted"
    DENIED = "denied"


class GatewayErrorClass(Enum):
    """Failure classes that are not payment decisions."""
    UPSTREAM_ERROR = "upstream_error"
    INTERNAL_ERROR = "internal_error"


@dataclass
class GatewayResult:
    """Final state of one gated request plus the HTTP answer for it."""
    state: GatewayState
    status_code: int
    body: Any
    reason: Optional[str] = None
    error_class: Optional[GatewayErrorClass] = None

    @property
    def granted(self) -> bool:
        return self.state is GatewayState.GRANTED and self.error_class is None

    def to_response(self) -> JSONResponse:
        return JSONResponse(status_code=self.status_code, content=self.body)


def create_402_body(
    descriptor: PaymentDescriptor,
    error_message: str = "Payment required",
    reason: Optional[str] = None,
    extra: Optional[Dict[str, Any]] = None
) -> Dict[str, Any]:
    """Body of a 402 response: an error, an optional reason and how to pay."""
    body: Dict[str, Any] = {"error": error_message}
    if reason is not None:
        body["reason"] = reason
    if extra:
        body.update(extra)
    body["payment"] = descriptor.to_dict()
    return body


class PaymentGateway:
    """Gates a protected action behind on-chain payment verification."""

    def __init__(
        self,
        config: PaymentConfig,
        receipt_client: Optional[ChainReceiptClient] = None,
        verifier: Optional[PaymentVerifier] = None,
        challenge_builder: Optional[PaymentChallengeBuilder] = None,
        ledger: Optional[ProofLedger] = None
    ):
        self.config = config
        self.receipt_client = receipt_client or ChainReceiptClient(
            config.rpc_url, timeout=config.rpc_timeout_seconds
        )
        self.verifier = verifier or PaymentVerifier(config.match_policy)
        self.challenge_builder = challenge_builder or PaymentChallengeBuilder(config)
        self.ledger = ledger

    def _payment_required(
        self,
        resource: str,
        client_ip: Optional[str],
        sender: Optional[str],
        detail: str,
        request_id: Optional[str]
    ) -> GatewayResult:
        descriptor = self.challenge_builder.build(sender=sender)
        body = create_402_body(descriptor, extra={"details": detail})
        audit.log_payment_required_sent(
            client_ip=client_ip,
            resource=resource,
            descriptor=body["payment"],
            request_id=request_id
        )
        logger.info(f"Payment required for {resource}: {detail}")
        return GatewayResult(
            state=GatewayState.AWAITING_PROOF,
            status_code=PAYMENT_REQUIRED_STATUS,
            body=body
        )

    def _denied(
        self,
        resource: str,
        tx_hash: str,
        reason: str,
        client_ip: Optional[str],
        sender: Optional[str],
        request_id: Optional[str],
        detail: Optional[str] = None,
        verdict: Optional[VerificationVerdict] = None
    ) -> GatewayResult:
        extra = None
        if verdict is not None and reason == REASON_INSUFFICIENT_PAYMENT:
            decimals = self.config.decimals
            extra = {
                "paid": format(from_base_units(verdict.paid_value, decimals).normalize(), "f"),
                "required": format(self.config.price, "f"),
            }

        body = create_402_body(
            self.challenge_builder.build(sender=sender),
            error_message="Payment not verified",
            reason=reason,
            extra=extra
        )
        audit.log_payment_rejected(
            client_ip=client_ip,
            resource=resource,
            tx_hash=tx_hash,
            reason=reason,
            detail=detail,
            wallet_address=sender,
            request_id=request_id
        )
        logger.warning(f"Payment proof {tx_hash} for {resource} denied: {reason}" + (f" ({detail})" if detail else ""))
        return GatewayResult(
            state=GatewayState.DENIED,
            status_code=PAYMENT_REQUIRED_STATUS,
            body=body,
            reason=reason
        )

    def _internal_error(
        self,
        resource: str,
        error: Exception,
        client_ip: Optional[str],
        state: GatewayState,
        request_id: Optional[str]
    ) -> GatewayResult:
        logger.error(f"Unexpected error while gating {resource}: {error}", exc_info=True)
        audit.log_error(
            client_ip=client_ip,
            error_type=type(error).__name__,
            error_message=str(error),
            context={"resource": resource, "state": state.value},
            request_id=request_id
        )
        return GatewayResult(
            state=state,
            status_code=500,
            body={"error": "Internal server error"},
            error_class=GatewayErrorClass.INTERNAL_ERROR
        )

    def _release_proof(self, resource: str, tx_hash: str) -> None:
        """Re-open a proof after its action failed; persistence errors are logged only."""
        if self.ledger is None:
            return
        try:
            self.ledger.release(tx_hash)
        except OSError as e:
            logger.error(f"Could not release proof {tx_hash} for {resource}: {e}")

    def verify_proof(self, tx_hash: str, sender: Optional[str] = None) -> VerificationVerdict:
        """
        Fetch the receipt for a proof and verify it against the configured price.

        Args:
            tx_hash: Transaction hash supplied as proof
            sender: Checksummed address the payment must come from, if any

        Returns:
            VerificationVerdict; receipt lookup failures become a rejection
        """
        lookup = self.receipt_client.fetch(tx_hash)

        if lookup.status is LookupStatus.MALFORMED_HASH:
            return VerificationVerdict.rejected(REASON_INVALID_TX_HASH)
        if not lookup.found:
            # Unknown, pending and unreachable all look the same to the caller
            if lookup.status is LookupStatus.TRANSPORT_ERROR:
                logger.warning(f"Receipt lookup for {tx_hash} failed: {lookup.detail}")
            return VerificationVerdict.rejected(REASON_TRANSACTION_NOT_FOUND)

        return self.verifier.verify(
            receipt=lookup.receipt,
            expected_receiver=self.config.receiver,
            expected_token=self.config.token,
            minimum_value=self.config.price_base_units,
            expected_sender=sender
        )

    def process(
        self,
        resource: str,
        action: Callable[[], Any],
        tx_hash: Optional[str] = None,
        sender: Optional[str] = None,
        client_ip: Optional[str] = None,
        proof_field: str = "payment proof"
    ) -> GatewayResult:
        """
        Run one request through the gate.

        Args:
            resource: Name of the protected resource (for logs and audit)
            action: Zero-argument callable performing the protected action.
                It may raise UpstreamActionError to report its own failure.
            tx_hash: Payment proof, if the caller supplied one
            sender: Address the caller claims to have paid from, if any
            client_ip: Caller address for audit
            proof_field: Name of the proof field, used in the 402 message

        Returns:
            GatewayResult holding the final state and the HTTP answer
        """
        request_id = audit.generate_request_id()
        tx_hash = tx_hash.strip() if tx_hash else None
        sender = sender.strip() if sender else None

        # AwaitingProof
        if not tx_hash:
            hint = to_checksum_address(sender) if sender and is_address(sender) else None
            return self._payment_required(resource, client_ip, hint, f"Missing {proof_field}", request_id)

        if sender is not None:
            if not is_address(sender):
                return self._denied(resource, tx_hash, REASON_INVALID_SENDER, client_ip, None, request_id)
            sender = to_checksum_address(sender)

        # Verifying
        try:
            verdict = self.verify_proof(tx_hash, sender)
        except Exception as e:
            return self._internal_error(resource, e, client_ip, GatewayState.VERIFYING, request_id)

        if not verdict.ok:
            return self._denied(
                resource, tx_hash, verdict.reason, client_ip, sender, request_id, verdict=verdict
            )

        claimed = True
        if self.ledger is not None:
            try:
                claimed = self.ledger.claim(tx_hash)
            except OSError as e:
                return self._internal_error(resource, e, client_ip, GatewayState.VERIFYING, request_id)

        if not claimed:
            audit.log_proof_replayed(
                client_ip=client_ip,
                resource=resource,
                tx_hash=tx_hash,
                wallet_address=sender,
                request_id=request_id
            )
            return self._denied(resource, tx_hash, REASON_PROOF_ALREADY_USED, client_ip, sender, request_id)

        audit.log_payment_verified(
            client_ip=client_ip,
            resource=resource,
            tx_hash=tx_hash,
            paid_value=verdict.paid_value,
            required_value=verdict.required_value,
            wallet_address=sender,
            request_id=request_id
        )

        # Granted
        try:
            result = action()
        except UpstreamActionError as e:
            self._release_proof(resource, tx_hash)
            logger.error(f"Protected action {resource} failed after payment {tx_hash}: {e.detail}")
            audit.log_action_failed(
                client_ip=client_ip,
                resource=resource,
                tx_hash=tx_hash,
                upstream_status=e.status_code,
                detail=e.detail,
                wallet_address=sender,
                request_id=request_id
            )
            return GatewayResult(
                state=GatewayState.GRANTED,
                status_code=502,
                body={
                    "error": "Upstream action failed",
                    "details": e.detail,
                    "status": e.status_code,
                },
                error_class=GatewayErrorClass.UPSTREAM_ERROR
            )
        except Exception as e:
            self._release_proof(resource, tx_hash)
            return self._internal_error(resource, e, client_ip, GatewayState.GRANTED, request_id)

        audit.log_action_completed(
            client_ip=client_ip,
            resource=resource,
            tx_hash=tx_hash,
            wallet_address=sender,
            request_id=request_id
        )
        logger.info(f"Payment {tx_hash} granted access to {resource}")
        return GatewayResult(state=GatewayState.GRANTED, status_code=200, body=result)
