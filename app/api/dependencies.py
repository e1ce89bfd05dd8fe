# app/api/dependencies.py
"""FastAPI dependencies for the payment-gated endpoints."""
import logging
from typing import Callable, Optional

from fastapi import Depends, HTTPException, Request, status

from app.core.config import Settings, get_settings
from app.paygate.config import PaymentConfig
from app.paygate.gateway import PaymentGateway
from app.paygate.ledger import ProofLedger, get_proof_ledger
from app.services.calcom_api import CalcomClient

logger = logging.getLogger(__name__)

# Called with the client key before any chain I/O; returns False to refuse.
RateLimitCheck = Callable[[str], bool]


def get_client_ip(request: Request) -> str:
    """Extract client IP from request, handling proxies."""
    forwarded_for = request.headers.get("X-Forwarded-For")
    if forwarded_for:
        # Take the first IP in the chain
        return forwarded_for.split(",")[0].strip()

    real_ip = request.headers.get("X-Real-IP")
    if real_ip:
        return real_ip.strip()

    if request.client:
        return request.client.host

    return "unknown"


def get_rate_limiter() -> Optional[RateLimitCheck]:
    """Rate limiting is provided by the deployment; none is installed by default."""
    return None


def enforce_rate_limit(
    request: Request,
    limiter: Optional[RateLimitCheck] = Depends(get_rate_limiter),
) -> None:
    """Refuse the request with 429 when the installed limiter says so."""
    if limiter is None:
        return
    client_ip = get_client_ip(request)
    if not limiter(f"{request.url.path}:{client_ip}"):
        logger.warning(f"Rate limit exceeded for {client_ip} on {request.url.path}")
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail="Too many requests. Please try again later."
        )


def get_payment_config(settings: Settings = Depends(get_settings)) -> PaymentConfig:
    """Validated payment configuration; raises ConfigError when incomplete."""
    return PaymentConfig.from_settings(settings)


def get_ledger(settings: Settings = Depends(get_settings)) -> Optional[ProofLedger]:
    """Process-wide proof ledger, or None when replay protection is disabled."""
    if not settings.PROOF_LEDGER_ENABLED:
        return None
    return get_proof_ledger(settings.PROOF_LEDGER_PATH)


def get_payment_gateway(
    config: PaymentConfig = Depends(get_payment_config),
    ledger: Optional[ProofLedger] = Depends(get_ledger),
) -> PaymentGateway:
    """Payment gateway wired with the configured collaborators."""
    return PaymentGateway(config, ledger=ledger)


def get_calcom_client(settings: Settings = Depends(get_settings)) -> CalcomClient:
    """Cal.com client; raises ConfigError when credentials are missing."""
    return CalcomClient.from_settings(settings)
