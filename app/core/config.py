# app/core/config.py
from typing import Optional
from pydantic_settings import BaseSettings
from pydantic import AnyHttpUrl # AnyHttpUrl stays in pydantic core
from functools import lru_cache
from dotenv import load_dotenv

# Load .env file if it exists
load_dotenv()

class Settings(BaseSettings):
    PROJECT_NAME: str = "Booking Payment Gateway"
    API_PREFIX: str = "/api/booking-calendar"

    # Chain access (Base mainnet by default)
    BASE_RPC_URL: Optional[AnyHttpUrl] = None
    RPC_TIMEOUT_SECONDS: float = 10.0

    # Payment terms. PRICE_USDC stays a string so it is parsed as a Decimal,
    # never through a float.
    PAYMENT_RECEIVER: Optional[str] = None
    USDC_BASE: Optional[str] = None
    PRICE_USDC: Optional[str] = None
    PAYMENT_CHAIN_ID: int = 8453
    PAYMENT_TOKEN_DECIMALS: int = 6
    PAYMENT_TOKEN_SYMBOL: str = "USDC"
    PAYMENT_MATCH_POLICY: str = "single"  # "single" or "aggregate"
    PAYMENT_INCLUDE_NONCE: bool = False

    # Replay protection
    PROOF_LEDGER_ENABLED: bool = True
    PROOF_LEDGER_PATH: Optional[str] = None

    # Audit trail
    AUDIT_LOG_ENABLED: bool = True
    AUDIT_LOG_PATH: str = "logs/paygate_audit.jsonl"

    # Downstream booking provider (Cal.com v2)
    CALCOM_API_URL: Optional[str] = None
    CALCOM_API_KEY: Optional[str] = None
    CALCOM_API_VERSION: str = "2024-08-13"
    CALCOM_TIMEOUT_SECONDS: float = 15.0

    # Payload served by the protected-resource endpoint
    PROTECTED_CONTENT_SECRET: str = "here is your protected response"

    class Config:
        env_file = ".env"
        case_sensitive = True
        extra = "ignore"  # Ignore extra fields from .env

@lru_cache() # Cache the settings object for performance
def get_settings() -> Settings:
    return Settings()

settings = get_settings()
