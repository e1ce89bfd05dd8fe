# app/paygate/__init__.py
"""
On-chain stablecoin payment gate.

This module gates protected actions behind proof of an ERC-20 payment,
following the HTTP 402 "payment required" challenge/response pattern.

Key components:
- rpc: fetches transaction receipts from a JSON-RPC node
- decoder: decodes Transfer event logs into typed records
- verifier: applies the matching policy to decoded transfers
- challenge: builds the payment descriptor for 402 responses
- ledger: at-most-once consumption of payment proofs
- audit: JSON-lines audit trail of gateway events
- gateway: the AwaitingProof -> Verifying -> Granted/Denied state machine

Configuration is loaded from environment variables via app.core.config
and converted once into an immutable PaymentConfig.
"""

__version__ = "0.1.0"
