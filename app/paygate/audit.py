# app/paygate/audit.py
"""
Audit logging for payment gate events.

This module logs every gateway decision for:
- Dispute resolution ("I paid but got no booking")
- Reconciliation of received payments against granted actions
- Debugging verification failures

Log format: JSON lines (one event per line)
Log location: Configured via AUDIT_LOG_PATH, disabled via AUDIT_LOG_ENABLED

Events logged:
- 402 returned (resource, price, token, receiver)
- Payment verified (tx hash, paid amount)
- Payment rejected (tx hash, reason)
- Proof replayed (tx hash)
- Protected action completed / failed
- Configuration error
- Unexpected error
"""
import json
import logging
import uuid
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional

from app.core.config import settings

logger = logging.getLogger(__name__)


class AuditEventType(Enum):
    """Types of audit events that can be logged."""
    PAYMENT_REQUIRED_SENT = "payment_required_sent"
    PAYMENT_VERIFIED = "payment_verified"
    PAYMENT_REJECTED = "payment_rejected"
    PROOF_REPLAYED = "proof_replayed"
    ACTION_COMPLETED = "action_completed"
    ACTION_FAILED = "action_failed"
    CONFIG_ERROR = "config_error"
    ERROR = "error"


def generate_request_id() -> str:
    """Generate a unique request ID for tracking."""
    return str(uuid.uuid4())[:8]


def get_audit_log_path() -> Path:
    """Get the path to the audit log file."""
    return Path(settings.AUDIT_LOG_PATH)


def create_audit_event(
    event_type: AuditEventType,
    data: Dict[str, Any],
    client_ip: Optional[str] = None,
    wallet_address: Optional[str] = None,
    request_id: Optional[str] = None
) -> Dict[str, Any]:
    """Create an audit event dictionary."""
    return {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "event_type": event_type.value,
        "request_id": request_id or generate_request_id(),
        "client_ip": client_ip,
        "wallet_address": wallet_address,
        "data": data
    }


def log_audit_event(
    event_type: AuditEventType,
    data: Dict[str, Any],
    client_ip: Optional[str] = None,
    wallet_address: Optional[str] = None,
    request_id: Optional[str] = None
) -> Optional[str]:
    """
    Log an audit event to the audit log.

    Failures to write are logged and swallowed; auditing never fails a request.

    Returns:
        The request_id used for this event, or None if disabled or on error
    """
    if not settings.AUDIT_LOG_ENABLED:
        return None

    event = create_audit_event(
        event_type=event_type,
        data=data,
        client_ip=client_ip,
        wallet_address=wallet_address,
        request_id=request_id
    )

    try:
        log_path = get_audit_log_path()
        log_path.parent.mkdir(parents=True, exist_ok=True)
        with open(log_path, "a") as f:
            f.write(json.dumps(event) + "\n")

        logger.debug(f"Audit event logged: {event_type.value} [{event['request_id']}]")
        return event["request_id"]

    except OSError as e:
        logger.error(f"Failed to write audit event: {e}")
        return None


# Convenience functions for specific event types

def log_payment_required_sent(
    client_ip: Optional[str],
    resource: str,
    descriptor: Dict[str, Any],
    reason: Optional[str] = None,
    request_id: Optional[str] = None
) -> Optional[str]:
    """Log a 402 Payment Required response event."""
    return log_audit_event(
        event_type=AuditEventType.PAYMENT_REQUIRED_SENT,
        data={
            "resource": resource,
            "reason": reason,
            "payment": descriptor,
        },
        client_ip=client_ip,
        request_id=request_id
    )


def log_payment_verified(
    client_ip: Optional[str],
    resource: str,
    tx_hash: str,
    paid_value: int,
    required_value: int,
    wallet_address: Optional[str] = None,
    request_id: Optional[str] = None
) -> Optional[str]:
    """Log a successful payment verification."""
    return log_audit_event(
        event_type=AuditEventType.PAYMENT_VERIFIED,
        data={
            "resource": resource,
            "tx_hash": tx_hash,
            "paid_value": str(paid_value),
            "required_value": str(required_value),
        },
        client_ip=client_ip,
        wallet_address=wallet_address,
        request_id=request_id
    )


def log_payment_rejected(
    client_ip: Optional[str],
    resource: str,
    tx_hash: str,
    reason: str,
    detail: Optional[str] = None,
    wallet_address: Optional[str] = None,
    request_id: Optional[str] = None
) -> Optional[str]:
    """Log a rejected payment proof."""
    return log_audit_event(
        event_type=AuditEventType.PAYMENT_REJECTED,
        data={
            "resource": resource,
            "tx_hash": tx_hash,
            "reason": reason,
            "detail": detail,
        },
        client_ip=client_ip,
        wallet_address=wallet_address,
        request_id=request_id
    )


def log_proof_replayed(
    client_ip: Optional[str],
    resource: str,
    tx_hash: str,
    wallet_address: Optional[str] = None,
    request_id: Optional[str] = None
) -> Optional[str]:
    """Log an attempt to reuse an already consumed proof."""
    return log_audit_event(
        event_type=AuditEventType.PROOF_REPLAYED,
        data={
            "resource": resource,
            "tx_hash": tx_hash,
        },
        client_ip=client_ip,
        wallet_address=wallet_address,
        request_id=request_id
    )


def log_action_completed(
    client_ip: Optional[str],
    resource: str,
    tx_hash: str,
    wallet_address: Optional[str] = None,
    request_id: Optional[str] = None
) -> Optional[str]:
    """Log a protected action that ran after verification."""
    return log_audit_event(
        event_type=AuditEventType.ACTION_COMPLETED,
        data={
            "resource": resource,
            "tx_hash": tx_hash,
        },
        client_ip=client_ip,
        wallet_address=wallet_address,
        request_id=request_id
    )


def log_action_failed(
    client_ip: Optional[str],
    resource: str,
    tx_hash: str,
    upstream_status: Optional[int],
    detail: str,
    wallet_address: Optional[str] = None,
    request_id: Optional[str] = None
) -> Optional[str]:
    """Log a protected action that failed after the payment was accepted."""
    return log_audit_event(
        event_type=AuditEventType.ACTION_FAILED,
        data={
            "resource": resource,
            "tx_hash": tx_hash,
            "upstream_status": upstream_status,
            "detail": detail,
        },
        client_ip=client_ip,
        wallet_address=wallet_address,
        request_id=request_id
    )


def log_config_error(
    client_ip: Optional[str],
    resource: str,
    error_message: str,
    request_id: Optional[str] = None
) -> Optional[str]:
    """Log a configuration error that stopped a request."""
    return log_audit_event(
        event_type=AuditEventType.CONFIG_ERROR,
        data={
            "resource": resource,
            "error_message": error_message,
        },
        client_ip=client_ip,
        request_id=request_id
    )


def log_error(
    client_ip: Optional[str],
    error_type: str,
    error_message: str,
    context: Optional[Dict[str, Any]] = None,
    wallet_address: Optional[str] = None,
    request_id: Optional[str] = None
) -> Optional[str]:
    """Log an unexpected error event."""
    return log_audit_event(
        event_type=AuditEventType.ERROR,
        data={
            "error_type": error_type,
            "error_message": error_message,
            "context": context or {},
        },
        client_ip=client_ip,
        wallet_address=wallet_address,
        request_id=request_id
    )


def _iter_events():
    """Yield parsed events oldest first, skipping unreadable lines."""
    log_path = get_audit_log_path()
    if not log_path.exists():
        return
    with open(log_path, "r") as f:
        for line in f:
            line = line.strip()
            if not line:
                continue
            try:
                yield json.loads(line)
            except json.JSONDecodeError:
                continue


def read_audit_log(
    max_entries: int = 100,
    event_type: Optional[AuditEventType] = None,
    tx_hash: Optional[str] = None
) -> List[Dict[str, Any]]:
    """
    Read gateway events back, most recent first.

    Filtering by tx_hash gives the full history of one payment proof, which
    is what a "paid but nothing happened" dispute needs.
    """
    wanted_hash = tx_hash.strip().lower() if tx_hash else None
    events = []
    try:
        for event in _iter_events():
            if event_type and event.get("event_type") != event_type.value:
                continue
            if wanted_hash:
                data = event.get("data") or {}
                if str(data.get("tx_hash", "")).lower() != wanted_hash:
                    continue
            events.append(event)
    except OSError as e:
        logger.error(f"Failed to read audit log: {e}")
        return []

    events.reverse()
    return events[:max_entries]


def summarize_payments() -> Dict[str, Any]:
    """
    Reconciliation summary of the audit log.

    Returns:
        Dict with challenges sent, proofs verified, rejections per reason,
        replays, and completed/failed protected actions
    """
    summary: Dict[str, Any] = {
        "challenges": 0,
        "verified": 0,
        "rejected_by_reason": {},
        "replays": 0,
        "actions_completed": 0,
        "actions_failed": 0,
    }
    counters = {
        AuditEventType.PAYMENT_REQUIRED_SENT.value: "challenges",
        AuditEventType.PAYMENT_VERIFIED.value: "verified",
        AuditEventType.PROOF_REPLAYED.value: "replays",
        AuditEventType.ACTION_COMPLETED.value: "actions_completed",
        AuditEventType.ACTION_FAILED.value: "actions_failed",
    }

    for event in read_audit_log(max_entries=10 ** 9):
        kind = event.get("event_type")
        if kind in counters:
            summary[counters[kind]] += 1
        elif kind == AuditEventType.PAYMENT_REJECTED.value:
            reason = (event.get("data") or {}).get("reason") or "unknown"
            rejected = summary["rejected_by_reason"]
            rejected[reason] = rejected.get(reason, 0) + 1

    return summary
