# tests/test_paygate_audit.py
"""
Unit tests for the payment gate audit log.
"""
import json
from unittest.mock import patch

from app.core.config import settings
from app.paygate.audit import (
    AuditEventType,
    create_audit_event,
    generate_request_id,
    log_action_completed,
    log_action_failed,
    log_audit_event,
    log_payment_rejected,
    log_payment_required_sent,
    log_payment_verified,
    log_proof_replayed,
    read_audit_log,
    summarize_payments,
)

from tests.chain_fixtures import SENDER, TX_HASH


class TestAuditEvents:
    """Test event construction and writing."""

    def test_request_id_format(self):
        """Request IDs are short unique strings."""
        assert len(generate_request_id()) == 8
        assert generate_request_id() != generate_request_id()

    def test_create_event_structure(self):
        """Events carry timestamp, type, ids and data."""
        event = create_audit_event(
            AuditEventType.PAYMENT_VERIFIED,
            {"tx_hash": TX_HASH},
            client_ip="203.0.113.5",
            request_id="abc12345"
        )

        assert event["event_type"] == "payment_verified"
        assert event["request_id"] == "abc12345"
        assert event["client_ip"] == "203.0.113.5"
        assert event["data"] == {"tx_hash": TX_HASH}
        assert "timestamp" in event

    def test_event_written_as_json_line(self, isolated_audit_log):
        """Each event is one JSON line."""
        request_id = log_payment_verified(
            client_ip="203.0.113.5",
            resource="booking",
            tx_hash=TX_HASH,
            paid_value=100000,
            required_value=100000,
            wallet_address=SENDER
        )

        lines = isolated_audit_log.read_text().strip().splitlines()
        assert len(lines) == 1
        event = json.loads(lines[0])
        assert event["request_id"] == request_id
        assert event["wallet_address"] == SENDER
        assert event["data"]["paid_value"] == "100000"

    def test_disabled(self, isolated_audit_log, monkeypatch):
        """Nothing is written when auditing is disabled."""
        monkeypatch.setattr(settings, "AUDIT_LOG_ENABLED", False)

        assert log_audit_event(AuditEventType.ERROR, {}) is None
        assert not isolated_audit_log.exists()

    def test_write_failure_swallowed(self):
        """A write failure returns None instead of raising."""
        with patch("builtins.open", side_effect=PermissionError("read-only")):
            assert log_audit_event(AuditEventType.ERROR, {}) is None


class TestReadAuditLog:
    """Test reading the log back."""

    def test_missing_log(self):
        """No file means no events."""
        assert read_audit_log() == []

    def test_most_recent_first_and_filter(self):
        """Events come back newest first and can be filtered by type."""
        log_payment_rejected("203.0.113.5", "booking", TX_HASH, "transaction failed")
        log_payment_verified("203.0.113.6", "booking", TX_HASH, 1, 1)

        events = read_audit_log()
        assert [e["event_type"] for e in events] == ["payment_verified", "payment_rejected"]

        rejected = read_audit_log(event_type=AuditEventType.PAYMENT_REJECTED)
        assert len(rejected) == 1
        assert rejected[0]["data"]["reason"] == "transaction failed"

    def test_history_of_one_proof(self):
        """Filtering by transaction hash ignores case and other proofs."""
        other_hash = "0x" + "cd" * 32
        log_payment_verified("203.0.113.5", "booking", TX_HASH, 1, 1)
        log_payment_rejected("203.0.113.5", "booking", other_hash, "transaction not found")
        log_action_failed("203.0.113.5", "booking", TX_HASH, 409, "slot taken")

        history = read_audit_log(tx_hash=TX_HASH.upper().replace("0X", "0x"))

        assert [e["event_type"] for e in history] == ["action_failed", "payment_verified"]

    def test_unreadable_lines_skipped(self, isolated_audit_log):
        """Corrupt lines do not stop reading."""
        log_payment_verified("203.0.113.5", "booking", TX_HASH, 1, 1)
        with open(isolated_audit_log, "a") as f:
            f.write("{truncated\n")

        assert len(read_audit_log()) == 1


class TestSummarizePayments:
    """Test the reconciliation summary."""

    def test_counts_by_outcome(self):
        """Events are counted per outcome and rejections per reason."""
        log_payment_required_sent("203.0.113.5", "booking", {"amount": "0.10"})
        log_payment_rejected("203.0.113.5", "booking", TX_HASH, "transaction failed")
        log_payment_rejected("203.0.113.5", "booking", TX_HASH, "transaction failed")
        log_payment_rejected("203.0.113.5", "booking", TX_HASH, "insufficient payment")
        log_payment_verified("203.0.113.5", "booking", TX_HASH, 1, 1)
        log_proof_replayed("203.0.113.5", "booking", TX_HASH)
        log_action_completed("203.0.113.5", "booking", TX_HASH)

        summary = summarize_payments()

        assert summary == {
            "challenges": 1,
            "verified": 1,
            "rejected_by_reason": {"transaction failed": 2, "insufficient payment": 1},
            "replays": 1,
            "actions_completed": 1,
            "actions_failed": 0,
        }

    def test_empty_log(self):
        """A missing log summarizes to zeros."""
        summary = summarize_payments()
        assert summary["challenges"] == 0
        assert summary["rejected_by_reason"] == {}
