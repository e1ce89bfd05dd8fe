# tests/conftest.py
"""Shared fixtures: keep audit output and the proof ledger per-test."""
import pytest

from app.core.config import settings
from app.paygate.ledger import reset_proof_ledger


@pytest.fixture(autouse=True)
def isolated_audit_log(tmp_path, monkeypatch):
    """Write audit events to a temporary file for every test."""
    audit_path = tmp_path / "audit" / "paygate_audit.jsonl"
    monkeypatch.setattr(settings, "AUDIT_LOG_PATH", str(audit_path))
    monkeypatch.setattr(settings, "AUDIT_LOG_ENABLED", True)
    return audit_path


@pytest.fixture(autouse=True)
def fresh_ledger():
    """Start every test without consumed proofs."""
    reset_proof_ledger()
    yield
    reset_proof_ledger()
