# app/paygate/ledger.py
"""
Seen-proof ledger for replay protection.

A plain ERC-20 transfer carries no memo the gate could bind to a single
request, so the same transaction hash could otherwise unlock any number
of protected actions. The ledger records each consumed hash with the time
it was consumed and lets a hash be claimed at most once.

Storage is in memory, optionally mirrored to a JSON-lines file so claims
survive a restart. Thread-safe for concurrent requests.
"""
import json
import logging
import threading
import time
from pathlib import Path
from typing import Dict, Optional

logger = logging.getLogger(__name__)


class ProofLedger:
    """At-most-once consumption of payment transaction hashes."""

    def __init__(self, path: Optional[str] = None):
        """
        Initialize the ledger.

        Args:
            path: Optional JSON-lines file to persist claims to. Existing
                entries are loaded on startup.
        """
        self._consumed: Dict[str, float] = {}
        self._lock = threading.Lock()
        self._path = Path(path) if path else None
        if self._path is not None:
            self._load()

    @staticmethod
    def _key(tx_hash: str) -> str:
        return tx_hash.strip().lower()

    def _load(self) -> None:
        if not self._path.exists():
            return
        with open(self._path, "r") as f:
            for line in f:
                line = line.strip()
                if not line:
                    continue
                try:
                    entry = json.loads(line)
                    key = self._key(entry["tx_hash"])
                    if entry.get("released"):
                        self._consumed.pop(key, None)
                    else:
                        self._consumed[key] = float(entry["consumed_at"])
                except (KeyError, TypeError, ValueError, AttributeError):
                    logger.warning(f"Skipping corrupt ledger line in {self._path}")
                    continue
        logger.info(f"Loaded {len(self._consumed)} consumed proof(s) from {self._path}")

    def _append(self, entry: Dict) -> None:
        if self._path is None:
            return
        self._path.parent.mkdir(parents=True, exist_ok=True)
        with open(self._path, "a") as f:
            f.write(json.dumps(entry) + "\n")

    def claim(self, tx_hash: str) -> bool:
        """
        Mark a transaction hash as consumed.

        Returns:
            True if this call consumed the hash, False if it was already consumed
        """
        key = self._key(tx_hash)
        with self._lock:
            if key in self._consumed:
                logger.warning(f"Proof {key} already consumed at {self._consumed[key]}")
                return False
            now = time.time()
            self._append({"tx_hash": key, "consumed_at": now})
            self._consumed[key] = now
            return True

    def release(self, tx_hash: str) -> None:
        """Re-open a hash whose protected action did not complete."""
        key = self._key(tx_hash)
        with self._lock:
            if key in self._consumed:
                self._append({"tx_hash": key, "released": True})
                del self._consumed[key]
                logger.info(f"Released proof {key}")

    def is_consumed(self, tx_hash: str) -> bool:
        with self._lock:
            return self._key(tx_hash) in self._consumed

    def consumed_at(self, tx_hash: str) -> Optional[float]:
        with self._lock:
            return self._consumed.get(self._key(tx_hash))

    def __len__(self) -> int:
        with self._lock:
            return len(self._consumed)


# Global ledger instance
_ledger: Optional[ProofLedger] = None
_ledger_lock = threading.Lock()


def get_proof_ledger(path: Optional[str] = None) -> ProofLedger:
    """
    Get the process-wide ledger, creating it on first use.

    Args:
        path: Persistence file, only honoured on first creation
    """
    global _ledger

    if _ledger is None:
        with _ledger_lock:
            if _ledger is None:
                _ledger = ProofLedger(path)

    return _ledger


def reset_proof_ledger() -> None:
    """Drop the global ledger (useful for testing)."""
    global _ledger
    with _ledger_lock:
        _ledger = None
