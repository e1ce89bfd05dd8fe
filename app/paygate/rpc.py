# app/paygate/rpc.py
"""
Transaction receipt lookup over JSON-RPC.

Thin adapter over a node's eth_getTransactionReceipt. One round trip per
lookup, bounded by a timeout, no retries: the HTTP caller answers promptly
and the client resubmits the proof once the transaction confirms.
"""
import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional

import requests
from requests.exceptions import RequestException, Timeout

from app.paygate.errors import ReceiptFormatError
from app.paygate.types import RawLog, ReceiptStatus, TransactionReceipt

logger = logging.getLogger(__name__)

TX_HASH_PATTERN = re.compile(r"0x[0-9a-fA-F]{64}")


def is_valid_tx_hash(tx_hash: Optional[str]) -> bool:
    """Check that a string is a 32-byte 0x-prefixed hex hash."""
    return bool(tx_hash) and TX_HASH_PATTERN.fullmatch(tx_hash) is not None


class LookupStatus(Enum):
    FOUND = "found"
    NOT_FOUND = "not_found"
    MALFORMED_HASH = "malformed_hash"
    TRANSPORT_ERROR = "transport_error"


@dataclass(frozen=True)
class ReceiptLookup:
    """Outcome of a receipt fetch. receipt is set only when status is FOUND."""
    status: LookupStatus
    receipt: Optional[TransactionReceipt] = None
    detail: Optional[str] = None

    @property
    def found(self) -> bool:
        return self.status is LookupStatus.FOUND


def _parse_int(value: Any) -> Optional[int]:
    if value is None:
        return None
    if isinstance(value, int):
        return value
    return int(str(value), 16)


def _parse_status(value: Any) -> ReceiptStatus:
    # Post-Byzantium receipts carry "0x1" / "0x0"; anything else is unknown
    if value in ("0x1", 1, "success"):
        return ReceiptStatus.SUCCESS
    if value in ("0x0", 0, "failure", "reverted"):
        return ReceiptStatus.FAILURE
    return ReceiptStatus.UNKNOWN


def parse_receipt(tx_hash: str, payload: Dict[str, Any]) -> TransactionReceipt:
    """
    Convert a JSON-RPC receipt object into a TransactionReceipt.

    Raises:
        ReceiptFormatError: If the payload does not look like a receipt
    """
    if not isinstance(payload, dict):
        raise ReceiptFormatError(f"Receipt is not an object: {type(payload).__name__}")

    raw_logs = payload.get("logs", [])
    if not isinstance(raw_logs, list):
        raise ReceiptFormatError("Receipt 'logs' field is not a list")

    logs = []
    for entry in raw_logs:
        if not isinstance(entry, dict):
            raise ReceiptFormatError("Receipt log entry is not an object")
        topics = entry.get("topics") or []
        if not isinstance(topics, list):
            raise ReceiptFormatError("Receipt log 'topics' field is not a list")
        logs.append(RawLog(
            address=str(entry.get("address") or ""),
            topics=tuple(str(t) for t in topics),
            data=str(entry.get("data") or "0x"),
        ))

    try:
        block_number = _parse_int(payload.get("blockNumber"))
    except ValueError:
        raise ReceiptFormatError(f"Invalid blockNumber: {payload.get('blockNumber')!r}")

    return TransactionReceipt(
        transaction_hash=str(payload.get("transactionHash") or tx_hash),
        status=_parse_status(payload.get("status")),
        logs=tuple(logs),
        block_number=block_number,
    )


class ChainReceiptClient:
    """Fetches transaction receipts from a configured RPC endpoint."""

    def __init__(self, rpc_url: str, timeout: float = 10.0, session: Optional[requests.Session] = None):
        self.rpc_url = rpc_url
        self.timeout = timeout
        self._session = session

    def _post(self, body: Dict[str, Any]) -> requests.Response:
        if self._session is not None:
            return self._session.post(self.rpc_url, json=body, timeout=self.timeout)
        return requests.post(self.rpc_url, json=body, timeout=self.timeout)

    def fetch(self, tx_hash: str) -> ReceiptLookup:
        """
        Fetch the receipt for a transaction hash.

        Transport failures are reported as TRANSPORT_ERROR rather than raised;
        a pending or unknown transaction is NOT_FOUND.

        Args:
            tx_hash: 0x-prefixed 32-byte transaction hash

        Returns:
            ReceiptLookup describing the outcome

        Raises:
            ReceiptFormatError: If the node answered with something that is
                not a receipt
        """
        if not is_valid_tx_hash(tx_hash):
            logger.warning(f"Rejecting malformed transaction hash: {tx_hash!r}")
            return ReceiptLookup(status=LookupStatus.MALFORMED_HASH, detail="malformed hash")

        try:
            response = self._post({
                "jsonrpc": "2.0",
                "method": "eth_getTransactionReceipt",
                "params": [tx_hash],
                "id": 1
            })
            response.raise_for_status()
            result = response.json()
        except Timeout as e:
            logger.warning(f"RPC timeout after {self.timeout}s fetching receipt {tx_hash}: {e}")
            return ReceiptLookup(status=LookupStatus.TRANSPORT_ERROR, detail="timeout")
        except RequestException as e:
            logger.warning(f"RPC request failed fetching receipt {tx_hash}: {e}")
            return ReceiptLookup(status=LookupStatus.TRANSPORT_ERROR, detail=str(e))
        except ValueError as e:
            logger.warning(f"RPC returned invalid JSON for receipt {tx_hash}: {e}")
            return ReceiptLookup(status=LookupStatus.TRANSPORT_ERROR, detail="invalid JSON")

        if not isinstance(result, dict):
            return ReceiptLookup(status=LookupStatus.TRANSPORT_ERROR, detail="invalid RPC envelope")

        if "error" in result:
            logger.warning(f"RPC error fetching receipt {tx_hash}: {result['error']}")
            return ReceiptLookup(status=LookupStatus.TRANSPORT_ERROR, detail=f"RPC error: {result['error']}")

        if "result" not in result:
            return ReceiptLookup(
                status=LookupStatus.TRANSPORT_ERROR,
                detail="Invalid RPC response: missing 'result' field"
            )

        payload = result["result"]
        if payload is None:
            logger.info(f"No receipt for {tx_hash} (unknown or still pending)")
            return ReceiptLookup(status=LookupStatus.NOT_FOUND)

        receipt = parse_receipt(tx_hash, payload)
        logger.debug(f"Fetched receipt {tx_hash}: status={receipt.status.value}, logs={len(receipt.logs)}")
        return ReceiptLookup(status=LookupStatus.FOUND, receipt=receipt)
