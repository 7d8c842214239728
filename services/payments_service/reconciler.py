"""
M-Pesa STK callback reconciliation.

Safaricom delivers the result of an STK push asynchronously, either wrapped as
``{"Body": {"stkCallback": {...}}}`` or flat. The callback only carries the
``MerchantRequestID`` / ``CheckoutRequestID`` pair returned when the push was
initiated, with inconsistent key casing, so matching is done by scanning the
most recent transactions for either identifier.

Reconciliation is best-effort: store errors are logged and the gateway is
always acknowledged, since it redelivers on any non-2xx response.
"""
import logging
from dataclasses import dataclass
from typing import Any, Iterable, Optional

from services.payments_service.models import TransactionDB, TransactionStatus, UNMATCHED_CALLBACK
from services.payments_service.store import STORE_ERRORS

logger = logging.getLogger("payments-service")

MERCHANT_REQUEST_ID = "MerchantRequestID"
CHECKOUT_REQUEST_ID = "CheckoutRequestID"
CORRELATION_PAYLOADS = ("response_payload", "request_payload")


class CallbackParseError(ValueError):
    """The request body cannot be turned into a callback object."""


def get_ci(mapping: Any, key: str, default: Any = None) -> Any:
    """Look up ``key`` in a dict ignoring case. Non-dicts yield ``default``."""
    if not isinstance(mapping, dict):
        return default
    if key in mapping:
        return mapping[key]
    lowered = key.lower()
    for k, v in mapping.items():
        if isinstance(k, str) and k.lower() == lowered:
            return v
    return default


def normalize_callback(body: Any) -> dict:
    if not isinstance(body, dict):
        raise CallbackParseError("Callback body must be a JSON object")
    inner = get_ci(get_ci(body, "Body"), "stkCallback")
    if isinstance(inner, dict):
        return inner
    return body


def _as_id(value: Any) -> Optional[str]:
    if value is None:
        return None
    value = str(value).strip()
    return value or None


@dataclass(frozen=True)
class CallbackIdentifiers:
    merchant_request_id: Optional[str] = None
    checkout_request_id: Optional[str] = None

    @classmethod
    def from_payload(cls, payload: Any) -> "CallbackIdentifiers":
        return cls(
            merchant_request_id=_as_id(get_ci(payload, MERCHANT_REQUEST_ID)),
            checkout_request_id=_as_id(get_ci(payload, CHECKOUT_REQUEST_ID)),
        )

    def shares_id_with(self, other: "CallbackIdentifiers") -> bool:
        if self.merchant_request_id and self.merchant_request_id == other.merchant_request_id:
            return True
        if self.checkout_request_id and self.checkout_request_id == other.checkout_request_id:
            return True
        return False


def extract_result_code(callback: dict) -> Any:
    code = get_ci(callback, "ResultCode")
    if code is None:
        code = get_ci(get_ci(callback, "Result"), "ResultCode")
    return code


def status_for_result_code(code: Any) -> Optional[str]:
    """``success`` for 0 / "0", ``failed`` for any other value, None when unknown."""
    if code is None:
        return None
    if isinstance(code, (int, float)) and not isinstance(code, bool):
        return TransactionStatus.SUCCESS if code == 0 else TransactionStatus.FAILED
    return TransactionStatus.SUCCESS if str(code).strip() == "0" else TransactionStatus.FAILED


def find_match(transactions: Iterable[dict], ids: CallbackIdentifiers) -> Optional[dict]:
    # transactions come newest-first, so the first hit is the most recent one
    for tx in transactions:
        for field in CORRELATION_PAYLOADS:
            if ids.shares_id_with(CallbackIdentifiers.from_payload(tx.get(field))):
                return tx
    return None


@dataclass
class ReconcileResult:
    matched: bool
    tx_id: Optional[str]
    status: Optional[str]
    duplicate: bool = False


class CallbackReconciler:
    def __init__(self, store, scan_limit: int = 200):
        self.store = store
        self.scan_limit = scan_limit

    async def reconcile(self, body: Any) -> ReconcileResult:
        callback = normalize_callback(body)
        ids = CallbackIdentifiers.from_payload(callback)
        result_code = extract_result_code(callback)
        new_status = status_for_result_code(result_code)

        log_extra = {
            "merchant_request_id": ids.merchant_request_id,
            "checkout_request_id": ids.checkout_request_id,
            "result_code": result_code,
        }

        try:
            recent = await self.store.recent(self.scan_limit)
        except STORE_ERRORS:
            logger.exception("Error fetching transactions for callback match", extra=log_extra)
            recent = []

        match = find_match(recent, ids)
        if match is not None:
            return await self._apply(match, callback, new_status, log_extra)
        return await self._record_unmatched(callback, new_status, log_extra)

    async def _apply(self, tx: dict, callback: dict, new_status: Optional[str], log_extra: dict) -> ReconcileResult:
        tx_id = str(tx.get("id") or tx.get("_id"))
        log_extra = {**log_extra, "tx_id": tx_id}

        if tx.get("callback_payload"):
            logger.warning("Duplicate callback ignored", extra=log_extra)
            return ReconcileResult(matched=True, tx_id=tx_id, status=tx.get("status"), duplicate=True)

        fields = {"callback_payload": callback}
        if new_status is not None:
            fields["status"] = new_status

        try:
            await self.store.update(tx_id, fields)
        except STORE_ERRORS:
            logger.exception("Failed to update transaction with callback", extra=log_extra)
        else:
            logger.info("Callback matched", extra={**log_extra, "status": new_status})

        return ReconcileResult(matched=True, tx_id=tx_id, status=new_status or tx.get("status"))

    async def _record_unmatched(self, callback: dict, new_status: Optional[str], log_extra: dict) -> ReconcileResult:
        # No result code means the outcome is unknown: keep it pending for manual review
        status = new_status or TransactionStatus.PENDING
        record = TransactionDB(
            description=UNMATCHED_CALLBACK,
            callback_payload=callback,
            status=status,
        )

        tx_id = None
        try:
            tx_id = await self.store.insert(record)
        except STORE_ERRORS:
            logger.exception("Failed to insert unmatched callback", extra=log_extra)
        else:
            logger.warning("Callback unmatched", extra={**log_extra, "tx_id": tx_id, "status": status})

        return ReconcileResult(matched=False, tx_id=tx_id, status=status)
