"""Configurable fake SSLCommerz gateway for development and testing.

The fake keeps its own ledger of the sessions it opened and the payments it
"captured", so server-side validation behaves like the real gateway: a val_id
is only VALID if this gateway issued it for that transaction.

Typical test flow:

    gateway = FakeGateway(store_password="qwerty")
    ...start a payment session for an order...
    payload = gateway.complete(order.tran_id)          # signed IPN payload
    settle_notification(payload)

``complete()`` records the outcome and returns the form fields the gateway
would post to the IPN endpoint, signed with the store password.
"""

from uuid import uuid4

from checkout.gateway.port import (
    SUCCESS_STATUSES,
    GatewayUnavailable,
    PaymentGateway,
    RefundResult,
    SessionRequest,
    SessionResult,
    TransactionStatus,
    ValidationResult,
)
from checkout.gateway.signature import sign_payload
from checkout.shared.money import format_taka

FAKE_GATEWAY_URL = "https://fake-gateway.paaniyo.local/pay"

_SIGNED_FIELDS = ("amount", "bank_tran_id", "card_type", "currency", "status", "tran_date", "tran_id", "val_id")


class FakeGateway(PaymentGateway):
    """Configurable fake payment gateway."""

    def __init__(self, store_password: str = "qwerty") -> None:
        self.store_password = store_password
        self.should_succeed: bool = True
        self.failure_reason: str = "Store credential mismatch"
        self.unreachable: bool = False
        self.sessions: dict[str, SessionRequest] = {}
        self.transactions: dict[str, str] = {}
        self.validations: dict[str, ValidationResult] = {}
        self.calls: list[dict] = []

    def configure(
        self,
        should_succeed: bool = True,
        failure_reason: str = "Store credential mismatch",
        unreachable: bool = False,
    ) -> None:
        """Configure gateway behaviour at runtime."""
        self.should_succeed = should_succeed
        self.failure_reason = failure_reason
        self.unreachable = unreachable

    def _check_reachable(self) -> None:
        if self.unreachable:
            raise GatewayUnavailable("Gateway connection refused")

    # -------------------------------------------------------------------
    # PaymentGateway
    # -------------------------------------------------------------------
    def init_session(self, request: SessionRequest) -> SessionResult:
        self.calls.append({"method": "init_session", "tran_id": request.tran_id, "amount": request.amount})
        self._check_reachable()

        if not self.should_succeed:
            return SessionResult(success=False, failure_reason=self.failure_reason)

        self.sessions[request.tran_id] = request
        self.transactions[request.tran_id] = "PENDING"
        session_key = uuid4().hex.upper()
        return SessionResult(
            success=True,
            session_key=session_key,
            gateway_url=f"{FAKE_GATEWAY_URL}?tran_id={request.tran_id}&session={session_key}",
        )

    def validate(self, val_id: str) -> ValidationResult:
        self.calls.append({"method": "validate", "val_id": val_id})
        self._check_reachable()

        if val_id in self.validations:
            return self.validations[val_id]
        return ValidationResult(status="INVALID_TRANSACTION", val_id=val_id)

    def query_transaction(self, tran_id: str) -> TransactionStatus:
        self.calls.append({"method": "query_transaction", "tran_id": tran_id})
        self._check_reachable()
        return TransactionStatus(tran_id=tran_id, status=self.transactions.get(tran_id))

    def refund(self, bank_tran_id: str, amount: int, reason: str, reference: str) -> RefundResult:
        self.calls.append(
            {
                "method": "refund",
                "bank_tran_id": bank_tran_id,
                "amount": amount,
                "reason": reason,
                "reference": reference,
            }
        )
        self._check_reachable()

        if not self.should_succeed:
            return RefundResult(success=False, status="failed", failure_reason=self.failure_reason)
        return RefundResult(success=True, status="success", refund_ref_id=f"fake_ref_{uuid4().hex[:12]}")

    # -------------------------------------------------------------------
    # Test helpers
    # -------------------------------------------------------------------
    def complete(
        self,
        tran_id: str,
        status: str = "VALID",
        amount: int | None = None,
        card_type: str = "VISA-Dutch Bangla",
    ) -> dict:
        """Simulate the customer finishing the hosted page; return the signed IPN form.

        ``status`` is what the gateway records ("VALID", "FAILED", "CANCELLED").
        ``amount`` defaults to the session amount.
        """
        session = self.sessions.get(tran_id)
        amount = amount if amount is not None else (session.amount if session else 0)
        val_id = f"val_{uuid4().hex[:16]}"
        bank_tran_id = f"bank_{uuid4().hex[:12]}"

        self.transactions[tran_id] = status
        if status in SUCCESS_STATUSES:
            self.validations[val_id] = ValidationResult(
                status=status,
                tran_id=tran_id,
                val_id=val_id,
                amount=session.amount if session else amount,
                bank_tran_id=bank_tran_id,
                card_type=card_type,
            )

        payload = {
            "tran_id": tran_id,
            "val_id": val_id,
            "amount": format_taka(amount),
            "card_type": card_type,
            "store_amount": format_taka(amount),
            "bank_tran_id": bank_tran_id,
            "status": status,
            "tran_date": "2026-10-16 12:00:00",
            "currency": "BDT",
        }
        if status not in SUCCESS_STATUSES:
            payload["error"] = "Transaction declined by customer bank" if status == "FAILED" else "Cancelled by customer"
        return sign_payload(payload, self.store_password, _SIGNED_FIELDS)

    def set_validation(self, val_id: str, result: ValidationResult) -> None:
        """Force the answer ``validate(val_id)`` gives."""
        self.validations[val_id] = result

    def set_transaction_status(self, tran_id: str, status: str | None) -> None:
        if status is None:
            self.transactions.pop(tran_id, None)
        else:
            self.transactions[tran_id] = status
