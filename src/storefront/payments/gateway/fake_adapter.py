"""Configurable fake payment gateway for development and testing.

Simulates a gateway without external calls. Configure it at runtime to
succeed or decline, and inspect ``calls`` to see what was asked of it.
"""

from decimal import Decimal
from uuid import uuid4

from storefront.payments.gateway.port import AuthorizationResult, CaptureResult, PaymentGateway, RefundResult


class FakeGateway(PaymentGateway):
    def __init__(self) -> None:
        self.should_succeed: bool = True
        self.failure_reason: str = "Card declined"
        self.calls: list[dict] = []

    def configure(self, should_succeed: bool, failure_reason: str = "Card declined") -> None:
        self.should_succeed = should_succeed
        self.failure_reason = failure_reason

    def authorize(self, amount: Decimal, payment_details: dict) -> AuthorizationResult:
        self.calls.append({"method": "authorize", "amount": amount, "payment_details": payment_details})

        if self.should_succeed:
            return AuthorizationResult(
                success=True,
                transaction_id=f"fake_txn_{uuid4().hex[:12]}",
                gateway_status="authorized",
            )
        return AuthorizationResult(success=False, gateway_status="declined", failure_reason=self.failure_reason)

    def capture(self, transaction_id: str, amount: Decimal) -> CaptureResult:
        self.calls.append({"method": "capture", "transaction_id": transaction_id, "amount": amount})

        if self.should_succeed:
            return CaptureResult(
                success=True,
                transaction_id=transaction_id,
                amount=amount,
                gateway_status="captured",
            )
        return CaptureResult(success=False, transaction_id=transaction_id, failure_reason=self.failure_reason)

    def refund(self, transaction_id: str, amount: Decimal, reason: str) -> RefundResult:
        self.calls.append({"method": "refund", "transaction_id": transaction_id, "amount": amount, "reason": reason})

        if self.should_succeed:
            return RefundResult(
                success=True,
                refund_id=f"fake_ref_{uuid4().hex[:12]}",
                amount=amount,
                gateway_status="refunded",
            )
        return RefundResult(success=False, failure_reason=self.failure_reason)
