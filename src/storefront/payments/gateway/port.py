"""Payment gateway port (abstract interface).

The contract every gateway adapter implements. Checkout never calls a gateway;
only the payment processor does, after an order exists.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from decimal import Decimal


@dataclass(frozen=True)
class AuthorizationResult:
    success: bool
    transaction_id: str | None = None
    gateway_status: str | None = None
    failure_reason: str | None = None


@dataclass(frozen=True)
class CaptureResult:
    success: bool
    transaction_id: str | None = None
    amount: Decimal | None = None
    gateway_status: str | None = None
    failure_reason: str | None = None


@dataclass(frozen=True)
class RefundResult:
    success: bool
    refund_id: str | None = None
    amount: Decimal | None = None
    gateway_status: str | None = None
    failure_reason: str | None = None


class PaymentGateway(ABC):
    """Abstract payment gateway interface."""

    @abstractmethod
    def authorize(self, amount: Decimal, payment_details: dict) -> AuthorizationResult:
        """Reserve ``amount`` on the customer's payment method."""
        ...

    @abstractmethod
    def capture(self, transaction_id: str, amount: Decimal) -> CaptureResult:
        """Collect a previously authorized amount."""
        ...

    @abstractmethod
    def refund(self, transaction_id: str, amount: Decimal, reason: str) -> RefundResult:
        """Return ``amount`` of a captured payment to the customer."""
        ...
