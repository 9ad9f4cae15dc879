"""Global enums — must match DB CHECK constraints exactly."""

from enum import Enum


class PurchaseStatus(str, Enum):
    INITIATED = "initiated"
    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"
    EXPIRED = "expired"

    @property
    def is_terminal(self) -> bool:
        return self in (PurchaseStatus.PAID, PurchaseStatus.FAILED, PurchaseStatus.EXPIRED)


class LedgerDirection(str, Enum):
    CREDIT = "credit"
    DEBIT = "debit"


class LedgerReason(str, Enum):
    PURCHASE = "purchase"
    CALL = "call"
    REFUND = "refund"
    ADMIN = "admin"


class UserRole(str, Enum):
    USER = "user"
    ADMIN = "admin"


class AgentStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"


class CallStatus(str, Enum):
    COMPLETED = "completed"
    DISCONNECTED = "disconnected"


class PaymentEventType(str, Enum):
    """Processor event types this service acts on. Everything else is acknowledged and ignored."""
    CHECKOUT_COMPLETED = "checkout.session.completed"
    CHECKOUT_EXPIRED = "checkout.session.expired"
    CHECKOUT_ASYNC_PAYMENT_FAILED = "checkout.session.async_payment_failed"


class ReconciliationOutcome(str, Enum):
    CREDITED = "credited"
    DUPLICATE = "duplicate"
    MALFORMED = "malformed"
    IGNORED = "ignored"
    CLOSED = "closed"  # purchase moved to failed/expired
