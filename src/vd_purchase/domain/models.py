"""Domain models for vd_purchase — pure dataclasses, no SQLAlchemy dependency."""

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from src.vd_common.errors import MalformedEventError


@dataclass
class PurchaseRecord:
    id: str
    user_id: str
    product_id: str
    product_name: str
    amount: int                  # minor units (cents)
    currency: str
    credits: int
    status: str                  # PurchaseStatus value
    processor_session_id: str | None = None
    processor_payment_id: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    paid_at: datetime | None = None


@dataclass
class CheckoutHandle:
    session_id: str
    url: str


@dataclass
class PaymentEvent:
    """A verified processor event, reduced to what reconciliation needs."""

    event_id: str
    type: str
    session_id: str | None
    payment_id: str | None
    metadata: dict[str, Any] = field(default_factory=dict)


def _require_uuid(metadata: dict[str, Any], key: str) -> str:
    raw = metadata.get(key)
    if not raw:
        raise MalformedEventError(f"metadata.{key} missing")
    try:
        return str(uuid.UUID(str(raw)))
    except ValueError:
        raise MalformedEventError(f"metadata.{key} is not a valid id: {raw!r}") from None


def _parse_credits(raw: Any) -> int:
    # Processor metadata values are strings; "300" is valid, "3.5" / "-1" / "" are not
    if isinstance(raw, bool):
        raise MalformedEventError(f"metadata.credits is not an integer: {raw!r}")
    if isinstance(raw, int):
        value = raw
    elif isinstance(raw, str) and raw.strip().isdigit():
        value = int(raw.strip())
    else:
        raise MalformedEventError(f"metadata.credits is not a non-negative integer: {raw!r}")
    if value < 0:
        raise MalformedEventError(f"metadata.credits is negative: {value}")
    return value


@dataclass
class CreditMetadata:
    """Correlation data echoed back by the processor on checkout completion."""

    purchase_id: str
    user_id: str
    credits: int
    product_id: str | None = None
    product_name: str | None = None

    @classmethod
    def parse(cls, metadata: dict[str, Any] | None) -> "CreditMetadata":
        """Validate echoed metadata. Raises MalformedEventError when it can never be valid."""
        if not metadata:
            raise MalformedEventError("metadata missing")
        if "credits" not in metadata:
            raise MalformedEventError("metadata.credits missing")
        return cls(
            purchase_id=_require_uuid(metadata, "purchase_id"),
            user_id=_require_uuid(metadata, "user_id"),
            credits=_parse_credits(metadata["credits"]),
            product_id=metadata.get("product_id"),
            product_name=metadata.get("product_name"),
        )


@dataclass
class ReconciliationResult:
    outcome: str                 # ReconciliationOutcome value
    purchase_id: str | None = None
    credited: int = 0
    balance: int | None = None


def purchase_id_from(metadata: dict[str, Any] | None) -> str | None:
    """Best-effort purchase id from echoed metadata; None when absent or invalid."""
    try:
        return _require_uuid(metadata or {}, "purchase_id")
    except MalformedEventError:
        return None
