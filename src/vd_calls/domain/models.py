"""Domain models for vd_calls."""

from dataclasses import dataclass
from datetime import datetime


@dataclass
class CallRecord:
    id: str
    user_id: str
    agent_id: str
    duration_seconds: int
    rate_per_minute: int
    credits_charged: int
    status: str                  # CallStatus value
    created_at: datetime | None = None
