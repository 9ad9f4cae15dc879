"""Pydantic schemas for vd_calls API."""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field


class EndCallRequest(BaseModel):
    agent_id: str = Field(..., min_length=1, max_length=64)
    duration_seconds: int = Field(..., ge=0)
    status: Literal["completed", "disconnected"] = "completed"


class EndCallResponse(BaseModel):
    call_id: str
    duration_seconds: int
    credits_charged: int
    balance: int


class CallItem(BaseModel):
    call_id: str
    agent_id: str
    duration_seconds: int
    credits_charged: int
    status: str
    created_at: datetime | None
