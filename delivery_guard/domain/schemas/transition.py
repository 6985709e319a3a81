"""Pydantic schemas for transition and payment API. Strict validation, no DB or infrastructure."""

from datetime import datetime
from decimal import Decimal
from typing import Literal, Optional

from pydantic import BaseModel, Field, field_validator


# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------

class TransitionRequest(BaseModel):
    """Requested target state for a delivery or payment."""

    target_state: str = Field(..., min_length=1, max_length=32)
    reason: Optional[str] = Field(None, max_length=500)

    @field_validator("target_state")
    @classmethod
    def normalize_state(cls, v: str) -> str:
        return v.strip().upper()


class PaymentCreateRequest(BaseModel):
    """Request schema for capturing a payment against a delivered package."""

    delivery_id: str = Field(..., min_length=1, max_length=64)
    amount: Decimal = Field(..., gt=0, max_digits=12, decimal_places=2)
    method: Literal["card", "upi", "wallet", "netbanking", "cash"]


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------

class TransitionResponse(BaseModel):
    resource_kind: str
    resource_id: str
    previous_state: str
    state: str
    transitioned_at: datetime


class PaymentResponse(BaseModel):
    payment_id: str
    delivery_id: str
    amount: Decimal
    method: Optional[str] = None
    state: str
    created_at: datetime

    model_config = {"from_attributes": True}
