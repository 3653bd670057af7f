"""Request and response models for manual transfers."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field

from transfer_ack.claims.models import Money


class ManualTransferCreate(BaseModel):
    payer_name: str = Field(..., description="Who sent the payment")
    amount: Decimal = Field(..., description="Amount received, greater than zero")


class ManualTransferDecision(BaseModel):
    note: str | None = Field(default=None, description="Optional admin note")


class ManualTransferOut(BaseModel):
    id: int
    created_by: str
    payer_name: str
    amount: Money
    status: str
    created_at: datetime
    decided_at: datetime | None = None
    decided_by: str | None = None
    admin_note: str | None = None


class ManualTransferListResponse(BaseModel):
    ok: bool = True
    count: int
    items: list[ManualTransferOut]
