"""Data models for claims, listings and their API responses."""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Annotated, Literal

from pydantic import BaseModel, Field, PlainSerializer

# amounts go out as JSON numbers, like the provider sends them
Money = Annotated[
    Decimal, PlainSerializer(lambda v: float(v), return_type=float, when_used="json")
]


class ClaimOutcome(str, Enum):
    """Result of a claim attempt."""

    WON = "won"
    ALREADY_OWNED = "already_owned"
    CONFLICT = "conflict"


class ClaimResult(BaseModel):
    """Outcome of one claim attempt, with the current owner of the transfer."""

    outcome: ClaimOutcome
    transfer_id: int
    payment_id: str
    owner: str = Field(..., description="Username holding the claim")
    acked_at: datetime | None = Field(default=None, description="Claim instant (UTC)")
    ack_date: date | None = Field(default=None, description="Local date of the claim")

    @property
    def ok(self) -> bool:
        """True when the claimant holds the transfer after this call."""
        return self.outcome in (ClaimOutcome.WON, ClaimOutcome.ALREADY_OWNED)


class PendingTransfer(BaseModel):
    """A transfer nobody has claimed yet."""

    id: int
    payment_id: str
    account_id: int
    occurred_at: datetime
    amount: Money
    payment_type: str
    status: str


class ClaimedItem(BaseModel):
    """One line of a daily claimed listing: a provider transfer or a manual one."""

    source: Literal["provider", "manual"]
    id: int
    payment_id: str = Field(..., description="Provider id, or MANUAL-<id>")
    occurred_at: datetime
    amount: Money
    payment_type: str
    status: str
    accepted_by: str
    acked_at: datetime | None = None
    ack_date: date
    account_id: int | None = None
    account_name: str | None = None


class ClaimedDay(BaseModel):
    """Claimed items for one local day with their total amount."""

    day: date
    claimant: str | None = None
    count: int = 0
    total: Money = Decimal("0.00")
    items: list[ClaimedItem] = Field(default_factory=list)


# ============================================================================
# API responses
# ============================================================================


class ClaimResponse(BaseModel):
    ok: bool
    outcome: ClaimOutcome
    transfer_id: int
    payment_id: str
    owner: str
    message: str


class PendingResponse(BaseModel):
    ok: bool = True
    account_id: int | None
    count: int
    items: list[PendingTransfer]


class ClaimedDayResponse(ClaimedDay):
    ok: bool = True


class AccountInfo(BaseModel):
    id: int
    name: str
    alias: str = ""
    cvu: str = ""
    is_active: bool


class OperatorInfo(BaseModel):
    username: str
    role: str
    account_id: int | None = None
    account_name: str | None = None


class AssignAccountRequest(BaseModel):
    username: str = Field(..., min_length=1)
    account_id: int | None = Field(
        ..., description="Account to assign, or null to unassign"
    )
