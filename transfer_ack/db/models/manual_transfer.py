"""Manual transfers recorded by operators and decided by an admin."""

from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional
from sqlalchemy import String, Text, DateTime, Numeric, Integer, Index
from sqlalchemy.orm import Mapped, mapped_column

from transfer_ack.db.base import Base

STATUS_PENDING_ADMIN = "pending_admin"
STATUS_APPROVED = "approved"
STATUS_REJECTED = "rejected"


class ManualTransfer(Base):
    """
    A payment an operator received outside the provider feed.

    Starts as 'pending_admin'; an admin moves it once to 'approved' or
    'rejected'. Approved rows count towards the operator's daily total.
    """

    __tablename__ = "manual_transfers"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    created_by: Mapped[str] = mapped_column(
        String(255), nullable=False, comment="Operator that recorded the payment"
    )
    payer_name: Mapped[str] = mapped_column(String(255), nullable=False)
    amount: Mapped[Decimal] = mapped_column(
        Numeric(precision=18, scale=2), nullable=False
    )
    status: Mapped[str] = mapped_column(
        String(50), nullable=False, default=STATUS_PENDING_ADMIN, index=True
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    decided_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    decided_by: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    admin_note: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    __table_args__ = (Index("idx_manual_creator_created", "created_by", "created_at"),)

    def __repr__(self) -> str:
        return (
            f"<ManualTransfer(id={self.id}, created_by={self.created_by}, "
            f"amount={self.amount}, status={self.status})>"
        )
