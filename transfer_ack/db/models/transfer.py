"""Transfer model: payment events ingested from the provider."""

from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional
from sqlalchemy import (
    String,
    Text,
    DateTime,
    Numeric,
    Integer,
    ForeignKey,
    Index,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from transfer_ack.db.base import Base


class Transfer(Base):
    """
    Stores payment events fetched from the provider search API.

    Rows form a ledger: they are created once on first observation and never
    updated afterwards. The pair (account_id, payment_id) is the dedup key.
    """

    __tablename__ = "transfers"

    # Surrogate key referenced by claims
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    account_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("provider_accounts.id", ondelete="CASCADE"),
        nullable=False,
        comment="Owning provider account",
    )
    payment_id: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
        index=True,
        comment="Provider-assigned payment identifier",
    )

    occurred_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        comment="Provider creation timestamp, normalized to UTC",
    )
    amount: Mapped[Decimal] = mapped_column(
        Numeric(precision=18, scale=2),
        nullable=False,
        comment="Transfer amount",
    )
    status: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        default="",
        comment="Provider status (e.g. 'approved', 'pending', 'rejected')",
    )
    payment_type: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        default="",
        comment="Provider payment method (e.g. 'bank_transfer', 'account_money')",
    )

    # Raw data (for audit and debugging)
    raw_payload: Mapped[Optional[str]] = mapped_column(
        Text, nullable=True, comment="JSON blob of the provider element"
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        comment="When the poller first stored this transfer",
    )

    __table_args__ = (
        UniqueConstraint("account_id", "payment_id", name="uq_transfer_account_payment"),
        Index("idx_transfer_occurred_at", "occurred_at"),
        Index("idx_transfer_account_occurred", "account_id", "occurred_at"),
    )

    def __repr__(self) -> str:
        return (
            f"<Transfer(id={self.id}, account_id={self.account_id}, "
            f"payment_id={self.payment_id}, amount={self.amount}, status={self.status})>"
        )
