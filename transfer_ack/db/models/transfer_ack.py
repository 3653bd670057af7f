"""TransferAck model: the single claim an operator holds on a transfer."""

from datetime import date, datetime, timezone
from sqlalchemy import String, DateTime, Date, Integer, ForeignKey, Index
from sqlalchemy.orm import Mapped, mapped_column

from transfer_ack.db.base import Base


class TransferAck(Base):
    """
    Records which operator acknowledged a transfer.

    transfer_id is the primary key, so the database itself guarantees at most
    one acknowledgment per transfer. The arbiter relies on that constraint to
    decide races.
    """

    __tablename__ = "transfer_acks"

    transfer_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("transfers.id", ondelete="CASCADE"),
        primary_key=True,
        autoincrement=False,
        comment="Claimed transfer (unique)",
    )
    username: Mapped[str] = mapped_column(
        String(255), nullable=False, comment="Operator that won the claim"
    )
    acked_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        comment="Claim instant (UTC)",
    )
    ack_date: Mapped[date] = mapped_column(
        Date,
        nullable=False,
        comment="Claim date in the local civil timezone, for daily reports",
    )

    __table_args__ = (Index("idx_ack_user_date", "username", "ack_date"),)

    def __repr__(self) -> str:
        return (
            f"<TransferAck(transfer_id={self.transfer_id}, username={self.username}, "
            f"ack_date={self.ack_date})>"
        )
