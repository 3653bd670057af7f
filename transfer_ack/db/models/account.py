"""Provider account model: one credential scope polled independently."""

from datetime import datetime, timezone
from typing import Optional
from sqlalchemy import String, Text, DateTime, Integer, Boolean
from sqlalchemy.orm import Mapped, mapped_column

from transfer_ack.db.base import Base


class Account(Base):
    """
    A payment provider account whose transfers are polled.

    The access token is an opaque secret. A placeholder value (e.g. "PENDING")
    means the account exists but has not been configured yet and must never
    be polled.
    """

    __tablename__ = "provider_accounts"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    name: Mapped[str] = mapped_column(
        String(255),
        unique=True,
        nullable=False,
        comment="Display name of the account",
    )
    access_token: Mapped[str] = mapped_column(
        Text,
        nullable=False,
        default="PENDING",
        comment="Provider bearer token (placeholder until configured)",
    )
    is_active: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=True,
        index=True,
        comment="Whether the poller should include this account",
    )
    alias: Mapped[Optional[str]] = mapped_column(
        String(255), nullable=True, comment="Bank alias shown to operators"
    )
    cvu: Mapped[Optional[str]] = mapped_column(
        String(64), nullable=True, comment="Virtual account number shown to operators"
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    def __repr__(self) -> str:
        # never render the token
        return f"<Account(id={self.id}, name={self.name}, active={self.is_active})>"
