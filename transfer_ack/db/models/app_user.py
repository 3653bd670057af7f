"""Operator accounts used for HTTP Basic authentication."""

from datetime import datetime, timezone
from typing import Optional
from sqlalchemy import String, DateTime, Integer, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column

from transfer_ack.db.base import Base

ROLE_ADMIN = "admin"
ROLE_BRANCH = "branch"


class AppUser(Base):
    """An operator (branch) or administrator allowed to use the API."""

    __tablename__ = "app_users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    username: Mapped[str] = mapped_column(
        String(255), unique=True, nullable=False, index=True
    )
    role: Mapped[str] = mapped_column(
        String(50), nullable=False, default=ROLE_BRANCH, comment="'branch' or 'admin'"
    )
    password_hash: Mapped[str] = mapped_column(
        String(255), nullable=False, comment="bcrypt hash"
    )
    account_id: Mapped[Optional[int]] = mapped_column(
        Integer,
        ForeignKey("provider_accounts.id", ondelete="SET NULL"),
        nullable=True,
        comment="Provider account this operator works on",
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN

    def __repr__(self) -> str:
        return f"<AppUser(username={self.username}, role={self.role}, account_id={self.account_id})>"
