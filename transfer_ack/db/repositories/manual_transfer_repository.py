"""Manual transfer repository."""

from datetime import datetime
from typing import List, Optional, Tuple
from sqlalchemy import select, update

from transfer_ack.db.models.account import Account
from transfer_ack.db.models.app_user import AppUser
from transfer_ack.db.models.manual_transfer import (
    ManualTransfer,
    STATUS_APPROVED,
    STATUS_PENDING_ADMIN,
)
from transfer_ack.db.repository import BaseRepository


class ManualTransferRepository(BaseRepository[ManualTransfer]):
    """Repository for ManualTransfer model."""

    async def list_created_between(
        self,
        start: datetime,
        end: datetime,
        created_by: Optional[str] = None,
        status: Optional[str] = None,
        newest_first: bool = True,
    ) -> List[ManualTransfer]:
        """Manual transfers created in [start, end), optionally filtered."""
        query = select(self.model).where(
            self.model.created_at >= start, self.model.created_at < end
        )
        if created_by is not None:
            query = query.where(self.model.created_by == created_by)
        if status is not None:
            query = query.where(self.model.status == status)

        order = self.model.created_at.desc() if newest_first else self.model.created_at
        result = await self.session.execute(query.order_by(order, self.model.id))
        return list(result.scalars().all())

    async def list_approved_with_account(
        self, start: datetime, end: datetime, created_by: Optional[str] = None
    ) -> List[Tuple[ManualTransfer, Optional[int], Optional[str]]]:
        """
        Approved manual transfers created in [start, end).

        Each row carries the account assigned to the creating operator.
        """
        query = (
            select(self.model, AppUser.account_id, Account.name)
            .select_from(self.model)
            .outerjoin(AppUser, AppUser.username == self.model.created_by)
            .outerjoin(Account, Account.id == AppUser.account_id)
            .where(self.model.status == STATUS_APPROVED)
            .where(self.model.created_at >= start, self.model.created_at < end)
        )
        if created_by is not None:
            query = query.where(self.model.created_by == created_by)

        result = await self.session.execute(query.order_by(self.model.id))
        return [tuple(row) for row in result.all()]  # type: ignore[misc]

    async def decide(
        self,
        manual_id: int,
        status: str,
        decided_by: str,
        decided_at: datetime,
        note: Optional[str] = None,
    ) -> Optional[ManualTransfer]:
        """
        Move a pending manual transfer to its final status.

        The status check is part of the UPDATE itself, so two concurrent
        decisions cannot both succeed.

        Returns:
            The updated row, or None if it does not exist or is no longer pending
        """
        result = await self.session.execute(
            update(self.model)
            .where(self.model.id == manual_id)
            .where(self.model.status == STATUS_PENDING_ADMIN)
            .values(
                status=status,
                decided_at=decided_at,
                decided_by=decided_by,
                admin_note=note,
            )
            .returning(self.model.id)
            .execution_options(synchronize_session=False)
        )
        if result.scalar_one_or_none() is None:
            return None

        refreshed = await self.session.execute(
            select(self.model)
            .where(self.model.id == manual_id)
            .execution_options(populate_existing=True)
        )
        return refreshed.scalar_one()
