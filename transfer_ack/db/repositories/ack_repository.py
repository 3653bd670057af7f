"""Acknowledgment repository: the storage side of the claim race."""

from datetime import date, datetime
from typing import List, Optional, Tuple
from sqlalchemy import select

from transfer_ack.db.models.account import Account
from transfer_ack.db.models.transfer import Transfer
from transfer_ack.db.models.transfer_ack import TransferAck
from transfer_ack.db.repository import BaseRepository

ClaimedRow = Tuple[Transfer, TransferAck, Optional[str]]


class AckRepository(BaseRepository[TransferAck]):
    """Repository for TransferAck model."""

    async def try_claim(
        self, transfer_id: int, username: str, acked_at: datetime, ack_date: date
    ) -> bool:
        """
        Atomically create the acknowledgment for a transfer.

        Returns:
            True if this call created the row, False if the transfer was
            already acknowledged (by anyone)
        """
        created = await self.insert_if_absent(
            ["transfer_id"],
            self.model.transfer_id,
            transfer_id=transfer_id,
            username=username,
            acked_at=acked_at,
            ack_date=ack_date,
        )
        return created is not None

    async def get_by_transfer(self, transfer_id: int) -> Optional[TransferAck]:
        """Current acknowledgment of a transfer, read fresh from the database."""
        query = (
            select(self.model)
            .where(self.model.transfer_id == transfer_id)
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(query)
        return result.scalar_one_or_none()

    async def list_claimed(
        self,
        day: date,
        username: Optional[str] = None,
        account_id: Optional[int] = None,
    ) -> List[ClaimedRow]:
        """
        Acknowledged transfers for one local day.

        Args:
            day: Local civil date of the acknowledgment
            username: Restrict to one claimant
            account_id: Restrict to one provider account

        Returns:
            (transfer, ack, account name) tuples, latest claim first
        """
        query = (
            select(Transfer, self.model, Account.name)
            .select_from(self.model)
            .join(Transfer, Transfer.id == self.model.transfer_id)
            .outerjoin(Account, Account.id == Transfer.account_id)
            .where(self.model.ack_date == day)
        )
        if username is not None:
            query = query.where(self.model.username == username)
        if account_id is not None:
            query = query.where(Transfer.account_id == account_id)

        query = query.order_by(self.model.acked_at.desc(), Transfer.id.desc())
        result = await self.session.execute(query)
        return [tuple(row) for row in result.all()]  # type: ignore[misc]
