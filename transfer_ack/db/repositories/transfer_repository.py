"""Transfer repository with specialized queries."""

from datetime import datetime
from typing import Any, List, Optional, Sequence
from sqlalchemy import select

from transfer_ack.db.models.transfer import Transfer
from transfer_ack.db.models.transfer_ack import TransferAck
from transfer_ack.db.repository import BaseRepository


class TransferRepository(BaseRepository[Transfer]):
    """Repository for Transfer model with specialized queries."""

    async def add_if_new(self, **values: Any) -> Optional[int]:
        """
        Store a transfer unless (account_id, payment_id) is already present.

        Returns:
            The new surrogate id, or None when the transfer was already stored
        """
        return await self.insert_if_absent(
            ["account_id", "payment_id"], self.model.id, **values
        )

    async def get_for_account(
        self, transfer_id: int, account_id: Optional[int] = None
    ) -> Optional[Transfer]:
        """Get a transfer by surrogate id, optionally restricted to one account."""
        query = select(self.model).where(self.model.id == transfer_id)
        if account_id is not None:
            query = query.where(self.model.account_id == account_id)
        result = await self.session.execute(query)
        return result.scalar_one_or_none()

    async def get_by_payment_id(
        self, payment_id: str, account_id: Optional[int] = None
    ) -> Optional[Transfer]:
        """
        Get a transfer by provider payment id.

        Payment ids are only unique per account; without an account scope the
        oldest stored match is returned.
        """
        query = select(self.model).where(self.model.payment_id == payment_id)
        if account_id is not None:
            query = query.where(self.model.account_id == account_id)
        query = query.order_by(self.model.id).limit(1)
        result = await self.session.execute(query)
        return result.scalar_one_or_none()

    async def list_unclaimed(
        self,
        limit: int,
        account_id: Optional[int] = None,
        payment_types: Sequence[str] = (),
        since: Optional[datetime] = None,
    ) -> List[Transfer]:
        """
        Transfers nobody has acknowledged yet, most recent first.

        Args:
            limit: Maximum number of transfers to return
            account_id: Restrict to one provider account
            payment_types: Only these payment types (empty = all)
            since: Only transfers that occurred at or after this instant

        Returns:
            List of unclaimed transfers
        """
        query = (
            select(self.model)
            .outerjoin(TransferAck, TransferAck.transfer_id == self.model.id)
            .where(TransferAck.transfer_id.is_(None))
        )
        if account_id is not None:
            query = query.where(self.model.account_id == account_id)
        if payment_types:
            query = query.where(self.model.payment_type.in_(list(payment_types)))
        if since is not None:
            query = query.where(self.model.occurred_at >= since)

        query = query.order_by(
            self.model.occurred_at.desc(), self.model.id.desc()
        ).limit(limit)
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def list_recent(self, limit: int) -> List[Transfer]:
        """Most recently stored transfers across all accounts."""
        query = select(self.model).order_by(self.model.id.desc()).limit(limit)
        result = await self.session.execute(query)
        return list(result.scalars().all())
