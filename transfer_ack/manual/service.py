"""Manual transfer workflow: create, list, and one-shot admin decisions."""

from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Callable, List, Optional

import structlog
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from transfer_ack.claims.arbiter import ClaimsConfig
from transfer_ack.core.clock import as_utc, local_date, local_day_bounds, utc_now
from transfer_ack.core.errors import StorageError
from transfer_ack.db.base import STORAGE_ERRORS
from transfer_ack.db.models import ManualTransfer
from transfer_ack.db.models.manual_transfer import (
    STATUS_APPROVED,
    STATUS_PENDING_ADMIN,
    STATUS_REJECTED,
)
from transfer_ack.db.unit_of_work import UnitOfWork
from transfer_ack.manual.models import ManualTransferOut

logger = structlog.get_logger(__name__)


def to_out(row: ManualTransfer) -> ManualTransferOut:
    return ManualTransferOut(
        id=row.id,
        created_by=row.created_by,
        payer_name=row.payer_name,
        amount=row.amount,
        status=row.status,
        created_at=as_utc(row.created_at),
        decided_at=as_utc(row.decided_at) if row.decided_at else None,
        decided_by=row.decided_by,
        admin_note=row.admin_note,
    )


class ManualTransferService:
    """Operators record payments outside the provider feed; an admin decides once."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        config: Optional[ClaimsConfig] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.session_factory = session_factory
        self.config = config or ClaimsConfig()
        self._tz = self.config.tz
        self._clock = clock

    async def create(
        self, created_by: str, payer_name: str, amount: Decimal
    ) -> ManualTransferOut:
        """
        Record a manual transfer awaiting admin approval.

        Raises:
            ValueError: If the payer name is blank or the amount is not positive
        """
        payer_name = (payer_name or "").strip()
        if not payer_name:
            raise ValueError("payer_name is required")
        try:
            amount = Decimal(amount).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
        except InvalidOperation as exc:
            raise ValueError("amount is not a number") from exc
        if not amount.is_finite() or amount <= 0:
            raise ValueError("amount must be greater than zero")

        try:
            async with UnitOfWork(session_factory=self.session_factory) as uow:
                row = await uow.manual_transfers.create(
                    created_by=created_by,
                    payer_name=payer_name,
                    amount=amount,
                    status=STATUS_PENDING_ADMIN,
                    created_at=self._clock(),
                )
                result = to_out(row)
        except STORAGE_ERRORS as exc:
            raise StorageError(f"Creating manual transfer failed: {exc}") from exc

        logger.info(
            "manual.created", manual_id=result.id, created_by=created_by, amount=str(amount)
        )
        return result

    async def list_mine(self, created_by: str, day: Optional[date] = None) -> List[ManualTransferOut]:
        """An operator's manual transfers created on one local day, newest first."""
        day = day or local_date(self._clock(), self._tz)
        start, end = local_day_bounds(day, self._tz)
        try:
            async with UnitOfWork(session_factory=self.session_factory) as uow:
                rows = await uow.manual_transfers.list_created_between(
                    start, end, created_by=created_by
                )
        except STORAGE_ERRORS as exc:
            raise StorageError(f"Listing manual transfers failed: {exc}") from exc
        return [to_out(r) for r in rows]

    async def list_pending(self, day: Optional[date] = None) -> List[ManualTransferOut]:
        """Manual transfers awaiting a decision for one local day, oldest first."""
        day = day or local_date(self._clock(), self._tz)
        start, end = local_day_bounds(day, self._tz)
        try:
            async with UnitOfWork(session_factory=self.session_factory) as uow:
                rows = await uow.manual_transfers.list_created_between(
                    start, end, status=STATUS_PENDING_ADMIN, newest_first=False
                )
        except STORAGE_ERRORS as exc:
            raise StorageError(f"Listing pending manual transfers failed: {exc}") from exc
        return [to_out(r) for r in rows]

    async def decide(
        self, manual_id: int, approve: bool, admin: str, note: Optional[str] = None
    ) -> Optional[ManualTransferOut]:
        """
        Approve or reject a pending manual transfer.

        Returns:
            The decided transfer, or None if it does not exist or was already
            decided
        """
        status = STATUS_APPROVED if approve else STATUS_REJECTED
        try:
            async with UnitOfWork(session_factory=self.session_factory) as uow:
                row = await uow.manual_transfers.decide(
                    manual_id, status, admin, self._clock(), note
                )
                result = to_out(row) if row else None
        except STORAGE_ERRORS as exc:
            raise StorageError(f"Deciding manual transfer {manual_id} failed: {exc}") from exc

        if result is None:
            logger.info("manual.decision_rejected", manual_id=manual_id, admin=admin)
        else:
            logger.info("manual.decided", manual_id=manual_id, status=status, admin=admin)
        return result
