"""
Acknowledgment arbiter.

Decides races between operators claiming the same transfer. The decision is
made by the database: the claim is a single conditional insert against the
primary key of transfer_acks, so whichever insert lands first wins and every
other attempt observes the winner.
"""

from __future__ import annotations

from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Awaitable, Callable, List, Optional, Union
from zoneinfo import ZoneInfo

import structlog
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from transfer_ack.claims.models import (
    ClaimedDay,
    ClaimedItem,
    ClaimOutcome,
    ClaimResult,
    PendingTransfer,
)
from transfer_ack.core.clock import as_utc, local_date, local_day_bounds, utc_now
from transfer_ack.core.config import Settings
from transfer_ack.core.errors import StorageError, TransferNotFoundError
from transfer_ack.db.base import STORAGE_ERRORS
from transfer_ack.db.models import ManualTransfer, Transfer
from transfer_ack.db.unit_of_work import UnitOfWork

logger = structlog.get_logger(__name__)

MIN_LIST_LIMIT = 1
MAX_LIST_LIMIT = 200


class ClaimsConfig(BaseModel):
    """Claim and listing settings, derived once from Settings."""

    local_timezone: str = "America/Argentina/Buenos_Aires"
    pending_payment_types: list[str] = Field(
        default_factory=lambda: ["bank_transfer", "account_money"]
    )
    pending_max_age_minutes: int = Field(default=10, ge=0)

    @property
    def tz(self) -> ZoneInfo:
        return ZoneInfo(self.local_timezone)

    @classmethod
    def from_settings(cls, settings: Settings) -> "ClaimsConfig":
        return cls(
            local_timezone=settings.LOCAL_TIMEZONE,
            pending_payment_types=settings.PENDING_PAYMENT_TYPES,
            pending_max_age_minutes=settings.PENDING_MAX_AGE_MINUTES,
        )


def clamp_limit(limit: int) -> int:
    return max(MIN_LIST_LIMIT, min(MAX_LIST_LIMIT, limit))


Resolver = Callable[[UnitOfWork], Awaitable[Optional[Transfer]]]


class AckArbiter:
    """
    Single-winner claims over transfers, plus the listings operators use.

    The arbiter holds no in-process locks: two processes sharing the same
    database arbitrate exactly like two coroutines in one process.
    """

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

    # ------------------------------------------------------------------
    # Claims
    # ------------------------------------------------------------------

    async def claim(
        self, event_ref: Union[int, str], claimant: str, account_id: Optional[int] = None
    ) -> ClaimResult:
        """
        Claim a transfer for claimant.

        Args:
            event_ref: Surrogate transfer id (int) or provider payment id (str)
            claimant: Username of the operator
            account_id: Only resolve transfers of this account

        Returns:
            WON or ALREADY_OWNED when claimant holds the transfer afterwards,
            CONFLICT naming the owner otherwise

        Raises:
            TransferNotFoundError: If the reference does not resolve
            StorageError: If the event store fails
        """
        if isinstance(event_ref, int):
            return await self.claim_by_id(event_ref, claimant, account_id)
        return await self.claim_by_payment_id(event_ref, claimant, account_id)

    async def claim_by_id(
        self, transfer_id: int, claimant: str, account_id: Optional[int] = None
    ) -> ClaimResult:
        async def resolve(uow: UnitOfWork) -> Optional[Transfer]:
            return await uow.transfers.get_for_account(transfer_id, account_id)

        return await self._claim(resolve, str(transfer_id), claimant, account_id)

    async def claim_by_payment_id(
        self, payment_id: str, claimant: str, account_id: Optional[int] = None
    ) -> ClaimResult:
        async def resolve(uow: UnitOfWork) -> Optional[Transfer]:
            return await uow.transfers.get_by_payment_id(payment_id.strip(), account_id)

        return await self._claim(resolve, payment_id, claimant, account_id)

    async def _claim(
        self,
        resolve: Resolver,
        reference: str,
        claimant: str,
        account_id: Optional[int],
    ) -> ClaimResult:
        acked_at = self._clock()
        ack_date = local_date(acked_at, self._tz)

        try:
            async with UnitOfWork(session_factory=self.session_factory) as uow:
                transfer = await resolve(uow)
                if transfer is None:
                    raise TransferNotFoundError(reference, account_id)

                transfer_id, payment_id = transfer.id, transfer.payment_id
                won = await uow.acks.try_claim(transfer_id, claimant, acked_at, ack_date)
                if won:
                    await uow.commit()
                    logger.info(
                        "claim.won",
                        transfer_id=transfer_id,
                        payment_id=payment_id,
                        claimant=claimant,
                    )
                    return ClaimResult(
                        outcome=ClaimOutcome.WON,
                        transfer_id=transfer_id,
                        payment_id=payment_id,
                        owner=claimant,
                        acked_at=acked_at,
                        ack_date=ack_date,
                    )

                existing = await uow.acks.get_by_transfer(transfer_id)
        except STORAGE_ERRORS as exc:
            logger.error("claim.storage_failed", reference=reference, error=str(exc))
            raise StorageError(f"Claim on {reference!r} failed: {exc}") from exc

        if existing is None:
            # acks are never deleted, so a lost insert always leaves an owner
            raise StorageError(f"Claim on {reference!r} lost but no owner found")

        outcome = (
            ClaimOutcome.ALREADY_OWNED
            if existing.username == claimant
            else ClaimOutcome.CONFLICT
        )
        logger.info(
            f"claim.{outcome.value}",
            transfer_id=transfer_id,
            payment_id=payment_id,
            claimant=claimant,
            owner=existing.username,
        )
        return ClaimResult(
            outcome=outcome,
            transfer_id=transfer_id,
            payment_id=payment_id,
            owner=existing.username,
            acked_at=as_utc(existing.acked_at),
            ack_date=existing.ack_date,
        )

    # ------------------------------------------------------------------
    # Listings
    # ------------------------------------------------------------------

    def today(self) -> date:
        """Current date in the configured civil timezone."""
        return local_date(self._clock(), self._tz)

    async def list_unclaimed(
        self, limit: int = 20, account_id: Optional[int] = None
    ) -> List[PendingTransfer]:
        """
        Recent transfers without a claim, most recent first.

        Only the configured payment types are listed, and only transfers newer
        than the configured maximum age.
        """
        since = None
        if self.config.pending_max_age_minutes > 0:
            since = self._clock() - timedelta(
                minutes=self.config.pending_max_age_minutes
            )

        try:
            async with UnitOfWork(session_factory=self.session_factory) as uow:
                rows = await uow.transfers.list_unclaimed(
                    limit=clamp_limit(limit),
                    account_id=account_id,
                    payment_types=self.config.pending_payment_types,
                    since=since,
                )
        except STORAGE_ERRORS as exc:
            raise StorageError(f"Listing unclaimed transfers failed: {exc}") from exc

        return [
            PendingTransfer(
                id=t.id,
                payment_id=t.payment_id,
                account_id=t.account_id,
                occurred_at=as_utc(t.occurred_at),
                amount=t.amount,
                payment_type=t.payment_type,
                status=t.status,
            )
            for t in rows
        ]

    async def list_recent(self, limit: int = 20) -> List[PendingTransfer]:
        """Most recently ingested transfers across all accounts, claimed or not."""
        try:
            async with UnitOfWork(session_factory=self.session_factory) as uow:
                rows = await uow.transfers.list_recent(clamp_limit(limit))
        except STORAGE_ERRORS as exc:
            raise StorageError(f"Listing transfers failed: {exc}") from exc

        return [
            PendingTransfer(
                id=t.id,
                payment_id=t.payment_id,
                account_id=t.account_id,
                occurred_at=as_utc(t.occurred_at),
                amount=t.amount,
                payment_type=t.payment_type,
                status=t.status,
            )
            for t in rows
        ]

    async def list_claimed_by(
        self, claimant: str, day: date, account_id: Optional[int] = None
    ) -> ClaimedDay:
        """
        Everything claimant got credited for on one local day.

        Provider transfers claimed that day (optionally only on one account)
        plus the claimant's manual transfers created that day and approved.
        """
        return await self._claimed_day(day, claimant, account_id)

    async def list_claimed_on(
        self, day: date, claimant: Optional[str] = None
    ) -> ClaimedDay:
        """Admin view of one local day, across claimants unless one is given."""
        return await self._claimed_day(day, claimant, None)

    async def _claimed_day(
        self, day: date, claimant: Optional[str], account_id: Optional[int]
    ) -> ClaimedDay:
        start, end = local_day_bounds(day, self._tz)
        try:
            async with UnitOfWork(session_factory=self.session_factory) as uow:
                claimed = await uow.acks.list_claimed(
                    day, username=claimant, account_id=account_id
                )
                manual = await uow.manual_transfers.list_approved_with_account(
                    start, end, created_by=claimant
                )
        except STORAGE_ERRORS as exc:
            raise StorageError(f"Listing claims for {day} failed: {exc}") from exc

        items = [
            ClaimedItem(
                source="provider",
                id=transfer.id,
                payment_id=transfer.payment_id,
                occurred_at=as_utc(transfer.occurred_at),
                amount=transfer.amount,
                payment_type=transfer.payment_type,
                status=transfer.status,
                accepted_by=ack.username,
                acked_at=as_utc(ack.acked_at),
                ack_date=ack.ack_date,
                account_id=transfer.account_id,
                account_name=account_name,
            )
            for transfer, ack, account_name in claimed
        ]
        items.extend(
            self._manual_item(row, user_account_id, account_name)
            for row, user_account_id, account_name in manual
        )

        # latest claim first, missing instants last, provider before manual
        items.sort(
            key=lambda i: (
                i.acked_at is None,
                -i.acked_at.timestamp() if i.acked_at else 0.0,
                i.source == "manual",
            )
        )

        total = sum((i.amount for i in items), Decimal("0.00"))
        return ClaimedDay(
            day=day, claimant=claimant, count=len(items), total=total, items=items
        )

    def _manual_item(
        self,
        row: ManualTransfer,
        account_id: Optional[int],
        account_name: Optional[str],
    ) -> ClaimedItem:
        created_at = as_utc(row.created_at)
        return ClaimedItem(
            source="manual",
            id=row.id,
            payment_id=f"MANUAL-{row.id}",
            occurred_at=created_at,
            amount=row.amount,
            payment_type="manual",
            status=row.status,
            accepted_by=row.created_by,
            acked_at=as_utc(row.decided_at) if row.decided_at else None,
            ack_date=local_date(created_at, self._tz),
            account_id=account_id,
            account_name=account_name,
        )
