"""One transaction spanning every repository."""

from typing import Optional
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from transfer_ack.db import base
from transfer_ack.db.models import Account, Transfer, TransferAck, AppUser, ManualTransfer
from transfer_ack.db.repositories import (
    AccountRepository,
    TransferRepository,
    AckRepository,
    UserRepository,
    ManualTransferRepository,
)


class UnitOfWork:
    """
    Opens a session, hands out repositories bound to it and ends the
    transaction on exit.

    A session the unit opened itself is committed on a clean exit and closed
    either way. A session passed in by the caller is only rolled back on
    error; committing and closing it stays with the caller.

    Usage:
        async with UnitOfWork(session_factory=factory) as uow:
            new_id = await uow.transfers.add_if_new(
                account_id=7, payment_id="139322351059", ...
            )
            await uow.commit()
    """

    accounts: AccountRepository
    transfers: TransferRepository
    acks: AckRepository
    users: UserRepository
    manual_transfers: ManualTransferRepository

    def __init__(
        self,
        session: Optional[AsyncSession] = None,
        session_factory: Optional[async_sessionmaker[AsyncSession]] = None,
    ):
        self._session = session
        self._session_factory = session_factory
        self._owned_session = session is None

    async def __aenter__(self) -> "UnitOfWork":
        if self._session is None:
            factory = self._session_factory or base.AsyncSessionLocal
            self._session = factory()

        session = self._session
        self.accounts = AccountRepository(Account, session)
        self.transfers = TransferRepository(Transfer, session)
        self.acks = AckRepository(TransferAck, session)
        self.users = UserRepository(AppUser, session)
        self.manual_transfers = ManualTransferRepository(ManualTransfer, session)
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        try:
            if exc_type is not None:
                await self.rollback()
            elif self._owned_session:
                await self.commit()
        finally:
            if self._owned_session and self._session is not None:
                await self._session.close()
                self._session = None

    async def commit(self):
        if self._session is not None:
            await self._session.commit()

    async def rollback(self):
        if self._session is not None:
            await self._session.rollback()
