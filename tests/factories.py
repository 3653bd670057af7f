"""Helpers that put accounts, operators and transfers into a test database."""

from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional

from transfer_ack.auth.security import hash_password
from transfer_ack.db.models import AppUser
from transfer_ack.db.unit_of_work import UnitOfWork

TEST_PASSWORD = "secret-pass"
# fast hash; tests verify many logins
TEST_PASSWORD_HASH = hash_password(TEST_PASSWORD, rounds=4)


async def make_account(
    factory,
    name: str,
    access_token: str = "APP_USR-test-token",
    is_active: bool = True,
) -> int:
    async with UnitOfWork(session_factory=factory) as uow:
        account = await uow.accounts.create(
            name=name, access_token=access_token, is_active=is_active
        )
        return account.id


async def make_user(
    factory, username: str, role: str = "branch", account_id: Optional[int] = None
) -> AppUser:
    async with UnitOfWork(session_factory=factory) as uow:
        return await uow.users.create(
            username=username,
            role=role,
            password_hash=TEST_PASSWORD_HASH,
            account_id=account_id,
        )


async def make_transfer(
    factory,
    account_id: int,
    payment_id: str,
    amount: str = "1500.00",
    occurred_at: Optional[datetime] = None,
    payment_type: str = "bank_transfer",
    status: str = "approved",
) -> int:
    async with UnitOfWork(session_factory=factory) as uow:
        transfer_id = await uow.transfers.add_if_new(
            account_id=account_id,
            payment_id=payment_id,
            occurred_at=occurred_at or datetime.now(timezone.utc),
            amount=Decimal(amount),
            status=status,
            payment_type=payment_type,
            raw_payload="{}",
        )
        assert transfer_id is not None
        return transfer_id


async def count_transfers(factory, **filters) -> int:
    async with UnitOfWork(session_factory=factory) as uow:
        return await uow.transfers.count(**filters)
