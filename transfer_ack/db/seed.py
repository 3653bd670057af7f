"""Seed operators and configured provider accounts."""

import asyncio
from typing import Optional

import structlog
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from transfer_ack.accounts.sync import sync_configured_accounts
from transfer_ack.auth.security import hash_password
from transfer_ack.core.config import Settings, get_settings
from transfer_ack.db.models.app_user import ROLE_ADMIN, ROLE_BRANCH
from transfer_ack.db.unit_of_work import UnitOfWork

logger = structlog.get_logger(__name__)


async def seed_users(uow: UnitOfWork, settings: Settings) -> int:
    """
    Create the admin and branch operators.

    Existing users keep their password hash; only their role is refreshed.
    Nothing is seeded unless both seed passwords are configured.

    Returns:
        Number of users ensured
    """
    if not settings.SEED_ADMIN_PASSWORD or not settings.SEED_BRANCH_PASSWORD:
        logger.warning("seed.users_skipped", reason="seed passwords not configured")
        return 0

    admin_hash = hash_password(settings.SEED_ADMIN_PASSWORD)
    branch_hash = hash_password(settings.SEED_BRANCH_PASSWORD)

    await uow.users.ensure_user("admin", ROLE_ADMIN, admin_hash)
    for username in settings.SEED_BRANCHES:
        await uow.users.ensure_user(username, ROLE_BRANCH, branch_hash)

    count = 1 + len(settings.SEED_BRANCHES)
    logger.info("seed.users_ensured", count=count)
    return count


async def seed_database(
    session_factory: Optional[async_sessionmaker[AsyncSession]] = None,
    settings: Optional[Settings] = None,
) -> None:
    """Sync configured accounts and seed operators in one transaction."""
    settings = settings or get_settings()
    async with UnitOfWork(session_factory=session_factory) as uow:
        accounts = await sync_configured_accounts(uow, settings.PROVIDER_ACCOUNTS)
        users = await seed_users(uow, settings)
    logger.info("seed.completed", accounts=accounts, users=users)


if __name__ == "__main__":
    from transfer_ack.core.logging import configure_logging

    configure_logging(get_settings().ENV)
    asyncio.run(seed_database())
