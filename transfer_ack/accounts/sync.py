"""Load the accounts declared in settings into provider_accounts."""

from typing import Iterable

import structlog

from transfer_ack.core.config import AccountSettings
from transfer_ack.db.unit_of_work import UnitOfWork

logger = structlog.get_logger(__name__)


async def sync_configured_accounts(
    uow: UnitOfWork, accounts: Iterable[AccountSettings]
) -> int:
    """
    Upsert configured accounts by name.

    Accounts present in the database but absent from configuration are left
    untouched. The caller commits.

    Returns:
        Number of accounts written
    """
    written = 0
    for item in accounts:
        name = item.name.strip()
        if not name:
            logger.warning("accounts.sync_skipped", reason="empty name")
            continue
        account = await uow.accounts.upsert(
            name=name,
            access_token=item.access_token,
            is_active=item.is_active,
            alias=item.alias,
            cvu=item.cvu,
        )
        written += 1
        # token deliberately not logged
        logger.info(
            "accounts.synced",
            account_id=account.id,
            name=account.name,
            is_active=account.is_active,
        )
    return written
