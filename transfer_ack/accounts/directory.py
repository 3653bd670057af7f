"""Resolve the provider accounts that are active and hold a usable token."""

from dataclasses import dataclass, field
from typing import Iterable, List, Optional

import structlog
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from transfer_ack.core.errors import ConfigurationError
from transfer_ack.db.base import STORAGE_ERRORS
from transfer_ack.db.unit_of_work import UnitOfWork

logger = structlog.get_logger(__name__)

DEFAULT_PLACEHOLDERS = ("PENDING",)


@dataclass(frozen=True)
class ProviderAccount:
    """Snapshot of an account taken at the start of a tick."""

    id: int
    name: str
    access_token: str = field(repr=False)


def is_pollable_token(token: Optional[str], placeholders: Iterable[str]) -> bool:
    """A token is usable unless it is empty, whitespace or a placeholder."""
    if token is None:
        return False
    value = token.strip()
    if not value:
        return False
    blocked = {p.strip().lower() for p in placeholders}
    return value.lower() not in blocked


class AccountDirectory:
    """
    Read-only view over provider_accounts used by the poller.

    The directory is consulted once per tick, so activating or deactivating an
    account takes effect on the next tick.
    """

    def __init__(
        self,
        session_factory: Optional[async_sessionmaker[AsyncSession]] = None,
        placeholders: Iterable[str] = DEFAULT_PLACEHOLDERS,
        session: Optional[AsyncSession] = None,
    ):
        """
        Initialize the directory.

        Args:
            session_factory: Factory to open a short read session with
            placeholders: Token values meaning "not configured yet"
            session: Existing session to read through (tests)
        """
        self.session_factory = session_factory
        self.placeholders = tuple(placeholders)
        self.session = session

    async def list_active_accounts(self) -> List[ProviderAccount]:
        """
        Return the accounts to poll, ordered by id.

        Raises:
            ConfigurationError: If the account store cannot be read
        """
        try:
            async with UnitOfWork(
                session=self.session, session_factory=self.session_factory
            ) as uow:
                rows = await uow.accounts.list_pollable(self.placeholders)
        except STORAGE_ERRORS as exc:
            raise ConfigurationError(f"Account directory unavailable: {exc}") from exc

        accounts = [
            ProviderAccount(id=row.id, name=row.name, access_token=row.access_token)
            for row in rows
            if is_pollable_token(row.access_token, self.placeholders)
        ]
        logger.debug("accounts.resolved", count=len(accounts))
        return accounts
